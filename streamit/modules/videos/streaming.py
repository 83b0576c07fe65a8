import re
from dataclasses import dataclass
from streamit.core.errors import RangeNotSatisfiable

_RANGE_RE = re.compile(r"(\d*)-(\d*)")

@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int  # inclusive
    total: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def content_range(self) -> str:
        return f"bytes {self.start}-{self.end}/{self.total}"

def parse_range(header: str | None, total: int) -> ByteRange | None:
    """
    Parse a single-range ``Range`` header against an object of ``total`` bytes.

    Returns None when no header was sent (serve everything). Supports
    ``bytes=a-b``, ``bytes=a-`` and suffix ``bytes=-n``; ``b`` past the end is
    clamped. Multi-range, malformed and unsatisfiable headers raise
    RangeNotSatisfiable.
    """
    if header is None or not header.strip():
        return None
    unit, _, ranges = header.strip().partition("=")
    if unit.strip().lower() != "bytes" or not ranges:
        raise RangeNotSatisfiable(total, "malformed range header")
    if "," in ranges:
        raise RangeNotSatisfiable(total, "multiple ranges are not supported")
    m = _RANGE_RE.fullmatch(ranges.strip())
    if not m or (not m.group(1) and not m.group(2)):
        raise RangeNotSatisfiable(total, "malformed range header")

    first, last = m.group(1), m.group(2)
    if not first:
        suffix = int(last)
        if suffix == 0 or total == 0:
            raise RangeNotSatisfiable(total)
        return ByteRange(max(0, total - suffix), total - 1, total)

    start = int(first)
    end = int(last) if last else total - 1
    end = min(end, total - 1)
    if start >= total or start > end:
        raise RangeNotSatisfiable(total)
    return ByteRange(start, end, total)
