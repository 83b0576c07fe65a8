import asyncio
import json
import logging
from streamit.platform.ports.media_probe import MediaProbePort
from streamit.core.config import settings

log = logging.getLogger("probe.ffprobe")

class FfprobeProbe(MediaProbePort):
    """Reads the container duration with ffprobe.

    Returns None when ffprobe reports no duration. Missing binaries, timeouts
    and non-zero exits raise; the pipeline treats probing as best-effort.
    """

    def __init__(self, binary: str | None = None, timeout: float | None = None):
        self.binary = binary or settings.FFPROBE_BINARY
        self.timeout = timeout if timeout is not None else settings.FFPROBE_TIMEOUT_SECONDS

    async def duration_seconds(self, source: str) -> float | None:
        proc = await asyncio.create_subprocess_exec(
            self.binary, "-v", "quiet", "-print_format", "json", "-show_format", source,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise
        if proc.returncode != 0:
            raise RuntimeError(f"ffprobe exited with {proc.returncode}")
        data = json.loads(stdout or b"{}")
        duration = (data.get("format") or {}).get("duration")
        if duration in (None, "", "N/A"):
            return None
        return float(duration)
