from typing import Protocol, runtime_checkable

@runtime_checkable
class MediaProbePort(Protocol):
    async def duration_seconds(self, source: str) -> float | None: ...
