from typing import Protocol, runtime_checkable

@runtime_checkable
class EventBusPort(Protocol):
    """Out-of-process mirror for progress events (other workers, analytics)."""

    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None: ...

    async def close(self) -> None: ...
