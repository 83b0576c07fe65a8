"""In-process fan-out of item progress events.

Delivery is best-effort and at-most-once per emission. Nothing is stored: a
subscriber only sees events published while it is subscribed. Each event carries
the access attributes of its item so the policy can be applied per subscriber
before delivery.
"""
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from streamit.core.security import Principal
from streamit.modules.videos.access import can_view
from streamit.platform.ports.event_bus import EventBusPort

log = logging.getLogger("realtime.broadcaster")

TOPIC = "streamit.videos"


@dataclass(frozen=True)
class ProgressEvent:
    item_id: str
    status: str
    progress: int | None = None
    sensitivity: str | None = None
    # audience, never serialized
    owner_id: str | None = field(default=None, repr=False)
    visibility: str = field(default="public", repr=False)
    tenant: str | None = field(default=None, repr=False)

    @classmethod
    def for_item(cls, item, status: str, progress: int | None = None, sensitivity: str | None = None) -> "ProgressEvent":
        return cls(
            item_id=str(item.id),
            status=status,
            progress=progress,
            sensitivity=sensitivity,
            owner_id=item.owner_id,
            visibility=item.visibility,
            tenant=item.tenant,
        )

    def to_wire(self) -> dict:
        out: dict = {"itemId": self.item_id}
        if self.progress is not None:
            out["progress"] = self.progress
        out["status"] = self.status
        if self.sensitivity is not None:
            out["sensitivity"] = self.sensitivity
        return out


class Subscription:
    def __init__(self, principal: Principal | None, item_id: str | None, maxsize: int):
        self.id = uuid.uuid4().hex
        self.principal = principal
        self.item_id = item_id
        self.queue: asyncio.Queue[ProgressEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def wants(self, event: ProgressEvent) -> bool:
        if self.item_id is not None and self.item_id != event.item_id:
            return False
        return can_view(event, self.principal)

    async def get(self, timeout: float | None = None) -> ProgressEvent | None:
        """Next event, or None if ``timeout`` elapses first."""
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None


class Broadcaster:
    def __init__(self, bus: EventBusPort | None = None, queue_size: int = 100):
        self._subs: dict[str, Subscription] = {}
        self._bus = bus
        self._queue_size = queue_size

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)

    @asynccontextmanager
    async def subscribe(self, principal: Principal | None = None, item_id: str | None = None):
        sub = Subscription(principal, item_id, self._queue_size)
        self._subs[sub.id] = sub
        log.debug("subscriber %s joined (item=%s)", sub.id, item_id or "*")
        try:
            yield sub
        finally:
            self._subs.pop(sub.id, None)
            log.debug("subscriber %s left (dropped=%d)", sub.id, sub.dropped)

    async def publish(self, event: ProgressEvent) -> int:
        """Deliver to every eligible subscriber; returns how many received it."""
        delivered = 0
        for sub in list(self._subs.values()):
            if not sub.wants(event):
                continue
            try:
                sub.queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                sub.dropped += 1
                log.warning("subscriber %s queue full; dropping %s event for %s", sub.id, event.status, event.item_id)
        if self._bus is not None:
            try:
                await self._bus.publish(topic=TOPIC, key=event.item_id, value=event.to_wire())
            except Exception:
                log.exception("Event bus publish failed for %s", event.item_id)
        return delivered
