"""Per-item processing pipeline.

Each accepted upload gets one ``asyncio.Task`` that walks the item through
``uploaded -> processing -> done | failed``:

1. mark processing (progress 5)
2. probe duration, best-effort
3. simulated transform ticks
4. classify sensitivity
5. finalize (progress 100)

Every stage commits its store write before the next begins. Any error ends the
item in ``failed`` with one failure event.

Status writes are guarded by the state the task expects (``uploaded`` for the
first, ``processing`` after that), so the task never moves an item backwards
or writes a second terminal state. The task stops quietly, with no further
event, when the record vanishes, when another writer has moved its status, or
when the item is released through ``release()`` (delete or status patch).
"""
import asyncio
import logging
import uuid
from typing import Iterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from streamit.core.errors import ItemGone, ItemSuperseded, PipelineBusy
from streamit.modules.realtime.broadcaster import Broadcaster, ProgressEvent
from streamit.modules.videos.models import ItemStatus, Sensitivity, Video
from streamit.modules.videos.repository import VideoRepository
from streamit.platform.ports.classifier import ClassifierPort
from streamit.platform.ports.media_probe import MediaProbePort
from streamit.platform.ports.object_storage import ObjectStoragePort

log = logging.getLogger("pipeline")

PROGRESS_STARTED = 5
PROGRESS_DONE = 100
PROGRESS_FAILED = 0


class PipelineRunner:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage: ObjectStoragePort,
        prober: MediaProbePort,
        classifier: ClassifierPort,
        broadcaster: Broadcaster,
        *,
        tick_start: int = 10,
        tick_end: int = 90,
        tick_step: int = 20,
        tick_delay: float = 0.7,
    ):
        self.session_factory = session_factory
        self.storage = storage
        self.prober = prober
        self.classifier = classifier
        self.broadcaster = broadcaster
        self.tick_start = tick_start
        self.tick_end = tick_end
        self.tick_step = tick_step
        self.tick_delay = tick_delay
        self._tasks: dict[uuid.UUID, asyncio.Task] = {}
        # item id -> reason; emits for these items are suppressed
        self._released: dict[uuid.UUID, str] = {}

    # ---- scheduling ----

    def is_active(self, item_id: uuid.UUID) -> bool:
        task = self._tasks.get(item_id)
        return task is not None and not task.done()

    @property
    def active_count(self) -> int:
        return sum(1 for t in self._tasks.values() if not t.done())

    def schedule(self, item_id: uuid.UUID) -> asyncio.Task:
        if self.is_active(item_id):
            raise PipelineBusy(item_id)
        task = asyncio.create_task(self.run(item_id), name=f"pipeline-{item_id}")
        self._tasks[item_id] = task
        task.add_done_callback(lambda t, key=item_id: self._forget(key, t))
        return task

    def _forget(self, item_id: uuid.UUID, task: asyncio.Task) -> None:
        if self._tasks.get(item_id) is task:
            del self._tasks[item_id]
            self._released.pop(item_id, None)

    def release(self, item_id: uuid.UUID, reason: str) -> bool:
        """Stop an active task from emitting anything further for ``item_id``.

        Call before publishing the event that ends the item's stream, so no
        pipeline event can follow it. Returns False when no task is active.
        """
        if not self.is_active(item_id):
            return False
        self._released[item_id] = reason
        log.info("Item %s released from processing (%s)", item_id, reason)
        return True

    async def join(self, item_id: uuid.UUID) -> None:
        task = self._tasks.get(item_id)
        if task is not None:
            await asyncio.wait({task})

    async def drain(self) -> None:
        """Wait for every task scheduled so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ---- stages ----

    def ticks(self) -> Iterator[int]:
        for p in range(self.tick_start, self.tick_end + 1, self.tick_step):
            # keep the emitted sequence strictly between "started" and "done"
            if PROGRESS_STARTED < p < PROGRESS_DONE:
                yield p

    async def run(self, item_id: uuid.UUID) -> None:
        item: Video | None = None
        processing = ItemStatus.processing.value
        try:
            item = await self._write(item_id, ItemStatus.uploaded.value, status=processing)
            await self._emit(item, processing, PROGRESS_STARTED)

            item = await self._probe(item)

            for p in self.ticks():
                await asyncio.sleep(self.tick_delay)
                item = await self._current(item_id, processing)
                await self._emit(item, processing, p)

            sensitivity = await self.classifier.classify(item)
            if sensitivity not in (Sensitivity.safe.value, Sensitivity.flagged.value):
                raise ValueError(f"classifier returned unsupported label {sensitivity!r}")

            item = await self._write(item_id, processing, status=ItemStatus.done.value, sensitivity=sensitivity)
            await self._emit(item, ItemStatus.done.value, PROGRESS_DONE, sensitivity=sensitivity)
            log.info("Item %s processed: sensitivity=%s duration=%s", item_id, sensitivity, item.duration_sec)
        except ItemGone:
            log.info("Item %s removed during processing; stopping", item_id)
        except ItemSuperseded as e:
            log.info("Item %s left processing (%s); stopping", item_id, e.status or "released")
        except asyncio.CancelledError:
            log.warning("Processing of %s cancelled", item_id)
            raise
        except Exception:
            log.exception("processing error for %s", item_id)
            await self._fail(item_id, item)

    async def _probe(self, item: Video) -> Video:
        try:
            source = self.storage.probe_source(item.stored_name)
            duration = await self.prober.duration_seconds(source)
        except Exception as e:
            log.warning("Probe failed for %s, continuing without duration: %s", item.id, e)
            return item
        if duration is None:
            return item
        return await self._write(item.id, ItemStatus.processing.value, duration_sec=int(duration))

    async def _fail(self, item_id: uuid.UUID, last_known: Video | None) -> None:
        try:
            item = await self._write(
                item_id,
                (ItemStatus.uploaded.value, ItemStatus.processing.value),
                status=ItemStatus.failed.value,
                sensitivity=Sensitivity.unknown.value,
            )
        except ItemGone:
            log.info("Item %s removed before failure could be recorded", item_id)
            return
        except ItemSuperseded as e:
            log.info("Item %s already left processing (%s); failure not recorded", item_id, e.status or "released")
            return
        except Exception:
            log.exception("Could not persist failure for %s", item_id)
            if last_known is None:
                return
            item = last_known
        try:
            await self._emit(item, ItemStatus.failed.value, PROGRESS_FAILED)
        except ItemSuperseded:
            log.info("Item %s released; failure event suppressed", item_id)

    async def _write(self, item_id: uuid.UUID, expected_status: str | tuple[str, ...], **fields) -> Video:
        """Update fields while the item is still in ``expected_status``."""
        async with self.session_factory() as session:
            repo = VideoRepository(session)
            updated = await repo.update_fields(item_id, expected_status=expected_status, **fields)
            await session.commit()
            item = await repo.get(item_id)
        if item is None:
            raise ItemGone(item_id)
        if not updated:
            raise ItemSuperseded(item_id, item.status)
        return item

    async def _current(self, item_id: uuid.UUID, expected_status: str) -> Video:
        async with self.session_factory() as session:
            item = await VideoRepository(session).get(item_id)
        if item is None:
            raise ItemGone(item_id)
        if item.status != expected_status:
            raise ItemSuperseded(item_id, item.status)
        return item

    async def _emit(self, item: Video, status: str, progress: int, sensitivity: str | None = None) -> None:
        # no await between this check and delivery to subscriber queues
        if item.id in self._released:
            raise ItemSuperseded(item.id, self._released[item.id])
        await self.broadcaster.publish(ProgressEvent.for_item(item, status, progress=progress, sensitivity=sensitivity))


async def fail_orphaned_items(session_factory: async_sessionmaker[AsyncSession], broadcaster: Broadcaster) -> int:
    """Mark items whose task died with a previous process as failed."""
    async with session_factory() as session:
        repo = VideoRepository(session)
        orphans = []
        for item in await repo.list_unfinished():
            if await repo.update_fields(
                item.id,
                expected_status=(ItemStatus.uploaded.value, ItemStatus.processing.value),
                status=ItemStatus.failed.value,
                sensitivity=Sensitivity.unknown.value,
            ):
                orphans.append(item)
        await session.commit()
    for item in orphans:
        await broadcaster.publish(ProgressEvent.for_item(item, ItemStatus.failed.value, progress=PROGRESS_FAILED))
    if orphans:
        log.warning("Marked %d orphaned item(s) as failed", len(orphans))
    return len(orphans)
