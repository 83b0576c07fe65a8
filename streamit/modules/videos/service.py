import asyncio
import logging
import os
import secrets
import time
import uuid
from dataclasses import dataclass
from typing import Iterator, Sequence

from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from streamit.core.config import settings
from streamit.core.errors import InternalFailure, InvalidMedia, InvalidTransition, NotFound, PayloadTooLarge
from streamit.core.security import Principal
from streamit.modules.realtime.broadcaster import ProgressEvent
from streamit.modules.videos import access
from streamit.modules.videos.models import ItemStatus, Sensitivity, TRANSITIONS, Video, Visibility
from streamit.modules.videos.repository import VideoRepository
from streamit.modules.videos.schemas import VideoPatch
from streamit.modules.videos.streaming import ByteRange, parse_range
from streamit.platform.provider_registry import registry

log = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200

def clamp_paging(limit: int, page: int) -> tuple[int, int]:
    return max(0, min(MAX_PAGE_SIZE, limit)), max(0, page)

def _normalize_visibility(value: str | None) -> str:
    if value in (Visibility.public.value, Visibility.private.value):
        return value
    return Visibility.public.value

def _file_size(file: UploadFile) -> int:
    f = file.file
    f.seek(0, os.SEEK_END)
    size = f.tell()
    f.seek(0)
    return size

@dataclass
class StreamPlan:
    item: Video
    total: int
    byte_range: ByteRange | None
    body: Iterator[bytes]

    @property
    def length(self) -> int:
        return self.byte_range.length if self.byte_range else self.total

class VideoService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = VideoRepository(session)

    # ---- intake ----

    async def upload(self, principal: Principal | None, file: UploadFile, *, visibility: str | None = None, tenant: str | None = None) -> Video:
        access.require_upload(principal)

        original_name = file.filename or ""
        ext = os.path.splitext(original_name)[1].lower()
        mime = file.content_type or ""
        allowed = settings.UPLOAD_ALLOWED_EXTENSIONS
        if not mime.startswith("video/") or ext not in allowed:
            raise InvalidMedia("invalid file type. allowed: " + ", ".join(allowed))

        size = file.size if file.size is not None else _file_size(file)
        if size > settings.UPLOAD_MAX_BYTES:
            raise PayloadTooLarge(f"file too large (>{settings.UPLOAD_MAX_BYTES} bytes)")

        storage = registry.object_storage()
        key = await self._new_stored_name(ext)
        try:
            size = await asyncio.to_thread(storage.put_fileobj, key, file.file, mime)
            if size > settings.UPLOAD_MAX_BYTES:
                raise PayloadTooLarge(f"file too large (>{settings.UPLOAD_MAX_BYTES} bytes)")
            obj = await self.repo.create(
                owner_id=principal.id if principal else None,
                stored_name=key,
                original_name=original_name,
                mime_type=mime,
                size_bytes=size,
                status=ItemStatus.uploaded.value,
                sensitivity=Sensitivity.unknown.value,
                visibility=_normalize_visibility(visibility),
                tenant=(principal.tenant if principal and principal.tenant else None) or (tenant or None),
            )
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            await asyncio.to_thread(storage.delete, key)
            raise

        log.info("Accepted upload %s as %s (%d bytes)", obj.id, key, size)
        await registry.broadcaster().publish(ProgressEvent.for_item(obj, ItemStatus.uploaded.value, progress=0))
        registry.pipeline().schedule(obj.id)
        return obj

    async def _new_stored_name(self, ext: str) -> str:
        storage = registry.object_storage()
        for _ in range(5):
            key = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}{ext}"
            if not await asyncio.to_thread(storage.exists, key) and not await self.repo.stored_name_taken(key):
                return key
        raise InternalFailure("could not allocate a storage key")

    # ---- queries ----

    async def list(self, principal: Principal | None, *, status: str | None = None, sensitivity: str | None = None,
                   q: str | None = None, user: str | None = None, limit: int = 50, page: int = 0) -> tuple[Sequence[Video], int, int]:
        limit, page = clamp_paging(limit, page)
        if limit == 0:
            return [], page, limit
        items = await self.repo.list(principal, status=status, sensitivity=sensitivity, q=q, owner_id=user, limit=limit, offset=page * limit)
        return items, page, limit

    async def get(self, principal: Principal | None, video_id: uuid.UUID) -> Video:
        obj = await self.repo.get(video_id)
        if not obj:
            raise NotFound()
        access.require_view(obj, principal)
        return obj

    # ---- mutations ----

    async def patch(self, principal: Principal | None, video_id: uuid.UUID, payload: VideoPatch) -> Video:
        access.require_patch(principal)
        obj = await self.get(principal, video_id)

        fields: dict = {}
        new_status = obj.status
        if payload.status is not None and payload.status != obj.status:
            if payload.status not in TRANSITIONS.get(obj.status, set()):
                raise InvalidTransition(f"cannot move from {obj.status} to {payload.status}")
            new_status = fields["status"] = payload.status
        if payload.sensitivity is not None and payload.sensitivity.value != obj.sensitivity:
            if payload.sensitivity != Sensitivity.unknown and new_status != ItemStatus.done.value:
                raise InvalidTransition("sensitivity can only be set on items that are done")
            fields["sensitivity"] = payload.sensitivity.value
        if payload.visibility is not None and payload.visibility.value != obj.visibility:
            fields["visibility"] = payload.visibility.value

        if fields:
            # status rules were checked against obj.status; only write while it still holds
            guarded = "status" in fields or "sensitivity" in fields
            seen_status = obj.status
            updated = await self.repo.update_fields(obj.id, expected_status=seen_status if guarded else None, **fields)
            await self.session.commit()
            if not updated:
                current = await self.repo.get(obj.id)
                if current is None:
                    raise NotFound()
                await self.session.refresh(current)
                raise InvalidTransition(f"item moved from {seen_status} to {current.status}; retry")
            await self.session.refresh(obj)
            log.info("Item %s patched by %s: %s", obj.id, principal.id, fields)
            if "status" in fields:
                registry.pipeline().release(obj.id, f"status set to {obj.status}")

        progress = 100 if obj.status == ItemStatus.done.value else None
        await registry.broadcaster().publish(
            ProgressEvent.for_item(obj, obj.status, progress=progress, sensitivity=obj.sensitivity)
        )
        return obj

    async def delete(self, principal: Principal | None, video_id: uuid.UUID) -> None:
        obj = await self.repo.get(video_id)
        if not obj:
            raise NotFound()
        access.require_mutate(obj, principal)

        storage = registry.object_storage()
        try:
            await asyncio.to_thread(storage.delete, obj.stored_name)
        except OSError:
            log.warning("Removing bytes for %s failed", obj.stored_name, exc_info=True)
        await self.repo.delete(obj.id)
        await self.session.commit()
        log.info("Item %s deleted by %s", obj.id, principal.id)
        registry.pipeline().release(obj.id, "deleted")
        await registry.broadcaster().publish(ProgressEvent.for_item(obj, ItemStatus.deleted.value))

    # ---- streaming ----

    async def open_stream(self, principal: Principal | None, stored_name: str, range_header: str | None) -> StreamPlan:
        obj = await self.repo.get_by_stored_name(stored_name)
        if not obj:
            raise NotFound()
        access.require_view(obj, principal)

        storage = registry.object_storage()
        total = await asyncio.to_thread(storage.size, stored_name)
        if total is None:
            raise NotFound()
        byte_range = parse_range(range_header, total)
        if byte_range is None and total == 0:
            return StreamPlan(obj, total, None, iter(()))
        start, end = (byte_range.start, byte_range.end) if byte_range else (0, total - 1)
        try:
            body = await asyncio.to_thread(storage.iter_range, stored_name, start, end, settings.STREAM_CHUNK_BYTES)
        except FileNotFoundError:
            raise NotFound()
        return StreamPlan(obj, total, byte_range, body)
