import json
import uuid
from typing import AsyncIterator
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from streamit.core.config import settings
from streamit.core.db import get_session
from streamit.core.security import get_principal, Principal
from streamit.modules.realtime.broadcaster import Subscription
from streamit.modules.videos.service import VideoService
from streamit.platform.provider_registry import registry

router = APIRouter()

def format_sse(payload: dict, event: str = "processing") -> str:
    return f"event: {event}\ndata: {json.dumps(payload, separators=(',', ':'))}\n\n"

async def sse_frames(sub: Subscription, keepalive: float) -> AsyncIterator[str]:
    while True:
        ev = await sub.get(timeout=keepalive)
        if ev is None:
            yield ": keepalive\n\n"
            continue
        yield format_sse(ev.to_wire())

@router.get("/events")
async def video_events(
    item_id: uuid.UUID | None = None,
    principal: Principal | None = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    if item_id is not None:
        # policy applies at subscribe time for single-item streams
        await VideoService(session).get(principal, item_id)
    await session.close()

    broadcaster = registry.broadcaster()

    async def event_stream():
        async with broadcaster.subscribe(principal, str(item_id) if item_id else None) as sub:
            async for frame in sse_frames(sub, settings.EVENTS_KEEPALIVE_SECONDS):
                yield frame

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
