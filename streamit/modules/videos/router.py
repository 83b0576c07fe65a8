import uuid
from fastapi import APIRouter, Depends, File, Form, Header, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from streamit.core.db import get_session
from streamit.core.security import get_principal, Principal
from streamit.modules.videos.models import ItemStatus, Sensitivity
from streamit.modules.videos.schemas import DeleteOut, ListMeta, VideoEnvelope, VideoListOut, VideoOut, VideoPatch
from streamit.modules.videos.service import VideoService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> VideoService:
    return VideoService(session)

def _envelope(obj) -> VideoEnvelope:
    return VideoEnvelope(video=VideoOut.model_validate(obj))

@router.post("", response_model=VideoEnvelope)
async def upload_video(
    file: UploadFile = File(...),
    visibility: str | None = Form(None),
    tenant: str | None = Form(None),
    principal: Principal | None = Depends(get_principal),
    service: VideoService = Depends(svc),
):
    obj = await service.upload(principal, file, visibility=visibility, tenant=tenant)
    return _envelope(obj)

@router.get("", response_model=VideoListOut)
async def list_videos(
    status: ItemStatus | None = None,
    sensitivity: Sensitivity | None = None,
    q: str | None = None,
    user: str | None = None,
    limit: int = 50,
    page: int = 0,
    principal: Principal | None = Depends(get_principal),
    service: VideoService = Depends(svc),
):
    items, page, limit = await service.list(
        principal,
        status=status.value if status else None,
        sensitivity=sensitivity.value if sensitivity else None,
        q=q, user=user, limit=limit, page=page,
    )
    return VideoListOut(
        videos=[VideoOut.model_validate(v) for v in items],
        meta=ListMeta(count=len(items), page=page, limit=limit),
    )

@router.get("/stream/{stored_name}")
async def stream_video(
    stored_name: str,
    range_header: str | None = Header(None, alias="Range"),
    principal: Principal | None = Depends(get_principal),
    service: VideoService = Depends(svc),
):
    plan = await service.open_stream(principal, stored_name, range_header)
    headers = {"Accept-Ranges": "bytes", "Content-Length": str(plan.length)}
    if plan.byte_range is not None:
        headers["Content-Range"] = plan.byte_range.content_range
    return StreamingResponse(
        plan.body,
        status_code=206 if plan.byte_range is not None else 200,
        media_type=plan.item.mime_type,
        headers=headers,
    )

@router.get("/{video_id}", response_model=VideoEnvelope)
async def get_video(
    video_id: uuid.UUID,
    principal: Principal | None = Depends(get_principal),
    service: VideoService = Depends(svc),
):
    return _envelope(await service.get(principal, video_id))

@router.patch("/{video_id}", response_model=VideoEnvelope)
async def patch_video(
    video_id: uuid.UUID,
    payload: VideoPatch,
    principal: Principal | None = Depends(get_principal),
    service: VideoService = Depends(svc),
):
    return _envelope(await service.patch(principal, video_id, payload))

@router.delete("/{video_id}", response_model=DeleteOut)
async def delete_video(
    video_id: uuid.UUID,
    principal: Principal | None = Depends(get_principal),
    service: VideoService = Depends(svc),
):
    await service.delete(principal, video_id)
    return DeleteOut(ok=True)
