import uuid
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from streamit.modules.videos.models import Sensitivity, Visibility

class VideoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner_id: str | None
    stored_name: str
    original_name: str
    mime_type: str
    size_bytes: int
    duration_sec: int | None
    status: str
    sensitivity: str
    visibility: str
    tenant: str | None
    created_at: datetime
    updated_at: datetime
    version: int

class VideoEnvelope(BaseModel):
    video: VideoOut

class ListMeta(BaseModel):
    count: int
    page: int
    limit: int

class VideoListOut(BaseModel):
    videos: list[VideoOut]
    meta: ListMeta

class VideoPatch(BaseModel):
    sensitivity: Sensitivity | None = None
    status: str | None = Field(default=None, pattern="^(uploaded|processing|done|failed)$")
    visibility: Visibility | None = None

class DeleteOut(BaseModel):
    ok: bool = True
