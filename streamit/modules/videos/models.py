import enum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, BigInteger, Index
from streamit.core.base import Base, TimestampedMixin

class ItemStatus(str, enum.Enum):
    uploaded = "uploaded"
    processing = "processing"
    done = "done"
    failed = "failed"
    deleted = "deleted"

class Sensitivity(str, enum.Enum):
    unknown = "unknown"
    safe = "safe"
    flagged = "flagged"

class Visibility(str, enum.Enum):
    public = "public"
    private = "private"

# Forward-only transitions; "deleted" is a side removal and never stored.
TRANSITIONS: dict[str, set[str]] = {
    ItemStatus.uploaded.value: {ItemStatus.processing.value, ItemStatus.failed.value},
    ItemStatus.processing.value: {ItemStatus.done.value, ItemStatus.failed.value},
    ItemStatus.done.value: set(),
    ItemStatus.failed.value: set(),
}

class Video(Base, TimestampedMixin):
    owner_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    # Storage key relative to the object storage provider; never reused.
    stored_name: Mapped[str] = mapped_column(String(255), unique=True)
    original_name: Mapped[str] = mapped_column(String(512))
    mime_type: Mapped[str] = mapped_column(String(128))
    size_bytes: Mapped[int] = mapped_column(BigInteger)
    duration_sec: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default=ItemStatus.uploaded.value)  # uploaded, processing, done, failed
    sensitivity: Mapped[str] = mapped_column(String(16), default=Sensitivity.unknown.value)  # unknown, safe, flagged
    visibility: Mapped[str] = mapped_column(String(16), default=Visibility.public.value)  # public, private
    tenant: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        Index("ix_video_owner_created", "owner_id", "created_at"),
        Index("ix_video_status", "status"),
    )
