import uuid
from typing import Iterable, Sequence
from sqlalchemy import select, update, delete, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession
from streamit.core.base import utcnow
from streamit.core.security import Principal
from streamit.modules.videos.models import Video, Visibility

def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

class VideoRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> Video:
        obj = Video(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, video_id: uuid.UUID) -> Video | None:
        res = await self.session.execute(select(Video).where(Video.id == video_id))
        return res.scalar_one_or_none()

    async def get_by_stored_name(self, stored_name: str) -> Video | None:
        res = await self.session.execute(select(Video).where(Video.stored_name == stored_name))
        return res.scalar_one_or_none()

    async def stored_name_taken(self, stored_name: str) -> bool:
        res = await self.session.execute(select(Video.id).where(Video.stored_name == stored_name))
        return res.first() is not None

    async def list(self, principal: Principal | None, *, status: str | None = None, sensitivity: str | None = None,
                   q: str | None = None, owner_id: str | None = None, limit: int = 50, offset: int = 0) -> Sequence[Video]:
        conditions = []
        if status:      conditions.append(Video.status == status)
        if sensitivity: conditions.append(Video.sensitivity == sensitivity)
        if owner_id:    conditions.append(Video.owner_id == owner_id)
        if q:           conditions.append(Video.original_name.ilike(f"%{_escape_like(q)}%", escape="\\"))
        conditions.extend(self._visibility_conditions(principal))
        stmt = select(Video).where(and_(*conditions)).order_by(Video.created_at.desc(), Video.id).limit(limit).offset(offset)
        res = await self.session.execute(stmt)
        return res.scalars().all()

    @staticmethod
    def _visibility_conditions(principal: Principal | None) -> list:
        # Server-side mirror of access.visible_to
        if principal is None:
            return [Video.visibility == Visibility.public.value, Video.tenant.is_(None)]
        if principal.is_admin:
            return []
        tenant_ok = Video.tenant.is_(None) if principal.tenant is None else or_(Video.tenant.is_(None), Video.tenant == principal.tenant)
        return [or_(Video.visibility == Visibility.public.value, Video.owner_id == principal.id), tenant_ok]

    async def update_fields(self, video_id: uuid.UUID, *, expected_status: Iterable[str] | str | None = None, **data) -> bool:
        """Field-scoped atomic update.

        With ``expected_status`` the row is only touched while its status is one
        of those values. Returns False when nothing matched (record gone, or its
        status moved on).
        """
        conditions = [Video.id == video_id]
        if expected_status is not None:
            allowed = [expected_status] if isinstance(expected_status, str) else list(expected_status)
            conditions.append(Video.status.in_(allowed))
        stmt = (
            update(Video)
            .where(*conditions)
            .values(**data, updated_at=utcnow(), version=Video.version + 1)
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(stmt)
        return res.rowcount > 0

    async def delete(self, video_id: uuid.UUID) -> bool:
        res = await self.session.execute(delete(Video).where(Video.id == video_id))
        return res.rowcount > 0

    async def list_unfinished(self) -> Sequence[Video]:
        res = await self.session.execute(select(Video).where(Video.status.in_(("uploaded", "processing"))))
        return res.scalars().all()
