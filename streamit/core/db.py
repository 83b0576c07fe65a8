from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool
from .config import settings
from .base import Base

def _engine_kwargs(dsn: str) -> dict:
    # aiosqlite connections are bound to the loop that opened them
    if dsn.startswith("sqlite"):
        return {"poolclass": NullPool}
    return {"pool_pre_ping": True}

engine = create_async_engine(settings.DATABASE_DSN, **_engine_kwargs(settings.DATABASE_DSN))
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def get_session():
    async with SessionLocal() as session:
        yield session

async def init_models():
    # In dev-only "create_all" mode the app owns the schema; otherwise migrations do.
    if settings.DB_MANAGE == "create_all":
        import streamit.modules.videos.models  # noqa: F401  register tables
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
