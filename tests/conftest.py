"""Pytest configuration and fixtures."""

import os
import shutil
import tempfile
from typing import AsyncGenerator

# Settings are read at import time, so point them at throwaway locations first.
_TMP = tempfile.mkdtemp(prefix="streamit-tests-")
os.environ.update({
    "ENV": "test",
    "DATABASE_DSN": f"sqlite+aiosqlite:///{_TMP}/test.db",
    "DB_MANAGE": "create_all",
    "LOCAL_STORAGE_ROOT": os.path.join(_TMP, "uploads"),
    "OBJECT_STORAGE_PROVIDER": "local",
    "EVENT_BUS_PROVIDER": "noop",
    "JWT_SECRET": "test-secret-key-for-testing-only",
    "PIPELINE_TICK_DELAY_SECONDS": "0",
    "PIPELINE_SWEEP_ON_STARTUP": "false",
})

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from streamit.core.base import Base
from streamit.core.config import settings
from streamit.core.db import engine
from streamit.core.security import Principal, issue_token
from streamit.main import app
from streamit.modules.videos import models  # noqa: F401  register tables
from streamit.platform.provider_registry import ProviderRegistry

from doubles import FixedClassifier, StaticProbe


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(_TMP, ignore_errors=True)


@pytest_asyncio.fixture(autouse=True)
async def fresh_state() -> AsyncGenerator[None, None]:
    """Empty database, empty storage and deterministic providers for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    shutil.rmtree(settings.LOCAL_STORAGE_ROOT, ignore_errors=True)

    ProviderRegistry.reset()
    ProviderRegistry._prober = StaticProbe(None)
    ProviderRegistry._classifier = FixedClassifier("safe")

    yield

    if ProviderRegistry._pipeline is not None:
        await ProviderRegistry._pipeline.drain()
    ProviderRegistry.reset()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth():
    """Build Authorization headers for a principal."""
    def _auth(user_id: str, role: str = "uploader", tenant: str | None = None) -> dict:
        token = issue_token(Principal(id=user_id, role=role, tenant=tenant))
        return {"Authorization": f"Bearer {token}"}
    return _auth


@pytest.fixture
def upload(client):
    """POST a video and return the response."""
    async def _upload(data: bytes = b"\x00" * 1024, filename: str = "clip.mp4", mime: str = "video/mp4",
                      headers: dict | None = None, **form):
        return await client.post(
            "/api/videos",
            files={"file": (filename, data, mime)},
            data={k: v for k, v in form.items() if v is not None},
            headers=headers or {},
        )
    return _upload


@pytest.fixture
def storage_root() -> str:
    return settings.LOCAL_STORAGE_ROOT
