from __future__ import annotations
import os
import tempfile
import uuid

# Point the app at a throwaway SQLite file before anything imports skatebounty.db
_DB_DIR = tempfile.mkdtemp(prefix="skatebounty-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}")
os.environ.setdefault("REALTIME_BACKEND", "memory")

import httpx
import pytest
import pytest_asyncio

from skatebounty.db import Base, engine, SessionLocal
import skatebounty.models.profile  # noqa: F401  register tables
import skatebounty.models.spot  # noqa: F401
import skatebounty.models.bounty  # noqa: F401
import skatebounty.models.submission  # noqa: F401
import skatebounty.models.review  # noqa: F401
from skatebounty.config import settings
from skatebounty.identity import Identity
from skatebounty.main import app
from skatebounty.security import make_access_token
from skatebounty.services.instagram import get_timestamp_lookup


@pytest_asyncio.fixture(autouse=True)
async def fresh_db():
    # Dispose pooled connections between tests so nothing leaks across event loops
    await engine.dispose()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    app.dependency_overrides.clear()
    await engine.dispose()


@pytest.fixture(autouse=True)
def policy(monkeypatch):
    """Known verification policy for every test; individual tests flip what they need."""
    monkeypatch.setattr(settings, "require_acceptance_before_submission", True)
    monkeypatch.setattr(settings, "submission_timestamp_mode", "best_effort")
    monkeypatch.setattr(settings, "allow_free_text_rewards", True)
    monkeypatch.setattr(settings, "verified_vote_threshold", 3)
    monkeypatch.setattr(settings, "realtime_tables", ["bounties"])
    return settings


@pytest_asyncio.fixture
async def session():
    async with SessionLocal() as s:
        yield s


@pytest_asyncio.fixture
async def ac():
    # No network: timestamp lookups find nothing unless a test overrides this
    async def no_lookup(permalink):
        return None

    app.dependency_overrides[get_timestamp_lookup] = lambda: no_lookup
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client


def new_user() -> tuple[Identity, dict[str, str]]:
    """A fresh signed-in user: (identity, auth headers)."""
    uid = uuid.uuid4()
    token = make_access_token(str(uid))
    return Identity(user_id=uid), {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user():
    return new_user()


@pytest.fixture
def other():
    return new_user()


@pytest.fixture
def make_user():
    return new_user
