import sys
from pathlib import Path

# Ensure the project's src directory is on sys.path for tests
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from tokenflow.domain.tokens import utc_now
from tokenflow.infrastructure.cache.redis_client import InMemoryCache
from tokenflow.infrastructure.db.models import Base
from tokenflow.infrastructure.email.mock import MockNotificationSender
from tokenflow.infrastructure.repositories.token_store import CacheTokenStore


class FakeClock:
    """Callable clock the workflows read ``now`` from; tests move it forward."""

    def __init__(self, start=None):
        self.now = start or utc_now().replace(microsecond=0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache():
    return InMemoryCache()


@pytest.fixture
def store(cache):
    return CacheTokenStore(cache, retention_grace_seconds=86400)


@pytest.fixture
def sender():
    return MockNotificationSender()


# Per-test temporary database URL (function-scoped)
@pytest.fixture
def database_url(tmp_path):
    """Return a sqlite+aiosqlite URL backed by a per-test file in pytest's tmp_path."""
    db_file = tmp_path / "test.db"
    # Use POSIX path so SQLAlchemy parses correctly on Windows
    return f"sqlite+aiosqlite:///{db_file.as_posix()}"


@pytest.fixture
async def session_factory(database_url):
    engine = create_async_engine(database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    AsyncSessionLocal = sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    yield AsyncSessionLocal
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def test_app(database_url, session_factory, cache, sender):
    """FastAPI app wired to the per-test database, cache and recording sender.

    Yields (app, AsyncSessionLocal).
    """
    from tokenflow.config import Settings
    from tokenflow.deps import get_db
    from tokenflow.wiring import create_app

    settings = Settings(
        database_url=database_url,
        anti_enumeration_min_seconds=0,
        admin_emails="admin@example.com,ops@example.com",
        frontend_url="http://frontend.test",
        approval_base_url="http://api.test/api/v1/registrations/approval",
    )
    app = create_app(settings)
    app.state.cache_client = cache
    app.state.notification_sender = sender

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    yield app, session_factory
    app.dependency_overrides.clear()
