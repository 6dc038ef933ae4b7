import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Must be set before libs.common.config is first imported
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest-coins.db")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")

from libs.auth.dependencies import get_current_user  # noqa: E402
from libs.common.config import get_settings  # noqa: E402
from libs.common.rate_limit import limiter  # noqa: E402
from libs.db.base import Base  # noqa: E402
from libs.db.session import get_async_db, get_session_factory  # noqa: E402
from services.coins_service import models as _coins_models  # noqa: E402,F401
from services.coins_service.app.main import create_app  # noqa: E402
from services.coins_service.services.activity_log import ActivityLogger  # noqa: E402
from tests.factories import FakeClock, make_admin_user  # noqa: E402

get_settings.cache_clear()
settings = get_settings()


@pytest.fixture(autouse=True)
def _disable_rate_limits():
    """Rate limiting is opted into by the tests that exercise it."""
    limiter.enabled = False
    limiter.reset()
    yield
    limiter.enabled = False
    limiter.reset()


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    A fresh SQLite file database per test.

    A file (not :memory:) lets several connections see the same data, which
    the concurrency tests need.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'coins.db'}",
        future=True,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def activity_logger(session_factory) -> ActivityLogger:
    return ActivityLogger(session_factory)


@pytest.fixture
def analytics_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def admin_user():
    return make_admin_user()


@pytest.fixture
def app(session_factory, analytics_clock, admin_user):
    """
    A Coins Service app wired to the per-test database.

    Each request gets its own session, as in production. Requests run as
    ``admin_user`` unless a test switches identity with ``override_auth``.
    """
    application = create_app(analytics_clock=analytics_clock)

    async def _get_test_db():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_async_db] = _get_test_db
    application.dependency_overrides[get_session_factory] = lambda: session_factory
    application.dependency_overrides[get_current_user] = lambda: admin_user

    yield application

    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
