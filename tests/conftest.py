"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

# Settings are read lazily; configure before anything calls get_settings()
os.environ["PATHWISE_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["PATHWISE_REDIS_URL"] = ""
os.environ["PATHWISE_ADMIN_TOKEN"] = "test-admin-token"
os.environ["PATHWISE_LOG_FORMAT"] = "console"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from pathwise.config import get_settings  # noqa: E402
from pathwise.database import close_db, get_engine, get_session_factory, init_db  # noqa: E402
from pathwise.db.base import Base  # noqa: E402
from pathwise.db.models import AchievementDefinition, Learner  # noqa: E402
from pathwise.gamification.engine import GamificationEngine, close_engine, init_engine  # noqa: E402
from pathwise.gamification.seed import seed_achievements  # noqa: E402

get_settings.cache_clear()

NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)
ADMIN_HEADERS = {"X-Admin-Token": "test-admin-token"}


class FixedClock:
    """Deterministic clock for the engine; tests move it explicitly."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; compare everything as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory schema per test."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield get_session_factory()
    await close_db()


@pytest_asyncio.fixture
async def engine(session_factory, clock) -> AsyncGenerator[GamificationEngine, None]:
    eng = init_engine(session_factory, redis=None, settings=get_settings())
    eng.clock = clock
    yield eng
    close_engine()


@pytest_asyncio.fixture
async def learner(session_factory) -> Learner:
    async with session_factory() as db:
        learner = Learner(display_name="Ada")
        db.add(learner)
        await db.commit()
        return learner


@pytest_asyncio.fixture
async def other_learner(session_factory) -> Learner:
    async with session_factory() as db:
        learner = Learner(display_name="Grace")
        db.add(learner)
        await db.commit()
        return learner


@pytest_asyncio.fixture
async def seeded(session_factory) -> int:
    """Install the default achievement catalog."""
    async with session_factory() as db:
        return await seed_achievements(db)


async def add_definition(session_factory, slug: str, criteria_type: str, threshold: float, points: int,
                         **extra) -> AchievementDefinition:
    """Insert one achievement definition for a focused test."""
    async with session_factory() as db:
        definition = AchievementDefinition(
            slug=slug,
            title=slug.replace("_", " ").title(),
            description=f"Test achievement {slug}",
            category="test",
            rarity="common",
            points=points,
            criteria_type=criteria_type,
            threshold=threshold,
            criteria_params=extra.pop("criteria_params", {}),
            is_hidden=extra.pop("is_hidden", False),
            sort_order=extra.pop("sort_order", 0),
        )
        db.add(definition)
        await db.commit()
        return definition


@pytest_asyncio.fixture
async def client(engine) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client over the app; the database and engine come from fixtures."""
    from pathwise.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def learner_client(client: AsyncClient, learner: Learner) -> AsyncClient:
    """Client acting as ``learner``."""
    client.headers["X-Learner-Id"] = str(learner.id)
    return client
