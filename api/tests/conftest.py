"""Shared test fixtures.

Each test gets its own in-memory SQLite database. The app's get_db dependency
and the modules that open sessions themselves are pointed at it.
"""

import os

os.environ.setdefault("PB_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import date, time, timedelta  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.database import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Base, ClubSettingsRow, Court, OpeningHours, Profile, ProfileRole  # noqa: E402
from app.services.settings_service import ClubConfig  # noqa: E402

OPEN = time(8, 0)
CLOSE = time(22, 0)


def upcoming(weekday: int = 2, weeks_ahead: int = 2) -> date:
    """A date a couple of weeks out on the given Monday-based weekday (default Wednesday)."""
    today = date.today()
    monday = today - timedelta(days=today.weekday())
    return monday + timedelta(weeks=weeks_ahead, days=weekday)


@pytest.fixture
async def session_factory(monkeypatch):
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr("app.routes.webhooks.async_session_factory", factory)
    monkeypatch.setattr("app.worker.async_session_factory", factory)
    yield factory
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def club(session_factory):
    """Two courts, open 08:00-22:00 every day, 90-minute games, 2h payment timeout."""
    async with session_factory() as db:
        double = Court(name="Terrain 1", capacity=4, price=2000)
        simple = Court(name="Terrain Simple", capacity=2, price=1500)
        db.add_all([double, simple])
        for dow in range(7):
            db.add(OpeningHours(day_of_week=dow, open_time=OPEN, close_time=CLOSE))
        db.add(
            ClubSettingsRow(
                id=1,
                game_duration_minutes=90,
                payment_timeout_hours=2,
                cancellation_hours=24,
                max_bookings_per_user=3,
            )
        )

        organizer = Profile(username="orga", first_name="Alice", last_name="Martin", email="alice@example.com")
        players = [
            Profile(username=f"player{i}", first_name=f"Player{i}", last_name="Test", email=f"p{i}@example.com")
            for i in range(1, 5)
        ]
        admin = Profile(
            username="admin", first_name="Club", last_name="Admin", email="admin@example.com", role=ProfileRole.ADMIN
        )
        db.add_all([organizer, *players, admin])
        await db.commit()

        return SimpleNamespace(
            double=double,
            simple=simple,
            organizer=organizer,
            players=players,
            admin=admin,
            day=upcoming(),
        )


@pytest.fixture
def config():
    return ClubConfig(game_duration_minutes=90, payment_timeout_hours=2, cancellation_hours=24, max_bookings_per_user=3)
