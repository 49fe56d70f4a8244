"""Shared fixtures: a throwaway SQLite booking store seeded with one user and two speakers."""
from datetime import datetime, timezone

import httpx
import pytest

from config import Settings
from database import build_engine, build_sessionmaker, init_db
from main import create_app
from models import User
from tokens import issue_token

USER_EMAIL = "user@example.com"
OTHER_USER_EMAIL = "other@example.com"
SPEAKER_EMAIL = "speaker@example.com"
IDLE_SPEAKER_EMAIL = "idle.speaker@example.com"

# Monday 12:30 UTC; the 09:00-12:00 slots of this day are already in the past
NOW = datetime(2030, 1, 7, 12, 30, tzinfo=timezone.utc)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}",
        jwt_secret="test-secret-key-that-is-long-enough-for-hs256",
        schedule_timezone="UTC",
        log_level="DEBUG",
    )


@pytest.fixture
async def engine(settings):
    engine = build_engine(settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def seeded(sessionmaker):
    async with sessionmaker() as session:
        session.add_all(
            [
                User(email=USER_EMAIL, user_type="user"),
                User(email=OTHER_USER_EMAIL, user_type="user"),
                User(
                    email=SPEAKER_EMAIL,
                    user_type="speaker",
                    expertise="Python, FastAPI",
                    price_per_session=100.0,
                ),
                User(email=IDLE_SPEAKER_EMAIL, user_type="speaker"),
            ]
        )
        await session.commit()


@pytest.fixture
async def session(sessionmaker, seeded):
    async with sessionmaker() as session:
        yield session


@pytest.fixture
async def app(settings, seeded):
    app = create_app(settings)
    # ASGITransport does not fire startup events
    await init_db(app.state.engine)
    yield app
    await app.state.engine.dispose()


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def user_token(settings) -> str:
    return issue_token(settings, USER_EMAIL, "user")


@pytest.fixture
def speaker_token(settings) -> str:
    return issue_token(settings, SPEAKER_EMAIL, "speaker")
