"""
Shared fixtures: an in-memory SQLite database, seeded tournaments, the
in-memory participant repository and an HTTP client over the ASGI app.
"""
import random

import httpx
import pytest

from tabroom.config.settings import Settings
from tabroom.database import (
    close_db, create_engine_from_settings, create_session_factory, init_db
)
from tabroom.main import create_app
from tabroom.repositories.participant_repository import SqlAlchemyParticipantRepository
from tabroom.tests.factories import seed_tournament
from tabroom.tests.fakes import FakeParticipantRepository


@pytest.fixture
def settings():
    return Settings(database_url="sqlite+aiosqlite://")


@pytest.fixture
async def engine(settings):
    engine = create_engine_from_settings(settings)
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def tournament(db):
    """Four teams of four debaters and two adjudicators."""
    return await seed_tournament(db, team_count=4, members_per_team=4, judge_count=2)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def fake_repository():
    return FakeParticipantRepository()


@pytest.fixture
def participant_repository(session_factory):
    return SqlAlchemyParticipantRepository(session_factory)


@pytest.fixture
async def client(settings, engine, session_factory, participant_repository):
    """
    httpx client bound to the app. ASGITransport does not run the lifespan,
    so the state it would build is attached here from the test database.
    """
    app = create_app(settings)
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.participant_repository = participant_repository

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
