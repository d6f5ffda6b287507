# tests/conftest.py
import uuid
from datetime import time

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from committee_events.core.config import get_settings
from committee_events.db.session import build_engine, build_session_factory, reset_db
from committee_events.models.series import Series
from committee_events.schemas.series import SeriesRead


def _series_fields(**overrides) -> dict:
    """
    Defaults describe the reference scenario: first Monday of the month at
    19:00 New York time, one hour long, approved.
    """
    fields = {
        "id": str(uuid.uuid4()),
        "name": "District 12 Business Meeting",
        "type": "Committee Meeting",
        "committee": "District 12",
        "committee_slug": "district-12",
        "timezone": "America/New_York",
        "start_time_local": time(19, 0),
        "duration_minutes": 60,
        "rrule": {
            "frequency": "monthly",
            "interval": 1,
            "weekdays": ["MO"],
            "set_positions": [1],
        },
        "exception_dates": [],
        "city": "Springfield",
        "status": "approved",
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def make_series():
    """
    Build a validated SeriesRead without touching the database.
    """

    def _make(**overrides) -> SeriesRead:
        return SeriesRead.model_validate(_series_fields(**overrides))

    return _make


@pytest_asyncio.fixture
async def engine(tmp_path):
    """
    Fresh SQLite database per test.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await reset_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def add_series(db):
    """
    Persist a Series row directly, bypassing API validation so tests can
    store deliberately broken definitions too.
    """

    async def _add(**overrides) -> Series:
        series = Series(**_series_fields(**overrides))
        db.add(series)
        await db.commit()
        await db.refresh(series)
        return series

    return _add


@pytest.fixture
def client(tmp_path, monkeypatch):
    """
    TestClient running the real application factory against a temporary
    SQLite database.
    """
    monkeypatch.setenv("DB_URL", f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("MATERIALIZE_MAX_CONCURRENCY", "1")
    monkeypatch.delenv("INTERNAL_API_KEY", raising=False)
    get_settings.cache_clear()

    from committee_events.main import create_app

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    get_settings.cache_clear()
