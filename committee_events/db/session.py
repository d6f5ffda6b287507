# committee_events/db/session.py
from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from committee_events.db.base import Base

# Import ORM models so that Base.metadata is aware of them.
from committee_events.models.series import Series  # noqa: E402,F401
from committee_events.models.occurrence import Occurrence  # noqa: E402,F401


def build_engine(db_url: str) -> AsyncEngine:
    """
    Create an async engine for the given SQLAlchemy URL.

    Engines are owned by whoever builds them (the FastAPI lifespan, a test
    fixture, a cron script); nothing here caches one at module level.
    """
    return create_async_engine(db_url, echo=False, future=True)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
        class_=AsyncSession,
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Create any missing tables for the current models.

    Safe to call on every startup. Typically you'd eventually replace this
    with Alembic migrations.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def reset_db(engine: AsyncEngine) -> None:
    """
    TEST-ONLY: drop all tables and recreate them using the current models.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    """
    FastAPI dependency returning the session factory owned by the running app.
    """
    return request.app.state.session_factory


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides an async SQLAlchemy session.

    The session is automatically closed when the request is completed.
    """
    async with request.app.state.session_factory() as session:
        yield session
