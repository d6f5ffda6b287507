# committee_events/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI

from committee_events.api.routes import health, internal, occurrences, series
from committee_events.core.config import get_settings
from committee_events.core.logging_config import configure_logging
from committee_events.db.session import build_engine, build_session_factory, init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Own the database engine for the lifetime of the app.
    """
    engine = build_engine(get_settings().DB_URL)
    app.state.session_factory = build_session_factory(engine)
    await init_db(engine)
    try:
        yield
    finally:
        await engine.dispose()


def create_app() -> FastAPI:
    """
    Application factory for the Committee Events service.
    """
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Backend for regional committee event discovery.\n\n"
            "Accepts recurring meeting definitions, expands them into dated "
            "occurrences over a rolling window and serves those occurrences "
            "to the calendar and map views."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Routers
    app.include_router(health.router)
    app.include_router(series.router)
    app.include_router(occurrences.router)
    app.include_router(internal.router)

    return app


app = create_app()
