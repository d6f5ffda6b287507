# committee_events/api/routes/internal.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from committee_events.api.dependencies.internal_auth import verify_internal_api_key
from committee_events.core.config import get_settings
from committee_events.db.session import get_session_factory
from committee_events.schemas.occurrence import RollingWindowSummary
from committee_events.services.rolling_window import materialize_rolling_window

router = APIRouter(
    prefix="/internal",
    tags=["Internal"],
    dependencies=[Depends(verify_internal_api_key)],
)


@router.post(
    "/run-materializer",
    response_model=RollingWindowSummary,
    status_code=HTTPStatus.OK,
    summary="Materialize occurrences for all approved series",
    description=(
        "Expands **every approved series** over the next `months` months "
        "(defaults to `DEFAULT_MONTHS_AHEAD`) and inserts occurrences that do "
        "not exist yet.\n\n"
        "This endpoint is intended to be called from a cron job or scheduler "
        "and is protected via the `X-Internal-Api-Key` header when configured. "
        "Series that fail are listed in `failures`; the rest are still processed."
    ),
    responses={
        200: {
            "description": "Rolling window executed. A summary is returned.",
            "content": {
                "application/json": {
                    "example": {
                        "months_ahead": 6,
                        "series_processed": 3,
                        "inserted": 12,
                        "skipped": 60,
                        "updated": 0,
                        "failures": [
                            {
                                "series_id": "2b1f6c1e-8f5e-4d55-bb8a-6a0e1c9a0f11",
                                "error": "Unknown IANA timezone 'Mars/Olympus'",
                            }
                        ],
                    }
                }
            },
        },
        401: {
            "description": "Missing or invalid internal API key (if configured).",
        },
    },
)
async def run_materializer(
    months: int | None = Query(
        default=None,
        ge=1,
        description="Horizon in months. Defaults to DEFAULT_MONTHS_AHEAD.",
        examples=[6],
    ),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> RollingWindowSummary:
    """
    Run the rolling-window materialization job.

    In production this endpoint should be invoked periodically (e.g. nightly
    via cron + curl) so future occurrences stay populated.
    """
    settings = get_settings()
    months_ahead = months or settings.DEFAULT_MONTHS_AHEAD
    if months_ahead > settings.MAX_MONTHS_AHEAD:
        raise HTTPException(
            status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
            detail=f"months must be at most {settings.MAX_MONTHS_AHEAD}.",
        )

    return await materialize_rolling_window(session_factory, months_ahead)
