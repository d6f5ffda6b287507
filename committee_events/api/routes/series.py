# committee_events/api/routes/series.py
import logging
from datetime import datetime
from http import HTTPStatus
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from committee_events.core.config import get_settings
from committee_events.db.session import get_db
from committee_events.models.series import Series
from committee_events.schemas.occurrence import MaterializationResult
from committee_events.schemas.series import (
    SeriesCreate,
    SeriesRead,
    SeriesStatus,
    SeriesStatusUpdate,
)
from committee_events.services.instance_builder import RecurrenceError
from committee_events.services.materializer import (
    MaterializationError,
    materialize_for_series,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/series", tags=["Series"])


async def _get_series_or_404(db: AsyncSession, series_id: str) -> Series:
    result = await db.execute(select(Series).where(Series.id == series_id))
    series = result.scalar_one_or_none()
    if series is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"Series with id {series_id} not found.",
        )
    return series


async def _materialize(
    db: AsyncSession,
    series: Series,
    months_ahead: int,
) -> MaterializationResult:
    """
    Run the materializer and translate its failures into HTTP errors.
    """
    try:
        return await materialize_for_series(db, series, months_ahead)
    except (RecurrenceError, ValidationError) as exc:
        raise HTTPException(
            status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
            detail=f"Series {series.id} cannot be expanded: {exc}",
        ) from exc
    except MaterializationError as exc:
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


@router.post(
    "",
    response_model=SeriesRead,
    status_code=HTTPStatus.CREATED,
    summary="Submit a new recurring series",
    description=(
        "Register a recurring meeting definition. New series start out as "
        "`pending` and are only expanded into occurrences once approved.\n\n"
        "The recurrence rule is validated up front: weekly rules need at least "
        "one weekday, monthly rules need weekdays and set positions. When "
        "`anchor_date` is omitted it defaults to today in the series timezone."
    ),
    responses={
        201: {"description": "Series successfully created."},
        422: {"description": "Malformed recurrence rule or unknown timezone."},
    },
)
async def create_series(
    payload: SeriesCreate,
    db: AsyncSession = Depends(get_db),
) -> SeriesRead:
    values = payload.to_orm_values()
    if values["anchor_date"] is None:
        # Pin interval phase to the submission day so every run agrees on it.
        values["anchor_date"] = datetime.now(ZoneInfo(payload.timezone)).date()

    series = Series(**values, status=SeriesStatus.PENDING.value)
    db.add(series)
    await db.commit()
    await db.refresh(series)

    logger.info("Series %s submitted (%s)", series.id, series.name)
    return SeriesRead.model_validate(series)


@router.get(
    "",
    response_model=list[SeriesRead],
    summary="List recurring series",
)
async def list_series(
    status: SeriesStatus | None = Query(
        default=None,
        description="Only return series with this moderation status.",
    ),
    db: AsyncSession = Depends(get_db),
) -> list[SeriesRead]:
    stmt = select(Series)
    if status is not None:
        stmt = stmt.where(Series.status == status.value)

    result = await db.execute(stmt.order_by(Series.created_at, Series.id))
    return [SeriesRead.model_validate(s) for s in result.scalars().all()]


@router.get(
    "/{series_id}",
    response_model=SeriesRead,
    summary="Get series details by ID",
    responses={404: {"description": "No series exists with the given ID."}},
)
async def get_series(
    series_id: str = Path(..., description="UUID of the series."),
    db: AsyncSession = Depends(get_db),
) -> SeriesRead:
    series = await _get_series_or_404(db, series_id)
    return SeriesRead.model_validate(series)


@router.patch(
    "/{series_id}/status",
    response_model=SeriesRead,
    summary="Approve or reject a series",
    description=(
        "Change the moderation status of a series. Approving a series "
        "immediately materializes `DEFAULT_MONTHS_AHEAD` months of occurrences."
    ),
    responses={
        404: {"description": "No series exists with the given ID."},
        422: {"description": "Approved series cannot be expanded."},
        503: {"description": "Occurrences could not be persisted."},
    },
)
async def update_series_status(
    payload: SeriesStatusUpdate,
    series_id: str = Path(..., description="UUID of the series."),
    db: AsyncSession = Depends(get_db),
) -> SeriesRead:
    series = await _get_series_or_404(db, series_id)
    series.status = payload.status.value
    await db.commit()
    await db.refresh(series)

    if payload.status is SeriesStatus.APPROVED:
        await _materialize(db, series, get_settings().DEFAULT_MONTHS_AHEAD)

    return SeriesRead.model_validate(series)


@router.post(
    "/{series_id}/generate",
    response_model=MaterializationResult,
    status_code=HTTPStatus.OK,
    summary="Generate occurrences for one series",
    description=(
        "Admin action: expand the series over the next `months` months and "
        "insert any occurrences that do not exist yet. Safe to repeat; "
        "occurrences already present are counted as `skipped`."
    ),
    responses={
        200: {
            "description": "Materialization finished.",
            "content": {
                "application/json": {
                    "example": {
                        "series_id": "7d8c5f0e-3d4b-4a51-9a55-1f2b0c3d4e5f",
                        "inserted": 6,
                        "skipped": 0,
                        "updated": 0,
                    }
                }
            },
        },
        404: {"description": "No series exists with the given ID."},
        409: {"description": "Series is not approved."},
        422: {"description": "Series cannot be expanded (e.g. unknown timezone)."},
        503: {"description": "Occurrences could not be persisted."},
    },
)
async def generate_series_occurrences(
    series_id: str = Path(..., description="UUID of the series."),
    months: int | None = Query(
        default=None,
        ge=1,
        description="Horizon in months. Defaults to DEFAULT_MONTHS_AHEAD.",
        examples=[6],
    ),
    db: AsyncSession = Depends(get_db),
) -> MaterializationResult:
    settings = get_settings()
    months_ahead = months or settings.DEFAULT_MONTHS_AHEAD
    if months_ahead > settings.MAX_MONTHS_AHEAD:
        raise HTTPException(
            status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
            detail=f"months must be at most {settings.MAX_MONTHS_AHEAD}.",
        )

    series = await _get_series_or_404(db, series_id)
    if series.status != SeriesStatus.APPROVED.value:
        raise HTTPException(
            status_code=HTTPStatus.CONFLICT,
            detail=f"Series {series_id} is {series.status}; only approved series are generated.",
        )

    return await _materialize(db, series, months_ahead)
