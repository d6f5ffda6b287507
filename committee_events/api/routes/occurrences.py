# committee_events/api/routes/occurrences.py
from datetime import datetime, timezone
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from committee_events.db.session import get_db
from committee_events.models.occurrence import Occurrence
from committee_events.schemas.occurrence import OccurrenceRead, OccurrenceStatusUpdate
from committee_events.schemas.series import SeriesStatus

router = APIRouter(prefix="/occurrences", tags=["Occurrences"])


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@router.get(
    "",
    response_model=list[OccurrenceRead],
    summary="List materialized occurrences",
    description=(
        "Return occurrences ordered by their UTC start, for the calendar and "
        "map views.\n\n"
        "`start`/`end` bound `starts_at_utc` (inclusive start, exclusive end). "
        "Naive values are read as UTC."
    ),
    responses={
        400: {"description": "`end` is not after `start`."},
    },
)
async def list_occurrences(
    start: datetime | None = Query(default=None, examples=["2024-01-01T00:00:00Z"]),
    end: datetime | None = Query(default=None, examples=["2024-02-01T00:00:00Z"]),
    series_id: str | None = Query(default=None, description="Restrict to one series."),
    status: SeriesStatus | None = Query(
        default=SeriesStatus.APPROVED,
        description="Only return occurrences with this status.",
    ),
    db: AsyncSession = Depends(get_db),
) -> list[OccurrenceRead]:
    if start is not None and end is not None and _as_utc(end) <= _as_utc(start):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="end must be greater than start",
        )

    stmt = select(Occurrence)
    if start is not None:
        stmt = stmt.where(Occurrence.starts_at_utc >= _as_utc(start))
    if end is not None:
        stmt = stmt.where(Occurrence.starts_at_utc < _as_utc(end))
    if series_id is not None:
        stmt = stmt.where(Occurrence.series_id == series_id)
    if status is not None:
        stmt = stmt.where(Occurrence.status == status.value)

    result = await db.execute(stmt.order_by(Occurrence.starts_at_utc, Occurrence.id))
    return [OccurrenceRead.model_validate(o) for o in result.scalars().all()]


@router.patch(
    "/{occurrence_id}/status",
    response_model=OccurrenceRead,
    summary="Change the status of a single occurrence",
    description=(
        "Moderators can reject or restore a single dated occurrence without "
        "touching the rest of the series. Regeneration never overwrites this."
    ),
    responses={404: {"description": "No occurrence exists with the given ID."}},
)
async def update_occurrence_status(
    payload: OccurrenceStatusUpdate,
    occurrence_id: str = Path(..., description="UUID of the occurrence."),
    db: AsyncSession = Depends(get_db),
) -> OccurrenceRead:
    result = await db.execute(select(Occurrence).where(Occurrence.id == occurrence_id))
    occurrence = result.scalar_one_or_none()
    if occurrence is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"Occurrence with id {occurrence_id} not found.",
        )

    occurrence.status = payload.status.value
    await db.commit()
    await db.refresh(occurrence)
    return OccurrenceRead.model_validate(occurrence)
