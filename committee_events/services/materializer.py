# committee_events/services/materializer.py
from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from dateutil.relativedelta import relativedelta
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from committee_events.models.occurrence import Occurrence
from committee_events.models.series import Series
from committee_events.schemas.occurrence import GeneratedInstance, MaterializationResult
from committee_events.schemas.series import SeriesRead
from committee_events.services.instance_builder import build_instances, load_timezone
from committee_events.services.recurrence import expand_dates

logger = logging.getLogger(__name__)

_CONFLICT_KEY = ["series_id", "starts_at_utc"]

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class MaterializationError(RuntimeError):
    """
    Raised when occurrences for a series cannot be written to the store.

    `inserted` holds how many rows were committed before the failure; those
    rows stay valid.
    """

    def __init__(self, series_id: str, inserted: int, cause: Exception) -> None:
        super().__init__(
            f"Failed to materialize series {series_id} after {inserted} "
            f"inserted occurrence(s): {cause}"
        )
        self.series_id = series_id
        self.inserted = inserted


def generation_window(tz_name: str, months_ahead: int, now: datetime) -> tuple[date, date]:
    """
    Return `(from, to)` for a run: today in the series timezone through the
    same day `months_ahead` months later, both inclusive.
    """
    if months_ahead < 0:
        raise ValueError("months_ahead must be zero or positive")
    tz = load_timezone(tz_name)
    start = now.astimezone(tz).date()
    return start, start + relativedelta(months=months_ahead)


def generate_instances(
    series: SeriesRead,
    months_ahead: int,
    now: datetime | None = None,
) -> list[GeneratedInstance]:
    """
    Expand a series over its forward-looking window without touching the store.
    """
    now = now or datetime.now(timezone.utc)
    start, end = generation_window(series.timezone, months_ahead, now)
    anchor = series.anchor_date or start
    dates = expand_dates(series.rrule, anchor, start, end)
    return build_instances(series, dates)


def _occurrence_values(series: SeriesRead, instance: GeneratedInstance) -> dict:
    return {
        "series_id": series.id,
        "name": series.name,
        "type": series.type.value,
        "committee": series.committee,
        "committee_slug": series.committee_slug,
        "starts_at_local": instance.starts_at_local.isoformat(),
        "ends_at_local": instance.ends_at_local.isoformat(),
        "starts_at_utc": instance.starts_at_utc,
        "ends_at_utc": instance.ends_at_utc,
        "address": series.address,
        "city": series.city,
        "state_prov": series.state_prov,
        "country": series.country,
        "postal": series.postal,
        "latitude": series.latitude,
        "longitude": series.longitude,
        "status": series.status.value,
        "notify_topic": series.notify_topic,
    }


async def insert_occurrence(db: AsyncSession, values: dict) -> bool:
    """
    Insert one occurrence, ignoring a conflict on `(series_id, starts_at_utc)`.

    Returns True when a row was written and False when it already existed.
    The single-row statement keeps each local/UTC pair atomic.
    """
    dialect = db.get_bind().dialect.name
    try:
        insert = _INSERT_BY_DIALECT[dialect]
    except KeyError:
        raise NotImplementedError(
            f"Conflict-ignoring insert is not supported for dialect '{dialect}'"
        ) from None

    stmt = (
        insert(Occurrence)
        .values(**values)
        .on_conflict_do_nothing(index_elements=_CONFLICT_KEY)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def materialize_for_series(
    db: AsyncSession,
    series: SeriesRead | Series,
    months_ahead: int,
    now: datetime | None = None,
) -> MaterializationResult:
    """
    Expand one series over the next `months_ahead` months and persist the
    resulting occurrences idempotently.

    Parameters
    ----------
    db:
        Open AsyncSession; each occurrence is committed as soon as it is written.
    series:
        Series to materialize (ORM row or validated schema).
    months_ahead:
        Size of the forward-looking window in months.
    now:
        Reference instant; defaults to the current time.

    Returns
    -------
    MaterializationResult
        Rows inserted in this run versus rows that already existed.

    Raises
    ------
    InvalidTimezoneError
        The series timezone is unknown.
    MaterializationError
        A persistence error aborted the run; already committed rows remain.
    """
    if isinstance(series, Series):
        series = SeriesRead.model_validate(series)

    instances = generate_instances(series, months_ahead, now=now)

    inserted = 0
    skipped = 0
    for instance in instances:
        values = _occurrence_values(series, instance)
        try:
            written = await insert_occurrence(db, values)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error(
                "Persistence failure materializing series %s at %s",
                series.id,
                instance.starts_at_utc.isoformat(),
            )
            raise MaterializationError(series.id, inserted, exc) from exc

        if written:
            inserted += 1
        else:
            skipped += 1

    logger.info(
        "Materialized series %s over %d month(s): inserted=%d skipped=%d",
        series.id,
        months_ahead,
        inserted,
        skipped,
    )
    return MaterializationResult(series_id=series.id, inserted=inserted, skipped=skipped)
