# committee_events/services/rolling_window.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from committee_events.core.config import get_settings
from committee_events.models.series import Series
from committee_events.schemas.occurrence import (
    MaterializationResult,
    RollingWindowSummary,
    SeriesFailure,
)
from committee_events.schemas.series import SeriesRead, SeriesStatus
from committee_events.services.instance_builder import RecurrenceError
from committee_events.services.materializer import (
    MaterializationError,
    materialize_for_series,
)

logger = logging.getLogger(__name__)


async def load_approved_series(db: AsyncSession) -> list[Series]:
    stmt = (
        select(Series)
        .where(Series.status == SeriesStatus.APPROVED.value)
        .order_by(Series.created_at, Series.id)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def materialize_rolling_window(
    session_factory: async_sessionmaker[AsyncSession],
    months_ahead: int,
    now: datetime | None = None,
    max_concurrency: int | None = None,
) -> RollingWindowSummary:
    """
    Materialize every approved series over the next `months_ahead` months.

    Behavior
    --------
    - Approved series are loaded once, then materialized with at most
      `max_concurrency` series in flight, each in its own session.
    - A series that fails for any reason (unknown timezone, malformed
      stored rule, persistence error, unexpected exception) is logged and
      reported in `failures`; the remaining series are still processed.
    - Counts from successful series are summed into the summary.
    """
    now = now or datetime.now(timezone.utc)
    limit = max_concurrency or get_settings().MATERIALIZE_MAX_CONCURRENCY
    semaphore = asyncio.Semaphore(limit)

    failures: list[SeriesFailure] = []
    series_list: list[SeriesRead] = []

    async with session_factory() as db:
        for row in await load_approved_series(db):
            try:
                series_list.append(SeriesRead.model_validate(row))
            except ValidationError as exc:
                logger.warning("Skipping series %s with malformed definition: %s", row.id, exc)
                failures.append(
                    SeriesFailure(series_id=row.id, error=f"Malformed series: {exc}")
                )

    async def _run_one(series: SeriesRead) -> MaterializationResult | SeriesFailure:
        async with semaphore, session_factory() as session:
            try:
                return await materialize_for_series(session, series, months_ahead, now=now)
            except RecurrenceError as exc:
                logger.warning("Cannot expand series %s: %s", series.id, exc)
                return SeriesFailure(series_id=series.id, error=str(exc))
            except (MaterializationError, SQLAlchemyError) as exc:
                logger.error("Materialization failed for series %s: %s", series.id, exc)
                return SeriesFailure(series_id=series.id, error=str(exc))

    outcomes = await asyncio.gather(
        *(_run_one(series) for series in series_list),
        return_exceptions=True,
    )

    summary = RollingWindowSummary(
        months_ahead=months_ahead,
        series_processed=len(series_list) + len(failures),
        failures=failures,
    )
    for series, outcome in zip(series_list, outcomes):
        if isinstance(outcome, Exception):
            logger.error(
                "Unexpected error materializing series %s: %r",
                series.id,
                outcome,
                exc_info=outcome,
            )
            outcome = SeriesFailure(series_id=series.id, error=repr(outcome))
        elif isinstance(outcome, BaseException):
            raise outcome

        if isinstance(outcome, SeriesFailure):
            summary.failures.append(outcome)
            continue
        summary.inserted += outcome.inserted
        summary.skipped += outcome.skipped
        summary.updated += outcome.updated

    logger.info(
        "Rolling window (%d month(s)): series=%d inserted=%d skipped=%d failures=%d",
        months_ahead,
        summary.series_processed,
        summary.inserted,
        summary.skipped,
        len(summary.failures),
    )
    return summary
