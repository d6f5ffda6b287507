# tests/test_materializer.py
from datetime import date, datetime, time, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from committee_events.models.occurrence import Occurrence
from committee_events.schemas.occurrence import OccurrenceRead
from committee_events.schemas.series import SeriesRead
from committee_events.services import materializer as mat
from committee_events.services.instance_builder import InvalidTimezoneError
from committee_events.services.materializer import (
    MaterializationError,
    generate_instances,
    generation_window,
    materialize_for_series,
)

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

WEEKLY_MONDAY = {"frequency": "weekly", "interval": 1, "weekdays": ["MO"]}


async def _occurrences(db, series_id: str) -> list[OccurrenceRead]:
    result = await db.execute(
        select(Occurrence)
        .where(Occurrence.series_id == series_id)
        .order_by(Occurrence.starts_at_utc)
    )
    return [OccurrenceRead.model_validate(o) for o in result.scalars().all()]


async def _count(db) -> int:
    return (await db.execute(select(func.count()).select_from(Occurrence))).scalar_one()


# ---------------------------------------------------------------------------
# Window computation
# ---------------------------------------------------------------------------


def test_window_starts_today_in_series_timezone():
    # 03:00 UTC on Jan 1 is still Dec 31 in New York.
    start, end = generation_window("America/New_York", 1, datetime(2024, 1, 1, 3, tzinfo=timezone.utc))

    assert start == date(2023, 12, 31)
    assert end == date(2024, 1, 31)


def test_window_clips_to_month_end():
    start, end = generation_window("UTC", 1, datetime(2024, 1, 31, 12, tzinfo=timezone.utc))

    assert (start, end) == (date(2024, 1, 31), date(2024, 2, 29))


def test_window_rejects_unknown_timezone():
    with pytest.raises(InvalidTimezoneError):
        generation_window("Nowhere/Special", 1, NOW)


def test_generate_instances_uses_anchor_for_interval_phase(make_series):
    series = make_series(
        rrule={"frequency": "weekly", "interval": 2, "weekdays": ["MO"]},
        anchor_date=date(2024, 1, 1),
    )

    instances = generate_instances(series, 1, now=datetime(2024, 1, 8, 12, tzinfo=timezone.utc))

    # Window is Jan 8 - Feb 8; only weeks 2 and 4 after the anchor qualify.
    assert [i.starts_at_local.date() for i in instances] == [date(2024, 1, 15), date(2024, 1, 29)]


# ---------------------------------------------------------------------------
# Materialization
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_first_monday_end_to_end(db, add_series):
    """
    Monthly first Monday at 19:00 New York, one hour, one month from
    2024-01-01: exactly one occurrence on January 1st.
    """
    series = await add_series()

    result = await materialize_for_series(db, series, months_ahead=1, now=NOW)

    assert result.inserted == 1
    assert result.skipped == 0
    assert result.updated == 0

    [occurrence] = await _occurrences(db, series.id)
    assert occurrence.starts_at_local == "2024-01-01T19:00:00"
    assert occurrence.ends_at_local == "2024-01-01T20:00:00"
    assert occurrence.starts_at_utc == datetime(2024, 1, 2, 0, 0, tzinfo=timezone.utc)
    assert occurrence.ends_at_utc == datetime(2024, 1, 2, 1, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_materialize_is_idempotent(db, add_series):
    """
    A second run over the same window inserts nothing and leaves the
    occurrence set untouched.
    """
    series = await add_series(rrule=WEEKLY_MONDAY)

    first = await materialize_for_series(db, series, months_ahead=2, now=NOW)
    before = await _occurrences(db, series.id)

    second = await materialize_for_series(db, series, months_ahead=2, now=NOW)
    after = await _occurrences(db, series.id)

    assert first.inserted == 9  # Mondays from Jan 1 through Mar 1, 2024
    assert second.inserted == 0
    assert second.skipped == first.inserted
    assert [o.id for o in after] == [o.id for o in before]


@pytest.mark.asyncio
async def test_wider_window_only_adds_new_occurrences(db, add_series):
    series = await add_series(rrule=WEEKLY_MONDAY)

    first = await materialize_for_series(db, series, months_ahead=1, now=NOW)
    second = await materialize_for_series(db, series, months_ahead=2, now=NOW)

    assert second.skipped == first.inserted
    assert second.inserted == 9 - first.inserted
    assert await _count(db) == 9


@pytest.mark.asyncio
async def test_denormalized_fields_copied_from_series(db, add_series):
    series = await add_series(city="Shelbyville", notify_topic="district-12")

    await materialize_for_series(db, series, months_ahead=1, now=NOW)

    [occurrence] = await _occurrences(db, series.id)
    assert occurrence.name == series.name
    assert occurrence.type == "Committee Meeting"
    assert occurrence.committee == "District 12"
    assert occurrence.committee_slug == "district-12"
    assert occurrence.city == "Shelbyville"
    assert occurrence.notify_topic == "district-12"
    assert occurrence.status == "approved"


@pytest.mark.asyncio
async def test_accepts_validated_schema(db, add_series):
    series = await add_series()

    result = await materialize_for_series(
        db, SeriesRead.model_validate(series), months_ahead=1, now=NOW
    )

    assert result.series_id == series.id
    assert result.inserted == 1


@pytest.mark.asyncio
async def test_stored_exception_dates_respected(db, add_series):
    series = await add_series(rrule=WEEKLY_MONDAY, exception_dates=["2024-01-15"])

    result = await materialize_for_series(db, series, months_ahead=1, now=NOW)

    starts = [o.starts_at_local for o in await _occurrences(db, series.id)]
    assert result.inserted == 4
    assert "2024-01-15T19:00:00" not in starts


@pytest.mark.asyncio
async def test_empty_expansion_is_not_an_error(db, add_series):
    series = await add_series(
        rrule={
            "frequency": "monthly",
            "weekdays": ["MO"],
            "set_positions": [1],
            "until": "2023-12-31",
        }
    )

    result = await materialize_for_series(db, series, months_ahead=6, now=NOW)

    assert (result.inserted, result.skipped) == (0, 0)


@pytest.mark.asyncio
async def test_unknown_timezone_raises_and_writes_nothing(db, add_series):
    series = await add_series(timezone="Mars/Olympus")

    with pytest.raises(InvalidTimezoneError):
        await materialize_for_series(db, series, months_ahead=1, now=NOW)

    assert await _count(db) == 0


@pytest.mark.asyncio
async def test_persistence_failure_keeps_committed_rows(db, add_series, monkeypatch):
    """
    A write error aborts the rest of the series; occurrences already
    committed stay in place and the caller sees MaterializationError.
    """
    series = await add_series(rrule=WEEKLY_MONDAY)
    real_insert = mat.insert_occurrence
    calls = {"n": 0}

    async def flaky_insert(session, values):
        calls["n"] += 1
        if calls["n"] == 3:
            raise SQLAlchemyError("disk I/O error")
        return await real_insert(session, values)

    monkeypatch.setattr(mat, "insert_occurrence", flaky_insert)

    with pytest.raises(MaterializationError) as excinfo:
        await materialize_for_series(db, series, months_ahead=2, now=NOW)

    assert excinfo.value.inserted == 2
    assert excinfo.value.series_id == series.id
    occurrences = await _occurrences(db, series.id)
    assert [o.starts_at_local for o in occurrences] == [
        "2024-01-01T19:00:00",
        "2024-01-08T19:00:00",
    ]

    # A later run fills in the rest without duplicating the survivors.
    monkeypatch.setattr(mat, "insert_occurrence", real_insert)
    result = await materialize_for_series(db, series, months_ahead=2, now=NOW)
    assert (result.inserted, result.skipped) == (7, 2)


@pytest.mark.asyncio
async def test_dst_series_materializes_without_duplicates(db, add_series):
    series = await add_series(
        rrule={"frequency": "weekly", "interval": 1, "weekdays": ["SU"]},
        start_time_local=time(2, 30),
        duration_minutes=90,
    )

    await materialize_for_series(
        db, series, months_ahead=1, now=datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
    )

    occurrences = await _occurrences(db, series.id)
    starts = [o.starts_at_utc for o in occurrences]
    assert len(starts) == 5  # Mar 3, 10, 17, 24, 31
    assert starts == sorted(set(starts))
    assert occurrences[1].starts_at_local == "2024-03-10T03:30:00"
    assert occurrences[1].ends_at_local == "2024-03-10T05:00:00"
    for occurrence in occurrences:
        assert occurrence.ends_at_utc - occurrence.starts_at_utc == timedelta(minutes=90)
