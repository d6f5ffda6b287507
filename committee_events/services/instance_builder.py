# committee_events/services/instance_builder.py
from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from committee_events.schemas.occurrence import GeneratedInstance
from committee_events.schemas.series import SeriesRead


class RecurrenceError(ValueError):
    """
    Base class for series that cannot be expanded into occurrences.
    """


class InvalidTimezoneError(RecurrenceError):
    """
    Raised when a series names a timezone missing from the IANA database.
    """

    def __init__(self, tz_name: str) -> None:
        super().__init__(f"Unknown IANA timezone '{tz_name}'")
        self.tz_name = tz_name


def load_timezone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimezoneError(tz_name) from exc


def resolve_wall_clock(naive_local: datetime, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """
    Pin a naive wall-clock time in `tz` to an absolute instant.

    Uses `fold=0`, i.e. the offset in force *before* a transition:

    - a skipped time (spring forward, e.g. 02:30) is read with the standard
      offset and so lands one hour later on the new clock (03:30);
    - a repeated time (fall back, e.g. 01:30) resolves to its first, daylight
      occurrence.

    Returns `(utc, normalized_local)` where `normalized_local` is the naive
    wall-clock reading of that instant.
    """
    aware = naive_local.replace(tzinfo=tz, fold=0)
    utc = aware.astimezone(timezone.utc)
    normalized = utc.astimezone(tz).replace(tzinfo=None)
    return utc, normalized


def build_instances(
    series: SeriesRead,
    dates: Iterable[date],
) -> list[GeneratedInstance]:
    """
    Turn candidate calendar dates into local/UTC start-end pairs.

    Dates listed in `series.exception_dates` are dropped; the comparison is
    made against the local calendar date. End times are the start instant
    plus the duration in elapsed time, so the end never precedes the start
    even when the start falls in a DST gap.
    """
    tz = load_timezone(series.timezone)
    duration = timedelta(minutes=series.duration_minutes)
    start_time = series.start_time_local.replace(second=0, microsecond=0, tzinfo=None)

    instances: list[GeneratedInstance] = []
    for day in sorted(set(dates)):
        if day in series.exception_dates:
            continue

        local_start = datetime.combine(day, start_time)
        starts_at_utc, starts_at_local = resolve_wall_clock(local_start, tz)
        ends_at_utc = starts_at_utc + duration
        ends_at_local = ends_at_utc.astimezone(tz).replace(tzinfo=None)

        instances.append(
            GeneratedInstance(
                starts_at_local=starts_at_local,
                ends_at_local=ends_at_local,
                starts_at_utc=starts_at_utc,
                ends_at_utc=ends_at_utc,
            )
        )
    return instances
