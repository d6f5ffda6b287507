# committee_events/services/recurrence.py
"""
Expansion of weekly and monthly-by-position recurrence rules into calendar
dates.

Rules are compiled into `dateutil.rrule` instances anchored on the series
anchor date. Everything here is pure date arithmetic: no timezones, no I/O.
Weeks start on Monday (ISO 8601) when computing the phase of a weekly
interval.
"""

from __future__ import annotations

from datetime import date, datetime, time

from dateutil.rrule import (
    MONTHLY,
    WEEKLY,
    FR,
    MO,
    SA,
    SU,
    TH,
    TU,
    WE,
    rrule,
)

from committee_events.schemas.recurrence import (
    Frequency,
    MonthlyRule,
    RecurrenceRule,
    Weekday,
    WeeklyRule,
)

WEEK_START = MO

_DAY_MAP = {
    Weekday.MO: MO,
    Weekday.TU: TU,
    Weekday.WE: WE,
    Weekday.TH: TH,
    Weekday.FR: FR,
    Weekday.SA: SA,
    Weekday.SU: SU,
}


def _sorted_days(rule: RecurrenceRule) -> list[Weekday]:
    return sorted(rule.weekdays, key=lambda day: day.py_weekday)


def build_rrule(rule: RecurrenceRule, anchor: date) -> rrule:
    """
    Compile `rule` into a dateutil rrule starting at `anchor`.

    Interval phase (weeks or months) is measured from the anchor, and `count`
    is counted from the anchor as well. `until` is left to the caller so it
    can be combined with `count` without tripping dateutil's
    count-and-until deprecation.
    """
    if rule.frequency == Frequency.WEEKLY:
        freq = WEEKLY
        byweekday = [_DAY_MAP[day] for day in _sorted_days(rule)]
    else:
        freq = MONTHLY
        # MO(+1) is the first Monday of the month, FR(-1) the last Friday.
        # A position missing from a month (5th Monday) yields nothing there.
        byweekday = [
            _DAY_MAP[day](pos)
            for day in _sorted_days(rule)
            for pos in sorted(rule.set_positions)
        ]

    return rrule(
        freq,
        dtstart=datetime.combine(anchor, time.min),
        interval=rule.interval,
        wkst=WEEK_START,
        byweekday=byweekday,
        count=rule.count,
    )


def _between(rule: RecurrenceRule, anchor: date, start: date, end: date) -> list[date]:
    lower = max(start, anchor)
    if rule.until is not None and rule.until < end:
        end = rule.until
    if end < lower:
        return []

    occurrences = build_rrule(rule, anchor).between(
        datetime.combine(lower, time.min),
        datetime.combine(end, time.min),
        inc=True,
    )
    return [dt.date() for dt in occurrences]


def expand_weekly(
    rule: WeeklyRule,
    anchor: date,
    start: date,
    end: date,
) -> list[date]:
    """
    Every date in `[max(start, anchor), end]` falling on one of the rule's
    weekdays, keeping only weeks whose distance from the anchor week is a
    multiple of `rule.interval`.
    """
    return _between(rule, anchor, start, end)


def expand_monthly(
    rule: MonthlyRule,
    anchor: date,
    start: date,
    end: date,
) -> list[date]:
    """
    Every "Nth weekday of the month" date in `[max(start, anchor), end]`.

    Months are visited from the anchor's month in steps of `rule.interval`.
    A position that does not exist in a month ("5th Monday" of a month with
    four) simply contributes nothing for that month.
    """
    return _between(rule, anchor, start, end)


def expand_dates(
    rule: RecurrenceRule,
    anchor: date,
    start: date,
    end: date,
) -> list[date]:
    """
    Expand `rule` into the sorted dates that fall within `[start, end]`.

    `until` clamps the end of the range. When `count` is set, dates are
    counted from `anchor` onwards, so the same occurrences are kept no matter
    when the window starts.
    """
    expand = expand_weekly if rule.frequency == Frequency.WEEKLY else expand_monthly
    return expand(rule, anchor, start, end)
