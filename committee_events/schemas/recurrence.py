# committee_events/schemas/recurrence.py
from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Weekday(str, Enum):
    """
    Two-letter weekday codes, as used by iCalendar BYDAY.
    """

    MO = "MO"
    TU = "TU"
    WE = "WE"
    TH = "TH"
    FR = "FR"
    SA = "SA"
    SU = "SU"

    @property
    def py_weekday(self) -> int:
        """Python weekday number (Monday == 0)."""
        return _WEEKDAY_INDEX[self]


_WEEKDAY_INDEX = {day: i for i, day in enumerate(Weekday)}


class Frequency(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class _RuleBase(BaseModel):
    """
    Fields shared by every recurrence rule variant.

    `until` is inclusive and authoritative. `count` caps the number of
    occurrences counted from the series anchor.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    interval: int = Field(
        default=1,
        ge=1,
        description="Every N weeks (weekly) or every N months (monthly).",
        examples=[1],
    )
    weekdays: frozenset[Weekday] = Field(
        ...,
        min_length=1,
        description="Weekdays on which the series occurs.",
        examples=[["MO"]],
    )
    until: date | None = Field(
        default=None,
        description="Last date (inclusive) on which an occurrence may fall.",
        examples=["2025-06-30"],
    )
    count: int | None = Field(
        default=None,
        ge=1,
        description="Maximum number of occurrences, counted from the anchor date.",
    )


class WeeklyRule(_RuleBase):
    frequency: Literal["weekly"] = "weekly"


class MonthlyRule(_RuleBase):
    frequency: Literal["monthly"] = "monthly"

    set_positions: frozenset[int] = Field(
        ...,
        min_length=1,
        description="1..5 = Nth weekday of the month, -1..-5 = counted from the end.",
        examples=[[2], [-1]],
    )

    @field_validator("set_positions")
    @classmethod
    def _positions_in_month_range(cls, value: frozenset[int]) -> frozenset[int]:
        for pos in value:
            if pos == 0 or not -5 <= pos <= 5:
                raise ValueError(
                    f"set position {pos} is invalid; use 1..5 or -1..-5"
                )
        return value


RecurrenceRule = Annotated[
    Union[WeeklyRule, MonthlyRule],
    Field(discriminator="frequency"),
]
