# committee_events/schemas/series.py
from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from committee_events.schemas.recurrence import RecurrenceRule


class SeriesStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SeriesType(str, Enum):
    COMMITTEE_MEETING = "Committee Meeting"
    YPAA_MEETING = "YPAA Meeting"


# --------------------------------------------------------------------------
# Base schema shared by create/read
# --------------------------------------------------------------------------

class SeriesBase(BaseModel):
    """
    Shared fields used by SeriesCreate and SeriesRead.
    """

    name: str = Field(
        ...,
        min_length=1,
        description="Human-readable meeting name.",
        examples=["District 12 Business Meeting"],
    )
    type: SeriesType = Field(
        ...,
        description="Kind of meeting this series describes.",
        examples=["Committee Meeting"],
    )
    committee: str | None = Field(default=None, examples=["District 12"])
    committee_slug: str | None = Field(default=None, examples=["district-12"])

    timezone: str = Field(
        ...,
        description="IANA timezone in which start_time_local is expressed.",
        examples=["America/New_York"],
    )
    start_time_local: time = Field(
        ...,
        description="Wall-clock start time (HH:MM) in the series timezone.",
        examples=["19:00"],
    )
    duration_minutes: int = Field(
        ...,
        ge=0,
        description="Length of each occurrence in minutes.",
        examples=[60],
    )
    rrule: RecurrenceRule = Field(
        ...,
        description="Weekly or monthly-by-position recurrence pattern.",
    )
    exception_dates: frozenset[date] = Field(
        default_factory=frozenset,
        description="Local calendar dates on which the meeting does not take place.",
        examples=[["2024-12-25"]],
    )
    anchor_date: date | None = Field(
        default=None,
        description=(
            "Date from which interval phase and `count` are measured. "
            "When omitted, the start of each generation window is used."
        ),
    )

    address: str | None = None
    city: str | None = None
    state_prov: str | None = None
    country: str | None = None
    postal: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    notify_topic: str | None = None


# --------------------------------------------------------------------------
# Create schema (POST /series)
# --------------------------------------------------------------------------

class SeriesCreate(SeriesBase):
    """
    Schema for submitting a new recurring series.

    Submissions always start out as `pending`; the timezone is checked
    against the IANA database up front.
    """

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown IANA timezone '{value}'") from exc
        return value

    def to_orm_values(self) -> dict:
        """
        Column values for a `Series` row, with JSON-friendly rule and dates.
        """
        values = self.model_dump(exclude={"rrule", "exception_dates"})
        values["type"] = self.type.value
        values["rrule"] = rule_to_json(self.rrule)
        values["exception_dates"] = sorted(d.isoformat() for d in self.exception_dates)
        return values


# --------------------------------------------------------------------------
# Read schema (GET /series, materialization input)
# --------------------------------------------------------------------------

class SeriesRead(SeriesBase):
    """
    Validated view of a stored Series row.

    The timezone is not re-validated here: a stored series with a bad zone
    must still be readable so materialization can report it.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Series identifier (UUID).")
    status: SeriesStatus = Field(..., examples=["approved"])
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("exception_dates", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return value or frozenset()


class SeriesStatusUpdate(BaseModel):
    status: SeriesStatus = Field(..., examples=["approved"])


def rule_to_json(rule: RecurrenceRule) -> dict:
    """
    Serialize a rule for the JSON column with sets in a stable order.
    """
    data = rule.model_dump(mode="json", exclude_none=True)
    data["weekdays"] = sorted(data["weekdays"], key=lambda code: _DAY_ORDER[code])
    if "set_positions" in data:
        data["set_positions"] = sorted(data["set_positions"])
    return data


_DAY_ORDER = {code: i for i, code in enumerate(["MO", "TU", "WE", "TH", "FR", "SA", "SU"])}
