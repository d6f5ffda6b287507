# committee_events/schemas/occurrence.py
from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from committee_events.schemas.series import SeriesStatus


class GeneratedInstance(BaseModel):
    """
    One expanded occurrence before it is persisted.

    Local values are naive wall-clock datetimes in the series timezone; UTC
    values are timezone-aware.
    """

    model_config = ConfigDict(frozen=True)

    starts_at_local: datetime
    ends_at_local: datetime
    starts_at_utc: datetime
    ends_at_utc: datetime


class OccurrenceRead(BaseModel):
    """
    Public representation of a materialized Occurrence.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Occurrence identifier (UUID).")
    series_id: str = Field(..., description="Owning series.")
    name: str
    type: str
    committee: str | None = None
    committee_slug: str | None = None
    starts_at_local: str = Field(..., examples=["2024-01-01T19:00:00"])
    ends_at_local: str = Field(..., examples=["2024-01-01T20:00:00"])
    starts_at_utc: datetime = Field(..., examples=["2024-01-02T00:00:00Z"])
    ends_at_utc: datetime = Field(..., examples=["2024-01-02T01:00:00Z"])
    address: str | None = None
    city: str | None = None
    state_prov: str | None = None
    country: str | None = None
    postal: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    status: SeriesStatus
    notify_topic: str | None = None

    @field_validator("starts_at_utc", "ends_at_utc")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive datetimes; everything stored is UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class OccurrenceStatusUpdate(BaseModel):
    status: SeriesStatus = Field(..., examples=["rejected"])


class MaterializationResult(BaseModel):
    """
    Outcome of materializing one series over a window.
    """

    series_id: str = Field(..., description="Series that was materialized.")
    inserted: int = Field(
        0,
        description="Occurrences newly written in this run.",
        examples=[4],
    )
    skipped: int = Field(
        0,
        description="Occurrences that already existed for the same start instant.",
        examples=[0],
    )
    updated: int = Field(
        0,
        description="Always 0: existing occurrences are never overwritten.",
        examples=[0],
    )


class SeriesFailure(BaseModel):
    series_id: str
    error: str = Field(..., description="Human-readable failure reason.")


class RollingWindowSummary(BaseModel):
    """
    Aggregate payload returned by the /internal/run-materializer endpoint.
    """

    months_ahead: int = Field(..., examples=[6])
    series_processed: int = Field(
        ...,
        description="Number of approved series that were part of this run.",
        examples=[12],
    )
    inserted: int = Field(0, examples=[48])
    skipped: int = Field(0, examples=[240])
    updated: int = Field(0, examples=[0])
    failures: list[SeriesFailure] = Field(
        default_factory=list,
        description="Series whose materialization failed; the rest still ran.",
    )
