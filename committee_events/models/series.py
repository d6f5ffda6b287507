# committee_events/models/series.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    Time,
)

from committee_events.db.base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Series(Base):
    """
    A recurring-event definition submitted by a committee.

    The recurrence rule is stored as JSON and validated into a
    `RecurrenceRule` whenever it is read for generation.
    """

    __tablename__ = "series"

    id = Column(String(36), primary_key=True, default=_new_id)

    name = Column(String(255), nullable=False)
    type = Column(String(64), nullable=False)
    committee = Column(String(255), nullable=True)
    committee_slug = Column(String(255), nullable=True, index=True)

    timezone = Column(String(64), nullable=False)
    start_time_local = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=0)

    rrule = Column(JSON, nullable=False)
    exception_dates = Column(JSON, nullable=False, default=list)
    anchor_date = Column(Date, nullable=True)

    address = Column(Text, nullable=True)
    city = Column(String(128), nullable=True)
    state_prov = Column(String(128), nullable=True)
    country = Column(String(128), nullable=True)
    postal = Column(String(32), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    status = Column(String(16), nullable=False, default="pending", index=True)
    notify_topic = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    def __repr__(self) -> str:
        return (
            f"<Series id={self.id} name={self.name!r} "
            f"timezone={self.timezone} status={self.status}>"
        )
