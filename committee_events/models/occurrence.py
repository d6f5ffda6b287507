# committee_events/models/occurrence.py
import uuid

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from committee_events.db.base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Occurrence(Base):
    """
    One concrete, dated instance materialized from a Series.

    Display fields are copied from the series at generation time. Rows are
    only ever inserted by the materializer; `(series_id, starts_at_utc)` is
    the idempotence key.
    """

    __tablename__ = "occurrences"

    id = Column(String(36), primary_key=True, default=_new_id)

    series_id = Column(
        String(36),
        ForeignKey("series.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String(255), nullable=False)
    type = Column(String(64), nullable=False)
    committee = Column(String(255), nullable=True)
    committee_slug = Column(String(255), nullable=True)

    # Wall-clock ISO strings without offset, e.g. "2024-01-01T19:00:00".
    starts_at_local = Column(String(19), nullable=False)
    ends_at_local = Column(String(19), nullable=False)

    starts_at_utc = Column(DateTime(timezone=True), nullable=False)
    ends_at_utc = Column(DateTime(timezone=True), nullable=False)

    address = Column(Text, nullable=True)
    city = Column(String(128), nullable=True)
    state_prov = Column(String(128), nullable=True)
    country = Column(String(128), nullable=True)
    postal = Column(String(32), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    status = Column(String(16), nullable=False, default="pending")
    notify_topic = Column(String(255), nullable=True)

    series = relationship("Series", backref="occurrences")

    __table_args__ = (
        UniqueConstraint(
            "series_id",
            "starts_at_utc",
            name="uq_occurrences_series_starts_at_utc",
        ),
        Index("ix_occurrences_status_ends_at_utc", "status", "ends_at_utc"),
    )

    def __repr__(self) -> str:
        return (
            f"<Occurrence id={self.id} series_id={self.series_id} "
            f"starts_at_utc={self.starts_at_utc} status={self.status}>"
        )
