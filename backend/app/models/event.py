"""
Event model with its embedded, ordered rounds.

Key design decisions:
- `administrative_status` is the only stored status; the display status is
  derived on read (app/services/status_service.py) and never persisted
- `current_round_index` points into `rounds` ordered by `sequence_number`
- `version` column enables optimistic locking for registration admission
  and round moves, which must not interleave on the same event
- `certificate_sequence` feeds per-event certificate numbers
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint,
)
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin
from app.models.enums import AdministrativeStatus, sql_in


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    venue = Column(String(255), nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    administrative_status = Column(
        String(20), nullable=False, default=AdministrativeStatus.DRAFT.value
    )
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    current_round_index = Column(Integer, nullable=False, default=0)
    certificate_sequence = Column(Integer, nullable=False, default=0)

    published_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    organizer = relationship("User", back_populates="events")
    rounds = relationship(
        "Round",
        back_populates="event",
        order_by="Round.sequence_number",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("start_date < end_date", name="check_event_dates_ordered"),
        CheckConstraint("current_round_index >= 0", name="check_current_round_non_negative"),
        CheckConstraint("certificate_sequence >= 0", name="check_certificate_sequence_non_negative"),
        CheckConstraint(
            f"administrative_status IN ({sql_in(AdministrativeStatus)})",
            name="check_event_administrative_status",
        ),
        # Listing query: by status, soonest first
        Index("ix_events_status_start", "administrative_status", "start_date"),
    )

    @property
    def status(self) -> AdministrativeStatus:
        return AdministrativeStatus(self.administrative_status)

    @property
    def final_round_index(self) -> int:
        return len(self.rounds) - 1

    def round_at(self, sequence_number: int):
        if 0 <= sequence_number < len(self.rounds):
            return self.rounds[sequence_number]
        return None

    def __repr__(self) -> str:
        return (
            f"<Event(id={self.id}, title={self.title}, status={self.administrative_status}, "
            f"round={self.current_round_index}/{len(self.rounds)})>"
        )
