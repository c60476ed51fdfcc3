"""
Registration model: a participant's enrollment and round progress for one event.

Key design decisions:
- Unique constraint on (participant_id, event_id) prevents duplicate registrations
- Round outcomes live in their own table, one row per reached round, so the
  "no entry for round N unless N-1 passed" rule is checkable row by row
- `version` column guards outcome recording against concurrent writers
"""

from sqlalchemy import (
    Column, Integer, String, ForeignKey, UniqueConstraint, CheckConstraint, Index,
)
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin
from app.models.enums import Outcome, RegistrationStatus, sql_in


class Registration(Base, TimestampMixin):
    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, index=True)
    registration_number = Column(String(64), nullable=False, unique=True)
    participant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=RegistrationStatus.ACTIVE.value)
    eliminated_in_round = Column(Integer, nullable=True)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    participant = relationship("User", back_populates="registrations")
    outcomes = relationship(
        "RoundOutcome",
        back_populates="registration",
        order_by="RoundOutcome.sequence_number",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("participant_id", "event_id", name="uq_participant_event_registration"),
        CheckConstraint(
            f"status IN ({sql_in(RegistrationStatus)})",
            name="check_registration_status",
        ),
        Index("ix_registrations_event_status", "event_id", "status"),
    )

    @property
    def registration_status(self) -> RegistrationStatus:
        return RegistrationStatus(self.status)

    @property
    def round_outcomes(self) -> dict:
        """Ordered mapping of round sequence number to outcome."""
        return {row.sequence_number: Outcome(row.outcome) for row in self.outcomes}

    @property
    def current_round(self):
        """The highest round reached; None only before round 0 is opened."""
        if not self.outcomes:
            return None
        return self.outcomes[-1].sequence_number

    def outcome_row(self, sequence_number: int):
        for row in self.outcomes:
            if row.sequence_number == sequence_number:
                return row
        return None

    def __repr__(self) -> str:
        return (
            f"<Registration(id={self.id}, participant={self.participant_id}, "
            f"event={self.event_id}, status={self.status})>"
        )


class RoundOutcome(Base, TimestampMixin):
    __tablename__ = "round_outcomes"

    id = Column(Integer, primary_key=True, index=True)
    registration_id = Column(
        Integer, ForeignKey("registrations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Denormalized so "who is still pending in round N of event E" is one indexed query
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    sequence_number = Column(Integer, nullable=False)
    outcome = Column(String(20), nullable=False, default=Outcome.PENDING.value)

    registration = relationship("Registration", back_populates="outcomes")

    __table_args__ = (
        UniqueConstraint("registration_id", "sequence_number", name="uq_registration_round_outcome"),
        CheckConstraint("sequence_number >= 0", name="check_outcome_sequence_non_negative"),
        CheckConstraint(f"outcome IN ({sql_in(Outcome)})", name="check_round_outcome_value"),
        Index("ix_round_outcomes_event_round_outcome", "event_id", "sequence_number", "outcome"),
    )

    def __repr__(self) -> str:
        return f"<RoundOutcome(registration={self.registration_id}, round={self.sequence_number}, outcome={self.outcome})>"
