"""
Round model: one gated stage of an event.

`sequence_number` is the 0-based position and never changes once the
round exists. `admitted_count` is denormalized so the capacity check can
be a single conditional UPDATE instead of a COUNT under contention.
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin
from app.models.enums import EligibilityRule, Outcome, sql_in


class Round(Base, TimestampMixin):
    __tablename__ = "rounds"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence_number = Column(Integer, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    eligibility_rule = Column(String(30), nullable=False, default=EligibilityRule.PASSED_PREVIOUS.value)
    capacity = Column(Integer, nullable=True)  # NULL = unbounded
    admitted_count = Column(Integer, nullable=False, default=0)

    event = relationship("Event", back_populates="rounds")

    __table_args__ = (
        UniqueConstraint("event_id", "sequence_number", name="uq_event_round_sequence"),
        CheckConstraint("sequence_number >= 0", name="check_round_sequence_non_negative"),
        CheckConstraint("capacity IS NULL OR capacity > 0", name="check_round_capacity_positive"),
        CheckConstraint("admitted_count >= 0", name="check_round_admitted_non_negative"),
        CheckConstraint(
            "capacity IS NULL OR admitted_count <= capacity",
            name="check_round_admitted_lte_capacity",
        ),
        CheckConstraint(
            f"eligibility_rule IN ({sql_in(EligibilityRule)})",
            name="check_round_eligibility_rule",
        ),
    )

    @property
    def rule(self) -> EligibilityRule:
        return EligibilityRule(self.eligibility_rule)

    @property
    def is_full(self) -> bool:
        return self.capacity is not None and self.admitted_count >= self.capacity

    def is_eligible(self, previous_outcome) -> bool:
        """Whether a participant whose previous-round outcome is given may enter."""
        if self.rule is EligibilityRule.OPEN:
            return True
        return previous_outcome is not None and Outcome(previous_outcome) is Outcome.PASSED

    def __repr__(self) -> str:
        return f"<Round(event={self.event_id}, seq={self.sequence_number}, admitted={self.admitted_count}/{self.capacity})>"
