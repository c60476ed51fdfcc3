"""
Certificate model: immutable proof that a participant completed an event.

Key design decisions:
- Unique constraint on (event_id, participant_id) is the backstop that keeps
  issuance idempotent even when two issuers race
- `certificate_number` and `verification_code` are both uniquely indexed so
  verification is a single index lookup whichever one is presented
- Revocation is a flag; certificates are never deleted
"""

import secrets

from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, ForeignKey, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin, utcnow


def generate_verification_code() -> str:
    """128 random bits, hex-encoded. Unrelated to the certificate number."""
    return secrets.token_hex(16).upper()


class Certificate(Base, TimestampMixin):
    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, index=True)
    certificate_number = Column(String(64), nullable=False, unique=True, index=True)
    verification_code = Column(
        String(64), nullable=False, unique=True, index=True, default=generate_verification_code
    )
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    participant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    registration_id = Column(Integer, ForeignKey("registrations.id"), nullable=False)
    issued_date = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    revoked = Column(Boolean, nullable=False, default=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_reason = Column(String(500), nullable=True)

    event = relationship("Event", lazy="selectin")
    participant = relationship("User", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("event_id", "participant_id", name="uq_event_participant_certificate"),
    )

    def __repr__(self) -> str:
        return f"<Certificate(number={self.certificate_number}, event={self.event_id}, participant={self.participant_id})>"
