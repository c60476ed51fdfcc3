"""
Optimistic locking helpers shared by the lifecycle services.

CONCURRENCY STRATEGY: Compare-and-swap on a version column, bounded retry
========================================================================

Problem:
  Two participants register for the last slot at the same time, or an
  organizer advances the round while a registration is being admitted.
  Both read the same event, both decide they may proceed.

Solution:
  Every write that depends on what was read first claims the record:

    UPDATE events SET version = version + 1
    WHERE id = :event_id AND version = :version_we_read

  rowcount == 1 means nobody changed the event since we read it, and
  every later claimant for the same version now fails. rowcount == 0
  means we lost: re-read and decide again. After MAX_RETRY_ATTEMPTS the
  caller gets a ConcurrencyError, which is safe to retry.

  Counters that have a hard ceiling (round capacity) are bumped with a
  guarded UPDATE of their own, so the ceiling holds even if the version
  claim were bypassed. Unique constraints (participant/event pair,
  certificate per pair) are the final backstop.
"""

import asyncio

from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import ConcurrencyError
from app.core.logging import get_logger
from app.core.metrics import record_version_conflict
from app.models.event import Event
from app.models.registration import Registration
from app.models.round import Round

logger = get_logger(__name__)
settings = get_settings()


def attempts() -> range:
    return range(1, settings.MAX_RETRY_ATTEMPTS + 1)


async def conflict_backoff(attempt: int, record: str, **context) -> None:
    """Log and wait after a lost claim; give up on the last attempt."""
    record_version_conflict(record)
    logger.info("version_conflict", record=record, attempt=attempt, **context)
    if attempt >= settings.MAX_RETRY_ATTEMPTS:
        raise ConcurrencyError(f"{record.capitalize()} was modified concurrently, please retry")
    await asyncio.sleep(settings.RETRY_BACKOFF_SECONDS * attempt)


async def claim_event(db: AsyncSession, event: Event) -> bool:
    result = await db.execute(
        update(Event)
        .where(Event.id == event.id, Event.version == event.version)
        .values(version=Event.version + 1)
    )
    return result.rowcount == 1


async def claim_registration(db: AsyncSession, registration: Registration) -> bool:
    result = await db.execute(
        update(Registration)
        .where(Registration.id == registration.id, Registration.version == registration.version)
        .values(version=Registration.version + 1)
    )
    return result.rowcount == 1


async def admit_to_round(db: AsyncSession, round_: Round) -> bool:
    """Take one slot in a round. False when the round is already full."""
    result = await db.execute(
        update(Round)
        .where(
            Round.id == round_.id,
            or_(Round.capacity.is_(None), Round.admitted_count < Round.capacity),
        )
        .values(admitted_count=Round.admitted_count + 1)
    )
    return result.rowcount == 1
