"""
Row locks for the per-event critical sections.

`register` and `advance_round` on the same event must not interleave.
On PostgreSQL the event row is held with SELECT ... FOR UPDATE for the
rest of the transaction. Backends without row locks (SQLite) ignore the
clause; there the compare-and-swap on `events.version` done by the
services is what serialises writers.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import EventNotFound, RegistrationNotFound
from app.models.event import Event
from app.models.registration import Registration


async def lock_event(db: AsyncSession, event_id: int) -> Event:
    """
    Load an event with its rounds and lock its row.

    populate_existing makes retries after a rollback see fresh counters
    instead of the identity map's stale copy.
    """
    result = await db.execute(
        select(Event)
        .where(Event.id == event_id)
        .options(selectinload(Event.rounds))
        .with_for_update(of=Event)
        .execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()
    if event is None:
        raise EventNotFound(event_id)
    return event


async def lock_registration(db: AsyncSession, registration_id: int) -> Registration:
    result = await db.execute(
        select(Registration)
        .where(Registration.id == registration_id)
        .options(selectinload(Registration.outcomes))
        .with_for_update(of=Registration)
        .execution_options(populate_existing=True)
    )
    registration = result.scalar_one_or_none()
    if registration is None:
        raise RegistrationNotFound(registration_id)
    return registration
