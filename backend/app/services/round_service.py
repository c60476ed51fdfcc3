"""
Round tracker: which round of an event is active, and moving it.

Moves are serialized per event: the event row is locked (PostgreSQL) and
the move claims `events.version`, the same claim registration uses, so an
advance can never interleave with an admission on the same event.
"""

from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AtInitialRound, InvalidTransition, NoFurtherRounds, RoundNotFound, StaleRoundIndex
from app.core.logging import get_logger
from app.core.metrics import record_round_move
from app.core.security import Identity
from app.db.locks import lock_event
from app.models.enums import AdministrativeStatus, Outcome, RegistrationStatus
from app.models.event import Event
from app.models.registration import Registration, RoundOutcome
from app.schemas.event import RoundCreate, RoundOutcomeCounts, RoundSummary, RoundSummaryResponse
from app.services.concurrency import attempts, claim_event, conflict_backoff
from app.services.event_service import build_round, ensure_can_manage, ensure_running, get_event, validate_round_window
from app.services.interfaces.publisher import DomainEventType
from app.services.publisher import queue_event

logger = get_logger(__name__)


async def advance_round(
    db: AsyncSession,
    event_id: int,
    expected_index: Optional[int] = None,
    trigger: str = "manual",
    identity: Optional[Identity] = None,
) -> Event:
    """
    Move the event to its next round.

    With `expected_index`, an event that has already moved past that index
    is returned unchanged; this makes the losing side of two concurrent
    advances a no-op instead of a double step. An index ahead of the event
    (it was rolled back meanwhile) raises StaleRoundIndex.
    """
    for attempt in attempts():
        event = await lock_event(db, event_id)
        ensure_can_manage(identity, event)
        ensure_running(event)

        if expected_index is not None and event.current_round_index > expected_index:
            logger.info(
                "round_advance_skipped",
                event_id=event_id,
                expected_index=expected_index,
                current_index=event.current_round_index,
            )
            return event
        if expected_index is not None and event.current_round_index < expected_index:
            raise StaleRoundIndex(event_id, expected_index, event.current_round_index)

        if event.current_round_index + 1 >= len(event.rounds):
            raise NoFurtherRounds(event_id, event.current_round_index)

        if await claim_event(db, event):
            break
        await conflict_backoff(attempt, "event", event_id=event_id)

    previous_index = event.current_round_index
    event.current_round_index = previous_index + 1
    await db.flush()

    record_round_move("advance", trigger)
    queue_event(
        db,
        DomainEventType.ROUND_ADVANCED,
        event_id=event.id,
        from_index=previous_index,
        to_index=event.current_round_index,
        trigger=trigger,
    )
    logger.info(
        "round_advanced",
        event_id=event.id,
        from_index=previous_index,
        to_index=event.current_round_index,
        trigger=trigger,
    )
    return event


async def rollback_round(db: AsyncSession, event_id: int, identity: Optional[Identity] = None) -> Event:
    """Step the event back one round. Recorded outcomes are kept."""
    for attempt in attempts():
        event = await lock_event(db, event_id)
        ensure_can_manage(identity, event)
        ensure_running(event)

        if event.current_round_index == 0:
            raise AtInitialRound(event_id)

        if await claim_event(db, event):
            break
        await conflict_backoff(attempt, "event", event_id=event_id)

    previous_index = event.current_round_index
    event.current_round_index = previous_index - 1
    await db.flush()

    record_round_move("rollback", "manual")
    queue_event(
        db,
        DomainEventType.ROUND_ROLLED_BACK,
        event_id=event.id,
        from_index=previous_index,
        to_index=event.current_round_index,
    )
    logger.info("round_rolled_back", event_id=event.id, from_index=previous_index, to_index=event.current_round_index)
    return event


async def count_pending(db: AsyncSession, event_id: int, sequence_number: int) -> int:
    result = await db.execute(
        select(func.count(RoundOutcome.id)).where(
            RoundOutcome.event_id == event_id,
            RoundOutcome.sequence_number == sequence_number,
            RoundOutcome.outcome == Outcome.PENDING.value,
        )
    )
    return result.scalar()


async def maybe_auto_advance(db: AsyncSession, event: Event, sequence_number: int) -> Event:
    """
    Advance once every participant of the current round is resolved.

    Only the event's current round triggers this; outcomes recorded for an
    earlier round (after a manual advance) never move the event.
    """
    if sequence_number != event.current_round_index:
        return event
    if event.current_round_index + 1 >= len(event.rounds):
        return event

    pending = await count_pending(db, event.id, sequence_number)
    if pending:
        logger.debug("round_still_pending", event_id=event.id, round=sequence_number, pending=pending)
        return event

    return await advance_round(db, event.id, expected_index=sequence_number, trigger="auto")


async def add_round(
    db: AsyncSession,
    event_id: int,
    round_data: RoundCreate,
    identity: Optional[Identity] = None,
) -> Event:
    """Append a round after the current last one."""
    for attempt in attempts():
        event = await lock_event(db, event_id)
        ensure_can_manage(identity, event)

        if event.status is AdministrativeStatus.CANCELLED:
            raise InvalidTransition(event.status.value, "round added")

        previous = event.rounds[-1] if event.rounds else None
        validate_round_window(event.start_date, event.end_date, previous, round_data)

        if await claim_event(db, event):
            break
        await conflict_backoff(attempt, "event", event_id=event_id)

    new_round = build_round(len(event.rounds), round_data)
    event.rounds.append(new_round)
    await db.flush()

    logger.info("round_added", event_id=event.id, sequence_number=new_round.sequence_number, name=new_round.name)
    return event


async def round_summary(db: AsyncSession, event_id: int, identity: Optional[Identity] = None) -> RoundSummaryResponse:
    """Per-round admitted counts and outcome tallies for the organizer view."""
    event = await get_event(db, event_id)
    ensure_can_manage(identity, event)

    result = await db.execute(
        select(RoundOutcome.sequence_number, RoundOutcome.outcome, func.count(RoundOutcome.id))
        .where(RoundOutcome.event_id == event_id)
        .group_by(RoundOutcome.sequence_number, RoundOutcome.outcome)
    )
    tallies: dict[int, dict[str, int]] = {}
    for sequence_number, outcome, count in result.all():
        tallies.setdefault(sequence_number, {})[outcome] = count

    rounds = [
        RoundSummary(
            sequence_number=r.sequence_number,
            name=r.name,
            capacity=r.capacity,
            admitted_count=r.admitted_count,
            is_current=r.sequence_number == event.current_round_index,
            outcomes=RoundOutcomeCounts(**tallies.get(r.sequence_number, {})),
        )
        for r in event.rounds
    ]
    return RoundSummaryResponse(event_id=event.id, current_round_index=event.current_round_index, rounds=rounds)


async def list_round_participants(
    db: AsyncSession,
    event_id: int,
    sequence_number: int,
    identity: Optional[Identity] = None,
) -> list[Registration]:
    """Active registrations still waiting for an outcome in the given round."""
    event = await get_event(db, event_id)
    ensure_can_manage(identity, event)
    if event.round_at(sequence_number) is None:
        raise RoundNotFound(event_id, sequence_number)

    # An active registration's only pending row is its current round
    result = await db.execute(
        select(Registration)
        .join(RoundOutcome, RoundOutcome.registration_id == Registration.id)
        .where(
            Registration.event_id == event_id,
            Registration.status == RegistrationStatus.ACTIVE.value,
            RoundOutcome.sequence_number == sequence_number,
            RoundOutcome.outcome == Outcome.PENDING.value,
        )
        .order_by(Registration.id.asc())
    )
    return list(result.scalars().all())
