"""
Registration ledger: enrollment and round-by-round progress of participants.

CONCURRENCY STRATEGY: event claim + guarded capacity counter
=============================================================

Problem:
  Two participants register for the last slot of round 0 at the same
  time. Both read admitted_count = capacity - 1, both insert.
  Result: the round is over capacity.

Solution:
  1. Lock and read the event (FOR UPDATE on PostgreSQL)
  2. UPDATE events SET version = version + 1
     WHERE id = :event_id AND version = :version_we_read
  3. UPDATE rounds SET admitted_count = admitted_count + 1
     WHERE id = :round_id AND (capacity IS NULL OR admitted_count < capacity)
  4. If step 2 hits no row, someone else moved first -> re-read and retry.
     If step 3 hits no row, the round is full -> CapacityExceeded.

  The unique constraint on (participant_id, event_id) stops duplicate
  inserts from the same participant, and the CHECK constraint
  admitted_count <= capacity is the final safety net.

Outcomes are recorded against the registration's version instead: two
judges resolving the same round for the same participant cannot both win.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AlreadyRegistered,
    CapacityExceeded,
    EventNotOpen,
    InvalidOutcome,
    LifecycleError,
    OutOfSequence,
    ParticipantInactive,
    ParticipantNotFound,
    PermissionDenied,
    RegistrationNotFound,
)
from app.core.logging import get_logger
from app.core.metrics import record_outcome as record_outcome_metric
from app.core.metrics import record_registration_attempt, registration_latency
from app.core.security import Identity
from app.db.locks import lock_event, lock_registration
from app.models.certificate import Certificate
from app.models.enums import AdministrativeStatus, Outcome, RegistrationStatus
from app.models.event import Event
from app.models.registration import Registration, RoundOutcome
from app.models.user import User
from app.services.certificate_service import issue_certificate
from app.services.concurrency import admit_to_round, attempts, claim_event, claim_registration, conflict_backoff
from app.services.event_service import ensure_can_manage, ensure_running, get_event
from app.services.interfaces.publisher import DomainEventType
from app.services.publisher import queue_event
from app.services.round_service import maybe_auto_advance
from app.services.status_service import as_utc, utc_now

logger = get_logger(__name__)


@dataclass
class OutcomeResult:
    registration: Registration
    event: Event
    certificate: Optional[Certificate] = None


@dataclass
class BatchOutcomeResult:
    event: Event
    results: list[OutcomeResult]


def registration_number(event_id: int, participant_id: int) -> str:
    return f"REG-{event_id}-{participant_id}"


async def register(
    db: AsyncSession,
    event_id: int,
    participant_id: int,
    now: Optional[datetime] = None,
) -> Registration:
    """
    Register a participant for an event, admitting them to round 0.
    Retries up to MAX_RETRY_ATTEMPTS on version conflicts.
    """
    started = time.perf_counter()
    try:
        registration = await _admit(db, event_id, participant_id, as_utc(now or utc_now()))
    except LifecycleError as exc:
        record_registration_attempt(exc.code)
        raise
    registration_latency.observe(time.perf_counter() - started)
    record_registration_attempt("success")
    return registration


async def _admit(db: AsyncSession, event_id: int, participant_id: int, now: datetime) -> Registration:
    # Tokens are minted by the auth service; the directory row may be gone or deactivated
    participant = await db.get(User, participant_id)
    if participant is None:
        raise ParticipantNotFound(participant_id)
    if not participant.is_active:
        raise ParticipantInactive(participant_id)

    # Check for existing registration (idempotency)
    existing = await db.execute(
        select(Registration.id).where(
            Registration.participant_id == participant_id,
            Registration.event_id == event_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise AlreadyRegistered(event_id, participant_id)

    for attempt in attempts():
        event = await lock_event(db, event_id)

        if event.status is not AdministrativeStatus.PUBLISHED or now > as_utc(event.end_date):
            logger.warning(
                "registration_rejected_not_open",
                event_id=event_id,
                administrative_status=event.administrative_status,
            )
            raise EventNotOpen(f"Event {event_id} is not open for registration")

        first_round = event.rounds[0]
        if first_round.is_full:
            logger.warning(
                "registration_failed_capacity",
                event_id=event_id,
                capacity=first_round.capacity,
                admitted=first_round.admitted_count,
            )
            raise CapacityExceeded(event_id, first_round.sequence_number, first_round.capacity)

        if await claim_event(db, event):
            break
        await conflict_backoff(attempt, "event", event_id=event_id, participant_id=participant_id)

    if not await admit_to_round(db, first_round):
        raise CapacityExceeded(event_id, first_round.sequence_number, first_round.capacity)

    registration = Registration(
        registration_number=registration_number(event_id, participant_id),
        participant_id=participant_id,
        event_id=event_id,
        status=RegistrationStatus.ACTIVE.value,
        version=1,
        outcomes=[
            RoundOutcome(event_id=event_id, sequence_number=0, outcome=Outcome.PENDING.value),
        ],
    )
    db.add(registration)
    try:
        await db.flush()
    except IntegrityError as exc:
        if "unique" not in str(exc.orig).lower():
            raise
        # Same participant raced itself past the pre-check
        raise AlreadyRegistered(event_id, participant_id) from exc

    queue_event(
        db,
        DomainEventType.REGISTRATION_CREATED,
        registration_id=registration.id,
        event_id=event_id,
        participant_id=participant_id,
    )
    logger.info(
        "registration_created",
        registration_id=registration.id,
        registration_number=registration.registration_number,
        event_id=event_id,
        participant_id=participant_id,
        attempt=attempt,
    )
    return registration


def parse_outcome(value) -> Outcome:
    """Only resolved outcomes can be recorded; pending is set by the engine."""
    try:
        outcome = Outcome(value)
    except ValueError:
        raise InvalidOutcome(value) from None
    if not outcome.is_resolved:
        raise InvalidOutcome(outcome.value)
    return outcome


def check_sequence(registration: Registration, event: Event, sequence_number: int) -> RoundOutcome:
    """The round must be the registration's current, unresolved and opened round."""
    if registration.registration_status.is_terminal:
        raise OutOfSequence(f"Registration {registration.id} is already {registration.status}")

    row = registration.outcome_row(sequence_number)
    if row is None or sequence_number != registration.current_round or Outcome(row.outcome).is_resolved:
        raise OutOfSequence(
            f"Round {sequence_number} is not the current round of registration {registration.id} "
            f"(current: {registration.current_round})"
        )

    if sequence_number > event.current_round_index:
        raise OutOfSequence(f"Round {sequence_number} of event {event.id} has not started yet")
    return row


async def record_outcome(
    db: AsyncSession,
    registration_id: int,
    round_sequence_number: int,
    outcome,
    identity: Optional[Identity] = None,
) -> OutcomeResult:
    """
    Resolve one round for one registration.

    passed, not final   -> next round opened as pending (its capacity applies)
    passed, final       -> registration completed, certificate issued
    failed / eliminated -> registration eliminated
    Afterwards the event advances by itself once nobody is pending in its
    current round.
    """
    outcome = parse_outcome(outcome)
    result = await _resolve(db, registration_id, round_sequence_number, outcome, identity)
    result.event = await maybe_auto_advance(db, result.event, round_sequence_number)
    return result


async def record_outcomes(
    db: AsyncSession,
    event_id: int,
    round_sequence_number: int,
    entries: list[tuple[int, str]],
    identity: Optional[Identity] = None,
) -> BatchOutcomeResult:
    """
    Resolve one round for several registrations of the same event.

    All entries share the caller's transaction: one rejected entry rejects
    the whole batch. The automatic advance is checked once, at the end.
    """
    parsed = [(registration_id, parse_outcome(outcome)) for registration_id, outcome in entries]
    results = [
        await _resolve(db, registration_id, round_sequence_number, outcome, identity, event_id=event_id)
        for registration_id, outcome in parsed
    ]

    if results:
        event = results[-1].event
    else:
        event = await get_event(db, event_id)
        ensure_can_manage(identity, event)
    event = await maybe_auto_advance(db, event, round_sequence_number)
    logger.info("round_outcomes_recorded", event_id=event_id, round=round_sequence_number, count=len(results))
    return BatchOutcomeResult(event=event, results=results)


async def _resolve(
    db: AsyncSession,
    registration_id: int,
    round_sequence_number: int,
    outcome: Outcome,
    identity: Optional[Identity],
    event_id: Optional[int] = None,
) -> OutcomeResult:
    registration = await get_registration(db, registration_id)
    if event_id is not None and registration.event_id != event_id:
        raise RegistrationNotFound(registration_id)

    for attempt in attempts():
        event = await lock_event(db, registration.event_id)
        ensure_can_manage(identity, event)
        ensure_running(event)
        registration = await lock_registration(db, registration_id)
        row = check_sequence(registration, event, round_sequence_number)

        if await claim_registration(db, registration):
            break
        await conflict_backoff(attempt, "registration", registration_id=registration_id)

    row.outcome = outcome.value
    record_outcome_metric(outcome.value)
    certificate = None

    if outcome is Outcome.PASSED and round_sequence_number == event.final_round_index:
        registration.status = RegistrationStatus.COMPLETED.value
        await db.flush()
        certificate = await issue_certificate(db, registration)
        queue_event(
            db,
            DomainEventType.REGISTRATION_COMPLETED,
            registration_id=registration.id,
            event_id=registration.event_id,
            participant_id=registration.participant_id,
            certificate_number=certificate.certificate_number,
        )
    elif outcome is Outcome.PASSED:
        next_round = event.round_at(round_sequence_number + 1)
        if not next_round.is_eligible(outcome):
            raise OutOfSequence(f"Registration {registration.id} is not eligible for round {next_round.sequence_number}")
        if not await admit_to_round(db, next_round):
            raise CapacityExceeded(event.id, next_round.sequence_number, next_round.capacity)
        registration.outcomes.append(
            RoundOutcome(
                event_id=registration.event_id,
                sequence_number=next_round.sequence_number,
                outcome=Outcome.PENDING.value,
            )
        )
    else:
        registration.status = RegistrationStatus.ELIMINATED.value
        registration.eliminated_in_round = round_sequence_number

    await db.flush()
    logger.info(
        "round_outcome_recorded",
        registration_id=registration.id,
        event_id=registration.event_id,
        round=round_sequence_number,
        outcome=outcome.value,
        registration_status=registration.status,
    )
    return OutcomeResult(registration=registration, event=event, certificate=certificate)


async def get_registration(db: AsyncSession, registration_id: int) -> Registration:
    result = await db.execute(
        select(Registration)
        .where(Registration.id == registration_id)
        .execution_options(populate_existing=True)
    )
    registration = result.scalar_one_or_none()
    if registration is None:
        raise RegistrationNotFound(registration_id)
    return registration


async def ensure_can_view(db: AsyncSession, identity: Identity, registration: Registration) -> None:
    """Participants see their own registrations; organizers those of their events."""
    if identity.user_id == registration.participant_id:
        return
    event = await get_event(db, registration.event_id)
    if not identity.can_manage(event.organizer_id):
        raise PermissionDenied(f"Not allowed to view registration {registration.id}")


async def list_participant_registrations(db: AsyncSession, participant_id: int) -> list[Registration]:
    """Get all registrations of a participant, newest first."""
    result = await db.execute(
        select(Registration)
        .where(Registration.participant_id == participant_id)
        .order_by(Registration.created_at.desc(), Registration.id.desc())
    )
    return list(result.scalars().all())


async def list_event_registrations(
    db: AsyncSession,
    event_id: int,
    status: Optional[RegistrationStatus] = None,
) -> list[Registration]:
    query = select(Registration).where(Registration.event_id == event_id)
    if status is not None:
        query = query.where(Registration.status == RegistrationStatus(status).value)
    result = await db.execute(query.order_by(Registration.id.asc()))
    return list(result.scalars().all())
