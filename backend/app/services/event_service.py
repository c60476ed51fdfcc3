"""
Event service: creation, administrative lifecycle and listing.

Administrative transitions:
    draft ──publish──▶ published
      │                    │
      └──────cancel────────┴──▶ cancelled   (only while now < end_date; terminal)
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import EventNotFound, EventNotRunning, InvalidTransition, PermissionDenied, ValidationError
from app.core.logging import get_logger
from app.core.security import Identity
from app.db.locks import lock_event
from app.models.enums import AdministrativeStatus, EligibilityRule
from app.models.event import Event
from app.models.round import Round
from app.schemas.event import EventCreate, RoundCreate
from app.services.concurrency import attempts, claim_event, conflict_backoff
from app.services.interfaces.publisher import DomainEventType
from app.services.publisher import queue_event
from app.services.status_service import as_utc, utc_now

logger = get_logger(__name__)

DEFAULT_ROUND_NAME = "Main round"


def ensure_can_manage(identity: Optional[Identity], event: Event) -> None:
    """None means an internal caller (auto-advance, tooling)."""
    if identity is not None and not identity.can_manage(event.organizer_id):
        raise PermissionDenied(f"Not allowed to manage event {event.id}")


def ensure_running(event: Event) -> None:
    """Drafts have no participants yet and cancelled events are final."""
    if event.status is not AdministrativeStatus.PUBLISHED:
        raise EventNotRunning(event.id, event.administrative_status)


def validate_round_window(event_start: datetime, event_end: datetime, previous: Optional[Round], data: RoundCreate) -> None:
    """Round dates, when given, must sit inside the event and after the previous round."""
    start = as_utc(data.start_date) if data.start_date else None
    end = as_utc(data.end_date) if data.end_date else None
    event_start, event_end = as_utc(event_start), as_utc(event_end)

    if start and start < event_start:
        raise ValidationError(f"Round '{data.name}' cannot start before the event starts")
    if end and end > event_end:
        raise ValidationError(f"Round '{data.name}' cannot end after the event ends")
    if previous is not None and previous.end_date and start and start <= as_utc(previous.end_date):
        raise ValidationError(f"Round '{data.name}' must start after '{previous.name}' ends")


def build_round(sequence_number: int, data: RoundCreate, capacity: Optional[int] = None) -> Round:
    return Round(
        sequence_number=sequence_number,
        name=data.name,
        description=data.description,
        start_date=data.start_date,
        end_date=data.end_date,
        capacity=data.capacity if data.capacity is not None else capacity,
        admitted_count=0,
        eligibility_rule=(EligibilityRule.OPEN if sequence_number == 0 else EligibilityRule.PASSED_PREVIOUS).value,
    )


async def create_event(db: AsyncSession, event_data: EventCreate, organizer_id: int) -> Event:
    """Create a draft event. Without explicit rounds it gets a single round 0."""
    requested = event_data.rounds or [RoundCreate(name=DEFAULT_ROUND_NAME)]

    rounds = []
    for sequence_number, round_data in enumerate(requested):
        validate_round_window(
            event_data.start_date, event_data.end_date, rounds[-1] if rounds else None, round_data
        )
        # max_participants caps round 0 unless that round sets its own capacity
        cap = event_data.max_participants if sequence_number == 0 else None
        rounds.append(build_round(sequence_number, round_data, cap))

    event = Event(
        title=event_data.title,
        description=event_data.description,
        venue=event_data.venue,
        start_date=event_data.start_date,
        end_date=event_data.end_date,
        administrative_status=AdministrativeStatus.DRAFT.value,
        organizer_id=organizer_id,
        current_round_index=0,
        certificate_sequence=0,
        version=1,
        rounds=rounds,
    )
    db.add(event)
    await db.flush()

    logger.info("event_created", event_id=event.id, title=event.title, rounds=len(rounds))
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    """Get a single event by ID, rounds included."""
    result = await db.execute(
        select(Event)
        .where(Event.id == event_id)
        .options(selectinload(Event.rounds))
        .execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()

    if not event:
        raise EventNotFound(event_id)
    return event


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    status: Optional[AdministrativeStatus] = None,
) -> tuple[list[Event], int]:
    """
    List events with pagination, soonest first.
    Drafts are only listed when asked for explicitly.
    Uses the ix_events_status_start composite index.
    """
    query = select(Event)

    if status is not None:
        query = query.where(Event.administrative_status == AdministrativeStatus(status).value)
    else:
        query = query.where(Event.administrative_status != AdministrativeStatus.DRAFT.value)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    events_query = (
        query
        .options(selectinload(Event.rounds))
        .order_by(Event.start_date.asc(), Event.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(events_query)
    events = list(result.scalars().all())

    return events, total


async def publish_event(db: AsyncSession, event_id: int, identity: Optional[Identity] = None) -> Event:
    for attempt in attempts():
        event = await lock_event(db, event_id)
        ensure_can_manage(identity, event)

        if event.status is not AdministrativeStatus.DRAFT:
            raise InvalidTransition(event.status.value, AdministrativeStatus.PUBLISHED.value)

        if await claim_event(db, event):
            break
        await conflict_backoff(attempt, "event", event_id=event_id)

    event.administrative_status = AdministrativeStatus.PUBLISHED.value
    event.published_at = utc_now()
    await db.flush()

    queue_event(db, DomainEventType.EVENT_PUBLISHED, event_id=event.id, title=event.title)
    logger.info("event_published", event_id=event.id)
    return event


async def cancel_event(
    db: AsyncSession,
    event_id: int,
    identity: Optional[Identity] = None,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Event:
    now = as_utc(now or utc_now())

    for attempt in attempts():
        event = await lock_event(db, event_id)
        ensure_can_manage(identity, event)

        if event.status is AdministrativeStatus.CANCELLED:
            raise InvalidTransition(event.status.value, AdministrativeStatus.CANCELLED.value)
        if now >= as_utc(event.end_date):
            raise InvalidTransition("ended", AdministrativeStatus.CANCELLED.value)

        if await claim_event(db, event):
            break
        await conflict_backoff(attempt, "event", event_id=event_id)

    event.administrative_status = AdministrativeStatus.CANCELLED.value
    event.cancelled_at = now
    await db.flush()

    queue_event(db, DomainEventType.EVENT_CANCELLED, event_id=event.id, reason=reason)
    logger.info("event_cancelled", event_id=event.id, reason=reason)
    return event
