"""
Event endpoints: catalog, administrative lifecycle and round control.
List operations are cached in Redis; the display status never is.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.enums import AdministrativeStatus
from app.schemas.event import (
    AdvanceRoundRequest,
    CancelEventRequest,
    EventCreate,
    EventListResponse,
    EventResponse,
    RoundCreate,
    RoundSummaryResponse,
)
from app.schemas.registration import (
    RegistrationListResponse,
    RegistrationResponse,
    RoundOutcomesCreate,
    RoundOutcomesResponse,
)
from app.services.event_service import cancel_event, create_event, get_event, list_events, publish_event
from app.services.registration_service import record_outcomes
from app.services.round_service import (
    add_round,
    advance_round,
    list_round_participants,
    rollback_round,
    round_summary,
)
from app.services.cache_service import invalidate_event_cache, read_listing, store_listing
from app.core.security import Identity, require_organizer
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    identity: Identity = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    """Create a draft event with its rounds. Requires the organizer role."""
    event = await create_event(db, event_data, identity.user_id)
    await invalidate_event_cache()
    return event


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: Optional[AdministrativeStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    """
    List events with pagination, soonest first.
    Pages are cached in Redis for 5 minutes; the status label is derived
    again on every response, cached or not.
    """
    status_key = status_filter.value if status_filter else None

    # Try cache first
    cached = await read_listing(page, page_size, status_key)
    if cached:
        logger.info("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListResponse(**cached)

    # Cache miss - query database
    events, total = await list_events(db, page, page_size, status_filter)

    response_data = {
        "events": [
            EventResponse.model_validate(e).model_dump(mode="json", exclude={"status"}) for e in events
        ],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }

    # Store in cache for next request
    await store_listing(page, page_size, status_key, response_data)

    return EventListResponse(**response_data)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a single event by ID. Not cached (round index and counts must be live)."""
    return await get_event(db, event_id)


@router.post("/{event_id}/publish", response_model=EventResponse)
async def publish_event_endpoint(
    event_id: int,
    identity: Identity = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    event = await publish_event(db, event_id, identity)
    await invalidate_event_cache()
    return event


@router.post("/{event_id}/cancel", response_model=EventResponse)
async def cancel_event_endpoint(
    event_id: int,
    body: Optional[CancelEventRequest] = None,
    identity: Identity = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    """Cancel an event that has not ended yet. Cancellation is final."""
    event = await cancel_event(db, event_id, identity, reason=body.reason if body else None)
    await invalidate_event_cache()
    return event


@router.post("/{event_id}/rounds", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def add_round_endpoint(
    event_id: int,
    round_data: RoundCreate,
    identity: Identity = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    event = await add_round(db, event_id, round_data, identity)
    await invalidate_event_cache()
    return event


@router.get("/{event_id}/rounds/summary", response_model=RoundSummaryResponse)
async def round_summary_endpoint(
    event_id: int,
    identity: Identity = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    """Admitted counts and outcome tallies per round."""
    return await round_summary(db, event_id, identity)


@router.post("/{event_id}/rounds/advance", response_model=EventResponse)
async def advance_round_endpoint(
    event_id: int,
    body: AdvanceRoundRequest,
    identity: Identity = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    """
    Move the event to its next round, even with participants still pending.
    `expected_index` is the round the caller saw: when the event has already
    moved past it (a concurrent or repeated click) nothing happens.
    """
    event = await advance_round(db, event_id, expected_index=body.expected_index, identity=identity)
    await invalidate_event_cache()
    return event


@router.post("/{event_id}/rounds/rollback", response_model=EventResponse)
async def rollback_round_endpoint(
    event_id: int,
    identity: Identity = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    event = await rollback_round(db, event_id, identity)
    await invalidate_event_cache()
    return event


@router.get("/{event_id}/rounds/{sequence_number}/participants", response_model=RegistrationListResponse)
async def round_participants_endpoint(
    event_id: int,
    sequence_number: int,
    identity: Identity = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    """Active participants still waiting for an outcome in this round."""
    registrations = await list_round_participants(db, event_id, sequence_number, identity)
    return RegistrationListResponse(
        registrations=[RegistrationResponse.model_validate(r) for r in registrations],
        total=len(registrations),
    )


@router.post("/{event_id}/rounds/{sequence_number}/outcomes", response_model=RoundOutcomesResponse)
async def record_round_outcomes_endpoint(
    event_id: int,
    sequence_number: int,
    body: RoundOutcomesCreate,
    identity: Identity = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    """
    Record outcomes for several registrations of one round at once.
    Either every entry is recorded or none is.
    """
    batch = await record_outcomes(
        db,
        event_id,
        sequence_number,
        [(entry.registration_id, entry.outcome) for entry in body.outcomes],
        identity=identity,
    )
    await invalidate_event_cache()
    return RoundOutcomesResponse(
        registrations=[RegistrationResponse.model_validate(r.registration) for r in batch.results],
        event_round_index=batch.event.current_round_index,
        certificate_numbers=[r.certificate.certificate_number for r in batch.results if r.certificate],
    )
