"""
Registration endpoints: enrollment and round outcome recording.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.enums import RegistrationStatus
from app.schemas.registration import (
    OutcomeCreate,
    OutcomeResultResponse,
    RegistrationCreate,
    RegistrationListResponse,
    RegistrationResponse,
)
from app.services.event_service import ensure_can_manage, get_event
from app.services.registration_service import (
    ensure_can_view,
    get_registration,
    list_event_registrations,
    list_participant_registrations,
    record_outcome,
    register,
)
from app.services.cache_service import invalidate_event_cache
from app.core.security import Identity, get_current_identity, require_organizer
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/registrations", tags=["Registrations"])


@router.post("/", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def create_registration(
    registration_data: RegistrationCreate,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """
    Register the caller for a published event.

    Admission to round 0 is concurrency-safe: when two participants race
    for the last slot exactly one gets it and the other receives a 409
    capacity_exceeded.
    """
    registration = await register(db, registration_data.event_id, identity.user_id)
    # Round 0 admitted count changed
    await invalidate_event_cache()
    return registration


@router.get("/me", response_model=RegistrationListResponse)
async def list_my_registrations(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Get all registrations of the authenticated participant."""
    registrations = await list_participant_registrations(db, identity.user_id)
    return RegistrationListResponse(
        registrations=[RegistrationResponse.model_validate(r) for r in registrations],
        total=len(registrations),
    )


@router.get("/event/{event_id}", response_model=RegistrationListResponse)
async def list_registrations_for_event(
    event_id: int,
    status_filter: Optional[RegistrationStatus] = Query(None, alias="status"),
    identity: Identity = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    ensure_can_manage(identity, await get_event(db, event_id))
    registrations = await list_event_registrations(db, event_id, status_filter)
    return RegistrationListResponse(
        registrations=[RegistrationResponse.model_validate(r) for r in registrations],
        total=len(registrations),
    )


@router.get("/{registration_id}", response_model=RegistrationResponse)
async def get_registration_endpoint(
    registration_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    registration = await get_registration(db, registration_id)
    await ensure_can_view(db, identity, registration)
    return registration


@router.post("/{registration_id}/outcomes", response_model=OutcomeResultResponse)
async def record_outcome_endpoint(
    registration_id: int,
    outcome_data: OutcomeCreate,
    identity: Identity = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    """
    Record passed / failed / eliminated for the registration's current round.
    A final-round pass completes the registration and issues its certificate.
    """
    result = await record_outcome(
        db,
        registration_id,
        outcome_data.round_sequence_number,
        outcome_data.outcome,
        identity=identity,
    )
    await invalidate_event_cache()
    return OutcomeResultResponse(
        registration=RegistrationResponse.model_validate(result.registration),
        event_round_index=result.event.current_round_index,
        certificate_number=result.certificate.certificate_number if result.certificate else None,
    )
