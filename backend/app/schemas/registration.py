"""
Pydantic schemas for registration and round-outcome request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from app.models.enums import Outcome, RegistrationStatus


class RegistrationCreate(BaseModel):
    event_id: int = Field(..., gt=0)


class OutcomeCreate(BaseModel):
    round_sequence_number: int = Field(..., ge=0)
    # Checked by the ledger so unknown values surface as invalid_outcome
    outcome: str = Field(..., max_length=20)


class RoundOutcomeResponse(BaseModel):
    sequence_number: int
    outcome: Outcome

    model_config = {"from_attributes": True}


class RegistrationResponse(BaseModel):
    id: int
    registration_number: str
    event_id: int
    participant_id: int
    status: RegistrationStatus
    current_round: Optional[int]
    eliminated_in_round: Optional[int]
    outcomes: list[RoundOutcomeResponse]
    created_at: datetime

    model_config = {"from_attributes": True}


class OutcomeResultResponse(BaseModel):
    registration: RegistrationResponse
    event_round_index: int
    certificate_number: Optional[str] = None


class RegistrationListResponse(BaseModel):
    registrations: list[RegistrationResponse]
    total: int


class RoundOutcomeEntry(BaseModel):
    registration_id: int = Field(..., gt=0)
    outcome: str = Field(..., max_length=20)


class RoundOutcomesCreate(BaseModel):
    outcomes: list[RoundOutcomeEntry] = Field(..., min_length=1, max_length=500)


class RoundOutcomesResponse(BaseModel):
    registrations: list[RegistrationResponse]
    event_round_index: int
    certificate_numbers: list[str]
