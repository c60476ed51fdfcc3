"""
Pydantic schemas for event- and round-related request/response validation.
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from app.models.enums import AdministrativeStatus, EligibilityRule, StatusLabel, StatusVariant
from app.services.status_service import as_utc, derive_event_status


class RoundCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    capacity: Optional[int] = Field(None, gt=0, le=100000)

    @field_validator("start_date", "end_date")
    @classmethod
    def to_utc(cls, value):
        return as_utc(value).astimezone(timezone.utc) if value else value

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("Round end_date must be after start_date")
        return self


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    venue: Optional[str] = Field(None, max_length=255)
    start_date: datetime
    end_date: datetime
    # Capacity of round 0 unless that round sets its own
    max_participants: Optional[int] = Field(None, gt=0, le=100000)
    rounds: list[RoundCreate] = Field(default_factory=list, max_length=50)

    @field_validator("start_date", "end_date")
    @classmethod
    def to_utc(cls, value):
        # Stored as UTC; SQLite keeps no offset
        return as_utc(value).astimezone(timezone.utc)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class RoundResponse(BaseModel):
    sequence_number: int
    name: str
    description: Optional[str]
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    eligibility_rule: EligibilityRule
    capacity: Optional[int]
    admitted_count: int

    model_config = {"from_attributes": True}


class EventStatusResponse(BaseModel):
    label: StatusLabel
    variant: StatusVariant


class EventResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    venue: Optional[str]
    start_date: datetime
    end_date: datetime
    administrative_status: AdministrativeStatus
    current_round_index: int
    organizer_id: int
    rounds: list[RoundResponse]
    created_at: datetime

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def status(self) -> EventStatusResponse:
        # Recomputed at serialization time, also for cached listings
        view = derive_event_status(self)
        return EventStatusResponse(label=view.label, variant=view.variant)


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False


class CancelEventRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class AdvanceRoundRequest(BaseModel):
    # The round index the caller saw; an event already past it is left as is
    expected_index: int = Field(..., ge=0)


class RoundOutcomeCounts(BaseModel):
    pending: int = 0
    passed: int = 0
    failed: int = 0
    eliminated: int = 0


class RoundSummary(BaseModel):
    sequence_number: int
    name: str
    capacity: Optional[int]
    admitted_count: int
    is_current: bool
    outcomes: RoundOutcomeCounts


class RoundSummaryResponse(BaseModel):
    event_id: int
    current_round_index: int
    rounds: list[RoundSummary]
