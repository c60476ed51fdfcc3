"""
Pydantic schemas for certificate issuance and public verification.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class CertificateResponse(BaseModel):
    """Holder / organizer view. Carries the verification code."""
    id: int
    certificate_number: str
    verification_code: str
    event_id: int
    participant_id: int
    registration_id: int
    issued_date: datetime
    revoked: bool
    revoked_at: Optional[datetime]
    revoked_reason: Optional[str]

    model_config = {"from_attributes": True}


class CertificateListResponse(BaseModel):
    certificates: list[CertificateResponse]
    total: int
    revoked: int = 0


class RevokeCertificateRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class ShareLinksResponse(BaseModel):
    certificate_number: str
    verification_url: str
    artifact_path: str


class VerifiedCertificate(BaseModel):
    """Public view. Never includes the verification code."""
    certificate_number: str
    issued_date: datetime
    revoked: bool

    model_config = {"from_attributes": True}


class VerifiedEvent(BaseModel):
    id: int
    title: str
    start_date: datetime
    end_date: datetime

    model_config = {"from_attributes": True}


class VerifiedParticipant(BaseModel):
    id: int
    full_name: str

    model_config = {"from_attributes": True}


class VerificationResponse(BaseModel):
    valid: bool
    revoked: bool = False
    certificate: Optional[VerifiedCertificate] = None
    event: Optional[VerifiedEvent] = None
    participant: Optional[VerifiedParticipant] = None

    model_config = {"from_attributes": True}
