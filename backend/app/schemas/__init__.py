from app.schemas.event import (
    EventCreate, EventResponse, EventListResponse, RoundCreate, RoundResponse,
    AdvanceRoundRequest, CancelEventRequest, RoundSummaryResponse,
)
from app.schemas.registration import (
    RegistrationCreate, RegistrationResponse, RegistrationListResponse,
    OutcomeCreate, OutcomeResultResponse,
)
from app.schemas.certificate import (
    CertificateResponse, CertificateListResponse, RevokeCertificateRequest,
    ShareLinksResponse, VerificationResponse,
)

__all__ = [
    "EventCreate", "EventResponse", "EventListResponse", "RoundCreate", "RoundResponse",
    "AdvanceRoundRequest", "CancelEventRequest", "RoundSummaryResponse",
    "RegistrationCreate", "RegistrationResponse", "RegistrationListResponse",
    "OutcomeCreate", "OutcomeResultResponse",
    "CertificateResponse", "CertificateListResponse", "RevokeCertificateRequest",
    "ShareLinksResponse", "VerificationResponse",
]
