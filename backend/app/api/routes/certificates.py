"""
Certificate endpoints. Verification is public; everything else needs a token.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.certificate import (
    CertificateListResponse,
    CertificateResponse,
    RevokeCertificateRequest,
    ShareLinksResponse,
    VerificationResponse,
)
from app.services.certificate_service import (
    ensure_can_view,
    get_certificate,
    issue_for_registration,
    list_event_certificates,
    list_participant_certificates,
    revoke_certificate,
    share_links,
    verify_certificate,
)
from app.services.event_service import ensure_can_manage, get_event
from app.core.security import Identity, get_current_identity, require_admin, require_organizer
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/certificates", tags=["Certificates"])


@router.post("/issue/{registration_id}", response_model=CertificateResponse)
async def issue_certificate_endpoint(
    registration_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """
    Issue (or fetch) the certificate of a completed registration.
    Idempotent: repeated calls return the same certificate.
    """
    return await issue_for_registration(db, registration_id, identity)


@router.get("/me", response_model=CertificateListResponse)
async def list_my_certificates(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    certificates = await list_participant_certificates(db, identity.user_id)
    return CertificateListResponse(
        certificates=[CertificateResponse.model_validate(c) for c in certificates],
        total=len(certificates),
        revoked=sum(1 for c in certificates if c.revoked),
    )


@router.get("/event/{event_id}", response_model=CertificateListResponse)
async def list_certificates_for_event(
    event_id: int,
    identity: Identity = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    ensure_can_manage(identity, await get_event(db, event_id))
    certificates, total, revoked = await list_event_certificates(db, event_id)
    return CertificateListResponse(
        certificates=[CertificateResponse.model_validate(c) for c in certificates],
        total=total,
        revoked=revoked,
    )


@router.get("/verify/{identifier}", response_model=VerificationResponse)
async def verify_certificate_endpoint(
    identifier: str,
    db: AsyncSession = Depends(get_db),
):
    """
    Public verification by certificate number or verification code.
    Unknown identifiers answer valid=false rather than 404.
    """
    result = await verify_certificate(db, identifier)
    return VerificationResponse.model_validate(result)


@router.get("/{certificate_id}", response_model=CertificateResponse)
async def get_certificate_endpoint(
    certificate_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    certificate = await get_certificate(db, certificate_id)
    ensure_can_view(identity, certificate)
    return certificate


@router.get("/{certificate_id}/share", response_model=ShareLinksResponse)
async def share_certificate_endpoint(
    certificate_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Public verification URL and artifact path for the rendering service."""
    certificate = await get_certificate(db, certificate_id)
    ensure_can_view(identity, certificate)
    return share_links(certificate)


@router.post("/{certificate_id}/revoke", response_model=CertificateResponse)
async def revoke_certificate_endpoint(
    certificate_id: int,
    body: RevokeCertificateRequest,
    identity: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Revoke a certificate. Admin only; the record is kept."""
    return await revoke_certificate(db, certificate_id, body.reason)
