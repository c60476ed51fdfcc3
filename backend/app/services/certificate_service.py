"""
Certificate issuance and public verification.

Issuance is idempotent per (event, participant): the existing certificate
is returned instead of minting a second one. Numbers come from a per-event
counter bumped with a single UPDATE ... RETURNING, so two issuers never
draw the same number; the unique constraint on (event_id, participant_id)
catches two issuers for the same participant.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, update, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import (
    AlreadyRevoked,
    CertificateNotFound,
    ConcurrencyError,
    PermissionDenied,
    RegistrationNotCompleted,
    RegistrationNotFound,
)
from app.core.logging import get_logger
from app.core.metrics import certificates_issued, record_verification
from app.core.security import Identity
from app.models.certificate import Certificate
from app.models.enums import RegistrationStatus
from app.models.event import Event
from app.models.registration import Registration
from app.models.user import User
from app.schemas.certificate import ShareLinksResponse
from app.services.concurrency import attempts, conflict_backoff
from app.services.event_service import ensure_can_manage, get_event
from app.services.interfaces.publisher import DomainEventType
from app.services.publisher import discard_events, queue_event
from app.services.status_service import utc_now

logger = get_logger(__name__)
settings = get_settings()


@dataclass
class VerificationResult:
    valid: bool
    revoked: bool = False
    certificate: Optional[Certificate] = None
    event: Optional[Event] = None
    participant: Optional[User] = None


def certificate_number(event_id: int, sequence: int) -> str:
    return f"{settings.CERTIFICATE_PREFIX}-{event_id}-{sequence:06d}"


async def find_certificate(db: AsyncSession, event_id: int, participant_id: int) -> Optional[Certificate]:
    result = await db.execute(
        select(Certificate).where(
            Certificate.event_id == event_id,
            Certificate.participant_id == participant_id,
        )
    )
    return result.scalar_one_or_none()


async def issue_certificate(db: AsyncSession, registration: Registration) -> Certificate:
    """
    Mint the certificate for a completed registration, or return the one
    already issued. A concurrent duplicate surfaces as ConcurrencyError.
    """
    if registration.registration_status is not RegistrationStatus.COMPLETED:
        raise RegistrationNotCompleted(registration.id, registration.status)

    existing = await find_certificate(db, registration.event_id, registration.participant_id)
    if existing is not None:
        logger.info(
            "certificate_already_issued",
            certificate_number=existing.certificate_number,
            registration_id=registration.id,
        )
        return existing

    result = await db.execute(
        update(Event)
        .where(Event.id == registration.event_id)
        .values(certificate_sequence=Event.certificate_sequence + 1)
        .returning(Event.certificate_sequence)
        .execution_options(synchronize_session=False)
    )
    sequence = result.scalar_one()

    certificate = Certificate(
        certificate_number=certificate_number(registration.event_id, sequence),
        event_id=registration.event_id,
        participant_id=registration.participant_id,
        registration_id=registration.id,
        issued_date=utc_now(),
        revoked=False,
    )
    db.add(certificate)
    try:
        await db.flush()
    except IntegrityError as exc:
        logger.warning(
            "certificate_issue_conflict",
            event_id=registration.event_id,
            participant_id=registration.participant_id,
        )
        raise ConcurrencyError("Certificate was issued concurrently, please retry") from exc
    await db.refresh(certificate)

    certificates_issued.inc()
    queue_event(
        db,
        DomainEventType.CERTIFICATE_ISSUED,
        certificate_number=certificate.certificate_number,
        event_id=certificate.event_id,
        participant_id=certificate.participant_id,
    )
    logger.info(
        "certificate_issued",
        certificate_number=certificate.certificate_number,
        registration_id=registration.id,
        event_id=certificate.event_id,
    )
    return certificate


async def issue_for_registration(
    db: AsyncSession,
    registration_id: int,
    identity: Optional[Identity] = None,
) -> Certificate:
    """
    Stand-alone issuance (re-issue after a failed request, organizer tools).
    On a lost race the transaction is rolled back and the winner's
    certificate is returned on the next attempt.
    """
    for attempt in attempts():
        result = await db.execute(
            select(Registration)
            .where(Registration.id == registration_id)
            .execution_options(populate_existing=True)
        )
        registration = result.scalar_one_or_none()
        if registration is None:
            raise RegistrationNotFound(registration_id)
        if identity is not None and identity.user_id != registration.participant_id:
            ensure_can_manage(identity, await get_event(db, registration.event_id))
        try:
            return await issue_certificate(db, registration)
        except ConcurrencyError:
            await db.rollback()
            discard_events(db)
            await conflict_backoff(attempt, "certificate", registration_id=registration_id)


async def verify_certificate(db: AsyncSession, identifier: str) -> VerificationResult:
    """
    Public lookup by certificate number or verification code.
    Exact matches only; anything else is simply not valid.
    """
    identifier = (identifier or "").strip()
    if not identifier:
        record_verification("unknown")
        return VerificationResult(valid=False)

    result = await db.execute(
        select(Certificate).where(
            or_(
                Certificate.certificate_number == identifier,
                Certificate.verification_code == identifier,
            )
        )
    )
    certificate = result.scalar_one_or_none()

    if certificate is None:
        record_verification("unknown")
        logger.info("certificate_verification_failed", identifier_length=len(identifier))
        return VerificationResult(valid=False)

    if certificate.revoked:
        record_verification("revoked")
        logger.info("certificate_verification_revoked", certificate_number=certificate.certificate_number)
        return VerificationResult(
            valid=False,
            revoked=True,
            certificate=certificate,
            event=certificate.event,
            participant=certificate.participant,
        )

    record_verification("valid")
    return VerificationResult(
        valid=True,
        certificate=certificate,
        event=certificate.event,
        participant=certificate.participant,
    )


async def get_certificate(db: AsyncSession, certificate_id: int) -> Certificate:
    result = await db.execute(select(Certificate).where(Certificate.id == certificate_id))
    certificate = result.scalar_one_or_none()
    if certificate is None:
        raise CertificateNotFound(certificate_id)
    return certificate


def ensure_can_view(identity: Identity, certificate: Certificate) -> None:
    if identity.user_id != certificate.participant_id and not identity.can_manage(certificate.event.organizer_id):
        raise PermissionDenied(f"Not allowed to view certificate {certificate.id}")


async def revoke_certificate(db: AsyncSession, certificate_id: int, reason: str) -> Certificate:
    """Flag a certificate as revoked. It stays on record and stops verifying."""
    certificate = await get_certificate(db, certificate_id)

    result = await db.execute(
        update(Certificate)
        .where(Certificate.id == certificate_id, Certificate.revoked.is_(False))
        .values(revoked=True, revoked_at=utc_now(), revoked_reason=reason)
    )
    if result.rowcount == 0:
        raise AlreadyRevoked(certificate.certificate_number)
    await db.refresh(certificate)

    queue_event(
        db,
        DomainEventType.CERTIFICATE_REVOKED,
        certificate_number=certificate.certificate_number,
        event_id=certificate.event_id,
        participant_id=certificate.participant_id,
        reason=reason,
    )
    logger.info("certificate_revoked", certificate_number=certificate.certificate_number, reason=reason)
    return certificate


async def list_participant_certificates(db: AsyncSession, participant_id: int) -> list[Certificate]:
    result = await db.execute(
        select(Certificate)
        .where(Certificate.participant_id == participant_id)
        .order_by(Certificate.issued_date.desc(), Certificate.id.desc())
    )
    return list(result.scalars().all())


async def list_event_certificates(db: AsyncSession, event_id: int) -> tuple[list[Certificate], int, int]:
    """Certificates of an event with total and revoked counts."""
    result = await db.execute(
        select(Certificate)
        .where(Certificate.event_id == event_id)
        .order_by(Certificate.certificate_number.asc())
    )
    certificates = list(result.scalars().all())

    revoked = await db.execute(
        select(func.count(Certificate.id)).where(
            Certificate.event_id == event_id,
            Certificate.revoked.is_(True),
        )
    )
    return certificates, len(certificates), revoked.scalar()


def share_links(certificate: Certificate) -> ShareLinksResponse:
    """Identifiers handed to the rendering service and the public share URL."""
    base_url = settings.PUBLIC_BASE_URL.rstrip("/")
    return ShareLinksResponse(
        certificate_number=certificate.certificate_number,
        verification_url=f"{base_url}/certificates/verify/{certificate.certificate_number}",
        artifact_path=f"certificates/{certificate.event_id}/{certificate.certificate_number}.pdf",
    )
