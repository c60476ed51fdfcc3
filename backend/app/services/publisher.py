"""
Outbox for domain events raised inside a request.

Services queue events on the session while they work. The request's
session scope publishes them only after COMMIT succeeds and discards
them on rollback, so subscribers never hear about a change that did not
happen. Publishing never raises into the request.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.services.interfaces.publisher import DomainEvent, DomainEventType
from app.services.publisher_factory import get_publisher

logger = get_logger(__name__)

_PENDING_KEY = "pending_domain_events"


def queue_event(db: AsyncSession, event_type: DomainEventType, **payload) -> None:
    db.info.setdefault(_PENDING_KEY, []).append(DomainEvent(type=event_type, payload=payload))


def pending_events(db: AsyncSession) -> list:
    return list(db.info.get(_PENDING_KEY, []))


def discard_events(db: AsyncSession) -> None:
    dropped = db.info.pop(_PENDING_KEY, [])
    if dropped:
        logger.info("domain_events_discarded", count=len(dropped))


async def publish_pending_events(db: AsyncSession) -> None:
    events = db.info.pop(_PENDING_KEY, [])
    if not events:
        return

    publisher = get_publisher()
    for event in events:
        try:
            await publisher.publish(event)
        except Exception:
            logger.exception("domain_event_publish_error", event_type=event.type.value)
