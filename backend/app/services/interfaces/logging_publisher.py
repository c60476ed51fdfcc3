"""
Logging publisher - no transport.
Events only reach the structured log.
"""

from app.core.logging import get_logger
from app.services.interfaces.publisher import DomainEvent, DomainEventPublisher

logger = get_logger(__name__)


class LoggingPublisher(DomainEventPublisher):
    """
    Use when:
    - Development and tests
    - No notification workers are deployed
    """

    async def publish(self, event: DomainEvent) -> None:
        logger.info("domain_event", event_type=event.type.value, payload=event.payload)
