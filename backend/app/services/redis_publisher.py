"""
Redis pub/sub publisher for domain events.
Implements DomainEventPublisher using the shared async Redis connection.

Failure handling:
  On Redis failure the event is logged and dropped ("fail open").
  The state change that produced it is already committed, and the
  notification workers can reconcile from the database. A Redis outage
  must never turn a successful registration into an error response.
"""

import json

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import domain_events_published, redis_connection_errors
from app.services.cache_service import get_redis
from app.services.interfaces.publisher import DomainEvent, DomainEventPublisher

logger = get_logger(__name__)
settings = get_settings()


class RedisPublisher(DomainEventPublisher):
    """
    Use when:
    - Notification workers subscribe to EVENT_CHANNEL
    - Delivery must be decoupled from the request
    """

    def __init__(self, channel: str = None):
        self.channel = channel or settings.EVENT_CHANNEL

    async def publish(self, event: DomainEvent) -> None:
        client = await get_redis()
        if client is None:
            logger.warning("domain_event_not_delivered", event_type=event.type.value, reason="redis_unavailable")
            domain_events_published.labels(type=event.type.value, result="dropped").inc()
            return

        try:
            receivers = await client.publish(self.channel, json.dumps(event.to_dict(), default=str))
            domain_events_published.labels(type=event.type.value, result="published").inc()
            logger.debug("domain_event_published", event_type=event.type.value, receivers=receivers)
        except Exception as e:
            redis_connection_errors.inc()
            domain_events_published.labels(type=event.type.value, result="dropped").inc()
            logger.error("domain_event_publish_failed", event_type=event.type.value, error=str(e))
