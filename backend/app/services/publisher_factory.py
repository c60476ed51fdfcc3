"""
Domain event publisher factory.
Configures which transport carries events to the notification service.
"""

from typing import Optional

from app.core.config import get_settings
from app.services.interfaces.publisher import DomainEventPublisher
from app.services.interfaces.logging_publisher import LoggingPublisher
from app.services.redis_publisher import RedisPublisher


def build_publisher(kind: str) -> DomainEventPublisher:
    """
    Strategy selection:
    - "logging": structured log only (development, tests)
    - "redis": Redis pub/sub for the notification workers
    """
    if kind == "redis":
        return RedisPublisher()
    return LoggingPublisher()


# Singleton instance
_publisher: Optional[DomainEventPublisher] = None


def get_publisher() -> DomainEventPublisher:
    """Get publisher singleton."""
    global _publisher
    if _publisher is None:
        _publisher = build_publisher(get_settings().EVENT_PUBLISHER)
    return _publisher


def set_publisher(publisher: Optional[DomainEventPublisher]) -> None:
    """Swap the publisher (tests, alternative transports). None resets to config."""
    global _publisher
    _publisher = publisher
