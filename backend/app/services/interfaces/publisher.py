"""
Domain event publisher interface.
The notification service consumes these asynchronously; the engine never
waits on delivery.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict


class DomainEventType(str, Enum):
    REGISTRATION_CREATED = "registration.created"
    REGISTRATION_COMPLETED = "registration.completed"
    CERTIFICATE_ISSUED = "certificate.issued"
    CERTIFICATE_REVOKED = "certificate.revoked"
    ROUND_ADVANCED = "round.advanced"
    ROUND_ROLLED_BACK = "round.rolled_back"
    EVENT_PUBLISHED = "event.published"
    EVENT_CANCELLED = "event.cancelled"


@dataclass
class DomainEvent:
    type: DomainEventType
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "payload": self.payload,
            "occurred_at": self.occurred_at.isoformat(),
        }


class DomainEventPublisher(ABC):
    """
    Interface for domain event delivery.

    Implementations:
    - LoggingPublisher: writes events to the structured log
    - RedisPublisher: PUBLISH on a Redis channel for the notification workers
    """

    @abstractmethod
    async def publish(self, event: DomainEvent) -> None:
        """
        Hand one event to the transport.

        Must not raise for transport failures: the state change that
        produced the event is already committed.
        """
        pass
