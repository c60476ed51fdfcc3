"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .publisher import DomainEvent, DomainEventPublisher, DomainEventType
from .logging_publisher import LoggingPublisher

__all__ = ['DomainEvent', 'DomainEventPublisher', 'DomainEventType', 'LoggingPublisher']
