"""
Display status of an event, derived on every read.

Nothing here touches the database. The result depends on the clock, so it
is never stored; that keeps it correct without a background job moving
events between states.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from app.models.enums import AdministrativeStatus, StatusLabel, StatusVariant


@dataclass(frozen=True)
class EventStatusView:
    label: StatusLabel
    variant: StatusVariant


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; they were written as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def derive_status(
    administrative_status,
    start_date: datetime,
    end_date: datetime,
    now: Optional[datetime] = None,
) -> EventStatusView:
    """
    First match wins:
      cancelled                     -> Cancelled
      draft                         -> Draft
      now <  start                  -> Upcoming
      start <= now <= end           -> Ongoing   (both bounds inclusive)
      now >  end                    -> Completed
    """
    status = AdministrativeStatus(administrative_status)
    if status is AdministrativeStatus.CANCELLED:
        return EventStatusView(StatusLabel.CANCELLED, StatusVariant.DESTRUCTIVE)
    if status is AdministrativeStatus.DRAFT:
        return EventStatusView(StatusLabel.DRAFT, StatusVariant.OUTLINE)

    now = as_utc(now or utc_now())
    start = as_utc(start_date)
    end = as_utc(end_date)

    if now < start:
        return EventStatusView(StatusLabel.UPCOMING, StatusVariant.DEFAULT)
    if now <= end:
        return EventStatusView(StatusLabel.ONGOING, StatusVariant.SECONDARY)
    return EventStatusView(StatusLabel.COMPLETED, StatusVariant.OUTLINE)


def derive_event_status(event, now: Optional[datetime] = None) -> EventStatusView:
    """Convenience wrapper for anything carrying the three stored fields."""
    return derive_status(event.administrative_status, event.start_date, event.end_date, now)
