"""
Tagged values shared by the models, schemas and services.
Stored as plain strings; the DB enforces them with CHECK constraints.
"""

import enum


class Role(str, enum.Enum):
    STUDENT = "student"
    ORGANIZER = "organizer"
    ADMIN = "admin"


class AdministrativeStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"


class StatusLabel(str, enum.Enum):
    """Display status derived from administrative status and the clock."""
    CANCELLED = "Cancelled"
    DRAFT = "Draft"
    UPCOMING = "Upcoming"
    ONGOING = "Ongoing"
    COMPLETED = "Completed"


class StatusVariant(str, enum.Enum):
    DEFAULT = "default"
    SECONDARY = "secondary"
    DESTRUCTIVE = "destructive"
    OUTLINE = "outline"


class EligibilityRule(str, enum.Enum):
    OPEN = "open"  # round 0: anyone who registers
    PASSED_PREVIOUS = "passed_previous"


class Outcome(str, enum.Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"
    ELIMINATED = "eliminated"

    @property
    def is_resolved(self) -> bool:
        return self is not Outcome.PENDING


class RegistrationStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ELIMINATED = "eliminated"

    @property
    def is_terminal(self) -> bool:
        return self is not RegistrationStatus.ACTIVE


def sql_in(enum_cls) -> str:
    """Render an enum as the body of a SQL IN (...) list for CHECK constraints."""
    return ", ".join(f"'{member.value}'" for member in enum_cls)
