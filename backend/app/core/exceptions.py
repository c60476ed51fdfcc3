"""
Domain error taxonomy.

Services raise these; the API layer maps them to HTTP responses in
app/api/errors.py. Every error carries a stable machine-readable `code`.

    LifecycleError
    ├── ValidationError        422  malformed input, rejected at the boundary
    ├── PermissionDenied       403  caller lacks the role / ownership
    ├── NotFoundError          404  unknown event / registration / certificate
    ├── StateConflictError     409  user-actionable, never retried automatically
    └── ConcurrencyError       409  transient lock / version conflict, retryable
"""


class LifecycleError(Exception):
    """Base class for all engine errors."""

    code = "lifecycle_error"
    retryable = False

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


# ============ Validation ============

class ValidationError(LifecycleError):
    """Malformed input."""
    code = "validation_error"


class InvalidOutcome(ValidationError):
    """Outcome is not one of passed, failed, eliminated."""
    code = "invalid_outcome"

    def __init__(self, outcome):
        self.outcome = outcome
        super().__init__(f"Invalid outcome {outcome!r}; expected one of passed, failed, eliminated")


# ============ Permissions ============

class PermissionDenied(LifecycleError):
    """Caller is not allowed to perform this operation."""
    code = "permission_denied"


class ParticipantInactive(PermissionDenied):
    code = "participant_inactive"

    def __init__(self, participant_id):
        self.participant_id = participant_id
        super().__init__(f"Participant {participant_id} is deactivated")


# ============ Not found ============

class NotFoundError(LifecycleError):
    """Resource not found."""
    code = "not_found"


class EventNotFound(NotFoundError):
    code = "event_not_found"

    def __init__(self, event_id):
        self.event_id = event_id
        super().__init__(f"Event {event_id} not found")


class RegistrationNotFound(NotFoundError):
    code = "registration_not_found"

    def __init__(self, registration_id):
        self.registration_id = registration_id
        super().__init__(f"Registration {registration_id} not found")


class ParticipantNotFound(NotFoundError):
    code = "participant_not_found"

    def __init__(self, participant_id):
        self.participant_id = participant_id
        super().__init__(f"Participant {participant_id} not found")


class RoundNotFound(NotFoundError):
    code = "round_not_found"

    def __init__(self, event_id, sequence_number):
        self.event_id = event_id
        self.sequence_number = sequence_number
        super().__init__(f"Event {event_id} has no round {sequence_number}")


class CertificateNotFound(NotFoundError):
    code = "certificate_not_found"

    def __init__(self, certificate_id):
        self.certificate_id = certificate_id
        super().__init__(f"Certificate {certificate_id} not found")


# ============ State conflicts ============

class StateConflictError(LifecycleError):
    """Operation conflicts with the current state of the record."""
    code = "state_conflict"


class InvalidTransition(StateConflictError):
    code = "invalid_transition"

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move event from {current} to {target}")


class EventNotOpen(StateConflictError):
    """Event is not accepting registrations."""
    code = "event_not_open"


class EventNotRunning(StateConflictError):
    """Rounds only move on published events."""
    code = "event_not_running"

    def __init__(self, event_id, status):
        self.event_id = event_id
        self.status = status
        super().__init__(f"Event {event_id} is {status}; rounds and outcomes are frozen")


class StaleRoundIndex(StateConflictError):
    code = "stale_round_index"

    def __init__(self, event_id, expected_index, current_index):
        self.event_id = event_id
        self.expected_index = expected_index
        self.current_index = current_index
        super().__init__(
            f"Event {event_id} is on round {current_index}, not {expected_index}; reload before advancing"
        )


class AlreadyRegistered(StateConflictError):
    code = "already_registered"

    def __init__(self, event_id, participant_id):
        self.event_id = event_id
        self.participant_id = participant_id
        super().__init__(f"Participant {participant_id} is already registered for event {event_id}")


class CapacityExceeded(StateConflictError):
    code = "capacity_exceeded"

    def __init__(self, event_id, sequence_number, capacity):
        self.event_id = event_id
        self.sequence_number = sequence_number
        self.capacity = capacity
        super().__init__(f"Round {sequence_number} of event {event_id} is full ({capacity} participants)")


class OutOfSequence(StateConflictError):
    """Round is not the registration's current unresolved round."""
    code = "out_of_sequence"


class NoFurtherRounds(StateConflictError):
    code = "no_further_rounds"

    def __init__(self, event_id, current_index):
        self.event_id = event_id
        self.current_index = current_index
        super().__init__(f"Event {event_id} is already on its final round ({current_index})")


class AtInitialRound(StateConflictError):
    code = "at_initial_round"

    def __init__(self, event_id):
        self.event_id = event_id
        super().__init__(f"Event {event_id} is already at round 0")


class RegistrationNotCompleted(StateConflictError):
    code = "registration_not_completed"

    def __init__(self, registration_id, status):
        self.registration_id = registration_id
        self.status = status
        super().__init__(f"Registration {registration_id} is {status}, not completed")


class AlreadyRevoked(StateConflictError):
    code = "already_revoked"

    def __init__(self, certificate_number):
        self.certificate_number = certificate_number
        super().__init__(f"Certificate {certificate_number} is already revoked")


# ============ Concurrency ============

class ConcurrencyError(LifecycleError):
    """The record was modified concurrently; the request may be retried."""
    code = "concurrency_conflict"
    retryable = True
