"""
Typed failures for the scheduling core.

Every failure a booking attempt can end in has its own exception class and
a matching ``RejectionReason``. Pure components raise these; the
orchestrator turns them into rejected ``BookingResult`` objects so callers
can render a precise message instead of a generic error.
"""

from enum import Enum
from typing import Any, Optional


class RejectionReason(str, Enum):
    """Why a booking, reschedule or cancellation was refused."""
    INVALID_TIME_FORMAT = "invalid_time_format"
    OUT_OF_RANGE = "out_of_range"
    INVALID_SLOT = "invalid_slot"
    CLIENT_CONFLICT = "client_conflict"
    TRAINER_CONFLICT = "trainer_conflict"
    NO_PACKAGE = "no_package"
    PACKAGE_EXPIRED = "package_expired"
    PACKAGE_EXHAUSTED = "package_exhausted"
    PACKAGE_NOT_FOUND = "package_not_found"
    SESSION_NOT_FOUND = "session_not_found"
    NOT_AUTHORIZED = "not_authorized"
    POLICY_VIOLATION = "policy_violation"
    INVALID_SESSION_STATE = "invalid_session_state"
    PERSISTENCE_FAILURE = "persistence_failure"


class SchedulingError(Exception):
    """Base class for every recoverable scheduling failure."""

    reason: RejectionReason = RejectionReason.INVALID_SLOT
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidTimeFormat(SchedulingError):
    """A time string is not HH:MM or HH:MM:SS."""
    reason = RejectionReason.INVALID_TIME_FORMAT


class OutOfRange(SchedulingError):
    """A time computation would leave the 00:00-23:59 day."""
    reason = RejectionReason.OUT_OF_RANGE


class InvalidSlot(SchedulingError):
    """The requested start is not a legitimate slot for the trainer."""
    reason = RejectionReason.INVALID_SLOT


class _ConflictError(SchedulingError):
    def __init__(self, message: str, conflicts: Optional[list[Any]] = None) -> None:
        super().__init__(message)
        self.conflicts = list(conflicts or [])


class ClientConflict(_ConflictError):
    """The client already has an overlapping active session."""
    reason = RejectionReason.CLIENT_CONFLICT


class TrainerConflict(_ConflictError):
    """The trainer already has an overlapping active session."""
    reason = RejectionReason.TRAINER_CONFLICT


class NoPackage(SchedulingError):
    reason = RejectionReason.NO_PACKAGE


class PackageExpired(SchedulingError):
    reason = RejectionReason.PACKAGE_EXPIRED


class PackageExhausted(SchedulingError):
    reason = RejectionReason.PACKAGE_EXHAUSTED


class PackageNotFound(SchedulingError):
    reason = RejectionReason.PACKAGE_NOT_FOUND


class SessionNotFound(SchedulingError):
    reason = RejectionReason.SESSION_NOT_FOUND


class NotAuthorized(SchedulingError):
    """The caller may not act on this client, trainer or session."""
    reason = RejectionReason.NOT_AUTHORIZED


class PolicyViolation(SchedulingError):
    """A studio rule (catalog, notice window, past slot) was broken."""
    reason = RejectionReason.POLICY_VIOLATION


class InvalidSessionState(SchedulingError):
    """The session's status does not allow the requested change."""
    reason = RejectionReason.INVALID_SESSION_STATE


class PersistenceFailure(SchedulingError):
    """The storage collaborator failed; nothing was committed."""
    reason = RejectionReason.PERSISTENCE_FAILURE
    retryable = True
