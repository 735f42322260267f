"""Booking requests, slot views and booking results."""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from studio_scheduling.errors import RejectionReason, SchedulingError
from studio_scheduling.schemas.studio_schema import PersonRole, Session
from studio_scheduling.time_arithmetic import normalize_time


class Caller(BaseModel):
    """Already-authenticated identity of whoever is making the request."""
    user_id: str
    role: PersonRole


class BookingRequest(BaseModel):
    """Validated booking request data."""
    client_id: str
    trainer_id: str
    date: date
    start_time: str
    session_type: str

    @field_validator("start_time")
    @classmethod
    def _normalize_start(cls, value: str) -> str:
        return normalize_time(value)


class SlotCandidate(BaseModel):
    """A legitimate session start for a trainer on a date."""
    start_time: str
    end_time: str


class SlotWithAvailability(BaseModel):
    """One cell of the client-facing slot grid."""
    start_time: str
    end_time: str
    is_available: bool
    reason: Optional[str] = None


class CalendarEvent(BaseModel):
    """Event details handed to the calendar-sync collaborator."""
    session_id: str
    summary: str
    date: date
    start_time: str
    end_time: str
    description: str = "Synced from studio scheduling"
    event_id: Optional[str] = None


class BookingOutcome(str, Enum):
    COMMITTED = "committed"
    REJECTED = "rejected"


class BookingResult(BaseModel):
    """Result from book, reschedule, reschedule requests and cancel."""
    success: bool
    outcome: BookingOutcome
    message: str
    reason: Optional[RejectionReason] = None
    session: Optional[Session] = None
    conflicts: list[Session] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    retryable: bool = False
    trace: list[str] = Field(default_factory=list)

    @classmethod
    def committed(
        cls, session: Session, message: str, trace: Optional[list[str]] = None
    ) -> "BookingResult":
        return cls(
            success=True,
            outcome=BookingOutcome.COMMITTED,
            message=message,
            session=session,
            trace=trace or [],
        )

    @classmethod
    def rejected(
        cls, error: SchedulingError, trace: Optional[list[str]] = None
    ) -> "BookingResult":
        return cls(
            success=False,
            outcome=BookingOutcome.REJECTED,
            message=error.message,
            reason=error.reason,
            conflicts=list(getattr(error, "conflicts", [])),
            retryable=error.retryable,
            trace=trace or [],
        )
