"""Persistent studio records: availability, sessions and packages."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from studio_scheduling.time_arithmetic import normalize_time, validate_interval


class PersonRole(str, Enum):
    CLIENT = "client"
    TRAINER = "trainer"
    ADMIN = "admin"


class SessionStatus(str, Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    CANCELLED = "cancelled"


ACTIVE_SESSION_STATUSES = (SessionStatus.CONFIRMED, SessionStatus.PENDING)


class RescheduleStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class PackageStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class _TimeRange(BaseModel):
    """Shared HH:MM start/end handling for anything that spans part of a day."""

    start_time: str
    end_time: str

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_time(value)

    @model_validator(mode="after")
    def _check_order(self) -> "_TimeRange":
        validate_interval(self.start_time, self.end_time)
        return self


class WeeklyAvailabilityWindow(_TimeRange):
    """Recurring weekly block in which a trainer accepts sessions."""

    id: Optional[str] = None
    trainer_id: str
    weekday: int = Field(ge=0, le=6)  # 0=Sunday .. 6=Saturday


class UnavailableSlot(_TimeRange):
    """One-off exclusion carved out of the weekly windows for one date."""

    id: Optional[str] = None
    trainer_id: str
    date: date
    reason: Optional[str] = None


class Session(_TimeRange):
    """One scheduled training appointment between a client and a trainer."""

    id: str
    client_id: str
    trainer_id: str
    date: date
    session_type: str
    status: SessionStatus = SessionStatus.CONFIRMED
    package_id: Optional[str] = None
    reschedule_status: RescheduleStatus = RescheduleStatus.NONE
    reschedule_requested_at: Optional[datetime] = None
    reschedule_reason: Optional[str] = None
    reschedule_proposed_date: Optional[date] = None
    reschedule_proposed_start_time: Optional[str] = None
    reschedule_proposed_end_time: Optional[str] = None
    reschedule_response_note: Optional[str] = None
    calendar_event_ids: dict[str, str] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SESSION_STATUSES

    def person_id(self, role: PersonRole) -> str:
        return self.trainer_id if role == PersonRole.TRAINER else self.client_id


class Package(BaseModel):
    """A client's purchased bundle of session credits of one type."""

    id: str
    client_id: str
    package_type: str
    sessions_included: int = Field(ge=0)
    sessions_used: int = Field(default=0, ge=0)
    status: PackageStatus = PackageStatus.ACTIVE
    purchase_date: date
    expiry_date: Optional[date] = None

    @model_validator(mode="after")
    def _check_usage(self) -> "Package":
        if self.sessions_used > self.sessions_included:
            raise ValueError(
                f"sessions_used ({self.sessions_used}) exceeds "
                f"sessions_included ({self.sessions_included})"
            )
        return self

    @property
    def remaining(self) -> int:
        return self.sessions_included - self.sessions_used

    def is_expired(self, as_of: date) -> bool:
        if self.status == PackageStatus.EXPIRED:
            return True
        return self.expiry_date is not None and self.expiry_date < as_of
