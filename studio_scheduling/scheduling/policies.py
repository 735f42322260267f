"""
Studio booking rules checked before any slot or conflict lookup.

Independent policy layers, each checking one concern:
1. CatalogPolicy: the session type is one the studio sells
2. AccessPolicy: the caller may act for this client, trainer or session
3. TimingPolicy: no booking in the past, reschedule notice window

These are composed into a PolicyPipeline; the orchestrator raises the
first violation as a typed error.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from studio_scheduling.config import settings
from studio_scheduling.errors import NotAuthorized, PolicyViolation, SchedulingError
from studio_scheduling.schemas.booking_schema import Caller
from studio_scheduling.schemas.studio_schema import PersonRole, Session
from studio_scheduling.time_arithmetic import time_to_minutes

logger = logging.getLogger(__name__)


@dataclass
class PolicyResult:
    """Outcome of a single policy check."""
    passed: bool
    violation_type: Optional[str] = None
    message: Optional[str] = None

    def as_error(self) -> SchedulingError:
        if self.violation_type == "not_authorized":
            return NotAuthorized(self.message or "Not allowed.")
        return PolicyViolation(self.message or "Not allowed by studio policy.")


def slot_start(on_date: date, start_time: str, tz: ZoneInfo) -> datetime:
    """Aware datetime for a wall-clock start on a date in the studio timezone."""
    minutes = time_to_minutes(start_time)
    return datetime(
        on_date.year, on_date.month, on_date.day, minutes // 60, minutes % 60, tzinfo=tz
    )


class CatalogPolicy:
    """Only session types from the studio catalog can be booked."""

    def __init__(self, session_types: Optional[tuple[str, ...]] = None) -> None:
        self.session_types = session_types or settings.catalog.session_types

    def check_session_type(self, session_type: str) -> PolicyResult:
        if session_type in self.session_types:
            return PolicyResult(passed=True)
        return PolicyResult(
            passed=False,
            violation_type="unknown_session_type",
            message=f"'{session_type}' is not a session type offered by the studio.",
        )


class AccessPolicy:
    """Who may book, move or cancel which sessions."""

    def check_booking(self, caller: Caller, client_id: str, trainer_id: str) -> PolicyResult:
        if caller.role == PersonRole.ADMIN:
            return PolicyResult(passed=True)
        if caller.role == PersonRole.CLIENT and caller.user_id == client_id:
            return PolicyResult(passed=True)
        if caller.role == PersonRole.TRAINER and caller.user_id == trainer_id:
            return PolicyResult(passed=True)
        return self._denied("You can only book sessions for yourself or your own clients.")

    def check_participant(self, caller: Caller, session: Session) -> PolicyResult:
        return self.check_booking(caller, session.client_id, session.trainer_id)

    def check_role(self, caller: Caller, session: Session, role: PersonRole) -> PolicyResult:
        if caller.role == PersonRole.ADMIN:
            return PolicyResult(passed=True)
        if caller.role == role and caller.user_id == session.person_id(role):
            return PolicyResult(passed=True)
        return self._denied(f"Only the session's {role.value} can do this.")

    @staticmethod
    def _denied(message: str) -> PolicyResult:
        return PolicyResult(passed=False, violation_type="not_authorized", message=message)


class TimingPolicy:
    """Time-relative rules evaluated against an explicit reference instant."""

    def __init__(
        self,
        tz: Optional[ZoneInfo] = None,
        reschedule_notice_hours: Optional[int] = None,
    ) -> None:
        self.tz = tz or ZoneInfo(settings.scheduling.studio_timezone)
        self.notice = timedelta(
            hours=settings.scheduling.reschedule_notice_hours
            if reschedule_notice_hours is None else reschedule_notice_hours
        )

    def check_in_future(self, on_date: date, start_time: str, now: datetime) -> PolicyResult:
        if slot_start(on_date, start_time, self.tz) > now:
            return PolicyResult(passed=True)
        return PolicyResult(
            passed=False,
            violation_type="slot_in_past",
            message="The selected date and time must be in the future.",
        )

    def check_reschedule_notice(self, session: Session, now: datetime) -> PolicyResult:
        starts_at = slot_start(session.date, session.start_time, self.tz)
        if starts_at - now >= self.notice:
            return PolicyResult(passed=True)
        hours = int(self.notice.total_seconds() // 3600)
        return PolicyResult(
            passed=False,
            violation_type="reschedule_notice",
            message=(
                f"Sessions cannot be rescheduled within {hours} hours of the start time. "
                "Please contact your trainer directly."
            ),
        )


class PolicyPipeline:
    """Composes all policies into booking and reschedule check lists."""

    def __init__(
        self,
        catalog: Optional[CatalogPolicy] = None,
        timing: Optional[TimingPolicy] = None,
    ) -> None:
        self.catalog = catalog or CatalogPolicy()
        self.access = AccessPolicy()
        self.timing = timing or TimingPolicy()

    def check_booking(
        self,
        caller: Caller,
        client_id: str,
        trainer_id: str,
        session_type: str,
        on_date: date,
        start_time: str,
        now: datetime,
    ) -> list[PolicyResult]:
        """Access first, then catalog, then timing."""
        results = [
            self.access.check_booking(caller, client_id, trainer_id),
            self.catalog.check_session_type(session_type),
            self.timing.check_in_future(on_date, start_time, now),
        ]
        return [r for r in results if not r.passed]

    def check_reschedule_request(
        self,
        caller: Caller,
        session: Session,
        proposed_date: date,
        proposed_start_time: str,
        now: datetime,
    ) -> list[PolicyResult]:
        results = [
            self.access.check_role(caller, session, PersonRole.CLIENT),
            self.timing.check_reschedule_notice(session, now),
            self.timing.check_in_future(proposed_date, proposed_start_time, now),
        ]
        return [r for r in results if not r.passed]

    def enforce(self, results: list[PolicyResult]) -> None:
        """Raise the first failed result as a typed error; passed results are ignored."""
        violations = [r for r in results if not r.passed]
        if violations:
            first = violations[0]
            logger.info("Policy violation: %s", first.violation_type)
            raise first.as_error()
