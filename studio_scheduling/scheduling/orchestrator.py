"""
Booking orchestrator: book, reschedule and cancel training sessions.

Every write follows the same protocol:

1. Policy checks (caller access, catalog, timing).
2. Slot legitimacy against the trainer's weekly windows and exclusions.
3. Conflict checks for the client and then the trainer.
4. For new bookings, selection of the package to debit.
5. One store transaction that re-runs the conflict and package checks,
   debits the package first and only then writes the session.

Calendar sync and notifications run after the commit. Their failures are
logged and returned as warnings; they never undo a booking.

Usage:
    orchestrator = BookingOrchestrator(store, notifier, calendar)
    result = orchestrator.book(request, caller)
    if not result.success:
        show(result.reason, result.message)
"""

import uuid
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from studio_scheduling.config import settings
from studio_scheduling.errors import (
    InvalidSessionState,
    PackageNotFound,
    PolicyViolation,
    SchedulingError,
    SessionNotFound,
)
from studio_scheduling.logging_context import get_request_id, get_request_logger, set_request_id
from studio_scheduling.scheduling.availability import AvailabilityExpander
from studio_scheduling.scheduling.booking_flow import BookingFlow, FlowTrigger
from studio_scheduling.scheduling.conflicts import ConflictDetector
from studio_scheduling.scheduling.ledger import EntitlementLedger
from studio_scheduling.scheduling.policies import PolicyPipeline, TimingPolicy
from studio_scheduling.schemas.booking_schema import (
    BookingRequest,
    BookingResult,
    CalendarEvent,
    Caller,
    SlotCandidate,
    SlotWithAvailability,
)
from studio_scheduling.schemas.studio_schema import (
    PersonRole,
    RescheduleStatus,
    Session,
    SessionStatus,
)
from studio_scheduling.time_arithmetic import normalize_time
from studio_scheduling.tools.calendar_sync import CalendarSync
from studio_scheduling.tools.notifications import NotificationSink
from studio_scheduling.tools.store import PersistenceStore, new_id

logger = get_request_logger(__name__)

_DEFAULT_REQUEST_ID = "NO_REQUEST_ID"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BookingOrchestrator:
    """Runs the validate -> check -> commit pipeline for every session change."""

    def __init__(
        self,
        store: PersistenceStore,
        notifier: Optional[NotificationSink] = None,
        calendar: Optional[CalendarSync] = None,
        clock: Optional[Callable[[], datetime]] = None,
        tz: Optional[ZoneInfo] = None,
        policies: Optional[PolicyPipeline] = None,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.calendar = calendar
        self.clock = clock or _utc_now
        self.tz = tz or ZoneInfo(settings.scheduling.studio_timezone)
        self.expander = AvailabilityExpander(store, timezone=self.tz)
        self.conflicts = ConflictDetector(store)
        self.ledger = EntitlementLedger(store)
        self.policies = policies or PolicyPipeline(timing=TimingPolicy(tz=self.tz))

    # --- Clock ---

    def _now(self) -> datetime:
        now = self.clock()
        if now.tzinfo is None:
            raise ValueError("The orchestrator clock must return timezone-aware datetimes")
        return now

    def _today(self) -> date:
        return self._now().astimezone(self.tz).date()

    @staticmethod
    def _ensure_request_id() -> None:
        if get_request_id() == _DEFAULT_REQUEST_ID:
            set_request_id(f"REQ-{uuid.uuid4().hex[:8]}")

    # --- Read-only views ---

    def available_slots(self, trainer_id: str, on_date: date) -> list[SlotWithAvailability]:
        """Client-facing grid for a trainer and date."""
        return self.expander.client_slot_grid(trainer_id, on_date)

    def quick_picks(self, trainer_id: str, on_date: date) -> list[str]:
        """Free start times a trainer can offer right now."""
        return self.expander.trainer_quick_picks(trainer_id, on_date, self._now())

    # --- Book ---

    def book(self, request: BookingRequest, caller: Caller) -> BookingResult:
        """Book a new session, consuming one package credit."""
        self._ensure_request_id()
        flow = BookingFlow()
        try:
            flow.transition(FlowTrigger.BEGIN)
            self.policies.enforce(self.policies.check_booking(
                caller,
                request.client_id,
                request.trainer_id,
                request.session_type,
                request.date,
                request.start_time,
                self._now(),
            ))
            slot = self.expander.ensure_legitimate_start(
                request.trainer_id, request.date, request.start_time
            )
            flow.transition(FlowTrigger.SLOT_VALID)

            self.conflicts.ensure_no_conflict(
                request.client_id, PersonRole.CLIENT, request.date,
                slot.start_time, slot.end_time,
            )
            flow.transition(FlowTrigger.CLIENT_CLEAR)
            self.conflicts.ensure_no_conflict(
                request.trainer_id, PersonRole.TRAINER, request.date,
                slot.start_time, slot.end_time,
            )
            flow.transition(FlowTrigger.TRAINER_CLEAR)

            today = self._today()
            self.ledger.require_debitable_package(request.client_id, request.session_type, today)
            flow.transition(FlowTrigger.PACKAGE_FOUND)

            with self.store.transaction():
                # Re-run under the store lock; another request may have committed.
                self.conflicts.ensure_both_clear(
                    request.client_id, request.trainer_id, request.date,
                    slot.start_time, slot.end_time,
                )
                package = self.ledger.require_debitable_package(
                    request.client_id, request.session_type, today
                )
                self.ledger.debit(package.id)
                flow.transition(FlowTrigger.PACKAGE_DEBITED)

                session = self.store.create_session(Session(
                    id=new_id("SES"),
                    client_id=request.client_id,
                    trainer_id=request.trainer_id,
                    date=request.date,
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                    session_type=request.session_type,
                    status=SessionStatus.CONFIRMED,
                    package_id=package.id,
                ))
                flow.transition(FlowTrigger.SESSION_WRITTEN)
        except SchedulingError as err:
            return self._reject(flow, err, "Booking")

        logger.info(
            "Session %s booked: client %s with trainer %s on %s at %s (package %s)",
            session.id, session.client_id, session.trainer_id,
            session.date, session.start_time, session.package_id,
        )
        result = BookingResult.committed(
            session,
            f"Session booked for {session.date.isoformat()} at {session.start_time}.",
            flow.get_state_trace(),
        )
        self._sync_calendars(result)
        self._notify(result, lambda n: n.notify_booking_created(result.session))
        return result

    # --- Reschedule ---

    def reschedule(
        self, session_id: str, new_date: date, new_start_time: str, caller: Caller
    ) -> BookingResult:
        """Move a session directly (trainer or admin). No credit changes hands."""
        self._ensure_request_id()
        flow = BookingFlow()
        try:
            session = self._load(session_id)
            self.policies.enforce([
                self.policies.access.check_role(caller, session, PersonRole.TRAINER)
            ])
            superseded = None
            if session.reschedule_status == RescheduleStatus.PENDING:
                # A direct move answers the client's open request.
                superseded = {
                    "reschedule_status": RescheduleStatus.DENIED,
                    "reschedule_response_note": "Superseded by a direct reschedule.",
                }
            return self._move(flow, session, new_date, new_start_time, extra_patch=superseded)
        except SchedulingError as err:
            return self._reject(flow, err, "Reschedule")

    def request_reschedule(
        self,
        session_id: str,
        proposed_date: date,
        proposed_start_time: str,
        caller: Caller,
        reason: Optional[str] = None,
    ) -> BookingResult:
        """Record a client's proposal to move a session, pending trainer approval."""
        self._ensure_request_id()
        flow = BookingFlow()
        try:
            session = self._load(session_id)
            self._require_active(session)
            if session.reschedule_status == RescheduleStatus.PENDING:
                raise InvalidSessionState(
                    "A reschedule request is already pending for this session."
                )
            proposed_start = normalize_time(proposed_start_time)
            if proposed_date == session.date and proposed_start == session.start_time:
                raise PolicyViolation("The proposed time is the same as the current session time.")

            now = self._now()
            self.policies.enforce(self.policies.check_reschedule_request(
                caller, session, proposed_date, proposed_start, now
            ))
            slot = self._check_slot(flow, session, proposed_date, proposed_start)
            flow.transition(FlowTrigger.TRAINER_CLEAR_NO_DEBIT)

            updated = self.store.update_session(session.id, {
                "reschedule_status": RescheduleStatus.PENDING,
                "reschedule_requested_at": now,
                "reschedule_reason": reason,
                "reschedule_proposed_date": proposed_date,
                "reschedule_proposed_start_time": slot.start_time,
                "reschedule_proposed_end_time": slot.end_time,
                "reschedule_response_note": None,
            })
            flow.transition(FlowTrigger.SESSION_WRITTEN)
        except SchedulingError as err:
            return self._reject(flow, err, "Reschedule request")

        logger.info(
            "Reschedule requested for %s: %s %s", updated.id, proposed_date, slot.start_time
        )
        return BookingResult.committed(
            updated, "Reschedule request submitted.", flow.get_state_trace()
        )

    def respond_to_reschedule(
        self,
        session_id: str,
        approve: bool,
        caller: Caller,
        note: Optional[str] = None,
    ) -> BookingResult:
        """Trainer approves (moving the session) or denies a pending request."""
        self._ensure_request_id()
        flow = BookingFlow()
        try:
            session = self._load(session_id)
            self.policies.enforce([
                self.policies.access.check_role(caller, session, PersonRole.TRAINER)
            ])
            if session.reschedule_status != RescheduleStatus.PENDING:
                raise InvalidSessionState("No pending reschedule request for this session.")

            if not approve:
                updated = self.store.update_session(session.id, {
                    "reschedule_status": RescheduleStatus.DENIED,
                    "reschedule_response_note": note,
                })
                logger.info("Reschedule denied for %s", session.id)
                return BookingResult.committed(updated, "Reschedule request denied.")

            return self._move(
                flow,
                session,
                session.reschedule_proposed_date,
                session.reschedule_proposed_start_time,
                extra_patch={
                    "reschedule_status": RescheduleStatus.APPROVED,
                    "reschedule_response_note": note,
                },
            )
        except SchedulingError as err:
            return self._reject(flow, err, "Reschedule approval")

    def _move(
        self,
        flow: BookingFlow,
        session: Session,
        new_date: Optional[date],
        new_start_time: Optional[str],
        extra_patch: Optional[dict[str, Any]] = None,
    ) -> BookingResult:
        """Shared reschedule pipeline; raises ``SchedulingError`` on rejection."""
        if new_date is None or new_start_time is None:
            raise InvalidSessionState("The reschedule request has no proposed time.")
        self._require_active(session)
        new_start = normalize_time(new_start_time)

        if new_date == session.date and new_start == session.start_time:
            updated = session
            if extra_patch:
                updated = self.store.update_session(session.id, extra_patch)
            logger.info("Session %s already at %s %s; nothing moved", session.id, new_date, new_start)
            result = BookingResult.committed(
                updated, "The session is already at that time; nothing changed.",
                flow.get_state_trace(),
            )
            result.warnings.append("unchanged")
            return result

        self.policies.enforce([self.policies.timing.check_in_future(new_date, new_start, self._now())])
        slot = self._check_slot(flow, session, new_date, new_start)
        flow.transition(FlowTrigger.TRAINER_CLEAR_NO_DEBIT)

        old_slot = SlotCandidate(start_time=session.start_time, end_time=session.end_time)
        with self.store.transaction():
            self.conflicts.ensure_both_clear(
                session.client_id, session.trainer_id, new_date,
                slot.start_time, slot.end_time, exclude_session_id=session.id,
            )
            updated = self.store.update_session(session.id, {
                "date": new_date,
                "start_time": slot.start_time,
                "end_time": slot.end_time,
                **(extra_patch or {}),
            })
            flow.transition(FlowTrigger.SESSION_WRITTEN)

        logger.info(
            "Session %s moved from %s %s to %s %s",
            session.id, session.date, session.start_time, updated.date, updated.start_time,
        )
        result = BookingResult.committed(
            updated,
            f"Session moved to {updated.date.isoformat()} at {updated.start_time}.",
            flow.get_state_trace(),
        )
        self._sync_calendars(result)
        self._notify(result, lambda n: n.notify_reschedule(result.session, old_slot, slot))
        return result

    # --- Cancel ---

    def cancel(self, session_id: str, caller: Caller, refund: bool = True) -> BookingResult:
        """Cancel a session and give its credit back to the debited package."""
        self._ensure_request_id()
        warnings: list[str] = []
        try:
            session = self._load(session_id)
            self.policies.enforce([self.policies.access.check_participant(caller, session)])
            if session.status == SessionStatus.CANCELLED:
                raise InvalidSessionState("This session is already cancelled.")

            with self.store.transaction():
                updated = self.store.update_session(session.id, {
                    "status": SessionStatus.CANCELLED,
                })
                if refund:
                    package_id = session.package_id
                    if package_id is None:
                        fallback = self.ledger.fallback_refund_package(
                            session.client_id, session.session_type
                        )
                        package_id = fallback.id if fallback else None
                    if package_id is None:
                        warnings.append("No package found to refund the cancelled session to.")
                    else:
                        try:
                            self.ledger.credit(package_id)
                        except PackageNotFound:
                            warnings.append(
                                f"Package {package_id} no longer exists; no credit was returned."
                            )
        except SchedulingError as err:
            return self._reject(None, err, "Cancellation")

        logger.info("Session %s cancelled (refund=%s)", updated.id, refund)
        for warning in warnings:
            logger.warning("Session %s: %s", updated.id, warning)
        result = BookingResult.committed(updated, "Session cancelled.")
        result.warnings.extend(warnings)
        return result

    # --- Helpers ---

    def _load(self, session_id: str) -> Session:
        session = self.store.get_session(session_id)
        if session is None:
            raise SessionNotFound(f"Session {session_id} was not found.")
        return session

    @staticmethod
    def _require_active(session: Session) -> None:
        if not session.is_active:
            raise InvalidSessionState(f"Session {session.id} is {session.status.value}.")

    def _check_slot(
        self, flow: BookingFlow, session: Session, new_date: date, new_start: str
    ) -> SlotCandidate:
        """Validate a new slot for an existing session up to the trainer check."""
        flow.transition(FlowTrigger.BEGIN)
        slot = self.expander.ensure_legitimate_start(session.trainer_id, new_date, new_start)
        flow.transition(FlowTrigger.SLOT_VALID)
        self.conflicts.ensure_no_conflict(
            session.client_id, PersonRole.CLIENT, new_date,
            slot.start_time, slot.end_time, exclude_session_id=session.id,
        )
        flow.transition(FlowTrigger.CLIENT_CLEAR)
        self.conflicts.ensure_no_conflict(
            session.trainer_id, PersonRole.TRAINER, new_date,
            slot.start_time, slot.end_time, exclude_session_id=session.id,
        )
        return slot

    def _reject(
        self, flow: Optional[BookingFlow], err: SchedulingError, action: str
    ) -> BookingResult:
        if flow is not None and not flow.is_terminal():
            flow.reject()
        if err.retryable:
            logger.exception("%s aborted by a storage failure: %s", action, err.message)
        else:
            logger.warning("%s rejected (%s): %s", action, err.reason.value, err.message)
        trace = flow.get_state_trace() if flow is not None else []
        return BookingResult.rejected(err, trace)

    def _sync_calendars(self, result: BookingResult) -> None:
        """Upsert the session into both participants' calendars, best effort."""
        if self.calendar is None or result.session is None:
            return
        session = result.session
        event_ids = dict(session.calendar_event_ids)
        for person_id in (session.client_id, session.trainer_id):
            event = CalendarEvent(
                session_id=session.id,
                summary=f"{session.session_type} session",
                date=session.date,
                start_time=session.start_time,
                end_time=session.end_time,
                event_id=event_ids.get(person_id),
            )
            try:
                event_ids[person_id] = self.calendar.upsert_event(person_id, event)
            except Exception:
                logger.warning(
                    "Calendar sync failed for %s on session %s", person_id, session.id,
                    exc_info=True,
                )
                result.warnings.append(f"Booked but not synced to the calendar of {person_id}.")

        if event_ids == session.calendar_event_ids:
            return
        try:
            result.session = self.store.update_session(
                session.id, {"calendar_event_ids": event_ids}
            )
        except SchedulingError as err:
            logger.warning("Could not record calendar event ids for %s: %s", session.id, err.message)
            result.warnings.append("Calendar event ids were not saved.")

    def _notify(self, result: BookingResult, send: Callable[[NotificationSink], None]) -> None:
        if self.notifier is None:
            return
        try:
            send(self.notifier)
        except Exception:
            session_id = result.session.id if result.session else "?"
            logger.warning("Notification failed for session %s", session_id, exc_info=True)
            result.warnings.append("Notification could not be sent.")
