"""
Expands a trainer's weekly availability into bookable session starts.

A start is a candidate when a full session beginning there fits inside one
of the trainer's weekly windows for that weekday. Candidates are then
checked against the date's unavailable slots and the trainer's active
sessions to build the two views callers need:

- the client-facing grid: every step of every window, flagged available
  or not, so disabled cells can still be drawn;
- the trainer quick-pick list: only the free starts, minus anything
  already in the past when the date is today.

Usage:
    expander = AvailabilityExpander(store)
    expander.candidate_starts("trainer-1", date(2024, 6, 10))
"""

import logging
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from studio_scheduling.config import settings
from studio_scheduling.errors import InvalidSlot
from studio_scheduling.schemas.booking_schema import SlotCandidate, SlotWithAvailability
from studio_scheduling.schemas.studio_schema import (
    ACTIVE_SESSION_STATUSES,
    PersonRole,
    Session,
    UnavailableSlot,
    WeeklyAvailabilityWindow,
)
from studio_scheduling.time_arithmetic import (
    intervals_overlap,
    minutes_to_time,
    time_to_minutes,
)
from studio_scheduling.tools.store import PersistenceStore

logger = logging.getLogger(__name__)

REASON_OUTSIDE_WINDOW = "outside_window"
REASON_TRAINER_UNAVAILABLE = "trainer_unavailable"
REASON_BOOKED = "booked"


def weekday_index(on_date: date) -> int:
    """Day of week with 0=Sunday .. 6=Saturday."""
    return (on_date.weekday() + 1) % 7


def _window_steps(window: WeeklyAvailabilityWindow, step: int) -> range:
    return range(time_to_minutes(window.start_time), time_to_minutes(window.end_time), step)


class AvailabilityExpander:
    """Computes candidate and available session starts for a trainer and date."""

    def __init__(
        self,
        store: PersistenceStore,
        duration_minutes: Optional[int] = None,
        step_minutes: Optional[int] = None,
        timezone: Optional[ZoneInfo] = None,
    ) -> None:
        self.store = store
        self.duration = duration_minutes or settings.scheduling.session_duration_minutes
        self.step = step_minutes or settings.scheduling.slot_step_minutes
        self.timezone = timezone or ZoneInfo(settings.scheduling.studio_timezone)

    def windows_for(self, trainer_id: str, on_date: date) -> list[WeeklyAvailabilityWindow]:
        weekday = weekday_index(on_date)
        return [
            w for w in self.store.list_weekly_availability(trainer_id)
            if w.weekday == weekday
        ]

    def _fits(self, start: int, window: WeeklyAvailabilityWindow) -> bool:
        return start + self.duration <= time_to_minutes(window.end_time)

    def _candidate_minutes(self, windows: list[WeeklyAvailabilityWindow]) -> list[int]:
        starts = {
            start
            for window in windows
            for start in _window_steps(window, self.step)
            if self._fits(start, window)
        }
        return sorted(starts)

    def _slot(self, start: int) -> SlotCandidate:
        return SlotCandidate(
            start_time=minutes_to_time(start),
            end_time=minutes_to_time(start + self.duration),
        )

    def candidate_starts(self, trainer_id: str, on_date: date) -> list[SlotCandidate]:
        """Distinct legitimate starts for the date, ignoring bookings and exclusions."""
        windows = self.windows_for(trainer_id, on_date)
        if not windows:
            logger.debug("No weekly availability for %s on %s", trainer_id, on_date)
            return []
        return [self._slot(start) for start in self._candidate_minutes(windows)]

    def _blocking_reason(
        self,
        start: int,
        end: int,
        unavailable: list[UnavailableSlot],
        sessions: list[Session],
    ) -> Optional[str]:
        for slot in unavailable:
            if intervals_overlap(
                start, end, time_to_minutes(slot.start_time), time_to_minutes(slot.end_time)
            ):
                return REASON_TRAINER_UNAVAILABLE
        for session in sessions:
            if intervals_overlap(
                start, end, time_to_minutes(session.start_time), time_to_minutes(session.end_time)
            ):
                return REASON_BOOKED
        return None

    def _trainer_sessions(self, trainer_id: str, on_date: date) -> list[Session]:
        return self.store.list_sessions(
            trainer_id, PersonRole.TRAINER, on_date, ACTIVE_SESSION_STATUSES
        )

    def client_slot_grid(self, trainer_id: str, on_date: date) -> list[SlotWithAvailability]:
        """Every step across the day's windows with an availability flag.

        Each cell covers one step. A cell is available when a session can
        start there and the cell itself is clear of exclusions and
        bookings; the booking pipeline still validates the full session.
        """
        windows = self.windows_for(trainer_id, on_date)
        if not windows:
            return []
        unavailable = self.store.list_unavailable_slots(trainer_id, on_date)
        sessions = self._trainer_sessions(trainer_id, on_date)

        grid: dict[int, SlotWithAvailability] = {}
        for window in windows:
            window_end = time_to_minutes(window.end_time)
            for start in _window_steps(window, self.step):
                end = min(start + self.step, window_end)
                if self._fits(start, window):
                    reason = self._blocking_reason(start, end, unavailable, sessions)
                else:
                    reason = REASON_OUTSIDE_WINDOW
                cell = SlotWithAvailability(
                    start_time=minutes_to_time(start),
                    end_time=minutes_to_time(end),
                    is_available=reason is None,
                    reason=reason,
                )
                existing = grid.get(start)
                if existing is None or (cell.is_available and not existing.is_available):
                    grid[start] = cell
        return [grid[start] for start in sorted(grid)]

    def trainer_quick_picks(self, trainer_id: str, on_date: date, now: datetime) -> list[str]:
        """Free starts as plain ``HH:MM`` strings, skipping past times today.

        ``now`` must be timezone-aware; it is compared in the studio timezone.
        """
        windows = self.windows_for(trainer_id, on_date)
        if not windows:
            return []
        unavailable = self.store.list_unavailable_slots(trainer_id, on_date)
        sessions = self._trainer_sessions(trainer_id, on_date)

        local_now = now.astimezone(self.timezone)
        cutoff = None
        if local_now.date() == on_date:
            cutoff = local_now.hour * 60 + local_now.minute
        elif on_date < local_now.date():
            return []

        picks = []
        for start in self._candidate_minutes(windows):
            if cutoff is not None and start <= cutoff:
                continue
            if self._blocking_reason(start, start + self.duration, unavailable, sessions) is None:
                picks.append(minutes_to_time(start))
        return picks

    def ensure_legitimate_start(
        self, trainer_id: str, on_date: date, start_time: str
    ) -> SlotCandidate:
        """Return the slot for ``start_time`` or raise ``InvalidSlot``.

        Legitimate means generated from a weekly window and not overlapping
        an unavailable slot. Existing bookings are the conflict detector's job.
        """
        start = time_to_minutes(start_time)
        windows = self.windows_for(trainer_id, on_date)
        if start not in self._candidate_minutes(windows):
            raise InvalidSlot(
                f"{minutes_to_time(start)} on {on_date.isoformat()} is not an "
                "available start time for this trainer"
            )
        unavailable = self.store.list_unavailable_slots(trainer_id, on_date)
        if self._blocking_reason(start, start + self.duration, unavailable, []) is not None:
            raise InvalidSlot(
                f"The trainer is unavailable at {minutes_to_time(start)} "
                f"on {on_date.isoformat()}"
            )
        return self._slot(start)
