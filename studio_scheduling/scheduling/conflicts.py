"""Overlap detection against a person's existing active sessions."""

import logging
from datetime import date
from typing import Optional

from studio_scheduling.errors import ClientConflict, TrainerConflict
from studio_scheduling.schemas.studio_schema import (
    ACTIVE_SESSION_STATUSES,
    PersonRole,
    Session,
)
from studio_scheduling.time_arithmetic import intervals_overlap, time_to_minutes, validate_interval
from studio_scheduling.tools.store import PersistenceStore

logger = logging.getLogger(__name__)


class ConflictDetector:
    """
    Decides whether a proposed session overlaps someone's existing bookings.

    Clients and trainers are checked independently; a booking needs both
    to be clear. Overlap of half-open intervals is the only rule, so a
    session ending at 10:00 never blocks one starting at 10:00.
    """

    def __init__(self, store: PersistenceStore) -> None:
        self.store = store

    def find_conflicts(
        self,
        person_id: str,
        role: PersonRole,
        on_date: date,
        start_time: str,
        end_time: str,
        exclude_session_id: Optional[str] = None,
    ) -> list[Session]:
        start, end = validate_interval(start_time, end_time)
        existing = self.store.list_sessions(person_id, role, on_date, ACTIVE_SESSION_STATUSES)
        return [
            s for s in existing
            if s.id != exclude_session_id
            and intervals_overlap(
                start, end, time_to_minutes(s.start_time), time_to_minutes(s.end_time)
            )
        ]

    def ensure_no_conflict(
        self,
        person_id: str,
        role: PersonRole,
        on_date: date,
        start_time: str,
        end_time: str,
        exclude_session_id: Optional[str] = None,
    ) -> None:
        """Raise ``ClientConflict`` or ``TrainerConflict`` if anything overlaps."""
        conflicts = self.find_conflicts(
            person_id, role, on_date, start_time, end_time, exclude_session_id
        )
        if not conflicts:
            return

        clashes = ", ".join(f"{s.start_time}-{s.end_time}" for s in conflicts)
        logger.info(
            "%s %s has %d overlapping session(s) on %s: %s",
            role.value, person_id, len(conflicts), on_date, clashes,
        )
        if role == PersonRole.TRAINER:
            raise TrainerConflict(
                f"The trainer is already booked on {on_date.isoformat()} at {clashes}",
                conflicts,
            )
        raise ClientConflict(
            f"You already have a session on {on_date.isoformat()} at {clashes}",
            conflicts,
        )

    def ensure_both_clear(
        self,
        client_id: str,
        trainer_id: str,
        on_date: date,
        start_time: str,
        end_time: str,
        exclude_session_id: Optional[str] = None,
    ) -> None:
        """Client first, then trainer; the first clash raises."""
        self.ensure_no_conflict(
            client_id, PersonRole.CLIENT, on_date, start_time, end_time, exclude_session_id
        )
        self.ensure_no_conflict(
            trainer_id, PersonRole.TRAINER, on_date, start_time, end_time, exclude_session_id
        )
