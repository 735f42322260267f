"""Trainer-side maintenance of weekly windows and one-off unavailable slots."""

import logging
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from studio_scheduling.schemas.studio_schema import UnavailableSlot, WeeklyAvailabilityWindow
from studio_scheduling.time_arithmetic import intervals_overlap, time_to_minutes
from studio_scheduling.tools.store import PersistenceStore

logger = logging.getLogger(__name__)


class TrainerSchedule:
    """Replace-all weekly availability plus individually managed exclusions."""

    def __init__(self, store: PersistenceStore) -> None:
        self.store = store

    def replace_weekly_availability(
        self, trainer_id: str, windows: Iterable[WeeklyAvailabilityWindow]
    ) -> list[WeeklyAvailabilityWindow]:
        """Delete every existing window for the trainer and store ``windows``.

        Windows are validated on construction. Overlapping windows on the
        same weekday are allowed and only logged.
        """
        rows = [w.model_copy(update={"trainer_id": trainer_id}) for w in windows]
        for weekday, clash in self._overlaps(rows):
            logger.warning(
                "Trainer %s has overlapping windows on weekday %d: %s",
                trainer_id, weekday, clash,
            )
        stored = self.store.replace_weekly_availability(trainer_id, rows)
        logger.info("Weekly availability replaced for %s: %d window(s)", trainer_id, len(stored))
        return stored

    @staticmethod
    def _overlaps(rows: list[WeeklyAvailabilityWindow]) -> list[tuple[int, str]]:
        by_day: dict[int, list[WeeklyAvailabilityWindow]] = defaultdict(list)
        for row in rows:
            by_day[row.weekday].append(row)

        found = []
        for weekday, day_rows in sorted(by_day.items()):
            day_rows.sort(key=lambda w: time_to_minutes(w.start_time))
            for prev, nxt in zip(day_rows, day_rows[1:]):
                if intervals_overlap(
                    time_to_minutes(prev.start_time), time_to_minutes(prev.end_time),
                    time_to_minutes(nxt.start_time), time_to_minutes(nxt.end_time),
                ):
                    found.append((
                        weekday,
                        f"{prev.start_time}-{prev.end_time} / {nxt.start_time}-{nxt.end_time}",
                    ))
        return found

    def add_unavailable_slot(
        self,
        trainer_id: str,
        on_date: date,
        start_time: str,
        end_time: str,
        reason: Optional[str] = None,
    ) -> UnavailableSlot:
        slot = self.store.add_unavailable_slot(UnavailableSlot(
            trainer_id=trainer_id,
            date=on_date,
            start_time=start_time,
            end_time=end_time,
            reason=reason or None,
        ))
        logger.info(
            "Unavailable slot %s added for %s on %s %s-%s",
            slot.id, trainer_id, on_date, slot.start_time, slot.end_time,
        )
        return slot

    def remove_unavailable_slot(self, trainer_id: str, slot_id: str) -> bool:
        """Delete one of the trainer's own exclusions. Returns False if it was already gone."""
        owned = {s.id for s in self.store.list_unavailable_slots(trainer_id)}
        if slot_id not in owned:
            logger.debug("Unavailable slot %s not found for %s", slot_id, trainer_id)
            return False
        return self.store.delete_unavailable_slot(slot_id)

    def upcoming_unavailable_slots(self, trainer_id: str, today: date) -> list[UnavailableSlot]:
        """Exclusions dated today or later, in date and time order."""
        slots = [s for s in self.store.list_unavailable_slots(trainer_id) if s.date >= today]
        return sorted(slots, key=lambda s: (s.date, time_to_minutes(s.start_time)))
