"""
Calendar-sync collaborator.

In production, this would create or update events in each person's
connected external calendar. A failed sync never undoes a booking; the
orchestrator reports it as a warning on the result.
"""

import logging
import uuid
from typing import Protocol

from studio_scheduling.schemas.booking_schema import CalendarEvent

logger = logging.getLogger(__name__)


class CalendarSync(Protocol):
    """Best-effort mirroring of sessions into personal calendars."""

    def upsert_event(self, person_id: str, event: CalendarEvent) -> str: ...


class InMemoryCalendarSync:
    """Keeps one event per (person, event id) in memory."""

    def __init__(self) -> None:
        self.events: dict[tuple[str, str], CalendarEvent] = {}

    def upsert_event(self, person_id: str, event: CalendarEvent) -> str:
        event_id = event.event_id or f"EV-{uuid.uuid4().hex[:10]}"
        created = (person_id, event_id) not in self.events
        self.events[(person_id, event_id)] = event.model_copy(update={"event_id": event_id})
        logger.debug(
            "Calendar event %s for %s: %s",
            "created" if created else "updated", person_id, event_id,
        )
        return event_id

    def events_for(self, person_id: str) -> list[CalendarEvent]:
        return [e for (pid, _), e in self.events.items() if pid == person_id]

    def reset(self) -> None:
        """Drop all events. Used by test fixtures for isolation."""
        self.events.clear()
