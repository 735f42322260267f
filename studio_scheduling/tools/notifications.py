"""
Booking notification collaborator.

In production, this would send booking and reschedule emails through the
studio's transactional email provider. The outbox sink records every
message and logs it, which is enough for tests and local development.
"""

import logging
from datetime import datetime, timezone
from typing import Protocol, TypedDict

from studio_scheduling.schemas.booking_schema import SlotCandidate
from studio_scheduling.schemas.studio_schema import Session

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Best-effort delivery of booking notifications."""

    def notify_booking_created(self, session: Session) -> None: ...

    def notify_reschedule(
        self, session: Session, old_slot: SlotCandidate, new_slot: SlotCandidate
    ) -> None: ...


class OutboxMessage(TypedDict):
    """A notification captured by the outbox."""

    kind: str
    session_id: str
    recipients: list[str]
    body: str
    queued_at: str


class OutboxNotificationSink:
    """Records notifications instead of sending them."""

    def __init__(self) -> None:
        self.outbox: list[OutboxMessage] = []

    def notify_booking_created(self, session: Session) -> None:
        body = (
            f"{session.session_type} booked on {session.date.isoformat()} "
            f"from {session.start_time} to {session.end_time}."
        )
        self._queue("booking_created", session, body)

    def notify_reschedule(
        self, session: Session, old_slot: SlotCandidate, new_slot: SlotCandidate
    ) -> None:
        body = (
            f"{session.session_type} moved to {session.date.isoformat()} "
            f"at {new_slot.start_time} (previously {old_slot.start_time})."
        )
        self._queue("session_rescheduled", session, body)

    def _queue(self, kind: str, session: Session, body: str) -> None:
        self.outbox.append({
            "kind": kind,
            "session_id": session.id,
            "recipients": [session.client_id, session.trainer_id],
            "body": body,
            "queued_at": datetime.now(timezone.utc).isoformat(),
        })
        logger.info("Notification queued: %s for session %s", kind, session.id)

    def reset(self) -> None:
        """Clear the outbox. Used by test fixtures for isolation."""
        self.outbox.clear()
