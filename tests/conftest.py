"""Shared test fixtures and helpers."""

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from studio_scheduling.scheduling.availability import AvailabilityExpander
from studio_scheduling.scheduling.conflicts import ConflictDetector
from studio_scheduling.scheduling.ledger import EntitlementLedger
from studio_scheduling.scheduling.orchestrator import BookingOrchestrator
from studio_scheduling.scheduling.policies import CatalogPolicy, PolicyPipeline, TimingPolicy
from studio_scheduling.schemas.booking_schema import BookingRequest, Caller
from studio_scheduling.schemas.studio_schema import (
    Package,
    PackageStatus,
    PersonRole,
    Session,
    SessionStatus,
    WeeklyAvailabilityWindow,
)
from studio_scheduling.tools.calendar_sync import InMemoryCalendarSync
from studio_scheduling.tools.notifications import OutboxNotificationSink
from studio_scheduling.tools.store import InMemoryStore

UTC = ZoneInfo("UTC")
SESSION_TYPES = ("In-Person Training", "Virtual Training", "Partner Training")

TRAINER = "trainer-1"
CLIENT = "client-1"
OTHER_CLIENT = "client-2"

# Monday 2024-06-03 08:00 UTC; MONDAY is the following Monday.
NOW = datetime(2024, 6, 3, 8, 0, tzinfo=timezone.utc)
MONDAY = date(2024, 6, 10)
TUESDAY = date(2024, 6, 11)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def notifier():
    return OutboxNotificationSink()


@pytest.fixture
def calendar():
    return InMemoryCalendarSync()


@pytest.fixture
def expander(store):
    return AvailabilityExpander(store, duration_minutes=60, step_minutes=30, timezone=UTC)


@pytest.fixture
def detector(store):
    return ConflictDetector(store)


@pytest.fixture
def ledger(store):
    return EntitlementLedger(store)


@pytest.fixture
def policies():
    return PolicyPipeline(
        catalog=CatalogPolicy(SESSION_TYPES),
        timing=TimingPolicy(tz=UTC, reschedule_notice_hours=24),
    )


@pytest.fixture
def orchestrator(store, notifier, calendar, policies):
    return BookingOrchestrator(
        store, notifier, calendar, clock=lambda: NOW, tz=UTC, policies=policies
    )


@pytest.fixture
def client_caller():
    return Caller(user_id=CLIENT, role=PersonRole.CLIENT)


@pytest.fixture
def trainer_caller():
    return Caller(user_id=TRAINER, role=PersonRole.TRAINER)


def make_window(
    weekday: int = 1,
    start: str = "09:00",
    end: str = "12:00",
    trainer_id: str = TRAINER,
) -> WeeklyAvailabilityWindow:
    """Helper to create a weekly window (default: Monday 09:00-12:00)."""
    return WeeklyAvailabilityWindow(
        trainer_id=trainer_id, weekday=weekday, start_time=start, end_time=end
    )


def make_session(
    session_id: str = "SES-1",
    client_id: str = CLIENT,
    trainer_id: str = TRAINER,
    on_date: date = MONDAY,
    start: str = "10:00",
    end: str = "11:00",
    status: SessionStatus = SessionStatus.CONFIRMED,
    session_type: str = "In-Person Training",
    package_id: Optional[str] = None,
) -> Session:
    """Helper to create a Session with sensible defaults."""
    return Session(
        id=session_id,
        client_id=client_id,
        trainer_id=trainer_id,
        date=on_date,
        start_time=start,
        end_time=end,
        session_type=session_type,
        status=status,
        package_id=package_id,
    )


def make_package(
    package_id: str = "PKG-1",
    client_id: str = CLIENT,
    package_type: str = "In-Person Training",
    included: int = 8,
    used: int = 0,
    status: PackageStatus = PackageStatus.ACTIVE,
    purchase_date: date = date(2024, 5, 1),
    expiry_date: Optional[date] = None,
) -> Package:
    """Helper to create a Package with sensible defaults."""
    return Package(
        id=package_id,
        client_id=client_id,
        package_type=package_type,
        sessions_included=included,
        sessions_used=used,
        status=status,
        purchase_date=purchase_date,
        expiry_date=expiry_date,
    )


def make_request(
    start: str = "10:00",
    on_date: date = MONDAY,
    session_type: str = "In-Person Training",
    client_id: str = CLIENT,
    trainer_id: str = TRAINER,
) -> BookingRequest:
    return BookingRequest(
        client_id=client_id,
        trainer_id=trainer_id,
        date=on_date,
        start_time=start,
        session_type=session_type,
    )
