"""
Persistence collaborator and its in-memory implementation.

In production, this would be backed by the studio's relational database
(trainer_availability, trainer_unavailable_slots, sessions and packages
tables). The in-memory store is used by tests and local development and
follows the same contract: records are returned as copies, and
``transaction()`` either applies every write inside it or none of them.
"""

import copy
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Iterable, Iterator, Optional, Protocol

from studio_scheduling.errors import PersistenceFailure
from studio_scheduling.schemas.studio_schema import (
    Package,
    PackageStatus,
    PersonRole,
    Session,
    SessionStatus,
    UnavailableSlot,
    WeeklyAvailabilityWindow,
)

logger = logging.getLogger(__name__)


class PersistenceStore(Protocol):
    """Storage operations the scheduling core depends on."""

    def list_weekly_availability(self, trainer_id: str) -> list[WeeklyAvailabilityWindow]: ...

    def replace_weekly_availability(
        self, trainer_id: str, windows: Iterable[WeeklyAvailabilityWindow]
    ) -> list[WeeklyAvailabilityWindow]: ...

    def list_unavailable_slots(
        self, trainer_id: str, on_date: Optional[date] = None
    ) -> list[UnavailableSlot]: ...

    def add_unavailable_slot(self, slot: UnavailableSlot) -> UnavailableSlot: ...

    def delete_unavailable_slot(self, slot_id: str) -> bool: ...

    def list_sessions(
        self,
        person_id: str,
        role: PersonRole,
        on_date: date,
        statuses: Iterable[SessionStatus],
    ) -> list[Session]: ...

    def get_session(self, session_id: str) -> Optional[Session]: ...

    def create_session(self, session: Session) -> Session: ...

    def update_session(self, session_id: str, patch: dict[str, Any]) -> Session: ...

    def list_packages(
        self,
        client_id: str,
        package_type: str,
        status: Optional[PackageStatus] = None,
    ) -> list[Package]: ...

    def get_package(self, package_id: str) -> Optional[Package]: ...

    def create_package(self, package: Package) -> Package: ...

    def update_package(self, package_id: str, patch: dict[str, Any]) -> Package: ...

    def transaction(self) -> Any: ...


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


class InMemoryStore:
    """Dict-backed ``PersistenceStore`` with snapshot/rollback transactions."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._windows: dict[str, WeeklyAvailabilityWindow] = {}
        self._unavailable: dict[str, UnavailableSlot] = {}
        self._sessions: dict[str, Session] = {}
        self._packages: dict[str, Package] = {}

    # --- Transactions ---

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStore"]:
        """Apply all writes in the block atomically; roll back on any exception.

        Holds the store lock for the whole block, so a check re-run inside
        the transaction sees no interleaved writes from other requests.
        """
        with self._lock:
            snapshot = self._snapshot()
            try:
                yield self
            except BaseException:
                self._restore(snapshot)
                logger.debug("Transaction rolled back")
                raise

    def _snapshot(self) -> tuple[dict, dict, dict, dict]:
        return (
            dict(self._windows),
            dict(self._unavailable),
            dict(self._sessions),
            dict(self._packages),
        )

    def _restore(self, snapshot: tuple[dict, dict, dict, dict]) -> None:
        self._windows, self._unavailable, self._sessions, self._packages = snapshot

    # --- Weekly availability ---

    def list_weekly_availability(self, trainer_id: str) -> list[WeeklyAvailabilityWindow]:
        with self._lock:
            rows = [w for w in self._windows.values() if w.trainer_id == trainer_id]
        return [w.model_copy(deep=True) for w in rows]

    def replace_weekly_availability(
        self, trainer_id: str, windows: Iterable[WeeklyAvailabilityWindow]
    ) -> list[WeeklyAvailabilityWindow]:
        with self.transaction():
            self._windows = {
                key: w for key, w in self._windows.items() if w.trainer_id != trainer_id
            }
            stored = []
            for window in windows:
                row = window.model_copy(update={"id": new_id("AV"), "trainer_id": trainer_id})
                self._windows[row.id] = row
                stored.append(row.model_copy(deep=True))
        return stored

    # --- Unavailable slots ---

    def list_unavailable_slots(
        self, trainer_id: str, on_date: Optional[date] = None
    ) -> list[UnavailableSlot]:
        with self._lock:
            rows = [
                s for s in self._unavailable.values()
                if s.trainer_id == trainer_id and (on_date is None or s.date == on_date)
            ]
        return [s.model_copy(deep=True) for s in rows]

    def add_unavailable_slot(self, slot: UnavailableSlot) -> UnavailableSlot:
        row = slot.model_copy(update={"id": slot.id or new_id("UN")})
        with self._lock:
            self._unavailable[row.id] = row
        return row.model_copy(deep=True)

    def delete_unavailable_slot(self, slot_id: str) -> bool:
        with self._lock:
            return self._unavailable.pop(slot_id, None) is not None

    # --- Sessions ---

    def list_sessions(
        self,
        person_id: str,
        role: PersonRole,
        on_date: date,
        statuses: Iterable[SessionStatus],
    ) -> list[Session]:
        wanted = set(statuses)
        with self._lock:
            rows = [
                s for s in self._sessions.values()
                if s.person_id(role) == person_id and s.date == on_date and s.status in wanted
            ]
        return [s.model_copy(deep=True) for s in rows]

    def get_session(self, session_id: str) -> Optional[Session]:
        with self._lock:
            row = self._sessions.get(session_id)
        return row.model_copy(deep=True) if row else None

    def create_session(self, session: Session) -> Session:
        now = datetime.now(timezone.utc)
        row = session.model_copy(
            update={"created_at": session.created_at or now, "updated_at": now}, deep=True
        )
        with self._lock:
            if row.id in self._sessions:
                raise PersistenceFailure(f"Session {row.id} already exists")
            self._sessions[row.id] = row
        logger.debug("Session stored: %s", row.id)
        return row.model_copy(deep=True)

    def update_session(self, session_id: str, patch: dict[str, Any]) -> Session:
        with self._lock:
            current = self._sessions.get(session_id)
            if current is None:
                raise PersistenceFailure(f"Session {session_id} no longer exists")
            data = {**current.model_dump(), **copy.deepcopy(patch)}
            data["updated_at"] = datetime.now(timezone.utc)
            row = Session.model_validate(data)
            self._sessions[session_id] = row
        return row.model_copy(deep=True)

    # --- Packages ---

    def list_packages(
        self,
        client_id: str,
        package_type: str,
        status: Optional[PackageStatus] = None,
    ) -> list[Package]:
        with self._lock:
            rows = [
                p for p in self._packages.values()
                if p.client_id == client_id
                and p.package_type == package_type
                and (status is None or p.status == status)
            ]
        return [p.model_copy(deep=True) for p in rows]

    def get_package(self, package_id: str) -> Optional[Package]:
        with self._lock:
            row = self._packages.get(package_id)
        return row.model_copy(deep=True) if row else None

    def create_package(self, package: Package) -> Package:
        with self._lock:
            if package.id in self._packages:
                raise PersistenceFailure(f"Package {package.id} already exists")
            self._packages[package.id] = package.model_copy(deep=True)
        return package.model_copy(deep=True)

    def delete_package(self, package_id: str) -> bool:
        with self._lock:
            return self._packages.pop(package_id, None) is not None

    def update_package(self, package_id: str, patch: dict[str, Any]) -> Package:
        with self._lock:
            current = self._packages.get(package_id)
            if current is None:
                raise PersistenceFailure(f"Package {package_id} no longer exists")
            try:
                row = Package.model_validate({**current.model_dump(), **patch})
            except ValueError as exc:
                raise PersistenceFailure(f"Package {package_id} update rejected: {exc}") from exc
            self._packages[package_id] = row
        return row.model_copy(deep=True)

    def reset(self) -> None:
        """Clear all records. Used by test fixtures for isolation."""
        with self._lock:
            self._windows.clear()
            self._unavailable.clear()
            self._sessions.clear()
            self._packages.clear()
