"""
Package entitlement ledger.

A client may hold several packages of the same type. They are pooled when
asking "can this client book?", but each booking debits exactly one whole
credit from exactly one package record: the one expiring soonest.
"""

import logging
from datetime import date
from typing import Optional

from studio_scheduling.errors import (
    NoPackage,
    PackageExhausted,
    PackageExpired,
    PackageNotFound,
    SchedulingError,
)
from studio_scheduling.schemas.studio_schema import Package, PackageStatus
from studio_scheduling.tools.store import PersistenceStore, new_id

logger = logging.getLogger(__name__)

# Statuses that still describe a real entitlement, used or not.
_HELD_STATUSES = (PackageStatus.ACTIVE, PackageStatus.COMPLETED, PackageStatus.EXPIRED)


def _debit_order(package: Package) -> tuple:
    # Soonest expiry first, packages without expiry last, then oldest purchase.
    return (
        package.expiry_date is None,
        package.expiry_date or date.max,
        package.purchase_date,
        package.id,
    )


class EntitlementLedger:
    """Selects, debits and credits package records for a client."""

    def __init__(self, store: PersistenceStore) -> None:
        self.store = store

    def find_debitable_package(
        self, client_id: str, package_type: str, as_of: date
    ) -> Optional[Package]:
        candidates = [
            p for p in self.store.list_packages(client_id, package_type, PackageStatus.ACTIVE)
            if not p.is_expired(as_of)
        ]
        for package in sorted(candidates, key=_debit_order):
            if package.remaining > 0:
                return package
        return None

    def diagnose(self, client_id: str, package_type: str, as_of: date) -> SchedulingError:
        """Explain why no package could be debited.

        The three causes are mutually exclusive: nothing held at all, every
        held package expired, or at least one unexpired package that is
        fully used.
        """
        held = [
            p for p in self.store.list_packages(client_id, package_type)
            if p.status in _HELD_STATUSES
        ]
        if not held:
            return NoPackage(f"You don't have a {package_type} package.")
        if all(p.is_expired(as_of) for p in held):
            return PackageExpired(f"Your {package_type} package has expired.")
        return PackageExhausted(
            f"You have used all sessions in your {package_type} package."
        )

    def require_debitable_package(
        self, client_id: str, package_type: str, as_of: date
    ) -> Package:
        package = self.find_debitable_package(client_id, package_type, as_of)
        if package is None:
            raise self.diagnose(client_id, package_type, as_of)
        return package

    def total_remaining(self, client_id: str, package_type: str, as_of: date) -> int:
        """Pooled unused credits across every usable package of the type."""
        return sum(
            p.remaining
            for p in self.store.list_packages(client_id, package_type, PackageStatus.ACTIVE)
            if not p.is_expired(as_of)
        )

    def debit(self, package_id: str) -> Package:
        """Consume one credit. Fails if the package vanished or is full."""
        package = self.store.get_package(package_id)
        if package is None:
            raise PackageNotFound(f"Package {package_id} no longer exists")
        if package.remaining <= 0:
            raise PackageExhausted(
                f"You have used all sessions in your {package.package_type} package."
            )
        used = package.sessions_used + 1
        patch: dict = {"sessions_used": used}
        if used == package.sessions_included:
            patch["status"] = PackageStatus.COMPLETED
        updated = self.store.update_package(package_id, patch)
        logger.info(
            "Package %s debited: %d/%d used",
            package_id, updated.sessions_used, updated.sessions_included,
        )
        return updated

    def credit(self, package_id: str) -> Package:
        """Return one credit, never going below zero used."""
        package = self.store.get_package(package_id)
        if package is None:
            raise PackageNotFound(f"Package {package_id} no longer exists")
        patch: dict = {"sessions_used": max(package.sessions_used - 1, 0)}
        if package.status == PackageStatus.COMPLETED:
            patch["status"] = PackageStatus.ACTIVE
        updated = self.store.update_package(package_id, patch)
        logger.info(
            "Package %s credited: %d/%d used",
            package_id, updated.sessions_used, updated.sessions_included,
        )
        return updated

    def fallback_refund_package(self, client_id: str, package_type: str) -> Optional[Package]:
        """Most recently purchased package with a used credit.

        Only for sessions booked before the debited package was recorded.
        """
        refundable = [
            p for p in self.store.list_packages(client_id, package_type)
            if p.status in (PackageStatus.ACTIVE, PackageStatus.COMPLETED) and p.sessions_used > 0
        ]
        if not refundable:
            return None
        return max(refundable, key=lambda p: (p.purchase_date, p.id))

    def grant_package(
        self,
        client_id: str,
        package_type: str,
        sessions_included: int,
        purchase_date: date,
        expiry_date: Optional[date] = None,
    ) -> Package:
        """Create a fresh active package after payment or a manual grant."""
        package = self.store.create_package(Package(
            id=new_id("PKG"),
            client_id=client_id,
            package_type=package_type,
            sessions_included=sessions_included,
            sessions_used=0,
            status=PackageStatus.ACTIVE,
            purchase_date=purchase_date,
            expiry_date=expiry_date,
        ))
        logger.info(
            "Package %s granted to %s: %d x %s",
            package.id, client_id, sessions_included, package_type,
        )
        return package
