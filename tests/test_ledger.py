"""Tests for the package entitlement ledger."""

from datetime import date

import pytest

from studio_scheduling.errors import (
    NoPackage,
    PackageExhausted,
    PackageExpired,
    PackageNotFound,
)
from studio_scheduling.schemas.studio_schema import PackageStatus
from tests.conftest import CLIENT, make_package

TODAY = date(2024, 6, 3)


class TestFindDebitablePackage:
    def test_soonest_expiry_first(self, store, ledger):
        store.create_package(make_package("PKG-LATE", expiry_date=date(2024, 12, 31)))
        store.create_package(make_package("PKG-SOON", expiry_date=date(2024, 7, 1)))
        store.create_package(make_package("PKG-NEVER"))
        assert ledger.find_debitable_package(CLIENT, "In-Person Training", TODAY).id == "PKG-SOON"

    def test_no_expiry_sorts_last(self, store, ledger):
        store.create_package(make_package("PKG-NEVER", purchase_date=date(2024, 1, 1)))
        store.create_package(make_package("PKG-DATED", expiry_date=date(2025, 1, 1)))
        assert ledger.find_debitable_package(CLIENT, "In-Person Training", TODAY).id == "PKG-DATED"

    def test_skips_fully_used(self, store, ledger):
        store.create_package(make_package("PKG-FULL", used=8, expiry_date=date(2024, 7, 1)))
        store.create_package(make_package("PKG-OPEN", used=2, expiry_date=date(2024, 9, 1)))
        assert ledger.find_debitable_package(CLIENT, "In-Person Training", TODAY).id == "PKG-OPEN"

    def test_skips_expired_by_date(self, store, ledger):
        store.create_package(make_package("PKG-OLD", expiry_date=date(2024, 6, 1)))
        assert ledger.find_debitable_package(CLIENT, "In-Person Training", TODAY) is None

    def test_expiring_today_is_still_usable(self, store, ledger):
        store.create_package(make_package("PKG-TODAY", expiry_date=TODAY))
        assert ledger.find_debitable_package(CLIENT, "In-Person Training", TODAY).id == "PKG-TODAY"

    def test_other_type_ignored(self, store, ledger):
        store.create_package(make_package(package_type="Virtual Training"))
        assert ledger.find_debitable_package(CLIENT, "In-Person Training", TODAY) is None


class TestDiagnose:
    def test_no_package_of_type(self, store, ledger):
        store.create_package(make_package(package_type="Virtual Training"))
        with pytest.raises(NoPackage):
            ledger.require_debitable_package(CLIENT, "Partner Training", TODAY)

    def test_fully_used_package(self, store, ledger):
        store.create_package(make_package(
            package_type="Virtual Training", included=8, used=8, status=PackageStatus.COMPLETED,
        ))
        with pytest.raises(PackageExhausted):
            ledger.require_debitable_package(CLIENT, "Virtual Training", TODAY)

    def test_fully_used_but_still_active_status(self, store, ledger):
        store.create_package(make_package(package_type="Virtual Training", included=8, used=8))
        with pytest.raises(PackageExhausted):
            ledger.require_debitable_package(CLIENT, "Virtual Training", TODAY)

    def test_all_expired(self, store, ledger):
        store.create_package(make_package("PKG-A", expiry_date=date(2024, 5, 1)))
        store.create_package(make_package("PKG-B", status=PackageStatus.EXPIRED))
        with pytest.raises(PackageExpired):
            ledger.require_debitable_package(CLIENT, "In-Person Training", TODAY)

    def test_mix_of_expired_and_used_reports_exhausted(self, store, ledger):
        store.create_package(make_package("PKG-A", expiry_date=date(2024, 5, 1)))
        store.create_package(make_package("PKG-B", used=8))
        with pytest.raises(PackageExhausted):
            ledger.require_debitable_package(CLIENT, "In-Person Training", TODAY)

    def test_cancelled_packages_count_as_none(self, store, ledger):
        store.create_package(make_package(status=PackageStatus.CANCELLED))
        with pytest.raises(NoPackage):
            ledger.require_debitable_package(CLIENT, "In-Person Training", TODAY)


class TestDebitAndCredit:
    def test_debit_increments_used(self, store, ledger):
        store.create_package(make_package(used=3))
        assert ledger.debit("PKG-1").sessions_used == 4

    def test_last_debit_completes_package(self, store, ledger):
        store.create_package(make_package(included=4, used=3))
        updated = ledger.debit("PKG-1")
        assert updated.remaining == 0
        assert updated.status == PackageStatus.COMPLETED

    def test_debit_full_package_refused(self, store, ledger):
        store.create_package(make_package(included=4, used=4))
        with pytest.raises(PackageExhausted):
            ledger.debit("PKG-1")
        assert store.get_package("PKG-1").sessions_used == 4

    def test_debit_missing_package(self, ledger):
        with pytest.raises(PackageNotFound):
            ledger.debit("PKG-GONE")

    def test_credit_decrements_used(self, store, ledger):
        store.create_package(make_package(used=4))
        assert ledger.credit("PKG-1").sessions_used == 3

    def test_credit_floors_at_zero(self, store, ledger):
        store.create_package(make_package(used=0))
        assert ledger.credit("PKG-1").sessions_used == 0

    def test_credit_reopens_completed_package(self, store, ledger):
        store.create_package(make_package(included=4, used=4, status=PackageStatus.COMPLETED))
        updated = ledger.credit("PKG-1")
        assert updated.status == PackageStatus.ACTIVE
        assert updated.remaining == 1

    def test_credit_missing_package(self, ledger):
        with pytest.raises(PackageNotFound):
            ledger.credit("PKG-GONE")

    def test_debit_then_credit_restores_count(self, store, ledger):
        store.create_package(make_package(used=3))
        ledger.debit("PKG-1")
        ledger.credit("PKG-1")
        assert store.get_package("PKG-1").sessions_used == 3


class TestPooling:
    def test_total_remaining_pools_usable_packages(self, store, ledger):
        store.create_package(make_package("PKG-A", included=8, used=6))
        store.create_package(make_package("PKG-B", included=4, used=1))
        store.create_package(make_package("PKG-C", included=4, expiry_date=date(2024, 1, 1)))
        assert ledger.total_remaining(CLIENT, "In-Person Training", TODAY) == 5

    def test_fallback_refund_picks_latest_purchase(self, store, ledger):
        store.create_package(make_package("PKG-OLD", used=2, purchase_date=date(2024, 1, 1)))
        store.create_package(make_package("PKG-NEW", used=1, purchase_date=date(2024, 5, 1)))
        assert ledger.fallback_refund_package(CLIENT, "In-Person Training").id == "PKG-NEW"

    def test_fallback_refund_ignores_unused(self, store, ledger):
        store.create_package(make_package("PKG-NEW", used=0))
        assert ledger.fallback_refund_package(CLIENT, "In-Person Training") is None


class TestGrantPackage:
    def test_grant_creates_active_unused_package(self, store, ledger):
        package = ledger.grant_package(CLIENT, "Partner Training", 10, TODAY, date(2024, 12, 31))
        stored = store.get_package(package.id)
        assert stored.status == PackageStatus.ACTIVE
        assert stored.sessions_used == 0
        assert stored.remaining == 10
        assert package.id.startswith("PKG-")
