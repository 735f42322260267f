"""Tests for trainer-side availability maintenance."""

from datetime import date

import pytest

from studio_scheduling.errors import InvalidSlot
from studio_scheduling.scheduling.trainer_schedule import TrainerSchedule
from tests.conftest import MONDAY, TRAINER, TUESDAY, make_window


@pytest.fixture
def schedule(store):
    return TrainerSchedule(store)


class TestWeeklyAvailability:
    def test_replace_all_drops_previous_windows(self, store, schedule):
        schedule.replace_weekly_availability(TRAINER, [make_window(1), make_window(2)])
        schedule.replace_weekly_availability(TRAINER, [make_window(3, "13:00", "15:00")])
        windows = store.list_weekly_availability(TRAINER)
        assert [(w.weekday, w.start_time) for w in windows] == [(3, "13:00")]

    def test_stored_windows_get_ids_and_owner(self, schedule):
        stored = schedule.replace_weekly_availability(
            TRAINER, [make_window(1, trainer_id="someone-else")]
        )
        assert stored[0].id is not None
        assert stored[0].trainer_id == TRAINER

    def test_empty_list_clears_availability(self, store, schedule):
        schedule.replace_weekly_availability(TRAINER, [make_window(1)])
        schedule.replace_weekly_availability(TRAINER, [])
        assert store.list_weekly_availability(TRAINER) == []

    def test_other_trainers_untouched(self, store, schedule):
        schedule.replace_weekly_availability("trainer-2", [make_window(1, trainer_id="trainer-2")])
        schedule.replace_weekly_availability(TRAINER, [make_window(2)])
        assert len(store.list_weekly_availability("trainer-2")) == 1

    def test_overlapping_windows_are_kept_and_logged(self, store, schedule, caplog):
        schedule.replace_weekly_availability(TRAINER, [
            make_window(1, "09:00", "11:00"), make_window(1, "10:00", "12:00"),
        ])
        assert len(store.list_weekly_availability(TRAINER)) == 2
        assert "overlapping windows" in caplog.text

    def test_window_must_end_after_start(self):
        with pytest.raises(InvalidSlot):
            make_window(1, "12:00", "09:00")


class TestUnavailableSlots:
    def test_add_and_list_by_date(self, store, schedule):
        schedule.add_unavailable_slot(TRAINER, MONDAY, "12:00", "13:00", reason="Lunch")
        schedule.add_unavailable_slot(TRAINER, TUESDAY, "09:00", "10:00")
        on_monday = store.list_unavailable_slots(TRAINER, MONDAY)
        assert len(on_monday) == 1
        assert on_monday[0].reason == "Lunch"

    def test_blank_reason_stored_as_none(self, schedule):
        slot = schedule.add_unavailable_slot(TRAINER, MONDAY, "12:00", "13:00", reason="")
        assert slot.reason is None

    def test_remove_own_slot(self, store, schedule):
        slot = schedule.add_unavailable_slot(TRAINER, MONDAY, "12:00", "13:00")
        assert schedule.remove_unavailable_slot(TRAINER, slot.id) is True
        assert store.list_unavailable_slots(TRAINER) == []

    def test_cannot_remove_another_trainers_slot(self, store, schedule):
        slot = schedule.add_unavailable_slot("trainer-2", MONDAY, "12:00", "13:00")
        assert schedule.remove_unavailable_slot(TRAINER, slot.id) is False
        assert len(store.list_unavailable_slots("trainer-2")) == 1

    def test_remove_missing_slot(self, schedule):
        assert schedule.remove_unavailable_slot(TRAINER, "UN-MISSING") is False

    def test_upcoming_slots_sorted_and_filtered(self, schedule):
        schedule.add_unavailable_slot(TRAINER, date(2024, 6, 1), "09:00", "10:00")
        schedule.add_unavailable_slot(TRAINER, TUESDAY, "09:00", "10:00")
        schedule.add_unavailable_slot(TRAINER, MONDAY, "14:00", "15:00")
        schedule.add_unavailable_slot(TRAINER, MONDAY, "08:00", "09:00")
        upcoming = schedule.upcoming_unavailable_slots(TRAINER, date(2024, 6, 3))
        assert [(s.date, s.start_time) for s in upcoming] == [
            (MONDAY, "08:00"), (MONDAY, "14:00"), (TUESDAY, "09:00"),
        ]
