"""Tests for the booking attempt state machine."""

import pytest

from studio_scheduling.scheduling.booking_flow import (
    BookingFlow,
    FlowState,
    FlowTrigger,
    InvalidTransitionError,
)

BOOK_PATH = [
    FlowTrigger.BEGIN,
    FlowTrigger.SLOT_VALID,
    FlowTrigger.CLIENT_CLEAR,
    FlowTrigger.TRAINER_CLEAR,
    FlowTrigger.PACKAGE_FOUND,
    FlowTrigger.PACKAGE_DEBITED,
    FlowTrigger.SESSION_WRITTEN,
]


@pytest.fixture
def flow():
    return BookingFlow()


class TestInitialState:
    def test_starts_in_start(self, flow):
        assert flow.current_state == FlowState.START

    def test_initial_history_has_one_entry(self, flow):
        assert len(flow.get_history()) == 1

    def test_not_terminal_at_start(self, flow):
        assert not flow.is_terminal()


class TestBookPath:
    def test_full_book_path_commits(self, flow):
        for trigger in BOOK_PATH:
            flow.transition(trigger)
        assert flow.current_state == FlowState.COMMITTED
        assert flow.is_terminal()

    def test_trace_lists_every_step(self, flow):
        for trigger in BOOK_PATH:
            flow.transition(trigger)
        assert flow.get_state_trace() == [
            "start", "validate_slot", "check_client_conflict", "check_trainer_conflict",
            "find_package", "debit_package", "create_session", "committed",
        ]

    def test_history_records_triggers(self, flow):
        flow.transition(FlowTrigger.BEGIN)
        assert flow.get_history()[-1].trigger == FlowTrigger.BEGIN

    def test_cannot_debit_before_conflict_checks(self, flow):
        flow.transition(FlowTrigger.BEGIN)
        with pytest.raises(InvalidTransitionError):
            flow.transition(FlowTrigger.PACKAGE_DEBITED)

    def test_cannot_write_session_before_debit(self, flow):
        for trigger in BOOK_PATH[:5]:
            flow.transition(trigger)
        assert flow.current_state == FlowState.DEBIT_PACKAGE
        with pytest.raises(InvalidTransitionError):
            flow.transition(FlowTrigger.SESSION_WRITTEN)


class TestReschedulePath:
    def test_reschedule_skips_package_states(self, flow):
        for trigger in BOOK_PATH[:3]:
            flow.transition(trigger)
        flow.transition(FlowTrigger.TRAINER_CLEAR_NO_DEBIT)
        assert flow.current_state == FlowState.UPDATE_SESSION
        flow.transition(FlowTrigger.SESSION_WRITTEN)
        assert flow.current_state == FlowState.COMMITTED
        assert "find_package" not in flow.get_state_trace()


class TestRejection:
    @pytest.mark.parametrize("steps", range(len(BOOK_PATH)))
    def test_reject_from_any_non_terminal_state(self, flow, steps):
        for trigger in BOOK_PATH[:steps]:
            flow.transition(trigger)
        assert flow.reject() == FlowState.REJECTED
        assert flow.is_terminal()

    def test_no_transition_out_of_rejected(self, flow):
        flow.reject()
        assert flow.get_valid_triggers() == []
        with pytest.raises(InvalidTransitionError):
            flow.transition(FlowTrigger.BEGIN)

    def test_no_transition_out_of_committed(self, flow):
        for trigger in BOOK_PATH:
            flow.transition(trigger)
        with pytest.raises(InvalidTransitionError):
            flow.reject()

    def test_error_message_lists_valid_triggers(self, flow):
        with pytest.raises(InvalidTransitionError, match="begin"):
            flow.transition(FlowTrigger.SESSION_WRITTEN)
