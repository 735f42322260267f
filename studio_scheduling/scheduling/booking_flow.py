"""
Finite state machine for a single booking attempt.

Each book or reschedule request walks a fixed path of checks and ends in
exactly one terminal state, COMMITTED or REJECTED. The recorded trace is
returned on every result so a rejection can be traced to the step that
refused it.

Book:        start -> validate_slot -> check_client_conflict
             -> check_trainer_conflict -> find_package -> debit_package
             -> create_session -> committed
Reschedule:  start -> validate_slot -> check_client_conflict
             -> check_trainer_conflict -> update_session -> committed

Usage:
    flow = BookingFlow()
    flow.transition(FlowTrigger.BEGIN)
    assert flow.current_state == FlowState.VALIDATE_SLOT
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    """All possible states of a booking attempt."""
    START = "start"
    VALIDATE_SLOT = "validate_slot"
    CHECK_CLIENT_CONFLICT = "check_client_conflict"
    CHECK_TRAINER_CONFLICT = "check_trainer_conflict"
    FIND_PACKAGE = "find_package"
    DEBIT_PACKAGE = "debit_package"
    CREATE_SESSION = "create_session"
    UPDATE_SESSION = "update_session"
    COMMITTED = "committed"
    REJECTED = "rejected"


class FlowTrigger(str, Enum):
    """Events that move an attempt forward."""
    BEGIN = "begin"
    SLOT_VALID = "slot_valid"
    CLIENT_CLEAR = "client_clear"
    TRAINER_CLEAR = "trainer_clear"
    TRAINER_CLEAR_NO_DEBIT = "trainer_clear_no_debit"
    PACKAGE_FOUND = "package_found"
    PACKAGE_DEBITED = "package_debited"
    SESSION_WRITTEN = "session_written"
    REJECT = "reject"


TERMINAL_STATES = (FlowState.COMMITTED, FlowState.REJECTED)


@dataclass(frozen=True)
class Transition:
    """A single valid state transition."""
    from_state: FlowState
    to_state: FlowState
    trigger: FlowTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: FlowState
    entered_at: datetime
    trigger: Optional[FlowTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


class BookingFlow:
    """Deterministic state machine guarding the order of booking steps."""

    TRANSITIONS: list[Transition] = [
        Transition(FlowState.START, FlowState.VALIDATE_SLOT, FlowTrigger.BEGIN),
        Transition(FlowState.VALIDATE_SLOT, FlowState.CHECK_CLIENT_CONFLICT,
                   FlowTrigger.SLOT_VALID),
        Transition(FlowState.CHECK_CLIENT_CONFLICT, FlowState.CHECK_TRAINER_CONFLICT,
                   FlowTrigger.CLIENT_CLEAR),

        # --- New booking: consume a credit ---
        Transition(FlowState.CHECK_TRAINER_CONFLICT, FlowState.FIND_PACKAGE,
                   FlowTrigger.TRAINER_CLEAR),
        Transition(FlowState.FIND_PACKAGE, FlowState.DEBIT_PACKAGE,
                   FlowTrigger.PACKAGE_FOUND),
        Transition(FlowState.DEBIT_PACKAGE, FlowState.CREATE_SESSION,
                   FlowTrigger.PACKAGE_DEBITED),
        Transition(FlowState.CREATE_SESSION, FlowState.COMMITTED,
                   FlowTrigger.SESSION_WRITTEN),

        # --- Reschedule: no credit changes hands ---
        Transition(FlowState.CHECK_TRAINER_CONFLICT, FlowState.UPDATE_SESSION,
                   FlowTrigger.TRAINER_CLEAR_NO_DEBIT),
        Transition(FlowState.UPDATE_SESSION, FlowState.COMMITTED,
                   FlowTrigger.SESSION_WRITTEN),
    ] + [
        Transition(state, FlowState.REJECTED, FlowTrigger.REJECT)
        for state in FlowState
        if state not in TERMINAL_STATES
    ]

    def __init__(self) -> None:
        self._current_state = FlowState.START
        self._history: list[StateEntry] = [
            StateEntry(state=FlowState.START, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> FlowState:
        return self._current_state

    def transition(self, trigger: FlowTrigger) -> FlowState:
        """
        Execute a state transition.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Booking flow: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def reject(self) -> FlowState:
        return self.transition(FlowTrigger.REJECT)

    def get_valid_triggers(self) -> list[FlowTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES
