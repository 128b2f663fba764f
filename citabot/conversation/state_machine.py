"""
Finite state machine for the booking conversation.

Every session owns one machine. Transitions are declared in a single table,
so the dialog engine cannot move a session along a path that is not listed
here, whatever the NLU service says.

Usage:
    sm = ConversationStateMachine()
    sm.transition(TransitionTrigger.BOOKING_INTENT)
    assert sm.current_state == DialogState.COLLECTING
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from citabot.errors import InvalidTransitionError

logger = logging.getLogger(__name__)

__all__ = [
    "DialogState",
    "TransitionTrigger",
    "Transition",
    "StateEntry",
    "ConversationStateMachine",
    "InvalidTransitionError",
]


class DialogState(str, Enum):
    """All possible states of a booking conversation."""
    IDLE = "idle"
    COLLECTING = "collecting"
    READY_TO_SAVE = "ready_to_save"
    SAVED = "saved"
    CANCELLING = "cancelling"


class TransitionTrigger(str, Enum):
    """Events that cause state transitions."""
    BOOKING_INTENT = "booking_intent"
    SLOTS_COMPLETE = "slots_complete"
    SLOT_REJECTED = "slot_rejected"
    APPOINTMENT_SAVED = "appointment_saved"
    SAVE_FAILED = "save_failed"
    CANCEL_REQUESTED = "cancel_requested"
    CANCEL_FINISHED = "cancel_finished"


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: DialogState
    to_state: DialogState
    trigger: TransitionTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: DialogState
    entered_at: datetime
    trigger: Optional[TransitionTrigger] = None


class ConversationStateMachine:
    """Deterministic state machine controlling one session's booking flow."""

    TRANSITIONS: list[Transition] = [
        # --- Booking flow ---
        Transition(DialogState.IDLE, DialogState.COLLECTING,
                   TransitionTrigger.BOOKING_INTENT),
        Transition(DialogState.COLLECTING, DialogState.READY_TO_SAVE,
                   TransitionTrigger.SLOTS_COMPLETE),

        # --- Date/time that did not normalize goes back for a new value ---
        Transition(DialogState.READY_TO_SAVE, DialogState.COLLECTING,
                   TransitionTrigger.SLOT_REJECTED),

        # --- Persistence ---
        Transition(DialogState.READY_TO_SAVE, DialogState.SAVED,
                   TransitionTrigger.APPOINTMENT_SAVED),
        Transition(DialogState.READY_TO_SAVE, DialogState.READY_TO_SAVE,
                   TransitionTrigger.SAVE_FAILED),

        # --- Cancellation ---
        Transition(DialogState.IDLE, DialogState.CANCELLING,
                   TransitionTrigger.CANCEL_REQUESTED),
        Transition(DialogState.COLLECTING, DialogState.CANCELLING,
                   TransitionTrigger.CANCEL_REQUESTED),
        Transition(DialogState.READY_TO_SAVE, DialogState.CANCELLING,
                   TransitionTrigger.CANCEL_REQUESTED),
        Transition(DialogState.CANCELLING, DialogState.IDLE,
                   TransitionTrigger.CANCEL_FINISHED),
    ]

    def __init__(self) -> None:
        self._current_state = DialogState.IDLE
        self._history: list[StateEntry] = [
            StateEntry(state=DialogState.IDLE, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> DialogState:
        return self._current_state

    def can(self, trigger: TransitionTrigger) -> bool:
        return trigger in self.get_valid_triggers()

    def transition(self, trigger: TransitionTrigger) -> DialogState:
        """
        Execute a state transition.

        Args:
            trigger: The event triggering the transition.

        Returns:
            The new dialog state.

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
                    "State transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[TransitionTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        """Return the full state transition history."""
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        """SAVED is terminal; the next message starts a fresh session."""
        return self._current_state == DialogState.SAVED
