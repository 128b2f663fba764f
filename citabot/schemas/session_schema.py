"""Per-identity conversation state."""

from dataclasses import dataclass, field, fields
from typing import Optional

from citabot.conversation.state_machine import ConversationStateMachine, DialogState

# Fixed slot set, in the order slots are requested.
SLOT_NAMES: tuple[str, ...] = ("name", "service", "date", "time", "worker")

# Keys the NLU service may use for each slot.
SLOT_KEY_ALIASES: dict[str, str] = {
    "name": "name",
    "nombre": "name",
    "service": "service",
    "servicio": "service",
    "worker": "worker",
    "barbero": "worker",
    "trabajador": "worker",
    "date": "date",
    "fecha": "date",
    "time": "time",
    "hora": "time",
}


@dataclass
class BookingSlots:
    """Typed slot record; None means the slot has not been collected."""

    name: Optional[str] = None
    service: Optional[str] = None
    worker: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None

    def get(self, slot: str) -> Optional[str]:
        return getattr(self, slot)

    def is_filled(self, slot: str) -> bool:
        value = self.get(slot)
        return value is not None and value.strip() != ""

    def to_dict(self) -> dict[str, str]:
        """Export filled slots as a flat dict."""
        return {f.name: getattr(self, f.name) for f in fields(self) if self.is_filled(f.name)}


@dataclass
class CancellationRequest:
    """Date and time the user gave for the appointment to cancel."""

    date: Optional[str] = None  # D/M/YYYY as typed
    time: Optional[str] = None  # H:MM as typed

    @property
    def complete(self) -> bool:
        return bool(self.date and self.time)


@dataclass
class Session:
    """
    Conversation state for one end-user identity.

    Owned by the SlotStore; the dialog engine reaches it only through the
    store while holding that identity's lock.
    """

    identity: str
    display_name: str = ""
    step: int = 0
    slots: BookingSlots = field(default_factory=BookingSlots)
    history: list[str] = field(default_factory=list)
    history_limit: int = 10
    last_message_at: Optional[float] = None
    cancellation: CancellationRequest = field(default_factory=CancellationRequest)
    machine: ConversationStateMachine = field(default_factory=ConversationStateMachine)

    @property
    def state(self) -> DialogState:
        return self.machine.current_state

    @property
    def scheduling(self) -> bool:
        return self.state in (DialogState.COLLECTING, DialogState.READY_TO_SAVE)

    @property
    def saved(self) -> bool:
        return self.state == DialogState.SAVED

    def remember(self, line: str) -> None:
        """Append an utterance, keeping only the most recent entries."""
        self.history.append(line)
        overflow = len(self.history) - self.history_limit
        if overflow > 0:
            del self.history[:overflow]

    def history_text(self) -> str:
        return "".join(line + "\n" for line in self.history)
