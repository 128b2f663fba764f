"""NLU analysis, appointment and persistence-result models."""

from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from citabot.schemas.session_schema import SLOT_KEY_ALIASES

_EMPTY_MARKERS = {"", "null", "none"}


class AppointmentAnalysis(BaseModel):
    """What the NLU service (or the keyword fallback) made of one message."""

    wants_to_schedule: bool = Field(
        default=False,
        validation_alias=AliasChoices("wantsToSchedule", "wants_to_schedule"),
    )
    extracted_slots: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("extractedSlots", "extractedData", "extracted_slots"),
    )
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator("extracted_slots", mode="before")
    @classmethod
    def _clean_slots(cls, value: Any) -> dict[str, str]:
        """Map aliases onto the fixed slot set and drop empty or unknown entries."""
        if not isinstance(value, dict):
            return {}
        cleaned: dict[str, str] = {}
        for key, raw in value.items():
            slot = SLOT_KEY_ALIASES.get(str(key).strip().lower())
            if slot is None or raw is None:
                continue
            text = str(raw).strip()
            if text.lower() in _EMPTY_MARKERS:
                continue
            cleaned.setdefault(slot, text)
        return cleaned

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
        return min(max(number, 0.0), 1.0)


class Appointment(BaseModel):
    """A complete booking, derived from a session whose required slots are filled."""

    client_name: str
    client_phone: str
    service: str
    worker: Optional[str] = None
    relative_date: str
    weekday: str
    normalized_date: str  # DD/MM/YYYY
    normalized_time: str  # H:MM AM/PM


class PersistenceStatus(str, Enum):
    PERSISTED = "persisted"
    PARTIALLY_PERSISTED = "partially_persisted"
    NOT_PERSISTED = "not_persisted"


class PersistenceResult(BaseModel):
    """Outcome of writing an appointment to the grid and calendar backends."""

    status: PersistenceStatus
    failures: dict[str, str] = Field(default_factory=dict)
    skipped: list[str] = Field(default_factory=list)
    cell_range: Optional[str] = None
    event_id: Optional[str] = None
    confirmation: str = ""

    @property
    def any_persisted(self) -> bool:
        return self.status != PersistenceStatus.NOT_PERSISTED


class CancellationResult(BaseModel):
    """Outcome of removing an appointment entry from the grid."""

    success: bool
    message: str
    cell_range: Optional[str] = None
