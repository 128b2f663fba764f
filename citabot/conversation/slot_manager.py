"""
Slot definitions and the first-write-wins merge of NLU extractions.

Slots are requested one at a time in a fixed order. Once a slot holds a
value, later extraction passes never replace it, even when they disagree.

Usage:
    slots = BookingSlots()
    merge_slots(slots, {"name": "Ana", "service": "Corte"})
    next_slot = get_next_missing_slot(slots, worker_required=False)
    # next_slot.name == "date"
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from citabot.schemas.session_schema import SLOT_NAMES, BookingSlots

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotDefinition:
    """Schema for a single slot to collect."""

    name: str
    display_name: str
    question: str
    required: bool = True


SLOT_DEFINITIONS: list[SlotDefinition] = [
    SlotDefinition(
        name="name",
        display_name="nombre completo",
        question="¿Cuál es tu nombre completo?",
    ),
    SlotDefinition(
        name="service",
        display_name="servicio",
        question="¿Qué servicio te gustaría agendar?",
    ),
    SlotDefinition(
        name="date",
        display_name="fecha",
        question="¿Qué día te gustaría venir? (por ejemplo: lunes, mañana o 15/01/2026)",
    ),
    SlotDefinition(
        name="time",
        display_name="hora",
        question="¿A qué hora te queda mejor?",
    ),
    SlotDefinition(
        name="worker",
        display_name="persona que te atienda",
        question="¿Con quién te gustaría agendar tu cita?",
        required=False,
    ),
]


def get_definition(name: str) -> SlotDefinition:
    for defn in SLOT_DEFINITIONS:
        if defn.name == name:
            return defn
    raise ValueError(f"Unknown slot: {name}")


def required_slots(worker_required: bool) -> list[SlotDefinition]:
    """Required slots in request order; worker only when several exist."""
    return [
        defn for defn in SLOT_DEFINITIONS
        if defn.required or (defn.name == "worker" and worker_required)
    ]


def merge_slots(slots: BookingSlots, extracted: Mapping[str, str]) -> list[str]:
    """
    Copy extracted values into empty slots only.

    Returns:
        Names of the slots that were filled by this merge.
    """
    filled: list[str] = []
    for name in SLOT_NAMES:
        value = extracted.get(name)
        if value is None or not value.strip() or value.strip().lower() == "null":
            continue
        if slots.is_filled(name):
            if slots.get(name) != value.strip():
                logger.debug("Slot '%s' already set, ignoring '%s'", name, value)
            continue
        setattr(slots, name, value.strip())
        filled.append(name)
        logger.debug("Slot '%s' set to '%s'", name, value.strip())
    return filled


def get_missing_slots(slots: BookingSlots, worker_required: bool) -> list[SlotDefinition]:
    """All required slots still unfilled, in request order."""
    return [defn for defn in required_slots(worker_required) if not slots.is_filled(defn.name)]


def get_next_missing_slot(slots: BookingSlots, worker_required: bool) -> Optional[SlotDefinition]:
    """The single slot to ask for next, or None when everything is collected."""
    missing = get_missing_slots(slots, worker_required)
    return missing[0] if missing else None


def all_required_filled(slots: BookingSlots, worker_required: bool) -> bool:
    return not get_missing_slots(slots, worker_required)


def discard_slot(slots: BookingSlots, name: str) -> None:
    """Empty a slot whose value could not be used, so it is asked again."""
    get_definition(name)
    setattr(slots, name, None)
