"""
Intent classification for inbound chat messages.

Three independent checks, each answering a different question:
1. IntentClassifier  : does the customer want to book, and which slot values did they give?
2. TopicClassifier   : outside a booking, what is the customer asking about?
3. Cancellation check: is the customer trying to cancel an existing appointment?

The booking classifier has two variants: one backed by the NLU service and a
keyword heuristic used when that service is missing or fails.
"""

import logging
import re
from typing import Optional, Protocol

from citabot.errors import NLUError
from citabot.schemas.appointment_schema import AppointmentAnalysis
from citabot.utils import contains_keywords, normalize_text

logger = logging.getLogger(__name__)

HEURISTIC_CONFIDENCE = 0.6

_CANCEL_DATE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")
_CANCEL_TIME = re.compile(r"(\d{1,2}):(\d{2})")


class AppointmentAnalyzer(Protocol):
    """NLU collaborator contract."""

    def analyze(
        self, message: str, history: str, scheduling: bool, business_context: str = "",
    ) -> AppointmentAnalysis:
        ...


class IntentClassifier(Protocol):
    def classify(
        self, message: str, history: str, scheduling: bool, business_context: str = "",
    ) -> AppointmentAnalysis:
        ...


class KeywordIntentClassifier:
    """Booking intent from keywords alone; never extracts slot values."""

    BOOKING_KEYWORDS = ["cita", "agendar", "turno", "reservar", "apartar"]

    def classify(
        self, message: str, history: str = "", scheduling: bool = False, business_context: str = "",
    ) -> AppointmentAnalysis:
        wants = contains_keywords(message, self.BOOKING_KEYWORDS)
        return AppointmentAnalysis(
            wants_to_schedule=wants,
            extracted_slots={},
            confidence=HEURISTIC_CONFIDENCE,
        )


class ModelIntentClassifier:
    """NLU-backed classifier that degrades to keywords on any NLU failure."""

    def __init__(
        self,
        analyzer: AppointmentAnalyzer,
        fallback: Optional[KeywordIntentClassifier] = None,
    ) -> None:
        self._analyzer = analyzer
        self._fallback = fallback or KeywordIntentClassifier()

    def classify(
        self, message: str, history: str = "", scheduling: bool = False, business_context: str = "",
    ) -> AppointmentAnalysis:
        try:
            return self._analyzer.analyze(message, history, scheduling, business_context)
        except NLUError as exc:
            logger.warning("NLU unavailable, using keyword fallback: %s", exc)
            return self._fallback.classify(message, history, scheduling, business_context)


def select_intent_classifier(analyzer: Optional[AppointmentAnalyzer]) -> IntentClassifier:
    """Model-backed classifier when an analyzer is configured, keywords otherwise."""
    if analyzer is None:
        logger.info("No NLU service configured, using keyword intent classifier")
        return KeywordIntentClassifier()
    return ModelIntentClassifier(analyzer)


class TopicClassifier:
    """Maps a non-booking message to a conversation topic."""

    TOPIC_KEYWORDS: list[tuple[str, list[str]]] = [
        ("pricing", ["servicio", "precio", "cuanto cuesta", "costo"]),
        ("hours", ["horario", "hora", "abren", "cierran"]),
        ("location", ["donde", "ubicacion", "direccion", "como llegar"]),
        ("greeting", ["hola", "buenos", "buenas"]),
    ]

    def classify(self, message: str) -> str:
        normalized = normalize_text(message)
        for topic, keywords in self.TOPIC_KEYWORDS:
            # Keywords must start a word: "hora" must not fire on "ahora".
            if any(re.search(rf"\b{re.escape(keyword)}", normalized) for keyword in keywords):
                return topic
        return "general"


CANCEL_PHRASES = [
    "cancelar cita",
    "cancel appointment",
    "eliminar cita",
    "borrar cita",
    "anular cita",
    "quiero cancelar",
    "necesito cancelar",
]


def is_cancellation_request(message: str) -> bool:
    return contains_keywords(message, CANCEL_PHRASES)


def extract_cancellation_details(message: str) -> tuple[Optional[str], Optional[str]]:
    """
    Pull a D/M/YYYY date and an H:MM time out of free text.

    Either element is None when the message does not contain it.
    """
    date_match = _CANCEL_DATE.search(message)
    time_match = _CANCEL_TIME.search(message)
    date_text = "/".join(date_match.groups()) if date_match else None
    time_text = ":".join(time_match.groups()) if time_match else None
    return date_text, time_text
