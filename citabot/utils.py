"""Shared text utilities used across the booking engine."""

import re
import unicodedata
from typing import Iterable


def normalize_text(text: str) -> str:
    """Lowercase, strip accents and surrounding whitespace.

    Examples:
        >>> normalize_text("  Miércoles ")
        'miercoles'
        >>> normalize_text("Mañana")
        'manana'
    """
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return unicodedata.normalize("NFC", stripped).strip()


def contains_keywords(text: str, keywords: Iterable[str]) -> bool:
    """True if the normalized text contains any normalized keyword."""
    normalized = normalize_text(text)
    return any(normalize_text(keyword) in normalized for keyword in keywords)


def clean_phone_number(identity: str) -> str:
    """Keep only the digits of a transport sender identity.

    Examples:
        >>> clean_phone_number("5216621234567@s.whatsapp.net")
        '5216621234567'
        >>> clean_phone_number("+52 (662) 123-4567")
        '526621234567'
    """
    return re.sub(r"[^\d]", "", identity)
