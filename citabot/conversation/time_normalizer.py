"""
Date and time phrase normalization.

Turns what a customer types ("el jueves", "mañana", "15/01/2026",
"3 de la tarde", "14") into the canonical values the grid and the calendar
are addressed with: a Spanish weekday plus a DD/MM/YYYY date, and a
"H:MM AM/PM" time of day taken from the bookable slots.

All functions are pure; "today" is always passed in or defaulted explicitly.
"""

import re
from datetime import date, timedelta
from typing import Optional, Sequence

from citabot.errors import DateParseError, TimeParseError
from citabot.utils import normalize_text

DATE_FORMAT = "%d/%m/%Y"

# Index matches date.weekday(): Monday == 0.
WEEKDAYS: tuple[str, ...] = (
    "lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo",
)
_WEEKDAY_BY_ASCII: dict[str, str] = {normalize_text(day): day for day in WEEKDAYS}

# Spreadsheet column for each weekday; column A holds the time labels.
WEEKDAY_COLUMNS: dict[str, str] = {
    "lunes": "B",
    "martes": "C",
    "miércoles": "D",
    "jueves": "E",
    "viernes": "F",
    "sábado": "G",
    "domingo": "H",
}

FIRST_SLOT_ROW = 2  # row 1 holds the headers

_WEEKDAY_PREFIXES = ("el ", "este ", "proximo ")

_DMY_EXACT = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DMY_EMBEDDED = re.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{4})")
_TWELVE_HOUR = re.compile(r"^(\d{1,2}):(\d{2})\s*([AaPp][Mm])$")

# Keys are already accent-stripped and lowercased.
TIME_PHRASES: dict[str, str] = {
    "9": "9:00 AM",
    "10": "10:00 AM",
    "11": "11:00 AM",
    "12": "12:00 PM",
    "13": "1:00 PM",
    "14": "2:00 PM",
    "15": "3:00 PM",
    "16": "4:00 PM",
    "17": "5:00 PM",
    "18": "6:00 PM",
    "19": "7:00 PM",
    "9 am": "9:00 AM",
    "10 am": "10:00 AM",
    "11 am": "11:00 AM",
    "12 pm": "12:00 PM",
    "1 pm": "1:00 PM",
    "2 pm": "2:00 PM",
    "3 pm": "3:00 PM",
    "4 pm": "4:00 PM",
    "5 pm": "5:00 PM",
    "6 pm": "6:00 PM",
    "7 pm": "7:00 PM",
    "9 de la manana": "9:00 AM",
    "10 de la manana": "10:00 AM",
    "11 de la manana": "11:00 AM",
    "12 del dia": "12:00 PM",
    "1 de la tarde": "1:00 PM",
    "2 de la tarde": "2:00 PM",
    "3 de la tarde": "3:00 PM",
    "4 de la tarde": "4:00 PM",
    "5 de la tarde": "5:00 PM",
    "6 de la tarde": "6:00 PM",
    "7 de la tarde": "7:00 PM",
    "7 de la noche": "7:00 PM",
    "manana": "10:00 AM",
    "tarde": "3:00 PM",
    "en la manana": "10:00 AM",
    "en la tarde": "3:00 PM",
    "por la manana": "10:00 AM",
    "por la tarde": "3:00 PM",
}


def weekday_name(day: date) -> str:
    """Spanish weekday name for a date."""
    return WEEKDAYS[day.weekday()]


def format_date(day: date) -> str:
    return day.strftime(DATE_FORMAT)


def parse_date(text: str) -> date:
    """Parse DD/MM/YYYY (single-digit day and month allowed, year >= 2000)."""
    match = _DMY_EXACT.match(text.strip())
    if not match:
        raise DateParseError(f"Invalid date format: {text!r} (use DD/MM/YYYY)")
    day, month, year = (int(part) for part in match.groups())
    if year < 2000:
        raise DateParseError(f"Year out of range in {text!r}")
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise DateParseError(f"Invalid calendar date {text!r}: {exc}") from exc


def next_weekday_date(weekday: str, today: date) -> date:
    """
    Next calendar occurrence of a weekday, strictly after today.

    When today already is that weekday the result is a full week ahead.
    """
    canonical = _WEEKDAY_BY_ASCII.get(normalize_text(weekday))
    if canonical is None:
        raise DateParseError(f"Unknown weekday: {weekday!r}")
    days_ahead = WEEKDAYS.index(canonical) - today.weekday()
    if days_ahead <= 0:
        days_ahead += 7
    return today + timedelta(days=days_ahead)


def _relative_weekday(phrase: str, today: date) -> Optional[str]:
    """Map hoy / mañana / "el jueves" style phrases to a weekday name."""
    relative = {
        "hoy": today,
        "manana": today + timedelta(days=1),
        "pasado manana": today + timedelta(days=2),
    }
    if phrase in relative:
        return weekday_name(relative[phrase])
    for prefix in _WEEKDAY_PREFIXES:
        if phrase.startswith(prefix):
            return _WEEKDAY_BY_ASCII.get(phrase[len(prefix):].strip())
    return None


def normalize_date(phrase: str, today: Optional[date] = None) -> tuple[str, str]:
    """
    Resolve a free-form date phrase to ``(weekday, "DD/MM/YYYY")``.

    Recognized, in priority order: a bare weekday name; hoy / mañana /
    pasado mañana and "el/este/próximo <weekday>" (mapped to a weekday name
    and resolved like a bare weekday); an explicit DD/MM/YYYY date; a weekday
    mentioned anywhere in the phrase; a D-M-YYYY date embedded in text.

    Raises:
        DateParseError: If nothing matches.
    """
    today = today or date.today()
    normalized = normalize_text(phrase)

    if normalized in _WEEKDAY_BY_ASCII:
        weekday = _WEEKDAY_BY_ASCII[normalized]
        return weekday, format_date(next_weekday_date(weekday, today))

    weekday = _relative_weekday(normalized, today)
    if weekday:
        return weekday, format_date(next_weekday_date(weekday, today))

    if _DMY_EXACT.match(normalized):
        exact = parse_date(normalized)
        return weekday_name(exact), format_date(exact)

    for ascii_name, canonical in _WEEKDAY_BY_ASCII.items():
        if re.search(rf"\b{ascii_name}\b", normalized):
            return canonical, format_date(next_weekday_date(canonical, today))

    match = _DMY_EMBEDDED.search(normalized)
    if match:
        exact = parse_date("/".join(match.groups()))
        return weekday_name(exact), format_date(exact)

    raise DateParseError(
        f"Unrecognized date: {phrase!r}. Use a weekday (lunes, martes, ...) or DD/MM/YYYY"
    )


def normalize_time(phrase: str, bookable_times: Sequence[str]) -> str:
    """
    Resolve a free-form time phrase to one of the canonical "H:MM AM/PM" values.

    The fixed phrase table is consulted first, then the bookable slots by
    substring containment in either direction. First match wins.

    Raises:
        TimeParseError: If nothing matches.
    """
    normalized = normalize_text(phrase)
    if not normalized:
        raise TimeParseError("Empty time")

    if normalized in TIME_PHRASES:
        return TIME_PHRASES[normalized]

    slots = [(slot, normalize_text(slot)) for slot in bookable_times]
    for slot, slot_normalized in slots:
        if slot_normalized == normalized:
            return slot
    # Digit guards keep "2:00 pm" from matching inside "12:00 pm".
    for slot, slot_normalized in slots:
        if re.search(rf"(?<!\d){re.escape(slot_normalized)}", normalized):
            return slot
    for slot, slot_normalized in slots:
        if re.match(rf"{re.escape(normalized)}(?!\d)", slot_normalized):
            return slot

    raise TimeParseError(
        f"Invalid time: {phrase!r}. Available times: {', '.join(bookable_times)}"
    )


def to_24h(normalized_time: str) -> tuple[int, int]:
    """
    Convert "H:MM AM/PM" to a 24-hour ``(hour, minute)`` pair.

    Raises:
        TimeParseError: If the AM/PM marker is missing or values are out of range.
    """
    match = _TWELVE_HOUR.match(normalized_time.strip())
    if not match:
        raise TimeParseError(f"Invalid time format: {normalized_time!r} (expected H:MM AM/PM)")
    hours, minutes = int(match.group(1)), int(match.group(2))
    period = match.group(3).upper()
    if not 1 <= hours <= 12 or not 0 <= minutes <= 59:
        raise TimeParseError(f"Time out of range: {normalized_time!r}")
    if period == "PM" and hours != 12:
        hours += 12
    elif period == "AM" and hours == 12:
        hours = 0
    return hours, minutes


def weekday_column(weekday: str) -> str:
    """Spreadsheet column letter for a weekday (accents optional)."""
    canonical = _WEEKDAY_BY_ASCII.get(normalize_text(weekday))
    if canonical is None:
        raise DateParseError(f"Unknown weekday: {weekday!r}")
    return WEEKDAY_COLUMNS[canonical]


def time_row(normalized_time: str, bookable_times: Sequence[str]) -> int:
    """Spreadsheet row for a bookable time; row 1 is the header row."""
    try:
        return list(bookable_times).index(normalized_time) + FIRST_SLOT_ROW
    except ValueError:
        raise TimeParseError(f"{normalized_time!r} is not a bookable time") from None


def row_for_hour(hour: int, minute: int, bookable_times: Sequence[str]) -> int:
    """Row whose bookable time has the given 24-hour clock value."""
    for index, slot in enumerate(bookable_times):
        if to_24h(slot) == (hour, minute):
            return index + FIRST_SLOT_ROW
    raise TimeParseError(f"{hour:02d}:{minute:02d} is outside the bookable hours")
