"""
Appointment persistence: the weekly grid, the calendar and the confirmation.

The grid and the calendar are written independently. A failure in one is
logged and recorded in the PersistenceResult; the other write is neither
skipped nor rolled back. A backend that is not configured is reported as
skipped rather than failed.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Optional, Protocol, Sequence

from citabot.config import settings
from citabot.conversation.time_normalizer import (
    DATE_FORMAT,
    WEEKDAYS,
    normalize_date,
    normalize_time,
    parse_date,
    row_for_hour,
    time_row,
    to_24h,
    weekday_column,
    weekday_name,
)
from citabot.errors import (
    CalendarStoreError,
    DateParseError,
    GridStoreError,
    TextGenerationError,
    TimeParseError,
)
from citabot.prompts.prompt_templates import (
    CANCELLATION_BAD_FORMAT,
    build_confirmation_prompt,
    cancellation_not_found,
    cancellation_success,
    confirmation_fallback,
)
from citabot.prompts.system_prompts import build_system_prompt
from citabot.schemas.appointment_schema import (
    Appointment,
    CancellationResult,
    PersistenceResult,
    PersistenceStatus,
)
from citabot.schemas.business_schema import BusinessProfileSource
from citabot.schemas.session_schema import BookingSlots
from citabot.tools.calendar_store import DEFAULT_REMINDERS, Reminder
from citabot.utils import clean_phone_number, normalize_text

logger = logging.getLogger(__name__)

GRID = "grid"
CALENDAR = "calendar"

APPOINTMENT_DURATION = timedelta(hours=1)
ENTRY_SEPARATOR = "──────────"


class GridStore(Protocol):
    def read_cell(self, cell_range: str) -> str: ...
    def write_cell(self, cell_range: str, value: str) -> None: ...
    def write_range(self, cell_range: str, rows: list[list[str]]) -> None: ...


class CalendarStore(Protocol):
    def create_event(
        self,
        calendar_id: str,
        title: str,
        description: str,
        start: datetime,
        end: datetime,
        timezone: str,
        reminders: Sequence[Reminder] = ...,
    ) -> str: ...


class TextGenerator(Protocol):
    def generate(self, system_prompt: str, history: str, context: str, user_message: str) -> str: ...


def format_cell_entry(appointment: Appointment) -> str:
    """One appointment as it appears inside a grid cell."""
    lines = [
        f"👤 {appointment.client_name}",
        f"📞 {appointment.client_phone}",
        f"✂️ {appointment.service}",
    ]
    if appointment.worker:
        lines.append(f"👨‍💼 {appointment.worker}")
    lines.append(f"📅 {appointment.normalized_date}")
    return "\n".join(lines)


def split_cell_entries(cell_text: str) -> list[str]:
    """Individual appointment entries stored in one cell."""
    return [
        entry.strip()
        for entry in cell_text.split(f"\n{ENTRY_SEPARATOR}\n")
        if entry.strip()
    ]


def join_cell_entries(entries: Sequence[str]) -> str:
    return f"\n{ENTRY_SEPARATOR}\n".join(entries)


def appointment_start(appointment: Appointment) -> datetime:
    """Naive local start time; the calendar event carries the timezone name."""
    day = parse_date(appointment.normalized_date)
    hour, minute = to_24h(appointment.normalized_time)
    return datetime(day.year, day.month, day.day, hour, minute)


class AppointmentCoordinator:
    """
    Turns collected slots into a persisted appointment and its confirmation.

    Args:
        grid_store: Spreadsheet grid, or None when not configured.
        calendar_store: Calendar backend, or None when not configured.
        text_generator: Generates the confirmation; None uses the template.
        profile_source: Business profile snapshots (agent name, prompts).
    """

    def __init__(
        self,
        grid_store: Optional[GridStore] = None,
        calendar_store: Optional[CalendarStore] = None,
        text_generator: Optional[TextGenerator] = None,
        profile_source: Optional[BusinessProfileSource] = None,
        calendar_id: Optional[str] = None,
        sheet_name: Optional[str] = None,
        timezone: Optional[str] = None,
        bookable_times: Optional[Sequence[str]] = None,
    ) -> None:
        self._grid = grid_store
        self._calendar = calendar_store
        self._text_generator = text_generator
        self._profiles = profile_source or BusinessProfileSource()
        self._calendar_id = settings.storage.calendar_id if calendar_id is None else calendar_id
        self._sheet_name = sheet_name or settings.business.sheet_name
        self._timezone = timezone or settings.business.timezone
        self._bookable_times = list(bookable_times or settings.business.bookable_times)

    @property
    def bookable_times(self) -> list[str]:
        return list(self._bookable_times)

    @property
    def calendar_enabled(self) -> bool:
        return self._calendar is not None and bool(self._calendar_id)

    def cell_range(self, weekday: str, normalized_time: str) -> str:
        column = weekday_column(weekday)
        row = time_row(normalized_time, self._bookable_times)
        return f"{self._sheet_name}!{column}{row}"

    def prepare(
        self,
        slots: BookingSlots,
        identity: str,
        today: Optional[date] = None,
    ) -> Appointment:
        """
        Build an Appointment from filled slots.

        Raises:
            ValueError: If name, service, date or time is missing.
            DateParseError: If the date slot does not normalize.
            TimeParseError: If the time slot does not normalize.
        """
        missing = [name for name in ("name", "service", "date", "time") if not slots.is_filled(name)]
        if missing:
            raise ValueError(f"Cannot build appointment, missing slots: {', '.join(missing)}")

        weekday, exact_date = normalize_date(slots.date, today)
        normalized_time = normalize_time(slots.time, self._bookable_times)
        return Appointment(
            client_name=slots.name.strip(),
            client_phone=clean_phone_number(identity),
            service=slots.service.strip(),
            worker=slots.worker.strip() if slots.is_filled("worker") else None,
            relative_date=slots.date,
            weekday=weekday,
            normalized_date=exact_date,
            normalized_time=normalized_time,
        )

    def persist(self, appointment: Appointment) -> PersistenceResult:
        """Write the appointment to every configured backend and build the confirmation."""
        failures: dict[str, str] = {}
        skipped: list[str] = []
        cell_range: Optional[str] = None
        event_id: Optional[str] = None

        if self._grid is None:
            skipped.append(GRID)
        else:
            try:
                cell_range = self._write_grid(appointment)
            except (GridStoreError, TimeParseError, DateParseError) as exc:
                logger.error("Grid write failed for %s: %s", appointment.client_name, exc)
                failures[GRID] = str(exc)

        if not self.calendar_enabled:
            skipped.append(CALENDAR)
        else:
            try:
                event_id = self._create_event(appointment)
            except (CalendarStoreError, TimeParseError, DateParseError) as exc:
                logger.error("Calendar write failed for %s: %s", appointment.client_name, exc)
                failures[CALENDAR] = str(exc)

        attempted = 2 - len(skipped)
        succeeded = attempted - len(failures)
        if succeeded == 0:
            status = PersistenceStatus.NOT_PERSISTED
        elif failures:
            status = PersistenceStatus.PARTIALLY_PERSISTED
        else:
            status = PersistenceStatus.PERSISTED

        logger.info(
            "Appointment %s %s for %s: %s (skipped=%s)",
            appointment.normalized_date, appointment.normalized_time,
            appointment.client_name, status.value, skipped,
        )
        return PersistenceResult(
            status=status,
            failures=failures,
            skipped=skipped,
            cell_range=cell_range,
            event_id=event_id,
            confirmation=self.generate_confirmation(appointment),
        )

    def _write_grid(self, appointment: Appointment) -> str:
        cell_range = self.cell_range(appointment.weekday, appointment.normalized_time)
        entry = format_cell_entry(appointment)
        existing = self._grid.read_cell(cell_range).strip()
        content = join_cell_entries([existing, entry]) if existing else entry
        self._grid.write_cell(cell_range, content)
        logger.info("Grid cell %s updated", cell_range)
        return cell_range

    def _create_event(self, appointment: Appointment) -> str:
        start = appointment_start(appointment)
        description = (
            f"Cliente: {appointment.client_name}\n"
            f"Teléfono: {appointment.client_phone}\n"
            f"Servicio: {appointment.service}\n"
            f"Barbero: {appointment.worker or 'Sin preferencia'}"
        )
        return self._calendar.create_event(
            self._calendar_id,
            f"✂️ {appointment.service} - {appointment.client_name}",
            description,
            start,
            start + APPOINTMENT_DURATION,
            self._timezone,
            DEFAULT_REMINDERS,
        )

    def generate_confirmation(self, appointment: Appointment) -> str:
        """Generated confirmation, or the fixed template when generation fails."""
        if self._text_generator is None:
            return confirmation_fallback(appointment)
        profile = self._profiles.snapshot()
        try:
            return self._text_generator.generate(
                build_system_prompt(profile),
                "",
                build_confirmation_prompt(appointment, profile.agent_name),
                "Confirmar cita",
            )
        except TextGenerationError as exc:
            logger.warning("Confirmation generation failed, using template: %s", exc)
            return confirmation_fallback(appointment)

    def cancel(self, client_name: str, date_text: str, time_text: str) -> CancellationResult:
        """
        Remove the client's entry from the grid cell addressed by date and time.

        ``date_text`` is D/M/YYYY and ``time_text`` is a 24-hour H:MM, as typed.
        """
        try:
            day = parse_date(date_text)
            hour, minute = (int(part) for part in time_text.split(":"))
            if not 0 <= hour <= 23 or not 0 <= minute <= 59:
                raise TimeParseError(f"Time out of range: {time_text!r}")
        except (DateParseError, TimeParseError, ValueError) as exc:
            logger.info("Cancellation with unusable date/time: %s", exc)
            return CancellationResult(success=False, message=CANCELLATION_BAD_FORMAT)

        shown_date = day.strftime(DATE_FORMAT)
        shown_time = f"{hour:02d}:{minute:02d}"
        not_found = CancellationResult(
            success=False, message=cancellation_not_found(shown_date, shown_time),
        )

        if self._grid is None:
            logger.warning("Cancellation requested but no grid store is configured")
            return not_found

        try:
            row = row_for_hour(hour, minute, self._bookable_times)
        except TimeParseError:
            return not_found
        cell_range = f"{self._sheet_name}!{weekday_column(weekday_name(day))}{row}"

        try:
            entries = split_cell_entries(self._grid.read_cell(cell_range))
            wanted = normalize_text(client_name)
            match = next(
                (entry for entry in entries if wanted and wanted in normalize_text(entry)),
                None,
            )
            if match is None:
                logger.info("No entry for %s in %s", client_name, cell_range)
                return not_found
            entries.remove(match)
            self._grid.write_cell(cell_range, join_cell_entries(entries))
        except GridStoreError as exc:
            logger.error("Cancellation in %s failed: %s", cell_range, exc)
            return not_found

        logger.info("Appointment for %s removed from %s", client_name, cell_range)
        return CancellationResult(
            success=True,
            message=cancellation_success(client_name, shown_date, shown_time),
            cell_range=cell_range,
        )

    def initialize_week_grid(self) -> bool:
        """
        Write the weekday header row and the time column into an empty grid.

        Returns:
            True if the grid was initialized, False if it already had headers.
        """
        if self._grid is None:
            return False
        origin = f"{self._sheet_name}!A1"
        if self._grid.read_cell(origin).strip():
            return False
        rows: list[list[Any]] = [["Hora"] + [day.capitalize() for day in WEEKDAYS]]
        rows.extend([slot] for slot in self._bookable_times)
        self._grid.write_range(origin, rows)
        logger.info("Weekly grid initialized in sheet '%s'", self._sheet_name)
        return True
