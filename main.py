"""
Booking assistant entry point.

Wires the dialog engine to its collaborators and runs an interactive chat in
the terminal. Console mode is fully offline; live mode talks to OpenAI,
Google Sheets and Google Calendar using the configured credentials.

Usage:
    Offline console: python main.py console
    Live services:   python main.py live
"""

import logging
import sys

from citabot.config import settings

logger = logging.getLogger(__name__)


def _build_live_engine():
    """DialogEngine backed by OpenAI and the Google APIs (requires credentials)."""
    from citabot.conversation.dialog_engine import DialogEngine
    from citabot.conversation.intent import select_intent_classifier
    from citabot.conversation.session_store import SlotStore
    from citabot.schemas.business_schema import BusinessProfileSource
    from citabot.tools.booking import AppointmentCoordinator
    from citabot.tools.calendar_store import GoogleCalendarStore
    from citabot.tools.google_clients import build_calendar_service, build_sheets_service
    from citabot.tools.grid_store import GoogleSheetsGridStore
    from citabot.tools.nlu import OpenAIAppointmentAnalyzer
    from citabot.tools.text_generation import OpenAITextGenerator

    storage = settings.storage
    profiles = BusinessProfileSource(settings.business.profile_path)
    text_generator = OpenAITextGenerator()

    grid_store = None
    if storage.spreadsheet_id:
        service = build_sheets_service(storage.google_token_path, storage.request_timeout_sec)
        grid_store = GoogleSheetsGridStore(service, storage.spreadsheet_id)
    else:
        logger.warning("SPREADSHEETID not set, appointments will not be written to Sheets")

    calendar_store = None
    if storage.calendar_id:
        service = build_calendar_service(storage.google_token_path, storage.request_timeout_sec)
        calendar_store = GoogleCalendarStore(service)
    else:
        logger.warning("GOOGLE_CALENDAR_ID not set, no calendar events will be created")

    coordinator = AppointmentCoordinator(
        grid_store=grid_store,
        calendar_store=calendar_store,
        text_generator=text_generator,
        profile_source=profiles,
    )
    if grid_store is not None:
        coordinator.initialize_week_grid()

    return DialogEngine(
        store=SlotStore(history_limit=settings.dialog.history_limit),
        classifier=select_intent_classifier(OpenAIAppointmentAnalyzer()),
        coordinator=coordinator,
        text_generator=text_generator,
        profile_source=profiles,
    )


def _run_live_mode() -> None:
    """Chat in the terminal against the real services."""
    from citabot.tools.transport import ConsoleTransport, handle_inbound

    engine = _build_live_engine()
    transport = ConsoleTransport()
    identity = input("Teléfono del cliente: ").strip() or "5216620000000"
    display_name = input("Nombre del cliente: ").strip()
    print("Escribe 'salir' para terminar.")

    while True:
        text = input("\n[Cliente] ").strip()
        if text.lower() in ("salir", "quit", "exit"):
            return
        handle_inbound(engine, transport, identity, display_name, text)


def _run_console_mode() -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import ConsoleSession

    session = ConsoleSession()
    session.run()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "live":
        _run_live_mode()
    else:
        _run_console_mode()
