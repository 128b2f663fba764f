"""
Offline console demo: runs full booking conversations without any API keys.

Uses the real dialog engine, state machine, slot manager and appointment
coordinator with in-memory grid and calendar stores. There is no NLU
service offline, so while a booking is in progress each answer is taken as
the value of the slot the assistant just asked for.

Usage:
    python console_demo.py
    python console_demo.py --scenario info
    python console_demo.py --scenario cancel
"""

import argparse
from datetime import date
from typing import Callable, Optional

from citabot.config import settings
from citabot.conversation.dialog_engine import DialogEngine
from citabot.conversation.intent import KeywordIntentClassifier
from citabot.conversation.session_store import SlotStore
from citabot.conversation.slot_manager import get_next_missing_slot
from citabot.schemas.appointment_schema import AppointmentAnalysis
from citabot.schemas.business_schema import (
    BusinessProfile,
    BusinessProfileSource,
    Service,
    Worker,
)
from citabot.tools.booking import AppointmentCoordinator
from citabot.tools.calendar_store import InMemoryCalendarStore
from citabot.tools.grid_store import InMemoryGridStore

BLUE = "\033[94m"
GREEN = "\033[92m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_IDENTITY = "5216621234567@s.whatsapp.net"
DEMO_NAME = "Ana López"

DEMO_PROFILE = BusinessProfile(
    agent_name="Barbería El Patrón",
    business_type="barbería",
    services=(
        Service(title="Corte de cabello", price=150),
        Service(title="Corte y barba", price=220),
    ),
    workers=(Worker(name="Luis"),),
)


class AnswerAsSlotClassifier:
    """Keyword intent detection; during a booking the message fills the pending slot."""

    def __init__(self, pending_slot: Callable[[], Optional[str]]) -> None:
        self._keywords = KeywordIntentClassifier()
        self._pending_slot = pending_slot

    def classify(
        self, message: str, history: str = "", scheduling: bool = False, business_context: str = "",
    ) -> AppointmentAnalysis:
        analysis = self._keywords.classify(message, history, scheduling, business_context)
        slot = self._pending_slot() if scheduling else None
        if slot is None:
            return analysis
        return AppointmentAnalysis(
            wants_to_schedule=True,
            extracted_slots={slot: message},
            confidence=analysis.confidence,
        )


class ConsoleSession:
    """Simulates a chat with the booking assistant in the terminal."""

    SCENARIOS: dict[str, list[str]] = {
        "booking": [
            "Hola",
            "Quiero agendar una cita",
            DEMO_NAME,
            "Corte de cabello",
            "el jueves",
            "3 de la tarde",
        ],
        "info": [
            "Buenas tardes",
            "¿Cuánto cuesta el corte?",
            "¿A qué hora abren?",
        ],
        "cancel": [
            "Necesito cancelar mi cita",
            "Es el 15/01/2026",
            "a las 10:00",
        ],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(self) -> None:
        self.store = SlotStore(history_limit=settings.dialog.history_limit)
        self.grid = InMemoryGridStore()
        self.calendar = InMemoryCalendarStore()
        profiles = BusinessProfileSource.static(DEMO_PROFILE)
        coordinator = AppointmentCoordinator(
            grid_store=self.grid,
            calendar_store=self.calendar,
            profile_source=profiles,
            calendar_id="demo",
        )
        coordinator.initialize_week_grid()
        self.engine = DialogEngine(
            store=self.store,
            classifier=AnswerAsSlotClassifier(self._pending_slot),
            coordinator=coordinator,
            profile_source=profiles,
            today=date.today,
        )

    def _pending_slot(self) -> Optional[str]:
        session = self.store.get(DEMO_IDENTITY)
        if session is None:
            return None
        slot = get_next_missing_slot(session.slots, DEMO_PROFILE.requires_worker)
        return slot.name if slot else None

    def agent_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[{DEMO_PROFILE.agent_name}]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _state(self) -> str:
        session = self.store.get(DEMO_IDENTITY)
        return session.state.value if session else "idle"

    def _send(self, text: str) -> None:
        reply = self.engine.handle_message(DEMO_IDENTITY, DEMO_NAME, text)
        if reply:
            self.agent_say(reply)
        else:
            self.system_log("(sin respuesta)")
        self.system_log(f"State: {self._state()}")

    def _summary(self) -> None:
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        for cell, value in sorted(self.grid.cells().items()):
            if "\n" in value:
                print(f"{DIM}  {cell}: {value.replace(chr(10), ' | ')}{RESET}")
        print(f"{DIM}  Calendar events: {len(self.calendar.events)}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  CITABOT - {title}{RESET}")
        print(f"{BOLD}  Negocio: {DEMO_PROFILE.agent_name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        for step in steps:
            print(f"\n{BLUE}[Cliente] {RESET}{step}")
            self._send(step)
        self._summary()

    def run(self) -> None:
        self._banner("Console Demo (escribe 'salir' para terminar)")
        while True:
            user_input = input(f"\n{BLUE}[Cliente] {RESET}").strip()
            if not user_input:
                continue
            if user_input.lower() in ("salir", "quit", "exit", "q"):
                print(f"\n{DIM}Sesión terminada.{RESET}")
                break
            if len(user_input) > self.MAX_INPUT_LENGTH:
                self.agent_say("Tu mensaje es muy largo. ¿Podrías resumirlo un poco?")
                continue
            self._send(user_input)
        self._summary()


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline booking assistant demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        help="Auto-play a pre-scripted conversation",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        session.run_scenario(args.scenario)
    else:
        session.run()


if __name__ == "__main__":
    main()
