"""Shared test fixtures and fakes for collaborators."""

from datetime import date
from typing import Optional

import pytest

from citabot.conversation.dialog_engine import DialogEngine
from citabot.conversation.intent import KeywordIntentClassifier, ModelIntentClassifier
from citabot.conversation.session_store import SlotStore
from citabot.conversation.state_machine import ConversationStateMachine
from citabot.errors import CalendarStoreError, NLUError, TextGenerationError
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

# Monday
TODAY = date(2026, 1, 12)

BOOKABLE_TIMES = [
    "9:00 AM", "10:00 AM", "11:00 AM", "12:00 PM", "1:00 PM", "2:00 PM",
    "3:00 PM", "4:00 PM", "5:00 PM", "6:00 PM", "7:00 PM",
]


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAnalyzer:
    """NLU double returning queued analyses, or failing when told to."""

    def __init__(self) -> None:
        self.queue: list[AppointmentAnalysis] = []
        self.fail = False
        self.calls: list[tuple[str, str, bool, str]] = []

    def push(self, wants: bool = True, **slots: str) -> None:
        self.queue.append(
            AppointmentAnalysis(wants_to_schedule=wants, extracted_slots=slots, confidence=0.9)
        )

    def analyze(
        self, message: str, history: str, scheduling: bool, business_context: str = "",
    ) -> AppointmentAnalysis:
        self.calls.append((message, history, scheduling, business_context))
        if self.fail:
            raise NLUError("service down")
        if self.queue:
            return self.queue.pop(0)
        return AppointmentAnalysis(wants_to_schedule=scheduling, confidence=0.5)


class FakeTextGenerator:
    """Echoes its context so tests can see what was asked for."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[dict[str, str]] = []

    def generate(self, system_prompt: str, history: str, context: str, user_message: str) -> str:
        self.calls.append({
            "system_prompt": system_prompt,
            "history": history,
            "context": context,
            "user_message": user_message,
        })
        if self.fail:
            raise TextGenerationError("generator down")
        return f"GEN[{context}]"


class FailingCalendarStore:
    def __init__(self) -> None:
        self.attempts = 0

    def create_event(self, calendar_id, title, description, start, end, timezone, reminders=()):
        self.attempts += 1
        raise CalendarStoreError("calendar unreachable")


@pytest.fixture
def state_machine():
    return ConversationStateMachine()


@pytest.fixture
def profile():
    return BusinessProfile(
        agent_name="Barbería El Patrón",
        business_type="barbería",
        services=(Service(title="Corte", price=150),),
        workers=(Worker(name="Luis"),),
    )


@pytest.fixture
def profile_source(profile):
    return BusinessProfileSource.static(profile)


@pytest.fixture
def store():
    return SlotStore(history_limit=10)


@pytest.fixture
def grid():
    return InMemoryGridStore()


@pytest.fixture
def calendar():
    return InMemoryCalendarStore()


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
def clock():
    return FakeClock()


def make_coordinator(
    grid_store=None,
    calendar_store=None,
    text_generator=None,
    profile_source: Optional[BusinessProfileSource] = None,
    calendar_id: str = "cal-1",
) -> AppointmentCoordinator:
    return AppointmentCoordinator(
        grid_store=grid_store,
        calendar_store=calendar_store,
        text_generator=text_generator,
        profile_source=profile_source,
        calendar_id=calendar_id,
        sheet_name="Calendario",
        timezone="America/Hermosillo",
        bookable_times=BOOKABLE_TIMES,
    )


@pytest.fixture
def coordinator(grid, calendar, profile_source):
    return make_coordinator(grid, calendar, profile_source=profile_source)


def make_engine(
    store: SlotStore,
    coordinator: AppointmentCoordinator,
    analyzer: Optional[FakeAnalyzer] = None,
    text_generator=None,
    profile_source: Optional[BusinessProfileSource] = None,
    clock: Optional[FakeClock] = None,
    confirm_unpersisted: bool = True,
) -> DialogEngine:
    classifier = ModelIntentClassifier(analyzer) if analyzer else KeywordIntentClassifier()
    return DialogEngine(
        store=store,
        classifier=classifier,
        coordinator=coordinator,
        text_generator=text_generator,
        profile_source=profile_source,
        clock=clock or FakeClock(),
        today=lambda: TODAY,
        quiet_window_sec=5.0,
        confirm_unpersisted=confirm_unpersisted,
    )


@pytest.fixture
def engine(store, coordinator, analyzer, profile_source, clock):
    return make_engine(store, coordinator, analyzer, profile_source=profile_source, clock=clock)
