"""End-to-end tests for the dialog engine with in-memory collaborators."""

import threading

from citabot.conversation.slot_manager import get_definition
from citabot.conversation.state_machine import DialogState, TransitionTrigger
from citabot.logging_context import get_chat_id
from citabot.prompts import prompt_templates as templates
from citabot.schemas.business_schema import BusinessProfile, BusinessProfileSource, Worker
from citabot.schemas.session_schema import BookingSlots
from citabot.tools.booking import split_cell_entries
from citabot.tools.grid_store import InMemoryGridStore
from tests.conftest import (
    FailingCalendarStore,
    FakeAnalyzer,
    FakeClock,
    FakeTextGenerator,
    make_coordinator,
    make_engine,
)

USER = "5216621234567@s.whatsapp.net"


def _book_everything(engine, analyzer, **overrides):
    slots = {"name": "Ana", "service": "Corte", "date": "lunes", "time": "10:00 AM"}
    slots.update(overrides)
    analyzer.push(wants=True, **slots)
    return engine.handle_message(USER, "Ana", "Quiero una cita: Ana, Corte, lunes 10am")


class BlockingAnalyzer(FakeAnalyzer):
    """Holds every analysis until released, counting callers inside at once."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()
        self.active = 0
        self.max_active = 0
        self._guard = threading.Lock()

    def analyze(self, *args, **kwargs):
        with self._guard:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            self.entered.set()
            self.release.wait(timeout=5)
            return super().analyze(*args, **kwargs)
        finally:
            with self._guard:
                self.active -= 1


class TestStartBooking:
    def test_quiero_una_cita_asks_for_name(self, engine, analyzer, store):
        analyzer.fail = True
        reply = engine.handle_message(USER, "Ana", "quiero una cita")
        assert reply == get_definition("name").question
        assert store.get(USER).state == DialogState.COLLECTING
        assert store.get(USER).scheduling

    def test_start_fallback_when_generation_fails(self, store, coordinator, analyzer, profile_source):
        analyzer.fail = True
        engine = make_engine(
            store, coordinator, analyzer,
            text_generator=FakeTextGenerator(fail=True), profile_source=profile_source,
        )
        assert engine.handle_message(USER, "Ana", "quiero una cita") == templates.START_BOOKING_FALLBACK

    def test_generated_prompt_names_the_slot(self, store, coordinator, analyzer, profile_source):
        analyzer.fail = True
        generator = FakeTextGenerator()
        engine = make_engine(
            store, coordinator, analyzer, text_generator=generator, profile_source=profile_source,
        )
        engine.handle_message(USER, "Ana", "quiero una cita")
        assert "Pide ÚNICAMENTE: nombre completo." in generator.calls[-1]["context"]
        assert "Barbería El Patrón" in generator.calls[-1]["system_prompt"]

    def test_extracted_slots_are_kept_on_entry(self, engine, analyzer, store):
        analyzer.push(wants=True, name="Ana", service="Corte")
        reply = engine.handle_message(USER, "Ana", "Soy Ana, quiero una cita para corte")
        assert reply == get_definition("date").question
        assert store.get(USER).slots.to_dict() == {"name": "Ana", "service": "Corte"}

    def test_nlu_receives_history_and_catalog(self, engine, analyzer):
        analyzer.push(wants=False)
        engine.handle_message(USER, "Ana", "hola")
        message, history, scheduling, context = analyzer.calls[0]
        assert message == "hola"
        assert "Usuario: hola" in history
        assert scheduling is False
        assert "- Corte" in context


class TestCollecting:
    def _collecting_session(self, store, **slots):
        session = store.get_or_create(USER)
        session.machine.transition(TransitionTrigger.BOOKING_INTENT)
        session.slots = BookingSlots(**slots)
        return session

    def test_next_prompt_asks_for_date(self, engine, analyzer, store):
        self._collecting_session(store, name="Ana", service="Corte", date="", time="")
        analyzer.push(wants=True)
        assert engine.handle_message(USER, "Ana", "ok") == get_definition("date").question

    def test_next_prompt_context_requests_only_date(self, store, coordinator, analyzer, profile_source):
        generator = FakeTextGenerator()
        engine = make_engine(
            store, coordinator, analyzer, text_generator=generator, profile_source=profile_source,
        )
        self._collecting_session(store, name="Ana", service="Corte", date="", time="")
        analyzer.push(wants=True)
        engine.handle_message(USER, "Ana", "ok")
        context = generator.calls[-1]["context"]
        assert "Pide ÚNICAMENTE: fecha." in context
        assert "name: Ana" in context

    def test_slot_fallback_template(self, store, coordinator, analyzer, profile_source):
        engine = make_engine(
            store, coordinator, analyzer,
            text_generator=FakeTextGenerator(fail=True), profile_source=profile_source,
        )
        self._collecting_session(store, name="Ana", service="Corte")
        analyzer.push(wants=True)
        assert engine.handle_message(USER, "Ana", "ok") == "Por favor, dime tu fecha:"

    def test_later_extraction_never_overwrites(self, engine, analyzer, store):
        self._collecting_session(store, name="Ana")
        analyzer.push(wants=True, name="Pedro", service="Corte")
        engine.handle_message(USER, "Ana", "soy Pedro y quiero corte")
        assert store.get(USER).slots.name == "Ana"
        assert store.get(USER).slots.service == "Corte"

    def test_nlu_failure_while_collecting_keeps_asking(self, engine, analyzer, store):
        self._collecting_session(store, name="Ana")
        analyzer.fail = True
        reply = engine.handle_message(USER, "Ana", "Corte")
        assert reply == get_definition("service").question
        assert store.get(USER).state == DialogState.COLLECTING

    def test_worker_requested_when_several_workers(self, store, coordinator, analyzer):
        profiles = BusinessProfileSource.static(
            BusinessProfile(workers=(Worker(name="Luis"), Worker(name="Beto")))
        )
        engine = make_engine(store, coordinator, analyzer, profile_source=profiles)
        analyzer.push(wants=True, name="Ana", service="Corte", date="lunes", time="10")
        assert engine.handle_message(USER, "Ana", "cita") == get_definition("worker").question
        assert store.get(USER).state == DialogState.COLLECTING

    def test_worker_completes_the_booking(self, store, coordinator, analyzer, calendar):
        profiles = BusinessProfileSource.static(
            BusinessProfile(workers=(Worker(name="Luis"), Worker(name="Beto")))
        )
        engine = make_engine(store, coordinator, analyzer, profile_source=profiles)
        analyzer.push(wants=True, name="Ana", service="Corte", date="lunes", time="10")
        engine.handle_message(USER, "Ana", "cita")
        analyzer.push(wants=True, worker="Beto")
        reply = engine.handle_message(USER, "Ana", "con Beto")
        assert "💈 Con: Beto" in reply
        assert store.get(USER).saved
        assert len(calendar.events) == 1


class TestSaving:
    def test_complete_booking_is_persisted_and_confirmed(self, engine, analyzer, store, grid, calendar):
        reply = _book_everything(engine, analyzer)
        assert "¡Perfecto! 🎉" in reply
        assert "📅 19/01/2026 a las 10:00 AM" in reply
        assert store.get(USER).saved
        assert "👤 Ana" in grid.read_cell("Calendario!B3")
        assert len(calendar.events) == 1

    def test_calendar_failure_still_confirms(self, store, analyzer, profile_source):
        grid = InMemoryGridStore()
        failing = FailingCalendarStore()
        coordinator = make_coordinator(grid, failing, profile_source=profile_source)
        engine = make_engine(store, coordinator, analyzer, profile_source=profile_source)
        reply = _book_everything(engine, analyzer)
        assert reply
        assert failing.attempts == 1
        assert store.get(USER).saved
        assert grid.read_cell("Calendario!B3")

    def test_nothing_persisted_confirms_by_default(self, store, analyzer, profile_source):
        coordinator = make_coordinator(None, FailingCalendarStore(), profile_source=profile_source)
        engine = make_engine(store, coordinator, analyzer, profile_source=profile_source)
        assert "agendada" in _book_everything(engine, analyzer)
        assert store.get(USER).saved

    def test_nothing_persisted_with_retry_policy(self, store, analyzer, profile_source):
        failing = FailingCalendarStore()
        coordinator = make_coordinator(None, failing, profile_source=profile_source)
        engine = make_engine(
            store, coordinator, analyzer, profile_source=profile_source, confirm_unpersisted=False,
        )
        assert _book_everything(engine, analyzer) == templates.SAVE_RETRY_MESSAGE
        assert store.get(USER).state == DialogState.READY_TO_SAVE

        engine.handle_message(USER, "Ana", "¿ya quedó?")
        assert failing.attempts == 2

    def test_unparseable_date_is_discarded_and_asked_again(self, engine, analyzer, store):
        reply = _book_everything(engine, analyzer, date="el día 45")
        assert reply == templates.rephrase_request("date")
        session = store.get(USER)
        assert session.state == DialogState.COLLECTING
        assert session.slots.date is None
        assert session.slots.name == "Ana"

        analyzer.push(wants=True, date="martes")
        assert "20/01/2026" in engine.handle_message(USER, "Ana", "el martes")
        assert store.get(USER).saved

    def test_unparseable_time_is_discarded(self, engine, analyzer, store):
        reply = _book_everything(engine, analyzer, time="a medianoche")
        assert reply.startswith("No logré entender la hora")
        assert "10:00 AM" in reply
        assert store.get(USER).slots.time is None

    def test_generated_confirmation(self, store, analyzer, grid, calendar, profile_source):
        generator = FakeTextGenerator()
        coordinator = make_coordinator(grid, calendar, generator, profile_source)
        engine = make_engine(store, coordinator, analyzer, profile_source=profile_source)
        reply = _book_everything(engine, analyzer)
        assert reply.startswith("GEN[Genera un mensaje de confirmación")


class TestQuietWindow:
    def test_quiet_window_then_reset(self, engine, analyzer, store, clock):
        _book_everything(engine, analyzer)
        saved_session = store.get(USER)

        clock.advance(2)
        assert engine.handle_message(USER, "Ana", "gracias!") == ""
        assert store.get(USER) is saved_session
        assert saved_session.saved

        clock.advance(4)
        analyzer.push(wants=False)
        reply = engine.handle_message(USER, "Ana", "Hola")
        fresh = store.get(USER)
        assert fresh is not saved_session
        assert fresh.state == DialogState.IDLE
        assert reply == templates.welcome_fallback("Barbería El Patrón")

    def test_new_booking_after_reset(self, engine, analyzer, store, clock):
        _book_everything(engine, analyzer)
        clock.advance(10)
        analyzer.fail = True
        assert engine.handle_message(USER, "Ana", "otra cita por favor") == get_definition("name").question
        assert store.get(USER).state == DialogState.COLLECTING


class TestNormalConversation:
    def test_greeting_uses_welcome_fallback(self, engine, analyzer):
        analyzer.push(wants=False)
        reply = engine.handle_message(USER, "Ana", "Hola, buenas tardes")
        assert reply.startswith("¡Hola! Bienvenido a Barbería El Patrón")

    def test_topic_context_passed_to_generator(self, store, coordinator, analyzer, profile_source):
        generator = FakeTextGenerator()
        engine = make_engine(
            store, coordinator, analyzer, text_generator=generator, profile_source=profile_source,
        )
        analyzer.push(wants=False)
        engine.handle_message(USER, "Ana", "¿Cuánto cuesta el corte?")
        assert generator.calls[-1]["context"] == templates.TOPIC_CONTEXTS["pricing"]
        assert store.get(USER).state == DialogState.IDLE

    def test_generation_failure_apologizes(self, store, coordinator, analyzer, profile_source):
        engine = make_engine(
            store, coordinator, analyzer,
            text_generator=FakeTextGenerator(fail=True), profile_source=profile_source,
        )
        analyzer.push(wants=False)
        assert engine.handle_message(USER, "Ana", "¿Dónde están?") == templates.REPEAT_QUESTION

    def test_history_records_both_sides(self, engine, analyzer, store):
        analyzer.push(wants=False)
        reply = engine.handle_message(USER, "Ana", "hola")
        assert store.get(USER).history == ["Usuario: hola", f"Asistente: {reply}"]

    def test_blank_message_is_ignored(self, engine, store):
        assert engine.handle_message(USER, "Ana", "   ") == ""
        assert store.get(USER) is None

    def test_chat_id_set_for_logging(self, engine, analyzer):
        analyzer.push(wants=False)
        engine.handle_message(USER, "Ana", "hola")
        assert get_chat_id() == USER


class TestCancellationFlow:
    def _seed(self, grid, name="Ana López"):
        # 15/01/2026 is a Thursday (column E); 10:00 AM is row 3.
        grid.write_cell("Calendario!E3", f"👤 {name}\n📞 521\n✂️ Corte\n📅 15/01/2026")

    def test_step_by_step(self, engine, store, grid):
        self._seed(grid)
        reply = engine.handle_message(USER, "Ana López", "Quiero cancelar mi cita")
        assert "Para cancelar tu cita, Ana López" in reply
        assert store.get(USER).state == DialogState.CANCELLING

        assert engine.handle_message(USER, "Ana López", "15/01/2026") == templates.CANCELLATION_ASK_TIME
        reply = engine.handle_message(USER, "Ana López", "10:00")
        assert reply.startswith("✅ *Cita cancelada exitosamente*")
        assert grid.read_cell("Calendario!E3") == ""
        assert USER not in store

    def test_ask_date_when_only_time_given(self, engine, grid):
        engine.handle_message(USER, "Ana López", "necesito cancelar")
        assert engine.handle_message(USER, "Ana López", "a las 10:00") == templates.CANCELLATION_ASK_DATE

    def test_single_message_with_details(self, engine, grid):
        self._seed(grid)
        reply = engine.handle_message(USER, "Ana López", "Cancelar cita 15/01/2026 10:00")
        assert "cancelada" in reply

    def test_not_found(self, engine, store, grid):
        self._seed(grid, name="Otra Persona")
        reply = engine.handle_message(USER, "Ana López", "Cancelar cita 15/01/2026 10:00")
        assert reply.startswith("❌ No encontré una cita")
        assert "Otra Persona" in grid.read_cell("Calendario!E3")
        assert USER not in store

    def test_cancellation_abandons_booking(self, engine, analyzer, store):
        analyzer.push(wants=True, name="Ana")
        engine.handle_message(USER, "Ana", "quiero una cita")
        engine.handle_message(USER, "Ana", "mejor quiero cancelar")
        session = store.get(USER)
        assert session.state == DialogState.CANCELLING
        assert session.slots.to_dict() == {}

    def test_only_matching_entry_removed(self, engine, grid, coordinator):
        self._seed(grid, name="Otra Persona")
        slots = {
            "name": "Ana López", "service": "Corte", "date": "15/01/2026", "time": "10:00 AM",
        }
        appointment = coordinator.prepare(BookingSlots(**slots), USER)
        coordinator.persist(appointment)
        assert "Ana López" in grid.read_cell("Calendario!E3")

        engine.handle_message(USER, "Ana López", "Cancelar cita 15/01/2026 10:00")
        remaining = grid.read_cell("Calendario!E3")
        assert "Otra Persona" in remaining
        assert "Ana López" not in remaining


class TestConcurrentIdentities:
    def test_parallel_senders_get_independent_sessions(self, store, coordinator, profile_source):
        engine = make_engine(store, coordinator, None, profile_source=profile_source, clock=FakeClock())
        identities = [f"52166200000{i:02d}" for i in range(20)]

        def send(identity):
            engine.handle_message(identity, "", "quiero una cita")

        threads = [threading.Thread(target=send, args=(i,)) for i in identities]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(store) == 20
        assert all(store.get(i).state == DialogState.COLLECTING for i in identities)

    def test_same_sender_messages_are_serialized(self, store, grid, calendar, coordinator, profile_source):
        analyzer = BlockingAnalyzer()
        analyzer.push(wants=True, name="Ana", service="Corte", date="lunes", time="10:00 AM")
        engine = make_engine(store, coordinator, analyzer, profile_source=profile_source)
        replies: dict[str, str] = {}

        def send(key, text):
            replies[key] = engine.handle_message(USER, "Ana", text)

        first = threading.Thread(target=send, args=("first", "quiero una cita el lunes a las 10"))
        second = threading.Thread(target=send, args=("second", "¿ya quedó mi cita?"))
        first.start()
        assert analyzer.entered.wait(timeout=5)
        second.start()
        second.join(timeout=0.2)
        assert second.is_alive()
        assert len(analyzer.calls) == 1

        analyzer.release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert analyzer.max_active == 1
        assert replies["first"].startswith("¡Perfecto! 🎉")
        assert replies["second"] == ""
        assert len(split_cell_entries(grid.read_cell("Calendario!B3"))) == 1
        assert len(calendar.events) == 1
        assert store.get(USER).saved
