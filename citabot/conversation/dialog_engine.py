"""
Dialog engine: one inbound message in, one reply out.

Each call runs under the sender's lock from the SlotStore, so messages from
the same identity are processed strictly one after the other. The engine
decides what to say; collaborators (NLU, text generation, storage) are
consulted through narrow interfaces and any of them may be unavailable.

Flow per message:
    saved + inside quiet window  -> no reply
    saved + outside quiet window -> fresh session, continue from IDLE
    cancellation phrase or CANCELLING -> cancellation flow
    IDLE          -> booking intent? start collecting : normal conversation
    COLLECTING    -> merge extracted slots, ask for the next missing one
    READY_TO_SAVE -> normalize, persist, confirm
"""

import time
from datetime import date
from typing import Callable, Optional

from citabot.config import settings
from citabot.conversation.intent import (
    IntentClassifier,
    TopicClassifier,
    extract_cancellation_details,
    is_cancellation_request,
)
from citabot.conversation.session_store import SlotStore
from citabot.conversation.slot_manager import (
    SlotDefinition,
    all_required_filled,
    discard_slot,
    get_next_missing_slot,
    merge_slots,
)
from citabot.conversation.state_machine import DialogState, TransitionTrigger
from citabot.errors import DateParseError, TextGenerationError, TimeParseError
from citabot.logging_context import get_chat_logger, set_chat_id
from citabot.prompts import prompt_templates as templates
from citabot.prompts.system_prompts import build_business_context, build_system_prompt
from citabot.schemas.business_schema import BusinessProfile, BusinessProfileSource
from citabot.schemas.session_schema import BookingSlots, Session
from citabot.tools.booking import AppointmentCoordinator, TextGenerator

logger = get_chat_logger(__name__)


class DialogEngine:
    """
    Drives per-identity booking conversations.

    Args:
        store: Owner of every Session.
        classifier: Booking intent and slot extraction.
        coordinator: Builds, persists and confirms appointments.
        text_generator: Conversational replies; None uses fixed texts.
        profile_source: Business profile snapshots.
        clock: Epoch-seconds clock for the post-save quiet window.
        today: Date used to resolve relative date phrases.
    """

    def __init__(
        self,
        store: SlotStore,
        classifier: IntentClassifier,
        coordinator: AppointmentCoordinator,
        text_generator: Optional[TextGenerator] = None,
        profile_source: Optional[BusinessProfileSource] = None,
        clock: Callable[[], float] = time.time,
        today: Callable[[], date] = date.today,
        quiet_window_sec: Optional[float] = None,
        confirm_unpersisted: Optional[bool] = None,
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._coordinator = coordinator
        self._text_generator = text_generator
        self._profiles = profile_source or BusinessProfileSource()
        self._topics = TopicClassifier()
        self._clock = clock
        self._today = today
        self._quiet_window = (
            settings.dialog.quiet_window_sec if quiet_window_sec is None else quiet_window_sec
        )
        self._confirm_unpersisted = (
            settings.dialog.confirm_unpersisted if confirm_unpersisted is None else confirm_unpersisted
        )

    def handle_message(self, identity: str, display_name: str, text: str) -> str:
        """
        Process one inbound message and return the reply.

        Returns:
            The text to send back, or "" when nothing should be sent.
        """
        if not text or not text.strip():
            return ""
        set_chat_id(identity)

        with self._store.lock_for(identity):
            now = self._clock()
            session = self._store.get_or_create(identity)

            if session.saved:
                if (
                    session.last_message_at is not None
                    and now - session.last_message_at < self._quiet_window
                ):
                    logger.info("Message inside post-save quiet window, not answering")
                    return ""
                logger.info("Starting a new conversation after a saved appointment")
                self._store.clear(identity)
                session = self._store.get_or_create(identity)

            if display_name:
                session.display_name = display_name
            session.last_message_at = now
            session.remember(f"Usuario: {text}")

            profile = self._profiles.snapshot()
            reply = self._dispatch(session, text, profile)
            if reply:
                session.remember(f"Asistente: {reply}")
            logger.debug("State after message: %s", session.state.value)
            return reply

    def _dispatch(self, session: Session, text: str, profile: BusinessProfile) -> str:
        if session.state == DialogState.CANCELLING or is_cancellation_request(text):
            return self._handle_cancellation(session, text)

        if session.state == DialogState.READY_TO_SAVE:
            # Only reachable after a failed save with the retry policy.
            return self._save(session, profile)

        analysis = self._classifier.classify(
            text, session.history_text(), session.scheduling, build_business_context(profile),
        )

        if session.state == DialogState.IDLE:
            if not analysis.wants_to_schedule:
                return self._converse(session, text, profile)
            session.machine.transition(TransitionTrigger.BOOKING_INTENT)
            logger.info("Booking started (confidence %.2f)", analysis.confidence)

        merge_slots(session.slots, analysis.extracted_slots)
        return self._collect(session, text, profile)

    # ------------------------------------------------------------------ #
    # Booking
    # ------------------------------------------------------------------ #

    def _collect(self, session: Session, text: str, profile: BusinessProfile) -> str:
        if all_required_filled(session.slots, profile.requires_worker):
            session.machine.transition(TransitionTrigger.SLOTS_COMPLETE)
            return self._save(session, profile)

        session.step += 1
        next_slot = get_next_missing_slot(session.slots, profile.requires_worker)
        return self._ask_for_slot(session, next_slot, text, profile)

    def _ask_for_slot(
        self,
        session: Session,
        slot: SlotDefinition,
        text: str,
        profile: BusinessProfile,
    ) -> str:
        if self._text_generator is None:
            return slot.question
        context = templates.build_slot_request_context(session.slots.to_dict(), slot.display_name)
        try:
            return self._text_generator.generate(
                build_system_prompt(profile), session.history_text(), context, text,
            )
        except TextGenerationError as exc:
            logger.warning("Slot prompt generation failed: %s", exc)
            if slot.name == "name" and session.step == 1:
                return templates.START_BOOKING_FALLBACK
            return templates.slot_request_fallback(slot.display_name)

    def _save(self, session: Session, profile: BusinessProfile) -> str:
        try:
            appointment = self._coordinator.prepare(session.slots, session.identity, self._today())
        except DateParseError as exc:
            return self._reject_slot(session, "date", exc)
        except TimeParseError as exc:
            return self._reject_slot(session, "time", exc)

        result = self._coordinator.persist(appointment)
        if result.any_persisted or self._confirm_unpersisted:
            if not result.any_persisted:
                logger.warning("Confirming appointment that no backend stored: %s", result.failures)
            session.machine.transition(TransitionTrigger.APPOINTMENT_SAVED)
            return result.confirmation

        session.machine.transition(TransitionTrigger.SAVE_FAILED)
        return templates.SAVE_RETRY_MESSAGE

    def _reject_slot(self, session: Session, slot: str, exc: Exception) -> str:
        logger.info("Discarding %s slot: %s", slot, exc)
        discard_slot(session.slots, slot)
        session.machine.transition(TransitionTrigger.SLOT_REJECTED)
        return templates.rephrase_request(slot, self._coordinator.bookable_times)

    # ------------------------------------------------------------------ #
    # Normal conversation
    # ------------------------------------------------------------------ #

    def _converse(self, session: Session, text: str, profile: BusinessProfile) -> str:
        topic = self._topics.classify(text)
        logger.debug("Conversation topic: %s", topic)
        if topic == "greeting":
            return self._welcome(profile, text)
        if self._text_generator is None:
            return templates.REPEAT_QUESTION
        try:
            return self._text_generator.generate(
                build_system_prompt(profile),
                session.history_text(),
                templates.TOPIC_CONTEXTS[topic],
                text,
            )
        except TextGenerationError as exc:
            logger.warning("Reply generation failed: %s", exc)
            return templates.REPEAT_QUESTION

    def _welcome(self, profile: BusinessProfile, text: str) -> str:
        if self._text_generator is None:
            return templates.welcome_fallback(profile.agent_name)
        prompt = templates.build_welcome_prompt(
            profile.agent_name, profile.business_type, profile.personality.tone,
        )
        try:
            return self._text_generator.generate(build_system_prompt(profile), "", prompt, text)
        except TextGenerationError as exc:
            logger.warning("Welcome generation failed: %s", exc)
            return templates.welcome_fallback(profile.agent_name)

    # ------------------------------------------------------------------ #
    # Cancellation
    # ------------------------------------------------------------------ #

    def _handle_cancellation(self, session: Session, text: str) -> str:
        just_started = session.state != DialogState.CANCELLING
        if just_started:
            if session.scheduling:
                logger.info("Abandoning booking in progress to cancel an appointment")
            session.machine.transition(TransitionTrigger.CANCEL_REQUESTED)
            session.slots = BookingSlots()

        date_text, time_text = extract_cancellation_details(text)
        request = session.cancellation
        if date_text:
            request.date = date_text
        if time_text:
            request.time = time_text

        if not request.complete:
            if just_started:
                return templates.cancellation_instructions(session.display_name)
            if not request.date:
                return templates.CANCELLATION_ASK_DATE
            return templates.CANCELLATION_ASK_TIME

        result = self._coordinator.cancel(session.display_name, request.date, request.time)
        session.machine.transition(TransitionTrigger.CANCEL_FINISHED)
        self._store.clear(session.identity)
        return result.message
