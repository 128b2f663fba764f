"""
Intent and slot extraction through the OpenAI chat completions API.

The model is asked for a JSON object; whatever it wraps around that object
(prose, code fences) is ignored by taking the text between the first "{" and
the last "}". Any failure surfaces as NLUError so callers can fall back to
keyword matching.
"""

import json
import logging
from typing import Optional

from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from citabot.config import settings
from citabot.errors import NLUError
from citabot.prompts.prompt_templates import build_analysis_prompt
from citabot.schemas.appointment_schema import AppointmentAnalysis

logger = logging.getLogger(__name__)

ANALYZER_SYSTEM_PROMPT = "Eres un extractor de datos estructurados. Responde siempre solo con JSON válido."


def extract_json_object(text: str) -> str:
    """
    Return the substring spanning the first "{" to the last "}".

    Raises:
        NLUError: If the text holds no brace-delimited span.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise NLUError("No JSON object found in NLU output")
    return text[start:end + 1]


def parse_analysis(text: str) -> AppointmentAnalysis:
    """Parse raw model output into an AppointmentAnalysis."""
    try:
        payload = json.loads(extract_json_object(text))
    except json.JSONDecodeError as exc:
        raise NLUError(f"Malformed JSON from NLU service: {exc}") from exc
    if not isinstance(payload, dict):
        raise NLUError("NLU output is not a JSON object")
    try:
        return AppointmentAnalysis.model_validate(payload)
    except ValidationError as exc:
        raise NLUError(f"NLU output failed validation: {exc}") from exc


class OpenAIAppointmentAnalyzer:
    """Booking-intent and slot extractor backed by an OpenAI chat model."""

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._timeout = timeout or settings.model.request_timeout_sec
        self._client = client or OpenAI(timeout=self._timeout, max_retries=0)
        self._model = model or settings.model.llm_model

    def analyze(
        self,
        message: str,
        history: str,
        scheduling: bool,
        business_context: str = "",
    ) -> AppointmentAnalysis:
        """
        Classify one message and extract any slot values it carries.

        Raises:
            NLUError: On transport errors, timeouts, empty or malformed output.
        """
        prompt = build_analysis_prompt(message, history, scheduling, business_context)
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": ANALYZER_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.0,
                max_tokens=300,
                timeout=self._timeout,
            )
        except OpenAIError as exc:
            raise NLUError(f"NLU request failed: {exc}") from exc

        if not response.choices:
            raise NLUError("NLU service returned no choices")
        text = (response.choices[0].message.content or "").strip()
        if not text:
            raise NLUError("NLU service returned an empty message")

        analysis = parse_analysis(text)
        logger.info(
            "Analysis: wants_to_schedule=%s confidence=%.2f slots=%s",
            analysis.wants_to_schedule, analysis.confidence, analysis.extracted_slots,
        )
        return analysis
