"""Reply generation through the OpenAI chat completions API."""

import logging
from typing import Optional

from openai import OpenAI, OpenAIError

from citabot.config import settings
from citabot.errors import TextGenerationError
from citabot.prompts.prompt_templates import build_chat_prompt

logger = logging.getLogger(__name__)

TRUNCATED_LENGTH = 450


def truncate_reply(text: str, max_chars: int) -> str:
    """Cut over-long replies for chat delivery, keeping an ellipsis marker."""
    if len(text) <= max_chars:
        return text
    keep = min(TRUNCATED_LENGTH, max_chars - 3)
    return text[:keep] + "..."


class OpenAITextGenerator:
    """Short conversational replies grounded in the business system prompt."""

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        max_reply_chars: Optional[int] = None,
    ) -> None:
        self._timeout = timeout or settings.model.request_timeout_sec
        self._client = client or OpenAI(timeout=self._timeout, max_retries=0)
        self._model = model or settings.model.llm_model
        self._temperature = settings.model.llm_temperature if temperature is None else temperature
        self._max_tokens = max_tokens or settings.model.max_output_tokens
        self._max_reply_chars = max_reply_chars or settings.dialog.max_reply_chars

    def generate(
        self,
        system_prompt: str,
        history: str,
        context: str,
        user_message: str,
    ) -> str:
        """
        Generate a reply for the customer.

        Raises:
            TextGenerationError: On transport errors, timeouts, or empty output.
        """
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": build_chat_prompt(history, context, user_message)},
                ],
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                timeout=self._timeout,
            )
        except OpenAIError as exc:
            raise TextGenerationError(f"Text generation failed: {exc}") from exc

        if not response.choices:
            raise TextGenerationError("Text generation returned no choices")
        text = (response.choices[0].message.content or "").strip()
        if not text:
            raise TextGenerationError("Text generation returned an empty message")

        logger.debug("Generated %d characters", len(text))
        return truncate_reply(text, self._max_reply_chars)
