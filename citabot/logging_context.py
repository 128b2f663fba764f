"""Chat ID logging context for tracing one end user's conversation.

Inbound messages from different senders are handled concurrently, so every
log line is tagged with the sender identity of the message being processed.

Usage:
    from citabot.logging_context import get_chat_logger, set_chat_id

    set_chat_id("5216621234567")
    logger = get_chat_logger(__name__)
    logger.info("Processing message")  # record.chat_id == "5216621234567"
"""

import logging
from contextvars import ContextVar

_chat_id: ContextVar[str] = ContextVar("chat_id", default="NO_CHAT_ID")


def set_chat_id(chat_id: str) -> None:
    """Set the correlation ID for the current thread or async context."""
    _chat_id.set(chat_id)


def get_chat_id() -> str:
    """Retrieve the current correlation ID."""
    return _chat_id.get()


class ChatIdFilter(logging.Filter):
    """Injects chat_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.chat_id = _chat_id.get()  # type: ignore[attr-defined]
        return True


def get_chat_logger(name: str) -> logging.Logger:
    """Return a logger with the ChatIdFilter attached.

    The filter adds ``chat_id`` to each record so formatters can
    include ``%(chat_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, ChatIdFilter) for f in logger.filters):
        logger.addFilter(ChatIdFilter())
    return logger
