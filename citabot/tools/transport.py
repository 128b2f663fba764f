"""
Chat transport seam.

The transport delivers ``(sender identity, display name, text)`` to the
engine and sends back whatever non-empty reply it produces. Delivery errors
are logged here; they never reach the conversation state.
"""

import logging
from typing import Protocol

from citabot.errors import TransportError

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def send_text(self, chat_identity: str, text: str) -> None: ...


class MessageHandler(Protocol):
    def handle_message(self, identity: str, display_name: str, text: str) -> str: ...


class ConsoleTransport:
    """Prints outbound messages; used by the interactive console."""

    def __init__(self, prefix: str = "[Asistente]") -> None:
        self._prefix = prefix
        self.sent: list[tuple[str, str]] = []

    def send_text(self, chat_identity: str, text: str) -> None:
        self.sent.append((chat_identity, text))
        print(f"{self._prefix} {text}")


def handle_inbound(
    handler: MessageHandler,
    transport: Transport,
    identity: str,
    display_name: str,
    text: str,
) -> str:
    """
    Run one inbound message through the engine and deliver the reply.

    Returns:
        The reply text; "" when nothing was sent.
    """
    reply = handler.handle_message(identity, display_name, text)
    if not reply:
        logger.debug("No reply for %s", identity)
        return ""
    try:
        transport.send_text(identity, reply)
    except TransportError as exc:
        logger.error("Failed to send reply to %s: %s", identity, exc)
    return reply
