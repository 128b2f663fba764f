"""Tests for the chat transport seam."""

import logging

from citabot.errors import TransportError
from citabot.logging_context import ChatIdFilter, get_chat_id, get_chat_logger, set_chat_id
from citabot.tools.transport import ConsoleTransport, handle_inbound


class EchoHandler:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.calls: list[tuple[str, str, str]] = []

    def handle_message(self, identity, display_name, text):
        self.calls.append((identity, display_name, text))
        return self.reply


class BrokenTransport:
    def send_text(self, chat_identity, text):
        raise TransportError("socket closed")


class TestHandleInbound:
    def test_reply_is_sent(self, capsys):
        transport = ConsoleTransport(prefix="[Bot]")
        reply = handle_inbound(EchoHandler("hola"), transport, "521", "Ana", "buenas")
        assert reply == "hola"
        assert transport.sent == [("521", "hola")]
        assert "[Bot] hola" in capsys.readouterr().out

    def test_empty_reply_not_sent(self):
        transport = ConsoleTransport()
        assert handle_inbound(EchoHandler(""), transport, "521", "Ana", "ok") == ""
        assert transport.sent == []

    def test_delivery_error_is_logged(self, caplog):
        with caplog.at_level(logging.ERROR):
            reply = handle_inbound(EchoHandler("hola"), BrokenTransport(), "521", "Ana", "x")
        assert reply == "hola"
        assert "socket closed" in caplog.text


class TestChatIdLogging:
    def test_filter_tags_records(self):
        set_chat_id("5216621234567")
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
        assert ChatIdFilter().filter(record)
        assert record.chat_id == "5216621234567"
        assert get_chat_id() == "5216621234567"

    def test_filter_attached_once(self):
        logger = get_chat_logger("citabot.tests.chat")
        get_chat_logger("citabot.tests.chat")
        assert sum(isinstance(f, ChatIdFilter) for f in logger.filters) == 1
