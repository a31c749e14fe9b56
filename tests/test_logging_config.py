import json
import logging

import pytest
import structlog

from bubbles.logging_config import setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


def _json_lines(text):
    return [json.loads(line) for line in text.splitlines() if line.startswith("{")]


class TestSetupLogging:
    def test_stdlib_records_carry_request_context(self, capsys, restore_logging):
        setup_logging("INFO", json_logs=True)
        structlog.contextvars.bind_contextvars(request_id="abc123", path="/chat")

        logging.getLogger("bubbles.core.resolver").info("Resolved %d wallets from %s", 3, "fast_cache")

        line = _json_lines(capsys.readouterr().out)[-1]
        assert line["event"] == "Resolved 3 wallets from fast_cache"
        assert line["request_id"] == "abc123"
        assert line["path"] == "/chat"
        assert line["service"] == "bubbles-engine"
        assert line["level"] == "info"
        assert line["logger"] == "bubbles.core.resolver"

    def test_level_and_quiet_loggers(self, capsys, restore_logging):
        setup_logging("WARNING", json_logs=True)

        logging.getLogger("bubbles.core.chat").info("hidden")
        logging.getLogger("httpx").info("HTTP Request: GET https://scan.w-chain.com")
        logging.getLogger("bubbles.core.chat").warning("shown")

        events = [line["event"] for line in _json_lines(capsys.readouterr().out)]
        assert events == ["shown"]
        assert logging.getLogger("httpx").level == logging.WARNING
