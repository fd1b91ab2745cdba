"""Tests for logging configuration and formatters."""

import json
import logging
import sys

import pytest

from dispatch_worker.logging import ComponentLoggerAdapter, get_logger
from dispatch_worker.logging.config import (
    SERVICE_NAME,
    ContextualFilter,
    JSONFormatter,
    KeyValueFormatter,
    configure_logging,
)
from dispatch_worker.logging.context import log_context


@pytest.fixture
def logger():
    """Create a test logger with no handlers."""
    test_logger = logging.getLogger("test_logger")
    test_logger.setLevel(logging.DEBUG)
    test_logger.handlers.clear()

    yield test_logger

    test_logger.handlers.clear()


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_json_formatter_basic(logger):
    """Test JSONFormatter produces valid JSON with mandatory fields."""
    record = logger.makeRecord("test", logging.INFO, "test.py", 1, "Test message", (), None)

    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["level"] == "INFO"
    assert log_obj["message"] == "Test message"
    assert log_obj["logger"] == "test"
    assert log_obj["timestamp"].endswith("Z")
    assert len(log_obj["timestamp"]) == 24  # 2025-11-04T10:30:00.123Z


def test_json_formatter_with_extra_fields(logger):
    record = logger.makeRecord(
        "test",
        logging.INFO,
        "test.py",
        1,
        "Email delivered",
        (),
        None,
        extra={"event": "mailer.send.success", "attempt": 2, "retry_remaining": False},
    )

    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["event"] == "mailer.send.success"
    assert log_obj["attempt"] == 2
    assert log_obj["retry_remaining"] is False
    assert "msg" not in log_obj
    assert "args" not in log_obj


def test_json_formatter_includes_exception(logger):
    try:
        raise ValueError("bad payload")
    except ValueError:
        record = logger.makeRecord(
            "test", logging.ERROR, "test.py", 1, "Failed", (), sys.exc_info()
        )

    log_obj = json.loads(JSONFormatter().format(record))
    assert "ValueError: bad payload" in log_obj["exc_info"]


def test_contextual_filter_adds_static_and_context_fields(logger):
    filter = ContextualFilter(environment="test")

    with log_context(notification_id="N1"):
        record = logger.makeRecord("test", logging.INFO, "test.py", 1, "msg", (), None)
        filter.filter(record)

    assert record.service == SERVICE_NAME
    assert record.environment == "test"
    assert record.notification_id == "N1"


def test_contextual_filter_does_not_override_explicit_extra(logger):
    filter = ContextualFilter()

    with log_context(notification_id="N1"):
        record = logger.makeRecord(
            "test", logging.INFO, "test.py", 1, "msg", (), None,
            extra={"notification_id": "N2"},
        )
        filter.filter(record)

    assert record.notification_id == "N2"


def test_key_value_formatter_with_extras(logger):
    formatter = KeyValueFormatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    record = logger.makeRecord(
        "test",
        logging.INFO,
        "test.py",
        1,
        "Test message",
        (),
        None,
        extra={"event": "listener.started", "detail": "two words", "recorded": True, "token": None},
    )
    record.service = SERVICE_NAME

    output = formatter.format(record)

    assert "[INFO]" in output
    assert "event=listener.started" in output
    assert 'detail="two words"' in output
    assert "recorded=true" in output
    assert "token=null" in output
    assert "service=" not in output


def test_component_logger_adapter_merges_component():
    adapter = get_logger("dispatch_worker.test", component="processor")
    assert isinstance(adapter, ComponentLoggerAdapter)

    _, kwargs = adapter.process("msg", {"extra": {"event": "x"}})
    assert kwargs["extra"] == {"component": "processor", "event": "x"}

    _, kwargs = adapter.process("msg", {"extra": {"component": "override"}})
    assert kwargs["extra"]["component"] == "override"


def test_get_logger_without_component_returns_plain_logger():
    assert isinstance(get_logger("dispatch_worker.test"), logging.Logger)


def test_configure_logging_invalid_level():
    with pytest.raises(ValueError, match="Invalid log level"):
        configure_logging(level="INVALID")


def test_configure_logging_invalid_format():
    with pytest.raises(ValueError, match="Invalid log format"):
        configure_logging(format_type="invalid")


def test_configure_logging_json_format(restore_root_logger):
    configure_logging(level="DEBUG", format_type="json", environment="test")

    root_logger = logging.getLogger()
    assert root_logger.level == logging.DEBUG
    assert len(root_logger.handlers) == 1
    assert isinstance(root_logger.handlers[0].formatter, JSONFormatter)
    assert logging.getLogger("apscheduler").level == logging.WARNING


def test_configure_logging_key_value_format(restore_root_logger):
    configure_logging(level="ERROR", format_type="key-value", environment="test")

    handler = logging.getLogger().handlers[0]
    assert isinstance(handler.formatter, KeyValueFormatter)
    assert any(isinstance(f, ContextualFilter) for f in handler.filters)
    assert logging.getLogger("apscheduler").level == logging.ERROR
