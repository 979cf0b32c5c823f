"""Tests for structured logging module."""

import asyncio
import logging

import pytest

from sqlnav.core.exceptions import ConfigValidationError
from sqlnav.logging.structured import LogContext, StructuredLogger


class TestLogContext:
    """Test cases for LogContext class."""

    def test_context_initialization(self):
        """Test LogContext initializes correctly."""
        context = LogContext()
        assert context.get_all() == {}

    def test_set_and_get_context_value(self):
        """Test setting and getting context values."""
        context = LogContext()

        context.set("key1", "value1")
        context.set("key2", 42)

        assert context.get("key1") == "value1"
        assert context.get("key2") == 42
        assert context.get("nonexistent") is None
        assert context.get("nonexistent", "default") == "default"

    def test_update_and_replace(self):
        context = LogContext()
        context.set("existing", "value")

        context.update({"existing": "updated", "new": 1})
        assert context.get_all() == {"existing": "updated", "new": 1}

        context.replace({"only": True})
        assert context.get_all() == {"only": True}

    def test_clear_context(self):
        context = LogContext()
        context.set("key1", "value1")

        context.clear()

        assert context.get_all() == {}

    @pytest.mark.asyncio
    async def test_task_isolation(self):
        """Test that context set in one task does not leak into another."""
        context = LogContext()
        results = {}

        async def task_func(task_id):
            context.set("task_id", task_id)
            await asyncio.sleep(0)
            results[task_id] = context.get_all()

        await asyncio.gather(*(task_func(i) for i in range(3)))

        assert results == {i: {"task_id": i} for i in range(3)}
        assert context.get_all() == {}


class TestStructuredLogger:
    """Test cases for StructuredLogger class."""

    def test_logger_initialization(self):
        logger = StructuredLogger("sqlnav.test", level="DEBUG")

        assert logger.name == "sqlnav.test"
        assert logger.get_level() == "DEBUG"

    def test_log_methods_emit_events(self, capture_logs):
        """Test each level reaches structlog with its fields."""
        logger = StructuredLogger("sqlnav.test")

        logger.debug("debug event", step=1)
        logger.info("info event", step=2)
        logger.warning("warning event", step=3)
        logger.error("error event", step=4)
        logger.critical("critical event", step=5)

        assert [entry["event"] for entry in capture_logs] == [
            "debug event",
            "info event",
            "warning event",
            "error event",
            "critical event",
        ]
        assert [entry["log_level"] for entry in capture_logs] == [
            "debug", "info", "warning", "error", "critical",
        ]
        assert capture_logs[1]["step"] == 2

    def test_exception_attaches_exc_info(self, capture_logs):
        logger = StructuredLogger("sqlnav.test")

        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.exception("Unexpected driver failure", operation="connect")

        entry = capture_logs[0]
        assert entry["log_level"] == "error"
        assert entry["exc_info"] is True
        assert entry["operation"] == "connect"

    def test_secret_fields_are_masked(self, capture_logs):
        """Test password-like keys never reach the log."""
        logger = StructuredLogger("sqlnav.test")

        logger.info("Connecting", password="hunter2", Secret="x", user="app")

        entry = capture_logs[0]
        assert entry["password"] == "***"
        assert entry["Secret"] == "***"
        assert entry["user"] == "app"

    def test_context_manager_adds_temporary_context(self, capture_logs):
        logger = StructuredLogger("sqlnav.test")

        with logger.context(operation="list_tables"):
            logger.info("inside")
        logger.info("outside")

        assert capture_logs[0]["operation"] == "list_tables"
        assert "operation" not in capture_logs[1]

    def test_bind_returns_new_logger(self, capture_logs):
        """Test bound context is permanent and does not affect the parent."""
        logger = StructuredLogger("sqlnav.test")
        bound = logger.bind(session_id="abc")

        bound.info("bound event")
        logger.info("parent event")

        assert bound is not logger
        assert capture_logs[0]["session_id"] == "abc"
        assert "session_id" not in capture_logs[1]

    def test_correlation_id(self, capture_logs):
        logger = StructuredLogger("sqlnav.test")
        logger.set_correlation_id("sess-1")

        logger.info("correlated")

        assert logger.get_correlation_id() == "sess-1"
        assert capture_logs[0]["correlation_id"] == "sess-1"

    def test_correlation_disabled(self, capture_logs):
        logger = StructuredLogger("sqlnav.test", enable_correlation=False)
        logger.set_correlation_id("ignored")

        logger.info("plain")

        assert logger.get_correlation_id() is None
        assert "correlation_id" not in capture_logs[0]

    def test_set_level(self):
        logger = StructuredLogger("sqlnav.test.level")

        logger.set_level("warning")

        assert logger.get_level() == "WARNING"
        assert logging.getLogger("sqlnav.test.level").level == logging.WARNING

    def test_set_invalid_level(self):
        logger = StructuredLogger("sqlnav.test")

        with pytest.raises(ConfigValidationError):
            logger.set_level("LOUD")

    def test_context_nested_inside_bound_logger(self, capture_logs):
        logger = StructuredLogger("sqlnav.test").bind(backend="mysql")

        with logger.context(effect="OpenConnection"):
            with logger.context(operation="connect"):
                logger.info("inner")
            logger.info("outer")

        assert capture_logs[0]["effect"] == "OpenConnection"
        assert capture_logs[0]["operation"] == "connect"
        assert capture_logs[0]["backend"] == "mysql"
        assert "operation" not in capture_logs[1]

    def test_repr(self):
        logger = StructuredLogger("sqlnav.test", level="INFO")
        assert "sqlnav.test" in repr(logger)
