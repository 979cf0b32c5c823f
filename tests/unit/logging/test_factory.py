"""Tests for logger factory module."""

import logging
import logging.handlers

import pytest

from sqlnav.config.models import LoggingConfig
from sqlnav.core.exceptions import ConfigValidationError
from sqlnav.logging.factory import (
    LoggerFactory,
    configure_logging,
    get_factory,
    get_logger,
    get_performance_logger,
)
from sqlnav.logging.performance import PerformanceLogger
from sqlnav.logging.structured import StructuredLogger


def _package_handlers():
    return list(logging.getLogger("sqlnav").handlers)


class TestConfigure:
    """Handler installation from LoggingConfig."""

    def test_defaults_before_configuration(self, logger_factory):
        assert logger_factory.config == LoggingConfig()
        assert logger_factory.configured is False

    def test_file_output_uses_rotating_handler(self, logger_factory, sample_logging_config):
        applied = logger_factory.configure(sample_logging_config)

        assert applied is sample_logging_config
        assert logger_factory.configured is True

        handlers = _package_handlers()
        assert len(handlers) == 1
        handler = handlers[0]
        assert isinstance(handler, logging.handlers.RotatingFileHandler)
        assert handler.maxBytes == 1048576
        assert handler.backupCount == 3
        assert logging.getLogger("sqlnav").propagate is False

    def test_no_output_installs_null_handler(self, logger_factory):
        """Nothing may reach the terminal when no output is configured."""
        logger_factory.configure(level="WARNING")

        handlers = _package_handlers()
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.NullHandler)
        assert logging.getLogger("sqlnav").level == logging.WARNING

    def test_console_output(self, logger_factory):
        logger_factory.configure(console_output=True, format="text")

        handlers = _package_handlers()
        assert len(handlers) == 1
        assert type(handlers[0]) is logging.StreamHandler

    def test_overrides_are_validated(self, logger_factory):
        with pytest.raises(ConfigValidationError) as exc_info:
            logger_factory.configure(colour="blue")
        assert "colour" in exc_info.value.errors

        with pytest.raises(ConfigValidationError):
            logger_factory.configure(level="CHATTY")

        assert logger_factory.configured is False

    def test_overrides_keep_other_settings(self, logger_factory, sample_logging_config):
        logger_factory.configure(sample_logging_config, level="debug")

        assert logger_factory.config.level == "DEBUG"
        assert logger_factory.config.backup_count == 3

    def test_reconfigure_replaces_handlers(self, logger_factory, temp_log_file):
        logger_factory.configure(file_path=str(temp_log_file))
        logger_factory.configure(file_path=None, console_output=True)

        handlers = _package_handlers()
        assert len(handlers) == 1
        assert not isinstance(handlers[0], logging.handlers.RotatingFileHandler)

    def test_file_directory_is_created(self, logger_factory, temp_dir):
        log_path = temp_dir / "nested" / "sqlnav.log"

        logger_factory.configure(file_path=str(log_path))

        assert log_path.parent.is_dir()

    def test_log_lines_reach_the_file(self, logger_factory, temp_log_file):
        logger_factory.configure(file_path=str(temp_log_file), format="json")

        logger_factory.get_logger("sqlnav.session").info("Session started", backend="mysql")
        logger_factory.shutdown()

        content = temp_log_file.read_text(encoding="utf-8")
        assert "Session started" in content
        assert '"backend": "mysql"' in content


class TestLoggerCache:
    """Cached structured and performance loggers."""

    def test_get_logger_is_cached(self, logger_factory):
        logger1 = logger_factory.get_logger("sqlnav.session")
        logger2 = logger_factory.get_logger("sqlnav.session")
        logger3 = logger_factory.get_logger("sqlnav.session", enable_correlation=False)

        assert isinstance(logger1, StructuredLogger)
        assert logger1 is logger2
        assert logger1 is not logger3
        assert logger_factory.configured is True

    def test_get_performance_logger(self, logger_factory):
        perf_logger = logger_factory.get_performance_logger("adapter.mysql")

        assert isinstance(perf_logger, PerformanceLogger)
        assert perf_logger.logger.name == "sqlnav.perf.adapter.mysql"
        assert perf_logger.slow_threshold_ms is None
        assert logger_factory.get_performance_logger("adapter.mysql") is perf_logger

    def test_slow_threshold_follows_configuration(self, logger_factory):
        perf_logger = logger_factory.get_performance_logger("adapter.postgresql")

        logger_factory.configure(slow_operation_ms=250)

        assert perf_logger.slow_threshold_ms == 250
        assert logger_factory.get_performance_logger("adapter.sqlite").slow_threshold_ms == 250


class TestLevels:
    """Runtime level changes."""

    def test_set_level_for_all_loggers(self, logger_factory):
        logger = logger_factory.get_logger("sqlnav.adapter.postgresql")

        logger_factory.set_level("error")

        assert logger_factory.config.level == "ERROR"
        assert logger.get_level() == "ERROR"
        assert logging.getLogger("sqlnav").level == logging.ERROR

    def test_set_level_for_one_logger(self, logger_factory):
        logger = logger_factory.get_logger("sqlnav.adapter.sqlite")

        logger_factory.set_level("DEBUG", logger_name="sqlnav.adapter.sqlite")

        assert logger.get_level() == "DEBUG"
        assert logger_factory.config.level == "INFO"

    def test_set_invalid_level(self, logger_factory):
        with pytest.raises(ConfigValidationError) as exc_info:
            logger_factory.set_level("CHATTY")
        assert "level" in exc_info.value.errors


class TestShutdown:
    def test_shutdown(self, logger_factory, temp_log_file):
        logger_factory.configure(file_path=str(temp_log_file))
        logger_factory.get_logger("sqlnav.session")

        logger_factory.shutdown()

        assert logger_factory.configured is False
        assert _package_handlers() == []
        assert logger_factory._loggers == {}

    def test_repr(self, logger_factory):
        assert "configured=False" in repr(logger_factory)


class TestGlobalFunctions:
    """Module-level helpers share one factory."""

    def test_get_logger_uses_global_factory(self):
        logger = get_logger("sqlnav.test.global")

        assert get_factory().get_logger("sqlnav.test.global") is logger

    def test_get_performance_logger_uses_global_factory(self):
        perf_logger = get_performance_logger("adapter.test")

        assert get_factory().get_performance_logger("adapter.test") is perf_logger

    def test_configure_logging_from_session_settings(self):
        applied = configure_logging(LoggingConfig(level="DEBUG"))

        assert applied.level == "DEBUG"
        assert get_factory().config is applied
        assert logging.getLogger("sqlnav").level == logging.DEBUG

    def test_get_factory_returns_singleton(self):
        assert get_factory() is get_factory()
        assert isinstance(get_factory(), LoggerFactory)
