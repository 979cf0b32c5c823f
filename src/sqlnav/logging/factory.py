"""Logging setup for sqlnav.

sqlnav runs behind a full-screen terminal UI, so nothing is written to the
terminal unless ``console_output`` is enabled explicitly; the usual target
is a rotating log file. All handlers hang off the ``sqlnav`` stdlib logger,
which does not propagate to the root logger of the host application.

Example:
    >>> from sqlnav.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", file_path="/tmp/sqlnav.log")
    >>> get_logger(__name__).info("Session started", backend="postgresql")
"""

import logging
import logging.handlers
import sys
from typing import Any, Dict, List, Optional

import structlog

from .performance import PerformanceLogger
from .structured import StructuredLogger
from ..config.models import LoggingConfig
from ..core.exceptions import ConfigValidationError

PACKAGE_LOGGER = "sqlnav"


def _level_number(level: str) -> int:
    number = logging.getLevelName(str(level).upper())
    if not isinstance(number, int):
        raise ConfigValidationError(
            f"Invalid log level: {level}",
            errors={"level": f"unknown log level {level!r}"},
        )
    return number


def _shared_processors(output_format: str) -> list:
    renderer = (
        structlog.processors.JSONRenderer()
        if output_format == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ]


class LoggerFactory:
    """Owns the ``sqlnav`` handlers and hands out cached loggers.

    Attributes:
        config: Active :class:`LoggingConfig`
        configured: Whether handlers have been installed
    """

    def __init__(self, config: Optional[LoggingConfig] = None) -> None:
        self.config = config or LoggingConfig()
        self.configured = False
        self._loggers: Dict[str, StructuredLogger] = {}
        self._perf_loggers: Dict[str, PerformanceLogger] = {}
        self._handlers: List[logging.Handler] = []

    def configure(self, config: Optional[LoggingConfig] = None, **overrides: Any) -> LoggingConfig:
        """Install handlers and the structlog pipeline.

        Args:
            config: Settings to apply; defaults to the current ones
            **overrides: Individual ``LoggingConfig`` fields to change

        Returns:
            The configuration now in effect

        Raises:
            ConfigValidationError: If an override is unknown or invalid
        """
        config = config or self.config
        if overrides:
            config = LoggingConfig.build(**{**config.model_dump(), **overrides})

        self.config = config
        self._apply(replace_structlog=True)
        return config

    def _ensure_configured(self) -> None:
        # Lazy setup keeps an existing structlog configuration (tests install
        # a capturing one before the first logger is requested).
        if not self.configured:
            self._apply(replace_structlog=False)

    def _apply(self, *, replace_structlog: bool) -> None:
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        package_logger.setLevel(_level_number(self.config.level))

        self._detach_handlers()
        self._handlers = self._build_handlers()
        for handler in self._handlers:
            package_logger.addHandler(handler)
        package_logger.propagate = False

        if replace_structlog or not structlog.is_configured():
            structlog.configure(
                processors=_shared_processors(self.config.format),
                wrapper_class=structlog.stdlib.BoundLogger,
                logger_factory=structlog.stdlib.LoggerFactory(),
                context_class=dict,
                cache_logger_on_first_use=True,
            )

        for perf_logger in self._perf_loggers.values():
            perf_logger.slow_threshold_ms = self.config.slow_operation_ms
        self.configured = True

    def _build_handlers(self) -> List[logging.Handler]:
        formatter = logging.Formatter("%(message)s")
        handlers: List[logging.Handler] = []

        if self.config.console_output:
            handlers.append(logging.StreamHandler(sys.stderr))

        if self.config.file_path:
            self.config.file_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                logging.handlers.RotatingFileHandler(
                    filename=str(self.config.file_path),
                    maxBytes=self.config.max_file_size,
                    backupCount=self.config.backup_count,
                    encoding="utf-8",
                )
            )

        # Stops the stdlib last-resort handler from writing over the TUI
        if not handlers:
            handlers.append(logging.NullHandler())

        for handler in handlers:
            handler.setFormatter(formatter)
        return handlers

    def _detach_handlers(self) -> None:
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        for handler in self._handlers:
            handler.flush()
            package_logger.removeHandler(handler)
            handler.close()
        self._handlers = []

    def get_logger(self, name: str, *, enable_correlation: bool = True) -> StructuredLogger:
        """Return the cached structured logger for ``name``."""
        self._ensure_configured()

        key = f"{name}:{enable_correlation}"
        if key not in self._loggers:
            self._loggers[key] = StructuredLogger(
                name, level=self.config.level, enable_correlation=enable_correlation
            )
        return self._loggers[key]

    def get_performance_logger(self, name: str) -> PerformanceLogger:
        """Return the cached performance logger for ``name``.

        Its events go to ``sqlnav.perf.<name>``; the slow operation threshold
        follows ``config.slow_operation_ms``.
        """
        self._ensure_configured()

        if name not in self._perf_loggers:
            self._perf_loggers[name] = PerformanceLogger(
                name,
                logger=self.get_logger(f"{PACKAGE_LOGGER}.perf.{name}"),
                slow_threshold_ms=self.config.slow_operation_ms,
            )
        return self._perf_loggers[name]

    def set_level(self, level: str, logger_name: Optional[str] = None) -> None:
        """Change the level of one logger, or of every sqlnav logger."""
        number = _level_number(level)

        if logger_name is None:
            self.config = self.config.model_copy(update={"level": logging.getLevelName(number)})
            logging.getLogger(PACKAGE_LOGGER).setLevel(number)
            targets = list(self._loggers.values())
        else:
            logging.getLogger(logger_name).setLevel(number)
            targets = [logger for logger in self._loggers.values() if logger.name == logger_name]

        for logger in targets:
            logger.set_level(level)

    def shutdown(self) -> None:
        """Flush and detach handlers and forget cached loggers."""
        self._detach_handlers()
        self._loggers.clear()
        self._perf_loggers.clear()
        self.configured = False

    def __repr__(self) -> str:
        return (
            f"LoggerFactory(level={self.config.level!r}, format={self.config.format!r}, "
            f"configured={self.configured})"
        )


_global_factory = LoggerFactory()


def configure_logging(config: Optional[LoggingConfig] = None, **overrides: Any) -> LoggingConfig:
    """Configure sqlnav logging globally.

    Example:
        >>> configure_logging(SessionConfig.build(**settings).logging)
        >>> configure_logging(level="DEBUG", format="text", file_path="sqlnav.log")
    """
    return _global_factory.configure(config, **overrides)


def get_logger(name: str, *, enable_correlation: bool = True) -> StructuredLogger:
    return _global_factory.get_logger(name, enable_correlation=enable_correlation)


def get_performance_logger(name: str) -> PerformanceLogger:
    """Performance logger from the global factory.

    Example:
        >>> perf_logger = get_performance_logger("adapter.postgresql")
        >>> with perf_logger.measure("execute_query"):
        ...     rows = await statement.fetch()
    """
    return _global_factory.get_performance_logger(name)


def get_factory() -> LoggerFactory:
    return _global_factory


def shutdown_logging() -> None:
    _global_factory.shutdown()
