"""Structured logging on top of structlog.

Every sqlnav component logs through a :class:`StructuredLogger`: keyword
arguments become event fields, the session id travels as the correlation
id, and password-like fields are masked before anything is rendered.

Example:
    >>> logger = StructuredLogger("sqlnav.adapter.postgresql")
    >>> with logger.context(backend="postgresql", operation="list_tables"):
    ...     logger.info("Listing tables", database="app")
"""

import contextvars
import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

import structlog

from ..core.exceptions import ConfigValidationError


_SECRET_KEYS = frozenset({"password", "passwd", "secret"})


class LogContext:
    """Task-local context for log correlation and metadata.

    Backed by a :class:`contextvars.ContextVar` so values set inside one
    asyncio task never leak into another.

    Example:
        >>> context = LogContext()
        >>> context.set("session_id", "sess_123")
        >>> context.get_all()
        {'session_id': 'sess_123'}
    """

    def __init__(self) -> None:
        self._var: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
            f"sqlnav_log_context_{id(self)}"
        )

    def _current(self) -> Dict[str, Any]:
        return self._var.get({})

    def set(self, key: str, value: Any) -> None:
        updated = dict(self._current())
        updated[key] = value
        self._var.set(updated)

    def get(self, key: str, default: Any = None) -> Any:
        return self._current().get(key, default)

    def get_all(self) -> Dict[str, Any]:
        return dict(self._current())

    def update(self, context: Dict[str, Any]) -> None:
        updated = dict(self._current())
        updated.update(context)
        self._var.set(updated)

    def replace(self, context: Dict[str, Any]) -> None:
        self._var.set(dict(context))

    def clear(self) -> None:
        self._var.set({})


class StructuredLogger:
    """Structured logger with bound context and correlation ids.

    Values passed as keyword arguments become structured fields. Keys that
    look like secrets (``password`` and friends) are masked before the event
    reaches structlog.

    Attributes:
        name: Logger name

    Example:
        >>> logger = StructuredLogger("sqlnav.session")
        >>> session_logger = logger.bind(session_id="abc")
        >>> session_logger.info("Intent received", intent="Back")
    """

    def __init__(
        self,
        name: str,
        *,
        level: str = "INFO",
        enable_correlation: bool = True,
        bound: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize structured logger.

        Args:
            name: Logger name (typically module name)
            level: Initial log level
            enable_correlation: Whether to attach correlation ids
            bound: Context permanently attached to this logger
        """
        self.name = name
        self._enable_correlation = enable_correlation
        self._bound: Dict[str, Any] = dict(bound or {})
        self._context = LogContext()

        self._logger = structlog.get_logger(name)

        self._stdlib_logger = logging.getLogger(name)
        self._stdlib_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    def _fields(self, event_fields: Dict[str, Any]) -> Dict[str, Any]:
        """Bound context, then task-local context, then the event's own fields."""
        fields = {**self._bound, **self._context.get_all()}
        correlation_id = self.get_correlation_id()
        if correlation_id:
            fields.setdefault("correlation_id", correlation_id)
        fields.update(event_fields)
        return {
            key: "***" if key.lower() in _SECRET_KEYS else value
            for key, value in fields.items()
        }

    def _emit(self, method: str, message: str, event_fields: Dict[str, Any]) -> None:
        getattr(self._logger, method)(message, **self._fields(event_fields))

    @contextmanager
    def context(self, **context_data: Any) -> Generator[None, None, None]:
        """Context manager for adding temporary context data.

        Example:
            >>> with logger.context(operation="describe_table"):
            ...     logger.info("Reading catalog")
        """
        old_context = self._context.get_all()

        try:
            self._context.update(context_data)
            yield
        finally:
            self._context.replace(old_context)

    def bind(self, **context_data: Any) -> "StructuredLogger":
        """Create a new logger with additional permanently bound context."""
        bound = dict(self._bound)
        bound.update(self._context.get_all())
        bound.update(context_data)

        return StructuredLogger(
            self.name,
            level=self.get_level(),
            enable_correlation=self._enable_correlation,
            bound=bound,
        )

    def set_level(self, level: str) -> None:
        """Set logging level.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

        Raises:
            ConfigValidationError: If the level name is unknown
        """
        log_level = logging.getLevelName(level.upper()) if isinstance(level, str) else None
        if not isinstance(log_level, int):
            raise ConfigValidationError(
                f"Unknown log level: {level}",
                errors={"level": f"unknown log level {level!r}"},
            )

        self._stdlib_logger.setLevel(log_level)

    def get_level(self) -> str:
        level_num = self._stdlib_logger.getEffectiveLevel()
        return logging.getLevelName(level_num)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._emit("debug", message, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._emit("info", message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._emit("warning", message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._emit("error", message, kwargs)

    def critical(self, message: str, **kwargs: Any) -> None:
        self._emit("critical", message, kwargs)

    def exception(self, message: str, exc_info: bool = True, **kwargs: Any) -> None:
        """Log an error with the active exception's traceback attached."""
        self._emit("error", message, dict(kwargs, exc_info=exc_info))

    def set_correlation_id(self, correlation_id: str) -> None:
        if not self._enable_correlation:
            return

        self._bound["correlation_id"] = correlation_id

    def get_correlation_id(self) -> Optional[str]:
        if not self._enable_correlation:
            return None

        return self._bound.get("correlation_id") or self._context.get("correlation_id")

    def __repr__(self) -> str:
        return f"StructuredLogger(name={self.name!r}, level={self.get_level()!r})"
