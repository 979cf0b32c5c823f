"""Logging for sqlnav.

Structured logging on structlog with correlation ids, plus latency
tracking for backend operations.

Example:
    >>> from sqlnav.logging import get_logger, get_performance_logger
    >>> logger = get_logger(__name__)
    >>> perf = get_performance_logger("adapter.postgresql")
"""

from .factory import (
    LoggerFactory,
    configure_logging,
    get_factory,
    get_logger,
    get_performance_logger,
    shutdown_logging,
)
from .performance import OperationStats, OperationTimer, Outcome, PerformanceLogger
from .structured import LogContext, StructuredLogger

__all__ = [
    "LoggerFactory",
    "configure_logging",
    "get_factory",
    "get_logger",
    "get_performance_logger",
    "shutdown_logging",
    "OperationStats",
    "OperationTimer",
    "Outcome",
    "PerformanceLogger",
    "LogContext",
    "StructuredLogger",
]
