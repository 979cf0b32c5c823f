"""Latency tracking for backend round trips.

Every adapter call (connect, catalog lookups, queries) runs inside
:meth:`PerformanceLogger.measure`. The timer logs the outcome and feeds a
rolling per-operation window used by :meth:`PerformanceLogger.snapshot`.

Cancelled calls are counted on their own: they were stopped by the user,
so they are neither failures nor part of the latency figures.

Example:
    >>> perf = PerformanceLogger("adapter.postgresql", slow_threshold_ms=500)
    >>> with perf.measure("execute_query") as timer:
    ...     rows = await statement.fetch()
    >>> timer.duration
    0.0124
"""

import statistics
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, Iterator, Optional

from .structured import StructuredLogger

DEFAULT_WINDOW = 200


class Outcome(str, Enum):
    """How a measured operation ended."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class OperationTimer:
    """Timing of a single backend call.

    ``duration`` is None until the ``measure`` block exits.
    """

    operation: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    started: float = field(default_factory=time.perf_counter)
    duration: Optional[float] = None
    outcome: Optional[Outcome] = None
    error: Optional[str] = None

    def stop(self, outcome: Outcome, error: Optional[str] = None) -> None:
        self.duration = time.perf_counter() - self.started
        self.outcome = outcome
        self.error = error

    @property
    def duration_ms(self) -> Optional[float]:
        if self.duration is None:
            return None
        return round(self.duration * 1000, 3)

    @property
    def finished(self) -> bool:
        return self.outcome is not None


class OperationStats:
    """Rolling statistics for one operation name.

    Latency figures cover successful and failed calls within the last
    ``window`` samples; call counters cover the whole lifetime.
    """

    def __init__(self, operation: str, window: int = DEFAULT_WINDOW) -> None:
        self.operation = operation
        self.counts: Dict[Outcome, int] = {outcome: 0 for outcome in Outcome}
        self._samples: Deque[float] = deque(maxlen=window)

    def record(self, timer: OperationTimer) -> None:
        if not timer.finished or timer.duration is None:
            return

        self.counts[timer.outcome] += 1
        if timer.outcome is not Outcome.CANCELLED:
            self._samples.append(timer.duration)

    @property
    def calls(self) -> int:
        return sum(self.counts.values())

    @property
    def failure_rate(self) -> float:
        """Failed calls as a percentage of completed (not cancelled) calls."""
        completed = self.counts[Outcome.SUCCEEDED] + self.counts[Outcome.FAILED]
        if not completed:
            return 0.0
        return self.counts[Outcome.FAILED] / completed * 100

    def percentile(self, pct: float) -> Optional[float]:
        """Nearest-rank percentile of the sampled durations, in seconds."""
        if not self._samples:
            return None
        ordered = sorted(self._samples)
        rank = max(1, -(-len(ordered) * pct // 100))
        return ordered[int(rank) - 1]

    @property
    def mean(self) -> Optional[float]:
        return statistics.fmean(self._samples) if self._samples else None

    @property
    def median(self) -> Optional[float]:
        return statistics.median(self._samples) if self._samples else None

    def as_dict(self) -> Dict[str, Any]:
        def ms(value: Optional[float]) -> Optional[float]:
            return None if value is None else round(value * 1000, 3)

        return {
            "operation": self.operation,
            "calls": self.calls,
            "succeeded": self.counts[Outcome.SUCCEEDED],
            "failed": self.counts[Outcome.FAILED],
            "cancelled": self.counts[Outcome.CANCELLED],
            "failure_rate": self.failure_rate,
            "mean_ms": ms(self.mean),
            "median_ms": ms(self.median),
            "p95_ms": ms(self.percentile(95)),
            "max_ms": ms(max(self._samples) if self._samples else None),
        }

    def __repr__(self) -> str:
        return f"OperationStats(operation={self.operation!r}, calls={self.calls})"


class PerformanceLogger:
    """Times backend operations and keeps per-operation statistics.

    Attributes:
        name: Logger name, e.g. ``adapter.mysql``
        logger: Structured logger the outcomes are written to
        slow_threshold_ms: Successful calls slower than this log a warning
    """

    def __init__(
        self,
        name: str,
        *,
        logger: Optional[StructuredLogger] = None,
        slow_threshold_ms: Optional[float] = None,
        window: int = DEFAULT_WINDOW,
        log_outcomes: bool = True,
    ) -> None:
        self.name = name
        self.logger = logger or StructuredLogger(f"sqlnav.perf.{name}")
        self.slow_threshold_ms = slow_threshold_ms
        self.log_outcomes = log_outcomes
        self._window = window
        self._stats: Dict[str, OperationStats] = {}

    @contextmanager
    def measure(self, operation: str, **metadata: Any) -> Iterator[OperationTimer]:
        """Time the enclosed block as ``operation``.

        Exceptions are re-raised unchanged after the outcome is recorded.
        ``asyncio.CancelledError`` and other non-``Exception`` errors count
        as cancellations.
        """
        timer = OperationTimer(operation=operation, metadata=metadata)
        try:
            yield timer
        except Exception as exc:
            timer.stop(Outcome.FAILED, error=str(exc) or type(exc).__name__)
            raise
        except BaseException as exc:
            timer.stop(Outcome.CANCELLED, error=type(exc).__name__)
            raise
        else:
            timer.stop(Outcome.SUCCEEDED)
        finally:
            self._finish(timer)

    def _finish(self, timer: OperationTimer) -> None:
        self.stats(timer.operation).record(timer)
        if not self.log_outcomes:
            return

        fields = dict(timer.metadata, operation=timer.operation, duration_ms=timer.duration_ms)
        if timer.outcome is Outcome.FAILED:
            self.logger.warning("Operation failed", error=timer.error, **fields)
        elif timer.outcome is Outcome.CANCELLED:
            self.logger.debug("Operation interrupted", interruption=timer.error, **fields)
        elif self.is_slow(timer):
            self.logger.warning(
                "Slow operation", threshold_ms=self.slow_threshold_ms, **fields
            )
        else:
            self.logger.debug("Operation completed", **fields)

    def is_slow(self, timer: OperationTimer) -> bool:
        return (
            self.slow_threshold_ms is not None
            and timer.duration_ms is not None
            and timer.duration_ms > self.slow_threshold_ms
        )

    def stats(self, operation: str) -> OperationStats:
        if operation not in self._stats:
            self._stats[operation] = OperationStats(operation, window=self._window)
        return self._stats[operation]

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Statistics for every operation measured so far, keyed by name."""
        return {name: stats.as_dict() for name, stats in sorted(self._stats.items())}

    def reset(self, operation: Optional[str] = None) -> None:
        if operation is None:
            self._stats.clear()
        else:
            self._stats.pop(operation, None)

    def __repr__(self) -> str:
        return (
            f"PerformanceLogger(name={self.name!r}, operations={len(self._stats)}, "
            f"slow_threshold_ms={self.slow_threshold_ms})"
        )
