"""
Calculation timing and in-process metrics.

``timed`` / ``timed_async`` log how long a call took at DEBUG level.
``tracker`` accumulates requirement-calculation counters that /metrics
exposes; it lives in process memory and resets on restart.
"""
import functools
import logging
import threading
import time
from typing import Any, Callable, Dict

logger = logging.getLogger("bomcalc-api.perf")


def _log_duration(func: Callable, started: float) -> None:
    logger.debug(
        f"{func.__qualname__} took",
        extra={"duration_ms": round((time.perf_counter() - started) * 1000, 2)},
    )


def timed(func: Callable) -> Callable:
    """Log the wall time of a synchronous call."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        started = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            _log_duration(func, started)
    return wrapper


def timed_async(func: Callable) -> Callable:
    """Log the wall time of a coroutine, including time spent awaiting."""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        started = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            _log_duration(func, started)
    return wrapper


class PerformanceTracker:
    """
    Thread-safe counters for requirement calculations.

    A calculation is one resolver run over a list of requests. It is
    "partial" when any branch was skipped or any request dropped. Dropped
    top-level requests are also counted per product id so a product with a
    broken catalog entry stands out.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def record_calculation_complete(self, duration_ms: float, partial: bool = False) -> None:
        with self._lock:
            self._runs += 1
            self._partial_runs += int(partial)
            self._total_ms += duration_ms
            self._slowest_ms = max(self._slowest_ms, duration_ms)

    def record_request_failure(self, product_id: str) -> None:
        with self._lock:
            self._failures[product_id] = self._failures.get(product_id, 0) + 1

    def get_metrics(self) -> Dict[str, Any]:
        """Snapshot for /metrics; averages are 0.0 until the first run."""
        with self._lock:
            return {
                "calculations_processed": self._runs,
                "partial_calculations": self._partial_runs,
                "avg_calculation_ms": round(self._total_ms / self._runs, 2) if self._runs else 0.0,
                "slowest_calculation_ms": round(self._slowest_ms, 2),
                "error_count": sum(self._failures.values()),
                "error_count_by_product": dict(self._failures),
            }

    def reset(self) -> None:
        with self._lock:
            self._runs = 0
            self._partial_runs = 0
            self._total_ms = 0.0
            self._slowest_ms = 0.0
            self._failures: Dict[str, int] = {}


tracker = PerformanceTracker()
