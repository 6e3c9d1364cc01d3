"""Performance monitoring for electrical load calculations."""
import time
import logging
import threading
import functools
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("mep-portal-api.perf")


def timed_async(func: Callable) -> Callable:
    """
    Log the duration of an async call at DEBUG, with the qualified name as ``stage``.

    Usage::

        @timed_async
        async def load_calculation(session, calculation_id):
            ...
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.debug(
                "%s timed",
                func.__qualname__,
                extra={"stage": func.__qualname__, "duration_ms": duration_ms},
            )
    return wrapper


class CalculationTracker:
    """
    Thread-safe in-memory tracker for calculation metrics.

    Tracks:
    - Calculations completed, and how many of those were invalid
    - Cumulative and average calculation duration
    - Slowest stage across all calculations
    - Failures broken down by error class
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._completed: int = 0
        self._invalid: int = 0
        self._total_duration_ms: float = 0.0
        self._stage_totals: Dict[str, float] = {}     # stage -> summed duration_ms
        self._stage_counts: Dict[str, int] = {}       # stage -> calls recorded
        self._error_counts: Dict[str, int] = {}       # error class -> count
        self._slowest_stage: Optional[str] = None
        self._slowest_stage_ms: float = 0.0

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def record_calculation(self, duration_ms: float, is_valid: bool = True) -> None:
        """Call once per calculation that produced a result (valid or not)."""
        with self._lock:
            self._completed += 1
            self._total_duration_ms += duration_ms
            if not is_valid:
                self._invalid += 1

    def record_stage(self, stage: str, duration_ms: float) -> None:
        with self._lock:
            self._stage_totals[stage] = self._stage_totals.get(stage, 0.0) + duration_ms
            self._stage_counts[stage] = self._stage_counts.get(stage, 0) + 1
            if duration_ms > self._slowest_stage_ms:
                self._slowest_stage_ms = duration_ms
                self._slowest_stage = stage

    def record_error(self, error_class: str) -> None:
        with self._lock:
            self._error_counts[error_class] = self._error_counts.get(error_class, 0) + 1

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def get_metrics(self) -> Dict[str, Any]:
        with self._lock:
            avg = (
                round(self._total_duration_ms / self._completed, 2)
                if self._completed > 0
                else 0.0
            )
            stage_avgs = {
                stage: round(total / self._stage_counts[stage], 2)
                for stage, total in self._stage_totals.items()
            }
            return {
                "calculations_completed": self._completed,
                "invalid_results": self._invalid,
                "avg_calculation_duration_ms": avg,
                "slowest_stage": self._slowest_stage,
                "slowest_stage_ms": round(self._slowest_stage_ms, 2),
                "error_count": sum(self._error_counts.values()),
                "error_count_by_class": dict(self._error_counts),
                "stage_avg_durations_ms": stage_avgs,
            }

    def reset(self) -> None:
        """Reset all counters (useful in tests)."""
        with self._lock:
            self._completed = 0
            self._invalid = 0
            self._total_duration_ms = 0.0
            self._stage_totals.clear()
            self._stage_counts.clear()
            self._error_counts.clear()
            self._slowest_stage = None
            self._slowest_stage_ms = 0.0


# Module-level singleton; import this instance everywhere else.
tracker = CalculationTracker()
