# metrics.py
# Streaming call statistics for a load test run.
#
# record() is the only writer and summarize() the only reader. Both run on
# the event loop thread, so no locking.

import math
import statistics
import time
from typing import Any, Callable

from mcp_load_tester import display
from mcp_load_tester.models import CallRecord, MetricsSummary, PerToolStats


def _error_key(error: Any) -> str:
    """Tally key for an error: its message, else its string form."""
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


def percentile_95(sorted_values: list[float]) -> float:
    """Nearest-rank p95 of an ascending list; 0 when empty."""
    if not sorted_values:
        return 0.0
    index = math.ceil(0.95 * len(sorted_values)) - 1
    index = min(max(index, 0), len(sorted_values) - 1)
    return float(sorted_values[index])


class _ToolTally:
    __slots__ = ("total", "success", "failure", "response_times")

    def __init__(self) -> None:
        self.total = 0
        self.success = 0
        self.failure = 0
        self.response_times: list[float] = []


class MetricsAggregator:
    """
    Accumulates call outcomes and reports summary statistics.

    Example:
        metrics = MetricsAggregator()
        metrics.record("echo", True, 12.5)
        summary = metrics.summarize()
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.start_time = clock()
        self.last_time = self.start_time
        self.total = 0
        self.success = 0
        self.failure = 0
        self.response_times: list[float] = []
        self.errors: dict[str, int] = {}
        self.per_tool: dict[str, _ToolTally] = {}
        self.details: list[CallRecord] = []

    def record(
        self,
        tool_name: str,
        success: bool,
        duration_ms: float,
        error: Any = None,
        args: dict[str, Any] | None = None,
        result: Any = None,
    ) -> None:
        """Record one attempted call. Called exactly once per attempt."""
        duration_ms = float(duration_ms)
        self.last_time = self._clock()
        self.total += 1
        self.response_times.append(duration_ms)

        tally = self.per_tool.setdefault(tool_name, _ToolTally())
        tally.total += 1
        tally.response_times.append(duration_ms)

        error_key = _error_key(error) if error is not None else None
        if success:
            self.success += 1
            tally.success += 1
        else:
            self.failure += 1
            tally.failure += 1
            if error_key is not None:
                self.errors[error_key] = self.errors.get(error_key, 0) + 1

        self.details.append(
            CallRecord(
                tool_name=tool_name,
                args=dict(args or {}),
                result=result,
                error=error_key,
                duration_ms=duration_ms,
            )
        )

    def summarize(self) -> MetricsSummary:
        """
        Compute statistics over everything recorded so far.

        Elapsed time runs from construction to the most recent record, so
        repeated calls without an intervening record return equal summaries.
        """
        total_time = self.last_time - self.start_time
        ordered = sorted(self.response_times)

        per_tool = {
            name: PerToolStats(
                total=tally.total,
                success=tally.success,
                failure=tally.failure,
                avg=statistics.fmean(tally.response_times) if tally.response_times else 0.0,
            )
            for name, tally in self.per_tool.items()
        }

        return MetricsSummary(
            total=self.total,
            success=self.success,
            failure=self.failure,
            avg=statistics.fmean(ordered) if ordered else 0.0,
            median=float(statistics.median(ordered)) if ordered else 0.0,
            p95=percentile_95(ordered),
            throughput=self.total / total_time if total_time > 0 else 0.0,
            errors=dict(self.errors),
            per_tool=per_tool,
            total_time=total_time,
            details=list(self.details),
        )

    def print_summary(self) -> MetricsSummary:
        summary = self.summarize()
        display.metrics_summary(summary)
        return summary
