"""Timing utilities for propagation runs.

Provides a repeat-and-average runner and a phase context manager so the
driver can report elapsed processing time per run.
"""
from __future__ import annotations

import logging
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class TimingMetric:
    """One timed phase of a run."""

    name: str
    duration_ms: float
    timestamp: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RunReport:
    """Durations of every repetition of one operation plus its phases."""

    operation: str
    durations_ms: List[float] = field(default_factory=list)
    phases: List[TimingMetric] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def mean_ms(self) -> float:
        if not self.durations_ms:
            return 0.0
        return sum(self.durations_ms) / len(self.durations_ms)

    def add_phase(self, phase: TimingMetric) -> None:
        self.phases.append(phase)

    def phase_totals(self) -> Dict[str, float]:
        """Total time per phase name across all repetitions."""
        totals: Dict[str, float] = defaultdict(float)
        for phase in self.phases:
            totals[phase.name] += phase.duration_ms
        return dict(totals)

    def format_report(self) -> str:
        """Multi-line summary: mean over repeats, metadata, then phases by total time."""
        header = f"PERFORMANCE REPORT: {self.operation}"
        rule = "-" * max(len(header), 40)
        lines = [rule, header, rule]
        lines.append(f"repeats={len(self.durations_ms)} mean={self.mean_ms:.2f}ms")
        lines.extend(f"{key}: {value}" for key, value in self.metadata.items())
        totals = sorted(self.phase_totals().items(), key=lambda item: item[1], reverse=True)
        lines.extend(f"  {name}: {total:.2f}ms" for name, total in totals)
        lines.append(rule)
        return "\n".join(lines)


class PerformanceProfiler:
    """Singleton collecting finished run reports."""

    _instance = None
    _enabled = True

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._reports = []
        return cls._instance

    @classmethod
    def enable(cls) -> None:
        cls._enabled = True

    @classmethod
    def disable(cls) -> None:
        cls._enabled = False

    @classmethod
    def is_enabled(cls) -> bool:
        return cls._enabled

    def record(self, report: RunReport) -> None:
        self._reports.append(report)

    def get_all_reports(self) -> List[RunReport]:
        return self._reports.copy()

    def clear_reports(self) -> None:
        self._reports.clear()

    def get_summary(self) -> Dict[str, Dict[str, float]]:
        """Mean duration and run count per operation."""
        by_operation: Dict[str, List[float]] = defaultdict(list)
        for report in self._reports:
            by_operation[report.operation].append(report.mean_ms)
        return {
            operation: {
                "count": len(means),
                "avg_ms": sum(means) / len(means),
                "min_ms": min(means),
                "max_ms": max(means),
            }
            for operation, means in by_operation.items()
        }


# Global profiler instance
_profiler = PerformanceProfiler()


def get_profiler() -> PerformanceProfiler:
    return _profiler


@contextmanager
def profile_phase(
    phase_name: str,
    report: Optional[RunReport] = None,
    metadata: Optional[Dict[str, Any]] = None,
):
    """Time a block and attach it to ``report`` when one is given.

    Usage:
        with profile_phase("affected_vertices", report):
            ...
    """
    if not PerformanceProfiler.is_enabled():
        yield
        return

    start_time = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        if report is not None:
            report.add_phase(TimingMetric(
                name=phase_name,
                duration_ms=duration_ms,
                timestamp=time.time(),
                metadata=metadata or {},
            ))
        logger.debug(f"Phase [{phase_name}]: {duration_ms:.2f}ms")


def measure_duration(
    run: Callable[[RunReport], T],
    repeat: int = 1,
    operation: str = "run",
    metadata: Optional[Dict[str, Any]] = None,
) -> Tuple[T, RunReport]:
    """Call ``run`` ``repeat`` times; return the last value and the timing report.

    Timing is always measured, since callers report it; the profiler switch
    only controls whether the report is kept globally.
    """
    report = RunReport(operation=operation, metadata=metadata or {})
    value = None
    for _ in range(max(1, repeat)):
        start_time = time.perf_counter()
        value = run(report)
        report.durations_ms.append((time.perf_counter() - start_time) * 1000)

    if PerformanceProfiler.is_enabled():
        _profiler.record(report)
    logger.debug(report.format_report())
    return value, report
