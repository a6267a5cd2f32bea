"""
Custom metric sinks recorded alongside Locust's request statistics.

Locust aggregates HTTP requests on its own, but a scenario also needs
series Locust does not track: a latency trend for a single step and the
pass/fail tally of in-iteration checks.  The classes here hold those
samples for the whole run and expose the aggregations the threshold
evaluator asks for.
"""

from __future__ import annotations

import logging
import statistics
import threading
from collections.abc import Callable, Mapping
from typing import Any

logger = logging.getLogger(__name__)

# Percentiles are resolved to 1/100 of a percent.
_PERCENTILE_STEPS = 10_000


class Trend:
    """A named series of numeric samples (e.g. durations in ms)."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._samples: list[float] = []
        self._lock = threading.Lock()

    def add(self, value: float) -> None:
        with self._lock:
            self._samples.append(float(value))

    def _snapshot(self) -> list[float]:
        with self._lock:
            return list(self._samples)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._samples)

    def percentile(self, p: float) -> float:
        """
        Return the *p*-th percentile (0-100) of the recorded samples.

        Interpolates linearly between the two closest ranks
        (``statistics.quantiles`` with the inclusive method).  An empty
        trend reports ``0.0``.
        """
        if not 0 <= p <= 100:
            raise ValueError(f"Percentile must be within 0-100, got {p}")

        samples = self._snapshot()
        if not samples:
            return 0.0
        if len(samples) == 1:
            return samples[0]

        step = round(p * _PERCENTILE_STEPS / 100)
        if step == 0:
            return min(samples)
        if step == _PERCENTILE_STEPS:
            return max(samples)
        cut_points = statistics.quantiles(samples, n=_PERCENTILE_STEPS, method="inclusive")
        return cut_points[step - 1]

    @property
    def avg(self) -> float:
        samples = self._snapshot()
        return statistics.fmean(samples) if samples else 0.0

    @property
    def min(self) -> float:
        samples = self._snapshot()
        return min(samples) if samples else 0.0

    @property
    def max(self) -> float:
        samples = self._snapshot()
        return max(samples) if samples else 0.0

    @property
    def med(self) -> float:
        samples = self._snapshot()
        return statistics.median(samples) if samples else 0.0

    def aggregate(self, name: str, arg: float | None = None) -> float:
        """Resolve a threshold aggregation (``avg``, ``p``, ...) by name."""
        if name == "p":
            if arg is None:
                raise ValueError("Percentile aggregation requires an argument")
            return self.percentile(arg)
        if name in ("avg", "min", "max", "med"):
            return getattr(self, name)
        if name == "count":
            return float(self.count)
        raise ValueError(f"Aggregation '{name}' is not supported by trend {self.name}")


class Rate:
    """A named series of boolean samples reported as a pass ratio."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._passes = 0
        self._total = 0
        self._lock = threading.Lock()

    def add(self, passed: bool) -> None:
        with self._lock:
            self._total += 1
            if passed:
                self._passes += 1

    def counts(self) -> tuple[int, int]:
        """Return a consistent ``(passes, fails)`` pair."""
        with self._lock:
            return self._passes, self._total - self._passes

    @property
    def passes(self) -> int:
        return self.counts()[0]

    @property
    def fails(self) -> int:
        return self.counts()[1]

    @property
    def total(self) -> int:
        passes, fails = self.counts()
        return passes + fails

    @property
    def rate(self) -> float:
        passes, fails = self.counts()
        total = passes + fails
        return passes / total if total else 0.0

    def aggregate(self, name: str, arg: float | None = None) -> float:
        if name == "rate":
            return self.rate
        if name == "count":
            return float(self.total)
        raise ValueError(f"Aggregation '{name}' is not supported by rate {self.name}")


class CheckResults:
    """
    Per-check pass/fail counters for the whole run.

    Also acts as the ``checks`` metric source: its overall ``rate`` is the
    share of passed check evaluations across every check name.
    """

    def __init__(self) -> None:
        self._rates: dict[str, Rate] = {}
        self._lock = threading.Lock()

    def record(self, name: str, passed: bool) -> None:
        with self._lock:
            rate = self._rates.get(name)
            if rate is None:
                rate = self._rates[name] = Rate(name)
        rate.add(passed)

    def get(self, name: str) -> Rate | None:
        with self._lock:
            return self._rates.get(name)

    def as_rows(self) -> list[tuple[str, int, int]]:
        """Return ``(name, passes, fails)`` rows in first-seen order."""
        with self._lock:
            rates = list(self._rates.values())
        return [(rate.name, *rate.counts()) for rate in rates]

    @property
    def passes(self) -> int:
        return sum(passes for _, passes, _ in self.as_rows())

    @property
    def fails(self) -> int:
        return sum(fails for _, _, fails in self.as_rows())

    @property
    def rate(self) -> float:
        rows = self.as_rows()
        passes = sum(row[1] for row in rows)
        total = passes + sum(row[2] for row in rows)
        return passes / total if total else 0.0

    def aggregate(self, name: str, arg: float | None = None) -> float:
        if name == "rate":
            return self.rate
        if name == "count":
            return float(self.passes + self.fails)
        raise ValueError(f"Aggregation '{name}' is not supported by checks")

    def format_table(self) -> str:
        lines = [f"{'Check':<32}{'Passes':>10}{'Fails':>10}", "-" * 52]
        for name, passes, fails in self.as_rows():
            mark = "✓" if fails == 0 else "✗"
            lines.append(f"{mark} {name:<30}{passes:>10}{fails:>10}")
        return "\n".join(lines)


def check(
    value: Any,
    checks: Mapping[str, Callable[[Any], bool]],
    results: CheckResults,
) -> bool:
    """
    Evaluate every predicate in *checks* against *value*.

    Failures are counted, never raised: the caller keeps going whatever
    the outcome.  A predicate that raises is recorded as a failure.

    Returns:
        ``True`` only if every predicate passed.
    """
    all_passed = True
    for name, predicate in checks.items():
        try:
            passed = bool(predicate(value))
        except Exception as exc:
            logger.debug("Check %r raised %s", name, exc)
            passed = False

        results.record(name, passed)
        if not passed:
            logger.debug("Check failed: %s", name)
            all_passed = False

    return all_passed
