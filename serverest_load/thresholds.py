"""
Pass/fail thresholds evaluated against aggregated run metrics.

Thresholds are written the way load-test configs usually spell them,
one list of expressions per metric::

    http_req_failed: ["rate<0.01"]
    http_req_duration: ["p(95)<3000"]
    login_duration: ["p(99)<3000"]

Each expression is ``<aggregation> <operator> <number>``.  A *metric
source* is any object with an ``aggregate(name, arg)`` method: the
custom :mod:`serverest_load.metrics` sinks implement it directly, and the
adapters below expose Locust's request statistics the same way.

Key Concepts Demonstrated:
- Declarative acceptance criteria kept in YAML next to the stages
- One evaluation path for in-process (Locust stats) and offline (CSV)
  checks
- Missing metrics are reported as skipped rather than silently passed
"""

from __future__ import annotations

import operator
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

_EXPRESSION = re.compile(
    r"^\s*(?P<agg>rate|avg|min|max|med|count|p\(\s*(?P<arg>\d+(?:\.\d+)?)\s*\))"
    r"\s*(?P<op><=|>=|==|!=|<|>)\s*(?P<value>-?\d+(?:\.\d+)?)\s*$"
)

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

STATUS_PASS = "PASS"
STATUS_FAIL = "FAIL"
STATUS_SKIP = "SKIP"


class ThresholdSyntaxError(ValueError):
    """Raised when a threshold expression cannot be parsed."""


class MetricSource(Protocol):
    def aggregate(self, name: str, arg: float | None = None) -> float: ...


@dataclass(frozen=True)
class Threshold:
    """A single parsed threshold expression bound to a metric name."""

    metric: str
    expression: str
    aggregation: str
    arg: float | None
    op: str
    limit: float

    @classmethod
    def parse(cls, metric: str, expression: str) -> Threshold:
        match = _EXPRESSION.match(expression)
        if match is None:
            raise ThresholdSyntaxError(
                f"Invalid threshold for {metric}: {expression!r}"
            )

        aggregation = match.group("agg")
        arg = match.group("arg")
        if arg is not None:
            aggregation = "p"
            if not 0 <= float(arg) <= 100:
                raise ThresholdSyntaxError(
                    f"Percentile out of range for {metric}: {expression!r}"
                )

        return cls(
            metric=metric,
            expression=expression.strip(),
            aggregation=aggregation,
            arg=float(arg) if arg is not None else None,
            op=match.group("op"),
            limit=float(match.group("value")),
        )

    def check(self, actual: float) -> bool:
        return _OPERATORS[self.op](actual, self.limit)


@dataclass(frozen=True)
class ThresholdResult:
    threshold: Threshold
    actual: float | None
    status: str

    @property
    def passed(self) -> bool:
        return self.status != STATUS_FAIL


def parse_thresholds(raw: Mapping[str, Any]) -> dict[str, list[Threshold]]:
    """
    Parse the ``thresholds`` mapping loaded from YAML.

    A metric may map to a single expression string or to a list of them.

    Raises:
        ThresholdSyntaxError: If any expression is malformed.
    """
    parsed: dict[str, list[Threshold]] = {}
    for metric, expressions in raw.items():
        if isinstance(expressions, str):
            expressions = [expressions]
        if not isinstance(expressions, list):
            raise ThresholdSyntaxError(
                f"Thresholds for {metric} must be a string or a list of strings"
            )
        parsed[str(metric)] = [
            Threshold.parse(str(metric), str(expression)) for expression in expressions
        ]
    return parsed


def evaluate_thresholds(
    thresholds: Mapping[str, list[Threshold]],
    sources: Mapping[str, MetricSource],
) -> list[ThresholdResult]:
    """
    Evaluate every threshold against its metric source.

    Thresholds whose metric has no source are reported with
    ``STATUS_SKIP`` so the summary shows them instead of hiding them.
    """
    results: list[ThresholdResult] = []
    for metric, metric_thresholds in thresholds.items():
        source = sources.get(metric)
        for threshold in metric_thresholds:
            if source is None:
                results.append(ThresholdResult(threshold, None, STATUS_SKIP))
                continue

            actual = source.aggregate(threshold.aggregation, threshold.arg)
            status = STATUS_PASS if threshold.check(actual) else STATUS_FAIL
            results.append(ThresholdResult(threshold, actual, status))
    return results


def all_passed(results: list[ThresholdResult]) -> bool:
    return all(result.passed for result in results)


def format_summary(results: list[ThresholdResult]) -> str:
    """Render a human-readable results table for logs and CI output."""
    lines = [
        "Performance Threshold Check",
        "-" * 72,
        f"{'Metric':<22}{'Threshold':<18}{'Actual':>14}{'Status':>12}",
        "-" * 72,
    ]
    for result in results:
        actual = "n/a" if result.actual is None else f"{result.actual:.4f}"
        lines.append(
            f"{result.threshold.metric:<22}{result.threshold.expression:<18}"
            f"{actual:>14}{result.status:>12}"
        )
    lines.append("-" * 72)
    lines.append(f"Overall: {STATUS_PASS if all_passed(results) else STATUS_FAIL}")
    return "\n".join(lines)


class RequestDurationSource:
    """
    Expose a Locust ``StatsEntry`` as the ``http_req_duration`` metric.

    Locust reports response times in milliseconds, the same unit the
    threshold limits use.
    """

    def __init__(self, stats_entry: Any) -> None:
        self._entry = stats_entry

    def aggregate(self, name: str, arg: float | None = None) -> float:
        entry = self._entry
        if name == "p":
            return float(entry.get_response_time_percentile(arg / 100.0) or 0.0)
        if name == "avg":
            return float(entry.avg_response_time or 0.0)
        if name == "min":
            return float(entry.min_response_time or 0.0)
        if name == "max":
            return float(entry.max_response_time or 0.0)
        if name == "med":
            return float(entry.median_response_time or 0.0)
        if name == "count":
            return float(entry.num_requests)
        raise ValueError(f"Aggregation '{name}' is not supported by http_req_duration")


class RequestFailedSource:
    """Expose a Locust ``StatsEntry`` failure ratio as ``http_req_failed``."""

    def __init__(self, stats_entry: Any) -> None:
        self._entry = stats_entry

    def aggregate(self, name: str, arg: float | None = None) -> float:
        if name == "rate":
            return float(self._entry.fail_ratio)
        if name == "count":
            return float(self._entry.num_failures)
        raise ValueError(f"Aggregation '{name}' is not supported by http_req_failed")


def locust_sources(stats: Any) -> dict[str, MetricSource]:
    """Build the built-in HTTP metric sources from a ``RequestStats``."""
    return {
        "http_req_duration": RequestDurationSource(stats.total),
        "http_req_failed": RequestFailedSource(stats.total),
    }
