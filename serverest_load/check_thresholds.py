"""
Validate Locust CSV output against the configured thresholds.

The in-process gate in the locustfile covers interactive runs.  CI can
also run Locust with ``--csv`` and invoke this script afterwards to
decide whether the build passes.  It reads the ``*_stats.csv`` file,
extracts the **Aggregated** row and evaluates the thresholds from
:file:`options.yml` that the CSV can answer:

- ``http_req_failed``: ``Failure Count / Request Count``
- ``http_req_duration``: average, min, max, median and the percentile
  columns Locust writes

Thresholds on custom metrics (e.g. ``login_duration``) are not in the
CSV and are reported as ``SKIP``.

Exit codes follow a three-state convention so that CI can distinguish
"thresholds breached" from "script crashed":

- ``0``: all thresholds passed
- ``1``: at least one threshold was breached
- ``2``: the script itself failed (missing file, bad YAML, etc.)
"""

from __future__ import annotations

import argparse
import csv
import sys
from pathlib import Path
from typing import Any

from serverest_load.config import Config, load_options
from serverest_load.thresholds import (
    MetricSource,
    all_passed,
    evaluate_thresholds,
    format_summary,
)

# Three-state exit codes so CI can tell "test failed" from "script crashed".
EXIT_PASS = 0
EXIT_THRESHOLD_BREACH = 1
EXIT_SCRIPT_ERROR = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the threshold checker."""
    parser = argparse.ArgumentParser(
        description="Check Locust stats CSV against performance thresholds."
    )
    parser.add_argument(
        "--stats",
        required=True,
        type=Path,
        help="Path to Locust *_stats.csv file",
    )
    parser.add_argument(
        "--options",
        type=Path,
        default=Config.OPTIONS_PATH,
        help="Path to the options YAML file holding the thresholds",
    )
    return parser.parse_args(argv)


def _load_aggregated_row(stats_path: Path) -> dict[str, str]:
    """
    Find and return the ``Aggregated`` summary row from a Locust stats CSV.

    Locust writes one row per endpoint plus a final ``Aggregated`` row
    that summarises all traffic.  This function scans for that row by
    checking both the ``Name`` and ``Type`` columns, since the column
    layout varies between Locust versions.

    Raises:
        ValueError: If no ``Aggregated`` row is found.
    """
    with stats_path.open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))

    for row in rows:
        if row.get("Name") == "Aggregated" or row.get("Type") == "Aggregated":
            return row

    raise ValueError("Could not find 'Aggregated' row in stats CSV")


def _parse_float(value: Any, field_name: str) -> float:
    """
    Coerce *value* to ``float``, stripping ``%`` suffixes if present.

    Raises:
        ValueError: If the value is missing, empty, or non-numeric.
    """
    if value is None:
        raise ValueError(f"Missing field: {field_name}")

    text = str(value).strip().replace("%", "")
    if text == "":
        raise ValueError(f"Empty value for field: {field_name}")

    try:
        return float(text)
    except ValueError as exc:
        raise ValueError(f"Non-numeric value for {field_name}: {value}") from exc


def _percentile_columns(p: float) -> tuple[str, ...]:
    """Known spellings of a percentile column across Locust versions."""
    label = f"{p:g}"
    return (f"{label}%", f"{label}%ile", f"{label}th percentile", f"p{label}")


class CsvDurationSource:
    """``http_req_duration`` backed by the CSV aggregated row."""

    _COLUMNS = {
        "avg": "Average Response Time",
        "min": "Min Response Time",
        "max": "Max Response Time",
        "med": "Median Response Time",
        "count": "Request Count",
    }

    def __init__(self, row: dict[str, str]) -> None:
        self._row = row

    def aggregate(self, name: str, arg: float | None = None) -> float:
        if name == "p":
            for candidate in _percentile_columns(arg):
                if self._row.get(candidate) not in (None, ""):
                    return _parse_float(self._row[candidate], candidate)
            raise ValueError(f"Could not find p({arg:g}) column in stats CSV")

        column = self._COLUMNS.get(name)
        if column is None:
            raise ValueError(f"Aggregation '{name}' is not supported by http_req_duration")
        return _parse_float(self._row.get(column), column)


class CsvFailedSource:
    """``http_req_failed`` computed from the CSV request and failure counts."""

    def __init__(self, row: dict[str, str]) -> None:
        self._row = row

    def aggregate(self, name: str, arg: float | None = None) -> float:
        request_count = _parse_float(self._row.get("Request Count"), "Request Count")
        failure_count = _parse_float(self._row.get("Failure Count"), "Failure Count")

        if name == "count":
            return failure_count
        if name != "rate":
            raise ValueError(f"Aggregation '{name}' is not supported by http_req_failed")
        if request_count <= 0:
            raise ValueError("Request Count must be > 0 for threshold checks")
        return failure_count / request_count


def csv_sources(row: dict[str, str]) -> dict[str, MetricSource]:
    return {
        "http_req_duration": CsvDurationSource(row),
        "http_req_failed": CsvFailedSource(row),
    }


def main(argv: list[str] | None = None) -> int:
    """
    Entry point: load thresholds, parse CSV, compare, and print results.

    Returns:
        ``EXIT_PASS`` (0) if all thresholds are met,
        ``EXIT_THRESHOLD_BREACH`` (1) if any are exceeded, or
        ``EXIT_SCRIPT_ERROR`` (2) on unexpected failures.
    """
    args = parse_args(argv)

    try:
        options = load_options(args.options)
        row = _load_aggregated_row(args.stats)
        results = evaluate_thresholds(options.thresholds, csv_sources(row))
    except Exception as exc:
        print(f"Threshold check failed: {exc}", file=sys.stderr)
        return EXIT_SCRIPT_ERROR

    print(format_summary(results))
    return EXIT_PASS if all_passed(results) else EXIT_THRESHOLD_BREACH


if __name__ == "__main__":
    raise SystemExit(main())
