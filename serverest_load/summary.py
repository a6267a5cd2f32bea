"""
End-of-run summary hook.

:func:`handle_summary` maps output file names to their contents, and
:func:`write_summary` puts them on disk.  The request statistics come
from Locust's own HTML report so the file matches what ``--html``
produces; the scenario's checks, the login trend and the threshold
outcome are added as an extra section before ``</body>``.
"""

from __future__ import annotations

import html
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from locust.html import get_html_report

from serverest_load.thresholds import STATUS_FAIL, STATUS_PASS, ThresholdResult, all_passed

logger = logging.getLogger(__name__)

REPORT_FILENAME = "relatorio_locust.html"

# Aggregations shown for every custom trend, in column order.
TREND_COLUMNS = (
    ("count", None),
    ("avg", None),
    ("min", None),
    ("med", None),
    ("max", None),
    ("p", 90),
    ("p", 95),
    ("p", 99),
)


def _column_label(name: str, arg: float | None) -> str:
    return f"p({arg})" if name == "p" else name


def _table(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
    head = "".join(f"<th>{html.escape(str(header))}</th>" for header in headers)
    body = "".join(
        "<tr>" + "".join(f"<td>{html.escape(str(cell))}</td>" for cell in row) + "</tr>"
        for row in rows
    )
    return f"<table><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>"


def render_run_section(context: Any, results: Sequence[ThresholdResult]) -> str:
    """
    Render the checks, custom trends and threshold results as HTML.

    Args:
        context: The run's :class:`~serverest_load.scenarios.base.RunContext`.
        results: Threshold outcomes from ``evaluate_thresholds``.
    """
    check_rows = [
        (name, passes, fails, "✓" if fails == 0 else "✗")
        for name, passes, fails in context.checks.as_rows()
    ]

    trend = context.login_duration
    trend_rows = [
        (trend.name, *(
            f"{trend.aggregate(name, arg):.2f}" if name != "count" else trend.count
            for name, arg in TREND_COLUMNS
        ))
    ]

    threshold_rows = [
        (
            result.threshold.metric,
            result.threshold.expression,
            "n/a" if result.actual is None else f"{result.actual:.4f}",
            result.status,
        )
        for result in results
    ]
    overall = STATUS_PASS if all_passed(list(results)) else STATUS_FAIL

    return "\n".join([
        '<div class="serverest-summary">',
        "<h2>Checks</h2>",
        _table(("Check", "Passes", "Fails", ""), check_rows),
        "<h2>Custom Trends</h2>",
        _table(
            ("Metric", *(_column_label(name, arg) for name, arg in TREND_COLUMNS)),
            trend_rows,
        ),
        "<h2>Thresholds</h2>",
        _table(("Metric", "Threshold", "Actual", "Status"), threshold_rows),
        f"<p>Overall: {overall}</p>",
        "</div>",
    ])


def handle_summary(
    environment: Any,
    context: Any,
    results: Sequence[ThresholdResult],
) -> dict[str, str]:
    """Return ``{file name: content}`` for every summary artefact."""
    report = get_html_report(environment, show_download_link=False)
    section = render_run_section(context, results)

    closing = report.rfind("</body>")
    if closing == -1:
        report = f"{report}\n{section}"
    else:
        report = f"{report[:closing]}{section}\n{report[closing:]}"

    return {REPORT_FILENAME: report}


def write_summary(outputs: Mapping[str, str], directory: Path | str) -> list[Path]:
    """
    Write each summary artefact into *directory*.

    Returns:
        The paths written, in mapping order.
    """
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for filename, content in outputs.items():
        path = target_dir / filename
        path.write_text(content, encoding="utf-8")
        logger.info("Summary written to %s", path)
        written.append(path)
    return written
