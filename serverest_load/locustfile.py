# ruff: noqa: E402
"""
Locust entrypoint for the ServeRest load test.

This is the file that the ``locust`` CLI discovers and loads.  It
exposes the user class and the stage-driven load shape, and wires two
event listeners around the run:

- ``init`` loads the options and the product fixture and builds the
  shared :class:`~serverest_load.scenarios.base.RunContext`.  A broken
  fixture aborts the run before any user is spawned.
- ``quitting`` evaluates the thresholds, logs the check tally, sets a
  non-zero exit code on breach and writes the HTML summary.

Usage examples::

    # Run the configured stages headless against the public API:
    locust -f serverest_load/locustfile.py --headless

    # Target another deployment:
    URL_BASE=http://localhost:3000 locust -f serverest_load/locustfile.py --headless
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from locust import events
from locust.runners import WorkerRunner

# Locust may be invoked from any directory (project root, repo parent,
# CI workspace, etc.).  Inserting the project root onto ``sys.path``
# guarantees that ``from serverest_load.…`` imports always resolve.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from serverest_load.config import Config, load_options
from serverest_load.helpers import load_products
from serverest_load.scenarios.base import CONTEXT_ATTRIBUTE, RunContext
from serverest_load.scenarios.product_flow import ProductFlowUser
from serverest_load.stages import StagesShape
from serverest_load.summary import handle_summary, write_summary
from serverest_load.thresholds import (
    all_passed,
    evaluate_thresholds,
    format_summary,
    locust_sources,
)

__all__ = ["ProductFlowUser", "StagesShape"]

logger = logging.getLogger(__name__)


@events.init.add_listener
def _build_run_context(environment, **_kwargs):
    """Load options and fixture once and share them with every user."""
    options = load_options(Config.OPTIONS_PATH)
    products = load_products(Config.PRODUCTS_PATH)
    logger.info(
        "Loaded %d products from %s; %d stages over %.0fs against %s",
        len(products),
        Config.PRODUCTS_PATH,
        len(options.stages),
        options.total_duration,
        environment.host or Config.BASE_URL,
    )
    setattr(
        environment,
        CONTEXT_ATTRIBUTE,
        RunContext(products=products, thresholds=options.thresholds),
    )


@events.quitting.add_listener
def _evaluate_and_report(environment, **_kwargs):
    """Gate the run on its thresholds and write the summary report."""
    # Workers only forward request stats; the master owns the report.
    if isinstance(environment.runner, WorkerRunner):
        return

    context = getattr(environment, CONTEXT_ATTRIBUTE, None)
    if context is None:
        return

    sources = {**locust_sources(environment.stats), **context.metric_sources()}
    results = evaluate_thresholds(context.thresholds, sources)

    logger.info("Checks\n%s", context.checks.format_table())
    if all_passed(results):
        logger.info("%s", format_summary(results))
    else:
        logger.error("%s", format_summary(results))
        environment.process_exit_code = 1

    write_summary(handle_summary(environment, context, results), Config.REPORT_DIR)
