"""
Unit tests for the custom metric sinks and the check helper.
"""

import statistics
import threading

import pytest

from serverest_load.metrics import CheckResults, Rate, Trend, check


pytestmark = pytest.mark.unit


def test_trend_percentiles_interpolate():
    trend = Trend("login_duration")
    for value in (40, 10, 30, 20):
        trend.add(value)

    assert trend.count == 4
    assert trend.percentile(0) == 10
    assert trend.percentile(50) == pytest.approx(25)
    assert trend.percentile(100) == 40
    assert trend.med == pytest.approx(25)


def test_trend_basic_aggregations():
    trend = Trend("t")
    for value in (100, 200, 600):
        trend.add(value)

    assert trend.avg == pytest.approx(300)
    assert trend.min == 100
    assert trend.max == 600
    assert trend.aggregate("p", 99) == pytest.approx(592)
    assert trend.aggregate("count") == 3


def test_empty_trend_reports_zero():
    trend = Trend("t")

    assert trend.percentile(99) == 0.0
    assert trend.avg == 0.0
    assert trend.max == 0.0


def test_trend_rejects_bad_percentile():
    with pytest.raises(ValueError):
        Trend("t").percentile(101)


def test_trend_rejects_unknown_aggregation():
    with pytest.raises(ValueError, match="rate"):
        Trend("t").aggregate("rate")


def test_rate_counts_passes_and_fails():
    rate = Rate("r")
    for passed in (True, True, False, True):
        rate.add(passed)

    assert rate.passes == 3
    assert rate.fails == 1
    assert rate.rate == pytest.approx(0.75)
    assert Rate("empty").rate == 0.0


def test_check_records_every_predicate(make_response):
    results = CheckResults()
    response = make_response(200, {"authorization": ""})

    passed = check(
        response,
        {
            "status is 200": lambda r: r.status_code == 200,
            "has token": lambda r: r.json()["authorization"] != "",
        },
        results,
    )

    assert passed is False
    assert results.get("status is 200").passes == 1
    assert results.get("has token").fails == 1
    assert results.rate == pytest.approx(0.5)


def test_check_counts_raising_predicate_as_failure(make_response):
    results = CheckResults()

    passed = check(make_response(500), {"body ok": lambda r: r.json()["id"]}, results)

    assert passed is False
    assert results.as_rows() == [("body ok", 0, 1)]


def test_check_results_table_lists_checks():
    results = CheckResults()
    results.record("produto cadastrado", True)
    results.record("tem token", False)

    table = results.format_table()

    assert "produto cadastrado" in table
    assert "tem token" in table


def test_trend_percentiles_match_statistics_quantiles():
    samples = [12, 7, 33, 18, 5, 41, 27, 9, 15, 22, 30]
    trend = Trend("login_duration")
    for value in samples:
        trend.add(value)

    expected = statistics.quantiles(samples, n=100, method="inclusive")
    for p in (1, 25, 50, 90, 95, 99):
        assert trend.percentile(p) == pytest.approx(expected[p - 1])
    assert trend.avg == pytest.approx(statistics.fmean(samples))
    assert trend.med == statistics.median(samples)


def test_trend_fractional_percentile_interpolates():
    trend = Trend("login_duration")
    for value in (100, 200, 600):
        trend.add(value)

    assert trend.percentile(99.9) == pytest.approx(599.2)
    assert trend.percentile(100) == 600


def test_rate_counts_stay_consistent_across_threads():
    rate = Rate("checks")

    def record():
        for i in range(500):
            rate.add(i % 2 == 0)

    workers = [threading.Thread(target=record) for _ in range(4)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()

    assert rate.counts() == (1000, 1000)
    assert rate.total == 2000
    assert rate.rate == pytest.approx(0.5)


def test_check_results_totals_follow_rows():
    results = CheckResults()
    results.record("login realizado", True)
    results.record("login realizado", False)
    results.record("tem token", True)

    assert results.as_rows() == [("login realizado", 1, 1), ("tem token", 1, 0)]
    assert results.passes == 2
    assert results.fails == 1
    assert results.get("tem token").counts() == (1, 0)
    assert results.get("missing") is None
