"""Tests for telemetry data structures and round errors."""

from hostmetrics.utils.errors import PartialScrapeError, ScrapeRoundFailedError
from hostmetrics.utils.metrics import (
    MetricsBatch,
    MetricsBuilder,
    MetricType,
    Resource,
    ScopeMetrics,
    ScrapeFailure,
    ScrapeResult
)


def test_builder_groups_points_by_name():
    builder = MetricsBuilder(timestamp=42)
    builder.sum("system.network.io", "By", 1, {"direction": "transmit"})
    builder.sum("system.network.io", "By", 2, {"direction": "receive"})
    builder.gauge("system.memory.utilization", "1", 0.5)

    metrics = builder.emit()

    assert [m.name for m in metrics] == ["system.network.io", "system.memory.utilization"]
    assert metrics[0].type is MetricType.SUM
    assert [p.value for p in metrics[0].data_points] == [1, 2]
    assert all(p.timestamp == 42 for p in metrics[0].data_points)
    assert builder.emit() == []


def test_batch_helpers():
    first, second = MetricsBuilder(), MetricsBuilder()
    first.gauge("a", "1", 1)
    second.gauge("b", "1", 1)
    second.gauge("b", "1", 2)

    batch = MetricsBatch(
        resource=Resource(),
        scope_metrics=[ScopeMetrics("one", first.emit()), ScopeMetrics("two", second.emit())]
    )

    assert batch.scopes() == ["one", "two"]
    assert batch.metric_names() == ["a", "b"]
    assert batch.data_point_count() == 3


def test_scrape_result_partial():
    result = ScrapeResult()
    assert not result.partial

    result.add_error("/mnt", PermissionError("denied"))

    assert result.partial
    assert result.errors == [ScrapeFailure(item="/mnt", error="denied")]


def test_partial_error_message():
    error = PartialScrapeError(
        {"cpu": RuntimeError("boom")},
        {"filesystem": [ScrapeFailure("/mnt", "denied")]}
    )

    assert error.failed_keys == ["cpu"]
    assert str(error) == "1 scraper(s) failed: cpu: boom; filesystem (/mnt): denied"


def test_round_failed_error():
    error = ScrapeRoundFailedError({"a": RuntimeError("x"), "b": RuntimeError("y")})

    assert isinstance(error, PartialScrapeError)
    assert error.forwarded is False
    assert error.failed_count == 2
