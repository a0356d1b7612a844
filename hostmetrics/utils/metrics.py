"""Telemetry data structures produced by scrapers and the controller."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
import time


def now_ns() -> int:
    """Current wall-clock time in nanoseconds since the epoch."""
    return time.time_ns()


class MetricType(Enum):
    """Shape of a metric's data points."""

    GAUGE = "gauge"
    SUM = "sum"


@dataclass
class DataPoint:
    """Single measurement with its identifying attributes."""

    value: float
    timestamp: int
    attributes: Dict[str, Any] = field(default_factory=dict)
    start_timestamp: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        point: Dict[str, Any] = {"timeUnixNano": str(self.timestamp)}
        if self.start_timestamp is not None:
            point["startTimeUnixNano"] = str(self.start_timestamp)
        if isinstance(self.value, int) and not isinstance(self.value, bool):
            point["asInt"] = str(self.value)
        else:
            point["asDouble"] = float(self.value)
        if self.attributes:
            point["attributes"] = _attributes_to_list(self.attributes)
        return point


@dataclass
class Metric:
    """Named metric with unit, type and data points."""

    name: str
    unit: str
    type: MetricType
    data_points: List[DataPoint] = field(default_factory=list)
    description: str = ""
    monotonic: bool = False

    def to_dict(self) -> Dict[str, Any]:
        points = [p.to_dict() for p in self.data_points]
        out: Dict[str, Any] = {"name": self.name, "unit": self.unit}
        if self.description:
            out["description"] = self.description

        if self.type is MetricType.SUM:
            out["sum"] = {
                "dataPoints": points,
                "aggregationTemporality": 2,  # cumulative
                "isMonotonic": self.monotonic,
            }
        else:
            out["gauge"] = {"dataPoints": points}
        return out


@dataclass
class Resource:
    """Entity that produced the telemetry (the host)."""

    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ScopeMetrics:
    """Metrics contributed by one scraper."""

    scope: str
    metrics: List[Metric] = field(default_factory=list)


@dataclass
class MetricsBatch:
    """Merged output of one controller round."""

    resource: Resource
    scope_metrics: List[ScopeMetrics] = field(default_factory=list)
    timestamp: int = field(default_factory=now_ns)

    def scopes(self) -> List[str]:
        """Scraper scopes present in the batch, in merge order."""
        return [sm.scope for sm in self.scope_metrics]

    def metrics(self) -> List[Metric]:
        return [m for sm in self.scope_metrics for m in sm.metrics]

    def metric_names(self) -> List[str]:
        return [m.name for m in self.metrics()]

    def data_point_count(self) -> int:
        return sum(len(m.data_points) for m in self.metrics())

    def to_dict(self) -> Dict[str, Any]:
        """Serialize in the OTLP/JSON ``resourceMetrics`` layout."""
        return {
            "resourceMetrics": [{
                "resource": {"attributes": _attributes_to_list(self.resource.attributes)},
                "scopeMetrics": [
                    {
                        "scope": {"name": sm.scope},
                        "metrics": [m.to_dict() for m in sm.metrics],
                    }
                    for sm in self.scope_metrics
                ],
            }]
        }


@dataclass
class ScrapeFailure:
    """A sub-reading a scraper could not collect (e.g. one disk device)."""

    item: str
    error: str


@dataclass
class ScrapeResult:
    """
    Data from one scraper pass.

    A non-empty ``errors`` list means the data is best-effort: some
    sub-readings were skipped but the rest is valid.
    """

    metrics: List[Metric] = field(default_factory=list)
    errors: List[ScrapeFailure] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.errors)

    def add_error(self, item: str, error: Any) -> None:
        self.errors.append(ScrapeFailure(item=item, error=str(error)))


@dataclass
class LogRecord:
    """Structured log event forwarded on the logs path."""

    timestamp: int
    attributes: Dict[str, Any] = field(default_factory=dict)
    body: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "timeUnixNano": str(self.timestamp),
            "attributes": _attributes_to_list(self.attributes),
        }
        if self.body is not None:
            record["body"] = {"stringValue": self.body}
        return record


class MetricsBuilder:
    """
    Accumulates data points for one scraper pass, grouping them by metric name.

    Args:
        timestamp: Collection time shared by every point (ns)
        start_timestamp: Start time for cumulative sums (ns), usually boot time
    """

    def __init__(self, timestamp: Optional[int] = None, start_timestamp: Optional[int] = None):
        self.timestamp = timestamp if timestamp is not None else now_ns()
        self.start_timestamp = start_timestamp
        self._metrics: Dict[str, Metric] = {}

    def gauge(
        self,
        name: str,
        unit: str,
        value: float,
        attributes: Optional[Dict[str, Any]] = None,
        description: str = ""
    ) -> None:
        metric = self._metric(name, unit, MetricType.GAUGE, description, monotonic=False)
        metric.data_points.append(DataPoint(
            value=value,
            timestamp=self.timestamp,
            attributes=dict(attributes or {}),
        ))

    def sum(
        self,
        name: str,
        unit: str,
        value: float,
        attributes: Optional[Dict[str, Any]] = None,
        monotonic: bool = True,
        description: str = ""
    ) -> None:
        metric = self._metric(name, unit, MetricType.SUM, description, monotonic=monotonic)
        metric.data_points.append(DataPoint(
            value=value,
            timestamp=self.timestamp,
            attributes=dict(attributes or {}),
            start_timestamp=self.start_timestamp,
        ))

    def emit(self) -> List[Metric]:
        """Return the accumulated metrics and reset the builder."""
        metrics = list(self._metrics.values())
        self._metrics = {}
        return metrics

    def _metric(self, name: str, unit: str, metric_type: MetricType, description: str, monotonic: bool) -> Metric:
        metric = self._metrics.get(name)
        if metric is None:
            metric = Metric(
                name=name,
                unit=unit,
                type=metric_type,
                description=description,
                monotonic=monotonic,
            )
            self._metrics[name] = metric
        return metric


def _attributes_to_list(attributes: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [{"key": k, "value": _any_value(v)} for k, v in attributes.items()]


def _any_value(value: Any) -> Dict[str, Any]:
    if isinstance(value, bool):
        return {"boolValue": value}
    if isinstance(value, int):
        return {"intValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, dict):
        return {"kvlistValue": {"values": _attributes_to_list(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [_any_value(v) for v in value]}}
    return {"stringValue": str(value)}
