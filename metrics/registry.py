"""In-memory store of the current metric values, one row per sensor."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from threading import Lock
from typing import Dict, Iterator, Mapping, Optional, Sequence, Tuple

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.core import GaugeMetricFamily

SENSOR_LABEL = "sensor_id"


@dataclass
class MetricSeries:
    """A named gauge holding the latest value for each sensor.

    ``label_names`` lists labels beyond ``sensor_id``; their values are stored
    per sensor and replaced together with the value.
    """

    name: str
    documentation: str = ""
    label_names: Tuple[str, ...] = ()
    values: Dict[str, float] = field(default_factory=dict)
    label_values: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    def copy(self) -> "MetricSeries":
        return MetricSeries(
            self.name,
            self.documentation,
            self.label_names,
            dict(self.values),
            dict(self.label_values),
        )


class _SnapshotCollector:
    """Adapter exposing registry snapshots to ``prometheus_client``."""

    def __init__(self, registry: "MetricsRegistry") -> None:
        self._registry = registry

    def collect(self) -> Iterator[GaugeMetricFamily]:
        for series in self._registry.snapshot():
            family = GaugeMetricFamily(
                series.name,
                series.documentation,
                labels=[SENSOR_LABEL, *series.label_names],
            )
            for sensor_id, value in series.values.items():
                extra = series.label_values.get(sensor_id, ("",) * len(series.label_names))
                family.add_metric([sensor_id, *extra], value)
            yield family


class MetricsRegistry:
    """Thread-safe holder of every exported series.

    Each read or write takes the same lock, so ``render`` always sees a
    point-in-time view: values written together by ``record_many`` are either
    all visible or none are.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self) -> None:
        self._series: Dict[str, MetricSeries] = {}
        self._lock = Lock()
        self._exposition = CollectorRegistry(auto_describe=False)
        self._exposition.register(_SnapshotCollector(self))

    def describe(
        self, name: str, documentation: str, label_names: Sequence[str] = ()
    ) -> None:
        with self._lock:
            series = self._series_for(name)
            series.documentation = documentation
            series.label_names = tuple(label_names)

    def record(self, sensor_id: str, metric_name: str, value: float) -> None:
        """Overwrite the value of ``metric_name`` for ``sensor_id``."""
        self.record_many(sensor_id, {metric_name: value})

    def record_many(
        self,
        sensor_id: str,
        values: Mapping[str, float],
        labels: Optional[Mapping[str, Mapping[str, str]]] = None,
    ) -> None:
        """Overwrite several series for one sensor in a single update.

        ``labels`` maps a metric name to values for its extra label names;
        missing labels render as empty strings.
        """
        converted = {name: float(value) for name, value in values.items()}
        extra = labels or {}
        with self._lock:
            for name, value in converted.items():
                series = self._series_for(name)
                series.values[sensor_id] = value
                if series.label_names:
                    given = extra.get(name, {})
                    series.label_values[sensor_id] = tuple(
                        str(given.get(label, "")) for label in series.label_names
                    )

    def get(self, sensor_id: str, metric_name: str) -> float | None:
        with self._lock:
            series = self._series.get(metric_name)
            if series is None:
                return None
            return series.values.get(sensor_id)

    def snapshot(self) -> list[MetricSeries]:
        """Return copies of all series that have at least one value."""
        with self._lock:
            return [series.copy() for series in self._series.values() if series.values]

    def render(self) -> str:
        """Render the current snapshot in the text exposition format."""
        return generate_latest(self._exposition).decode("utf-8")

    def _series_for(self, name: str) -> MetricSeries:
        series = self._series.get(name)
        if series is None:
            series = MetricSeries(name=name)
            self._series[name] = series
        return series


@lru_cache
def build_default_registry() -> MetricsRegistry:
    return MetricsRegistry()
