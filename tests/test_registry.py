"""Unit tests for the metrics registry and its exposition output."""

from __future__ import annotations

import threading

from metrics.registry import MetricsRegistry


def _sample_lines(rendered: str) -> list[str]:
    return [line for line in rendered.splitlines() if line and not line.startswith("#")]


def test_record_overwrites_previous_value() -> None:
    registry = MetricsRegistry()

    registry.record("s1", "pm25", 10.0)
    registry.record("s1", "pm25", 20.0)

    assert _sample_lines(registry.render()) == ['pm25{sensor_id="s1"} 20.0']


def test_render_includes_help_and_type() -> None:
    registry = MetricsRegistry()
    registry.describe("purpleair_aqi", "EPA air quality index")
    registry.record("123", "purpleair_aqi", 42)

    rendered = registry.render()

    assert "# HELP purpleair_aqi EPA air quality index" in rendered
    assert "# TYPE purpleair_aqi gauge" in rendered
    assert 'purpleair_aqi{sensor_id="123"} 42.0' in rendered


def test_one_row_per_sensor_and_series() -> None:
    registry = MetricsRegistry()

    registry.record_many("a", {"pm25": 1.0, "aqi": 4})
    registry.record_many("b", {"pm25": 2.0, "aqi": 8})
    registry.record_many("a", {"pm25": 3.0, "aqi": 13})

    lines = _sample_lines(registry.render())
    assert sorted(lines) == sorted(
        [
            'pm25{sensor_id="a"} 3.0',
            'pm25{sensor_id="b"} 2.0',
            'aqi{sensor_id="a"} 13.0',
            'aqi{sensor_id="b"} 8.0',
        ]
    )


def test_described_series_without_values_are_not_rendered() -> None:
    registry = MetricsRegistry()
    registry.describe("purpleair_humidity", "Sensor reported humidity")

    assert registry.render() == ""
    assert registry.snapshot() == []


def test_snapshot_returns_copies() -> None:
    registry = MetricsRegistry()
    registry.record("s1", "pm25", 5.0)

    snapshot = registry.snapshot()
    snapshot[0].values["s1"] = 99.0

    assert registry.get("s1", "pm25") == 5.0
    assert registry.get("s1", "missing") is None
    assert registry.get("s2", "pm25") is None


def test_render_never_observes_partial_update() -> None:
    registry = MetricsRegistry()
    registry.record_many("s1", {"pm25": 0.0, "aqi": 0.0})
    stop = threading.Event()
    torn: list[tuple[float, float]] = []

    def writer() -> None:
        step = 0
        while not stop.is_set():
            step += 1
            registry.record_many("s1", {"pm25": float(step), "aqi": float(step * 2)})

    thread = threading.Thread(target=writer)
    thread.start()
    try:
        for _ in range(300):
            values = {}
            for line in _sample_lines(registry.render()):
                name, value = line.split(" ")
                values[name.split("{")[0]] = float(value)
            if values["aqi"] != values["pm25"] * 2:
                torn.append((values["pm25"], values["aqi"]))
    finally:
        stop.set()
        thread.join()

    assert torn == []


def test_extra_labels_replace_the_sensor_row() -> None:
    registry = MetricsRegistry()
    registry.describe("sensor_info", "Sensor info", ["sensor_label"])

    registry.record_many("s1", {"sensor_info": 1}, {"sensor_info": {"sensor_label": "Old"}})
    registry.record_many("s1", {"sensor_info": 1}, {"sensor_info": {"sensor_label": "New"}})
    registry.record("s2", "sensor_info", 1)

    lines = _sample_lines(registry.render())
    assert len(lines) == 2
    assert any('sensor_id="s1"' in line and 'sensor_label="New"' in line for line in lines)
    assert any('sensor_id="s2"' in line and 'sensor_label=""' in line for line in lines)
    assert not any('sensor_label="Old"' in line for line in lines)
