"""Periodic polling of the configured sensors into the metrics registry."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from functools import lru_cache
from threading import Event, Lock, Thread
from typing import Callable, Dict, Optional, Protocol, Tuple

from errors import InvalidReading, ProviderError
from metrics.registry import MetricsRegistry, build_default_registry
from models.records import MASS_FIELDS, PARTICLE_SIZES, SensorReading
from models.sensor_ids import SensorIdSet
from providers.purpleair import build_default_provider
from services.aqi import is_beyond_scale, pm25_to_aqi
from settings import get_settings

logger = logging.getLogger(__name__)

PM25_METRIC = "purpleair_pm2_5_value"
AQI_METRIC = "purpleair_aqi"
OUT_OF_RANGE_METRIC = "purpleair_pm2_5_out_of_range"
SCRAPE_SUCCESS_METRIC = "purpleair_scrape_success"
LAST_POLL_METRIC = "purpleair_last_poll_timestamp_seconds"
TEMPERATURE_METRIC = "purpleair_temperature_fahrenheit"
HUMIDITY_METRIC = "purpleair_humidity"
PRESSURE_METRIC = "purpleair_pressure"
UPTIME_METRIC = "purpleair_uptime_seconds"
LAST_SEEN_METRIC = "purpleair_lastseen_timestamp"
INFO_METRIC = "purpleair_info"
INFO_LABELS = ("sensor_label", "lat", "lon")


def particle_count_metric(size: str) -> str:
    return f"purpleair_particles_{size}_um"


def mass_metric(field_name: str) -> str:
    return f"purpleair_{field_name}"


METRIC_DOCUMENTATION: Dict[str, str] = {
    PM25_METRIC: "Sensor-reported PM2.5 value particulate mass in ug/m3",
    AQI_METRIC: "EPA air quality index computed from the PM2.5 value",
    OUT_OF_RANGE_METRIC: "1 when the PM2.5 value is above the AQI scale and the index is clamped",
    SCRAPE_SUCCESS_METRIC: "1 when the last poll of the sensor succeeded, 0 otherwise",
    LAST_POLL_METRIC: "UTC timestamp of the last successful poll",
    TEMPERATURE_METRIC: "Sensor reported temperature in Fahrenheit",
    HUMIDITY_METRIC: "Sensor reported humidity (in percent)",
    PRESSURE_METRIC: "Sensor reported pressure",
    UPTIME_METRIC: "Sensor uptime in seconds",
    LAST_SEEN_METRIC: "UTC timestamp for sensor last seen time",
    INFO_METRIC: "Sensor info",
}
METRIC_DOCUMENTATION.update(
    {
        particle_count_metric(size): (
            f"Sensor reported count of particles >= {size.replace('_', '.')} um per deciliter"
        )
        for size in PARTICLE_SIZES
    }
)
METRIC_DOCUMENTATION.update(
    {mass_metric(name): "Sensor reported raw value particulate mass in ug/m3" for name in MASS_FIELDS}
)

METRIC_LABELS: Dict[str, Tuple[str, ...]] = {INFO_METRIC: INFO_LABELS}

LabelValues = Dict[str, Dict[str, str]]


class ReadingProvider(Protocol):
    def fetch(self, sensor_id: str) -> SensorReading:
        ...


class PollState(str, Enum):
    """Per-sensor progress through one poll."""

    idle = "idle"
    fetching = "fetching"
    converting = "converting"
    publishing = "publishing"


class PollerLoop:
    """Fetches every sensor on a fixed period and publishes the results.

    The loop is the only writer of the registry. A failure for one sensor is
    logged and leaves that sensor's previous values in place.
    """

    def __init__(
        self,
        sensor_ids: SensorIdSet,
        provider: ReadingProvider,
        registry: MetricsRegistry,
        interval: float = 60.0,
        workers: int = 4,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError("Polling interval must be positive.")
        self.sensor_ids = sensor_ids
        self.provider = provider
        self.registry = registry
        self.interval = interval
        self._workers = max(1, min(workers, len(sensor_ids)))
        self.executor = self._new_executor()
        self._executor_closed = False
        self._clock = clock
        self._states: Dict[str, PollState] = {sensor_id: PollState.idle for sensor_id in sensor_ids}
        self._states_lock = Lock()
        self._cycle_lock = Lock()
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

        for name, documentation in METRIC_DOCUMENTATION.items():
            registry.describe(name, documentation, METRIC_LABELS.get(name, ()))

    def state_of(self, sensor_id: str) -> PollState:
        with self._states_lock:
            return self._states[sensor_id]

    def poll_sensor(self, sensor_id: str) -> bool:
        """Fetch, convert and publish one sensor. Returns False on failure."""
        try:
            self._set_state(sensor_id, PollState.fetching)
            reading = self.provider.fetch(sensor_id)

            self._set_state(sensor_id, PollState.converting)
            values, labels = self._convert(reading)

            self._set_state(sensor_id, PollState.publishing)
            self.registry.record_many(sensor_id, values, labels)
        except (ProviderError, InvalidReading) as exc:
            logger.warning(
                "Skipping sensor for this cycle",
                extra={"sensor_id": sensor_id, "reason": getattr(exc, "reason", str(exc))},
            )
            self.registry.record(sensor_id, SCRAPE_SUCCESS_METRIC, 0)
            return False
        finally:
            self._set_state(sensor_id, PollState.idle)

        logger.debug(
            "Published reading",
            extra={"sensor_id": sensor_id, "pm2_5": values[PM25_METRIC], "aqi": values[AQI_METRIC]},
        )
        return True

    def run_cycle(self) -> Dict[str, bool]:
        """Poll every sensor once and wait for all of them to finish."""
        with self._cycle_lock:
            start = time.perf_counter()
            futures = {
                sensor_id: self.executor.submit(self._poll_guarded, sensor_id)
                for sensor_id in self.sensor_ids
            }
            outcome = {sensor_id: future.result() for sensor_id, future in futures.items()}

        failed = sum(1 for succeeded in outcome.values() if not succeeded)
        logger.info(
            "Poll cycle finished",
            extra={
                "sensor_count": len(outcome),
                "failed_count": failed,
                "cycle_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return outcome

    def start(self) -> None:
        """Run cycles on a background thread until ``stop`` is called.

        A stopped loop can be started again; it gets a fresh worker pool.
        """
        if self._thread is not None and self._thread.is_alive():
            return
        if self._executor_closed:
            self.executor = self._new_executor()
            self._executor_closed = False
        self._stop_event.clear()
        self._thread = Thread(target=self._run, name="poller-loop", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        self._thread = None
        self.executor.shutdown(wait=False, cancel_futures=True)
        self._executor_closed = True

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        next_start = self._clock()
        while not self._stop_event.is_set():
            self.run_cycle()
            next_start += self.interval
            delay = next_start - self._clock()
            if delay < 0:
                # Overran the period: start the next cycle right away.
                next_start = self._clock()
                delay = 0
            if self._stop_event.wait(delay):
                break

    def _poll_guarded(self, sensor_id: str) -> bool:
        try:
            return self.poll_sensor(sensor_id)
        except Exception:
            logger.exception("Unexpected error while polling sensor", extra={"sensor_id": sensor_id})
            self.registry.record(sensor_id, SCRAPE_SUCCESS_METRIC, 0)
            return False

    def _new_executor(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="poller")

    def _set_state(self, sensor_id: str, state: PollState) -> None:
        with self._states_lock:
            self._states[sensor_id] = state

    @staticmethod
    def _convert(reading: SensorReading) -> Tuple[Dict[str, float], LabelValues]:
        try:
            aqi = pm25_to_aqi(reading.pm2_5)
            beyond_scale = is_beyond_scale(reading.pm2_5)
        except InvalidReading as exc:
            raise InvalidReading(exc.reason, sensor_id=reading.sensor_id) from exc

        values: Dict[str, float] = {
            PM25_METRIC: reading.pm2_5,
            AQI_METRIC: aqi,
            OUT_OF_RANGE_METRIC: 1 if beyond_scale else 0,
            SCRAPE_SUCCESS_METRIC: 1,
            LAST_POLL_METRIC: reading.fetched_at.timestamp(),
        }
        optional = {
            TEMPERATURE_METRIC: reading.temperature_f,
            HUMIDITY_METRIC: reading.humidity,
            PRESSURE_METRIC: reading.pressure,
            UPTIME_METRIC: reading.uptime_seconds,
            LAST_SEEN_METRIC: reading.last_seen,
        }
        values.update({name: value for name, value in optional.items() if value is not None})
        values.update(
            {particle_count_metric(size): count for size, count in reading.particle_counts.items()}
        )
        values.update(
            {mass_metric(name): mass for name, mass in reading.mass_concentrations.items()}
        )

        values[INFO_METRIC] = 1
        labels: LabelValues = {
            INFO_METRIC: {
                "sensor_label": reading.label or "",
                "lat": "" if reading.latitude is None else str(reading.latitude),
                "lon": "" if reading.longitude is None else str(reading.longitude),
            }
        }
        return values, labels


@lru_cache
def build_default_poller() -> PollerLoop:
    """Factory that wires the poller with the configured provider and registry."""
    settings = get_settings()
    return PollerLoop(
        sensor_ids=settings.sensor_ids,
        provider=build_default_provider(),
        registry=build_default_registry(),
        interval=settings.poll_interval,
        workers=settings.poller_workers,
    )
