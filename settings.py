from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from models.sensor_ids import SensorIdSet


_SENSOR_IDS_ENV = "PURPLEAIR_SENSOR_IDS"
_API_URL_ENV = "PURPLEAIR_API_URL"
_REQUEST_TIMEOUT_ENV = "PURPLEAIR_REQUEST_TIMEOUT"
_POLL_INTERVAL_ENV = "POLL_INTERVAL_SECONDS"
_WORKER_COUNT_ENV = "POLLER_WORKER_COUNT"
_BIND_HOST_ENV = "BIND_HOST"
_BIND_PORT_ENV = "BIND_PORT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_API_URL = "https://www.purpleair.com"


@dataclass(frozen=True)
class Settings:
    sensor_ids: SensorIdSet
    api_url: str
    request_timeout: float
    poll_interval: float
    poller_workers: int
    bind_host: str
    bind_port: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def read_log_level(default: str = "INFO") -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    """Load settings from the environment.

    Raises ``ConfigurationError`` when the sensor id list is missing or empty.
    """
    return Settings(
        sensor_ids=SensorIdSet.parse(os.getenv(_SENSOR_IDS_ENV)),
        api_url=_read_str_env(_API_URL_ENV, DEFAULT_API_URL).rstrip("/"),
        request_timeout=_read_positive_float(_REQUEST_TIMEOUT_ENV, 10.0),
        poll_interval=_read_positive_float(_POLL_INTERVAL_ENV, 60.0),
        poller_workers=_read_positive_int(_WORKER_COUNT_ENV, 4),
        bind_host=_read_str_env(_BIND_HOST_ENV, "0.0.0.0"),
        bind_port=_read_positive_int(_BIND_PORT_ENV, 3000),
        log_level=read_log_level("INFO"),
    )
