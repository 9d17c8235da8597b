"""Error taxonomy shared across the exporter."""

from __future__ import annotations

from typing import Optional


class ExporterError(Exception):
    """Base class for all exporter errors."""


class ConfigurationError(ExporterError):
    """Raised at startup when the configuration cannot be used."""


class ProviderError(ExporterError):
    """The upstream provider failed to return a reading for one sensor."""

    def __init__(self, sensor_id: str, message: str) -> None:
        super().__init__(f"Sensor {sensor_id!r}: {message}")
        self.sensor_id = sensor_id
        self.reason = message


class InvalidReading(ExporterError):
    """A raw value is malformed or outside the domain of the conversion."""

    def __init__(self, message: str, sensor_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.sensor_id = sensor_id
        self.reason = message
