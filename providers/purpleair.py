"""HTTP client for the PurpleAir sensor JSON API."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, Optional

import httpx
from pydantic import ValidationError

from errors import InvalidReading, ProviderError
from models.records import MASS_FIELDS, PARTICLE_SIZES, SensorReading
from providers.schemas import PurpleAirResponse, PurpleAirResult
from settings import get_settings

logger = logging.getLogger(__name__)


class PurpleAirProvider:
    """Fetches the latest reading of a single sensor.

    One ``httpx.Client`` is reused for the lifetime of the provider.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def close(self) -> None:
        self._client.close()

    def fetch(self, sensor_id: str) -> SensorReading:
        """Return the current reading for ``sensor_id``.

        Raises ``ProviderError`` for transport, status and payload failures and
        ``InvalidReading`` when the sensor's entry cannot be parsed.
        """
        try:
            response = self._client.get("/json", params={"show": sensor_id})
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ProviderError(
                sensor_id, f"upstream returned status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(sensor_id, f"request failed: {exc}") from exc

        try:
            payload = PurpleAirResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ProviderError(sensor_id, "response is not a valid results payload") from exc

        entry = self._select_entry(sensor_id, payload)
        try:
            result = PurpleAirResult.model_validate(entry)
        except ValidationError as exc:
            raise InvalidReading(
                f"Malformed reading for sensor {sensor_id!r}: {exc.error_count()} invalid field(s).",
                sensor_id=sensor_id,
            ) from exc

        logger.debug("Fetched reading", extra={"sensor_id": sensor_id, "pm2_5": result.pm2_5_value})
        return SensorReading(
            sensor_id=sensor_id,
            pm2_5=result.pm2_5_value,
            fetched_at=datetime.now(timezone.utc),
            label=result.label,
            temperature_f=result.temp_f,
            humidity=result.humidity,
            pressure=result.pressure,
            uptime_seconds=result.uptime,
            last_seen=result.last_seen,
            latitude=result.latitude,
            longitude=result.longitude,
            particle_counts=_present(
                {size: getattr(result, f"p_{size}_um") for size in PARTICLE_SIZES}
            ),
            mass_concentrations=_present({name: getattr(result, name) for name in MASS_FIELDS}),
        )

    @staticmethod
    def _select_entry(sensor_id: str, payload: PurpleAirResponse) -> dict:
        # Dual-channel sensors return the parent channel plus a child entry.
        for entry in payload.results:
            if str(entry.get("ID")) == sensor_id:
                return entry
        raise ProviderError(sensor_id, "sensor not found upstream")


def _present(values: Dict[str, Optional[float]]) -> Dict[str, float]:
    return {key: value for key, value in values.items() if value is not None}


@lru_cache
def build_default_provider() -> PurpleAirProvider:
    settings = get_settings()
    return PurpleAirProvider(base_url=settings.api_url, timeout=settings.request_timeout)
