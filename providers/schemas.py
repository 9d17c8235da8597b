"""Pydantic models of the upstream PurpleAir JSON payload."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PurpleAirResult(BaseModel):
    """One entry of the ``results`` array.

    The legacy API encodes most numbers as strings; pydantic coerces them.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int = Field(..., alias="ID")
    label: Optional[str] = Field(default=None, alias="Label")
    latitude: Optional[float] = Field(default=None, alias="Lat")
    longitude: Optional[float] = Field(default=None, alias="Lon")
    pm2_5_value: float = Field(..., alias="PM2_5Value")
    uptime: Optional[int] = Field(default=None, alias="Uptime")
    last_seen: Optional[int] = Field(default=None, alias="LastSeen")
    temp_f: Optional[float] = None
    humidity: Optional[float] = None
    pressure: Optional[float] = None

    # Particle counts per deciliter.
    p_0_3_um: Optional[float] = None
    p_0_5_um: Optional[float] = None
    p_1_0_um: Optional[float] = None
    p_2_5_um: Optional[float] = None
    p_5_0_um: Optional[float] = None
    p_10_0_um: Optional[float] = None

    pm1_0_cf_1: Optional[float] = None
    pm2_5_cf_1: Optional[float] = None
    pm10_0_cf_1: Optional[float] = None
    pm1_0_atm: Optional[float] = None
    pm2_5_atm: Optional[float] = None
    pm10_0_atm: Optional[float] = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_as_missing(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class PurpleAirResponse(BaseModel):
    """Top-level response of ``/json?show=<ids>``."""

    model_config = ConfigDict(extra="ignore")

    results: List[dict] = Field(default_factory=list)
