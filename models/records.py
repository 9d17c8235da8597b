"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

# Particle size thresholds (um) reported as counts per deciliter.
PARTICLE_SIZES = ("0_3", "0_5", "1_0", "2_5", "5_0", "10_0")

# Raw mass concentrations (ug/m3) under the CF=1 and ATM correction factors.
MASS_FIELDS = (
    "pm1_0_cf_1",
    "pm2_5_cf_1",
    "pm10_0_cf_1",
    "pm1_0_atm",
    "pm2_5_atm",
    "pm10_0_atm",
)


@dataclass(frozen=True, slots=True)
class SensorReading:
    """Normalized snapshot of one sensor, fetched during a single poll."""

    sensor_id: str
    pm2_5: float
    fetched_at: datetime
    label: Optional[str] = None
    temperature_f: Optional[float] = None
    humidity: Optional[float] = None
    pressure: Optional[float] = None
    uptime_seconds: Optional[int] = None
    last_seen: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    particle_counts: Dict[str, float] = field(default_factory=dict)
    mass_concentrations: Dict[str, float] = field(default_factory=dict)
