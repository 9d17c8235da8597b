"""Parsing of the sensor identifier configuration value."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from errors import ConfigurationError

_DELIMITERS = re.compile(r"[,|]")

SensorId = str


@dataclass(frozen=True)
class SensorIdSet:
    """Ordered, duplicate-free collection of sensor identifiers."""

    ids: Tuple[SensorId, ...]

    @classmethod
    def parse(cls, raw: Optional[str]) -> "SensorIdSet":
        """Split ``raw`` on commas and pipes, keeping first-seen order.

        Raises ``ConfigurationError`` when nothing usable remains.
        """
        if raw is None or not raw.strip():
            raise ConfigurationError("Sensor id configuration is empty.")

        seen: dict[SensorId, None] = {}
        for token in _DELIMITERS.split(raw):
            candidate = token.strip()
            if candidate:
                seen.setdefault(candidate, None)

        if not seen:
            raise ConfigurationError(
                f"Sensor id configuration {raw!r} contains no identifiers."
            )
        return cls(ids=tuple(seen))

    def __iter__(self) -> Iterator[SensorId]:
        return iter(self.ids)

    def __len__(self) -> int:
        return len(self.ids)

    def __contains__(self, sensor_id: object) -> bool:
        return sensor_id in self.ids

    def __getitem__(self, index: int) -> SensorId:
        return self.ids[index]
