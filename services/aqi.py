"""EPA PM2.5 air-quality index conversion."""

from __future__ import annotations

import math
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, localcontext
from typing import NamedTuple

from errors import InvalidReading


class AqiBreakpoint(NamedTuple):
    """One row of the piecewise-linear concentration to index mapping."""

    conc_low: Decimal
    conc_high: Decimal
    index_low: int
    index_high: int


def _row(conc_low: str, conc_high: str, index_low: int, index_high: int) -> AqiBreakpoint:
    return AqiBreakpoint(Decimal(conc_low), Decimal(conc_high), index_low, index_high)


PM25_BREAKPOINTS: tuple[AqiBreakpoint, ...] = (
    _row("0.0", "12.0", 0, 50),
    _row("12.1", "35.4", 51, 100),
    _row("35.5", "55.4", 101, 150),
    _row("55.5", "150.4", 151, 200),
    _row("150.5", "250.4", 201, 300),
    _row("250.5", "350.4", 301, 400),
    _row("350.5", "500.4", 401, 500),
)

MAX_AQI = PM25_BREAKPOINTS[-1].index_high

_ONE_DECIMAL = Decimal("0.1")
_TRUNCATION_PRECISION = 400


def _truncate(concentration: float) -> Decimal:
    if isinstance(concentration, bool) or not isinstance(concentration, (int, float)):
        raise InvalidReading(f"PM2.5 concentration must be numeric, got {concentration!r}.")
    if isinstance(concentration, int):
        if concentration < 0:
            raise InvalidReading(f"PM2.5 concentration {concentration!r} is negative.")
        return Decimal(concentration)
    if not math.isfinite(concentration):
        raise InvalidReading(f"PM2.5 concentration {concentration!r} is not finite.")
    if concentration < 0:
        raise InvalidReading(f"PM2.5 concentration {concentration!r} is negative.")
    # str() keeps the shortest repr so 35.4 does not truncate to 35.3.
    with localcontext() as context:
        # Enough digits to quantize any finite float (up to ~1.8e308).
        context.prec = _TRUNCATION_PRECISION
        return Decimal(str(concentration)).quantize(_ONE_DECIMAL, rounding=ROUND_DOWN)


def is_beyond_scale(concentration: float) -> bool:
    """Return True when the concentration is above the top breakpoint."""
    return _truncate(concentration) > PM25_BREAKPOINTS[-1].conc_high


def pm25_to_aqi(concentration: float) -> int:
    """Convert a raw PM2.5 concentration in ug/m3 to an EPA AQI value.

    Concentrations are truncated to one decimal place before lookup. Values
    above the table clamp to 500. Negative or non-finite input raises
    ``InvalidReading``.
    """
    truncated = _truncate(concentration)
    for breakpoint in PM25_BREAKPOINTS:
        if breakpoint.conc_low <= truncated <= breakpoint.conc_high:
            slope = Decimal(breakpoint.index_high - breakpoint.index_low) / (
                breakpoint.conc_high - breakpoint.conc_low
            )
            index = slope * (truncated - breakpoint.conc_low) + breakpoint.index_low
            return int(index.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return MAX_AQI
