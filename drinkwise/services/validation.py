"""Normalisation of user-entered drink values."""
from __future__ import annotations

import math

BUZZ_MIN = 0
BUZZ_MAX = 10
MIN_UNITS = 0.01


class InvalidDrinkValue(ValueError):
    """Raised when a drink value cannot be stored."""


def clamp_buzz_level(value: float) -> int:
    """Round half up and clamp into ``[BUZZ_MIN, BUZZ_MAX]``.

    ``13.7`` becomes ``10``, ``-2`` becomes ``0`` and ``4.5`` becomes ``5``.
    """
    number = float(value)
    if math.isnan(number):
        raise InvalidDrinkValue("buzz level must be a number")
    if math.isinf(number):
        return BUZZ_MAX if number > 0 else BUZZ_MIN
    rounded = math.floor(number + 0.5)
    return min(BUZZ_MAX, max(BUZZ_MIN, rounded))


def validate_units(value: float) -> float:
    """Return ``value`` rounded to two decimals; reject non-positive input."""
    number = float(value)
    if not math.isfinite(number) or number <= 0:
        raise InvalidDrinkValue("units must be greater than 0")
    return max(MIN_UNITS, round(number, 2))
