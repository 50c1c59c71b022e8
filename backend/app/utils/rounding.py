"""Rounding helpers matching the half-up rounding used in reported scores."""

import math


def round_half_up(value: float) -> int:
    """Round .5 up instead of to even: round_half_up(2.5) == 3."""
    return math.floor(value + 0.5)


def round_to(value: float, digits: int) -> float:
    """Half-up rounding to a number of decimal places."""
    factor = 10**digits
    return round_half_up(value * factor) / factor
