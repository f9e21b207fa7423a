"""Small numeric helpers shared by the analytics modules"""

import math


def percent_change(current: float, previous: float) -> float:
    """
    Signed percent change from previous to current

    A zero previous value yields 100 when current is positive and 0
    otherwise, so the result is always finite.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def relative_change(current: float, previous: float) -> float:
    """Percent change for KPI deltas; 0 when there is no positive baseline"""
    if previous is None or previous <= 0:
        return 0.0
    return (current - previous) / previous * 100


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def round_half_up(value: float, decimals: int = 1) -> float:
    """Round halves away from zero (2.25 -> 2.3, -2.25 -> -2.3), not banker's rounding"""
    factor = 10 ** decimals
    magnitude = math.floor(abs(value) * factor + 0.5) / factor
    return -magnitude if value < 0 and magnitude else magnitude
