"""Rounding helpers shared by every arithmetic step of the simulation."""

import math


def round2(value: float) -> float:
    """Round to 2 decimal places, halves rounding up (towards +inf)."""
    return math.floor(value * 100 + 0.5) / 100


def format_number(value: float) -> str:
    return f"{round2(value):.2f}"


def clamp(value: float, min_value: float, max_value: float) -> float:
    """Clamp value between bounds."""
    return max(min_value, min(value, max_value))
