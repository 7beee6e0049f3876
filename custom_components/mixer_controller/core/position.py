"""Valve position normalization."""

from __future__ import annotations

import math

from custom_components.mixer_controller.const import MAX_POSITION, MIN_POSITION


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp value to the closed range [lower, upper]."""
    return max(lower, min(upper, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves rounding toward +infinity."""
    return math.floor(value + 0.5)


def round_to_even(value: float) -> int:
    """
    Round to the nearest even integer.

    The value is first rounded to the nearest integer. An odd result is moved
    one step toward the original value: down when rounding went up (22.8 -> 22),
    up otherwise (25.2 -> 26). An exact odd integer has no rounding direction
    and moves up (25 -> 26, 51 -> 52).
    """
    rounded = round_half_up(value)
    if rounded % 2 != 0:
        if value < rounded:
            rounded -= 1
        else:
            rounded += 1
    return rounded


def normalize(
    raw: float,
    *,
    quantize_even: bool,
    min_position: int = MIN_POSITION,
    max_position: int = MAX_POSITION,
) -> int:
    """
    Convert a continuous desired position into a valid actuator position.

    Args:
        raw: Desired position in percent, any finite float.
        quantize_even: Restrict the result to even integers.
        min_position: Lower bound (fully closed).
        max_position: Upper bound (fully open).

    Returns:
        Integer position within [min_position, max_position].

    Raises:
        ValueError: If raw is not a finite number.

    """
    if not math.isfinite(raw):
        msg = f"Position must be a finite number, got {raw!r}"
        raise ValueError(msg)

    position = round_to_even(raw) if quantize_even else round_half_up(raw)
    return int(clamp(position, min_position, max_position))
