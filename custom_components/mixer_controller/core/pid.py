"""
PID controller implementation for Mixing Valve Flow Controller.

This module provides a pure Python PID controller for flow temperature
regulation. Its output is a bounded position change (percent per step)
rather than an absolute duty cycle, so the valve is walked toward the
position that holds the setpoint.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from custom_components.mixer_controller.const import (
    DEAD_BAND,
    DEFAULT_CONTROL,
    DEFAULT_TIMING,
    INTEGRAL_MAX,
    INTEGRAL_MIN,
    MAX_POSITION,
    MIN_POSITION,
    OUTPUT_STEP_LIMIT,
)

from .position import clamp


@dataclass
class PIDState:
    """
    Internal state of the PID controller.

    The integral is stored in error-seconds (pre-ki multiplication) and is
    always kept within the controller's integral limits.
    """

    integral: float = 0.0
    last_error: float = 0.0
    last_sample_time: float | None = None
    initialized: bool = False


@dataclass(frozen=True)
class PIDGains:
    """Proportional, integral and derivative gains."""

    kp: float = DEFAULT_CONTROL["kp"]
    ki: float = DEFAULT_CONTROL["ki"]
    kd: float = DEFAULT_CONTROL["kd"]


@dataclass(frozen=True)
class PIDTerms:
    """Terms of the last computed PID step, for diagnostics."""

    error: float
    p_term: float
    i_term: float
    d_term: float
    output: float


@dataclass
class PIDController:
    """
    PID controller with anti-windup and output-rate limiting.

    Attributes:
        integral_min: Lower bound of the integral accumulator.
        integral_max: Upper bound of the integral accumulator.
        output_limit: Maximum absolute position change per step in %.
        dead_band: Errors smaller than this are treated as on target.
        max_dt: Samples further apart than this (seconds) are discarded.
        min_position: Fully closed valve position.
        max_position: Fully open valve position.

    """

    integral_min: float = INTEGRAL_MIN
    integral_max: float = INTEGRAL_MAX
    output_limit: float = OUTPUT_STEP_LIMIT
    dead_band: float = DEAD_BAND
    max_dt: float = DEFAULT_TIMING["max_dt"]
    min_position: int = MIN_POSITION
    max_position: int = MAX_POSITION

    last_terms: PIDTerms | None = field(default=None, init=False, repr=False)

    def step(  # noqa: PLR0913
        self,
        state: PIDState,
        measured: float | None,
        setpoint: float,
        gains: PIDGains,
        now: float,
        position: int,
    ) -> float | None:
        """
        Run one control step.

        The first call after (re)initialization only records the error and
        sample time, so that every computed step has a measured dt.

        Args:
            state: PID state to read and update.
            measured: Measured flow temperature, None if the sensor is invalid.
            setpoint: Target flow temperature.
            gains: Controller gains.
            now: Monotonic time in seconds.
            position: Current valve position in %.

        Returns:
            The desired (unnormalized) valve position, or None when no move
            should be made this cycle.

        """
        if measured is None or not math.isfinite(measured):
            return None

        error = setpoint - measured

        if not state.initialized:
            state.last_error = error
            state.integral = 0.0
            state.last_sample_time = now
            state.initialized = True
            return None

        if abs(error) < self.dead_band:
            state.integral = 0.0
            state.last_error = error
            return None

        last_sample_time = state.last_sample_time
        state.last_sample_time = now
        dt = now - last_sample_time if last_sample_time is not None else 0.0
        if dt <= 0 or dt > self.max_dt:
            state.last_error = error
            return None

        # Skip integration while the valve cannot move further in the
        # direction the error pushes it
        tentative = clamp(
            state.integral + error * dt, self.integral_min, self.integral_max
        )
        saturated = (position >= self.max_position and error > 0) or (
            position <= self.min_position and error < 0
        )
        if not saturated:
            state.integral = tentative

        derivative = (error - state.last_error) / dt
        state.last_error = error

        p_term = gains.kp * error
        i_term = gains.ki * state.integral
        d_term = gains.kd * derivative
        output = clamp(p_term + i_term + d_term, -self.output_limit, self.output_limit)

        self.last_terms = PIDTerms(
            error=error,
            p_term=p_term,
            i_term=i_term,
            d_term=d_term,
            output=output,
        )
        return position + output

    def reset(self, state: PIDState, now: float | None = None) -> None:
        """
        Reset the PID state so the next step re-initializes.

        Args:
            state: PID state to reset.
            now: If given, recorded as the last sample time.

        """
        state.integral = 0.0
        state.last_error = 0.0
        state.initialized = False
        self.last_terms = None
        if now is not None:
            state.last_sample_time = now
