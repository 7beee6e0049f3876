"""Buffer storage safety interlock with hysteresis."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from custom_components.mixer_controller.const import DEFAULT_SAFETY, SafetyVerdict

if TYPE_CHECKING:
    from .controller import ControllerState


@dataclass(frozen=True)
class SafetyInterlock:
    """
    Hysteresis monitor over the buffer storage temperature.

    The interlock trips when the buffer drops below emergency_min and only
    clears once it has recovered to emergency_ok or above. Readings between
    the two thresholds keep the current verdict.

    Attributes:
        emergency_min: Buffer temperature below which the emergency trips.
        emergency_ok: Buffer temperature at or above which it clears.

    """

    emergency_min: float = DEFAULT_SAFETY["emergency_min"]
    emergency_ok: float = DEFAULT_SAFETY["emergency_ok"]

    def __post_init__(self) -> None:
        """Validate the hysteresis band."""
        if self.emergency_ok <= self.emergency_min:
            msg = (
                f"emergency_ok ({self.emergency_ok}) must be greater than "
                f"emergency_min ({self.emergency_min})"
            )
            raise ValueError(msg)

    def evaluate(
        self,
        state: ControllerState,
        buffer_temp: float | None,
        now: float,
    ) -> SafetyVerdict:
        """
        Evaluate a buffer reading and update the emergency flag.

        A missing or non-finite reading leaves the state untouched and
        returns NO_CHANGE, holding the last known verdict.

        Args:
            state: Controller state holding the emergency flag.
            buffer_temp: Buffer temperature, None if the sensor is invalid.
            now: Monotonic time in seconds.

        Returns:
            The verdict the controller must act upon.

        """
        if buffer_temp is None or not math.isfinite(buffer_temp):
            return SafetyVerdict.NO_CHANGE

        if not state.emergency_active:
            if buffer_temp < self.emergency_min:
                state.emergency_active = True
                state.emergency_started_at = now
                return SafetyVerdict.ENTER_EMERGENCY
            return SafetyVerdict.NO_CHANGE

        if buffer_temp >= self.emergency_ok:
            state.emergency_active = False
            return SafetyVerdict.EXIT_EMERGENCY
        return SafetyVerdict.STAY_EMERGENCY

    @staticmethod
    def emergency_duration(state: ControllerState, now: float) -> float | None:
        """Return seconds since the emergency started, None if never started."""
        if state.emergency_started_at is None:
            return None
        return now - state.emergency_started_at
