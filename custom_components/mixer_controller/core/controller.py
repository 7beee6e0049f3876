"""
Controller logic for Mixing Valve Flow Controller.

This module provides the MixerController class that owns the controller
state and orchestrates the safety interlock, PID engine and actuation
arbiter. It performs no I/O: every entry point returns the actuator commands
the integration layer has to execute.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from custom_components.mixer_controller.const import (
    DEFAULT_CONTROL,
    DEFAULT_SAFETY,
    DEFAULT_TIMING,
    GAIN_NAMES,
    INITIAL_POSITION,
    MIN_MOVE_STEP_CONTINUOUS,
    MIN_MOVE_STEP_QUANTIZED,
    MIN_POSITION,
    RECLOSE_THRESHOLD,
    SETPOINT_MAX_EXCLUSIVE,
    SETPOINT_MIN_EXCLUSIVE,
    ActuationStyle,
    MoveDecision,
    OperatingState,
    SafetyVerdict,
)

from .arbiter import ActuationArbiter, ActuatorCommand, PendingMove
from .pid import PIDController, PIDGains, PIDState
from .position import normalize
from .safety import SafetyInterlock
from .state_machine import OperatingStateMachine


@dataclass
class MixerConfig:
    """
    Configuration for the mixer controller.

    One configuration covers all valve variants: pulsed or absolute
    actuation, with or without the buffer interlock, continuous or
    even-integer positions.
    """

    actuation_style: ActuationStyle = ActuationStyle.ABSOLUTE
    interlock_enabled: bool = True
    quantize_even: bool = False
    min_move_pause: float = DEFAULT_TIMING["min_move_pause"]
    full_travel_time: float = DEFAULT_TIMING["full_travel_time"]
    max_dt: float = DEFAULT_TIMING["max_dt"]
    min_move_step: int | None = None  # None selects the style default
    emergency_min: float = DEFAULT_SAFETY["emergency_min"]
    emergency_ok: float = DEFAULT_SAFETY["emergency_ok"]
    reclose_threshold: int = RECLOSE_THRESHOLD
    initial_position: float = INITIAL_POSITION

    @property
    def effective_min_move_step(self) -> int:
        """Return the minimum meaningful position change in %."""
        if self.min_move_step is not None:
            return self.min_move_step
        if self.quantize_even:
            return MIN_MOVE_STEP_QUANTIZED
        return MIN_MOVE_STEP_CONTINUOUS


@dataclass
class ControllerState:
    """
    Mutable runtime state of the mixer controller.

    Owned by MixerController and passed explicitly to every component.
    """

    position: int = INITIAL_POSITION
    target_position: int = INITIAL_POSITION
    is_moving: bool = False
    last_move_at: float | None = None
    operating_state: OperatingState = OperatingState.AUTO
    previous_state: OperatingState = OperatingState.AUTO
    emergency_active: bool = False
    emergency_started_at: float | None = None
    pid: PIDState = field(default_factory=PIDState)


@dataclass
class ControllerActions:
    """
    Actions computed by one controller entry point.

    Attributes:
        commands: Actuator commands to execute in order.
        pending: Pulsed move whose completion must be scheduled.
        cancelled: Pulsed move whose completion timer must be cancelled.
        verdict: Interlock verdict, when the interlock was evaluated.
        decision: Move decision, when a move was requested.
        desired_position: Unnormalized PID output, when one was computed.

    """

    commands: list[ActuatorCommand] = field(default_factory=list)
    pending: PendingMove | None = None
    cancelled: PendingMove | None = None
    verdict: SafetyVerdict | None = None
    decision: MoveDecision | None = None
    desired_position: float | None = None


class MixerController:
    """
    Single-loop mixing valve regulator.

    Entry points must be called serialized; none of them blocks.
    """

    def __init__(self, config: MixerConfig) -> None:
        """
        Initialize the mixer controller.

        Args:
            config: Controller configuration.

        """
        self.config = config
        initial = normalize(
            config.initial_position, quantize_even=config.quantize_even
        )
        self._state = ControllerState(position=initial, target_position=initial)
        self.state_machine = OperatingStateMachine()
        self.pid = PIDController(max_dt=config.max_dt)
        self.interlock = SafetyInterlock(
            emergency_min=config.emergency_min,
            emergency_ok=config.emergency_ok,
        )
        self.arbiter = ActuationArbiter(
            state_machine=self.state_machine,
            actuation_style=config.actuation_style,
            quantize_even=config.quantize_even,
            min_move_pause=config.min_move_pause,
            min_move_step=config.effective_min_move_step,
            full_travel_time=config.full_travel_time,
        )
        self._setpoint: float = DEFAULT_CONTROL["setpoint"]
        self._gains = PIDGains()

    @property
    def state(self) -> ControllerState:
        """Get the current controller state."""
        return self._state

    @property
    def setpoint(self) -> float:
        """Get the flow temperature setpoint."""
        return self._setpoint

    @property
    def gains(self) -> PIDGains:
        """Get the PID gains."""
        return self._gains

    def set_setpoint(self, value: float | None) -> bool:
        """
        Set the flow temperature setpoint.

        Values outside (0, 100) or missing values keep the previous setpoint.

        Returns:
            True if the value was accepted.

        """
        if value is None or not math.isfinite(value):
            return False
        if not SETPOINT_MIN_EXCLUSIVE < value < SETPOINT_MAX_EXCLUSIVE:
            return False
        self._setpoint = value
        return True

    def set_gain(self, name: str, value: float | None) -> bool:
        """
        Set a single PID gain ("kp", "ki" or "kd").

        Negative or missing values keep the previous gain.

        Returns:
            True if the value was accepted.

        Raises:
            ValueError: If name is not a gain name.

        """
        if name not in GAIN_NAMES:
            msg = f"Unknown gain: {name}"
            raise ValueError(msg)
        if value is None or not math.isfinite(value) or value < 0:
            return False
        gains = {gain: getattr(self._gains, gain) for gain in GAIN_NAMES}
        gains[name] = value
        self._gains = PIDGains(**gains)
        return True

    def seed_position(self, position: float | None) -> bool:
        """
        Seed the known valve position before the first move.

        Returns:
            True if the position was applied.

        """
        if position is None or not math.isfinite(position):
            return False
        if self._state.is_moving or self._state.last_move_at is not None:
            return False
        seeded = normalize(position, quantize_even=self.config.quantize_even)
        self._state.position = seeded
        self._state.target_position = seeded
        return True

    def evaluate_interlock(
        self, buffer_temp: float | None, now: float
    ) -> ControllerActions:
        """
        Evaluate the buffer interlock.

        Entering the emergency resets the PID and forces the valve closed.
        Leaving it resets the PID so regulation restarts cleanly. While the
        emergency holds, a valve found open is closed again.

        Args:
            buffer_temp: Buffer temperature, None if the sensor is invalid.
            now: Monotonic time in seconds.

        Returns:
            Actions to execute; the verdict is always set.

        """
        if not self.config.interlock_enabled:
            return ControllerActions(verdict=SafetyVerdict.NO_CHANGE)

        state = self._state
        verdict = self.interlock.evaluate(state, buffer_temp, now)
        actions = ControllerActions(verdict=verdict)

        if verdict == SafetyVerdict.ENTER_EMERGENCY:
            self.pid.reset(state.pid)
            self.state_machine.transition(state, OperatingState.EMERGENCY)
            self._force_close(actions, now)
        elif verdict == SafetyVerdict.EXIT_EMERGENCY:
            self.pid.reset(state.pid, now)
            if state.operating_state == OperatingState.EMERGENCY:
                self.state_machine.transition(state, OperatingState.AUTO)
        elif (
            verdict == SafetyVerdict.STAY_EMERGENCY
            and state.position > self.config.reclose_threshold
            and not state.is_moving
        ):
            self._force_close(actions, now)

        return actions

    def _force_close(self, actions: ControllerActions, now: float) -> None:
        """Force the valve fully closed, bypassing cooldown and busy checks."""
        result = self.arbiter.request_move(
            self._state, MIN_POSITION, force=True, now=now
        )
        actions.decision = result.decision
        actions.commands = result.commands
        actions.pending = result.pending
        actions.cancelled = result.cancelled

    def evaluate_pid(self, flow_temp: float | None, now: float) -> ControllerActions:
        """
        Run one PID step and request the resulting move.

        Suspended while the emergency is active.

        Args:
            flow_temp: Flow temperature, None if the sensor is invalid.
            now: Monotonic time in seconds.

        Returns:
            Actions to execute.

        """
        state = self._state
        if state.emergency_active:
            return ControllerActions()

        desired = self.pid.step(
            state.pid,
            flow_temp,
            self._setpoint,
            self._gains,
            now,
            state.position,
        )
        if desired is None:
            return ControllerActions()

        result = self.arbiter.request_move(state, desired, force=False, now=now)
        return ControllerActions(
            commands=result.commands,
            pending=result.pending,
            cancelled=result.cancelled,
            decision=result.decision,
            desired_position=desired,
        )

    def complete_move(self, move_id: int, now: float) -> ControllerActions:
        """Complete a pulsed move when its travel timer fires."""
        commands = self.arbiter.complete(self._state, move_id, now)
        return ControllerActions(commands=commands)

    def confirm_move(self, now: float) -> None:
        """Record that the actuator accepted an absolute position command."""
        self.arbiter.confirm(self._state, now)

    def fail_move(self) -> ControllerActions:
        """Record that the actuator rejected a command."""
        return ControllerActions(cancelled=self.arbiter.fail(self._state))
