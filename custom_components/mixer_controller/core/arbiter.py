"""
Actuation arbiter for Mixing Valve Flow Controller.

This module decides whether a requested valve move is issued, and which
actuator commands it translates to, given the actuation style, the move
cooldown, an outstanding move and the force-override flag. It never talks
to the actuator itself; the integration layer executes the returned
commands and reports the outcome back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from itertools import count
from typing import TYPE_CHECKING

from custom_components.mixer_controller.const import (
    DEFAULT_TIMING,
    MIN_TRAVEL_TIME,
    ActuationStyle,
    MoveDecision,
    OperatingState,
)

from .position import normalize

if TYPE_CHECKING:
    from .controller import ControllerState
    from .state_machine import OperatingStateMachine


class CoverAction(StrEnum):
    """Commands understood by the valve actuator."""

    OPEN = "open"
    CLOSE = "close"
    STOP = "stop"
    GO_TO = "go_to"


@dataclass(frozen=True)
class ActuatorCommand:
    """A single command for the valve actuator."""

    action: CoverAction
    position: int | None = None


@dataclass(frozen=True)
class PendingMove:
    """
    An outstanding pulsed move awaiting its completion event.

    The integration layer schedules a one-shot timer for `duration` seconds
    and reports back with `move_id` when it fires.
    """

    move_id: int
    start_position: int
    target: int
    started_at: float
    duration: float

    @property
    def deadline(self) -> float:
        """Return the monotonic time at which the move completes."""
        return self.started_at + self.duration

    def position_at(self, now: float) -> float:
        """Estimate the valve position at a time during the travel."""
        if self.duration <= 0:
            return float(self.target)
        fraction = max(0.0, min(1.0, (now - self.started_at) / self.duration))
        return self.start_position + (self.target - self.start_position) * fraction


@dataclass
class MoveResult:
    """Outcome of a move request."""

    decision: MoveDecision
    commands: list[ActuatorCommand] = field(default_factory=list)
    pending: PendingMove | None = None
    cancelled: PendingMove | None = None


@dataclass
class ActuationArbiter:
    """
    Arbitrates valve moves.

    Attributes:
        state_machine: Operating state machine used for transitions.
        actuation_style: Pulsed open/close or absolute positioning.
        quantize_even: Restrict positions to even integers.
        min_move_pause: Minimum seconds between two completed moves.
        min_move_step: Smallest position change worth a move, in %.
        full_travel_time: Seconds for a full 0-100% travel (pulsed only).

    """

    state_machine: OperatingStateMachine
    actuation_style: ActuationStyle = ActuationStyle.ABSOLUTE
    quantize_even: bool = False
    min_move_pause: float = DEFAULT_TIMING["min_move_pause"]
    min_move_step: int = 1
    full_travel_time: float = DEFAULT_TIMING["full_travel_time"]

    pending: PendingMove | None = field(default=None, init=False)
    _move_ids: count = field(default_factory=lambda: count(1), init=False, repr=False)

    @property
    def is_pulsed(self) -> bool:
        """Return True if the actuator is driven by open/close pulses."""
        return self.actuation_style == ActuationStyle.PULSED

    def cooldown_remaining(self, state: ControllerState, now: float) -> float:
        """Return seconds until the next non-forced move is allowed."""
        if state.last_move_at is None:
            return 0.0
        return max(0.0, self.min_move_pause - (now - state.last_move_at))

    def travel_time(self, start: int, target: int) -> float:
        """Return the pulsed travel time between two positions in seconds."""
        return max(
            MIN_TRAVEL_TIME, abs(target - start) / 100 * self.full_travel_time
        )

    def request_move(
        self,
        state: ControllerState,
        target: float,
        *,
        force: bool,
        now: float,
    ) -> MoveResult:
        """
        Request a valve move.

        Non-forced requests are rejected while a pulsed move is outstanding,
        while the cooldown since the last move runs (entering PAUSE), or when
        the change is below the minimum step. Forced requests bypass all of
        these and stop an outstanding pulsed move first.

        Args:
            state: Controller state.
            target: Desired position, normalized before use.
            force: Bypass busy, cooldown and minimum step checks.
            now: Monotonic time in seconds.

        Returns:
            The decision with the actuator commands to execute.

        """
        target_position = normalize(target, quantize_even=self.quantize_even)
        commands: list[ActuatorCommand] = []
        cancelled: PendingMove | None = None

        if not force:
            if self.is_pulsed and state.is_moving:
                return MoveResult(MoveDecision.REJECTED_BUSY)
            if self.cooldown_remaining(state, now) > 0:
                self.state_machine.transition(state, OperatingState.PAUSE)
                return MoveResult(MoveDecision.REJECTED_COOLDOWN)
            if abs(target_position - state.position) < self.min_move_step:
                return MoveResult(MoveDecision.REJECTED_NO_CHANGE)
        elif self.is_pulsed and state.is_moving:
            commands.append(ActuatorCommand(CoverAction.STOP))
            cancelled = self.pending
            if cancelled is not None:
                state.position = normalize(
                    cancelled.position_at(now), quantize_even=self.quantize_even
                )
            self.pending = None
            state.is_moving = False

        state.target_position = target_position
        self.state_machine.transition(state, OperatingState.MOVING)

        if not self.is_pulsed:
            commands.append(ActuatorCommand(CoverAction.GO_TO, target_position))
            return MoveResult(MoveDecision.ISSUED, commands, cancelled=cancelled)

        action = (
            CoverAction.OPEN
            if target_position > state.position
            else CoverAction.CLOSE
        )
        commands.append(ActuatorCommand(action))
        self.pending = PendingMove(
            move_id=next(self._move_ids),
            start_position=state.position,
            target=target_position,
            started_at=now,
            duration=self.travel_time(state.position, target_position),
        )
        state.is_moving = True
        return MoveResult(
            MoveDecision.ISSUED, commands, pending=self.pending, cancelled=cancelled
        )

    def complete(
        self,
        state: ControllerState,
        move_id: int,
        now: float,
    ) -> list[ActuatorCommand]:
        """
        Complete an outstanding pulsed move when its travel time has elapsed.

        Completions for a move that is no longer pending are ignored.

        Returns:
            The stop command to execute, or an empty list for a stale event.

        """
        if self.pending is None or self.pending.move_id != move_id:
            return []

        state.position = self.pending.target
        state.is_moving = False
        state.last_move_at = now
        self.pending = None
        self.state_machine.settle(state)
        return [ActuatorCommand(CoverAction.STOP)]

    def confirm(self, state: ControllerState, now: float) -> None:
        """Record an absolute move as completed once the actuator accepted it."""
        state.position = state.target_position
        state.last_move_at = now
        self.state_machine.settle(state)

    def fail(self, state: ControllerState) -> PendingMove | None:
        """
        Record that the actuator rejected the last command.

        Returns:
            The pending move that was dropped, if any.

        """
        dropped = self.pending
        self.pending = None
        state.is_moving = False
        self.state_machine.transition(state, OperatingState.ERROR)
        return dropped
