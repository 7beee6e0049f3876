"""Operating state machine for Mixing Valve Flow Controller."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from custom_components.mixer_controller.const import OperatingState

if TYPE_CHECKING:
    from .controller import ControllerState

type StatusListener = Callable[[OperatingState, OperatingState], None]

# Permitted transitions; same-state transitions are always no-ops
ALLOWED_TRANSITIONS: dict[OperatingState, frozenset[OperatingState]] = {
    OperatingState.AUTO: frozenset(
        {OperatingState.EMERGENCY, OperatingState.MOVING, OperatingState.PAUSE}
    ),
    OperatingState.EMERGENCY: frozenset(
        {OperatingState.AUTO, OperatingState.MOVING}
    ),
    OperatingState.MOVING: frozenset(
        {OperatingState.AUTO, OperatingState.EMERGENCY, OperatingState.ERROR}
    ),
    OperatingState.PAUSE: frozenset(
        {OperatingState.EMERGENCY, OperatingState.MOVING}
    ),
    OperatingState.ERROR: frozenset(
        {OperatingState.EMERGENCY, OperatingState.MOVING, OperatingState.PAUSE}
    ),
}


class InvalidTransitionError(Exception):
    """Raised when a transition outside the allowed table is attempted."""

    def __init__(self, current: OperatingState, new: OperatingState) -> None:
        """Initialize the error."""
        super().__init__(f"Invalid state transition: {current} -> {new}")
        self.current = current
        self.new = new


class OperatingStateMachine:
    """
    Tracks the controller operating state and notifies listeners.

    The state itself lives in ControllerState; this class only validates and
    applies transitions and calls the registered status listeners with the
    (previous, new) pair on every real transition.
    """

    def __init__(self) -> None:
        """Initialize the state machine."""
        self._listeners: list[StatusListener] = []

    def add_listener(self, listener: StatusListener) -> Callable[[], None]:
        """
        Register a status listener.

        Returns:
            A callable that removes the listener again.

        """
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def transition(self, state: ControllerState, new: OperatingState) -> bool:
        """
        Move to a new operating state.

        Args:
            state: Controller state to update.
            new: Requested operating state.

        Returns:
            True if the state changed, False for a same-state no-op.

        Raises:
            InvalidTransitionError: If the transition is not permitted.

        """
        current = state.operating_state
        if current == new:
            return False
        if new not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(current, new)

        state.previous_state = current
        state.operating_state = new
        for listener in list(self._listeners):
            listener(current, new)
        return True

    def settle(self, state: ControllerState) -> bool:
        """Return to EMERGENCY if the interlock is active, AUTO otherwise."""
        target = (
            OperatingState.EMERGENCY if state.emergency_active else OperatingState.AUTO
        )
        return self.transition(state, target)
