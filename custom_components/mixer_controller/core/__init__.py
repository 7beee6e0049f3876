"""Core control logic for Mixing Valve Flow Controller."""

from .arbiter import (
    ActuationArbiter,
    ActuatorCommand,
    CoverAction,
    MoveResult,
    PendingMove,
)
from .controller import (
    ControllerActions,
    ControllerState,
    MixerConfig,
    MixerController,
)
from .pid import PIDController, PIDGains, PIDState, PIDTerms
from .position import normalize, round_to_even
from .safety import SafetyInterlock
from .state_machine import (
    ALLOWED_TRANSITIONS,
    InvalidTransitionError,
    OperatingStateMachine,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ActuationArbiter",
    "ActuatorCommand",
    "ControllerActions",
    "ControllerState",
    "CoverAction",
    "InvalidTransitionError",
    "MixerConfig",
    "MixerController",
    "MoveResult",
    "OperatingStateMachine",
    "PIDController",
    "PIDGains",
    "PIDState",
    "PIDTerms",
    "PendingMove",
    "SafetyInterlock",
    "normalize",
    "round_to_even",
]
