"""Constants for Mixing Valve Flow Controller."""

from __future__ import annotations

import json
from enum import StrEnum
from logging import Logger, getLogger
from pathlib import Path
from typing import TypedDict

LOGGER: Logger = getLogger(__package__)

DOMAIN = "mixer_controller"

# Load version from manifest.json once at module load
MANIFEST_PATH = Path(__file__).parent / "manifest.json"
VERSION = json.loads(MANIFEST_PATH.read_text())["version"]

# Config entry data keys
CONF_NAME = "name"
CONF_CONTROLLER_ID = "controller_id"
CONF_COVER_ENTITY = "cover_entity"
CONF_FLOW_SENSOR = "flow_sensor"
CONF_BUFFER_SENSOR = "buffer_sensor"
CONF_ACTUATION_STYLE = "actuation_style"
CONF_QUANTIZE_EVEN = "quantize_even"

# Config entry option sections
OPT_CONTROL = "control"
OPT_TIMING = "timing"
OPT_SAFETY = "safety"


class OperatingState(StrEnum):
    """Operating state of the mixer controller."""

    AUTO = "auto"  # Normal regulation, idle between moves
    EMERGENCY = "emergency"  # Buffer interlock active, PID suspended
    MOVING = "moving"  # A move is outstanding
    PAUSE = "pause"  # Last move request rejected by cooldown
    ERROR = "error"  # Last actuator command failed


class ActuationStyle(StrEnum):
    """
    How the valve actuator is driven.

    - PULSED: open/close followed by stop after a computed travel time
    - ABSOLUTE: the actuator accepts a target position and travels on its own
    """

    PULSED = "pulsed"
    ABSOLUTE = "absolute"


class SafetyVerdict(StrEnum):
    """Result of a buffer interlock evaluation."""

    ENTER_EMERGENCY = "enter_emergency"
    EXIT_EMERGENCY = "exit_emergency"
    STAY_EMERGENCY = "stay_emergency"
    NO_CHANGE = "no_change"


class MoveDecision(StrEnum):
    """Outcome of a move request."""

    ISSUED = "issued"
    REJECTED_BUSY = "rejected_busy"
    REJECTED_COOLDOWN = "rejected_cooldown"
    REJECTED_NO_CHANGE = "rejected_no_change"


# Position limits (percent open toward the hot source)
MIN_POSITION = 0
MAX_POSITION = 100
INITIAL_POSITION = 50

# PID limits
INTEGRAL_MIN = -50.0
INTEGRAL_MAX = 50.0
OUTPUT_STEP_LIMIT = 15.0  # Max % change per PID step
DEAD_BAND = 0.3  # Degrees; smaller errors count as on target

# Actuation
MIN_TRAVEL_TIME = 0.5  # Seconds; floor for pulsed move durations
MIN_MOVE_STEP_QUANTIZED = 2
MIN_MOVE_STEP_CONTINUOUS = 1
RECLOSE_THRESHOLD = 0  # Default re-close position during an emergency

# Parameter store validation
SETPOINT_MIN_EXCLUSIVE = 0.0
SETPOINT_MAX_EXCLUSIVE = 100.0

GAIN_NAMES: tuple[str, ...] = ("kp", "ki", "kd")


class ControlDefaults(TypedDict):
    """Type for DEFAULT_CONTROL dictionary."""

    setpoint: float
    kp: float
    ki: float
    kd: float


class TimingDefaults(TypedDict):
    """Type for DEFAULT_TIMING dictionary."""

    sensor_interval: int
    interlock_interval: int
    pid_interval: int
    min_move_pause: int
    full_travel_time: int
    max_dt: int


class SafetyDefaults(TypedDict):
    """Type for DEFAULT_SAFETY dictionary."""

    emergency_min: float
    emergency_ok: float
    reclose_threshold: int


DEFAULT_CONTROL: ControlDefaults = {
    "setpoint": 25.0,
    "kp": 6.0,
    "ki": 0.03,
    "kd": 2.0,
}

# Default timing parameters (in seconds)
DEFAULT_TIMING: TimingDefaults = {
    "sensor_interval": 10,
    "interlock_interval": 30,
    "pid_interval": 150,  # 2.5 minutes
    "min_move_pause": 60,
    "full_travel_time": 120,  # Full 0-100% travel of a pulsed actuator
    "max_dt": 600,  # Samples further apart are discarded
}

# Default buffer interlock thresholds (in °C)
DEFAULT_SAFETY: SafetyDefaults = {
    "emergency_min": 40.0,  # Below -> emergency
    "emergency_ok": 45.0,  # At or above -> emergency cleared
    "reclose_threshold": RECLOSE_THRESHOLD,  # Re-close above this position in %
}

# UI validation constraints for control parameters
UI_SETPOINT = {"min": 1.0, "max": 99.0, "step": 0.5}
UI_GAIN = {"min": 0.0, "max": 100.0, "step": 0.01}

# UI validation constraints for timing parameters
UI_TIMING_SENSOR_INTERVAL = {"min": 5, "max": 300, "step": 5}
UI_TIMING_INTERLOCK_INTERVAL = {"min": 5, "max": 600, "step": 5}
UI_TIMING_PID_INTERVAL = {"min": 10, "max": 600, "step": 10}
UI_TIMING_MIN_MOVE_PAUSE = {"min": 0, "max": 900, "step": 5}
UI_TIMING_FULL_TRAVEL_TIME = {"min": 5, "max": 600, "step": 5}
UI_TIMING_MAX_DT = {"min": 60, "max": 1800, "step": 30}

# UI validation constraints for interlock thresholds
UI_EMERGENCY_TEMPERATURE = {"min": 0.0, "max": 95.0, "step": 0.5}
UI_RECLOSE_THRESHOLD = {"min": 0, "max": 20, "step": 1}
