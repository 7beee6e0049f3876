"""DataUpdateCoordinator for Mixing Valve Flow Controller."""

from __future__ import annotations

import asyncio
import math
import time
from datetime import timedelta
from functools import partial
from typing import TYPE_CHECKING, Any

from homeassistant.components.cover import ATTR_CURRENT_POSITION, ATTR_POSITION
from homeassistant.const import (
    ATTR_ENTITY_ID,
    SERVICE_CLOSE_COVER,
    SERVICE_OPEN_COVER,
    SERVICE_SET_COVER_POSITION,
    SERVICE_STOP_COVER,
    STATE_UNAVAILABLE,
    STATE_UNKNOWN,
    Platform,
)
from homeassistant.core import callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.event import async_call_later, async_track_time_interval
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator

from .const import (
    CONF_ACTUATION_STYLE,
    CONF_BUFFER_SENSOR,
    CONF_COVER_ENTITY,
    CONF_FLOW_SENSOR,
    CONF_QUANTIZE_EVEN,
    DEFAULT_CONTROL,
    DEFAULT_SAFETY,
    DEFAULT_TIMING,
    DOMAIN,
    GAIN_NAMES,
    LOGGER,
    OPT_CONTROL,
    OPT_SAFETY,
    OPT_TIMING,
    ActuationStyle,
    MoveDecision,
    OperatingState,
    SafetyVerdict,
)
from .core.arbiter import ActuatorCommand, CoverAction, PendingMove
from .core.controller import ControllerActions, MixerConfig, MixerController

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from homeassistant.core import HomeAssistant

    from .data import MixerControllerConfigEntry

COVER_SERVICES: dict[CoverAction, str] = {
    CoverAction.OPEN: SERVICE_OPEN_COVER,
    CoverAction.CLOSE: SERVICE_CLOSE_COVER,
    CoverAction.STOP: SERVICE_STOP_COVER,
    CoverAction.GO_TO: SERVICE_SET_COVER_POSITION,
}


class MixerControllerDataUpdateCoordinator(DataUpdateCoordinator[dict[str, Any]]):
    """
    Class to drive the mixer controller from Home Assistant.

    The coordinator's own update interval is the sensor refresh tick. The
    interlock and PID ticks run on separate intervals, pulsed moves complete
    on one-shot timers. All entry points share one lock so that the
    controller core only ever sees serialized calls.
    """

    config_entry: MixerControllerConfigEntry

    def __init__(
        self,
        hass: HomeAssistant,
        entry: MixerControllerConfigEntry,
    ) -> None:
        """Initialize the coordinator."""
        self._controller = self._build_controller(entry)
        self._timing: dict[str, Any] = {
            **DEFAULT_TIMING,
            **entry.options.get(OPT_TIMING, {}),
        }

        super().__init__(
            hass,
            LOGGER,
            name=DOMAIN,
            update_interval=timedelta(seconds=self._timing["sensor_interval"]),
        )
        self.config_entry = entry

        self._cover_entity: str = entry.data[CONF_COVER_ENTITY]
        self._flow_sensor: str = entry.data[CONF_FLOW_SENSOR]
        self._buffer_sensor: str | None = entry.data.get(CONF_BUFFER_SENSOR)

        self._lock = asyncio.Lock()
        self._flow_temp: float | None = None
        self._buffer_temp: float | None = None
        self._completion_unsub: Callable[[], None] | None = None
        self._started = False

        self._controller.state_machine.add_listener(self._on_state_transition)

    @staticmethod
    def _build_controller(entry: MixerControllerConfigEntry) -> MixerController:
        """Build MixerController from config entry."""
        data = entry.data
        timing = {**DEFAULT_TIMING, **entry.options.get(OPT_TIMING, {})}
        safety = {**DEFAULT_SAFETY, **entry.options.get(OPT_SAFETY, {})}

        config = MixerConfig(
            actuation_style=ActuationStyle(
                data.get(CONF_ACTUATION_STYLE, ActuationStyle.ABSOLUTE)
            ),
            interlock_enabled=bool(data.get(CONF_BUFFER_SENSOR)),
            quantize_even=data.get(CONF_QUANTIZE_EVEN, False),
            min_move_pause=timing["min_move_pause"],
            full_travel_time=timing["full_travel_time"],
            max_dt=timing["max_dt"],
            emergency_min=safety["emergency_min"],
            emergency_ok=safety["emergency_ok"],
            reclose_threshold=int(safety["reclose_threshold"]),
        )
        return MixerController(config)

    @property
    def controller(self) -> MixerController:
        """Return the mixer controller."""
        return self._controller

    async def async_config_entry_first_refresh(self) -> None:
        """Perform first refresh and start the control loop."""
        await super().async_config_entry_first_refresh()
        await self._async_start()

    async def _async_start(self) -> None:
        """Seed the controller, run the initial interlock check, start timers."""
        if self._started:
            return
        self._started = True

        if self._controller.config.actuation_style == ActuationStyle.ABSOLUTE:
            cover_state = self.hass.states.get(self._cover_entity)
            if cover_state is not None and self._controller.seed_position(
                _to_float(cover_state.attributes.get(ATTR_CURRENT_POSITION))
            ):
                LOGGER.debug(
                    "Seeded valve position from %s: %d%%",
                    self._cover_entity,
                    self._controller.state.position,
                )

        self._refresh_parameters()
        LOGGER.info(
            "Mixer controller started: style=%s, interlock=%s, position=%d%%, "
            "setpoint=%.1f",
            self._controller.config.actuation_style,
            self._controller.config.interlock_enabled,
            self._controller.state.position,
            self._controller.setpoint,
        )

        # Immediate interlock check so an emergency is never delayed by a tick
        await self._async_interlock_tick()

        self.config_entry.async_on_unload(
            async_track_time_interval(
                self.hass,
                self._async_interlock_tick,
                timedelta(seconds=self._timing["interlock_interval"]),
            )
        )
        self.config_entry.async_on_unload(
            async_track_time_interval(
                self.hass,
                self._async_pid_tick,
                timedelta(seconds=self._timing["pid_interval"]),
            )
        )

    async def async_stop(self) -> None:
        """Cancel the completion timer and stop a valve still travelling."""
        async with self._lock:
            self._cancel_completion_timer()
            if not self._controller.state.is_moving:
                return
            LOGGER.debug("Stopping valve travel on unload")
            try:
                await self._async_call_cover(ActuatorCommand(CoverAction.STOP))
            except HomeAssistantError as err:
                LOGGER.warning("Failed to stop %s: %s", self._cover_entity, err)

    def read_temperature(self, entity_id: str | None) -> float | None:
        """
        Read a temperature sensor.

        Returns:
            The temperature, or None if the entity is missing, unavailable,
            unknown or not numeric.

        """
        if entity_id is None:
            return None
        state = self.hass.states.get(entity_id)
        if state is None or state.state in (STATE_UNAVAILABLE, STATE_UNKNOWN):
            LOGGER.warning("Temperature sensor %s unavailable", entity_id)
            return None
        value = _to_float(state.state)
        if value is None:
            LOGGER.warning(
                "Invalid temperature state for %s: %s", entity_id, state.state
            )
        return value

    def _read_parameter(self, entity_id: str | None, fallback: Any) -> float | None:
        """Read a parameter from its entity if configured, else use fallback."""
        if not entity_id:
            return _to_float(fallback)
        state = self.hass.states.get(entity_id)
        if state is None:
            return None
        return _to_float(state.state)

    def _refresh_parameters(self) -> None:
        """Refresh setpoint and gains, keeping previous values when invalid."""
        control = {**DEFAULT_CONTROL, **self.config_entry.options.get(OPT_CONTROL, {})}

        setpoint = self._read_parameter(
            control.get("setpoint_entity"), control["setpoint"]
        )
        if not self._controller.set_setpoint(setpoint):
            LOGGER.debug(
                "Invalid setpoint %s, using %.1f", setpoint, self._controller.setpoint
            )

        for gain in GAIN_NAMES:
            value = self._read_parameter(control.get(f"{gain}_entity"), control[gain])
            if not self._controller.set_gain(gain, value):
                LOGGER.debug(
                    "Invalid %s %s, using %s",
                    gain,
                    value,
                    getattr(self._controller.gains, gain),
                )

    async def _async_update_data(self) -> dict[str, Any]:
        """Refresh the sensor readings."""
        async with self._lock:
            self._flow_temp = self.read_temperature(self._flow_sensor)
            if self._buffer_sensor is not None:
                self._buffer_temp = self.read_temperature(self._buffer_sensor)
            return self._build_state_dict()

    async def _async_interlock_tick(self, _now: datetime | None = None) -> None:
        """Evaluate the buffer safety interlock."""
        if not self._controller.config.interlock_enabled:
            return

        async with self._lock:
            self._buffer_temp = self.read_temperature(self._buffer_sensor)
            now = time.monotonic()
            actions = self._controller.evaluate_interlock(self._buffer_temp, now)
            self._log_verdict(actions.verdict, now)
            await self._async_execute(actions)
            self._async_push_data()

    async def _async_pid_tick(self, _now: datetime | None = None) -> None:
        """Run one PID control step."""
        async with self._lock:
            if self._controller.state.emergency_active:
                return

            self._flow_temp = self.read_temperature(self._flow_sensor)
            if self._flow_temp is None:
                LOGGER.debug("PID: no valid flow temperature")
                return

            self._refresh_parameters()
            state = self._controller.state
            position = state.position
            actions = self._controller.evaluate_pid(
                self._flow_temp, time.monotonic()
            )

            terms = self._controller.pid.last_terms
            if actions.desired_position is not None and terms is not None:
                LOGGER.debug(
                    "PID: T=%.1f SP=%.1f E=%.2f Out=%.2f Pos=%d->%.1f "
                    "P=%.2f I=%.2f D=%.2f",
                    self._flow_temp,
                    self._controller.setpoint,
                    terms.error,
                    terms.output,
                    position,
                    actions.desired_position,
                    terms.p_term,
                    terms.i_term,
                    terms.d_term,
                )
            elif state.pid.initialized:
                LOGGER.debug(
                    "PID: no move (error=%.2f)",
                    self._controller.setpoint - self._flow_temp,
                )

            if actions.decision == MoveDecision.REJECTED_COOLDOWN:
                LOGGER.debug(
                    "Pause active (%.0fs remaining)",
                    self._controller.arbiter.cooldown_remaining(
                        state, time.monotonic()
                    ),
                )
            elif actions.decision == MoveDecision.REJECTED_BUSY:
                LOGGER.debug("Valve already moving, ignoring move request")

            await self._async_execute(actions)
            self._async_push_data()

    async def _async_on_move_complete(self, move_id: int, _now: datetime) -> None:
        """Complete a pulsed move when its travel time has elapsed."""
        async with self._lock:
            self._completion_unsub = None
            actions = self._controller.complete_move(move_id, time.monotonic())
            if not actions.commands:
                LOGGER.debug("Ignoring stale completion for move %d", move_id)
                return
            LOGGER.info(
                "Position reached: %d%%", self._controller.state.position
            )
            await self._async_execute(actions)
            self._async_push_data()

    async def _async_execute(self, actions: ControllerActions) -> None:
        """Execute actuator commands and report the outcome to the controller."""
        if actions.cancelled is not None:
            self._cancel_completion_timer()

        if actions.decision == MoveDecision.ISSUED:
            LOGGER.info(
                "Move: %d%% -> %d%%",
                self._controller.state.position,
                self._controller.state.target_position,
            )

        for command in actions.commands:
            try:
                await self._async_call_cover(command)
            except HomeAssistantError as err:
                if command.action == CoverAction.STOP:
                    LOGGER.warning("Failed to stop %s: %s", self._cover_entity, err)
                    continue
                LOGGER.error(
                    "Cover command %s rejected by %s: %s",
                    command.action,
                    self._cover_entity,
                    err,
                )
                self._controller.fail_move()
                return

        if actions.pending is not None:
            self._schedule_completion(actions.pending)
        elif (
            actions.decision == MoveDecision.ISSUED
            and self._controller.config.actuation_style == ActuationStyle.ABSOLUTE
        ):
            self._controller.confirm_move(time.monotonic())

    async def _async_call_cover(self, command: ActuatorCommand) -> None:
        """Send a single command to the cover entity."""
        service_data: dict[str, Any] = {ATTR_ENTITY_ID: self._cover_entity}
        if command.action == CoverAction.GO_TO:
            service_data[ATTR_POSITION] = command.position

        await self.hass.services.async_call(
            Platform.COVER,
            COVER_SERVICES[command.action],
            service_data,
            blocking=True,
        )
        LOGGER.debug(
            "Cover service '%s' called for %s",
            COVER_SERVICES[command.action],
            self._cover_entity,
        )

    def _schedule_completion(self, pending: PendingMove) -> None:
        """Schedule the completion event of a pulsed move."""
        self._cancel_completion_timer()
        self._completion_unsub = async_call_later(
            self.hass,
            pending.duration,
            partial(self._async_on_move_complete, pending.move_id),
        )
        LOGGER.debug(
            "Move %d completes in %.1fs", pending.move_id, pending.duration
        )

    def _cancel_completion_timer(self) -> None:
        """Cancel the scheduled completion event, if any."""
        if self._completion_unsub is not None:
            self._completion_unsub()
            self._completion_unsub = None

    def _log_verdict(self, verdict: SafetyVerdict | None, now: float) -> None:
        """Log interlock verdicts (integration layer's responsibility)."""
        if verdict == SafetyVerdict.ENTER_EMERGENCY:
            LOGGER.warning(
                "Emergency activated: buffer too cold (%.1f°C)", self._buffer_temp
            )
        elif verdict == SafetyVerdict.EXIT_EMERGENCY:
            duration = self._controller.interlock.emergency_duration(
                self._controller.state, now
            )
            LOGGER.info(
                "Emergency ended after %.0fs, buffer %.1f°C",
                duration or 0.0,
                self._buffer_temp,
            )
        elif verdict == SafetyVerdict.STAY_EMERGENCY:
            LOGGER.debug(
                "Emergency: buffer %.1f°C, position %d%%",
                self._buffer_temp,
                self._controller.state.position,
            )

    @callback
    def _on_state_transition(
        self, previous: OperatingState, new: OperatingState
    ) -> None:
        """Report operating state transitions."""
        LOGGER.info("State: %s -> %s", previous, new)
        self._async_push_data()

    @callback
    def _async_push_data(self) -> None:
        """Publish the current controller state to entities."""
        if self.data is None:
            return
        self.data = self._build_state_dict()
        self.async_update_listeners()

    def _build_state_dict(self) -> dict[str, Any]:
        """Build the data dictionary exposed to entities."""
        state = self._controller.state
        terms = self._controller.pid.last_terms
        gains = self._controller.gains
        return {
            "operating_state": state.operating_state.value,
            "previous_state": state.previous_state.value,
            "position": state.position,
            "target_position": state.target_position,
            "is_moving": state.is_moving,
            "emergency_active": state.emergency_active,
            "flow_temperature": self._flow_temp,
            "buffer_temperature": self._buffer_temp,
            "setpoint": self._controller.setpoint,
            "kp": gains.kp,
            "ki": gains.ki,
            "kd": gains.kd,
            "integral": state.pid.integral,
            "error": terms.error if terms else None,
            "p_term": terms.p_term if terms else None,
            "i_term": terms.i_term if terms else None,
            "d_term": terms.d_term if terms else None,
            "output": terms.output if terms else None,
        }


def _to_float(value: Any) -> float | None:
    """Convert a state or attribute value to a finite float, None otherwise."""
    if value is None:
        return None
    try:
        result = float(value)
    except (ValueError, TypeError):
        return None
    return result if math.isfinite(result) else None
