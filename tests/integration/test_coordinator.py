"""Tests for the mixer controller coordinator."""

import time
from typing import Any

import pytest
from freezegun.api import FrozenDateTimeFactory
from homeassistant.core import HomeAssistant
from pytest_homeassistant_custom_component.common import (
    MockConfigEntry,
    async_fire_time_changed,
)

from custom_components.mixer_controller.const import OperatingState
from custom_components.mixer_controller.coordinator import (
    MixerControllerDataUpdateCoordinator,
)

COVER = "cover.mixer_valve"


async def _setup(
    hass: HomeAssistant, entry: MockConfigEntry
) -> MixerControllerDataUpdateCoordinator:
    """Set up the entry and return its coordinator."""
    entry.add_to_hass(hass)
    assert await hass.config_entries.async_setup(entry.entry_id)
    await hass.async_block_till_done()
    return entry.runtime_data.coordinator


async def _first_move(
    coordinator: MixerControllerDataUpdateCoordinator,
    freezer: FrozenDateTimeFactory,
) -> None:
    """Initialize the PID, then run a step 40 s later."""
    # Both ticks stay ahead of the scheduled 150 s PID interval
    freezer.tick(100)
    await coordinator._async_pid_tick()
    freezer.tick(40)
    await coordinator._async_pid_tick()


class TestTemperatureReading:
    """Test cases for sensor reading."""

    @pytest.mark.parametrize("value", ["unavailable", "unknown", "warm", "nan"])
    async def test_invalid_reading(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        mock_sensors: None,
        value: str,
    ) -> None:
        """Unusable sensor states read as None."""
        coordinator = await _setup(hass, mock_config_entry)
        hass.states.async_set("sensor.flow_temp", value)

        assert coordinator.read_temperature("sensor.flow_temp") is None

    async def test_missing_entity(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        mock_sensors: None,
    ) -> None:
        """A missing entity reads as None."""
        coordinator = await _setup(hass, mock_config_entry)

        assert coordinator.read_temperature("sensor.does_not_exist") is None
        assert coordinator.read_temperature(None) is None

    async def test_valid_reading(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        mock_sensors: None,
    ) -> None:
        """Numeric states are returned as floats."""
        coordinator = await _setup(hass, mock_config_entry)
        hass.states.async_set("sensor.flow_temp", "31.25")

        assert coordinator.read_temperature("sensor.flow_temp") == 31.25


class TestPIDTick:
    """Test cases for the PID tick."""

    async def test_absolute_move(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        mock_sensors: None,
        cover_calls: list[tuple[str, dict[str, Any]]],
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """A cold flow sets a new absolute valve position."""
        coordinator = await _setup(hass, mock_config_entry)
        hass.states.async_set("sensor.flow_temp", "20.0")

        await _first_move(coordinator, freezer)

        assert cover_calls == [
            ("set_cover_position", {"entity_id": COVER, "position": 65})
        ]
        state = coordinator.controller.state
        assert state.position == 65
        assert state.last_move_at == time.monotonic()
        assert state.operating_state == OperatingState.AUTO
        assert coordinator.data["position"] == 65
        assert coordinator.data["p_term"] == pytest.approx(30.0)

    async def test_cooldown_pause(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        mock_sensors: None,
        cover_calls: list[tuple[str, dict[str, Any]]],
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """A tick inside the pause after a move does not move the valve."""
        coordinator = await _setup(hass, mock_config_entry)
        hass.states.async_set("sensor.flow_temp", "20.0")
        await _first_move(coordinator, freezer)
        cover_calls.clear()

        freezer.tick(5)
        await coordinator._async_pid_tick()

        assert cover_calls == []
        assert coordinator.data["operating_state"] == OperatingState.PAUSE

    async def test_invalid_flow_skips_step(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        mock_sensors: None,
        cover_calls: list[tuple[str, dict[str, Any]]],
    ) -> None:
        """An unavailable flow sensor skips the PID step."""
        coordinator = await _setup(hass, mock_config_entry)
        hass.states.async_set("sensor.flow_temp", "unavailable")

        await coordinator._async_pid_tick()

        assert cover_calls == []
        assert not coordinator.controller.state.pid.initialized

    async def test_rejected_command_enters_error(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        mock_sensors: None,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """A failing cover service leaves the controller in ERROR."""
        coordinator = await _setup(hass, mock_config_entry)
        hass.states.async_set("sensor.flow_temp", "20.0")

        # No cover services are registered, so the call is rejected
        await _first_move(coordinator, freezer)

        state = coordinator.controller.state
        assert state.operating_state == OperatingState.ERROR
        assert state.position == 50
        assert coordinator.data["operating_state"] == OperatingState.ERROR

    async def test_pulsed_move_completes(
        self,
        hass: HomeAssistant,
        mock_config_entry_pulsed: MockConfigEntry,
        mock_sensors: None,
        cover_calls: list[tuple[str, dict[str, Any]]],
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """A pulsed move is stopped once its travel time has elapsed."""
        coordinator = await _setup(hass, mock_config_entry_pulsed)
        hass.states.async_set("sensor.flow_temp", "20.0")

        await _first_move(coordinator, freezer)

        assert cover_calls == [("open_cover", {"entity_id": COVER})]
        state = coordinator.controller.state
        assert state.is_moving
        assert state.target_position == 66
        assert coordinator.data["operating_state"] == OperatingState.MOVING

        issued_at = time.monotonic()

        # 16% of a 120 s full travel
        freezer.tick(20)
        async_fire_time_changed(hass)
        await hass.async_block_till_done()

        assert cover_calls[-1] == ("stop_cover", {"entity_id": COVER})
        assert state.position == 66
        assert not state.is_moving
        assert state.last_move_at == pytest.approx(issued_at + 20)
        assert coordinator.data["operating_state"] == OperatingState.AUTO

    async def test_busy_while_pulsing(
        self,
        hass: HomeAssistant,
        mock_config_entry_pulsed: MockConfigEntry,
        mock_sensors: None,
        cover_calls: list[tuple[str, dict[str, Any]]],
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """A PID tick during an outstanding pulse issues nothing."""
        coordinator = await _setup(hass, mock_config_entry_pulsed)
        hass.states.async_set("sensor.flow_temp", "20.0")
        await _first_move(coordinator, freezer)
        cover_calls.clear()

        freezer.tick(5)
        await coordinator._async_pid_tick()

        assert cover_calls == []
        assert coordinator.controller.state.operating_state == OperatingState.MOVING


class TestParameters:
    """Test cases for setpoint and gain sources."""

    async def test_setpoint_from_entity(
        self,
        hass: HomeAssistant,
        freezer: FrozenDateTimeFactory,
        mock_sensors: None,
        cover_calls: list[tuple[str, dict[str, Any]]],
    ) -> None:
        """A configured setpoint entity overrides the fixed setpoint."""
        entry = MockConfigEntry(
            domain="mixer_controller",
            title="Test Mixer",
            data={
                "name": "Test Mixer",
                "controller_id": "test_mixer",
                "cover_entity": COVER,
                "flow_sensor": "sensor.flow_temp",
                "actuation_style": "absolute",
            },
            options={
                "control": {
                    "setpoint": 25.0,
                    "kp": 6.0,
                    "ki": 0.03,
                    "kd": 2.0,
                    "setpoint_entity": "input_number.flow_setpoint",
                },
            },
        )
        hass.states.async_set("input_number.flow_setpoint", "32.5")
        coordinator = await _setup(hass, entry)
        assert coordinator.controller.setpoint == 32.5

        # Invalid values keep the previous setpoint
        hass.states.async_set("input_number.flow_setpoint", "unavailable")
        await coordinator._async_pid_tick()
        assert coordinator.controller.setpoint == 32.5

        hass.states.async_set("input_number.flow_setpoint", "120")
        freezer.tick(10)
        await coordinator._async_pid_tick()
        assert coordinator.controller.setpoint == 32.5

        hass.states.async_set("input_number.flow_setpoint", "28")
        freezer.tick(10)
        await coordinator._async_pid_tick()
        assert coordinator.controller.setpoint == 28.0


class TestInterlockTick:
    """Test cases for the buffer interlock tick."""

    async def test_emergency_at_startup(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        mock_sensors: None,
        cover_calls: list[tuple[str, dict[str, Any]]],
    ) -> None:
        """A cold buffer at startup closes the valve without waiting a tick."""
        hass.states.async_set("sensor.buffer_temp", "35.0")

        coordinator = await _setup(hass, mock_config_entry)

        assert cover_calls == [
            ("set_cover_position", {"entity_id": COVER, "position": 0})
        ]
        state = coordinator.controller.state
        assert state.emergency_active
        assert state.position == 0
        assert state.operating_state == OperatingState.EMERGENCY

    async def test_emergency_suspends_pid(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        mock_sensors: None,
        cover_calls: list[tuple[str, dict[str, Any]]],
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """No PID move is made while the emergency holds."""
        hass.states.async_set("sensor.buffer_temp", "35.0")
        coordinator = await _setup(hass, mock_config_entry)
        cover_calls.clear()
        hass.states.async_set("sensor.flow_temp", "10.0")

        await _first_move(coordinator, freezer)

        assert cover_calls == []

    async def test_emergency_recovery(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        mock_sensors: None,
        cover_calls: list[tuple[str, dict[str, Any]]],
    ) -> None:
        """The controller returns to AUTO once the buffer has recovered."""
        hass.states.async_set("sensor.buffer_temp", "35.0")
        coordinator = await _setup(hass, mock_config_entry)

        # Between the thresholds the emergency holds
        hass.states.async_set("sensor.buffer_temp", "43.0")
        await coordinator._async_interlock_tick()
        assert coordinator.controller.state.emergency_active

        hass.states.async_set("sensor.buffer_temp", "45.0")
        await coordinator._async_interlock_tick()

        state = coordinator.controller.state
        assert not state.emergency_active
        assert state.operating_state == OperatingState.AUTO
        assert coordinator.data["emergency_active"] is False

    async def test_unavailable_buffer_keeps_state(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        mock_sensors: None,
        cover_calls: list[tuple[str, dict[str, Any]]],
    ) -> None:
        """An unavailable buffer sensor neither trips nor clears the emergency."""
        hass.states.async_set("sensor.buffer_temp", "35.0")
        coordinator = await _setup(hass, mock_config_entry)
        cover_calls.clear()

        hass.states.async_set("sensor.buffer_temp", "unavailable")
        await coordinator._async_interlock_tick()

        assert coordinator.controller.state.emergency_active
        assert cover_calls == []

    async def test_emergency_preempts_pulse(
        self,
        hass: HomeAssistant,
        mock_config_entry_pulsed: MockConfigEntry,
        mock_sensors: None,
        cover_calls: list[tuple[str, dict[str, Any]]],
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """An emergency during an opening pulse stops it and closes the valve."""
        coordinator = await _setup(hass, mock_config_entry_pulsed)
        hass.states.async_set("sensor.flow_temp", "20.0")
        await _first_move(coordinator, freezer)
        cover_calls.clear()

        hass.states.async_set("sensor.buffer_temp", "30.0")
        await coordinator._async_interlock_tick()

        assert cover_calls == [
            ("stop_cover", {"entity_id": COVER}),
            ("close_cover", {"entity_id": COVER}),
        ]
        state = coordinator.controller.state
        assert state.target_position == 0
        assert state.is_moving
