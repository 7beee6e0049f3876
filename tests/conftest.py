"""Common fixtures for Mixing Valve Flow Controller tests."""

from collections.abc import Generator
from typing import Any
from unittest.mock import patch

import pytest
from homeassistant.core import HomeAssistant, ServiceCall
from homeassistant.helpers import entity_registry as er
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.mixer_controller.const import (
    DEFAULT_CONTROL,
    DEFAULT_SAFETY,
    DEFAULT_TIMING,
    DOMAIN,
)

MOCK_CONTROLLER_ID = "test_mixer"

MOCK_COVER = "cover.mixer_valve"
MOCK_FLOW_SENSOR = "sensor.flow_temp"
MOCK_BUFFER_SENSOR = "sensor.buffer_temp"

MOCK_OPTIONS: dict[str, Any] = {
    "control": dict(DEFAULT_CONTROL),
    "timing": dict(DEFAULT_TIMING),
    "safety": dict(DEFAULT_SAFETY),
}


def get_entity_id(hass: HomeAssistant, platform: str, key: str) -> str | None:
    """Look up the entity ID of a test controller entity by its key."""
    return er.async_get(hass).async_get_entity_id(
        platform, DOMAIN, f"{MOCK_CONTROLLER_ID}_{key}"
    )


def _entry_data(**overrides: Any) -> dict[str, Any]:
    """Build config entry data for the test controller."""
    return {
        "name": "Test Mixer",
        "controller_id": MOCK_CONTROLLER_ID,
        "cover_entity": MOCK_COVER,
        "flow_sensor": MOCK_FLOW_SENSOR,
        "buffer_sensor": MOCK_BUFFER_SENSOR,
        "actuation_style": "absolute",
        "quantize_even": False,
        **overrides,
    }


@pytest.fixture
def mock_config_entry() -> MockConfigEntry:
    """Return a mock config entry for an absolute valve with buffer interlock."""
    return MockConfigEntry(
        domain=DOMAIN,
        title="Test Mixer",
        data=_entry_data(),
        options=MOCK_OPTIONS,
        entry_id="test_entry_id",
        unique_id=MOCK_CONTROLLER_ID,
    )


@pytest.fixture
def mock_config_entry_pulsed() -> MockConfigEntry:
    """Return a mock config entry for a pulsed valve with even positions."""
    return MockConfigEntry(
        domain=DOMAIN,
        title="Test Mixer",
        data=_entry_data(actuation_style="pulsed", quantize_even=True),
        options=MOCK_OPTIONS,
        entry_id="test_entry_id_pulsed",
        unique_id=f"{MOCK_CONTROLLER_ID}_pulsed",
    )


@pytest.fixture
def mock_config_entry_no_buffer() -> MockConfigEntry:
    """Return a mock config entry without a buffer sensor."""
    return MockConfigEntry(
        domain=DOMAIN,
        title="Test Mixer",
        data=_entry_data(buffer_sensor=None),
        options=MOCK_OPTIONS,
        entry_id="test_entry_id_no_buffer",
        unique_id=f"{MOCK_CONTROLLER_ID}_no_buffer",
    )


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(
    enable_custom_integrations: None,
) -> None:
    """Enable custom integrations for all tests."""


@pytest.fixture(autouse=True)
def expected_lingering_timers() -> bool:
    """Allow lingering timers for coordinator updates."""
    return True


@pytest.fixture
def mock_setup_entry() -> Generator[None]:
    """Mock setting up a config entry."""
    with patch(
        "custom_components.mixer_controller.async_setup_entry",
        return_value=True,
    ):
        yield


@pytest.fixture
async def mock_sensors(hass: HomeAssistant) -> None:
    """
    Set up mock sensor and valve states.

    Flow at setpoint and a warm buffer, so the controller starts in AUTO
    without moving the valve.
    """
    hass.states.async_set(MOCK_FLOW_SENSOR, "25.0")
    hass.states.async_set(MOCK_BUFFER_SENSOR, "50.0")
    hass.states.async_set(MOCK_COVER, "open", {"current_position": 50})


@pytest.fixture
async def cover_calls(hass: HomeAssistant) -> list[tuple[str, dict[str, Any]]]:
    """Register cover services and record every call made to them."""
    calls: list[tuple[str, dict[str, Any]]] = []

    async def track_cover_call(call: ServiceCall) -> None:
        calls.append((call.service, dict(call.data)))

    for service in (
        "open_cover",
        "close_cover",
        "stop_cover",
        "set_cover_position",
    ):
        hass.services.async_register("cover", service, track_cover_call)

    return calls
