"""
Custom integration to regulate a heating flow circuit with a mixing valve.

A PID loop walks a motorized mixing valve (any Home Assistant cover entity)
toward the flow temperature setpoint, while a buffer storage interlock can
force the valve closed when the heat source runs cold.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.const import Platform

from .const import DOMAIN, LOGGER
from .coordinator import MixerControllerDataUpdateCoordinator
from .data import MixerControllerData

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .data import MixerControllerConfigEntry

PLATFORMS: list[Platform] = [
    Platform.SENSOR,
    Platform.BINARY_SENSOR,
]


async def async_setup_entry(
    hass: HomeAssistant,
    entry: MixerControllerConfigEntry,
) -> bool:
    """Set up Mixing Valve Flow Controller from a config entry."""
    LOGGER.debug("Setting up mixer controller entry: %s", entry.entry_id)

    coordinator = MixerControllerDataUpdateCoordinator(hass=hass, entry=entry)
    await coordinator.async_config_entry_first_refresh()

    entry.runtime_data = MixerControllerData(coordinator=coordinator)

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    entry.async_on_unload(entry.add_update_listener(async_reload_entry))

    return True


async def async_unload_entry(
    hass: HomeAssistant,
    entry: MixerControllerConfigEntry,
) -> bool:
    """Handle removal of an entry."""
    LOGGER.debug("Unloading mixer controller entry: %s", entry.entry_id)

    # Do not leave a pulsed valve travelling without its stop timer
    await entry.runtime_data.coordinator.async_stop()

    return await hass.config_entries.async_unload_platforms(entry, PLATFORMS)


async def async_reload_entry(
    hass: HomeAssistant,
    entry: MixerControllerConfigEntry,
) -> None:
    """Reload config entry."""
    await hass.config_entries.async_reload(entry.entry_id)


__all__ = [
    "DOMAIN",
    "async_setup_entry",
    "async_unload_entry",
]
