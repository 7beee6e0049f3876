"""Device helpers for Mixing Valve Flow Controller."""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.helpers.device_registry import DeviceInfo

from .const import CONF_NAME, DOMAIN, VERSION

if TYPE_CHECKING:
    from .coordinator import MixerControllerDataUpdateCoordinator


def get_controller_device_info(
    coordinator: MixerControllerDataUpdateCoordinator,
) -> DeviceInfo:
    """Get device info for the mixer controller device."""
    return DeviceInfo(
        identifiers={(DOMAIN, coordinator.config_entry.entry_id)},
        name=coordinator.config_entry.data.get(CONF_NAME, "Mixer Controller"),
        manufacturer="Mixer Controller",
        model=f"Mixing Valve ({coordinator.controller.config.actuation_style})",
        sw_version=VERSION,
    )
