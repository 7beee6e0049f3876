"""Base entity class for Mixing Valve Flow Controller."""

from __future__ import annotations

from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import CONF_CONTROLLER_ID
from .coordinator import MixerControllerDataUpdateCoordinator
from .device import get_controller_device_info


class MixerControllerEntity(CoordinatorEntity[MixerControllerDataUpdateCoordinator]):
    """Base class for Mixing Valve Flow Controller entities."""

    _attr_has_entity_name = True

    def __init__(
        self,
        coordinator: MixerControllerDataUpdateCoordinator,
        key: str,
    ) -> None:
        """Initialize the entity."""
        super().__init__(coordinator)
        controller_id = coordinator.config_entry.data.get(CONF_CONTROLLER_ID, "")
        self._attr_unique_id = f"{controller_id}_{key}"
        self._attr_device_info = get_controller_device_info(coordinator)
