"""Binary sensor platform for Mixing Valve Flow Controller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from homeassistant.components.binary_sensor import (
    BinarySensorDeviceClass,
    BinarySensorEntity,
    BinarySensorEntityDescription,
)

from .entity import MixerControllerEntity

if TYPE_CHECKING:
    from collections.abc import Callable

    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddConfigEntryEntitiesCallback

    from .coordinator import MixerControllerDataUpdateCoordinator
    from .data import MixerControllerConfigEntry


@dataclass(frozen=True, kw_only=True)
class MixerBinarySensorEntityDescription(BinarySensorEntityDescription):
    """Describes mixer controller binary sensor entity."""

    value_fn: Callable[[dict[str, Any]], bool]


EMERGENCY_SENSOR = MixerBinarySensorEntityDescription(
    key="emergency",
    translation_key="emergency",
    device_class=BinarySensorDeviceClass.PROBLEM,
    value_fn=lambda data: data.get("emergency_active", False),
)

MOVING_SENSOR = MixerBinarySensorEntityDescription(
    key="moving",
    translation_key="moving",
    device_class=BinarySensorDeviceClass.MOVING,
    value_fn=lambda data: data.get("operating_state") == "moving",
)


async def async_setup_entry(
    _hass: HomeAssistant,
    entry: MixerControllerConfigEntry,
    async_add_entities: AddConfigEntryEntitiesCallback,
) -> None:
    """Set up the binary sensor platform."""
    coordinator = entry.runtime_data.coordinator

    descriptions = [MOVING_SENSOR]
    # Only create the emergency sensor if the buffer interlock is configured
    if coordinator.controller.config.interlock_enabled:
        descriptions.append(EMERGENCY_SENSOR)

    async_add_entities(
        MixerBinarySensor(coordinator=coordinator, description=description)
        for description in descriptions
    )


class MixerBinarySensor(MixerControllerEntity, BinarySensorEntity):
    """Binary sensor entity for mixer controller status."""

    entity_description: MixerBinarySensorEntityDescription

    def __init__(
        self,
        coordinator: MixerControllerDataUpdateCoordinator,
        description: MixerBinarySensorEntityDescription,
    ) -> None:
        """Initialize the binary sensor entity."""
        super().__init__(coordinator, description.key)
        self.entity_description = description

    @property
    def is_on(self) -> bool:
        """Return the sensor state."""
        return self.entity_description.value_fn(self.coordinator.data)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return the operating state alongside the flag."""
        return {
            "operating_state": self.coordinator.data.get("operating_state"),
            "previous_state": self.coordinator.data.get("previous_state"),
        }
