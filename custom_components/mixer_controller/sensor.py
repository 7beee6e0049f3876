"""Sensor platform for Mixing Valve Flow Controller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.const import PERCENTAGE, EntityCategory, UnitOfTemperature

from .const import OperatingState
from .entity import MixerControllerEntity

if TYPE_CHECKING:
    from collections.abc import Callable

    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddConfigEntryEntitiesCallback

    from .coordinator import MixerControllerDataUpdateCoordinator
    from .data import MixerControllerConfigEntry


@dataclass(frozen=True, kw_only=True)
class MixerSensorEntityDescription(SensorEntityDescription):
    """Describes mixer controller sensor entity."""

    value_fn: Callable[[dict[str, Any]], float | str | None]


def _temperature(key: str) -> MixerSensorEntityDescription:
    """Describe a temperature sensor reading one data key."""
    return MixerSensorEntityDescription(
        key=key,
        translation_key=key,
        native_unit_of_measurement=UnitOfTemperature.CELSIUS,
        device_class=SensorDeviceClass.TEMPERATURE,
        state_class=SensorStateClass.MEASUREMENT,
        suggested_display_precision=1,
        value_fn=lambda data: data.get(key),
    )


def _pid_term(key: str) -> MixerSensorEntityDescription:
    """Describe a diagnostic PID term sensor."""
    return MixerSensorEntityDescription(
        key=f"pid_{key}",
        translation_key=f"pid_{key}",
        native_unit_of_measurement=PERCENTAGE,
        state_class=SensorStateClass.MEASUREMENT,
        entity_category=EntityCategory.DIAGNOSTIC,
        entity_registry_visible_default=False,
        suggested_display_precision=2,
        value_fn=lambda data: data.get(f"{key}_term"),
    )


SENSORS: tuple[MixerSensorEntityDescription, ...] = (
    MixerSensorEntityDescription(
        key="operating_state",
        translation_key="operating_state",
        device_class=SensorDeviceClass.ENUM,
        options=[state.value for state in OperatingState],
        value_fn=lambda data: data.get("operating_state"),
    ),
    MixerSensorEntityDescription(
        key="position",
        translation_key="position",
        native_unit_of_measurement=PERCENTAGE,
        state_class=SensorStateClass.MEASUREMENT,
        value_fn=lambda data: data.get("position"),
    ),
    MixerSensorEntityDescription(
        key="target_position",
        translation_key="target_position",
        native_unit_of_measurement=PERCENTAGE,
        state_class=SensorStateClass.MEASUREMENT,
        value_fn=lambda data: data.get("target_position"),
    ),
    _temperature("flow_temperature"),
    _temperature("setpoint"),
    # A temperature difference, so no unit conversion applies
    MixerSensorEntityDescription(
        key="pid_error",
        translation_key="pid_error",
        native_unit_of_measurement=UnitOfTemperature.CELSIUS,
        state_class=SensorStateClass.MEASUREMENT,
        entity_category=EntityCategory.DIAGNOSTIC,
        suggested_display_precision=2,
        value_fn=lambda data: data.get("error"),
    ),
    _pid_term("p"),
    _pid_term("i"),
    _pid_term("d"),
)

BUFFER_SENSOR = _temperature("buffer_temperature")


async def async_setup_entry(
    _hass: HomeAssistant,
    entry: MixerControllerConfigEntry,
    async_add_entities: AddConfigEntryEntitiesCallback,
) -> None:
    """Set up the sensor platform."""
    coordinator = entry.runtime_data.coordinator

    descriptions = list(SENSORS)
    if coordinator.controller.config.interlock_enabled:
        descriptions.append(BUFFER_SENSOR)

    async_add_entities(
        MixerSensor(coordinator=coordinator, description=description)
        for description in descriptions
    )


class MixerSensor(MixerControllerEntity, SensorEntity):
    """Sensor entity for mixer controller values."""

    entity_description: MixerSensorEntityDescription

    def __init__(
        self,
        coordinator: MixerControllerDataUpdateCoordinator,
        description: MixerSensorEntityDescription,
    ) -> None:
        """Initialize the sensor entity."""
        super().__init__(coordinator, description.key)
        self.entity_description = description

    @property
    def native_value(self) -> float | str | None:
        """Return the sensor value."""
        return self.entity_description.value_fn(self.coordinator.data)

    @property
    def available(self) -> bool:
        """Return True if the coordinator is up and the value is known."""
        return super().available and self.native_value is not None
