"""Custom types for mixer_controller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry

    from .coordinator import MixerControllerDataUpdateCoordinator


type MixerControllerConfigEntry = ConfigEntry[MixerControllerData]


@dataclass
class MixerControllerData:
    """Data for the Mixing Valve Flow Controller integration."""

    coordinator: MixerControllerDataUpdateCoordinator
