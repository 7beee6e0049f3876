"""Config flow for Mixing Valve Flow Controller."""

from __future__ import annotations

from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import callback
from homeassistant.helpers import selector
from slugify import slugify

from .const import (
    CONF_ACTUATION_STYLE,
    CONF_BUFFER_SENSOR,
    CONF_CONTROLLER_ID,
    CONF_COVER_ENTITY,
    CONF_FLOW_SENSOR,
    CONF_NAME,
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
    UI_EMERGENCY_TEMPERATURE,
    UI_GAIN,
    UI_RECLOSE_THRESHOLD,
    UI_SETPOINT,
    UI_TIMING_FULL_TRAVEL_TIME,
    UI_TIMING_INTERLOCK_INTERVAL,
    UI_TIMING_MAX_DT,
    UI_TIMING_MIN_MOVE_PAUSE,
    UI_TIMING_PID_INTERVAL,
    UI_TIMING_SENSOR_INTERVAL,
    ActuationStyle,
)

PARAMETER_ENTITY_DOMAINS = ["number", "input_number", "sensor"]


def _number_selector(
    constraints: dict[str, float], unit: str | None = None
) -> selector.NumberSelector:
    """Build a box-mode number selector from UI constraints."""
    return selector.NumberSelector(
        selector.NumberSelectorConfig(
            min=constraints["min"],
            max=constraints["max"],
            step=constraints["step"],
            unit_of_measurement=unit,
            mode=selector.NumberSelectorMode.BOX,
        )
    )


def get_timing_schema(timing: dict[str, Any]) -> vol.Schema:
    """Get schema for timing configuration with current values as defaults."""
    return vol.Schema(
        {
            vol.Required(
                "sensor_interval", default=timing["sensor_interval"]
            ): _number_selector(UI_TIMING_SENSOR_INTERVAL, "s"),
            vol.Required(
                "interlock_interval", default=timing["interlock_interval"]
            ): _number_selector(UI_TIMING_INTERLOCK_INTERVAL, "s"),
            vol.Required(
                "pid_interval", default=timing["pid_interval"]
            ): _number_selector(UI_TIMING_PID_INTERVAL, "s"),
            vol.Required(
                "min_move_pause", default=timing["min_move_pause"]
            ): _number_selector(UI_TIMING_MIN_MOVE_PAUSE, "s"),
            vol.Required(
                "full_travel_time", default=timing["full_travel_time"]
            ): _number_selector(UI_TIMING_FULL_TRAVEL_TIME, "s"),
            vol.Required("max_dt", default=timing["max_dt"]): _number_selector(
                UI_TIMING_MAX_DT, "s"
            ),
        }
    )


def get_safety_schema(safety: dict[str, Any]) -> vol.Schema:
    """Get schema for interlock thresholds with current values as defaults."""
    return vol.Schema(
        {
            vol.Required(
                "emergency_min", default=safety["emergency_min"]
            ): _number_selector(UI_EMERGENCY_TEMPERATURE, "°C"),
            vol.Required(
                "emergency_ok", default=safety["emergency_ok"]
            ): _number_selector(UI_EMERGENCY_TEMPERATURE, "°C"),
            vol.Required(
                "reclose_threshold", default=safety["reclose_threshold"]
            ): _number_selector(UI_RECLOSE_THRESHOLD, "%"),
        }
    )


def get_control_schema(control: dict[str, Any]) -> vol.Schema:
    """Get schema for setpoint and gains with current values as defaults."""
    schema: dict[Any, Any] = {
        vol.Required("setpoint", default=control["setpoint"]): _number_selector(
            UI_SETPOINT, "°C"
        ),
    }
    for gain in GAIN_NAMES:
        schema[vol.Required(gain, default=control[gain])] = _number_selector(UI_GAIN)

    # Optional entities override the fixed values on every PID step
    for name in ("setpoint", *GAIN_NAMES):
        key = f"{name}_entity"
        current = control.get(key)
        marker = (
            vol.Optional(key, description={"suggested_value": current})
            if current
            else vol.Optional(key)
        )
        schema[marker] = selector.EntitySelector(
            selector.EntitySelectorConfig(domain=PARAMETER_ENTITY_DOMAINS)
        )
    return vol.Schema(schema)


class MixerControllerFlowHandler(config_entries.ConfigFlow, domain=DOMAIN):
    """Config flow for Mixing Valve Flow Controller."""

    VERSION = 1

    async def async_step_user(
        self,
        user_input: dict[str, Any] | None = None,
    ) -> config_entries.ConfigFlowResult:
        """Handle a flow initialized by the user."""
        errors: dict[str, str] = {}

        if user_input is not None:
            controller_id = slugify(user_input[CONF_NAME])

            # Check for duplicate controller_id
            await self.async_set_unique_id(controller_id)
            self._abort_if_unique_id_configured()

            LOGGER.debug("Creating mixer controller entry: %s", controller_id)

            return self.async_create_entry(
                title=user_input[CONF_NAME],
                data={
                    CONF_NAME: user_input[CONF_NAME],
                    CONF_CONTROLLER_ID: controller_id,
                    CONF_COVER_ENTITY: user_input[CONF_COVER_ENTITY],
                    CONF_FLOW_SENSOR: user_input[CONF_FLOW_SENSOR],
                    CONF_BUFFER_SENSOR: user_input.get(CONF_BUFFER_SENSOR),
                    CONF_ACTUATION_STYLE: user_input.get(
                        CONF_ACTUATION_STYLE, ActuationStyle.ABSOLUTE
                    ),
                    CONF_QUANTIZE_EVEN: user_input.get(CONF_QUANTIZE_EVEN, False),
                },
                options={
                    OPT_CONTROL: dict(DEFAULT_CONTROL),
                    OPT_TIMING: dict(DEFAULT_TIMING),
                    OPT_SAFETY: dict(DEFAULT_SAFETY),
                },
            )

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_NAME): selector.TextSelector(
                        selector.TextSelectorConfig(type=selector.TextSelectorType.TEXT)
                    ),
                    vol.Required(CONF_COVER_ENTITY): selector.EntitySelector(
                        selector.EntitySelectorConfig(domain="cover")
                    ),
                    vol.Required(CONF_FLOW_SENSOR): selector.EntitySelector(
                        selector.EntitySelectorConfig(domain="sensor")
                    ),
                    vol.Optional(CONF_BUFFER_SENSOR): selector.EntitySelector(
                        selector.EntitySelectorConfig(domain="sensor")
                    ),
                    vol.Optional(
                        CONF_ACTUATION_STYLE, default=ActuationStyle.ABSOLUTE
                    ): selector.SelectSelector(
                        selector.SelectSelectorConfig(
                            options=[
                                selector.SelectOptionDict(
                                    value=ActuationStyle.ABSOLUTE,
                                    label="Absolute position",
                                ),
                                selector.SelectOptionDict(
                                    value=ActuationStyle.PULSED,
                                    label="Timed open/close",
                                ),
                            ]
                        )
                    ),
                    vol.Optional(
                        CONF_QUANTIZE_EVEN, default=False
                    ): selector.BooleanSelector(),
                }
            ),
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,  # noqa: ARG004
    ) -> MixerControllerOptionsFlowHandler:
        """Get the options flow for this handler."""
        return MixerControllerOptionsFlowHandler()


class MixerControllerOptionsFlowHandler(config_entries.OptionsFlow):
    """Handle options flow for Mixing Valve Flow Controller."""

    async def async_step_init(
        self,
        _user_input: dict[str, Any] | None = None,
    ) -> config_entries.ConfigFlowResult:
        """Manage options."""
        menu_options = [OPT_CONTROL, OPT_TIMING]
        if self.config_entry.data.get(CONF_BUFFER_SENSOR):
            menu_options.append(OPT_SAFETY)
        return self.async_show_menu(step_id="init", menu_options=menu_options)

    def _save_section(
        self, section: str, values: dict[str, Any]
    ) -> config_entries.ConfigFlowResult:
        """Store one options section, keeping the others."""
        return self.async_create_entry(
            title="",
            data={**self.config_entry.options, section: values},
        )

    async def async_step_control(
        self,
        user_input: dict[str, Any] | None = None,
    ) -> config_entries.ConfigFlowResult:
        """Configure setpoint, gains and their optional source entities."""
        if user_input is not None:
            return self._save_section(OPT_CONTROL, user_input)

        control = {
            **DEFAULT_CONTROL,
            **self.config_entry.options.get(OPT_CONTROL, {}),
        }
        return self.async_show_form(
            step_id=OPT_CONTROL,
            data_schema=get_control_schema(control),
        )

    async def async_step_timing(
        self,
        user_input: dict[str, Any] | None = None,
    ) -> config_entries.ConfigFlowResult:
        """Configure loop intervals and actuator timing."""
        if user_input is not None:
            return self._save_section(
                OPT_TIMING, {key: int(value) for key, value in user_input.items()}
            )

        timing = {**DEFAULT_TIMING, **self.config_entry.options.get(OPT_TIMING, {})}
        return self.async_show_form(
            step_id=OPT_TIMING,
            data_schema=get_timing_schema(timing),
        )

    async def async_step_safety(
        self,
        user_input: dict[str, Any] | None = None,
    ) -> config_entries.ConfigFlowResult:
        """Configure the buffer interlock thresholds."""
        errors: dict[str, str] = {}

        if user_input is not None:
            if user_input["emergency_ok"] <= user_input["emergency_min"]:
                errors["base"] = "invalid_thresholds"
            else:
                return self._save_section(
                    OPT_SAFETY,
                    {
                        **user_input,
                        "reclose_threshold": int(user_input["reclose_threshold"]),
                    },
                )

        safety = {
            **DEFAULT_SAFETY,
            **(user_input or self.config_entry.options.get(OPT_SAFETY, {})),
        }
        return self.async_show_form(
            step_id=OPT_SAFETY,
            data_schema=get_safety_schema(safety),
            errors=errors,
        )
