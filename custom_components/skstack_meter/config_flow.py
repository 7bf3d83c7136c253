"""Config Flow for the SKSTACK-IP Smart Meter.

This implements the UI wizard to let user input B-route ID, password and
serial port in Home Assistant's "Integrations" page.
"""

from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import callback
from homeassistant.data_entry_flow import FlowResult

from .const import (
    CONF_REQUEST_INTERVAL,
    CONF_ROUTE_B_ID,
    CONF_ROUTE_B_PWD,
    CONF_SERIAL_PORT,
    DEFAULT_REQUEST_INTERVAL,
    DEFAULT_SERIAL_PORT,
    DEVICE_NAME,
    DOMAIN,
    MAX_REQUEST_INTERVAL,
    MIN_REQUEST_INTERVAL,
    ROUTE_B_ID_LENGTH,
    ROUTE_B_PWD_MAX_LENGTH,
)

# We define the user step schema
STEP_USER_DATA_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_ROUTE_B_ID): str,
        vol.Required(CONF_ROUTE_B_PWD): str,
        vol.Optional(CONF_SERIAL_PORT, default=DEFAULT_SERIAL_PORT): str,
    }
)


def _is_alphanumeric(value: str) -> bool:
    return value.isascii() and value.isalnum()


def validate_credentials(user_input: dict[str, Any]) -> dict[str, str]:
    """Check the B-route ID and password; return form errors keyed by field."""
    errors: dict[str, str] = {}

    route_b_id = user_input[CONF_ROUTE_B_ID]
    if len(route_b_id) != ROUTE_B_ID_LENGTH or not _is_alphanumeric(route_b_id):
        errors[CONF_ROUTE_B_ID] = "invalid_route_b_id"

    route_b_pwd = user_input[CONF_ROUTE_B_PWD]
    if not 1 <= len(route_b_pwd) <= ROUTE_B_PWD_MAX_LENGTH or not _is_alphanumeric(
        route_b_pwd
    ):
        errors[CONF_ROUTE_B_PWD] = "invalid_route_b_pwd"

    return errors


class OptionsFlowHandler(config_entries.OptionsFlow):
    """Handle options flow for the SKSTACK-IP Smart Meter."""

    def __init__(self, config_entry: config_entries.ConfigEntry) -> None:
        """Initialize options flow."""
        super().__init__()
        self.entry = config_entry

    async def async_step_init(self, user_input=None) -> FlowResult:
        """Manage the options."""
        errors = {}

        if user_input is not None:
            try:
                interval = int(user_input[CONF_REQUEST_INTERVAL])
            except ValueError:
                errors[CONF_REQUEST_INTERVAL] = "invalid_request_interval"
            else:
                if not MIN_REQUEST_INTERVAL <= interval <= MAX_REQUEST_INTERVAL:
                    errors[CONF_REQUEST_INTERVAL] = "invalid_request_interval"
                else:
                    return self.async_create_entry(
                        title="", data={CONF_REQUEST_INTERVAL: interval}
                    )

        current = self.entry.options.get(
            CONF_REQUEST_INTERVAL, DEFAULT_REQUEST_INTERVAL
        )
        schema = {
            vol.Optional(CONF_REQUEST_INTERVAL, default=str(current)): str,
        }

        return self.async_show_form(
            step_id="init",
            data_schema=vol.Schema(schema),
            errors=errors,
        )


class SkstackMeterConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for the SKSTACK-IP Smart Meter."""

    VERSION = 1

    async def async_step_user(self, user_input=None) -> FlowResult:
        """Handle the initial step."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = validate_credentials(user_input)
            if not errors:
                unique_id = user_input[CONF_ROUTE_B_ID]
                await self.async_set_unique_id(unique_id)
                self._abort_if_unique_id_configured()
                return self.async_create_entry(
                    title=DEVICE_NAME,
                    data=user_input,
                )

        return self.async_show_form(
            step_id="user",
            data_schema=STEP_USER_DATA_SCHEMA,
            errors=errors,
        )

    async def async_step_reconfigure(
        self,
        user_input: dict[str, str] | None = None,
    ) -> FlowResult:
        """Handle reconfiguration of the integration."""
        errors: dict[str, str] = {}
        current_entry = self._get_reconfigure_entry()

        if user_input is not None:
            errors = validate_credentials(user_input)
            if not errors:
                await self.async_set_unique_id(user_input[CONF_ROUTE_B_ID])
                self._abort_if_unique_id_mismatch()
                return self.async_update_reload_and_abort(
                    current_entry, data=user_input
                )

        current_data = current_entry.data
        reconfigure_schema = vol.Schema(
            {
                vol.Required(
                    CONF_ROUTE_B_ID, default=current_data.get(CONF_ROUTE_B_ID, "")
                ): str,
                vol.Required(
                    CONF_ROUTE_B_PWD, default=current_data.get(CONF_ROUTE_B_PWD, "")
                ): str,
                vol.Optional(
                    CONF_SERIAL_PORT,
                    default=current_data.get(CONF_SERIAL_PORT, DEFAULT_SERIAL_PORT),
                ): str,
            }
        )

        return self.async_show_form(
            step_id="reconfigure",
            data_schema=reconfigure_schema,
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> OptionsFlowHandler:
        """Get the options flow."""
        return OptionsFlowHandler(config_entry)
