"""SKSTACK-IP Smart Meter Integration.

This file is typically used to set up the integration at runtime:
 - async_setup_entry: Called when user adds the integration
 - async_unload_entry: Called to remove it
"""

import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EVENT_HOMEASSISTANT_STOP, Platform
from homeassistant.core import Event, HomeAssistant

from .const import (
    CONF_REQUEST_INTERVAL,
    CONF_ROUTE_B_ID,
    CONF_ROUTE_B_PWD,
    CONF_SERIAL_PORT,
    DEFAULT_REQUEST_INTERVAL,
    DEFAULT_SERIAL_PORT,
)
from .coordinator import SkstackMeterCoordinator

_LOGGER = logging.getLogger(__name__)

PLATFORMS = [Platform.SENSOR]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up the SKSTACK-IP meter from a config entry."""
    data = entry.data
    serial_port = data.get(CONF_SERIAL_PORT, DEFAULT_SERIAL_PORT)
    request_interval = entry.options.get(CONF_REQUEST_INTERVAL, DEFAULT_REQUEST_INTERVAL)

    _LOGGER.info(
        "Setting up SKSTACK meter integration (entry_id: %s) with: serial_port=%s, request_interval=%s",
        entry.entry_id,
        serial_port,
        request_interval,
    )

    coordinator = SkstackMeterCoordinator(
        hass,
        entry,
        route_b_id=data[CONF_ROUTE_B_ID],
        route_b_pwd=data[CONF_ROUTE_B_PWD],
        serial_port=serial_port,
        request_interval=request_interval,
    )
    entry.runtime_data = coordinator

    # Set up cleanup on HA stop
    async def _async_cleanup(event: Event) -> None:
        """Stop the meter session when Home Assistant stops."""
        _LOGGER.info(
            "Cleaning up SKSTACK meter integration (entry_id: %s)", entry.entry_id
        )
        await coordinator.async_close()

    entry.async_on_unload(
        hass.bus.async_listen_once(EVENT_HOMEASSISTANT_STOP, _async_cleanup)
    )
    entry.async_on_unload(entry.add_update_listener(_async_update_listener))

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    await coordinator.async_start()

    _LOGGER.info("SKSTACK meter integration setup completed successfully")
    return True


async def _async_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload the entry when its options change."""
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload the config entry."""
    _LOGGER.info("Unloading SKSTACK meter integration (entry_id: %s)", entry.entry_id)

    coordinator: SkstackMeterCoordinator = entry.runtime_data
    await coordinator.async_close()

    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if not unload_ok:
        _LOGGER.warning("Failed to unload platforms properly")
    return unload_ok
