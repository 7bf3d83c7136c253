"""Diagnostics support for the SKSTACK-IP Smart Meter."""

from __future__ import annotations

from typing import Any

from homeassistant.components.diagnostics import async_redact_data
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .const import CONF_ROUTE_B_ID, CONF_ROUTE_B_PWD, CONF_SERIAL_PORT

TO_REDACT = [
    CONF_ROUTE_B_ID,
    CONF_ROUTE_B_PWD,
    CONF_SERIAL_PORT,
]


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    coordinator = entry.runtime_data
    data = coordinator.data or {}
    session = coordinator.session

    sensor_data = {}
    if data.get("e7_power") is not None:
        sensor_data["power"] = data["e7_power"]
    if data.get("e8_current") is not None:
        sensor_data["current"] = data["e8_current"]
        sensor_data["r_phase_current"] = data.get("r_phase_current")
        sensor_data["t_phase_current"] = data.get("t_phase_current")
    if data.get("power_timestamp") is not None:
        sensor_data["timestamp"] = data["power_timestamp"]

    return {
        "entry": {
            "entry_id": entry.entry_id,
            "version": entry.version,
            "title": entry.title,
            "domain": entry.domain,
            "state": entry.state,
        },
        "data": async_redact_data(dict(entry.data), TO_REDACT),
        "options": dict(entry.options),
        "sensor_data": sensor_data,
        "session": {
            "state": str(session.state),
            "last_error": session.last_error,
        },
        "metrics": coordinator.metrics.snapshot(),
    }
