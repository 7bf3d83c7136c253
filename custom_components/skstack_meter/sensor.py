"""Sensor platform for the SKSTACK-IP Smart Meter.

Defines the sensor entities that show E7/E8 data pushed by the meter
session, plus a diagnostic sensor with the session state.
"""

import logging

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EntityCategory, UnitOfElectricCurrent, UnitOfPower
from homeassistant.core import HomeAssistant
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import (
    DEVICE_MANUFACTURER,
    DEVICE_MODEL,
    DEVICE_NAME,
    DEVICE_UNIQUE_ID,
    DOMAIN,
)
from .coordinator import SkstackMeterCoordinator
from .session import SessionState

_LOGGER = logging.getLogger(__name__)

SENSOR_TYPES: list[SensorEntityDescription] = [
    SensorEntityDescription(
        key="e7_power",
        translation_key="instantaneous_power",
        icon="mdi:flash",
        device_class=SensorDeviceClass.POWER,
        native_unit_of_measurement=UnitOfPower.WATT,
        state_class=SensorStateClass.MEASUREMENT,
    ),
    SensorEntityDescription(
        key="e8_current",
        translation_key="instantaneous_current",
        icon="mdi:current-ac",
        device_class=SensorDeviceClass.CURRENT,
        native_unit_of_measurement=UnitOfElectricCurrent.AMPERE,
        state_class=SensorStateClass.MEASUREMENT,
    ),
    SensorEntityDescription(
        key="session_state",
        translation_key="session_state",
        icon="mdi:lan-connect",
        device_class=SensorDeviceClass.ENUM,
        options=[state.value for state in SessionState],
        entity_category=EntityCategory.DIAGNOSTIC,
    ),
]


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up sensor entities from a config entry."""
    coordinator: SkstackMeterCoordinator = entry.runtime_data
    _LOGGER.debug("Setting up SKSTACK meter sensor platform")
    async_add_entities(
        SkstackMeterSensorEntity(coordinator, description)
        for description in SENSOR_TYPES
    )


class SkstackMeterSensorEntity(CoordinatorEntity[SkstackMeterCoordinator], SensorEntity):
    """Sensor entity whose value is read from coordinator.data."""

    _attr_has_entity_name = True

    def __init__(
        self,
        coordinator: SkstackMeterCoordinator,
        description: SensorEntityDescription,
    ) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator)
        self.entity_description = description
        self._attr_unique_id = f"{DEVICE_UNIQUE_ID}_{description.key}"
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, DEVICE_UNIQUE_ID)},
            name=DEVICE_NAME,
            manufacturer=DEVICE_MANUFACTURER,
            model=DEVICE_MODEL,
        )

    @property
    def native_value(self) -> float | str | None:
        """Current sensor reading."""
        data = self.coordinator.data
        if not data:
            return None
        value = data.get(self.entity_description.key)
        if value is None:
            return None

        key = self.entity_description.key
        if key == "session_state":
            return str(value)
        if key == "e7_power":
            return int(value)
        return round(float(value), 1)

    @property
    def extra_state_attributes(self) -> dict[str, str]:
        """Return entity specific state attributes."""
        attributes: dict[str, str] = {}
        data = self.coordinator.data
        if not data:
            return attributes

        key = self.entity_description.key
        if key == "e8_current":
            if data.get("r_phase_current") is not None:
                attributes["r_phase_current"] = f"{data['r_phase_current']} A"
            if data.get("t_phase_current") is not None:
                attributes["t_phase_current"] = f"{data['t_phase_current']} A"

        if key in ("e7_power", "e8_current") and data.get("power_timestamp"):
            attributes["last_update"] = data["power_timestamp"]

        return attributes
