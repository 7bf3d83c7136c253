"""Define the SkstackMeterCoordinator class."""

import logging
import threading
from typing import Any, Mapping

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator

from .const import DEFAULT_REQUEST_INTERVAL, DEVICE_NAME
from .metrics import SessionMetrics
from .reading import MeterReading
from .session import SessionController, SessionState
from .transport import SerialTransport

_LOGGER = logging.getLogger(__name__)


class SkstackMeterCoordinator(DataUpdateCoordinator[Mapping[str, Any]]):
    """Coordinator that receives readings pushed by the meter session.

    The session runs in its own thread; readings and state changes are
    handed to the event loop and published with ``async_set_updated_data``.
    There is no polling.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
        route_b_id: str,
        route_b_pwd: str,
        serial_port: str,
        request_interval: int = DEFAULT_REQUEST_INTERVAL,
    ) -> None:
        """Initialize the coordinator.

        Args:
            hass: HomeAssistant instance
            config_entry: Entry this coordinator belongs to
            route_b_id: B-route ID
            route_b_pwd: B-route password
            serial_port: Serial port device path or pyserial URL
            request_interval: Seconds between energy requests
        """
        super().__init__(hass, _LOGGER, config_entry=config_entry, name=DEVICE_NAME)

        self.serial_port = serial_port
        self.metrics = SessionMetrics()
        self.session = SessionController(
            self._open_transport,
            route_b_id,
            route_b_pwd,
            self.metrics,
            self._handle_reading,
            self._handle_state_change,
            request_interval=request_interval,
        )
        self._latest: dict[str, Any] = {"session_state": SessionState.STOPPED}
        self._thread: threading.Thread | None = None

    def _open_transport(self) -> SerialTransport:
        return SerialTransport.open(self.serial_port)

    async def async_start(self) -> None:
        """Publish the initial state and start the session thread."""
        self.async_set_updated_data(dict(self._latest))
        _LOGGER.info("Starting meter session on %s", self.serial_port)
        self._thread = threading.Thread(
            target=self.session.run_forever, name="skstack-session", daemon=True
        )
        self._thread.start()

    async def async_close(self) -> None:
        """Stop the session and wait for its thread to finish."""
        self.session.stop()
        if self._thread is not None:
            await self.hass.async_add_executor_job(self._thread.join)
            self._thread = None

    async def _async_update_data(self) -> Mapping[str, Any]:
        """Return the latest pushed data; the meter is never polled."""
        return dict(self._latest)

    def _handle_reading(self, reading: MeterReading) -> None:
        """Called from the session thread."""
        self.hass.loop.call_soon_threadsafe(self._async_handle_reading, reading)

    def _handle_state_change(self, state: SessionState) -> None:
        """Called from the session thread."""
        self.hass.loop.call_soon_threadsafe(self._async_handle_state_change, state)

    @callback
    def _async_handle_reading(self, reading: MeterReading) -> None:
        self._latest["e7_power"] = reading.power
        self._latest["e8_current"] = reading.current
        self._latest["r_phase_current"] = reading.r_phase_current
        self._latest["t_phase_current"] = reading.t_phase_current
        self._latest["power_timestamp"] = reading.timestamp.isoformat()
        self.async_set_updated_data(dict(self._latest))

    @callback
    def _async_handle_state_change(self, state: SessionState) -> None:
        self._latest["session_state"] = state
        self.async_set_updated_data(dict(self._latest))
