"""Session controller: bring-up, periodic energy requests and restarts."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from enum import StrEnum

from .bringup import ConnectionStateMachine
from .command import SendEnergyRequest
from .const import (
    DEFAULT_JOIN_TIMEOUT,
    DEFAULT_REQUEST_INTERVAL,
    DEFAULT_RESPONSE_TIMEOUT,
    DEFAULT_RESTART_COOLDOWN,
    DEFAULT_SCAN_DURATION,
    DEFAULT_SCAN_TIMEOUT,
)
from .dispatcher import Dispatcher, ResponseQueue
from .echonet import EpcLowVoltageSmartMeter
from .errors import SendFailedError, SessionClosedError, SkstackError
from .metrics import MetricsSink
from .reading import MeterReading, reading_from_frame
from .response import ERxUdp, SkSendTo
from .transport import SerialTransport, TransportWriter

_LOGGER = logging.getLogger(__name__)

DEFAULT_REQUEST_EPCS = (
    EpcLowVoltageSmartMeter.INSTANTANEOUS_ENERGY,
    EpcLowVoltageSmartMeter.INSTANTANEOUS_CURRENT,
)


class SessionState(StrEnum):
    """Lifecycle state of the meter session."""

    BRINGING_UP = "bringing_up"
    STEADY = "steady"
    COOLDOWN = "cooldown"
    STOPPED = "stopped"


class SessionController:
    """Run meter sessions until stopped.

    A session owns one transport, one response queue and one dispatcher
    thread. Any fatal error tears the whole session down; a fresh one is
    started after the restart cooldown.
    """

    def __init__(
        self,
        transport_factory: Callable[[], SerialTransport],
        route_b_id: str,
        route_b_pwd: str,
        metrics: MetricsSink,
        on_reading: Callable[[MeterReading], None],
        on_state_change: Callable[[SessionState], None] | None = None,
        *,
        request_interval: float = DEFAULT_REQUEST_INTERVAL,
        restart_cooldown: float = DEFAULT_RESTART_COOLDOWN,
        response_timeout: float = DEFAULT_RESPONSE_TIMEOUT,
        scan_duration: int = DEFAULT_SCAN_DURATION,
        scan_timeout: float = DEFAULT_SCAN_TIMEOUT,
        join_timeout: float = DEFAULT_JOIN_TIMEOUT,
        request_epcs: tuple[int, ...] = DEFAULT_REQUEST_EPCS,
    ) -> None:
        self._transport_factory = transport_factory
        self._route_b_id = route_b_id
        self._route_b_pwd = route_b_pwd
        self._metrics = metrics
        self._on_reading = on_reading
        self._on_state_change = on_state_change
        self._request_interval = request_interval
        self._restart_cooldown = restart_cooldown
        self._response_timeout = response_timeout
        self._scan_duration = scan_duration
        self._scan_timeout = scan_timeout
        self._join_timeout = join_timeout
        self._request_epcs = request_epcs

        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._writer: TransportWriter | None = None

        self.state = SessionState.STOPPED
        self.ipaddr: str | None = None
        self.last_error: str | None = None

    def run_forever(self) -> None:
        """Run sessions back to back until :meth:`stop` is called."""
        while not self._stop.is_set():
            try:
                self._run_session()
            except SkstackError as err:
                if self._stop.is_set():
                    break
                self.last_error = str(err)
                self._metrics.increment("session_failures")
                self._metrics.increment(f"failure_{err.kind}")
                _LOGGER.error("Meter session failed: %s", err)

            if self._stop.is_set():
                break
            self._set_state(SessionState.COOLDOWN)
            _LOGGER.debug("Restarting session in %s seconds", self._restart_cooldown)
            self._stop.wait(self._restart_cooldown)

        self._set_state(SessionState.STOPPED)

    def stop(self) -> None:
        """Ask the running session to end; safe to call from any thread."""
        self._stop.set()
        with self._lock:
            writer = self._writer
        if writer is not None:
            writer.close()

    def _set_state(self, state: SessionState) -> None:
        if state == self.state:
            return
        _LOGGER.debug("Session state: %s -> %s", self.state, state)
        self.state = state
        if self._on_state_change is not None:
            self._on_state_change(state)

    def _run_session(self) -> None:
        self._set_state(SessionState.BRINGING_UP)
        transport = self._transport_factory()
        reader, writer = transport.split()
        responses = ResponseQueue()
        dispatcher = Dispatcher(reader, responses, self._metrics)

        with self._lock:
            if self._stop.is_set():
                transport.close()
                return
            self._writer = writer

        self._metrics.increment("sessions_started")
        dispatcher.start()
        try:
            try:
                self.ipaddr = ConnectionStateMachine(
                    writer,
                    responses,
                    self._route_b_id,
                    self._route_b_pwd,
                    scan_duration=self._scan_duration,
                    scan_timeout=self._scan_timeout,
                    join_timeout=self._join_timeout,
                ).run()
                self._set_state(SessionState.STEADY)

                while not self._stop.is_set():
                    self._request_reading(writer, responses, self.ipaddr)
                    if self._stop.wait(self._request_interval):
                        break
            except SessionClosedError as err:
                # report what ended the reader rather than the closed queue
                if dispatcher.error is not None and not self._stop.is_set():
                    raise dispatcher.error from err
                raise
        finally:
            writer.close()
            dispatcher.join()
            transport.close()
            with self._lock:
                self._writer = None

    def _request_reading(
        self, writer: TransportWriter, responses: ResponseQueue, ipaddr: str
    ) -> None:
        """Send one energy request and publish the meter's answer, if any."""
        writer.send(SendEnergyRequest(ipaddr, self._request_epcs))

        sent = False
        deadline = time.monotonic() + self._response_timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                response = responses.get(timeout=remaining)
            except queue.Empty:
                break

            if isinstance(response, SkSendTo):
                if response.result != 0:
                    raise SendFailedError(response.result)
                sent = True
            elif isinstance(response, ERxUdp) and sent:
                reading = reading_from_frame(response.data)
                if reading is None:
                    continue
                self._metrics.increment("readings")
                self._metrics.set_gauge("instantaneous_power_watts", reading.power)
                self._on_reading(reading)
                return
            else:
                _LOGGER.debug("Ignoring response while waiting for reading: %r", response)

        self._metrics.increment("reading_timeouts")
        _LOGGER.warning(
            "No reading from meter within %s seconds", self._response_timeout
        )
