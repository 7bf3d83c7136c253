"""Connection bring-up: reset, credentials, scan, join and PANA wait."""

from __future__ import annotations

import logging
import queue
import time
from enum import StrEnum

from .command import (
    SREG_CHANNEL,
    SREG_PAN_ID,
    ActiveScan,
    Command,
    Join,
    Reset,
    ResolveAddress,
    SetPassword,
    SetRouteBId,
    WriteRegister,
)
from .const import DEFAULT_JOIN_TIMEOUT, DEFAULT_SCAN_DURATION, DEFAULT_SCAN_TIMEOUT
from .dispatcher import ResponseQueue
from .errors import (
    HandshakeTimeoutError,
    PanaAuthenticationError,
    PeerNotFoundError,
    ProtocolMismatchError,
)
from .response import (
    EVENT_PANA_CONNECTED,
    EVENT_PANA_FAILED,
    EVENT_SCAN_COMPLETE,
    EPanDesc,
    Event,
    PanDesc,
    Response,
    SkJoin,
    SkLl64,
    SkReset,
    SkScan,
    SkSetPwd,
    SkSetRbid,
    SkSreg,
)
from .transport import TransportWriter

_LOGGER = logging.getLogger(__name__)


class BringUpStep(StrEnum):
    """Named steps of the bring-up sequence."""

    RESET = "reset"
    SET_ID = "set_id"
    SET_PASSWORD = "set_password"
    SCAN = "scan"
    SET_CHANNEL = "set_channel"
    SET_PAN_ID = "set_pan_id"
    RESOLVE_ADDRESS = "resolve_address"
    JOIN = "join"
    AUTHENTICATE = "authenticate"


class ConnectionStateMachine:
    """Drive the module from reset to an authenticated PANA session.

    Each step writes one command and blocks on the next queued response.
    The first response that is not the expected one aborts the sequence;
    there is no partial resume.
    """

    def __init__(
        self,
        writer: TransportWriter,
        responses: ResponseQueue,
        route_b_id: str,
        route_b_pwd: str,
        scan_duration: int = DEFAULT_SCAN_DURATION,
        scan_timeout: float = DEFAULT_SCAN_TIMEOUT,
        join_timeout: float = DEFAULT_JOIN_TIMEOUT,
    ) -> None:
        self._writer = writer
        self._responses = responses
        self._route_b_id = route_b_id
        self._route_b_pwd = route_b_pwd
        self._scan_duration = scan_duration
        self._scan_timeout = scan_timeout
        self._join_timeout = join_timeout

    def run(self) -> str:
        """Run the full sequence and return the peer's IPv6 address."""
        self._exchange(BringUpStep.RESET, Reset(), SkReset())
        self._exchange(
            BringUpStep.SET_ID, SetRouteBId(self._route_b_id), SkSetRbid(self._route_b_id)
        )
        self._exchange(
            BringUpStep.SET_PASSWORD,
            SetPassword(self._route_b_pwd),
            SkSetPwd(length=len(self._route_b_pwd), pwd=self._route_b_pwd),
        )

        pan_desc = self.active_scan()
        _LOGGER.info(
            "Channel scan complete: Channel=%X, Pan ID=%04X, Addr=%s, LQI=%X",
            pan_desc.channel,
            pan_desc.pan_id,
            pan_desc.addr,
            pan_desc.lqi,
        )

        self._exchange(
            BringUpStep.SET_CHANNEL,
            WriteRegister(SREG_CHANNEL, pan_desc.channel),
            SkSreg(SREG_CHANNEL, pan_desc.channel),
        )
        self._exchange(
            BringUpStep.SET_PAN_ID,
            WriteRegister(SREG_PAN_ID, pan_desc.pan_id),
            SkSreg(SREG_PAN_ID, pan_desc.pan_id),
        )

        response = self._request(
            BringUpStep.RESOLVE_ADDRESS, ResolveAddress(pan_desc.addr)
        )
        if not isinstance(response, SkLl64):
            raise ProtocolMismatchError(BringUpStep.RESOLVE_ADDRESS, "SkLl64", response)
        ipaddr = response.ipaddr
        _LOGGER.debug("IPv6 address: %s", ipaddr)

        self._exchange(BringUpStep.JOIN, Join(ipaddr), SkJoin(ipaddr))
        self.wait_for_connect()
        _LOGGER.info("Connected to PANA: %s", ipaddr)
        return ipaddr

    def active_scan(self) -> PanDesc:
        """Scan all channels and return the last PAN descriptor seen."""
        step = BringUpStep.SCAN
        response = self._request(step, ActiveScan(self._scan_duration))
        if not isinstance(response, SkScan):
            raise ProtocolMismatchError(step, "SkScan", response)

        candidate: PanDesc | None = None
        deadline = time.monotonic() + self._scan_timeout
        while True:
            response = self._receive_until(step, deadline)
            if isinstance(response, EPanDesc):
                _LOGGER.debug("PAN descriptor: %s", response.pan_desc)
                candidate = response.pan_desc
            elif isinstance(response, Event) and response.num == EVENT_SCAN_COMPLETE:
                if candidate is None:
                    raise PeerNotFoundError(step)
                return candidate

    def wait_for_connect(self) -> None:
        """Wait for EVENT 25 (connected) or EVENT 24 (failed)."""
        step = BringUpStep.AUTHENTICATE
        _LOGGER.debug("Waiting for PANA authentication result")
        deadline = time.monotonic() + self._join_timeout
        while True:
            response = self._receive_until(step, deadline)
            if not isinstance(response, Event):
                continue
            if response.num == EVENT_PANA_CONNECTED:
                return
            if response.num == EVENT_PANA_FAILED:
                raise PanaAuthenticationError(
                    step, "PANA authentication failed (EVENT 24)", response
                )

    def _request(self, step: BringUpStep, command: Command) -> Response:
        _LOGGER.debug("Bring-up step %s", step)
        self._writer.send(command)
        return self._responses.get()

    def _exchange(self, step: BringUpStep, command: Command, expected: Response) -> None:
        response = self._request(step, command)
        if response != expected:
            raise ProtocolMismatchError(step, repr(expected), response)

    def _receive_until(self, step: BringUpStep, deadline: float) -> Response:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise HandshakeTimeoutError(step, "timed out")
        try:
            return self._responses.get(timeout=remaining)
        except queue.Empty:
            raise HandshakeTimeoutError(step, "timed out") from None
