"""Tests for meter readings and the session controller."""

import threading

from custom_components.skstack_meter.echonet import (
    EOJ_HOUSING_LOW_VOLTAGE_SMART_METER,
    EOJ_MANAGEMENT_CONTROLLER,
    EDataFormat1,
    EchonetFrame,
    EHd,
    Esv,
    InvalidEData,
    Property,
)
from custom_components.skstack_meter.errors import TransportOpenError
from custom_components.skstack_meter.metrics import SessionMetrics
from custom_components.skstack_meter.reading import reading_from_frame
from custom_components.skstack_meter.session import SessionController, SessionState
from custom_components.skstack_meter.transport import SerialTransport

ROUTE_B_ID = "00112233445566778899AABBCCDDEEFF"
ROUTE_B_PWD = "0123456789AB"
METER_IP = b"FE80:0000:0000:0000:021D:1290:1234:5678"
LOCAL_IP = b"FE80:0000:0000:0000:021D:1290:0000:0001"


def meter_frame(power: int, current: bytes | None = None) -> EchonetFrame:
    props = [Property(0xE7, 4, power.to_bytes(4, "big", signed=True))]
    if current is not None:
        props.append(Property(0xE8, 4, current))
    return EchonetFrame(
        ehd=EHd(0x10, 0x81, 0x0001),
        edata=EDataFormat1(
            seoj=EOJ_HOUSING_LOW_VOLTAGE_SMART_METER,
            deoj=EOJ_MANAGEMENT_CONTROLLER,
            esv=Esv.GET_RES,
            opc=len(props),
            props=tuple(props),
        ),
    )


class FakeMeterPort:
    """Serial port stand-in that answers commands like a Wi-SUN module.

    ``send_results`` holds the EVENT 21 result for successive SKSENDTO
    commands; a zero result is followed by the meter's answer.
    """

    timeout = 0.02

    def __init__(self, power: int = 424, send_results=(0,)):
        self.power = power
        self.send_results = list(send_results)
        self.written = []
        self.is_closed = False
        self._buffer = bytearray()
        self._cond = threading.Condition()

    @property
    def in_waiting(self) -> int:
        with self._cond:
            return len(self._buffer)

    def read(self, size: int = 1) -> bytes:
        with self._cond:
            if not self._buffer:
                self._cond.wait(self.timeout)
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
            return data

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.is_closed = True

    def write(self, data: bytes) -> int:
        self.written.append(data)
        reply = self._reply(data)
        with self._cond:
            self._buffer += reply
            self._cond.notify_all()
        return len(data)

    def _reply(self, data: bytes) -> bytes:
        if data.startswith(b"SKSENDTO"):
            header = data[: data.index(b" \x10\x81") + 1]
            result = self.send_results.pop(0) if self.send_results else 0
            reply = (
                header + b"\r\n"
                + b"EVENT 21 " + METER_IP + b" %02X\r\n" % result
                + b"OK\r\n\r\n"
            )
            if result == 0:
                payload = meter_frame(self.power, b"\x00\x32\x7f\xfe").encode()
                reply += (
                    b"ERXUDP " + METER_IP + b" " + LOCAL_IP
                    + b" 0E1A 0E1A 001D129012345678 1 %04X " % len(payload)
                    + payload + b"\r\n"
                )
            return reply
        if data.startswith(b"SKLL64"):
            return data + METER_IP + b"\r\n"
        reply = data + b"OK\r\n"
        if data.startswith(b"SKSCAN"):
            reply += (
                b"EVENT 20 " + METER_IP + b"\r\n"
                b"EPANDESC\r\n"
                b"  Channel:3B\r\n"
                b"  Channel Page:09\r\n"
                b"  Pan ID:8888\r\n"
                b"  Addr:001D129012345678\r\n"
                b"  LQI:E1\r\n"
                b"  PairID:00AXXXXX\r\n"
                b"EVENT 22 " + METER_IP + b"\r\n"
            )
        elif data.startswith(b"SKJOIN"):
            reply += b"EVENT 25 " + METER_IP + b"\r\n"
        return reply


def make_controller(ports, **kwargs):
    """Build a controller that stops itself after the first reading."""
    metrics = SessionMetrics()
    readings = []
    states = []
    opened = []

    def factory():
        port = ports[len(opened)]
        opened.append(port)
        return SerialTransport(port)

    def on_reading(reading):
        readings.append(reading)
        controller.stop()

    controller = SessionController(
        factory,
        ROUTE_B_ID,
        ROUTE_B_PWD,
        metrics,
        on_reading,
        states.append,
        request_interval=60,
        restart_cooldown=0,
        response_timeout=2,
        **kwargs,
    )
    return controller, metrics, readings, states, opened


def run_to_completion(controller):
    thread = threading.Thread(target=controller.run_forever)
    thread.start()
    thread.join(timeout=10)
    if thread.is_alive():
        controller.stop()
        thread.join(timeout=5)
    assert not thread.is_alive()


def test_reading_from_meter_frame():
    """Test power and per-phase current extraction."""
    reading = reading_from_frame(meter_frame(424, b"\x00\x32\x00\x14"))
    assert reading.power == 424
    assert reading.r_phase_current == 5.0
    assert reading.t_phase_current == 2.0
    assert reading.current == 7.0


def test_reading_with_negative_power_and_single_phase():
    """Test signed power and the no-data phase marker."""
    reading = reading_from_frame(meter_frame(-120, b"\x00\x0a\x7f\xfe"))
    assert reading.power == -120
    assert reading.r_phase_current == 1.0
    assert reading.t_phase_current is None
    assert reading.current == 1.0


def test_reading_ignores_other_senders():
    """Test frames from other objects or without structure yield nothing."""
    frame = meter_frame(424)
    foreign = EchonetFrame(
        ehd=frame.ehd,
        edata=EDataFormat1(
            seoj=EOJ_MANAGEMENT_CONTROLLER,
            deoj=EOJ_HOUSING_LOW_VOLTAGE_SMART_METER,
            esv=Esv.GET_RES,
            opc=1,
            props=frame.edata.props,
        ),
    )
    assert reading_from_frame(foreign) is None
    assert reading_from_frame(EchonetFrame(ehd=frame.ehd, edata=InvalidEData(b""))) is None


def test_session_publishes_reading():
    """Test a full session from reset to the first published reading."""
    port = FakeMeterPort(power=424)
    controller, metrics, readings, states, opened = make_controller([port])

    run_to_completion(controller)

    assert [reading.power for reading in readings] == [424]
    assert readings[0].current == 5.0
    assert states == [
        SessionState.BRINGING_UP,
        SessionState.STEADY,
        SessionState.STOPPED,
    ]
    assert controller.ipaddr == METER_IP.decode()
    assert port.is_closed
    assert port.written[0] == b"SKRESET\r\n"
    assert port.written[2] == b"SKSETPWD C 0123456789AB\r\n"
    assert port.written[-1].startswith(b"SKSENDTO 1 " + METER_IP + b" 0E1A 1 0010 ")
    assert metrics.counter("sessions_started") == 1
    assert metrics.counter("readings") == 1
    assert metrics.gauge("instantaneous_power_watts") == 424


def test_send_failure_restarts_session():
    """Test a nonzero SKSENDTO result tears the session down and retries."""
    first = FakeMeterPort(send_results=[0x02])
    second = FakeMeterPort(power=300)
    controller, metrics, readings, states, opened = make_controller([first, second])

    run_to_completion(controller)

    assert opened == [first, second]
    assert first.is_closed and second.is_closed
    assert [reading.power for reading in readings] == [300]
    assert states == [
        SessionState.BRINGING_UP,
        SessionState.STEADY,
        SessionState.COOLDOWN,
        SessionState.BRINGING_UP,
        SessionState.STEADY,
        SessionState.STOPPED,
    ]
    assert metrics.counter("sessions_started") == 2
    assert metrics.counter("session_failures") == 1
    assert metrics.counter("failure_send_failed") == 1
    assert "0x02" in controller.last_error


def test_open_failure_is_retried_until_stopped():
    """Test a port that cannot be opened counts as a session failure."""
    metrics = SessionMetrics()
    attempts = []

    def factory():
        attempts.append(1)
        if len(attempts) == 2:
            controller.stop()
        raise TransportOpenError("no such port")

    controller = SessionController(
        factory, ROUTE_B_ID, ROUTE_B_PWD, metrics, lambda reading: None,
        restart_cooldown=0,
    )

    run_to_completion(controller)

    assert len(attempts) == 2
    assert metrics.counter("session_failures") == 1
    assert metrics.counter("failure_transport_closed") == 1
    assert controller.state == SessionState.STOPPED


def test_stop_interrupts_bring_up():
    """Test stop() ends a session blocked waiting for the module."""
    port = FakeMeterPort()
    # a module that never answers
    port._reply = lambda data: b""
    controller, metrics, readings, states, opened = make_controller([port])

    thread = threading.Thread(target=controller.run_forever)
    thread.start()
    try:
        for _ in range(200):
            if port.written:
                break
            threading.Event().wait(0.01)
        assert port.written == [b"SKRESET\r\n"]
    finally:
        controller.stop()
        thread.join(timeout=5)

    assert not thread.is_alive()
    assert port.is_closed
    assert readings == []
    assert metrics.counter("session_failures") == 0
    assert controller.state == SessionState.STOPPED
