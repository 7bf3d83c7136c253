"""Tests for the connection bring-up sequence."""

import pytest

from custom_components.skstack_meter.bringup import BringUpStep, ConnectionStateMachine
from custom_components.skstack_meter.command import (
    ActiveScan,
    Join,
    Reset,
    ResolveAddress,
    SetPassword,
    SetRouteBId,
    WriteRegister,
)
from custom_components.skstack_meter.dispatcher import ResponseQueue
from custom_components.skstack_meter.errors import (
    HandshakeTimeoutError,
    PanaAuthenticationError,
    PeerNotFoundError,
    ProtocolMismatchError,
    SessionClosedError,
)
from custom_components.skstack_meter.response import (
    EPanDesc,
    Event,
    Ok,
    PanDesc,
    SkJoin,
    SkLl64,
    SkReset,
    SkScan,
    SkSetPwd,
    SkSetRbid,
    SkSreg,
)

ROUTE_B_ID = "00112233445566778899AABBCCDDEEFF"
ROUTE_B_PWD = "0123456789AB"
IPADDR = "FE80:0000:0000:0000:021D:1290:1234:5678"
OTHER = "FE80:0000:0000:0000:0123:4567:89ab:cdef"

FIRST_PAN = PanDesc(
    channel=0x21,
    channel_page=0x09,
    pan_id=0x1234,
    addr="001D129000000001",
    lqi=0x60,
    pair_id="00AXXXXX",
)
LAST_PAN = PanDesc(
    channel=0x3B,
    channel_page=0x09,
    pan_id=0x8888,
    addr="001D129012345678",
    lqi=0xE1,
    pair_id="00AXXXXX",
)

CREDENTIAL_RESPONSES = [
    SkReset(),
    SkSetRbid(ROUTE_B_ID),
    SkSetPwd(length=len(ROUTE_B_PWD), pwd=ROUTE_B_PWD),
]

SCAN_RESPONSES = [
    SkScan(mode=2, channel_mask=0xFFFFFFFF, duration=6),
    EPanDesc(FIRST_PAN),
    Event(0x20, OTHER),
    EPanDesc(LAST_PAN),
    Event(0x22, OTHER),
]


class RecordingWriter:
    """Writer stand-in that records the commands sent."""

    def __init__(self):
        self.commands = []
        self.closed = False

    def send(self, command):
        self.commands.append(command)

    def close(self):
        self.closed = True


def make_machine(responses, close=True, **kwargs):
    queue = ResponseQueue()
    for response in responses:
        queue.put(response)
    if close:
        # anything past the script fails fast instead of blocking
        queue.close()
    writer = RecordingWriter()
    machine = ConnectionStateMachine(writer, queue, ROUTE_B_ID, ROUTE_B_PWD, **kwargs)
    return machine, writer


def test_full_bring_up():
    """Test the happy path returns the resolved peer address."""
    machine, writer = make_machine(
        CREDENTIAL_RESPONSES
        + SCAN_RESPONSES
        + [
            SkSreg(2, LAST_PAN.channel),
            SkSreg(3, LAST_PAN.pan_id),
            SkLl64(LAST_PAN.addr, IPADDR),
            SkJoin(IPADDR),
            Event(0x21, IPADDR, 0x00),
            Event(0x25, IPADDR),
        ]
    )

    assert machine.run() == IPADDR
    assert writer.commands == [
        Reset(),
        SetRouteBId(ROUTE_B_ID),
        SetPassword(ROUTE_B_PWD),
        ActiveScan(6),
        WriteRegister(2, 0x3B),
        WriteRegister(3, 0x8888),
        ResolveAddress("001D129012345678"),
        Join(IPADDR),
    ]


def test_scan_keeps_last_descriptor():
    """Test the last PAN descriptor before EVENT 22 wins."""
    machine, _ = make_machine(SCAN_RESPONSES)
    assert machine.active_scan() == LAST_PAN


def test_scan_without_descriptor_fails():
    """Test a scan that finds nothing."""
    machine, _ = make_machine(
        [SkScan(mode=2, channel_mask=0xFFFFFFFF, duration=6), Event(0x22, OTHER)]
    )
    with pytest.raises(PeerNotFoundError) as excinfo:
        machine.active_scan()
    assert excinfo.value.step == BringUpStep.SCAN
    assert "no peer found" in str(excinfo.value)


def test_scan_times_out():
    """Test a module that never completes the scan."""
    machine, _ = make_machine(
        [SkScan(mode=2, channel_mask=0xFFFFFFFF, duration=6), EPanDesc(LAST_PAN)],
        close=False,
        scan_timeout=0.05,
    )
    with pytest.raises(HandshakeTimeoutError) as excinfo:
        machine.active_scan()
    assert excinfo.value.kind == "timeout"


def test_unexpected_response_aborts():
    """Test the first mismatched response stops the sequence."""
    machine, writer = make_machine([SkReset(), Ok()])
    with pytest.raises(ProtocolMismatchError) as excinfo:
        machine.run()
    assert excinfo.value.step == BringUpStep.SET_ID
    assert excinfo.value.observed == Ok()
    assert writer.commands == [Reset(), SetRouteBId(ROUTE_B_ID)]


def test_echoed_id_must_match():
    """Test an echo carrying different credentials is rejected."""
    machine, _ = make_machine([SkReset(), SkSetRbid("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF")])
    with pytest.raises(ProtocolMismatchError):
        machine.run()


def test_pana_failure():
    """Test EVENT 24 during authentication."""
    machine, _ = make_machine([Event(0x21, IPADDR, 0x00), Event(0x24, IPADDR)])
    with pytest.raises(PanaAuthenticationError) as excinfo:
        machine.wait_for_connect()
    assert excinfo.value.step == BringUpStep.AUTHENTICATE
    assert excinfo.value.kind == "protocol_mismatch"


def test_pana_timeout():
    """Test authentication that never completes."""
    machine, _ = make_machine([Event(0x21, IPADDR, 0x00)], close=False, join_timeout=0.05)
    with pytest.raises(HandshakeTimeoutError):
        machine.wait_for_connect()


def test_closed_stream_aborts():
    """Test the sequence ends when the response stream closes."""
    machine, _ = make_machine([SkReset()])
    with pytest.raises(SessionClosedError):
        machine.run()
