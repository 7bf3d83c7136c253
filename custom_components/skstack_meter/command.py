"""SKSTACK-IP commands and their wire encoding."""

from __future__ import annotations

from dataclasses import dataclass, field

from .echonet import (
    EOJ_HOUSING_LOW_VOLTAGE_SMART_METER,
    EOJ_MANAGEMENT_CONTROLLER,
    EchonetFrame,
    EpcLowVoltageSmartMeter,
)

CRLF = b"\r\n"

SCAN_MODE_ACTIVE = 2
SCAN_CHANNEL_MASK_ALL = 0xFFFFFFFF

SREG_CHANNEL = 0x02
SREG_PAN_ID = 0x03

SENDTO_HANDLE = 1
SENDTO_SECURED = 1
ECHONET_UDP_PORT = 0x0E1A


@dataclass(frozen=True)
class Reset:
    """SKRESET"""

    def encode(self) -> bytes:
        return b"SKRESET" + CRLF


@dataclass(frozen=True)
class SetRouteBId:
    """SKSETRBID <id>"""

    id: str

    def encode(self) -> bytes:
        return f"SKSETRBID {self.id}".encode() + CRLF


@dataclass(frozen=True)
class SetPassword:
    """SKSETPWD <len> <pwd>"""

    pwd: str = field(repr=False)

    def encode(self) -> bytes:
        return f"SKSETPWD {len(self.pwd):X} {self.pwd}".encode() + CRLF


@dataclass(frozen=True)
class ActiveScan:
    """SKSCAN 2 FFFFFFFF <duration>"""

    duration: int

    def encode(self) -> bytes:
        return (
            f"SKSCAN {SCAN_MODE_ACTIVE} {SCAN_CHANNEL_MASK_ALL:X} {self.duration:X}"
        ).encode() + CRLF


@dataclass(frozen=True)
class WriteRegister:
    """SKSREG S<reg> <val>"""

    sreg: int
    val: int

    def encode(self) -> bytes:
        return f"SKSREG S{self.sreg:X} {self.val:X}".encode() + CRLF


@dataclass(frozen=True)
class ResolveAddress:
    """SKLL64 <addr64>"""

    addr64: str

    def encode(self) -> bytes:
        return f"SKLL64 {self.addr64}".encode() + CRLF


@dataclass(frozen=True)
class Join:
    """SKJOIN <ipaddr>"""

    ipaddr: str

    def encode(self) -> bytes:
        return f"SKJOIN {self.ipaddr}".encode() + CRLF


@dataclass(frozen=True)
class SendEnergyRequest:
    """Read instantaneous power (and optionally more) via SKSENDTO."""

    ipaddr: str
    epcs: tuple[int, ...] = (EpcLowVoltageSmartMeter.INSTANTANEOUS_ENERGY,)

    def frame(self) -> EchonetFrame:
        return EchonetFrame.read_request(
            seoj=EOJ_MANAGEMENT_CONTROLLER,
            deoj=EOJ_HOUSING_LOW_VOLTAGE_SMART_METER,
            epcs=list(self.epcs),
        )

    def encode(self) -> bytes:
        payload = self.frame().encode()
        preamble = (
            f"SKSENDTO {SENDTO_HANDLE} {self.ipaddr} {ECHONET_UDP_PORT:04X} "
            f"{SENDTO_SECURED} {len(payload):04X} "
        )
        return preamble.encode() + payload + CRLF


Command = (
    Reset
    | SetRouteBId
    | SetPassword
    | ActiveScan
    | WriteRegister
    | ResolveAddress
    | Join
    | SendEnergyRequest
)


def encode_command(command: Command) -> bytes:
    """Render a command to the exact bytes the module expects."""
    return command.encode()
