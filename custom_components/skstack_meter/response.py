"""Responses and events emitted by the SKSTACK-IP module."""

from __future__ import annotations

from dataclasses import dataclass, field

from .echonet import EchonetFrame

# Event numbers
EVENT_BEACON_RECEIVED = 0x20
EVENT_UDP_SENT = 0x21
EVENT_SCAN_COMPLETE = 0x22
EVENT_PANA_FAILED = 0x24
EVENT_PANA_CONNECTED = 0x25
EVENT_SESSION_CLOSE_REQUEST = 0x26
EVENT_SESSION_CLOSED = 0x27
EVENT_PANA_SESSION_EXPIRED = 0x29


@dataclass(frozen=True)
class PanDesc:
    """PAN descriptor reported by an active scan (EPANDESC)."""

    channel: int
    channel_page: int
    pan_id: int
    addr: str
    lqi: int
    pair_id: str


@dataclass(frozen=True)
class Ok:
    """Bare OK line."""


@dataclass(frozen=True)
class SkReset:
    """Echo of SKRESET."""


@dataclass(frozen=True)
class SkSetRbid:
    """Echo of SKSETRBID."""

    id: str


@dataclass(frozen=True)
class SkSetPwd:
    """Echo of SKSETPWD."""

    length: int
    pwd: str = field(repr=False)


@dataclass(frozen=True)
class SkScan:
    """Echo of SKSCAN."""

    mode: int
    channel_mask: int
    duration: int


@dataclass(frozen=True)
class SkSreg:
    """Echo of SKSREG."""

    sreg: int
    val: int


@dataclass(frozen=True)
class SkLl64:
    """Echo of SKLL64 and the resolved link-local address."""

    addr64: str
    ipaddr: str


@dataclass(frozen=True)
class SkJoin:
    """Echo of SKJOIN."""

    ipaddr: str


@dataclass(frozen=True)
class SkSendTo:
    """Echo of SKSENDTO with the transmission result of its EVENT 21."""

    handle: int
    ipaddr: str
    port: int
    sec: int
    datalen: int
    result: int


@dataclass(frozen=True)
class Event:
    """Asynchronous EVENT notification."""

    num: int
    sender: str
    param: int | None = None


@dataclass(frozen=True)
class EPanDesc:
    """EPANDESC block."""

    pan_desc: PanDesc


@dataclass(frozen=True)
class ERxUdp:
    """Received UDP datagram carrying an ECHONET Lite frame."""

    sender: str
    dest: str
    rport: int
    lport: int
    senderlla: str
    secured: int
    datalen: int
    data: EchonetFrame


Response = (
    Ok
    | SkReset
    | SkSetRbid
    | SkSetPwd
    | SkScan
    | SkSreg
    | SkLl64
    | SkJoin
    | SkSendTo
    | Event
    | EPanDesc
    | ERxUdp
)
