"""Incremental parser for SKSTACK-IP module output.

The module writes CRLF terminated ASCII lines, but ERXUDP carries a raw
binary payload whose length is only known from the preceding header field.
The parser therefore works on a growing buffer: every known response shape is
tried against the start of the buffer and reports one of three outcomes,
a complete match, "need more bytes", or no match.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .echonet import EchonetFrame
from .errors import MalformedResponseError
from .response import (
    EVENT_UDP_SENT,
    EPanDesc,
    ERxUdp,
    Event,
    Ok,
    PanDesc,
    Response,
    SkJoin,
    SkLl64,
    SkReset,
    SkScan,
    SkSendTo,
    SkSetPwd,
    SkSetRbid,
    SkSreg,
)

_LOGGER = logging.getLogger(__name__)

_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
_ALNUM = frozenset(
    b"0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
)
_SPACES = frozenset(b" \t")


class ParseStatus(Enum):
    """Outcome of a parse attempt."""

    PARSED = "parsed"
    INCOMPLETE = "incomplete"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class ParseResult:
    """Result of :func:`parse_response`.

    ``rest`` holds the unconsumed bytes after a successful parse.
    """

    status: ParseStatus
    response: Response | None = None
    consumed: int = 0
    rest: bytes = b""
    reason: str | None = None


class _Cursor:
    """Streaming cursor over a snapshot of the buffer.

    A primitive that fails because it ran into the end of the buffer sets
    ``starved``: the shape might still match once more bytes arrive. A
    verification failure sets ``error`` and is terminal.
    """

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0
        self.starved = False
        self.error: str | None = None

    def fail(self, reason: str) -> None:
        self.error = reason

    def tag(self, literal: bytes) -> bool:
        chunk = self.data[self.pos : self.pos + len(literal)]
        if not literal.startswith(chunk):
            return False
        if len(chunk) < len(literal):
            self.starved = True
            return False
        self.pos += len(literal)
        return True

    def crlf(self) -> bool:
        return self.tag(b"\r\n")

    def _span(self, allowed: frozenset[int]) -> int | None:
        end = self.pos
        while end < len(self.data) and self.data[end] in allowed:
            end += 1
        if end == len(self.data):
            # the run could continue in bytes not received yet
            self.starved = True
            return None
        return end - self.pos

    def take_while1(self, allowed: frozenset[int]) -> bytes | None:
        length = self._span(allowed)
        if not length:
            return None
        start = self.pos
        self.pos += length
        return self.data[start : self.pos]

    def take(self, count: int) -> bytes | None:
        if self.pos + count > len(self.data):
            self.starved = True
            return None
        start = self.pos
        self.pos += count
        return self.data[start : self.pos]

    def space(self) -> bool:
        return self.take_while1(_SPACES) is not None

    def skip_spaces(self) -> bool:
        length = self._span(_SPACES)
        if length is None:
            return False
        self.pos += length
        return True

    def at(self, allowed: frozenset[int]) -> bool:
        return self.pos < len(self.data) and self.data[self.pos] in allowed

    def _hex(self, bits: int) -> int | None:
        digits = self.take_while1(_HEX_DIGITS)
        if digits is None:
            return None
        value = int(digits, 16)
        if value >> bits:
            return None
        return value

    def hex8(self) -> int | None:
        return self._hex(8)

    def hex16(self) -> int | None:
        return self._hex(16)

    def hex32(self) -> int | None:
        return self._hex(32)

    def text(self) -> str | None:
        token = self.take_while1(_ALNUM)
        if token is None:
            return None
        return token.decode("ascii")

    def _hex_exact(self, count: int) -> bool:
        chunk = self.data[self.pos : self.pos + count]
        if any(byte not in _HEX_DIGITS for byte in chunk):
            return False
        if len(chunk) < count:
            self.starved = True
            return False
        self.pos += count
        return True

    def ipv6(self) -> str | None:
        """Eight groups of exactly four hex digits separated by ':'."""
        start = self.pos
        for group in range(8):
            if group and not self.tag(b":"):
                return None
            if not self._hex_exact(4):
                return None
        return self.data[start : self.pos].decode("ascii")


def _spaced(cur: _Cursor, *fields: Callable[[], Any]) -> list[Any] | None:
    """Parse space separated fields in order."""
    values = []
    for index, parse in enumerate(fields):
        if index and not cur.space():
            return None
        value = parse()
        if value is None:
            return None
        values.append(value)
    return values


def _labelled(cur: _Cursor, label: bytes, parse: Callable[[], Any]) -> Any:
    if not cur.tag(label):
        return None
    value = parse()
    if value is None or not cur.crlf():
        return None
    return value


def _ok_line(cur: _Cursor) -> bool:
    return cur.tag(b"OK") and cur.crlf()


def _match_ok(cur: _Cursor) -> Ok | None:
    if not _ok_line(cur):
        return None
    return Ok()


def _match_skreset(cur: _Cursor) -> SkReset | None:
    if not (cur.tag(b"SKRESET") and cur.crlf() and _ok_line(cur)):
        return None
    return SkReset()


def _match_sksetrbid(cur: _Cursor) -> SkSetRbid | None:
    if not (cur.tag(b"SKSETRBID") and cur.space()):
        return None
    rbid = cur.text()
    if rbid is None or not (cur.crlf() and _ok_line(cur)):
        return None
    return SkSetRbid(id=rbid)


def _match_sksetpwd(cur: _Cursor) -> SkSetPwd | None:
    if not (cur.tag(b"SKSETPWD") and cur.space()):
        return None
    fields = _spaced(cur, cur.hex8, cur.text)
    if fields is None or not (cur.crlf() and _ok_line(cur)):
        return None
    length, pwd = fields
    if len(pwd) != length:
        cur.fail(
            f"SKSETPWD length field {length:X} does not match "
            f"a {len(pwd)}-character password"
        )
        return None
    return SkSetPwd(length=length, pwd=pwd)


def _match_skscan(cur: _Cursor) -> SkScan | None:
    if not (cur.tag(b"SKSCAN") and cur.space()):
        return None
    fields = _spaced(cur, cur.hex8, cur.hex32, cur.hex8)
    if fields is None or not (cur.crlf() and _ok_line(cur)):
        return None
    mode, channel_mask, duration = fields
    return SkScan(mode=mode, channel_mask=channel_mask, duration=duration)


def _match_event(cur: _Cursor) -> Event | None:
    if not (cur.tag(b"EVENT") and cur.space()):
        return None
    fields = _spaced(cur, cur.hex8, cur.ipv6)
    if fields is None or not cur.skip_spaces():
        return None
    num, sender = fields
    param = None
    if cur.at(_HEX_DIGITS):
        param = cur.hex8()
        if param is None:
            return None
    if not cur.crlf():
        return None
    return Event(num=num, sender=sender, param=param)


def _match_epandesc(cur: _Cursor) -> EPanDesc | None:
    if not (cur.tag(b"EPANDESC") and cur.crlf()):
        return None
    channel = _labelled(cur, b"  Channel:", cur.hex8)
    if channel is None:
        return None
    channel_page = _labelled(cur, b"  Channel Page:", cur.hex8)
    if channel_page is None:
        return None
    pan_id = _labelled(cur, b"  Pan ID:", cur.hex16)
    if pan_id is None:
        return None
    addr = _labelled(cur, b"  Addr:", cur.text)
    if addr is None:
        return None
    lqi = _labelled(cur, b"  LQI:", cur.hex8)
    if lqi is None:
        return None
    pair_id = _labelled(cur, b"  PairID:", cur.text)
    if pair_id is None:
        return None
    return EPanDesc(
        PanDesc(
            channel=channel,
            channel_page=channel_page,
            pan_id=pan_id,
            addr=addr,
            lqi=lqi,
            pair_id=pair_id,
        )
    )


def _match_sksreg(cur: _Cursor) -> SkSreg | None:
    if not (cur.tag(b"SKSREG") and cur.space() and cur.tag(b"S")):
        return None
    fields = _spaced(cur, cur.hex8, cur.hex32)
    if fields is None or not (cur.crlf() and _ok_line(cur)):
        return None
    sreg, val = fields
    return SkSreg(sreg=sreg, val=val)


def _match_skll64(cur: _Cursor) -> SkLl64 | None:
    if not (cur.tag(b"SKLL64") and cur.space()):
        return None
    addr64 = cur.text()
    if addr64 is None or not cur.crlf():
        return None
    ipaddr = cur.ipv6()
    if ipaddr is None or not cur.crlf():
        return None
    return SkLl64(addr64=addr64, ipaddr=ipaddr)


def _match_skjoin(cur: _Cursor) -> SkJoin | None:
    if not (cur.tag(b"SKJOIN") and cur.space()):
        return None
    ipaddr = cur.ipv6()
    if ipaddr is None or not (cur.crlf() and _ok_line(cur)):
        return None
    return SkJoin(ipaddr=ipaddr)


def _match_erxudp(cur: _Cursor) -> ERxUdp | None:
    if not (cur.tag(b"ERXUDP") and cur.space()):
        return None
    fields = _spaced(
        cur, cur.ipv6, cur.ipv6, cur.hex16, cur.hex16, cur.text, cur.hex8, cur.hex16
    )
    # exactly one separator: the payload itself may start with a space
    if fields is None or not cur.tag(b" "):
        return None
    sender, dest, rport, lport, senderlla, secured, datalen = fields

    payload = cur.take(datalen)
    if payload is None or not cur.crlf():
        return None

    frame = EchonetFrame.decode(payload)
    return ERxUdp(
        sender=sender,
        dest=dest,
        rport=rport,
        lport=lport,
        senderlla=senderlla,
        secured=secured,
        datalen=datalen,
        data=frame,
    )


def _match_sksendto(cur: _Cursor) -> SkSendTo | None:
    if not (cur.tag(b"SKSENDTO") and cur.space()):
        return None
    fields = _spaced(cur, cur.hex8, cur.ipv6, cur.hex16, cur.hex8, cur.hex16)
    if fields is None or not (cur.space() and cur.crlf()):
        return None
    handle, ipaddr, port, sec, datalen = fields

    event = _match_event(cur)
    if event is None or not (_ok_line(cur) and cur.crlf()):
        return None

    if event.num != EVENT_UDP_SENT or event.param is None:
        cur.fail(f"SKSENDTO followed by unexpected {event!r}")
        return None

    return SkSendTo(
        handle=handle,
        ipaddr=ipaddr,
        port=port,
        sec=sec,
        datalen=datalen,
        result=event.param,
    )


_MATCHERS: tuple[Callable[[_Cursor], Response | None], ...] = (
    _match_skreset,
    _match_sksetrbid,
    _match_sksetpwd,
    _match_skscan,
    _match_event,
    _match_epandesc,
    _match_sksreg,
    _match_skll64,
    _match_skjoin,
    _match_erxudp,
    _match_sksendto,
    _match_ok,
)


def parse_response(data: bytes) -> ParseResult:
    """Parse one response from the start of ``data``.

    The first shape that does not plainly reject the input decides the
    outcome: a complete match, a request for more bytes, or a terminal
    verification failure. If every shape rejects it the input is malformed.
    """
    data = bytes(data)
    for matcher in _MATCHERS:
        cur = _Cursor(data)
        response = matcher(cur)
        if response is not None:
            return ParseResult(
                ParseStatus.PARSED,
                response=response,
                consumed=cur.pos,
                rest=data[cur.pos :],
            )
        if cur.error is not None:
            return ParseResult(ParseStatus.MALFORMED, reason=cur.error)
        if cur.starved:
            return ParseResult(ParseStatus.INCOMPLETE)

    return ParseResult(
        ParseStatus.MALFORMED, reason=f"unrecognised input {data[:32]!r}"
    )


class ResponseParser:
    """Accumulate raw bytes and hand out complete responses in order."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet consumed by a response."""
        return bytes(self._buffer)

    def feed(self, data: bytes) -> None:
        self._buffer += data

    def next_response(self) -> Response | None:
        """Return the next complete response, or None if more bytes are needed.

        Raises:
            MalformedResponseError: the buffer cannot form any known response.
        """
        if not self._buffer:
            return None

        result = parse_response(self._buffer)
        if result.status is ParseStatus.PARSED:
            del self._buffer[: result.consumed]
            return result.response
        if result.status is ParseStatus.INCOMPLETE:
            _LOGGER.debug("Parse incomplete, %d bytes buffered", len(self._buffer))
            return None
        raise MalformedResponseError(result.reason or "unknown", bytes(self._buffer))

    def __iter__(self) -> Iterator[Response]:
        while True:
            response = self.next_response()
            if response is None:
                return
            yield response
