"""ECHONET Lite frame codec.

Frame layout (big-endian):

    EHD1 EHD2 TID(2) SEOJ(3) DEOJ(3) ESV OPC {EPC PDC EDT(PDC)} x OPC

Only format 1 (EHD 0x10 0x81) is decoded structurally; any other header is
kept as an opaque payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

from .errors import EchonetDecodeError

EHD1_ECHONET_LITE = 0x10
EHD2_FORMAT1 = 0x81

HEADER_SIZE = 4


class Esv(IntEnum):
    """ECHONET Lite service codes."""

    SET_I_SNA = 0x50
    SET_C_SNA = 0x51
    GET_SNA = 0x52
    INF_SNA = 0x53
    SETGET_SNA = 0x5E
    SET_I = 0x60  # property write, no response
    SET_C = 0x61  # property write
    GET = 0x62  # property read
    INF_REQ = 0x63
    SETGET = 0x6E
    SET_RES = 0x71
    GET_RES = 0x72
    INF = 0x73  # property notification
    INFC = 0x74
    INFC_RES = 0x7A
    SETGET_RES = 0x7E


class EpcLowVoltageSmartMeter(IntEnum):
    """Property codes of the low-voltage smart meter class (0x0288)."""

    STATUS = 0x80
    EFFECTIVE_DIGITS_OF_CUMULATIVE_ENERGY = 0xD7
    CUMULATIVE_ENERGY_NORMAL_DIRECTION = 0xE0
    CUMULATIVE_ENERGY_UNIT = 0xE1
    CUMULATIVE_ENERGY_REVERSE_DIRECTION = 0xE3
    INSTANTANEOUS_ENERGY = 0xE7
    INSTANTANEOUS_CURRENT = 0xE8
    CUMULATIVE_ENERGY_FIXED_TIME_NORMAL_DIRECTION = 0xEA
    CUMULATIVE_ENERGY_FIXED_TIME_REVERSE_DIRECTION = 0xEB


@dataclass(frozen=True)
class Eoj:
    """ECHONET object identifier."""

    class_group_code: int
    class_code: int
    instance_code: int

    def encode(self) -> bytes:
        return bytes((self.class_group_code, self.class_code, self.instance_code))

    def __str__(self) -> str:
        return self.encode().hex().upper()


EOJ_MANAGEMENT_CONTROLLER = Eoj(0x05, 0xFF, 0x01)
EOJ_HOUSING_LOW_VOLTAGE_SMART_METER = Eoj(0x02, 0x88, 0x01)


@dataclass(frozen=True)
class EHd:
    """Frame header: two format bytes and the transaction id."""

    ehd1: int
    ehd2: int
    tid: int

    @property
    def is_format1(self) -> bool:
        return self.ehd1 == EHD1_ECHONET_LITE and self.ehd2 == EHD2_FORMAT1

    def encode(self) -> bytes:
        return bytes((self.ehd1, self.ehd2)) + self.tid.to_bytes(2, "big")


@dataclass(frozen=True)
class Property:
    """A single EPC/PDC/EDT triplet."""

    epc: int
    pdc: int
    edt: bytes = b""

    @classmethod
    def read(cls, epc: int) -> Property:
        """Property entry for a read request (no value bytes)."""
        return cls(epc=epc, pdc=0, edt=b"")

    def encode(self) -> bytes:
        return bytes((self.epc, self.pdc)) + self.edt


@dataclass(frozen=True)
class EDataFormat1:
    """Structured payload of a format 1 frame."""

    seoj: Eoj
    deoj: Eoj
    esv: int
    opc: int
    props: tuple[Property, ...] = ()

    def encode(self) -> bytes:
        data = self.seoj.encode() + self.deoj.encode() + bytes((self.esv, self.opc))
        for prop in self.props:
            data += prop.encode()
        return data

    def find(self, epc: int) -> Property | None:
        """Return the first property carrying ``epc``."""
        for prop in self.props:
            if prop.epc == epc:
                return prop
        return None


@dataclass(frozen=True)
class InvalidEData:
    """Payload that is not a decodable format 1 body, kept verbatim."""

    raw: bytes = field(default=b"")

    def encode(self) -> bytes:
        return self.raw


EData = EDataFormat1 | InvalidEData


@dataclass(frozen=True)
class EchonetFrame:
    """A complete ECHONET Lite frame."""

    ehd: EHd | None
    edata: EData

    @classmethod
    def read_request(
        cls,
        seoj: Eoj,
        deoj: Eoj,
        epcs: list[int],
        tid: int = 0x0001,
    ) -> EchonetFrame:
        """Build a Get request for the given property codes."""
        props = tuple(Property.read(epc) for epc in epcs)
        return cls(
            ehd=EHd(EHD1_ECHONET_LITE, EHD2_FORMAT1, tid),
            edata=EDataFormat1(
                seoj=seoj, deoj=deoj, esv=Esv.GET, opc=len(props), props=props
            ),
        )

    @classmethod
    def decode(cls, data: bytes) -> EchonetFrame:
        """Decode a frame.

        A format 1 body that does not consume ``data`` exactly falls back to
        :class:`InvalidEData`, as does any unrecognised header. Data shorter
        than the header has no ``ehd`` and is kept whole as :class:`InvalidEData`.
        """
        if len(data) < HEADER_SIZE:
            return cls(ehd=None, edata=InvalidEData(bytes(data)))

        ehd = EHd(data[0], data[1], int.from_bytes(data[2:4], "big"))
        body = bytes(data[HEADER_SIZE:])
        if not ehd.is_format1:
            return cls(ehd=ehd, edata=InvalidEData(body))

        try:
            edata = decode_format1(body)
        except EchonetDecodeError:
            return cls(ehd=ehd, edata=InvalidEData(body))
        return cls(ehd=ehd, edata=edata)

    def encode(self) -> bytes:
        header = self.ehd.encode() if self.ehd is not None else b""
        return header + self.edata.encode()


def decode_format1(body: bytes) -> EDataFormat1:
    """Decode a format 1 body, requiring every byte to be consumed."""
    if len(body) < 8:
        raise EchonetDecodeError(f"format 1 body too short: {body.hex()}")

    seoj = Eoj(body[0], body[1], body[2])
    deoj = Eoj(body[3], body[4], body[5])
    esv = body[6]
    opc = body[7]

    props = []
    offset = 8
    for index in range(opc):
        if offset + 2 > len(body):
            raise EchonetDecodeError(
                f"property {index} header truncated at offset {offset}"
            )
        epc = body[offset]
        pdc = body[offset + 1]
        offset += 2
        if offset + pdc > len(body):
            raise EchonetDecodeError(
                f"property 0x{epc:02X} declares {pdc} bytes, "
                f"{len(body) - offset} available"
            )
        props.append(Property(epc=epc, pdc=pdc, edt=body[offset : offset + pdc]))
        offset += pdc

    if offset != len(body):
        raise EchonetDecodeError(
            f"{len(body) - offset} trailing bytes after {opc} properties"
        )

    return EDataFormat1(seoj=seoj, deoj=deoj, esv=esv, opc=opc, props=tuple(props))
