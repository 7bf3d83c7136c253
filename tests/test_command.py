"""Tests for SKSTACK-IP command encoding."""

from custom_components.skstack_meter.command import (
    ActiveScan,
    Join,
    Reset,
    ResolveAddress,
    SendEnergyRequest,
    SetPassword,
    SetRouteBId,
    WriteRegister,
    encode_command,
)

IPADDR = "FE80:0000:0000:0000:0123:4567:89ab:cdef"


def test_simple_commands():
    """Test the line commands used during bring-up."""
    assert encode_command(Reset()) == b"SKRESET\r\n"
    assert (
        encode_command(SetRouteBId("00112233445566778899AABBCCDDEEFF"))
        == b"SKSETRBID 00112233445566778899AABBCCDDEEFF\r\n"
    )
    assert encode_command(ActiveScan(6)) == b"SKSCAN 2 FFFFFFFF 6\r\n"
    assert encode_command(ResolveAddress("001D129012345678")) == (
        b"SKLL64 001D129012345678\r\n"
    )
    assert encode_command(Join(IPADDR)) == f"SKJOIN {IPADDR}\r\n".encode()


def test_set_password_length_is_hex():
    """Test the password length is written in hexadecimal."""
    assert encode_command(SetPassword("123XXXXXXXXX")) == b"SKSETPWD C 123XXXXXXXXX\r\n"


def test_set_password_repr_hides_password():
    """Test the password never shows up in a repr."""
    assert "123XXXXXXXXX" not in repr(SetPassword("123XXXXXXXXX"))


def test_write_register():
    """Test register numbers and values are written in hexadecimal."""
    assert encode_command(WriteRegister(2, 0x21)) == b"SKSREG S2 21\r\n"
    assert encode_command(WriteRegister(3, 0x8888)) == b"SKSREG S3 8888\r\n"


def test_send_energy_request():
    """Test the SKSENDTO preamble and binary Get payload."""
    assert encode_command(SendEnergyRequest(IPADDR)) == (
        b"SKSENDTO 1 FE80:0000:0000:0000:0123:4567:89ab:cdef 0E1A 1 000E "
        b"\x10\x81\x00\x01\x05\xff\x01\x02\x88\x01\x62\x01\xe7\x00\r\n"
    )


def test_send_energy_request_with_current():
    """Test requesting power and current in one frame."""
    data = encode_command(SendEnergyRequest(IPADDR, (0xE7, 0xE8)))
    assert data.startswith(f"SKSENDTO 1 {IPADDR} 0E1A 1 0010 ".encode())
    assert data.endswith(b"\x62\x02\xe7\x00\xe8\x00\r\n")
