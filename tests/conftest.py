"""Configure pytest for skstack_meter integration tests."""

import pytest

pytest_plugins = ["pytest_homeassistant_custom_component"]


@pytest.fixture
def config_data():
    """Return a sample config entry data."""
    return {
        "route_b_id": "00112233445566778899AABBCCDDEEFF",
        "route_b_pwd": "0123456789AB",
        "serial_port": "/dev/ttyUSB0",
    }
