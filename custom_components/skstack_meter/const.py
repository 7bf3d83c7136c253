"""Constants for the SKSTACK-IP Smart Meter integration."""

DOMAIN = "skstack_meter"

# Configuration
CONF_ROUTE_B_ID = "route_b_id"
CONF_ROUTE_B_PWD = "route_b_pwd"
CONF_SERIAL_PORT = "serial_port"
CONF_REQUEST_INTERVAL = "request_interval"

# Defaults
DEFAULT_SERIAL_PORT = "/dev/ttyS0"
DEFAULT_REQUEST_INTERVAL = 15  # seconds
MIN_REQUEST_INTERVAL = 5
MAX_REQUEST_INTERVAL = 3600

ROUTE_B_ID_LENGTH = 32
ROUTE_B_PWD_MAX_LENGTH = 32

# Transport
DEFAULT_BAUDRATE = 115200
DEFAULT_READ_TIMEOUT = 2.0  # seconds

# Session timing (seconds)
DEFAULT_SCAN_DURATION = 6
DEFAULT_SCAN_TIMEOUT = 120.0
DEFAULT_JOIN_TIMEOUT = 30.0
DEFAULT_RESPONSE_TIMEOUT = 10.0
DEFAULT_RESTART_COOLDOWN = 30.0

# Device Info
DEVICE_MANUFACTURER = "ROHM Co., Ltd."
DEVICE_MODEL = "BP35A1"
DEVICE_NAME = "SKSTACK Smart Meter"
DEVICE_UNIQUE_ID = "skstack_meter_device"
