"""Serial transport shared by the dispatcher (reader) and controller (writer)."""

from __future__ import annotations

import logging
import threading
from typing import Any

import serial

from .command import Command
from .const import DEFAULT_BAUDRATE, DEFAULT_READ_TIMEOUT
from .errors import TransportClosedError, TransportOpenError

_LOGGER = logging.getLogger(__name__)

READ_CHUNK_SIZE = 1024


class SerialTransport:
    """Owns one serial port and hands out a reader and a writer handle.

    Closing the writer marks the transport closed; the reader checks the flag
    before every blocking read, so the reading thread notices within one read
    timeout. Writes are serialised by a lock that is never held while reading.
    """

    def __init__(self, port: Any) -> None:
        self._port = port
        self._closed = threading.Event()
        self._write_lock = threading.Lock()

    @classmethod
    def open(
        cls,
        url: str,
        baudrate: int = DEFAULT_BAUDRATE,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
    ) -> SerialTransport:
        """Open a serial device path or pyserial URL."""
        _LOGGER.debug("Opening serial port: %s", url)
        try:
            port = serial.serial_for_url(url, baudrate=baudrate, timeout=read_timeout)
        except (serial.SerialException, ValueError) as err:
            raise TransportOpenError(f"Could not open serial port {url}: {err}") from err
        return cls(port)

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def split(self) -> tuple[TransportReader, TransportWriter]:
        return TransportReader(self), TransportWriter(self)

    def shutdown(self) -> None:
        """Mark the transport closed without releasing the port."""
        self._closed.set()

    def close(self) -> None:
        """Mark the transport closed and release the port."""
        self._closed.set()
        with self._write_lock:
            try:
                self._port.close()
            except (serial.SerialException, OSError) as err:
                _LOGGER.debug("Error closing serial port: %s", err)

    def _read(self, size: int) -> bytes:
        if self._closed.is_set():
            raise TransportClosedError("Transport closed")
        try:
            # block for the first byte only, then take whatever is waiting
            size = max(1, min(size, self._port.in_waiting))
            return self._port.read(size)
        except (serial.SerialException, OSError) as err:
            self._closed.set()
            raise TransportClosedError(f"Serial read failed: {err}") from err

    def _write(self, data: bytes) -> None:
        with self._write_lock:
            if self._closed.is_set():
                raise TransportClosedError("Transport closed")
            try:
                self._port.write(data)
                self._port.flush()
            except (serial.SerialException, OSError) as err:
                self._closed.set()
                raise TransportClosedError(f"Serial write failed: {err}") from err


class TransportReader:
    """Read half, owned by the dispatcher thread."""

    def __init__(self, transport: SerialTransport) -> None:
        self._transport = transport

    def read(self, size: int = READ_CHUNK_SIZE) -> bytes:
        """Read available bytes; an empty result means the read timed out.

        Raises:
            TransportClosedError: the transport was closed or the port failed.
        """
        return self._transport._read(size)


class TransportWriter:
    """Write half, owned by the controller thread."""

    def __init__(self, transport: SerialTransport) -> None:
        self._transport = transport

    @property
    def closed(self) -> bool:
        return self._transport.closed

    def send(self, command: Command) -> None:
        """Encode and write a command."""
        data = command.encode()
        _LOGGER.debug("Write to meter: %r", command)
        self._transport._write(data)

    def close(self) -> None:
        """Close the write half; the reader fails on its next read."""
        self._transport.shutdown()
