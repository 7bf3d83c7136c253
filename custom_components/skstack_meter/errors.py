"""Domain-specific errors for the SKSTACK-IP meter integration."""

from __future__ import annotations

from typing import Any

from homeassistant.exceptions import IntegrationError


class SkstackError(IntegrationError):
    """Base error for the SKSTACK-IP protocol layer."""

    kind = "error"


class EchonetDecodeError(SkstackError):
    """Raised when bytes cannot be decoded as an ECHONET Lite frame."""

    kind = "malformed"


class MalformedResponseError(SkstackError):
    """Raised when buffered bytes cannot form any known module response."""

    kind = "malformed"

    def __init__(self, reason: str, buffer: bytes = b"") -> None:
        super().__init__(f"Malformed response: {reason}")
        self.reason = reason
        self.buffer = buffer


class TransportError(SkstackError):
    """Base transport error."""

    kind = "transport_closed"


class TransportOpenError(TransportError):
    """Raised when the serial port cannot be opened."""


class TransportClosedError(TransportError):
    """Raised when reading or writing a closed or failed transport."""


class SessionClosedError(SkstackError):
    """Raised when the response stream of the current session has ended."""

    kind = "transport_closed"


class BringUpError(SkstackError):
    """Base error for a failed connection bring-up step."""

    kind = "protocol_mismatch"

    def __init__(self, step: str, message: str, observed: Any = None) -> None:
        super().__init__(f"{step}: {message}")
        self.step = step
        self.observed = observed


class ProtocolMismatchError(BringUpError):
    """Raised when a valid response is not the one the current step expects."""

    def __init__(self, step: str, expected: str, observed: Any) -> None:
        super().__init__(step, f"expected {expected}, got {observed!r}", observed)
        self.expected = expected


class PeerNotFoundError(BringUpError):
    """Raised when an active scan completes without any PAN descriptor."""

    def __init__(self, step: str) -> None:
        super().__init__(step, "no peer found")


class PanaAuthenticationError(BringUpError):
    """Raised when the module reports a failed PANA session (EVENT 24)."""


class HandshakeTimeoutError(BringUpError):
    """Raised when a step's wall-clock budget elapses."""

    kind = "timeout"


class SendFailedError(SkstackError):
    """Raised when SKSENDTO reports a nonzero transmission result."""

    kind = "send_failed"

    def __init__(self, result: int) -> None:
        super().__init__(f"SKSENDTO failed with result 0x{result:02X}")
        self.result = result
