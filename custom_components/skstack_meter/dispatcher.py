"""Reader thread that turns the serial byte stream into queued responses."""

from __future__ import annotations

import logging
import queue
import threading

from .errors import SessionClosedError, SkstackError
from .metrics import MetricsSink
from .parser import ResponseParser
from .response import Response
from .transport import READ_CHUNK_SIZE, TransportReader

_LOGGER = logging.getLogger(__name__)

_CLOSED = object()


class ResponseQueue:
    """Ordered single-producer/single-consumer queue that can be closed."""

    def __init__(self) -> None:
        self._queue: queue.Queue = queue.Queue()

    def put(self, response: Response) -> None:
        self._queue.put(response)

    def close(self) -> None:
        self._queue.put(_CLOSED)

    def get(self, timeout: float | None = None) -> Response:
        """Return the next response.

        Raises:
            queue.Empty: nothing arrived within ``timeout`` seconds.
            SessionClosedError: the producer closed the queue.
        """
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            # keep the marker so later receivers see the closure as well
            self._queue.put(_CLOSED)
            raise SessionClosedError("Response stream closed")
        return item


class Dispatcher(threading.Thread):
    """Read the transport, parse responses and forward them to a queue.

    The loop ends on a transport failure (including the writer closing the
    transport) or on malformed input; either way the queue is closed.
    """

    def __init__(
        self,
        reader: TransportReader,
        responses: ResponseQueue,
        metrics: MetricsSink | None = None,
    ) -> None:
        super().__init__(name="skstack-dispatcher", daemon=True)
        self._reader = reader
        self._responses = responses
        self._metrics = metrics
        self.error: SkstackError | None = None

    def run(self) -> None:
        parser = ResponseParser()
        try:
            while True:
                data = self._reader.read(READ_CHUNK_SIZE)
                if not data:
                    continue
                _LOGGER.debug("read %d bytes", len(data))
                parser.feed(data)
                for response in parser:
                    _LOGGER.debug("parsed response: %r", response)
                    self._responses.put(response)
        except SkstackError as err:
            self.error = err
            if self._metrics is not None:
                self._metrics.increment(f"dispatcher_exit_{err.kind}")
            if err.kind == "malformed":
                _LOGGER.error("Parse error, stopping reader: %s", err)
            else:
                _LOGGER.debug("Reader stopped: %s", err)
        finally:
            self._responses.close()
