"""Relay connection carrying one topic's messages.

A transport delivers inbound text frames one at a time, in order, to the
handlers it was opened with, and accepts outbound frames through
:meth:`Transport.send`.  The protocol handler never touches sockets directly,
which keeps it testable with an in-memory transport.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException
from websockets.sync.client import ClientConnection, connect

from .errors import ZkPassportError

logger = logging.getLogger(__name__)

DEFAULT_OPEN_TIMEOUT = 10.0
DEFAULT_CLOSE_TIMEOUT = 5.0


class TransportError(ZkPassportError):
    """Raised when the relay connection cannot be opened or breaks."""


@dataclass
class TransportHandlers:
    """Callbacks a transport invokes; all run on the transport's reader."""

    on_message: Callable[[str], None]
    on_open: Callable[[], None]
    on_error: Callable[[Exception], None]


class Transport(Protocol):
    def send(self, message: str) -> None:
        ...

    def close(self) -> None:
        ...


TransportFactory = Callable[[str, str, TransportHandlers], Transport]


class WebSocketTransport:
    """WebSocket connection to the bridge, read by a background thread."""

    def __init__(
        self,
        url: str,
        origin: str,
        handlers: TransportHandlers,
        open_timeout: float = DEFAULT_OPEN_TIMEOUT,
    ) -> None:
        self.url = url
        self.origin = origin
        self.handlers = handlers
        self.open_timeout = open_timeout
        self._connection: Optional[ClientConnection] = None
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self._reader = threading.Thread(target=self._run, name=f"zkpassport-bridge:{url}", daemon=True)

    @classmethod
    def open(cls, url: str, origin: str, handlers: TransportHandlers) -> "WebSocketTransport":
        """Start connecting in the background and return immediately."""

        transport = cls(url, origin, handlers)
        transport._reader.start()
        return transport

    @property
    def is_open(self) -> bool:
        return self._connection is not None and not self._closed.is_set()

    def send(self, message: str) -> None:
        with self._lock:
            connection = self._connection
        if connection is None or self._closed.is_set():
            raise TransportError(f"Connection to {self.url} is not open")
        try:
            connection.send(message)
        except (ConnectionClosed, OSError) as exc:
            raise TransportError(f"Failed to send to {self.url}: {exc}") from exc

    def close(self, timeout: float = DEFAULT_CLOSE_TIMEOUT) -> None:
        """Close the connection and wait up to *timeout* seconds for the reader to exit.

        Closing from inside a handler (that is, on the reader thread) does not wait.
        """

        self._closed.set()
        with self._lock:
            connection, self._connection = self._connection, None
        if connection is not None:
            connection.close()
        if self._reader.is_alive() and threading.current_thread() is not self._reader:
            self._reader.join(timeout)
            if self._reader.is_alive():
                logger.warning("Bridge reader for %s did not stop within %.1fs", self.url, timeout)
        logger.debug("Closed bridge connection %s", self.url)

    def _run(self) -> None:
        try:
            connection = connect(self.url, origin=self.origin, open_timeout=self.open_timeout)
        except (OSError, TimeoutError, WebSocketException) as exc:
            if not self._closed.is_set():
                self.handlers.on_error(TransportError(f"Could not connect to {self.url}: {exc}"))
            return

        with self._lock:
            if self._closed.is_set():
                connection.close()
                return
            self._connection = connection
        logger.info("WebSocket connection established", extra={"url": self.url})
        self.handlers.on_open()

        try:
            for frame in connection:
                if isinstance(frame, bytes):
                    frame = frame.decode("utf-8", errors="replace")
                self.handlers.on_message(frame)
        except ConnectionClosedOK:
            pass
        except ConnectionClosed as exc:
            if not self._closed.is_set():
                self.handlers.on_error(TransportError(f"Connection to {self.url} dropped: {exc}"))
        finally:
            with self._lock:
                self._connection = None


def open_websocket_transport(url: str, origin: str, handlers: TransportHandlers) -> Transport:
    return WebSocketTransport.open(url, origin, handlers)
