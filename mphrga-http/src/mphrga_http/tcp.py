"""TCP socket transport for the instrument's embedded web service.

This module provides a socket-based transport implementation for talking to
the analyzer over Ethernet. It implements the :class:`Transport` protocol
and is passed to :class:`HttpExchange` for request/response handling.

Reads are bounded by an inactivity timeout rather than by message framing:
the transport keeps receiving while data keeps arriving and returns once the
line has been quiet for ``timeout`` seconds, the buffer limit is reached, or
the peer closes the connection.
"""

from __future__ import annotations

import logging
import socket

logger = logging.getLogger(__name__)


class TcpTransport:
    """Byte-stream transport backed by a TCP socket.

    The socket is opened lazily by the first :meth:`write` and dropped when
    the peer closes it, so the next write opens a fresh connection.

    Attributes:
        address: The ``(host, port)`` pair of the instrument.
        is_open: Whether a socket is currently connected.

    Args:
        host: Instrument host name or IP address.
        port: Instrument TCP port (the embedded web service, usually 80).
        timeout: Read inactivity timeout in seconds.
        connect_timeout: Timeout for establishing the connection in seconds.

    Example:
        >>> transport = TcpTransport("192.168.1.50", 80)
        >>> transport.write(b"GET /mmsp/scanInfo/get\\r\\n\\r\\n")
        >>> raw = transport.read(150000)
        >>> transport.close()
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        timeout: float = 0.2,
        connect_timeout: float = 2.0,
    ) -> None:
        """Initialize the TCP transport.

        Args:
            host: Instrument host name or IP address.
            port: Instrument TCP port.
            timeout: Read inactivity timeout in seconds. Defaults to 0.2.
            connect_timeout: Connect timeout in seconds. Defaults to 2.0.
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        if connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        self._host = host
        self._port = port
        self._timeout = timeout
        self._connect_timeout = connect_timeout
        self._sock: socket.socket | None = None

    # -- Properties ----------------------------------------------------------

    @property
    def address(self) -> tuple[str, int]:
        """The instrument address as ``(host, port)``."""
        return (self._host, self._port)

    @property
    def is_open(self) -> bool:
        """Return True if a socket is currently connected."""
        return self._sock is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Connect to the instrument.

        Raises:
            OSError: If the connection cannot be established.
        """
        if self._sock is not None:
            return
        sock = socket.create_connection(self.address, timeout=self._connect_timeout)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        self._sock = sock
        logger.debug("Connected to %s:%d", self._host, self._port)

    def close(self) -> None:
        """Close the socket.

        Safe to call multiple times.
        """
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                pass
            self._sock = None

    # -- Transport interface -------------------------------------------------

    def write(self, data: bytes) -> None:
        """Send bytes to the instrument, connecting first if needed.

        Args:
            data: The complete request, including its terminator.

        Raises:
            OSError: If the connection or the send fails.
        """
        self.open()
        assert self._sock is not None
        try:
            self._sock.sendall(data)
        except OSError:
            self.close()
            raise

    def read(self, max_size: int) -> bytes:
        """Read the response until the line goes quiet.

        Args:
            max_size: Maximum number of bytes to return.

        Returns:
            The bytes received, possibly truncated; ``b""`` if none arrived.
        """
        if self._sock is None:
            return b""
        chunks: list[bytes] = []
        received = 0
        while received < max_size:
            self._sock.settimeout(self._timeout)
            try:
                chunk = self._sock.recv(min(65536, max_size - received))
            except socket.timeout:
                break
            except OSError as exc:
                logger.warning("Read from %s:%d failed: %s", self._host, self._port, exc)
                self.close()
                break
            if not chunk:
                logger.debug("Connection closed by %s:%d", self._host, self._port)
                self.close()
                break
            chunks.append(chunk)
            received += len(chunk)
        return b"".join(chunks)
