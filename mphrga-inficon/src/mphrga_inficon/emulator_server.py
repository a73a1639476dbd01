"""TCP server exposing an analyzer emulator as an HTTP endpoint.

Wraps an :class:`~mphrga_inficon.emulator.MphEmulator` (or any other
``Transport``) and serves it over TCP, so the TCP transport, the REST
service or plain ``curl`` can talk to an emulated analyzer.

Each connection carries one request: the server reads the request head up
to the blank line, writes the emulator's response and closes the
connection.

Example:
    Start an emulator server on an ephemeral port::

        from mphrga_inficon import EmulatorServer, MphEmulator

        server = EmulatorServer(MphEmulator(), port=0)
        server.start()

        host, port = server.address
        # curl http://{host}:{port}/mmsp/scanInfo/get

        server.stop()
"""

from __future__ import annotations

import socketserver
import threading
from typing import Any

from mphrga_http import DEFAULT_MAX_RESPONSE_SIZE, Transport


class _HttpRequestHandler(socketserver.StreamRequestHandler):
    """Handle one TCP connection carrying a single request."""

    server: _HttpTcpServer

    def handle(self) -> None:
        """Read one request head and answer it.

        Header lines after the request line are read and discarded. A
        connection closed before the blank line gets no answer.
        """
        lines: list[bytes] = []
        for raw_line in self.rfile:
            if raw_line in (b"\r\n", b"\n"):
                break
            lines.append(raw_line)
        else:
            return
        if not lines:
            return

        request = lines[0].rstrip(b"\r\n") + b"\r\n\r\n"
        with self.server.lock:
            transport = self.server.transport
            transport.write(request)
            response = transport.read(DEFAULT_MAX_RESPONSE_SIZE)
        self.wfile.write(response)
        self.wfile.flush()


class _HttpTcpServer(socketserver.TCPServer):
    """TCPServer subclass that holds a reference to the transport.

    Attributes:
        allow_reuse_address: Set to True to allow quick server restart.
        transport: The emulator to serve.
        lock: Serializes access to the transport.
    """

    allow_reuse_address = True

    def __init__(
        self,
        server_address: tuple[str, int],
        transport: Transport,
        **kwargs: Any,
    ) -> None:
        self.transport = transport
        self.lock = threading.Lock()
        super().__init__(server_address, _HttpRequestHandler, **kwargs)


class EmulatorServer:
    """TCP server wrapping an emulator for external access.

    Runs a TCP server in a background daemon thread. Connections are
    handled one at a time.

    Args:
        transport: The emulator to serve.
        host: Bind address (default ``"127.0.0.1"``).
        port: Bind port (default ``8080``). Use ``0`` for an OS-assigned
            ephemeral port.
    """

    def __init__(
        self,
        transport: Transport,
        host: str = "127.0.0.1",
        port: int = 8080,
    ) -> None:
        self._server = _HttpTcpServer((host, port), transport)
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start serving in a daemon thread."""
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Shut down the server and wait for the thread to exit."""
        self._server.shutdown()
        if self._thread is not None:
            self._thread.join()
        self._server.server_close()

    @property
    def address(self) -> tuple[str, int]:
        """Return the actual bound ``(host, port)`` address."""
        addr = self._server.server_address
        return (str(addr[0]), int(addr[1]))
