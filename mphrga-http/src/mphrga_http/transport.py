"""Byte-stream transport protocol definition.

This module defines the :class:`Transport` protocol, which specifies the
interface that all byte-stream transports must provide. Transports handle
the physical connection to the instrument's embedded web service; they know
nothing about HTTP or JSON.

Implementations include:
- :class:`mphrga_http.TcpTransport`: socket-backed transport for real hardware
- :class:`mphrga_inficon.MphEmulator`: in-process instrument emulator
"""

from __future__ import annotations

from typing import Protocol


class Transport(Protocol):
    """Protocol for byte-stream message transport.

    This is a structural subtyping protocol (duck typing). Any class that
    implements ``write()``, ``read()``, and ``close()`` methods with the
    correct signatures is considered a valid transport.

    Example:
        >>> class MyTransport:
        ...     def write(self, data: bytes) -> None:
        ...         pass
        ...     def read(self, max_size: int) -> bytes:
        ...         return b"HTTP/1.1 200 OK\\r\\n\\r\\n{\\"data\\": 1}"
        ...     def close(self) -> None:
        ...         pass
        ...
        >>> transport: Transport = MyTransport()  # Type checks OK
    """

    def write(self, data: bytes) -> None:
        """Send bytes to the instrument.

        Args:
            data: The complete request, including its terminator.

        Raises:
            OSError: If the bytes could not be sent.
        """
        ...

    def read(self, max_size: int) -> bytes:
        """Read the instrument's response.

        Reads until ``max_size`` bytes have arrived, the per-call timeout
        expires, or the peer closes the stream.

        Args:
            max_size: Maximum number of bytes to return.

        Returns:
            Whatever was received; ``b""`` if nothing arrived.
        """
        ...

    def close(self) -> None:
        """Close the transport and release resources."""
        ...
