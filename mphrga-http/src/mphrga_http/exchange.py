"""Request/response exchange with the instrument's embedded web service.

This module provides the :class:`HttpExchange` class, which wraps a
transport to perform one blocking request/response cycle and extract the
JSON payload from the raw response.

The instrument's response is read into a bounded buffer that may be
truncated and whose header length is unpredictable. The payload is therefore
located by scanning for the first ``{`` and the last ``}`` instead of
parsing headers; this is safe because the instrument only returns flat JSON
without unbalanced braces inside string values.

Typical usage::

    from mphrga_http import HttpExchange, TcpTransport

    transport = TcpTransport("192.168.1.50", 80)
    exchange = HttpExchange(transport)
    payload = exchange.exchange("GET /mmsp/measurement/totalPressure/get")
    exchange.close()
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from mphrga_http.errors import ProtocolError, TransportTimeout

if TYPE_CHECKING:
    from mphrga_http.transport import Transport

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESPONSE_SIZE = 150000
"""Response buffer size used by the instrument driver (bytes)."""

REQUEST_TERMINATOR = "\r\n\r\n"
"""Blank-line terminator appended to every request line."""

HTTP_OK = 200

# Matches the status code following the first HTTP/1.1 marker.
_STATUS_RE = re.compile(r"HTTP/1\.1\s+(\d{3})")


def extract_status(response: str) -> int | None:
    """Return the 3-digit status code after the ``HTTP/1.1`` marker.

    Args:
        response: The raw response text.

    Returns:
        The status code, or None if no status line is present.
    """
    match = _STATUS_RE.search(response)
    if match is None:
        return None
    return int(match.group(1))


def extract_payload(response: str) -> str | None:
    """Return the span from the first ``{`` to the last ``}`` inclusive.

    Args:
        response: The raw response text.

    Returns:
        The JSON payload text, or None if either brace is missing or they
        are out of order.
    """
    start = response.find("{")
    end = response.rfind("}")
    if start < 0 or end < start:
        return None
    return response[start : end + 1]


class HttpExchange:
    """One-request-at-a-time exchange over a byte-stream transport.

    Each call writes the literal request line followed by a blank line, reads
    the bounded response, checks the status line, and returns the JSON
    payload. The transport is not safe for interleaved use; callers must
    serialize exchanges.

    Args:
        transport: A :class:`Transport` connected to the instrument.
        max_response_size: Maximum number of bytes read per response.

    Example:
        >>> exchange = HttpExchange(transport)
        >>> exchange.exchange("GET /mmsp/scanInfo/get")
        '{"data": {"firstScan": 0, ...}}'
    """

    def __init__(
        self,
        transport: Transport,
        *,
        max_response_size: int = DEFAULT_MAX_RESPONSE_SIZE,
    ) -> None:
        if max_response_size <= 0:
            raise ValueError("max_response_size must be positive")
        self._transport = transport
        self._max_response_size = max_response_size

    @property
    def max_response_size(self) -> int:
        """Maximum number of bytes read per response."""
        return self._max_response_size

    def exchange(self, request: str) -> str:
        """Send a request line and return the JSON payload of the response.

        Args:
            request: The request line (e.g. ``"GET /mmsp/scanInfo/get"``).

        Returns:
            The JSON payload text.

        Raises:
            TransportTimeout: If the write failed or nothing was received.
            ProtocolError: If the status line is missing, the status is not
                200, or the body has no ``{ ... }`` span.
        """
        try:
            self._transport.write((request + REQUEST_TERMINATOR).encode("ascii"))
        except OSError as exc:
            raise TransportTimeout(request, f"Write failed: {exc}") from exc

        raw = self._transport.read(self._max_response_size)
        if not raw:
            raise TransportTimeout(request)
        logger.debug("%s -> %d bytes", request, len(raw))

        response = raw.decode("utf-8", errors="replace")
        status = extract_status(response)
        if status is None:
            raise ProtocolError(request, "Missing HTTP/1.1 status line")
        if status != HTTP_OK:
            raise ProtocolError(request, f"HTTP status {status}", status=status)

        payload = extract_payload(response)
        if payload is None:
            raise ProtocolError(request, "Response body has no JSON object", status=status)
        return payload

    def close(self) -> None:
        """Close the underlying transport."""
        self._transport.close()
