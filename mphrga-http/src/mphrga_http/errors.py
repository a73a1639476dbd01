"""Request/response exchange error types.

This module defines exception classes for failures of a single
request/response cycle with the instrument. All exceptions inherit from
:class:`mphrga_core.errors.RgaError`.
"""

from __future__ import annotations

from mphrga_core.errors import RgaError


class ExchangeError(RgaError):
    """Base exception for request/response exchange failures.

    Both subclasses are exchange-fatal: the payload is unusable and the
    request is simply retried on the next poll tick or command.

    Attributes:
        request: The request line that failed.
    """

    def __init__(self, request: str, message: str) -> None:
        """Initialize the exchange error.

        Args:
            request: The request line that failed.
            message: Description of the failure.
        """
        self.request = request
        super().__init__(f"{message} (request: {request!r})")


class TransportTimeout(ExchangeError):
    """Raised when nothing at all was received for a request.

    A read that returns any bytes, even after a timeout or error, is treated
    as usable; only a zero-byte read (or a failed write) ends up here.
    """

    def __init__(self, request: str, message: str = "No response from instrument") -> None:
        super().__init__(request, message)


class ProtocolError(ExchangeError):
    """Raised when a response was received but carries no usable payload.

    Causes are a missing or malformed ``HTTP/1.1`` status line, a non-200
    status code, or a body without a ``{ ... }`` span.

    Attributes:
        status: The HTTP status code, if one could be parsed.

    Example:
        >>> try:
        ...     exchange.exchange("GET /mmsp/scanInfo/get")
        ... except ProtocolError as e:
        ...     print(f"Device answered {e.status}")
    """

    def __init__(self, request: str, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(request, message)
