"""Request/response transport for the mphrga analyzer engine.

This package provides the communication layer between the engine and the
analyzer's embedded web service. It includes:

- Transport abstraction for byte-stream message passing
- Socket-backed transport for real instruments
- The request/response exchange that extracts JSON payloads
- Exception types classifying exchange failures

Typical usage::

    from mphrga_http import HttpExchange, TcpTransport

    exchange = HttpExchange(TcpTransport("192.168.1.50", 80))
    payload = exchange.exchange("GET /mmsp/scanInfo/get")
    exchange.close()
"""

from mphrga_http.errors import ExchangeError, ProtocolError, TransportTimeout
from mphrga_http.exchange import (
    DEFAULT_MAX_RESPONSE_SIZE,
    HttpExchange,
    extract_payload,
    extract_status,
)
from mphrga_http.tcp import TcpTransport
from mphrga_http.transport import Transport

__all__ = [
    # Exchange
    "DEFAULT_MAX_RESPONSE_SIZE",
    "HttpExchange",
    "extract_payload",
    "extract_status",
    # Errors
    "ExchangeError",
    "ProtocolError",
    "TransportTimeout",
    # Transport
    "TcpTransport",
    "Transport",
]
