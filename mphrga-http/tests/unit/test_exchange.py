"""Tests for HttpExchange using a mock transport."""

from __future__ import annotations

from collections import deque

import pytest

from mphrga_core.errors import RgaError
from mphrga_http.errors import ExchangeError, ProtocolError, TransportTimeout
from mphrga_http.exchange import HttpExchange, extract_payload, extract_status

# ---------------------------------------------------------------------------
# Mock transport
# ---------------------------------------------------------------------------


class MockTransport:
    """In-memory transport that replays pre-loaded raw responses."""

    def __init__(self, responses: list[bytes] | None = None) -> None:
        self.responses: deque[bytes] = deque(responses or [])
        self.written: list[bytes] = []
        self.read_sizes: list[int] = []
        self.closed: bool = False
        self.fail_write: bool = False

    def write(self, data: bytes) -> None:
        if self.fail_write:
            raise OSError("Connection refused")
        self.written.append(data)

    def read(self, max_size: int) -> bytes:
        self.read_sizes.append(max_size)
        if not self.responses:
            return b""
        return self.responses.popleft()[:max_size]

    def close(self) -> None:
        self.closed = True


def _response(body: str, status: str = "200 OK") -> bytes:
    """Build a raw response the way the instrument's web service does."""
    return (
        f"HTTP/1.1 {status}\r\n"
        "Content-Type: application/json\r\n"
        f"Content-Length: {len(body)}\r\n"
        "\r\n"
        f"{body}"
    ).encode()


# ---------------------------------------------------------------------------
# extract_status / extract_payload
# ---------------------------------------------------------------------------


class TestExtractStatus:
    """Tests for extract_status."""

    def test_ok(self) -> None:
        assert extract_status("HTTP/1.1 200 OK\r\n\r\n{}") == 200

    def test_error_status(self) -> None:
        assert extract_status("HTTP/1.1 500 Internal Server Error\r\n") == 500

    def test_missing_marker(self) -> None:
        assert extract_status("HTTP/1.0 200 OK\r\n") is None

    def test_garbage_before_marker(self) -> None:
        assert extract_status("\x00\x00HTTP/1.1 404 Not Found") == 404


class TestExtractPayload:
    """Tests for extract_payload."""

    def test_first_and_last_brace(self) -> None:
        text = 'headers\r\n\r\n{"data": {"a": 1}} trailing'
        assert extract_payload(text) == '{"data": {"a": 1}}'

    def test_missing_open_brace(self) -> None:
        assert extract_payload('"data": 1}') is None

    def test_missing_close_brace(self) -> None:
        assert extract_payload('{"data": 1') is None

    def test_inverted_braces(self) -> None:
        assert extract_payload("} nothing {") is None


# ---------------------------------------------------------------------------
# exchange
# ---------------------------------------------------------------------------


class TestExchange:
    """Tests for HttpExchange.exchange."""

    def test_returns_payload(self) -> None:
        transport = MockTransport([_response('{"data":3.2e-5}')])
        exchange = HttpExchange(transport)
        payload = exchange.exchange("GET /mmsp/measurement/totalPressure/get")
        assert payload == '{"data":3.2e-5}'

    def test_writes_request_with_blank_line(self) -> None:
        transport = MockTransport([_response('{"data":1}')])
        exchange = HttpExchange(transport)
        exchange.exchange("GET /mmsp/scanInfo/get")
        assert transport.written == [b"GET /mmsp/scanInfo/get\r\n\r\n"]

    def test_reads_bounded_size(self) -> None:
        transport = MockTransport([_response('{"data":1}')])
        exchange = HttpExchange(transport, max_response_size=4096)
        exchange.exchange("GET /mmsp/scanInfo/get")
        assert transport.read_sizes == [4096]

    def test_default_buffer_size(self) -> None:
        exchange = HttpExchange(MockTransport())
        assert exchange.max_response_size == 150000

    def test_invalid_buffer_size(self) -> None:
        with pytest.raises(ValueError, match="max_response_size"):
            HttpExchange(MockTransport(), max_response_size=0)

    def test_status_500_raises_protocol_error(self) -> None:
        transport = MockTransport([_response('{"data":3.2e-5}', "500 Internal Server Error")])
        exchange = HttpExchange(transport)
        with pytest.raises(ProtocolError) as exc_info:
            exchange.exchange("GET /mmsp/measurement/totalPressure/get")
        assert exc_info.value.status == 500
        assert exc_info.value.request == "GET /mmsp/measurement/totalPressure/get"

    def test_missing_status_line_raises_protocol_error(self) -> None:
        transport = MockTransport([b'{"data":1}'])
        exchange = HttpExchange(transport)
        with pytest.raises(ProtocolError) as exc_info:
            exchange.exchange("GET /mmsp/scanInfo/get")
        assert exc_info.value.status is None

    def test_missing_brace_raises_protocol_error(self) -> None:
        transport = MockTransport([_response('{"data": [1, 2, 3')])
        exchange = HttpExchange(transport)
        with pytest.raises(ProtocolError) as exc_info:
            exchange.exchange("GET /mmsp/measurement/scans/-1/get")
        assert exc_info.value.status == 200

    def test_truncated_response_keeps_balanced_prefix(self) -> None:
        body = '{"data": {"values": [1.0, 2.0]}}'
        raw = _response(body) + b"\r\n\r\nHTTP/1.1 200 OK\r\n\r\n{"
        transport = MockTransport([raw])
        exchange = HttpExchange(transport)
        # The last "}" belongs to the first body; the stray "{" after it is ignored.
        assert exchange.exchange("GET /mmsp/measurement/scans/-1/get") == body

    def test_zero_bytes_raises_timeout(self) -> None:
        transport = MockTransport([])
        exchange = HttpExchange(transport)
        with pytest.raises(TransportTimeout):
            exchange.exchange("GET /mmsp/scanInfo/get")

    def test_write_failure_raises_timeout(self) -> None:
        transport = MockTransport([_response('{"data":1}')])
        transport.fail_write = True
        exchange = HttpExchange(transport)
        with pytest.raises(TransportTimeout, match="Write failed"):
            exchange.exchange("GET /mmsp/scanInfo/get")

    def test_errors_share_root(self) -> None:
        transport = MockTransport([])
        exchange = HttpExchange(transport)
        with pytest.raises(RgaError):
            exchange.exchange("GET /mmsp/scanInfo/get")

    def test_invalid_utf8_is_replaced(self) -> None:
        raw = b"HTTP/1.1 200 OK\r\nX-Junk: \xff\xfe\r\n\r\n" + b'{"data":"ok"}'
        transport = MockTransport([raw])
        exchange = HttpExchange(transport)
        assert exchange.exchange("GET /mmsp/sensorInfo/get") == '{"data":"ok"}'

    def test_close_closes_transport(self) -> None:
        transport = MockTransport()
        exchange = HttpExchange(transport)
        exchange.close()
        assert transport.closed


# ---------------------------------------------------------------------------
# Error types
# ---------------------------------------------------------------------------


class TestExchangeErrors:
    """Tests for the exchange error hierarchy."""

    def test_timeout_is_exchange_error(self) -> None:
        assert issubclass(TransportTimeout, ExchangeError)

    def test_protocol_is_exchange_error(self) -> None:
        assert issubclass(ProtocolError, ExchangeError)

    def test_message_includes_request(self) -> None:
        err = TransportTimeout("GET /mmsp/scanInfo/get")
        assert "No response from instrument" in str(err)
        assert "GET /mmsp/scanInfo/get" in str(err)

    def test_protocol_status_defaults_to_none(self) -> None:
        err = ProtocolError("GET /x/get", "bad")
        assert err.status is None
