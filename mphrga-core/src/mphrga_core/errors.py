"""Exception types for mphrga-core.

This module defines the exception hierarchy used throughout mphrga. All
mphrga exceptions inherit from RgaError, allowing consumers to catch every
engine-specific error with a single except clause.

Exception hierarchy:
    RgaError (base)
    +-- DecodeError: A payload is well-formed but has the wrong shape
    +-- StateError: Operating state machine violations
    +-- ExchangeError: Request/response failures (defined in mphrga-http)
"""

from __future__ import annotations


class RgaError(Exception):
    """Base exception for all mphrga errors.

    This is the root of the mphrga exception hierarchy. Catch this to handle
    any engine-specific error.
    """


class DecodeError(RgaError):
    """Raised when an endpoint payload cannot be mapped to its record.

    The payload was received intact but a field is missing, has the wrong
    JSON type, or carries an unrecognized enumerated value.

    Attributes:
        endpoint: Name of the endpoint whose payload failed to decode
            (e.g. ``"scanInfo"``).
        field: Name of the offending field, or ``None`` when the document as
            a whole is unusable.
        detail: Human-readable description of the problem.
    """

    def __init__(self, endpoint: str, field: str | None, detail: str) -> None:
        """Initialize the decode error.

        Args:
            endpoint: Endpoint name.
            field: Offending field name, if any.
            detail: Description of the problem.
        """
        self.endpoint = endpoint
        self.field = field
        self.detail = detail
        where = f"{endpoint}.{field}" if field else endpoint
        super().__init__(f"Cannot decode {where}: {detail}")


class StateError(RgaError):
    """Raised for invalid operating state transitions.

    For example, requesting a monitor start while a leak-check is running.
    The request is rejected before any device command is issued.
    """
