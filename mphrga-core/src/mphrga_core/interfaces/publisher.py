"""Value publishing interface.

This module defines the protocol through which the engine hands instrument
values to the record layer. The record layer itself (parameter storage,
client notification) is external; the engine only needs the three
primitives below.

Scalars are buffered and delivered on :meth:`ValuePublisher.flush`, so that
one poll tick produces one consistent update. Arrays are delivered
immediately because each one is a complete scan.

Protocols:
    ValuePublisher: Publish scalar and float-array values keyed by name.
"""

# pylint: disable=unnecessary-ellipsis  # Ellipsis required for Protocol method stubs

from __future__ import annotations

from typing import Protocol, Sequence, Union

ScalarValue = Union[int, float, str]
"""Type alias for values accepted by :meth:`ValuePublisher.publish_scalar`."""


class ValuePublisher(Protocol):
    """Protocol for publishing instrument values to the record layer.

    Values are keyed by an attribute name plus an optional channel index
    for per-channel attributes.
    """

    def publish_scalar(self, name: str, value: ScalarValue, channel: int | None = None) -> None:
        """Stage a scalar value for the next flush.

        Args:
            name: Attribute name (e.g. ``"GET_PRESS"``).
            value: Integer, float, or string value.
            channel: Channel index for per-channel attributes.
        """
        ...

    def publish_array(
        self,
        name: str,
        values: Sequence[float],
        count: int,
        channel: int | None = None,
    ) -> None:
        """Publish a float array immediately.

        Args:
            name: Attribute name (e.g. ``"GET_SCAN"``).
            values: Array buffer; only the first ``count`` elements are valid.
            count: Number of valid elements.
            channel: Channel index for per-channel attributes.
        """
        ...

    def flush(self, *, force: bool = False) -> None:
        """Deliver staged scalar values.

        Args:
            force: Deliver every known value, not only those that changed.
        """
        ...
