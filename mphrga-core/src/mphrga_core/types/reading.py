"""Timestamped readings and record slots.

Every record decoded from the instrument is kept in a :class:`RecordSlot`.
A slot holds the last good :class:`Reading` (value plus the monotonic time it
was stored) so that callers can ask how old a value is instead of inferring
staleness from failed polls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Reading(Generic[T]):
    """A value together with the time it was obtained.

    Attributes:
        value: The decoded value.
        timestamp: Monotonic clock reading (seconds) when the value was stored.
    """

    value: T
    timestamp: float

    def age(self, now: float) -> float:
        """Return the age of the reading in seconds.

        Args:
            now: Current monotonic clock reading.

        Returns:
            Seconds elapsed since the reading was stored (never negative).
        """
        return max(0.0, now - self.timestamp)

    def is_stale(self, max_age: float, now: float) -> bool:
        """Return True if the reading is older than ``max_age`` seconds."""
        return self.age(now) > max_age


class RecordSlot(Generic[T]):
    """Mutable holder for the last good value of one record.

    The slot is overwritten in place on every successful decode and is left
    untouched on failure. An empty slot has never received a value and is
    always considered stale.

    Args:
        name: Name of the record held in this slot (used in reports).

    Example:
        >>> slot: RecordSlot[float] = RecordSlot("totalPressure")
        >>> _ = slot.update(3.2e-5, now=10.0)
        >>> slot.value
        3.2e-05
        >>> slot.is_stale(max_age=1.0, now=12.0)
        True
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._reading: Reading[T] | None = None

    def __repr__(self) -> str:
        return f"RecordSlot({self._name!r}, reading={self._reading!r})"

    @property
    def name(self) -> str:
        """Name of the record held in this slot."""
        return self._name

    @property
    def reading(self) -> Reading[T] | None:
        """The last good reading, or None if the slot is empty."""
        return self._reading

    @property
    def value(self) -> T | None:
        """The last good value, or None if the slot is empty."""
        if self._reading is None:
            return None
        return self._reading.value

    @property
    def is_empty(self) -> bool:
        """Return True if no value has ever been stored."""
        return self._reading is None

    def update(self, value: T, now: float) -> Reading[T]:
        """Store a new value.

        Args:
            value: The newly decoded value.
            now: Current monotonic clock reading.

        Returns:
            The stored reading.
        """
        self._reading = Reading(value=value, timestamp=now)
        return self._reading

    def age(self, now: float) -> float | None:
        """Return the age of the stored value, or None if empty."""
        if self._reading is None:
            return None
        return self._reading.age(now)

    def is_stale(self, max_age: float, now: float) -> bool:
        """Return True if the slot is empty or older than ``max_age``."""
        if self._reading is None:
            return True
        return self._reading.is_stale(max_age, now)

    def clear(self) -> None:
        """Forget the stored value."""
        self._reading = None
