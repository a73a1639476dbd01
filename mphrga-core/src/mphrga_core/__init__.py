"""Core library for the mphrga residual gas analyzer engine.

This package provides the foundational error types, staleness-aware record
holders, and interfaces shared by the other mphrga packages. It is kept
stdlib-only so it can serve as the base layer for all of them.

Key components:
    - Types: Reading (value + timestamp) and RecordSlot (last good reading).
    - Interfaces: ValuePublisher protocol for the record layer.
    - Errors: Hierarchy of exception types for various failure modes.

Example:
    >>> from mphrga_core import RecordSlot
    >>> slot: RecordSlot[float] = RecordSlot("totalPressure")
    >>> slot.update(3.2e-5, now=0.0)
    Reading(value=3.2e-05, timestamp=0.0)
"""

from mphrga_core.errors import DecodeError, RgaError, StateError
from mphrga_core.interfaces import ScalarValue, ValuePublisher
from mphrga_core.types import Reading, RecordSlot

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Types
    "Reading",
    "RecordSlot",
    # Interfaces
    "ScalarValue",
    "ValuePublisher",
    # Errors
    "DecodeError",
    "RgaError",
    "StateError",
]
