"""Core data types for mphrga.

Submodules:
    reading: Timestamped readings (Reading) and per-record holders (RecordSlot)
"""

from mphrga_core.types.reading import Reading, RecordSlot

__all__ = [
    "Reading",
    "RecordSlot",
]
