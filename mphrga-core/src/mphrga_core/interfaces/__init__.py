"""Protocol-based interface definitions for mphrga.

Interface Categories:
    Publishing: ValuePublisher - scalar and array publication to the record layer
"""

from mphrga_core.interfaces.publisher import ScalarValue, ValuePublisher

__all__ = [
    "ScalarValue",
    "ValuePublisher",
]
