"""Refresh cadences for the polling scheduler.

A :class:`Cadence` answers "is this group due?" as a pure function of the
current time and the group's last successful refresh. Measuring from the
last refresh (instead of a fixed grid) means a late tick delays the next
refresh rather than producing a burst of catch-up refreshes.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Cadence:
    """A refresh period for one attribute group.

    Args:
        name: Group name, for logging.
        period: Minimum time between refreshes in seconds (> 0).

    Example:
        >>> medium = Cadence("medium", 5.0)
        >>> medium.is_due(now=12.0, last_fire=None)
        True
        >>> medium.is_due(now=12.0, last_fire=8.0)
        False
    """

    name: str
    period: float

    def __post_init__(self) -> None:
        if self.period <= 0:
            raise ValueError(f"{self.name} period must be > 0")

    def is_due(self, now: float, last_fire: float | None) -> bool:
        """Return True if the group should refresh at ``now``.

        Args:
            now: Current monotonic time.
            last_fire: Time of the last successful refresh, or None if the
                group has never refreshed.
        """
        if last_fire is None:
            return True
        return now - last_fire >= self.period

    def time_until_due(self, now: float, last_fire: float | None) -> float:
        """Return the seconds left until the group is due (0 if already due)."""
        if last_fire is None:
            return 0.0
        return max(0.0, last_fire + self.period - now)
