"""Incremental delivery of completed scans.

:class:`ScanDelivery` runs once per poll tick after scan-info has been
refreshed. It watches the device's last-completed-scan index and, each time
the index advances, fetches the newest scan and publishes its sample values
(and, while monitoring, the matching mass axis) exactly once.

If polling falls behind by several scans, only the newest scan is fetched.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from mphrga_core.errors import DecodeError
from mphrga_core.interfaces import ValuePublisher
from mphrga_core.types import RecordSlot
from mphrga_http import ProtocolError

from mphrga_inficon.decoders import compute_mass_axis
from mphrga_inficon.instrument import MphInstrument
from mphrga_inficon.parameters import GET_LEAKCHK, GET_SCAN, GET_XCOORD, POINTS_IN_SCAN
from mphrga_inficon.records import (
    MAX_SCAN_SIZE,
    ChannelSetup,
    OperatingState,
    ScanInfo,
    ScanSample,
)

logger = logging.getLogger(__name__)


class ScanDelivery:
    """Publishes each newly completed scan exactly once.

    Call :meth:`arm` when a scan mode starts and :meth:`disarm` when it
    stops. The first evaluation after arming resets the published buffers
    (monitoring only) and takes the device's current index as the baseline;
    that scan was completed before the start and is not delivered.

    Args:
        instrument: Driver used to fetch samples.
        publisher: Destination of published arrays and scalars.
        monitor_slot: Slot holding the monitor channel's setup, used for the
            mass axis.
        clock: Monotonic time source.
    """

    def __init__(
        self,
        instrument: MphInstrument,
        publisher: ValuePublisher,
        monitor_slot: RecordSlot[ChannelSetup],
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._instrument = instrument
        self._publisher = publisher
        self._monitor_slot = monitor_slot
        self._clock = clock
        self._pending_reset = False
        self._last_delivered: int | None = None
        self.sample: RecordSlot[ScanSample] = RecordSlot("scanSample")
        self.mass_axis: RecordSlot[tuple[float, ...]] = RecordSlot("massAxis")
        self.leak_check: RecordSlot[float] = RecordSlot("leakCheck")

    @property
    def last_delivered(self) -> int | None:
        """Index of the last delivered scan, or None before the baseline."""
        return self._last_delivered

    @property
    def is_armed(self) -> bool:
        """True until the first evaluation after :meth:`arm` has run."""
        return self._pending_reset

    def arm(self) -> None:
        """Prepare for a freshly started scan mode."""
        self._pending_reset = True
        self._last_delivered = None

    def disarm(self) -> None:
        """Forget delivery progress after a stop."""
        self._pending_reset = False
        self._last_delivered = None

    def evaluate(self, state: OperatingState, scan_info: ScanInfo) -> bool:
        """Deliver the newest scan if the device reports a new one.

        Args:
            state: Current operating state.
            scan_info: Scan-info refreshed on this tick.

        Returns:
            True if a scan was delivered.

        Raises:
            TransportTimeout: If fetching the sample or leak-check value
                got no answer.
        """
        if not state.is_active or not scan_info.scanning:
            return False

        if self._pending_reset:
            self._pending_reset = False
            self._last_delivered = None
            if state is OperatingState.MONITORING:
                self._publish_zeros()

        reported = scan_info.last_scan
        if self._last_delivered is None:
            logger.debug("Scan baseline at index %d", reported)
            self._last_delivered = reported
            return False
        if reported <= self._last_delivered:
            return False

        try:
            sample = self._instrument.get_scan_sample()
        except (DecodeError, ProtocolError) as exc:
            logger.warning("Scan %d not delivered: %s", reported, exc)
            return False

        now = self._clock()
        self.sample.update(sample, now)
        self._publisher.publish_array(GET_SCAN, sample.values, sample.actual_size)
        self._publisher.publish_scalar(POINTS_IN_SCAN, sample.actual_size)
        self._last_delivered = reported
        logger.debug("Delivered scan %d (%d points)", reported, sample.actual_size)

        if state is OperatingState.MONITORING:
            self._publish_mass_axis(sample, now)
        elif state is OperatingState.LEAK_CHECK:
            self._publish_leak_check(now)
        return True

    def _publish_zeros(self) -> None:
        zeros = [0.0] * MAX_SCAN_SIZE
        self._publisher.publish_array(GET_SCAN, zeros, MAX_SCAN_SIZE)
        self._publisher.publish_array(GET_XCOORD, zeros, MAX_SCAN_SIZE)
        self.sample.clear()
        self.mass_axis.clear()

    def _publish_mass_axis(self, sample: ScanSample, now: float) -> None:
        setup = self._monitor_slot.value
        if setup is None:
            logger.warning("No channel setup yet; mass axis not published")
            return
        try:
            axis = compute_mass_axis(
                setup.start_mass,
                setup.stop_mass,
                setup.points_per_mass_unit,
                sample.declared_size,
            )
        except DecodeError as exc:
            logger.warning("Mass axis not published: %s", exc)
            return
        self.mass_axis.update(axis, now)
        self._publisher.publish_array(GET_XCOORD, axis, len(axis))

    def _publish_leak_check(self, now: float) -> None:
        try:
            value = self._instrument.get_leak_check()
        except (DecodeError, ProtocolError) as exc:
            logger.warning("Leak-check value not published: %s", exc)
            return
        self.leak_check.update(value, now)
        self._publisher.publish_scalar(GET_LEAKCHK, value)
