"""Polling scheduler and operating state machine.

:class:`MphController` owns everything that touches the instrument: the
driver, one :class:`~mphrga_core.types.RecordSlot` per record, the refresh
cadences, the operating state, and the scan delivery pipeline. It is not
thread-safe; :class:`mphrga_inficon.service.MphService` drives it from a
single thread.

Each :meth:`MphController.tick` refreshes:

1. scan-info and total pressure (every tick), then evaluates scan delivery;
2. the medium group (diagnostics, detector, ion source, general control and
   the monitor/leak-check channels) when its cadence is due;
3. the slow group (network identity, sensor identity, device status, filter
   settings and scan setup) when its cadence is due.

A transport timeout ends the tick early; unfinished groups keep their last
refresh time and are retried on the next tick. Only timeouts count towards
the repeated-failure back-off. An endpoint that answers with an error status
or an undecodable payload is logged and its slot keeps its last good value;
the rest of the tick carries on.
"""

from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from mphrga_core.errors import DecodeError, StateError
from mphrga_core.interfaces import ValuePublisher
from mphrga_core.types import RecordSlot
from mphrga_http import ExchangeError, ProtocolError, TransportTimeout

from mphrga_inficon.cadence import Cadence
from mphrga_inficon.config import ChannelsConfig, MphConfig, PollingConfig
from mphrga_inficon.delivery import ScanDelivery
from mphrga_inficon.instrument import CONTINUOUS, MphInstrument, create_instrument
from mphrga_inficon.parameters import (
    publish_channel_setup,
    publish_comm_params,
    publish_detector_settings,
    publish_device_status,
    publish_diagnostic_data,
    publish_filter_settings,
    publish_general_control,
    publish_ion_source_settings,
    publish_operating_state,
    publish_scan_info,
    publish_scan_setup,
    publish_sensor_info,
    publish_total_pressure,
)
from mphrga_inficon.records import (
    ChannelMode,
    ChannelSetup,
    CommParams,
    DetectorSettings,
    DeviceStatus,
    DiagnosticData,
    FilterSettings,
    GeneralControl,
    IonSourceSettings,
    OperatingState,
    ScanInfo,
    ScanSetup,
    SensorInfo,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

STALE_PERIODS = 3.0
"""A record is reported stale once it is this many refresh periods old."""


@dataclass(frozen=True)
class RecordStatus:
    """Freshness of one record slot.

    Attributes:
        name: Slot name.
        age: Seconds since the last good value, or None if never read.
        stale: True if the slot is empty or older than its staleness limit.
    """

    name: str
    age: float | None
    stale: bool


class MphController:
    """Owns the instrument state and runs poll ticks and mode changes.

    Args:
        instrument: Driver for the analyzer.
        publisher: Destination for every published value.
        polling: Poll and refresh periods.
        channels: Monitor and leak-check channel assignment.
        clock: Monotonic time source.
        sleep: Sleep function used for the repeated-failure back-off.
    """

    def __init__(
        self,
        instrument: MphInstrument,
        publisher: ValuePublisher,
        *,
        polling: PollingConfig | None = None,
        channels: ChannelsConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        polling = polling or PollingConfig()
        channels = channels or ChannelsConfig()
        instrument.check_channel(channels.monitor)
        instrument.check_channel(channels.leak_check)

        self._instrument = instrument
        self._publisher = publisher
        self._clock = clock
        self._sleep = sleep
        self._backoff = polling.failure_backoff
        self._monitor_channel = channels.monitor
        self._leak_check_channel = channels.leak_check

        self._fast = Cadence("fast", polling.period)
        self._medium = Cadence("medium", polling.medium_period)
        self._slow = Cadence("slow", polling.slow_period)
        self._last_tick: float | None = None
        self._medium_last: float | None = None
        self._slow_last: float | None = None

        self._state = OperatingState.IDLE
        self._prev_failed = False
        self._force = True
        self._consecutive_failures = 0
        self._last_failure: TransportTimeout | None = None

        # -- Record slots ----------------------------------------------------
        self.scan_info: RecordSlot[ScanInfo] = RecordSlot("scanInfo")
        self.total_pressure: RecordSlot[float] = RecordSlot("totalPressure")
        self.diagnostic_data: RecordSlot[DiagnosticData] = RecordSlot("diagnosticData")
        self.detector: RecordSlot[DetectorSettings] = RecordSlot("sensorDetector")
        self.ion_source: RecordSlot[IonSourceSettings] = RecordSlot("sensorIonSource")
        self.general_control: RecordSlot[GeneralControl] = RecordSlot("generalControl")
        self.channel_setups: dict[int, RecordSlot[ChannelSetup]] = {
            number: RecordSlot(f"channel{number}")
            for number in sorted({self._monitor_channel, self._leak_check_channel})
        }
        self.comm_params: RecordSlot[CommParams] = RecordSlot("communication")
        self.sensor_info: RecordSlot[SensorInfo] = RecordSlot("sensorInfo")
        self.device_status: RecordSlot[DeviceStatus] = RecordSlot("status")
        self.filter_settings: RecordSlot[FilterSettings] = RecordSlot("sensorFilter")
        self.scan_setup: RecordSlot[ScanSetup] = RecordSlot("scanSetup")

        self.delivery = ScanDelivery(
            instrument,
            publisher,
            self.channel_setups[self._monitor_channel],
            clock=clock,
        )
        publish_operating_state(publisher, self._state)

    # -- Properties ----------------------------------------------------------

    @property
    def instrument(self) -> MphInstrument:
        """The instrument driver (only to be used from the owning thread)."""
        return self._instrument

    @property
    def state(self) -> OperatingState:
        """Current operating state."""
        return self._state

    @property
    def poll_period(self) -> float:
        """Time between poll ticks in seconds."""
        return self._fast.period

    def time_until_tick(self, now: float) -> float:
        """Return the seconds left until the next tick is due."""
        return self._fast.time_until_due(now, self._last_tick)

    # -- Polling -------------------------------------------------------------

    def tick(self) -> bool:
        """Run one poll tick.

        Returns:
            True if the tick completed without a transport failure.
        """
        now = self._clock()
        self._last_tick = now
        failed = False
        try:
            self._refresh_fast()
            if self._medium.is_due(now, self._medium_last):
                self._refresh_medium()
                self._medium_last = now
            if self._slow.is_due(now, self._slow_last):
                self._refresh_slow()
                self._slow_last = now
        except TransportTimeout as exc:
            failed = True
            if not self._prev_failed:
                logger.warning("Poll tick failed: %s", exc)
            self._last_failure = exc

        self._finish_tick(failed)
        return not failed

    def _refresh(
        self,
        slot: RecordSlot[T],
        fetch: Callable[[], T],
        publish: Callable[[ValuePublisher, T], None],
    ) -> T | None:
        try:
            value = fetch()
        except (DecodeError, ProtocolError) as exc:
            logger.warning("Keeping last %s: %s", slot.name, exc)
            return None
        slot.update(value, self._clock())
        publish(self._publisher, value)
        return value

    def _refresh_fast(self) -> None:
        info = self._refresh(self.scan_info, self._instrument.get_scan_info, publish_scan_info)
        self._refresh(
            self.total_pressure, self._instrument.get_total_pressure, publish_total_pressure
        )
        if info is not None:
            self.delivery.evaluate(self._state, info)

    def _refresh_medium(self) -> None:
        inst = self._instrument
        self._refresh(self.diagnostic_data, inst.get_diagnostic_data, publish_diagnostic_data)
        self._refresh(self.detector, inst.get_detector_settings, publish_detector_settings)
        self._refresh(self.ion_source, inst.get_ion_source_settings, publish_ion_source_settings)
        self._refresh(self.general_control, inst.get_general_control, publish_general_control)
        for number, slot in self.channel_setups.items():
            self._refresh(
                slot,
                functools.partial(inst.get_channel_setup, number),
                functools.partial(publish_channel_setup, channel=number),
            )

    def _refresh_slow(self) -> None:
        inst = self._instrument
        self._refresh(self.comm_params, inst.get_comm_params, publish_comm_params)
        self._refresh(self.sensor_info, inst.get_sensor_info, publish_sensor_info)
        self._refresh(self.device_status, inst.get_device_status, publish_device_status)
        self._refresh(self.filter_settings, inst.get_filter_settings, publish_filter_settings)
        self._refresh(self.scan_setup, inst.get_scan_setup, publish_scan_setup)

    def _finish_tick(self, failed: bool) -> None:
        """Publish the tick's values, or back off after repeated failures."""
        if failed:
            self._consecutive_failures += 1
        else:
            if self._consecutive_failures >= 2:
                logger.info("Instrument communication restored")
            self._consecutive_failures = 0

        if failed and self._prev_failed:
            if self._consecutive_failures == 2:
                logger.error("Instrument not responding (%s); backing off", self._last_failure)
            self._sleep(self._backoff)
        else:
            if failed != self._prev_failed:
                self._force = True
            self._publisher.flush(force=self._force)
            if not failed:
                self._force = False
        self._prev_failed = failed

    # -- Operating state machine ---------------------------------------------

    def start_monitor(self) -> None:
        """Start continuous sweeps on the monitor channel.

        Raises:
            StateError: If not idle or the device is already scanning.
            ExchangeError: If the final start-scan request failed.
        """
        self._start(OperatingState.MONITORING, self._monitor_channel, ChannelMode.SWEEP)

    def start_leak_check(self) -> None:
        """Start continuous single-point measurement on the leak-check channel.

        Raises:
            StateError: If not idle or the device is already scanning.
            ExchangeError: If the final start-scan request failed.
        """
        self._start(OperatingState.LEAK_CHECK, self._leak_check_channel, ChannelMode.SINGLE)

    def _start(self, target: OperatingState, channel: int, mode: ChannelMode) -> None:
        if self._state is not OperatingState.IDLE:
            raise StateError(
                f"Cannot start {target.name.lower()}: state is {self._state.name.lower()}"
            )
        info = self.scan_info.value
        if info is not None and info.scanning:
            raise StateError(f"Cannot start {target.name.lower()}: device is scanning")

        inst = self._instrument
        steps: list[tuple[str, Callable[[], Any]]] = [
            ("stop scan", lambda: inst.stop_scan(immediate=True)),
            ("configure channel", lambda: inst.configure_channel(channel, mode, enabled=True)),
            ("set start/stop channel", lambda: inst.set_start_stop_channel(channel, channel)),
            ("set scan count", lambda: inst.set_scan_count(CONTINUOUS)),
        ]
        for label, step in steps:
            try:
                step()
            except (ExchangeError, DecodeError) as exc:
                logger.warning("Start %s: %s step failed: %s", target.name.lower(), label, exc)

        inst.start_scan()

        self._state = target
        self.delivery.arm()
        publish_operating_state(self._publisher, target)
        logger.info("Entered %s on channel %d", target.name.lower(), channel)

    def stop(self, immediate: bool = True) -> None:
        """Stop scanning and return to idle.

        The state returns to idle even if the stop request fails; the
        failure is then raised.

        Args:
            immediate: Abort the scan in progress instead of letting it finish.
        """
        try:
            self._instrument.stop_scan(immediate=immediate)
        finally:
            previous = self._state
            self._state = OperatingState.IDLE
            self.delivery.disarm()
            publish_operating_state(self._publisher, self._state)
            if previous is not OperatingState.IDLE:
                logger.info("Left %s", previous.name.lower())

    # -- Freshness -----------------------------------------------------------

    def record_status(self, now: float | None = None) -> list[RecordStatus]:
        """Report the age and staleness of every record slot."""
        if now is None:
            now = self._clock()
        groups: list[tuple[Cadence, list[RecordSlot[Any]]]] = [
            (self._fast, [self.scan_info, self.total_pressure]),
            (
                self._medium,
                [
                    self.diagnostic_data,
                    self.detector,
                    self.ion_source,
                    self.general_control,
                    *self.channel_setups.values(),
                ],
            ),
            (
                self._slow,
                [
                    self.comm_params,
                    self.sensor_info,
                    self.device_status,
                    self.filter_settings,
                    self.scan_setup,
                ],
            ),
        ]
        result: list[RecordStatus] = []
        for cadence, slots in groups:
            max_age = cadence.period * STALE_PERIODS
            for slot in slots:
                result.append(RecordStatus(slot.name, slot.age(now), slot.is_stale(max_age, now)))
        return result


def create_controller(config: MphConfig, publisher: ValuePublisher) -> MphController:
    """Create a controller for the instrument described by ``config``.

    Args:
        config: Service configuration.
        publisher: Destination for published values.

    Returns:
        Controller with a TCP-backed instrument driver.
    """
    instrument = create_instrument(
        config.instrument.host,
        config.instrument.port,
        timeout=config.instrument.timeout,
        max_response_size=config.instrument.max_response_size,
        channel_count=config.channels.count,
    )
    return MphController(
        instrument,
        publisher,
        polling=config.polling,
        channels=config.channels,
    )
