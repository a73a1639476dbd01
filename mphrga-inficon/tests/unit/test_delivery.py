"""Unit tests for exactly-once scan delivery."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from mphrga_core.errors import DecodeError
from mphrga_core.types import RecordSlot
from mphrga_http import ProtocolError, TransportTimeout

from mphrga_inficon.delivery import ScanDelivery
from mphrga_inficon.instrument import MphInstrument
from mphrga_inficon.parameters import (
    GET_LEAKCHK,
    GET_SCAN,
    GET_XCOORD,
    POINTS_IN_SCAN,
    ParameterStore,
)
from mphrga_inficon.records import (
    MAX_SCAN_SIZE,
    ChannelMode,
    ChannelSetup,
    OperatingState,
    ScanInfo,
    ScanSample,
)

MONITORING = OperatingState.MONITORING
LEAK_CHECK = OperatingState.LEAK_CHECK

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _info(last_scan: int, scanning: int = 1) -> ScanInfo:
    return ScanInfo(
        first_scan=0,
        last_scan=last_scan,
        current_scan=last_scan + 1,
        points_per_scan=21,
        scanning=scanning,
    )


def _setup(start: float = 1.0, stop: float = 3.0, ppamu: int = 10) -> ChannelSetup:
    return ChannelSetup(
        mode=ChannelMode.SWEEP,
        start_mass=start,
        stop_mass=stop,
        dwell=32.0,
        points_per_mass_unit=ppamu,
        enabled=1,
    )


def _sample(scan_number: int = 1, size: int = 21) -> ScanSample:
    return ScanSample(
        declared_size=size,
        scan_number=scan_number,
        values=tuple(float(i) for i in range(size)),
    )


class _Fixture:
    def __init__(self, setup: ChannelSetup | None = None) -> None:
        self.instrument = MagicMock(spec=MphInstrument)
        self.instrument.get_scan_sample.return_value = _sample()
        self.instrument.get_leak_check.return_value = 1.5e-9
        self.store = ParameterStore()
        self.slot: RecordSlot[ChannelSetup] = RecordSlot("channel1")
        if setup is not None:
            self.slot.update(setup, 0.0)
        self.delivery = ScanDelivery(
            self.instrument, self.store, self.slot, clock=lambda: 100.0
        )


@pytest.fixture
def fx() -> _Fixture:
    return _Fixture(_setup())


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestBaseline:
    def test_idle_does_nothing(self, fx: _Fixture) -> None:
        fx.delivery.arm()
        assert not fx.delivery.evaluate(OperatingState.IDLE, _info(5))
        fx.instrument.get_scan_sample.assert_not_called()
        assert fx.delivery.is_armed

    def test_not_scanning_does_nothing(self, fx: _Fixture) -> None:
        fx.delivery.arm()
        assert not fx.delivery.evaluate(MONITORING, _info(5, scanning=0))
        assert fx.delivery.is_armed
        assert fx.delivery.last_delivered is None

    def test_first_index_is_baseline(self, fx: _Fixture) -> None:
        fx.delivery.arm()
        assert not fx.delivery.evaluate(MONITORING, _info(5))
        assert fx.delivery.last_delivered == 5
        assert not fx.delivery.is_armed
        fx.instrument.get_scan_sample.assert_not_called()

    def test_monitoring_zeroes_buffers(self, fx: _Fixture) -> None:
        fx.store.publish_array(GET_SCAN, [9.0] * 4, 4)
        fx.delivery.arm()
        fx.delivery.evaluate(MONITORING, _info(5))
        assert fx.store.get_array(GET_SCAN) == (0.0,) * MAX_SCAN_SIZE
        assert fx.store.get_array(GET_XCOORD) == (0.0,) * MAX_SCAN_SIZE

    def test_monitoring_rearm_clears_sample_and_axis(self) -> None:
        fx = _Fixture(_setup())
        fx.delivery.arm()
        fx.delivery.evaluate(MONITORING, _info(5))
        assert fx.delivery.evaluate(MONITORING, _info(6))
        assert not fx.delivery.sample.is_empty
        assert not fx.delivery.mass_axis.is_empty
        fx.delivery.arm()
        fx.delivery.evaluate(MONITORING, _info(8))
        assert fx.delivery.sample.is_empty
        assert fx.delivery.mass_axis.is_empty

    def test_leak_check_keeps_buffers(self, fx: _Fixture) -> None:
        fx.store.publish_array(GET_SCAN, [9.0] * 4, 4)
        fx.delivery.arm()
        fx.delivery.evaluate(LEAK_CHECK, _info(5))
        assert fx.store.get_array(GET_SCAN) == (9.0,) * 4
        assert fx.store.get_array(GET_XCOORD) is None

    def test_disarm_forgets_progress(self, fx: _Fixture) -> None:
        fx.delivery.arm()
        fx.delivery.evaluate(MONITORING, _info(5))
        fx.delivery.disarm()
        assert fx.delivery.last_delivered is None
        assert not fx.delivery.is_armed


class TestDelivery:
    def test_index_sequence_fetches_each_new_scan_once(self, fx: _Fixture) -> None:
        fx.delivery.arm()
        delivered = [fx.delivery.evaluate(MONITORING, _info(n)) for n in [5, 5, 6, 6, 7]]
        assert delivered == [False, False, True, False, True]
        assert fx.instrument.get_scan_sample.call_count == 2
        assert fx.delivery.last_delivered == 7

    def test_publishes_sample_and_size(self, fx: _Fixture) -> None:
        fx.delivery.arm()
        fx.delivery.evaluate(MONITORING, _info(5))
        fx.delivery.evaluate(MONITORING, _info(6))
        assert fx.store.get_array(GET_SCAN) == tuple(float(i) for i in range(21))
        assert fx.store.get(POINTS_IN_SCAN) == 21
        assert fx.delivery.sample.value == _sample()
        assert fx.delivery.sample.reading is not None
        assert fx.delivery.sample.reading.timestamp == 100.0

    def test_skipped_scans_fetch_newest_only(self, fx: _Fixture) -> None:
        fx.delivery.arm()
        fx.delivery.evaluate(MONITORING, _info(5))
        assert fx.delivery.evaluate(MONITORING, _info(9))
        assert fx.instrument.get_scan_sample.call_count == 1
        assert fx.delivery.last_delivered == 9

    def test_index_going_backwards_is_ignored(self, fx: _Fixture) -> None:
        fx.delivery.arm()
        fx.delivery.evaluate(MONITORING, _info(5))
        fx.delivery.evaluate(MONITORING, _info(6))
        assert not fx.delivery.evaluate(MONITORING, _info(3))
        assert fx.delivery.last_delivered == 6

    def test_mass_axis_while_monitoring(self, fx: _Fixture) -> None:
        fx.delivery.arm()
        fx.delivery.evaluate(MONITORING, _info(5))
        fx.delivery.evaluate(MONITORING, _info(6))
        axis = fx.store.get_array(GET_XCOORD)
        assert axis is not None
        assert len(axis) == 21
        assert axis[0] == 1.0
        assert axis[-1] == pytest.approx(3.0)
        assert fx.delivery.mass_axis.value == axis

    def test_no_axis_without_channel_setup(self) -> None:
        fx = _Fixture(setup=None)
        fx.delivery.arm()
        fx.delivery.evaluate(MONITORING, _info(5))
        assert fx.delivery.evaluate(MONITORING, _info(6))
        assert fx.store.get_array(GET_XCOORD) == (0.0,) * MAX_SCAN_SIZE
        assert fx.delivery.mass_axis.is_empty

    def test_invalid_axis_still_delivers_sample(self) -> None:
        fx = _Fixture(_setup(start=5.0, stop=3.0))
        fx.delivery.arm()
        fx.delivery.evaluate(MONITORING, _info(5))
        assert fx.delivery.evaluate(MONITORING, _info(6))
        assert fx.store.get(POINTS_IN_SCAN) == 21
        assert fx.delivery.mass_axis.is_empty

    def test_leak_check_publishes_value(self, fx: _Fixture) -> None:
        fx.delivery.arm()
        fx.delivery.evaluate(LEAK_CHECK, _info(5))
        fx.delivery.evaluate(LEAK_CHECK, _info(6))
        assert fx.store.get(GET_LEAKCHK) == 1.5e-9
        assert fx.delivery.leak_check.value == 1.5e-9
        assert fx.store.get_array(GET_XCOORD) is None

    def test_leak_check_decode_failure_does_not_redeliver(self, fx: _Fixture) -> None:
        fx.instrument.get_leak_check.side_effect = DecodeError(
            "measurement/leakCheck", "data", "bad"
        )
        fx.delivery.arm()
        fx.delivery.evaluate(LEAK_CHECK, _info(5))
        assert fx.delivery.evaluate(LEAK_CHECK, _info(6))
        assert not fx.delivery.evaluate(LEAK_CHECK, _info(6))
        assert fx.instrument.get_scan_sample.call_count == 1

    def test_sample_decode_failure_retries(self, fx: _Fixture) -> None:
        fx.instrument.get_scan_sample.side_effect = [
            DecodeError("measurement/scans/-1", "values", "bad"),
            _sample(),
        ]
        fx.delivery.arm()
        fx.delivery.evaluate(MONITORING, _info(5))
        assert not fx.delivery.evaluate(MONITORING, _info(6))
        assert fx.delivery.last_delivered == 5
        assert fx.delivery.evaluate(MONITORING, _info(6))
        assert fx.delivery.last_delivered == 6

    def test_error_status_on_sample_retries(self, fx: _Fixture) -> None:
        fx.instrument.get_scan_sample.side_effect = [
            ProtocolError("GET /mmsp/measurement/scans/-1/get", "HTTP status 503", 503),
            _sample(),
        ]
        fx.delivery.arm()
        fx.delivery.evaluate(MONITORING, _info(5))
        assert not fx.delivery.evaluate(MONITORING, _info(6))
        assert fx.delivery.last_delivered == 5
        assert fx.store.get_array(GET_SCAN) == (0.0,) * MAX_SCAN_SIZE
        assert fx.delivery.evaluate(MONITORING, _info(6))
        assert fx.delivery.last_delivered == 6

    def test_transport_failure_propagates(self, fx: _Fixture) -> None:
        fx.instrument.get_scan_sample.side_effect = TransportTimeout(
            "GET /mmsp/measurement/scans/-1/get"
        )
        fx.delivery.arm()
        fx.delivery.evaluate(MONITORING, _info(5))
        with pytest.raises(TransportTimeout):
            fx.delivery.evaluate(MONITORING, _info(6))
        assert fx.delivery.last_delivered == 5

    def test_rearm_takes_new_baseline(self, fx: _Fixture) -> None:
        fx.delivery.arm()
        fx.delivery.evaluate(MONITORING, _info(5))
        fx.delivery.evaluate(MONITORING, _info(6))
        fx.delivery.disarm()
        fx.delivery.arm()
        assert not fx.delivery.evaluate(LEAK_CHECK, _info(10))
        assert fx.delivery.last_delivered == 10
        assert fx.instrument.get_scan_sample.call_count == 1
