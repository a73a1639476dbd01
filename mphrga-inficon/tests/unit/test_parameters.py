"""Unit tests for the parameter store and record publishers."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock, call

from mphrga_inficon import parameters
from mphrga_inficon.parameters import (
    ParameterStore,
    filament_cumulative_time,
    filament_pressure_trip,
    filament_state,
    parameter_key,
    publish_channel_setup,
    publish_device_status,
    publish_general_control,
    publish_ion_source_settings,
    publish_operating_state,
    publish_scan_info,
)
from mphrga_inficon.records import (
    ChannelMode,
    ChannelSetup,
    DeviceStatus,
    EmissionLevel,
    FilamentState,
    FilamentStatus,
    GeneralControl,
    IonSourceSettings,
    OperatingState,
    Optimization,
    ScanInfo,
    Switch,
)


def _collect(store: ParameterStore) -> list[tuple[str, Any]]:
    received: list[tuple[str, Any]] = []
    store.add_listener(lambda key, value: received.append((key, value)))
    return received


class TestNames:
    def test_filament_names(self) -> None:
        assert filament_cumulative_time(2) == "FIL2_CML_ON_T"
        assert filament_pressure_trip(3) == "FIL3_PRESS_TRIP"
        assert filament_state(1) == "FIL1_STATE"

    def test_parameter_key(self) -> None:
        assert parameter_key("GET_PRESS") == "GET_PRESS"
        assert parameter_key("CH_PPAMU", 2) == "CH_PPAMU[2]"


class TestParameterStore:
    def test_scalar_delivered_on_flush(self) -> None:
        store = ParameterStore()
        received = _collect(store)

        store.publish_scalar("GET_PRESS", 3.2e-5)
        assert received == []
        assert store.get("GET_PRESS") == 3.2e-5

        store.flush()
        assert received == [("GET_PRESS", 3.2e-5)]
        assert store.flush_count == 1

    def test_unchanged_value_not_redelivered(self) -> None:
        store = ParameterStore()
        received = _collect(store)
        store.publish_scalar("EMI_ON", 1)
        store.flush()
        store.publish_scalar("EMI_ON", 1)
        store.flush()
        assert received == [("EMI_ON", 1)]
        assert store.flush_count == 2

    def test_changed_value_redelivered(self) -> None:
        store = ParameterStore()
        received = _collect(store)
        store.publish_scalar("EMI_ON", 1)
        store.flush()
        store.publish_scalar("EMI_ON", 0)
        store.flush()
        assert received == [("EMI_ON", 1), ("EMI_ON", 0)]

    def test_forced_flush_delivers_everything(self) -> None:
        store = ParameterStore()
        store.publish_scalar("B", 2)
        store.publish_scalar("A", 1)
        store.flush()
        received = _collect(store)
        store.flush(force=True)
        assert received == [("A", 1), ("B", 2)]

    def test_channel_scalar(self) -> None:
        store = ParameterStore()
        store.publish_scalar("CH_PPAMU", 10, channel=1)
        assert store.get("CH_PPAMU", 1) == 10
        assert store.get("CH_PPAMU") is None
        assert store.snapshot() == {"CH_PPAMU[1]": 10}

    def test_array_delivered_immediately(self) -> None:
        store = ParameterStore()
        received = _collect(store)
        store.publish_array("GET_SCAN", [1.0, 2.0, 3.0], 2)
        assert received == [("GET_SCAN", (1.0, 2.0))]
        assert store.get_array("GET_SCAN") == (1.0, 2.0)
        assert store.array_sizes() == {"GET_SCAN": 2}

    def test_arrays_not_in_snapshot(self) -> None:
        store = ParameterStore()
        store.publish_array("GET_SCAN", [1.0], 1)
        store.publish_scalar("GET_PRESS", 1e-6)
        assert store.snapshot() == {"GET_PRESS": 1e-6}

    def test_missing_values(self) -> None:
        store = ParameterStore()
        assert store.get("GET_PRESS") is None
        assert store.get_array("GET_SCAN") is None


class TestPublishers:
    def test_scan_info(self) -> None:
        publisher = MagicMock()
        publish_scan_info(
            publisher,
            ScanInfo(first_scan=1, last_scan=7, current_scan=8, points_per_scan=491, scanning=1),
        )
        publisher.publish_scalar.assert_has_calls(
            [
                call(parameters.FIRST_SCAN, 1),
                call(parameters.LAST_SCAN, 7),
                call(parameters.CURRENT_SCAN, 8),
                call(parameters.PPSCAN, 491),
                call(parameters.SCAN_STAT, 1),
            ]
        )

    def test_device_status_filaments(self) -> None:
        store = ParameterStore()
        publish_device_status(
            store,
            DeviceStatus(
                system_status=0,
                hw_error=0,
                hw_warning=0,
                power_on_hours=2.0,
                emission_hours=1.0,
                em_hours=0.5,
                em_cumulative_hours=10.0,
                em_pressure_trip=0,
                filaments=(
                    FilamentStatus(id=1, cumulative_hours=2.0, pressure_trip=0),
                    FilamentStatus(id=2, cumulative_hours=0.25, pressure_trip=1),
                ),
            ),
        )
        assert store.get(parameters.PWR_ON_T) == 2.0
        assert store.get("FIL1_CML_ON_T") == 2.0
        assert store.get("FIL2_CML_ON_T") == 0.25
        assert store.get("FIL2_PRESS_TRIP") == 1

    def test_enumerations_published_as_integers(self) -> None:
        store = ParameterStore()
        publish_general_control(
            store,
            GeneralControl(
                emission=Switch.ON,
                electron_multiplier=Switch.OFF,
                rf_generator=Switch.ON,
                fan=Switch.ON,
            ),
        )
        publish_ion_source_settings(
            store,
            IonSourceSettings(
                filament_selected=1,
                emission_level=EmissionLevel.HI,
                optimization=Optimization.SENSITIVITY,
                sensitivity_factor=2.5e-4,
                ion_energy=8.0,
                filaments=(FilamentState(id=1, state=Switch.ON),),
            ),
        )
        assert store.get(parameters.EMI_ON) == 1
        assert store.get(parameters.EM_ON) == 0
        assert store.get(parameters.EMI_LEVEL) == 1
        assert store.get(parameters.OPT_TYPE) == 1
        assert store.get("FIL1_STATE") == 1
        assert type(store.get(parameters.EMI_ON)) is int

    def test_channel_setup_uses_channel_index(self) -> None:
        store = ParameterStore()
        publish_channel_setup(
            store,
            ChannelSetup(
                mode=ChannelMode.SINGLE,
                start_mass=4.0,
                stop_mass=4.0,
                dwell=64.0,
                points_per_mass_unit=1,
                enabled=1,
            ),
            channel=2,
        )
        assert store.get(parameters.CH_MODE, 2) == 1
        assert store.get(parameters.CH_START_MASS, 2) == 4.0
        assert store.get(parameters.CH_DWELL, 2) == 64.0
        assert store.get(parameters.CH_PPAMU, 2) == 1
        assert store.get(parameters.CH_ENABLED, 2) == 1

    def test_operating_state(self) -> None:
        store = ParameterStore()
        publish_operating_state(store, OperatingState.LEAK_CHECK)
        assert store.get(parameters.DRIVER_STATE) == 2
