"""Parameter names, an in-memory parameter store, and record publishers.

The engine reports everything it learns through the
:class:`~mphrga_core.interfaces.ValuePublisher` primitives. This module
names the published parameters, maps each decoded record onto them, and
provides :class:`ParameterStore`, an in-memory publisher that the service
and the REST API share.

Scalar values are staged by ``publish_scalar`` and delivered to listeners by
``flush``; arrays are delivered immediately.
"""

from __future__ import annotations

import threading
from typing import Callable, Sequence, Union

from mphrga_core.interfaces import ScalarValue, ValuePublisher

from mphrga_inficon.records import (
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

# ---------------------------------------------------------------------------
# Parameter names
# ---------------------------------------------------------------------------

IP = "IP"
MAC = "MAC"

SENS_NAME = "SENS_NAME"
SENS_DESC = "SENS_DESC"
SENS_SN = "SENS_SN"

SYST_STAT = "SYST_STAT"
HW_ERROR = "HW_ERROR"
HW_WARN = "HW_WARN"
PWR_ON_T = "PWR_ON_T"
EMI_ON_T = "EMI_ON_T"
EM_ON_T = "EM_ON_T"
EM_CML_ON_T = "EM_CML_ON_T"
EM_PRESS_TRIP = "EM_PRESS_TRIP"

BOX_TEMP = "BOX_TEMP"
ANODE_POTENTIAL = "ANODE_POTENTIAL"
EMI_CURRENT = "EMI_CURRENT"
FOCUS_POTENTIAL = "FOCUS_POTENTIAL"
ELECT_ENERGY = "ELECT_ENERGY"
FIL_POTENTIAL = "FIL_POTENTIAL"
FIL_CURRENT = "FIL_CURRENT"
EM_POTENTIAL = "EM_POTENTIAL"

GET_PRESS = "GET_PRESS"
GET_SCAN = "GET_SCAN"
GET_XCOORD = "GET_XCOORD"
GET_LEAKCHK = "GET_LEAKCHK"

FIRST_SCAN = "FIRST_SCAN"
LAST_SCAN = "LAST_SCAN"
CURRENT_SCAN = "CURRENT_SCAN"
PPSCAN = "PPSCAN"
SCAN_STAT = "SCAN_STAT"
POINTS_IN_SCAN = "POINTS_IN_SCAN"

EM_V = "EM_V"
EM_V_MAX = "EM_V_MAX"
EM_V_MIN = "EM_V_MIN"
EM_GAIN = "EM_GAIN"
EM_GAIN_MASS = "EM_GAIN_MASS"

MASS_MAX = "MASS_MAX"
MASS_MIN = "MASS_MIN"
DWELL_MAX = "DWELL_MAX"
DWELL_MIN = "DWELL_MIN"
ROD_POLARITY = "ROD_POLARITY"

FIL_SEL = "FIL_SEL"
EMI_LEVEL = "EMI_LEVEL"
OPT_TYPE = "OPT_TYPE"
SENS_FACTOR = "SENS_FACTOR"
ION_ENERGY = "ION_ENERGY"

EMI_ON = "EMI_ON"
EM_ON = "EM_ON"
RFGEN_ON = "RFGEN_ON"
FAN_CNTRL = "FAN_CNTRL"

CH_MODE = "CH_MODE"
CH_PPAMU = "CH_PPAMU"
CH_DWELL = "CH_DWELL"
CH_START_MASS = "CH_START_MASS"
CH_STOP_MASS = "CH_STOP_MASS"
CH_ENABLED = "CH_ENABLED"

START_CH = "START_CH"
STOP_CH = "STOP_CH"
SCAN_COUNT = "SCAN_COUNT"

DRIVER_STATE = "DRIVER_STATE"


def filament_cumulative_time(filament: int) -> str:
    """Name of a filament's cumulative emission time parameter."""
    return f"FIL{filament}_CML_ON_T"


def filament_pressure_trip(filament: int) -> str:
    """Name of a filament's over-pressure trip parameter."""
    return f"FIL{filament}_PRESS_TRIP"


def filament_state(filament: int) -> str:
    """Name of a filament's on/off state parameter."""
    return f"FIL{filament}_STATE"


def parameter_key(name: str, channel: int | None = None) -> str:
    """Return the store key of a parameter.

    Args:
        name: Parameter name.
        channel: Channel index for per-channel parameters.

    Returns:
        ``name`` for global parameters, ``name[channel]`` otherwise.
    """
    if channel is None:
        return name
    return f"{name}[{channel}]"


# ---------------------------------------------------------------------------
# Parameter store
# ---------------------------------------------------------------------------

ParameterValue = Union[ScalarValue, tuple[float, ...]]
Listener = Callable[[str, ParameterValue], None]


class ParameterStore:
    """Thread-safe in-memory implementation of ``ValuePublisher``.

    The service thread writes; any thread may read. Listeners are called on
    the writer's thread, outside the store's lock.

    Example:
        >>> store = ParameterStore()
        >>> store.publish_scalar("GET_PRESS", 3.2e-5)
        >>> store.flush()
        >>> store.get("GET_PRESS")
        3.2e-05
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._scalars: dict[str, ScalarValue] = {}
        self._arrays: dict[str, tuple[float, ...]] = {}
        self._dirty: set[str] = set()
        self._listeners: list[Listener] = []
        self._flush_count = 0

    # -- ValuePublisher ------------------------------------------------------

    def publish_scalar(self, name: str, value: ScalarValue, channel: int | None = None) -> None:
        """Stage a scalar value; it is marked dirty if it changed."""
        key = parameter_key(name, channel)
        with self._lock:
            if key not in self._scalars or self._scalars[key] != value:
                self._scalars[key] = value
                self._dirty.add(key)

    def publish_array(
        self,
        name: str,
        values: Sequence[float],
        count: int,
        channel: int | None = None,
    ) -> None:
        """Store the first ``count`` values of an array and notify listeners."""
        key = parameter_key(name, channel)
        array = tuple(values[:count])
        with self._lock:
            self._arrays[key] = array
            listeners = list(self._listeners)
        for listener in listeners:
            listener(key, array)

    def flush(self, *, force: bool = False) -> None:
        """Deliver staged scalar values to listeners.

        Args:
            force: Deliver every known scalar, not only those that changed.
        """
        with self._lock:
            keys = sorted(self._scalars) if force else sorted(self._dirty)
            updates = [(key, self._scalars[key]) for key in keys]
            self._dirty.clear()
            self._flush_count += 1
            listeners = list(self._listeners)
        for key, value in updates:
            for listener in listeners:
                listener(key, value)

    # -- Listeners -----------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        """Register a callback receiving ``(key, value)`` on every delivery."""
        with self._lock:
            self._listeners.append(listener)

    # -- Read side -----------------------------------------------------------

    @property
    def flush_count(self) -> int:
        """Number of completed flushes."""
        with self._lock:
            return self._flush_count

    def get(self, name: str, channel: int | None = None) -> ScalarValue | None:
        """Return the current value of a scalar parameter, or None."""
        with self._lock:
            return self._scalars.get(parameter_key(name, channel))

    def get_array(self, name: str, channel: int | None = None) -> tuple[float, ...] | None:
        """Return the current contents of an array parameter, or None."""
        with self._lock:
            return self._arrays.get(parameter_key(name, channel))

    def snapshot(self) -> dict[str, ScalarValue]:
        """Return a copy of every scalar parameter."""
        with self._lock:
            return dict(self._scalars)

    def array_sizes(self) -> dict[str, int]:
        """Return the current length of every array parameter."""
        with self._lock:
            return {key: len(values) for key, values in self._arrays.items()}


# ---------------------------------------------------------------------------
# Record publishers
# ---------------------------------------------------------------------------


def publish_comm_params(publisher: ValuePublisher, record: CommParams) -> None:
    publisher.publish_scalar(IP, record.ip)
    publisher.publish_scalar(MAC, record.mac)


def publish_sensor_info(publisher: ValuePublisher, record: SensorInfo) -> None:
    publisher.publish_scalar(SENS_NAME, record.name)
    publisher.publish_scalar(SENS_DESC, record.description)
    publisher.publish_scalar(SENS_SN, record.serial)


def publish_device_status(publisher: ValuePublisher, record: DeviceStatus) -> None:
    publisher.publish_scalar(SYST_STAT, record.system_status)
    publisher.publish_scalar(HW_ERROR, record.hw_error)
    publisher.publish_scalar(HW_WARN, record.hw_warning)
    publisher.publish_scalar(PWR_ON_T, record.power_on_hours)
    publisher.publish_scalar(EMI_ON_T, record.emission_hours)
    publisher.publish_scalar(EM_ON_T, record.em_hours)
    publisher.publish_scalar(EM_CML_ON_T, record.em_cumulative_hours)
    publisher.publish_scalar(EM_PRESS_TRIP, record.em_pressure_trip)
    for filament in record.filaments:
        publisher.publish_scalar(filament_cumulative_time(filament.id), filament.cumulative_hours)
        publisher.publish_scalar(filament_pressure_trip(filament.id), filament.pressure_trip)


def publish_diagnostic_data(publisher: ValuePublisher, record: DiagnosticData) -> None:
    publisher.publish_scalar(BOX_TEMP, record.box_temp)
    publisher.publish_scalar(ANODE_POTENTIAL, record.anode_potential)
    publisher.publish_scalar(EMI_CURRENT, record.emission_current)
    publisher.publish_scalar(FOCUS_POTENTIAL, record.focus_potential)
    publisher.publish_scalar(ELECT_ENERGY, record.electron_energy)
    publisher.publish_scalar(FIL_POTENTIAL, record.filament_potential)
    publisher.publish_scalar(FIL_CURRENT, record.filament_current)
    publisher.publish_scalar(EM_POTENTIAL, record.em_potential)


def publish_scan_info(publisher: ValuePublisher, record: ScanInfo) -> None:
    publisher.publish_scalar(FIRST_SCAN, record.first_scan)
    publisher.publish_scalar(LAST_SCAN, record.last_scan)
    publisher.publish_scalar(CURRENT_SCAN, record.current_scan)
    publisher.publish_scalar(PPSCAN, record.points_per_scan)
    publisher.publish_scalar(SCAN_STAT, record.scanning)


def publish_detector_settings(publisher: ValuePublisher, record: DetectorSettings) -> None:
    publisher.publish_scalar(EM_V, record.voltage)
    publisher.publish_scalar(EM_V_MAX, record.voltage_max)
    publisher.publish_scalar(EM_V_MIN, record.voltage_min)
    publisher.publish_scalar(EM_GAIN, record.gain)
    publisher.publish_scalar(EM_GAIN_MASS, record.gain_mass)


def publish_filter_settings(publisher: ValuePublisher, record: FilterSettings) -> None:
    publisher.publish_scalar(MASS_MAX, record.mass_max)
    publisher.publish_scalar(MASS_MIN, record.mass_min)
    publisher.publish_scalar(DWELL_MAX, record.dwell_max)
    publisher.publish_scalar(DWELL_MIN, record.dwell_min)
    publisher.publish_scalar(ROD_POLARITY, int(record.rod_polarity))


def publish_ion_source_settings(publisher: ValuePublisher, record: IonSourceSettings) -> None:
    publisher.publish_scalar(FIL_SEL, record.filament_selected)
    publisher.publish_scalar(EMI_LEVEL, int(record.emission_level))
    publisher.publish_scalar(OPT_TYPE, int(record.optimization))
    publisher.publish_scalar(SENS_FACTOR, record.sensitivity_factor)
    publisher.publish_scalar(ION_ENERGY, record.ion_energy)
    for filament in record.filaments:
        publisher.publish_scalar(filament_state(filament.id), int(filament.state))


def publish_general_control(publisher: ValuePublisher, record: GeneralControl) -> None:
    publisher.publish_scalar(EMI_ON, int(record.emission))
    publisher.publish_scalar(EM_ON, int(record.electron_multiplier))
    publisher.publish_scalar(RFGEN_ON, int(record.rf_generator))
    publisher.publish_scalar(FAN_CNTRL, int(record.fan))


def publish_channel_setup(publisher: ValuePublisher, record: ChannelSetup, channel: int) -> None:
    """Publish one channel's setup under channel-indexed names."""
    publisher.publish_scalar(CH_MODE, int(record.mode), channel)
    publisher.publish_scalar(CH_START_MASS, record.start_mass, channel)
    publisher.publish_scalar(CH_STOP_MASS, record.stop_mass, channel)
    publisher.publish_scalar(CH_DWELL, record.dwell, channel)
    publisher.publish_scalar(CH_PPAMU, record.points_per_mass_unit, channel)
    publisher.publish_scalar(CH_ENABLED, record.enabled, channel)


def publish_scan_setup(publisher: ValuePublisher, record: ScanSetup) -> None:
    publisher.publish_scalar(START_CH, record.start_channel)
    publisher.publish_scalar(STOP_CH, record.stop_channel)
    publisher.publish_scalar(SCAN_COUNT, record.scan_count)


def publish_operating_state(publisher: ValuePublisher, state: OperatingState) -> None:
    publisher.publish_scalar(DRIVER_STATE, int(state))


def publish_total_pressure(publisher: ValuePublisher, value: float) -> None:
    publisher.publish_scalar(GET_PRESS, value)
