"""Payload decoders mapping endpoint JSON documents to typed records.

Each ``decode_*`` function is a pure mapping from one payload (the JSON text
extracted by :class:`mphrga_http.HttpExchange`) to one record from
:mod:`mphrga_inficon.records`, or a :class:`DecodeError` naming the endpoint
and the offending field.

Payloads are parsed with a tolerant object hook in which the first
occurrence of a duplicated key wins. Per-filament arrays are removed from
their parent object before the parent's own fields are read, so keys the
firmware repeats at the parent level after the array never shadow the
parent's values.

Typical usage::

    from mphrga_inficon.decoders import decode_scan_info

    info = decode_scan_info('{"data": {"firstScan": 0, "lastScan": 7, ...}}')
    print(info.last_scan)
"""

from __future__ import annotations

import json
from typing import Any, TypeVar

from mphrga_core.errors import DecodeError

from mphrga_inficon import endpoints
from mphrga_inficon.records import (
    MAX_SCAN_SIZE,
    ChannelMode,
    ChannelSetup,
    CommParams,
    DetectorSettings,
    DeviceStatus,
    DiagnosticData,
    EmissionLevel,
    FilamentState,
    FilamentStatus,
    FilterSettings,
    GeneralControl,
    IonSourceSettings,
    Optimization,
    RodPolarity,
    ScanInfo,
    ScanSample,
    ScanSetup,
    SensorInfo,
    Switch,
    WireEnum,
)

_E = TypeVar("_E", bound=WireEnum)

SECONDS_PER_HOUR = 3600.0

MASS_AXIS = "massAxis"
"""Pseudo-endpoint named in mass-axis validation errors."""

# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _first_key_wins(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    obj: dict[str, Any] = {}
    for key, value in pairs:
        obj.setdefault(key, value)
    return obj


def parse_data(endpoint: str, payload: str) -> Any:
    """Parse a payload and return its top-level ``data`` member.

    Args:
        endpoint: Endpoint name used in error messages.
        payload: The JSON text.

    Returns:
        The ``data`` value (an object, array or scalar).

    Raises:
        DecodeError: If the text is not JSON or has no ``data`` member.
    """
    try:
        document = json.loads(payload, object_pairs_hook=_first_key_wins)
    except ValueError as exc:
        raise DecodeError(endpoint, None, f"invalid JSON ({exc})") from exc
    if not isinstance(document, dict):
        raise DecodeError(endpoint, None, "payload is not a JSON object")
    if "data" not in document:
        raise DecodeError(endpoint, "data", "missing")
    return document["data"]


class _Fields:
    """Typed field access on one JSON object, with endpoint-aware errors."""

    def __init__(self, endpoint: str, obj: Any, prefix: str = "") -> None:
        if not isinstance(obj, dict):
            where = prefix.rstrip(".") or "data"
            raise DecodeError(endpoint, where, f"expected an object, got {obj!r}")
        self._endpoint = endpoint
        self._obj = dict(obj)
        self._prefix = prefix

    def _error(self, name: str, detail: str) -> DecodeError:
        return DecodeError(self._endpoint, self._prefix + name, detail)

    def _raw(self, name: str) -> Any:
        if name not in self._obj:
            raise self._error(name, "missing")
        return self._obj[name]

    def number(self, name: str) -> float:
        value = self._raw(name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self._error(name, f"expected a number, got {value!r}")
        return float(value)

    def integer(self, name: str) -> int:
        value = self._raw(name)
        if isinstance(value, bool):
            raise self._error(name, f"expected an integer, got {value!r}")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise self._error(name, f"expected an integer, got {value!r}")

    def text(self, name: str) -> str:
        value = self._raw(name)
        if not isinstance(value, str):
            raise self._error(name, f"expected a string, got {value!r}")
        return value

    def flag(self, name: str) -> int:
        """Return a JSON boolean as 1 or 0."""
        value = self._raw(name)
        if not isinstance(value, bool):
            raise self._error(name, f"expected true/false, got {value!r}")
        return int(value)

    def hours(self, name: str) -> float:
        """Return a duration given in seconds as hours."""
        return self.number(name) / SECONDS_PER_HOUR

    def choice(self, name: str, enum_cls: type[_E]) -> _E:
        label = self.text(name)
        try:
            return enum_cls.from_label(label)
        except ValueError as exc:
            raise self._error(name, str(exc)) from exc

    def numbers(self, name: str, limit: int) -> tuple[float, ...]:
        """Return the first ``limit`` members of a numeric array."""
        value = self._raw(name)
        if not isinstance(value, list):
            raise self._error(name, f"expected an array, got {value!r}")
        result: list[float] = []
        for index, item in enumerate(value[:limit]):
            if isinstance(item, bool) or not isinstance(item, (int, float)):
                raise self._error(f"{name}[{index}]", f"expected a number, got {item!r}")
            result.append(float(item))
        return tuple(result)

    def pop_objects(self, name: str) -> list[_Fields]:
        """Remove an array of objects from this object and wrap its members."""
        value = self._raw(name)
        del self._obj[name]
        if not isinstance(value, list):
            raise self._error(name, f"expected an array, got {value!r}")
        return [
            _Fields(self._endpoint, item, f"{self._prefix}{name}[{index}].")
            for index, item in enumerate(value)
        ]


def _fields(endpoint: str, payload: str) -> _Fields:
    return _Fields(endpoint, parse_data(endpoint, payload))


def _scalar(endpoint: str, payload: str) -> float:
    value = parse_data(endpoint, payload)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(endpoint, "data", f"expected a number, got {value!r}")
    return float(value)


# ---------------------------------------------------------------------------
# Identity and status
# ---------------------------------------------------------------------------


def decode_comm_params(payload: str) -> CommParams:
    """Decode ``communication`` into :class:`CommParams`."""
    data = _fields(endpoints.COMMUNICATION, payload)
    return CommParams(ip=data.text("ipAddress"), mac=data.text("macAddress"))


def decode_sensor_info(payload: str) -> SensorInfo:
    """Decode ``sensorInfo`` into :class:`SensorInfo`."""
    data = _fields(endpoints.SENSOR_INFO, payload)
    return SensorInfo(
        name=data.text("name"),
        description=data.text("description"),
        serial=data.text("serialNumber"),
    )


def decode_device_status(payload: str) -> DeviceStatus:
    """Decode ``status`` into :class:`DeviceStatus`.

    Durations are reported in seconds and converted to hours. The
    ``filaments`` array is decoded into :class:`FilamentStatus` records.

    Args:
        payload: The JSON text.

    Returns:
        The decoded status.

    Raises:
        DecodeError: If a field is missing or has the wrong type.
    """
    data = _fields(endpoints.STATUS, payload)
    filaments = tuple(
        FilamentStatus(
            id=item.integer("id"),
            cumulative_hours=item.hours("emisCmlOnTime"),
            pressure_trip=item.flag("emisPressTrip"),
        )
        for item in data.pop_objects("filaments")
    )
    return DeviceStatus(
        system_status=data.integer("systemStatus"),
        hw_error=data.integer("hwError"),
        hw_warning=data.integer("hwWarning"),
        power_on_hours=data.hours("powerOnTime"),
        emission_hours=data.hours("emissionOnTime"),
        em_hours=data.hours("emOnTime"),
        em_cumulative_hours=data.hours("emCmlOnTime"),
        em_pressure_trip=data.flag("emPressTrip"),
        filaments=filaments,
    )


def decode_diagnostic_data(payload: str) -> DiagnosticData:
    """Decode ``diagnosticData`` into :class:`DiagnosticData`."""
    data = _fields(endpoints.DIAGNOSTIC_DATA, payload)
    return DiagnosticData(
        box_temp=data.number("boxTemp"),
        anode_potential=data.number("anodePotential"),
        emission_current=data.number("emissionCurrent"),
        focus_potential=data.number("focusPotential"),
        electron_energy=data.number("electronEnergy"),
        filament_potential=data.number("filamentPotential"),
        filament_current=data.number("filamentCurrent"),
        em_potential=data.number("emPotential"),
    )


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------


def decode_scan_info(payload: str) -> ScanInfo:
    """Decode ``scanInfo`` into :class:`ScanInfo`."""
    data = _fields(endpoints.SCAN_INFO, payload)
    return ScanInfo(
        first_scan=data.integer("firstScan"),
        last_scan=data.integer("lastScan"),
        current_scan=data.integer("currentScan"),
        points_per_scan=data.integer("pointsPerScan"),
        scanning=data.flag("scanning"),
    )


def decode_channel_setup(payload: str, channel: int) -> ChannelSetup:
    """Decode ``scanSetup/channels/<n>`` into :class:`ChannelSetup`.

    Args:
        payload: The JSON text.
        channel: Channel number the payload was requested for (1-based).
    """
    data = _fields(endpoints.channel(channel), payload)
    return ChannelSetup(
        mode=data.choice("channelMode", ChannelMode),
        start_mass=data.number("startMass"),
        stop_mass=data.number("stopMass"),
        dwell=data.number("dwell"),
        points_per_mass_unit=data.integer("ppamu"),
        enabled=data.flag("enabled"),
    )


def decode_scan_setup(payload: str) -> ScanSetup:
    """Decode ``scanSetup`` into :class:`ScanSetup`."""
    data = _fields(endpoints.SCAN_SETUP, payload)
    return ScanSetup(
        start_channel=data.integer("startChannel"),
        stop_channel=data.integer("stopChannel"),
        scan_count=data.integer("scanCount"),
    )


def decode_total_pressure(payload: str) -> float:
    """Decode ``measurement/totalPressure`` into a pressure value."""
    return _scalar(endpoints.TOTAL_PRESSURE, payload)


def decode_leak_check(payload: str) -> float:
    """Decode ``measurement/leakCheck`` into a leak-rate value."""
    return _scalar(endpoints.LEAK_CHECK, payload)


def decode_scan_sample(payload: str) -> ScanSample:
    """Decode ``measurement/scans/-1`` into :class:`ScanSample`.

    Values beyond :data:`MAX_SCAN_SIZE` are dropped.

    Args:
        payload: The JSON text.

    Returns:
        The decoded sample set.

    Raises:
        DecodeError: If a field is missing or a value is not a number.
    """
    data = _fields(endpoints.SCAN_SAMPLE, payload)
    return ScanSample(
        declared_size=data.integer("scanSize"),
        scan_number=data.integer("scanNum"),
        values=data.numbers("values", MAX_SCAN_SIZE),
    )


def compute_mass_axis(
    start_mass: float,
    stop_mass: float,
    points_per_mass_unit: int,
    declared_size: int,
) -> tuple[float, ...]:
    """Compute the mass value of every sample of a sweep.

    Sample ``i`` sits at ``start_mass + i / points_per_mass_unit``.

    Args:
        start_mass: First mass of the channel sweep (amu).
        stop_mass: Last mass of the channel sweep (amu).
        points_per_mass_unit: Sampling resolution of the channel.
        declared_size: Number of samples the device declared for the scan.

    Returns:
        ``min(declared_size, MAX_SCAN_SIZE)`` mass values.

    Raises:
        DecodeError: If the resolution or size is not positive, or the
            start mass exceeds the stop mass.

    Example:
        >>> compute_mass_axis(1.0, 3.0, 10, 21)[-1]
        3.0
    """
    if points_per_mass_unit <= 0:
        raise DecodeError(MASS_AXIS, "ppamu", f"must be positive, got {points_per_mass_unit}")
    if declared_size <= 0:
        raise DecodeError(MASS_AXIS, "scanSize", f"must be positive, got {declared_size}")
    if start_mass > stop_mass:
        raise DecodeError(
            MASS_AXIS, "startMass", f"{start_mass} exceeds stop mass {stop_mass}"
        )
    count = min(declared_size, MAX_SCAN_SIZE)
    return tuple(start_mass + index / points_per_mass_unit for index in range(count))


# ---------------------------------------------------------------------------
# Sensor settings
# ---------------------------------------------------------------------------


def decode_detector_settings(payload: str) -> DetectorSettings:
    """Decode ``sensorDetector`` into :class:`DetectorSettings`."""
    data = _fields(endpoints.SENSOR_DETECTOR, payload)
    return DetectorSettings(
        voltage_max=data.number("emVoltageMax"),
        voltage_min=data.number("emVoltageMin"),
        voltage=data.number("emVoltage"),
        gain=data.number("emGain"),
        gain_mass=data.number("emGainMass"),
    )


def decode_filter_settings(payload: str) -> FilterSettings:
    """Decode ``sensorFilter`` into :class:`FilterSettings`."""
    data = _fields(endpoints.SENSOR_FILTER, payload)
    return FilterSettings(
        mass_max=data.number("massMax"),
        mass_min=data.number("massMin"),
        dwell_max=data.number("dwellMax"),
        dwell_min=data.number("dwellMin"),
        rod_polarity=data.choice("rodPolarity", RodPolarity),
    )


def decode_ion_source_settings(payload: str) -> IonSourceSettings:
    """Decode ``sensorIonSource`` into :class:`IonSourceSettings`.

    The ``filaments`` array is decoded into :class:`FilamentState` records
    before the parent fields are read.
    """
    data = _fields(endpoints.SENSOR_ION_SOURCE, payload)
    filaments = tuple(
        FilamentState(id=item.integer("id"), state=item.choice("state", Switch))
        for item in data.pop_objects("filaments")
    )
    return IonSourceSettings(
        filament_selected=data.integer("filamentSelected"),
        emission_level=data.choice("emissionLevel", EmissionLevel),
        optimization=data.choice("optimization", Optimization),
        sensitivity_factor=data.number("sensitivityFactor"),
        ion_energy=data.number("ionEnergy"),
        filaments=filaments,
    )


def decode_general_control(payload: str) -> GeneralControl:
    """Decode ``generalControl`` into :class:`GeneralControl`."""
    data = _fields(endpoints.GENERAL_CONTROL, payload)
    return GeneralControl(
        emission=data.choice("setEmission", Switch),
        electron_multiplier=data.choice("setEM", Switch),
        rf_generator=data.choice("rfGeneratorSet", Switch),
        fan=data.choice("fanState", Switch),
    )
