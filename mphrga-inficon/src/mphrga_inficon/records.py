"""Typed records decoded from the analyzer's endpoints.

Every record is an immutable snapshot of one endpoint's ``data`` object.
Enumerated wire strings are represented by :class:`IntEnum` members whose
integer values are what the parameter layer publishes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TypeVar

MAX_SCAN_SIZE = 16384
"""Upper bound on sample and mass-axis array lengths."""

MAX_CHANNELS = 5
"""Number of scan channels the instrument exposes (1-based)."""

MAX_FILAMENTS = 3
"""Number of ion-source filaments (1-based)."""

_E = TypeVar("_E", bound="WireEnum")

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class WireEnum(IntEnum):
    """Integer enumeration with a title-case wire label.

    The label sent and received on the wire is the member name in title case
    (``OFF`` is ``"Off"``, ``LO`` is ``"Lo"``).
    """

    @property
    def label(self) -> str:
        """The wire representation of this member."""
        return self.name.title()

    @classmethod
    def from_label(cls: type[_E], label: str) -> _E:
        """Look up a member by its exact wire label.

        Args:
            label: The wire string (e.g. ``"On"``).

        Returns:
            The matching member.

        Raises:
            ValueError: If no member has this label.
        """
        for member in cls:
            if member.label == label:
                return member
        choices = ", ".join(member.label for member in cls)
        raise ValueError(f"{label!r} is not one of {choices}")


class Switch(WireEnum):
    """Off/On state of a switchable subsystem."""

    OFF = 0
    ON = 1


class EmissionLevel(WireEnum):
    """Ion-source emission level."""

    LO = 0
    HI = 1


class Optimization(WireEnum):
    """Ion-source optimization type."""

    LINEARITY = 0
    SENSITIVITY = 1


class RodPolarity(WireEnum):
    """Quadrupole rod polarity."""

    POSITIVE = 0
    NEGATIVE = 1


class ChannelMode(WireEnum):
    """Scan channel acquisition mode."""

    SWEEP = 0
    SINGLE = 1


class OperatingState(IntEnum):
    """Operating state of the engine, published as ``DRIVER_STATE``."""

    IDLE = 0
    MONITORING = 1
    LEAK_CHECK = 2

    @property
    def is_active(self) -> bool:
        """True while a scan mode (monitoring or leak check) is running."""
        return self is not OperatingState.IDLE


# ---------------------------------------------------------------------------
# Identity and status
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CommParams:
    """Network identity of the instrument.

    Attributes:
        ip: IP address string.
        mac: MAC address string.
    """

    ip: str
    mac: str


@dataclass(frozen=True)
class SensorInfo:
    """Sensor identification.

    Attributes:
        name: Sensor name.
        description: Free-text sensor description.
        serial: Serial number.
    """

    name: str
    description: str
    serial: str


@dataclass(frozen=True)
class FilamentStatus:
    """Wear counters of one filament.

    Attributes:
        id: Filament number (1-based).
        cumulative_hours: Cumulative emission time in hours.
        pressure_trip: 1 if the filament tripped on over-pressure, else 0.
    """

    id: int
    cumulative_hours: float
    pressure_trip: int


@dataclass(frozen=True)
class DeviceStatus:
    """Overall device health and run-time counters.

    All durations are in hours.

    Attributes:
        system_status: System status bit field.
        hw_error: Hardware error bit field.
        hw_warning: Hardware warning bit field.
        power_on_hours: Time powered on.
        emission_hours: Time with emission on.
        em_hours: Time with the electron multiplier on.
        em_cumulative_hours: Cumulative electron multiplier time.
        em_pressure_trip: 1 if the multiplier tripped on over-pressure, else 0.
        filaments: Per-filament wear counters, in device order.
    """

    system_status: int
    hw_error: int
    hw_warning: int
    power_on_hours: float
    emission_hours: float
    em_hours: float
    em_cumulative_hours: float
    em_pressure_trip: int
    filaments: tuple[FilamentStatus, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class DiagnosticData:
    """Electronics diagnostics."""

    box_temp: float
    anode_potential: float
    emission_current: float
    focus_potential: float
    electron_energy: float
    filament_potential: float
    filament_current: float
    em_potential: float


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScanInfo:
    """Scan progress counters.

    Attributes:
        first_scan: Index of the oldest scan still buffered on the device.
        last_scan: Index of the most recently completed scan.
        current_scan: Index of the scan in progress.
        points_per_scan: Number of samples per scan.
        scanning: 1 while the device is scanning, else 0.
    """

    first_scan: int
    last_scan: int
    current_scan: int
    points_per_scan: int
    scanning: int


@dataclass(frozen=True)
class ScanSample:
    """The newest scan's sample values.

    Attributes:
        declared_size: Number of samples the device says the scan holds.
        scan_number: Index of the scan these values belong to.
        values: Sample values, at most :data:`MAX_SCAN_SIZE` of them.
    """

    declared_size: int
    scan_number: int
    values: tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.values) > MAX_SCAN_SIZE:
            raise ValueError(f"values exceed {MAX_SCAN_SIZE} samples")

    @property
    def actual_size(self) -> int:
        """Number of sample values actually received."""
        return len(self.values)


@dataclass(frozen=True)
class ChannelSetup:
    """Configuration of one scan channel.

    Attributes:
        mode: Sweep or single-point acquisition.
        start_mass: First mass of the sweep (amu).
        stop_mass: Last mass of the sweep (amu).
        dwell: Dwell time per point (ms).
        points_per_mass_unit: Sampling resolution.
        enabled: 1 if the channel takes part in scans, else 0.
    """

    mode: ChannelMode
    start_mass: float
    stop_mass: float
    dwell: float
    points_per_mass_unit: int
    enabled: int


@dataclass(frozen=True)
class ScanSetup:
    """Channel range and repetition count of the scan sequence.

    Attributes:
        start_channel: First channel scanned (1-based).
        stop_channel: Last channel scanned (1-based).
        scan_count: Number of scans to run, -1 for continuous.
    """

    start_channel: int
    stop_channel: int
    scan_count: int


# ---------------------------------------------------------------------------
# Sensor settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DetectorSettings:
    """Electron multiplier settings."""

    voltage_max: float
    voltage_min: float
    voltage: float
    gain: float
    gain_mass: float


@dataclass(frozen=True)
class FilterSettings:
    """Mass filter limits and polarity."""

    mass_max: float
    mass_min: float
    dwell_max: float
    dwell_min: float
    rod_polarity: RodPolarity


@dataclass(frozen=True)
class FilamentState:
    """On/off state of one filament.

    Attributes:
        id: Filament number (1-based).
        state: Whether the filament is lit.
    """

    id: int
    state: Switch


@dataclass(frozen=True)
class IonSourceSettings:
    """Ion source configuration.

    Attributes:
        filament_selected: Active filament number (1-based).
        emission_level: Emission current level.
        optimization: Linearity or sensitivity optimization.
        sensitivity_factor: Partial-pressure sensitivity factor.
        ion_energy: Ion energy (eV).
        filaments: Per-filament on/off state, in device order.
    """

    filament_selected: int
    emission_level: EmissionLevel
    optimization: Optimization
    sensitivity_factor: float
    ion_energy: float
    filaments: tuple[FilamentState, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class GeneralControl:
    """Main switch states.

    Attributes:
        emission: Filament emission.
        electron_multiplier: Electron multiplier high voltage.
        rf_generator: Quadrupole RF generator.
        fan: Cooling fan.
    """

    emission: Switch
    electron_multiplier: Switch
    rf_generator: Switch
    fan: Switch
