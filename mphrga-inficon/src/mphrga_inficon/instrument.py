"""Inficon MPH residual gas analyzer instrument driver.

Wraps an :class:`~mphrga_http.HttpExchange` with typed methods that read
each endpoint into a record and issue the analyzer's set requests. Command
arguments are validated before anything is sent.
"""

from __future__ import annotations

import logging

from mphrga_http import HttpExchange, TcpTransport

from mphrga_inficon import endpoints
from mphrga_inficon.decoders import (
    decode_channel_setup,
    decode_comm_params,
    decode_detector_settings,
    decode_device_status,
    decode_diagnostic_data,
    decode_filter_settings,
    decode_general_control,
    decode_ion_source_settings,
    decode_leak_check,
    decode_scan_info,
    decode_scan_sample,
    decode_scan_setup,
    decode_sensor_info,
    decode_total_pressure,
)
from mphrga_inficon.records import (
    MAX_CHANNELS,
    MAX_FILAMENTS,
    ChannelMode,
    ChannelSetup,
    CommParams,
    DetectorSettings,
    DeviceStatus,
    DiagnosticData,
    FilterSettings,
    GeneralControl,
    IonSourceSettings,
    ScanInfo,
    ScanSample,
    ScanSetup,
    SensorInfo,
    Switch,
)

logger = logging.getLogger(__name__)

CONTINUOUS = -1
"""Scan count meaning "scan until stopped"."""


class MphInstrument:
    """High-level driver for the Inficon MPH analyzer.

    Every method performs one blocking exchange. The exchange is not safe for
    interleaved use, so a single instance must only be driven from one
    thread at a time.

    Args:
        exchange: The request/response exchange to the instrument.
        channel_count: Number of scan channels (1-based).
    """

    def __init__(self, exchange: HttpExchange, *, channel_count: int = MAX_CHANNELS) -> None:
        if channel_count < 1:
            raise ValueError("channel_count must be >= 1")
        self._exchange = exchange
        self._channel_count = channel_count

    @property
    def channel_count(self) -> int:
        """Number of scan channels."""
        return self._channel_count

    def close(self) -> None:
        """Close the underlying exchange."""
        self._exchange.close()

    # -- Validation ----------------------------------------------------------

    def check_channel(self, channel: int) -> None:
        """Raise ValueError unless ``channel`` is a valid 1-based channel."""
        if not 1 <= channel <= self._channel_count:
            raise ValueError(f"Channel {channel} out of range (1-{self._channel_count})")

    # -- Raw access ----------------------------------------------------------

    def _get(self, attribute: str) -> str:
        return self._exchange.exchange(endpoints.get_request(attribute))

    def _set(self, attribute: str, query: str) -> None:
        request = endpoints.set_request(attribute, query)
        logger.debug("Command: %s", request)
        self._exchange.exchange(request)

    # -- Identity and status -------------------------------------------------

    def get_comm_params(self) -> CommParams:
        """Read the network identity."""
        return decode_comm_params(self._get(endpoints.COMMUNICATION))

    def get_sensor_info(self) -> SensorInfo:
        """Read the sensor identification."""
        return decode_sensor_info(self._get(endpoints.SENSOR_INFO))

    def get_device_status(self) -> DeviceStatus:
        """Read device health and run-time counters."""
        return decode_device_status(self._get(endpoints.STATUS))

    def get_diagnostic_data(self) -> DiagnosticData:
        """Read electronics diagnostics."""
        return decode_diagnostic_data(self._get(endpoints.DIAGNOSTIC_DATA))

    # -- Sensor settings -----------------------------------------------------

    def get_detector_settings(self) -> DetectorSettings:
        """Read electron multiplier settings."""
        return decode_detector_settings(self._get(endpoints.SENSOR_DETECTOR))

    def get_filter_settings(self) -> FilterSettings:
        """Read mass filter limits."""
        return decode_filter_settings(self._get(endpoints.SENSOR_FILTER))

    def get_ion_source_settings(self) -> IonSourceSettings:
        """Read ion source configuration."""
        return decode_ion_source_settings(self._get(endpoints.SENSOR_ION_SOURCE))

    def get_general_control(self) -> GeneralControl:
        """Read the main switch states."""
        return decode_general_control(self._get(endpoints.GENERAL_CONTROL))

    # -- Scanning ------------------------------------------------------------

    def get_scan_info(self) -> ScanInfo:
        """Read scan progress counters."""
        return decode_scan_info(self._get(endpoints.SCAN_INFO))

    def get_scan_setup(self) -> ScanSetup:
        """Read the channel range and scan count."""
        return decode_scan_setup(self._get(endpoints.SCAN_SETUP))

    def get_channel_setup(self, channel: int) -> ChannelSetup:
        """Read one channel's configuration.

        Args:
            channel: Channel number (1-based).
        """
        self.check_channel(channel)
        return decode_channel_setup(self._get(endpoints.channel(channel)), channel)

    def get_total_pressure(self) -> float:
        """Read the total pressure."""
        return decode_total_pressure(self._get(endpoints.TOTAL_PRESSURE))

    def get_scan_sample(self) -> ScanSample:
        """Read the newest completed scan."""
        return decode_scan_sample(self._get(endpoints.SCAN_SAMPLE))

    def get_leak_check(self) -> float:
        """Read the leak-check value."""
        return decode_leak_check(self._get(endpoints.LEAK_CHECK))

    # -- General control -----------------------------------------------------

    def set_emission(self, on: bool) -> None:
        """Switch filament emission on or off."""
        self._set(endpoints.SET_EMISSION, Switch(int(on)).label)

    def set_electron_multiplier(self, on: bool) -> None:
        """Switch the electron multiplier on or off."""
        self._set(endpoints.SET_EM, Switch(int(on)).label)

    def set_rf_generator(self, on: bool) -> None:
        """Switch the RF generator on or off."""
        self._set(endpoints.RF_GENERATOR, Switch(int(on)).label)

    def shutdown(self) -> None:
        """Shut the instrument down."""
        self._set(endpoints.SHUTDOWN, "1")

    # -- Detector and ion source ---------------------------------------------

    def set_em_voltage(self, voltage: float) -> None:
        """Set the electron multiplier voltage.

        Args:
            voltage: Multiplier voltage in volts.
        """
        if voltage < 0:
            raise ValueError(f"voltage must be >= 0, got {voltage}")
        self._set(endpoints.EM_VOLTAGE, f"{voltage}")

    def select_filament(self, filament: int) -> None:
        """Select the active filament.

        Args:
            filament: Filament number (1-based).
        """
        if not 1 <= filament <= MAX_FILAMENTS:
            raise ValueError(f"Filament {filament} out of range (1-{MAX_FILAMENTS})")
        self._set(endpoints.FILAMENT_SELECTED, f"{filament}")

    # -- Scan setup ----------------------------------------------------------

    def set_start_stop_channel(self, start_channel: int, stop_channel: int) -> None:
        """Set the range of channels included in a scan.

        Args:
            start_channel: First channel (1-based).
            stop_channel: Last channel (1-based), not below ``start_channel``.
        """
        self.check_channel(start_channel)
        self.check_channel(stop_channel)
        if start_channel > stop_channel:
            raise ValueError(
                f"start channel {start_channel} exceeds stop channel {stop_channel}"
            )
        self._set(
            endpoints.SCAN_SETUP,
            f"startChannel={start_channel}&stopChannel={stop_channel}",
        )

    def configure_channel(self, channel: int, mode: ChannelMode, enabled: bool = True) -> None:
        """Set a channel's acquisition mode and enable flag in one request.

        Args:
            channel: Channel number (1-based).
            mode: Sweep or single-point acquisition.
            enabled: Whether the channel takes part in scans.
        """
        self.check_channel(channel)
        self._set(endpoints.channel(channel), f"channelMode={mode.label}&enabled={enabled}")

    def set_channel_mode(self, channel: int, mode: ChannelMode) -> None:
        """Set a channel's acquisition mode."""
        self.check_channel(channel)
        self._set(endpoints.channel(channel), f"channelMode={mode.label}")

    def set_points_per_mass_unit(self, channel: int, points: int) -> None:
        """Set a channel's sampling resolution.

        Args:
            channel: Channel number (1-based).
            points: Points per mass unit (> 0).
        """
        self.check_channel(channel)
        if points <= 0:
            raise ValueError(f"points per mass unit must be > 0, got {points}")
        self._set(endpoints.channel(channel), f"ppamu={points}")

    def set_dwell(self, channel: int, dwell: float) -> None:
        """Set a channel's dwell time per point.

        Args:
            channel: Channel number (1-based).
            dwell: Dwell time in milliseconds (> 0).
        """
        self.check_channel(channel)
        if dwell <= 0:
            raise ValueError(f"dwell must be > 0, got {dwell}")
        self._set(endpoints.channel(channel), f"dwell={dwell}")

    def set_start_mass(self, channel: int, mass: float) -> None:
        """Set a channel's first mass (amu, >= 0)."""
        self.check_channel(channel)
        if mass < 0:
            raise ValueError(f"mass must be >= 0, got {mass}")
        self._set(endpoints.channel(channel), f"startMass={mass}")

    def set_stop_mass(self, channel: int, mass: float) -> None:
        """Set a channel's last mass (amu, >= 0)."""
        self.check_channel(channel)
        if mass < 0:
            raise ValueError(f"mass must be >= 0, got {mass}")
        self._set(endpoints.channel(channel), f"stopMass={mass}")

    def set_scan_count(self, count: int) -> None:
        """Set the number of scans to run.

        Args:
            count: Number of scans (>= 1), or :data:`CONTINUOUS`.
        """
        if count != CONTINUOUS and count < 1:
            raise ValueError(f"scan count must be -1 or >= 1, got {count}")
        self._set(endpoints.SCAN_COUNT, f"{count}")

    def start_scan(self) -> None:
        """Start scanning."""
        self._set(endpoints.SCAN_START, "1")

    def stop_scan(self, immediate: bool = True) -> None:
        """Stop scanning.

        Args:
            immediate: Abort the scan in progress instead of letting it finish.
        """
        self._set(endpoints.SCAN_STOP, "Immediately" if immediate else "EndOfScan")


def create_instrument(
    host: str,
    port: int = 80,
    *,
    timeout: float = 0.2,
    max_response_size: int = 150000,
    channel_count: int = MAX_CHANNELS,
) -> MphInstrument:
    """Create an analyzer driver talking to ``host:port`` over TCP.

    The connection is opened lazily by the first exchange.

    Args:
        host: Instrument host name or IP address.
        port: Port of the instrument's web service.
        timeout: Read inactivity timeout in seconds.
        max_response_size: Response buffer size in bytes.
        channel_count: Number of scan channels.

    Returns:
        Ready-to-use driver instance.
    """
    transport = TcpTransport(host, port, timeout=timeout)
    exchange = HttpExchange(transport, max_response_size=max_response_size)
    return MphInstrument(exchange, channel_count=channel_count)
