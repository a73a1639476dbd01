"""Inficon MPH analyzer emulator.

Provides an in-process emulator of the analyzer's embedded web service. It
implements the :class:`~mphrga_http.Transport` protocol, so it can be handed
straight to :class:`~mphrga_http.HttpExchange`, and it can be served over TCP
with :class:`~mphrga_inficon.emulator_server.EmulatorServer`.

Scans complete when a test calls :meth:`MphEmulator.complete_scan`, or
automatically every ``scan_period`` seconds if one is configured.
"""

from __future__ import annotations

import json
import math
import re
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import parse_qsl

from mphrga_inficon import endpoints
from mphrga_inficon.records import MAX_CHANNELS, MAX_FILAMENTS, MAX_SCAN_SIZE

_REASONS: dict[int, str] = {
    200: "OK",
    400: "Bad Request",
    404: "Not Found",
    500: "Internal Server Error",
    503: "Service Unavailable",
}

_CHANNEL_RE = re.compile(r"^scanSetup/channels/(\d+)$")

# Peak positions (amu) and relative heights of the synthetic residual gas spectrum
_PEAKS: tuple[tuple[float, float], ...] = (
    (2.0, 0.6),
    (14.0, 0.08),
    (16.0, 0.1),
    (17.0, 0.25),
    (18.0, 1.0),
    (28.0, 0.45),
    (32.0, 0.1),
    (40.0, 0.02),
    (44.0, 0.12),
)
_PEAK_WIDTH = 0.15
_PEAK_SCALE = 1e-9
_BASELINE = 1e-12


def _http_response(status: int, body: str) -> bytes:
    """Format a complete HTTP/1.1 response the way the instrument does."""
    encoded = body.encode("utf-8")
    head = (
        f"HTTP/1.1 {status} {_REASONS.get(status, 'Unknown')}\r\n"
        "Content-Type: application/json\r\n"
        f"Content-Length: {len(encoded)}\r\n"
        "Connection: close\r\n"
        "\r\n"
    )
    return head.encode("ascii") + encoded


def _parse_switch(value: str) -> str:
    if value not in ("Off", "On"):
        raise ValueError(f"expected Off or On, got {value!r}")
    return value


def _parse_bool(value: str) -> bool:
    if value not in ("True", "False"):
        raise ValueError(f"expected True or False, got {value!r}")
    return value == "True"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MphEmulatorConfig:
    """Configuration for an analyzer emulator instance.

    Args:
        sensor_name: ``sensorInfo.name``.
        description: ``sensorInfo.description``.
        serial: ``sensorInfo.serialNumber``.
        ip: ``communication.ipAddress``.
        mac: ``communication.macAddress``.
        channel_count: Number of scan channels (>= 1).
        mass_max: Upper mass limit (amu, > mass_min).
        mass_min: Lower mass limit (amu, >= 0).
        scan_period: Seconds per scan when scans complete automatically, or
            None to complete scans only through :meth:`MphEmulator.complete_scan`.
    """

    sensor_name: str = "MPH100M"
    description: str = "Transpector MPH emulator"
    serial: str = "EMU000001"
    ip: str = "127.0.0.1"
    mac: str = "00:a0:41:00:00:01"
    channel_count: int = MAX_CHANNELS
    mass_max: float = 100.0
    mass_min: float = 0.0
    scan_period: float | None = None

    def __post_init__(self) -> None:
        if self.channel_count < 1:
            raise ValueError("channel_count must be >= 1")
        if self.mass_min < 0:
            raise ValueError("mass_min must be >= 0")
        if self.mass_max <= self.mass_min:
            raise ValueError("mass_max must be > mass_min")
        if self.scan_period is not None and self.scan_period <= 0:
            raise ValueError("scan_period must be > 0")


# ---------------------------------------------------------------------------
# Internal state
# ---------------------------------------------------------------------------


@dataclass
class _ChannelState:
    mode: str = "Sweep"
    start_mass: float = 1.0
    stop_mass: float = 50.0
    dwell: float = 32.0
    ppamu: int = 10
    enabled: bool = False


@dataclass
class _FilamentState:
    cumulative_time: int = 0
    pressure_trip: bool = False
    state: str = "Off"


# ---------------------------------------------------------------------------
# Emulator
# ---------------------------------------------------------------------------


class MphEmulator:
    """In-process analyzer emulator implementing ``Transport``.

    Every request line received is appended to :attr:`requests`.

    Args:
        config: Emulator configuration.
        clock: Monotonic time source for automatic scan completion.
    """

    def __init__(
        self,
        config: MphEmulatorConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or MphEmulatorConfig()
        self._clock = clock
        self._response = b""
        self._injected: deque[bytes] = deque()
        self.requests: list[str] = []

        # General control
        self.emission = "Off"
        self.electron_multiplier = "Off"
        self.rf_generator = "On"
        self.fan = "On"
        self.shut_down = False

        # Sensor settings
        self.em_voltage = 1200.0
        self.filament_selected = 1
        self.filaments = [_FilamentState() for _ in range(MAX_FILAMENTS)]

        # Status counters (seconds)
        self.power_on_time = 7200
        self.emission_on_time = 3600
        self.em_on_time = 1800
        self.em_cumulative_time = 36000

        # Measurements
        self.total_pressure = 3.2e-5
        self.leak_rate = 1.5e-9

        # Scanning
        self.channels = [_ChannelState() for _ in range(self._config.channel_count)]
        self.start_channel = 1
        self.stop_channel = 1
        self.scan_count = -1
        self.scanning = False
        self.first_scan = 0
        self.last_scan = 0
        self.current_scan = 0
        self._scans_remaining: int | None = None
        self._scan_started_at = 0.0
        self._auto_completed = 0

        self._get_handlers: dict[str, Callable[[], Any]] = {
            endpoints.COMMUNICATION: self._get_communication,
            endpoints.SENSOR_INFO: self._get_sensor_info,
            endpoints.DIAGNOSTIC_DATA: self._get_diagnostic_data,
            endpoints.SCAN_INFO: self._get_scan_info,
            endpoints.SENSOR_DETECTOR: self._get_detector,
            endpoints.SENSOR_FILTER: self._get_filter,
            endpoints.SENSOR_ION_SOURCE: self._get_ion_source,
            endpoints.GENERAL_CONTROL: self._get_general_control,
            endpoints.SCAN_SETUP: self._get_scan_setup,
            endpoints.TOTAL_PRESSURE: lambda: self.total_pressure,
            endpoints.SCAN_SAMPLE: self._get_scan_sample,
            endpoints.LEAK_CHECK: lambda: self.leak_rate,
        }

        self._set_handlers: dict[str, Callable[[str], None]] = {
            endpoints.SET_EMISSION: self._set_emission,
            endpoints.SET_EM: self._set_em,
            endpoints.RF_GENERATOR: self._set_rf_generator,
            endpoints.SHUTDOWN: self._set_shutdown,
            endpoints.EM_VOLTAGE: self._set_em_voltage,
            endpoints.FILAMENT_SELECTED: self._set_filament,
            endpoints.SCAN_SETUP: self._set_scan_setup,
            endpoints.SCAN_COUNT: self._set_scan_count,
            endpoints.SCAN_START: self._set_scan_start,
            endpoints.SCAN_STOP: self._set_scan_stop,
        }

    # -- Transport interface ------------------------------------------------

    def write(self, data: bytes) -> None:
        """Process one request (request line plus blank line)."""
        line = data.decode("ascii", errors="replace").split("\r\n", 1)[0].strip()
        self.requests.append(line)
        self._advance_scans()
        if self._injected:
            self._response = self._injected.popleft()
            return
        self._response = self._handle(line)

    def read(self, max_size: int) -> bytes:
        """Return and clear the buffered response, truncated to ``max_size``."""
        response = self._response[:max_size]
        self._response = b""
        return response

    def close(self) -> None:
        """Close the emulator (no-op for in-process transport)."""

    # -- Test helpers -------------------------------------------------------

    def fail_next_timeout(self, count: int = 1) -> None:
        """Answer the next ``count`` requests with nothing at all."""
        self._injected.extend(b"" for _ in range(count))

    def fail_next_status(self, status: int, count: int = 1) -> None:
        """Answer the next ``count`` requests with an HTTP error status."""
        body = json.dumps({"error": _REASONS.get(status, "Unknown")})
        self._injected.extend(_http_response(status, body) for _ in range(count))

    def respond_next_with(self, body: str) -> None:
        """Answer the next request with status 200 and a verbatim body."""
        self._injected.append(_http_response(200, body))

    def complete_scan(self, count: int = 1) -> None:
        """Complete ``count`` scans if scanning.

        Honors the configured scan count: scanning stops when the last
        requested scan completes.
        """
        for _ in range(count):
            if not self.scanning:
                return
            self.last_scan += 1
            self.current_scan = self.last_scan + 1
            self.first_scan = max(0, self.last_scan - 9)
            if self._scans_remaining is not None:
                self._scans_remaining -= 1
                if self._scans_remaining <= 0:
                    self.scanning = False

    def channel(self, number: int) -> _ChannelState:
        """Return the mutable state of a channel (1-based)."""
        if not 1 <= number <= len(self.channels):
            raise ValueError(f"Channel {number} out of range (1-{len(self.channels)})")
        return self.channels[number - 1]

    def scan_values(self) -> list[float]:
        """Return the synthetic sample values of the current scan setup."""
        setup = self.channel(self.start_channel)
        if setup.mode == "Single":
            return [self.leak_rate]
        span = setup.stop_mass - setup.start_mass
        points = min(int(round(span * setup.ppamu)) + 1, MAX_SCAN_SIZE)
        # Slow drift so successive scans differ
        drift = 1.0 + 0.01 * math.sin(self.last_scan)
        values = []
        for index in range(points):
            mass = setup.start_mass + index / setup.ppamu
            signal = sum(
                height * math.exp(-(((mass - center) / _PEAK_WIDTH) ** 2))
                for center, height in _PEAKS
            )
            values.append(_BASELINE + _PEAK_SCALE * signal * drift)
        return values

    # -- Request dispatch ---------------------------------------------------

    def _handle(self, line: str) -> bytes:
        parts = line.split()
        if len(parts) != 2 or parts[0] != "GET":
            return self._error(400)
        prefix = f"/{endpoints.AREA}/"
        if not parts[1].startswith(prefix):
            return self._error(404)
        path = parts[1][len(prefix) :]

        if path.endswith("/get"):
            return self._dispatch_get(path[: -len("/get")])
        if "/set?" in path:
            attribute, query = path.split("/set?", 1)
            return self._dispatch_set(attribute, query)
        return self._error(404)

    def _dispatch_get(self, attribute: str) -> bytes:
        if attribute == endpoints.STATUS:
            return _http_response(200, self._status_body())
        match = _CHANNEL_RE.match(attribute)
        if match is not None:
            number = int(match.group(1))
            if not 1 <= number <= len(self.channels):
                return self._error(404)
            return self._ok(self._get_channel(number))
        handler = self._get_handlers.get(attribute)
        if handler is None:
            return self._error(404)
        return self._ok(handler())

    def _dispatch_set(self, attribute: str, query: str) -> bytes:
        match = _CHANNEL_RE.match(attribute)
        try:
            if match is not None:
                self._set_channel(int(match.group(1)), query)
            else:
                handler = self._set_handlers.get(attribute)
                if handler is None:
                    return self._error(404)
                handler(query)
        except (KeyError, ValueError):
            return self._error(400)
        return self._ok("OK")

    def _ok(self, data: Any) -> bytes:
        return _http_response(200, json.dumps({"data": data}))

    def _error(self, status: int) -> bytes:
        return _http_response(status, json.dumps({"error": _REASONS[status]}))

    # -- Scan progress ------------------------------------------------------

    def _advance_scans(self) -> None:
        period = self._config.scan_period
        if period is None or not self.scanning:
            return
        completed = int((self._clock() - self._scan_started_at) // period)
        if completed > self._auto_completed:
            self.complete_scan(completed - self._auto_completed)
            self._auto_completed = completed

    # -- GET handlers -------------------------------------------------------

    def _get_communication(self) -> dict[str, Any]:
        return {"ipAddress": self._config.ip, "macAddress": self._config.mac}

    def _get_sensor_info(self) -> dict[str, Any]:
        return {
            "name": self._config.sensor_name,
            "description": self._config.description,
            "serialNumber": self._config.serial,
        }

    def _status_body(self) -> str:
        filaments = [
            {
                "id": number,
                "emisCmlOnTime": filament.cumulative_time,
                "emisPressTrip": filament.pressure_trip,
            }
            for number, filament in enumerate(self.filaments, start=1)
        ]
        data = {
            "systemStatus": 0,
            "hwError": 0,
            "hwWarning": 0,
            "powerOnTime": self.power_on_time,
            "emissionOnTime": self.emission_on_time,
            "emOnTime": self.em_on_time,
            "emCmlOnTime": self.em_cumulative_time,
            "emPressTrip": False,
            "filaments": filaments,
        }
        text = json.dumps({"data": data})
        # The firmware repeats the last filament's keys after the array.
        repeated = ", ".join(f"{json.dumps(k)}: {json.dumps(v)}" for k, v in filaments[-1].items())
        return f"{text[:-2]}, {repeated}}}}}"

    def _get_diagnostic_data(self) -> dict[str, Any]:
        emitting = self.emission == "On"
        return {
            "boxTemp": 38.5,
            "anodePotential": 120.0 if emitting else 0.0,
            "emissionCurrent": 0.1 if emitting else 0.0,
            "focusPotential": -40.0 if emitting else 0.0,
            "electronEnergy": 70.0,
            "filamentPotential": -50.0 if emitting else 0.0,
            "filamentCurrent": 2.1 if emitting else 0.0,
            "emPotential": -self.em_voltage if self.electron_multiplier == "On" else 0.0,
        }

    def _get_scan_info(self) -> dict[str, Any]:
        return {
            "firstScan": self.first_scan,
            "lastScan": self.last_scan,
            "currentScan": self.current_scan,
            "pointsPerScan": len(self.scan_values()),
            "scanning": self.scanning,
        }

    def _get_detector(self) -> dict[str, Any]:
        return {
            "emVoltageMax": 2500.0,
            "emVoltageMin": 500.0,
            "emVoltage": self.em_voltage,
            "emGain": 1000.0,
            "emGainMass": 28.0,
        }

    def _get_filter(self) -> dict[str, Any]:
        return {
            "massMax": self._config.mass_max,
            "massMin": self._config.mass_min,
            "dwellMax": 16000.0,
            "dwellMin": 2.0,
            "rodPolarity": "Positive",
        }

    def _get_ion_source(self) -> dict[str, Any]:
        return {
            "filamentSelected": self.filament_selected,
            "emissionLevel": "Lo",
            "optimization": "Sensitivity",
            "sensitivityFactor": 2.5e-4,
            "ionEnergy": 8.0,
            "filaments": [
                {"id": number, "state": filament.state}
                for number, filament in enumerate(self.filaments, start=1)
            ],
        }

    def _get_general_control(self) -> dict[str, Any]:
        return {
            "setEmission": self.emission,
            "setEM": self.electron_multiplier,
            "rfGeneratorSet": self.rf_generator,
            "fanState": self.fan,
        }

    def _get_scan_setup(self) -> dict[str, Any]:
        return {
            "startChannel": self.start_channel,
            "stopChannel": self.stop_channel,
            "scanCount": self.scan_count,
        }

    def _get_channel(self, number: int) -> dict[str, Any]:
        setup = self.channel(number)
        return {
            "channelMode": setup.mode,
            "startMass": setup.start_mass,
            "stopMass": setup.stop_mass,
            "dwell": setup.dwell,
            "ppamu": setup.ppamu,
            "enabled": setup.enabled,
        }

    def _get_scan_sample(self) -> dict[str, Any]:
        values = self.scan_values()
        return {"scanSize": len(values), "scanNum": self.last_scan, "values": values}

    # -- SET handlers -------------------------------------------------------

    def _set_emission(self, query: str) -> None:
        self.emission = _parse_switch(query)
        for number, filament in enumerate(self.filaments, start=1):
            filament.state = self.emission if number == self.filament_selected else "Off"

    def _set_em(self, query: str) -> None:
        self.electron_multiplier = _parse_switch(query)

    def _set_rf_generator(self, query: str) -> None:
        self.rf_generator = _parse_switch(query)

    def _set_shutdown(self, query: str) -> None:
        if query != "1":
            raise ValueError(f"expected 1, got {query!r}")
        self.shut_down = True
        self.scanning = False
        self.emission = "Off"
        self.electron_multiplier = "Off"

    def _set_em_voltage(self, query: str) -> None:
        self.em_voltage = float(query)

    def _set_filament(self, query: str) -> None:
        number = int(query)
        if not 1 <= number <= MAX_FILAMENTS:
            raise ValueError(f"filament {number} out of range")
        self.filament_selected = number

    def _set_scan_setup(self, query: str) -> None:
        params = dict(parse_qsl(query, strict_parsing=True))
        start = int(params["startChannel"])
        stop = int(params["stopChannel"])
        self.channel(start)
        self.channel(stop)
        if start > stop:
            raise ValueError("start channel exceeds stop channel")
        self.start_channel = start
        self.stop_channel = stop

    def _set_scan_count(self, query: str) -> None:
        count = int(query)
        if count != -1 and count < 1:
            raise ValueError(f"invalid scan count {count}")
        self.scan_count = count

    def _set_scan_start(self, query: str) -> None:
        if query != "1":
            raise ValueError(f"expected 1, got {query!r}")
        self.scanning = True
        self.current_scan = self.last_scan + 1
        self._scans_remaining = None if self.scan_count == -1 else self.scan_count
        self._scan_started_at = self._clock()
        self._auto_completed = 0

    def _set_scan_stop(self, query: str) -> None:
        if query == "Immediately":
            self.scanning = False
        elif query == "EndOfScan":
            if self.scanning:
                self._scans_remaining = 1
                self.complete_scan()
        else:
            raise ValueError(f"unknown stop mode {query!r}")

    def _set_channel(self, number: int, query: str) -> None:
        setup = self.channel(number)
        params = parse_qsl(query, strict_parsing=True)
        if not params:
            raise ValueError("empty channel query")
        for key, value in params:
            if key == "channelMode":
                if value not in ("Sweep", "Single"):
                    raise ValueError(f"unknown channel mode {value!r}")
                setup.mode = value
            elif key == "enabled":
                setup.enabled = _parse_bool(value)
            elif key == "ppamu":
                ppamu = int(value)
                if ppamu <= 0:
                    raise ValueError(f"invalid ppamu {ppamu}")
                setup.ppamu = ppamu
            elif key == "dwell":
                setup.dwell = float(value)
            elif key == "startMass":
                setup.start_mass = float(value)
            elif key == "stopMass":
                setup.stop_mass = float(value)
            else:
                raise ValueError(f"unknown channel attribute {key!r}")
