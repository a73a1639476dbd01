"""YAML configuration loading for the analyzer service.

Every section and every key is optional; missing values take the defaults
below.

Example YAML configuration:
    instrument:
      host: "192.168.1.50"
      port: 80
      timeout: 0.2
      max_response_size: 150000

    polling:
      period: 0.25
      medium_period: 5.0
      slow_period: 10.0
      failure_backoff: 1.0

    channels:
      count: 5
      monitor: 1
      leak_check: 2

    server:
      host: "0.0.0.0"
      port: 8090
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from mphrga_inficon.records import MAX_CHANNELS


@dataclass(frozen=True)
class InstrumentConfig:
    """Connection to the analyzer's web service.

    Attributes:
        host: Instrument host name or IP address.
        port: Web service port.
        timeout: Read inactivity timeout in seconds.
        max_response_size: Response buffer size in bytes.
    """

    host: str = "192.168.1.50"
    port: int = 80
    timeout: float = 0.2
    max_response_size: int = 150000

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("instrument.host must be non-empty")
        if not 0 < self.port < 65536:
            raise ValueError("instrument.port must be 1-65535")
        if self.timeout <= 0:
            raise ValueError("instrument.timeout must be positive")
        if self.max_response_size <= 0:
            raise ValueError("instrument.max_response_size must be positive")


@dataclass(frozen=True)
class PollingConfig:
    """Polling cadences.

    Attributes:
        period: Poll tick period in seconds.
        medium_period: Refresh period of the medium attribute group.
        slow_period: Refresh period of the slow attribute group.
        failure_backoff: Sleep after two consecutive failed ticks.
    """

    period: float = 0.25
    medium_period: float = 5.0
    slow_period: float = 10.0
    failure_backoff: float = 1.0

    def __post_init__(self) -> None:
        for name in ("period", "medium_period", "slow_period"):
            if getattr(self, name) <= 0:
                raise ValueError(f"polling.{name} must be positive")
        if self.failure_backoff < 0:
            raise ValueError("polling.failure_backoff must be >= 0")


@dataclass(frozen=True)
class ChannelsConfig:
    """Scan channel assignment (1-based).

    Attributes:
        count: Number of channels the instrument exposes.
        monitor: Channel swept while monitoring.
        leak_check: Channel measured while leak checking.
    """

    count: int = MAX_CHANNELS
    monitor: int = 1
    leak_check: int = 2

    def __post_init__(self) -> None:
        if self.count < 1:
            raise ValueError("channels.count must be >= 1")
        for name in ("monitor", "leak_check"):
            if not 1 <= getattr(self, name) <= self.count:
                raise ValueError(f"channels.{name} must be 1-{self.count}")


@dataclass(frozen=True)
class ServerConfig:
    """REST API bind address."""

    host: str = "0.0.0.0"
    port: int = 8090

    def __post_init__(self) -> None:
        if not 0 < self.port < 65536:
            raise ValueError("server.port must be 1-65535")


@dataclass(frozen=True)
class MphConfig:
    """Top-level service configuration."""

    instrument: InstrumentConfig = field(default_factory=InstrumentConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    channels: ChannelsConfig = field(default_factory=ChannelsConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def _parse_section(name: str, data: Any, cls: type[Any]) -> Any:
    """Build a section dataclass from a mapping, rejecting unknown keys."""
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise ValueError(f"{name} must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown {name} field(s): {', '.join(map(str, unknown))}")
    try:
        return cls(**data)
    except TypeError as exc:
        raise ValueError(f"Invalid {name} section: {exc}") from exc


def parse_config(data: Mapping[str, Any] | None) -> MphConfig:
    """Parse an already-loaded configuration mapping.

    Args:
        data: The configuration mapping, or None for all defaults.

    Returns:
        Parsed configuration.

    Raises:
        ValueError: If a section is malformed or a value is out of range.
    """
    if data is None:
        return MphConfig()
    if not isinstance(data, Mapping):
        raise ValueError("Config must be a YAML mapping")
    return MphConfig(
        instrument=_parse_section("instrument", data.get("instrument"), InstrumentConfig),
        polling=_parse_section("polling", data.get("polling"), PollingConfig),
        channels=_parse_section("channels", data.get("channels"), ChannelsConfig),
        server=_parse_section("server", data.get("server"), ServerConfig),
    )


def load_config(path: str | Path) -> MphConfig:
    """Load service configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Parsed configuration.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If the config is invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    return parse_config(data)
