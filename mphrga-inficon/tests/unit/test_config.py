"""Unit tests for service configuration loading."""

from __future__ import annotations

import tempfile

import pytest

from mphrga_inficon.config import (
    ChannelsConfig,
    InstrumentConfig,
    MphConfig,
    PollingConfig,
    ServerConfig,
    load_config,
    parse_config,
)


class TestSections:
    def test_defaults(self) -> None:
        config = MphConfig()
        assert config.instrument.host == "192.168.1.50"
        assert config.instrument.port == 80
        assert config.instrument.timeout == 0.2
        assert config.instrument.max_response_size == 150000
        assert config.polling.period == 0.25
        assert config.polling.medium_period == 5.0
        assert config.polling.slow_period == 10.0
        assert config.channels.monitor == 1
        assert config.channels.leak_check == 2
        assert config.server.port == 8090

    def test_frozen(self) -> None:
        config = InstrumentConfig()
        with pytest.raises(AttributeError):
            config.host = "other"  # type: ignore[misc]

    def test_empty_host(self) -> None:
        with pytest.raises(ValueError, match="instrument.host"):
            InstrumentConfig(host="")

    @pytest.mark.parametrize("port", [0, 65536])
    def test_bad_instrument_port(self, port: int) -> None:
        with pytest.raises(ValueError, match="instrument.port"):
            InstrumentConfig(port=port)

    def test_bad_timeout(self) -> None:
        with pytest.raises(ValueError, match="instrument.timeout"):
            InstrumentConfig(timeout=0)

    def test_bad_response_size(self) -> None:
        with pytest.raises(ValueError, match="max_response_size"):
            InstrumentConfig(max_response_size=0)

    @pytest.mark.parametrize("name", ["period", "medium_period", "slow_period"])
    def test_bad_period(self, name: str) -> None:
        with pytest.raises(ValueError, match=f"polling.{name}"):
            PollingConfig(**{name: 0.0})

    def test_negative_backoff(self) -> None:
        with pytest.raises(ValueError, match="failure_backoff"):
            PollingConfig(failure_backoff=-1.0)

    def test_zero_backoff_allowed(self) -> None:
        assert PollingConfig(failure_backoff=0.0).failure_backoff == 0.0

    def test_channel_outside_count(self) -> None:
        with pytest.raises(ValueError, match="channels.leak_check"):
            ChannelsConfig(count=1, monitor=1, leak_check=2)

    def test_zero_channels(self) -> None:
        with pytest.raises(ValueError, match="channels.count"):
            ChannelsConfig(count=0)

    def test_same_channel_for_both_modes(self) -> None:
        config = ChannelsConfig(count=1, monitor=1, leak_check=1)
        assert config.monitor == config.leak_check

    def test_bad_server_port(self) -> None:
        with pytest.raises(ValueError, match="server.port"):
            ServerConfig(port=0)


class TestParseConfig:
    def test_none_gives_defaults(self) -> None:
        assert parse_config(None) == MphConfig()

    def test_partial_section(self) -> None:
        config = parse_config({"instrument": {"host": "10.0.0.5"}})
        assert config.instrument.host == "10.0.0.5"
        assert config.instrument.port == 80
        assert config.polling == PollingConfig()

    def test_unknown_key(self) -> None:
        with pytest.raises(ValueError, match="Unknown polling field"):
            parse_config({"polling": {"periode": 1.0}})

    def test_section_not_mapping(self) -> None:
        with pytest.raises(ValueError, match="channels must be a mapping"):
            parse_config({"channels": [1, 2]})

    def test_document_not_mapping(self) -> None:
        with pytest.raises(ValueError, match="YAML mapping"):
            parse_config(["instrument"])  # type: ignore[arg-type]

    def test_out_of_range_value(self) -> None:
        with pytest.raises(ValueError, match="channels.monitor"):
            parse_config({"channels": {"monitor": 9}})


class TestLoadConfig:
    def test_load_full(self) -> None:
        yaml_content = """
instrument:
  host: "10.1.2.3"
  port: 8080
  timeout: 0.15
  max_response_size: 200000

polling:
  period: 0.5
  medium_period: 4.0
  slow_period: 20.0
  failure_backoff: 2.0

channels:
  count: 3
  monitor: 3
  leak_check: 1

server:
  host: "127.0.0.1"
  port: 9000
"""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write(yaml_content)
            f.flush()

            config = load_config(f.name)

        assert config.instrument.host == "10.1.2.3"
        assert config.instrument.port == 8080
        assert config.instrument.timeout == 0.15
        assert config.instrument.max_response_size == 200000
        assert config.polling.period == 0.5
        assert config.polling.failure_backoff == 2.0
        assert config.channels.count == 3
        assert config.channels.monitor == 3
        assert config.server.port == 9000

    def test_load_empty_file(self) -> None:
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("")
            f.flush()

            config = load_config(f.name)

        assert config == MphConfig()

    def test_file_not_found(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/mphrga.yaml")

    def test_invalid_value(self) -> None:
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("polling:\n  period: -1\n")
            f.flush()

            with pytest.raises(ValueError, match="polling.period"):
                load_config(f.name)
