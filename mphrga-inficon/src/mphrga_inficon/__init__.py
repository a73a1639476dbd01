"""Inficon MPH residual gas analyzer driver, service and emulator.

This package drives an Inficon Transpector MPH analyzer over its embedded
HTTP/JSON web service.

Modules:
    records: Typed records and enumerations decoded from the analyzer.
    decoders: Tolerant JSON payload decoders and the mass-axis computation.
    instrument: Typed command surface (getters and setters).
    parameters: Parameter names, the in-memory parameter store and record
        publishers.
    controller: Multi-cadence polling and the operating state machine.
    delivery: Exactly-once delivery of completed scans.
    service: Worker thread serializing poll ticks and commands.
    config: YAML configuration.
    emulator: In-process analyzer emulator for testing without hardware.
    emulator_server: TCP server exposing an emulator.
    server: FastAPI REST API and ``mphrga-server`` command.

Example:
    Poll a real analyzer::

        from mphrga_inficon import MphConfig, create_service

        service, store = create_service(MphConfig())
        service.start()
        service.call(lambda c: c.start_monitor())

    Use an emulator for testing::

        from mphrga_inficon import MphEmulator, MphInstrument
        from mphrga_http import HttpExchange

        instrument = MphInstrument(HttpExchange(MphEmulator()))
        instrument.get_scan_info()
"""

from mphrga_inficon.cadence import Cadence
from mphrga_inficon.config import (
    ChannelsConfig,
    InstrumentConfig,
    MphConfig,
    PollingConfig,
    ServerConfig,
    load_config,
    parse_config,
)
from mphrga_inficon.controller import MphController, RecordStatus, create_controller
from mphrga_inficon.delivery import ScanDelivery
from mphrga_inficon.emulator import MphEmulator, MphEmulatorConfig
from mphrga_inficon.emulator_server import EmulatorServer
from mphrga_inficon.instrument import CONTINUOUS, MphInstrument, create_instrument
from mphrga_inficon.parameters import ParameterStore
from mphrga_inficon.records import (
    MAX_CHANNELS,
    MAX_FILAMENTS,
    MAX_SCAN_SIZE,
    ChannelMode,
    OperatingState,
    Switch,
)
from mphrga_inficon.service import MphService, create_service

__all__ = [
    # Records
    "MAX_CHANNELS",
    "MAX_FILAMENTS",
    "MAX_SCAN_SIZE",
    "ChannelMode",
    "OperatingState",
    "Switch",
    # Driver
    "CONTINUOUS",
    "MphInstrument",
    "create_instrument",
    # Polling and state machine
    "Cadence",
    "MphController",
    "RecordStatus",
    "ScanDelivery",
    "create_controller",
    "MphService",
    "create_service",
    "ParameterStore",
    # Configuration
    "ChannelsConfig",
    "InstrumentConfig",
    "MphConfig",
    "PollingConfig",
    "ServerConfig",
    "load_config",
    "parse_config",
    # Emulator
    "MphEmulator",
    "MphEmulatorConfig",
    "EmulatorServer",
]
