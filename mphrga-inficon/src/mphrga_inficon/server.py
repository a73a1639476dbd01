"""FastAPI server for the analyzer REST API."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Callable

from fastapi import FastAPI, HTTPException

from mphrga_core.errors import DecodeError, StateError
from mphrga_http import ExchangeError

from mphrga_inficon.config import MphConfig, load_config
from mphrga_inficon.controller import MphController
from mphrga_inficon.emulator import MphEmulator, MphEmulatorConfig
from mphrga_inficon.emulator_server import EmulatorServer
from mphrga_inficon.models import (
    ChannelModeRequest,
    ChannelRangeRequest,
    CommandResponse,
    DwellRequest,
    FilamentRequest,
    HealthResponse,
    MassRequest,
    ParametersResponse,
    PointsPerMassUnitRequest,
    RecordAgeModel,
    ScanCountRequest,
    ScanResponse,
    StateResponse,
    StopRequest,
    SwitchRequest,
    VoltageRequest,
)
from mphrga_inficon.parameters import ParameterStore
from mphrga_inficon.records import ChannelMode
from mphrga_inficon.service import MphService, create_service

logger = logging.getLogger(__name__)

# Global service and parameter store (set during lifespan)
_service: MphService | None = None
_store: ParameterStore | None = None


def _get_service() -> MphService:
    """Get the global service instance."""
    if _service is None:
        raise RuntimeError("Service not initialized")
    return _service


def _get_store() -> ParameterStore:
    """Get the global parameter store."""
    if _store is None:
        raise RuntimeError("Parameter store not initialized")
    return _store


def _with_emulator(config: MphConfig, server: EmulatorServer) -> MphConfig:
    """Point the instrument section of ``config`` at an emulator server."""
    host, port = server.address
    return dataclasses.replace(
        config,
        instrument=dataclasses.replace(config.instrument, host=host, port=port),
    )


def create_app(config_path: str | Path | None = None, *, emulate: bool = False) -> FastAPI:
    """Create a FastAPI application.

    Args:
        config_path: Path to the YAML configuration. Defaults are used if None.
        emulate: Serve an in-process analyzer emulator on an ephemeral port
            and poll it instead of the configured instrument.

    Returns:
        Configured FastAPI application.
    """
    app_state: dict[str, Any] = {"config_path": config_path, "emulate": emulate}

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        global _service, _store  # pylint: disable=global-statement

        cfg_path = app_state.get("config_path")
        if cfg_path:
            logger.info("Loading configuration from %s", cfg_path)
            config = load_config(cfg_path)
        else:
            config = MphConfig()

        emulator_server: EmulatorServer | None = None
        if app_state.get("emulate"):
            emulator = MphEmulator(
                MphEmulatorConfig(channel_count=config.channels.count, scan_period=1.0)
            )
            emulator_server = EmulatorServer(emulator, port=0)
            emulator_server.start()
            config = _with_emulator(config, emulator_server)
            logger.info("Emulator listening on %s:%d", *emulator_server.address)

        _service, _store = create_service(config)
        _service.start()
        logger.info(
            "Polling instrument at %s:%d", config.instrument.host, config.instrument.port
        )

        yield

        if _service is not None:
            _service.stop()
            _service = None
        _store = None
        if emulator_server is not None:
            emulator_server.stop()

    app = FastAPI(
        title="mphrga API",
        description="REST API for an Inficon MPH residual gas analyzer",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Status
    app.add_api_route("/health", _health, methods=["GET"], response_model=HealthResponse)
    app.add_api_route("/state", _state, methods=["GET"], response_model=StateResponse)
    app.add_api_route(
        "/parameters", _parameters, methods=["GET"], response_model=ParametersResponse
    )
    app.add_api_route("/scan", _scan, methods=["GET"], response_model=ScanResponse)

    # Commands
    commands: list[tuple[str, Callable[..., CommandResponse]]] = [
        ("/monitor/start", _start_monitor),
        ("/leak-check/start", _start_leak_check),
        ("/stop", _stop),
        ("/emission", _set_emission),
        ("/electron-multiplier", _set_electron_multiplier),
        ("/rf-generator", _set_rf_generator),
        ("/shutdown", _shutdown),
        ("/em-voltage", _set_em_voltage),
        ("/filament", _select_filament),
        ("/scan/channels", _set_start_stop_channel),
        ("/scan/count", _set_scan_count),
        ("/scan/start", _start_scan),
        ("/scan/stop", _stop_scan),
        ("/channels/{channel}/mode", _set_channel_mode),
        ("/channels/{channel}/ppamu", _set_points_per_mass_unit),
        ("/channels/{channel}/dwell", _set_dwell),
        ("/channels/{channel}/start-mass", _set_start_mass),
        ("/channels/{channel}/stop-mass", _set_stop_mass),
    ]
    for path, endpoint in commands:
        app.add_api_route(path, endpoint, methods=["POST"], response_model=CommandResponse)

    return app


# ---------------------------------------------------------------------------
# Command execution
# ---------------------------------------------------------------------------


def _state_name(controller: MphController) -> str:
    return controller.state.name.lower()


def _call(command: Callable[[MphController], Any]) -> Any:
    """Run ``command`` on the service thread, mapping failures to HTTP errors."""
    service = _get_service()
    try:
        return service.call(command)
    except StateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except (ExchangeError, DecodeError) as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except FutureTimeoutError as exc:
        raise HTTPException(status_code=504, detail="Instrument service timed out") from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


def _run(action: Callable[[MphController], Any]) -> CommandResponse:
    """Run a command and report the resulting operating state."""

    def command(controller: MphController) -> str:
        action(controller)
        return _state_name(controller)

    return CommandResponse(state=_call(command))


# ---------------------------------------------------------------------------
# Status routes
# ---------------------------------------------------------------------------


def _health() -> HealthResponse:
    """Health check endpoint."""
    service = _get_service()
    return HealthResponse(
        status="ok" if service.is_running else "stopped",
        ticks=service.tick_count,
    )


def _collect_state(controller: MphController) -> StateResponse:
    info = controller.scan_info.value
    return StateResponse(
        state=_state_name(controller),
        scanning=info.scanning if info is not None else None,
        last_scan=info.last_scan if info is not None else None,
        last_delivered=controller.delivery.last_delivered,
        records=[
            RecordAgeModel(name=status.name, age=status.age, stale=status.stale)
            for status in controller.record_status()
        ],
    )


def _state() -> StateResponse:
    """Operating state and per-record freshness."""
    return _call(_collect_state)


def _parameters() -> ParametersResponse:
    """Snapshot of the published parameters."""
    store = _get_store()
    return ParametersResponse(scalars=store.snapshot(), arrays=store.array_sizes())


def _collect_scan(controller: MphController) -> ScanResponse:
    sample = controller.delivery.sample.value
    axis = controller.delivery.mass_axis.value
    return ScanResponse(
        values=list(sample.values) if sample is not None else [],
        mass_axis=list(axis) if axis is not None else [],
    )


def _scan() -> ScanResponse:
    """Most recently delivered scan."""
    return _call(_collect_scan)


# ---------------------------------------------------------------------------
# Command routes
# ---------------------------------------------------------------------------


def _start_monitor() -> CommandResponse:
    """Start continuous sweeps on the monitor channel."""
    return _run(lambda c: c.start_monitor())


def _start_leak_check() -> CommandResponse:
    """Start continuous leak-check measurement."""
    return _run(lambda c: c.start_leak_check())


def _stop(body: StopRequest | None = None) -> CommandResponse:
    """Stop scanning and return to idle."""
    immediate = body.immediate if body is not None else True
    return _run(lambda c: c.stop(immediate=immediate))


def _set_emission(body: SwitchRequest) -> CommandResponse:
    """Switch the filament emission."""
    return _run(lambda c: c.instrument.set_emission(body.on))


def _set_electron_multiplier(body: SwitchRequest) -> CommandResponse:
    """Switch the electron multiplier."""
    return _run(lambda c: c.instrument.set_electron_multiplier(body.on))


def _set_rf_generator(body: SwitchRequest) -> CommandResponse:
    """Switch the RF generator."""
    return _run(lambda c: c.instrument.set_rf_generator(body.on))


def _shutdown() -> CommandResponse:
    """Shut the sensor down."""
    return _run(lambda c: c.instrument.shutdown())


def _set_em_voltage(body: VoltageRequest) -> CommandResponse:
    """Set the electron multiplier voltage."""
    return _run(lambda c: c.instrument.set_em_voltage(body.voltage))


def _select_filament(body: FilamentRequest) -> CommandResponse:
    """Select the active filament."""
    return _run(lambda c: c.instrument.select_filament(body.filament))


def _set_start_stop_channel(body: ChannelRangeRequest) -> CommandResponse:
    """Set the first and last scanned channel."""
    return _run(lambda c: c.instrument.set_start_stop_channel(body.start, body.stop))


def _set_scan_count(body: ScanCountRequest) -> CommandResponse:
    """Set the number of scans to run."""
    return _run(lambda c: c.instrument.set_scan_count(body.count))


def _start_scan() -> CommandResponse:
    """Start scanning without changing the operating state."""
    return _run(lambda c: c.instrument.start_scan())


def _stop_scan(body: StopRequest | None = None) -> CommandResponse:
    """Stop scanning without changing the operating state."""
    immediate = body.immediate if body is not None else True
    return _run(lambda c: c.instrument.stop_scan(immediate=immediate))


def _set_channel_mode(channel: int, body: ChannelModeRequest) -> CommandResponse:
    """Set a channel's measurement mode."""
    mode = ChannelMode.from_label(body.mode)
    return _run(lambda c: c.instrument.set_channel_mode(channel, mode))


def _set_points_per_mass_unit(channel: int, body: PointsPerMassUnitRequest) -> CommandResponse:
    """Set a channel's sampling resolution."""
    return _run(lambda c: c.instrument.set_points_per_mass_unit(channel, body.ppamu))


def _set_dwell(channel: int, body: DwellRequest) -> CommandResponse:
    """Set a channel's dwell time."""
    return _run(lambda c: c.instrument.set_dwell(channel, body.dwell))


def _set_start_mass(channel: int, body: MassRequest) -> CommandResponse:
    """Set a channel's start mass."""
    return _run(lambda c: c.instrument.set_start_mass(channel, body.mass))


def _set_stop_mass(channel: int, body: MassRequest) -> CommandResponse:
    """Set a channel's stop mass."""
    return _run(lambda c: c.instrument.set_stop_mass(channel, body.mass))


def main() -> None:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Start the mphrga analyzer server")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration YAML file (default: built-in defaults)",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: server.host from config)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (default: server.port from config)",
    )
    parser.add_argument(
        "--emulate",
        action="store_true",
        help="Poll an in-process emulator instead of a real analyzer",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = MphConfig()
    if args.config is not None:
        try:
            config = load_config(args.config)
        except (FileNotFoundError, ValueError) as exc:
            logger.error("%s", exc)
            sys.exit(1)

    import uvicorn  # pylint: disable=import-outside-toplevel

    app = create_app(args.config, emulate=args.emulate)
    uvicorn.run(
        app,
        host=args.host or config.server.host,
        port=args.port if args.port is not None else config.server.port,
    )


if __name__ == "__main__":
    main()
