"""Pydantic models for the REST API.

Response models serialize the service state; request models validate the
bodies of the command endpoints before anything is sent to the analyzer.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, Field

from mphrga_inficon.records import MAX_FILAMENTS


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Health check response for monitoring and load balancers.

    Attributes:
        status: "ok" while the service thread runs, otherwise "stopped".
        ticks: Number of poll ticks run so far.
    """

    status: str
    ticks: int


class RecordAgeModel(BaseModel):
    """Freshness of one polled record.

    Attributes:
        name: Record name (the device attribute it is read from).
        age: Seconds since the last good value, or None if never read.
        stale: True if the record is missing or too old.
    """

    name: str
    age: float | None
    stale: bool


class StateResponse(BaseModel):
    """Operating state and record freshness.

    Attributes:
        state: "idle", "monitoring" or "leak_check".
        scanning: Device scanning flag from the last scan-info, if known.
        last_scan: Device's last completed scan index, if known.
        last_delivered: Index of the last scan delivered by the service.
        records: Freshness of every polled record.
    """

    state: str
    scanning: bool | None = None
    last_scan: int | None = None
    last_delivered: int | None = None
    records: list[RecordAgeModel]


class ParametersResponse(BaseModel):
    """Snapshot of the published parameters.

    Attributes:
        scalars: Every scalar parameter by key.
        arrays: Current length of every array parameter by key.
    """

    scalars: dict[str, Union[int, float, str]]
    arrays: dict[str, int]


class ScanResponse(BaseModel):
    """Most recently delivered scan.

    Attributes:
        values: Sample values.
        mass_axis: Mass (amu) of each sample; empty outside monitoring.
    """

    values: list[float]
    mass_axis: list[float]


class CommandResponse(BaseModel):
    """Result of a command.

    Attributes:
        status: Always "ok"; failures are reported as HTTP errors.
        state: Operating state after the command.
    """

    status: str = "ok"
    state: str


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class SwitchRequest(BaseModel):
    """Turn a device function on or off."""

    on: bool


class VoltageRequest(BaseModel):
    """Electron multiplier voltage in volts."""

    voltage: float = Field(ge=0)


class FilamentRequest(BaseModel):
    """Filament selection (1-based)."""

    filament: int = Field(ge=1, le=MAX_FILAMENTS)


class ChannelRangeRequest(BaseModel):
    """First and last channel of the scan (1-based)."""

    start: int = Field(ge=1)
    stop: int = Field(ge=1)


class ChannelModeRequest(BaseModel):
    """Channel measurement mode."""

    mode: Literal["Sweep", "Single"]


class PointsPerMassUnitRequest(BaseModel):
    """Channel sampling resolution."""

    ppamu: int = Field(gt=0)


class DwellRequest(BaseModel):
    """Channel dwell time in milliseconds."""

    dwell: float = Field(gt=0)


class MassRequest(BaseModel):
    """Channel start or stop mass in amu."""

    mass: float = Field(ge=0)


class ScanCountRequest(BaseModel):
    """Number of scans to run, or -1 for continuous scanning."""

    count: int = Field(ge=-1)


class StopRequest(BaseModel):
    """Stop scanning now or at the end of the scan in progress."""

    immediate: bool = True
