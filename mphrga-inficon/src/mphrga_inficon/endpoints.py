"""Endpoint paths and request-line builders for the analyzer's web service.

Every attribute lives under the ``mmsp`` area. Reads are
``GET /mmsp/<attribute>/get``; writes are ``GET /mmsp/<attribute>/set?<query>``.
"""

from __future__ import annotations

AREA = "mmsp"

COMMUNICATION = "communication"
SENSOR_INFO = "sensorInfo"
STATUS = "status"
DIAGNOSTIC_DATA = "diagnosticData"
SCAN_INFO = "scanInfo"
SENSOR_DETECTOR = "sensorDetector"
SENSOR_FILTER = "sensorFilter"
SENSOR_ION_SOURCE = "sensorIonSource"
GENERAL_CONTROL = "generalControl"
SCAN_SETUP = "scanSetup"
TOTAL_PRESSURE = "measurement/totalPressure"
SCAN_SAMPLE = "measurement/scans/-1"
LEAK_CHECK = "measurement/leakCheck"

# Write-only attributes
SET_EMISSION = "generalControl/setEmission"
SET_EM = "generalControl/setEM"
RF_GENERATOR = "generalControl/rfGeneratorSet"
SHUTDOWN = "generalControl/shutdown"
EM_VOLTAGE = "sensorDetector/emVoltage"
FILAMENT_SELECTED = "sensorIonSource/filamentSelected"
SCAN_COUNT = "scanSetup/scanCount"
SCAN_START = "scanSetup/scanStart"
SCAN_STOP = "scanSetup/scanStop"


def channel(number: int) -> str:
    """Return the attribute path of a scan channel.

    Args:
        number: Channel number (1-based).
    """
    return f"{SCAN_SETUP}/channels/{number}"


def get_request(attribute: str) -> str:
    """Build the request line that reads an attribute.

    Args:
        attribute: Attribute path below the area (e.g. ``"scanInfo"``).

    Returns:
        The request line, without terminator.
    """
    return f"GET /{AREA}/{attribute}/get"


def set_request(attribute: str, query: str) -> str:
    """Build the request line that writes an attribute.

    Args:
        attribute: Attribute path below the area.
        query: The query string after ``set?`` (a bare value or
            ``key=value`` pairs joined by ``&``).

    Returns:
        The request line, without terminator.
    """
    return f"GET /{AREA}/{attribute}/set?{query}"
