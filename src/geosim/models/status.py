"""Unit status and simulator lifecycle enums."""

from __future__ import annotations

from enum import StrEnum

from geosim.models._base import GeoEnum


class UnitStatus(GeoEnum):
    """Operational status of a simulated unit (radio status codes)."""

    UNKNOWN = -1
    AVAILABLE_ON_RADIO = 1
    """Available while moving, e.g. returning to station."""
    AVAILABLE_AT_STATION = 2
    EN_ROUTE = 3
    """Dispatched and responding to an incident."""
    ON_SCENE = 4
    OUT_OF_SERVICE = 6


class SimulatorState(StrEnum):
    IDLE = "idle"
    READY = "ready"
    RUNNING = "running"
    FINISHED = "finished"
    STOPPED = "stopped"
    FAILED = "failed"
