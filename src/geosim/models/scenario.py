"""Scenario file models (vehicles and connectors)."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import Field, model_validator

from geosim.models._base import GeoBaseModel


class SimulatorKind(StrEnum):
    ROUTE = "RouteSimulator"
    RANDOM_ROUTE = "RandomRouteSimulator"
    DISPATCH_CYCLE = "EmergencyDispatchSimulator"


class ConnectorKind(StrEnum):
    WEBSOCKET = "WebSocketConnector"
    MQTT = "MqttConnector"
    SQL = "SqliteConnector"


class VehicleConfig(GeoBaseModel):
    """One simulated vehicle.

    ``speed`` (m/s) overrides the simulator's own ``speed_mps`` when set.
    """

    id: str
    enabled: bool = True
    speed: float | None = Field(default=None, gt=0)
    simulator: SimulatorKind
    data: dict[str, Any] = Field(default_factory=dict)
    connectors: list[str] = Field(default_factory=list)


class ConnectorConfig(GeoBaseModel):
    id: str
    connector: ConnectorKind
    data: dict[str, Any] = Field(default_factory=dict)


class ScenarioConfig(GeoBaseModel):
    vehicles: list[VehicleConfig] = Field(default_factory=list)
    connectors: list[ConnectorConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self) -> ScenarioConfig:
        for label, items in (("vehicle", self.vehicles), ("connector", self.connectors)):
            seen: set[str] = set()
            for item in items:
                if item.id in seen:
                    raise ValueError(f"duplicate {label} id: {item.id}")
                seen.add(item.id)
        return self
