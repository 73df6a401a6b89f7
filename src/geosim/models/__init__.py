"""Data models for geosim."""

from geosim.models._base import GeoBaseModel, GeoEnum
from geosim.models.messages import InboundMessage, ModelUpdateMessage
from geosim.models.notifications import (
    Notification,
    NotificationKind,
    PositionUpdate,
    RouteFinished,
    RouteUpdate,
    SimulatorError,
    StatusUpdate,
)
from geosim.models.options import (
    DispatchCycleOptions,
    RandomRouteOptions,
    RouteLegConfig,
    RouteSimulatorOptions,
)
from geosim.models.position import Position
from geosim.models.routing import ProviderRoute, RouteGeometry, RouteResponse, Waypoint
from geosim.models.scenario import (
    ConnectorConfig,
    ConnectorKind,
    ScenarioConfig,
    SimulatorKind,
    VehicleConfig,
)
from geosim.models.status import SimulatorState, UnitStatus

__all__ = [
    "ConnectorConfig",
    "ConnectorKind",
    "DispatchCycleOptions",
    "GeoBaseModel",
    "GeoEnum",
    "InboundMessage",
    "ModelUpdateMessage",
    "Notification",
    "NotificationKind",
    "Position",
    "PositionUpdate",
    "ProviderRoute",
    "RandomRouteOptions",
    "RouteFinished",
    "RouteGeometry",
    "RouteLegConfig",
    "RouteResponse",
    "RouteSimulatorOptions",
    "RouteUpdate",
    "ScenarioConfig",
    "SimulatorError",
    "SimulatorKind",
    "SimulatorState",
    "StatusUpdate",
    "UnitStatus",
    "VehicleConfig",
    "Waypoint",
]
