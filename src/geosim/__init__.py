"""geosim - vehicle route simulator with resilient position delivery."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("geosim")
except PackageNotFoundError:
    __version__ = "0+local"
from geosim.config import GeoSimConfig
from geosim.connectors import (
    AbstractConnector,
    MqttConnector,
    PendingDeliveryBuffer,
    SqlStorageConnector,
    WebSocketConnector,
)
from geosim.entities import Entity, Vehicle
from geosim.events import EventEmitter, Subscription
from geosim.exceptions import (
    ConnectorError,
    ConnectorStorageError,
    GeoSimConfigError,
    GeoSimError,
    LegFailedError,
    RouteUnavailableError,
    RoutingTransportError,
)
from geosim.models import (
    Position,
    RouteSimulatorOptions,
    ScenarioConfig,
    SimulatorState,
    UnitStatus,
)
from geosim.orchestrator import GeoSimulator
from geosim.simulator import (
    DispatchCycleSimulator,
    RandomRouteSimulator,
    RouteSimulator,
    build_simulator,
)

__all__ = [
    "__version__",
    "AbstractConnector",
    "ConnectorError",
    "ConnectorStorageError",
    "DispatchCycleSimulator",
    "Entity",
    "EventEmitter",
    "GeoSimConfig",
    "GeoSimConfigError",
    "GeoSimError",
    "GeoSimulator",
    "LegFailedError",
    "MqttConnector",
    "PendingDeliveryBuffer",
    "Position",
    "RandomRouteSimulator",
    "RouteSimulator",
    "RouteSimulatorOptions",
    "RouteUnavailableError",
    "RoutingTransportError",
    "ScenarioConfig",
    "SimulatorState",
    "SqlStorageConnector",
    "Subscription",
    "UnitStatus",
    "Vehicle",
    "WebSocketConnector",
    "build_simulator",
]
