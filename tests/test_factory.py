from __future__ import annotations

import pytest
from conftest import FakeRoutingTransport

from geosim.config import GeoSimConfig
from geosim.exceptions import GeoSimConfigError
from geosim.models.options import RouteSimulatorOptions
from geosim.simulator import (
    DispatchCycleSimulator,
    RandomRouteSimulator,
    RouteSimulator,
    build_simulator,
    merge_route_options,
)

ROUTE_DATA = {
    "start": {"lat": 50.7374, "lon": 7.0982},
    "end": {"latitude": 50.7201, "longitude": 7.1213},
    "routeSimulatorOptions": {"speedMps": 5, "loop": True},
}


def test_merge_prefers_explicit_fields_over_defaults() -> None:
    explicit = RouteSimulatorOptions.model_validate({"speedMps": 5})
    merged = merge_route_options(explicit, {"update_interval_ms": 250, "speed_mps": 30, "max_retries": 1})

    assert merged.speed_mps == 5
    assert merged.update_interval_ms == 250
    assert merged.max_retries == 1


def test_merge_vehicle_speed_wins() -> None:
    explicit = RouteSimulatorOptions.model_validate({"speedMps": 5})
    assert merge_route_options(explicit, None, speed_mps=13.9).speed_mps == 13.9


def test_build_route_simulator_from_scenario_data() -> None:
    defaults = GeoSimConfig(routing_url="http://router.test/route/v1", update_interval_ms=500).route_defaults()
    simulator = build_simulator(
        "RouteSimulator",
        ROUTE_DATA,
        transport=FakeRoutingTransport(),
        identity="rtw-1",
        route_defaults=defaults,
    )

    assert isinstance(simulator, RouteSimulator)
    assert simulator.identity == "rtw-1"
    assert simulator.options.speed_mps == 5
    assert simulator.options.loop is True
    assert simulator.options.update_interval_ms == 500
    assert simulator.options.server_url == "http://router.test/route/v1"


def test_build_composite_simulators() -> None:
    area = {"coord1": {"lat": 50.70, "lon": 7.05}, "coord2": {"lat": 50.76, "lon": 7.16}}
    random_sim = build_simulator("RandomRouteSimulator", area, transport=FakeRoutingTransport(), speed_mps=8)
    dispatch_sim = build_simulator(
        "EmergencyDispatchSimulator",
        {**area, "homeLocation": {"lat": 50.73, "lon": 7.1}},
        transport=FakeRoutingTransport(),
    )

    assert isinstance(random_sim, RandomRouteSimulator)
    assert isinstance(dispatch_sim, DispatchCycleSimulator)
    assert dispatch_sim.home.latitude == 50.73


def test_unknown_kind_is_a_config_error() -> None:
    with pytest.raises(GeoSimConfigError, match="Unknown simulator kind"):
        build_simulator("TeleportSimulator", {}, transport=FakeRoutingTransport())


def test_invalid_data_is_a_config_error() -> None:
    with pytest.raises(GeoSimConfigError, match="Invalid RouteSimulator data"):
        build_simulator("RouteSimulator", {"start": {"lat": 95, "lon": 0}}, transport=FakeRoutingTransport())
