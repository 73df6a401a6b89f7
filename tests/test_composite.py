from __future__ import annotations

import random

import pytest
from conftest import FailingRoutingTransport, FakeClock, FakeRoutingTransport, RecordingSleep, settle

from geosim.exceptions import LegFailedError, RouteUnavailableError
from geosim.models.notifications import NotificationKind, StatusUpdate
from geosim.models.options import DispatchCycleOptions, RandomRouteOptions
from geosim.models.position import Position
from geosim.models.status import SimulatorState, UnitStatus
from geosim.simulator import DispatchCycleSimulator, RandomRouteSimulator

HOME = Position(latitude=50.7373889, longitude=7.0981944)
AREA = {
    "coord1": {"latitude": 50.70, "longitude": 7.05},
    "coord2": {"latitude": 50.76, "longitude": 7.16},
}
# One tick covers any leg inside the area.
FAST = {"speedMps": 100_000, "updateIntervalMs": 1000, "maxRetries": 0}


def _dispatch_options(**extra: object) -> DispatchCycleOptions:
    return DispatchCycleOptions.model_validate(
        {**AREA, "routeSimulatorOptions": {**FAST, "homeLocation": HOME.model_dump()}, **extra}
    )


@pytest.mark.asyncio
async def test_dispatch_cycle_status_sequence(sleep: RecordingSleep, clock: FakeClock) -> None:
    transport = FakeRoutingTransport()
    simulator = DispatchCycleSimulator(
        _dispatch_options(),
        transport=transport,
        identity="rtw-2",
        clock=clock,
        sleep=sleep,
        rng=random.Random(11),
    )
    statuses: list[UnitStatus] = []
    simulator.subscribe(NotificationKind.STATUS_UPDATE, lambda n: statuses.append(n.status))

    await simulator.setup()
    simulator.start()
    assert simulator.position == HOME
    await settle(300)
    simulator.stop()
    await settle()

    assert statuses[:5] == [
        UnitStatus.AVAILABLE_AT_STATION,
        UnitStatus.EN_ROUTE,
        UnitStatus.ON_SCENE,
        UnitStatus.AVAILABLE_ON_RADIO,
        UnitStatus.AVAILABLE_AT_STATION,
    ]
    assert simulator.legs_run >= 2
    assert simulator.state is SimulatorState.STOPPED
    assert 10 <= sleep.delays[0] <= 200
    # Outbound leg starts at home.
    assert transport.calls[0][0].split("/")[-1].startswith(f"{HOME.longitude},{HOME.latitude};")


@pytest.mark.asyncio
async def test_dispatch_cycle_returns_home_at_end_of_cycle(sleep: RecordingSleep, clock: FakeClock) -> None:
    simulator = DispatchCycleSimulator(
        _dispatch_options(),
        transport=FakeRoutingTransport(),
        clock=clock,
        sleep=sleep,
        rng=random.Random(5),
    )
    snapshots: list[tuple[UnitStatus, Position | None]] = []

    def on_status(update: StatusUpdate) -> None:
        snapshots.append((update.status, simulator.position))

    simulator.subscribe(NotificationKind.STATUS_UPDATE, on_status)
    await simulator.setup()
    simulator.start()
    await settle(300)
    simulator.stop()

    arrived = [pos for status, pos in snapshots[1:] if status is UnitStatus.AVAILABLE_AT_STATION]
    assert arrived
    assert arrived[0] is not None and arrived[0].same_place(HOME)


@pytest.mark.asyncio
async def test_failed_leg_halts_the_cycle_with_one_error(sleep: RecordingSleep, clock: FakeClock) -> None:
    simulator = DispatchCycleSimulator(
        _dispatch_options(),
        transport=FailingRoutingTransport(),
        clock=clock,
        sleep=sleep,
        rng=random.Random(1),
    )
    statuses: list[UnitStatus] = []
    errors: list[object] = []
    simulator.subscribe(NotificationKind.STATUS_UPDATE, lambda n: statuses.append(n.status))
    simulator.subscribe(NotificationKind.ERROR, errors.append)

    await simulator.setup()
    simulator.start()
    await settle(100)

    assert statuses == [UnitStatus.AVAILABLE_AT_STATION, UnitStatus.EN_ROUTE]
    assert simulator.state is SimulatorState.FAILED
    assert len(errors) == 1
    assert "Cycle halted" in errors[0].message
    assert isinstance(errors[0].error, LegFailedError)
    assert isinstance(errors[0].error.__cause__, RouteUnavailableError)
    assert simulator.current_leg is None


@pytest.mark.asyncio
async def test_random_route_chains_legs_with_waits(sleep: RecordingSleep, clock: FakeClock) -> None:
    options = RandomRouteOptions.model_validate(
        {**AREA, "routeSimulatorOptions": FAST, "minWaitS": 3, "maxWaitS": 3}
    )
    transport = FakeRoutingTransport()
    simulator = RandomRouteSimulator(
        options,
        transport=transport,
        identity="patrol-1",
        clock=clock,
        sleep=sleep,
        rng=random.Random(2),
    )
    positions: list[Position | None] = []
    routes: list[object] = []
    simulator.subscribe(NotificationKind.POSITION_UPDATE, lambda n: positions.append(n.position))
    simulator.subscribe(NotificationKind.ROUTE_UPDATE, routes.append)

    await simulator.setup()
    simulator.start()
    await settle(200)
    simulator.stop()
    await settle()

    assert simulator.legs_run >= 2
    assert len(routes) >= 2
    assert 3 in sleep.delays
    for position in positions:
        assert position is not None
        assert 50.70 <= position.latitude <= 50.76
        assert 7.05 <= position.longitude <= 7.16


@pytest.mark.asyncio
async def test_looping_route_options_still_finish_each_leg(sleep: RecordingSleep, clock: FakeClock) -> None:
    options = RandomRouteOptions.model_validate(
        {**AREA, "routeSimulatorOptions": {**FAST, "loop": True}, "minWaitS": 1, "maxWaitS": 1}
    )
    simulator = RandomRouteSimulator(
        options,
        transport=FakeRoutingTransport(),
        clock=clock,
        sleep=sleep,
        rng=random.Random(4),
    )
    await simulator.setup()
    simulator.start()
    await settle(200)
    simulator.stop()
    await settle()

    assert simulator.legs_run >= 2
    assert 1 in sleep.delays


@pytest.mark.asyncio
async def test_stop_before_start_prevents_running(sleep: RecordingSleep, clock: FakeClock) -> None:
    simulator = RandomRouteSimulator(
        RandomRouteOptions.model_validate(AREA),
        transport=FakeRoutingTransport(),
        clock=clock,
        sleep=sleep,
    )
    await simulator.setup()
    simulator.stop()
    simulator.start()
    await settle()

    assert simulator.state is SimulatorState.STOPPED
    assert simulator.legs_run == 0


def test_dispatch_options_require_home_location() -> None:
    with pytest.raises(ValueError):
        DispatchCycleOptions.model_validate(AREA)
