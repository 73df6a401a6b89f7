"""Behaviors built from consecutive route legs.

Both behaviors run an unbounded background cycle. A leg that cannot be
completed ends the cycle: the failure is logged and published once as an
``error`` notification, and nothing restarts it.
"""

from __future__ import annotations

import abc
import asyncio
import logging
import random
import time

from geosim import geo
from geosim._logging import ComponentLogger
from geosim._routing import Sleep
from geosim._transport import RoutingTransport
from geosim.events import Subscription
from geosim.exceptions import LegFailedError
from geosim.models.notifications import (
    NotificationKind,
    PositionUpdate,
    RouteUpdate,
    SimulatorError,
)
from geosim.models.options import DispatchCycleOptions, RandomRouteOptions, RouteSimulatorOptions
from geosim.models.position import Position
from geosim.models.status import SimulatorState, UnitStatus
from geosim.simulator.base import Clock, SimulatorBase
from geosim.simulator.route import RouteSimulator


class _LegRunner(SimulatorBase):
    """Runs route legs one after another inside a background cycle task."""

    def __init__(
        self,
        corner1: Position,
        corner2: Position,
        route_options: RouteSimulatorOptions,
        *,
        transport: RoutingTransport,
        identity: str | None = None,
        logger: logging.Logger | ComponentLogger | None = None,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(identity=identity, logger=logger, clock=clock)
        self._corner1 = corner1
        self._corner2 = corner2
        # Legs must end for the cycle to advance.
        self._route_options = route_options.model_copy(update={"loop": False})
        self._transport = transport
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._cycle_task: asyncio.Task[None] | None = None
        self._leg: RouteSimulator | None = None
        self._legs_run = 0

    @property
    def current_leg(self) -> RouteSimulator | None:
        return self._leg

    @property
    def legs_run(self) -> int:
        return self._legs_run

    def random_position(self) -> Position:
        return geo.random_position(self._corner1, self._corner2, self._rng)

    async def setup(self) -> None:
        if self._state is SimulatorState.IDLE:
            self._state = SimulatorState.READY
        self._log.info("Ready to start")

    def start(self) -> None:
        if self._state is not SimulatorState.READY:
            self._log.warning("start() called in state %s; ignoring", self._state)
            return
        self._log.info("Starting simulation")
        self._state = SimulatorState.RUNNING
        self._before_cycle()
        task = asyncio.get_running_loop().create_task(self._cycle())
        task.add_done_callback(self._on_cycle_done)
        self._cycle_task = task

    def stop(self) -> None:
        leg = self._leg
        if leg is not None:
            leg.stop()
        task = self._cycle_task
        self._cycle_task = None
        if task is not None and not task.done():
            task.cancel()
        if self._state in (SimulatorState.IDLE, SimulatorState.READY, SimulatorState.RUNNING):
            self._state = SimulatorState.STOPPED

    def _before_cycle(self) -> None:
        """Synchronous state set right before the cycle task is spawned."""

    @abc.abstractmethod
    async def _cycle(self) -> None: ...

    def _on_cycle_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        if self._state is SimulatorState.RUNNING:
            self._fail(f"Cycle halted: {exc}", error=exc)
        else:
            self._log.error("Cycle halted: %s", exc)

    async def _run_leg(self, start: Position, end: Position) -> None:
        """Drive one leg from *start* to *end*; raises :class:`LegFailedError` on failure."""
        self._legs_run += 1
        leg = RouteSimulator(
            start,
            end,
            self._route_options,
            transport=self._transport,
            identity=f"{self.identity}/leg-{self._legs_run}",
            logger=self._log,
            clock=self._clock,
            sleep=self._sleep,
        )
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def on_position(update: PositionUpdate) -> None:
            self._set_position(update.position)

        def on_route(update: RouteUpdate) -> None:
            self._set_route(update.route)

        def on_finished(_update: object) -> None:
            if not done.done():
                done.set_result(None)

        def on_error(update: SimulatorError) -> None:
            if not done.done():
                failure = LegFailedError(update.message)
                failure.__cause__ = update.error
                done.set_exception(failure)

        subscriptions: list[Subscription] = [
            leg.subscribe(NotificationKind.POSITION_UPDATE, on_position),
            leg.subscribe(NotificationKind.ROUTE_UPDATE, on_route),
            leg.subscribe(NotificationKind.ROUTE_FINISHED, on_finished),
            leg.subscribe(NotificationKind.ERROR, on_error),
        ]
        self._leg = leg
        try:
            self._log.info(
                "Starting leg %d from %s to %s", self._legs_run, start.as_lon_lat(), end.as_lon_lat()
            )
            await leg.setup()
            if not done.done():
                if leg.is_trivial:
                    return
                leg.start()
            await done
            self._log.info("Leg %d finished", self._legs_run)
        finally:
            leg.stop()
            for subscription in subscriptions:
                subscription.dispose()
            if self._leg is leg:
                self._leg = None


class RandomRouteSimulator(_LegRunner):
    """Drive to random destinations inside a bounding box, pausing between legs."""

    def __init__(
        self,
        options: RandomRouteOptions,
        *,
        transport: RoutingTransport,
        identity: str | None = None,
        logger: logging.Logger | ComponentLogger | None = None,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(
            options.corner1,
            options.corner2,
            options.route,
            transport=transport,
            identity=identity,
            logger=logger,
            clock=clock,
            sleep=sleep,
            rng=rng,
        )
        self._options = options

    async def _cycle(self) -> None:
        while True:
            start = self._position or self.random_position()
            end = self.random_position()
            await self._run_leg(start, end)

            wait_s = self._rng.randint(self._options.min_wait_s, self._options.max_wait_s)
            self._log.info("Waiting %d seconds before starting new route", wait_s)
            await self._sleep(wait_s)


class DispatchCycleSimulator(_LegRunner):
    """Emergency unit: idle at home, respond to random incidents, return home.

    Status sequence per cycle: ``EN_ROUTE`` -> ``ON_SCENE`` ->
    ``AVAILABLE_ON_RADIO`` -> ``AVAILABLE_AT_STATION``.
    """

    def __init__(
        self,
        options: DispatchCycleOptions,
        *,
        transport: RoutingTransport,
        identity: str | None = None,
        logger: logging.Logger | ComponentLogger | None = None,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(
            options.corner1,
            options.corner2,
            options.route,
            transport=transport,
            identity=identity,
            logger=logger,
            clock=clock,
            sleep=sleep,
            rng=rng,
        )
        self._options = options

    @property
    def home(self) -> Position:
        return self._options.home_location

    def _before_cycle(self) -> None:
        self._log.info("Setting initial position to home location %s", self.home.as_lon_lat())
        self._set_status(UnitStatus.AVAILABLE_AT_STATION)
        self._set_position(self.home)

    async def _cycle(self) -> None:
        while True:
            wait_s = self._rng.randint(*self._options.dispatch_wait_s)
            self._log.info("Waiting %d seconds before next dispatch", wait_s)
            await self._sleep(wait_s)

            incident = self.random_position()
            self._log.info("Dispatching to %s", incident.as_lon_lat())
            self._set_status(UnitStatus.EN_ROUTE)
            await self._run_leg(self._position or self.home, incident)

            self._set_status(UnitStatus.ON_SCENE)
            on_scene_s = self._rng.randint(*self._options.on_scene_s)
            self._log.info("On scene for %d seconds", on_scene_s)
            await self._sleep(on_scene_s)

            self._set_status(UnitStatus.AVAILABLE_ON_RADIO)
            self._log.info("Returning home to %s", self.home.as_lon_lat())
            await self._run_leg(self._position or incident, self.home)
            self._set_position(self.home)
            self._set_status(UnitStatus.AVAILABLE_AT_STATION)
            self._log.info("Arrived at home location")
