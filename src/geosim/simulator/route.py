"""Route-following simulator: fetches one route and walks it at fixed ticks."""

from __future__ import annotations

import asyncio
import logging
import time

from geosim import geo
from geosim._logging import ComponentLogger
from geosim._routing import Sleep, fetch_route
from geosim._transport import RoutingTransport
from geosim.exceptions import RouteUnavailableError
from geosim.models.notifications import RouteFinished
from geosim.models.options import RouteSimulatorOptions
from geosim.models.position import Position
from geosim.models.status import SimulatorState
from geosim.simulator.base import Clock, SimulatorBase


class RouteSimulator(SimulatorBase):
    """Move a point from *start* to *end* along a provider route.

    Every tick advances ``speed_mps * update_interval_ms / 1000`` meters.
    When a tick's step reaches past the next waypoint the position snaps to
    that waypoint and the leftover distance is dropped, so a leg can take
    slightly longer than ``route_length / speed``.
    """

    def __init__(
        self,
        start: Position,
        end: Position,
        options: RouteSimulatorOptions | None = None,
        *,
        transport: RoutingTransport,
        identity: str | None = None,
        logger: logging.Logger | ComponentLogger | None = None,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        super().__init__(identity=identity, logger=logger, clock=clock)
        self._start = start
        self._end = end
        self._options = options or RouteSimulatorOptions()
        self._transport = transport
        self._sleep = sleep
        self._ticker: asyncio.Task[None] | None = None
        self._index = 0
        self._remaining = 0.0
        self._stop_requested = False

    @property
    def options(self) -> RouteSimulatorOptions:
        return self._options

    @property
    def is_trivial(self) -> bool:
        """Start and end coincide; nothing to fetch or walk."""
        return self._start.same_place(self._end)

    @property
    def is_ticking(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    async def setup(self) -> None:
        if self._state is not SimulatorState.IDLE:
            self._log.warning("setup() called in state %s; ignoring", self._state)
            return

        if self.is_trivial:
            self._route = []
            self._set_position(self._start)
            self._state = SimulatorState.READY
            return

        self._log.info("Preparing route")
        route = await fetch_route(
            self._transport,
            self._start,
            self._end,
            self._options,
            sleep=self._sleep,
            logger=self._log,
        )

        if self._stop_requested:
            self._log.debug("Stopped during route fetch; discarding %d points", len(route))
            return
        if not route:
            self._route = []
            error = RouteUnavailableError(
                f"Route unavailable from {self._start.as_lon_lat()} to {self._end.as_lon_lat()}",
                start=self._start,
                end=self._end,
            )
            self._fail(str(error), error=error)
            return

        self._route = route
        self._state = SimulatorState.READY

    def start(self) -> None:
        if self._state is not SimulatorState.READY:
            self._log.warning("start() called in state %s; ignoring", self._state)
            return
        if self.is_trivial:
            self._log.debug("Start equals end; nothing to simulate")
            return

        self._index = 0
        self._remaining = 0.0
        self._set_route(self._route)
        self._set_position(self._route[0])
        self._state = SimulatorState.RUNNING
        self._log.info("Starting simulation over %d waypoints", len(self._route))
        self._ticker = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        self._stop_requested = True
        self._cancel_ticker()
        if self._state in (SimulatorState.IDLE, SimulatorState.READY, SimulatorState.RUNNING):
            self._state = SimulatorState.STOPPED

    async def _run(self) -> None:
        interval = self._options.update_interval_ms / 1000.0
        while self._state is SimulatorState.RUNNING:
            await self._sleep(interval)
            if self._state is not SimulatorState.RUNNING:
                break
            self.tick()

    def tick(self) -> None:
        """Advance one step along the route."""
        if self._state is not SimulatorState.RUNNING or not self._route:
            return

        route = self._route
        last = len(route) - 1

        if self._index >= last:
            if self._options.loop:
                self._index = 0
                self._remaining = 0.0
                self._set_position(route[0])
            else:
                self._finish()
            return

        target = route[self._index + 1]
        step = self._options.step_m

        if self._remaining <= 0:
            self._remaining = geo.distance(route[self._index], target)

        if step >= self._remaining:
            self._index += 1
            self._remaining = 0.0
            self._set_position(target)
            if self._index >= last and not self._options.loop:
                self._finish()
            return

        current = self._position or route[self._index]
        heading = geo.bearing(current, target)
        self._remaining -= step
        self._set_position(geo.destination(current, step, heading))

    def _finish(self) -> None:
        self._cancel_ticker()
        self._state = SimulatorState.FINISHED
        self._log.info("Route completed")
        self._emitter.publish(RouteFinished(destination=self._route[-1] if self._route else None))

    def _cancel_ticker(self) -> None:
        ticker = self._ticker
        self._ticker = None
        if ticker is None or ticker.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # The ticker finishing itself just leaves its loop.
        if ticker is not current:
            ticker.cancel()
