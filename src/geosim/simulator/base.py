"""Shared simulator state and the capability interface every simulator exposes."""

from __future__ import annotations

import abc
import logging
import time
import uuid
from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

from geosim._logging import ComponentLogger, component_logger
from geosim.events import EventEmitter, Subscription
from geosim.models.notifications import (
    NotificationKind,
    PositionUpdate,
    RouteUpdate,
    SimulatorError,
    StatusUpdate,
)
from geosim.models.position import Position
from geosim.models.status import SimulatorState, UnitStatus

Clock = Callable[[], float]


@runtime_checkable
class Simulator(Protocol):
    """What entities and the orchestrator rely on."""

    identity: str

    @property
    def position(self) -> Position | None: ...

    @property
    def status(self) -> UnitStatus: ...

    @property
    def state(self) -> SimulatorState: ...

    async def setup(self) -> None: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def subscribe(self, kind: NotificationKind | str, callback: Callable[[Any], None]) -> Subscription: ...


class SimulatorBase(abc.ABC):
    """Owns position, status, route and position history for one simulator.

    Subclasses change state only through ``_set_position``, ``_set_status``,
    ``_set_route`` and ``_fail`` so every change is recorded and published.
    """

    def __init__(
        self,
        *,
        identity: str | None = None,
        logger: logging.Logger | ComponentLogger | None = None,
        clock: Clock = time.time,
    ) -> None:
        self.identity = identity or uuid.uuid4().hex
        self._log = component_logger(type(self).__name__, self.identity, logger=logger, default=__name__)
        self._clock = clock
        self._emitter = EventEmitter(logger=self._log)
        self._position: Position | None = None
        self._status = UnitStatus.UNKNOWN
        self._state = SimulatorState.IDLE
        self._route: list[Position] = []
        self._history: list[tuple[float, Position | None]] = []

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def position(self) -> Position | None:
        return self._position

    @property
    def status(self) -> UnitStatus:
        return self._status

    @property
    def state(self) -> SimulatorState:
        return self._state

    @property
    def route(self) -> tuple[Position, ...]:
        return tuple(self._route)

    @property
    def history(self) -> list[tuple[float, Position | None]]:
        """``(timestamp, position)`` snapshots, oldest first."""
        return list(self._history)

    def subscribe(self, kind: NotificationKind | str, callback: Callable[[Any], None]) -> Subscription:
        return self._emitter.subscribe(kind, callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def setup(self) -> None: ...

    @abc.abstractmethod
    def start(self) -> None: ...

    @abc.abstractmethod
    def stop(self) -> None: ...

    # ------------------------------------------------------------------
    # State changes
    # ------------------------------------------------------------------

    def _now(self) -> float:
        now = self._clock()
        if self._history and now < self._history[-1][0]:
            return self._history[-1][0]
        return now

    def _set_position(self, position: Position | None) -> None:
        timestamp = self._now()
        self._position = position
        self._history.append((timestamp, position))
        self._emitter.publish(PositionUpdate(position=position, timestamp=timestamp))

    def _set_status(self, status: UnitStatus) -> None:
        self._status = UnitStatus(status)
        self._log.info("Status: %s", self._status.name)
        self._emitter.publish(StatusUpdate(status=self._status, timestamp=self._clock()))

    def _set_route(self, route: Sequence[Position]) -> None:
        self._route = list(route)
        self._emitter.publish(RouteUpdate(route=tuple(self._route)))

    def _fail(self, message: str, *, error: Exception | None = None) -> None:
        self._state = SimulatorState.FAILED
        self._log.error("%s", message)
        self._emitter.publish(SimulatorError(message=message, error=error))
