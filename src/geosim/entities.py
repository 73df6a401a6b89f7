"""Domain entities driven by a simulator."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from geosim._constants import DEFAULT_LATITUDE, DEFAULT_LONGITUDE
from geosim._logging import ComponentLogger, component_logger
from geosim.events import EventEmitter, Subscription
from geosim.models.notifications import Notification, NotificationKind, PositionUpdate, StatusUpdate
from geosim.models.position import Position
from geosim.models.status import UnitStatus
from geosim.simulator.base import Simulator


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Entity:
    """Something with an identity and a position that others can subscribe to.

    An entity owns at most one simulator; every notification the simulator
    publishes is re-published here with ``entity_id`` set to this entity.
    """

    def __init__(
        self,
        identity: str,
        *,
        position: Position | None = None,
        logger: logging.Logger | ComponentLogger | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.identity = identity
        self._clock = clock
        self._log = component_logger(type(self).__name__, identity, logger=logger, default=__name__)
        self._emitter = EventEmitter(logger=self._log)
        self.created_at = clock()
        self.updated_at = self.created_at
        self._position = position or Position(latitude=DEFAULT_LATITUDE, longitude=DEFAULT_LONGITUDE)
        self._simulator: Simulator | None = None
        self._simulator_subscriptions: list[Subscription] = []

    @property
    def position(self) -> Position | None:
        return self._position

    @property
    def simulator(self) -> Simulator | None:
        return self._simulator

    def subscribe(self, kind: NotificationKind | str, callback: Callable[[Any], None]) -> Subscription:
        return self._emitter.subscribe(kind, callback)

    def info(self) -> str:
        return (
            f"{type(self).__name__} ID: {self.identity}, "
            f"Created At: {self.created_at.isoformat()}, Updated At: {self.updated_at.isoformat()}"
        )

    async def setup(self, simulator: Simulator) -> None:
        """Adopt *simulator* (dropping any previous one) and run its setup."""
        self._release_simulator()
        self._simulator = simulator
        self._simulator_subscriptions = [
            simulator.subscribe(kind, self._on_simulator_notification) for kind in NotificationKind
        ]
        await simulator.setup()

    def start(self) -> None:
        self._log.info("Started simulation")
        if self._simulator is not None:
            self._simulator.start()

    def stop(self) -> None:
        self._log.info("Stopped simulation")
        if self._simulator is not None:
            self._simulator.stop()

    def teardown(self) -> None:
        """Stop the simulator and drop every subscription this entity holds or serves."""
        self.stop()
        self._release_simulator()
        self._emitter.clear()

    def set_position(self, position: Position | None, *, timestamp: float | None = None) -> None:
        self._position = position
        self._touch()
        self._emitter.publish(
            PositionUpdate(
                position=position,
                timestamp=time.time() if timestamp is None else timestamp,
                entity_id=self.identity,
            )
        )

    def _touch(self) -> None:
        self.updated_at = self._clock()

    def _release_simulator(self) -> None:
        for subscription in self._simulator_subscriptions:
            subscription.dispose()
        self._simulator_subscriptions = []
        self._simulator = None

    def _on_simulator_notification(self, notification: Notification) -> None:
        if isinstance(notification, PositionUpdate):
            self._position = notification.position
            self._touch()
        self._emitter.publish(notification.for_entity(self.identity))


class Vehicle(Entity):
    """A vehicle with a unit status; starts out of service."""

    def __init__(
        self,
        identity: str,
        *,
        position: Position | None = None,
        logger: logging.Logger | ComponentLogger | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(identity, position=position, logger=logger, clock=clock)
        self._status = UnitStatus.OUT_OF_SERVICE

    @property
    def status(self) -> UnitStatus:
        return self._status

    def set_status(self, status: UnitStatus, *, timestamp: float | None = None) -> None:
        self._status = UnitStatus(status)
        self._touch()
        self._log.info("Status: %s", self._status.name)
        self._emitter.publish(
            StatusUpdate(
                status=self._status,
                timestamp=time.time() if timestamp is None else timestamp,
                entity_id=self.identity,
            )
        )

    def _on_simulator_notification(self, notification: Notification) -> None:
        if isinstance(notification, StatusUpdate):
            self._status = notification.status
            self._touch()
        super()._on_simulator_notification(notification)
