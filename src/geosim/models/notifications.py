"""Notifications published by simulators and entities.

Simulators publish them with ``entity_id=None``; an entity re-publishes the
same payload with its own identity filled in.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import ClassVar

from geosim.models.position import Position
from geosim.models.status import UnitStatus


class NotificationKind(StrEnum):
    POSITION_UPDATE = "positionUpdate"
    STATUS_UPDATE = "statusUpdate"
    ROUTE_UPDATE = "routeUpdate"
    ROUTE_FINISHED = "routeFinished"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    kind: ClassVar[NotificationKind]

    entity_id: str | None = field(default=None, kw_only=True)

    def for_entity(self, entity_id: str) -> Notification:
        """Copy of this notification attributed to *entity_id*."""
        return replace(self, entity_id=entity_id)


@dataclass(frozen=True)
class PositionUpdate(Notification):
    kind: ClassVar[NotificationKind] = NotificationKind.POSITION_UPDATE

    position: Position | None
    timestamp: float


@dataclass(frozen=True)
class StatusUpdate(Notification):
    kind: ClassVar[NotificationKind] = NotificationKind.STATUS_UPDATE

    status: UnitStatus
    timestamp: float


@dataclass(frozen=True)
class RouteUpdate(Notification):
    kind: ClassVar[NotificationKind] = NotificationKind.ROUTE_UPDATE

    route: tuple[Position, ...]


@dataclass(frozen=True)
class RouteFinished(Notification):
    kind: ClassVar[NotificationKind] = NotificationKind.ROUTE_FINISHED

    destination: Position | None = None


@dataclass(frozen=True)
class SimulatorError(Notification):
    kind: ClassVar[NotificationKind] = NotificationKind.ERROR

    message: str
    error: Exception | None = None
