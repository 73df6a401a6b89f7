"""Connector base: entity attachment and subscription bookkeeping."""

from __future__ import annotations

import abc
import logging

from geosim._logging import ComponentLogger, component_logger
from geosim.entities import Entity
from geosim.events import Subscription
from geosim.models.notifications import NotificationKind, PositionUpdate, StatusUpdate


class AbstractConnector(abc.ABC):
    """Forwards entity notifications to an external sink.

    Connectors never own entities; they keep a reference plus the
    subscriptions registered on attach, released by :meth:`detach_entity`
    (the orchestrator detaches everything before disconnecting).
    """

    #: Notification kinds subscribed on attach.
    forwarded_kinds: tuple[NotificationKind, ...] = (
        NotificationKind.POSITION_UPDATE,
        NotificationKind.STATUS_UPDATE,
    )

    def __init__(
        self,
        identity: str,
        *,
        logger: logging.Logger | ComponentLogger | None = None,
    ) -> None:
        self.identity = identity
        self._log = component_logger(type(self).__name__, identity, logger=logger, default=__name__)
        self._entities: dict[str, Entity] = {}
        self._subscriptions: dict[str, list[Subscription]] = {}

    @property
    def attached_entities(self) -> dict[str, Entity]:
        return dict(self._entities)

    def attach_entity(self, entity: Entity) -> None:
        """Start forwarding *entity*'s updates. Re-attaching a known identity is a no-op."""
        if entity.identity in self._entities:
            self._log.debug("Entity %s already attached", entity.identity)
            return
        self._log.info("Attaching entity %s", entity.identity)
        self._entities[entity.identity] = entity
        subscriptions: list[Subscription] = []
        if NotificationKind.POSITION_UPDATE in self.forwarded_kinds:
            subscriptions.append(entity.subscribe(NotificationKind.POSITION_UPDATE, self._handle_position))
        if NotificationKind.STATUS_UPDATE in self.forwarded_kinds:
            subscriptions.append(entity.subscribe(NotificationKind.STATUS_UPDATE, self._handle_status))
        self._subscriptions[entity.identity] = subscriptions

    def detach_entity(self, entity_id: str) -> None:
        for subscription in self._subscriptions.pop(entity_id, []):
            subscription.dispose()
        if self._entities.pop(entity_id, None) is not None:
            self._log.info("Detached entity %s", entity_id)
            self._on_detached(entity_id)

    def detach_all(self) -> None:
        for entity_id in list(self._entities):
            self.detach_entity(entity_id)

    async def setup(self) -> None:
        """One-time preparation before :meth:`connect` (e.g. create tables)."""

    @abc.abstractmethod
    async def connect(self) -> bool:
        """Open the sink. Returns whether it is open when the call returns."""

    async def connect_in_background(self) -> None:
        """Begin connecting without holding up the caller; defaults to :meth:`connect`."""
        await self.connect()

    @abc.abstractmethod
    async def disconnect(self) -> None: ...

    def _handle_position(self, update: PositionUpdate) -> None:
        entity_id = update.entity_id
        if entity_id is None or entity_id not in self._entities:
            return
        if update.position is not None:
            self._log.debug(
                "Position %.4f / %.4f for entity %s",
                update.position.longitude,
                update.position.latitude,
                entity_id,
            )
        self.on_position(entity_id, update)

    def _handle_status(self, update: StatusUpdate) -> None:
        entity_id = update.entity_id
        if entity_id is None or entity_id not in self._entities:
            return
        self.on_status(entity_id, update)

    @abc.abstractmethod
    def on_position(self, entity_id: str, update: PositionUpdate) -> None: ...

    def on_status(self, entity_id: str, update: StatusUpdate) -> None:
        """Status updates are ignored unless a connector overrides this."""

    def _on_detached(self, entity_id: str) -> None:
        """Hook for connectors holding per-entity state."""
