"""Shared buffering and message framing for socket-style connectors."""

from __future__ import annotations

import abc
import json
import logging
from collections.abc import Callable, Iterable

from pydantic import ValidationError

from geosim._constants import POSITION_MODEL, STATUS_MODEL
from geosim._logging import ComponentLogger
from geosim._redact import redact_for_log
from geosim.connectors._buffer import PendingDeliveryBuffer
from geosim.connectors.base import AbstractConnector
from geosim.models.messages import InboundMessage, ModelUpdateMessage
from geosim.models.notifications import NotificationKind, PositionUpdate, StatusUpdate
from geosim.models.position import Position
from geosim.models.status import UnitStatus

InboundHandler = Callable[[InboundMessage], None]


class BufferedConnector(AbstractConnector):
    """Send updates while connected; keep the latest per (entity, kind) otherwise.

    Subclasses report connectivity through :attr:`is_open`, transmit through
    :meth:`_transmit`, and call :meth:`_take_pending` when a connection comes
    up so buffered slots go out before new traffic.
    """

    def __init__(
        self,
        identity: str,
        *,
        position_model: str = POSITION_MODEL,
        status_model: str = STATUS_MODEL,
        on_message: InboundHandler | None = None,
        logger: logging.Logger | ComponentLogger | None = None,
    ) -> None:
        super().__init__(identity, logger=logger)
        self._position_model = position_model
        self._status_model = status_model
        self._on_message = on_message
        self._buffer = PendingDeliveryBuffer()
        self._warned_disconnected = False
        self.inbound_count = 0
        self.dropped_inbound_count = 0

    @property
    @abc.abstractmethod
    def is_open(self) -> bool: ...

    @property
    def buffer(self) -> PendingDeliveryBuffer:
        return self._buffer

    def on_position(self, entity_id: str, update: PositionUpdate) -> None:
        self._deliver(entity_id, NotificationKind.POSITION_UPDATE, update.position)

    def on_status(self, entity_id: str, update: StatusUpdate) -> None:
        self._deliver(entity_id, NotificationKind.STATUS_UPDATE, update.status)

    def build_message(self, entity_id: str, kind: NotificationKind, value: object) -> ModelUpdateMessage:
        if kind is NotificationKind.POSITION_UPDATE:
            position = value if isinstance(value, Position) else None
            return ModelUpdateMessage.for_position(self._position_model, entity_id, position)
        if kind is NotificationKind.STATUS_UPDATE:
            return ModelUpdateMessage.for_status(self._status_model, entity_id, UnitStatus(value))  # type: ignore[arg-type]
        raise ValueError(f"No message format for {kind}")

    def _deliver(self, entity_id: str, kind: NotificationKind, value: object) -> None:
        if self.is_open:
            self._warned_disconnected = False
            self._transmit(entity_id, kind, value)
            return
        if not self._warned_disconnected:
            self._log.warning("Not connected; buffering updates until the connection resumes")
            self._warned_disconnected = True
        self._buffer.store(entity_id, kind, value)

    @abc.abstractmethod
    def _transmit(self, entity_id: str, kind: NotificationKind, value: object) -> None: ...

    def _take_pending(self) -> list[tuple[str, NotificationKind, object]]:
        return self._buffer.drain(order=self._entities)

    def _rebuffer(self, items: Iterable[tuple[str, NotificationKind, object]], *, overwrite: bool) -> None:
        for entity_id, kind, value in items:
            if entity_id in self._entities:
                self._buffer.store(entity_id, kind, value, overwrite=overwrite)

    def _on_detached(self, entity_id: str) -> None:
        self._buffer.forget(entity_id)

    def _handle_inbound(self, raw: str | bytes) -> InboundMessage | None:
        """Parse one inbound payload; malformed ones are logged and dropped."""
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            self.dropped_inbound_count += 1
            self._log.error("Error parsing inbound message: %s", redact_for_log(text, max_string=200))
            return None
        if not isinstance(payload, dict):
            self.dropped_inbound_count += 1
            self._log.error("Ignoring non-object inbound message: %s", redact_for_log(payload, max_string=200))
            return None
        try:
            message = InboundMessage.model_validate(payload)
        except ValidationError:
            self.dropped_inbound_count += 1
            self._log.error("Ignoring malformed inbound message: %s", redact_for_log(payload, max_string=200))
            return None

        self.inbound_count += 1
        self._log.debug("Received inbound message: %s", redact_for_log(payload))
        if self._on_message is not None:
            try:
                self._on_message(message)
            except Exception:
                self._log.exception("Inbound message handler failed")
        return message
