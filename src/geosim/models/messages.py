"""Outbound and inbound socket message models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from geosim._constants import MODEL_UPDATE_COMMAND
from geosim.models.position import Position
from geosim.models.status import UnitStatus


class ModelUpdateMessage(BaseModel):
    """``{"command": "model.update", "model": ..., "id": ..., "data": {...}}``."""

    model_config = ConfigDict(frozen=True)

    command: str = MODEL_UPDATE_COMMAND
    model: str
    id: str
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def for_position(cls, model: str, entity_id: str, position: Position | None) -> ModelUpdateMessage:
        return cls(
            model=model,
            id=entity_id,
            data={
                "latitude": position.latitude if position else None,
                "longitude": position.longitude if position else None,
            },
        )

    @classmethod
    def for_status(cls, model: str, entity_id: str, status: UnitStatus) -> ModelUpdateMessage:
        return cls(model=model, id=entity_id, data={"unit_status": int(status)})

    def to_json(self) -> str:
        return self.model_dump_json()


class InboundMessage(BaseModel):
    """Loosely typed message received from a socket endpoint.

    Only ``command`` is interpreted; everything else is kept verbatim.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    command: str | None = None
    data: Any = None
