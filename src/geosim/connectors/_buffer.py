"""Single-slot pending-delivery buffer."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from geosim.models.notifications import NotificationKind
from geosim.models.position import Position
from geosim.models.status import UnitStatus

_UNSET = object()


@dataclass
class _Slots:
    position: Position | None | object = _UNSET
    status: UnitStatus | object = _UNSET

    def empty(self) -> bool:
        return self.position is _UNSET and self.status is _UNSET


class PendingDeliveryBuffer:
    """At most one undelivered position and one status per entity.

    A newer value overwrites the older one in its slot. :meth:`drain` emits
    entities in the order it is given (connectors pass their attach order),
    then any others in the order they were first buffered.
    """

    def __init__(self) -> None:
        self._slots: dict[str, _Slots] = {}

    def __len__(self) -> int:
        count = 0
        for slots in self._slots.values():
            count += slots.position is not _UNSET
            count += slots.status is not _UNSET
        return count

    def __bool__(self) -> bool:
        return any(not slots.empty() for slots in self._slots.values())

    def store_position(self, entity_id: str, position: Position | None) -> None:
        self._slots.setdefault(entity_id, _Slots()).position = position

    def store_status(self, entity_id: str, status: UnitStatus) -> None:
        self._slots.setdefault(entity_id, _Slots()).status = status

    def pending_position(self, entity_id: str) -> Position | None:
        slots = self._slots.get(entity_id)
        if slots is None or slots.position is _UNSET:
            return None
        return slots.position  # type: ignore[return-value]

    def pending_status(self, entity_id: str) -> UnitStatus | None:
        slots = self._slots.get(entity_id)
        if slots is None or slots.status is _UNSET:
            return None
        return slots.status  # type: ignore[return-value]

    def store(self, entity_id: str, kind: NotificationKind, value: object, *, overwrite: bool = True) -> None:
        """Store by kind; with ``overwrite=False`` an already pending value is kept."""
        if kind not in (NotificationKind.POSITION_UPDATE, NotificationKind.STATUS_UPDATE):
            raise ValueError(f"Cannot buffer {kind} notifications")
        slots = self._slots.setdefault(entity_id, _Slots())
        if kind is NotificationKind.POSITION_UPDATE:
            if overwrite or slots.position is _UNSET:
                slots.position = value
        elif overwrite or slots.status is _UNSET:
            slots.status = value

    def forget(self, entity_id: str) -> None:
        self._slots.pop(entity_id, None)

    def drain(self, order: Iterable[str] = ()) -> list[tuple[str, NotificationKind, object]]:
        """Remove and return ``(entity_id, kind, value)``, position before status per entity."""
        ordered = [entity_id for entity_id in order if entity_id in self._slots]
        ordered += [entity_id for entity_id in self._slots if entity_id not in ordered]
        drained: list[tuple[str, NotificationKind, object]] = []
        for entity_id in ordered:
            slots = self._slots[entity_id]
            if slots.position is not _UNSET:
                drained.append((entity_id, NotificationKind.POSITION_UPDATE, slots.position))
            if slots.status is not _UNSET:
                drained.append((entity_id, NotificationKind.STATUS_UPDATE, slots.status))
        self._slots = {}
        return drained
