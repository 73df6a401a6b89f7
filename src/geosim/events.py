"""Synchronous publish/subscribe primitive.

Every stateful component (simulator, entity) owns one :class:`EventEmitter`.
Callbacks run on the publisher's call stack, in registration order.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from typing import Any

from geosim.models.notifications import Notification, NotificationKind

_logger = logging.getLogger(__name__)

Callback = Callable[[Any], None]


class Subscription:
    """Handle returned by :meth:`EventEmitter.subscribe`.

    Dispose it (or leave its ``with`` block) to remove the registration.
    """

    __slots__ = ("_emitter", "_kind", "_callback", "_active")

    def __init__(self, emitter: EventEmitter, kind: NotificationKind, callback: Callback) -> None:
        self._emitter = emitter
        self._kind = kind
        self._callback = callback
        self._active = True

    @property
    def kind(self) -> NotificationKind:
        return self._kind

    @property
    def active(self) -> bool:
        return self._active

    def dispose(self) -> None:
        if not self._active:
            return
        self._active = False
        self._emitter._remove(self._kind, self._callback)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.dispose()


class EventEmitter:
    """Map of notification kind -> ordered callbacks.

    A publish issued from inside a callback is queued and delivered once the
    current dispatch has walked its whole callback list.
    """

    def __init__(self, *, logger: logging.Logger | logging.LoggerAdapter | None = None) -> None:
        self._listeners: dict[NotificationKind, list[Callback]] = {}
        self._pending: deque[Notification] = deque()
        self._dispatching = False
        self._logger = logger or _logger

    def subscribe(self, kind: NotificationKind | str, callback: Callback) -> Subscription:
        key = NotificationKind(kind)
        self._listeners.setdefault(key, []).append(callback)
        return Subscription(self, key, callback)

    def listener_count(self, kind: NotificationKind | str | None = None) -> int:
        if kind is None:
            return sum(len(callbacks) for callbacks in self._listeners.values())
        return len(self._listeners.get(NotificationKind(kind), []))

    def publish(self, notification: Notification) -> None:
        self._pending.append(notification)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._pending:
                self._dispatch(self._pending.popleft())
        finally:
            self._dispatching = False

    def clear(self) -> None:
        self._listeners.clear()

    def _dispatch(self, notification: Notification) -> None:
        # Snapshot so callbacks may (un)subscribe while we iterate.
        for callback in list(self._listeners.get(notification.kind, ())):
            try:
                callback(notification)
            except Exception:
                self._logger.exception("Listener for %s failed", notification.kind)

    def _remove(self, kind: NotificationKind, callback: Callback) -> None:
        callbacks = self._listeners.get(kind)
        if not callbacks:
            return
        # Remove one registration; the same callable may be registered twice.
        for index, candidate in enumerate(callbacks):
            if candidate is callback:
                del callbacks[index]
                break
        if not callbacks:
            self._listeners.pop(kind, None)
