"""Component-scoped logging helpers.

Every stateful component receives its logger from the caller (or falls back
to its module logger) and wraps it in :class:`ComponentLogger` so each record
carries the originating component and entity identity.
"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from typing import Any

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class ComponentLogger(logging.LoggerAdapter):
    """Prefix messages with ``[component id]`` and attach both as ``extra`` fields."""

    def __init__(self, logger: logging.Logger, component: str, entity_id: str | None = None) -> None:
        super().__init__(logger, {"component": component, "entity_id": entity_id})

    @property
    def component(self) -> str:
        return str(self.extra["component"])  # type: ignore[index]

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        entity_id = extra.get("entity_id")
        prefix = f"[{extra['component']} {entity_id}]" if entity_id else f"[{extra['component']}]"
        return f"{prefix} {msg}", kwargs


def component_logger(
    component: str,
    entity_id: str | None = None,
    *,
    logger: logging.Logger | ComponentLogger | None = None,
    default: str = "geosim",
) -> ComponentLogger:
    """Build a :class:`ComponentLogger` from an injected logger (or the *default* module logger)."""
    if isinstance(logger, ComponentLogger):
        base = logger.logger
    elif logger is not None:
        base = logger
    else:
        base = logging.getLogger(default)
    return ComponentLogger(base, component, entity_id)


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configure the root logger with a single console handler.

    Parameters
    ----------
    level : int or str
        Minimum severity level (e.g. ``logging.DEBUG`` or ``"INFO"``).
    """
    root = logging.getLogger()
    root.setLevel(level)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root.handlers.clear()
    root.addHandler(handler)

    # aiohttp access noise is only useful when debugging the transport.
    if root.level > logging.DEBUG:
        logging.getLogger("aiohttp").setLevel(logging.WARNING)
