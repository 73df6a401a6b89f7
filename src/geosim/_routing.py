"""Route fetch with retry and backoff."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pydantic import ValidationError

from geosim._constants import ERROR_BACKOFF_S, RATE_LIMIT_BACKOFF_S
from geosim._transport import RoutingTransport
from geosim.exceptions import RoutingTransportError
from geosim.models.options import RouteSimulatorOptions
from geosim.models.position import Position
from geosim.models.routing import RouteResponse

_logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def build_route_url(start: Position, end: Position, options: RouteSimulatorOptions) -> str:
    base = options.server_url.rstrip("/")
    return (
        f"{base}/{options.profile}/{start.as_lon_lat()};{end.as_lon_lat()}"
        "?overview=full&geometries=geojson"
    )


async def fetch_route(
    transport: RoutingTransport,
    start: Position,
    end: Position,
    options: RouteSimulatorOptions,
    *,
    sleep: Sleep = asyncio.sleep,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
) -> list[Position]:
    """Fetch a route from *start* to *end*.

    Makes up to ``options.max_retries + 1`` attempts. Returns the route as
    ``(latitude, longitude)`` positions, or an empty list once every attempt
    has failed; an empty list is never retried by the caller.
    """
    log = logger or _logger
    url = build_route_url(start, end, options)
    timeout = options.fetch_timeout_ms / 1000.0
    attempts = options.max_retries + 1
    last_error: str = "no attempt made"

    for attempt in range(1, attempts + 1):
        delay = attempt * ERROR_BACKOFF_S
        try:
            response = await transport.get_json(url, timeout=timeout)
        except RoutingTransportError as exc:
            last_error = str(exc)
            log.warning("Route fetch attempt %d/%d failed: %s", attempt, attempts, exc)
        else:
            if response.status == 429:
                last_error = "rate limited (429)"
                retry_after = response.retry_after
                delay = retry_after if retry_after is not None else attempt * RATE_LIMIT_BACKOFF_S
                log.warning("Routing server rate-limited attempt %d/%d, waiting %.1fs", attempt, attempts, delay)
            elif not response.ok:
                last_error = f"routing server returned {response.status}"
                log.warning("Route fetch attempt %d/%d: HTTP %d", attempt, attempts, response.status)
            else:
                route = _parse_route(response.payload)
                if route:
                    log.debug("Route fetched with %d points on attempt %d", len(route), attempt)
                    return route
                last_error = "no route returned"
                log.warning("Route fetch attempt %d/%d returned no route", attempt, attempts)

        if attempt < attempts:
            await sleep(delay)

    log.error("Failed to fetch route after %d attempts: %s", attempts, last_error)
    return []


def _parse_route(payload: object) -> list[Position]:
    if not isinstance(payload, dict):
        return []
    try:
        response = RouteResponse.model_validate(payload)
        return response.positions()
    except (ValidationError, TypeError, ValueError, IndexError):
        _logger.debug("Unparseable routing payload", exc_info=True)
        return []
