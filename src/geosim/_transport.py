"""HTTP transport for the routing provider."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import aiohttp

from geosim._constants import USER_AGENT
from geosim.exceptions import RoutingTransportError

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoutingResponse:
    """Status, relevant headers and decoded JSON body of one routing call."""

    status: int
    payload: Any = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def retry_after(self) -> float | None:
        """``Retry-After`` in seconds, when present and numeric."""
        raw = self.headers.get("retry-after")
        if raw is None:
            return None
        try:
            value = float(raw.strip())
        except ValueError:
            return None
        return value if value >= 0 else None


class RoutingTransport(Protocol):
    """Structural transport interface used by the route fetcher.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpRoutingTransport`) concrete.
    """

    async def get_json(self, url: str, *, timeout: float) -> RoutingResponse:
        ...


class HttpRoutingTransport:
    """aiohttp-backed transport; one GET per call, bounded by *timeout* seconds."""

    def __init__(self, http_session: aiohttp.ClientSession) -> None:
        self._http = http_session

    async def get_json(self, url: str, *, timeout: float) -> RoutingResponse:
        headers = {"accept": "application/json", "user-agent": USER_AGENT}
        _logger.debug("GET %s", url)

        try:
            async with self._http.get(
                url,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                text = await resp.text()
                response_headers = {k.lower(): v for k, v in resp.headers.items()}
                status = resp.status
        except asyncio.TimeoutError as exc:
            raise RoutingTransportError(f"Request to {url} timed out after {timeout:.1f}s", url=url) from exc
        except aiohttp.ClientError as exc:
            raise RoutingTransportError(f"Request to {url} failed: {exc}", url=url) from exc

        payload: Any = None
        if text:
            try:
                payload = json.loads(text)
            except json.JSONDecodeError:
                if 200 <= status < 300:
                    raise RoutingTransportError(
                        f"Invalid JSON from {url}: {text[:200]}",
                        status_code=status,
                        url=url,
                    ) from None
        return RoutingResponse(status=status, payload=payload, headers=response_headers)
