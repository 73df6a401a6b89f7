from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any

import pytest

from geosim._transport import RoutingResponse
from geosim.exceptions import RoutingTransportError
from geosim.models.position import Position


def route_payload(points: Iterable[Position]) -> dict[str, Any]:
    """OSRM-shaped body whose first route follows *points*."""
    return {
        "code": "Ok",
        "routes": [
            {
                "geometry": {
                    "type": "LineString",
                    "coordinates": [[p.longitude, p.latitude] for p in points],
                },
                "distance": 0.0,
                "duration": 0.0,
            }
        ],
        "waypoints": [],
    }


class FakeRoutingTransport:
    """Replays queued responses; once the queue is empty, routes start -> end."""

    def __init__(self, responses: Iterable[RoutingResponse | Exception] = ()) -> None:
        self.responses: list[RoutingResponse | Exception] = list(responses)
        self.calls: list[tuple[str, float]] = []

    async def get_json(self, url: str, *, timeout: float) -> RoutingResponse:
        self.calls.append((url, timeout))
        if self.responses:
            item = self.responses.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return RoutingResponse(status=200, payload=route_payload(_endpoints(url)))


class FailingRoutingTransport:
    async def get_json(self, url: str, *, timeout: float) -> RoutingResponse:
        raise RoutingTransportError("connection refused", url=url)


def _endpoints(url: str) -> list[Position]:
    coords = url.rsplit("/", 1)[1].split("?", 1)[0]
    points = []
    for pair in coords.split(";"):
        lon, lat = pair.split(",")
        points.append(Position(latitude=float(lat), longitude=float(lon)))
    return points


class RecordingSleep:
    """Stands in for ``asyncio.sleep``: records the delay and yields once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


async def settle(rounds: int = 50) -> None:
    """Let background tasks make progress."""
    for _ in range(rounds):
        await asyncio.sleep(0)
