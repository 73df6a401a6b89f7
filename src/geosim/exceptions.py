"""Custom exception hierarchy for geosim."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from geosim.models.position import Position


class GeoSimError(Exception):
    """Base exception for all geosim errors."""


class GeoSimConfigError(GeoSimError):
    """Invalid or missing configuration."""


class RoutingTransportError(GeoSimError):
    """HTTP-level failure talking to the routing provider (network, timeout, non-200)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class RouteUnavailableError(GeoSimError):
    """No usable route could be obtained after all fetch attempts."""

    def __init__(self, message: str, *, start: Position | None = None, end: Position | None = None) -> None:
        self.start = start
        self.end = end
        super().__init__(message)


class LegFailedError(GeoSimError):
    """A route leg inside a composite behavior could not be completed.

    Raised out of the behavior's cycle; the cycle does not retry.
    """


class ConnectorError(GeoSimError):
    """Connector could not deliver or connect."""


class ConnectorStorageError(ConnectorError):
    """Durable write to the storage sink failed."""
