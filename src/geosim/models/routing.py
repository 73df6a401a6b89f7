"""Routing-provider (OSRM) response model."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from geosim.models._base import GeoBaseModel
from geosim.models.position import Position


class RouteGeometry(GeoBaseModel):
    type: str = "LineString"
    coordinates: list[tuple[float, float]] = Field(default_factory=list)
    """GeoJSON ``[lon, lat]`` pairs in provider order."""

    @field_validator("coordinates", mode="before")
    @classmethod
    def _keep_lon_lat(cls, value: Any) -> Any:
        # GeoJSON may carry an altitude as a third element.
        if isinstance(value, list):
            return [tuple(pair[:2]) if isinstance(pair, (list, tuple)) else pair for pair in value]
        return value


class ProviderRoute(GeoBaseModel):
    geometry: RouteGeometry
    duration: float | None = None
    """Seconds."""
    distance: float | None = None
    """Meters."""


class Waypoint(GeoBaseModel):
    name: str | None = None
    location: tuple[float, float] | None = None
    distance: float | None = None


class RouteResponse(GeoBaseModel):
    code: str | None = None
    routes: list[ProviderRoute] = Field(default_factory=list)
    waypoints: list[Waypoint] = Field(default_factory=list)

    def positions(self) -> list[Position]:
        """First route's geometry as canonical ``(latitude, longitude)`` positions.

        Returns an empty list when the response carries no usable route.
        """
        if not self.routes:
            return []
        return [Position.from_lon_lat(pair) for pair in self.routes[0].geometry.coordinates]
