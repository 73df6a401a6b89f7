"""Simulator option models.

These are parsed from the ``data`` block of a vehicle in the scenario file,
so both camelCase and snake_case keys are accepted.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, model_validator

from geosim._constants import DEFAULT_LATITUDE, DEFAULT_LONGITUDE, ROUTING_PROFILE, ROUTING_URL
from geosim.models._base import GeoBaseModel
from geosim.models.position import Position


def _default_position() -> Position:
    return Position(latitude=DEFAULT_LATITUDE, longitude=DEFAULT_LONGITUDE)


class RouteSimulatorOptions(GeoBaseModel):
    """Movement and routing options for a single route leg.

    Parameters
    ----------
    server_url : str
        Routing service base URL, e.g. ``https://router.project-osrm.org/route/v1``.
    profile : str
        Movement profile (``driving``, ``walking``, ``cycling``).
    speed_mps : float
        Travel speed in meters per second.
    update_interval_ms : int
        Tick interval in milliseconds.
    max_retries : int
        Retries after the first failed route fetch attempt.
    fetch_timeout_ms : int
        Per-attempt HTTP timeout in milliseconds.
    loop : bool
        Restart from the first waypoint once the destination is reached.
    """

    server_url: str = ROUTING_URL
    profile: str = ROUTING_PROFILE
    speed_mps: float = Field(default=10.0, gt=0)
    update_interval_ms: int = Field(default=1000, gt=0)
    max_retries: int = Field(default=3, ge=0)
    fetch_timeout_ms: int = Field(default=10_000, gt=0)
    loop: bool = False

    @property
    def step_m(self) -> float:
        """Distance covered per tick in meters."""
        return self.speed_mps * self.update_interval_ms / 1000.0


class RouteLegConfig(GeoBaseModel):
    """``data`` block for a plain route-following vehicle."""

    start: Position
    end: Position
    route: RouteSimulatorOptions = Field(
        default_factory=RouteSimulatorOptions,
        validation_alias=AliasChoices("route", "routeSimulatorOptions", "route_simulator_options"),
    )


class _AreaOptions(GeoBaseModel):
    corner1: Position = Field(
        default_factory=_default_position,
        validation_alias=AliasChoices("corner1", "coord1"),
    )
    corner2: Position = Field(
        default_factory=_default_position,
        validation_alias=AliasChoices("corner2", "coord2"),
    )
    route: RouteSimulatorOptions = Field(
        default_factory=RouteSimulatorOptions,
        validation_alias=AliasChoices("route", "routeSimulatorOptions", "route_simulator_options"),
    )


class RandomRouteOptions(_AreaOptions):
    """Options for the random-route behavior."""

    min_wait_s: int = Field(default=1, ge=0)
    max_wait_s: int = Field(default=50, ge=0)

    @model_validator(mode="after")
    def _check_wait_range(self) -> RandomRouteOptions:
        if self.min_wait_s > self.max_wait_s:
            raise ValueError("min_wait_s must not exceed max_wait_s")
        return self


class DispatchCycleOptions(_AreaOptions):
    """Options for the dispatch-cycle behavior.

    Incident locations are sampled inside the ``corner1``/``corner2`` box;
    every cycle ends back at ``home_location``.
    """

    home_location: Position
    dispatch_wait_s: tuple[int, int] = (10, 200)
    on_scene_s: tuple[int, int] = (5, 300)

    @model_validator(mode="before")
    @classmethod
    def _lift_home_location(cls, values: Any) -> Any:
        # Older scenario files nest homeLocation inside the route options.
        if not isinstance(values, dict) or "homeLocation" in values or "home_location" in values:
            return values
        for key in ("routeSimulatorOptions", "route", "route_simulator_options"):
            nested = values.get(key)
            if isinstance(nested, dict) and "homeLocation" in nested:
                lifted = dict(values)
                lifted["homeLocation"] = nested["homeLocation"]
                return lifted
        return values

    @model_validator(mode="after")
    def _check_ranges(self) -> DispatchCycleOptions:
        for name in ("dispatch_wait_s", "on_scene_s"):
            low, high = getattr(self, name)
            if low < 0 or low > high:
                raise ValueError(f"{name} must be a non-negative (min, max) range")
        return self
