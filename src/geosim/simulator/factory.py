"""Build a simulator from a scenario ``simulator`` kind and ``data`` block."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from geosim._logging import ComponentLogger
from geosim._routing import Sleep
from geosim._transport import RoutingTransport
from geosim.exceptions import GeoSimConfigError
from geosim.models.options import (
    DispatchCycleOptions,
    RandomRouteOptions,
    RouteLegConfig,
    RouteSimulatorOptions,
)
from geosim.models.scenario import SimulatorKind
from geosim.simulator.base import Clock, SimulatorBase
from geosim.simulator.composite import DispatchCycleSimulator, RandomRouteSimulator
from geosim.simulator.route import RouteSimulator


def merge_route_options(
    explicit: RouteSimulatorOptions,
    defaults: Mapping[str, Any] | None = None,
    *,
    speed_mps: float | None = None,
) -> RouteSimulatorOptions:
    """Fill fields the scenario left unset from *defaults*; *speed_mps* wins over both."""
    merged: dict[str, Any] = dict(defaults or {})
    merged.update({name: getattr(explicit, name) for name in explicit.model_fields_set})
    if speed_mps is not None:
        merged["speed_mps"] = speed_mps
    return RouteSimulatorOptions.model_validate(merged)


def build_simulator(
    kind: SimulatorKind | str,
    data: Mapping[str, Any],
    *,
    transport: RoutingTransport,
    identity: str | None = None,
    route_defaults: Mapping[str, Any] | None = None,
    speed_mps: float | None = None,
    logger: logging.Logger | ComponentLogger | None = None,
    clock: Clock = time.time,
    sleep: Sleep = asyncio.sleep,
    rng: random.Random | None = None,
) -> SimulatorBase:
    """Return the simulator variant named by *kind*, configured from *data*.

    Raises
    ------
    GeoSimConfigError
        Unknown kind or invalid ``data``.
    """
    try:
        simulator_kind = SimulatorKind(kind)
    except ValueError as exc:
        raise GeoSimConfigError(f"Unknown simulator kind: {kind!r}") from exc

    try:
        if simulator_kind is SimulatorKind.ROUTE:
            leg = RouteLegConfig.model_validate(dict(data))
            return RouteSimulator(
                leg.start,
                leg.end,
                merge_route_options(leg.route, route_defaults, speed_mps=speed_mps),
                transport=transport,
                identity=identity,
                logger=logger,
                clock=clock,
                sleep=sleep,
            )

        if simulator_kind is SimulatorKind.RANDOM_ROUTE:
            random_options = RandomRouteOptions.model_validate(dict(data))
            random_options = random_options.model_copy(
                update={"route": merge_route_options(random_options.route, route_defaults, speed_mps=speed_mps)}
            )
            return RandomRouteSimulator(
                random_options,
                transport=transport,
                identity=identity,
                logger=logger,
                clock=clock,
                sleep=sleep,
                rng=rng,
            )

        dispatch_options = DispatchCycleOptions.model_validate(dict(data))
        dispatch_options = dispatch_options.model_copy(
            update={"route": merge_route_options(dispatch_options.route, route_defaults, speed_mps=speed_mps)}
        )
        return DispatchCycleSimulator(
            dispatch_options,
            transport=transport,
            identity=identity,
            logger=logger,
            clock=clock,
            sleep=sleep,
            rng=rng,
        )
    except ValidationError as exc:
        raise GeoSimConfigError(f"Invalid {simulator_kind.value} data: {exc}") from exc
