"""Simulator engine.

Three variants share one capability interface (:class:`Simulator`):

* :class:`RouteSimulator` follows a single fetched route;
* :class:`RandomRouteSimulator` chains legs to random destinations;
* :class:`DispatchCycleSimulator` runs idle/dispatch/on-scene/return cycles.

:func:`build_simulator` picks the variant from the scenario's ``simulator`` kind.
"""

from geosim.simulator.base import Simulator, SimulatorBase
from geosim.simulator.composite import DispatchCycleSimulator, RandomRouteSimulator
from geosim.simulator.factory import build_simulator, merge_route_options
from geosim.simulator.route import RouteSimulator

__all__ = [
    "DispatchCycleSimulator",
    "RandomRouteSimulator",
    "RouteSimulator",
    "Simulator",
    "SimulatorBase",
    "build_simulator",
    "merge_route_options",
]
