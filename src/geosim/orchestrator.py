"""Scenario orchestration: wires vehicles, simulators and connectors together."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import aiohttp
from pydantic import ValidationError

from geosim._logging import ComponentLogger, component_logger
from geosim._redact import redact_for_log
from geosim._transport import HttpRoutingTransport, RoutingTransport
from geosim.config import GeoSimConfig
from geosim.connectors.base import AbstractConnector
from geosim.connectors.mqtt import MqttConnector, settings_from_config
from geosim.connectors.storage import SqlStorageConnector
from geosim.connectors.websocket import WebSocketConnector
from geosim.entities import Vehicle
from geosim.exceptions import GeoSimConfigError, GeoSimError
from geosim.models.scenario import ConnectorConfig, ConnectorKind, ScenarioConfig
from geosim.simulator.factory import build_simulator


def load_scenario(path: str | Path) -> ScenarioConfig:
    """Read and validate a scenario JSON file."""
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise GeoSimConfigError(f"Unable to read scenario file {path}: {exc}") from exc
    try:
        return ScenarioConfig.model_validate(json.loads(raw))
    except json.JSONDecodeError as exc:
        raise GeoSimConfigError(f"Scenario file {path} is not valid JSON: {exc}") from exc
    except ValidationError as exc:
        raise GeoSimConfigError(f"Invalid scenario file {path}: {exc}") from exc


def _sqlite_url(data: dict[str, Any]) -> str:
    url = data.get("url") or data.get("databaseUrl")
    if url:
        return str(url)
    path = data.get("file") or data.get("path") or data.get("databaseFile")
    if not path:
        raise GeoSimConfigError("SqliteConnector needs a 'url' or 'file'")
    return f"sqlite:///{path}"


class GeoSimulator:
    """Runs one scenario.

    Usage::

        async with GeoSimulator.from_file("data/config.json") as sim:
            await sim.setup()
            sim.start()
            ...
            await sim.stop()
    """

    def __init__(
        self,
        scenario: ScenarioConfig,
        *,
        config: GeoSimConfig | None = None,
        session: aiohttp.ClientSession | None = None,
        transport: RoutingTransport | None = None,
        logger: logging.Logger | ComponentLogger | None = None,
    ) -> None:
        self._scenario = scenario
        self._config = config or GeoSimConfig()
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._base_logger = logger
        self._log = component_logger(type(self).__name__, logger=logger, default=__name__)
        self.vehicles: dict[str, Vehicle] = {}
        self.connectors: dict[str, AbstractConnector] = {}
        self._running = False

    @classmethod
    def from_file(cls, path: str | Path, **kwargs: Any) -> GeoSimulator:
        return cls(load_scenario(path), **kwargs)

    @property
    def scenario(self) -> ScenarioConfig:
        return self._scenario

    @property
    def config(self) -> GeoSimConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> GeoSimulator:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        if self._transport is None:
            self._transport = HttpRoutingTransport(self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    def _require_transport(self) -> RoutingTransport:
        if self._transport is None:
            raise GeoSimError("Simulator not initialized. Use 'async with GeoSimulator(...) as sim:'")
        return self._transport

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def setup(self) -> None:
        """Build connectors and vehicles, attach them and run every setup.

        Raises
        ------
        GeoSimConfigError
            Invalid connector or simulator configuration.
        """
        transport = self._require_transport()
        self._log.info("Setting up simulations based on configuration")

        for conn in self._scenario.connectors:
            self._log.info(
                "Configuring connector %s (%s) with data: %s",
                conn.id,
                conn.connector.value,
                redact_for_log(conn.data),
            )
            connector = self._build_connector(conn)
            self.connectors[conn.id] = connector
            await connector.setup()

        for vehicle_config in self._scenario.vehicles:
            if not vehicle_config.enabled:
                self._log.info("Skipping disabled vehicle %s", vehicle_config.id)
                continue
            self._log.info("Setting up simulation for vehicle %s", vehicle_config.id)
            vehicle = Vehicle(
                vehicle_config.id,
                position=self._config.default_position,
                logger=self._base_logger,
            )
            simulator = build_simulator(
                vehicle_config.simulator,
                vehicle_config.data,
                transport=transport,
                identity=vehicle_config.id,
                route_defaults=self._config.route_defaults(),
                speed_mps=vehicle_config.speed,
                logger=self._base_logger,
            )
            self.vehicles[vehicle_config.id] = vehicle

            for connector_id in vehicle_config.connectors:
                connector = self.connectors.get(connector_id)
                if connector is None:
                    self._log.warning("Connector %s not found for vehicle %s", connector_id, vehicle_config.id)
                    continue
                connector.attach_entity(vehicle)
                self._log.info("Attached connector %s to vehicle %s", connector_id, vehicle_config.id)

            await vehicle.setup(simulator)

        for connector in self.connectors.values():
            await connector.connect_in_background()

    def _build_connector(self, conn: ConnectorConfig) -> AbstractConnector:
        data = conn.data
        if conn.connector is ConnectorKind.WEBSOCKET:
            url = data.get("url")
            if not url:
                raise GeoSimConfigError(f"WebSocketConnector {conn.id} needs a 'url'")
            return WebSocketConnector(
                conn.id,
                str(url),
                str(data.get("token") or ""),
                auto_reconnect=bool(data.get("autoReconnect", True)),
                max_consecutive_errors=int(data.get("maxConsecutiveErrors", 5)),
                reconnect_interval=float(data.get("reconnectInterval", 1000)) / 1000,
                session=self._http_session,
                logger=self._base_logger,
            )
        if conn.connector is ConnectorKind.MQTT:
            try:
                settings = settings_from_config(data, identity=conn.id)
            except ValueError as exc:
                raise GeoSimConfigError(f"MqttConnector {conn.id}: {exc}") from exc
            return MqttConnector(conn.id, settings, logger=self._base_logger)
        return SqlStorageConnector(conn.id, _sqlite_url(data), logger=self._base_logger)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def start(self) -> None:
        self._log.info("Starting GeoSimulator")
        for vehicle in self.vehicles.values():
            vehicle.start()
        self._running = True

    async def stop(self) -> None:
        """Stop every vehicle, then disconnect every connector."""
        if not self.vehicles and not self.connectors:
            return
        self._log.info("Stopping GeoSimulator")
        for vehicle in self.vehicles.values():
            vehicle.teardown()
        for connector in self.connectors.values():
            connector.detach_all()
        results = await asyncio.gather(
            *(connector.disconnect() for connector in self.connectors.values()),
            return_exceptions=True,
        )
        for connector_id, result in zip(self.connectors, results, strict=True):
            if isinstance(result, Exception):
                self._log.error("Connector %s failed to disconnect: %s", connector_id, result)
        self.vehicles.clear()
        self.connectors.clear()
        self._running = False
