"""MQTT connector: publishes ``model.update`` messages per entity topic."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt

from geosim._constants import POSITION_MODEL, STATUS_MODEL
from geosim._logging import ComponentLogger
from geosim.connectors._delivery import BufferedConnector, InboundHandler
from geosim.models.notifications import NotificationKind


@dataclass(frozen=True)
class MqttSettings:
    """Broker connection details."""

    host: str
    port: int = 1883
    topic: str = "geosim"
    client_id: str = ""
    username: str | None = None
    password: str | None = None
    tls: bool = False
    keepalive: int = 60
    qos: int = 0
    inbound_topic: str | None = None


def _parse_broker(raw_broker: str) -> tuple[str, int | None]:
    value = raw_broker.strip()
    if not value:
        raise ValueError("Broker value is empty")

    if "://" in value:
        value = value.split("://", 1)[1]
    if "/" in value:
        value = value.split("/", 1)[0]

    host, _, maybe_port = value.rpartition(":")
    if host and maybe_port.isdigit():
        return host, int(maybe_port)
    return value, None


def settings_from_config(data: dict[str, Any], *, identity: str) -> MqttSettings:
    """Build :class:`MqttSettings` from a connector's ``data`` block.

    ``url`` may be ``mqtt://host:port`` (``mqtts://`` enables TLS); explicit
    ``host``/``port`` keys win over it.
    """
    url = str(data.get("url") or "")
    host: str | None = data.get("host")
    port: int | None = data.get("port")
    tls = bool(data.get("tls", url.startswith("mqtts://")))
    if url:
        url_host, url_port = _parse_broker(url)
        host = host or url_host
        port = port or url_port
    if not host:
        raise ValueError("MQTT connector needs a 'url' or 'host'")
    return MqttSettings(
        host=host,
        port=int(port or (8883 if tls else 1883)),
        topic=str(data.get("topic") or "geosim").rstrip("/"),
        client_id=str(data.get("clientId") or data.get("client_id") or f"geosim-{identity}"),
        username=data.get("username"),
        password=data.get("password"),
        tls=tls,
        keepalive=int(data.get("keepalive", 60)),
        qos=int(data.get("qos", 0)),
        inbound_topic=data.get("inboundTopic") or data.get("inbound_topic"),
    )


class MqttPublisher(Protocol):
    """The slice of :class:`MqttRuntime` the connector depends on."""

    @property
    def is_connected(self) -> bool: ...

    def start(self) -> None: ...

    def publish(self, topic: str, payload: str) -> bool: ...

    def stop(self) -> None: ...


RuntimeFactory = Callable[..., MqttPublisher]


class MqttRuntime:
    """Threaded paho-mqtt runtime that reports onto an asyncio loop.

    Paho runs its network loop on a background thread; connection changes and
    inbound payloads are marshalled back with ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        settings: MqttSettings,
        *,
        loop: asyncio.AbstractEventLoop,
        on_connected: Callable[[], None],
        on_disconnected: Callable[[], None],
        on_payload: Callable[[bytes], None],
        logger: logging.Logger | ComponentLogger | None = None,
    ) -> None:
        self._settings = settings
        self._loop = loop
        self._on_connected = on_connected
        self._on_disconnected = on_disconnected
        self._on_payload = on_payload
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def start(self) -> None:
        """Connect asynchronously; paho keeps reconnecting on its own."""
        self.stop()
        settings = self._settings
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s client_id=%s",
            settings.host,
            settings.port,
            settings.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=settings.client_id,
        )
        client.enable_logger(logging.getLogger(__name__))
        if settings.username:
            client.username_pw_set(settings.username, settings.password)
        if settings.tls:
            client.tls_set()
        client.reconnect_delay_set(min_delay=1, max_delay=60)

        def on_connect(c: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _properties: Any) -> None:
            if reason_code.is_failure:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._connected = True
            if settings.inbound_topic:
                c.subscribe(settings.inbound_topic, qos=settings.qos)
            self._loop.call_soon_threadsafe(self._on_connected)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self._loop.call_soon_threadsafe(self._on_payload, bytes(msg.payload))

        def on_disconnect(
            _c: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _properties: Any
        ) -> None:
            was_connected = self._connected
            self._connected = False
            if was_connected:
                self._logger.debug("MQTT disconnected: %s", reason_code)
                self._loop.call_soon_threadsafe(self._on_disconnected)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect_async(settings.host, settings.port, keepalive=settings.keepalive)
        client.loop_start()
        self._client = client
        self._logger.debug("MQTT network loop started")

    def publish(self, topic: str, payload: str) -> bool:
        client = self._client
        if client is None or not self._connected:
            return False
        info = client.publish(topic, payload, qos=self._settings.qos)
        return info.rc == mqtt.MQTT_ERR_SUCCESS

    def stop(self) -> None:
        client = self._client
        self._client = None
        self._connected = False
        if client is None:
            return
        try:
            client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")


class MqttConnector(BufferedConnector):
    """Publishes entity updates to ``{topic}/{entity_id}``.

    Updates produced while the broker is unreachable are buffered like the
    WebSocket connector does and flushed when paho reports a connection.
    """

    def __init__(
        self,
        identity: str,
        settings: MqttSettings,
        *,
        runtime_factory: RuntimeFactory = MqttRuntime,
        position_model: str = POSITION_MODEL,
        status_model: str = STATUS_MODEL,
        on_message: InboundHandler | None = None,
        logger: logging.Logger | ComponentLogger | None = None,
    ) -> None:
        super().__init__(
            identity,
            position_model=position_model,
            status_model=status_model,
            on_message=on_message,
            logger=logger,
        )
        self._settings = settings
        self._runtime_factory = runtime_factory
        self._runtime: MqttPublisher | None = None
        self._connected = False

    @property
    def settings(self) -> MqttSettings:
        return self._settings

    @property
    def is_open(self) -> bool:
        return self._connected and self._runtime is not None

    def topic_for(self, entity_id: str) -> str:
        return f"{self._settings.topic}/{entity_id}"

    async def connect(self) -> bool:
        """Start the paho network loop; the broker connection completes in the background."""
        if self._runtime is not None:
            return self.is_open
        self._log.info("Connecting to MQTT broker %s:%s", self._settings.host, self._settings.port)
        runtime = self._runtime_factory(
            self._settings,
            loop=asyncio.get_running_loop(),
            on_connected=self._handle_connected,
            on_disconnected=self._handle_disconnected,
            on_payload=self._handle_inbound,
            logger=self._log,
        )
        self._runtime = runtime
        runtime.start()
        return self.is_open

    async def disconnect(self) -> None:
        runtime = self._runtime
        self._runtime = None
        self._connected = False
        if runtime is None:
            return
        self._log.info("Disconnecting from MQTT broker")
        await asyncio.get_running_loop().run_in_executor(None, runtime.stop)

    def _handle_connected(self) -> None:
        if self._runtime is None:
            return
        self._log.info("Connected to MQTT broker")
        self._connected = True
        self._warned_disconnected = False
        self._flush_pending()

    def _handle_disconnected(self) -> None:
        if self._connected:
            self._log.info("Disconnected from MQTT broker")
        self._connected = False

    def _transmit(self, entity_id: str, kind: NotificationKind, value: object) -> None:
        # A refused publish leaves the link state alone; the backlog goes out first.
        if self._buffer:
            self._buffer.store(entity_id, kind, value)
            self._flush_pending()
        elif not self._publish(entity_id, kind, value):
            self._log.warning("Publish failed, buffering")
            self._buffer.store(entity_id, kind, value)

    def _flush_pending(self) -> bool:
        """Publish every buffered slot; stops at the first refused publish."""
        pending = self._take_pending()
        for index, item in enumerate(pending):
            if not self._publish(*item):
                self._log.warning("Publish failed, %d buffered updates kept", len(pending) - index)
                self._rebuffer(pending[index:], overwrite=False)
                return False
        if pending:
            self._log.info("Flushed %d buffered updates", len(pending))
        return True

    def _publish(self, entity_id: str, kind: NotificationKind, value: object) -> bool:
        runtime = self._runtime
        if runtime is None:
            return False
        payload = self.build_message(entity_id, kind, value).to_json()
        return runtime.publish(self.topic_for(entity_id), payload)
