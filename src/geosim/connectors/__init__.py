"""Connectors forward entity updates to external sinks."""

from geosim.connectors._buffer import PendingDeliveryBuffer
from geosim.connectors._delivery import BufferedConnector
from geosim.connectors.base import AbstractConnector
from geosim.connectors.mqtt import MqttConnector, MqttRuntime, MqttSettings
from geosim.connectors.storage import PositionRecord, SqlStorageConnector
from geosim.connectors.websocket import WebSocketConnector, reconnect_delay

__all__ = [
    "AbstractConnector",
    "BufferedConnector",
    "MqttConnector",
    "MqttRuntime",
    "MqttSettings",
    "PendingDeliveryBuffer",
    "PositionRecord",
    "SqlStorageConnector",
    "WebSocketConnector",
    "reconnect_delay",
]
