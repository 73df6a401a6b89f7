from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any

import aiohttp
import pytest
from conftest import RecordingSleep, settle

from geosim.connectors import WebSocketConnector, reconnect_delay
from geosim.entities import Vehicle
from geosim.models.messages import InboundMessage
from geosim.models.position import Position
from geosim.models.status import UnitStatus

P1 = Position(latitude=50.1, longitude=7.1)
P2 = Position(latitude=50.2, longitude=7.2)


@dataclass
class _Msg:
    type: aiohttp.WSMsgType
    data: Any


class FakeWebSocket:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.send_error: Exception | None = None
        self._inbox: asyncio.Queue[_Msg | None] = asyncio.Queue()

    async def send_str(self, data: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._inbox.put_nowait(None)

    def exception(self) -> BaseException | None:
        return None

    def feed_text(self, text: str) -> None:
        self._inbox.put_nowait(_Msg(aiohttp.WSMsgType.TEXT, text))

    def feed_binary(self, data: bytes) -> None:
        self._inbox.put_nowait(_Msg(aiohttp.WSMsgType.BINARY, data))

    def drop(self) -> None:
        """Server side closes the connection."""
        self.closed = True
        self._inbox.put_nowait(None)

    def __aiter__(self) -> FakeWebSocket:
        return self

    async def __anext__(self) -> _Msg:
        msg = await self._inbox.get()
        if msg is None:
            raise StopAsyncIteration
        return msg


class FakeSession:
    """``ws_connect`` replays *outcomes*; when they run out it opens fresh sockets."""

    def __init__(self, outcomes: list[FakeWebSocket | Exception] | None = None) -> None:
        self.outcomes = list(outcomes or [])
        self.connects: list[dict[str, Any]] = []
        self.sockets: list[FakeWebSocket] = []

    async def ws_connect(self, url: str, *, params: dict[str, str] | None = None, heartbeat: float | None = None) -> FakeWebSocket:
        self.connects.append({"url": url, "params": params, "heartbeat": heartbeat})
        outcome = self.outcomes.pop(0) if self.outcomes else FakeWebSocket()
        if isinstance(outcome, Exception):
            raise outcome
        self.sockets.append(outcome)
        return outcome


class GatedSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []
        self.gate = asyncio.Event()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await self.gate.wait()


def _connector(session: FakeSession, sleep: Any, **kwargs: Any) -> WebSocketConnector:
    return WebSocketConnector(
        "dashboard",
        "ws://localhost:8080/ws",
        "s3cret",
        session=session,  # type: ignore[arg-type]
        sleep=sleep,
        **kwargs,
    )


def _refused() -> aiohttp.ClientConnectionError:
    return aiohttp.ClientConnectionError("connection refused")


def test_reconnect_delay_grows_quadratically() -> None:
    assert [reconnect_delay(n) for n in (1, 2, 3, 4)] == [2, 6, 12, 20]
    assert reconnect_delay(3, 1.0) * 1000 == 3 * (3 + 1) * 1000


@pytest.mark.asyncio
async def test_connect_passes_token_and_streams_updates_in_order(sleep: RecordingSleep) -> None:
    session = FakeSession()
    connector = _connector(session, sleep, heartbeat=30.0)
    vehicle = Vehicle("rtw-1")
    connector.attach_entity(vehicle)

    assert await connector.connect() is True
    vehicle.set_position(P1)
    vehicle.set_status(UnitStatus.EN_ROUTE)
    vehicle.set_position(P2)
    await settle()

    assert session.connects == [{"url": "ws://localhost:8080/ws", "params": {"token": "s3cret"}, "heartbeat": 30.0}]
    ws = session.sockets[0]
    assert ws.sent == [
        {"command": "model.update", "model": "NamedGeoReferencedItem", "id": "rtw-1", "data": {"latitude": 50.1, "longitude": 7.1}},
        {"command": "model.update", "model": "Unit", "id": "rtw-1", "data": {"unit_status": 3}},
        {"command": "model.update", "model": "NamedGeoReferencedItem", "id": "rtw-1", "data": {"latitude": 50.2, "longitude": 7.2}},
    ]
    await connector.disconnect()


@pytest.mark.asyncio
async def test_updates_while_disconnected_are_flushed_latest_only(sleep: RecordingSleep) -> None:
    session = FakeSession()
    connector = _connector(session, sleep, position_model="Vehicle", status_model="Radio")
    first, second = Vehicle("a"), Vehicle("b")
    connector.attach_entity(first)
    connector.attach_entity(second)

    first.set_position(P1)
    second.set_status(UnitStatus.ON_SCENE)
    first.set_position(P2)
    first.set_status(UnitStatus.EN_ROUTE)
    assert len(connector.buffer) == 3

    await connector.connect()

    sent = session.sockets[0].sent
    assert [(m["id"], m["model"], m["data"]) for m in sent] == [
        ("a", "Vehicle", {"latitude": 50.2, "longitude": 7.2}),
        ("a", "Radio", {"unit_status": 3}),
        ("b", "Radio", {"unit_status": 4}),
    ]
    assert len(connector.buffer) == 0
    await connector.disconnect()


@pytest.mark.asyncio
async def test_flush_follows_attach_order(sleep: RecordingSleep) -> None:
    session = FakeSession()
    connector = _connector(session, sleep)
    first, second = Vehicle("a"), Vehicle("b")
    connector.attach_entity(first)
    connector.attach_entity(second)

    second.set_position(P2)
    first.set_position(P1)
    await connector.connect()

    assert [m["id"] for m in session.sockets[0].sent] == ["a", "b"]
    await connector.disconnect()


@pytest.mark.asyncio
async def test_backoff_between_failed_attempts(sleep: RecordingSleep) -> None:
    session = FakeSession([_refused(), _refused(), _refused()])
    connector = _connector(session, sleep)

    assert await connector.connect() is True

    assert sleep.delays == [2.0, 6.0, 12.0]
    assert len(session.connects) == 4
    assert connector.error_count == 0
    assert connector.is_open
    await connector.disconnect()


@pytest.mark.asyncio
async def test_auto_reconnect_disabled_after_max_consecutive_errors(sleep: RecordingSleep) -> None:
    session = FakeSession([_refused()] * 10)
    connector = _connector(session, sleep, max_consecutive_errors=3)

    assert await connector.connect() is False

    assert sleep.delays == [2.0, 6.0]
    assert len(session.connects) == 3
    assert connector.auto_reconnect is False
    assert not connector.is_open

    # An explicit connect still works.
    session.outcomes = []
    assert await connector.connect() is True
    await connector.disconnect()


@pytest.mark.asyncio
async def test_reconnects_after_server_drop_and_flushes_buffer() -> None:
    sleep = GatedSleep()
    session = FakeSession()
    connector = _connector(session, sleep)
    vehicle = Vehicle("rtw-1")
    connector.attach_entity(vehicle)
    await connector.connect()

    session.sockets[0].drop()
    await settle()
    assert not connector.is_open
    assert sleep.delays == [1.0]

    vehicle.set_position(P1)
    vehicle.set_position(P2)
    sleep.gate.set()
    await settle()

    assert connector.is_open
    assert len(session.sockets) == 2
    assert [m["data"] for m in session.sockets[1].sent] == [{"latitude": 50.2, "longitude": 7.2}]
    await connector.disconnect()


@pytest.mark.asyncio
async def test_send_failure_buffers_update_and_reconnects(sleep: RecordingSleep) -> None:
    session = FakeSession()
    connector = _connector(session, sleep)
    vehicle = Vehicle("rtw-1")
    connector.attach_entity(vehicle)
    await connector.connect()
    session.sockets[0].send_error = ConnectionResetError("reset by peer")

    vehicle.set_position(P1)
    await settle()

    assert session.sockets[0].closed
    assert len(session.sockets) == 2
    assert [m["data"] for m in session.sockets[1].sent] == [{"latitude": 50.1, "longitude": 7.1}]
    await connector.disconnect()


@pytest.mark.asyncio
async def test_inbound_messages_are_parsed_defensively(sleep: RecordingSleep) -> None:
    received: list[InboundMessage] = []
    session = FakeSession()
    connector = _connector(session, sleep, on_message=received.append)
    await connector.connect()
    ws = session.sockets[0]

    ws.feed_text('{"command": "model.ack", "data": {"id": "rtw-1"}, "extra": 1}')
    ws.feed_text("not json at all")
    ws.feed_text("[1, 2, 3]")
    ws.feed_text('{"command": ["bad"]}')
    ws.feed_binary(b'{"command": "ping"}')
    await settle()

    assert [m.command for m in received] == ["model.ack", "ping"]
    assert received[0].data == {"id": "rtw-1"}
    assert connector.inbound_count == 2
    assert connector.dropped_inbound_count == 3
    assert connector.is_open
    await connector.disconnect()


@pytest.mark.asyncio
async def test_failing_inbound_handler_does_not_close_connection(sleep: RecordingSleep) -> None:
    def handler(_message: InboundMessage) -> None:
        raise RuntimeError("handler bug")

    session = FakeSession()
    connector = _connector(session, sleep, on_message=handler)
    await connector.connect()
    session.sockets[0].feed_text('{"command": "ping"}')
    await settle()

    assert connector.is_open
    assert connector.inbound_count == 1
    await connector.disconnect()


@pytest.mark.asyncio
async def test_disconnect_stops_reconnecting(sleep: RecordingSleep) -> None:
    session = FakeSession()
    connector = _connector(session, sleep)
    vehicle = Vehicle("rtw-1")
    connector.attach_entity(vehicle)
    await connector.connect()

    await connector.disconnect()
    await settle()
    vehicle.set_position(P1)

    assert session.sockets[0].closed
    assert connector.auto_reconnect is False
    assert len(session.connects) == 1
    assert connector.buffer.pending_position("rtw-1") == P1


@pytest.mark.asyncio
async def test_detached_entity_is_neither_sent_nor_buffered(sleep: RecordingSleep) -> None:
    session = FakeSession()
    connector = _connector(session, sleep)
    vehicle = Vehicle("rtw-1")
    connector.attach_entity(vehicle)
    connector.attach_entity(vehicle)
    vehicle.set_position(P1)

    connector.detach_entity("rtw-1")
    vehicle.set_position(P2)
    await connector.connect()
    await settle()

    assert session.sockets[0].sent == []
    assert connector.attached_entities == {}
    await connector.disconnect()


@pytest.mark.asyncio
async def test_background_connect_buffers_until_the_endpoint_answers() -> None:
    sleep = GatedSleep()
    session = FakeSession([_refused()])
    connector = _connector(session, sleep)
    vehicle = Vehicle("rtw-1")
    connector.attach_entity(vehicle)

    await connector.connect_in_background()
    await settle()
    assert len(session.connects) == 1
    assert sleep.delays == [2.0]
    assert not connector.is_open

    vehicle.set_position(P1)
    assert connector.buffer.pending_position("rtw-1") == P1

    sleep.gate.set()
    await settle()

    assert connector.is_open
    assert [m["data"] for m in session.sockets[0].sent] == [{"latitude": 50.1, "longitude": 7.1}]
    await connector.disconnect()
