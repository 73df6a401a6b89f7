"""WebSocket connector with buffering and backoff reconnect."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from geosim._constants import POSITION_MODEL, STATUS_MODEL
from geosim._logging import ComponentLogger
from geosim._redact import redact_url
from geosim._routing import Sleep
from geosim.connectors._delivery import BufferedConnector, InboundHandler
from geosim.exceptions import ConnectorError
from geosim.models.notifications import NotificationKind

_SEND_ERRORS = (OSError, aiohttp.ClientError, RuntimeError)
_CONNECT_ERRORS = (OSError, aiohttp.ClientError, asyncio.TimeoutError, ConnectorError)


def reconnect_delay(error_count: int, interval: float = 1.0) -> float:
    """Seconds to wait after *error_count* consecutive failed attempts."""
    return error_count * (error_count + 1) * interval


class WebSocketConnector(BufferedConnector):
    """Streams ``model.update`` messages over a long-lived WebSocket.

    The auth token travels as the ``token`` query parameter of the handshake.
    After ``max_consecutive_errors`` failed attempts in a row, automatic
    reconnection is switched off for good; :meth:`connect` still works.
    """

    def __init__(
        self,
        identity: str,
        url: str,
        token: str,
        *,
        auto_reconnect: bool = True,
        max_consecutive_errors: int = 5,
        reconnect_interval: float = 1.0,
        heartbeat: float | None = None,
        session: aiohttp.ClientSession | None = None,
        sleep: Sleep = asyncio.sleep,
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
        self._url = url
        self._token = token
        self._auto_reconnect = auto_reconnect
        self._max_consecutive_errors = max(1, max_consecutive_errors)
        self._reconnect_interval = reconnect_interval
        self._heartbeat = heartbeat
        self._http = session
        self._owns_session = session is None
        self._sleep = sleep

        self._ws: Any = None
        self._open = False
        self._closing = False
        self._error_count = 0
        self._outbox: asyncio.Queue[tuple[str, NotificationKind, object]] = asyncio.Queue()
        self._reader_task: asyncio.Task[None] | None = None
        self._writer_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[bool] | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        ws = self._ws
        return self._open and ws is not None and not ws.closed

    @property
    def auto_reconnect(self) -> bool:
        return self._auto_reconnect

    @property
    def error_count(self) -> int:
        return self._error_count

    def reconnect_delay(self, error_count: int | None = None) -> float:
        count = self._error_count if error_count is None else error_count
        return reconnect_delay(count, self._reconnect_interval)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def setup(self) -> None:
        self._log.info("Setting up WebSocket connector for %s", redact_url(self._url))

    async def connect(self) -> bool:
        """Connect (retrying while auto-reconnect allows). Returns ``True`` once open."""
        if self.is_open:
            return True
        self._closing = False
        self._error_count = 0
        return await self._connect_loop()

    async def connect_in_background(self) -> None:
        """Run the connect loop as a task; updates are buffered until it succeeds."""
        if self.is_open or (self._reconnect_task is not None and not self._reconnect_task.done()):
            return
        self._closing = False
        self._error_count = 0
        self._reconnect_task = asyncio.get_running_loop().create_task(self._connect_loop())

    async def disconnect(self) -> None:
        self._log.info("Disconnecting from WebSocket")
        self._closing = True
        self._auto_reconnect = False
        self._open = False
        ws = self._ws
        self._ws = None

        tasks = [t for t in (self._reconnect_task, self._reader_task, self._writer_task) if t is not None]
        self._reconnect_task = self._reader_task = self._writer_task = None
        current = asyncio.current_task()
        tasks = [t for t in tasks if t is not current and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._outbox_to_buffer()

        if ws is not None and not ws.closed:
            await ws.close()
        if self._owns_session and self._http is not None:
            await self._http.close()
            self._http = None

    async def _connect_loop(self) -> bool:
        while not self._closing:
            try:
                await self._open_socket()
                return True
            except _CONNECT_ERRORS as exc:
                self._error_count += 1
                self._log.warning("Connection attempt %d failed: %s", self._error_count, exc)
                if self._error_count >= self._max_consecutive_errors:
                    self._log.error("Maximum reconnection attempts reached. Stopping auto-reconnect.")
                    self._auto_reconnect = False
                    return False
                if not self._auto_reconnect:
                    return False
                delay = self.reconnect_delay()
                self._log.info("Reconnecting in %.1f seconds", delay)
                await self._sleep(delay)
        return False

    async def _open_socket(self) -> None:
        if self._http is None:
            self._http = aiohttp.ClientSession()
        self._log.info("Connecting to WebSocket at %s", redact_url(self._url))
        ws = await self._http.ws_connect(self._url, params={"token": self._token}, heartbeat=self._heartbeat)
        if self._closing:
            await ws.close()
            raise ConnectorError("Connector closed while connecting")

        self._ws = ws
        try:
            await self._flush(ws)
        except ConnectorError:
            self._ws = None
            await ws.close()
            raise

        self._error_count = 0
        self._open = True
        self._warned_disconnected = False
        self._log.info("Connected to WebSocket")
        loop = asyncio.get_running_loop()
        self._writer_task = loop.create_task(self._write_loop(ws))
        self._reader_task = loop.create_task(self._read_loop(ws))

    async def _flush(self, ws: Any) -> None:
        """Send every buffered slot; updates arriving meanwhile are buffered and sent too."""
        sent = 0
        while self._buffer:
            pending = self._take_pending()
            for index, (entity_id, kind, value) in enumerate(pending):
                try:
                    await ws.send_str(self.build_message(entity_id, kind, value).to_json())
                except _SEND_ERRORS as exc:
                    # Anything buffered during the flush is newer; keep it.
                    self._rebuffer(pending[index:], overwrite=False)
                    raise ConnectorError(f"Flush failed: {exc}") from exc
                sent += 1
        if sent:
            self._log.info("Flushed %d buffered updates", sent)

    def _reconnect_soon(self) -> None:
        if self._closing or not self._auto_reconnect:
            self._log.info("Auto-reconnect disabled; staying disconnected")
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect())

    async def _reconnect(self) -> bool:
        await self._sleep(self._reconnect_interval)
        return await self._connect_loop()

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def _transmit(self, entity_id: str, kind: NotificationKind, value: object) -> None:
        self._outbox.put_nowait((entity_id, kind, value))

    async def _write_loop(self, ws: Any) -> None:
        while True:
            entity_id, kind, value = await self._outbox.get()
            try:
                await ws.send_str(self.build_message(entity_id, kind, value).to_json())
            except _SEND_ERRORS as exc:
                self._log.warning("Send failed, buffering: %s", exc)
                self._rebuffer([(entity_id, kind, value)], overwrite=True)
                self._connection_lost(ws)
                return

    def _outbox_to_buffer(self) -> None:
        while not self._outbox.empty():
            self._rebuffer([self._outbox.get_nowait()], overwrite=True)

    # ------------------------------------------------------------------
    # Receiving
    # ------------------------------------------------------------------

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for msg in ws:
                if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    self._handle_inbound(msg.data)
                elif msg.type is aiohttp.WSMsgType.ERROR:
                    self._log.error("WebSocket error: %s", ws.exception())
                    break
        finally:
            if self._ws is ws:
                self._connection_lost(ws)

    def _connection_lost(self, ws: Any) -> None:
        if self._ws is not ws:
            return
        self._log.info("Disconnected from WebSocket")
        self._open = False
        self._ws = None

        current = asyncio.current_task()
        for task in (self._writer_task, self._reader_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._writer_task = self._reader_task = None
        self._outbox_to_buffer()

        if not ws.closed:
            asyncio.get_running_loop().create_task(ws.close())
        self._reconnect_soon()
