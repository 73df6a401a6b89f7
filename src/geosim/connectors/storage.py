"""SQL storage connector: persists position updates through SQLAlchemy."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from sqlalchemy import BigInteger, Column, Float, Integer, String, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from geosim._logging import ComponentLogger
from geosim.connectors.base import AbstractConnector
from geosim.exceptions import ConnectorStorageError
from geosim.models.notifications import NotificationKind, PositionUpdate
from geosim.models.position import Position

Base = declarative_base()


class PositionRecord(Base):
    __tablename__ = "positions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_id = Column(String, nullable=False, index=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    # epoch milliseconds
    timestamp = Column(BigInteger, nullable=False)


class SqlStorageConnector(AbstractConnector):
    """Writes every position update as one row of the ``positions`` table.

    Blocking database calls run on a single worker thread, so rows land in
    the order the updates were produced.

    Parameters
    ----------
    identity:
        Connector id from the scenario.
    database_url:
        SQLAlchemy URL, e.g. ``sqlite:///./data/positions.db``.
    """

    forwarded_kinds = (NotificationKind.POSITION_UPDATE,)

    def __init__(
        self,
        identity: str,
        database_url: str,
        *,
        logger: logging.Logger | ComponentLogger | None = None,
    ) -> None:
        super().__init__(identity, logger=logger)
        self._database_url = database_url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._pending: set[asyncio.Task[None]] = set()
        self.failed_writes = 0

    @property
    def database_url(self) -> str:
        return self._database_url

    async def setup(self) -> None:
        if self._engine is not None:
            return
        connect_args: dict[str, Any] = {}
        if self._database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self._engine = create_engine(self._database_url, connect_args=connect_args, echo=False)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"geosim-sql-{self.identity}")
        try:
            await self._run(Base.metadata.create_all, self._engine)
        except SQLAlchemyError as exc:
            raise ConnectorStorageError(f"Unable to create positions table: {exc}") from exc
        self._log.info("Storage ready")

    async def connect(self) -> bool:
        if self._engine is None:
            await self.setup()
        return True

    async def disconnect(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        executor, self._executor = self._executor, None
        engine, self._engine = self._engine, None
        self._session_factory = None
        if engine is not None:
            engine.dispose()
        if executor is not None:
            executor.shutdown(wait=True)
        self._log.info("Storage closed")

    def on_position(self, entity_id: str, update: PositionUpdate) -> None:
        if update.position is None:
            return
        task = asyncio.get_running_loop().create_task(
            self.write_position(entity_id, update.position, update.timestamp)
        )
        self._pending.add(task)
        task.add_done_callback(self._write_done)

    def _write_done(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.failed_writes += 1
            self._log.error("Position write failed: %s", exc)

    async def write_position(self, entity_id: str, position: Position, timestamp: float | None = None) -> None:
        """Insert one row; *timestamp* is epoch seconds (defaults to the position's own)."""
        ts = timestamp if timestamp is not None else position.timestamp
        record = PositionRecord(
            entity_id=entity_id,
            latitude=position.latitude,
            longitude=position.longitude,
            timestamp=int(round((ts or 0.0) * 1000)),
        )
        try:
            await self._run(self._insert, record)
        except SQLAlchemyError as exc:
            raise ConnectorStorageError(f"Unable to store position for {entity_id}: {exc}") from exc

    async def fetch_positions(self, entity_id: str | None = None) -> list[PositionRecord]:
        try:
            return await self._run(self._select, entity_id)
        except SQLAlchemyError as exc:
            raise ConnectorStorageError(f"Unable to read positions: {exc}") from exc

    async def _run(self, fn: Any, *args: Any) -> Any:
        if self._executor is None:
            raise ConnectorStorageError("Storage connector is not set up")
        return await asyncio.get_running_loop().run_in_executor(self._executor, fn, *args)

    def _insert(self, record: PositionRecord) -> None:
        assert self._session_factory is not None
        db = self._session_factory()
        try:
            db.add(record)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

    def _select(self, entity_id: str | None) -> list[PositionRecord]:
        assert self._session_factory is not None
        db = self._session_factory(expire_on_commit=False)
        try:
            query = select(PositionRecord).order_by(PositionRecord.id)
            if entity_id is not None:
                query = query.where(PositionRecord.entity_id == entity_id)
            rows = list(db.scalars(query))
            db.expunge_all()
            return rows
        finally:
            db.close()
