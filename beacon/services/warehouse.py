"""Tabular query services that data-source agents run their SQL against."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine

from beacon.config import WarehouseConfig
from beacon.core.models import DataSourceConfig

logger = logging.getLogger(__name__)

# dialect name -> session statement bounding how long a query may run
STATEMENT_TIMEOUTS: Dict[str, Callable[[float], str]] = {
    "postgresql": lambda seconds: f"SET statement_timeout = {int(seconds * 1000)}",
    "mysql": lambda seconds: f"SET SESSION max_execution_time = {int(seconds * 1000)}",
    "snowflake": lambda seconds: f"ALTER SESSION SET STATEMENT_TIMEOUT_IN_SECONDS = {max(1, int(seconds))}",
}

# extra wait after the server-side timeout before the caller gives up
CANCEL_GRACE_SECONDS = 5.0


class QueryService(Protocol):
    """Run SQL, get rows. The query text is opaque to callers."""

    async def connect(self) -> None: ...

    async def execute(self, query: str) -> List[Dict[str, Any]]: ...

    async def disconnect(self) -> None: ...


class WarehouseNotConfiguredError(RuntimeError):
    pass


class SQLAlchemyQueryService:
    """Query service over any SQLAlchemy-supported warehouse URL.

    Queries are bounded on the database side: a session statement timeout
    for dialects that support one, and a progress handler for SQLite. The
    awaiting coroutine waits a short grace period beyond that.
    """

    def __init__(
        self,
        url: str,
        *,
        query_timeout_seconds: float = 60,
        connect_args: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._url = url
        self._timeout = query_timeout_seconds
        self._connect_args = connect_args or {}
        self._engine: Optional[Engine] = None

    async def connect(self) -> None:
        if self._engine is not None:
            return
        engine = create_engine(
            self._url,
            connect_args=self._connect_args,
            pool_pre_ping=True,
        )
        self._install_statement_timeout(engine)
        self._engine = engine
        logger.info("Warehouse engine created for %s", engine.url.render_as_string())

    async def execute(self, query: str) -> List[Dict[str, Any]]:
        if self._engine is None:
            await self.connect()
        assert self._engine is not None
        rows = await asyncio.wait_for(
            asyncio.to_thread(self._run, self._engine, query),
            timeout=self._timeout + CANCEL_GRACE_SECONDS,
        )
        logger.info("Warehouse query returned %d rows", len(rows))
        return rows

    async def disconnect(self) -> None:
        engine, self._engine = self._engine, None
        if engine is not None:
            engine.dispose()
            logger.info("Warehouse engine disposed")

    def _install_statement_timeout(self, engine: Engine) -> None:
        dialect = engine.dialect.name
        build = STATEMENT_TIMEOUTS.get(dialect)
        if build is None:
            if dialect != "sqlite":
                logger.warning("No server-side statement timeout available for dialect %s", dialect)
            return
        statement = build(self._timeout)

        @event.listens_for(engine, "connect")
        def apply_timeout(dbapi_connection: Any, connection_record: Any) -> None:
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute(statement)
            finally:
                cursor.close()

    def _run(self, engine: Engine, query: str) -> List[Dict[str, Any]]:
        with engine.connect() as connection:
            dbapi_connection = connection.connection.dbapi_connection
            interruptible = engine.dialect.name == "sqlite"
            if interruptible:
                deadline = time.monotonic() + self._timeout
                dbapi_connection.set_progress_handler(lambda: time.monotonic() > deadline, 1000)
            try:
                result = connection.execute(text(query))
                columns = list(result.keys())
                return [dict(zip(columns, row)) for row in result.fetchall()]
            finally:
                if interruptible:
                    dbapi_connection.set_progress_handler(None, 0)


class UnconfiguredQueryService:
    """Placeholder bound when no warehouse URL is configured; every query fails."""

    def __init__(self, data_source_id: str) -> None:
        self._data_source_id = data_source_id

    async def connect(self) -> None:
        return None

    async def execute(self, query: str) -> List[Dict[str, Any]]:
        raise WarehouseNotConfiguredError(
            f"No warehouse configured for data source '{self._data_source_id}'"
        )

    async def disconnect(self) -> None:
        return None


def build_query_service(
    source: DataSourceConfig,
    warehouse: Optional[WarehouseConfig],
) -> QueryService:
    """Pick the query service for a data source.

    A ``url`` in the source's own connection parameters wins over the shared
    warehouse URL.
    """
    url = source.connection.get("url") or (warehouse.url if warehouse else None)
    if not url:
        return UnconfiguredQueryService(source.id)
    timeout = warehouse.query_timeout_seconds if warehouse else 60
    return SQLAlchemyQueryService(
        url,
        query_timeout_seconds=source.connection.get("query_timeout_seconds", timeout),
        connect_args=source.connection.get("connect_args"),
    )
