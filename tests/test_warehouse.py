"""Tests for the SQLAlchemy-backed query service."""
from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from beacon.agents.data_sources import NCC_FINANCIAL
from beacon.config import WarehouseConfig
from beacon.services.warehouse import (
    STATEMENT_TIMEOUTS,
    SQLAlchemyQueryService,
    UnconfiguredQueryService,
    WarehouseNotConfiguredError,
    build_query_service,
)

SLOW_QUERY = (
    "WITH RECURSIVE counter(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM counter WHERE x < 2000000000) "
    "SELECT count(*) AS n FROM counter"
)


@pytest.mark.anyio
async def test_rows_come_back_as_dicts() -> None:
    service = SQLAlchemyQueryService("sqlite://")
    try:
        rows = await service.execute("SELECT 'EMEA' AS region, 1200 AS ncc")
    finally:
        await service.disconnect()

    assert rows == [{"region": "EMEA", "ncc": 1200}]


@pytest.mark.anyio
async def test_long_query_is_stopped_by_the_database() -> None:
    service = SQLAlchemyQueryService("sqlite://", query_timeout_seconds=0.2)
    try:
        with pytest.raises(OperationalError, match="interrupted"):
            await service.execute(SLOW_QUERY)

        # the connection is usable again once the query was stopped
        assert await service.execute("SELECT 1 AS one") == [{"one": 1}]
    finally:
        await service.disconnect()


def test_session_timeouts_are_in_dialect_units() -> None:
    assert STATEMENT_TIMEOUTS["postgresql"](2.5) == "SET statement_timeout = 2500"
    assert STATEMENT_TIMEOUTS["mysql"](30) == "SET SESSION max_execution_time = 30000"
    assert STATEMENT_TIMEOUTS["snowflake"](0.2) == "ALTER SESSION SET STATEMENT_TIMEOUT_IN_SECONDS = 1"


@pytest.mark.anyio
async def test_unconfigured_source_fails_every_query() -> None:
    service = build_query_service(NCC_FINANCIAL, None)

    assert isinstance(service, UnconfiguredQueryService)
    with pytest.raises(WarehouseNotConfiguredError):
        await service.execute("SELECT 1")


def test_shared_warehouse_url_is_used() -> None:
    service = build_query_service(NCC_FINANCIAL, WarehouseConfig(url="sqlite://", query_timeout_seconds=5))

    assert isinstance(service, SQLAlchemyQueryService)
