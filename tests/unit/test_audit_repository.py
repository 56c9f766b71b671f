"""
Tests for the PostgreSQL audit log repository.
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from shared.audit import AuditLogEntry
from shared.audit_repository import AuditLogRepository
from shared.errors import ErpException


@pytest.fixture
def conn():
    return AsyncMock()


@pytest.fixture
def repository(conn):
    repo = AuditLogRepository("postgres://localhost:5432/erp")
    pool = MagicMock()
    pool.acquire.return_value.__aenter__ = AsyncMock(return_value=conn)
    pool.acquire.return_value.__aexit__ = AsyncMock(return_value=False)
    pool.close = AsyncMock()
    repo.pool = pool
    return repo


@pytest.mark.asyncio
async def test_start_creates_pool_and_tables(conn):
    repo = AuditLogRepository("postgres://localhost:5432/erp")
    pool = MagicMock()
    pool.acquire.return_value.__aenter__ = AsyncMock(return_value=conn)
    pool.acquire.return_value.__aexit__ = AsyncMock(return_value=False)

    with patch("shared.audit_repository.asyncpg.create_pool", AsyncMock(return_value=pool)) as create_pool:
        await repo.start()

    create_pool.assert_awaited_once()
    assert repo.pool is pool
    statements = " ".join(call.args[0] for call in conn.execute.await_args_list)
    assert "CREATE TABLE IF NOT EXISTS audit_logs" in statements


@pytest.mark.asyncio
async def test_start_failure_raises_erp_exception():
    repo = AuditLogRepository("postgres://nowhere:5432/erp")

    with patch("shared.audit_repository.asyncpg.create_pool", AsyncMock(side_effect=OSError("refused"))):
        with pytest.raises(ErpException) as exc_info:
            await repo.start()

    assert exc_info.value.code == "POSTGRES_START_FAILED"


@pytest.mark.asyncio
async def test_save_assigns_id(repository, conn):
    conn.fetchval.return_value = 17
    entry = AuditLogEntry("user-1", "CREATE", "INVOICE", "Invoice", "INV-1", {"amount": 10})

    saved = await repository.save(entry)

    assert saved.id == 17
    args = conn.fetchval.await_args.args
    assert "INSERT INTO audit_logs" in args[0]
    assert args[1:6] == ("user-1", "CREATE", "INVOICE", "Invoice", "INV-1")
    assert json.loads(args[6]) == {"amount": 10}


@pytest.mark.asyncio
async def test_find_by_user_id_maps_rows(repository, conn):
    timestamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
    conn.fetch.return_value = [{
        "id": 1,
        "user_id": "user-1",
        "action": "DELETE",
        "module": "JOBS",
        "resource_type": "Job",
        "resource_id": "7",
        "details": '{"reason": "duplicate"}',
        "timestamp": timestamp,
        "ip_address": "1.2.3.4",
        "user_agent": None,
        "description": None,
    }]

    entries = await repository.find_by_user_id("user-1", 50)

    assert len(entries) == 1
    assert entries[0].id == 1
    assert entries[0].details == {"reason": "duplicate"}
    assert entries[0].timestamp == timestamp
    query, *params = conn.fetch.await_args.args
    assert "WHERE user_id = $1" in query
    assert params == ["user-1", 50]


@pytest.mark.asyncio
async def test_find_by_resource_filters_both_columns(repository, conn):
    conn.fetch.return_value = []

    assert await repository.find_by_resource("Invoice", "INV-1", 5) == []

    query, *params = conn.fetch.await_args.args
    assert "resource_type = $1 AND resource_id = $2" in query
    assert params == ["Invoice", "INV-1", 5]


@pytest.mark.asyncio
async def test_stop_closes_pool(repository):
    pool = repository.pool

    await repository.stop()

    pool.close.assert_awaited_once()
    assert repository.pool is None
