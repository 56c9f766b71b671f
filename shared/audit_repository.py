"""
PostgreSQL persistence for audit log records.
"""

import json
from datetime import datetime
from typing import Any, List, Optional

import asyncpg

from shared.audit import AuditLogEntry
from shared.errors import ErpException
from shared.logging import get_logger

_COLUMNS = (
    "id, user_id, action, module, resource_type, resource_id, details, "
    "timestamp, ip_address, user_agent, description"
)


class AuditLogRepository:
    """asyncpg-backed store for ``AuditLogEntry`` rows."""

    def __init__(self, dsn: str):
        self.dsn = dsn
        self.logger = get_logger("audit.repository")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Open the connection pool and make sure the table exists."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=1,
                max_size=5,
                command_timeout=30
            )
            await self._create_tables()
            self.logger.info("Audit log persistence started")

        except Exception as e:
            self.logger.error("Failed to start audit log persistence", error=str(e))
            raise ErpException("POSTGRES_START_FAILED", str(e))

    async def stop(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("Audit log persistence stopped")

    async def _create_tables(self):
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS audit_logs (
                    id BIGSERIAL PRIMARY KEY,
                    user_id VARCHAR(255) NOT NULL,
                    action VARCHAR(50) NOT NULL,
                    module VARCHAR(50) NOT NULL,
                    resource_type VARCHAR(100) NOT NULL,
                    resource_id VARCHAR(255),
                    details JSONB NOT NULL DEFAULT '{}',
                    timestamp TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    ip_address VARCHAR(64),
                    user_agent TEXT,
                    description TEXT
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_audit_logs_user ON audit_logs(user_id, timestamp DESC);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_audit_logs_module ON audit_logs(module, timestamp DESC);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_audit_logs_resource ON audit_logs(resource_type, resource_id);
            """)

    async def save(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Insert an entry and return it with its database id."""
        async with self.pool.acquire() as conn:
            entry.id = await conn.fetchval("""
                INSERT INTO audit_logs (
                    user_id, action, module, resource_type, resource_id, details,
                    timestamp, ip_address, user_agent, description
                ) VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7, $8, $9, $10)
                RETURNING id
            """,
                entry.user_id, entry.action, entry.module, entry.resource_type,
                entry.resource_id, json.dumps(entry.details, default=str), entry.timestamp,
                entry.ip_address, entry.user_agent, entry.description
            )
        return entry

    async def find_by_user_id(self, user_id: str, limit: int) -> List[AuditLogEntry]:
        return await self._fetch(
            "WHERE user_id = $1 ORDER BY timestamp DESC LIMIT $2", user_id, limit
        )

    async def find_by_module(self, module: str, limit: int) -> List[AuditLogEntry]:
        return await self._fetch(
            "WHERE module = $1 ORDER BY timestamp DESC LIMIT $2", module, limit
        )

    async def find_by_resource(self, resource_type: str, resource_id: str, limit: int) -> List[AuditLogEntry]:
        return await self._fetch(
            "WHERE resource_type = $1 AND resource_id = $2 ORDER BY timestamp DESC LIMIT $3",
            resource_type, resource_id, limit
        )

    async def find_by_date_range(self, start: datetime, end: datetime, limit: int) -> List[AuditLogEntry]:
        return await self._fetch(
            "WHERE timestamp BETWEEN $1 AND $2 ORDER BY timestamp DESC LIMIT $3",
            start, end, limit
        )

    async def _fetch(self, clause: str, *args: Any) -> List[AuditLogEntry]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT {_COLUMNS} FROM audit_logs {clause}", *args)
        return [self._row_to_entry(row) for row in rows]

    def _row_to_entry(self, row) -> AuditLogEntry:
        details = row["details"]
        if isinstance(details, str):
            details = json.loads(details)
        return AuditLogEntry(
            id=row["id"],
            user_id=row["user_id"],
            action=row["action"],
            module=row["module"],
            resource_type=row["resource_type"],
            resource_id=row["resource_id"],
            details=details or {},
            timestamp=row["timestamp"],
            ip_address=row["ip_address"],
            user_agent=row["user_agent"],
            description=row["description"],
        )
