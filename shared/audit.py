"""
Audit logging shared by the ERP services.

Writes are fire-and-forget: ``log_user_action`` and ``log_system_event``
schedule the insert on the running event loop and return at once. A failed
insert is logged and dropped; it never fails the request that triggered it.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Set

from starlette.requests import Request

from shared.logging import get_logger
from shared.security import (
    SYSTEM_USER,
    get_client_ip,
    get_current_user_id_or_system,
    get_user_agent,
)

SYSTEM_EVENT_RESOURCE = "SYSTEM_EVENT"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    ASSIGN = "ASSIGN"
    EXPORT = "EXPORT"
    IMPORT = "IMPORT"


class AuditModule(str, Enum):
    HRMS = "HRMS"
    INVOICE = "INVOICE"
    QUIZ = "QUIZ"
    JOBS = "JOBS"
    CRUD = "CRUD"
    AUTH = "AUTH"
    SYSTEM = "SYSTEM"


@dataclass
class AuditLogEntry:
    """One audit record."""

    user_id: str
    action: str
    module: str
    resource_type: str
    resource_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    description: Optional[str] = None
    id: Optional[int] = None


class AuditLogService:
    """Records user actions and system events through an audit repository."""

    def __init__(self, repository):
        self.repository = repository
        self.logger = get_logger("audit.service")
        self._pending: Set[asyncio.Task] = set()

    def log_user_action(
        self,
        user_id: str,
        action: str,
        module: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> asyncio.Task:
        """Schedule an audit record for a user action."""
        entry = AuditLogEntry(
            user_id=user_id,
            action=_value(action),
            module=_value(module),
            resource_type=resource_type,
            resource_id=resource_id,
            details=details or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return self._schedule(self._save_user_action(entry))

    def log_request_action(
        self,
        request: Request,
        action: str,
        module: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> asyncio.Task:
        """Schedule an audit record using the caller identity of ``request``."""
        return self.log_user_action(
            get_current_user_id_or_system(request),
            action,
            module,
            resource_type,
            resource_id,
            details,
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
        )

    def log_system_event(
        self,
        event: str,
        module: str,
        description: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> asyncio.Task:
        """Schedule an audit record for a system event."""
        entry = AuditLogEntry(
            user_id=SYSTEM_USER,
            action=_value(event),
            module=_value(module),
            resource_type=SYSTEM_EVENT_RESOURCE,
            details=details or {},
            description=description,
        )
        return self._schedule(self._save_system_event(entry))

    async def drain(self) -> None:
        """Wait for every scheduled write to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def get_user_audit_logs(self, user_id: str, limit: int = 50) -> List[AuditLogEntry]:
        return await self.repository.find_by_user_id(user_id, limit)

    async def get_module_audit_logs(self, module: str, limit: int = 50) -> List[AuditLogEntry]:
        return await self.repository.find_by_module(_value(module), limit)

    async def get_resource_audit_logs(self, resource_type: str, resource_id: str, limit: int = 50) -> List[AuditLogEntry]:
        return await self.repository.find_by_resource(resource_type, resource_id, limit)

    async def get_audit_logs_by_date_range(
        self, start: datetime, end: datetime, limit: int = 50
    ) -> List[AuditLogEntry]:
        return await self.repository.find_by_date_range(start, end, limit)

    def _schedule(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _save_user_action(self, entry: AuditLogEntry) -> None:
        try:
            await self.repository.save(entry)
        except Exception as e:
            self.logger.error("Failed to create audit log", error=str(e), action=entry.action, module=entry.module)
            return

        self.logger.info(
            "Audit log created",
            user_id=entry.user_id,
            action=entry.action,
            resource_type=entry.resource_type,
            resource_id=entry.resource_id,
            module=entry.module,
        )

    async def _save_system_event(self, entry: AuditLogEntry) -> None:
        try:
            await self.repository.save(entry)
        except Exception as e:
            self.logger.error("Failed to log system event", error=str(e), audit_event=entry.action, module=entry.module)
            return

        self.logger.info(
            "System event logged",
            audit_event=entry.action,
            module=entry.module,
            description=entry.description,
        )


def _value(item: Any) -> str:
    return item.value if isinstance(item, Enum) else str(item)
