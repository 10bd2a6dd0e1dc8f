"""Audit trail domain service."""

from __future__ import annotations

from typing import TYPE_CHECKING

from datatrust.chain.reader import Page
from datatrust.chain.writer import SubmittedTransaction
from datatrust.core.errors import NotFoundError
from datatrust.modules.audit.reader import AuditLogReader
from datatrust.modules.audit.schemas import (
    AuditAction,
    AuditLogEntry,
    AuditStatistics,
    CreateAuditLogRequest,
)
from datatrust.modules.audit.writer import AuditLogWriter

if TYPE_CHECKING:
    from datatrust.chain.runtime import LedgerRuntime


class AuditService:
    """Façade over audit log reads, statistics and log creation."""

    def __init__(self, reader: AuditLogReader, writer: AuditLogWriter) -> None:
        self._reader = reader
        self._writer = writer

    @classmethod
    def from_runtime(cls, ledger: LedgerRuntime) -> AuditService:
        settings = ledger.settings
        return cls(
            AuditLogReader(
                ledger.client,
                ledger.projector,
                cache=ledger.cache,
                concurrency=settings.chain_read_concurrency,
                list_timeout=settings.chain_list_timeout_seconds,
            ),
            AuditLogWriter(
                ledger.client,
                explorer_url=settings.explorer_tx_url,
                gas_multiplier=settings.chain_gas_limit_multiplier,
            ),
        )

    async def get_log(self, log_id: int) -> AuditLogEntry | None:
        try:
            return await self._reader.fetch(log_id)
        except NotFoundError:
            return None

    async def count(self) -> int:
        return await self._reader.total()

    async def list_logs(self, *, skip: int = 0, take: int = 50) -> Page[AuditLogEntry]:
        return await self._reader.list_all(skip=skip, take=take)

    async def list_by_actor(
        self, actor: str, *, skip: int = 0, take: int = 50
    ) -> Page[AuditLogEntry]:
        return await self._reader.list_by_actor(actor, skip=skip, take=take)

    async def list_by_record(
        self, record_id: str, *, skip: int = 0, take: int = 50
    ) -> Page[AuditLogEntry]:
        return await self._reader.list_by_record(record_id, skip=skip, take=take)

    async def list_by_action_type(
        self, action: AuditAction, *, skip: int = 0, take: int = 50
    ) -> Page[AuditLogEntry]:
        return await self._reader.list_by_action_type(action, skip=skip, take=take)

    async def recent(self, count: int = 50) -> list[AuditLogEntry]:
        return await self._reader.recent(count)

    async def statistics(
        self, *, start: int | None = None, end: int | None = None
    ) -> AuditStatistics:
        return await self._reader.statistics(start=start, end=end)

    async def create_log(
        self,
        request: CreateAuditLogRequest,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> SubmittedTransaction:
        """Record an action; request metadata falls back to the caller's connection."""
        return await self._writer.create_log(
            action_type=request.action_type,
            target_address=request.target_address,
            record_id=request.record_id,
            action_details=request.action_details,
            data_hash=request.data_hash,
            success=request.success,
            ip_address=request.ip_address or ip_address,
            user_agent=request.user_agent or user_agent,
            private_key=request.private_key,
        )
