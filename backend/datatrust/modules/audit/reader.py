"""Reads audit log entries from the AuditTrail contract.

Entries are append-only, so the actor and action type carried by
``AuditLogCreated`` never go stale; queries on those page over the event ids
before fetching and re-check the fetched entry.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING

from datatrust.chain.bindings import (
    AuditLogCreated,
    GetAuditLog,
    GetTotalInstitutions,
    GetTotalLogs,
    GetTotalRecords,
)
from datatrust.chain.encoding import (
    decode_hash32,
    is_zero_address,
    narrow_int,
    normalize_address,
    same_address,
)
from datatrust.chain.reader import DEFAULT_PAGE_SIZE, EntityReader, Page, paginate
from datatrust.core.errors import InvalidArgumentError, NotFoundError
from datatrust.modules.audit.schemas import (
    AuditAction,
    AuditLogEntry,
    AuditStatistics,
    action_name,
)

if TYPE_CHECKING:
    from datatrust.chain.client import ChainClient
    from datatrust.chain.projector import EventProjector, ProjectionCache

MAX_RECENT = 200


class AuditLogReader(EntityReader[int, AuditLogEntry]):
    entity_name = "audit_log"

    def __init__(
        self,
        client: ChainClient,
        projector: EventProjector,
        *,
        cache: ProjectionCache | None = None,
        concurrency: int = 8,
        list_timeout: float | None = None,
    ) -> None:
        super().__init__(client, projector, concurrency=concurrency, list_timeout=list_timeout)
        self._cache = cache

    async def fetch(self, key: int) -> AuditLogEntry:
        if key < 0:
            raise InvalidArgumentError("log_id must not be negative")
        (
            action_type,
            actor,
            target_address,
            record_id,
            action_details,
            data_hash,
            success,
            timestamp,
            ip_address,
            user_agent,
        ) = await self._client.call(GetAuditLog(key))
        if is_zero_address(actor) or timestamp == 0:
            raise NotFoundError(f"Audit log {key} does not exist")
        return AuditLogEntry(
            log_id=narrow_int(key, field="log_id"),
            action_type=action_type,
            action_name=action_name(action_type),
            actor=actor,
            target_address=None if is_zero_address(target_address) else target_address,
            record_id=record_id or None,
            action_details=action_details,
            data_hash=decode_hash32(data_hash),
            success=success,
            timestamp=narrow_int(timestamp, field="timestamp"),
            ip_address=ip_address or None,
            user_agent=user_agent or None,
        )

    async def total(self) -> int:
        (count,) = await self._client.call(GetTotalLogs())
        return narrow_int(count, field="total_logs")

    async def list_all(
        self, *, skip: int = 0, take: int = DEFAULT_PAGE_SIZE, timeout: float | None = None
    ) -> Page[AuditLogEntry]:
        return await self._page_by_event(None, lambda entry: True, skip, take, timeout)

    async def list_by_actor(
        self,
        actor: str,
        *,
        skip: int = 0,
        take: int = DEFAULT_PAGE_SIZE,
        timeout: float | None = None,
    ) -> Page[AuditLogEntry]:
        address = normalize_address(actor, field="actor")
        return await self._page_by_event(
            lambda event: same_address(event.actor, address),
            lambda entry: same_address(entry.actor, address),
            skip,
            take,
            timeout,
        )

    async def list_by_action_type(
        self,
        action: AuditAction,
        *,
        skip: int = 0,
        take: int = DEFAULT_PAGE_SIZE,
        timeout: float | None = None,
    ) -> Page[AuditLogEntry]:
        code = int(action)
        return await self._page_by_event(
            lambda event: event.action_type == code,
            lambda entry: entry.action_type == code,
            skip,
            take,
            timeout,
        )

    async def list_by_record(
        self,
        record_id: str,
        *,
        skip: int = 0,
        take: int = DEFAULT_PAGE_SIZE,
        timeout: float | None = None,
    ) -> Page[AuditLogEntry]:
        """The record id is only in contract storage, so every entry is fetched."""
        wanted = record_id.strip().lower()
        if not wanted:
            raise InvalidArgumentError("record_id must not be empty")
        async with self.deadline(timeout):
            log_ids = await self._projector.discover(AuditLogCreated, lambda event: event.log_id)
            entries = await self.fetch_many(log_ids)
        matching = [entry for entry in entries if (entry.record_id or "").lower() == wanted]
        return paginate(matching, skip, take)

    async def recent(
        self, count: int = DEFAULT_PAGE_SIZE, *, timeout: float | None = None
    ) -> list[AuditLogEntry]:
        """The newest ``count`` entries, newest first."""
        size = min(max(count, 0), MAX_RECENT)
        async with self.deadline(timeout):
            total = await self.total()
            log_ids = list(range(total - 1, max(total - size, 0) - 1, -1))
            return await self.fetch_many(log_ids)

    async def statistics(
        self,
        *,
        start: int | None = None,
        end: int | None = None,
        timeout: float | None = None,
    ) -> AuditStatistics:
        """Aggregate counts; action counts come from the incremental event cache."""
        async with self.deadline(timeout):
            if self._cache is not None:
                events_task = self._cache.entries(AuditLogCreated)
            else:
                events_task = self._projector.project(AuditLogCreated)
            (
                entries,
                total_logs,
                (total_records,),
                (total_institutions,),
            ) = await asyncio.gather(
                events_task,
                self.total(),
                self._client.call(GetTotalRecords()),
                self._client.call(GetTotalInstitutions()),
            )

        counts = {action.name: 0 for action in AuditAction}
        for entry in entries:
            event = entry.event
            if start is not None and event.timestamp < start:
                continue
            if end is not None and event.timestamp > end:
                continue
            name = action_name(event.action_type)
            counts[name] = counts.get(name, 0) + 1

        return AuditStatistics(
            total_logs=total_logs,
            total_uploads=narrow_int(total_records, field="total_records"),
            total_institutions=narrow_int(total_institutions, field="total_institutions"),
            total_verifications=counts[AuditAction.VERIFICATION_REQUESTED.name]
            + counts[AuditAction.VERIFICATION_COMPLETED.name],
            total_access_grants=counts[AuditAction.ACCESS_GRANTED.name],
            total_access_revocations=counts[AuditAction.ACCESS_REVOKED.name],
            action_counts=counts,
            window_start=start,
            window_end=end,
            scanned_to_block=(
                self._cache.checkpoint(AuditLogCreated) if self._cache is not None else None
            ),
        )

    async def _page_by_event(
        self,
        discover: Callable[[AuditLogCreated], bool] | None,
        keep: Callable[[AuditLogEntry], bool],
        skip: int,
        take: int,
        timeout: float | None,
    ) -> Page[AuditLogEntry]:
        async with self.deadline(timeout):
            log_ids = await self._projector.discover(
                AuditLogCreated, lambda event: event.log_id, discover
            )
            window = paginate(log_ids, skip, take)
            entries = await self.fetch_many(window.items)
        return Page(
            items=[entry for entry in entries if keep(entry)],
            total=window.total,
            skip=window.skip,
            take=window.take,
        )
