"""Audit trail APIs."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request, status

from datatrust.chain.runtime import Ledger
from datatrust.core.errors import LedgerError, to_http_exception
from datatrust.core.middleware import client_metadata
from datatrust.core.schemas import CountResponse, PageResponse, TransactionResponse
from datatrust.modules.audit.schemas import (
    AuditAction,
    AuditLogEntry,
    AuditStatistics,
    CreateAuditLogRequest,
)
from datatrust.modules.audit.service import AuditService

router = APIRouter()


@router.post("/logs", response_model=TransactionResponse)
async def create_audit_log(
    body: CreateAuditLogRequest, request: Request, ledger: Ledger
) -> TransactionResponse:
    ip_address, user_agent = client_metadata(request)
    service = AuditService.from_runtime(ledger)
    try:
        tx = await service.create_log(body, ip_address=ip_address, user_agent=user_agent)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    message = f"Audit entry {body.action_type.name} submitted"
    return TransactionResponse.from_submitted(tx, message)


@router.get("/logs", response_model=PageResponse[AuditLogEntry])
async def list_audit_logs(
    ledger: Ledger,
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
) -> PageResponse[AuditLogEntry]:
    service = AuditService.from_runtime(ledger)
    try:
        page = await service.list_logs(skip=skip, take=take)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return PageResponse[AuditLogEntry].from_page(page)


@router.get("/logs/count", response_model=CountResponse)
async def count_audit_logs(ledger: Ledger) -> CountResponse:
    service = AuditService.from_runtime(ledger)
    try:
        return CountResponse(total=await service.count())
    except LedgerError as exc:
        raise to_http_exception(exc) from exc


@router.get("/logs/{log_id}", response_model=AuditLogEntry)
async def get_audit_log(log_id: int, ledger: Ledger) -> AuditLogEntry:
    service = AuditService.from_runtime(ledger)
    try:
        entry = await service.get_log(log_id)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": f"Audit log {log_id} not found", "error": "not_found"},
        )
    return entry


@router.get("/actor/{actor_address}", response_model=PageResponse[AuditLogEntry])
async def list_logs_by_actor(
    actor_address: str,
    ledger: Ledger,
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
) -> PageResponse[AuditLogEntry]:
    service = AuditService.from_runtime(ledger)
    try:
        page = await service.list_by_actor(actor_address, skip=skip, take=take)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return PageResponse[AuditLogEntry].from_page(page)


@router.get("/record/{record_id}", response_model=PageResponse[AuditLogEntry])
async def list_logs_by_record(
    record_id: str,
    ledger: Ledger,
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
) -> PageResponse[AuditLogEntry]:
    service = AuditService.from_runtime(ledger)
    try:
        page = await service.list_by_record(record_id, skip=skip, take=take)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return PageResponse[AuditLogEntry].from_page(page)


@router.get("/action/{action_type}", response_model=PageResponse[AuditLogEntry])
async def list_logs_by_action(
    action_type: AuditAction,
    ledger: Ledger,
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
) -> PageResponse[AuditLogEntry]:
    service = AuditService.from_runtime(ledger)
    try:
        page = await service.list_by_action_type(action_type, skip=skip, take=take)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return PageResponse[AuditLogEntry].from_page(page)


@router.get("/recent", response_model=list[AuditLogEntry])
async def recent_audit_logs(
    ledger: Ledger, count: int = Query(default=50, ge=1, le=200)
) -> list[AuditLogEntry]:
    service = AuditService.from_runtime(ledger)
    try:
        return await service.recent(count)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc


@router.get("/statistics", response_model=AuditStatistics)
async def audit_statistics(
    ledger: Ledger,
    start: int | None = Query(default=None, ge=0, description="Unix seconds, inclusive"),
    end: int | None = Query(default=None, ge=0, description="Unix seconds, inclusive"),
) -> AuditStatistics:
    service = AuditService.from_runtime(ledger)
    try:
        return await service.statistics(start=start, end=end)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
