"""Data record APIs."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from datatrust.chain.encoding import normalize_hash
from datatrust.chain.runtime import Ledger
from datatrust.core.errors import LedgerError, to_http_exception
from datatrust.core.schemas import CountResponse, PageResponse, TransactionResponse
from datatrust.modules.data.schemas import (
    DataRecord,
    DeactivateDataRequest,
    UpdateDataMetadataRequest,
    UploadDataRequest,
    VerifyDataRequest,
    VerifyDataResponse,
)
from datatrust.modules.data.service import DataService

router = APIRouter()


@router.post("/upload", response_model=TransactionResponse)
async def upload_data(body: UploadDataRequest, ledger: Ledger) -> TransactionResponse:
    service = DataService.from_runtime(ledger)
    try:
        tx = await service.upload(body)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return TransactionResponse.from_submitted(tx, f"Upload of {body.record_id} submitted")


@router.post("/verify", response_model=VerifyDataResponse)
async def verify_data(body: VerifyDataRequest, ledger: Ledger) -> VerifyDataResponse:
    service = DataService.from_runtime(ledger)
    try:
        valid = await service.verify_data(body.record_id, body.data_hash)
        return VerifyDataResponse(
            record_id=body.record_id, data_hash=normalize_hash(body.data_hash), is_valid=valid
        )
    except LedgerError as exc:
        raise to_http_exception(exc) from exc


@router.get("", response_model=PageResponse[DataRecord])
async def list_records(
    ledger: Ledger,
    active_only: bool = Query(default=False),
    category: str | None = Query(default=None),
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
) -> PageResponse[DataRecord]:
    service = DataService.from_runtime(ledger)
    try:
        page = await service.list_records(
            active_only=active_only, category=category, skip=skip, take=take
        )
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return PageResponse[DataRecord].from_page(page)


@router.get("/count", response_model=CountResponse)
async def count_records(ledger: Ledger) -> CountResponse:
    service = DataService.from_runtime(ledger)
    try:
        return CountResponse(total=await service.count())
    except LedgerError as exc:
        raise to_http_exception(exc) from exc


@router.get("/owner/{owner_address}", response_model=PageResponse[DataRecord])
async def list_records_by_owner(
    owner_address: str,
    ledger: Ledger,
    active_only: bool = Query(default=False),
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
) -> PageResponse[DataRecord]:
    service = DataService.from_runtime(ledger)
    try:
        page = await service.list_records_by_owner(
            owner_address, active_only=active_only, skip=skip, take=take
        )
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return PageResponse[DataRecord].from_page(page)


@router.get("/{record_id}", response_model=DataRecord)
async def get_data_record(record_id: str, ledger: Ledger) -> DataRecord:
    service = DataService.from_runtime(ledger)
    try:
        record = await service.get_data_record(record_id)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": f"Data record {record_id} not found", "error": "not_found"},
        )
    return record


@router.put("/{record_id}/metadata", response_model=TransactionResponse)
async def update_metadata(
    record_id: str, body: UpdateDataMetadataRequest, ledger: Ledger
) -> TransactionResponse:
    service = DataService.from_runtime(ledger)
    try:
        tx = await service.update_metadata(record_id, body)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return TransactionResponse.from_submitted(tx, f"Metadata update for {record_id} submitted")


@router.post("/{record_id}/deactivate", response_model=TransactionResponse)
async def deactivate_record(
    record_id: str, body: DeactivateDataRequest, ledger: Ledger
) -> TransactionResponse:
    service = DataService.from_runtime(ledger)
    try:
        tx = await service.deactivate(record_id, body)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return TransactionResponse.from_submitted(tx, f"Deactivation of {record_id} submitted")
