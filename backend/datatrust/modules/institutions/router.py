"""Institution registry APIs."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from datatrust.chain.runtime import Ledger
from datatrust.core.errors import LedgerError, to_http_exception
from datatrust.core.schemas import CountResponse, PageResponse, TransactionResponse
from datatrust.modules.institutions.schemas import (
    DeactivateInstitutionRequest,
    Institution,
    InstitutionVerificationResponse,
    RegisterInstitutionRequest,
    UpdateInstitutionRequest,
)
from datatrust.modules.institutions.service import InstitutionService

router = APIRouter()


@router.post("/register", response_model=TransactionResponse)
async def register_institution(
    body: RegisterInstitutionRequest, ledger: Ledger
) -> TransactionResponse:
    service = InstitutionService.from_runtime(ledger)
    try:
        tx = await service.register(body)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return TransactionResponse.from_submitted(tx, "Institution registration submitted")


@router.put("/update", response_model=TransactionResponse)
async def update_institution(body: UpdateInstitutionRequest, ledger: Ledger) -> TransactionResponse:
    service = InstitutionService.from_runtime(ledger)
    try:
        tx = await service.update(body)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return TransactionResponse.from_submitted(tx, "Institution update submitted")


@router.get("", response_model=PageResponse[Institution])
async def list_institutions(
    ledger: Ledger,
    active_only: bool = Query(default=False),
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
) -> PageResponse[Institution]:
    service = InstitutionService.from_runtime(ledger)
    try:
        page = await service.list_institutions(active_only=active_only, skip=skip, take=take)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return PageResponse[Institution].from_page(page)


@router.get("/count", response_model=CountResponse)
async def count_institutions(ledger: Ledger) -> CountResponse:
    service = InstitutionService.from_runtime(ledger)
    try:
        return CountResponse(total=await service.count())
    except LedgerError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{wallet_address}", response_model=Institution)
async def get_institution(wallet_address: str, ledger: Ledger) -> Institution:
    service = InstitutionService.from_runtime(ledger)
    try:
        institution = await service.get_institution(wallet_address)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    if institution is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": f"Institution {wallet_address} not found", "error": "not_found"},
        )
    return institution


@router.get("/{wallet_address}/verified", response_model=InstitutionVerificationResponse)
async def verify_institution(
    wallet_address: str, ledger: Ledger
) -> InstitutionVerificationResponse:
    service = InstitutionService.from_runtime(ledger)
    try:
        verified = await service.is_verified(wallet_address)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return InstitutionVerificationResponse(wallet_address=wallet_address, is_verified=verified)


@router.post("/{wallet_address}/deactivate", response_model=TransactionResponse)
async def deactivate_institution(
    wallet_address: str, body: DeactivateInstitutionRequest, ledger: Ledger
) -> TransactionResponse:
    service = InstitutionService.from_runtime(ledger)
    try:
        tx = await service.deactivate(wallet_address, body)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return TransactionResponse.from_submitted(tx, "Institution deactivation submitted")
