"""Access permission and access request APIs."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status

from datatrust.chain.runtime import Ledger
from datatrust.core.errors import LedgerError, to_http_exception
from datatrust.core.schemas import PageResponse, TransactionResponse
from datatrust.modules.access.requests import AccessRequestService, AccessRequestStore
from datatrust.modules.access.schemas import (
    AccessCheckResponse,
    AccessPermission,
    AccessRequestModel,
    GrantAccessRequest,
    PendingRequestCheckResponse,
    RespondAccessRequest,
    RevokeAccessRequest,
    SubmitAccessRequest,
    UpdatePermissionRequest,
)
from datatrust.modules.access.service import AccessService
from datatrust.modules.data.service import DataService

router = APIRouter()

WalletAddress = Annotated[str, Header(alias="X-Wallet-Address", min_length=1)]


def get_access_request_store(request: Request) -> AccessRequestStore:
    store: AccessRequestStore | None = getattr(request.app.state, "access_requests", None)
    if store is None:
        store = AccessRequestStore()
        request.app.state.access_requests = store
    return store


AccessRequests = Annotated[AccessRequestStore, Depends(get_access_request_store)]


def _not_found(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"message": message, "error": "not_found"},
    )


@router.post("/grant", response_model=TransactionResponse)
async def grant_access(body: GrantAccessRequest, ledger: Ledger) -> TransactionResponse:
    service = AccessService.from_runtime(ledger)
    try:
        tx = await service.grant(body)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return TransactionResponse.from_submitted(tx, f"Access grant on {body.record_id} submitted")


@router.post("/revoke", response_model=TransactionResponse)
async def revoke_access(body: RevokeAccessRequest, ledger: Ledger) -> TransactionResponse:
    service = AccessService.from_runtime(ledger)
    try:
        tx = await service.revoke(body)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    message = f"Access revocation on {body.record_id} submitted"
    return TransactionResponse.from_submitted(tx, message)


@router.put("/update", response_model=TransactionResponse)
async def update_permission(body: UpdatePermissionRequest, ledger: Ledger) -> TransactionResponse:
    service = AccessService.from_runtime(ledger)
    try:
        tx = await service.update_permission(body)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    message = f"Permission update on {body.record_id} submitted"
    return TransactionResponse.from_submitted(tx, message)


@router.get("/check", response_model=AccessCheckResponse)
async def check_access(
    ledger: Ledger,
    record_id: str = Query(..., min_length=1),
    grantee: str = Query(..., min_length=1),
) -> AccessCheckResponse:
    service = AccessService.from_runtime(ledger)
    try:
        allowed = await service.check_access(record_id, grantee)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return AccessCheckResponse(record_id=record_id, grantee=grantee, has_access=allowed)


@router.get("/permission", response_model=AccessPermission)
async def get_permission(
    ledger: Ledger,
    record_id: str = Query(..., min_length=1),
    grantee: str = Query(..., min_length=1),
) -> AccessPermission:
    service = AccessService.from_runtime(ledger)
    try:
        permission = await service.get_permission(record_id, grantee)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    if permission is None:
        raise _not_found(f"No permission for {grantee} on {record_id}")
    return permission


@router.get("/record/{record_id}", response_model=PageResponse[AccessPermission])
async def list_record_permissions(
    record_id: str,
    ledger: Ledger,
    active_only: bool = Query(default=True),
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
) -> PageResponse[AccessPermission]:
    service = AccessService.from_runtime(ledger)
    try:
        page = await service.list_record_permissions(
            record_id, active_only=active_only, skip=skip, take=take
        )
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return PageResponse[AccessPermission].from_page(page)


@router.get("/granted/{owner_address}", response_model=PageResponse[AccessPermission])
async def list_granted_permissions(
    owner_address: str,
    ledger: Ledger,
    active_only: bool = Query(default=True),
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
) -> PageResponse[AccessPermission]:
    service = AccessService.from_runtime(ledger)
    try:
        page = await service.list_granted_by(
            owner_address, active_only=active_only, skip=skip, take=take
        )
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return PageResponse[AccessPermission].from_page(page)


@router.get("/received/{grantee_address}", response_model=PageResponse[AccessPermission])
async def list_received_permissions(
    grantee_address: str,
    ledger: Ledger,
    active_only: bool = Query(default=True),
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
) -> PageResponse[AccessPermission]:
    service = AccessService.from_runtime(ledger)
    try:
        page = await service.list_received_by(
            grantee_address, active_only=active_only, skip=skip, take=take
        )
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return PageResponse[AccessPermission].from_page(page)


# =============================================================================
# Access requests
# =============================================================================


@router.post("/requests", response_model=AccessRequestModel, status_code=status.HTTP_201_CREATED)
async def submit_access_request(
    body: SubmitAccessRequest,
    wallet_address: WalletAddress,
    ledger: Ledger,
    store: AccessRequests,
) -> AccessRequestModel:
    service = AccessRequestService(store, DataService.from_runtime(ledger))
    try:
        return await service.submit(body, wallet_address)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc


@router.get("/requests/pending", response_model=list[AccessRequestModel])
async def list_pending_requests(
    wallet_address: WalletAddress, ledger: Ledger, store: AccessRequests
) -> list[AccessRequestModel]:
    service = AccessRequestService(store, DataService.from_runtime(ledger))
    try:
        return await service.pending_for_owner(wallet_address)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc


@router.get("/requests/mine", response_model=list[AccessRequestModel])
async def list_my_requests(
    wallet_address: WalletAddress, ledger: Ledger, store: AccessRequests
) -> list[AccessRequestModel]:
    service = AccessRequestService(store, DataService.from_runtime(ledger))
    try:
        return await service.my_requests(wallet_address)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc


@router.post("/requests/respond", response_model=AccessRequestModel)
async def respond_to_request(
    body: RespondAccessRequest,
    wallet_address: WalletAddress,
    ledger: Ledger,
    store: AccessRequests,
) -> AccessRequestModel:
    service = AccessRequestService(store, DataService.from_runtime(ledger))
    try:
        updated = await service.respond(body, wallet_address)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    if updated is None:
        raise _not_found(f"Request {body.request_id} not found or not owned by caller")
    return updated


@router.get("/requests/has-pending/{record_id}", response_model=PendingRequestCheckResponse)
async def has_pending_request(
    record_id: str, wallet_address: WalletAddress, ledger: Ledger, store: AccessRequests
) -> PendingRequestCheckResponse:
    service = AccessRequestService(store, DataService.from_runtime(ledger))
    try:
        pending = await service.has_pending(record_id, wallet_address)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return PendingRequestCheckResponse(record_id=record_id, has_pending=pending)
