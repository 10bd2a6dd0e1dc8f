"""
In-memory access request workflow.

Requests are a negotiation aid ahead of a real grant transaction. They live
only in process memory behind one lock and are lost on restart.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from datatrust.chain.encoding import normalize_address, same_address
from datatrust.core.errors import InvalidArgumentError, NotFoundError
from datatrust.core.logging import get_logger
from datatrust.modules.access.schemas import (
    AccessRequestModel,
    AccessRequestStatus,
    RespondAccessRequest,
    SubmitAccessRequest,
)
from datatrust.modules.data.service import DataService

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AccessRequestStore:
    """Mutex-guarded list of access requests."""

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._requests: list[AccessRequestModel] = []
        self._lock = asyncio.Lock()
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    async def add(self, request: AccessRequestModel) -> AccessRequestModel:
        async with self._lock:
            self._requests.append(request)
        return request

    async def pending_for_owner(self, owner: str) -> list[AccessRequestModel]:
        async with self._lock:
            return [
                request.model_copy()
                for request in self._requests
                if request.status == AccessRequestStatus.PENDING
                and same_address(request.owner_wallet_address, owner)
            ]

    async def for_requester(self, requester: str) -> list[AccessRequestModel]:
        async with self._lock:
            mine = [
                request.model_copy()
                for request in self._requests
                if same_address(request.requester_wallet_address, requester)
            ]
        return sorted(mine, key=lambda request: request.requested_at, reverse=True)

    async def respond(
        self, request_id: str, responder: str, status: AccessRequestStatus, note: str | None
    ) -> AccessRequestModel | None:
        async with self._lock:
            request = next((item for item in self._requests if item.id == request_id), None)
            if request is None:
                logger.warning("access_request_not_found", request_id=request_id)
                return None
            if not same_address(request.owner_wallet_address, responder):
                logger.warning(
                    "access_request_unauthorized", request_id=request_id, responder=responder
                )
                return None
            request.status = status
            request.responded_at = self._clock()
            request.response_note = note
            return request.model_copy()

    async def has_pending(self, record_id: str, requester: str) -> bool:
        async with self._lock:
            return any(
                request.record_id == record_id
                and same_address(request.requester_wallet_address, requester)
                and request.status == AccessRequestStatus.PENDING
                for request in self._requests
            )


class AccessRequestService:
    """Submits and answers access requests, resolving owners from the chain."""

    def __init__(self, store: AccessRequestStore, records: DataService) -> None:
        self._store = store
        self._records = records

    async def submit(self, request: SubmitAccessRequest, requester: str) -> AccessRequestModel:
        requester_address = normalize_address(requester, field="requester_wallet_address")
        record = await self._records.get_data_record(request.record_id)
        if record is None:
            raise NotFoundError(f"Data record {request.record_id} not found")
        if same_address(record.owner, requester_address):
            raise InvalidArgumentError("owners cannot request access to their own records")

        created = await self._store.add(
            AccessRequestModel(
                id=str(uuid.uuid4()),
                record_id=record.record_id,
                record_file_name=record.file_name,
                requester_wallet_address=requester_address,
                owner_wallet_address=record.owner,
                permission_type=request.permission_type,
                request_reason=request.request_reason,
                requested_at=self._store.now(),
            )
        )
        logger.info(
            "access_request_submitted",
            request_id=created.id,
            record_id=created.record_id,
            requester=requester_address,
        )
        return created

    async def pending_for_owner(self, owner: str) -> list[AccessRequestModel]:
        return await self._store.pending_for_owner(normalize_address(owner, field="owner"))

    async def my_requests(self, requester: str) -> list[AccessRequestModel]:
        return await self._store.for_requester(
            normalize_address(requester, field="requester_wallet_address")
        )

    async def respond(
        self, response: RespondAccessRequest, responder: str
    ) -> AccessRequestModel | None:
        approved = response.action == "approve"
        status = AccessRequestStatus.APPROVED if approved else AccessRequestStatus.DENIED
        updated = await self._store.respond(
            response.request_id,
            normalize_address(responder, field="responder_wallet_address"),
            status,
            response.response_note,
        )
        if updated is not None:
            logger.info("access_request_answered", request_id=updated.id, status=updated.status)
        return updated

    async def has_pending(self, record_id: str, requester: str) -> bool:
        return await self._store.has_pending(
            record_id, normalize_address(requester, field="requester_wallet_address")
        )
