"""Access permission domain service."""

from __future__ import annotations

from typing import TYPE_CHECKING

from datatrust.chain.reader import Page
from datatrust.chain.writer import SubmittedTransaction
from datatrust.core.errors import NotFoundError
from datatrust.modules.access.reader import AccessPermissionReader
from datatrust.modules.access.schemas import (
    AccessPermission,
    GrantAccessRequest,
    RevokeAccessRequest,
    UpdatePermissionRequest,
)
from datatrust.modules.access.writer import AccessPermissionWriter

if TYPE_CHECKING:
    from datatrust.chain.runtime import LedgerRuntime


class AccessService:
    """Façade over permission reads and AccessControl transactions."""

    def __init__(self, reader: AccessPermissionReader, writer: AccessPermissionWriter) -> None:
        self._reader = reader
        self._writer = writer

    @classmethod
    def from_runtime(cls, ledger: LedgerRuntime) -> AccessService:
        settings = ledger.settings
        return cls(
            AccessPermissionReader(
                ledger.client,
                ledger.projector,
                concurrency=settings.chain_read_concurrency,
                list_timeout=settings.chain_list_timeout_seconds,
            ),
            AccessPermissionWriter(
                ledger.client,
                explorer_url=settings.explorer_tx_url,
                gas_multiplier=settings.chain_gas_limit_multiplier,
            ),
        )

    async def get_permission(self, record_id: str, grantee: str) -> AccessPermission | None:
        try:
            return await self._reader.get(record_id, grantee)
        except NotFoundError:
            return None

    async def check_access(self, record_id: str, grantee: str) -> bool:
        return await self._reader.check_access(record_id, grantee)

    async def list_record_permissions(
        self, record_id: str, *, active_only: bool = True, skip: int = 0, take: int = 50
    ) -> Page[AccessPermission]:
        return await self._reader.list_for_record(
            record_id, active_only=active_only, skip=skip, take=take
        )

    async def list_granted_by(
        self, owner: str, *, active_only: bool = True, skip: int = 0, take: int = 50
    ) -> Page[AccessPermission]:
        return await self._reader.list_granted_by(
            owner, active_only=active_only, skip=skip, take=take
        )

    async def list_received_by(
        self, grantee: str, *, active_only: bool = True, skip: int = 0, take: int = 50
    ) -> Page[AccessPermission]:
        return await self._reader.list_received_by(
            grantee, active_only=active_only, skip=skip, take=take
        )

    async def grant(self, request: GrantAccessRequest) -> SubmittedTransaction:
        return await self._writer.grant(
            record_id=request.record_id,
            grantee=request.grantee_address,
            expires_at=request.expires_at,
            permission_type=request.permission_type,
            grant_reason=request.grant_reason,
            private_key=request.private_key,
        )

    async def revoke(self, request: RevokeAccessRequest) -> SubmittedTransaction:
        return await self._writer.revoke(
            record_id=request.record_id,
            grantee=request.grantee_address,
            private_key=request.private_key,
        )

    async def update_permission(self, request: UpdatePermissionRequest) -> SubmittedTransaction:
        return await self._writer.update_expiry(
            record_id=request.record_id,
            grantee=request.grantee_address,
            new_expires_at=request.new_expires_at,
            private_key=request.private_key,
        )
