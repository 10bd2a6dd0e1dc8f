"""Submits AccessControl transactions.

No current-state checks are made before submitting: granting with a past
expiry or revoking twice goes to the contract as asked, and any rejection
comes back as ``RevertedError``.
"""

from __future__ import annotations

from pydantic import SecretStr

from datatrust.chain.bindings import GrantAccess, RevokeAccess, UpdatePermission
from datatrust.chain.encoding import normalize_address, require_uint
from datatrust.chain.writer import EntityWriter, SubmittedTransaction
from datatrust.modules.data.reader import require_record_id


class AccessPermissionWriter(EntityWriter):
    async def grant(
        self,
        *,
        record_id: str,
        grantee: str,
        expires_at: int,
        permission_type: str,
        grant_reason: str,
        private_key: SecretStr,
    ) -> SubmittedTransaction:
        write = GrantAccess(
            record_id=require_record_id(record_id),
            grantee=normalize_address(grantee, field="grantee_address"),
            expires_at=require_uint(expires_at, field="expires_at"),
            permission_type=permission_type.strip() or "read",
            grant_reason=grant_reason.strip(),
        )
        return await self.submit(write, private_key)

    async def revoke(
        self, *, record_id: str, grantee: str, private_key: SecretStr
    ) -> SubmittedTransaction:
        write = RevokeAccess(
            record_id=require_record_id(record_id),
            grantee=normalize_address(grantee, field="grantee_address"),
        )
        return await self.submit(write, private_key)

    async def update_expiry(
        self, *, record_id: str, grantee: str, new_expires_at: int, private_key: SecretStr
    ) -> SubmittedTransaction:
        write = UpdatePermission(
            record_id=require_record_id(record_id),
            grantee=normalize_address(grantee, field="grantee_address"),
            new_expires_at=require_uint(new_expires_at, field="new_expires_at"),
        )
        return await self.submit(write, private_key)
