"""Submits AuditTrail transactions."""

from __future__ import annotations

from pydantic import SecretStr

from datatrust.chain.bindings import CreateLog
from datatrust.chain.encoding import encode_hash32, optional_address
from datatrust.chain.writer import EntityWriter, SubmittedTransaction
from datatrust.core.errors import InvalidArgumentError
from datatrust.modules.audit.schemas import AuditAction


class AuditLogWriter(EntityWriter):
    async def create_log(
        self,
        *,
        action_type: AuditAction | int,
        target_address: str | None,
        record_id: str | None,
        action_details: str,
        data_hash: str | None,
        success: bool,
        ip_address: str | None,
        user_agent: str | None,
        private_key: SecretStr,
    ) -> SubmittedTransaction:
        try:
            action = AuditAction(action_type)
        except ValueError:
            raise InvalidArgumentError(f"unknown audit action type {action_type}") from None
        write = CreateLog(
            action_type=int(action),
            target_address=optional_address(target_address, field="target_address"),
            record_id=(record_id or "").strip(),
            action_details=action_details,
            data_hash=encode_hash32(data_hash),
            success=success,
            ip_address=ip_address or "",
            user_agent=user_agent or "",
        )
        return await self.submit(write, private_key)
