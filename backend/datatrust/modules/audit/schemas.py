"""Schemas for audit trail views, requests and statistics."""

from __future__ import annotations

from enum import IntEnum

from pydantic import BaseModel, Field, SecretStr


class AuditAction(IntEnum):
    """Action codes stored by the audit contract."""

    INSTITUTION_REGISTERED = 0
    DATA_UPLOADED = 1
    ACCESS_GRANTED = 2
    ACCESS_REVOKED = 3
    VERIFICATION_REQUESTED = 4
    VERIFICATION_COMPLETED = 5
    DATA_ACCESSED = 6
    DATA_DOWNLOADED = 7
    PERMISSION_UPDATED = 8
    RECORD_DEACTIVATED = 9
    RECORD_REACTIVATED = 10


def action_name(code: int) -> str:
    try:
        return AuditAction(code).name
    except ValueError:
        return "UNKNOWN"


class AuditLogEntry(BaseModel):
    log_id: int
    action_type: int
    action_name: str
    actor: str
    target_address: str | None = None
    record_id: str | None = None
    action_details: str = ""
    data_hash: str = ""
    success: bool
    timestamp: int
    ip_address: str | None = None
    user_agent: str | None = None


class CreateAuditLogRequest(BaseModel):
    action_type: AuditAction
    target_address: str | None = None
    record_id: str | None = Field(default=None, max_length=100)
    action_details: str = Field(default="", max_length=2000)
    data_hash: str | None = None
    success: bool = True
    ip_address: str | None = Field(default=None, max_length=64)
    user_agent: str | None = Field(default=None, max_length=500)
    private_key: SecretStr


class AuditStatistics(BaseModel):
    total_logs: int
    total_uploads: int
    total_institutions: int
    total_verifications: int
    total_access_grants: int
    total_access_revocations: int
    action_counts: dict[str, int] = Field(default_factory=dict)
    window_start: int | None = None
    window_end: int | None = None
    scanned_to_block: int | None = None
