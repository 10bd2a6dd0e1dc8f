"""Schemas for access permissions and access requests."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field, SecretStr


def has_valid_access(is_active: bool, expires_at: int, now: int) -> bool:
    """A permission is usable while active and before its expiry; 0 never expires."""
    return is_active and (expires_at == 0 or now < expires_at)


class AccessPermission(BaseModel):
    """Current on-chain state of a (record, grantee) permission."""

    record_id: str
    grantee: str
    owner: str
    permission_type: str
    grant_reason: str = ""
    granted_at: int
    expires_at: int
    is_active: bool
    has_valid_access: bool


class GrantAccessRequest(BaseModel):
    record_id: str = Field(..., min_length=1, max_length=100)
    grantee_address: str
    expires_at: int = Field(default=0, ge=0, description="Unix seconds; 0 means no expiry")
    permission_type: str = Field(default="read", max_length=50)
    grant_reason: str = Field(default="", max_length=1000)
    private_key: SecretStr


class RevokeAccessRequest(BaseModel):
    record_id: str = Field(..., min_length=1, max_length=100)
    grantee_address: str
    private_key: SecretStr


class UpdatePermissionRequest(BaseModel):
    record_id: str = Field(..., min_length=1, max_length=100)
    grantee_address: str
    new_expires_at: int = Field(..., ge=0)
    private_key: SecretStr


class AccessCheckResponse(BaseModel):
    record_id: str
    grantee: str
    has_access: bool


# =============================================================================
# Access requests (off-chain negotiation before a grant)
# =============================================================================


class AccessRequestStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class AccessRequestModel(BaseModel):
    id: str
    record_id: str
    record_file_name: str = ""
    requester_wallet_address: str
    owner_wallet_address: str
    permission_type: str = "read"
    request_reason: str | None = None
    requested_at: datetime
    status: AccessRequestStatus = AccessRequestStatus.PENDING
    responded_at: datetime | None = None
    response_note: str | None = None


class SubmitAccessRequest(BaseModel):
    record_id: str = Field(..., min_length=1, max_length=100)
    permission_type: str = Field(default="read", max_length=50)
    request_reason: str | None = Field(default=None, max_length=1000)


class RespondAccessRequest(BaseModel):
    request_id: str
    action: Literal["approve", "deny"]
    response_note: str | None = Field(default=None, max_length=500)


class PendingRequestCheckResponse(BaseModel):
    record_id: str
    has_pending: bool
