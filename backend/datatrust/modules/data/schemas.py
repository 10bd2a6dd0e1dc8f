"""Schemas for data record views and requests."""

from __future__ import annotations

from pydantic import BaseModel, Field, SecretStr


class DataRecord(BaseModel):
    """Current on-chain state of an uploaded record.

    ``data_hash`` is lowercase hex without prefix (empty for the zero hash);
    ``storage_locator`` points at the encrypted blob held off-chain.
    """

    record_id: str
    data_hash: str
    owner: str
    file_name: str
    file_type: str
    file_size: int
    storage_locator: str
    encryption_algorithm: str
    category: str
    metadata_uri: str = ""
    uploaded_at: int
    is_active: bool


class UploadDataRequest(BaseModel):
    record_id: str = Field(..., min_length=1, max_length=100)
    data_hash: str = Field(..., description="SHA-256 of the encrypted payload, 64 hex characters")
    file_name: str = Field(..., min_length=1, max_length=255)
    file_type: str = Field(default="application/octet-stream", max_length=100)
    file_size: int = Field(..., ge=0)
    storage_locator: str = Field(..., min_length=1, max_length=500)
    encryption_algorithm: str = Field(default="AES-256-GCM", max_length=50)
    category: str = Field(default="", max_length=100)
    metadata_uri: str = Field(default="", max_length=500)
    private_key: SecretStr


class UpdateDataMetadataRequest(BaseModel):
    metadata_uri: str = Field(..., max_length=500)
    private_key: SecretStr


class DeactivateDataRequest(BaseModel):
    private_key: SecretStr


class VerifyDataRequest(BaseModel):
    record_id: str = Field(..., min_length=1, max_length=100)
    data_hash: str


class VerifyDataResponse(BaseModel):
    record_id: str
    data_hash: str
    is_valid: bool
