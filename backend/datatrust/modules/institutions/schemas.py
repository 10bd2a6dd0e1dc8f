"""Schemas for institution registry views and requests."""

from __future__ import annotations

from pydantic import BaseModel, Field, SecretStr, model_validator


class Institution(BaseModel):
    """Current on-chain state of a registered institution."""

    wallet_address: str
    name: str
    institution_type: str
    registration_number: str
    metadata_uri: str = ""
    registered_at: int
    is_active: bool


class RegisterInstitutionRequest(BaseModel):
    """Register an institution.

    Self-service registration signs with ``private_key``. Without a key the
    server key facilitates the registration, which requires ``wallet_address``
    and a ``personal_sign`` ``signature`` over the registration message.
    """

    name: str = Field(..., min_length=1, max_length=200)
    institution_type: str = Field(..., min_length=1, max_length=100)
    registration_number: str = Field(..., min_length=1, max_length=100)
    metadata_uri: str = Field(default="", max_length=500)
    wallet_address: str | None = None
    signature: str | None = None
    private_key: SecretStr | None = None

    @model_validator(mode="after")
    def _require_signing_path(self) -> RegisterInstitutionRequest:
        if self.private_key is None and not (self.wallet_address and self.signature):
            raise ValueError("provide private_key, or wallet_address with signature")
        return self


class UpdateInstitutionRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    metadata_uri: str = Field(default="", max_length=500)
    private_key: SecretStr


class DeactivateInstitutionRequest(BaseModel):
    private_key: SecretStr


class InstitutionVerificationResponse(BaseModel):
    wallet_address: str
    is_verified: bool
