"""Submits InstitutionRegistry transactions."""

from __future__ import annotations

from eth_account import Account
from eth_account.messages import encode_defunct
from pydantic import SecretStr

from datatrust.chain.bindings import DeactivateInstitution, RegisterInstitution, UpdateInstitution
from datatrust.chain.encoding import normalize_address, same_address
from datatrust.chain.writer import EntityWriter, SubmittedTransaction
from datatrust.core.errors import InvalidArgumentError


def registration_message(
    name: str, institution_type: str, registration_number: str, wallet_address: str
) -> str:
    """Message an institution signs to authorise facilitated registration."""
    return f"Register Institution: {name}|{institution_type}|{registration_number}|{wallet_address}"


def verify_registration_signature(
    *,
    name: str,
    institution_type: str,
    registration_number: str,
    wallet_address: str,
    signature: str,
) -> str:
    """Recover the EIP-191 signer and require it to be ``wallet_address``."""
    wallet = normalize_address(wallet_address, field="wallet_address")
    message = registration_message(name, institution_type, registration_number, wallet)
    try:
        signer = Account.recover_message(encode_defunct(text=message), signature=signature)
    except (TypeError, ValueError) as exc:
        raise InvalidArgumentError(f"signature is malformed: {exc}") from exc
    if not same_address(signer, wallet):
        raise InvalidArgumentError("signature was not produced by wallet_address")
    return wallet


def _require_text(value: str, field: str) -> str:
    text = value.strip()
    if not text:
        raise InvalidArgumentError(f"{field} must not be empty")
    return text


class InstitutionWriter(EntityWriter):
    async def register(
        self,
        *,
        name: str,
        institution_type: str,
        registration_number: str,
        metadata_uri: str,
        private_key: SecretStr,
    ) -> SubmittedTransaction:
        write = RegisterInstitution(
            name=_require_text(name, "name"),
            institution_type=_require_text(institution_type, "institution_type"),
            registration_number=_require_text(registration_number, "registration_number"),
            metadata_uri=metadata_uri.strip(),
        )
        return await self.submit(write, private_key)

    async def update(
        self, *, name: str, metadata_uri: str, private_key: SecretStr
    ) -> SubmittedTransaction:
        write = UpdateInstitution(
            name=_require_text(name, "name"), metadata_uri=metadata_uri.strip()
        )
        return await self.submit(write, private_key)

    async def deactivate(
        self, *, wallet_address: str, private_key: SecretStr
    ) -> SubmittedTransaction:
        write = DeactivateInstitution(normalize_address(wallet_address, field="wallet_address"))
        return await self.submit(write, private_key)
