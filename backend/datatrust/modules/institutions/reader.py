"""Reads institution state from the InstitutionRegistry contract."""

from __future__ import annotations

from datatrust.chain.bindings import (
    GetInstitution,
    GetTotalInstitutions,
    InstitutionRegistered,
    VerifyInstitution,
)
from datatrust.chain.encoding import is_zero_address, narrow_int, normalize_address
from datatrust.chain.reader import DEFAULT_PAGE_SIZE, EntityReader, Page, paginate
from datatrust.core.errors import NotFoundError
from datatrust.modules.institutions.schemas import Institution


class InstitutionReader(EntityReader[str, Institution]):
    entity_name = "institution"

    async def fetch(self, key: str) -> Institution:
        wallet = normalize_address(key, field="wallet_address")
        (
            name,
            institution_type,
            registration_number,
            wallet_address,
            registered_at,
            is_active,
            metadata_uri,
        ) = await self._client.call(GetInstitution(wallet))
        if is_zero_address(wallet_address) or registered_at == 0:
            raise NotFoundError(f"Institution {wallet} is not registered")
        return Institution(
            wallet_address=wallet_address,
            name=name,
            institution_type=institution_type,
            registration_number=registration_number,
            metadata_uri=metadata_uri,
            registered_at=narrow_int(registered_at, field="registered_at"),
            is_active=is_active,
        )

    async def list_all(
        self,
        *,
        active_only: bool = False,
        skip: int = 0,
        take: int = DEFAULT_PAGE_SIZE,
        timeout: float | None = None,
    ) -> Page[Institution]:
        async with self.deadline(timeout):
            wallets = await self._projector.discover(
                InstitutionRegistered, lambda event: event.institution_address
            )
            institutions = await self.fetch_many(wallets)
        if active_only:
            institutions = [item for item in institutions if item.is_active]
        return paginate(institutions, skip, take)

    async def total(self) -> int:
        (count,) = await self._client.call(GetTotalInstitutions())
        return narrow_int(count, field="total_institutions")

    async def is_verified(self, wallet: str) -> bool:
        address = normalize_address(wallet, field="wallet_address")
        (verified,) = await self._client.call(VerifyInstitution(address))
        return bool(verified)
