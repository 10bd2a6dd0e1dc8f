"""Institution domain service."""

from __future__ import annotations

from typing import TYPE_CHECKING

from datatrust.chain.reader import Page
from datatrust.chain.writer import SubmittedTransaction
from datatrust.core.config import Settings
from datatrust.core.errors import NotFoundError
from datatrust.core.logging import get_logger
from datatrust.modules.institutions.reader import InstitutionReader
from datatrust.modules.institutions.schemas import (
    DeactivateInstitutionRequest,
    Institution,
    RegisterInstitutionRequest,
    UpdateInstitutionRequest,
)
from datatrust.modules.institutions.writer import InstitutionWriter, verify_registration_signature

if TYPE_CHECKING:
    from datatrust.chain.runtime import LedgerRuntime

logger = get_logger(__name__)


class InstitutionService:
    """Façade over institution reads and registry transactions."""

    def __init__(
        self, reader: InstitutionReader, writer: InstitutionWriter, *, settings: Settings
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._settings = settings

    @classmethod
    def from_runtime(cls, ledger: LedgerRuntime) -> InstitutionService:
        settings = ledger.settings
        return cls(
            InstitutionReader(
                ledger.client,
                ledger.projector,
                concurrency=settings.chain_read_concurrency,
                list_timeout=settings.chain_list_timeout_seconds,
            ),
            InstitutionWriter(
                ledger.client,
                explorer_url=settings.explorer_tx_url,
                gas_multiplier=settings.chain_gas_limit_multiplier,
            ),
            settings=settings,
        )

    async def get_institution(self, wallet_address: str) -> Institution | None:
        try:
            return await self._reader.fetch(wallet_address)
        except NotFoundError:
            return None

    async def list_institutions(
        self, *, active_only: bool = False, skip: int = 0, take: int = 50
    ) -> Page[Institution]:
        return await self._reader.list_all(active_only=active_only, skip=skip, take=take)

    async def count(self) -> int:
        return await self._reader.total()

    async def is_verified(self, wallet_address: str) -> bool:
        return await self._reader.is_verified(wallet_address)

    async def register(self, request: RegisterInstitutionRequest) -> SubmittedTransaction:
        if request.private_key is not None:
            private_key = request.private_key
        else:
            wallet = verify_registration_signature(
                name=request.name,
                institution_type=request.institution_type,
                registration_number=request.registration_number,
                wallet_address=request.wallet_address or "",
                signature=request.signature or "",
            )
            private_key = self._settings.require_server_key()
            logger.info("institution_registration_facilitated", wallet_address=wallet)

        return await self._writer.register(
            name=request.name,
            institution_type=request.institution_type,
            registration_number=request.registration_number,
            metadata_uri=request.metadata_uri,
            private_key=private_key,
        )

    async def update(self, request: UpdateInstitutionRequest) -> SubmittedTransaction:
        return await self._writer.update(
            name=request.name,
            metadata_uri=request.metadata_uri,
            private_key=request.private_key,
        )

    async def deactivate(
        self, wallet_address: str, request: DeactivateInstitutionRequest
    ) -> SubmittedTransaction:
        return await self._writer.deactivate(
            wallet_address=wallet_address, private_key=request.private_key
        )
