"""Data record domain service."""

from __future__ import annotations

from typing import TYPE_CHECKING

from datatrust.chain.reader import Page
from datatrust.chain.writer import SubmittedTransaction
from datatrust.core.errors import NotFoundError
from datatrust.modules.data.reader import DataRecordReader
from datatrust.modules.data.schemas import (
    DataRecord,
    DeactivateDataRequest,
    UpdateDataMetadataRequest,
    UploadDataRequest,
)
from datatrust.modules.data.writer import DataRecordWriter

if TYPE_CHECKING:
    from datatrust.chain.runtime import LedgerRuntime


class DataService:
    """Façade over data record reads and DataVault transactions."""

    def __init__(self, reader: DataRecordReader, writer: DataRecordWriter) -> None:
        self._reader = reader
        self._writer = writer

    @classmethod
    def from_runtime(cls, ledger: LedgerRuntime) -> DataService:
        settings = ledger.settings
        return cls(
            DataRecordReader(
                ledger.client,
                ledger.projector,
                concurrency=settings.chain_read_concurrency,
                list_timeout=settings.chain_list_timeout_seconds,
            ),
            DataRecordWriter(
                ledger.client,
                explorer_url=settings.explorer_tx_url,
                gas_multiplier=settings.chain_gas_limit_multiplier,
            ),
        )

    async def get_data_record(self, record_id: str) -> DataRecord | None:
        try:
            return await self._reader.get(record_id)
        except NotFoundError:
            return None

    async def list_records(
        self,
        *,
        active_only: bool = False,
        category: str | None = None,
        skip: int = 0,
        take: int = 50,
    ) -> Page[DataRecord]:
        return await self._reader.list_all(
            active_only=active_only, category=category, skip=skip, take=take
        )

    async def list_records_by_owner(
        self, owner: str, *, active_only: bool = False, skip: int = 0, take: int = 50
    ) -> Page[DataRecord]:
        return await self._reader.list_by_owner(
            owner, active_only=active_only, skip=skip, take=take
        )

    async def count(self) -> int:
        return await self._reader.total()

    async def verify_data(self, record_id: str, data_hash: str) -> bool:
        return await self._reader.verify(record_id, data_hash)

    async def upload(self, request: UploadDataRequest) -> SubmittedTransaction:
        return await self._writer.upload(
            record_id=request.record_id,
            data_hash=request.data_hash,
            file_name=request.file_name,
            file_type=request.file_type,
            file_size=request.file_size,
            storage_locator=request.storage_locator,
            encryption_algorithm=request.encryption_algorithm,
            category=request.category,
            metadata_uri=request.metadata_uri,
            private_key=request.private_key,
        )

    async def update_metadata(
        self, record_id: str, request: UpdateDataMetadataRequest
    ) -> SubmittedTransaction:
        return await self._writer.update_metadata(
            record_id=record_id,
            metadata_uri=request.metadata_uri,
            private_key=request.private_key,
        )

    async def deactivate(
        self, record_id: str, request: DeactivateDataRequest
    ) -> SubmittedTransaction:
        return await self._writer.deactivate(record_id=record_id, private_key=request.private_key)
