"""Reads data records from the DataVault contract."""

from __future__ import annotations

from datatrust.chain.bindings import (
    DataUploaded,
    GetDataRecord,
    GetRecordsByOwner,
    GetTotalRecords,
    VerifyData,
)
from datatrust.chain.encoding import (
    decode_hash32,
    encode_hash32,
    is_zero_address,
    narrow_int,
    normalize_address,
    same_address,
)
from datatrust.chain.reader import DEFAULT_PAGE_SIZE, EntityReader, Page, paginate
from datatrust.core.errors import InvalidArgumentError, NotFoundError
from datatrust.modules.data.schemas import DataRecord


def require_record_id(record_id: str) -> str:
    value = record_id.strip()
    if not value:
        raise InvalidArgumentError("record_id must not be empty")
    return value


class DataRecordReader(EntityReader[str, DataRecord]):
    entity_name = "data_record"

    async def get(self, record_id: str) -> DataRecord:
        """Read one record by a caller-supplied id."""
        return await self.fetch(require_record_id(record_id))

    async def fetch(self, key: str) -> DataRecord:
        record_id = key
        (
            data_hash,
            owner,
            file_name,
            file_type,
            file_size,
            storage_locator,
            encryption_algorithm,
            category,
            metadata_uri,
            uploaded_at,
            is_active,
        ) = await self._client.call(GetDataRecord(record_id))
        if is_zero_address(owner) or uploaded_at == 0:
            raise NotFoundError(f"Data record {record_id} does not exist")
        return DataRecord(
            record_id=record_id,
            data_hash=decode_hash32(data_hash),
            owner=owner,
            file_name=file_name,
            file_type=file_type,
            file_size=narrow_int(file_size, field="file_size"),
            storage_locator=storage_locator,
            encryption_algorithm=encryption_algorithm,
            category=category,
            metadata_uri=metadata_uri,
            uploaded_at=narrow_int(uploaded_at, field="uploaded_at"),
            is_active=is_active,
        )

    async def list_all(
        self,
        *,
        active_only: bool = False,
        category: str | None = None,
        skip: int = 0,
        take: int = DEFAULT_PAGE_SIZE,
        timeout: float | None = None,
    ) -> Page[DataRecord]:
        async with self.deadline(timeout):
            record_ids = await self._projector.discover(DataUploaded, lambda event: event.record_id)
            records = await self.fetch_many(record_ids)
        if active_only:
            records = [record for record in records if record.is_active]
        if category:
            wanted = category.lower()
            records = [record for record in records if record.category.lower() == wanted]
        return paginate(records, skip, take)

    async def list_by_owner(
        self,
        owner: str,
        *,
        active_only: bool = False,
        skip: int = 0,
        take: int = DEFAULT_PAGE_SIZE,
        timeout: float | None = None,
    ) -> Page[DataRecord]:
        owner_address = normalize_address(owner, field="owner")
        async with self.deadline(timeout):
            (record_ids,) = await self._client.call(GetRecordsByOwner(owner_address))
            records = await self.fetch_many(list(dict.fromkeys(record_ids)))
        records = [record for record in records if same_address(record.owner, owner_address)]
        if active_only:
            records = [record for record in records if record.is_active]
        return paginate(records, skip, take)

    async def total(self) -> int:
        (count,) = await self._client.call(GetTotalRecords())
        return narrow_int(count, field="total_records")

    async def verify(self, record_id: str, data_hash: str) -> bool:
        digest = encode_hash32(data_hash)
        (valid,) = await self._client.call(VerifyData(require_record_id(record_id), digest))
        return bool(valid)
