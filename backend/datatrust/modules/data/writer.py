"""Submits DataVault transactions."""

from __future__ import annotations

from pydantic import SecretStr

from datatrust.chain.bindings import DeactivateData, UpdateDataMetadata, UploadData
from datatrust.chain.encoding import encode_hash32, require_uint
from datatrust.chain.writer import EntityWriter, SubmittedTransaction
from datatrust.core.errors import InvalidArgumentError
from datatrust.modules.data.reader import require_record_id


class DataRecordWriter(EntityWriter):
    async def upload(
        self,
        *,
        record_id: str,
        data_hash: str,
        file_name: str,
        file_type: str,
        file_size: int,
        storage_locator: str,
        encryption_algorithm: str,
        category: str,
        metadata_uri: str,
        private_key: SecretStr,
    ) -> SubmittedTransaction:
        digest = encode_hash32(data_hash)
        if not any(digest):
            raise InvalidArgumentError("data_hash is required for uploads")
        if not file_name.strip():
            raise InvalidArgumentError("file_name must not be empty")
        write = UploadData(
            record_id=require_record_id(record_id),
            data_hash=digest,
            file_name=file_name.strip(),
            file_type=file_type.strip(),
            file_size=require_uint(file_size, field="file_size"),
            storage_locator=storage_locator.strip(),
            encryption_algorithm=encryption_algorithm.strip(),
            category=category.strip(),
            metadata_uri=metadata_uri.strip(),
        )
        return await self.submit(write, private_key)

    async def update_metadata(
        self, *, record_id: str, metadata_uri: str, private_key: SecretStr
    ) -> SubmittedTransaction:
        write = UpdateDataMetadata(require_record_id(record_id), metadata_uri.strip())
        return await self.submit(write, private_key)

    async def deactivate(self, *, record_id: str, private_key: SecretStr) -> SubmittedTransaction:
        return await self.submit(DeactivateData(require_record_id(record_id)), private_key)
