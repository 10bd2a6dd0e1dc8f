"""Tests for audit log creation, queries and statistics."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any

import pytest
from pydantic import SecretStr

from datatrust.chain.projector import EventProjector
from datatrust.chain.runtime import LedgerRuntime
from datatrust.core.errors import InvalidArgumentError, OperationCancelledError
from datatrust.modules.audit.reader import AuditLogReader
from datatrust.modules.audit.schemas import AuditAction, CreateAuditLogRequest, action_name
from datatrust.modules.audit.service import AuditService

DIGEST = "2c26b46b68ffc68ff99b453c1d30413413422d706483bfa0f98a5e886266e7ae"


def _log(
    key: SecretStr,
    action: AuditAction,
    *,
    record_id: str | None = None,
    target: str | None = None,
    data_hash: str | None = None,
) -> CreateAuditLogRequest:
    return CreateAuditLogRequest(
        action_type=action,
        record_id=record_id,
        target_address=target,
        action_details=f"{action.name.lower()} via api",
        data_hash=data_hash,
        private_key=key,
    )


class TestActionNames:
    def test_known_and_unknown_codes(self) -> None:
        assert action_name(2) == "ACCESS_GRANTED"
        assert action_name(10) == "RECORD_REACTIVATED"
        assert action_name(42) == "UNKNOWN"


class TestCreateAndGet:
    @pytest.mark.asyncio
    async def test_create_then_get(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        service = AuditService.from_runtime(ledger)

        await service.create_log(
            _log(
                wallets.owner.key,
                AuditAction.ACCESS_GRANTED,
                record_id="rec-1",
                target=wallets.grantee.address.lower(),
                data_hash="0x" + DIGEST,
            ),
            ip_address="203.0.113.7",
            user_agent="pytest",
        )

        entry = await service.get_log(0)
        assert entry is not None
        assert entry.log_id == 0
        assert entry.action_name == "ACCESS_GRANTED"
        assert entry.actor == wallets.owner.address
        assert entry.target_address == wallets.grantee.address
        assert entry.record_id == "rec-1"
        assert entry.data_hash == DIGEST
        assert entry.success is True
        assert entry.timestamp == chain.timestamp
        assert entry.ip_address == "203.0.113.7"
        assert entry.user_agent == "pytest"
        assert await service.count() == 1

    @pytest.mark.asyncio
    async def test_blank_optional_fields_read_back_empty(
        self, ledger: LedgerRuntime, wallets: SimpleNamespace
    ) -> None:
        service = AuditService.from_runtime(ledger)
        await service.create_log(_log(wallets.owner.key, AuditAction.DATA_ACCESSED))

        entry = await service.get_log(0)

        assert entry is not None
        assert entry.target_address is None
        assert entry.record_id is None
        assert entry.data_hash == ""
        assert entry.ip_address is None

    @pytest.mark.asyncio
    async def test_request_metadata_wins_over_connection(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        request = _log(wallets.owner.key, AuditAction.DATA_DOWNLOADED)
        request.ip_address = "198.51.100.1"

        await AuditService.from_runtime(ledger).create_log(request, ip_address="10.0.0.1")

        assert chain.audit_logs[0]["ip_address"] == "198.51.100.1"

    @pytest.mark.asyncio
    async def test_invalid_target_rejected(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        with pytest.raises(InvalidArgumentError, match="target_address"):
            await AuditService.from_runtime(ledger).create_log(
                _log(wallets.owner.key, AuditAction.ACCESS_GRANTED, target="0xabc")
            )
        assert chain.calls == []

    @pytest.mark.asyncio
    async def test_missing_and_negative_ids(self, ledger: LedgerRuntime) -> None:
        service = AuditService.from_runtime(ledger)

        assert await service.get_log(7) is None
        with pytest.raises(InvalidArgumentError):
            await service.get_log(-1)


class TestQueries:
    @pytest.fixture
    def service(self, ledger: LedgerRuntime) -> AuditService:
        return AuditService.from_runtime(ledger)

    async def _seed(self, service: AuditService, wallets: SimpleNamespace) -> None:
        await service.create_log(
            _log(wallets.owner.key, AuditAction.DATA_UPLOADED, record_id="R-1")
        )
        await service.create_log(
            _log(wallets.other.key, AuditAction.ACCESS_GRANTED, record_id="r-1")
        )
        await service.create_log(
            _log(wallets.owner.key, AuditAction.ACCESS_GRANTED, record_id="r-2")
        )
        await service.create_log(_log(wallets.owner.key, AuditAction.ACCESS_REVOKED))

    @pytest.mark.asyncio
    async def test_list_all_pages_over_ids(
        self, service: AuditService, wallets: SimpleNamespace
    ) -> None:
        await self._seed(service, wallets)

        page = await service.list_logs(skip=1, take=2)

        assert [entry.log_id for entry in page.items] == [1, 2]
        assert page.total == 4

    @pytest.mark.asyncio
    async def test_by_actor(self, service: AuditService, wallets: SimpleNamespace) -> None:
        await self._seed(service, wallets)

        page = await service.list_by_actor(wallets.owner.address.lower())

        assert [entry.log_id for entry in page.items] == [0, 2, 3]
        assert page.total == 3

    @pytest.mark.asyncio
    async def test_by_action_type(self, service: AuditService, wallets: SimpleNamespace) -> None:
        await self._seed(service, wallets)

        page = await service.list_by_action_type(AuditAction.ACCESS_GRANTED)

        assert [entry.log_id for entry in page.items] == [1, 2]

    @pytest.mark.asyncio
    async def test_by_record_ignores_case(
        self, service: AuditService, wallets: SimpleNamespace
    ) -> None:
        await self._seed(service, wallets)

        page = await service.list_by_record("r-1")

        assert [entry.log_id for entry in page.items] == [0, 1]
        with pytest.raises(InvalidArgumentError):
            await service.list_by_record("  ")

    @pytest.mark.asyncio
    async def test_recent_is_newest_first(
        self, service: AuditService, wallets: SimpleNamespace
    ) -> None:
        await self._seed(service, wallets)

        assert [entry.log_id for entry in await service.recent(3)] == [3, 2, 1]
        assert [entry.log_id for entry in await service.recent(50)] == [3, 2, 1, 0]
        assert await service.recent(0) == []

    @pytest.mark.asyncio
    async def test_recent_on_empty_trail(self, service: AuditService) -> None:
        assert await service.recent() == []


class TestStatistics:
    @pytest.mark.asyncio
    async def test_counts_and_checkpoint(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        service = AuditService.from_runtime(ledger)
        await service.create_log(_log(wallets.owner.key, AuditAction.ACCESS_GRANTED))
        await service.create_log(_log(wallets.owner.key, AuditAction.ACCESS_GRANTED))
        await service.create_log(_log(wallets.owner.key, AuditAction.VERIFICATION_REQUESTED))
        await service.create_log(_log(wallets.owner.key, AuditAction.ACCESS_REVOKED))

        stats = await service.statistics()

        assert stats.total_logs == 4
        assert stats.total_access_grants == 2
        assert stats.total_access_revocations == 1
        assert stats.total_verifications == 1
        assert stats.action_counts["DATA_UPLOADED"] == 0
        assert stats.scanned_to_block == chain.head

    @pytest.mark.asyncio
    async def test_window_filters_by_timestamp(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        service = AuditService.from_runtime(ledger)
        await service.create_log(_log(wallets.owner.key, AuditAction.ACCESS_GRANTED))
        first_at = chain.timestamp
        await service.create_log(_log(wallets.owner.key, AuditAction.ACCESS_GRANTED))
        await service.create_log(_log(wallets.owner.key, AuditAction.ACCESS_GRANTED))
        last_at = chain.timestamp

        stats = await service.statistics(start=first_at + 1, end=last_at - 1)

        assert stats.total_access_grants == 1
        assert (stats.window_start, stats.window_end) == (first_at + 1, last_at - 1)
        assert stats.total_logs == 3

    @pytest.mark.asyncio
    async def test_refresh_scans_only_new_blocks(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        service = AuditService.from_runtime(ledger)
        await service.create_log(_log(wallets.owner.key, AuditAction.DATA_UPLOADED))
        await service.statistics()
        first_head = chain.head
        chain.log_requests.clear()

        await service.create_log(_log(wallets.owner.key, AuditAction.DATA_UPLOADED))
        stats = await service.statistics()

        assert stats.action_counts["DATA_UPLOADED"] == 2
        assert chain.log_requests == [("AuditLogCreated", first_head + 1, chain.head)]

    @pytest.mark.asyncio
    async def test_stalled_scan_is_cancelled(self, chain: Any) -> None:
        async def _stalled_get_logs(*args: Any, **kwargs: Any) -> list[Any]:
            await asyncio.sleep(1)
            return []

        chain.mine(3)
        chain.get_logs = _stalled_get_logs
        reader = AuditLogReader(chain, EventProjector(chain), list_timeout=0.01)

        with pytest.raises(OperationCancelledError, match="audit_log"):
            await reader.statistics()
