"""Tests for access grants, revocation, expiry evaluation and permission listings."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from unittest.mock import patch

import pytest

from datatrust.chain.bindings import AccessGranted
from datatrust.chain.projector import EventProjector
from datatrust.chain.runtime import LedgerRuntime
from datatrust.core.errors import InvalidArgumentError, RevertedError
from datatrust.modules.access.reader import AccessPermissionReader
from datatrust.modules.access.schemas import (
    GrantAccessRequest,
    RevokeAccessRequest,
    UpdatePermissionRequest,
    has_valid_access,
)
from datatrust.modules.access.service import AccessService
from datatrust.modules.access.writer import AccessPermissionWriter
from datatrust.modules.data.schemas import UploadDataRequest
from datatrust.modules.data.service import DataService

NOW = 1_800_000_000


def _service(chain: Any, *, now: int = NOW) -> AccessService:
    return AccessService(
        AccessPermissionReader(chain, EventProjector(chain), clock=lambda: now),
        AccessPermissionWriter(
            chain, explorer_url=lambda tx_hash: f"https://explorer.test/tx/{tx_hash}"
        ),
    )


async def _upload(ledger: LedgerRuntime, wallet: SimpleNamespace, record_id: str) -> None:
    await DataService.from_runtime(ledger).upload(
        UploadDataRequest(
            record_id=record_id,
            data_hash="ab" * 32,
            file_name=f"{record_id}.csv",
            file_size=10,
            storage_locator=f"blob://{record_id}",
            private_key=wallet.key,
        )
    )


def _grant(
    wallet: SimpleNamespace, record_id: str, grantee: str, expires_at: int = 0
) -> GrantAccessRequest:
    return GrantAccessRequest(
        record_id=record_id,
        grantee_address=grantee,
        expires_at=expires_at,
        grant_reason="joint study",
        private_key=wallet.key,
    )


class TestHasValidAccess:
    @pytest.mark.parametrize(
        ("is_active", "expires_at", "expected"),
        [
            (True, 0, True),
            (True, NOW + 1, True),
            (True, NOW, False),
            (True, NOW - 1, False),
            (False, 0, False),
        ],
    )
    def test_rules(self, is_active: bool, expires_at: int, expected: bool) -> None:
        assert has_valid_access(is_active, expires_at, NOW) is expected


class TestGrantAndCheck:
    @pytest.mark.asyncio
    async def test_grant_then_check(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        await _upload(ledger, wallets.owner, "rec-1")
        service = _service(chain)

        await service.grant(_grant(wallets.owner, "rec-1", wallets.grantee.address.lower()))

        assert await service.check_access("rec-1", wallets.grantee.address) is True
        permission = await service.get_permission("rec-1", wallets.grantee.address)
        assert permission is not None
        assert permission.owner == wallets.owner.address
        assert permission.grantee == wallets.grantee.address
        assert permission.permission_type == "read"
        assert permission.grant_reason == "joint study"
        assert permission.expires_at == 0
        assert permission.has_valid_access is True

    @pytest.mark.asyncio
    async def test_absent_permission(self, chain: Any, wallets: SimpleNamespace) -> None:
        service = _service(chain)
        assert await service.check_access("rec-1", wallets.grantee.address) is False
        assert await service.get_permission("rec-1", wallets.grantee.address) is None

    @pytest.mark.asyncio
    async def test_past_expiry_is_submitted_but_grants_nothing(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        await _upload(ledger, wallets.owner, "rec-1")
        service = _service(chain)

        await service.grant(_grant(wallets.owner, "rec-1", wallets.grantee.address, NOW - 60))

        permission = await service.get_permission("rec-1", wallets.grantee.address)
        assert permission is not None
        assert permission.is_active is True
        assert permission.has_valid_access is False
        assert await service.check_access("rec-1", wallets.grantee.address) is False

    @pytest.mark.asyncio
    async def test_expiry_is_evaluated_against_local_clock(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        await _upload(ledger, wallets.owner, "rec-1")
        await _service(chain).grant(
            _grant(wallets.owner, "rec-1", wallets.grantee.address, NOW + 100)
        )

        assert await _service(chain, now=NOW + 99).check_access(
            "rec-1", wallets.grantee.address
        )
        assert not await _service(chain, now=NOW + 100).check_access(
            "rec-1", wallets.grantee.address
        )

    @pytest.mark.asyncio
    async def test_non_owner_grant_reverts(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        await _upload(ledger, wallets.owner, "rec-1")

        with pytest.raises(RevertedError, match="Not record owner"):
            await _service(chain).grant(_grant(wallets.other, "rec-1", wallets.grantee.address))


class TestRevokeAndUpdate:
    @pytest.mark.asyncio
    async def test_revoke_removes_access(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        await _upload(ledger, wallets.owner, "rec-1")
        service = _service(chain)
        await service.grant(_grant(wallets.owner, "rec-1", wallets.grantee.address))

        await service.revoke(
            RevokeAccessRequest(
                record_id="rec-1",
                grantee_address=wallets.grantee.address,
                private_key=wallets.owner.key,
            )
        )

        assert await service.check_access("rec-1", wallets.grantee.address) is False
        permission = await service.get_permission("rec-1", wallets.grantee.address)
        assert permission is not None
        assert permission.is_active is False

    @pytest.mark.asyncio
    async def test_second_revoke_goes_to_chain_and_reverts(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        await _upload(ledger, wallets.owner, "rec-1")
        service = _service(chain)
        await service.grant(_grant(wallets.owner, "rec-1", wallets.grantee.address))
        revoke = RevokeAccessRequest(
            record_id="rec-1",
            grantee_address=wallets.grantee.address,
            private_key=wallets.owner.key,
        )
        await service.revoke(revoke)

        with pytest.raises(RevertedError, match="Permission not active"):
            await service.revoke(revoke)
        assert chain.operations("estimate_gas")[-1] == "revokeAccess"

    @pytest.mark.asyncio
    async def test_update_permission_changes_expiry(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        await _upload(ledger, wallets.owner, "rec-1")
        service = _service(chain)
        await service.grant(_grant(wallets.owner, "rec-1", wallets.grantee.address))

        await service.update_permission(
            UpdatePermissionRequest(
                record_id="rec-1",
                grantee_address=wallets.grantee.address,
                new_expires_at=NOW - 1,
                private_key=wallets.owner.key,
            )
        )

        permission = await service.get_permission("rec-1", wallets.grantee.address)
        assert permission is not None
        assert permission.expires_at == NOW - 1
        assert permission.has_valid_access is False


class TestListings:
    @pytest.mark.asyncio
    async def test_listings_by_record_owner_and_grantee(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        await _upload(ledger, wallets.owner, "rec-1")
        await _upload(ledger, wallets.owner, "rec-2")
        await _upload(ledger, wallets.other, "rec-3")
        service = _service(chain)
        await service.grant(_grant(wallets.owner, "rec-1", wallets.grantee.address))
        await service.grant(_grant(wallets.owner, "rec-2", wallets.grantee.address))
        await service.grant(_grant(wallets.owner, "rec-1", wallets.other.address))
        await service.grant(_grant(wallets.other, "rec-3", wallets.grantee.address))

        for_record = await service.list_record_permissions("rec-1")
        assert [p.grantee for p in for_record.items] == [
            wallets.grantee.address,
            wallets.other.address,
        ]

        granted = await service.list_granted_by(wallets.owner.address)
        assert [(p.record_id, p.grantee) for p in granted.items] == [
            ("rec-1", wallets.grantee.address),
            ("rec-2", wallets.grantee.address),
            ("rec-1", wallets.other.address),
        ]

        received = await service.list_received_by(wallets.grantee.address)
        assert [p.record_id for p in received.items] == ["rec-1", "rec-2", "rec-3"]

    @pytest.mark.asyncio
    async def test_revoked_permissions_hidden_unless_requested(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        await _upload(ledger, wallets.owner, "rec-1")
        service = _service(chain)
        await service.grant(_grant(wallets.owner, "rec-1", wallets.grantee.address))
        await service.revoke(
            RevokeAccessRequest(
                record_id="rec-1",
                grantee_address=wallets.grantee.address,
                private_key=wallets.owner.key,
            )
        )

        assert (await service.list_received_by(wallets.grantee.address)).items == []
        every = await service.list_received_by(wallets.grantee.address, active_only=False)
        assert [p.is_active for p in every.items] == [False]

    @pytest.mark.asyncio
    async def test_regrant_is_listed_once(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        await _upload(ledger, wallets.owner, "rec-1")
        service = _service(chain)
        await service.grant(_grant(wallets.owner, "rec-1", wallets.grantee.address))
        await service.grant(_grant(wallets.owner, "rec-1", wallets.grantee.address, NOW + 10))

        page = await service.list_record_permissions("rec-1")

        assert len(page.items) == 1
        assert page.items[0].expires_at == NOW + 10

    @pytest.mark.asyncio
    async def test_event_ids_are_read_verbatim(
        self, ledger: LedgerRuntime, chain: Any, wallets: SimpleNamespace
    ) -> None:
        await _upload(ledger, wallets.owner, "rec-1")
        service = _service(chain)
        await service.grant(_grant(wallets.owner, "rec-1", wallets.grantee.address))
        grantee_key = wallets.grantee.address.lower()
        chain.permissions[("rec-1 ", grantee_key)] = dict(
            chain.permissions[("rec-1", grantee_key)], grant_reason="padded"
        )
        chain.emit(
            AccessGranted("rec-1 ", wallets.owner.address, wallets.grantee.address, "read", 0)
        )
        chain.emit(AccessGranted("   ", wallets.owner.address, wallets.grantee.address, "read", 0))
        chain.mine()

        with patch("datatrust.chain.reader.logger") as mock_logger:
            page = await service.list_received_by(wallets.grantee.address)

        assert [(p.record_id, p.grant_reason) for p in page.items] == [
            ("rec-1", "joint study"),
            ("rec-1 ", "padded"),
        ]
        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args.kwargs["item_id"].startswith("('   '")

    @pytest.mark.asyncio
    async def test_blank_caller_record_id_rejected(
        self, chain: Any, wallets: SimpleNamespace
    ) -> None:
        with pytest.raises(InvalidArgumentError, match="record_id"):
            await _service(chain).get_permission("  ", wallets.grantee.address)
        assert chain.calls == []
