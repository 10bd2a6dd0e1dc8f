"""
Pytest fixtures for backend testing.
Provides an in-memory chain, settings, ledger runtimes and test clients.
"""

from collections.abc import AsyncGenerator
from types import SimpleNamespace
from typing import Any

import pytest
import pytest_asyncio
from eth_account import Account
from eth_utils import encode_hex, to_checksum_address
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr

from datatrust.chain.abi import AbiRegistry
from datatrust.chain.bindings import (
    AccessGranted,
    AuditLogCreated,
    ContractEvent,
    ContractRead,
    ContractWrite,
    CreateLog,
    DataUploaded,
    DeactivateData,
    DeactivateInstitution,
    GetAuditLog,
    GetDataRecord,
    GetInstitution,
    GetPermission,
    GetRecordsByOwner,
    GetTotalInstitutions,
    GetTotalLogs,
    GetTotalRecords,
    GrantAccess,
    InstitutionRegistered,
    RegisterInstitution,
    RevokeAccess,
    UpdateDataMetadata,
    UpdateInstitution,
    UpdatePermission,
    UploadData,
    VerifyData,
    VerifyInstitution,
)
from datatrust.chain.client import LogEntry, SignedTransaction
from datatrust.chain.encoding import ZERO_ADDRESS, ZERO_HASH
from datatrust.chain.projector import EventProjector, ProjectionCache
from datatrust.chain.runtime import LedgerRuntime
from datatrust.core.config import DEFAULT_ABI_DIR, Settings, get_settings
from datatrust.core.errors import LedgerError, RevertedError
from datatrust.main import create_application
from datatrust.modules.access.requests import AccessRequestStore

GENESIS_TIMESTAMP = 1_700_000_000
BLOCK_TIME = 12

CONTRACT_ADDRESSES = {
    "institution_registry_address": "0x5FbDB2315678afecb367f032d93F642f64180aa3",
    "data_vault_address": "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512",
    "access_control_address": "0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0",
    "audit_trail_address": "0xCf7Ed3AcCA5a467e9e704C703E8D87F634fB0Fc9",
}


def _key(address: str) -> str:
    return address.lower()


class FakeChain:
    """In-memory stand-in for ChainClient backed by simulated contract storage.

    Every accepted transaction is mined into its own block. Writes that the
    contracts would reject raise RevertedError at gas estimation, the same
    place a node reports them.
    """

    def __init__(self, *, head: int = 0) -> None:
        self.head = head
        self.timestamp = GENESIS_TIMESTAMP
        self.institutions: dict[str, dict[str, Any]] = {}
        self.records: dict[str, dict[str, Any]] = {}
        self.owner_records: dict[str, list[str]] = {}
        self.permissions: dict[tuple[str, str], dict[str, Any]] = {}
        self.audit_logs: list[dict[str, Any]] = []
        self.events: list[LogEntry[Any]] = []
        self.nonces: dict[str, int] = {}
        self.calls: list[tuple[str, str]] = []
        self.log_requests: list[tuple[str, int, int]] = []
        self.failures: dict[str, LedgerError] = {}
        self.read_failures: dict[Any, LedgerError] = {}
        self.gas_estimate = 100_000
        self._signed: dict[str, tuple[str, ContractWrite]] = {}

    # -------------------------------------------------------------------------
    # ChainClient surface
    # -------------------------------------------------------------------------

    async def call(
        self, read: ContractRead, *, block_identifier: Any = "latest", timeout: Any = None
    ) -> tuple[Any, ...]:
        self._enter("call", read.function)
        return self._read(read)

    async def block_number(self, *, timeout: Any = None) -> int:
        self._enter("block_number", "")
        return self.head

    async def get_logs(
        self,
        event_type: type[ContractEvent],
        from_block: int,
        to_block: int,
        *,
        timeout: Any = None,
    ) -> list[LogEntry[Any]]:
        self._enter("get_logs", event_type.event)
        self.log_requests.append((event_type.event, from_block, to_block))
        return [
            entry
            for entry in self.events
            if isinstance(entry.event, event_type) and from_block <= entry.block_number <= to_block
        ]

    async def estimate_gas(self, sender: str, write: ContractWrite, *, timeout: Any = None) -> int:
        self._enter("estimate_gas", write.function)
        self._validate(sender, write)
        return self.gas_estimate

    async def sign(
        self, account: Any, write: ContractWrite, *, gas: int, timeout: Any = None
    ) -> SignedTransaction:
        self._enter("sign", write.function)
        sender = account.address
        nonce = self.nonces.get(_key(sender), 0)
        self.nonces[_key(sender)] = nonce + 1
        tx_hash = "0x" + f"{len(self._signed) + 1:064x}"
        self._signed[tx_hash] = (sender, write)
        return SignedTransaction(
            raw=b"\x02" + tx_hash.encode(), tx_hash=tx_hash, sender=sender, nonce=nonce, gas=gas
        )

    async def submit(self, signed: SignedTransaction, *, timeout: Any = None) -> str:
        self._enter("submit", "")
        sender, write = self._signed[signed.tx_hash]
        self.mine()
        try:
            self._validate(sender, write)
        except RevertedError:
            # mined but reverted; the submitter only learns this from receipts
            return signed.tx_hash
        self._apply(sender, write, signed.tx_hash)
        return signed.tx_hash

    async def close(self) -> None:
        self._enter("close", "")

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def mine(self, blocks: int = 1) -> None:
        self.head += blocks
        self.timestamp += BLOCK_TIME * blocks

    def emit(self, event: ContractEvent, *, tx_hash: str = "0x" + "00" * 32) -> None:
        self.events.append(
            LogEntry(
                event=event,
                block_number=self.head,
                transaction_index=0,
                log_index=len(self.events),
                transaction_hash=tx_hash,
            )
        )

    def operations(self, name: str) -> list[str]:
        return [detail for operation, detail in self.calls if operation == name]

    def _enter(self, operation: str, detail: str) -> None:
        self.calls.append((operation, detail))
        failure = self.failures.get(operation)
        if failure is not None:
            raise failure

    # -------------------------------------------------------------------------
    # Simulated contract storage
    # -------------------------------------------------------------------------

    def _read(self, read: ContractRead) -> tuple[Any, ...]:
        match read:
            case GetInstitution(institution_address=address):
                item = self.institutions.get(_key(address))
                if item is None:
                    return ("", "", "", ZERO_ADDRESS, 0, False, "")
                return (
                    item["name"],
                    item["institution_type"],
                    item["registration_number"],
                    item["wallet"],
                    item["registered_at"],
                    item["is_active"],
                    item["metadata_uri"],
                )
            case GetTotalInstitutions():
                return (len(self.institutions),)
            case VerifyInstitution(institution_address=address):
                item = self.institutions.get(_key(address))
                return (item is not None and item["is_active"],)
            case GetDataRecord(record_id=record_id):
                if record_id in self.read_failures:
                    raise self.read_failures[record_id]
                record = self.records.get(record_id)
                if record is None:
                    return (ZERO_HASH, ZERO_ADDRESS, "", "", 0, "", "", "", "", 0, False)
                return (
                    record["data_hash"],
                    record["owner"],
                    record["file_name"],
                    record["file_type"],
                    record["file_size"],
                    record["storage_locator"],
                    record["encryption_algorithm"],
                    record["category"],
                    record["metadata_uri"],
                    record["uploaded_at"],
                    record["is_active"],
                )
            case GetRecordsByOwner(owner=owner):
                return (list(self.owner_records.get(_key(owner), [])),)
            case VerifyData(record_id=record_id, data_hash=data_hash):
                record = self.records.get(record_id)
                return (record is not None and record["data_hash"] == data_hash,)
            case GetTotalRecords():
                return (len(self.records),)
            case GetPermission(record_id=record_id, grantee=grantee):
                permission = self.permissions.get((record_id, _key(grantee)))
                if permission is None:
                    return (ZERO_ADDRESS, "", "", 0, 0, False)
                return (
                    permission["owner"],
                    permission["permission_type"],
                    permission["grant_reason"],
                    permission["granted_at"],
                    permission["expires_at"],
                    permission["is_active"],
                )
            case GetAuditLog(log_id=log_id):
                if log_id in self.read_failures:
                    raise self.read_failures[log_id]
                if log_id >= len(self.audit_logs):
                    return (0, ZERO_ADDRESS, ZERO_ADDRESS, "", "", ZERO_HASH, False, 0, "", "")
                entry = self.audit_logs[log_id]
                return (
                    entry["action_type"],
                    entry["actor"],
                    entry["target_address"],
                    entry["record_id"],
                    entry["action_details"],
                    entry["data_hash"],
                    entry["success"],
                    entry["timestamp"],
                    entry["ip_address"],
                    entry["user_agent"],
                )
            case GetTotalLogs():
                return (len(self.audit_logs),)
        raise AssertionError(f"unexpected read {read!r}")

    def _validate(self, sender: str, write: ContractWrite) -> None:
        match write:
            case RegisterInstitution():
                if _key(sender) in self.institutions:
                    raise RevertedError("Institution already registered")
            case UpdateInstitution():
                if _key(sender) not in self.institutions:
                    raise RevertedError("Institution not registered")
            case DeactivateInstitution(institution_address=address):
                if _key(address) not in self.institutions:
                    raise RevertedError("Institution not registered")
            case UploadData(record_id=record_id):
                if record_id in self.records:
                    raise RevertedError("Record already exists")
            case UpdateDataMetadata(record_id=record_id) | DeactivateData(record_id=record_id):
                record = self.records.get(record_id)
                if record is None or _key(record["owner"]) != _key(sender):
                    raise RevertedError("Not record owner")
            case GrantAccess(record_id=record_id):
                record = self.records.get(record_id)
                if record is None or _key(record["owner"]) != _key(sender):
                    raise RevertedError("Not record owner")
            case RevokeAccess(record_id=record_id, grantee=grantee):
                permission = self.permissions.get((record_id, _key(grantee)))
                if permission is None or not permission["is_active"]:
                    raise RevertedError("Permission not active")
            case UpdatePermission(record_id=record_id, grantee=grantee):
                permission = self.permissions.get((record_id, _key(grantee)))
                if permission is None or _key(permission["owner"]) != _key(sender):
                    raise RevertedError("Not permission owner")

    def _apply(self, sender: str, write: ContractWrite, tx_hash: str) -> None:
        now = self.timestamp
        match write:
            case RegisterInstitution():
                self.institutions[_key(sender)] = {
                    "name": write.name,
                    "institution_type": write.institution_type,
                    "registration_number": write.registration_number,
                    "wallet": sender,
                    "registered_at": now,
                    "is_active": True,
                    "metadata_uri": write.metadata_uri,
                }
                self.emit(
                    InstitutionRegistered(sender, write.name, write.institution_type, now),
                    tx_hash=tx_hash,
                )
            case UpdateInstitution():
                item = self.institutions[_key(sender)]
                item["name"] = write.name
                item["metadata_uri"] = write.metadata_uri
            case DeactivateInstitution(institution_address=address):
                self.institutions[_key(address)]["is_active"] = False
            case UploadData():
                self.records[write.record_id] = {
                    "data_hash": write.data_hash,
                    "owner": sender,
                    "file_name": write.file_name,
                    "file_type": write.file_type,
                    "file_size": write.file_size,
                    "storage_locator": write.storage_locator,
                    "encryption_algorithm": write.encryption_algorithm,
                    "category": write.category,
                    "metadata_uri": write.metadata_uri,
                    "uploaded_at": now,
                    "is_active": True,
                }
                self.owner_records.setdefault(_key(sender), []).append(write.record_id)
                self.emit(
                    DataUploaded(write.record_id, sender, write.file_name, now), tx_hash=tx_hash
                )
            case UpdateDataMetadata():
                self.records[write.record_id]["metadata_uri"] = write.metadata_uri
            case DeactivateData():
                self.records[write.record_id]["is_active"] = False
            case GrantAccess():
                self.permissions[(write.record_id, _key(write.grantee))] = {
                    "owner": sender,
                    "permission_type": write.permission_type,
                    "grant_reason": write.grant_reason,
                    "granted_at": now,
                    "expires_at": write.expires_at,
                    "is_active": True,
                }
                self.emit(
                    AccessGranted(
                        write.record_id,
                        sender,
                        to_checksum_address(write.grantee),
                        write.permission_type,
                        write.expires_at,
                    ),
                    tx_hash=tx_hash,
                )
            case RevokeAccess():
                self.permissions[(write.record_id, _key(write.grantee))]["is_active"] = False
            case UpdatePermission():
                permission = self.permissions[(write.record_id, _key(write.grantee))]
                permission["expires_at"] = write.new_expires_at
            case CreateLog():
                log_id = len(self.audit_logs)
                self.audit_logs.append(
                    {
                        "action_type": write.action_type,
                        "actor": sender,
                        "target_address": write.target_address,
                        "record_id": write.record_id,
                        "action_details": write.action_details,
                        "data_hash": write.data_hash,
                        "success": write.success,
                        "timestamp": now,
                        "ip_address": write.ip_address,
                        "user_agent": write.user_agent,
                    }
                )
                self.emit(AuditLogCreated(log_id, sender, write.action_type, now), tx_hash=tx_hash)


def _wallet(seed: int) -> SimpleNamespace:
    account = Account.from_key(bytes([seed]) * 32)
    return SimpleNamespace(
        address=account.address,
        key=SecretStr(encode_hex(account.key)),
        account=account,
    )


@pytest.fixture(autouse=True)
def reset_settings_cache() -> None:
    """Make each test read settings afresh."""
    get_settings.cache_clear()


@pytest.fixture
def wallets() -> SimpleNamespace:
    """Deterministic signing wallets for the simulated chain."""
    return SimpleNamespace(
        owner=_wallet(0x11),
        grantee=_wallet(0x22),
        other=_wallet(0x33),
        server=_wallet(0x44),
    )


@pytest.fixture
def settings(wallets: SimpleNamespace) -> Settings:
    return Settings(
        _env_file=None,
        chain_rpc_url="http://127.0.0.1:8545",
        chain_id=31337,
        chain_explorer_url="https://explorer.test",
        server_private_key=wallets.server.key,
        chain_list_timeout_seconds=5.0,
        **CONTRACT_ADDRESSES,
    )


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def ledger(settings: Settings, chain: FakeChain) -> LedgerRuntime:
    chunk_size = settings.chain_log_chunk_size
    projector = EventProjector(chain, chunk_size=chunk_size)  # type: ignore[arg-type]
    return LedgerRuntime(
        settings=settings,
        registry=AbiRegistry(DEFAULT_ABI_DIR),
        client=chain,  # type: ignore[arg-type]
        projector=projector,
        cache=ProjectionCache(projector),
    )


@pytest_asyncio.fixture
async def test_client(ledger: LedgerRuntime) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to an app whose ledger runs on the in-memory chain."""
    app = create_application()
    app.state.ledger = ledger
    app.state.access_requests = AccessRequestStore()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
