"""
JSON-RPC chain client.

The only component that talks to the node. Calls are encoded and decoded
with eth-abi against the registry's interfaces, every operation runs under a
deadline, and web3/aiohttp failures are translated into the ledger error
taxonomy at this boundary.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import aiohttp
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address
from hexbytes import HexBytes
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import (
    ContractLogicError,
    ProviderConnectionError,
    Web3RPCError,
    Web3ValidationError,
)
from web3.types import BlockIdentifier

from datatrust.chain.abi import AbiParam, AbiRegistry, EventSpec, FunctionSpec
from datatrust.chain.bindings import ContractCall, ContractEvent, ContractRead, ContractWrite
from datatrust.core.config import Settings
from datatrust.core.errors import (
    InsufficientFundsError,
    InvalidArgumentError,
    LedgerError,
    RevertedError,
    RpcUnavailableError,
)
from datatrust.core.logging import get_logger

logger = get_logger(__name__)

EventT = TypeVar("EventT", bound=ContractEvent)

INVALID_PARAMS_CODE = -32602


@dataclass(frozen=True, slots=True)
class LogEntry(Generic[EventT]):
    """A decoded event together with its position in the chain."""

    event: EventT
    block_number: int
    transaction_index: int
    log_index: int
    transaction_hash: str

    @property
    def position(self) -> tuple[int, int, int]:
        return (self.block_number, self.transaction_index, self.log_index)


@dataclass(frozen=True, slots=True)
class SignedTransaction:
    """A signed, not yet submitted, transaction."""

    raw: bytes
    tx_hash: str
    sender: str
    nonce: int
    gas: int

    def __repr__(self) -> str:
        return (
            f"SignedTransaction(tx_hash={self.tx_hash!r}, "
            f"sender={self.sender!r}, nonce={self.nonce})"
        )


def _revert_reason(exc: ContractLogicError) -> str:
    message = exc.message or ""
    for prefix in ("execution reverted: ", "execution reverted"):
        if message.startswith(prefix):
            return message[len(prefix) :].strip()
    return message.strip()


def _rpc_error_parts(exc: Web3RPCError) -> tuple[int | None, str]:
    response = exc.rpc_response or {}
    error = response.get("error") if isinstance(response, Mapping) else None
    if isinstance(error, Mapping):
        code = error.get("code")
        return (code if isinstance(code, int) else None), str(error.get("message", exc.message))
    return None, str(exc.message)


def map_rpc_error(exc: Web3RPCError) -> LedgerError:
    """Classify a JSON-RPC error response."""
    code, message = _rpc_error_parts(exc)
    lowered = message.lower()
    if "insufficient funds" in lowered:
        return InsufficientFundsError(message)
    if "execution reverted" in lowered or "revert" in lowered:
        reason = message.split("execution reverted", 1)[-1].lstrip(": ").strip()
        return RevertedError(reason)
    if code == INVALID_PARAMS_CODE:
        return InvalidArgumentError(message)
    return RpcUnavailableError(f"Node returned an error: {message}")


class ChainClient:
    """Async wrapper around one JSON-RPC endpoint and a fixed set of contracts."""

    def __init__(
        self,
        w3: AsyncWeb3,
        registry: AbiRegistry,
        addresses: Mapping[str, str],
        *,
        timeout: float = 15.0,
        chain_id: int | None = None,
    ) -> None:
        self._w3 = w3
        self._registry = registry
        self._addresses = {name: to_checksum_address(addr) for name, addr in addresses.items()}
        self._timeout = timeout
        self._chain_id = chain_id

    @classmethod
    def from_settings(cls, settings: Settings, registry: AbiRegistry) -> ChainClient:
        settings.require_chain_config()
        provider = AsyncHTTPProvider(
            settings.chain_rpc_url,
            # no transport-level retries; resubmission is up to the caller
            exception_retry_configuration=None,
        )
        return cls(
            AsyncWeb3(provider),
            registry,
            settings.contract_addresses,
            timeout=settings.chain_rpc_timeout_seconds,
            chain_id=settings.chain_id,
        )

    async def close(self) -> None:
        await self._w3.provider.disconnect()

    def address_of(self, contract: str) -> str:
        try:
            return self._addresses[contract]
        except KeyError:
            raise InvalidArgumentError(f"No address configured for contract '{contract}'") from None

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def call(
        self,
        read: ContractRead,
        *,
        block_identifier: BlockIdentifier = "latest",
        timeout: float | None = None,
    ) -> tuple[Any, ...]:
        """Execute a view function and return its decoded outputs in ABI order."""
        spec = self._function(read)
        tx = {"to": self.address_of(read.contract), "data": self._encode_call(spec, read)}
        async with self._guard("eth_call", read.contract, spec.name, timeout):
            raw = await self._w3.eth.call(tx, block_identifier=block_identifier)
        return self._decode_output(read.contract, spec, bytes(raw))

    async def block_number(self, *, timeout: float | None = None) -> int:
        async with self._guard("eth_blockNumber", "", "", timeout):
            return int(await self._w3.eth.block_number)

    async def get_logs(
        self,
        event_type: type[EventT],
        from_block: int,
        to_block: int,
        *,
        timeout: float | None = None,
    ) -> list[LogEntry[EventT]]:
        """Fetch and decode one event type over an inclusive block range."""
        spec = self._registry.load(event_type.contract).event(event_type.event)
        filter_params = {
            "address": self.address_of(event_type.contract),
            "topics": [Web3.to_hex(spec.topic)],
            "fromBlock": from_block,
            "toBlock": to_block,
        }
        async with self._guard("eth_getLogs", event_type.contract, spec.name, timeout):
            logs = await self._w3.eth.get_logs(filter_params)
        return [self._decode_log(event_type, spec, log) for log in logs]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def estimate_gas(
        self,
        sender: str,
        write: ContractWrite,
        *,
        timeout: float | None = None,
    ) -> int:
        """Simulate a write; reverts surface here before anything is signed."""
        spec = self._function(write)
        tx = {
            "from": to_checksum_address(sender),
            "to": self.address_of(write.contract),
            "data": self._encode_call(spec, write),
            "value": 0,
        }
        async with self._guard("eth_estimateGas", write.contract, spec.name, timeout):
            return int(await self._w3.eth.estimate_gas(tx))

    async def sign(
        self,
        account: LocalAccount,
        write: ContractWrite,
        *,
        gas: int,
        timeout: float | None = None,
    ) -> SignedTransaction:
        """Build a legacy transaction for the write and sign it locally."""
        spec = self._function(write)
        data = self._encode_call(spec, write)
        async with self._guard("prepare_transaction", write.contract, spec.name, timeout):
            nonce = await self._w3.eth.get_transaction_count(account.address, "pending")
            gas_price = await self._w3.eth.gas_price
            chain_id = self._chain_id or await self._w3.eth.chain_id

        tx = {
            "to": self.address_of(write.contract),
            "data": data,
            "value": 0,
            "gas": gas,
            "gasPrice": gas_price,
            "nonce": nonce,
            "chainId": chain_id,
        }
        try:
            signed = account.sign_transaction(tx)
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError(f"Could not sign {spec.name} transaction: {exc}") from exc
        return SignedTransaction(
            raw=bytes(signed.raw_transaction),
            tx_hash=Web3.to_hex(signed.hash),
            sender=account.address,
            nonce=nonce,
            gas=gas,
        )

    async def submit(self, signed: SignedTransaction, *, timeout: float | None = None) -> str:
        """Hand a signed transaction to the node; returns once it is in the pending pool."""
        async with self._guard("eth_sendRawTransaction", "", "", timeout):
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw)
        return Web3.to_hex(tx_hash)

    # -------------------------------------------------------------------------
    # Encoding
    # -------------------------------------------------------------------------

    def _function(self, call: ContractCall) -> FunctionSpec:
        return self._registry.load(call.contract).function(call.function)

    @staticmethod
    def _encode_call(spec: FunctionSpec, call: ContractCall) -> str:
        args = call.args()
        if len(args) != len(spec.inputs):
            raise InvalidArgumentError(
                f"{spec.name} expects {len(spec.inputs)} arguments, got {len(args)}"
            )
        try:
            payload = encode(list(spec.input_types), list(args))
        except (EncodingError, TypeError, ValueError) as exc:
            raise InvalidArgumentError(f"Cannot encode arguments for {spec.name}: {exc}") from exc
        return Web3.to_hex(spec.selector + payload)

    @staticmethod
    def _decode_output(contract: str, spec: FunctionSpec, raw: bytes) -> tuple[Any, ...]:
        if not spec.outputs:
            return ()
        try:
            values = decode(list(spec.output_types), raw)
        except DecodingError as exc:
            raise InvalidArgumentError(
                f"Could not decode {contract}.{spec.name} output; "
                f"is the contract deployed at the configured address? ({exc})"
            ) from exc
        return tuple(_normalize(param, value) for param, value in zip(spec.outputs, values))

    @staticmethod
    def _decode_log(
        event_type: type[EventT], spec: EventSpec, log: Mapping[str, Any]
    ) -> LogEntry[EventT]:
        topics = [bytes(HexBytes(topic)) for topic in log["topics"]]
        indexed = spec.indexed_inputs
        if len(topics) != len(indexed) + 1:
            raise InvalidArgumentError(
                f"{spec.name} log has {len(topics)} topics, expected {len(indexed) + 1}"
            )
        try:
            indexed_values = [
                decode([param.type], topic)[0] for param, topic in zip(indexed, topics[1:])
            ]
            data_types = [param.type for param in spec.data_inputs]
            data_values = list(decode(data_types, bytes(HexBytes(log["data"]))))
        except DecodingError as exc:
            raise InvalidArgumentError(f"Could not decode {spec.name} log: {exc}") from exc

        values: list[Any] = []
        for param in spec.inputs:
            value = indexed_values.pop(0) if param.indexed else data_values.pop(0)
            values.append(_normalize(param, value))

        return LogEntry(
            event=event_type.from_values(values),
            block_number=int(log["blockNumber"]),
            transaction_index=int(log["transactionIndex"]),
            log_index=int(log["logIndex"]),
            transaction_hash=HexBytes(log["transactionHash"]).to_0x_hex(),
        )

    # -------------------------------------------------------------------------
    # Error mapping
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _guard(
        self,
        operation: str,
        contract: str,
        function: str,
        timeout: float | None,
    ) -> AsyncIterator[None]:
        deadline = timeout if timeout is not None else self._timeout
        try:
            async with asyncio.timeout(deadline):
                yield
        except LedgerError:
            raise
        except TimeoutError as exc:
            logger.warning("rpc_timeout", operation=operation, contract=contract, timeout=deadline)
            raise RpcUnavailableError(f"{operation} timed out after {deadline}s") from exc
        except ContractLogicError as exc:
            raise RevertedError(_revert_reason(exc)) from exc
        except Web3RPCError as exc:
            mapped = map_rpc_error(exc)
            logger.warning(
                "rpc_error",
                operation=operation,
                contract=contract,
                function=function,
                error=mapped.kind,
                message=mapped.message,
            )
            raise mapped from exc
        except Web3ValidationError as exc:
            raise InvalidArgumentError(f"{operation} rejected arguments: {exc}") from exc
        except (aiohttp.ClientError, ProviderConnectionError, OSError) as exc:
            logger.warning("rpc_unreachable", operation=operation, error=str(exc))
            raise RpcUnavailableError(f"{operation} failed: {exc}") from exc


def _normalize(param: AbiParam, value: Any) -> Any:
    if param.type == "address":
        return to_checksum_address(value)
    if param.type == "address[]":
        return [to_checksum_address(item) for item in value]
    if isinstance(value, tuple) and param.type.endswith("]"):
        return list(value)
    return value
