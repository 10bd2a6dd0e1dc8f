"""
Shared transaction pipeline for entity writers.

Each logical mutation runs Building -> GasEstimated -> Signed -> Submitted
and ends Accepted (the node took it into its pending pool) or Rejected.
Nothing is retried: a rejection is logged and re-raised unchanged.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from eth_account import Account
from eth_account.signers.local import LocalAccount
from pydantic import SecretStr

from datatrust.chain.bindings import ContractWrite
from datatrust.core.errors import InvalidArgumentError, LedgerError
from datatrust.core.logging import get_logger

if TYPE_CHECKING:
    from datatrust.chain.client import ChainClient

logger = get_logger(__name__)


class TxStage(StrEnum):
    BUILDING = "building"
    GAS_ESTIMATED = "gas_estimated"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class SubmittedTransaction:
    """Outcome of a write: the transaction id, not a confirmation."""

    tx_hash: str
    explorer_url: str
    function: str
    sender: str


def load_account(private_key: SecretStr) -> LocalAccount:
    """Derive the signing account; the key value never appears in errors."""
    raw = private_key.get_secret_value().strip()
    if not raw:
        raise InvalidArgumentError("private key is required")
    try:
        return Account.from_key(raw)
    except (TypeError, ValueError):
        raise InvalidArgumentError("private key is not a valid secp256k1 key") from None


class EntityWriter:
    """Base class for per-domain writers."""

    def __init__(
        self,
        client: ChainClient,
        *,
        explorer_url: Callable[[str], str],
        gas_multiplier: float = 1.2,
    ) -> None:
        self._client = client
        self._explorer_url = explorer_url
        self._gas_multiplier = gas_multiplier

    async def submit(self, write: ContractWrite, private_key: SecretStr) -> SubmittedTransaction:
        function = f"{write.contract}.{write.function}"
        stage = TxStage.BUILDING
        account = load_account(private_key)
        sender = account.address
        log = logger.bind(function=function, sender=sender)
        log.info("transaction_stage", stage=stage)
        try:
            estimate = await self._client.estimate_gas(sender, write)
            stage = TxStage.GAS_ESTIMATED
            gas_limit = math.ceil(estimate * self._gas_multiplier)
            log.info("transaction_stage", stage=stage, gas_estimate=estimate, gas_limit=gas_limit)

            signed = await self._client.sign(account, write, gas=gas_limit)
            del account
            stage = TxStage.SIGNED
            log.info("transaction_stage", stage=stage, tx_hash=signed.tx_hash, nonce=signed.nonce)

            stage = TxStage.SUBMITTED
            log.info("transaction_stage", stage=stage, tx_hash=signed.tx_hash)
            tx_hash = await self._client.submit(signed)
        except LedgerError as exc:
            log.warning(
                "transaction_rejected",
                stage=TxStage.REJECTED,
                failed_at=stage,
                error=exc.kind,
                message=exc.message,
            )
            raise

        log.info("transaction_stage", stage=TxStage.ACCEPTED, tx_hash=tx_hash)
        return SubmittedTransaction(
            tx_hash=tx_hash,
            explorer_url=self._explorer_url(tx_hash),
            function=write.function,
            sender=sender,
        )
