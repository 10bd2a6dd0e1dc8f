"""Error taxonomy shared by the chain layer, the domain services and the routers."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status


class LedgerError(Exception):
    """Base class for every failure surfaced by the ledger layer."""

    kind = "ledger_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict[str, Any]:
        return {"message": self.message, "error": self.kind}


class RpcUnavailableError(LedgerError):
    """Raised when the node cannot be reached or an operation times out.

    Transient: callers may retry with backoff.
    """

    kind = "rpc_unavailable"
    status_code = status.HTTP_502_BAD_GATEWAY


class RevertedError(LedgerError):
    """Raised when contract logic explicitly rejects a call."""

    kind = "reverted"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Transaction reverted: {reason}" if reason else "Transaction reverted")

    def to_detail(self) -> dict[str, Any]:
        return {**super().to_detail(), "reason": self.reason}


class InsufficientFundsError(LedgerError):
    """Raised when the signing account cannot pay for gas."""

    kind = "insufficient_funds"


class NotFoundError(LedgerError):
    """Raised when a single entity does not exist on chain."""

    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidArgumentError(LedgerError, ValueError):
    """Raised for malformed input or ABI encoding mismatches."""

    kind = "invalid_argument"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class ConfigurationMissingError(LedgerError):
    """Raised at construction time when a required setting is absent."""

    kind = "configuration_missing"


class ArtifactMissingError(LedgerError):
    """Raised when no ABI artifact exists for a contract name."""

    kind = "artifact_missing"


class ArtifactMalformedError(LedgerError):
    """Raised when an ABI artifact has no usable interface section."""

    kind = "artifact_malformed"


class OperationCancelledError(LedgerError):
    """Raised when a caller-supplied deadline aborts a list read."""

    kind = "cancelled"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT


def to_http_exception(exc: LedgerError) -> HTTPException:
    """Map a ledger error to the HTTP exception raised by routers."""
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())
