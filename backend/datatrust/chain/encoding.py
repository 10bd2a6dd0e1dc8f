"""Conversions between domain values and ABI primitives."""

from __future__ import annotations

import re

from eth_utils import is_address, to_checksum_address

from datatrust.core.errors import InvalidArgumentError
from datatrust.core.logging import get_logger

logger = get_logger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ZERO_HASH = b"\x00" * 32

_HASH_PATTERN = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")

INT64_MAX = 2**63 - 1
UINT256_MAX = 2**256 - 1


def normalize_address(value: str, *, field: str = "address") -> str:
    """Return the checksum form of an address, rejecting anything else."""
    candidate = (value or "").strip()
    if not is_address(candidate) and is_address(candidate.lower()):
        # Mixed case with a bad checksum; addresses compare case-insensitively
        candidate = candidate.lower()
    if not is_address(candidate):
        raise InvalidArgumentError(f"{field} is not a valid address: {value!r}")
    return to_checksum_address(candidate)


def optional_address(value: str | None, *, field: str = "address") -> str:
    """Checksum an optional address, mapping blanks to the zero address."""
    if value is None or not value.strip():
        return ZERO_ADDRESS
    return normalize_address(value, field=field)


def same_address(left: str, right: str) -> bool:
    return left.lower() == right.lower()


def is_zero_address(value: str) -> bool:
    return value.lower() == ZERO_ADDRESS


def encode_hash32(value: str | None, *, field: str = "data_hash") -> bytes:
    """Encode a hex digest into the fixed bytes32 slot.

    Accepts exactly 64 hex characters with an optional ``0x`` prefix; empty
    input encodes as the zero hash. Anything else is rejected rather than
    padded or truncated.
    """
    if value is None or not value.strip():
        return ZERO_HASH
    candidate = value.strip()
    if not _HASH_PATTERN.match(candidate):
        raise InvalidArgumentError(f"{field} must be 64 hex characters (32 bytes)")
    return bytes.fromhex(candidate.removeprefix("0x").removeprefix("0X"))


def decode_hash32(value: bytes) -> str:
    """Render a bytes32 slot as lowercase hex without prefix; zero hash renders empty."""
    if not value or value == ZERO_HASH:
        return ""
    return value.hex()


def normalize_hash(value: str | None) -> str:
    """Canonical lowercase form used to compare digests."""
    return decode_hash32(encode_hash32(value))


def require_uint(value: int, *, field: str, bits: int = 256) -> int:
    """Validate an unsigned value before encoding."""
    if value < 0 or value > 2**bits - 1:
        raise InvalidArgumentError(f"{field} must fit in uint{bits}, got {value}")
    return value


def narrow_int(value: int, *, field: str, bits: int = 64, signed: bool = True) -> int:
    """Narrow an on-chain integer to a fixed width at the application boundary.

    Values outside the target range are clamped and logged.
    """
    if signed:
        lower, upper = -(2 ** (bits - 1)), 2 ** (bits - 1) - 1
    else:
        lower, upper = 0, 2**bits - 1
    if lower <= value <= upper:
        return value
    clamped = upper if value > upper else lower
    logger.warning(
        "integer_narrowed",
        field=field,
        value=str(value),
        clamped_to=clamped,
        bits=bits,
        signed=signed,
    )
    return clamped
