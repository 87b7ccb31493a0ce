"""
vouchers.runtime.context: ChainEnv/CallEnv passed to contracts (deterministic)

These lightweight environments describe where and on whose behalf a contract
call executes. They contain only pure data (ints/bytes) and perform strict
validation.

Design notes
------------
- Addresses are raw 20-byte values (the secp256k1 account format recovered
  from voucher signatures). Hex strings (with or without "0x") are accepted by
  helpers and normalized to bytes.
- All numeric fields are validated to be non-negative.
- `chain_id` is carried by ChainEnv so contracts can bind digests to a chain.

This module does not expose wall-clock time; `timestamp` is whatever the host
was configured with.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from ..errors import InvalidVoucher, ZeroAddress

ADDRESS_LEN = 20
ZERO_ADDRESS = b"\x00" * ADDRESS_LEN

BytesLike = Union[bytes, bytearray, memoryview, str]


# ----------------------------- helpers ----------------------------- #

class ContextError(InvalidVoucher):
    """Validation or coercion failure for ChainEnv/CallEnv and address helpers."""

    code = "CONTEXT:INVALID"


def _strip_0x(s: str) -> str:
    return s[2:] if s.startswith(("0x", "0X")) else s


def to_bytes(value: BytesLike) -> bytes:
    """
    Coerce `value` to bytes.
    - If str, interpret as hex (with or without '0x'); odd-length hex is rejected.
    - If a bytes-like object, copy to immutable bytes.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        h = _strip_0x(value.strip())
        if len(h) % 2 != 0:
            raise ContextError(f"hex string must have even length, got {len(h)}")
        try:
            return bytes.fromhex(h)
        except ValueError as e:
            raise ContextError(f"invalid hex string: {value!r}") from e
    raise ContextError(f"cannot convert type {type(value).__name__} to bytes")


def to_hex(b: Union[bytes, bytearray, memoryview]) -> str:
    """Encode bytes as 0x-prefixed lowercase hex."""
    return "0x" + bytes(b).hex()


def to_address(value: BytesLike) -> bytes:
    """Normalize an address to exactly 20 raw bytes."""
    b = to_bytes(value)
    if len(b) != ADDRESS_LEN:
        raise ContextError(f"address must be {ADDRESS_LEN} bytes, got {len(b)}")
    return b


def is_zero_address(value: BytesLike) -> bool:
    b = to_bytes(value)
    return len(b) == 0 or b == b"\x00" * len(b)


def require_address(value: BytesLike) -> bytes:
    """Like `to_address`, but the null-equivalent address raises ZeroAddress."""
    if is_zero_address(value):
        raise ZeroAddress("address must not be zero")
    return to_address(value)


def _require_non_negative_int(name: str, v: Any) -> int:
    if not isinstance(v, int) or isinstance(v, bool):
        raise ContextError(f"{name} must be int, got {type(v).__name__}")
    if v < 0:
        raise ContextError(f"{name} must be non-negative, got {v}")
    return v


# ----------------------------- models ------------------------------ #

@dataclass(frozen=True)
class ChainEnv:
    """
    Per-host chain environment.

    Fields
    ------
    chain_id:   Integer chain identifier, part of every voucher domain.
    height:     Current block height (0-based).
    timestamp:  Host-provided timestamp (seconds).
    """
    chain_id: int
    height: int = 0
    timestamp: int = 0

    def __post_init__(self) -> None:
        _require_non_negative_int("chain_id", self.chain_id)
        _require_non_negative_int("height", self.height)
        _require_non_negative_int("timestamp", self.timestamp)


@dataclass(frozen=True)
class CallEnv:
    """
    Per-call environment.

    Fields
    ------
    sender:  Caller address (the identity vouchers are checked against).
    to:      Contract address being called.
    value:   Native value attached to the call (already moved to `to`).
    depth:   Call depth (1 for a top-level call; >1 for re-entrant calls).
    """
    sender: bytes
    to: bytes
    value: int = 0
    depth: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "sender", to_address(self.sender))
        object.__setattr__(self, "to", to_address(self.to))
        _require_non_negative_int("value", self.value)
        _require_non_negative_int("depth", self.depth)


__all__ = [
    "ADDRESS_LEN",
    "ZERO_ADDRESS",
    "ContextError",
    "to_bytes",
    "to_hex",
    "to_address",
    "is_zero_address",
    "require_address",
    "ChainEnv",
    "CallEnv",
]
