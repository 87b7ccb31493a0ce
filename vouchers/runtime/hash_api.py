"""
vouchers.runtime.hash_api: deterministic Keccak-256.

Strictly bytes-in, bytes-out (no implicit text encoding). This is Keccak-256
with the original (pre-SHA3) padding, as used by the secp256k1 account
ecosystem, so off-chain issuers using standard tooling reproduce the same
digests. It is *not* hashlib.sha3_256.
"""

from __future__ import annotations

from Crypto.Hash import keccak as _keccak

from ..errors import VoucherError


def keccak256(data: bytes | bytearray | memoryview) -> bytes:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise VoucherError(f"data must be bytes-like (got {type(data).__name__})")
    h = _keccak.new(digest_bits=256)
    h.update(bytes(data))
    return h.digest()


__all__ = ["keccak256"]
