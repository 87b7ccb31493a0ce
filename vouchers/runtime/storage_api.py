"""
vouchers.runtime.storage_api: contract-facing key/value storage view.

Each contract sees its own namespace in the host journal, addressed by its
contract address. Values are bytes; integers are stored as 32-byte big-endian
u256 words, flags as b"\\x01". Empty values read back as "absent" (writing an
empty value deletes the key).

Keys are namespaced by ASCII prefixes per module, e.g.:

    b"auth:nonce:" + address        -> u256
    b"ps:w:" + pool + b":" + payee  -> u256 share weight
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import VoucherError

if TYPE_CHECKING:  # pragma: no cover
    from .journal import Journal

U256_MAX = (1 << 256) - 1


class StorageError(VoucherError):
    code = "STORAGE:CORRUPT"


def u256_to_bytes(x: int) -> bytes:
    if x < 0 or x > U256_MAX:
        raise StorageError("u256 out of range", details={"value": str(x)})
    return int(x).to_bytes(32, "big")


def bytes_to_u256(b: bytes) -> int:
    if len(b) == 0:
        return 0
    if len(b) != 32:
        raise StorageError("u256 slot must be 32 bytes", details={"len": len(b)})
    return int.from_bytes(b, "big")


class ContractStorage:
    """Storage view bound to one contract address."""

    __slots__ = ("_journal", "_address")

    def __init__(self, journal: "Journal", address: bytes) -> None:
        self._journal = journal
        self._address = bytes(address)

    @property
    def address(self) -> bytes:
        return self._address

    def get(self, key: bytes) -> bytes:
        return self._journal.storage_get(self._address, key)

    def set(self, key: bytes, value: bytes) -> None:
        self._journal.storage_set(self._address, key, value)

    def delete(self, key: bytes) -> None:
        self._journal.storage_delete(self._address, key)

    def get_u256(self, key: bytes) -> int:
        return bytes_to_u256(self.get(key))

    def set_u256(self, key: bytes, value: int) -> None:
        # Zero deletes the slot; absent reads back as zero.
        if value == 0:
            self.delete(key)
        else:
            self.set(key, u256_to_bytes(value))

    def get_flag(self, key: bytes) -> bool:
        return self.get(key) == b"\x01"

    def set_flag(self, key: bytes, on: bool) -> None:
        if on:
            self.set(key, b"\x01")
        else:
            self.delete(key)


__all__ = [
    "U256_MAX",
    "StorageError",
    "u256_to_bytes",
    "bytes_to_u256",
    "ContractStorage",
]
