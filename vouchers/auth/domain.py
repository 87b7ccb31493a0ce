# -*- coding: utf-8 -*-
"""
vouchers.auth.domain
====================

Domain-separated digests for vouchers (EIP-712 typed-data layout).

An issuer signs a digest that binds the voucher fields to a protocol name and
version, the chain id and the verifying contract's address. Changing any of
them changes the digest, so a signature cannot be replayed on another
contract, another chain, or under another protocol version. Purchase vouchers
additionally bind the redeemer's current nonce.

Layout (Keccak-256 everywhere; `u256` = 32-byte big-endian; `addr32` = the
20-byte address left-padded to 32 bytes)
-------------------------------------------------------------------------

    EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)
    ItemVoucher(uint256[] items,uint256[] amounts,bytes data)
    PurchaseVoucher(uint256 price,string data,address wallet,address targetContract,uint256 nonce)

    domainSeparator = keccak( typeHash(EIP712Domain)
                              ‖ keccak(name) ‖ keccak(version)
                              ‖ u256(chainId) ‖ addr32(verifyingContract) )

    itemStructHash  = keccak( typeHash(ItemVoucher)
                              ‖ keccak(u256(items[0]) ‖ ... ) ‖ keccak(u256(amounts[0]) ‖ ... )
                              ‖ keccak(data) )

    purchaseStructHash = keccak( typeHash(PurchaseVoucher)
                                 ‖ u256(price) ‖ keccak(utf8(data))
                                 ‖ addr32(wallet) ‖ addr32(targetContract) ‖ u256(nonce) )

    digest = keccak( 0x19 ‖ 0x01 ‖ domainSeparator ‖ structHash )

Standard EIP-712 tooling (e.g. eth-account `encode_typed_data`) reproduces the
same domain separator and struct hashes, so issuers do not need this package
to sign. The signature itself is never part of the digest.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final, Optional, Sequence

from ..config import load_config
from ..errors import InvalidVoucher
from ..runtime.context import to_address
from ..runtime.hash_api import keccak256
from ..runtime.storage_api import u256_to_bytes
from ..voucher import ItemClaimVoucher, PurchaseVoucher, Voucher

EIP712_DOMAIN_TYPE: Final[bytes] = (
    b"EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)
ITEM_VOUCHER_TYPE: Final[bytes] = b"ItemVoucher(uint256[] items,uint256[] amounts,bytes data)"
PURCHASE_VOUCHER_TYPE: Final[bytes] = (
    b"PurchaseVoucher(uint256 price,string data,address wallet,address targetContract,uint256 nonce)"
)

EIP712_DOMAIN_TYPEHASH: Final[bytes] = keccak256(EIP712_DOMAIN_TYPE)
ITEM_VOUCHER_TYPEHASH: Final[bytes] = keccak256(ITEM_VOUCHER_TYPE)
PURCHASE_VOUCHER_TYPEHASH: Final[bytes] = keccak256(PURCHASE_VOUCHER_TYPE)

_TYPED_DATA_PREFIX: Final[bytes] = b"\x19\x01"


# ------------------------------------------------------------------------------
# Encoding helpers
# ------------------------------------------------------------------------------

def _addr32(a: bytes) -> bytes:
    return b"\x00" * 12 + to_address(a)


def _u256_array_hash(values: Sequence[int]) -> bytes:
    return keccak256(b"".join(u256_to_bytes(v) for v in values))


# ------------------------------------------------------------------------------
# Pure functions
# ------------------------------------------------------------------------------

def domain_separator(name: str, version: str, chain_id: int, verifying_contract: bytes) -> bytes:
    """32-byte separator bound to (name, version, chain_id, verifying_contract)."""
    if chain_id < 0:
        raise InvalidVoucher("chain_id must be non-negative")
    return keccak256(
        EIP712_DOMAIN_TYPEHASH
        + keccak256(name.encode("utf-8"))
        + keccak256(version.encode("utf-8"))
        + u256_to_bytes(chain_id)
        + _addr32(verifying_contract)
    )


def item_struct_hash(voucher: ItemClaimVoucher) -> bytes:
    return keccak256(
        ITEM_VOUCHER_TYPEHASH
        + _u256_array_hash(voucher.items)
        + _u256_array_hash(voucher.amounts)
        + keccak256(voucher.data)
    )


def purchase_struct_hash(voucher: PurchaseVoucher, nonce: int) -> bytes:
    return keccak256(
        PURCHASE_VOUCHER_TYPEHASH
        + u256_to_bytes(voucher.price)
        + keccak256(voucher.data.encode("utf-8"))
        + _addr32(voucher.wallet)
        + _addr32(voucher.target_contract)
        + u256_to_bytes(nonce)
    )


def typed_digest(separator: bytes, struct_hash: bytes) -> bytes:
    if len(separator) != 32 or len(struct_hash) != 32:
        raise InvalidVoucher("separator and struct hash must be 32 bytes")
    return keccak256(_TYPED_DATA_PREFIX + separator + struct_hash)


# ------------------------------------------------------------------------------
# Hasher bound to one deployment
# ------------------------------------------------------------------------------

@dataclass(frozen=True)
class DomainHasher:
    """
    Digest builder for one (name, version, chain, contract) domain.

    Build it with `DomainHasher.for_contract(chain_id, address)` to pick up the
    configured protocol name and version.
    """

    name: str
    version: str
    chain_id: int
    verifying_contract: bytes
    separator: bytes = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "verifying_contract", to_address(self.verifying_contract))
        object.__setattr__(
            self,
            "separator",
            domain_separator(self.name, self.version, self.chain_id, self.verifying_contract),
        )

    @classmethod
    def for_contract(cls, chain_id: int, verifying_contract: bytes) -> "DomainHasher":
        cfg = load_config()
        return cls(
            name=cfg.domain_name,
            version=cfg.domain_version,
            chain_id=chain_id,
            verifying_contract=verifying_contract,
        )

    def item_digest(self, voucher: ItemClaimVoucher) -> bytes:
        return typed_digest(self.separator, item_struct_hash(voucher))

    def purchase_digest(self, voucher: PurchaseVoucher, nonce: int) -> bytes:
        return typed_digest(self.separator, purchase_struct_hash(voucher, nonce))

    def digest(self, voucher: Voucher, nonce: Optional[int] = None) -> bytes:
        """Digest for either voucher kind; purchase vouchers require `nonce`."""
        if isinstance(voucher, ItemClaimVoucher):
            return self.item_digest(voucher)
        if isinstance(voucher, PurchaseVoucher):
            if nonce is None:
                raise InvalidVoucher("purchase voucher digest requires a nonce")
            return self.purchase_digest(voucher, nonce)
        raise InvalidVoucher("unsupported voucher type", details={"type": type(voucher).__name__})


__all__ = [
    "EIP712_DOMAIN_TYPE",
    "ITEM_VOUCHER_TYPE",
    "PURCHASE_VOUCHER_TYPE",
    "domain_separator",
    "item_struct_hash",
    "purchase_struct_hash",
    "typed_digest",
    "DomainHasher",
]
