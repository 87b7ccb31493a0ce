"""
vouchers.voucher: the two voucher payloads an issuer signs off-chain.

Both variants are frozen dataclasses sharing the `Voucher` base (the
"redeemable-with-signature" capability): they carry the semantic fields that
enter the digest, plus the `signature` bytes, which never do.

- ItemClaimVoucher: items (token ids) + parallel amounts + opaque data.
- PurchaseVoucher:  price + opaque data string + redeemer wallet + target contract.

JSON form (used by the CLI and fixtures) encodes bytes/addresses as 0x-hex:

    {"kind": "item", "items": [1, 2], "amounts": [5, 1], "data": "0x", "signature": "0x..."}
    {"kind": "purchase", "price": 1000, "data": "order-42",
     "wallet": "0x...", "target_contract": "0x...", "signature": "0x..."}
"""

from __future__ import annotations

import abc
import dataclasses
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Mapping, Tuple

from .config import MAX_PURCHASE_DATA_BYTES, load_config
from .errors import InvalidVoucher
from .runtime.context import to_address, to_bytes, to_hex
from .runtime.storage_api import U256_MAX


def _u256(name: str, v: Any) -> int:
    if not isinstance(v, int) or isinstance(v, bool):
        raise InvalidVoucher(f"{name} must be int", details={"type": type(v).__name__})
    if v < 0 or v > U256_MAX:
        raise InvalidVoucher(f"{name} out of u256 range", details={name: str(v)})
    return v


class Voucher(abc.ABC):
    """Common base: a payload redeemable together with its issuer's signature."""

    kind: ClassVar[str]
    signature: bytes

    def with_signature(self, signature: bytes) -> "Voucher":
        return dataclasses.replace(self, signature=to_bytes(signature))  # type: ignore[type-var]

    @property
    def is_signed(self) -> bool:
        return len(self.signature) > 0

    @abc.abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class ItemClaimVoucher(Voucher):
    """Authorizes the redeemer to receive `amounts[i]` of item `items[i]` from the signer."""

    kind: ClassVar[str] = "item"

    items: Tuple[int, ...]
    amounts: Tuple[int, ...]
    data: bytes = b""
    signature: bytes = field(default=b"", repr=False)

    def __post_init__(self) -> None:
        items = tuple(self.items)
        amounts = tuple(self.amounts)
        if len(items) != len(amounts):
            raise InvalidVoucher(
                "items and amounts length mismatch",
                details={"items": len(items), "amounts": len(amounts)},
            )
        limit = load_config().max_claim_items
        if len(items) > limit:
            raise InvalidVoucher("too many items in claim", details={"items": len(items), "limit": limit})
        object.__setattr__(self, "items", tuple(_u256("item", i) for i in items))
        object.__setattr__(self, "amounts", tuple(_u256("amount", a) for a in amounts))
        object.__setattr__(self, "data", to_bytes(self.data))
        object.__setattr__(self, "signature", to_bytes(self.signature))

    @property
    def is_empty(self) -> bool:
        return len(self.items) == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "items": list(self.items),
            "amounts": list(self.amounts),
            "data": to_hex(self.data),
            "signature": to_hex(self.signature),
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ItemClaimVoucher":
        return cls(
            items=tuple(int(i) for i in d.get("items", ())),
            amounts=tuple(int(a) for a in d.get("amounts", ())),
            data=to_bytes(d.get("data", b"")),
            signature=to_bytes(d.get("signature", b"")),
        )


@dataclass(frozen=True)
class PurchaseVoucher(Voucher):
    """Authorizes `wallet` to buy at `price`; the payment is settled over the primary pool."""

    kind: ClassVar[str] = "purchase"

    price: int
    data: str
    wallet: bytes
    target_contract: bytes
    signature: bytes = field(default=b"", repr=False)

    def __post_init__(self) -> None:
        _u256("price", self.price)
        if not isinstance(self.data, str):
            raise InvalidVoucher("data must be str", details={"type": type(self.data).__name__})
        size = len(self.data.encode("utf-8"))
        if size > MAX_PURCHASE_DATA_BYTES:
            raise InvalidVoucher("data too long", details={"bytes": size, "limit": MAX_PURCHASE_DATA_BYTES})
        object.__setattr__(self, "wallet", to_address(self.wallet))
        object.__setattr__(self, "target_contract", to_address(self.target_contract))
        object.__setattr__(self, "signature", to_bytes(self.signature))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "price": self.price,
            "data": self.data,
            "wallet": to_hex(self.wallet),
            "target_contract": to_hex(self.target_contract),
            "signature": to_hex(self.signature),
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "PurchaseVoucher":
        return cls(
            price=int(d["price"]),
            data=str(d.get("data", "")),
            wallet=to_bytes(d["wallet"]),
            target_contract=to_bytes(d["target_contract"]),
            signature=to_bytes(d.get("signature", b"")),
        )


_KINDS = {ItemClaimVoucher.kind: ItemClaimVoucher, PurchaseVoucher.kind: PurchaseVoucher}


def voucher_from_dict(d: Mapping[str, Any]) -> Voucher:
    """Dispatch on the "kind" field."""
    kind = d.get("kind")
    cls = _KINDS.get(str(kind))
    if cls is None:
        raise InvalidVoucher("unknown voucher kind", details={"kind": kind, "known": sorted(_KINDS)})
    try:
        return cls.from_dict(d)  # type: ignore[attr-defined]
    except KeyError as e:
        raise InvalidVoucher("missing voucher field", details={"field": str(e.args[0])}) from e


__all__ = [
    "Voucher",
    "ItemClaimVoucher",
    "PurchaseVoucher",
    "voucher_from_dict",
]
