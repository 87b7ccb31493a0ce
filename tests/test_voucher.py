"""Voucher payload validation and JSON form."""
from __future__ import annotations

import json

import pytest

from vouchers.config import MAX_PURCHASE_DATA_BYTES, load_config
from vouchers.errors import InvalidVoucher
from vouchers.runtime.context import ContextError
from vouchers.voucher import ItemClaimVoucher, PurchaseVoucher, voucher_from_dict

WALLET = "0x" + "a1" * 20
TARGET = "0x" + "b2" * 20


def test_item_voucher_json_form():
    v = ItemClaimVoucher(items=[1, 2], amounts=[5, 1], data="0x0102", signature="0x" + "00" * 65)
    d = v.to_dict()
    assert d["kind"] == "item"
    assert d["data"] == "0x0102"
    again = voucher_from_dict(json.loads(json.dumps(d)))
    assert again == v
    assert again.items == (1, 2)


def test_purchase_voucher_json_form():
    d = {"kind": "purchase", "price": 1000, "data": "order-42", "wallet": WALLET, "target_contract": TARGET}
    v = voucher_from_dict(d)
    assert isinstance(v, PurchaseVoucher)
    assert v.wallet == bytes.fromhex("a1" * 20)
    assert not v.is_signed
    assert v.to_dict()["signature"] == "0x"


def test_unknown_kind_and_missing_field():
    with pytest.raises(InvalidVoucher):
        voucher_from_dict({"kind": "coupon"})
    with pytest.raises(InvalidVoucher) as ei:
        voucher_from_dict({"kind": "purchase", "price": 1, "wallet": WALLET})
    assert ei.value.details["field"] == "target_contract"


def test_length_mismatch():
    with pytest.raises(InvalidVoucher) as ei:
        ItemClaimVoucher(items=(1, 2, 3), amounts=(1, 2))
    assert ei.value.details == {"items": 3, "amounts": 2}


def test_claim_item_limit(monkeypatch):
    monkeypatch.setenv("VOUCHERS_MAX_CLAIM_ITEMS", "2")
    load_config.cache_clear()
    ItemClaimVoucher(items=(1, 2), amounts=(1, 1))
    with pytest.raises(InvalidVoucher):
        ItemClaimVoucher(items=(1, 2, 3), amounts=(1, 1, 1))


@pytest.mark.parametrize("bad", [-1, 1 << 256, True, "7"])
def test_u256_fields(bad):
    with pytest.raises(InvalidVoucher):
        ItemClaimVoucher(items=(bad,), amounts=(1,))
    with pytest.raises(InvalidVoucher):
        PurchaseVoucher(price=bad, data="", wallet=WALLET, target_contract=TARGET)


def test_purchase_addresses_are_normalized():
    with pytest.raises(ContextError):
        PurchaseVoucher(price=1, data="", wallet="0x1234", target_contract=TARGET)


def test_with_signature_keeps_fields():
    v = PurchaseVoucher(price=1, data="d", wallet=WALLET, target_contract=TARGET)
    s = v.with_signature("0x" + "ab" * 65)
    assert s.is_signed and s.price == 1 and s.signature == b"\xab" * 65


def test_purchase_data_limit_counts_utf8_bytes():
    # two bytes per character in UTF-8
    fits = "é" * (MAX_PURCHASE_DATA_BYTES // 2)
    assert PurchaseVoucher(price=1, data=fits, wallet=WALLET, target_contract=TARGET).data == fits
    with pytest.raises(InvalidVoucher) as ei:
        PurchaseVoucher(price=1, data=fits + "é", wallet=WALLET, target_contract=TARGET)
    assert ei.value.details["bytes"] == MAX_PURCHASE_DATA_BYTES + 2
