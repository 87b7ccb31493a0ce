"""
A payee that calls back into the minter while being paid.

The nonce is consumed before any funds leave the contract, so a nested replay
of the voucher being settled hashes under the new nonce and fails as
Unauthorized. With VOUCHERS_REENTRANCY_GUARD enabled the nested entry is
refused up front with Reentrancy. Either way the outer redemption completes.
"""
from __future__ import annotations

import pytest

from vouchers.config import load_config
from vouchers.contract.redeemer import K_IN_PROGRESS
from vouchers.errors import Reentrancy, TransferFailed, Unauthorized
from vouchers.voucher import PurchaseVoucher

from tests.conftest import OWNER, PAYEE_A, PAYEE_B

PRICE = 100


def _reentering_hook(minter, redeemer, voucher, seen):
    def hook(host, sender, amount):
        try:
            minter.redeem_purchase_voucher(redeemer, voucher, PRICE)
        except (Unauthorized, Reentrancy) as exc:
            seen.append(exc)
        return True

    return hook


def _setup(host, minter, redeemer, sign_purchase):
    minter.update_pool_payees(OWNER, "primary", [], [PAYEE_A, PAYEE_B], [60, 40])
    host.mint(redeemer, 1_000)
    return sign_purchase(
        minter, PurchaseVoucher(price=PRICE, data="x", wallet=redeemer, target_contract=minter.address)
    )


def test_nested_replay_sees_consumed_nonce(host, minter, redeemer, sign_purchase):
    voucher = _setup(host, minter, redeemer, sign_purchase)
    seen = []
    host.register_receiver(PAYEE_A, _reentering_hook(minter, redeemer, voucher, seen))

    minter.redeem_purchase_voucher(redeemer, voucher, PRICE)

    assert len(seen) == 1 and isinstance(seen[0], Unauthorized)
    assert minter.current_nonce(redeemer) == 1
    assert host.balance_of(PAYEE_A) == 60
    assert host.balance_of(PAYEE_B) == 40
    assert host.balance_of(redeemer) == 1_000 - PRICE
    assert len(host.events.iter_events(b"VoucherSold")) == 1


def test_guard_refuses_nested_redemption(host, minter, redeemer, sign_purchase, monkeypatch):
    monkeypatch.setenv("VOUCHERS_REENTRANCY_GUARD", "1")
    load_config.cache_clear()
    voucher = _setup(host, minter, redeemer, sign_purchase)
    seen = []
    host.register_receiver(PAYEE_A, _reentering_hook(minter, redeemer, voucher, seen))

    minter.redeem_purchase_voucher(redeemer, voucher, PRICE)

    assert len(seen) == 1 and isinstance(seen[0], Reentrancy)
    assert minter.current_nonce(redeemer) == 1
    assert not host.storage(minter.address).get_flag(K_IN_PROGRESS)

    # a later redemption is not blocked by a stale flag
    nxt = sign_purchase(
        minter, PurchaseVoucher(price=PRICE, data="y", wallet=redeemer, target_contract=minter.address)
    )
    minter.redeem_purchase_voucher(redeemer, nxt, PRICE)
    assert minter.current_nonce(redeemer) == 2
    assert [type(e) for e in seen] == [Reentrancy, Reentrancy]


def test_payee_propagating_nested_failure_aborts_outer(host, minter, redeemer, sign_purchase):
    voucher = _setup(host, minter, redeemer, sign_purchase)

    def hook(h, sender, amount):
        minter.redeem_purchase_voucher(redeemer, voucher, PRICE)

    host.register_receiver(PAYEE_B, hook)
    with pytest.raises(TransferFailed):
        minter.redeem_purchase_voucher(redeemer, voucher, PRICE)
    assert minter.current_nonce(redeemer) == 0
    assert host.balance_of(PAYEE_A) == 0
    assert host.balance_of(redeemer) == 1_000
