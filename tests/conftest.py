# -*- coding: utf-8 -*-
"""
Shared fixtures for the voucher test-suite.

Provides a fresh Host per test, deterministic secp256k1 keys (eth-account) for
the issuer, the redeemer and an outsider, a deployed MultiTokenLedger and a
deployed VoucherMinter wired to it, plus small helpers to sign vouchers the way
an off-line issuer would.
"""
from __future__ import annotations

from typing import Callable, Optional

import pytest
from eth_account import Account

from vouchers.auth.signature import sign_digest
from vouchers.config import load_config
from vouchers.contract import MultiTokenLedger, VoucherMinter
from vouchers.runtime import ChainEnv, Host
from vouchers.voucher import ItemClaimVoucher, PurchaseVoucher

CHAIN_ID = 1337

ISSUER_KEY = "0x" + "11" * 32
REDEEMER_KEY = "0x" + "22" * 32
OUTSIDER_KEY = "0x" + "33" * 32

OWNER = bytes.fromhex("0a" * 20)
PAYEE_A = bytes.fromhex("a1" * 20)
PAYEE_B = bytes.fromhex("b2" * 20)
PAYEE_C = bytes.fromhex("c3" * 20)


def addr_of(key: str) -> bytes:
    return bytes.fromhex(Account.from_key(key).address[2:])


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    """Each test starts from default configuration."""
    for name in (
        "VOUCHERS_DOMAIN_NAME",
        "VOUCHERS_DOMAIN_VERSION",
        "VOUCHERS_CHAIN_ID",
        "VOUCHERS_MAX_PAYEES",
        "VOUCHERS_MAX_CLAIM_ITEMS",
        "VOUCHERS_REENTRANCY_GUARD",
        "VOUCHERS_LOG_LEVEL",
        "VOUCHERS_LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)
    load_config.cache_clear()
    yield
    load_config.cache_clear()


@pytest.fixture
def issuer() -> bytes:
    return addr_of(ISSUER_KEY)


@pytest.fixture
def redeemer() -> bytes:
    return addr_of(REDEEMER_KEY)


@pytest.fixture
def outsider() -> bytes:
    return addr_of(OUTSIDER_KEY)


@pytest.fixture
def host() -> Host:
    return Host(ChainEnv(chain_id=CHAIN_ID))


@pytest.fixture
def ledger(host: Host) -> MultiTokenLedger:
    return host.deploy(OWNER, lambda h, a: MultiTokenLedger(h, a, owner=OWNER))


@pytest.fixture
def minter(host: Host, ledger: MultiTokenLedger, issuer: bytes) -> VoucherMinter:
    return host.deploy(OWNER, lambda h, a: VoucherMinter(h, a, owner=OWNER, ledger=ledger, issuers=[issuer]))


@pytest.fixture
def with_payees(minter: VoucherMinter) -> VoucherMinter:
    """Primary pool {A: 60, B: 40}; secondary pool {C: 100}."""
    minter.update_pool_payees(OWNER, "primary", [], [PAYEE_A, PAYEE_B], [60, 40])
    minter.update_pool_payees(OWNER, "secondary", [], [PAYEE_C], [100])
    return minter


@pytest.fixture
def sign_purchase() -> Callable[..., PurchaseVoucher]:
    def _sign(
        minter: VoucherMinter, voucher: PurchaseVoucher, key: str = ISSUER_KEY, nonce: Optional[int] = None
    ) -> PurchaseVoucher:
        digest = minter.purchase_voucher_digest(voucher, nonce)
        return voucher.with_signature(sign_digest(digest, key))

    return _sign


@pytest.fixture
def sign_items() -> Callable[..., ItemClaimVoucher]:
    def _sign(minter: VoucherMinter, voucher: ItemClaimVoucher, key: str = ISSUER_KEY) -> ItemClaimVoucher:
        return voucher.with_signature(sign_digest(minter.item_voucher_digest(voucher), key))

    return _sign
