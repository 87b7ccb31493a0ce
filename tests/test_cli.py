"""The animica-vouchers command line (typer CliRunner)."""
from __future__ import annotations

import json
import logging

import pytest
from typer.testing import CliRunner

from vouchers.auth.domain import DomainHasher
from vouchers.auth.signature import address_of, recover_signer
from vouchers.cli import app
from vouchers.voucher import PurchaseVoucher, voucher_from_dict

KEY = "0x" + "11" * 32
CONTRACT = "0x" + "ee" * 20
WALLET = "0x" + "a1" * 20

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """The CLI callback installs its own root handler; put the old ones back."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def purchase_file(tmp_path):
    p = tmp_path / "voucher.json"
    p.write_text(
        json.dumps({"kind": "purchase", "price": 1000, "data": "order-42", "wallet": WALLET, "target_contract": WALLET})
    )
    return p


def _hasher(chain_id=1337):
    return DomainHasher.for_contract(chain_id, bytes.fromhex(CONTRACT[2:]))


def test_digest(purchase_file):
    res = runner.invoke(app, ["digest", str(purchase_file), "--contract", CONTRACT, "--nonce", "2"])
    assert res.exit_code == 0, res.output
    v = voucher_from_dict(json.loads(purchase_file.read_text()))
    assert res.output.strip() == "0x" + _hasher().purchase_digest(v, 2).hex()


def test_sign_then_recover(purchase_file):
    res = runner.invoke(app, ["sign", str(purchase_file), "--contract", CONTRACT, "--key", KEY])
    assert res.exit_code == 0, res.output
    out = json.loads(res.output)
    assert out["signer"] == "0x" + address_of(KEY).hex()

    signed = voucher_from_dict(json.loads(purchase_file.read_text()))
    assert isinstance(signed, PurchaseVoucher) and signed.is_signed
    assert recover_signer(_hasher().purchase_digest(signed, 0), signed.signature) == address_of(KEY)

    res = runner.invoke(app, ["recover", str(purchase_file), "--contract", CONTRACT])
    assert res.exit_code == 0, res.output
    assert res.output.strip() == out["signer"]

    # same signature under another chain id recovers someone else
    res = runner.invoke(app, ["recover", str(purchase_file), "--contract", CONTRACT, "--chain-id", "1"])
    assert res.exit_code == 0
    assert res.output.strip() != out["signer"]


def test_sign_key_from_env_and_out_file(purchase_file, tmp_path):
    out_path = tmp_path / "signed.json"
    res = runner.invoke(
        app,
        ["sign", str(purchase_file), "--contract", CONTRACT, "--out", str(out_path)],
        env={"VOUCHERS_ISSUER_KEY": KEY},
    )
    assert res.exit_code == 0, res.output
    assert "signature" not in json.loads(purchase_file.read_text())
    assert json.loads(out_path.read_text())["signature"].startswith("0x")


def test_recover_unsigned_fails(purchase_file):
    res = runner.invoke(app, ["recover", str(purchase_file), "--contract", CONTRACT])
    assert res.exit_code == 2


def test_bad_voucher_file(tmp_path):
    p = tmp_path / "bad.json"
    p.write_text(json.dumps({"kind": "item", "items": [1, 2], "amounts": [1]}))
    res = runner.invoke(app, ["digest", str(p), "--contract", CONTRACT])
    assert res.exit_code == 2


def test_split_preview():
    a, b = "0x" + "a1" * 20, "0x" + "b2" * 20
    res = runner.invoke(app, ["split", "--amount", "101", "--payee", f"{a}=60", "--payee", f"{b}=40", "--json"])
    assert res.exit_code == 0, res.output
    plan = json.loads(res.output)
    assert [p["amount"] for p in plan["payouts"]] == [60, 40]
    assert plan["retained"] == 1


def test_split_rejects_bad_payee():
    res = runner.invoke(app, ["split", "--amount", "1", "--payee", "nonsense"])
    assert res.exit_code != 0


def test_config_command(monkeypatch):
    from vouchers.config import load_config

    monkeypatch.setenv("VOUCHERS_CHAIN_ID", "42")
    load_config.cache_clear()
    res = runner.invoke(app, ["config"])
    assert res.exit_code == 0, res.output
    assert json.loads(res.output)["chain_id"] == 42
