from __future__ import annotations

"""
vouchers.cli.main
-----------------

Issuer-side tooling for vouchers:

- digest:  print the typed-data digest of a voucher JSON for a contract/chain/nonce
- sign:    sign a voucher JSON with an issuer key and write the signature back
- recover: recover the signer address of a signed voucher
- split:   preview how an amount is distributed over a set of payees
- config:  print the effective configuration

Examples
--------
# Digest of a purchase voucher for nonce 0 on the default chain
animica-vouchers digest voucher.json --contract 0x5fbd...

# Sign in place (key from the environment)
VOUCHERS_ISSUER_KEY=0x... animica-vouchers sign voucher.json --contract 0x5fbd...

# Preview a 60/40 split of 101 units
animica-vouchers split --amount 101 --payee 0xaaaa...=60 --payee 0xbbbb...=40
"""

import json
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Tuple

import typer

from ..auth.domain import DomainHasher
from ..auth.signature import address_of, recover_signer, sign_digest
from ..config import SHARE_BASIS, load_config
from ..errors import VoucherError
from ..logging import setup_logging
from ..runtime.context import to_address, to_hex
from ..settlement.distributor import plan_split
from ..voucher import PurchaseVoucher, Voucher, voucher_from_dict

app = typer.Typer(
    name="animica-vouchers",
    add_completion=False,
    no_args_is_help=True,
    help="Hash, sign and inspect vouchers; preview payment splits.",
)

# -------------------- utils --------------------

_VOUCHER_ARG = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Voucher JSON file.")
_CONTRACT_OPT = typer.Option(..., "--contract", help="Verifying contract address (0x-hex, 20 bytes).")
_CHAIN_OPT = typer.Option(None, "--chain-id", help="Chain id (defaults to VOUCHERS_CHAIN_ID).")
_NONCE_OPT = typer.Option(0, "--nonce", min=0, help="Redeemer nonce (purchase vouchers only).")


def _fail(exc: Exception) -> NoReturn:
    if isinstance(exc, VoucherError):
        typer.secho(f"error: {exc.code}: {exc.message}", fg=typer.colors.RED, err=True)
    else:
        typer.secho(f"error: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(2)


def _load_voucher(path: Path) -> Tuple[Dict[str, Any], Voucher]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        _fail(exc)
    if not isinstance(raw, dict):
        _fail(ValueError("voucher file must hold a JSON object"))
    try:
        return raw, voucher_from_dict(raw)
    except (VoucherError, ValueError, TypeError) as exc:
        _fail(exc)


def _digest(voucher: Voucher, contract: str, chain_id: Optional[int], nonce: int) -> bytes:
    cid = load_config().chain_id if chain_id is None else chain_id
    try:
        hasher = DomainHasher.for_contract(cid, to_address(contract))
        return hasher.digest(voucher, nonce if isinstance(voucher, PurchaseVoucher) else None)
    except VoucherError as exc:
        _fail(exc)


def _parse_payee(text: str) -> Tuple[bytes, int]:
    addr, sep, weight = text.partition("=")
    if not sep:
        raise typer.BadParameter(f"expected ADDR=WEIGHT, got {text!r}")
    try:
        return to_address(addr.strip()), int(weight)
    except (VoucherError, ValueError) as exc:
        raise typer.BadParameter(f"bad payee {text!r}: {exc}") from exc


# -------------------- commands --------------------

@app.command("digest")
def cmd_digest(
    voucher_file: Path = _VOUCHER_ARG,
    contract: str = _CONTRACT_OPT,
    chain_id: Optional[int] = _CHAIN_OPT,
    nonce: int = _NONCE_OPT,
) -> None:
    """Print the digest an issuer must sign."""
    _, voucher = _load_voucher(voucher_file)
    typer.echo(to_hex(_digest(voucher, contract, chain_id, nonce)))


@app.command("sign")
def cmd_sign(
    voucher_file: Path = _VOUCHER_ARG,
    contract: str = _CONTRACT_OPT,
    key: str = typer.Option(..., "--key", envvar="VOUCHERS_ISSUER_KEY", help="Issuer private key (0x-hex)."),
    chain_id: Optional[int] = _CHAIN_OPT,
    nonce: int = _NONCE_OPT,
    out: Optional[Path] = typer.Option(None, "--out", dir_okay=False, help="Write here instead of in place."),
) -> None:
    """Sign a voucher and store the signature in its JSON."""
    raw, voucher = _load_voucher(voucher_file)
    digest = _digest(voucher, contract, chain_id, nonce)
    try:
        signature = sign_digest(digest, key)
        signer = address_of(key)
    except (VoucherError, ValueError) as exc:
        _fail(exc)
    raw["signature"] = to_hex(signature)
    target = out or voucher_file
    target.write_text(json.dumps(raw, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    typer.echo(json.dumps({"signer": to_hex(signer), "digest": to_hex(digest), "signature": to_hex(signature)}))


@app.command("recover")
def cmd_recover(
    voucher_file: Path = _VOUCHER_ARG,
    contract: str = _CONTRACT_OPT,
    chain_id: Optional[int] = _CHAIN_OPT,
    nonce: int = _NONCE_OPT,
) -> None:
    """Print the address that signed a voucher (under the given domain)."""
    _, voucher = _load_voucher(voucher_file)
    if not voucher.is_signed:
        _fail(ValueError("voucher has no signature"))
    digest = _digest(voucher, contract, chain_id, nonce)
    try:
        signer = recover_signer(digest, voucher.signature)
    except VoucherError as exc:
        _fail(exc)
    typer.echo(to_hex(signer))


@app.command("split")
def cmd_split(
    amount: int = typer.Option(..., "--amount", min=0, help="Incoming payment in the smallest unit."),
    payee: List[str] = typer.Option(..., "--payee", help="ADDR=WEIGHT, repeatable; order is payout order."),
    pool: str = typer.Option("primary", "--pool", help="primary | secondary"),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Preview a pro-rata distribution without touching any state."""
    pairs = [_parse_payee(p) for p in payee]
    try:
        plan = plan_split(pool, amount, pairs)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if json_out:
        typer.echo(json.dumps(plan.to_dict(), indent=2, sort_keys=True))
        return
    for p in plan.payouts:
        typer.echo(f"{to_hex(p.payee)}  {p.shares:>3}  {p.amount}")
    typer.echo(f"distributed={plan.distributed} retained={plan.retained}")
    total = sum(p.shares for p in plan.payouts)
    if total > SHARE_BASIS:
        typer.secho(f"warning: shares sum to {total} > {SHARE_BASIS}", fg=typer.colors.YELLOW, err=True)


@app.command("config")
def cmd_config() -> None:
    """Print the effective configuration as JSON."""
    typer.echo(json.dumps(load_config().as_dict(), indent=2, sort_keys=True))


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override VOUCHERS_LOG_LEVEL."),
    log_format: Optional[str] = typer.Option(None, "--log-format", help="console | json"),
) -> None:
    setup_logging(level=log_level, log_format=log_format)


def get_app() -> typer.Typer:
    return app


if __name__ == "__main__":
    app()
