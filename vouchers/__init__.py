"""
Animica vouchers: signed off-line vouchers redeemed on-chain, with
proportional settlement of purchase payments.

Public surface:

- ItemClaimVoucher / PurchaseVoucher: the payloads an issuer signs
- VoucherMinter: the deployed contract (redemption, payee admin, views)
- Host: deterministic execution host that runs every call atomically
- DomainHasher / sign_digest / recover_signer: issuer-side tooling
"""

from __future__ import annotations

from .version import __version__
from .auth import DomainHasher, MINTER_ROLE, recover_signer, sign_digest
from .config import SHARE_BASIS, VoucherConfig, load_config
from .contract import MultiTokenLedger, Redemption, RedemptionState, VoucherMinter
from .errors import VoucherError
from .runtime import ChainEnv, Host
from .settlement import Pool
from .voucher import ItemClaimVoucher, PurchaseVoucher, Voucher, voucher_from_dict


def version() -> str:
    """Return the vouchers package version string."""
    return __version__


__all__ = [
    "__version__",
    "version",
    "Voucher",
    "ItemClaimVoucher",
    "PurchaseVoucher",
    "voucher_from_dict",
    "DomainHasher",
    "MINTER_ROLE",
    "recover_signer",
    "sign_digest",
    "SHARE_BASIS",
    "VoucherConfig",
    "load_config",
    "VoucherMinter",
    "MultiTokenLedger",
    "Redemption",
    "RedemptionState",
    "VoucherError",
    "ChainEnv",
    "Host",
    "Pool",
]
