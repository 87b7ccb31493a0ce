"""
Deployed contract surface: the voucher minter plus its access-control, royalty
and token-ledger collaborators.
"""

from .ledger import MultiTokenLedger, TokenLedger
from .ownable import Ownable
from .redeemer import Redemption, RedemptionState, VoucherMinter
from .royalty import RoyaltyConfig, RoyaltyStore

__all__ = [
    "VoucherMinter",
    "Redemption",
    "RedemptionState",
    "TokenLedger",
    "MultiTokenLedger",
    "Ownable",
    "RoyaltyConfig",
    "RoyaltyStore",
]
