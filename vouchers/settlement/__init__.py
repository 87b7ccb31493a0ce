"""Proportional settlement: share pools and the pro-rata distributor."""

from .distributor import Payout, SettlementDistributor, SplitPlan, entitlement, plan_split
from .shares import Pool, ShareRegistry

__all__ = [
    "Pool",
    "ShareRegistry",
    "Payout",
    "SplitPlan",
    "SettlementDistributor",
    "entitlement",
    "plan_split",
]
