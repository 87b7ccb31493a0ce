"""
Pro-rata settlement of an incoming payment across a share pool.

Each payee of the pool receives

    floor(amount * shares / SHARE_BASIS)          (SHARE_BASIS == 100)

in the registry's enumeration order. Integer rounding is deterministic and
favors the pool: the dust `amount - sum(payouts)` is not assigned to anyone and
stays in the contract balance.

The pool is read once into a snapshot before the first transfer, so a payee
that re-enters the contract while being paid cannot change who else gets paid
in this distribution. Transfers run inside the caller's atomic call frame: if
any recipient rejects its funds, TransferFailed propagates and the host rolls
the whole call back (no partial distribution is observable).

Over-allocation (shares summing to more than 100) is not rejected: payouts
beyond the incoming amount are drawn from the contract's retained balance, and
fail with TransferFailed when that balance cannot cover them.

Example
-------
>>> plan_split("primary", 101, [(a, 60), (b, 40)]).payouts
(Payout(payee=a, shares=60, amount=60), Payout(payee=b, shares=40, amount=40))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Tuple

from ..config import SHARE_BASIS
from ..runtime.context import to_address, to_hex
from .shares import Pool, ShareRegistry

if TYPE_CHECKING:  # pragma: no cover
    from ..runtime.host import Host

log = logging.getLogger(__name__)

Amount = int  # smallest currency unit


@dataclass(frozen=True)
class Payout:
    payee: bytes
    shares: int
    amount: Amount


@dataclass(frozen=True)
class SplitPlan:
    """
    Result of splitting `amount` over a pool snapshot.

    Attributes
    ----------
    retained : int
        `amount - distributed`. Negative when the pool is over-allocated and
        the difference must come out of the contract's existing balance.
    """

    pool: Pool
    amount: Amount
    payouts: Tuple[Payout, ...]

    @property
    def distributed(self) -> Amount:
        return sum(p.amount for p in self.payouts)

    @property
    def retained(self) -> Amount:
        return self.amount - self.distributed

    def to_dict(self) -> dict:
        return {
            "pool": self.pool.value,
            "amount": self.amount,
            "distributed": self.distributed,
            "retained": self.retained,
            "payouts": [
                {"payee": to_hex(p.payee), "shares": p.shares, "amount": p.amount} for p in self.payouts
            ],
        }


def entitlement(amount: Amount, shares: int) -> Amount:
    """floor(amount * shares / SHARE_BASIS)"""
    if amount < 0:
        raise ValueError(f"amount must be non-negative, got {amount}")
    if shares < 0:
        raise ValueError(f"shares must be non-negative, got {shares}")
    return (amount * shares) // SHARE_BASIS


def plan_split(pool: Pool | str, amount: Amount, snapshot: Iterable[Tuple[bytes, int]]) -> SplitPlan:
    """Pure split of `amount` over `(payee, shares)` pairs, in the given order."""
    payouts = tuple(Payout(payee=to_address(a), shares=s, amount=entitlement(amount, s)) for a, s in snapshot)
    return SplitPlan(pool=Pool.parse(pool), amount=amount, payouts=payouts)


class SettlementDistributor:
    """Moves a received payment out of the contract balance to a pool's payees."""

    def __init__(self, host: "Host", address: bytes, shares: ShareRegistry) -> None:
        self._host = host
        self._address = to_address(address)
        self._shares = shares

    def plan(self, pool: Pool | str, amount: Amount) -> SplitPlan:
        p = Pool.parse(pool)
        return plan_split(p, amount, self._shares.snapshot(p))

    def distribute(self, pool: Pool | str, amount: Amount) -> SplitPlan:
        """
        Pay every payee of `pool` its entitlement of `amount`. Must run inside
        a host call; any failed transfer raises TransferFailed.
        """
        if self._host.current_call is None:
            raise RuntimeError("distribute() must run inside a host call")
        plan = self.plan(pool, amount)
        for payout in plan.payouts:
            if payout.amount == 0:
                continue
            self._host.transfer(self._address, payout.payee, payout.amount)
            self._host.emit(
                self._address,
                b"PaymentReleased",
                {"pool": plan.pool.value, "payee": payout.payee, "amount": payout.amount},
            )
        self._host.emit(
            self._address,
            b"PaymentSplit",
            {"pool": plan.pool.value, "amount": amount, "distributed": plan.distributed, "retained": plan.retained},
        )
        log.info(
            "payment split pool=%s amount=%d payees=%d distributed=%d retained=%d",
            plan.pool.value, amount, len(plan.payouts), plan.distributed, plan.retained,
        )
        if plan.retained < 0:
            log.warning("over-allocated split drew %d from retained balance pool=%s", -plan.retained, plan.pool.value)
        return plan


__all__ = [
    "Amount",
    "Payout",
    "SplitPlan",
    "entitlement",
    "plan_split",
    "SettlementDistributor",
]
