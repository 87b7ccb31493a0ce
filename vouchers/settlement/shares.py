# -*- coding: utf-8 -*-
"""
vouchers.settlement.shares
==========================

Share registries for the two settlement pools ("primary" sale proceeds and
"secondary" royalty income). Each pool is an enumerable set of distinct payee
addresses, each bound to a positive integer share weight.

Key properties
--------------
- **Lock-step invariant**: an address is in the payee set iff its weight is
  non-zero. Adds and removes update both together.
- **Deterministic enumeration**: payees are listed in slot order. Adding
  appends; removing moves the last payee into the vacated slot (swap-and-pop),
  so enumeration after any sequence of operations is reproducible.
- **Percent weights**: shares are interpreted against the fixed basis
  `SHARE_BASIS` (100) by the distributor. The registry does not require a
  pool's shares to sum to 100; an over-allocated pool is accepted and logged.

Storage layout (`pool` is b"primary" or b"secondary", `i` a minimal big-endian index)
-------------------------------------------------------------------------------------
    "ps:n:"  + pool                   -> u256 payee count N
    "ps:ts:" + pool                   -> u256 sum of weights
    "ps:p:"  + pool + ":" + i         -> payee[i] (20-byte address)
    "ps:ix:" + pool + ":" + payee     -> u256 (i+1) reverse index (absent = not a payee)
    "ps:w:"  + pool + ":" + payee     -> u256 weight

Events
------
- PayeeAdded   {pool, account, shares}
- PayeeRemoved {pool, account, shares}

Revert codes
------------
SPLIT:ZERO_ADDR, SPLIT:ZERO_SHARES, SPLIT:DUP_PAYEE, SPLIT:UNKNOWN_PAYEE,
SPLIT:TOO_MANY_PAYEES
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Final, Iterable, List, Tuple

from ..config import SHARE_BASIS, load_config
from ..errors import DuplicatePayee, PayeeLimit, UnknownPayee, ZeroAddress, ZeroShare
from ..runtime.context import is_zero_address, to_address, to_hex

if TYPE_CHECKING:  # pragma: no cover
    from ..runtime.host import Host

log = logging.getLogger(__name__)

_P_N: Final[bytes] = b"ps:n:"
_P_TS: Final[bytes] = b"ps:ts:"
_P_PAY: Final[bytes] = b"ps:p:"
_P_IX: Final[bytes] = b"ps:ix:"
_P_W: Final[bytes] = b"ps:w:"


class Pool(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"

    @property
    def tag(self) -> bytes:
        return self.value.encode("ascii")

    @classmethod
    def parse(cls, value: "Pool | str") -> "Pool":
        if isinstance(value, Pool):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"unknown pool {value!r}; expected one of {[p.value for p in cls]}") from None


def _uvar(i: int) -> bytes:
    # Minimal big-endian encoding (no leading zeros) keeps keys compact & ordered
    if i == 0:
        return b"\x00"
    return i.to_bytes((i.bit_length() + 7) // 8, "big")


class ShareRegistry:
    """Both pools' payee sets and weights, stored under one contract's address."""

    def __init__(self, host: "Host", address: bytes) -> None:
        self._host = host
        self._address = to_address(address)
        self._storage = host.storage(self._address)

    # ---- keys ----------------------------------------------------------------

    @staticmethod
    def _k(prefix: bytes, pool: Pool) -> bytes:
        return prefix + pool.tag

    @staticmethod
    def _ki(prefix: bytes, pool: Pool, i: int) -> bytes:
        return prefix + pool.tag + b":" + _uvar(i)

    @staticmethod
    def _ka(prefix: bytes, pool: Pool, payee: bytes) -> bytes:
        return prefix + pool.tag + b":" + payee

    # ---- views ---------------------------------------------------------------

    def payee_count(self, pool: Pool | str) -> int:
        return self._storage.get_u256(self._k(_P_N, Pool.parse(pool)))

    def total_shares(self, pool: Pool | str) -> int:
        return self._storage.get_u256(self._k(_P_TS, Pool.parse(pool)))

    def payee_at(self, pool: Pool | str, i: int) -> bytes:
        p = Pool.parse(pool)
        if i < 0 or i >= self.payee_count(p):
            raise IndexError(f"payee index {i} out of range")
        return self._storage.get(self._ki(_P_PAY, p, i))

    def list_payees(self, pool: Pool | str) -> List[bytes]:
        p = Pool.parse(pool)
        return [self._storage.get(self._ki(_P_PAY, p, i)) for i in range(self.payee_count(p))]

    def share_of(self, pool: Pool | str, payee: bytes) -> int:
        return self._storage.get_u256(self._ka(_P_W, Pool.parse(pool), to_address(payee)))

    def shares_of(self, pool: Pool | str, payees: Iterable[bytes]) -> List[int]:
        p = Pool.parse(pool)
        return [self.share_of(p, a) for a in payees]

    def snapshot(self, pool: Pool | str) -> Tuple[Tuple[bytes, int], ...]:
        """(payee, weight) pairs in enumeration order, read in one pass."""
        p = Pool.parse(pool)
        return tuple((a, self.share_of(p, a)) for a in self.list_payees(p))

    # ---- mutations -----------------------------------------------------------

    def add_payee(self, pool: Pool | str, payee: bytes, shares: int) -> None:
        p = Pool.parse(pool)
        if is_zero_address(payee):
            raise ZeroAddress("payee is the zero address", details={"pool": p.value})
        acct = to_address(payee)
        if not isinstance(shares, int) or isinstance(shares, bool) or shares <= 0:
            raise ZeroShare("shares must be positive", details={"pool": p.value, "shares": shares})
        if self.share_of(p, acct) != 0:
            raise DuplicatePayee("payee already has shares", details={"pool": p.value, "account": to_hex(acct)})

        n = self.payee_count(p)
        limit = load_config().max_payees
        if n >= limit:
            raise PayeeLimit("pool is full", details={"pool": p.value, "limit": limit})
        ts = self.total_shares(p) + shares

        self._storage.set(self._ki(_P_PAY, p, n), acct)
        self._storage.set_u256(self._ka(_P_IX, p, acct), n + 1)
        self._storage.set_u256(self._ka(_P_W, p, acct), shares)
        self._storage.set_u256(self._k(_P_N, p), n + 1)
        self._storage.set_u256(self._k(_P_TS, p), ts)

        self._host.emit(self._address, b"PayeeAdded", {"pool": p.value, "account": acct, "shares": shares})
        log.info("payee added pool=%s account=%s shares=%d total=%d", p.value, to_hex(acct), shares, ts)
        if ts > SHARE_BASIS:
            log.warning("pool over-allocated pool=%s total_shares=%d basis=%d", p.value, ts, SHARE_BASIS)

    def remove_payee(self, pool: Pool | str, payee: bytes) -> None:
        p = Pool.parse(pool)
        acct = to_address(payee)
        shares = self.share_of(p, acct)
        if shares == 0:
            raise UnknownPayee("payee has no shares", details={"pool": p.value, "account": to_hex(acct)})

        n = self.payee_count(p)
        idx = self._storage.get_u256(self._ka(_P_IX, p, acct)) - 1
        last = n - 1
        if idx != last:
            moved = self._storage.get(self._ki(_P_PAY, p, last))
            self._storage.set(self._ki(_P_PAY, p, idx), moved)
            self._storage.set_u256(self._ka(_P_IX, p, moved), idx + 1)
        self._storage.delete(self._ki(_P_PAY, p, last))
        self._storage.delete(self._ka(_P_IX, p, acct))
        self._storage.delete(self._ka(_P_W, p, acct))
        self._storage.set_u256(self._k(_P_N, p), last)
        self._storage.set_u256(self._k(_P_TS, p), self.total_shares(p) - shares)

        self._host.emit(self._address, b"PayeeRemoved", {"pool": p.value, "account": acct, "shares": shares})
        log.info("payee removed pool=%s account=%s shares=%d", p.value, to_hex(acct), shares)


__all__ = ["Pool", "ShareRegistry"]
