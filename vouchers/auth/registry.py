# -*- coding: utf-8 -*-
"""
vouchers.auth.registry
======================

Who may issue vouchers, and the per-redeemer purchase nonces.

Design goals
------------
- **Single predicate**: callers only ever ask `is_authorized_issuer(addr)`.
  Internally the capability is a bytes32 role (`MINTER_ROLE`) in a role table,
  so further roles can be added without touching call sites.
- **Deterministic storage**: canonical keys with explicit namespacing.
- **Idempotent role operations**: granting an existing role or revoking a
  missing one is a no-op and emits nothing.
- **Monotonic nonces**: a redeemer's nonce starts at zero and only ever goes up,
  by exactly one per successful purchase redemption.

Storage layout
--------------
- Member flag:  b"access:role:member:" + role + b":" + account  → b"\\x01"
- Nonce:        b"auth:nonce:" + account                         → u256

Events
------
- RoleGranted {role, account, sender}
- RoleRevoked {role, account, sender}
- NonceConsumed {account, nonce}

Role administration is owner-gated at the contract surface; this module does
not check the caller.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from ..runtime.context import require_address, to_address, to_hex
from ..runtime.hash_api import keccak256

if TYPE_CHECKING:  # pragma: no cover
    from ..runtime.host import Host

log = logging.getLogger(__name__)

ROLE_MEMBER_PREFIX: Final[bytes] = b"access:role:member:"
NONCE_PREFIX: Final[bytes] = b"auth:nonce:"


def derive_role_id(name: bytes) -> bytes:
    """bytes32 role id = keccak256(name)."""
    if not name:
        raise ValueError("role name must be non-empty")
    return keccak256(name)


MINTER_ROLE: Final[bytes] = derive_role_id(b"MINTER_ROLE")


def _normalize_role(role: bytes) -> bytes:
    if len(role) != 32:
        raise ValueError("role id must be 32 bytes")
    return bytes(role)


class AuthorizationRegistry:
    """Role table + nonce table stored under one contract's address."""

    def __init__(self, host: "Host", address: bytes) -> None:
        self._host = host
        self._address = to_address(address)
        self._storage = host.storage(self._address)

    # ---- keys ----------------------------------------------------------------

    @staticmethod
    def _k_member(role: bytes, account: bytes) -> bytes:
        return ROLE_MEMBER_PREFIX + _normalize_role(role) + b":" + account

    @staticmethod
    def _k_nonce(account: bytes) -> bytes:
        return NONCE_PREFIX + account

    # ---- roles ---------------------------------------------------------------

    def has_role(self, role: bytes, account: bytes) -> bool:
        return self._storage.get_flag(self._k_member(role, to_address(account)))

    def is_authorized_issuer(self, account: bytes) -> bool:
        return self.has_role(MINTER_ROLE, account)

    def grant_role(self, role: bytes, account: bytes, *, sender: bytes) -> bool:
        acct = require_address(account)
        key = self._k_member(role, acct)
        if self._storage.get_flag(key):
            return False
        self._storage.set_flag(key, True)
        self._host.emit(self._address, b"RoleGranted", {"role": role, "account": acct, "sender": to_address(sender)})
        log.info("role granted role=%s account=%s", role.hex()[:16], to_hex(acct))
        return True

    def revoke_role(self, role: bytes, account: bytes, *, sender: bytes) -> bool:
        acct = to_address(account)
        key = self._k_member(role, acct)
        if not self._storage.get_flag(key):
            return False
        self._storage.set_flag(key, False)
        self._host.emit(self._address, b"RoleRevoked", {"role": role, "account": acct, "sender": to_address(sender)})
        log.info("role revoked role=%s account=%s", role.hex()[:16], to_hex(acct))
        return True

    # ---- nonces --------------------------------------------------------------

    def current_nonce(self, account: bytes) -> int:
        return self._storage.get_u256(self._k_nonce(to_address(account)))

    def increment_nonce(self, account: bytes) -> int:
        """
        Increment `account`'s nonce; returns the value that was consumed.
        Only the redeemer calls this, once per successful purchase.
        """
        acct = to_address(account)
        n = self.current_nonce(acct)
        self._storage.set_u256(self._k_nonce(acct), n + 1)
        self._host.emit(self._address, b"NonceConsumed", {"account": acct, "nonce": n})
        return n


__all__ = [
    "MINTER_ROLE",
    "ROLE_MEMBER_PREFIX",
    "NONCE_PREFIX",
    "derive_role_id",
    "AuthorizationRegistry",
]
