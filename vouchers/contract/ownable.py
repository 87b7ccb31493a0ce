# -*- coding: utf-8 -*-
"""
vouchers.contract.ownable
=========================

Single-owner access control for the voucher contract.

- The owner is set once at construction (`init_owner`) and can only change
  through `transfer_ownership`, called by the current owner.
- `require_owner(caller)` gates every administrative entry point; a mismatch
  raises NotOwner (code ``ACCESS:NOT_OWNER``).
- Storage key: ``b"access:owner"`` -> 20-byte address.
- Event: ``OwnershipTransferred {previous, new}``.

There is no renounce: a voucher contract without an owner could never update
its payees again, so the new owner must be a non-zero address.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final, Optional

from ..errors import NotOwner
from ..runtime.context import require_address, to_address, to_hex

if TYPE_CHECKING:  # pragma: no cover
    from ..runtime.host import Host

log = logging.getLogger(__name__)

OWNER_KEY: Final[bytes] = b"access:owner"


class Ownable:
    def __init__(self, host: "Host", address: bytes) -> None:
        self._host = host
        self._address = to_address(address)
        self._storage = host.storage(self._address)

    def owner(self) -> Optional[bytes]:
        v = self._storage.get(OWNER_KEY)
        return v if v else None

    def init_owner(self, owner: bytes) -> None:
        """Set the first owner. No-op if one is already recorded."""
        if self.owner() is not None:
            return
        acct = require_address(owner)
        self._storage.set(OWNER_KEY, acct)
        self._host.emit(self._address, b"OwnershipTransferred", {"previous": b"", "new": acct})

    def require_owner(self, caller: bytes) -> None:
        current = self.owner()
        if current is None or current != to_address(caller):
            raise NotOwner(caller=to_hex(to_address(caller)))

    def transfer_ownership(self, caller: bytes, new_owner: bytes) -> None:
        self.require_owner(caller)
        acct = require_address(new_owner)
        previous = self.owner() or b""
        self._storage.set(OWNER_KEY, acct)
        self._host.emit(self._address, b"OwnershipTransferred", {"previous": previous, "new": acct})
        log.info("ownership transferred previous=%s new=%s", to_hex(previous), to_hex(acct))


__all__ = ["OWNER_KEY", "Ownable"]
