# -*- coding: utf-8 -*-
"""
vouchers.contract.ledger
========================

The token ledger the redeemer settles item claims against.

The redeemer consumes exactly one capability from it, captured by the
`TokenLedger` protocol: move a batch of `(id, amount)` pairs from one holder to
another on behalf of an operator. `MultiTokenLedger` is a small storage-backed
multi-token implementation of that protocol (ERC-1155-like) running on the
same `Host`, so its writes share the caller's journal frame and roll back with
it.

Public interface
----------------
# views
balance_of(account, token_id) -> int
is_approved_for_all(owner, operator) -> bool

# state-changing (explicit caller)
mint(caller, to, token_id, amount)                     owner-gated
set_approval_for_all(caller, operator, approved)
safe_batch_transfer_from(operator, frm, to, ids, amounts, data)

Storage layout
--------------
    b"mt:bal:" + u256(id) + account        -> u256 balance
    b"mt:op:"  + owner + operator          -> flag

Events
------
- TransferSingle {operator, from, to, id, value}     one per moved id
- ApprovalForAll {owner, operator, approved}

Receiver hooks
--------------
`register_receiver(account, hook)` installs
`hook(operator, frm, ids, amounts, data) -> Optional[bool]` for an account.
A hook returning False or raising rejects the batch with TransferFailed.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Dict, Final, Optional, Protocol, Sequence, runtime_checkable

from ..errors import InvalidVoucher, TransferFailed, Unauthorized
from ..runtime.context import require_address, to_address, to_hex
from ..runtime.storage_api import u256_to_bytes
from .ownable import Ownable

if TYPE_CHECKING:  # pragma: no cover
    from ..runtime.host import Host

log = logging.getLogger(__name__)

_P_BAL: Final[bytes] = b"mt:bal:"
_P_OP: Final[bytes] = b"mt:op:"

ItemReceiver = Callable[[bytes, bytes, Sequence[int], Sequence[int], bytes], Optional[bool]]


@runtime_checkable
class TokenLedger(Protocol):
    def safe_batch_transfer_from(
        self,
        operator: bytes,
        frm: bytes,
        to: bytes,
        ids: Sequence[int],
        amounts: Sequence[int],
        data: bytes,
    ) -> None:
        ...


class MultiTokenLedger:
    """In-host multi-token balances with operator approvals."""

    def __init__(self, host: "Host", address: bytes, *, owner: bytes) -> None:
        self._host = host
        self.address = to_address(address)
        self._storage = host.storage(self.address)
        self._ownable = Ownable(host, self.address)
        self._ownable.init_owner(owner)
        self._receivers: Dict[bytes, ItemReceiver] = {}

    # ---- keys ----------------------------------------------------------------

    @staticmethod
    def _k_bal(token_id: int, account: bytes) -> bytes:
        return _P_BAL + u256_to_bytes(token_id) + account

    @staticmethod
    def _k_op(owner: bytes, operator: bytes) -> bytes:
        return _P_OP + owner + operator

    # ---- views ---------------------------------------------------------------

    def balance_of(self, account: bytes, token_id: int) -> int:
        return self._storage.get_u256(self._k_bal(token_id, to_address(account)))

    def is_approved_for_all(self, owner: bytes, operator: bytes) -> bool:
        return self._storage.get_flag(self._k_op(to_address(owner), to_address(operator)))

    # ---- mutations -----------------------------------------------------------

    def register_receiver(self, account: bytes, hook: Optional[ItemReceiver]) -> None:
        acct = to_address(account)
        if hook is None:
            self._receivers.pop(acct, None)
        else:
            self._receivers[acct] = hook

    def mint(self, caller: bytes, to: bytes, token_id: int, amount: int) -> None:
        self._ownable.require_owner(caller)
        acct = require_address(to)
        if amount < 0:
            raise InvalidVoucher("amount must be non-negative", details={"amount": amount})
        key = self._k_bal(token_id, acct)
        self._storage.set_u256(key, self._storage.get_u256(key) + amount)
        self._host.emit(
            self.address,
            b"TransferSingle",
            {"operator": to_address(caller), "from": b"", "to": acct, "id": token_id, "value": amount},
        )

    def set_approval_for_all(self, caller: bytes, operator: bytes, approved: bool) -> None:
        owner = to_address(caller)
        op = require_address(operator)
        self._storage.set_flag(self._k_op(owner, op), approved)
        self._host.emit(self.address, b"ApprovalForAll", {"owner": owner, "operator": op, "approved": bool(approved)})

    def safe_batch_transfer_from(
        self,
        operator: bytes,
        frm: bytes,
        to: bytes,
        ids: Sequence[int],
        amounts: Sequence[int],
        data: bytes = b"",
    ) -> None:
        op = to_address(operator)
        src = to_address(frm)
        dst = require_address(to)
        if len(ids) != len(amounts):
            raise InvalidVoucher("ids and amounts length mismatch", details={"ids": len(ids), "amounts": len(amounts)})
        if op != src and not self.is_approved_for_all(src, op):
            raise Unauthorized("operator not approved", caller=to_hex(op), details={"holder": to_hex(src)})

        for token_id, amount in zip(ids, amounts):
            k_src = self._k_bal(token_id, src)
            have = self._storage.get_u256(k_src)
            if amount > have:
                raise TransferFailed(
                    "insufficient item balance",
                    to=to_hex(dst),
                    amount=amount,
                    details={"id": token_id, "balance": have},
                )
            self._storage.set_u256(k_src, have - amount)
            k_dst = self._k_bal(token_id, dst)
            self._storage.set_u256(k_dst, self._storage.get_u256(k_dst) + amount)
            self._host.emit(
                self.address,
                b"TransferSingle",
                {"operator": op, "from": src, "to": dst, "id": token_id, "value": amount},
            )

        hook = self._receivers.get(dst)
        if hook is not None:
            try:
                accepted = hook(op, src, tuple(ids), tuple(amounts), bytes(data))
            except Exception as exc:
                raise TransferFailed("item receiver reverted", to=to_hex(dst)) from exc
            if accepted is False:
                raise TransferFailed("item receiver rejected batch", to=to_hex(dst))
        log.debug("item batch moved operator=%s from=%s to=%s ids=%d", to_hex(op), to_hex(src), to_hex(dst), len(ids))


__all__ = ["TokenLedger", "MultiTokenLedger", "ItemReceiver"]
