# -*- coding: utf-8 -*-
"""
vouchers.contract.redeemer
==========================

`VoucherMinter`: the deployed voucher contract.

A trusted issuer signs a voucher off-line; anyone holding it can redeem it here
without further interaction from the issuer. Every redemption walks the same
checkpoints and stops at the first failure:

    Received -> Hashed -> Verified -> Authorized -> Settled
                  \\________\\___________\\____________-> Rejected

- **Hashed**: the domain-bound digest is computed. Purchase vouchers bind the
  caller's *current* nonce read from state, so a voucher whose nonce has been
  consumed hashes to a different digest and recovers an unrelated signer.
  Item claims carry no nonce.
- **Verified**: the signer is recovered from the signature
  (MalformedSignature if it cannot be).
- **Authorized**: the signer must hold the issuer role; for purchases the
  caller must also be the voucher's wallet (Unauthorized otherwise).
- **Settled**:
    * item claim: the ledger moves `items/amounts` from the signer to the
      caller (nothing is moved for an empty claim);
    * purchase: the attached payment must equal the price (PriceMismatch), the
      nonce is incremented, then the payment is distributed over the primary
      pool and `VoucherSold` is emitted.

Every public mutating call runs as one `Host.execute` call: any error reverts
all of its state and events and is re-raised to the caller. State is always
mutated before funds leave the contract, so a payee that re-enters while being
paid observes the incremented nonce. With `VOUCHERS_REENTRANCY_GUARD` enabled
a nested redemption is additionally refused with Reentrancy.

Plain payments (`receive`, or a native transfer to the contract address) are
royalty income and are distributed over the secondary pool.

Events
------
- VoucherSold   {wallet, targetContract, data}
- ItemsClaimed  {signer, to, items}
- plus the events of the registries, distributor and ownable helpers.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Final, Iterable, List, Optional, Sequence, Tuple

from ..auth.domain import DomainHasher
from ..auth.registry import MINTER_ROLE, AuthorizationRegistry
from ..auth.signature import recover_signer
from ..config import load_config
from ..errors import InvalidVoucher, PayeeListMismatch, PriceMismatch, Reentrancy, TransferFailed, Unauthorized, VoucherError
from ..runtime.context import to_address, to_hex
from ..settlement.distributor import SettlementDistributor, SplitPlan
from ..settlement.shares import Pool, ShareRegistry
from ..voucher import ItemClaimVoucher, PurchaseVoucher
from .ledger import TokenLedger
from .ownable import Ownable
from .royalty import RoyaltyConfig, RoyaltyStore

if TYPE_CHECKING:  # pragma: no cover
    from ..runtime.host import Host

log = logging.getLogger(__name__)

K_IN_PROGRESS: Final[bytes] = b"redeem:in_progress"


class RedemptionState(str, Enum):
    RECEIVED = "Received"
    HASHED = "Hashed"
    VERIFIED = "Verified"
    AUTHORIZED = "Authorized"
    SETTLED = "Settled"
    REJECTED = "Rejected"


@dataclass(frozen=True)
class Redemption:
    """Outcome of a successful redemption."""

    kind: str
    state: RedemptionState
    signer: bytes
    digest: bytes
    nonce: Optional[int] = None
    split: Optional[SplitPlan] = None


class _Progress:
    """Tracks the checkpoint a redemption has reached."""

    __slots__ = ("kind", "state")

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self.state = RedemptionState.RECEIVED
        log.debug("redemption kind=%s state=%s", kind, self.state.value)

    def advance(self, state: RedemptionState) -> None:
        self.state = state
        log.debug("redemption kind=%s state=%s", self.kind, state.value)

    def reject(self, exc: VoucherError) -> None:
        exc.details.setdefault("stage", self.state.value)
        log.warning("redemption rejected kind=%s stage=%s code=%s", self.kind, self.state.value, exc.code)
        self.state = RedemptionState.REJECTED


class VoucherMinter:
    """Voucher redemption and proportional settlement, deployed on a Host."""

    def __init__(
        self,
        host: "Host",
        address: bytes,
        *,
        owner: bytes,
        ledger: Optional[TokenLedger] = None,
        issuers: Iterable[bytes] = (),
        royalty_receiver: Optional[bytes] = None,
        royalty_percent: int = 0,
    ) -> None:
        self._host = host
        self.address = to_address(address)
        self._storage = host.storage(self.address)
        self._ledger = ledger

        self._ownable = Ownable(host, self.address)
        self._auth = AuthorizationRegistry(host, self.address)
        self._shares = ShareRegistry(host, self.address)
        self._distributor = SettlementDistributor(host, self.address, self._shares)
        self._royalty = RoyaltyStore(host, self.address)
        self.hasher = DomainHasher.for_contract(host.chain_id, self.address)

        self._ownable.init_owner(owner)
        for issuer in issuers:
            self._auth.grant_role(MINTER_ROLE, issuer, sender=owner)
        if royalty_receiver is not None or royalty_percent:
            self._royalty.set(royalty_receiver or self.address, royalty_percent)

        host.register_receiver(self.address, self._on_native_receive)

    # ------------------------------------------------------------------ #
    # Redemption
    # ------------------------------------------------------------------ #

    def redeem_item_voucher(self, caller: bytes, voucher: ItemClaimVoucher) -> Redemption:
        who = to_address(caller)
        return self._host.execute(who, self.address, lambda: self._guarded(lambda: self._redeem_item(who, voucher)))

    def redeem_purchase_voucher(self, caller: bytes, voucher: PurchaseVoucher, attached_payment: int) -> Redemption:
        who = to_address(caller)
        return self._host.execute(
            who,
            self.address,
            lambda: self._guarded(lambda: self._redeem_purchase(who, voucher, attached_payment)),
            value=attached_payment,
        )

    def receive(self, caller: bytes, amount: int) -> SplitPlan:
        """Accept a plain payment and split it over the secondary pool."""
        return self._host.execute(
            caller, self.address, lambda: self._distributor.distribute(Pool.SECONDARY, amount), value=amount
        )

    def _on_native_receive(self, host: "Host", sender: bytes, amount: int) -> bool:
        self._distributor.distribute(Pool.SECONDARY, amount)
        return True

    def _guarded(self, fn):
        if not load_config().reentrancy_guard:
            return fn()
        if self._storage.get_flag(K_IN_PROGRESS):
            raise Reentrancy("redemption already in progress")
        self._storage.set_flag(K_IN_PROGRESS, True)
        try:
            return fn()
        finally:
            self._storage.set_flag(K_IN_PROGRESS, False)

    def _recover(self, progress: _Progress, digest: bytes, signature: bytes) -> bytes:
        signer = recover_signer(digest, signature)
        progress.advance(RedemptionState.VERIFIED)
        if not self._auth.is_authorized_issuer(signer):
            raise Unauthorized("signer is not an authorized issuer", signer=to_hex(signer))
        return signer

    def _redeem_item(self, caller: bytes, voucher: ItemClaimVoucher) -> Redemption:
        progress = _Progress(ItemClaimVoucher.kind)
        try:
            if not isinstance(voucher, ItemClaimVoucher):
                raise InvalidVoucher("expected an item claim voucher", details={"type": type(voucher).__name__})
            digest = self.hasher.item_digest(voucher)
            progress.advance(RedemptionState.HASHED)
            signer = self._recover(progress, digest, voucher.signature)
            progress.advance(RedemptionState.AUTHORIZED)

            if not voucher.is_empty:
                if self._ledger is None:
                    raise TransferFailed("no token ledger configured", to=to_hex(caller))
                self._ledger.safe_batch_transfer_from(
                    self.address, signer, caller, voucher.items, voucher.amounts, voucher.data
                )
            self._host.emit(self.address, b"ItemsClaimed", {"signer": signer, "to": caller, "items": len(voucher.items)})
        except VoucherError as exc:
            progress.reject(exc)
            raise
        progress.advance(RedemptionState.SETTLED)
        log.info("item voucher redeemed signer=%s to=%s items=%d", to_hex(signer), to_hex(caller), len(voucher.items))
        return Redemption(kind=progress.kind, state=progress.state, signer=signer, digest=digest)

    def _redeem_purchase(self, caller: bytes, voucher: PurchaseVoucher, attached_payment: int) -> Redemption:
        progress = _Progress(PurchaseVoucher.kind)
        try:
            if not isinstance(voucher, PurchaseVoucher):
                raise InvalidVoucher("expected a purchase voucher", details={"type": type(voucher).__name__})
            nonce = self._auth.current_nonce(caller)
            digest = self.hasher.purchase_digest(voucher, nonce)
            progress.advance(RedemptionState.HASHED)
            signer = self._recover(progress, digest, voucher.signature)
            if voucher.wallet != caller:
                raise Unauthorized("caller is not the voucher wallet", caller=to_hex(caller))
            progress.advance(RedemptionState.AUTHORIZED)

            if attached_payment != voucher.price:
                raise PriceMismatch(expected=voucher.price, attached=attached_payment)
            self._auth.increment_nonce(caller)
            plan = self._distributor.distribute(Pool.PRIMARY, voucher.price)
            self._host.emit(
                self.address,
                b"VoucherSold",
                {"wallet": voucher.wallet, "targetContract": voucher.target_contract, "data": voucher.data},
            )
        except VoucherError as exc:
            progress.reject(exc)
            raise
        progress.advance(RedemptionState.SETTLED)
        log.info("purchase voucher redeemed wallet=%s price=%d nonce=%d", to_hex(caller), voucher.price, nonce)
        return Redemption(
            kind=progress.kind, state=progress.state, signer=signer, digest=digest, nonce=nonce, split=plan
        )

    # ------------------------------------------------------------------ #
    # Administration (owner-gated)
    # ------------------------------------------------------------------ #

    def _admin(self, caller: bytes, fn):
        def body():
            self._ownable.require_owner(caller)
            return fn()

        return self._host.execute(caller, self.address, body)

    def update_pool_payees(
        self,
        caller: bytes,
        pool: Pool | str,
        remove_list: Sequence[bytes],
        add_list: Sequence[bytes],
        shares: Sequence[int],
    ) -> None:
        """Remove `remove_list`, then add `add_list[i]` with `shares[i]`, atomically."""
        p = Pool.parse(pool)

        def body() -> None:
            if len(add_list) != len(shares):
                raise PayeeListMismatch(
                    "add_list and shares length mismatch", details={"add": len(add_list), "shares": len(shares)}
                )
            for payee in remove_list:
                self._shares.remove_payee(p, payee)
            for payee, weight in zip(add_list, shares):
                self._shares.add_payee(p, payee, weight)

        self._admin(caller, body)

    def grant_issuer(self, caller: bytes, account: bytes) -> bool:
        return self._admin(caller, lambda: self._auth.grant_role(MINTER_ROLE, account, sender=caller))

    def revoke_issuer(self, caller: bytes, account: bytes) -> bool:
        return self._admin(caller, lambda: self._auth.revoke_role(MINTER_ROLE, account, sender=caller))

    def set_royalty(self, caller: bytes, receiver: bytes, percent: int) -> RoyaltyConfig:
        return self._admin(caller, lambda: self._royalty.set(receiver, percent))

    def transfer_ownership(self, caller: bytes, new_owner: bytes) -> None:
        self._host.execute(caller, self.address, lambda: self._ownable.transfer_ownership(caller, new_owner))

    # ------------------------------------------------------------------ #
    # Views
    # ------------------------------------------------------------------ #

    def owner(self) -> Optional[bytes]:
        return self._ownable.owner()

    def shares_of(self, pool: Pool | str, addresses: Iterable[bytes]) -> List[int]:
        return self._shares.shares_of(pool, addresses)

    def list_payees(self, pool: Pool | str) -> List[bytes]:
        return self._shares.list_payees(pool)

    def total_shares(self, pool: Pool | str) -> int:
        return self._shares.total_shares(pool)

    def current_nonce(self, account: bytes) -> int:
        return self._auth.current_nonce(account)

    def is_authorized_issuer(self, account: bytes) -> bool:
        return self._auth.is_authorized_issuer(account)

    def royalty_info(self, sale_price: int) -> Tuple[bytes, int]:
        return self._royalty.royalty_info(sale_price)

    def domain_separator(self) -> bytes:
        return self.hasher.separator

    def item_voucher_digest(self, voucher: ItemClaimVoucher) -> bytes:
        return self.hasher.item_digest(voucher)

    def purchase_voucher_digest(self, voucher: PurchaseVoucher, nonce: Optional[int] = None) -> bytes:
        """Digest an issuer must sign; `nonce` defaults to the wallet's current nonce."""
        if nonce is None:
            nonce = self._auth.current_nonce(voucher.wallet)
        return self.hasher.purchase_digest(voucher, nonce)


__all__ = ["K_IN_PROGRESS", "RedemptionState", "Redemption", "VoucherMinter"]
