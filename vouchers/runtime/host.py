"""
vouchers.runtime.host: deterministic single-threaded call host.

The Host plays the role the chain plays for a deployed contract:

- it owns the persisted state (a Journal of balances + per-contract storage)
  and the event log;
- it executes every call atomically: a checkpoint is opened, the attached
  value is moved to the callee, the call body runs, and the checkpoint is
  committed on success or reverted on *any* exception (which is re-raised);
- it moves native funds between accounts and invokes the recipient's receive
  hook, which may accept, reject, or call back into contracts (reentrancy).

Calls are strictly serialized by a re-entrant lock: a nested call from a
receive hook runs on the same thread inside the outer call's frame, while an
unrelated thread waits until the outer call has finished.

Receive hooks
-------------
A hook is `hook(host, sender, amount) -> Optional[bool]`. Returning False or
raising rejects the transfer; the hook's own writes are discarded and the
transfer raises TransferFailed in the caller's frame.

Typical usage
-------------
    host = Host(ChainEnv(chain_id=1337))
    host.mint(alice, 1_000)
    minter = host.deploy(alice, lambda h, addr: VoucherMinter(h, addr, owner=alice))
    host.execute(alice, minter.address, lambda: minter.do_something(), value=10)
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, TypeVar

from ..config import load_config
from ..errors import InsufficientBalance, TransferFailed
from ..logging import bind_call_context, clear_call_context
from .context import CallEnv, ChainEnv, to_address, to_hex
from .events_api import Event, EventLog
from .hash_api import keccak256
from .journal import Journal
from .storage_api import ContractStorage, u256_to_bytes

log = logging.getLogger(__name__)

T = TypeVar("T")

ReceiveHook = Callable[["Host", bytes, int], Optional[bool]]


class Host:
    """In-process execution host: state, events, calls and native transfers."""

    def __init__(self, chain: Optional[ChainEnv] = None, *, journal: Optional[Journal] = None) -> None:
        self.chain = chain or ChainEnv(chain_id=load_config().chain_id)
        self.journal = journal or Journal()
        self.events = EventLog()
        self._hooks: Dict[bytes, ReceiveHook] = {}
        self._deploy_nonces: Dict[bytes, int] = {}
        self._frames: List[CallEnv] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ #
    # Environment
    # ------------------------------------------------------------------ #

    @property
    def chain_id(self) -> int:
        return self.chain.chain_id

    @property
    def current_call(self) -> Optional[CallEnv]:
        return self._frames[-1] if self._frames else None

    @property
    def depth(self) -> int:
        return len(self._frames)

    def storage(self, address: bytes) -> ContractStorage:
        return ContractStorage(self.journal, to_address(address))

    # ------------------------------------------------------------------ #
    # Balances
    # ------------------------------------------------------------------ #

    def balance_of(self, address: bytes) -> int:
        return self.journal.get_balance(to_address(address))

    def mint(self, address: bytes, amount: int) -> None:
        """Host/testing helper: create native funds out of thin air."""
        if amount < 0:
            raise ValueError("amount must be non-negative")
        addr = to_address(address)
        self.journal.set_balance(addr, self.journal.get_balance(addr) + amount)
        if not self._frames:
            self.journal.flush()

    def _move(self, frm: bytes, to: bytes, amount: int) -> None:
        cur = self.journal.get_balance(frm)
        if amount > cur:
            raise InsufficientBalance(address=to_hex(frm), balance=cur, amount=amount)
        self.journal.set_balance(frm, cur - amount)
        self.journal.set_balance(to, self.journal.get_balance(to) + amount)

    def register_receiver(self, address: bytes, hook: Optional[ReceiveHook]) -> None:
        """Install (or remove with None) the receive hook for `address`."""
        addr = to_address(address)
        if hook is None:
            self._hooks.pop(addr, None)
        else:
            self._hooks[addr] = hook

    def transfer(self, frm: bytes, to: bytes, amount: int) -> None:
        """
        Move `amount` native units and notify the recipient.

        Any failure (insufficient funds, a hook returning False or raising)
        raises TransferFailed. Only the hook's own frame is discarded here; the
        caller decides whether the error aborts its call.
        """
        frm_b = to_address(frm)
        to_b = to_address(to)
        if amount < 0:
            raise ValueError("amount must be non-negative")

        with self._lock:
            env = CallEnv(sender=frm_b, to=to_b, value=amount, depth=len(self._frames) + 1)
            marker = self.journal.begin()
            ev_mark = self.events.mark()
            self._frames.append(env)
            try:
                try:
                    self._move(frm_b, to_b, amount)
                except InsufficientBalance as exc:
                    raise TransferFailed("insufficient funds for transfer", to=to_hex(to_b), amount=amount) from exc
                hook = self._hooks.get(to_b)
                if hook is not None:
                    try:
                        accepted = hook(self, frm_b, amount)
                    except Exception as exc:
                        raise TransferFailed("recipient reverted", to=to_hex(to_b), amount=amount) from exc
                    if accepted is False:
                        raise TransferFailed("recipient rejected funds", to=to_hex(to_b), amount=amount)
            except BaseException:
                self.journal.revert_to(marker - 1)
                self.events.truncate(ev_mark)
                raise
            else:
                self.journal.commit_to(marker - 1)
            finally:
                self._frames.pop()

    # ------------------------------------------------------------------ #
    # Calls
    # ------------------------------------------------------------------ #

    def execute(self, sender: bytes, to: bytes, fn: Callable[[], T], *, value: int = 0) -> T:
        """
        Run `fn` as one atomic call from `sender` to contract `to` with `value`
        attached. State and events are committed only if `fn` returns.
        """
        sender_b = to_address(sender)
        to_b = to_address(to)
        with self._lock:
            top_level = not self._frames
            env = CallEnv(sender=sender_b, to=to_b, value=value, depth=len(self._frames) + 1)
            marker = self.journal.begin()
            ev_mark = self.events.mark()
            self._frames.append(env)
            if top_level:
                bind_call_context(caller=to_hex(sender_b), contract=to_hex(to_b))
            try:
                if value:
                    self._move(sender_b, to_b, value)
                result = fn()
            except BaseException as exc:
                self.journal.revert_to(marker - 1)
                self.events.truncate(ev_mark)
                log.debug("call reverted depth=%d reason=%s", len(self._frames), getattr(exc, "code", type(exc).__name__))
                raise
            else:
                self.journal.commit_to(marker - 1)
                if top_level:
                    self.journal.flush()
                return result
            finally:
                self._frames.pop()
                if top_level:
                    clear_call_context("caller", "contract")

    def emit(self, address: bytes, name: bytes, args: Dict[str, Any]) -> Event:
        return self.events.emit(address, name, args)

    # ------------------------------------------------------------------ #
    # Deployment
    # ------------------------------------------------------------------ #

    def next_address(self, deployer: bytes) -> bytes:
        """Deterministic contract address = keccak(deployer ‖ u256(nonce))[12:]."""
        dep = to_address(deployer)
        nonce = self._deploy_nonces.get(dep, 0)
        return keccak256(b"animica:deploy:" + dep + u256_to_bytes(nonce))[12:]

    def deploy(self, deployer: bytes, factory: Callable[["Host", bytes], T]) -> T:
        """
        Construct a contract at the next deterministic address for `deployer`.
        The constructor runs as an atomic call from `deployer`.
        """
        dep = to_address(deployer)
        address = self.next_address(dep)
        contract = self.execute(dep, address, lambda: factory(self, address))
        self._deploy_nonces[dep] = self._deploy_nonces.get(dep, 0) + 1
        log.info("contract deployed address=%s deployer=%s", to_hex(address), to_hex(dep))
        return contract


__all__ = ["Host", "ReceiveHook"]
