"""
vouchers.runtime.journal: journaling writes, checkpoints, revert/commit.

This module provides a deterministic, in-memory write journal layered over a
balance mapping and per-address key/value storage. It supports nested
checkpoints via a stack of overlays. Writes go to the top overlay; reads
consult overlays from top → base. `commit()` merges the top overlay into the
next layer (or the base state if it's the last layer). `revert()` discards the
top overlay.

Key properties
--------------
- Pure Python, no I/O.
- Storage overlay per (address, key) with explicit deletion markers.
- Nested checkpoints (begin/commit/revert) with O(changes) merge cost.
- Deterministic behavior; no reliance on wall clock or randomness.

Intended usage
--------------
    j = Journal()
    j.begin()                       # start a checkpoint
    j.set_balance(addr, 123)
    j.storage_set(addr, key, b"value")
    j.commit()                      # apply to parent/base

The host opens one checkpoint per call (including re-entrant calls), so a
failing inner call only discards its own writes unless the outer call lets
the error propagate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, MutableMapping, Optional, Tuple

_MISSING = object()


def _b(x: bytes | bytearray | memoryview, *, name: str) -> bytes:
    if not isinstance(x, (bytes, bytearray, memoryview)):
        raise TypeError(f"{name} must be bytes-like")
    return bytes(x)


# =============================================================================
# Overlay model
# =============================================================================


@dataclass
class _Overlay:
    """
    A single journal layer.

    - `balances`: balances written in this layer.
    - `storage`: staged storage changes. `None` means deletion for that key.
    """

    balances: Dict[bytes, int] = field(default_factory=dict)
    storage: Dict[bytes, Dict[bytes, Optional[bytes]]] = field(default_factory=dict)

    def storage_get_local(self, addr: bytes, key: bytes) -> object:
        m = self.storage.get(addr)
        if m is None:
            return _MISSING
        return m.get(key, _MISSING)

    def storage_set_local(self, addr: bytes, key: bytes, value: Optional[bytes]) -> None:
        m = self.storage.get(addr)
        if m is None:
            m = {}
            self.storage[addr] = m
        m[key] = value


# =============================================================================
# Journal
# =============================================================================


class Journal:
    """
    A copy-on-write write journal with nested checkpoints.

    Parameters
    ----------
    balances : MutableMapping[bytes, int], optional
        The base (persisted) balance mapping.
    storage : MutableMapping[bytes, Dict[bytes, bytes]], optional
        The base storage, address → {key → value}.
    """

    def __init__(
        self,
        balances: Optional[MutableMapping[bytes, int]] = None,
        storage: Optional[MutableMapping[bytes, Dict[bytes, bytes]]] = None,
    ) -> None:
        self._base_balances: MutableMapping[bytes, int] = balances if balances is not None else {}
        self._base_storage: MutableMapping[bytes, Dict[bytes, bytes]] = storage if storage is not None else {}
        # Root overlay; begin() stacks on top of it.
        self._layers: List[_Overlay] = [_Overlay()]

    # --------------------------------------------------------------------- #
    # Checkpointing
    # --------------------------------------------------------------------- #

    def depth(self) -> int:
        """Number of overlays (>= 1)."""
        return len(self._layers)

    def begin(self) -> int:
        """Start a new checkpoint. Returns the new depth marker (int)."""
        self._layers.append(_Overlay())
        return len(self._layers)

    def commit(self) -> None:
        """
        Commit the top overlay into its parent. Committing the root overlay
        applies it to the base state.
        """
        top = self._layers.pop()
        if self._layers:
            self._merge_layers(self._layers[-1], top)
        else:
            self._apply_to_base(top)
            self._layers.append(_Overlay())

    def revert(self) -> None:
        """Discard the top overlay (or clear it if it's the root)."""
        if len(self._layers) > 1:
            self._layers.pop()
        else:
            self._layers[0] = _Overlay()

    def commit_to(self, marker: int) -> None:
        """Commit repeatedly until the current depth equals `marker`."""
        if marker < 1:
            raise ValueError("marker must be >= 1")
        while len(self._layers) > marker:
            self.commit()

    def revert_to(self, marker: int) -> None:
        """Revert repeatedly until the current depth equals `marker`."""
        if marker < 1:
            raise ValueError("marker must be >= 1")
        while len(self._layers) > marker:
            self.revert()

    def flush(self) -> None:
        """Apply everything staged (all layers) to the base state."""
        self.commit_to(1)
        self.commit()

    # --------------------------------------------------------------------- #
    # Balances
    # --------------------------------------------------------------------- #

    def get_balance(self, address: bytes | bytearray | memoryview) -> int:
        addr = _b(address, name="address")
        for layer in reversed(self._layers):
            if addr in layer.balances:
                return layer.balances[addr]
        return int(self._base_balances.get(addr, 0))

    def set_balance(self, address: bytes | bytearray | memoryview, value: int) -> None:
        addr = _b(address, name="address")
        if value < 0:
            raise ValueError("balance must be non-negative")
        self._layers[-1].balances[addr] = int(value)

    # --------------------------------------------------------------------- #
    # Storage API
    # --------------------------------------------------------------------- #

    def storage_get(
        self,
        address: bytes | bytearray | memoryview,
        key: bytes | bytearray | memoryview,
        default: bytes = b"",
    ) -> bytes:
        """Read storage with overlay precedence. Returns `default` if absent."""
        addr = _b(address, name="address")
        key_b = _b(key, name="key")
        for layer in reversed(self._layers):
            local = layer.storage_get_local(addr, key_b)
            if local is _MISSING:
                continue
            return default if local is None else local  # type: ignore[return-value]
        return self._base_storage.get(addr, {}).get(key_b, default)

    def storage_set(
        self,
        address: bytes | bytearray | memoryview,
        key: bytes | bytearray | memoryview,
        value: bytes | bytearray | memoryview,
    ) -> None:
        """Stage a storage write in the top overlay. Empty value is a deletion."""
        addr = _b(address, name="address")
        key_b = _b(key, name="key")
        val_b = _b(value, name="value")
        self._layers[-1].storage_set_local(addr, key_b, val_b if val_b else None)

    def storage_delete(
        self,
        address: bytes | bytearray | memoryview,
        key: bytes | bytearray | memoryview,
    ) -> None:
        addr = _b(address, name="address")
        key_b = _b(key, name="key")
        self._layers[-1].storage_set_local(addr, key_b, None)

    def storage_items(self, address: bytes | bytearray | memoryview) -> Iterator[Tuple[bytes, bytes]]:
        """
        Iterate visible (key, value) for an address with overlay precedence.
        Stable order by key.
        """
        addr = _b(address, name="address")
        visible: Dict[bytes, bytes] = dict(self._base_storage.get(addr, {}))
        for layer in self._layers:
            m = layer.storage.get(addr)
            if not m:
                continue
            for k, v in m.items():
                if v is None:
                    visible.pop(k, None)
                else:
                    visible[k] = v
        for k in sorted(visible.keys()):
            yield k, visible[k]

    # --------------------------------------------------------------------- #
    # Internal merge/apply
    # --------------------------------------------------------------------- #

    @staticmethod
    def _merge_layers(dst: _Overlay, src: _Overlay) -> None:
        dst.balances.update(src.balances)
        for addr, writes in src.storage.items():
            dm = dst.storage.get(addr)
            if dm is None:
                dm = {}
                dst.storage[addr] = dm
            dm.update(writes)

    def _apply_to_base(self, layer: _Overlay) -> None:
        for addr, bal in layer.balances.items():
            self._base_balances[addr] = bal
        for addr, writes in layer.storage.items():
            base = self._base_storage.setdefault(addr, {})
            for k, v in writes.items():
                if v is None:
                    base.pop(k, None)
                else:
                    base[k] = v


__all__ = ["Journal"]
