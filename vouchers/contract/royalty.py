"""
Royalty quote for secondary sales.

The contract stores one receiver and an integer percentage (0..100). Marketplaces
ask `royalty_info(sale_price)` and pay the quoted amount to the receiver
themselves; no funds move through this module. By default the receiver is the
voucher contract, so royalty income arrives through `receive()` and is split
over the secondary pool.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Tuple

from ..config import SHARE_BASIS
from ..errors import InvalidVoucher
from ..runtime.context import require_address, to_address, to_hex

if TYPE_CHECKING:  # pragma: no cover
    from ..runtime.host import Host

log = logging.getLogger(__name__)

K_RECEIVER: Final[bytes] = b"royalty:receiver"
K_PERCENT: Final[bytes] = b"royalty:pct"


@dataclass(frozen=True)
class RoyaltyConfig:
    receiver: bytes
    percent: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "receiver", to_address(self.receiver))
        if not isinstance(self.percent, int) or not 0 <= self.percent <= SHARE_BASIS:
            raise InvalidVoucher("royalty percent must be within 0..100", details={"percent": self.percent})

    def quote(self, sale_price: int) -> Tuple[bytes, int]:
        if sale_price < 0:
            raise InvalidVoucher("sale price must be non-negative", details={"sale_price": sale_price})
        return self.receiver, (sale_price * self.percent) // SHARE_BASIS


class RoyaltyStore:
    def __init__(self, host: "Host", address: bytes) -> None:
        self._host = host
        self._address = to_address(address)
        self._storage = host.storage(self._address)

    def get(self) -> RoyaltyConfig:
        receiver = self._storage.get(K_RECEIVER) or self._address
        return RoyaltyConfig(receiver=receiver, percent=self._storage.get_u256(K_PERCENT))

    def set(self, receiver: bytes, percent: int) -> RoyaltyConfig:
        cfg = RoyaltyConfig(receiver=require_address(receiver), percent=percent)
        self._storage.set(K_RECEIVER, cfg.receiver)
        self._storage.set_u256(K_PERCENT, cfg.percent)
        self._host.emit(self._address, b"RoyaltyUpdated", {"receiver": cfg.receiver, "percent": cfg.percent})
        log.info("royalty updated receiver=%s percent=%d", to_hex(cfg.receiver), cfg.percent)
        return cfg

    def royalty_info(self, sale_price: int) -> Tuple[bytes, int]:
        return self.get().quote(sale_price)


__all__ = ["RoyaltyConfig", "RoyaltyStore"]
