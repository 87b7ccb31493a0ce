"""
vouchers.config: domain tag, chain id, limits and logging knobs.

This module centralizes configuration for the voucher engine. It has NO
third-party deps and is safe to import very early.

Configuration precedence:
  1) Environment variables (VOUCHERS_*)
  2) Hardcoded safe defaults below

Key env vars (case-insensitive where boolean):
  - VOUCHERS_DOMAIN_NAME        (str)    default: "Animica-Voucher"
  - VOUCHERS_DOMAIN_VERSION     (str)    default: "1"
  - VOUCHERS_CHAIN_ID           (int)    default: 1337
  - VOUCHERS_MAX_PAYEES         (int)    default: 64
  - VOUCHERS_MAX_CLAIM_ITEMS    (int)    default: 256
  - VOUCHERS_REENTRANCY_GUARD   (bool)   default: false
  - VOUCHERS_LOG_LEVEL          (str)    default: INFO
  - VOUCHERS_LOG_FORMAT         (str)    default: console  (console | json)

The domain name and version are part of every voucher digest. Changing them
invalidates every voucher signed under the previous values.

Usage:
    from vouchers.config import load_config
    CFG = load_config()
    if CFG.reentrancy_guard: ...
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict
import os

from .errors import ConfigError

# Shares are percentages of the incoming amount; not configurable.
SHARE_BASIS = 100

# Upper bound on a purchase voucher's UTF-8 `data`; it is carried verbatim in
# the VoucherSold event, whose string args are capped at the same size.
MAX_PURCHASE_DATA_BYTES = 4096

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_LOG_FORMATS = ("console", "json")


# ----------------------------- helpers ---------------------------------------


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    val = raw.strip().lower()
    return val in ("1", "true", "t", "yes", "y", "on")


def _env_int(name: str, default: int, *, min_v: int, max_v: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        v = int(raw, 0)
    except ValueError:
        return default
    if v < min_v:
        return min_v
    if v > max_v:
        return max_v
    return v


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


# ------------------------------- config --------------------------------------


@dataclass(frozen=True)
class VoucherConfig:
    # Domain separation
    domain_name: str
    domain_version: str
    chain_id: int

    # Limits
    max_payees: int
    max_claim_items: int

    # Feature flags
    reentrancy_guard: bool

    # Logging
    log_level: str
    log_format: str

    def __post_init__(self) -> None:
        if not self.domain_name:
            raise ConfigError("domain_name must be non-empty")
        if not self.domain_version:
            raise ConfigError("domain_version must be non-empty")
        if self.chain_id < 0:
            raise ConfigError("chain_id must be non-negative", details={"chain_id": self.chain_id})
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigError("unknown log level", details={"log_level": self.log_level})
        if self.log_format.lower() not in _LOG_FORMATS:
            raise ConfigError("unknown log format", details={"log_format": self.log_format})

    def as_dict(self) -> Dict[str, Any]:
        return {
            "domain_name": self.domain_name,
            "domain_version": self.domain_version,
            "chain_id": self.chain_id,
            "share_basis": SHARE_BASIS,
            "max_payees": self.max_payees,
            "max_claim_items": self.max_claim_items,
            "reentrancy_guard": self.reentrancy_guard,
            "log_level": self.log_level,
            "log_format": self.log_format,
        }


@lru_cache(maxsize=1)
def load_config() -> VoucherConfig:
    """
    Build and cache a VoucherConfig from environment + safe defaults.
    Call `load_config.cache_clear()` after changing the environment.
    """
    return VoucherConfig(
        domain_name=_env_str("VOUCHERS_DOMAIN_NAME", "Animica-Voucher"),
        domain_version=_env_str("VOUCHERS_DOMAIN_VERSION", "1"),
        chain_id=_env_int("VOUCHERS_CHAIN_ID", 1337, min_v=0, max_v=(1 << 64) - 1),
        max_payees=_env_int("VOUCHERS_MAX_PAYEES", 64, min_v=1, max_v=1024),
        max_claim_items=_env_int("VOUCHERS_MAX_CLAIM_ITEMS", 256, min_v=1, max_v=10_000),
        reentrancy_guard=_env_bool("VOUCHERS_REENTRANCY_GUARD", False),
        log_level=_env_str("VOUCHERS_LOG_LEVEL", "INFO").upper(),
        log_format=_env_str("VOUCHERS_LOG_FORMAT", "console").lower(),
    )


__all__ = ["MAX_PURCHASE_DATA_BYTES", "SHARE_BASIS", "VoucherConfig", "load_config"]
