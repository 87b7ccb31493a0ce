"""
Execution substrate for voucher contracts: call context, hashing, journaled
state, events and the single-threaded Host that runs calls atomically.
"""

from .context import (ADDRESS_LEN, ZERO_ADDRESS, CallEnv, ChainEnv,
                      ContextError, is_zero_address, require_address,
                      to_address, to_bytes, to_hex)
from .events_api import Event, EventLog
from .hash_api import keccak256
from .host import Host, ReceiveHook
from .journal import Journal
from .storage_api import ContractStorage

__all__ = [
    "ADDRESS_LEN",
    "ZERO_ADDRESS",
    "CallEnv",
    "ChainEnv",
    "ContextError",
    "is_zero_address",
    "require_address",
    "to_address",
    "to_bytes",
    "to_hex",
    "Event",
    "EventLog",
    "keccak256",
    "Host",
    "ReceiveHook",
    "Journal",
    "ContractStorage",
]
