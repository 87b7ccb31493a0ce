from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..errors import VoucherError

# Basic bounds (kept generous; we only need to *validate*).
MAX_EVENT_NAME_BYTES = 64
MAX_KEY_LEN = 64
MAX_BYTES_LEN = 4096
MAX_INT_BITS = 256

# Keys must be identifier-like: letters/underscore, then letters/digits/underscore.
_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ArgValue = Any  # constrained at runtime


class EventError(VoucherError):
    code = "EVENT:INVALID"


@dataclass(frozen=True)
class Event:
    """An emitted event: emitting contract address, name and validated args."""

    address: bytes
    name: bytes
    args: Dict[str, ArgValue]


def _check_name(name: Any) -> bytes:
    if not isinstance(name, (bytes, bytearray)):
        raise EventError("event name must be bytes", details={"where": "name_type"})
    b = bytes(name)
    if len(b) == 0:
        raise EventError("event name must be non-empty", details={"where": "name_empty"})
    if len(b) > MAX_EVENT_NAME_BYTES:
        raise EventError("event name too long", details={"where": "name_length", "len": len(b)})
    return b


def _check_key(key: Any) -> str:
    if not isinstance(key, str):
        raise EventError("event key must be str", details={"where": "key_type"})
    if len(key) == 0 or len(key) > MAX_KEY_LEN:
        raise EventError("event key length out of range", details={"where": "key_length", "len": len(key)})
    if not _KEY_RE.match(key):
        raise EventError("event key has invalid characters", details={"where": "key_grammar", "key": key})
    return key


def _check_value(value: Any) -> ArgValue:
    if isinstance(value, (bytes, bytearray)):
        b = bytes(value)
        if len(b) > MAX_BYTES_LEN:
            raise EventError("event bytes arg too long", details={"where": "value_bytes_length", "len": len(b)})
        return b

    if isinstance(value, str):
        if len(value.encode("utf-8")) > MAX_BYTES_LEN:
            raise EventError("event str arg too long", details={"where": "value_str_length"})
        return value

    if isinstance(value, bool):
        # bool is a subclass of int, so check it before int.
        return value

    if isinstance(value, int):
        if value.bit_length() > MAX_INT_BITS:
            raise EventError("event int arg out of range", details={"where": "value_int_bits", "bits": value.bit_length()})
        return int(value)

    raise EventError("unsupported event arg type", details={"where": "value_type", "py_type": type(value).__name__})


class EventLog:
    """
    Ordered event sink owned by a host. Supports truncation back to a mark so
    events emitted inside a reverted call frame disappear with its state.
    """

    def __init__(self) -> None:
        self._events: List[Event] = []

    def mark(self) -> int:
        return len(self._events)

    def truncate(self, mark: int) -> None:
        del self._events[mark:]

    def emit(self, address: bytes, name: bytes, args: Mapping[Any, Any]) -> Event:
        bname = _check_name(name)
        if not isinstance(args, Mapping):
            raise EventError("event args must be a mapping", details={"where": "args_type"})
        checked: Dict[str, ArgValue] = {}
        for raw_k, raw_v in args.items():
            checked[_check_key(raw_k)] = _check_value(raw_v)
        ev = Event(bytes(address), bname, checked)
        self._events.append(ev)
        return ev

    def iter_events(self, name: Optional[bytes] = None) -> Iterable[Event]:
        # Stable snapshot
        if name is None:
            return tuple(self._events)
        return tuple(e for e in self._events if e.name == name)

    def __len__(self) -> int:
        return len(self._events)


__all__ = [
    "Event",
    "EventError",
    "EventLog",
    "MAX_EVENT_NAME_BYTES",
    "MAX_KEY_LEN",
    "MAX_BYTES_LEN",
    "MAX_INT_BITS",
]
