from __future__ import annotations

"""
Structured logging setup for the voucher engine and its CLI.

This module configures **structlog** + the stdlib ``logging`` package so that:
- Library modules keep using ``logging.getLogger(__name__)``; their records are
  rendered through the same structlog processor chain.
- Output is a pretty console renderer by default, or JSON lines.
- Secrets passed as structured fields (private keys) are redacted.

Quick start
-----------
    from vouchers.logging import setup_logging, get_logger

    setup_logging()              # call once on process start (the CLI does)
    log = get_logger(__name__)
    log.info("voucher_signed", signer="0x...")

Level and format default to the values in ``vouchers.config``
(VOUCHERS_LOG_LEVEL / VOUCHERS_LOG_FORMAT).
"""

import logging
from typing import Any, Dict, Iterable, Optional

import structlog
from structlog.contextvars import merge_contextvars
from structlog.processors import JSONRenderer

from .config import load_config


REDACT_KEYS = {"private_key", "key", "secret", "mnemonic", "password"}


def _redact_secrets(_: logging.Logger, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for k in list(event_dict.keys()):
        if k.lower() in REDACT_KEYS and event_dict[k] is not None:
            event_dict[k] = "***"
    return event_dict


def _base_processors(service_name: str) -> Iterable:
    yield structlog.stdlib.add_log_level
    yield structlog.processors.TimeStamper(fmt="iso", utc=True)
    yield merge_contextvars
    yield structlog.processors.StackInfoRenderer()
    yield structlog.processors.format_exc_info
    yield _redact_secrets
    yield structlog.processors.UnicodeDecoder()

    def _ensure_service(_: logging.Logger, __: str, ev: Dict[str, Any]) -> Dict[str, Any]:
        ev.setdefault("service", service_name)
        return ev

    yield _ensure_service


def setup_logging(
    *,
    service_name: str = "animica-vouchers",
    level: Optional[str | int] = None,
    log_format: Optional[str] = None,
) -> None:
    """
    Configure structlog + stdlib logging. Safe to call more than once; the root
    handler is replaced each time.
    """
    cfg = load_config()
    level = level or cfg.log_level
    if isinstance(level, str):
        level = level.upper()
    log_format = (log_format or cfg.log_format).lower()

    processors = list(_base_processors(service_name))

    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=False, sort_keys=False)
    else:
        renderer = JSONRenderer(sort_keys=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            *processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                *processors,
            ],
        )
    )

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger; bind module name if provided."""
    log = structlog.get_logger(name) if name else structlog.get_logger()
    return log


def bind_call_context(**kv: Any) -> None:
    """Bind call-scoped pairs (caller, contract, tx) into the contextvars store."""
    structlog.contextvars.bind_contextvars(**kv)


def clear_call_context(*keys: str) -> None:
    if keys:
        structlog.contextvars.unbind_contextvars(*keys)
    else:
        structlog.contextvars.clear_contextvars()


__all__ = [
    "setup_logging",
    "get_logger",
    "bind_call_context",
    "clear_call_context",
]
