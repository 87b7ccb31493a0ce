"""structlog setup: JSON rendering of stdlib and structlog records, redaction."""
from __future__ import annotations

import json
import logging

import pytest

from vouchers.logging import bind_call_context, clear_call_context, get_logger, setup_logging


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    clear_call_context()


def _lines(err: str):
    return [json.loads(line) for line in err.splitlines() if line.startswith("{")]


def test_json_lines_with_redaction_and_context(capsys):
    setup_logging(level="info", log_format="json")
    bind_call_context(caller="0xabc")
    logging.getLogger("vouchers.settlement.shares").info("payee added shares=%d", 60)
    get_logger("vouchers.cli").info("voucher_signed", private_key="0xdeadbeef", signer="0x01")
    logging.getLogger("vouchers.auth").debug("hidden")

    records = _lines(capsys.readouterr().err)
    assert [r["event"] for r in records] == ["payee added shares=60", "voucher_signed"]
    assert all(r["service"] == "animica-vouchers" for r in records)
    assert records[1]["private_key"] == "***"
    assert records[1]["signer"] == "0x01"
    assert records[1]["caller"] == "0xabc"


def test_level_from_config(monkeypatch, capsys):
    from vouchers.config import load_config

    monkeypatch.setenv("VOUCHERS_LOG_LEVEL", "WARNING")
    monkeypatch.setenv("VOUCHERS_LOG_FORMAT", "json")
    load_config.cache_clear()
    setup_logging()
    logging.getLogger("vouchers").info("quiet")
    logging.getLogger("vouchers").warning("loud")
    assert [r["event"] for r in _lines(capsys.readouterr().err)] == ["loud"]
