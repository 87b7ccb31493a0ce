from __future__ import annotations
# vouchers/errors.py
"""
Error types for voucher redemption and settlement. These are lightweight,
serializable, and safe to surface over RPC/logs.

Every failure aborts the whole call: the host reverts the journal frame and
re-raises the exception to the caller. Nothing here is retried.

Hierarchy
---------
VoucherError (base)
 ├─ ConfigError
 ├─ InvalidVoucher          : shape errors (item/amount length mismatch, limits)
 ├─ MalformedSignature      : wrong length / bad recovery id / unrecoverable
 ├─ Unauthorized            : signer not an issuer, caller != wallet, stale nonce
 │   └─ NotOwner            : administrative call by a non-owner
 ├─ PriceMismatch           : attached payment != voucher price
 ├─ Reentrancy              : nested redemption while the guard is enabled
 ├─ DuplicatePayee / UnknownPayee / ZeroAddress / ZeroShare / PayeeLimit / PayeeListMismatch
 ├─ TransferFailed          : a fund or item transfer was rejected downstream
 └─ InsufficientBalance     : host ledger debit exceeds balance
"""


from typing import Any, Dict, Mapping, Optional
import json


class VoucherError(Exception):
    """Base class for voucher engine errors."""

    code: str = "VOUCHER:ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    @property
    def reason(self) -> str:
        """Revert reason string (the stable code)."""
        return self.code

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.details:
            try:
                packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"), default=str)
            except (TypeError, ValueError):
                packed = str(self.details)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


class ConfigError(VoucherError):
    code = "VOUCHER:CONFIG"


class InvalidVoucher(VoucherError):
    """Voucher payload is structurally invalid; rejected before any signature work."""
    code = "VOUCHER:INVALID"


class MalformedSignature(VoucherError):
    """Signature bytes cannot be parsed or recovered (distinct from a wrong signer)."""
    code = "VOUCHER:BAD_SIG"


class Unauthorized(VoucherError):
    """
    Well-formed request that is not permitted: signer is not an issuer, the
    caller is not the voucher wallet, or the voucher was hashed under a
    consumed nonce.
    """
    code = "VOUCHER:UNAUTHORIZED"

    def __init__(
        self,
        message: str = "not authorized",
        *,
        signer: Optional[str] = None,
        caller: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if signer is not None:
            d.setdefault("signer", signer)
        if caller is not None:
            d.setdefault("caller", caller)
        super().__init__(message, details=d)


class NotOwner(Unauthorized):
    code = "ACCESS:NOT_OWNER"

    def __init__(self, *, caller: Optional[str] = None, message: str = "caller is not the owner") -> None:
        super().__init__(message, caller=caller)


class PriceMismatch(VoucherError):
    code = "VOUCHER:PRICE_MISMATCH"

    def __init__(self, *, expected: int, attached: int, message: str = "attached payment does not match price") -> None:
        super().__init__(message, details={"expected": int(expected), "attached": int(attached)})


class Reentrancy(VoucherError):
    code = "VOUCHER:REENTRANT"


class DuplicatePayee(VoucherError):
    code = "SPLIT:DUP_PAYEE"


class UnknownPayee(VoucherError):
    code = "SPLIT:UNKNOWN_PAYEE"


class ZeroAddress(VoucherError):
    code = "SPLIT:ZERO_ADDR"


class ZeroShare(VoucherError):
    code = "SPLIT:ZERO_SHARES"


class PayeeLimit(VoucherError):
    code = "SPLIT:TOO_MANY_PAYEES"


class PayeeListMismatch(VoucherError):
    code = "SPLIT:LIST_MISMATCH"


class TransferFailed(VoucherError):
    """A downstream fund or item transfer was rejected by its recipient (or could not be funded)."""
    code = "TRANSFER:FAILED"

    def __init__(
        self,
        message: str = "transfer failed",
        *,
        to: Optional[str] = None,
        amount: Optional[int] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if to is not None:
            d.setdefault("to", to)
        if amount is not None:
            d.setdefault("amount", int(amount))
        super().__init__(message, details=d)


class InsufficientBalance(VoucherError):
    code = "LEDGER:INSUFFICIENT"

    def __init__(self, *, address: str, balance: int, amount: int) -> None:
        super().__init__(
            "insufficient balance",
            details={"address": address, "balance": int(balance), "amount": int(amount)},
        )


__all__ = [
    "VoucherError",
    "ConfigError",
    "InvalidVoucher",
    "MalformedSignature",
    "Unauthorized",
    "NotOwner",
    "PriceMismatch",
    "Reentrancy",
    "DuplicatePayee",
    "UnknownPayee",
    "ZeroAddress",
    "ZeroShare",
    "PayeeLimit",
    "PayeeListMismatch",
    "TransferFailed",
    "InsufficientBalance",
]
