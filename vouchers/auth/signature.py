"""
Signature recovery for voucher digests.

Convention ("signed message", as produced by `eth_sign` / personal_sign):

    prefixed = keccak( b"\\x19Ethereum Signed Message:\\n32" ‖ digest )
    signer   = ecrecover(prefixed, v, r, s)

Signatures are 65 bytes `r ‖ s ‖ v` with v in {27, 28} (or {0, 1}). Anything
that cannot be parsed or recovered raises MalformedSignature. A well-formed
signature by some other key simply recovers a different address; deciding
whether that address is allowed is the caller's job (Unauthorized).
"""

from __future__ import annotations

import logging

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature, ValidationError

from ..errors import MalformedSignature
from ..runtime.context import to_bytes, to_hex

log = logging.getLogger(__name__)

SIGNATURE_LEN = 65
_VALID_V = (0, 1, 27, 28)


def _check_shape(signature: bytes) -> bytes:
    sig = to_bytes(signature)
    if len(sig) != SIGNATURE_LEN:
        raise MalformedSignature("signature must be 65 bytes", details={"len": len(sig)})
    if sig[64] not in _VALID_V:
        raise MalformedSignature("invalid recovery id", details={"v": sig[64]})
    return sig


def recover_signer(digest: bytes, signature: bytes) -> bytes:
    """Return the 20-byte address that signed `digest` under the signed-message prefix."""
    if len(digest) != 32:
        raise MalformedSignature("digest must be 32 bytes", details={"len": len(digest)})
    sig = _check_shape(signature)
    try:
        recovered = Account.recover_message(encode_defunct(primitive=bytes(digest)), signature=sig)
    except (BadSignature, ValidationError, ValueError) as exc:
        log.debug("signature recovery failed digest=%s err=%s", to_hex(digest), exc)
        raise MalformedSignature("signature could not be recovered") from exc
    return bytes.fromhex(recovered[2:])


def sign_digest(digest: bytes, private_key: bytes | str) -> bytes:
    """Issuer-side helper: sign `digest` with the same convention recover_signer expects."""
    if len(digest) != 32:
        raise MalformedSignature("digest must be 32 bytes", details={"len": len(digest)})
    signed = Account.sign_message(encode_defunct(primitive=bytes(digest)), private_key=private_key)
    return bytes(signed.signature)


def address_of(private_key: bytes | str) -> bytes:
    """20-byte address controlled by `private_key`."""
    return bytes.fromhex(Account.from_key(private_key).address[2:])


__all__ = ["SIGNATURE_LEN", "recover_signer", "sign_digest", "address_of"]
