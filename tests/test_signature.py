"""Signed-message recovery and its failure modes."""
from __future__ import annotations

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from vouchers.auth.signature import SIGNATURE_LEN, address_of, recover_signer, sign_digest
from vouchers.errors import MalformedSignature
from vouchers.runtime.hash_api import keccak256

KEY = "0x" + "11" * 32
DIGEST = keccak256(b"voucher")


def test_sign_and_recover():
    sig = sign_digest(DIGEST, KEY)
    assert len(sig) == SIGNATURE_LEN
    assert sig[64] in (27, 28)
    assert recover_signer(DIGEST, sig) == address_of(KEY)


def test_recovery_uses_signed_message_prefix():
    # eth_sign style: the same bytes any wallet's personal_sign would produce
    signed = Account.sign_message(encode_defunct(primitive=DIGEST), private_key=KEY)
    assert recover_signer(DIGEST, bytes(signed.signature)) == address_of(KEY)


def test_other_digest_recovers_other_address():
    sig = sign_digest(DIGEST, KEY)
    assert recover_signer(keccak256(b"other"), sig) != address_of(KEY)


@pytest.mark.parametrize("length", [0, 64, 66])
def test_wrong_length(length):
    with pytest.raises(MalformedSignature):
        recover_signer(DIGEST, b"\x01" * length)


@pytest.mark.parametrize("v", [2, 26, 29, 255])
def test_bad_recovery_id(v):
    sig = bytearray(sign_digest(DIGEST, KEY))
    sig[64] = v
    with pytest.raises(MalformedSignature) as ei:
        recover_signer(DIGEST, bytes(sig))
    assert ei.value.code == "VOUCHER:BAD_SIG"


def test_digest_must_be_32_bytes():
    with pytest.raises(MalformedSignature):
        recover_signer(b"\x00" * 31, b"\x00" * 65)
    with pytest.raises(MalformedSignature):
        sign_digest(b"\x00" * 33, KEY)
