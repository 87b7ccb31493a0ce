"""
Voucher authorization engine: domain hashing, signature recovery and the
issuer/nonce registry.
"""

from .domain import DomainHasher, domain_separator, typed_digest
from .registry import MINTER_ROLE, AuthorizationRegistry
from .signature import address_of, recover_signer, sign_digest

__all__ = [
    "DomainHasher",
    "domain_separator",
    "typed_digest",
    "MINTER_ROLE",
    "AuthorizationRegistry",
    "address_of",
    "recover_signer",
    "sign_digest",
]
