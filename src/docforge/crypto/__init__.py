"""Cryptographic primitives — canonical JSON and content hashing."""

from docforge.crypto.canonical import (
    HASH_ERROR_SENTINEL,
    UNDEFINED,
    IntegrityStatus,
    canonical_json,
    canonicalize,
    hash_document,
    is_valid_digest,
    verify_document,
)

__all__ = [
    "HASH_ERROR_SENTINEL",
    "UNDEFINED",
    "IntegrityStatus",
    "canonical_json",
    "canonicalize",
    "hash_document",
    "is_valid_digest",
    "verify_document",
]
