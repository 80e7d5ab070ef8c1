"""Canonical hashing — the content fingerprint a signer's record is bound to.

The digest asserts "this exact content is what the signer saw". It must
be reproducible regardless of key order or object insertion order:

1. Select the legally relevant fields: blocks, parties, settings, terms,
   variables. Audit log, UI state and the hash itself are excluded.
2. Canonicalize: rebuild every object with lexicographically sorted
   keys; arrays keep their order (order is meaningful); entries whose
   value is UNDEFINED are dropped while None is kept as null.
3. Serialize to compact JSON (no whitespace, UTF-8, non-ASCII kept).
4. SHA-256 over the UTF-8 bytes, lowercase hex.

Whole floats serialize as integers (1.0 -> 1) so a value that went
through a JavaScript client hashes the same as the Python original.

Failures never raise: hash_document logs and returns
HASH_ERROR_SENTINEL, which callers must read as "integrity unknown",
never as "verified".
"""

from __future__ import annotations

import enum
import hashlib
import json
import logging
import re
from typing import Any, Mapping

from docforge.models.document import DocumentState

logger = logging.getLogger(__name__)

HASH_ERROR_SENTINEL = "ERROR_HASHING_DOCUMENT"

HASHED_FIELDS: tuple[str, ...] = ("blocks", "parties", "settings", "terms", "variables")

_DIGEST_PATTERN = re.compile(r"^[0-9a-f]{64}$")


class _Undefined:
    """Marker for "key present but value undefined"."""

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined()


class IntegrityStatus(str, enum.Enum):
    """Outcome of checking a stored digest against recomputed content."""
    VERIFIED = "verified"
    MISMATCH = "mismatch"
    MISSING = "missing"
    UNVERIFIABLE = "unverifiable"


def canonicalize(value: Any) -> Any:
    """Recursively sort object keys; drop UNDEFINED entries; keep None."""
    if isinstance(value, Mapping):
        return {
            key: canonicalize(value[key])
            for key in sorted(value)
            if value[key] is not UNDEFINED
        }
    if isinstance(value, (list, tuple)):
        # Arrays cannot drop slots; an undefined element serializes as null
        return [None if item is UNDEFINED else canonicalize(item) for item in value]
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def canonical_json(value: Any) -> str:
    """Compact, key-sorted JSON text of value."""
    return json.dumps(
        canonicalize(value),
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def select_content(document: DocumentState | Mapping[str, Any]) -> dict[str, Any]:
    """The hashed subset of a document (a DocumentState or its dict form)."""
    if isinstance(document, DocumentState):
        return document.content_dict()
    return {field: document.get(field, UNDEFINED) for field in HASHED_FIELDS}


def digest_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_document(document: DocumentState | Mapping[str, Any]) -> str:
    """SHA-256 fingerprint of a document's legally relevant content."""
    try:
        return digest_text(canonical_json(select_content(document)))
    except Exception as exc:
        logger.error("Hashing failed: %s: %s", type(exc).__name__, exc)
        return HASH_ERROR_SENTINEL


def is_valid_digest(value: Any) -> bool:
    """True for a well-formed lowercase hex SHA-256 (never the sentinel)."""
    return isinstance(value, str) and bool(_DIGEST_PATTERN.match(value))


def verify_document(document: DocumentState | Mapping[str, Any]) -> IntegrityStatus:
    """Compare the stored sha256 with a fresh digest of the content."""
    stored = (
        document.sha256
        if isinstance(document, DocumentState)
        else document.get("sha256")
    )
    if not stored:
        return IntegrityStatus.MISSING
    if not is_valid_digest(stored):
        return IntegrityStatus.UNVERIFIABLE
    computed = hash_document(document)
    if not is_valid_digest(computed):
        return IntegrityStatus.UNVERIFIABLE
    return IntegrityStatus.VERIFIED if computed == stored else IntegrityStatus.MISMATCH
