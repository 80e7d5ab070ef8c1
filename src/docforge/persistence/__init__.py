"""Persistence — the append-only audit log and document stores."""

from docforge.persistence.audit_log import (
    PENDING_HASH_PLACEHOLDER,
    AuditLog,
    build_audit_trail,
    format_audit_trail,
)
from docforge.persistence.document_store import (
    DocumentMeta,
    DocumentNotFoundError,
    DocumentStore,
    InMemoryDocumentStore,
    JsonFileDocumentStore,
    StorageError,
    sample_document,
)

__all__ = [
    "PENDING_HASH_PLACEHOLDER",
    "AuditLog",
    "build_audit_trail",
    "format_audit_trail",
    "DocumentMeta",
    "DocumentNotFoundError",
    "DocumentStore",
    "InMemoryDocumentStore",
    "JsonFileDocumentStore",
    "StorageError",
    "sample_document",
]
