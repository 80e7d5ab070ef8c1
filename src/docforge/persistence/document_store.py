"""Document store — load and save whole documents.

The editor core never performs I/O itself; the session layer talks to a
DocumentStore. Two implementations:

- InMemoryDocumentStore: a dict of deep copies, for tests and embedding.
- JsonFileDocumentStore: one ``<id>.json`` file per document plus an
  ``index.json`` of DocumentMeta records, listed newest first.

Any I/O or decoding failure raises StorageError.
"""

from __future__ import annotations

import json
import os
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from docforge.models.audit import AuditAction, AuditLogEntry
from docforge.models.block import Block, BlockType
from docforge.models.document import DocumentState, Party, Variable

INDEX_FILENAME = "index.json"

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class StorageError(Exception):
    """Raised when a document cannot be read or written."""


class DocumentNotFoundError(StorageError):
    """Raised when opening a document id the store does not hold."""


@dataclass(frozen=True)
class DocumentMeta:
    """Index record: enough to list documents without loading them."""
    id: str
    title: str
    updated_at: int
    status: str

    @staticmethod
    def of(document: DocumentState) -> DocumentMeta:
        return DocumentMeta(
            id=document.id,
            title=document.title,
            updated_at=document.updated_at or 0,
            status=document.status.value,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "updatedAt": self.updated_at,
            "status": self.status,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> DocumentMeta:
        return DocumentMeta(
            id=str(data["id"]),
            title=data.get("title", ""),
            updated_at=int(data.get("updatedAt") or 0),
            status=data.get("status", "draft"),
        )


def _now_ms() -> int:
    return int(time.time() * 1000)


def sample_document() -> DocumentState:
    """A small service agreement used to seed an empty store."""
    now = _now_ms()
    return DocumentState(
        id="doc_sample",
        title="Service Agreement Template",
        parties=[
            Party(id="p1", name="Me (Owner)", color="#3b82f6", initials="ME"),
            Party(id="p2", name="Client", color="#ec4899", initials="CL"),
        ],
        variables=[Variable(id="v1", key="ClientName", value="Acme Corp", label="Client Name")],
        blocks=[
            Block(
                id="1",
                type=BlockType.TEXT,
                content=(
                    "# Service Agreement\n\nThis agreement is made between "
                    "**HyprDoc Inc.** and **{{ClientName}}**."
                ),
            ),
            Block(
                id="2",
                type=BlockType.INPUT,
                label="Client Representative",
                variable_name="rep_name",
                assigned_to_party_id="p2",
                required=True,
            ),
            Block(
                id="3",
                type=BlockType.NUMBER,
                label="Hourly Rate",
                variable_name="rate",
                assigned_to_party_id="p1",
                required=True,
            ),
            Block(id="4", type=BlockType.SPACER, height=40),
            Block(
                id="5",
                type=BlockType.SIGNATURE,
                label="Signatures",
                assigned_to_party_id="p2",
                required=True,
            ),
        ],
        audit_log=[
            AuditLogEntry(
                id="l1",
                timestamp=now,
                action=AuditAction.CREATED,
                user="System",
                details="Template initialized",
            )
        ],
        updated_at=now,
    )


class DocumentStore(ABC):
    """Persistence port for whole documents."""

    @abstractmethod
    def load(self, document_id: str) -> Optional[DocumentState]:
        """Return the stored document, or None if it does not exist."""

    @abstractmethod
    def save(self, document: DocumentState) -> DocumentMeta:
        """Upsert a document, stamping updated_at."""

    @abstractmethod
    def list_documents(self) -> list[DocumentMeta]:
        """Metadata of all stored documents, newest first."""

    @abstractmethod
    def delete(self, document_id: str) -> bool:
        """Remove a document. Returns False if it did not exist."""


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store. Stores and returns copies, never live objects."""

    def __init__(self, documents: Optional[list[DocumentState]] = None) -> None:
        self._documents: dict[str, DocumentState] = {}
        for document in documents or []:
            self._documents[document.id] = document.clone()

    def load(self, document_id: str) -> Optional[DocumentState]:
        stored = self._documents.get(document_id)
        return stored.clone() if stored is not None else None

    def save(self, document: DocumentState) -> DocumentMeta:
        document.updated_at = _now_ms()
        self._documents[document.id] = document.clone()
        return DocumentMeta.of(document)

    def list_documents(self) -> list[DocumentMeta]:
        metas = [DocumentMeta.of(d) for d in self._documents.values()]
        return sorted(metas, key=lambda m: m.updated_at, reverse=True)

    def delete(self, document_id: str) -> bool:
        return self._documents.pop(document_id, None) is not None


class JsonFileDocumentStore(DocumentStore):
    """One JSON file per document in storage_dir, plus index.json.

    Usage:
        store = JsonFileDocumentStore(Path("data/documents"))
        store.save(doc)
        doc = store.load(doc.id)
    """

    def __init__(self, storage_dir: Path, seed_sample: bool = False) -> None:
        self._dir = Path(storage_dir)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create storage directory {self._dir}: {exc}") from exc
        if seed_sample and not self._read_index():
            self.save(sample_document())

    @property
    def storage_dir(self) -> Path:
        return self._dir

    def _path_for(self, document_id: str) -> Path:
        if not _SAFE_ID.match(document_id) or document_id in (".", ".."):
            raise StorageError(f"Invalid document id: {document_id!r}")
        return self._dir / f"{document_id}.json"

    def _write_json(self, path: Path, data: Any) -> None:
        """Atomic write through a sibling .tmp file, removed on every path."""
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            try:
                with tmp.open("w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False, indent=2, allow_nan=False)
                os.replace(tmp, path)
            finally:
                tmp.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Cannot serialize {path.name}: {exc}") from exc

    def _read_json(self, path: Path) -> Any:
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Corrupt file {path}: {exc}") from exc
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc

    def _read_index(self) -> list[DocumentMeta]:
        path = self._dir / INDEX_FILENAME
        if not path.exists():
            return []
        data = self._read_json(path)
        if not isinstance(data, list):
            raise StorageError(f"Corrupt index {path}: expected a list")
        try:
            return [DocumentMeta.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"Corrupt index {path}: {exc}") from exc

    def _write_index(self, metas: list[DocumentMeta]) -> None:
        self._write_json(self._dir / INDEX_FILENAME, [m.to_dict() for m in metas])

    def load(self, document_id: str) -> Optional[DocumentState]:
        path = self._path_for(document_id)
        if not path.exists():
            return None
        data = self._read_json(path)
        try:
            return DocumentState.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"Corrupt document {path}: {exc}") from exc

    def save(self, document: DocumentState) -> DocumentMeta:
        path = self._path_for(document.id)
        document.updated_at = _now_ms()
        try:
            data = document.to_dict()
        except (AttributeError, TypeError, ValueError) as exc:
            raise StorageError(f"Cannot serialize document {document.id}: {exc}") from exc
        self._write_json(path, data)

        meta = DocumentMeta.of(document)
        index = [m for m in self._read_index() if m.id != document.id]
        index.append(meta)
        self._write_index(index)
        return meta

    def list_documents(self) -> list[DocumentMeta]:
        return sorted(self._read_index(), key=lambda m: m.updated_at, reverse=True)

    def delete(self, document_id: str) -> bool:
        path = self._path_for(document_id)
        existed = path.exists()
        try:
            if existed:
                path.unlink()
        except OSError as exc:
            raise StorageError(f"Failed to delete {path}: {exc}") from exc
        index = self._read_index()
        remaining = [m for m in index if m.id != document_id]
        if len(remaining) != len(index):
            self._write_index(remaining)
            existed = True
        return existed
