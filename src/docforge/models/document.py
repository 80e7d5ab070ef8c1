"""Document models — the aggregate root and its non-tree collaborators.

A DocumentState is a plain JSON-serializable object: the block tree, the
signing parties, global variables, glossary terms, free-form settings,
the audit log and the derived content hash.

Status lifecycle (enforced by editor.status):
    DRAFT → SENT → COMPLETED → ARCHIVED
    DRAFT ↔ TEMPLATE
"""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from typing import Any, Optional

from docforge.models.audit import AuditLogEntry
from docforge.models.block import Block, carried_keys, merge_carried


class DocumentStatus(str, enum.Enum):
    """Lifecycle state of a document."""
    DRAFT = "draft"
    SENT = "sent"
    COMPLETED = "completed"
    ARCHIVED = "archived"
    TEMPLATE = "template"


DEFAULT_SETTINGS: dict[str, Any] = {
    "signingOrder": "parallel",
    "brandColor": "#000000",
    "fontFamily": "Inter, sans-serif",
    "margins": {"top": 60, "bottom": 60, "left": 60, "right": 60},
    "direction": "ltr",
}


@dataclass
class Party:
    """A signer or role. Blocks reference parties weakly by id."""
    id: str
    name: str
    color: str
    initials: str
    email: Optional[str] = None
    access_code: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "initials": self.initials,
        }
        if self.email is not None:
            data["email"] = self.email
        if self.access_code is not None:
            data["accessCode"] = self.access_code
        return merge_carried(data, self.extra)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Party:
        return Party(
            id=str(data["id"]),
            name=data.get("name", ""),
            color=data.get("color", ""),
            initials=data.get("initials", ""),
            email=data.get("email"),
            access_code=data.get("accessCode"),
            extra=carried_keys(data, _PARTY_KEYS),
        )


_PARTY_KEYS = frozenset({"id", "name", "color", "initials", "email", "accessCode"})


@dataclass
class Variable:
    """A global template variable, e.g. ClientName = "Acme Corp".

    The value is kept as loaded (text, number or boolean); formulas read
    it through to_number.
    """
    id: str
    key: str
    value: Any
    label: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "key": self.key, "value": self.value}
        if self.label is not None:
            data["label"] = self.label
        return merge_carried(data, self.extra)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Variable:
        return Variable(
            id=str(data["id"]),
            key=data.get("key", ""),
            value=data.get("value", ""),
            label=data.get("label"),
            extra=carried_keys(data, _VARIABLE_KEYS),
        )


_VARIABLE_KEYS = frozenset({"id", "key", "value", "label"})


@dataclass
class Term:
    """A glossary term highlighted in document text."""
    id: str
    term: str
    definition: str
    source: str = "user"  # "system" | "user"
    color: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "term": self.term,
            "definition": self.definition,
            "source": self.source,
        }
        if self.color is not None:
            data["color"] = self.color
        return merge_carried(data, self.extra)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Term:
        return Term(
            id=str(data["id"]),
            term=data.get("term", ""),
            definition=data.get("definition", ""),
            source=data.get("source", "user"),
            color=data.get("color"),
            extra=carried_keys(data, _TERM_KEYS),
        )


_TERM_KEYS = frozenset({"id", "term", "definition", "source", "color"})


@dataclass
class DocumentState:
    """Aggregate root of a document.

    Mutated exclusively through the DocumentEditor. sha256 is derived and
    eventually consistent: it is recomputed after content changes.
    """
    id: str
    title: str
    status: DocumentStatus = DocumentStatus.DRAFT
    blocks: list[Block] = field(default_factory=list)
    parties: list[Party] = field(default_factory=list)
    variables: list[Variable] = field(default_factory=list)
    terms: list[Term] = field(default_factory=list)
    settings: dict[str, Any] = field(default_factory=lambda: copy.deepcopy(DEFAULT_SETTINGS))
    audit_log: list[AuditLogEntry] = field(default_factory=list)
    sha256: Optional[str] = None
    snapshot: Optional[list[Block]] = None
    owner_id: Optional[str] = None
    description: Optional[str] = None
    updated_at: Optional[int] = None

    def clone(self) -> DocumentState:
        """Deep, reference-free copy."""
        return copy.deepcopy(self)

    def content_dict(self) -> dict[str, Any]:
        """The legally relevant content, exactly the fields that are hashed."""
        return {
            "blocks": [b.to_dict() for b in self.blocks],
            "parties": [p.to_dict() for p in self.parties],
            "settings": copy.deepcopy(self.settings),
            "terms": [t.to_dict() for t in self.terms],
            "variables": [v.to_dict() for v in self.variables],
        }

    def to_dict(self) -> dict[str, Any]:
        data = {"id": self.id, "title": self.title, "status": self.status.value}
        data.update(self.content_dict())
        data["auditLog"] = [e.to_dict() for e in self.audit_log]
        if self.sha256 is not None:
            data["sha256"] = self.sha256
        if self.snapshot is not None:
            data["snapshot"] = [b.to_dict() for b in self.snapshot]
        if self.owner_id is not None:
            data["ownerId"] = self.owner_id
        if self.description is not None:
            data["description"] = self.description
        if self.updated_at is not None:
            data["updatedAt"] = self.updated_at
        return data

    @staticmethod
    def from_dict(data: dict[str, Any]) -> DocumentState:
        snapshot = data.get("snapshot")
        settings = data.get("settings")
        return DocumentState(
            id=str(data["id"]),
            title=data.get("title", ""),
            status=DocumentStatus(data.get("status", DocumentStatus.DRAFT.value)),
            blocks=[Block.from_dict(b) for b in data.get("blocks") or []],
            parties=[Party.from_dict(p) for p in data.get("parties") or []],
            variables=[Variable.from_dict(v) for v in data.get("variables") or []],
            terms=[Term.from_dict(t) for t in data.get("terms") or []],
            settings=copy.deepcopy(settings) if settings is not None else copy.deepcopy(DEFAULT_SETTINGS),
            audit_log=[AuditLogEntry.from_dict(e) for e in data.get("auditLog") or []],
            sha256=data.get("sha256"),
            snapshot=[Block.from_dict(b) for b in snapshot] if isinstance(snapshot, list) else None,
            owner_id=data.get("ownerId"),
            description=data.get("description"),
            updated_at=data.get("updatedAt"),
        )
