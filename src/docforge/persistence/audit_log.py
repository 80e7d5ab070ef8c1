"""Append-only audit log — the record of everything done to a document.

Entries are immutable once written and are never removed, not even by
undo. The log can be mirrored to a JSONL file (one JSON object per line)
and loaded back for recovery. Every appended entry is also reported on
the ``docforge.audit`` logger so a host application can ship it to its
own sink.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from docforge.models.audit import AuditAction, AuditLogEntry
from docforge.models.document import DocumentState

audit_logger = logging.getLogger("docforge.audit")

PENDING_HASH_PLACEHOLDER = "PENDING_FINALIZATION_HASH_CALCULATION"


class AuditLog:
    """Append-only audit log with optional file persistence.

    Entries are kept in append order, which is chronological for entries
    created through the editor. ``trail()`` sorts by timestamp for
    entries imported from elsewhere.

    Construction fails with ValueError when the seed entries repeat an id,
    or disagree with an entry of the same id recovered from storage_path.
    """

    def __init__(
        self,
        entries: Optional[Iterable[AuditLogEntry]] = None,
        storage_path: Optional[Path] = None,
    ) -> None:
        self._entries: list[AuditLogEntry] = []
        self._entry_ids: set[str] = set()
        self._storage_path = storage_path

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)
        # Entries already recovered from the mirror may be passed again unchanged
        recovered = {e.id: e for e in self._entries}
        seeded: set[str] = set()
        for entry in entries or []:
            if entry.id in seeded:
                raise ValueError(f"Duplicate audit entry ID: {entry.id}")
            seeded.add(entry.id)
            if entry.id in recovered:
                if recovered[entry.id] != entry:
                    raise ValueError(
                        f"Audit entry {entry.id} conflicts with the recovered log"
                    )
                continue
            self._entries.append(entry)
            self._entry_ids.add(entry.id)

    def append(self, entry: AuditLogEntry) -> None:
        """Append an entry to the log.

        Raises ValueError if the entry id is a duplicate (replay protection).
        """
        if entry.id in self._entry_ids:
            raise ValueError(f"Duplicate audit entry ID: {entry.id}")

        self._entries.append(entry)
        self._entry_ids.add(entry.id)
        audit_logger.info(
            "%s by %s%s",
            entry.action.value,
            entry.user,
            f": {entry.details}" if entry.details else "",
        )

        if self._storage_path:
            self._append_to_file(entry)

    def record(
        self,
        action: AuditAction,
        user: str,
        details: Optional[str] = None,
        event_data: Optional[dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> AuditLogEntry:
        """Create, append and return a new entry."""
        entry = AuditLogEntry.create(action, user, details=details, event_data=event_data, now=now)
        self.append(entry)
        return entry

    def entries(self, action: Optional[AuditAction] = None) -> list[AuditLogEntry]:
        """Return entries in append order, optionally filtered by action."""
        if action is None:
            return list(self._entries)
        return [e for e in self._entries if e.action == action]

    def trail(self) -> list[AuditLogEntry]:
        """Entries oldest first (stable for equal timestamps)."""
        return sorted(self._entries, key=lambda e: e.timestamp)

    @property
    def count(self) -> int:
        return len(self._entries)

    @property
    def last_entry(self) -> Optional[AuditLogEntry]:
        return self._entries[-1] if self._entries else None

    def _append_to_file(self, entry: AuditLogEntry) -> None:
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), sort_keys=True, ensure_ascii=False) + "\n")

    def _load_from_file(self, path: Path) -> None:
        """Load entries from a JSONL file.

        Fail-closed: duplicate ids on recovery are rejected.
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                entry = AuditLogEntry.from_dict(json.loads(line))
                if entry.id in self._entry_ids:
                    raise ValueError(
                        f"Duplicate audit entry ID on recovery (line {line_num}): {entry.id}"
                    )
                self._entries.append(entry)
                self._entry_ids.add(entry.id)


def build_audit_trail(document: DocumentState) -> dict[str, Any]:
    """The audit-trail export contract for one document.

    Identity and fingerprint first, then the event timeline oldest first.
    A document that was never hashed carries the pending placeholder.
    """
    events = sorted(document.audit_log, key=lambda e: e.timestamp)
    return {
        "documentId": document.id,
        "title": document.title,
        "status": document.status.value,
        "sha256": document.sha256 or PENDING_HASH_PLACEHOLDER,
        "events": [e.to_dict() for e in events],
    }


def format_audit_trail(trail: dict[str, Any]) -> str:
    """Plain-text rendering of build_audit_trail output."""
    lines = [
        "DOCUMENT AUDIT TRAIL",
        f"Title: {trail['title']}",
        f"ID: {trail['documentId']}",
        f"SHA-256: {trail['sha256']}",
        "",
    ]
    for event in trail["events"]:
        when = datetime.fromtimestamp(event["timestamp"] / 1000, tz=timezone.utc)
        lines.append(f"[{when.strftime('%Y-%m-%d %H:%M:%S')}Z] {event['action'].upper()}")
        user_line = f"  User: {event['user']}"
        if event.get("ipAddress"):
            user_line += f"  IP: {event['ipAddress']}"
        lines.append(user_line)
        if event.get("details"):
            lines.append(f"  Details: {event['details']}")
    return "\n".join(lines)
