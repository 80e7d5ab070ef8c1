"""Tests for the audit log — append-only semantics, persistence, trail export."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from docforge.models.audit import AuditAction, AuditLogEntry
from docforge.models.document import DocumentState
from docforge.persistence.audit_log import (
    PENDING_HASH_PLACEHOLDER,
    AuditLog,
    build_audit_trail,
    format_audit_trail,
)


def _at(hour: int) -> datetime:
    return datetime(2026, 3, 1, hour, 0, 0, tzinfo=timezone.utc)


def _entry(entry_id: str, hour: int, action: AuditAction = AuditAction.EDITED) -> AuditLogEntry:
    return AuditLogEntry.create(action, "Me", details=f"entry {entry_id}", now=_at(hour), entry_id=entry_id)


class TestAuditLogEntry:
    def test_timestamp_in_milliseconds(self) -> None:
        entry = _entry("e1", 12)
        assert entry.timestamp == int(_at(12).timestamp() * 1000)

    def test_wire_round_trip(self) -> None:
        entry = AuditLogEntry.create(
            AuditAction.SIGNED, "Client", ip_address="10.0.0.1",
            event_data={"signatureId": "s1"}, now=_at(9), entry_id="e9",
        )
        data = entry.to_dict()
        assert data["ipAddress"] == "10.0.0.1"
        assert data["eventData"] == {"signatureId": "s1"}
        assert AuditLogEntry.from_dict(data) == entry

    def test_entries_are_immutable(self) -> None:
        entry = _entry("e1", 1)
        with pytest.raises(AttributeError):
            entry.user = "someone else"

    def test_unknown_action_rejected(self) -> None:
        with pytest.raises(ValueError):
            AuditLogEntry.from_dict({"id": "x", "timestamp": 0, "action": "teleported", "user": "u"})


class TestAuditLog:
    def test_append_and_count(self) -> None:
        log = AuditLog()
        log.append(_entry("e1", 1))
        log.append(_entry("e2", 2))
        assert log.count == 2
        assert log.last_entry.id == "e2"

    def test_duplicate_id_rejected(self) -> None:
        log = AuditLog()
        log.append(_entry("e1", 1))
        with pytest.raises(ValueError, match="Duplicate"):
            log.append(_entry("e1", 2))
        assert log.count == 1

    def test_duplicate_seed_ids_rejected(self) -> None:
        with pytest.raises(ValueError, match="Duplicate"):
            AuditLog([_entry("e1", 1), _entry("e1", 2)])

    def test_filter_by_action(self) -> None:
        log = AuditLog([_entry("e1", 1), _entry("e2", 2, AuditAction.SENT)])
        assert [e.id for e in log.entries(AuditAction.SENT)] == ["e2"]

    def test_trail_sorted_by_timestamp(self) -> None:
        log = AuditLog([_entry("late", 5), _entry("early", 1)])
        assert [e.id for e in log.trail()] == ["early", "late"]
        assert [e.id for e in log.entries()] == ["late", "early"]

    def test_entries_returns_copy(self) -> None:
        log = AuditLog([_entry("e1", 1)])
        log.entries().clear()
        assert log.count == 1

    def test_record_creates_entry(self) -> None:
        log = AuditLog()
        entry = log.record(AuditAction.VIEWED, "Client", details="Opened", now=_at(3))
        assert log.last_entry == entry
        assert entry.action == AuditAction.VIEWED

    def test_append_reports_to_audit_logger(self, caplog) -> None:
        log = AuditLog()
        with caplog.at_level("INFO", logger="docforge.audit"):
            log.append(_entry("e1", 1))
        assert "edited by Me: entry e1" in caplog.text


class TestAuditLogPersistence:
    def test_jsonl_mirror_and_recovery(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.jsonl"
        log = AuditLog(storage_path=path)
        log.append(_entry("e1", 1))
        log.append(_entry("e2", 2))

        lines = path.read_text(encoding="utf-8").strip().splitlines()
        assert [json.loads(line)["id"] for line in lines] == ["e1", "e2"]

        recovered = AuditLog(storage_path=path)
        assert [e.id for e in recovered.entries()] == ["e1", "e2"]

    def test_duplicate_on_recovery_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.jsonl"
        line = json.dumps(_entry("e1", 1).to_dict())
        path.write_text(line + "\n" + line + "\n", encoding="utf-8")
        with pytest.raises(ValueError, match="recovery"):
            AuditLog(storage_path=path)

    def test_reopen_with_same_entries_accepted(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.jsonl"
        log = AuditLog(storage_path=path)
        log.append(_entry("e1", 1))
        reopened = AuditLog(log.entries() + [_entry("e2", 2)], storage_path=path)
        assert [e.id for e in reopened.entries()] == ["e1", "e2"]

    def test_seed_conflicting_with_recovered_entry_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.jsonl"
        AuditLog(storage_path=path).append(_entry("e1", 1))
        with pytest.raises(ValueError, match="conflicts"):
            AuditLog([_entry("e1", 5)], storage_path=path)

    def test_blank_lines_skipped(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.jsonl"
        path.write_text("\n" + json.dumps(_entry("e1", 1).to_dict()) + "\n\n", encoding="utf-8")
        assert AuditLog(storage_path=path).count == 1


class TestAuditTrail:
    def _doc(self) -> DocumentState:
        return DocumentState(
            id="doc_1",
            title="Service Agreement",
            audit_log=[_entry("late", 5, AuditAction.SENT), _entry("early", 1, AuditAction.CREATED)],
        )

    def test_pending_placeholder_without_hash(self) -> None:
        trail = build_audit_trail(self._doc())
        assert trail["sha256"] == PENDING_HASH_PLACEHOLDER
        assert trail["documentId"] == "doc_1"

    def test_events_oldest_first(self) -> None:
        trail = build_audit_trail(self._doc())
        assert [e["id"] for e in trail["events"]] == ["early", "late"]

    def test_uses_stored_hash(self) -> None:
        doc = self._doc()
        doc.sha256 = "a" * 64
        assert build_audit_trail(doc)["sha256"] == "a" * 64

    def test_text_rendering(self) -> None:
        text = format_audit_trail(build_audit_trail(self._doc()))
        assert text.startswith("DOCUMENT AUDIT TRAIL")
        assert text.index("CREATED") < text.index("SENT")
        assert "Details: entry early" in text
