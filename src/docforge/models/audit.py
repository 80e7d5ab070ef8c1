"""Audit models — the event contract of the document audit trail."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4


class AuditAction(str, enum.Enum):
    """Kinds of events recorded against a document."""
    CREATED = "created"
    VIEWED = "viewed"
    STARTED_FORM = "started_form"
    FIELD_UPDATED = "field_updated"
    SIGNED = "signed"
    DECLINED = "declined"
    COMPLETED = "completed"
    EMAILED = "emailed"
    DOWNLOADED = "downloaded"
    EDITED = "edited"
    SENT = "sent"


@dataclass(frozen=True)
class AuditLogEntry:
    """A single immutable audit event.

    timestamp is milliseconds since the Unix epoch (UTC).
    """
    id: str
    timestamp: int
    action: AuditAction
    user: str
    details: Optional[str] = None
    ip_address: Optional[str] = None
    event_data: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def create(
        action: AuditAction,
        user: str,
        details: Optional[str] = None,
        event_data: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        now: Optional[datetime] = None,
        entry_id: Optional[str] = None,
    ) -> AuditLogEntry:
        """Create a new entry stamped with the current time."""
        ts = now or datetime.now(timezone.utc)
        return AuditLogEntry(
            id=entry_id or str(uuid4()),
            timestamp=int(ts.timestamp() * 1000),
            action=action,
            user=user,
            details=details,
            ip_address=ip_address,
            event_data=dict(event_data or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "action": self.action.value,
            "user": self.user,
        }
        if self.details is not None:
            data["details"] = self.details
        if self.ip_address is not None:
            data["ipAddress"] = self.ip_address
        if self.event_data:
            data["eventData"] = dict(self.event_data)
        return data

    @staticmethod
    def from_dict(data: dict[str, Any]) -> AuditLogEntry:
        return AuditLogEntry(
            id=str(data["id"]),
            timestamp=int(data["timestamp"]),
            action=AuditAction(data["action"]),
            user=data.get("user", ""),
            details=data.get("details"),
            ip_address=data.get("ipAddress"),
            event_data=dict(data.get("eventData") or {}),
        )
