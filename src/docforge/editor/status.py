"""Document status machine — enforces valid lifecycle transitions.

Document lifecycle:
    DRAFT → SENT → COMPLETED → ARCHIVED
    DRAFT ↔ TEMPLATE
    SENT → DRAFT (recall)
    Any non-archived state → ARCHIVED

State semantics:
- DRAFT: being authored; content is editable.
- TEMPLATE: reusable source for new documents.
- SENT: out for signature; answers may arrive.
- COMPLETED: every party has signed; content and answers locked.
- ARCHIVED: terminal, retained for the record.

Fail-closed: invalid transitions return errors. There are no implicit
transitions.
"""

from __future__ import annotations

from docforge.models.audit import AuditAction
from docforge.models.document import DocumentState, DocumentStatus


# Valid transitions: {from_state: {allowed_to_states}}
_TRANSITIONS: dict[DocumentStatus, set[DocumentStatus]] = {
    DocumentStatus.DRAFT: {
        DocumentStatus.SENT,
        DocumentStatus.TEMPLATE,
        DocumentStatus.ARCHIVED,
    },
    DocumentStatus.TEMPLATE: {DocumentStatus.DRAFT, DocumentStatus.ARCHIVED},
    DocumentStatus.SENT: {
        DocumentStatus.COMPLETED,
        DocumentStatus.DRAFT,
        DocumentStatus.ARCHIVED,
    },
    DocumentStatus.COMPLETED: {DocumentStatus.ARCHIVED},
    # Terminal
    DocumentStatus.ARCHIVED: set(),
}

# Audit action recorded when entering a status
_AUDIT_ACTIONS: dict[DocumentStatus, AuditAction] = {
    DocumentStatus.SENT: AuditAction.SENT,
    DocumentStatus.COMPLETED: AuditAction.COMPLETED,
}


class DocumentStatusMachine:
    """Validates and applies document status transitions.

    Pure computation: side effects (audit entries, persistence) are
    handled by the editor.
    """

    @staticmethod
    def validate_transition(
        document: DocumentState,
        target: DocumentStatus,
    ) -> list[str]:
        """Check if a transition is valid. Returns errors (empty = OK)."""
        current = document.status
        allowed = _TRANSITIONS.get(current, set())

        if target not in allowed:
            allowed_str = ", ".join(s.value for s in sorted(allowed, key=lambda x: x.value))
            return [
                f"Invalid document transition: {current.value} → {target.value}. "
                f"Allowed from {current.value}: [{allowed_str}]"
            ]
        return []

    @staticmethod
    def apply_transition(
        document: DocumentState,
        target: DocumentStatus,
    ) -> list[str]:
        """Validate and apply a transition; mutates document.status on success."""
        errors = DocumentStatusMachine.validate_transition(document, target)
        if errors:
            return errors
        document.status = target
        return []

    @staticmethod
    def is_terminal(status: DocumentStatus) -> bool:
        return not _TRANSITIONS.get(status)

    @staticmethod
    def valid_transitions(status: DocumentStatus) -> set[DocumentStatus]:
        return set(_TRANSITIONS.get(status, set()))

    @staticmethod
    def audit_action_for(target: DocumentStatus) -> AuditAction:
        return _AUDIT_ACTIONS.get(target, AuditAction.EDITED)
