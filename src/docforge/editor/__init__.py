"""Editor — the orchestrator, its history, lifecycle and session."""

from docforge.editor.document_editor import DocumentEditor, EditResult
from docforge.editor.history import History, HistoryEntry
from docforge.editor.session import Debouncer, DocumentSession, SaveStatus
from docforge.editor.status import DocumentStatusMachine

__all__ = [
    "DocumentEditor",
    "EditResult",
    "History",
    "HistoryEntry",
    "Debouncer",
    "DocumentSession",
    "SaveStatus",
    "DocumentStatusMachine",
]
