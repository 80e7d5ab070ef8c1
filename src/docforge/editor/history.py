"""Undo/redo history — two stacks of immutable content snapshots.

A snapshot captures the title and the content fields (blocks, parties,
variables, terms, settings). Status, the audit log and the hash are not
part of history: undo never rolls them back.

Snapshots are deep copies on the way in and on the way out, so nothing
outside the history can mutate a captured state in place.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Optional

from docforge.models.block import Block
from docforge.models.document import DocumentState, Party, Term, Variable


@dataclass(frozen=True)
class HistoryEntry:
    """One captured content state."""
    title: str
    blocks: list[Block]
    parties: list[Party]
    variables: list[Variable]
    terms: list[Term]
    settings: dict[str, Any]

    @staticmethod
    def capture(document: DocumentState) -> HistoryEntry:
        return HistoryEntry(
            title=document.title,
            blocks=copy.deepcopy(document.blocks),
            parties=copy.deepcopy(document.parties),
            variables=copy.deepcopy(document.variables),
            terms=copy.deepcopy(document.terms),
            settings=copy.deepcopy(document.settings),
        )

    def restore_into(self, document: DocumentState) -> None:
        document.title = self.title
        document.blocks = copy.deepcopy(self.blocks)
        document.parties = copy.deepcopy(self.parties)
        document.variables = copy.deepcopy(self.variables)
        document.terms = copy.deepcopy(self.terms)
        document.settings = copy.deepcopy(self.settings)


class History:
    """Bounded two-stack history. The oldest snapshot is dropped first."""

    def __init__(self, limit: int = 100) -> None:
        if limit < 1:
            raise ValueError(f"History limit must be >= 1, got {limit}")
        self._limit = limit
        self._past: list[HistoryEntry] = []
        self._future: list[HistoryEntry] = []

    def _push_past(self, entry: HistoryEntry) -> None:
        self._past.append(entry)
        if len(self._past) > self._limit:
            del self._past[0]

    def record(self, entry: HistoryEntry) -> None:
        """Push the pre-mutation state; a new edit invalidates redo."""
        self._push_past(entry)
        self._future.clear()

    def undo(self, current: HistoryEntry) -> Optional[HistoryEntry]:
        """Pop the previous state, parking current for redo."""
        if not self._past:
            return None
        self._future.append(current)
        return self._past.pop()

    def redo(self, current: HistoryEntry) -> Optional[HistoryEntry]:
        if not self._future:
            return None
        self._push_past(current)
        return self._future.pop()

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    @property
    def undo_depth(self) -> int:
        return len(self._past)

    @property
    def redo_depth(self) -> int:
        return len(self._future)
