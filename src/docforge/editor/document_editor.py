"""Document editor — the single mutation path for a DocumentState.

The editor owns the current document plus its undo/redo history and
exposes the operations a UI issues: add, update, delete, move, ungroup
and split blocks; manage parties, settings and title; undo and redo;
status transitions; snapshots and hashing.

Every mutating operation:
1. validates its input; stale or missing ids are no-ops that return
   EditResult(success=False) rather than raising,
2. records the pre-mutation content in history (unless told not to),
3. swaps in a new tree built by TreeManager (never edited in place),
4. appends an audit entry, bumps the version and notifies listeners.

The version is a monotonic counter used by the session to discard stale
background work (a hash computed for version N is never applied once
the editor has moved on to N+1).

Usage:
    editor = DocumentEditor(document, config=EditorConfig.default())
    result = editor.add_block(BlockType.INPUT)
    editor.update_block(result.data["block_id"], {"label": "Full name"})
    editor.undo()
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from docforge.config import EditorConfig
from docforge.crypto.canonical import hash_document
from docforge.editor.history import History, HistoryEntry
from docforge.editor.status import DocumentStatusMachine
from docforge.models.audit import AuditAction, AuditLogEntry
from docforge.models.block import (
    CONTAINER_TYPES,
    Block,
    BlockCondition,
    BlockType,
    CurrencySettings,
    DropPosition,
    PaymentSettings,
    create_block,
)
from docforge.models.document import DocumentState, DocumentStatus, Party, Term, Variable
from docforge.persistence.audit_log import AuditLog
from docforge.tree.diff import DiffStatus, compute_diff
from docforge.tree.manager import TreeManager

Listener = Callable[["DocumentEditor"], None]

# Block attributes update_block may set
_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    f.name for f in fields(Block) if f.name != "id"
)


@dataclass(frozen=True)
class EditResult:
    """Result of an editor operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


def _fail(*errors: str) -> EditResult:
    return EditResult(success=False, errors=list(errors))


def _as_block_type(value: BlockType | str) -> Optional[BlockType]:
    try:
        return BlockType(value)
    except ValueError:
        return None


# Block attributes holding nested models; wire-shaped dicts are accepted
_MODEL_FIELDS: dict[str, type] = {
    "condition": BlockCondition,
    "currency_settings": CurrencySettings,
    "payment_settings": PaymentSettings,
}


def _as_child_block(value: Any, name: str) -> Block:
    if isinstance(value, Block):
        return copy.deepcopy(value)
    if isinstance(value, Mapping):
        return Block.from_dict(dict(value))
    raise ValueError(f"{name} entries must be blocks, got {type(value).__name__}")


def _coerce_field(name: str, value: Any) -> Any:
    """Bring an update value to the attribute's model type.

    Raises ValueError, KeyError or TypeError for values that cannot be
    converted.
    """
    if name == "type":
        return BlockType(value)
    if name in ("children", "else_children"):
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"{name} must be a list of blocks")
        return [_as_child_block(item, name) for item in value]
    model = _MODEL_FIELDS.get(name)
    if model is not None and value is not None:
        if isinstance(value, model):
            return copy.deepcopy(value)
        if isinstance(value, Mapping):
            return model.from_dict(dict(value))
        raise ValueError(f"{name} must be a {model.__name__} or a mapping")
    if name == "extra" and not isinstance(value, Mapping):
        raise ValueError("extra must be a mapping")
    return copy.deepcopy(value)


class DocumentEditor:
    """Orchestrates all edits of one document.

    Raises ValueError on construction when the document's audit log
    repeats an entry id (see AuditLog).
    """

    def __init__(
        self,
        document: DocumentState,
        config: Optional[EditorConfig] = None,
        user: Optional[str] = None,
        audit_path: Optional[Path] = None,
    ) -> None:
        self._config = config or EditorConfig.default()
        self._user = user or self._config.default_user
        self._doc = document.clone()
        self._audit_log = AuditLog(self._doc.audit_log, storage_path=audit_path)
        self._doc.audit_log = self._audit_log.entries()
        self._history = History(self._config.history_limit)
        self._version = 0
        self._selected_block_id: Optional[str] = None
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def document(self) -> DocumentState:
        """The live document. Treat as read-only; mutate through the editor."""
        return self._doc

    @property
    def version(self) -> int:
        return self._version

    @property
    def user(self) -> str:
        return self._user

    @property
    def selected_block_id(self) -> Optional[str]:
        return self._selected_block_id

    @property
    def audit_log(self) -> AuditLog:
        return self._audit_log

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    def snapshot(self) -> DocumentState:
        """Deep copy of the current document."""
        return self._doc.clone()

    def get_block(self, block_id: str) -> Optional[Block]:
        """A copy of the block with block_id, or None."""
        node = TreeManager.find_node(self._doc.blocks, block_id)
        return copy.deepcopy(node) if node is not None else None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Internal plumbing
    # ------------------------------------------------------------------

    def _record(self, record_history: bool = True) -> None:
        if record_history:
            self._history.record(HistoryEntry.capture(self._doc))

    def _audit(
        self,
        action: AuditAction,
        details: Optional[str] = None,
        event_data: Optional[dict[str, Any]] = None,
    ) -> AuditLogEntry:
        entry = self._audit_log.record(action, self._user, details=details, event_data=event_data)
        self._doc.audit_log.append(entry)
        return entry

    def _changed(self) -> None:
        self._version += 1
        for listener in list(self._listeners):
            listener(self)

    def _set_blocks(self, blocks: list[Block]) -> None:
        if self._config.auto_sanitize:
            blocks = TreeManager.sanitize(blocks)
        self._doc.blocks = blocks

    def _new_block(self, block_type: BlockType) -> Block:
        return create_block(
            block_type,
            spacer_height=self._config.spacer_height,
            column_width=self._config.column_width,
        )

    def _check_target(
        self,
        tree: list[Block],
        target_id: Optional[str],
        position: DropPosition,
    ) -> list[str]:
        if not target_id:
            return []
        target = TreeManager.find_node(tree, target_id)
        if target is None:
            return [f"Target block not found: {target_id}"]
        if position == DropPosition.INSIDE_FALSE and not target.is_conditional:
            return [f"Only conditional blocks have an else branch: {target_id}"]
        return []

    # ------------------------------------------------------------------
    # Block operations
    # ------------------------------------------------------------------

    def add_block(
        self,
        block_type: BlockType | str,
        target_id: Optional[str] = None,
        position: DropPosition | str = DropPosition.AFTER,
        record_history: bool = True,
    ) -> EditResult:
        """Create a block with type defaults and place it.

        The new block becomes the selected block.
        """
        try:
            block_type = BlockType(block_type)
            position = DropPosition(position)
        except ValueError as exc:
            return _fail(str(exc))

        errors = self._check_target(self._doc.blocks, target_id, position)
        if errors:
            return _fail(*errors)

        block = self._new_block(block_type)
        self._record(record_history)
        self._set_blocks(TreeManager.insert_node(self._doc.blocks, block, target_id, position))
        self._selected_block_id = block.id
        self._audit(AuditAction.EDITED, f"Added {block_type.value}", {"blockId": block.id})
        self._changed()
        return EditResult(success=True, data={"block_id": block.id})

    def update_block(
        self,
        block_id: str,
        updates: Mapping[str, Any],
        record_history: bool = True,
    ) -> EditResult:
        """Shallow-merge updates (attribute name -> value) into a block.

        Nested values may be given as models or in their wire shape
        (a condition dict, child block dicts) and are converted first.
        The id cannot change. Updates that would break a tree invariant
        (duplicate ids, else branch or condition on a non-conditional)
        are rejected whole. Coalesced high-frequency edits pass
        record_history=False and are neither recorded nor audited.
        """
        if "id" in updates:
            return _fail("Block id is immutable")
        unknown = sorted(set(updates) - _UPDATABLE_FIELDS)
        if unknown:
            return _fail(f"Unknown block fields: {', '.join(unknown)}")

        new_tree = TreeManager.clone_tree(self._doc.blocks)
        node = TreeManager.find_node(new_tree, block_id)
        if node is None:
            return _fail(f"Block not found: {block_id}")

        for name, value in updates.items():
            try:
                setattr(node, name, _coerce_field(name, value))
            except (ValueError, KeyError, TypeError) as exc:
                return _fail(f"Invalid value for {name}: {exc}")

        errors = TreeManager.validate(new_tree)
        if errors:
            return _fail(*errors)

        self._record(record_history)
        self._doc.blocks = new_tree
        if record_history:
            self._audit(
                AuditAction.EDITED,
                "Updated block",
                {"blockId": block_id, "fields": sorted(updates)},
            )
        self._changed()
        return EditResult(success=True, data={"block_id": block_id})

    def delete_block(self, block_id: str, record_history: bool = True) -> EditResult:
        """Remove a block and its subtree; clears a selection inside it."""
        removal = TreeManager.remove_node(self._doc.blocks, block_id)
        if removal.removed is None:
            return _fail(f"Block not found: {block_id}")

        self._record(record_history)
        self._set_blocks(removal.tree)
        if self._selected_block_id is not None and (
            self._selected_block_id == block_id
            or TreeManager.contains([removal.removed], self._selected_block_id)
        ):
            self._selected_block_id = None
        self._audit(AuditAction.EDITED, "Deleted block", {"blockId": block_id})
        self._changed()
        return EditResult(success=True, data={"block_id": block_id})

    def move_block(
        self,
        dragged_id: str,
        target_id: Optional[str] = None,
        position: DropPosition | str = DropPosition.AFTER,
        record_history: bool = True,
    ) -> EditResult:
        """Move a block: remove it, then insert it at the new place.

        Rejected as a no-op when the target is the dragged block itself
        or lies inside the dragged subtree, or is gone after removal.
        """
        try:
            position = DropPosition(position)
        except ValueError as exc:
            return _fail(str(exc))

        if dragged_id == target_id:
            return _fail("Cannot move a block relative to itself")
        if target_id and TreeManager.is_descendant(self._doc.blocks, dragged_id, target_id):
            return _fail(f"Cannot move block {dragged_id} into its own subtree")

        removal = TreeManager.remove_node(self._doc.blocks, dragged_id)
        if removal.removed is None:
            return _fail(f"Block not found: {dragged_id}")
        errors = self._check_target(removal.tree, target_id, position)
        if errors:
            return _fail(*errors)

        self._record(record_history)
        self._set_blocks(
            TreeManager.insert_node(removal.tree, removal.removed, target_id, position)
        )
        self._audit(
            AuditAction.EDITED,
            "Reordered blocks",
            {"blockId": dragged_id, "targetId": target_id, "position": position.value},
        )
        self._changed()
        return EditResult(success=True, data={"block_id": dragged_id})

    def ungroup_block(self, block_id: str, record_history: bool = True) -> EditResult:
        """Replace a container with its contents at the same position.

        A columns row flattens the children of all its columns in order;
        any other block is replaced by its direct children.
        """
        node = TreeManager.find_node(self._doc.blocks, block_id)
        if node is None:
            return _fail(f"Block not found: {block_id}")
        if node.type not in CONTAINER_TYPES and not node.children:
            return _fail(f"Block has nothing to ungroup: {block_id}")

        if node.type == BlockType.COLUMNS:
            contents = [child for column in node.children for child in column.children]
        else:
            contents = list(node.children)

        self._record(record_history)
        self._doc.blocks = TreeManager.replace_node(self._doc.blocks, block_id, contents)
        if self._selected_block_id == block_id:
            self._selected_block_id = None
        self._audit(
            AuditAction.EDITED,
            "Ungrouped columns" if node.type == BlockType.COLUMNS else "Ungrouped block",
            {"blockId": block_id},
        )
        self._changed()
        return EditResult(success=True, data={"block_ids": [b.id for b in contents]})

    def create_column_layout(
        self,
        target_id: str,
        source: BlockType | str,
        direction: str,
        record_history: bool = True,
    ) -> EditResult:
        """Put source beside target in a new two-column row.

        source is either a block type (a fresh block is created) or the
        id of an existing block, which is moved.
        """
        if direction not in ("left", "right"):
            return _fail(f"Invalid split direction: {direction}")
        if TreeManager.find_node(self._doc.blocks, target_id) is None:
            return _fail(f"Target block not found: {target_id}")

        new_type = _as_block_type(source)
        if new_type is not None:
            tree = self._doc.blocks
            source_block: Optional[Block] = self._new_block(new_type)
        else:
            if source == target_id:
                return _fail("Cannot split a block with itself")
            if TreeManager.is_descendant(self._doc.blocks, source, target_id):
                return _fail(f"Cannot move block {source} into its own subtree")
            removal = TreeManager.remove_node(self._doc.blocks, source)
            tree, source_block = removal.tree, removal.removed
            if source_block is None:
                return _fail(f"Block not found: {source}")

        self._record(record_history)
        self._set_blocks(
            TreeManager.split_block(
                tree,
                target_id,
                source_block,
                direction,
                column_width=self._config.column_width,
            )
        )
        self._audit(
            AuditAction.EDITED,
            "Created columns",
            {"targetId": target_id, "sourceId": source_block.id, "direction": direction},
        )
        self._changed()
        return EditResult(success=True, data={"block_id": source_block.id})

    def select_block(self, block_id: Optional[str]) -> EditResult:
        if block_id is not None and not TreeManager.contains(self._doc.blocks, block_id):
            return _fail(f"Block not found: {block_id}")
        self._selected_block_id = block_id
        return EditResult(success=True, data={"block_id": block_id})

    # ------------------------------------------------------------------
    # Parties, settings and other document content
    # ------------------------------------------------------------------

    def _replace_parties(self, parties: list[Party], details: str) -> EditResult:
        ids = [p.id for p in parties]
        if len(ids) != len(set(ids)):
            return _fail("Duplicate party ids")
        self._record()
        self._doc.parties = copy.deepcopy(parties)
        self._audit(AuditAction.EDITED, details)
        self._changed()
        return EditResult(success=True, data={"party_ids": ids})

    def update_parties(self, parties: list[Party]) -> EditResult:
        return self._replace_parties(list(parties), "Updated parties")

    def add_party(self, party: Party) -> EditResult:
        if any(p.id == party.id for p in self._doc.parties):
            return _fail(f"Party already exists: {party.id}")
        return self._replace_parties(self._doc.parties + [party], f"Added party {party.name}")

    def update_party(self, index: int, party: Party) -> EditResult:
        if not 0 <= index < len(self._doc.parties):
            return _fail(f"Party index out of range: {index}")
        parties = list(self._doc.parties)
        parties[index] = party
        return self._replace_parties(parties, f"Updated party {party.name}")

    def remove_party(self, party_id: str) -> EditResult:
        """Remove a party. Blocks keep their (now dangling) weak reference."""
        remaining = [p for p in self._doc.parties if p.id != party_id]
        if len(remaining) == len(self._doc.parties):
            return _fail(f"Party not found: {party_id}")
        return self._replace_parties(remaining, f"Removed party {party_id}")

    def update_settings(self, settings: Mapping[str, Any]) -> EditResult:
        """Replace the document settings wholesale."""
        self._record()
        self._doc.settings = copy.deepcopy(dict(settings))
        self._audit(AuditAction.EDITED, "Updated document settings")
        self._changed()
        return EditResult(success=True)

    def update_title(self, title: str) -> EditResult:
        if not title.strip():
            return _fail("Title must not be empty")
        if title == self._doc.title:
            return _fail("Title unchanged")
        self._record()
        self._doc.title = title
        self._audit(AuditAction.EDITED, f"Renamed document to {title}")
        self._changed()
        return EditResult(success=True)

    def update_variables(self, variables: list[Variable]) -> EditResult:
        keys = [v.key for v in variables]
        if len(keys) != len(set(keys)):
            return _fail("Duplicate variable keys")
        self._record()
        self._doc.variables = copy.deepcopy(variables)
        self._audit(AuditAction.EDITED, "Updated variables")
        self._changed()
        return EditResult(success=True)

    def update_terms(self, terms: list[Term]) -> EditResult:
        self._record()
        self._doc.terms = copy.deepcopy(terms)
        self._audit(AuditAction.EDITED, "Updated glossary terms")
        self._changed()
        return EditResult(success=True)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def undo(self) -> EditResult:
        """Restore the previous content. Status and audit log stay as they are."""
        previous = self._history.undo(HistoryEntry.capture(self._doc))
        if previous is None:
            return _fail("Nothing to undo")
        previous.restore_into(self._doc)
        self._drop_stale_selection()
        self._audit(AuditAction.EDITED, "Undo")
        self._changed()
        return EditResult(success=True)

    def redo(self) -> EditResult:
        following = self._history.redo(HistoryEntry.capture(self._doc))
        if following is None:
            return _fail("Nothing to redo")
        following.restore_into(self._doc)
        self._drop_stale_selection()
        self._audit(AuditAction.EDITED, "Redo")
        self._changed()
        return EditResult(success=True)

    def _drop_stale_selection(self) -> None:
        if self._selected_block_id and not TreeManager.contains(
            self._doc.blocks, self._selected_block_id
        ):
            self._selected_block_id = None

    # ------------------------------------------------------------------
    # Lifecycle, snapshots and integrity
    # ------------------------------------------------------------------

    def transition_status(self, target: DocumentStatus | str) -> EditResult:
        """Move the document through its lifecycle (not undoable)."""
        try:
            target = DocumentStatus(target)
        except ValueError as exc:
            return _fail(str(exc))
        previous = self._doc.status
        errors = DocumentStatusMachine.apply_transition(self._doc, target)
        if errors:
            return _fail(*errors)
        self._audit(
            DocumentStatusMachine.audit_action_for(target),
            f"Status changed: {previous.value} → {target.value}",
            {"from": previous.value, "to": target.value},
        )
        self._changed()
        return EditResult(success=True, data={"status": target.value})

    def take_snapshot(self) -> EditResult:
        """Store the current blocks as the reference for later diffs."""
        self._doc.snapshot = TreeManager.clone_tree(self._doc.blocks)
        self._audit(AuditAction.EDITED, "Saved snapshot")
        self._changed()
        return EditResult(success=True)

    def diff_against_snapshot(self) -> dict[str, DiffStatus]:
        return compute_diff(self._doc.blocks, self._doc.snapshot)

    def refresh_hash(self) -> str:
        """Recompute and store the content hash synchronously."""
        digest = hash_document(self._doc)
        self._doc.sha256 = digest
        return digest

    def apply_hash(self, digest: str, version: int) -> bool:
        """Store a digest computed in the background for version.

        Refused when the editor has moved past that version, so a stale
        hash never overwrites a fresher one. A failure sentinel is
        stored as-is: readers must treat it as integrity unknown.
        """
        if version != self._version:
            return False
        self._doc.sha256 = digest
        return True
