"""Visible-tree resolution — what a recipient actually sees.

Walks the block tree the way the renderer does:
- conditionals are transparent: only their active branch is walked
- repeaters expand into N virtual rows of their row template, each row
  in its own answer scope (N is the answer stored under the repeater's
  scoped key, default 1); rows are derived, never stored as blocks
- everything else is emitted and its children walked

The result is a flat, ordered list of VisibleBlock records, each carrying
the scope its answers are keyed under.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from docforge.logic.conditions import ConditionEvaluator
from docforge.logic.formula import to_number
from docforge.logic.scope import ROOT_SCOPE, EvaluationScope
from docforge.models.block import LAYOUT_TYPES, Block, BlockType
from docforge.models.document import DocumentStatus, Party


@dataclass(frozen=True)
class VisibleBlock:
    """One rendered occurrence of a block."""
    block: Block
    scope: EvaluationScope
    depth: int

    @property
    def key(self) -> str:
        """Form-values key this occurrence reads and writes."""
        return self.scope.key(self.block.id)


def repeater_row_count(
    block: Block,
    form_values: Mapping[str, Any],
    scope: EvaluationScope = ROOT_SCOPE,
) -> int:
    """Number of virtual rows of a repeater (at least 1)."""
    count = int(to_number(form_values.get(scope.key(block.id))))
    return count if count >= 1 else 1


def resolve_visible(
    blocks: list[Block],
    form_values: Mapping[str, Any],
    all_blocks: Optional[list[Block]] = None,
    scope: EvaluationScope = ROOT_SCOPE,
) -> list[VisibleBlock]:
    """Flatten the live part of the tree in reading order.

    all_blocks is the full document tree used for condition source
    lookup; it defaults to blocks.
    """
    universe = blocks if all_blocks is None else all_blocks
    visible: list[VisibleBlock] = []

    def _walk(nodes: list[Block], current: EvaluationScope, depth: int) -> None:
        for node in nodes:
            if node.type == BlockType.CONDITIONAL:
                active = ConditionEvaluator.active_children(node, form_values, universe, current)
                _walk(active, current, depth)
                continue

            visible.append(VisibleBlock(block=node, scope=current, depth=depth))

            if node.type == BlockType.REPEATER:
                for row in range(repeater_row_count(node, form_values, current)):
                    _walk(node.children, current.for_row(node.id, row), depth + 1)
            else:
                _walk(node.children, current, depth + 1)

    _walk(blocks, scope, 0)
    return visible


def is_block_locked(
    block: Block,
    parties: list[Party],
    acting_party_id: Optional[str],
    status: DocumentStatus,
) -> bool:
    """Whether the acting party may not edit this block's answer.

    Completed documents lock everything. Otherwise a block assigned to
    another party is locked. Layout blocks are never party-gated.
    """
    if status == DocumentStatus.COMPLETED:
        return True
    if block.type in LAYOUT_TYPES or not block.assigned_to_party_id:
        return False
    assigned = next((p for p in parties if p.id == block.assigned_to_party_id), None)
    return assigned is not None and assigned.id != acting_party_id
