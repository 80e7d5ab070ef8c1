"""Snapshot diff — what changed in the tree since a stored snapshot.

A document sent for signature keeps a snapshot of its blocks. When the
owner edits afterwards, the diff tells the reviewer which blocks are new,
which were modified (content, label or options) and which disappeared.
"""

from __future__ import annotations

import enum
from typing import Optional

from docforge.models.block import Block
from docforge.tree.manager import TreeManager


class DiffStatus(str, enum.Enum):
    UNCHANGED = "unchanged"
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


def _is_modified(current: Block, previous: Block) -> bool:
    return (
        current.content != previous.content
        or current.label != previous.label
        or current.options != previous.options
    )


def compute_diff(
    current: list[Block],
    snapshot: Optional[list[Block]],
) -> dict[str, DiffStatus]:
    """Map block id -> DiffStatus. Empty when there is no snapshot.

    Blocks are matched by id anywhere in the tree, so a block moved to
    another container keeps its status.
    """
    if snapshot is None:
        return {}

    previous = {b.id: b for b in TreeManager.iter_nodes(snapshot)}
    diffs: dict[str, DiffStatus] = {}

    for block in TreeManager.iter_nodes(current):
        old = previous.get(block.id)
        if old is None:
            diffs[block.id] = DiffStatus.ADDED
        elif _is_modified(block, old):
            diffs[block.id] = DiffStatus.MODIFIED
        else:
            diffs[block.id] = DiffStatus.UNCHANGED

    for block_id in previous:
        if block_id not in diffs:
            diffs[block_id] = DiffStatus.REMOVED

    return diffs
