"""Tree manager — pure structural operations over a list of root blocks.

Every operation returns a NEW tree; the argument tree is never mutated
in place (each mutation works on a deep clone). Inserted nodes are
copied down, never aliased, so a node can never become its own
descendant through these functions.

Missing ids degrade to no-ops: the returned tree is an unchanged copy.
Callers that need to distinguish "not found" from "applied" check
find_node first.

Traversal always descends into both child-list kinds (children and
else_children).
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Iterator, Optional

from docforge.models.block import (
    Block,
    BlockType,
    DropPosition,
    create_block,
)


@dataclass(frozen=True)
class RemovalResult:
    """Result of remove_node: the rebuilt tree and the detached subtree."""
    tree: list[Block]
    removed: Optional[Block]


class TreeManager:
    """Structural algorithms for the block tree.

    Pure computation: no side effects beyond returning new trees.
    History, auditing and selection are handled by the editor.
    """

    @staticmethod
    def clone_tree(tree: list[Block]) -> list[Block]:
        """Deep, structural, reference-free copy."""
        return copy.deepcopy(tree)

    @staticmethod
    def iter_nodes(tree: list[Block]) -> Iterator[Block]:
        """Depth-first pre-order walk over both child-list kinds."""
        for node in tree:
            yield node
            yield from TreeManager.iter_nodes(node.children)
            yield from TreeManager.iter_nodes(node.else_children)

    @staticmethod
    def flatten(tree: list[Block]) -> list[Block]:
        return list(TreeManager.iter_nodes(tree))

    @staticmethod
    def find_node(tree: list[Block], node_id: str) -> Optional[Block]:
        """Return the node with node_id, or None if absent."""
        for node in TreeManager.iter_nodes(tree):
            if node.id == node_id:
                return node
        return None

    @staticmethod
    def contains(tree: list[Block], node_id: str) -> bool:
        return TreeManager.find_node(tree, node_id) is not None

    @staticmethod
    def is_descendant(tree: list[Block], ancestor_id: str, node_id: str) -> bool:
        """True if node_id sits anywhere below ancestor_id."""
        ancestor = TreeManager.find_node(tree, ancestor_id)
        if ancestor is None:
            return False
        return TreeManager.contains(
            ancestor.children + ancestor.else_children, node_id
        )

    @staticmethod
    def remove_node(tree: list[Block], node_id: str) -> RemovalResult:
        """Rebuild the tree without node_id.

        removed is the detached subtree (children intact), or None if
        the id was not found.
        """
        removed: list[Block] = []

        def _strip(nodes: list[Block]) -> list[Block]:
            kept: list[Block] = []
            for node in nodes:
                if node.id == node_id:
                    removed.append(node)
                    continue
                node.children = _strip(node.children)
                node.else_children = _strip(node.else_children)
                kept.append(node)
            return kept

        new_tree = _strip(TreeManager.clone_tree(tree))
        return RemovalResult(tree=new_tree, removed=removed[0] if removed else None)

    @staticmethod
    def insert_node(
        tree: list[Block],
        node: Block,
        target_id: Optional[str] = None,
        position: DropPosition | str = DropPosition.AFTER,
    ) -> list[Block]:
        """Insert node relative to target_id.

        - no target: append to the root list
        - before/after: splice next to the target in whichever list holds it
        - inside: append to the target's children
        - inside-false: append to the target's else_children; only
          conditional targets accept this, anything else is a no-op
        - unknown target: unchanged copy
        """
        position = DropPosition(position)
        new_tree = TreeManager.clone_tree(tree)
        new_node = copy.deepcopy(node)

        if not target_id:
            new_tree.append(new_node)
            return new_tree

        def _insert(nodes: list[Block]) -> bool:
            for idx, current in enumerate(nodes):
                if current.id == target_id:
                    if position == DropPosition.BEFORE:
                        nodes.insert(idx, new_node)
                    elif position == DropPosition.AFTER:
                        nodes.insert(idx + 1, new_node)
                    elif position == DropPosition.INSIDE:
                        current.children.append(new_node)
                    elif current.is_conditional:
                        current.else_children.append(new_node)
                    return True
                if _insert(current.children) or _insert(current.else_children):
                    return True
            return False

        _insert(new_tree)
        return new_tree

    @staticmethod
    def replace_node(
        tree: list[Block],
        target_id: str,
        new_nodes: list[Block],
    ) -> list[Block]:
        """Splice new_nodes in place of the node matching target_id."""
        replacement = copy.deepcopy(new_nodes)

        def _replace(nodes: list[Block]) -> bool:
            for idx, current in enumerate(nodes):
                if current.id == target_id:
                    nodes[idx:idx + 1] = replacement
                    return True
                if _replace(current.children) or _replace(current.else_children):
                    return True
            return False

        new_tree = TreeManager.clone_tree(tree)
        _replace(new_tree)
        return new_tree

    @staticmethod
    def split_block(
        tree: list[Block],
        target_id: str,
        source: Block,
        direction: str,
        column_width: float = 50,
    ) -> list[Block]:
        """Wrap the target in a two-column row with source beside it.

        direction "left" puts source in the first column, "right" in the
        second. Unknown target: unchanged copy.
        """
        if direction not in ("left", "right"):
            raise ValueError(f"Invalid split direction: {direction}")
        target = TreeManager.find_node(tree, target_id)
        if target is None:
            return TreeManager.clone_tree(tree)

        row = create_block(BlockType.COLUMNS, column_width=column_width)
        first, second = row.children
        if direction == "left":
            first.children = [copy.deepcopy(source)]
            second.children = [copy.deepcopy(target)]
        else:
            first.children = [copy.deepcopy(target)]
            second.children = [copy.deepcopy(source)]
        return TreeManager.replace_node(tree, target_id, [row])

    @staticmethod
    def sanitize(tree: list[Block]) -> list[Block]:
        """Tidy columns rows bottom-up.

        1. A row with no populated column is deleted.
        2. A row with one populated column dissolves into its contents.
        3. Otherwise empty columns are pruned and widths re-normalised.
        """

        def _sanitize(nodes: list[Block]) -> list[Block]:
            result: list[Block] = []
            for node in nodes:
                node.children = _sanitize(node.children)
                node.else_children = _sanitize(node.else_children)

                if node.type == BlockType.COLUMNS:
                    populated = [col for col in node.children if col.children]
                    if not populated:
                        continue
                    if len(populated) == 1:
                        result.extend(populated[0].children)
                        continue
                    if len(populated) != len(node.children):
                        width = 100 / len(populated)
                        for col in populated:
                            col.width = width
                    node.children = populated
                result.append(node)
            return result

        return _sanitize(TreeManager.clone_tree(tree))

    @staticmethod
    def validate(tree: list[Block]) -> list[str]:
        """Check structural invariants. Returns errors (empty = valid).

        - every id is unique across the whole tree
        - no node object appears twice (no aliasing, no cycles)
        - only conditional blocks carry condition or else_children
        """
        errors: list[str] = []
        seen_ids: set[str] = set()
        seen_objects: set[int] = set()

        def _walk(nodes: list[Block], path: str) -> None:
            for node in nodes:
                if id(node) in seen_objects:
                    errors.append(f"{path}/{node.id}: node object appears more than once")
                    continue
                seen_objects.add(id(node))
                if node.id in seen_ids:
                    errors.append(f"{path}/{node.id}: duplicate block id")
                seen_ids.add(node.id)
                if not node.is_conditional:
                    if node.else_children:
                        errors.append(
                            f"{path}/{node.id}: elseChildren on non-conditional {node.type.value}"
                        )
                    if node.condition is not None:
                        errors.append(
                            f"{path}/{node.id}: condition on non-conditional {node.type.value}"
                        )
                _walk(node.children, f"{path}/{node.id}")
                _walk(node.else_children, f"{path}/{node.id}!else")

        _walk(tree, "")
        return errors
