"""Tests for the tree manager — proves structural edits keep tree invariants."""

import pytest

from docforge.models.block import Block, BlockCondition, BlockType, DropPosition, create_block
from docforge.tree.manager import TreeManager


def _text(block_id: str, content: str = "") -> Block:
    return Block(id=block_id, type=BlockType.TEXT, content=content)


def _conditional(block_id: str, children=None, else_children=None) -> Block:
    return Block(
        id=block_id,
        type=BlockType.CONDITIONAL,
        condition=BlockCondition(variable_name="contractType", value="Album"),
        children=list(children or []),
        else_children=list(else_children or []),
    )


def _sample_tree() -> list[Block]:
    return [
        _text("a"),
        _conditional("cond", children=[_text("yes")], else_children=[_text("no")]),
        Block(
            id="row",
            type=BlockType.COLUMNS,
            children=[
                Block(id="col1", type=BlockType.COLUMN, width=50, children=[_text("left")]),
                Block(id="col2", type=BlockType.COLUMN, width=50, children=[_text("right")]),
            ],
        ),
        _text("z"),
    ]


def _ids(tree: list[Block]) -> list[str]:
    return [b.id for b in TreeManager.iter_nodes(tree)]


class TestFindAndTraverse:
    def test_find_root_node(self) -> None:
        assert TreeManager.find_node(_sample_tree(), "a").id == "a"

    def test_find_in_else_children(self) -> None:
        node = TreeManager.find_node(_sample_tree(), "no")
        assert node is not None
        assert node.content == ""

    def test_find_nested_column_child(self) -> None:
        assert TreeManager.find_node(_sample_tree(), "right").id == "right"

    def test_find_missing_returns_none(self) -> None:
        assert TreeManager.find_node(_sample_tree(), "ghost") is None

    def test_iter_nodes_is_preorder_over_both_lists(self) -> None:
        assert _ids(_sample_tree()) == [
            "a", "cond", "yes", "no", "row", "col1", "left", "col2", "right", "z",
        ]

    def test_is_descendant(self) -> None:
        tree = _sample_tree()
        assert TreeManager.is_descendant(tree, "row", "left")
        assert TreeManager.is_descendant(tree, "cond", "no")
        assert not TreeManager.is_descendant(tree, "left", "row")
        assert not TreeManager.is_descendant(tree, "row", "row")


class TestCloneTree:
    def test_clone_equals_by_value(self) -> None:
        tree = _sample_tree()
        assert TreeManager.clone_tree(tree) == tree

    def test_clone_shares_no_references(self) -> None:
        tree = _sample_tree()
        clone = TreeManager.clone_tree(tree)
        TreeManager.find_node(clone, "left").content = "mutated"
        clone[1].else_children.append(_text("extra"))
        assert TreeManager.find_node(tree, "left").content == ""
        assert len(tree[1].else_children) == 1


class TestRemoveNode:
    def test_remove_returns_detached_subtree(self) -> None:
        result = TreeManager.remove_node(_sample_tree(), "row")
        assert result.removed is not None
        assert [c.id for c in result.removed.children] == ["col1", "col2"]
        assert "left" not in _ids(result.tree)

    def test_remove_from_else_children(self) -> None:
        result = TreeManager.remove_node(_sample_tree(), "no")
        assert result.removed.id == "no"
        assert result.tree[1].else_children == []
        assert [c.id for c in result.tree[1].children] == ["yes"]

    def test_remove_missing_is_noop(self) -> None:
        tree = _sample_tree()
        result = TreeManager.remove_node(tree, "ghost")
        assert result.removed is None
        assert result.tree == tree

    def test_remove_does_not_mutate_input(self) -> None:
        tree = _sample_tree()
        before = TreeManager.clone_tree(tree)
        TreeManager.remove_node(tree, "left")
        assert tree == before


class TestInsertNode:
    def test_no_target_appends_to_root(self) -> None:
        tree = TreeManager.insert_node(_sample_tree(), _text("new"))
        assert tree[-1].id == "new"

    def test_before_and_after(self) -> None:
        tree = TreeManager.insert_node(_sample_tree(), _text("b"), "a", DropPosition.AFTER)
        tree = TreeManager.insert_node(tree, _text("pre"), "a", DropPosition.BEFORE)
        assert [b.id for b in tree][:3] == ["pre", "a", "b"]

    def test_after_nested_target_splices_in_its_list(self) -> None:
        tree = TreeManager.insert_node(_sample_tree(), _text("n"), "left", "after")
        col1 = TreeManager.find_node(tree, "col1")
        assert [c.id for c in col1.children] == ["left", "n"]

    def test_inside_appends_to_children(self) -> None:
        tree = TreeManager.insert_node(_sample_tree(), _text("n"), "cond", "inside")
        assert [c.id for c in tree[1].children] == ["yes", "n"]

    def test_inside_false_appends_to_else_children(self) -> None:
        tree = TreeManager.insert_node(_sample_tree(), _text("n"), "cond", "inside-false")
        assert [c.id for c in tree[1].else_children] == ["no", "n"]

    def test_inside_false_on_non_conditional_is_noop(self) -> None:
        tree = _sample_tree()
        result = TreeManager.insert_node(tree, _text("n"), "a", "inside-false")
        assert result == tree

    def test_missing_target_is_noop(self) -> None:
        tree = _sample_tree()
        assert TreeManager.insert_node(tree, _text("n"), "ghost", "after") == tree

    def test_inserted_node_is_copied_not_aliased(self) -> None:
        node = _text("n")
        tree = TreeManager.insert_node([], node)
        node.content = "changed later"
        assert tree[0].content == ""

    def test_invalid_position_raises(self) -> None:
        with pytest.raises(ValueError):
            TreeManager.insert_node([], _text("n"), "a", "sideways")


class TestInsertRemoveInverse:
    @pytest.mark.parametrize("target", ["a", "yes", "no", "left", "z"])
    def test_insert_then_remove_is_identity(self, target: str) -> None:
        tree = _sample_tree()
        inserted = TreeManager.insert_node(tree, _text("fresh"), target, "after")
        assert TreeManager.remove_node(inserted, "fresh").tree == tree


class TestUniqueness:
    def test_ids_unique_after_many_inserts(self) -> None:
        tree: list[Block] = []
        for block_type in (BlockType.TEXT, BlockType.COLUMNS, BlockType.CONDITIONAL, BlockType.INPUT):
            tree = TreeManager.insert_node(tree, create_block(block_type))
        cond_id = tree[2].id
        tree = TreeManager.insert_node(tree, create_block(BlockType.SELECT), cond_id, "inside")
        tree = TreeManager.insert_node(tree, create_block(BlockType.SIGNATURE), cond_id, "inside-false")
        ids = _ids(tree)
        assert len(ids) == len(set(ids))
        assert TreeManager.validate(tree) == []


class TestReplaceNode:
    def test_replace_with_sequence_in_place(self) -> None:
        tree = TreeManager.replace_node(_sample_tree(), "row", [_text("x"), _text("y")])
        assert [b.id for b in tree] == ["a", "cond", "x", "y", "z"]

    def test_replace_with_nothing_removes(self) -> None:
        tree = TreeManager.replace_node(_sample_tree(), "a", [])
        assert tree[0].id == "cond"

    def test_replace_missing_is_noop(self) -> None:
        tree = _sample_tree()
        assert TreeManager.replace_node(tree, "ghost", [_text("x")]) == tree


class TestSplitBlock:
    def test_split_right_wraps_target_first(self) -> None:
        tree = TreeManager.split_block(_sample_tree(), "a", _text("s"), "right")
        row = tree[0]
        assert row.type == BlockType.COLUMNS
        assert [c.children[0].id for c in row.children] == ["a", "s"]
        assert all(c.width == 50 for c in row.children)

    def test_split_left_puts_source_first(self) -> None:
        tree = TreeManager.split_block(_sample_tree(), "z", _text("s"), "left")
        assert [c.children[0].id for c in tree[-1].children] == ["s", "z"]

    def test_split_bad_direction_raises(self) -> None:
        with pytest.raises(ValueError):
            TreeManager.split_block(_sample_tree(), "a", _text("s"), "up")

    def test_split_missing_target_is_noop(self) -> None:
        tree = _sample_tree()
        assert TreeManager.split_block(tree, "ghost", _text("s"), "left") == tree


class TestSanitize:
    def test_empty_row_is_deleted(self) -> None:
        tree = [Block(id="row", type=BlockType.COLUMNS, children=[
            Block(id="c1", type=BlockType.COLUMN), Block(id="c2", type=BlockType.COLUMN),
        ])]
        assert TreeManager.sanitize(tree) == []

    def test_single_populated_column_dissolves(self) -> None:
        tree = [_text("a"), Block(id="row", type=BlockType.COLUMNS, children=[
            Block(id="c1", type=BlockType.COLUMN, children=[_text("x")]),
            Block(id="c2", type=BlockType.COLUMN),
        ])]
        assert [b.id for b in TreeManager.sanitize(tree)] == ["a", "x"]

    def test_empty_columns_pruned_and_widths_normalised(self) -> None:
        tree = [Block(id="row", type=BlockType.COLUMNS, children=[
            Block(id="c1", type=BlockType.COLUMN, width=33, children=[_text("x")]),
            Block(id="c2", type=BlockType.COLUMN, width=33),
            Block(id="c3", type=BlockType.COLUMN, width=33, children=[_text("y")]),
        ])]
        row = TreeManager.sanitize(tree)[0]
        assert [c.id for c in row.children] == ["c1", "c3"]
        assert [c.width for c in row.children] == [50, 50]

    def test_healthy_tree_unchanged(self) -> None:
        tree = _sample_tree()
        assert TreeManager.sanitize(tree) == tree


class TestValidate:
    def test_valid_tree(self) -> None:
        assert TreeManager.validate(_sample_tree()) == []

    def test_duplicate_id_detected(self) -> None:
        tree = _sample_tree() + [_text("left")]
        errors = TreeManager.validate(tree)
        assert any("duplicate block id" in e for e in errors)

    def test_aliased_node_detected(self) -> None:
        shared = _text("shared")
        tree = [Block(id="c", type=BlockType.COLUMN, children=[shared, shared])]
        assert any("more than once" in e for e in TreeManager.validate(tree))

    def test_else_children_on_non_conditional_detected(self) -> None:
        tree = [Block(id="t", type=BlockType.TEXT, else_children=[_text("x")])]
        assert any("elseChildren" in e for e in TreeManager.validate(tree))

    def test_condition_on_non_conditional_detected(self) -> None:
        tree = [Block(id="t", type=BlockType.TEXT, condition=BlockCondition())]
        assert any("condition on non-conditional" in e for e in TreeManager.validate(tree))
