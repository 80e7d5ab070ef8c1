"""Condition evaluator — decides which branch of a conditional block is live.

A conditional block names a source variable, an operator and a trigger
value. The source is the first block anywhere in the (flattened) tree
bound to that variable name; its current answer is read from the form
values through the evaluation scope and compared as text.

Outcome:
- source block not found: neither branch renders
- condition matches: children
- no match: else_children if present, otherwise nothing

Evaluation is pure and cheap; the renderer re-runs it on every relevant
answer change. It never mutates the tree.
"""

from __future__ import annotations

import enum
import math
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional

from docforge.logic.scope import ROOT_SCOPE, EvaluationScope
from docforge.models.block import Block, ConditionOperator
from docforge.tree.manager import TreeManager


class Branch(str, enum.Enum):
    """Which child list of a conditional is active."""
    CHILDREN = "children"
    ELSE_CHILDREN = "else_children"
    NONE = "none"


def answer_text(value: Any) -> str:
    """Text form of an answer, as it is compared against trigger values.

    None -> "", booleans -> "true"/"false", whole floats lose their
    ".0", lists are comma-joined.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(answer_text(v) for v in value)
    return str(value)


def _as_number(text: str) -> Optional[float]:
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _as_datetime(text: str) -> Optional[datetime]:
    text = text.strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            day = date.fromisoformat(text)
        except ValueError:
            return None
        parsed = datetime(day.year, day.month, day.day)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class ConditionEvaluator:
    """Resolves conditional visibility against the current answers."""

    @staticmethod
    def find_source(all_blocks: list[Block], variable_name: str) -> Optional[Block]:
        """First block in the flattened tree bound to variable_name."""
        if not variable_name:
            return None
        for block in TreeManager.iter_nodes(all_blocks):
            if block.variable_name == variable_name:
                return block
        return None

    @staticmethod
    def matches(operator: str, current: Any, trigger: Any) -> bool:
        """Compare an answer against a trigger value.

        Operators outside the known set use equals semantics.
        """
        try:
            op = ConditionOperator(operator)
        except ValueError:
            op = ConditionOperator.EQUALS

        current_text = answer_text(current)
        trigger_text = answer_text(trigger)

        if op == ConditionOperator.NOT_EQUALS:
            return current_text != trigger_text
        if op == ConditionOperator.CONTAINS:
            return trigger_text.lower() in current_text.lower()
        if op == ConditionOperator.NOT_CONTAINS:
            return trigger_text.lower() not in current_text.lower()
        if op == ConditionOperator.IS_SET:
            return current is not None and current != ""
        if op == ConditionOperator.IS_EMPTY:
            return current is None or current == ""
        if op in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
            left = _as_number(current_text)
            right = _as_number(trigger_text)
            if left is None or right is None:
                return False
            return left > right if op == ConditionOperator.GREATER_THAN else left < right
        if op in (ConditionOperator.BEFORE, ConditionOperator.AFTER):
            left_dt = _as_datetime(current_text)
            right_dt = _as_datetime(trigger_text)
            if left_dt is None or right_dt is None:
                return False
            return left_dt < right_dt if op == ConditionOperator.BEFORE else left_dt > right_dt
        return current_text == trigger_text

    @staticmethod
    def select_branch(
        block: Block,
        form_values: Mapping[str, Any],
        all_blocks: list[Block],
        scope: EvaluationScope = ROOT_SCOPE,
    ) -> Branch:
        """Pick the active branch of a conditional block."""
        if block.condition is None:
            return Branch.NONE
        source = ConditionEvaluator.find_source(all_blocks, block.condition.variable_name)
        if source is None:
            return Branch.NONE

        current = scope.lookup(form_values, source.id)
        if ConditionEvaluator.matches(block.condition.operator, current, block.condition.value):
            return Branch.CHILDREN
        if block.else_children:
            return Branch.ELSE_CHILDREN
        return Branch.NONE

    @staticmethod
    def active_children(
        block: Block,
        form_values: Mapping[str, Any],
        all_blocks: list[Block],
        scope: EvaluationScope = ROOT_SCOPE,
    ) -> list[Block]:
        """The child list the renderer should walk (empty when none)."""
        branch = ConditionEvaluator.select_branch(block, form_values, all_blocks, scope)
        if branch == Branch.CHILDREN:
            return block.children
        if branch == Branch.ELSE_CHILDREN:
            return block.else_children
        return []
