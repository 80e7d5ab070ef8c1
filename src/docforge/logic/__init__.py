"""Evaluation logic — formulas, conditions, visibility and amounts."""

from docforge.logic.conditions import Branch, ConditionEvaluator
from docforge.logic.formula import FORMULA_ERROR, FormulaEngine
from docforge.logic.payments import AmountResolver
from docforge.logic.scope import ROOT_SCOPE, EvaluationScope
from docforge.logic.visibility import VisibleBlock, is_block_locked, resolve_visible

__all__ = [
    "Branch",
    "ConditionEvaluator",
    "FORMULA_ERROR",
    "FormulaEngine",
    "AmountResolver",
    "ROOT_SCOPE",
    "EvaluationScope",
    "VisibleBlock",
    "is_block_locked",
    "resolve_visible",
]
