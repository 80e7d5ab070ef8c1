"""Amount resolver — the numeric side of payment and currency blocks.

The engine never talks to a payment network. Payment widgets only ask
"what amount does this block currently request?", answered here from the
block's settings, the current answers and the document's global
variables.

Payment amount types:
    fixed     settings.amount
    variable  value of the named variable (answer first, then global)
    percent   named variable's value * percentage / 100  (deposits)

Currency amount types:
    fixed     settings.amount
    field     answer of the block whose id is settings.source_field_id

Anything unresolvable resolves to 0.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from docforge.logic.formula import FormulaEngine, to_number
from docforge.logic.scope import ROOT_SCOPE, EvaluationScope
from docforge.models.block import Block, CurrencySettings, PaymentSettings
from docforge.models.document import Variable


class AmountResolver:
    """Resolves payment and currency amounts for one document.

    Usage:
        resolver = AmountResolver(doc.blocks, doc.variables)
        amount = resolver.payment_amount(block.payment_settings, form_values)
    """

    def __init__(
        self,
        blocks: list[Block],
        variables: Optional[list[Variable]] = None,
    ) -> None:
        self._blocks = blocks
        self._variables = list(variables or [])

    def _named_value(
        self,
        name: str,
        form_values: Mapping[str, Any],
        scope: EvaluationScope,
    ) -> float:
        context = FormulaEngine.build_context(self._blocks, form_values, self._variables, scope)
        raw = context.get(name)
        if raw is None or raw == "":
            return 0.0
        return to_number(raw)

    def payment_amount(
        self,
        settings: Optional[PaymentSettings],
        form_values: Mapping[str, Any],
        scope: EvaluationScope = ROOT_SCOPE,
    ) -> float:
        if settings is None:
            return 0.0
        if settings.amount_type == "fixed":
            return to_number(settings.amount)
        if settings.amount_type == "variable" and settings.variable_name:
            return self._named_value(settings.variable_name, form_values, scope)
        if settings.amount_type == "percent" and settings.percentage and settings.variable_name:
            base = self._named_value(settings.variable_name, form_values, scope)
            return base * (to_number(settings.percentage) / 100)
        return 0.0

    def currency_amount(
        self,
        settings: Optional[CurrencySettings],
        form_values: Mapping[str, Any],
        scope: EvaluationScope = ROOT_SCOPE,
    ) -> float:
        if settings is None:
            return 0.0
        if settings.amount_type == "field" and settings.source_field_id:
            return to_number(scope.lookup(form_values, settings.source_field_id))
        return to_number(settings.amount)
