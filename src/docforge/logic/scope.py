"""Answer scoping for repeated and nested contexts.

A repeater renders its row template N times; each row needs its own
answers. Answers are stored in the flat form-values map under scoped
keys of the form ``<prefix><blockId>``, where each repeater row extends
the prefix with ``<repeaterId>_<row>_``. Top-level answers use the bare
block id (empty prefix).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class EvaluationScope:
    """The instance context a block is being evaluated in."""
    prefix: str = ""

    @property
    def is_root(self) -> bool:
        return not self.prefix

    def key(self, block_id: str) -> str:
        """Scoped answer key for a block in this context."""
        return f"{self.prefix}{block_id}"

    def for_row(self, repeater_id: str, row_index: int) -> EvaluationScope:
        """Scope of one virtual row of a repeater evaluated in this context."""
        return EvaluationScope(prefix=f"{self.key(repeater_id)}_{row_index}_")

    def lookup(self, form_values: Mapping[str, Any], block_id: str) -> Any:
        """Answer for block_id: the scoped key wins, the bare id is the fallback.

        A scoped key that is present but None still wins; only an absent
        scoped key falls back.
        """
        scoped = self.key(block_id)
        if scoped in form_values:
            return form_values[scoped]
        return form_values.get(block_id)


ROOT_SCOPE = EvaluationScope()
