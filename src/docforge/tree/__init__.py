"""Block tree engine — structural algorithms and snapshot diffing."""

from docforge.tree.diff import DiffStatus, compute_diff
from docforge.tree.manager import RemovalResult, TreeManager

__all__ = ["DiffStatus", "compute_diff", "RemovalResult", "TreeManager"]
