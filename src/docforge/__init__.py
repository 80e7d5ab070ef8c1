"""docforge — block-tree document engine.

Structural tree editing with undo/redo, formula and condition
evaluation, canonical content hashing and an append-only audit trail.
"""

__version__ = "0.1.0"
