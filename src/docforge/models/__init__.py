"""Core data models for docforge."""

from docforge.models.audit import AuditAction, AuditLogEntry
from docforge.models.block import (
    Block,
    BlockCondition,
    BlockType,
    ConditionOperator,
    CurrencySettings,
    DropPosition,
    PaymentSettings,
    create_block,
)
from docforge.models.document import (
    DocumentState,
    DocumentStatus,
    Party,
    Term,
    Variable,
)

__all__ = [
    "AuditAction",
    "AuditLogEntry",
    "Block",
    "BlockCondition",
    "BlockType",
    "ConditionOperator",
    "CurrencySettings",
    "DropPosition",
    "PaymentSettings",
    "create_block",
    "DocumentState",
    "DocumentStatus",
    "Party",
    "Term",
    "Variable",
]
