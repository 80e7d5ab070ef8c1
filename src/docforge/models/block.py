"""Block models — the node type of the document tree.

Every element of a document (text, inputs, signatures, layout containers,
conditionals, repeaters, payment widgets) is a Block. Blocks nest through
two child lists:

- children: the "true" branch of a conditional, the column list of a
  columns row, the row template of a repeater, or plain nested content.
- else_children: the "false" branch. Only conditional blocks populate it.

Both lists are always present (possibly empty) so structural algorithms
can be written once against "all children across both lists".

Wire format: camelCase keys, matching persisted documents. Unset optional
fields are omitted on export so they never perturb the content hash.
"""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import uuid4


class BlockType(str, enum.Enum):
    """Closed vocabulary of block kinds."""
    TEXT = "text"
    INPUT = "input"
    LONG_TEXT = "long_text"
    NUMBER = "number"
    EMAIL = "email"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    DATE = "date"
    SIGNATURE = "signature"
    IMAGE = "image"
    VIDEO = "video"
    FILE_UPLOAD = "file_upload"
    SECTION_BREAK = "section_break"
    SPACER = "spacer"
    ALERT = "alert"
    QUOTE = "quote"
    HTML = "html"
    FORMULA = "formula"
    CURRENCY = "currency"
    PAYMENT = "payment"
    COLUMNS = "columns"
    COLUMN = "column"
    CONDITIONAL = "conditional"
    REPEATER = "repeater"


# Types whose children list is part of their meaning.
CONTAINER_TYPES: frozenset[BlockType] = frozenset({
    BlockType.COLUMNS,
    BlockType.COLUMN,
    BlockType.CONDITIONAL,
    BlockType.REPEATER,
})

# Presentation-only types: never party-gated, never carry an answer.
LAYOUT_TYPES: frozenset[BlockType] = frozenset({
    BlockType.SPACER,
    BlockType.ALERT,
    BlockType.QUOTE,
    BlockType.SECTION_BREAK,
    BlockType.COLUMNS,
    BlockType.COLUMN,
    BlockType.TEXT,
    BlockType.HTML,
})

CHOICE_TYPES: frozenset[BlockType] = frozenset({
    BlockType.SELECT,
    BlockType.RADIO,
    BlockType.CHECKBOX,
})


def carried_keys(data: dict[str, Any], known: frozenset[str]) -> dict[str, Any]:
    """Wire keys kept verbatim: unknown ones, and known ones that are null or empty.

    Both are hashed content, so a load/save round trip must keep them.
    Model attributes take precedence on export (see merge_carried).
    """
    return {
        k: v for k, v in data.items()
        if k not in known or v is None or (isinstance(v, (list, dict)) and not v)
    }


def merge_carried(data: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    for key, value in extra.items():
        data.setdefault(key, copy.deepcopy(value))
    return data


class ConditionOperator(str, enum.Enum):
    """Comparison operators available to conditional blocks."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IS_SET = "is_set"
    IS_EMPTY = "is_empty"
    BEFORE = "before"
    AFTER = "after"


class DropPosition(str, enum.Enum):
    """Where a node lands relative to an insertion target."""
    BEFORE = "before"
    AFTER = "after"
    INSIDE = "inside"
    INSIDE_FALSE = "inside-false"


@dataclass
class BlockCondition:
    """Visibility rule of a conditional block.

    The operator is kept as a plain string: documents authored by older
    clients may carry operators outside the enum, and those evaluate
    with equals semantics rather than failing to load.
    """
    variable_name: str = ""
    operator: str = ConditionOperator.EQUALS.value
    value: Any = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return merge_carried({
            "variableName": self.variable_name,
            "operator": self.operator,
            "value": self.value,
        }, self.extra)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> BlockCondition:
        operator = data.get("operator", ConditionOperator.EQUALS.value)
        if isinstance(operator, ConditionOperator):
            operator = operator.value
        return BlockCondition(
            variable_name=data.get("variableName", ""),
            operator=operator,
            value=data.get("value", ""),
            extra=carried_keys(data, _CONDITION_KEYS),
        )


_CONDITION_KEYS = frozenset({"variableName", "operator", "value"})


@dataclass
class CurrencySettings:
    """Currency conversion widget: fixed amount or read from a field."""
    amount_type: str = "fixed"  # "fixed" | "field"
    base_currency: str = "USD"
    target_currency: str = "EUR"
    amount: Optional[float] = None
    source_field_id: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "amountType": self.amount_type,
            "baseCurrency": self.base_currency,
            "targetCurrency": self.target_currency,
        }
        if self.amount is not None:
            data["amount"] = self.amount
        if self.source_field_id is not None:
            data["sourceFieldId"] = self.source_field_id
        return merge_carried(data, self.extra)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> CurrencySettings:
        return CurrencySettings(
            amount_type=data.get("amountType", "fixed"),
            base_currency=data.get("baseCurrency", "USD"),
            target_currency=data.get("targetCurrency", "EUR"),
            amount=data.get("amount"),
            source_field_id=data.get("sourceFieldId"),
            extra=carried_keys(data, _CURRENCY_KEYS),
        )


_CURRENCY_KEYS = frozenset(
    {"amountType", "baseCurrency", "targetCurrency", "amount", "sourceFieldId"}
)


@dataclass
class PaymentSettings:
    """Payment widget: how the amount to collect is determined.

    Legacy single-provider documents keep their "provider" key verbatim.
    """
    amount_type: str = "fixed"  # "fixed" | "variable" | "percent"
    amount: Optional[float] = None
    percentage: Optional[float] = None
    variable_name: Optional[str] = None
    currency: Optional[str] = None
    enabled_providers: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"amountType": self.amount_type}
        if self.amount is not None:
            data["amount"] = self.amount
        if self.percentage is not None:
            data["percentage"] = self.percentage
        if self.variable_name is not None:
            data["variableName"] = self.variable_name
        if self.currency is not None:
            data["currency"] = self.currency
        if self.enabled_providers:
            data["enabledProviders"] = list(self.enabled_providers)
        return merge_carried(data, self.extra)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> PaymentSettings:
        return PaymentSettings(
            amount_type=data.get("amountType", "fixed"),
            amount=data.get("amount"),
            percentage=data.get("percentage"),
            variable_name=data.get("variableName"),
            currency=data.get("currency"),
            enabled_providers=list(data.get("enabledProviders") or []),
            extra=carried_keys(data, _PAYMENT_KEYS),
        )


_PAYMENT_KEYS = frozenset(
    {"amountType", "amount", "percentage", "variableName", "currency", "enabledProviders"}
)


# Scalar optional fields: (attribute, wire key). Emitted only when set.
_SCALAR_FIELDS: tuple[tuple[str, str], ...] = (
    ("content", "content"),
    ("label", "label"),
    ("placeholder", "placeholder"),
    ("variable_name", "variableName"),
    ("required", "required"),
    ("min", "min"),
    ("max", "max"),
    ("step", "step"),
    ("min_length", "minLength"),
    ("assigned_to_party_id", "assignedToPartyId"),
    ("allow_multiple", "allowMultiple"),
    ("width", "width"),
    ("is_date_range", "isDateRange"),
    ("src", "src"),
    ("alt_text", "altText"),
    ("accepted_file_types", "acceptedFileTypes"),
    ("formula", "formula"),
    ("video_url", "videoUrl"),
    ("signature_id", "signatureId"),
    ("signed_at", "signedAt"),
    ("signature_type", "signatureType"),
    ("height", "height"),
    ("variant", "variant"),
)

_KNOWN_KEYS: frozenset[str] = frozenset(
    {key for _, key in _SCALAR_FIELDS}
    | {"id", "type", "options", "condition", "children", "elseChildren",
       "currencySettings", "paymentSettings"}
)


@dataclass
class Block:
    """A node in the document tree."""
    id: str
    type: BlockType
    content: Optional[str] = None
    label: Optional[str] = None
    placeholder: Optional[str] = None
    variable_name: Optional[str] = None
    options: Optional[list[str]] = None
    # Advisory validation constraints, enforced by the consuming UI
    required: Optional[bool] = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    min_length: Optional[int] = None
    assigned_to_party_id: Optional[str] = None
    allow_multiple: Optional[bool] = None
    width: Optional[float] = None
    is_date_range: Optional[bool] = None
    src: Optional[str] = None
    alt_text: Optional[str] = None
    accepted_file_types: Optional[str] = None
    condition: Optional[BlockCondition] = None
    children: list[Block] = field(default_factory=list)
    else_children: list[Block] = field(default_factory=list)
    formula: Optional[str] = None
    currency_settings: Optional[CurrencySettings] = None
    payment_settings: Optional[PaymentSettings] = None
    video_url: Optional[str] = None
    signature_id: Optional[str] = None
    signed_at: Optional[int] = None
    signature_type: Optional[str] = None
    height: Optional[float] = None
    variant: Optional[str] = None
    # Wire keys carried verbatim for hashing (see carried_keys)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_conditional(self) -> bool:
        return self.type == BlockType.CONDITIONAL

    def child_lists(self) -> tuple[list[Block], list[Block]]:
        return self.children, self.else_children

    def to_dict(self) -> dict[str, Any]:
        """Export to the persisted JSON shape."""
        data: dict[str, Any] = {"id": self.id, "type": self.type.value}
        for attr, key in _SCALAR_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        if self.options is not None:
            data["options"] = list(self.options)
        if self.condition is not None:
            data["condition"] = self.condition.to_dict()
        if self.children or self.type in CONTAINER_TYPES:
            data["children"] = [c.to_dict() for c in self.children]
        if self.else_children:
            data["elseChildren"] = [c.to_dict() for c in self.else_children]
        if self.currency_settings is not None:
            data["currencySettings"] = self.currency_settings.to_dict()
        if self.payment_settings is not None:
            data["paymentSettings"] = self.payment_settings.to_dict()
        return merge_carried(data, self.extra)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Block:
        """Load from the persisted JSON shape.

        Raises ValueError for an unknown block type.
        """
        block = Block(id=str(data["id"]), type=BlockType(data["type"]))
        for attr, key in _SCALAR_FIELDS:
            if key in data and data[key] is not None:
                setattr(block, attr, data[key])
        if data.get("options") is not None:
            block.options = list(data["options"])
        if data.get("condition"):
            block.condition = BlockCondition.from_dict(data["condition"])
        block.children = [Block.from_dict(c) for c in data.get("children") or []]
        block.else_children = [
            Block.from_dict(c) for c in data.get("elseChildren") or []
        ]
        if data.get("currencySettings"):
            block.currency_settings = CurrencySettings.from_dict(data["currencySettings"])
        if data.get("paymentSettings"):
            block.payment_settings = PaymentSettings.from_dict(data["paymentSettings"])
        block.extra = carried_keys(data, _KNOWN_KEYS)
        return block


_NICE_LABELS: dict[BlockType, str] = {
    BlockType.TEXT: "Text Content",
    BlockType.INPUT: "Short Answer",
    BlockType.LONG_TEXT: "Long Answer",
    BlockType.NUMBER: "Number Input",
    BlockType.EMAIL: "Email Address",
    BlockType.SELECT: "Dropdown Menu",
    BlockType.RADIO: "Single Choice",
    BlockType.CHECKBOX: "Checkbox",
    BlockType.DATE: "Date Picker",
    BlockType.SIGNATURE: "Signature",
    BlockType.IMAGE: "Image Upload",
    BlockType.FILE_UPLOAD: "File Attachment",
    BlockType.SECTION_BREAK: "Section Break",
    BlockType.PAYMENT: "Payment Request",
    BlockType.CURRENCY: "Currency Value",
    BlockType.VIDEO: "Video Embed",
    BlockType.CONDITIONAL: "Conditional Branch",
    BlockType.REPEATER: "Repeater Group",
    BlockType.FORMULA: "Formula Calculation",
    BlockType.COLUMNS: "Columns",
    BlockType.COLUMN: "Column",
}


def nice_label(block_type: BlockType) -> str:
    """Human-friendly default label for a freshly added block."""
    return _NICE_LABELS.get(block_type, "New Field")


def new_block_id() -> str:
    return str(uuid4())


def create_block(
    block_type: BlockType,
    block_id: Optional[str] = None,
    spacer_height: float = 32,
    column_width: float = 50,
) -> Block:
    """Construct a block with type-appropriate defaults.

    - conditionals get an empty condition skeleton
    - columns get two sub-columns of column_width percent each
    - spacers get spacer_height
    - choice fields get a single starter option
    """
    block = Block(
        id=block_id or new_block_id(),
        type=block_type,
        label=nice_label(block_type),
    )
    if block_type not in LAYOUT_TYPES:
        block.variable_name = f"field_{uuid4().hex[:8]}"
    if block_type == BlockType.TEXT:
        block.content = ""
    if block_type in CHOICE_TYPES:
        block.options = ["Option 1"]
    if block_type == BlockType.CONDITIONAL:
        block.condition = BlockCondition()
    if block_type == BlockType.COLUMN:
        block.width = column_width
    if block_type == BlockType.COLUMNS:
        block.children = [
            create_block(BlockType.COLUMN, column_width=column_width),
            create_block(BlockType.COLUMN, column_width=column_width),
        ]
    if block_type == BlockType.SPACER:
        block.height = spacer_height
    if block_type == BlockType.PAYMENT:
        block.payment_settings = PaymentSettings()
    if block_type == BlockType.CURRENCY:
        block.currency_settings = CurrencySettings()
    return block
