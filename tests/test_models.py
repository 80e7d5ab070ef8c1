"""Tests for the block and document models — wire format and defaults."""

import pytest

from docforge.models.block import (
    Block,
    BlockCondition,
    BlockType,
    PaymentSettings,
    create_block,
    nice_label,
)
from docforge.models.document import DEFAULT_SETTINGS, DocumentState, DocumentStatus, Party


class TestBlockWireFormat:
    def test_camel_case_keys(self) -> None:
        block = Block(
            id="b1", type=BlockType.INPUT, variable_name="name",
            assigned_to_party_id="p1", min_length=3,
        )
        data = block.to_dict()
        assert data["variableName"] == "name"
        assert data["assignedToPartyId"] == "p1"
        assert data["minLength"] == 3

    def test_unset_fields_omitted(self) -> None:
        assert Block(id="b1", type=BlockType.TEXT).to_dict() == {"id": "b1", "type": "text"}

    def test_containers_always_export_children(self) -> None:
        assert Block(id="r", type=BlockType.REPEATER).to_dict()["children"] == []

    def test_nested_round_trip(self) -> None:
        data = {
            "id": "c",
            "type": "conditional",
            "condition": {"variableName": "x", "operator": "greater_than", "value": "3"},
            "children": [{"id": "t", "type": "text", "content": "yes"}],
            "elseChildren": [{"id": "f", "type": "text", "content": "no"}],
        }
        block = Block.from_dict(data)
        assert block.condition.operator == "greater_than"
        assert block.else_children[0].content == "no"
        assert block.to_dict() == data

    def test_unknown_keys_preserved(self) -> None:
        data = {"id": "b", "type": "text", "customProp": {"x": 1}}
        assert Block.from_dict(data).to_dict() == data

    def test_null_and_empty_keys_preserved(self) -> None:
        data = {"id": "b", "type": "input", "label": None, "children": [], "options": None}
        block = Block.from_dict(data)
        assert block.label is None
        assert block.to_dict() == data

    def test_legacy_payment_provider_kept_verbatim(self) -> None:
        data = {"id": "p", "type": "payment",
                "paymentSettings": {"amountType": "fixed", "provider": "stripe"}}
        block = Block.from_dict(data)
        assert block.payment_settings.enabled_providers == []
        assert block.to_dict() == data

    def test_model_attribute_wins_over_carried_null(self) -> None:
        block = Block.from_dict({"id": "b", "type": "input", "label": None})
        block.label = "Name"
        assert block.to_dict()["label"] == "Name"

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValueError):
            Block.from_dict({"id": "b", "type": "hologram"})

    def test_payment_settings_round_trip(self) -> None:
        block = Block(id="p", type=BlockType.PAYMENT,
                      payment_settings=PaymentSettings(amount_type="percent", percentage=10))
        assert Block.from_dict(block.to_dict()) == block


class TestCreateBlock:
    def test_conditional_skeleton(self) -> None:
        block = create_block(BlockType.CONDITIONAL)
        assert block.condition == BlockCondition()
        assert block.children == [] and block.else_children == []

    def test_columns_get_two_columns(self) -> None:
        block = create_block(BlockType.COLUMNS, column_width=50)
        assert [c.type for c in block.children] == [BlockType.COLUMN, BlockType.COLUMN]
        assert len({c.id for c in block.children}) == 2

    def test_choice_starter_option(self) -> None:
        assert create_block(BlockType.RADIO).options == ["Option 1"]

    def test_layout_blocks_have_no_variable(self) -> None:
        assert create_block(BlockType.SPACER).variable_name is None
        assert create_block(BlockType.SIGNATURE).variable_name.startswith("field_")

    def test_labels(self) -> None:
        assert create_block(BlockType.EMAIL).label == nice_label(BlockType.EMAIL) == "Email Address"
        assert nice_label(BlockType.SPACER) == "New Field"

    def test_ids_are_unique(self) -> None:
        assert create_block(BlockType.TEXT).id != create_block(BlockType.TEXT).id


class TestDocumentState:
    def test_defaults(self) -> None:
        doc = DocumentState(id="d", title="T")
        assert doc.status == DocumentStatus.DRAFT
        assert doc.settings == DEFAULT_SETTINGS
        assert doc.settings is not DEFAULT_SETTINGS

    def test_round_trip(self) -> None:
        doc = DocumentState(
            id="d", title="T", status=DocumentStatus.SENT,
            parties=[Party(id="p1", name="A", color="#000", initials="A", email="a@x.io")],
            blocks=[Block(id="b", type=BlockType.TEXT, content="x")],
            sha256="f" * 64, updated_at=5,
        )
        assert DocumentState.from_dict(doc.to_dict()) == doc

    def test_collaborator_unknown_keys_preserved(self) -> None:
        data = {
            "id": "d", "title": "T", "status": "draft", "blocks": [],
            "parties": [{"id": "p1", "name": "A", "color": "#000", "initials": "A",
                         "accessCode": None, "role": "buyer"}],
            "variables": [{"id": "v", "key": "n", "value": 3, "unit": "kg"}],
            "terms": [{"id": "t", "term": "X", "definition": "Y", "source": "system",
                       "links": []}],
            "settings": {}, "auditLog": [],
        }
        assert DocumentState.from_dict(data).to_dict() == data

    def test_minimal_dict(self) -> None:
        doc = DocumentState.from_dict({"id": "d"})
        assert doc.title == ""
        assert doc.blocks == []
        assert doc.snapshot is None

    def test_clone_is_deep(self) -> None:
        doc = DocumentState(id="d", title="T", blocks=[Block(id="b", type=BlockType.TEXT)])
        copy = doc.clone()
        copy.blocks[0].content = "changed"
        assert doc.blocks[0].content is None

    def test_content_dict_fields(self) -> None:
        assert sorted(DocumentState(id="d", title="T").content_dict()) == [
            "blocks", "parties", "settings", "terms", "variables",
        ]
