"""Tests for node kinds, default payloads and handles."""

import pytest

from automator.errors import UnknownNodeType
from automator.node_schema import (
    _DEFAULT_FACTORIES,
    NODE_DATA_MODELS,
    AutomatorNodeType,
    DataCollectionNodeData,
    DecisionNodeData,
    EndNodeData,
    EndOutcome,
    FieldType,
    StartNodeData,
    accepts_incoming,
    default_data_for,
    field_aliases,
    source_handles_for,
)


class TestDefaultDataFor:
    """default_data_for should be total over the four kinds."""

    def test_every_kind_has_a_model_and_a_default(self):
        assert set(_DEFAULT_FACTORIES) == set(AutomatorNodeType)
        assert set(NODE_DATA_MODELS) == set(AutomatorNodeType)
        for node_type, model in NODE_DATA_MODELS.items():
            assert isinstance(default_data_for(node_type), model)

    @pytest.mark.parametrize("node_type", list(AutomatorNodeType))
    def test_type_tag_matches_request(self, node_type):
        data = default_data_for(node_type)
        assert data.type == node_type.value
        assert data.label

    def test_accepts_plain_strings(self):
        assert isinstance(default_data_for("dataCollection"), DataCollectionNodeData)

    def test_start_defaults(self):
        data = default_data_for(AutomatorNodeType.START)
        assert isinstance(data, StartNodeData)
        assert data.label == "Start"
        assert data.description == "Workflow entry point"

    def test_end_defaults_to_success(self):
        data = default_data_for("end")
        assert isinstance(data, EndNodeData)
        assert data.outcome == EndOutcome.SUCCESS

    def test_decision_has_question(self):
        data = default_data_for("decision")
        assert isinstance(data, DecisionNodeData)
        assert data.question == "Enter your question here"
        assert data.store_as is None

    def test_data_collection_required_fields(self):
        data = default_data_for("dataCollection")
        assert data.field_name == "field_name"
        assert data.field_type == FieldType.TEXT
        assert data.required is True

    def test_returns_fresh_instances(self):
        assert default_data_for("start") is not default_data_for("start")

    @pytest.mark.parametrize("bad", ["webhook", "", "Start", None])
    def test_unknown_type_raises(self, bad):
        with pytest.raises(UnknownNodeType):
            default_data_for(bad)


class TestHandles:
    def test_decision_has_yes_and_no(self):
        assert source_handles_for(AutomatorNodeType.DECISION) == ("yes", "no")

    def test_end_has_no_outputs(self):
        assert source_handles_for(AutomatorNodeType.END) == ()

    @pytest.mark.parametrize("node_type", [AutomatorNodeType.START, AutomatorNodeType.DATA_COLLECTION])
    def test_single_output_kinds_take_default_handle(self, node_type):
        handles = source_handles_for(node_type)
        assert None in handles
        assert "default" in handles
        assert "yes" not in handles

    def test_only_start_refuses_incoming(self):
        assert not accepts_incoming(AutomatorNodeType.START)
        assert accepts_incoming(AutomatorNodeType.END)
        assert accepts_incoming(AutomatorNodeType.DECISION)


class TestWireShape:
    def test_data_collection_dumps_camel_case(self):
        data = DataCollectionNodeData(
            label="Budget",
            field_name="budget",
            field_type=FieldType.NUMBER,
            min=0,
            max=100,
        )
        dumped = data.model_dump(mode="json", by_alias=True, exclude_none=True)
        assert dumped["fieldName"] == "budget"
        assert dumped["fieldType"] == "number"
        assert dumped["type"] == "dataCollection"
        assert "placeholder" not in dumped

    def test_parses_camel_case(self):
        data = DecisionNodeData.model_validate({
            "type": "decision",
            "label": "Q",
            "question": "Ready?",
            "storeAs": "ready",
        })
        assert data.store_as == "ready"

    def test_field_aliases_cover_both_spellings(self):
        aliases = field_aliases(DataCollectionNodeData)
        assert aliases["fieldName"] == "field_name"
        assert aliases["field_name"] == "field_name"
        assert aliases["validationMessage"] == "validation_message"
