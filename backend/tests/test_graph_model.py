"""Tests for Graph Model mutations and definition round trips."""

import pytest

from automator.automator_model import (
    AutomatorDefinition,
    AutomatorEdge,
    Position,
    Viewport,
)
from automator.errors import (
    EdgeNotFound,
    InvalidHandle,
    InvalidNodeData,
    MalformedDefinition,
    NodeNotFound,
    UnknownNodeType,
)
from automator.graph_model import (
    Graph,
    add_node,
    connect,
    delete_edge,
    delete_node,
    move_node,
    set_edge_label,
    set_viewport,
    update_node_data,
)
from automator.node_schema import (
    AutomatorNodeType,
    DecisionNodeData,
    EndOutcome,
    FieldType,
)


def _graph_with(*types):
    graph = Graph.empty()
    ids = []
    for i, node_type in enumerate(types):
        graph, node_id = add_node(graph, node_type, Position(x=0, y=i * 100))
        ids.append(node_id)
    return graph, ids


class TestAddNode:
    @pytest.mark.parametrize("node_type", list(AutomatorNodeType))
    def test_node_type_and_data_agree(self, node_type):
        graph, node_id = add_node(Graph.empty(), node_type, Position(x=10, y=20))
        node = graph.nodes[node_id]
        assert node.type is node_type
        assert node.data.type == node_type.value
        assert node.position == Position(x=10, y=20)

    def test_ids_are_unique(self):
        graph = Graph.empty()
        seen = set()
        for _ in range(50):
            graph, node_id = add_node(graph, "decision", Position())
            assert node_id not in seen
            seen.add(node_id)
        assert len(graph.nodes) == 50

    def test_input_graph_is_untouched(self):
        graph = Graph.empty()
        add_node(graph, "start", Position())
        assert graph.nodes == {}

    def test_unknown_type(self):
        with pytest.raises(UnknownNodeType):
            add_node(Graph.empty(), "loop", Position())


class TestUpdateNodeData:
    def test_shallow_merge_keeps_other_fields(self):
        graph, (node_id,) = _graph_with("decision")
        graph = update_node_data(graph, node_id, {"question": "Has a buyer?"})
        data = graph.nodes[node_id].data
        assert data.question == "Has a buyer?"
        assert data.label == "Decision"

    def test_accepts_wire_and_attribute_names(self):
        graph, (node_id,) = _graph_with("dataCollection")
        graph = update_node_data(graph, node_id, {"fieldName": "budget", "field_type": "number"})
        data = graph.nodes[node_id].data
        assert data.field_name == "budget"
        assert data.field_type == FieldType.NUMBER

    def test_type_cannot_change(self):
        graph, (node_id,) = _graph_with("decision")
        graph = update_node_data(graph, node_id, {"type": "end", "label": "Still a decision"})
        node = graph.nodes[node_id]
        assert node.type is AutomatorNodeType.DECISION
        assert isinstance(node.data, DecisionNodeData)
        assert node.data.label == "Still a decision"

    def test_unknown_keys_are_ignored(self):
        graph, (node_id,) = _graph_with("end")
        graph = update_node_data(graph, node_id, {"color": "red", "outcome": "cancelled"})
        assert graph.nodes[node_id].data.outcome == EndOutcome.CANCELLED

    def test_invalid_value(self):
        graph, (node_id,) = _graph_with("dataCollection")
        with pytest.raises(InvalidNodeData):
            update_node_data(graph, node_id, {"fieldType": "color"})

    def test_missing_node(self):
        with pytest.raises(NodeNotFound):
            update_node_data(Graph.empty(), "node_missing", {"label": "x"})


class TestDeleteNode:
    def test_removes_exactly_incident_edges(self):
        graph, (a, b, c, d) = _graph_with("start", "dataCollection", "dataCollection", "end")
        graph = connect(graph, a, None, b)
        graph = connect(graph, b, None, c)
        graph = connect(graph, c, None, d)
        untouched = {e.id: e for e in graph.edges.values() if b not in (e.source, e.target)}

        graph = delete_node(graph, b)

        assert b not in graph.nodes
        assert graph.edges == untouched
        assert all(b not in (e.source, e.target) for e in graph.edges.values())

    def test_missing_node(self):
        with pytest.raises(NodeNotFound):
            delete_node(Graph.empty(), "nope")


class TestConnect:
    def test_plain_edge_has_no_label(self):
        graph, (start, end) = _graph_with("start", "end")
        graph = connect(graph, start, None, end)
        (edge,) = graph.edges.values()
        assert (edge.source, edge.target) == (start, end)
        assert edge.label is None

    def test_decision_edges_get_labels(self):
        graph, (decision, yes_end, no_end) = _graph_with("decision", "end", "end")
        graph = connect(graph, decision, "yes", yes_end)
        graph = connect(graph, decision, "no", no_end)
        labels = {e.source_handle: e.label for e in graph.edges.values()}
        assert labels == {"yes": "Yes", "no": "No"}

    def test_occupied_decision_handle_is_replaced(self):
        graph, (decision, first, second) = _graph_with("decision", "end", "end")
        graph = connect(graph, decision, "yes", first)
        old_id = next(iter(graph.edges))
        graph = connect(graph, decision, "yes", second)

        yes_edges = [e for e in graph.edges.values() if e.source_handle == "yes"]
        assert len(yes_edges) == 1
        assert yes_edges[0].target == second
        assert old_id not in graph.edges

    def test_replacing_one_handle_keeps_the_other(self):
        graph, (decision, a, b, c) = _graph_with("decision", "end", "end", "end")
        graph = connect(graph, decision, "yes", a)
        graph = connect(graph, decision, "no", b)
        graph = connect(graph, decision, "yes", c)
        targets = {e.source_handle: e.target for e in graph.edges.values()}
        assert targets == {"yes": c, "no": b}

    def test_identical_connection_is_not_duplicated(self):
        graph, (start, end) = _graph_with("start", "end")
        graph = connect(graph, start, None, end)
        again = connect(graph, start, None, end)
        assert again is graph

    def test_third_decision_handle_is_invalid(self):
        graph, (decision, end) = _graph_with("decision", "end")
        with pytest.raises(InvalidHandle):
            connect(graph, decision, "maybe", end)

    def test_decision_requires_a_named_handle(self):
        graph, (decision, end) = _graph_with("decision", "end")
        with pytest.raises(InvalidHandle):
            connect(graph, decision, None, end)

    def test_end_has_no_outputs(self):
        graph, (end, other) = _graph_with("end", "end")
        with pytest.raises(InvalidHandle):
            connect(graph, end, None, other)

    def test_start_cannot_be_a_target(self):
        graph, (collect, start) = _graph_with("dataCollection", "start")
        with pytest.raises(InvalidHandle):
            connect(graph, collect, None, start)

    def test_missing_endpoint(self):
        graph, (start,) = _graph_with("start")
        with pytest.raises(NodeNotFound):
            connect(graph, start, None, "ghost")
        with pytest.raises(NodeNotFound):
            connect(graph, "ghost", None, start)


class TestEdgeAndLayoutEdits:
    def test_delete_edge(self):
        graph, (start, end) = _graph_with("start", "end")
        graph = connect(graph, start, None, end)
        (edge_id,) = graph.edges
        graph = delete_edge(graph, edge_id)
        assert graph.edges == {}
        with pytest.raises(EdgeNotFound):
            delete_edge(graph, edge_id)

    def test_set_edge_label(self):
        graph, (start, end) = _graph_with("start", "end")
        graph = connect(graph, start, None, end)
        (edge_id,) = graph.edges
        graph = set_edge_label(graph, edge_id, "Begin")
        assert graph.edges[edge_id].label == "Begin"
        graph = set_edge_label(graph, edge_id, "")
        assert graph.edges[edge_id].label is None

    def test_move_node(self):
        graph, (start,) = _graph_with("start")
        graph = move_node(graph, start, Position(x=45, y=90))
        assert graph.nodes[start].position == Position(x=45, y=90)

    def test_set_viewport(self):
        graph = set_viewport(Graph.empty(), Viewport(x=5, y=6, zoom=1.5))
        assert graph.viewport.zoom == 1.5


class TestDefinitionRoundTrip:
    def test_round_trip_preserves_everything(self, showing_graph):
        graph, _ = showing_graph
        graph = set_viewport(graph, Viewport(x=-20, y=15, zoom=0.75))

        document = graph.to_definition().to_document()
        restored = Graph.from_document(document)

        assert restored.nodes == graph.nodes
        assert set(restored.edges) == set(graph.edges)
        assert restored.edges == graph.edges
        assert restored.viewport == graph.viewport

    def test_document_uses_wire_keys(self, showing_graph):
        graph, ids = showing_graph
        document = graph.to_definition().to_document()
        collect = next(n for n in document["nodes"] if n["id"] == ids["collect"])
        assert collect["type"] == "dataCollection"
        assert collect["data"]["fieldName"] == "showing_date"
        assert collect["data"]["fieldType"] == "date"
        decision_edges = [e for e in document["edges"] if e["source"] == ids["decision"]]
        assert {e["sourceHandle"] for e in decision_edges} == {"yes", "no"}
        start_edge = next(e for e in document["edges"] if e["source"] == ids["start"])
        assert "sourceHandle" not in start_edge

    def test_unknown_node_type_is_malformed(self):
        document = {
            "nodes": [{"id": "n1", "type": "webhook", "position": {"x": 0, "y": 0},
                       "data": {"type": "webhook", "label": "Hook"}}],
            "edges": [],
        }
        with pytest.raises(MalformedDefinition):
            Graph.from_document(document)

    def test_mismatched_discriminant_is_malformed(self):
        document = {
            "nodes": [{"id": "n1", "type": "end", "position": {"x": 0, "y": 0},
                       "data": {"type": "start", "label": "Start"}}],
        }
        with pytest.raises(MalformedDefinition):
            Graph.from_document(document)

    def test_dangling_edge_is_malformed(self):
        graph, (start,) = _graph_with("start")
        definition = graph.to_definition()
        definition.edges.append(AutomatorEdge(id="e1", source=start, target="ghost"))
        with pytest.raises(MalformedDefinition):
            Graph.from_definition(definition)

    def test_duplicate_node_ids_are_malformed(self):
        graph, (start,) = _graph_with("start")
        node = graph.nodes[start]
        with pytest.raises(MalformedDefinition):
            Graph.from_definition(AutomatorDefinition(nodes=[node, node]))

    def test_zero_zoom_document_is_malformed(self):
        document = {"nodes": [], "edges": [], "viewport": {"x": 0, "y": 0, "zoom": 0}}
        with pytest.raises(MalformedDefinition):
            Graph.from_document(document)

    def test_zero_zoom_definition_is_malformed(self):
        definition = AutomatorDefinition(viewport=Viewport.model_construct(x=0, y=0, zoom=0))
        with pytest.raises(MalformedDefinition, match="zoom"):
            Graph.from_definition(definition)

    def test_canvas_only_keys_are_dropped(self):
        document = {
            "nodes": [{"id": "n1", "type": "start", "position": {"x": 1, "y": 2},
                       "selected": True, "dragging": False,
                       "data": {"type": "start", "label": "Start"}}],
            "edges": [],
            "viewport": {"x": 0, "y": 0, "zoom": 1},
        }
        graph = Graph.from_document(document)
        assert "selected" not in graph.to_definition().to_document()["nodes"][0]
