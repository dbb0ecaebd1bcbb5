"""
Pre-built Automator Templates.

Factory functions that return ready-made ``AutomatorDefinition``
objects. ``AutomatorService.create`` seeds a new automator from one of
these when a template name is given.

Templates are wired through ``graph_model.connect`` so edge labels and
handle rules are the same as for hand-built graphs.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

from automator.automator_model import (
    AutomatorDefinition,
    AutomatorNode,
    Position,
    Viewport,
)
from automator.graph_model import Graph, connect
from automator.node_schema import (
    AutomatorNodeType,
    BaseNodeData,
    DataCollectionNodeData,
    DecisionNodeData,
    EndNodeData,
    EndOutcome,
    FieldType,
    StartNodeData,
)


class _TemplateBuilder:
    """Small helper for laying out template graphs with fixed ids."""

    def __init__(self) -> None:
        self._nodes: List[AutomatorNode] = []
        self._edges: List[Tuple[str, Optional[str], str]] = []

    def add(self, nid: str, data: BaseNodeData, x: float, y: float) -> None:
        self._nodes.append(AutomatorNode(
            id=nid,
            type=AutomatorNodeType(data.type),
            position=Position(x=x, y=y),
            data=data,
        ))

    def edge(self, src: str, tgt: str, handle: Optional[str] = None) -> None:
        self._edges.append((src, handle, tgt))

    def build(self) -> AutomatorDefinition:
        graph = Graph.from_definition(AutomatorDefinition(
            nodes=self._nodes,
            viewport=Viewport(x=0, y=0, zoom=1),
        ))
        for src, handle, tgt in self._edges:
            graph = connect(graph, src, handle, tgt)
        return graph.to_definition()


# ============================================================================
# Blank
# ============================================================================


def create_blank_definition() -> AutomatorDefinition:
    """Start wired straight to a successful End."""
    b = _TemplateBuilder()
    b.add("start", StartNodeData(label="Start", description="Workflow entry point"), 240, 60)
    b.add("end", EndNodeData(label="End", description="Workflow exit point"), 240, 240)
    b.edge("start", "end")
    return b.build()


# ============================================================================
# Showing feedback
# ============================================================================


def create_showing_feedback_template() -> AutomatorDefinition:
    """Ask whether the listing has a buyer; if not, schedule a showing.

    Topology::

        Start → Has a buyer? ─yes→ Closed (success)
                             └no─→ Showing date → Follow up (failure)
    """
    b = _TemplateBuilder()
    b.add("start", StartNodeData(label="Start", description="Workflow entry point"), 240, 45)
    b.add("has_buyer", DecisionNodeData(
        label="Buyer check",
        question="Has a buyer?",
        store_as="has_buyer",
    ), 240, 180)
    b.add("closed", EndNodeData(
        label="Closed",
        outcome=EndOutcome.SUCCESS,
    ), 60, 360)
    b.add("showing_date", DataCollectionNodeData(
        label="Showing date",
        field_name="showing_date",
        field_type=FieldType.DATE,
        required=True,
    ), 420, 360)
    b.add("follow_up", EndNodeData(
        label="Follow up",
        outcome=EndOutcome.FAILURE,
    ), 420, 540)

    b.edge("start", "has_buyer")
    b.edge("has_buyer", "closed", handle="yes")
    b.edge("has_buyer", "showing_date", handle="no")
    b.edge("showing_date", "follow_up")
    return b.build()


TEMPLATES: Dict[str, Callable[[], AutomatorDefinition]] = {
    "blank": create_blank_definition,
    "showing_feedback": create_showing_feedback_template,
}
