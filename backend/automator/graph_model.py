"""
Graph Model — structural mutation of an automator graph.

The graph is kept as an arena: an id-indexed map of nodes and an
id-indexed map of edges, both insertion ordered, plus the viewport.
Edges refer to nodes by id only, so nodes can be inserted and deleted
in any order without fixing up object references.

Every function here is pure: it takes a ``Graph`` and returns a new
one (or raises a ``GraphModelError``). Node and edge models are never
mutated in place, so the previous graph value stays valid and can be
kept by callers as a snapshot.

Usage::

    graph = Graph.empty()
    graph, start_id = add_node(graph, "start", Position(x=0, y=0))
    graph, end_id = add_node(graph, "end", Position(x=0, y=200))
    graph = connect(graph, start_id, None, end_id, None)
    definition = graph.to_definition()
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from automator.automator_model import (
    AutomatorDefinition,
    AutomatorEdge,
    AutomatorNode,
    Position,
    Viewport,
)
from automator.errors import (
    EdgeNotFound,
    InvalidHandle,
    InvalidNodeData,
    MalformedDefinition,
    NodeNotFound,
)
from automator.node_schema import (
    HANDLE_LABELS,
    AutomatorNodeType,
    accepts_incoming,
    coerce_node_type,
    default_data_for,
    field_aliases,
    source_handles_for,
)

logger = getLogger(__name__)


@dataclass(frozen=True)
class Graph:
    """Immutable graph value: nodes and edges indexed by id."""

    nodes: Dict[str, AutomatorNode] = field(default_factory=dict)
    edges: Dict[str, AutomatorEdge] = field(default_factory=dict)
    viewport: Viewport = field(default_factory=Viewport)

    @classmethod
    def empty(cls) -> "Graph":
        return cls()

    # ── Conversion ──

    @classmethod
    def from_definition(cls, definition: AutomatorDefinition) -> "Graph":
        """Index a definition into a graph.

        Raises:
            MalformedDefinition: on duplicate ids, an edge that
                references a node that does not exist, or a
                non-positive viewport zoom.
        """
        nodes: Dict[str, AutomatorNode] = {}
        for node in definition.nodes:
            if node.id in nodes:
                raise MalformedDefinition(f"Duplicate node id: {node.id}")
            nodes[node.id] = node

        edges: Dict[str, AutomatorEdge] = {}
        for edge in definition.edges:
            if edge.id in edges:
                raise MalformedDefinition(f"Duplicate edge id: {edge.id}")
            for endpoint in (edge.source, edge.target):
                if endpoint not in nodes:
                    raise MalformedDefinition(
                        f"Edge {edge.id} references unknown node: {endpoint}"
                    )
            edges[edge.id] = edge

        if definition.viewport.zoom <= 0:
            raise MalformedDefinition(f"Viewport zoom must be positive, got {definition.viewport.zoom}")
        return cls(nodes=nodes, edges=edges, viewport=definition.viewport)

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "Graph":
        """Parse a wire dict; any schema problem becomes ``MalformedDefinition``."""
        try:
            definition = AutomatorDefinition.model_validate(document)
        except ValidationError as e:
            raise MalformedDefinition(str(e)) from e
        return cls.from_definition(definition)

    def to_definition(self) -> AutomatorDefinition:
        return AutomatorDefinition(
            nodes=list(self.nodes.values()),
            edges=list(self.edges.values()),
            viewport=self.viewport,
        )

    # ── Queries ──

    def get_node(self, node_id: str) -> AutomatorNode:
        node = self.nodes.get(node_id)
        if node is None:
            raise NodeNotFound(node_id)
        return node

    def get_edge(self, edge_id: str) -> AutomatorEdge:
        edge = self.edges.get(edge_id)
        if edge is None:
            raise EdgeNotFound(edge_id)
        return edge

    def edges_from(self, node_id: str) -> List[AutomatorEdge]:
        return [e for e in self.edges.values() if e.source == node_id]

    def edges_to(self, node_id: str) -> List[AutomatorEdge]:
        return [e for e in self.edges.values() if e.target == node_id]

    def nodes_of_type(self, node_type: AutomatorNodeType) -> List[AutomatorNode]:
        return [n for n in self.nodes.values() if n.type is node_type]

    # ── Internals ──

    def _with(
        self,
        nodes: Optional[Dict[str, AutomatorNode]] = None,
        edges: Optional[Dict[str, AutomatorEdge]] = None,
        viewport: Optional[Viewport] = None,
    ) -> "Graph":
        return replace(
            self,
            nodes=self.nodes if nodes is None else nodes,
            edges=self.edges if edges is None else edges,
            viewport=self.viewport if viewport is None else viewport,
        )


# ============================================================================
# Id generation
# ============================================================================


def _generate_id(prefix: str, taken: Iterable[str]) -> str:
    taken = set(taken)
    while True:
        candidate = f"{prefix}_{uuid.uuid4().hex[:12]}"
        if candidate not in taken:
            return candidate


def new_node_id(graph: Graph) -> str:
    return _generate_id("node", graph.nodes)


def new_edge_id(graph: Graph) -> str:
    return _generate_id("edge", graph.edges)


# ============================================================================
# Node mutations
# ============================================================================


def add_node(
    graph: Graph,
    node_type: Union[str, AutomatorNodeType],
    position: Position,
) -> Tuple[Graph, str]:
    """Insert a node with default data at ``position``.

    Returns the new graph and the generated node id.
    """
    kind = coerce_node_type(node_type)
    node_id = new_node_id(graph)
    node = AutomatorNode(
        id=node_id,
        type=kind,
        position=position,
        data=default_data_for(kind),
    )
    nodes = dict(graph.nodes)
    nodes[node_id] = node
    return graph._with(nodes=nodes), node_id


def update_node_data(
    graph: Graph,
    node_id: str,
    partial: Mapping[str, Any],
) -> Graph:
    """Shallow-merge ``partial`` into a node's data.

    Keys may be wire (camelCase) or attribute names. The ``type``
    discriminant cannot be changed; a differing ``type`` is ignored.

    Raises:
        NodeNotFound: if ``node_id`` is absent.
        InvalidNodeData: if the merged payload violates the node's schema.
    """
    node = graph.get_node(node_id)
    model = type(node.data)
    aliases = field_aliases(model)

    updates: Dict[str, Any] = {}
    for key, value in partial.items():
        name = aliases.get(key)
        if name is None:
            logger.debug(f"Ignoring unknown data key {key!r} for node {node_id}")
            continue
        if name == "type":
            if value != node.data.type:
                logger.warning(
                    f"Refusing to change type of node {node_id} "
                    f"from {node.data.type!r} to {value!r}"
                )
            continue
        updates[name] = value

    merged = {**node.data.model_dump(), **updates}
    try:
        data = model.model_validate(merged)
    except ValidationError as e:
        raise InvalidNodeData(node_id, str(e)) from e

    nodes = dict(graph.nodes)
    nodes[node_id] = node.model_copy(update={"data": data})
    return graph._with(nodes=nodes)


def move_node(graph: Graph, node_id: str, position: Position) -> Graph:
    node = graph.get_node(node_id)
    nodes = dict(graph.nodes)
    nodes[node_id] = node.model_copy(update={"position": position})
    return graph._with(nodes=nodes)


def delete_node(graph: Graph, node_id: str) -> Graph:
    """Remove a node and every edge that touches it."""
    graph.get_node(node_id)
    nodes = {nid: n for nid, n in graph.nodes.items() if nid != node_id}
    edges = {
        eid: e
        for eid, e in graph.edges.items()
        if e.source != node_id and e.target != node_id
    }
    return graph._with(nodes=nodes, edges=edges)


# ============================================================================
# Edge mutations
# ============================================================================


def connect(
    graph: Graph,
    source: str,
    source_handle: Optional[str],
    target: str,
    target_handle: Optional[str] = None,
) -> Graph:
    """Create an edge from ``source`` to ``target``.

    Decision handles hold at most one edge: connecting an occupied
    ``yes``/``no`` handle replaces the existing edge. Connecting the
    exact same endpoints and handles twice is a no-op.

    Raises:
        NodeNotFound: if either endpoint is absent.
        InvalidHandle: if ``source_handle`` is not an output of the
            source node, or the target cannot take incoming edges.
    """
    source_node = graph.get_node(source)
    target_node = graph.get_node(target)

    legal = source_handles_for(source_node.type)
    if source_handle not in legal:
        reason = (
            "node has no outputs"
            if not legal
            else f"expected one of {[h for h in legal if h is not None]}"
        )
        raise InvalidHandle(source, source_handle, reason)
    if not accepts_incoming(target_node.type):
        raise InvalidHandle(target, target_handle, f"{target_node.type.value} node has no inputs")

    for edge in graph.edges.values():
        if (
            edge.source == source
            and edge.target == target
            and edge.source_handle == source_handle
            and edge.target_handle == target_handle
        ):
            return graph

    edges = dict(graph.edges)
    label: Optional[str] = None
    if source_node.type is AutomatorNodeType.DECISION:
        label = HANDLE_LABELS[source_handle]
        for eid, edge in graph.edges.items():
            if edge.source == source and edge.source_handle == source_handle:
                logger.debug(f"Replacing edge {eid} on handle {source_handle!r} of {source}")
                del edges[eid]

    edge_id = new_edge_id(graph)
    edges[edge_id] = AutomatorEdge(
        id=edge_id,
        source=source,
        target=target,
        source_handle=source_handle,
        target_handle=target_handle,
        label=label,
    )
    return graph._with(edges=edges)


def delete_edge(graph: Graph, edge_id: str) -> Graph:
    graph.get_edge(edge_id)
    edges = {eid: e for eid, e in graph.edges.items() if eid != edge_id}
    return graph._with(edges=edges)


def set_edge_label(graph: Graph, edge_id: str, label: Optional[str]) -> Graph:
    edge = graph.get_edge(edge_id)
    edges = dict(graph.edges)
    edges[edge_id] = edge.model_copy(update={"label": label or None})
    return graph._with(edges=edges)


def set_viewport(graph: Graph, viewport: Viewport) -> Graph:
    return graph._with(viewport=viewport)
