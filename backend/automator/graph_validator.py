"""
Graph Validator — the publish gate.

Checks a ``Graph`` for structural problems and returns an itemized
``ValidationResult``. Errors block publishing; warnings are advisory.

Errors:
    * exactly one start node
    * no dangling edges
    * start has no inputs, end has no outputs
    * decision nodes have exactly one ``yes`` and one ``no`` branch
    * start / data-collection nodes have a single output
    * at least one end node
    * every node is reachable from start
    * every reachable node leads to an end node (no dead ends, no
      closed loops)

Warnings:
    * duplicate answer keys (``fieldName`` / ``storeAs``)
    * select / multiselect fields without options
    * number fields with ``min > max``
"""

from __future__ import annotations

from collections import deque
from logging import getLogger
from typing import Dict, Iterable, List, Optional, Set

from automator.automator_model import (
    AutomatorNode,
    ValidationIssue,
    ValidationResult,
    ValidationSeverity,
)
from automator.graph_model import Graph
from automator.node_schema import (
    HANDLE_LABELS,
    NO_HANDLE,
    YES_HANDLE,
    AutomatorNodeType,
    DataCollectionNodeData,
    DecisionNodeData,
    FieldType,
)

logger = getLogger(__name__)

_CHOICE_FIELDS = (FieldType.SELECT, FieldType.MULTISELECT)


def _name(node: AutomatorNode) -> str:
    label = node.data.label or node.type.value
    return f"'{label}'"


def _error(
    message: str,
    node_id: Optional[str] = None,
    edge_id: Optional[str] = None,
) -> ValidationIssue:
    return ValidationIssue(message=message, node_id=node_id, edge_id=edge_id)


def _warning(message: str, node_id: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        message=message,
        node_id=node_id,
        severity=ValidationSeverity.WARNING,
    )


# ====================================================================
# Public API
# ====================================================================


def validate(graph: Graph) -> ValidationResult:
    """Validate ``graph`` and return every error and warning found."""
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []

    errors.extend(_check_start_nodes(graph))
    errors.extend(_check_edges(graph))
    errors.extend(_check_outputs(graph))

    if not graph.nodes_of_type(AutomatorNodeType.END):
        errors.append(_error("Automator must have at least one End node."))

    errors.extend(_check_reachability(graph))

    warnings.extend(_check_answer_keys(graph))
    warnings.extend(_check_field_settings(graph))

    result = ValidationResult(valid=not errors, errors=errors, warnings=warnings)
    logger.debug(
        f"Validated graph: {len(graph.nodes)} nodes, {len(graph.edges)} edges, "
        f"{len(errors)} errors, {len(warnings)} warnings"
    )
    return result


# ====================================================================
# Structural checks
# ====================================================================


def _check_start_nodes(graph: Graph) -> Iterable[ValidationIssue]:
    starts = graph.nodes_of_type(AutomatorNodeType.START)
    if not starts:
        yield _error("Automator must have a Start node.")
        return
    for extra in starts[1:]:
        yield _error(
            f"Automator must have exactly one Start node; {_name(extra)} is an extra one.",
            node_id=extra.id,
        )


def _check_edges(graph: Graph) -> Iterable[ValidationIssue]:
    for edge in graph.edges.values():
        missing = [nid for nid in (edge.source, edge.target) if nid not in graph.nodes]
        for nid in missing:
            yield _error(f"Edge references unknown node: {nid}", edge_id=edge.id)
        if missing:
            continue

        source = graph.nodes[edge.source]
        target = graph.nodes[edge.target]
        if target.type is AutomatorNodeType.START:
            yield _error(
                f"Start node {_name(target)} cannot have incoming connections.",
                node_id=target.id,
                edge_id=edge.id,
            )
        if source.type is AutomatorNodeType.END:
            yield _error(
                f"End node {_name(source)} cannot have outgoing connections.",
                node_id=source.id,
                edge_id=edge.id,
            )


def _check_outputs(graph: Graph) -> Iterable[ValidationIssue]:
    for node in graph.nodes.values():
        outgoing = [e for e in graph.edges_from(node.id) if e.target in graph.nodes]

        if node.type is AutomatorNodeType.DECISION:
            by_handle: Dict[str, int] = {}
            for edge in outgoing:
                if edge.source_handle not in HANDLE_LABELS:
                    yield _error(
                        f"Decision {_name(node)} has a connection on unknown "
                        f"handle {edge.source_handle!r}.",
                        node_id=node.id,
                        edge_id=edge.id,
                    )
                    continue
                by_handle[edge.source_handle] = by_handle.get(edge.source_handle, 0) + 1
            for handle in (YES_HANDLE, NO_HANDLE):
                count = by_handle.get(handle, 0)
                if count == 0:
                    yield _error(
                        f"Decision {_name(node)} is missing its "
                        f"'{HANDLE_LABELS[handle]}' branch.",
                        node_id=node.id,
                    )
                elif count > 1:
                    yield _error(
                        f"Decision {_name(node)} has {count} "
                        f"'{HANDLE_LABELS[handle]}' branches; only one is allowed.",
                        node_id=node.id,
                    )

        elif node.type in (AutomatorNodeType.START, AutomatorNodeType.DATA_COLLECTION):
            if len(outgoing) > 1:
                yield _error(
                    f"{_name(node)} must have exactly one outgoing connection "
                    f"(found {len(outgoing)}).",
                    node_id=node.id,
                )


def _check_reachability(graph: Graph) -> Iterable[ValidationIssue]:
    starts = graph.nodes_of_type(AutomatorNodeType.START)
    if not starts:
        # Nothing is reachable without an entry point; already reported.
        return

    reachable = _walk(graph, [s.id for s in starts], forward=True)
    ends = [n.id for n in graph.nodes_of_type(AutomatorNodeType.END)]
    leads_to_end = _walk(graph, ends, forward=False)

    for node in graph.nodes.values():
        if node.type is AutomatorNodeType.START:
            if not graph.edges_from(node.id):
                yield _error(
                    f"Start node {_name(node)} is not connected to anything.",
                    node_id=node.id,
                )
            elif ends and node.id not in leads_to_end:
                yield _error(
                    f"No path from Start node {_name(node)} reaches an End node.",
                    node_id=node.id,
                )
            continue

        if node.id not in reachable:
            yield _error(
                f"{_name(node)} is not reachable from the Start node.",
                node_id=node.id,
            )
            continue

        if node.type is AutomatorNodeType.END:
            continue

        if not graph.edges_from(node.id):
            yield _error(
                f"{_name(node)} is a dead end; connect it to another step.",
                node_id=node.id,
            )
        elif ends and node.id not in leads_to_end:
            yield _error(
                f"{_name(node)} never leads to an End node.",
                node_id=node.id,
            )


def _walk(graph: Graph, roots: List[str], forward: bool) -> Set[str]:
    """Breadth-first closure from ``roots`` along (or against) edges."""
    adjacency: Dict[str, List[str]] = {}
    for edge in graph.edges.values():
        if edge.source not in graph.nodes or edge.target not in graph.nodes:
            continue
        src, dst = (edge.source, edge.target) if forward else (edge.target, edge.source)
        adjacency.setdefault(src, []).append(dst)

    seen: Set[str] = set(roots)
    queue = deque(roots)
    while queue:
        current = queue.popleft()
        for nxt in adjacency.get(current, []):
            if nxt not in seen:
                seen.add(nxt)
                queue.append(nxt)
    return seen


# ====================================================================
# Advisory checks
# ====================================================================


def _check_answer_keys(graph: Graph) -> Iterable[ValidationIssue]:
    owners: Dict[str, List[AutomatorNode]] = {}
    for node in graph.nodes.values():
        data = node.data
        key = None
        if isinstance(data, DataCollectionNodeData):
            key = data.field_name
        elif isinstance(data, DecisionNodeData):
            key = data.store_as
        if key:
            owners.setdefault(key, []).append(node)

    for key, nodes in owners.items():
        if len(nodes) < 2:
            continue
        for node in nodes[1:]:
            yield _warning(
                f"Answer key '{key}' on {_name(node)} is also used by "
                f"{_name(nodes[0])}; later answers will overwrite earlier ones.",
                node_id=node.id,
            )


def _check_field_settings(graph: Graph) -> Iterable[ValidationIssue]:
    for node in graph.nodes.values():
        data = node.data
        if not isinstance(data, DataCollectionNodeData):
            continue
        if data.field_type in _CHOICE_FIELDS and not data.options:
            yield _warning(
                f"{_name(node)} is a {data.field_type.value} field with no options.",
                node_id=node.id,
            )
        if data.min is not None and data.max is not None and data.min > data.max:
            yield _warning(
                f"{_name(node)} has a minimum ({data.min:g}) greater than "
                f"its maximum ({data.max:g}).",
                node_id=node.id,
            )
