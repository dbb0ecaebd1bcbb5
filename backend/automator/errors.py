"""
Automator Errors.

Graph Model errors are contract violations raised by the pure graph
functions. ``ValidationFailed`` and ``PersistenceError`` are the two
kinds an editor is expected to surface to the user.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from automator.automator_model import ValidationIssue


class AutomatorError(Exception):
    """Base class for every automator error."""


# ── Graph Model ──


class GraphModelError(AutomatorError):
    """A graph mutation was called with arguments it cannot honor."""


class NodeNotFound(GraphModelError):
    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class EdgeNotFound(GraphModelError):
    def __init__(self, edge_id: str) -> None:
        super().__init__(f"Edge not found: {edge_id}")
        self.edge_id = edge_id


class UnknownNodeType(GraphModelError):
    def __init__(self, node_type: object) -> None:
        super().__init__(f"Unknown node type: {node_type}")
        self.node_type = node_type


class InvalidHandle(GraphModelError):
    def __init__(self, node_id: str, handle: Optional[str], reason: str) -> None:
        super().__init__(f"Invalid handle {handle!r} on node {node_id}: {reason}")
        self.node_id = node_id
        self.handle = handle


class InvalidNodeData(GraphModelError):
    def __init__(self, node_id: str, detail: str) -> None:
        super().__init__(f"Invalid data for node {node_id}: {detail}")
        self.node_id = node_id


# ── Definitions & validation ──


class MalformedDefinition(AutomatorError):
    """A serialized definition cannot be turned into a graph."""


class ValidationFailed(AutomatorError):
    """The graph is not publishable. ``issues`` holds the itemized errors."""

    def __init__(self, issues: List["ValidationIssue"]) -> None:
        self.issues = list(issues)
        summary = "; ".join(i.message for i in self.issues[:3])
        more = f" (+{len(self.issues) - 3} more)" if len(self.issues) > 3 else ""
        super().__init__(f"Automator is not valid: {summary}{more}")


# ── Persistence ──


class AutomatorNotFound(AutomatorError):
    def __init__(self, automator_id: str) -> None:
        super().__init__(f"Automator not found: {automator_id}")
        self.automator_id = automator_id


class PersistenceError(AutomatorError):
    """The backing store failed during load/save/publish/unpublish."""


class NameConflict(AutomatorError):
    """Another automator of the same team already uses this name."""

    def __init__(self, team_id: str, name: str) -> None:
        super().__init__(f"Automator name already in use: {name}")
        self.team_id = team_id
        self.name = name
