"""
Automator Builder — visual authoring of guided business processes.

An automator is a directed graph of typed steps (start, yes/no
decisions, data collection, end outcomes) that downstream tooling
walks to guide a user through a multi-step task. This package models
that graph, validates it, tracks an editing session over it, and
persists it with a draft/publish lifecycle.

Architecture:
    node_schema        — closed set of node kinds, payloads, handles
    automator_model    — wire models (Automator, definition, nodes, edges)
    graph_model        — id-indexed Graph value + pure mutations
    graph_validator    — publish gate (structure + reachability)
    viewport           — screen ↔ flow coordinate transform
    builder_session    — dirty/saving state machine for one editor
    automator_store    — raw JSON document persistence
    automator_service  — load/save/publish/unpublish adapter
    templates          — ready-made definitions
    routes             — FastAPI router over the service
"""

from automator.automator_model import (
    Automator,
    AutomatorDefinition,
    AutomatorEdge,
    AutomatorNode,
    AutomatorStatus,
    Position,
    ValidationIssue,
    ValidationResult,
    Viewport,
)
from automator.automator_service import AutomatorService, get_automator_service
from automator.automator_store import (
    AutomatorStore,
    InMemoryAutomatorStore,
    JsonFileAutomatorStore,
    get_automator_store,
)
from automator.builder_session import BuilderSession, SessionState
from automator.config import AutomatorConfig, get_automator_config
from automator.errors import (
    AutomatorError,
    AutomatorNotFound,
    EdgeNotFound,
    GraphModelError,
    InvalidHandle,
    InvalidNodeData,
    MalformedDefinition,
    NameConflict,
    NodeNotFound,
    PersistenceError,
    UnknownNodeType,
    ValidationFailed,
)
from automator.graph_model import (
    Graph,
    add_node,
    connect,
    delete_edge,
    delete_node,
    move_node,
    set_edge_label,
    update_node_data,
)
from automator.graph_validator import validate
from automator.node_schema import (
    AutomatorNodeType,
    EndOutcome,
    FieldType,
    default_data_for,
)
from automator.viewport import flow_to_screen, screen_to_flow

__all__ = [
    # Models
    "Automator",
    "AutomatorDefinition",
    "AutomatorEdge",
    "AutomatorNode",
    "AutomatorStatus",
    "Position",
    "ValidationIssue",
    "ValidationResult",
    "Viewport",
    # Node schema
    "AutomatorNodeType",
    "EndOutcome",
    "FieldType",
    "default_data_for",
    # Graph model
    "Graph",
    "add_node",
    "connect",
    "delete_edge",
    "delete_node",
    "move_node",
    "set_edge_label",
    "update_node_data",
    "validate",
    "flow_to_screen",
    "screen_to_flow",
    # Session & persistence
    "BuilderSession",
    "SessionState",
    "AutomatorService",
    "get_automator_service",
    "AutomatorStore",
    "InMemoryAutomatorStore",
    "JsonFileAutomatorStore",
    "get_automator_store",
    "AutomatorConfig",
    "get_automator_config",
    # Errors
    "AutomatorError",
    "AutomatorNotFound",
    "EdgeNotFound",
    "GraphModelError",
    "InvalidHandle",
    "InvalidNodeData",
    "MalformedDefinition",
    "NameConflict",
    "NodeNotFound",
    "PersistenceError",
    "UnknownNodeType",
    "ValidationFailed",
]
