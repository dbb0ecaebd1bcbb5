"""
Automator Data Models — the persisted entity and its definition.

These are the serializable structures exchanged with storage and with
the canvas. Node/edge/viewport keys are camelCase on the wire (as the
canvas produces them); the ``Automator`` envelope is snake_case.
They are persisted by ``AutomatorStore`` through ``AutomatorService``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from automator.node_schema import AutomatorNodeType, NodeData, WireModel


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Position(WireModel):
    x: float = 0
    y: float = 0


class Viewport(WireModel):
    x: float = 0
    y: float = 0
    zoom: float = Field(default=1, gt=0)


class AutomatorNode(WireModel):
    """A single step placed on the canvas.

    ``type`` must agree with ``data.type``. Canvas-only keys such as
    ``selected`` or ``dragging`` are dropped on parse.
    """

    id: str
    type: AutomatorNodeType
    position: Position = Field(default_factory=Position)
    data: NodeData

    @model_validator(mode="after")
    def _check_discriminant(self) -> "AutomatorNode":
        if self.data.type != self.type.value:
            raise ValueError(
                f"node {self.id} has type {self.type.value!r} "
                f"but data of type {self.data.type!r}"
            )
        return self


class AutomatorEdge(WireModel):
    """A directed edge between two nodes.

    ``source_handle`` is ``yes``/``no`` for decision sources and the
    default handle (unset or ``"default"``) for everything else.
    """

    id: str
    source: str
    target: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    label: Optional[str] = None


class AutomatorDefinition(WireModel):
    """The graph payload stored on an automator."""

    nodes: List[AutomatorNode] = Field(default_factory=list)
    edges: List[AutomatorEdge] = Field(default_factory=list)
    viewport: Viewport = Field(default_factory=Viewport)

    @classmethod
    def empty(cls) -> "AutomatorDefinition":
        return cls()

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the wire dict (camelCase, unset optionals omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AutomatorStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class Automator(BaseModel):
    """The persisted automator entity."""

    id: str
    team_id: str
    name: str
    description: Optional[str] = None
    status: AutomatorStatus = AutomatorStatus.DRAFT
    definition: AutomatorDefinition = Field(default_factory=AutomatorDefinition)
    version: int = 1
    created_by: str
    updated_by: str
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)
    published_at: Optional[str] = None

    # Set by the service when the stored definition could not be parsed
    # and an empty graph was substituted. Never persisted.
    definition_error: Optional[str] = Field(default=None, exclude=True)

    @property
    def is_published(self) -> bool:
        return self.status == AutomatorStatus.PUBLISHED

    def touch(self, actor_id: str) -> None:
        """Record ``actor_id`` as the latest updater."""
        self.updated_by = actor_id
        self.updated_at = utc_now()

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# Validation results
# ============================================================================


class ValidationSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class ValidationIssue(WireModel):
    message: str
    severity: ValidationSeverity = ValidationSeverity.ERROR
    node_id: Optional[str] = None
    edge_id: Optional[str] = None


class ValidationResult(WireModel):
    valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)

    def errors_for(self, node_id: str) -> List[ValidationIssue]:
        return [e for e in self.errors if e.node_id == node_id]
