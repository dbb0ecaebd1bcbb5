"""
Node Schema — the closed set of automator step kinds.

Each kind has a typed payload model. The payloads form a tagged
union discriminated on ``type`` so that a stored definition with an
unknown tag is rejected at parse time rather than half-loaded.

Kinds::

    start          — entry point, one unlabeled output
    end            — terminal outcome, no outputs
    decision       — yes/no question, outputs ``yes`` and ``no``
    dataCollection — prompt for a single field, one unlabeled output
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Callable, Dict, List, Literal, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from automator.errors import UnknownNodeType


class AutomatorNodeType(str, Enum):
    """Node kinds understood by the builder."""
    START = "start"
    END = "end"
    DECISION = "decision"
    DATA_COLLECTION = "dataCollection"


class EndOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


class FieldType(str, Enum):
    """Input widget used by a data-collection step."""
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    MULTISELECT = "multiselect"


# Handles

DEFAULT_HANDLE = "default"
YES_HANDLE = "yes"
NO_HANDLE = "no"

HANDLE_LABELS: Dict[str, str] = {
    YES_HANDLE: "Yes",
    NO_HANDLE: "No",
}


class WireModel(BaseModel):
    """Base for models whose wire keys are camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ============================================================================
# Node payloads
# ============================================================================


class BaseNodeData(WireModel):
    label: str
    description: Optional[str] = None


class StartNodeData(BaseNodeData):
    type: Literal["start"] = "start"


class EndNodeData(BaseNodeData):
    type: Literal["end"] = "end"
    outcome: EndOutcome = EndOutcome.SUCCESS


class DecisionNodeData(BaseNodeData):
    type: Literal["decision"] = "decision"
    question: str
    store_as: Optional[str] = None  # answer key for the boolean result


class SelectOption(WireModel):
    label: str
    value: str


class DataCollectionNodeData(BaseNodeData):
    type: Literal["dataCollection"] = "dataCollection"
    field_name: str
    field_type: FieldType = FieldType.TEXT
    required: bool = True
    placeholder: Optional[str] = None
    options: Optional[List[SelectOption]] = None
    min: Optional[float] = None
    max: Optional[float] = None
    validation_message: Optional[str] = None


NodeData = Annotated[
    Union[StartNodeData, EndNodeData, DecisionNodeData, DataCollectionNodeData],
    Field(discriminator="type"),
]

NODE_DATA_MODELS: Dict[AutomatorNodeType, Type[BaseNodeData]] = {
    AutomatorNodeType.START: StartNodeData,
    AutomatorNodeType.END: EndNodeData,
    AutomatorNodeType.DECISION: DecisionNodeData,
    AutomatorNodeType.DATA_COLLECTION: DataCollectionNodeData,
}


# ============================================================================
# Defaults
# ============================================================================


_DEFAULT_FACTORIES: Dict[AutomatorNodeType, Callable[[], BaseNodeData]] = {
    AutomatorNodeType.START: lambda: StartNodeData(
        label="Start",
        description="Workflow entry point",
    ),
    AutomatorNodeType.END: lambda: EndNodeData(
        label="End",
        description="Workflow exit point",
        outcome=EndOutcome.SUCCESS,
    ),
    AutomatorNodeType.DECISION: lambda: DecisionNodeData(
        label="Decision",
        question="Enter your question here",
        description="",
    ),
    AutomatorNodeType.DATA_COLLECTION: lambda: DataCollectionNodeData(
        label="Collect Data",
        field_type=FieldType.TEXT,
        field_name="field_name",
        required=True,
        description="",
    ),
}


def coerce_node_type(node_type: Union[str, AutomatorNodeType]) -> AutomatorNodeType:
    """Normalize a tag to ``AutomatorNodeType`` or raise ``UnknownNodeType``."""
    if isinstance(node_type, AutomatorNodeType):
        return node_type
    try:
        return AutomatorNodeType(node_type)
    except ValueError:
        raise UnknownNodeType(node_type) from None


def default_data_for(node_type: Union[str, AutomatorNodeType]) -> BaseNodeData:
    """Return a fresh default payload for ``node_type``."""
    return _DEFAULT_FACTORIES[coerce_node_type(node_type)]()


def source_handles_for(node_type: AutomatorNodeType) -> Tuple[Optional[str], ...]:
    """Legal outgoing handles. ``None`` stands for the unnamed default handle."""
    if node_type is AutomatorNodeType.DECISION:
        return (YES_HANDLE, NO_HANDLE)
    if node_type is AutomatorNodeType.END:
        return ()
    return (None, DEFAULT_HANDLE)


def accepts_incoming(node_type: AutomatorNodeType) -> bool:
    return node_type is not AutomatorNodeType.START


def field_aliases(model: Type[BaseModel]) -> Dict[str, str]:
    """Map both wire keys and attribute names to attribute names."""
    mapping: Dict[str, str] = {}
    for name, info in model.model_fields.items():
        mapping[name] = name
        if info.alias:
            mapping[info.alias] = name
    return mapping
