"""
Core data models for flow graphs.

These models define the canonical in-memory shape of a flow:
- Steps (graph nodes) with a type, texts and a canvas position
- Transitions (directed edges) between steps, labelled with a condition

Field Naming Convention:
- Transitions use `source` and `target` for their endpoints
- The external wire schema (`node_type`, `to_node_id`, `condition`) is
  handled by the codec module, never by these models
"""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
import uuid


class StepType(str, Enum):
    """Logical kinds of flow steps."""
    LLM = "llm"
    SOURCE = "source"
    KNOWLEDGE = "knowledge"
    CONDITION = "condition"
    INPUT = "input"
    OUTPUT = "output"
    FILTER = "filter"


# Description given to a freshly added step, by type
DEFAULT_DESCRIPTIONS: dict[StepType, str] = {
    StepType.LLM: "Processes information using a language model.",
    StepType.SOURCE: "Collects data from a specified source.",
    StepType.KNOWLEDGE: "Retrieves information from knowledge base.",
    StepType.CONDITION: "Evaluates logic to branch the flow.",
}
FALLBACK_DESCRIPTION = "Perform specialized operations."

NEW_TRANSITION_LABEL = "New Transition"
IMPORTED_TRANSITION_LABEL = "Transition"


def default_description(step_type: StepType) -> str:
    """Get the description a new step of this type starts with."""
    return DEFAULT_DESCRIPTIONS.get(step_type, FALLBACK_DESCRIPTION)


def default_label(step_type: StepType, ordinal: int) -> str:
    """Get the label for the `ordinal`-th step of the flow, e.g. 'LLM Step 3'."""
    return f"{step_type.value.upper()} Step {ordinal}"


def generate_step_id() -> str:
    """Generate a unique step ID."""
    return f"step_{uuid.uuid4().hex[:9]}"


def generate_transition_id(source: str, target: str) -> str:
    """Generate a unique transition ID."""
    return f"e-{source}-{target}-{uuid.uuid4().hex[:8]}"


class Position(BaseModel):
    """Top-left corner of a step on the canvas."""
    x: float = 0
    y: float = 0


class Step(BaseModel):
    """A step (node) in the flow."""
    id: str = Field(default_factory=generate_step_id)
    position: Position = Field(default_factory=Position)
    label: str = ""
    description: str = ""
    prompt: str = ""
    step_type: StepType = StepType.LLM
    is_start_node: bool = False


class Transition(BaseModel):
    """
    A directed transition between two steps.

    Endpoints are plain step ids; nothing here checks that they resolve.
    """
    id: str
    source: str
    target: str
    label: str = NEW_TRANSITION_LABEL

    @model_validator(mode='before')
    @classmethod
    def assign_id(cls, data: Any) -> Any:
        """Derive an id from the endpoints when none is given."""
        if isinstance(data, dict) and not data.get('id'):
            data = dict(data)
            data['id'] = generate_transition_id(
                str(data.get('source', '')), str(data.get('target', ''))
            )
        return data

    def reversed(self) -> "Transition":
        """Get a copy of this transition pointing the other way."""
        return self.model_copy(update={"source": self.target, "target": self.source})


# --- Mutation Request Models ---

class StepUpdate(BaseModel):
    """Partial update of a step's editable fields."""
    model_config = ConfigDict(extra="forbid")

    label: Optional[str] = None
    description: Optional[str] = None
    prompt: Optional[str] = None
    step_type: Optional[StepType] = None

    def changes(self) -> dict:
        """Get only the fields that were actually provided."""
        return self.model_dump(exclude_none=True)
