"""
Schema codec - Map flows to and from the external JSON schema.

Wire format:

    {
      "nodes": [
        {"id", "label", "node_type", "description", "prompt",
         "edges": [{"to_node_id", "condition"}]}
      ],
      "metadata": {"start_node_id", "total_nodes", "total_edges", "is_valid"}
    }

Encoding always succeeds. Decoding normalizes legacy field names (see
FIELD_ALIASES) before building models and raises FlowDecodeError on any
input it cannot turn into a flow.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field, ValidationError, model_validator

from .analysis import find_start_step, outgoing_by_source
from .errors import FlowDecodeError
from .layout import import_position
from .models import IMPORTED_TRANSITION_LABEL, Step, StepType, Transition

logger = structlog.get_logger(__name__)


# Canonical wire field -> accepted input names, in order of preference.
# The first non-empty value wins.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "label": ("label", "name"),
    "node_type": ("node_type", "nodeType"),
}


def resolve_aliases(data: dict) -> dict:
    """Return a copy of a node entry with every aliased field under its canonical name."""
    resolved = dict(data)
    for canonical, names in FIELD_ALIASES.items():
        value = None
        for name in names:
            if resolved.get(name):
                value = resolved[name]
                break
        for name in names:
            resolved.pop(name, None)
        if value is not None:
            resolved[canonical] = value
    return resolved


# --- Wire Models ---

class WireEdge(BaseModel):
    """An outgoing edge as it appears inside a wire node."""
    to_node_id: str
    condition: Optional[str] = None


class WireNode(BaseModel):
    """A node entry of the wire schema, after alias resolution."""
    id: str
    label: Optional[str] = None
    node_type: StepType = StepType.LLM
    description: Optional[str] = None
    prompt: Optional[str] = None
    edges: list[WireEdge] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Accept 'name'/'nodeType' in place of 'label'/'node_type'."""
        if isinstance(data, dict):
            data = resolve_aliases(data)
            # Explicit nulls mean "absent"
            if data.get('edges') is None:
                data.pop('edges', None)
            if data.get('node_type') is None:
                data.pop('node_type', None)
        return data


@dataclass
class DecodedFlow:
    """Steps and transitions recovered from a wire document."""
    steps: list[Step] = field(default_factory=list)
    transitions: list[Transition] = field(default_factory=list)


# --- Encode ---

def encode_flow(
    steps: list[Step],
    transitions: list[Transition],
    diagnostics: dict[str, list[str]]
) -> dict:
    """
    Render a flow as a wire-schema dict.

    Args:
        steps: Steps in document order
        transitions: Transitions in document order
        diagnostics: Current validation result, used for metadata.is_valid

    Returns:
        JSON-serializable dict
    """
    outgoing = outgoing_by_source(transitions)
    start = find_start_step(steps)

    nodes = [
        {
            "id": step.id,
            "label": step.label,
            "node_type": step.step_type.value,
            "description": step.description,
            "prompt": step.prompt,
            "edges": [
                {"to_node_id": t.target, "condition": t.label}
                for t in outgoing.get(step.id, [])
            ],
        }
        for step in steps
    ]

    return {
        "nodes": nodes,
        "metadata": {
            "start_node_id": start.id if start else None,
            "total_nodes": len(steps),
            "total_edges": len(transitions),
            "is_valid": not diagnostics,
        },
    }


def encode_flow_json(
    steps: list[Step],
    transitions: list[Transition],
    diagnostics: dict[str, list[str]],
    indent: Optional[int] = 2
) -> str:
    """Render a flow as wire-schema JSON text."""
    return json.dumps(encode_flow(steps, transitions, diagnostics), indent=indent)


# --- Decode ---

def _parse_document(text: str) -> tuple[list, Optional[str]]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise FlowDecodeError(f"Invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})") from e

    if not isinstance(data, dict):
        raise FlowDecodeError("Flow document must be a JSON object")

    entries = data.get("nodes")
    if not isinstance(entries, list):
        raise FlowDecodeError("Flow document has no 'nodes' array")

    # total_nodes, total_edges and is_valid are export-only and never read back
    metadata = data.get("metadata")
    start_node_id = metadata.get("start_node_id") if isinstance(metadata, dict) else None
    if not isinstance(start_node_id, str) or not start_node_id:
        start_node_id = None

    return entries, start_node_id


def _parse_node(index: int, entry: Any) -> WireNode:
    if not isinstance(entry, dict):
        raise FlowDecodeError(f"Node {index} is not an object")
    try:
        return WireNode(**entry)
    except ValidationError as e:
        error = e.errors()[0]
        location = ".".join(str(part) for part in error["loc"])
        raise FlowDecodeError(f"Node {index}: {location}: {error['msg']}") from e


def decode_flow(text: str) -> DecodedFlow:
    """
    Parse wire-schema JSON text into steps and transitions.

    Start step: when metadata.start_node_id is a non-empty string, the step
    with that id; otherwise the first entry. The other metadata fields are
    ignored. Positions come from import_position().
    Edge targets are not checked against the declared steps.

    Args:
        text: JSON document text

    Returns:
        DecodedFlow with steps in entry order and transitions grouped by source

    Raises:
        FlowDecodeError: Malformed JSON, no 'nodes' array, or an entry that
            cannot be read as a step
    """
    entries, explicit_start = _parse_document(text)
    nodes = [_parse_node(i, entry) for i, entry in enumerate(entries)]

    decoded = DecodedFlow()
    for i, node in enumerate(nodes):
        if explicit_start is not None:
            is_start = node.id == explicit_start
        else:
            is_start = i == 0

        decoded.steps.append(Step(
            id=node.id,
            position=import_position(i),
            label=node.label or node.id,
            description=node.description or "",
            prompt=node.prompt or "",
            step_type=node.node_type,
            is_start_node=is_start,
        ))

        for edge in node.edges:
            decoded.transitions.append(Transition(
                source=node.id,
                target=edge.to_node_id,
                label=edge.condition or IMPORTED_TRANSITION_LABEL,
            ))

    logger.debug(
        "flow_decoded",
        steps=len(decoded.steps),
        transitions=len(decoded.transitions),
        start_node_id=explicit_start,
    )
    return decoded
