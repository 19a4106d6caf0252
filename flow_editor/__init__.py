"""
Flow Editor Core - Flow graph state, validation, layout and JSON schema codec.

This package is the engine behind the visual flow editor: the presentation
layer reads the FlowDocumentStore's state and changes it only through the
store's operations.
"""

from .models import (
    # Enums
    StepType,
    # Core models
    Position,
    Step,
    Transition,
    # Request models
    StepUpdate,
)

from .errors import FlowEditorError, FlowDecodeError
from .config import EditorSettings, get_settings, configure_logging
from .validation import validate_flow, validation_summary, GLOBAL_SCOPE
from .analysis import summarize_flow, find_reachable
from .layout import layered_layout, import_position
from .codec import encode_flow, encode_flow_json, decode_flow, DecodedFlow
from .store import FlowDocumentStore

__all__ = [
    # Enums
    "StepType",
    # Models
    "Position",
    "Step",
    "Transition",
    # Request models
    "StepUpdate",
    # Errors
    "FlowEditorError",
    "FlowDecodeError",
    # Config
    "EditorSettings",
    "get_settings",
    "configure_logging",
    # Validation
    "validate_flow",
    "validation_summary",
    "GLOBAL_SCOPE",
    # Analysis
    "summarize_flow",
    "find_reachable",
    # Layout
    "layered_layout",
    "import_position",
    # Codec
    "encode_flow",
    "encode_flow_json",
    "decode_flow",
    "DecodedFlow",
    # Store
    "FlowDocumentStore",
]
