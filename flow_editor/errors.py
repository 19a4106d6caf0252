"""Exceptions raised by the flow editor engine."""


class FlowEditorError(Exception):
    """Base class for flow editor errors."""


class FlowDecodeError(FlowEditorError, ValueError):
    """Raised when a flow document cannot be imported."""
