"""
Flow validation - Check flows for structural issues.

The result is a diagnostics mapping: scope key -> ordered list of messages,
where the scope is a step id, a transition id, or GLOBAL_SCOPE. An empty
mapping means the flow is valid.
"""

from typing import TYPE_CHECKING

from .analysis import find_dangling_endpoints, find_start_step, touched_step_ids

if TYPE_CHECKING:
    from .models import Step, Transition


GLOBAL_SCOPE = "global"

Diagnostics = dict[str, list[str]]

MISSING_START = "No starting node designated."
MISSING_DESCRIPTION = "Description is required"
DISCONNECTED = "Node is disconnected"


def _add_issue(diagnostics: Diagnostics, scope: str, message: str) -> None:
    diagnostics.setdefault(scope, []).append(message)


def validate_flow(steps: list["Step"], transitions: list["Transition"]) -> Diagnostics:
    """
    Validate a flow and return its diagnostics mapping.

    Checks for (each rule runs regardless of the others):
    - Duplicate step ids - global
    - No start step among one or more steps - global
    - Empty or whitespace-only descriptions - per step
    - Steps touched by no transition, when there are 2+ steps - per step
    - Transitions whose source/target names no step - per transition

    Args:
        steps: Steps of the flow, in document order
        transitions: Transitions of the flow

    Returns:
        Diagnostics mapping (empty when the flow is valid)
    """
    diagnostics: Diagnostics = {}

    # Every occurrence after the first counts as a duplicate
    seen: set[str] = set()
    duplicates: list[str] = []
    for step in steps:
        if step.id in seen:
            duplicates.append(step.id)
        seen.add(step.id)
    if duplicates:
        _add_issue(diagnostics, GLOBAL_SCOPE, f"Duplicate Node IDs found: {', '.join(duplicates)}")

    if steps and find_start_step(steps) is None:
        _add_issue(diagnostics, GLOBAL_SCOPE, MISSING_START)

    for step in steps:
        if not step.description or step.description.strip() == "":
            _add_issue(diagnostics, step.id, MISSING_DESCRIPTION)

    connected = touched_step_ids(transitions)
    if len(steps) > 1:
        for step in steps:
            if step.id not in connected:
                _add_issue(diagnostics, step.id, DISCONNECTED)

    for endpoint in find_dangling_endpoints(steps, transitions):
        _add_issue(
            diagnostics,
            endpoint.transition_id,
            f"Transition references missing step: {endpoint.step_id}"
        )

    return diagnostics


def validation_summary(diagnostics: Diagnostics, step_ids: set[str]) -> dict:
    """
    Create a summary of a diagnostics mapping.

    Args:
        diagnostics: Mapping produced by validate_flow
        step_ids: Ids of the flow's steps, to tell step scopes from transition scopes

    Returns:
        Dictionary with issue counts per scope kind
    """
    global_count = len(diagnostics.get(GLOBAL_SCOPE, []))
    step_count = sum(len(v) for k, v in diagnostics.items() if k in step_ids and k != GLOBAL_SCOPE)
    total = sum(len(v) for v in diagnostics.values())
    return {
        "total": total,
        "global": global_count,
        "steps": step_count,
        "transitions": total - global_count - step_count,
        "valid": not diagnostics,
    }
