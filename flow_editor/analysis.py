"""
Flow analysis - Graph helpers shared by validation, layout and the codec.

All functions are pure and treat the step/transition lists as read-only.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from .models import Step, Transition


@dataclass
class DanglingEndpoint:
    """A transition endpoint that names no existing step."""
    transition_id: str
    step_id: str
    end: str  # "source" or "target"


@dataclass
class FlowSummary:
    """Counts describing a flow's structure."""
    total_steps: int
    total_transitions: int
    steps_by_type: dict[str, int] = field(default_factory=dict)
    start_step_id: Optional[str] = None
    unreachable: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_steps": self.total_steps,
            "total_transitions": self.total_transitions,
            "steps_by_type": self.steps_by_type,
            "start_step_id": self.start_step_id,
            "unreachable": self.unreachable,
        }


def find_start_step(steps: Iterable["Step"]) -> Optional["Step"]:
    """Get the first step flagged as the start of the flow, if any."""
    for step in steps:
        if step.is_start_node:
            return step
    return None


def touched_step_ids(transitions: Iterable["Transition"]) -> set[str]:
    """Get every step id used as a source or target by some transition."""
    touched: set[str] = set()
    for transition in transitions:
        touched.add(transition.source)
        touched.add(transition.target)
    return touched


def outgoing_by_source(transitions: Iterable["Transition"]) -> dict[str, list["Transition"]]:
    """Group transitions by source step id, keeping their original order."""
    outgoing: dict[str, list["Transition"]] = defaultdict(list)
    for transition in transitions:
        outgoing[transition.source].append(transition)
    return outgoing


def find_dangling_endpoints(
    steps: Iterable["Step"],
    transitions: Iterable["Transition"]
) -> list[DanglingEndpoint]:
    """
    Find transition endpoints that do not resolve to a step.

    Args:
        steps: Steps of the flow
        transitions: Transitions to check

    Returns:
        One DanglingEndpoint per unresolved source or target, in transition order
    """
    step_ids = {s.id for s in steps}
    dangling: list[DanglingEndpoint] = []
    for transition in transitions:
        if transition.source not in step_ids:
            dangling.append(DanglingEndpoint(transition.id, transition.source, "source"))
        if transition.target not in step_ids:
            dangling.append(DanglingEndpoint(transition.id, transition.target, "target"))
    return dangling


def find_reachable(start_id: str, transitions: Iterable["Transition"]) -> set[str]:
    """
    Find all step ids reachable from a step by following transitions forward.

    The start id itself is always included.
    """
    adjacency: dict[str, list[str]] = defaultdict(list)
    for transition in transitions:
        adjacency[transition.source].append(transition.target)

    visited: set[str] = {start_id}
    queue = [start_id]
    while queue:
        current = queue.pop(0)
        for neighbor in adjacency[current]:
            if neighbor not in visited:
                visited.add(neighbor)
                queue.append(neighbor)
    return visited


def summarize_flow(steps: list["Step"], transitions: list["Transition"]) -> FlowSummary:
    """
    Generate a structural summary of a flow.

    Steps that cannot be reached from the start step are listed in
    `unreachable`; without a start step nothing is reported as unreachable.
    """
    type_counts: dict[str, int] = defaultdict(int)
    for step in steps:
        type_counts[step.step_type.value] += 1

    start = find_start_step(steps)
    unreachable: list[str] = []
    if start is not None:
        reachable = find_reachable(start.id, transitions)
        unreachable = [s.id for s in steps if s.id not in reachable]

    return FlowSummary(
        total_steps=len(steps),
        total_transitions=len(transitions),
        steps_by_type=dict(type_counts),
        start_step_id=start.id if start else None,
        unreachable=unreachable,
    )
