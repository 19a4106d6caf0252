"""
Flow Document Store - The single owner of the flow being edited.

This module implements:
- One in-memory flow document (steps, transitions, selection, diagnostics)
- O(1) step/transition lookups via index dictionaries
- The complete mutation API; diagnostics are recomputed after every
  step/transition change
- Layered auto-layout, scheduled after start reassignment and imports
- JSON import/export through the schema codec
"""

from pathlib import Path
from typing import Callable, Optional

import structlog

from .analysis import FlowSummary, find_start_step, summarize_flow
from .codec import decode_flow, encode_flow, encode_flow_json
from .config import EditorSettings, get_settings
from .errors import FlowDecodeError
from .layout import layered_layout
from .models import (
    NEW_TRANSITION_LABEL,
    Position,
    Step,
    StepType,
    StepUpdate,
    Transition,
    default_description,
    default_label,
)
from .validation import Diagnostics, validate_flow, validation_summary

logger = structlog.get_logger(__name__)

Scheduler = Callable[[Callable[[], None]], object]


def seed_start_step() -> Step:
    """Build the step a new flow starts with."""
    return Step(
        id="start-node",
        position=Position(x=250, y=150),
        label="Start Node",
        description="Initial entry point of the flow.",
        prompt="Welcome! How can I help you today?",
        step_type=StepType.LLM,
        is_start_node=True,
    )


class FlowDocumentStore:
    """
    Owns a single flow document and is the only way to change it.

    Features:
    - O(1) step/transition lookups via index dictionaries
    - Diagnostics recomputed wholesale after each step/transition mutation
    - Change callbacks for the presentation layer

    Reads hand out copies; callers change the document only through the
    operations below. Unknown ids make an operation a no-op.

    Layout after `set_start_node` and imports goes through `scheduler`, which
    receives the layout callable once the change is applied and observers have
    been notified. Without a scheduler the layout runs right away; an event
    loop host can pass `loop.call_soon` to run it on the next tick.
    """

    def __init__(
        self,
        settings: Optional[EditorSettings] = None,
        scheduler: Optional[Scheduler] = None,
        steps: Optional[list[Step]] = None,
        transitions: Optional[list[Transition]] = None,
    ):
        self._settings = settings or get_settings()
        self._scheduler = scheduler
        self._steps: list[Step] = [s.model_copy(deep=True) for s in steps or []]
        self._transitions: list[Transition] = [t.model_copy(deep=True) for t in transitions or []]
        self._selected_step_id: Optional[str] = None
        self._selected_transition_id: Optional[str] = None
        self._diagnostics: Diagnostics = {}
        self._on_change_callbacks: list[Callable] = []

        # O(1) lookup indexes
        self._step_index: dict[str, Step] = {}                    # step_id -> Step
        self._transition_index: dict[str, Transition] = {}        # transition_id -> Transition
        self._transitions_by_step: dict[str, set[str]] = {}       # step_id -> transition_ids

        self._rebuild_indexes()
        self.validate()

    # --- Index Management ---

    def _rebuild_indexes(self):
        """Rebuild all indexes from the current document."""
        self._step_index.clear()
        self._transition_index.clear()
        self._transitions_by_step.clear()

        for step in self._steps:
            # With repeated ids the first step wins
            self._step_index.setdefault(step.id, step)
        for transition in self._transitions:
            self._index_transition(transition)

    def _index_transition(self, transition: Transition):
        self._transition_index[transition.id] = transition
        self._transitions_by_step.setdefault(transition.source, set()).add(transition.id)
        self._transitions_by_step.setdefault(transition.target, set()).add(transition.id)

    def _unindex_transition(self, transition: Transition):
        self._transition_index.pop(transition.id, None)
        if transition.source in self._transitions_by_step:
            self._transitions_by_step[transition.source].discard(transition.id)
        if transition.target in self._transitions_by_step:
            self._transitions_by_step[transition.target].discard(transition.id)

    # --- Read State ---

    @property
    def settings(self) -> EditorSettings:
        return self._settings

    @property
    def steps(self) -> list[Step]:
        """Snapshot of the steps, in document order."""
        return [s.model_copy(deep=True) for s in self._steps]

    @property
    def transitions(self) -> list[Transition]:
        """Snapshot of the transitions, in document order."""
        return [t.model_copy(deep=True) for t in self._transitions]

    @property
    def selected_step_id(self) -> Optional[str]:
        return self._selected_step_id

    @property
    def selected_transition_id(self) -> Optional[str]:
        return self._selected_transition_id

    @property
    def diagnostics(self) -> Diagnostics:
        """Snapshot of the latest diagnostics mapping."""
        return {scope: list(issues) for scope, issues in self._diagnostics.items()}

    @property
    def is_valid(self) -> bool:
        return not self._diagnostics

    @property
    def start_step(self) -> Optional[Step]:
        start = find_start_step(self._steps)
        return start.model_copy(deep=True) if start else None

    def get_step(self, step_id: str) -> Optional[Step]:
        """Get a step by ID (O(1) lookup)."""
        step = self._step_index.get(step_id)
        return step.model_copy(deep=True) if step else None

    def get_transition(self, transition_id: str) -> Optional[Transition]:
        """Get a transition by ID (O(1) lookup)."""
        transition = self._transition_index.get(transition_id)
        return transition.model_copy(deep=True) if transition else None

    def transitions_for_step(self, step_id: str) -> list[Transition]:
        """Get all transitions touching a step, in document order."""
        ids = self._transitions_by_step.get(step_id, set())
        return [t.model_copy(deep=True) for t in self._transitions if t.id in ids]

    def summary(self) -> FlowSummary:
        """Structural summary of the document."""
        return summarize_flow(self._steps, self._transitions)

    def diagnostics_summary(self) -> dict:
        """Issue counts of the latest diagnostics mapping."""
        return validation_summary(self._diagnostics, set(self._step_index))

    # --- Change Callbacks ---

    def on_change(self, callback: Callable):
        """Register a callback for document, selection or position changes."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        """Notify all registered callbacks of a change."""
        for callback in self._on_change_callbacks:
            callback()

    def _commit(self):
        """Finish a step/transition mutation: revalidate, then notify."""
        self.validate()
        self._notify_change()

    def _schedule_layout(self):
        if self._scheduler is None:
            self.auto_layout()
        else:
            self._scheduler(self.auto_layout)

    # --- Validation ---

    def validate(self) -> bool:
        """Recompute diagnostics for the whole document; True when valid."""
        self._diagnostics = validate_flow(self._steps, self._transitions)
        return not self._diagnostics

    # --- Document Operations ---

    def new_flow(self) -> list[Step]:
        """Reset to a fresh flow holding only the default start step."""
        self.replace_all([seed_start_step()], [])
        return self.steps

    def replace_all(self, steps: list[Step], transitions: list[Transition]):
        """
        Overwrite the whole document.

        Endpoints are not checked; dangling transitions show up in diagnostics.
        Selection is cleared.
        """
        self._steps = [s.model_copy(deep=True) for s in steps]
        self._transitions = [t.model_copy(deep=True) for t in transitions]
        self._selected_step_id = None
        self._selected_transition_id = None
        self._rebuild_indexes()
        logger.debug("flow_replaced", steps=len(self._steps), transitions=len(self._transitions))
        self._commit()

    # --- Step Operations ---

    def add_step(self, position: Position, step_type: StepType = StepType.LLM) -> Step:
        """Add a new step with type-specific defaults."""
        step_type = StepType(step_type)
        step = Step(
            position=Position.model_validate(position).model_copy(),
            label=default_label(step_type, len(self._steps) + 1),
            description=default_description(step_type),
            prompt="",
            step_type=step_type,
            is_start_node=False,
        )
        self._steps.append(step)
        self._step_index[step.id] = step
        logger.debug("step_added", step_id=step.id, step_type=step_type.value)
        self._commit()
        return step.model_copy(deep=True)

    def update_step(self, step_id: str, **fields) -> Optional[Step]:
        """
        Merge label/description/prompt/step_type into a step.

        None values are ignored; unknown field names raise a ValidationError.
        """
        changes = StepUpdate(**fields).changes()

        step = self._step_index.get(step_id)
        if step is None:
            logger.debug("step_update_ignored", step_id=step_id)
            return None

        for key, value in changes.items():
            setattr(step, key, value)

        logger.debug("step_updated", step_id=step_id, fields=sorted(changes))
        self._commit()
        return step.model_copy(deep=True)

    def move_step(self, step_id: str, position: Position) -> Optional[Step]:
        """Place a step at a new canvas position (manual drag)."""
        step = self._step_index.get(step_id)
        if step is None:
            return None

        step.position = Position.model_validate(position).model_copy()
        self._notify_change()
        return step.model_copy(deep=True)

    def delete_step(self, step_id: str) -> bool:
        """Delete a step and every transition touching it."""
        if step_id not in self._step_index:
            logger.debug("step_delete_ignored", step_id=step_id)
            return False

        self._steps = [s for s in self._steps if s.id != step_id]
        self._step_index.pop(step_id, None)

        # Remove all transitions connected to this step
        connected_ids = self._transitions_by_step.pop(step_id, set())
        for transition_id in connected_ids:
            transition = self._transition_index.get(transition_id)
            if transition:
                self._unindex_transition(transition)
        self._transitions = [t for t in self._transitions if t.id not in connected_ids]

        if self._selected_step_id == step_id:
            self._selected_step_id = None
        if self._selected_transition_id in connected_ids:
            self._selected_transition_id = None

        logger.debug("step_deleted", step_id=step_id, transitions_removed=len(connected_ids))
        self._commit()
        return True

    def set_start_node(self, step_id: str) -> bool:
        """
        Make a step the only start step.

        Transitions pointing into the new start step are reversed so it keeps
        no incoming edges. A layout is scheduled afterwards.
        """
        if step_id not in self._step_index:
            logger.debug("start_assignment_ignored", step_id=step_id)
            return False

        for step in self._steps:
            step.is_start_node = step.id == step_id

        reversed_count = 0
        for i, transition in enumerate(self._transitions):
            if transition.target == step_id:
                self._transitions[i] = transition.reversed()
                reversed_count += 1
        if reversed_count:
            self._rebuild_indexes()

        logger.info("start_node_set", step_id=step_id, reversed_transitions=reversed_count)
        self._commit()
        self._schedule_layout()
        return True

    # --- Transition Operations ---

    def add_transition(self, source: str, target: str, label: str = NEW_TRANSITION_LABEL) -> Transition:
        """
        Connect two steps.

        Parallel transitions and self-loops are allowed; endpoints are not checked.
        """
        transition = Transition(source=source, target=target, label=label)
        self._transitions.append(transition)
        self._index_transition(transition)
        logger.debug("transition_added", transition_id=transition.id, source=source, target=target)
        self._commit()
        return transition.model_copy(deep=True)

    def update_transition_label(self, transition_id: str, label: str) -> Optional[Transition]:
        """Set a transition's condition label."""
        transition = self._transition_index.get(transition_id)
        if transition is None:
            logger.debug("transition_update_ignored", transition_id=transition_id)
            return None

        transition.label = label
        self._commit()
        return transition.model_copy(deep=True)

    def delete_transition(self, transition_id: str) -> bool:
        """Delete a transition."""
        transition = self._transition_index.get(transition_id)
        if transition is None:
            logger.debug("transition_delete_ignored", transition_id=transition_id)
            return False

        self._transitions = [t for t in self._transitions if t.id != transition_id]
        self._unindex_transition(transition)
        if self._selected_transition_id == transition_id:
            self._selected_transition_id = None

        logger.debug("transition_deleted", transition_id=transition_id)
        self._commit()
        return True

    # --- Selection ---

    def select_step(self, step_id: Optional[str]):
        """Select a step (or nothing with None); clears any transition selection."""
        if step_id is not None and step_id not in self._step_index:
            return
        self._selected_step_id = step_id
        self._selected_transition_id = None
        self._notify_change()

    def select_transition(self, transition_id: Optional[str]):
        """Select a transition (or nothing with None); clears any step selection."""
        if transition_id is not None and transition_id not in self._transition_index:
            return
        self._selected_transition_id = transition_id
        self._selected_step_id = None
        self._notify_change()

    # --- Layout ---

    def auto_layout(self):
        """Reposition every step with the layered layout."""
        settings = self._settings
        layered_layout(
            self._steps,
            self._transitions,
            node_width=settings.node_width,
            node_height=settings.node_height,
            node_sep=settings.node_sep,
            rank_sep=settings.rank_sep,
            sweeps=settings.ordering_sweeps,
        )
        logger.info("layout_applied", steps=len(self._steps))
        self._notify_change()

    # --- Import / Export ---

    def to_json_dict(self) -> dict:
        """Render the document in the external wire schema."""
        return encode_flow(self._steps, self._transitions, self._diagnostics)

    def to_json(self, indent: Optional[int] = 2) -> str:
        """Render the document as wire-schema JSON text."""
        return encode_flow_json(self._steps, self._transitions, self._diagnostics, indent=indent)

    def load_json(self, text: str):
        """
        Replace the document with a wire-schema JSON document.

        Raises:
            FlowDecodeError: The text is not a readable flow; the current
                document is left untouched
        """
        try:
            decoded = decode_flow(text)
        except FlowDecodeError as e:
            logger.warning("flow_import_rejected", reason=str(e))
            raise

        self.replace_all(decoded.steps, decoded.transitions)
        logger.info("flow_imported", steps=len(decoded.steps), transitions=len(decoded.transitions))
        self._schedule_layout()

    def import_file(self, file_path: str | Path):
        """
        Load the document from a wire-schema JSON file.

        Raises:
            FileNotFoundError: No file at file_path
            FlowDecodeError: The file is not UTF-8 text or not a readable flow
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Flow file not found: {path}")

        try:
            text = path.read_text(encoding="utf-8")
        except (UnicodeDecodeError, IsADirectoryError) as e:
            logger.warning("flow_import_rejected", path=str(path), reason=str(e))
            raise FlowDecodeError(f"Cannot read flow file {path}: {e}") from e

        self.load_json(text)

    def export_file(self, file_path: str | Path) -> Path:
        """Write the document to a wire-schema JSON file."""
        path = Path(file_path)

        # Ensure parent directory exists
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")

        logger.info("flow_exported", path=str(path), steps=len(self._steps))
        return path
