"""Shared pytest fixtures for the flow editor tests."""

import pytest

from flow_editor import EditorSettings, FlowDocumentStore, Position, Step, StepType, Transition


def make_step(step_id: str, start: bool = False, description: str = "Does something.", **kwargs) -> Step:
    return Step(
        id=step_id,
        label=kwargs.pop("label", step_id.upper()),
        description=description,
        is_start_node=start,
        **kwargs,
    )


@pytest.fixture
def settings() -> EditorSettings:
    """Default settings, independent of the environment."""
    return EditorSettings(
        node_width=250,
        node_height=150,
        node_sep=100,
        rank_sep=100,
        ordering_sweeps=4,
    )


@pytest.fixture
def store(settings) -> FlowDocumentStore:
    """An empty store."""
    return FlowDocumentStore(settings=settings)


@pytest.fixture
def chain_steps() -> list[Step]:
    """Steps a -> b -> c, with a as start."""
    return [
        make_step("a", start=True),
        make_step("b", step_type=StepType.CONDITION, prompt="Is it urgent?"),
        make_step("c", step_type=StepType.OUTPUT, position=Position(x=5, y=5)),
    ]


@pytest.fixture
def chain_transitions() -> list[Transition]:
    return [
        Transition(id="ab", source="a", target="b", label="next"),
        Transition(id="bc", source="b", target="c", label="yes"),
    ]


@pytest.fixture
def chain_store(settings, chain_steps, chain_transitions) -> FlowDocumentStore:
    """A store holding the a -> b -> c chain."""
    return FlowDocumentStore(settings=settings, steps=chain_steps, transitions=chain_transitions)
