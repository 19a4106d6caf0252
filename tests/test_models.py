"""Tests for the flow data models and settings."""

import logging

import pytest
import structlog
from pydantic import ValidationError

from flow_editor import EditorSettings, configure_logging, Step, StepType, StepUpdate, Transition
from flow_editor.models import default_description, default_label


class TestStep:

    def test_generated_id(self):
        first, second = Step(), Step()

        assert first.id.startswith("step_")
        assert first.id != second.id

    def test_rejects_unknown_type(self):
        with pytest.raises(ValidationError):
            Step(step_type="teleport")

    def test_default_label(self):
        assert default_label(StepType.KNOWLEDGE, 7) == "KNOWLEDGE Step 7"

    def test_default_description_fallback(self):
        assert default_description(StepType.INPUT) == "Perform specialized operations."


class TestTransition:

    def test_generated_id_names_endpoints(self):
        transition = Transition(source="a", target="b")

        assert transition.id.startswith("e-a-b-")
        assert transition.label == "New Transition"

    def test_explicit_id_kept(self):
        assert Transition(id="t1", source="a", target="b").id == "t1"

    def test_reversed(self):
        transition = Transition(id="t1", source="a", target="b", label="go")

        flipped = transition.reversed()

        assert (flipped.id, flipped.source, flipped.target, flipped.label) == ("t1", "b", "a", "go")
        assert (transition.source, transition.target) == ("a", "b")


class TestStepUpdate:

    def test_changes_skip_unset(self):
        assert StepUpdate(label="x", prompt=None).changes() == {"label": "x"}

    def test_forbids_unknown_fields(self):
        with pytest.raises(ValidationError):
            StepUpdate(id="other")


class TestEditorSettings:

    def test_defaults(self, monkeypatch):
        for name in ("NODE_WIDTH", "NODE_HEIGHT", "NODE_SEP", "RANK_SEP"):
            monkeypatch.delenv(f"FLOW_EDITOR_{name}", raising=False)

        settings = EditorSettings()

        assert (settings.node_width, settings.node_height) == (250, 150)
        assert (settings.node_sep, settings.rank_sep) == (100, 100)

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("FLOW_EDITOR_RANK_SEP", "40")

        assert EditorSettings().rank_sep == 40


class TestLogging:

    def test_configure_json_logging(self, caplog):
        configure_logging(EditorSettings(log_level="info", log_json=True))
        try:
            with caplog.at_level(logging.INFO):
                structlog.get_logger("flow_editor.test").info("flow_checked", steps=2)
            assert '"event": "flow_checked"' in caplog.text
            assert '"steps": 2' in caplog.text
        finally:
            structlog.reset_defaults()
