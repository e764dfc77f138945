"""Tests for loading models from YAML and by file suffix."""

import pytest
import sys
from pathlib import Path

# Add scripts directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sm_errors import ModelLoadError
from sm_model import CallEvent, ChangeEvent, TimeEvent, OtherEvent
from sm_loader import load_model, graph_from_dict
from graph_expander import generate_test_plan


MODELS_DIR = Path(__file__).parent.parent.parent / "models"


class TestGraphFromDict:

    def test_minimal(self):
        graph = graph_from_dict({
            "name": "Mini",
            "initial": "A",
            "states": {"A": None, "B": {"final": True}},
            "transitions": [{"from": "A", "to": "B", "guard": "ready"}],
        })
        assert graph.name == "Mini"
        assert graph.initial_state is graph.state("A")
        assert graph.state("A").transitions[0].guards == ["ready"]

    def test_states_as_list(self):
        graph = graph_from_dict({"initial": "A", "states": ["A", "B"]}, "Listed")
        assert graph.name == "Listed"
        assert [s.name for s in graph.states] == ["A", "B"]

    def test_trigger_forms(self):
        graph = graph_from_dict({
            "initial": "A",
            "states": {"A": {}, "B": {"final": True}},
            "transitions": [{
                "from": "A",
                "to": "B",
                "triggers": [
                    {"call": "Door.open()"},
                    {"change": "shut", "when": "sensor < 1"},
                    {"time": "expire", "when": 30},
                    {"event": "kick", "kind": "signal"},
                    {"broadcast": "alarm"},
                    "poke",
                ],
            }],
        })
        assert graph.state("A").transitions[0].triggers == [
            CallEvent("Door", "open"),
            ChangeEvent("shut", "sensor < 1"),
            TimeEvent("expire", "30"),
            OtherEvent("kick", "signal"),
            OtherEvent("alarm", "broadcast"),
            OtherEvent("poke"),
        ]

    def test_single_trigger_not_in_list(self):
        graph = graph_from_dict({
            "initial": "A",
            "states": {"A": {}, "B": {"final": True}},
            "transitions": [{"from": "A", "to": "B", "trigger": {"call": "Sys.go"}}],
        })
        assert graph.state("A").transitions[0].triggers == [CallEvent("Sys", "go")]

    def test_null_guard_kept_as_empty_body(self):
        graph = graph_from_dict({
            "initial": "A",
            "states": {"A": {}, "B": {"final": True}},
            "transitions": [{"from": "A", "to": "B", "guards": [None, "ok"]}],
        })
        assert graph.state("A").transitions[0].guards == ["", "ok"]

    def test_pseudo_initial(self):
        graph = graph_from_dict({
            "states": {"A": {"final": True}},
            "transitions": [{"from": "[*]", "to": "A"}],
        })
        assert graph.initial_state.synthetic_initial

    def test_call_without_class(self):
        with pytest.raises(ModelLoadError, match="Class.operation"):
            graph_from_dict({
                "initial": "A",
                "states": {"A": {}},
                "transitions": [{"from": "A", "to": "A", "triggers": [{"call": "open"}]}],
            })

    def test_invalid_trigger(self):
        with pytest.raises(ModelLoadError, match="Invalid trigger"):
            graph_from_dict({
                "initial": "A",
                "states": {"A": {}},
                "transitions": [{"from": "A", "to": "A", "triggers": [{"a": 1, "b": 2}]}],
            })

    def test_unknown_initial(self):
        with pytest.raises(ModelLoadError, match="Initial state 'X'"):
            graph_from_dict({"initial": "X", "states": {"A": {}}})

    def test_transition_without_from(self):
        with pytest.raises(ModelLoadError, match="'from'"):
            graph_from_dict({"initial": "A", "states": {"A": {}}, "transitions": [{"to": "A"}]})

    def test_not_a_mapping(self):
        with pytest.raises(ModelLoadError):
            graph_from_dict(["A", "B"])

    def test_final_must_be_boolean(self):
        with pytest.raises(ModelLoadError, match="must be true or false"):
            graph_from_dict({"initial": "A", "states": {"A": {"final": "false"}}})

    def test_final_false_is_not_final(self):
        graph = graph_from_dict({"initial": "A", "states": {"A": {"final": False}}})
        assert not graph.state("A").final

    @pytest.mark.parametrize("trigger", [
        {"call": "3D.open"},
        {"call": "Door.3open"},
        {"time": "5min", "when": "later"},
        {"change": "door shut"},
        {"event": "_hidden"},
        "2fast",
    ])
    def test_trigger_names_must_be_identifiers(self, trigger):
        with pytest.raises(ModelLoadError, match="must start with a letter"):
            graph_from_dict({
                "initial": "A",
                "states": {"A": {}, "B": {"final": True}},
                "transitions": [{"from": "A", "to": "B", "triggers": [trigger]}],
            })

    def test_name_argument_wins_over_document_name(self):
        graph = graph_from_dict({"name": "Door", "states": ["A"], "initial": "A"}, name="Gate")
        assert graph.name == "Gate"


class TestLoadModel:

    def test_yaml_and_notation_agree(self):
        from_sm = generate_test_plan(load_model(MODELS_DIR / "door.sm"))
        from_yaml = generate_test_plan(load_model(MODELS_DIR / "door.yaml"))
        assert [p.steps for p in from_yaml.plans] == [p.steps for p in from_sm.plans]
        assert [s.name for s in from_yaml.stubs] == [s.name for s in from_sm.stubs]

    def test_name_from_file_stem(self, tmp_path):
        path = tmp_path / "turnstile.yml"
        path.write_text("initial: Locked\nstates:\n  Locked: {final: true}\n")
        assert load_model(path).name == "turnstile"

    def test_name_override(self, tmp_path):
        path = tmp_path / "turnstile.yaml"
        path.write_text("initial: Locked\nstates:\n  Locked: {final: true}\n")
        assert load_model(path, name="Gate").name == "Gate"

    def test_name_override_of_named_document(self):
        assert load_model(MODELS_DIR / "door.yaml", name="Gate").name == "Gate"
        assert load_model(MODELS_DIR / "door.yaml").name == "Door"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("states: [A, B\n")
        with pytest.raises(ModelLoadError, match="Invalid YAML"):
            load_model(path)

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "door.json"
        path.write_text("{}")
        with pytest.raises(ModelLoadError, match="Unsupported model file type"):
            load_model(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_model(tmp_path / "nothing.sm")
