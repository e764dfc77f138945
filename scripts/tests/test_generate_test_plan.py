"""
Tests for the generate_test_plan command line.
"""

import shutil
import pytest
import sys
from pathlib import Path

# Add scripts directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from generate_test_plan import main, output_filename, generate_file


MODELS_DIR = Path(__file__).parent.parent.parent / "models"


@pytest.fixture
def door_model(tmp_path):
    path = tmp_path / "door.sm"
    shutil.copy(MODELS_DIR / "door.sm", path)
    return path


def write_model(tmp_path, text, filename="model.sm"):
    path = tmp_path / filename
    path.write_text(text)
    return path


class TestOutputFilename:

    def test_lowercase_sanitized(self):
        assert output_filename("Door") == "door_test_plan.py"
        assert output_filename("Coffee Machine") == "coffee_machine_test_plan.py"


class TestGenerate:

    def test_writes_next_to_model(self, door_model, capsys):
        main([str(door_model)])
        output = door_model.parent / "door_test_plan.py"
        assert output.exists()
        assert "class TestPlanForStateMachineDoor(ABC):" in output.read_text()

        captured = capsys.readouterr()
        assert f"Generated: {output} (1 plan(s), 9 stub(s))" in captured.out
        assert "kick" in captured.err
        assert "warning:" in captured.err

    def test_output_dir_and_name(self, door_model, tmp_path):
        out_dir = tmp_path / "generated"
        main([str(door_model), "--output-dir", str(out_dir), "--name", "Gate"])
        code = (out_dir / "gate_test_plan.py").read_text()
        assert "class TestPlanForStateMachineGate(ABC):" in code
        assert "FROM door.sm" in code

    def test_stdout(self, door_model, capsys):
        main([str(door_model), "--stdout"])
        captured = capsys.readouterr()
        assert "def testPlan_1(self):" in captured.out
        assert not (door_model.parent / "door_test_plan.py").exists()

    def test_parallel_matches_sequential(self, door_model, capsys):
        main([str(door_model), "--stdout"])
        sequential = capsys.readouterr().out
        main([str(door_model), "--stdout", "--parallel"])
        assert capsys.readouterr().out == sequential

    def test_yaml_model(self, tmp_path, capsys):
        shutil.copy(MODELS_DIR / "door.yaml", tmp_path / "door.yaml")
        main([str(tmp_path / "door.yaml")])
        assert (tmp_path / "door_test_plan.py").exists()

    def test_generate_file(self, door_model, tmp_path):
        path, result = generate_file(door_model, tmp_path / "out")
        assert path == tmp_path / "out" / "door_test_plan.py"
        assert len(result.plans) == 1
        assert len(result.diagnostics) == 2


class TestExitCodes:

    def test_missing_model(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            main([str(tmp_path / "nothing.sm")])
        assert exc.value.code == 1
        assert "Model not found" in capsys.readouterr().err

    def test_syntax_error(self, tmp_path, capsys):
        path = write_model(tmp_path, "state A initial\nA -> -> B\n")
        with pytest.raises(SystemExit) as exc:
            main([str(path)])
        assert exc.value.code == 1
        err = capsys.readouterr().err
        assert err.startswith("Error:")
        assert "line 2" in err

    def test_yaml_trigger_with_invalid_name(self, tmp_path, capsys):
        path = write_model(tmp_path, (
            "initial: A\n"
            "states: {A: {}, B: {final: true}}\n"
            "transitions:\n"
            "  - {from: A, to: B, triggers: [{call: 3D.open}]}\n"
        ), "digits.yaml")
        with pytest.raises(SystemExit) as exc:
            main([str(path)])
        assert exc.value.code == 1
        assert "Class name '3D'" in capsys.readouterr().err
        assert not (tmp_path / "digits_test_plan.py").exists()

    def test_stub_name_collision(self, tmp_path, capsys):
        path = write_model(tmp_path, "state A initial\nstate C final\nA -> C on currentStateIs.C()\n")
        with pytest.raises(SystemExit) as exc:
            main([str(path)])
        assert exc.value.code == 1
        assert "currentStateIs_C" in capsys.readouterr().err

    def test_strict_with_diagnostics(self, door_model, capsys):
        with pytest.raises(SystemExit) as exc:
            main([str(door_model), "--strict"])
        assert exc.value.code == 1
        assert "2 diagnostic(s) reported" in capsys.readouterr().err

    def test_strict_without_diagnostics(self, tmp_path):
        path = write_model(tmp_path, "state A initial\nstate B final\nA -> B on Sys.go()\n")
        main([str(path), "--strict"])
        assert (tmp_path / "statemachine_test_plan.py").exists()

    def test_validate_only_ok(self, door_model, capsys):
        with pytest.raises(SystemExit) as exc:
            main([str(door_model), "--validate-only"])
        assert exc.value.code == 0
        out = capsys.readouterr().out
        assert "0 error(s), 1 warning(s)" in out
        assert not (door_model.parent / "door_test_plan.py").exists()

    def test_validate_only_errors(self, tmp_path, capsys):
        path = write_model(tmp_path, "state A initial\nstate B\nA -> B\n")
        with pytest.raises(SystemExit) as exc:
            main([str(path), "--validate-only"])
        assert exc.value.code == 1
        assert f"{path}:2: error:" in capsys.readouterr().out
