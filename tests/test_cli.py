"""Tests for CLI module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError
from typer.testing import CliRunner

from timetabler.cli import app, build_config
from timetabler.data.models import OptimizationObjective, SolveConfig


runner = CliRunner()


@pytest.fixture
def minimal_input_data() -> dict:
    """Create minimal input data as a dictionary."""
    return {
        "courses": [
            {"id": "MAT", "name": "Maths", "sessionsPerWeek": 2, "eligibleFacultyIds": ["F1"],
             "studentGroupIds": ["G1"]},
        ],
        "faculty": [{"id": "F1", "name": "Dr Smith"}],
        "studentGroups": [{"id": "G1", "name": "Year 10A", "size": 20}],
        "rooms": [{"id": "R1", "name": "Room 101", "capacity": 30}],
        "timeslots": [
            {"id": "mon1", "day": 0, "period": 0},
            {"id": "tue1", "day": 1, "period": 0},
        ],
        "config": {"timeBudgetSeconds": 10, "workerCount": 2},
    }


@pytest.fixture
def input_file(minimal_input_data, tmp_path) -> Path:
    """Create a temporary input file."""
    filepath = tmp_path / "input.json"
    filepath.write_text(json.dumps(minimal_input_data))
    return filepath


@pytest.fixture
def infeasible_file(minimal_input_data, tmp_path) -> Path:
    """Two sessions for a group that only has one slot."""
    minimal_input_data["timeslots"] = minimal_input_data["timeslots"][:1]
    filepath = tmp_path / "infeasible.json"
    filepath.write_text(json.dumps(minimal_input_data))
    return filepath


@pytest.fixture
def output_file(input_file, tmp_path) -> Path:
    """Solve the minimal input and return the result path."""
    filepath = tmp_path / "output.json"
    result = runner.invoke(app, ["solve", str(input_file), "-o", str(filepath)])
    assert result.exit_code == 0, result.output
    return filepath


class TestSolveCommand:
    """Tests for the solve command."""

    def test_solve_feasible(self, input_file, tmp_path):
        """A feasible problem exits 0 and writes JSON and CSV."""
        out = tmp_path / "out.json"
        csv_out = tmp_path / "out.csv"
        result = runner.invoke(app, ["solve", str(input_file), "-o", str(out), "--csv", str(csv_out)])
        assert result.exit_code == 0, result.output
        assert "FEASIBLE" in result.output

        data = json.loads(out.read_text())
        assert data["status"] == "FEASIBLE"
        assert len(data["timetable"]["sessions"]) == 2
        assert data["statistics"]["workerCount"] == 2
        assert csv_out.read_text().splitlines()[0] == (
            "sessionId,courseId,timeslotId,day,period,facultyId,roomId"
        )

    def test_solve_infeasible_exits_nonzero(self, infeasible_file, tmp_path):
        """The result JSON is still written for a failed run."""
        out = tmp_path / "out.json"
        csv_out = tmp_path / "out.csv"
        result = runner.invoke(app, ["solve", str(infeasible_file), "-o", str(out), "--csv", str(csv_out)])
        assert result.exit_code == 1
        assert "INFEASIBLE" in result.output
        data = json.loads(out.read_text())
        assert data["status"] == "INFEASIBLE"
        assert data["diagnostics"]
        assert not csv_out.exists()

    def test_solve_invalid_reference(self, minimal_input_data, tmp_path):
        minimal_input_data["courses"][0]["eligibleFacultyIds"] = ["NOPE"]
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(minimal_input_data))
        result = runner.invoke(app, ["solve", str(path)])
        assert result.exit_code == 1
        assert "unknown faculty 'NOPE'" in result.output

    def test_solve_malformed_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{oops")
        result = runner.invoke(app, ["solve", str(path)])
        assert result.exit_code == 1
        assert "Error loading input" in result.output

    def test_solve_missing_file(self, tmp_path):
        result = runner.invoke(app, ["solve", str(tmp_path / "missing.json")])
        assert result.exit_code != 0

    def test_solve_with_options(self, input_file):
        result = runner.invoke(app, [
            "solve", str(input_file), "-t", "5", "-w", "1", "--objective", "balanced", "--seed", "3",
        ])
        assert result.exit_code == 0, result.output
        assert "Objective (balanced)" in result.output


class TestBuildConfig:
    """Command-line options override the file's config block."""

    def test_defaults_without_file_config(self):
        config = build_config(None, None, None, None, False, None)
        assert config == SolveConfig()

    def test_overrides(self):
        file_config = SolveConfig(time_budget_seconds=30, worker_count=4)
        config = build_config(file_config, 5.0, None, OptimizationObjective.COMPACT, True, 9)
        assert config.time_budget_seconds == 5.0
        assert config.worker_count == 4
        assert config.optimization_objective == OptimizationObjective.COMPACT
        assert config.allow_partial is True
        assert config.seed == 9
        assert file_config.time_budget_seconds == 30

    @pytest.mark.parametrize("time_budget, workers", [(0.0, None), (-1.0, None), (None, 0)])
    def test_out_of_range_override_rejected(self, time_budget, workers):
        with pytest.raises(ValidationError):
            build_config(None, time_budget, workers, None, False, None)


class TestValidateCommand:
    """Tests for the validate command."""

    def test_validate_valid(self, input_file):
        result = runner.invoke(app, ["validate", str(input_file), "--verbose"])
        assert result.exit_code == 0, result.output
        assert "Validation complete" in result.output
        assert "Time budget" in result.output

    def test_validate_saturated(self, infeasible_file):
        result = runner.invoke(app, ["validate", str(infeasible_file)])
        assert result.exit_code == 1
        assert "Problem is infeasible" in result.output

    def test_validate_model_error(self, minimal_input_data, tmp_path):
        minimal_input_data["courses"][0]["eligibleFacultyIds"] = []
        path = tmp_path / "model_error.json"
        path.write_text(json.dumps(minimal_input_data))
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "Model error" in result.output

    def test_validate_unknown_field(self, minimal_input_data, tmp_path):
        minimal_input_data["teachers"] = []
        path = tmp_path / "unknown.json"
        path.write_text(json.dumps(minimal_input_data))
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "Unknown top-level field" in result.output


class TestViewCommand:
    """Tests for the view command."""

    def test_view_summary(self, output_file):
        result = runner.invoke(app, ["view", str(output_file)])
        assert result.exit_code == 0, result.output
        assert "FEASIBLE" in result.output

    def test_view_faculty(self, output_file):
        result = runner.invoke(app, ["view", str(output_file), "--faculty", "F1"])
        assert result.exit_code == 0, result.output
        assert "Dr Smith" in result.output
        assert "Total sessions: 2" in result.output

    def test_view_group(self, output_file):
        result = runner.invoke(app, ["view", str(output_file), "-G", "G1"])
        assert result.exit_code == 0, result.output
        assert "Year 10A" in result.output

    def test_view_room(self, output_file):
        result = runner.invoke(app, ["view", str(output_file), "-R", "R1"])
        assert result.exit_code == 0, result.output

    def test_view_day(self, output_file):
        result = runner.invoke(app, ["view", str(output_file), "--day", "monday"])
        assert result.exit_code == 0, result.output
        assert "Maths" in result.output

    def test_view_unknown_faculty(self, output_file):
        result = runner.invoke(app, ["view", str(output_file), "--faculty", "F99"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_view_invalid_day(self, output_file):
        result = runner.invoke(app, ["view", str(output_file), "--day", "funday"])
        assert result.exit_code == 1
        assert "Invalid day" in result.output


class TestGenerateCommand:
    """Tests for the generate command."""

    def test_generate_small(self, tmp_path):
        path = tmp_path / "generated.json"
        result = runner.invoke(app, ["generate", str(path), "--size", "small", "--seed", "1"])
        assert result.exit_code == 0, result.output
        data = json.loads(path.read_text())
        assert len(data["timeslots"]) == 20

    def test_generate_unknown_size(self, tmp_path):
        result = runner.invoke(app, ["generate", str(tmp_path / "x.json"), "--size", "huge"])
        assert result.exit_code == 1
        assert "Unknown size" in result.output

    def test_generated_file_validates(self, tmp_path):
        path = tmp_path / "generated.json"
        runner.invoke(app, ["generate", str(path), "--size", "small", "--seed", "2"])
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 0, result.output
