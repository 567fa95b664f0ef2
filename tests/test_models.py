"""Tests for problem input models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from timetabler.data.models import (
    Course,
    Faculty,
    InvalidInputError,
    OptimizationObjective,
    ProblemInput,
    Room,
    SolveConfig,
    StudentGroup,
    Timeslot,
    day_name,
)


@pytest.fixture
def problem() -> ProblemInput:
    """Two courses sharing one group, declared from both sides."""
    return ProblemInput(
        courses=[
            Course(id="C1", sessions_per_week=2, eligible_faculty_ids=["F1"], student_group_ids=["G1"]),
            Course(id="C2", sessions_per_week=1, eligible_faculty_ids=["F2"]),
        ],
        faculty=[
            Faculty(id="F1", name="Dr Ada"),
            Faculty(id="F2", available_timeslot_ids=["T1"]),
        ],
        student_groups=[
            StudentGroup(id="G1", course_ids=["C2"], size=25),
            StudentGroup(id="G2", course_ids=["C1"], size=10),
        ],
        timeslots=[
            Timeslot(id="T1", day=0, period=0),
            Timeslot(id="T2", day=0, period=1),
        ],
    )


class TestEntityModels:
    """Tests for entity validation."""

    def test_course_defaults(self):
        course = Course(id="C1", sessions_per_week=3)
        assert course.duration_slots == 1
        assert course.eligible_faculty_ids == []
        assert course.room_type is None

    def test_sessions_per_week_must_be_positive(self):
        with pytest.raises(ValidationError):
            Course(id="C1", sessions_per_week=0)

    def test_room_type_normalised(self):
        assert Course(id="C1", sessions_per_week=1, room_type=" Lab ").room_type == "lab"
        assert Room(id="R1", capacity=10, type="Lecture_Hall").type == "lecture_hall"

    def test_room_capacity_must_be_positive(self):
        with pytest.raises(ValidationError):
            Room(id="R1", capacity=0)

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            Faculty(id="F1", favourite_colour="blue")

    def test_entities_are_frozen(self):
        slot = Timeslot(id="T1", day=0, period=0)
        with pytest.raises(ValidationError):
            slot.day = 1

    def test_timeslot_str_uses_label_or_day(self):
        assert str(Timeslot(id="T1", day=1, period=2)) == "Tuesday P2"
        assert str(Timeslot(id="T1", day=1, period=2, label="Tue 10:00")) == "Tue 10:00"

    def test_day_name_out_of_range(self):
        assert day_name(0) == "Monday"
        assert day_name(9) == "Day 9"


class TestSolveConfig:
    """Tests for per-run configuration."""

    def test_defaults(self):
        config = SolveConfig()
        assert config.time_budget_seconds is None
        assert config.worker_count == 8
        assert config.optimization_objective == OptimizationObjective.NONE
        assert config.allow_partial is False

    def test_none_objective_means_no_objective(self):
        config = SolveConfig(optimization_objective=None)
        assert config.optimization_objective == OptimizationObjective.NONE

    def test_objective_from_string(self):
        config = SolveConfig(optimization_objective="compact")
        assert config.optimization_objective == OptimizationObjective.COMPACT

    def test_rejects_non_positive_budget(self):
        with pytest.raises(ValidationError):
            SolveConfig(time_budget_seconds=0)

    def test_rejects_zero_workers(self):
        with pytest.raises(ValidationError):
            SolveConfig(worker_count=0)


class TestProblemInput:
    """Tests for the problem container and its queries."""

    def test_empty_problem_is_valid(self):
        problem = ProblemInput()
        assert problem.total_sessions_per_week == 0
        assert problem.reference_errors() == []

    def test_duplicate_grid_cell_reported(self):
        problem = ProblemInput(timeslots=[
            Timeslot(id="T1", day=0, period=0),
            Timeslot(id="T2", day=0, period=0),
        ])
        assert problem.reference_errors() == [
            "Timeslots 'T1' and 'T2' both cover day 0 period 0",
        ]

    def test_lookups(self, problem):
        assert problem.get_course("C1").sessions_per_week == 2
        assert problem.get_faculty("F1").name == "Dr Ada"
        assert problem.get_group("G1").size == 25
        assert problem.get_timeslot("T2").period == 1
        assert problem.get_room("R1") is None

    def test_course_groups_union_both_directions(self, problem):
        assert problem.get_course_groups("C1") == ["G1", "G2"]
        assert problem.get_course_groups("C2") == ["G1"]

    def test_course_headcount(self, problem):
        assert problem.get_course_headcount("C1") == 35
        assert problem.get_course_headcount("C2") == 25

    def test_duplicate_enrolment_counted_once(self):
        problem = ProblemInput(
            courses=[Course(id="C1", sessions_per_week=1, student_group_ids=["G1", "G1"])],
            student_groups=[StudentGroup(id="G1", course_ids=["C1"], size=5)],
        )
        assert problem.get_course_groups("C1") == ["G1"]
        assert problem.get_course_headcount("C1") == 5

    def test_sorted_timeslots(self):
        problem = ProblemInput(timeslots=[
            Timeslot(id="b", day=1, period=0),
            Timeslot(id="a2", day=0, period=2),
            Timeslot(id="a1", day=0, period=1),
        ])
        assert [t.id for t in problem.get_sorted_timeslots()] == ["a1", "a2", "b"]

    def test_rooms_modelled(self, problem):
        assert problem.rooms_modelled is False
        with_rooms = ProblemInput(rooms=[Room(id="R1", capacity=30)])
        assert with_rooms.rooms_modelled is True

    def test_summary(self, problem):
        summary = problem.summary()
        assert summary["courses"] == 2
        assert summary["total_sessions_per_week"] == 3
        assert summary["total_students"] == 35


class TestReferenceErrors:
    """Tests for cross-reference checks."""

    def test_valid_references(self, problem):
        assert problem.reference_errors() == []

    def test_dangling_references_reported(self):
        problem = ProblemInput(
            courses=[Course(id="C1", sessions_per_week=1, eligible_faculty_ids=["FX"], student_group_ids=["GX"])],
            faculty=[Faculty(id="F1", available_timeslot_ids=["TX"], course_ids=["CX"])],
            student_groups=[StudentGroup(id="G1", course_ids=["CY"])],
        )
        errors = problem.reference_errors()
        assert "Course C1: unknown faculty 'FX'" in errors
        assert "Course C1: unknown student group 'GX'" in errors
        assert "Faculty F1: unknown timeslot 'TX'" in errors
        assert "Faculty F1: unknown course 'CX'" in errors
        assert "Student group G1: unknown course 'CY'" in errors

    def test_duplicate_ids_reported(self):
        problem = ProblemInput(
            faculty=[Faculty(id="F1"), Faculty(id="F1")],
        )
        assert problem.reference_errors() == ["Duplicate faculty ID: 'F1'"]


class TestInvalidInputError:
    """Tests for the input error type."""

    def test_is_value_error(self):
        assert issubclass(InvalidInputError, ValueError)

    def test_message_lists_errors(self):
        error = InvalidInputError(["first", "second"])
        assert error.errors == ["first", "second"]
        assert "  - first" in str(error)
        assert "  - second" in str(error)

    def test_accepts_single_string(self):
        assert InvalidInputError("oops").errors == ["oops"]
