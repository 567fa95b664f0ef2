"""Tests for constraint core types and whole-assignment verification."""

from __future__ import annotations

import pytest

from timetabler.constraints import (
    ConstraintKind,
    Violation,
    summarize_constraints,
    verify_assignment,
)
from timetabler.data.models import Course, Faculty, ProblemInput, Room, StudentGroup, Timeslot
from timetabler.model_builder import Placement, build_model


@pytest.fixture
def model():
    """Two single-session courses sharing group G1 and room R1."""
    problem = ProblemInput(
        courses=[
            Course(id="C1", sessions_per_week=1, eligible_faculty_ids=["F1"], student_group_ids=["G1"]),
            Course(id="C2", sessions_per_week=1, eligible_faculty_ids=["F2"], student_group_ids=["G1"]),
        ],
        faculty=[Faculty(id="F1", available_timeslot_ids=["T1", "T2"]), Faculty(id="F2")],
        student_groups=[StudentGroup(id="G1", size=12)],
        rooms=[Room(id="R1", capacity=20)],
        timeslots=[
            Timeslot(id="T1", day=0, period=0),
            Timeslot(id="T2", day=0, period=1),
            Timeslot(id="T3", day=0, period=2),
        ],
    )
    return build_model(problem)


class TestConstraintKind:
    """Tests for ConstraintKind."""

    def test_values_are_snake_case(self):
        assert ConstraintKind.STUDENT_GROUP_OVERLAP.value == "student_group_overlap"

    def test_every_kind_has_a_label(self):
        for kind in ConstraintKind:
            assert kind.label

    def test_violation_str(self):
        violation = Violation(kind=ConstraintKind.ROOM_FIT, message="too small")
        assert str(violation) == "[room_fit] too small"


class TestVerifyAssignment:
    """Tests for verify_assignment."""

    def test_valid_assignment(self, model):
        assignment = {
            0: Placement(0, "F1", "R1", (0,)),
            1: Placement(1, "F2", "R1", (1,)),
        }
        assert verify_assignment(model, assignment) == []

    def test_missing_session(self, model):
        """Every session must be assigned exactly once."""
        violations = verify_assignment(model, {0: Placement(0, "F1", "R1", (0,))})
        assert [v.kind for v in violations] == [ConstraintKind.SESSION_COVERAGE]
        assert violations[0].session_ids == ("C2#1",)

    def test_unknown_session_index(self, model):
        assignment = {
            0: Placement(0, "F1", "R1", (0,)),
            1: Placement(1, "F2", "R1", (1,)),
            7: Placement(2, "F2", "R1", (2,)),
        }
        violations = verify_assignment(model, assignment)
        assert len(violations) == 1
        assert "unknown session indices: [7]" in violations[0].message

    def test_shared_slot_breaks_group_and_room(self, model):
        assignment = {
            0: Placement(0, "F1", "R1", (0,)),
            1: Placement(0, "F2", "R1", (0,)),
        }
        kinds = {v.kind for v in verify_assignment(model, assignment)}
        assert kinds == {ConstraintKind.STUDENT_GROUP_OVERLAP, ConstraintKind.ROOM_OVERLAP}

    def test_placement_outside_domain(self, model):
        """F1 is not available in T3."""
        assignment = {
            0: Placement(2, "F1", "R1", (2,)),
            1: Placement(1, "F2", "R1", (1,)),
        }
        kinds = [v.kind for v in verify_assignment(model, assignment)]
        assert ConstraintKind.SESSION_COVERAGE in kinds
        assert ConstraintKind.FACULTY_AVAILABILITY in kinds


class TestSummarizeConstraints:
    """Tests for summarize_constraints."""

    def test_counts(self, model):
        stats = summarize_constraints(model.constraints, model.num_timeslots)
        data = stats.to_dict()
        assert data["facultyNoOverlap"] == 2
        assert data["groupNoOverlap"] == 1
        assert data["roomNoOverlap"] == 1
        assert data["availability"] == 1
        assert data["roomFit"] == 2
        assert data["total"] == len(model.constraints)
        assert stats.availability.blocked_cells == 1
