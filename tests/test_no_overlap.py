"""Tests for resource no-overlap constraints."""

from __future__ import annotations

import pytest

from timetabler.constraints import (
    ConstraintKind,
    ResourceExclusive,
    find_exclusive,
    summarize_no_overlap,
)
from timetabler.data.models import Course, Faculty, ProblemInput, Room, StudentGroup, Timeslot
from timetabler.model_builder import Placement, build_model


@pytest.fixture
def problem() -> ProblemInput:
    """Two courses sharing a faculty member and a group, with one room."""
    return ProblemInput(
        courses=[
            Course(id="C1", sessions_per_week=1, eligible_faculty_ids=["F1"], student_group_ids=["G1"]),
            Course(id="C2", sessions_per_week=2, eligible_faculty_ids=["F1", "F2"], student_group_ids=["G1"]),
        ],
        faculty=[Faculty(id="F1"), Faculty(id="F2"), Faculty(id="F3")],
        student_groups=[StudentGroup(id="G1", size=10), StudentGroup(id="G2", size=5)],
        rooms=[Room(id="R1", capacity=30)],
        timeslots=[
            Timeslot(id="T1", day=0, period=0),
            Timeslot(id="T2", day=0, period=1),
            Timeslot(id="T3", day=1, period=0),
        ],
    )


@pytest.fixture
def model(problem):
    return build_model(problem)


class TestConstraintCreation:
    """Tests for which exclusivity constraints are created."""

    def test_one_constraint_per_used_faculty(self, model):
        """Faculty who can teach nothing get no constraint."""
        faculty = [
            c.resource_id for c in model.constraints
            if isinstance(c, ResourceExclusive) and c.kind is ConstraintKind.FACULTY_OVERLAP
        ]
        assert faculty == ["F1", "F2"]

    def test_faculty_scope_covers_candidate_sessions(self, model):
        f1 = find_exclusive(model.constraints, ConstraintKind.FACULTY_OVERLAP, "F1")
        f2 = find_exclusive(model.constraints, ConstraintKind.FACULTY_OVERLAP, "F2")
        assert f1.scope == (0, 1, 2)
        assert f2.scope == (1, 2)

    def test_group_without_sessions_skipped(self, model):
        """Only groups with enrolled sessions are constrained."""
        assert find_exclusive(model.constraints, ConstraintKind.STUDENT_GROUP_OVERLAP, "G1") is not None
        assert find_exclusive(model.constraints, ConstraintKind.STUDENT_GROUP_OVERLAP, "G2") is None

    def test_room_constraint_when_rooms_modelled(self, model):
        room = find_exclusive(model.constraints, ConstraintKind.ROOM_OVERLAP, "R1")
        assert room.scope == (0, 1, 2)

    def test_no_room_constraints_without_rooms(self, problem):
        no_rooms = ProblemInput(
            courses=problem.courses,
            faculty=problem.faculty,
            student_groups=problem.student_groups,
            timeslots=problem.timeslots,
        )
        model = build_model(no_rooms)
        stats = summarize_no_overlap(model.constraints)
        assert stats.room_constraints == 0
        assert stats.faculty_constraints == 2
        assert stats.group_constraints == 1

    def test_rejects_non_exclusive_kind(self):
        with pytest.raises(ValueError):
            ResourceExclusive(ConstraintKind.FACULTY_LOAD, "F1")


class TestClaims:
    """Tests for the cells a placement reserves."""

    def test_faculty_claims_only_own_placements(self):
        constraint = ResourceExclusive(ConstraintKind.FACULTY_OVERLAP, "F1", (0,))
        mine = Placement(timeslot_index=1, faculty_id="F1", room_id=None, occupied=(1, 2))
        other = Placement(timeslot_index=1, faculty_id="F2", room_id=None, occupied=(1, 2))
        assert constraint.claims(mine) == (1, 2)
        assert constraint.claims(other) == ()

    def test_group_claims_every_placement(self):
        constraint = ResourceExclusive(ConstraintKind.STUDENT_GROUP_OVERLAP, "G1", (0,))
        placement = Placement(timeslot_index=0, faculty_id="F9", room_id=None, occupied=(0,))
        assert constraint.claims(placement) == (0,)

    def test_room_claims_match_room(self):
        constraint = ResourceExclusive(ConstraintKind.ROOM_OVERLAP, "R1", (0,))
        assert constraint.claims(Placement(0, "F1", "R1", (0,))) == (0,)
        assert constraint.claims(Placement(0, "F1", None, (0,))) == ()


class TestViolations:
    """Tests for verification of complete assignments."""

    def test_clash_reported(self, model):
        f1 = find_exclusive(model.constraints, ConstraintKind.FACULTY_OVERLAP, "F1")
        assignment = {
            0: Placement(0, "F1", "R1", (0,)),
            1: Placement(0, "F1", "R1", (0,)),
            2: Placement(2, "F2", "R1", (2,)),
        }
        violations = f1.violations(model, assignment)
        assert len(violations) == 1
        assert violations[0].kind is ConstraintKind.FACULTY_OVERLAP
        assert violations[0].session_ids == ("C1#1", "C2#1")
        assert "timeslot T1" in violations[0].message

    def test_different_slots_ok(self, model):
        g1 = find_exclusive(model.constraints, ConstraintKind.STUDENT_GROUP_OVERLAP, "G1")
        assignment = {
            0: Placement(0, "F1", "R1", (0,)),
            1: Placement(1, "F1", "R1", (1,)),
            2: Placement(2, "F2", "R1", (2,)),
        }
        assert g1.violations(model, assignment) == []

    def test_describe(self):
        constraint = ResourceExclusive(ConstraintKind.ROOM_OVERLAP, "R1")
        assert constraint.describe() == "Room R1 can host one session per timeslot"
