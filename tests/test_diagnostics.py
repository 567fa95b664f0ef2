"""Tests for infeasibility diagnostics."""

from __future__ import annotations

import time

from timetabler.constraints import ConstraintKind
from timetabler.data.models import Course, Faculty, ProblemInput, Room, StudentGroup, Timeslot
from timetabler.diagnostics import (
    Diagnostic,
    conflict_diagnostics,
    find_saturation,
    model_error_diagnostics,
)
from timetabler.model_builder import ModelError, build_model


def grid(days: int, periods: int) -> list[Timeslot]:
    return [
        Timeslot(id=f"d{d}p{p}", day=d, period=p)
        for d in range(days)
        for p in range(periods)
    ]


class TestSaturation:
    """Counting arguments that prove infeasibility before search."""

    def test_no_saturation_for_easy_problem(self):
        problem = ProblemInput(
            courses=[Course(id="C1", sessions_per_week=2, eligible_faculty_ids=["F1"])],
            faculty=[Faculty(id="F1")],
            timeslots=grid(1, 3),
        )
        assert find_saturation(build_model(problem)) == []

    def test_past_deadline_stops_analysis(self):
        """A saturated problem is not analysed once the deadline has passed."""
        problem = ProblemInput(
            courses=[
                Course(id="C1", sessions_per_week=1, eligible_faculty_ids=["F1"]),
                Course(id="C2", sessions_per_week=1, eligible_faculty_ids=["F1"]),
            ],
            faculty=[Faculty(id="F1", available_timeslot_ids=["d0p0"])],
            timeslots=grid(1, 3),
        )
        model = build_model(problem)
        assert find_saturation(model, deadline=time.monotonic() - 1) == []
        assert len(find_saturation(model, deadline=time.monotonic() + 60)) == 1

    def test_faculty_overlap(self):
        """Two forced sessions, one reachable slot."""
        problem = ProblemInput(
            courses=[
                Course(id="C1", sessions_per_week=1, eligible_faculty_ids=["F1"]),
                Course(id="C2", sessions_per_week=1, eligible_faculty_ids=["F1"]),
            ],
            faculty=[Faculty(id="F1", available_timeslot_ids=["d0p0"])],
            timeslots=grid(1, 3),
        )
        diagnostics = find_saturation(build_model(problem))
        assert diagnostics == [Diagnostic(
            kind=ConstraintKind.FACULTY_OVERLAP,
            message="Faculty F1 has 2 required sessions but only 1 available slot",
            resource_id="F1",
            count=2,
        )]

    def test_shared_faculty_not_forced(self):
        """A session that another teacher could take is not forced."""
        problem = ProblemInput(
            courses=[
                Course(id="C1", sessions_per_week=1, eligible_faculty_ids=["F1"]),
                Course(id="C2", sessions_per_week=1, eligible_faculty_ids=["F1", "F2"]),
            ],
            faculty=[Faculty(id="F1", available_timeslot_ids=["d0p0"]), Faculty(id="F2")],
            timeslots=grid(1, 3),
        )
        assert find_saturation(build_model(problem)) == []

    def test_group_overlap(self):
        problem = ProblemInput(
            courses=[
                Course(id="C1", sessions_per_week=2, eligible_faculty_ids=["F1"], student_group_ids=["G1"]),
                Course(id="C2", sessions_per_week=1, eligible_faculty_ids=["F2"], student_group_ids=["G1"]),
            ],
            faculty=[Faculty(id="F1"), Faculty(id="F2")],
            student_groups=[StudentGroup(id="G1")],
            timeslots=grid(1, 2),
        )
        diagnostics = find_saturation(build_model(problem))
        kinds = [d.kind for d in diagnostics]
        assert ConstraintKind.STUDENT_GROUP_OVERLAP in kinds
        group = next(d for d in diagnostics if d.kind is ConstraintKind.STUDENT_GROUP_OVERLAP)
        assert group.message == "Student group G1 has 3 required sessions but only 2 available slots"

    def test_room_overlap(self):
        problem = ProblemInput(
            courses=[
                Course(id="C1", sessions_per_week=2, eligible_faculty_ids=["F1"], room_type="lab"),
                Course(id="C2", sessions_per_week=2, eligible_faculty_ids=["F2"], room_type="lab"),
            ],
            faculty=[Faculty(id="F1"), Faculty(id="F2")],
            rooms=[Room(id="LAB1", capacity=10, type="lab"), Room(id="R1", capacity=10)],
            timeslots=grid(1, 3),
        )
        diagnostics = find_saturation(build_model(problem))
        assert [d.kind for d in diagnostics] == [ConstraintKind.ROOM_OVERLAP]
        assert diagnostics[0].resource_id == "LAB1"

    def test_multi_slot_demand(self):
        """Durations are counted in slot-units."""
        problem = ProblemInput(
            courses=[
                Course(id="C1", sessions_per_week=2, duration_slots=2, eligible_faculty_ids=["F1"]),
            ],
            faculty=[Faculty(id="F1")],
            timeslots=grid(1, 3),
        )
        diagnostics = find_saturation(build_model(problem))
        assert diagnostics[0].message == (
            "Faculty F1 has 2 required sessions but only 3 available slots (4 slot-units needed)"
        )
        assert diagnostics[0].count == 4

    def test_weekly_load(self):
        problem = ProblemInput(
            courses=[Course(id="C1", sessions_per_week=3, eligible_faculty_ids=["F1"])],
            faculty=[Faculty(id="F1", max_weekly_sessions=2)],
            timeslots=grid(1, 4),
        )
        diagnostics = find_saturation(build_model(problem))
        assert [d.kind for d in diagnostics] == [ConstraintKind.FACULTY_LOAD]
        assert diagnostics[0].message == "Faculty F1 must teach 3 sessions but is limited to 2 per week"


class TestConflictDiagnostics:
    """Tests for search conflict reporting."""

    def test_most_frequent_first(self):
        diagnostics = conflict_diagnostics({
            ConstraintKind.FACULTY_LOAD: 2,
            ConstraintKind.STUDENT_GROUP_OVERLAP: 9,
            ConstraintKind.ROOM_OVERLAP: 0,
        })
        assert [d.kind for d in diagnostics] == [
            ConstraintKind.STUDENT_GROUP_OVERLAP,
            ConstraintKind.FACULTY_LOAD,
        ]
        assert diagnostics[0].message == "Student group overlap caused 9 dead ends during search"

    def test_singular_message(self):
        diagnostics = conflict_diagnostics({ConstraintKind.ROOM_FIT: 1})
        assert diagnostics[0].message == "Room capacity/type caused 1 dead end during search"

    def test_no_conflicts(self):
        assert conflict_diagnostics({}) == []


class TestModelErrorDiagnostics:
    """Tests for wrapping model errors."""

    def test_wraps_error(self):
        error = ModelError("Course C1 has no eligible faculty", course_id="C1",
                           kind=ConstraintKind.FACULTY_AVAILABILITY)
        [diagnostic] = model_error_diagnostics(error)
        assert diagnostic.kind is ConstraintKind.FACULTY_AVAILABILITY
        assert diagnostic.resource_id == "C1"
        assert str(diagnostic) == "[faculty_availability] Course C1 has no eligible faculty"

    def test_str_without_kind(self):
        assert str(Diagnostic(kind=None, message="budget exhausted")) == "budget exhausted"
