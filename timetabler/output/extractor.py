"""
Result extractor: turns a ``SolveResult`` into a ``TimetableOutput``.

A FEASIBLE result is re-verified against every hard constraint before it
is emitted. An assignment that fails verification is never reported as a
timetable; it becomes a MODEL_ERROR carrying the violations.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Mapping, Optional

from timetabler.constraints import Violation, verify_assignment
from timetabler.diagnostics import Diagnostic
from timetabler.search.orchestrator import SolveResult, SolveStatus

from .schema import (
    DiagnosticOutput,
    SessionOutput,
    SolveStatistics,
    Timetable,
    TimetableOutput,
    create_views,
)

if TYPE_CHECKING:
    from timetabler.model_builder import Placement, SchedulingModel

logger = logging.getLogger(__name__)


def verify_timetable(
    model: SchedulingModel,
    assignment: Mapping[int, Placement],
) -> list[Violation]:
    """
    Re-check a complete assignment against every hard constraint.

    Returns:
        All violations found (empty for a valid timetable)
    """
    return verify_assignment(model, assignment)


def diagnostic_to_output(diagnostic: Diagnostic) -> DiagnosticOutput:
    return DiagnosticOutput(
        kind=diagnostic.kind.value if diagnostic.kind else None,
        message=diagnostic.message,
        resourceId=diagnostic.resource_id,
        count=diagnostic.count,
    )


def violation_to_output(violation: Violation) -> DiagnosticOutput:
    return DiagnosticOutput(kind=violation.kind.value, message=violation.message)


def failure_output(
    status: SolveStatus,
    diagnostics: list[Diagnostic],
    solve_time_seconds: float = 0.0,
    time_budget_seconds: float = 0.0,
    worker_count: int = 0,
) -> TimetableOutput:
    """Output for a run that never reached search (e.g. a model error)."""
    return TimetableOutput(
        status=status,
        statistics=SolveStatistics(
            solveTimeSeconds=solve_time_seconds,
            timeBudgetSeconds=time_budget_seconds,
            workerCount=worker_count,
        ),
        diagnostics=[diagnostic_to_output(d) for d in diagnostics],
    )


class ResultExtractor:
    """
    Converts solve results for one model into output records.

    Usage:
        extractor = ResultExtractor(model)
        output = extractor.extract(result)
    """

    def __init__(self, model: SchedulingModel):
        self.model = model
        problem = model.problem
        self._faculty_names = {f.id: f.name or f.id for f in problem.faculty}
        self._group_names = {g.id: g.name or g.id for g in problem.student_groups}
        self._room_names = {r.id: r.name or r.id for r in problem.rooms}

    def session_output(self, session_index: int, placement: Placement) -> SessionOutput:
        """Output record for one assigned session."""
        session = self.model.sessions[session_index]
        timeslot = self.model.timeslots[placement.timeslot_index]
        problem = self.model.problem
        course = problem.get_course(session.course_id)
        faculty = problem.get_faculty(placement.faculty_id)
        room = problem.get_room(placement.room_id) if placement.room_id else None
        return SessionOutput(
            sessionId=session.id,
            courseId=session.course_id,
            timeslotId=timeslot.id,
            facultyId=placement.faculty_id,
            roomId=placement.room_id,
            day=timeslot.day,
            period=timeslot.period,
            durationSlots=session.duration,
            studentGroupIds=list(session.group_ids),
            courseName=course.name if course else None,
            facultyName=faculty.name if faculty else None,
            roomName=room.name if room else None,
            timeslotLabel=str(timeslot),
        )

    def sessions_output(self, assignment: Mapping[int, Placement]) -> list[SessionOutput]:
        """Ordered by day, period, then session id."""
        sessions = [self.session_output(i, p) for i, p in assignment.items()]
        return sorted(sessions, key=lambda s: s.sort_key)

    def extract(self, result: SolveResult) -> TimetableOutput:
        """
        Build the output for a solve result.

        Args:
            result: Result returned by the search orchestrator

        Returns:
            TimetableOutput; FEASIBLE only if the assignment verifies
        """
        status = result.status
        diagnostics = [diagnostic_to_output(d) for d in result.diagnostics]

        statistics = SolveStatistics(
            solveTimeSeconds=round(result.elapsed_seconds, 3),
            timeBudgetSeconds=result.time_budget_seconds,
            workerCount=result.worker_count,
            winningWorker=result.winning_worker,
            nodesExplored=result.nodes_explored,
            numSessions=len(self.model.sessions),
            objective=result.objective.value,
            objectiveValue=result.objective_value,
            conflicts={kind.value: n for kind, n in result.conflicts.items()},
        )

        if status == SolveStatus.FEASIBLE:
            violations = verify_timetable(self.model, result.assignment)
            if violations:
                logger.error(
                    "Search returned an assignment with %d violation(s); reporting MODEL_ERROR",
                    len(violations),
                )
                return TimetableOutput(
                    status=SolveStatus.MODEL_ERROR,
                    statistics=statistics,
                    diagnostics=[violation_to_output(v) for v in violations],
                )

            sessions = self.sessions_output(result.assignment)
            return TimetableOutput(
                status=status,
                statistics=statistics,
                diagnostics=diagnostics,
                timetable=Timetable(sessions=sessions),
                views=create_views(
                    sessions,
                    faculty_names=self._faculty_names,
                    group_names=self._group_names,
                    room_names=self._room_names,
                ),
            )

        partial: Optional[list[SessionOutput]] = None
        if status == SolveStatus.TIMEOUT_PARTIAL:
            partial = self.sessions_output(result.assignment)

        return TimetableOutput(
            status=status,
            statistics=statistics,
            diagnostics=diagnostics,
            partialAssignment=partial,
        )
