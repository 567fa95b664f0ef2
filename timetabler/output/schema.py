"""
Output schema for scheduling results.

This module defines the JSON-serializable output for a solve: the ordered
session assignments on success, structured diagnostics on failure, solve
statistics, and pre-computed views by faculty, student group, room and
day.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from timetabler.data.models import day_name
from timetabler.search.orchestrator import SolveStatus


# =============================================================================
# Session Output
# =============================================================================

class SessionOutput(BaseModel):
    """A single session assignment in the output."""
    session_id: str = Field(alias="sessionId")
    course_id: str = Field(alias="courseId")
    timeslot_id: str = Field(alias="timeslotId")
    faculty_id: str = Field(alias="facultyId")
    room_id: Optional[str] = Field(default=None, alias="roomId")
    day: int
    period: int
    duration_slots: int = Field(default=1, alias="durationSlots")
    student_group_ids: list[str] = Field(default_factory=list, alias="studentGroupIds")

    # Optional enriched data
    course_name: Optional[str] = Field(default=None, alias="courseName")
    faculty_name: Optional[str] = Field(default=None, alias="facultyName")
    room_name: Optional[str] = Field(default=None, alias="roomName")
    timeslot_label: Optional[str] = Field(default=None, alias="timeslotLabel")

    model_config = {"populate_by_name": True}

    @property
    def sort_key(self) -> tuple[int, int, str]:
        return (self.day, self.period, self.session_id)


# =============================================================================
# Diagnostics and Statistics
# =============================================================================

class DiagnosticOutput(BaseModel):
    """Human-readable reason for a non-feasible result."""
    kind: Optional[str] = None
    message: str
    resource_id: Optional[str] = Field(default=None, alias="resourceId")
    count: Optional[int] = None

    model_config = {"populate_by_name": True}


class SolveStatistics(BaseModel):
    """How the result was obtained."""
    solve_time_seconds: float = Field(alias="solveTimeSeconds")
    time_budget_seconds: float = Field(default=0.0, alias="timeBudgetSeconds")
    worker_count: int = Field(default=0, alias="workerCount")
    winning_worker: Optional[int] = Field(default=None, alias="winningWorker")
    nodes_explored: int = Field(default=0, alias="nodesExplored")
    num_sessions: int = Field(default=0, alias="numSessions")
    objective: str = "none"
    objective_value: Optional[int] = Field(default=None, alias="objectiveValue")
    conflicts: dict[str, int] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


# =============================================================================
# Views
# =============================================================================

class DaySchedule(BaseModel):
    """Schedule for a single day."""
    day: int
    day_name: str = Field(alias="dayName")
    sessions: list[SessionOutput]

    model_config = {"populate_by_name": True}


class EntitySchedule(BaseModel):
    """Schedule for an entity (faculty, student group, or room)."""
    id: str
    name: str
    sessions: list[SessionOutput]
    by_day: dict[int, list[SessionOutput]] = Field(
        default_factory=dict,
        alias="byDay"
    )

    model_config = {"populate_by_name": True}


class TimetableViews(BaseModel):
    """Pre-computed views of the timetable for convenience."""
    by_faculty: dict[str, EntitySchedule] = Field(default_factory=dict, alias="byFaculty")
    by_group: dict[str, EntitySchedule] = Field(default_factory=dict, alias="byGroup")
    by_room: dict[str, EntitySchedule] = Field(default_factory=dict, alias="byRoom")
    by_day: dict[int, DaySchedule] = Field(default_factory=dict, alias="byDay")

    model_config = {"populate_by_name": True}


# =============================================================================
# Timetable
# =============================================================================

class Timetable(BaseModel):
    """Ordered assignments covering every session exactly once."""
    sessions: list[SessionOutput]

    model_config = {"populate_by_name": True}


# =============================================================================
# Complete Output
# =============================================================================

class TimetableOutput(BaseModel):
    """
    Complete output of one scheduling run.

    ``timetable`` and ``views`` are only present for FEASIBLE results.
    A TIMEOUT_PARTIAL result carries ``partial_assignment`` instead, which
    is never a complete timetable.
    """
    status: SolveStatus
    statistics: SolveStatistics
    diagnostics: list[DiagnosticOutput] = Field(default_factory=list)
    timetable: Optional[Timetable] = None
    partial_assignment: Optional[list[SessionOutput]] = Field(
        default=None, alias="partialAssignment"
    )
    views: Optional[TimetableViews] = None

    model_config = {"populate_by_name": True}

    @property
    def is_feasible(self) -> bool:
        return self.status == SolveStatus.FEASIBLE

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return self.model_dump_json(by_alias=True, indent=indent, exclude_none=True)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


# =============================================================================
# View construction
# =============================================================================

def create_views(
    sessions: list[SessionOutput],
    faculty_names: dict[str, str] | None = None,
    group_names: dict[str, str] | None = None,
    room_names: dict[str, str] | None = None,
) -> TimetableViews:
    """Create pre-computed views from ordered session assignments."""
    faculty_names = faculty_names or {}
    group_names = group_names or {}
    room_names = room_names or {}

    by_faculty: dict[str, list[SessionOutput]] = {}
    by_group: dict[str, list[SessionOutput]] = {}
    by_room: dict[str, list[SessionOutput]] = {}
    by_day: dict[int, list[SessionOutput]] = {}

    for session in sorted(sessions, key=lambda s: s.sort_key):
        by_faculty.setdefault(session.faculty_id, []).append(session)
        for group_id in session.student_group_ids:
            by_group.setdefault(group_id, []).append(session)
        if session.room_id is not None:
            by_room.setdefault(session.room_id, []).append(session)
        by_day.setdefault(session.day, []).append(session)

    def entity_schedules(
        grouped: dict[str, list[SessionOutput]],
        names: dict[str, str],
    ) -> dict[str, EntitySchedule]:
        return {
            entity_id: EntitySchedule(
                id=entity_id,
                name=names.get(entity_id) or entity_id,
                sessions=entity_sessions,
                byDay=group_by_day(entity_sessions),
            )
            for entity_id, entity_sessions in grouped.items()
        }

    return TimetableViews(
        byFaculty=entity_schedules(by_faculty, faculty_names),
        byGroup=entity_schedules(by_group, group_names),
        byRoom=entity_schedules(by_room, room_names),
        byDay={
            day: DaySchedule(day=day, dayName=day_name(day), sessions=day_sessions)
            for day, day_sessions in sorted(by_day.items())
        },
    )


def group_by_day(sessions: list[SessionOutput]) -> dict[int, list[SessionOutput]]:
    """Group sessions by day index."""
    result: dict[int, list[SessionOutput]] = {}
    for session in sessions:
        result.setdefault(session.day, []).append(session)
    return result
