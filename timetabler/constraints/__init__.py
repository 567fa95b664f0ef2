"""
Constraint modules for the timetabling scheduler.

Every hard rule is a small predicate object (a tagged variant of
``Constraint``):

- ``ResourceExclusive``: one session per faculty/group/room per timeslot
- ``AvailabilitySubset``: faculty only teach when available
- ``LoadBound``: weekly/daily teaching caps
- ``RoomFit``: room type and capacity

The model builder creates them, the search reads their scopes and
claims, and ``verify_assignment`` re-checks finished timetables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping

from .core import (
    Constraint,
    ConstraintKind,
    UnaryConstraint,
    Violation,
)
from .no_overlap import (
    EXCLUSIVE_KINDS,
    NoOverlapStats,
    ResourceExclusive,
    build_faculty_no_overlap,
    build_group_no_overlap,
    build_room_no_overlap,
    find_exclusive,
    summarize_no_overlap,
)
from .availability import (
    AvailabilityStats,
    AvailabilitySubset,
    build_availability_constraints,
    summarize_availability,
)
from .limits import (
    LoadBound,
    LoadLimitStats,
    build_load_bounds,
    summarize_load_bounds,
)
from .rooms import (
    RoomFit,
    RoomSuitability,
    build_room_fit,
    check_room_suitability,
)

if TYPE_CHECKING:
    from timetabler.model_builder import Placement, SchedulingModel


@dataclass
class ConstraintSetStats:
    """Statistics about all constraints in a model."""
    no_overlap: NoOverlapStats = field(default_factory=NoOverlapStats)
    availability: AvailabilityStats = field(default_factory=AvailabilityStats)
    load_limits: LoadLimitStats = field(default_factory=LoadLimitStats)
    room_fit_constraints: int = 0
    total_constraints: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "facultyNoOverlap": self.no_overlap.faculty_constraints,
            "groupNoOverlap": self.no_overlap.group_constraints,
            "roomNoOverlap": self.no_overlap.room_constraints,
            "availability": self.availability.restricted_faculty,
            "weeklyLoadBounds": self.load_limits.weekly_bounds,
            "dailyLoadBounds": self.load_limits.daily_bounds,
            "roomFit": self.room_fit_constraints,
            "total": self.total_constraints,
        }


def summarize_constraints(constraints: list[Constraint], num_timeslots: int) -> ConstraintSetStats:
    """Count constraints per variant."""
    availability = [c for c in constraints if isinstance(c, AvailabilitySubset)]
    bounds = [c for c in constraints if isinstance(c, LoadBound)]
    return ConstraintSetStats(
        no_overlap=summarize_no_overlap(constraints),
        availability=summarize_availability(availability, num_timeslots),
        load_limits=summarize_load_bounds(bounds),
        room_fit_constraints=sum(1 for c in constraints if isinstance(c, RoomFit)),
        total_constraints=len(constraints),
    )


def verify_assignment(
    model: SchedulingModel,
    assignment: Mapping[int, Placement],
) -> list[Violation]:
    """
    Re-check a complete assignment against every hard constraint.

    Args:
        model: The model the assignment was produced for
        assignment: Session index -> placement

    Returns:
        All violations found (empty for a valid timetable)
    """
    violations: list[Violation] = []

    missing = [s.id for s in model.sessions if s.index not in assignment]
    unknown = sorted(i for i in assignment if not 0 <= i < len(model.sessions))
    if missing:
        violations.append(Violation(
            kind=ConstraintKind.SESSION_COVERAGE,
            message=f"{len(missing)} session(s) unassigned: {', '.join(missing[:10])}",
            session_ids=tuple(missing),
        ))
    if unknown:
        violations.append(Violation(
            kind=ConstraintKind.SESSION_COVERAGE,
            message=f"Assignment references unknown session indices: {unknown[:10]}",
        ))

    for session in model.sessions:
        placement = assignment.get(session.index)
        if placement is not None and placement not in model.domains[session.index]:
            violations.append(Violation(
                kind=ConstraintKind.SESSION_COVERAGE,
                message=f"Session {session.id} has a placement outside its domain",
                session_ids=(session.id,),
            ))

    for constraint in model.constraints:
        violations.extend(constraint.violations(model, assignment))

    return violations


__all__ = [
    # Core
    "Constraint",
    "ConstraintKind",
    "UnaryConstraint",
    "Violation",
    # No-overlap
    "EXCLUSIVE_KINDS",
    "NoOverlapStats",
    "ResourceExclusive",
    "build_faculty_no_overlap",
    "build_group_no_overlap",
    "build_room_no_overlap",
    "find_exclusive",
    "summarize_no_overlap",
    # Availability
    "AvailabilityStats",
    "AvailabilitySubset",
    "build_availability_constraints",
    "summarize_availability",
    # Load limits
    "LoadBound",
    "LoadLimitStats",
    "build_load_bounds",
    "summarize_load_bounds",
    # Rooms
    "RoomFit",
    "RoomSuitability",
    "build_room_fit",
    "check_room_suitability",
    # Whole-set helpers
    "ConstraintSetStats",
    "summarize_constraints",
    "verify_assignment",
]
