"""
Load bounds: caps on how many sessions a faculty member teaches per week
and, optionally, per day.

A session counts once towards a bound regardless of its duration; a
daily bound counts the session on the day it starts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping, Optional

from .core import Constraint, ConstraintKind, Violation

if TYPE_CHECKING:
    from timetabler.data.models import Faculty
    from timetabler.model_builder import Placement, SchedulingModel


@dataclass
class LoadLimitStats:
    """Statistics about load bounds created."""
    weekly_bounds: int = 0
    daily_bounds: int = 0


@dataclass(frozen=True)
class LoadBound(Constraint):
    """At most ``limit`` of the faculty's sessions (on ``day`` when set)."""
    faculty_id: str
    limit: int
    scope: tuple[int, ...] = field(default=())
    day: Optional[int] = None
    day_slots: Optional[frozenset[int]] = None
    kind: ConstraintKind = field(default=ConstraintKind.FACULTY_LOAD, init=False)

    @property
    def is_daily(self) -> bool:
        return self.day is not None

    def counts(self, placement: Placement) -> bool:
        """Whether a placement consumes capacity of this bound."""
        if placement.faculty_id != self.faculty_id:
            return False
        return self.day_slots is None or placement.timeslot_index in self.day_slots

    def describe(self) -> str:
        period = f"on day {self.day}" if self.is_daily else "per week"
        return f"Faculty {self.faculty_id} teaches at most {self.limit} session(s) {period}"

    def violations(
        self,
        model: SchedulingModel,
        assignment: Mapping[int, Placement],
    ) -> list[Violation]:
        counted = [
            index for index in self.scope
            if index in assignment and self.counts(assignment[index])
        ]
        if len(counted) <= self.limit:
            return []
        period = f"on day {self.day}" if self.is_daily else "this week"
        return [Violation(
            kind=self.kind,
            message=(
                f"Faculty {self.faculty_id} teaches {len(counted)} sessions {period} "
                f"(limit {self.limit})"
            ),
            session_ids=tuple(model.sessions[i].id for i in counted),
        )]


def build_load_bounds(
    faculty: list[Faculty],
    candidate_faculty: Mapping[int, list[str]],
    day_slots: Mapping[int, frozenset[int]],
) -> list[LoadBound]:
    """Weekly and daily load bounds for faculty that declare them."""
    scopes: dict[str, list[int]] = {}
    for session_index, faculty_ids in candidate_faculty.items():
        for faculty_id in faculty_ids:
            scopes.setdefault(faculty_id, []).append(session_index)

    bounds: list[LoadBound] = []
    for member in faculty:
        scope = tuple(sorted(scopes.get(member.id, [])))
        if not scope:
            continue

        if member.max_weekly_sessions is not None:
            bounds.append(LoadBound(
                faculty_id=member.id,
                limit=member.max_weekly_sessions,
                scope=scope,
            ))

        if member.max_daily_sessions is not None:
            for day in sorted(day_slots):
                bounds.append(LoadBound(
                    faculty_id=member.id,
                    limit=member.max_daily_sessions,
                    scope=scope,
                    day=day,
                    day_slots=day_slots[day],
                ))

    return bounds


def summarize_load_bounds(bounds: list[LoadBound]) -> LoadLimitStats:
    """Count weekly and daily bounds."""
    stats = LoadLimitStats()
    for bound in bounds:
        if bound.is_daily:
            stats.daily_bounds += 1
        else:
            stats.weekly_bounds += 1
    return stats
