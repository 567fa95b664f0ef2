"""
Availability constraints: a faculty member only teaches inside their
declared availability.

These are unary: the model builder uses them to prune domains before
search, and the verifier re-checks them on finished timetables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping

from .core import ConstraintKind, UnaryConstraint

if TYPE_CHECKING:
    from timetabler.data.models import Faculty
    from timetabler.model_builder import Placement, Session


@dataclass
class AvailabilityStats:
    """Statistics about availability constraints created."""
    restricted_faculty: int = 0
    blocked_cells: int = 0


@dataclass(frozen=True)
class AvailabilitySubset(UnaryConstraint):
    """Every timeslot a faculty member's session occupies lies in ``allowed``."""
    faculty_id: str
    allowed: frozenset[int]
    scope: tuple[int, ...] = field(default=())
    kind: ConstraintKind = field(default=ConstraintKind.FACULTY_AVAILABILITY, init=False)

    def permits(self, session: Session, placement: Placement) -> bool:
        if placement.faculty_id != self.faculty_id:
            return True
        return all(slot in self.allowed for slot in placement.occupied)

    def describe(self) -> str:
        return (
            f"Faculty {self.faculty_id} is only available in "
            f"{len(self.allowed)} timeslot(s)"
        )


def build_availability_constraints(
    faculty: list[Faculty],
    timeslot_positions: Mapping[str, int],
    candidate_faculty: Mapping[int, list[str]],
) -> list[AvailabilitySubset]:
    """
    One availability constraint per faculty member with a restricted mask.

    ``available_timeslot_ids=None`` means "always available" and produces no
    constraint. An empty list allows no timeslot at all.
    """
    scopes: dict[str, list[int]] = {}
    for session_index, faculty_ids in candidate_faculty.items():
        for faculty_id in faculty_ids:
            scopes.setdefault(faculty_id, []).append(session_index)

    constraints = []
    for member in faculty:
        if member.available_timeslot_ids is None:
            continue
        allowed = frozenset(timeslot_positions[tid] for tid in member.available_timeslot_ids)
        constraints.append(AvailabilitySubset(
            faculty_id=member.id,
            allowed=allowed,
            scope=tuple(sorted(scopes.get(member.id, []))),
        ))
    return constraints


def summarize_availability(
    constraints: list[AvailabilitySubset],
    num_timeslots: int,
) -> AvailabilityStats:
    """Count restricted faculty and the cells they have blocked."""
    stats = AvailabilityStats()
    for constraint in constraints:
        stats.restricted_faculty += 1
        stats.blocked_cells += num_timeslots - len(constraint.allowed)
    return stats
