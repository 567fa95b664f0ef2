"""
No-overlap constraints: a faculty member, student group or room can only
be in one place per timeslot.

Each resource gets one ``ResourceExclusive`` constraint whose scope is
every session that could use it. During search a placement "claims" the
(resource, timeslot) cells it occupies; two sessions may never claim the
same cell.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping, Optional

from .core import Constraint, ConstraintKind, Violation

if TYPE_CHECKING:
    from timetabler.model_builder import Placement, SchedulingModel, Session


EXCLUSIVE_KINDS = (
    ConstraintKind.FACULTY_OVERLAP,
    ConstraintKind.STUDENT_GROUP_OVERLAP,
    ConstraintKind.ROOM_OVERLAP,
)

_RESOURCE_NAMES = {
    ConstraintKind.FACULTY_OVERLAP: "Faculty",
    ConstraintKind.STUDENT_GROUP_OVERLAP: "Student group",
    ConstraintKind.ROOM_OVERLAP: "Room",
}


@dataclass
class NoOverlapStats:
    """Statistics about no-overlap constraints created."""
    faculty_constraints: int = 0
    group_constraints: int = 0
    room_constraints: int = 0
    sessions_covered: int = 0


@dataclass(frozen=True)
class ResourceExclusive(Constraint):
    """All sessions sharing ``resource_id`` in the same timeslot are mutually exclusive."""
    kind: ConstraintKind
    resource_id: str
    scope: tuple[int, ...] = field(default=())

    def __post_init__(self) -> None:
        if self.kind not in EXCLUSIVE_KINDS:
            raise ValueError(f"{self.kind} is not a resource exclusivity kind")

    @property
    def resource_name(self) -> str:
        return f"{_RESOURCE_NAMES[self.kind]} {self.resource_id}"

    def uses(self, placement: Placement) -> bool:
        """Whether a placement of an in-scope session occupies this resource."""
        if self.kind is ConstraintKind.FACULTY_OVERLAP:
            return placement.faculty_id == self.resource_id
        if self.kind is ConstraintKind.ROOM_OVERLAP:
            return placement.room_id == self.resource_id
        # Enrolment is fixed, so every session in scope uses the group
        return True

    def claims(self, placement: Placement) -> tuple[int, ...]:
        """Timeslots of this resource that a placement reserves."""
        return placement.occupied if self.uses(placement) else ()

    def describe(self) -> str:
        return f"{self.resource_name} can host one session per timeslot"

    def violations(
        self,
        model: SchedulingModel,
        assignment: Mapping[int, Placement],
    ) -> list[Violation]:
        occupants: dict[int, list[int]] = defaultdict(list)
        for index in self.scope:
            placement = assignment.get(index)
            if placement is None or not self.uses(placement):
                continue
            for slot in placement.occupied:
                occupants[slot].append(index)

        found = []
        for slot in sorted(occupants):
            clashing = occupants[slot]
            if len(clashing) > 1:
                ids = tuple(model.sessions[i].id for i in clashing)
                found.append(Violation(
                    kind=self.kind,
                    message=(
                        f"{self.resource_name} has {len(ids)} sessions in timeslot "
                        f"{model.timeslots[slot].id}: {', '.join(ids)}"
                    ),
                    session_ids=ids,
                ))
        return found


# =============================================================================
# Constraint factories
# =============================================================================

def build_faculty_no_overlap(
    sessions: list[Session],
    candidate_faculty: Mapping[int, list[str]],
    faculty_ids: list[str],
) -> list[ResourceExclusive]:
    """One exclusivity constraint per faculty member that could teach anything."""
    scopes: dict[str, list[int]] = {fid: [] for fid in faculty_ids}
    for session in sessions:
        for faculty_id in candidate_faculty.get(session.index, []):
            scopes[faculty_id].append(session.index)

    return [
        ResourceExclusive(ConstraintKind.FACULTY_OVERLAP, fid, tuple(scope))
        for fid, scope in scopes.items()
        if scope
    ]


def build_group_no_overlap(
    sessions: list[Session],
    group_ids: list[str],
) -> list[ResourceExclusive]:
    """One exclusivity constraint per student group with sessions."""
    scopes: dict[str, list[int]] = {gid: [] for gid in group_ids}
    for session in sessions:
        for group_id in session.group_ids:
            scopes[group_id].append(session.index)

    return [
        ResourceExclusive(ConstraintKind.STUDENT_GROUP_OVERLAP, gid, tuple(scope))
        for gid, scope in scopes.items()
        if scope
    ]


def build_room_no_overlap(
    sessions: list[Session],
    candidate_rooms: Mapping[int, list[str]],
    room_ids: list[str],
) -> list[ResourceExclusive]:
    """One exclusivity constraint per room that could host anything."""
    scopes: dict[str, list[int]] = {rid: [] for rid in room_ids}
    for session in sessions:
        for room_id in candidate_rooms.get(session.index, []):
            scopes[room_id].append(session.index)

    return [
        ResourceExclusive(ConstraintKind.ROOM_OVERLAP, rid, tuple(scope))
        for rid, scope in scopes.items()
        if scope
    ]


def summarize_no_overlap(constraints: list[Constraint]) -> NoOverlapStats:
    """Count exclusivity constraints per resource kind."""
    stats = NoOverlapStats()
    covered: set[int] = set()
    for constraint in constraints:
        if not isinstance(constraint, ResourceExclusive):
            continue
        covered.update(constraint.scope)
        if constraint.kind is ConstraintKind.FACULTY_OVERLAP:
            stats.faculty_constraints += 1
        elif constraint.kind is ConstraintKind.STUDENT_GROUP_OVERLAP:
            stats.group_constraints += 1
        else:
            stats.room_constraints += 1
    stats.sessions_covered = len(covered)
    return stats


def find_exclusive(
    constraints: list[Constraint],
    kind: ConstraintKind,
    resource_id: str,
) -> Optional[ResourceExclusive]:
    """Look up the exclusivity constraint for one resource."""
    for constraint in constraints:
        if (
            isinstance(constraint, ResourceExclusive)
            and constraint.kind is kind
            and constraint.resource_id == resource_id
        ):
            return constraint
    return None
