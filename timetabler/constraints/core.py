"""Core constraint types shared by every constraint variant."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Mapping

if TYPE_CHECKING:
    from timetabler.model_builder import Placement, SchedulingModel, Session


class ConstraintKind(str, Enum):
    """Invariant class a constraint (or a violation of it) belongs to."""
    SESSION_COVERAGE = "session_coverage"
    FACULTY_OVERLAP = "faculty_overlap"
    STUDENT_GROUP_OVERLAP = "student_group_overlap"
    ROOM_OVERLAP = "room_overlap"
    FACULTY_AVAILABILITY = "faculty_availability"
    FACULTY_LOAD = "faculty_load"
    ROOM_FIT = "room_fit"

    @property
    def label(self) -> str:
        return _KIND_LABELS[self]


_KIND_LABELS = {
    ConstraintKind.SESSION_COVERAGE: "Session coverage",
    ConstraintKind.FACULTY_OVERLAP: "Faculty overlap",
    ConstraintKind.STUDENT_GROUP_OVERLAP: "Student group overlap",
    ConstraintKind.ROOM_OVERLAP: "Room overlap",
    ConstraintKind.FACULTY_AVAILABILITY: "Faculty availability",
    ConstraintKind.FACULTY_LOAD: "Faculty load",
    ConstraintKind.ROOM_FIT: "Room capacity/type",
}


@dataclass(frozen=True)
class Violation:
    """A broken hard constraint in a concrete assignment."""
    kind: ConstraintKind
    message: str
    session_ids: tuple[str, ...] = ()

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


class Constraint:
    """
    Base class for hard constraints.

    Subclasses are plain predicate objects over session placements. The
    search reads their ``scope`` to build the constraint graph; the
    verifier calls ``violations`` on complete assignments.
    """

    kind: ConstraintKind
    scope: tuple[int, ...]

    def describe(self) -> str:
        raise NotImplementedError

    def violations(
        self,
        model: SchedulingModel,
        assignment: Mapping[int, Placement],
    ) -> list[Violation]:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.describe()


class UnaryConstraint(Constraint):
    """A constraint that judges each placement on its own."""

    def permits(self, session: Session, placement: Placement) -> bool:
        raise NotImplementedError

    def violations(
        self,
        model: SchedulingModel,
        assignment: Mapping[int, Placement],
    ) -> list[Violation]:
        found = []
        for index in self.scope:
            placement = assignment.get(index)
            if placement is not None and not self.permits(model.sessions[index], placement):
                found.append(Violation(
                    kind=self.kind,
                    message=f"Session {model.sessions[index].id}: {self.describe()}",
                    session_ids=(model.sessions[index].id,),
                ))
        return found
