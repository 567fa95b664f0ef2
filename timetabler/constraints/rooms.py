"""
Room suitability: a session must sit in a room of the required type with
enough seats for every enrolled student group.

Only applies when rooms are modelled; without rooms the scheduler places
sessions on the grid alone and capacity is ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from .core import ConstraintKind, UnaryConstraint

if TYPE_CHECKING:
    from timetabler.data.models import Course, Room
    from timetabler.model_builder import Placement, Session


@dataclass
class RoomSuitability:
    """Why rooms were accepted or rejected for a course."""
    course_id: str
    suitable: list[str] = field(default_factory=list)
    wrong_type: list[str] = field(default_factory=list)
    too_small: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RoomFit(UnaryConstraint):
    """Sessions of ``course_id`` only use rooms from ``suitable_rooms``."""
    course_id: str
    suitable_rooms: frozenset[str]
    headcount: int = 0
    room_type: Optional[str] = None
    scope: tuple[int, ...] = field(default=())
    kind: ConstraintKind = field(default=ConstraintKind.ROOM_FIT, init=False)

    def permits(self, session: Session, placement: Placement) -> bool:
        return placement.room_id is None or placement.room_id in self.suitable_rooms

    def describe(self) -> str:
        needs = f"a '{self.room_type}' room" if self.room_type else "a room"
        return f"Course {self.course_id} needs {needs} seating {self.headcount}"


def check_room_suitability(course: Course, headcount: int, rooms: list[Room]) -> RoomSuitability:
    """Classify every room for a course by type and capacity."""
    result = RoomSuitability(course_id=course.id)
    for room in rooms:
        if course.room_type and room.type != course.room_type:
            result.wrong_type.append(room.id)
        elif room.capacity < headcount:
            result.too_small.append(room.id)
        else:
            result.suitable.append(room.id)
    return result


def build_room_fit(
    course: Course,
    headcount: int,
    suitability: RoomSuitability,
    scope: tuple[int, ...],
) -> RoomFit:
    """Room-fit constraint for all sessions of one course."""
    return RoomFit(
        course_id=course.id,
        suitable_rooms=frozenset(suitability.suitable),
        headcount=headcount,
        room_type=course.room_type,
        scope=scope,
    )
