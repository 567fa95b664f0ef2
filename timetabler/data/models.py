"""
Pydantic models for the timetabling problem input.

The problem is expressed on a discrete grid of timeslots: each timeslot
is a (day, period) pair, and a session lasting several slots occupies
consecutive periods of one day.

Field names are snake_case; the JSON loader converts the camelCase keys
used by the API layer (``sessionsPerWeek`` -> ``sessions_per_week``).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# Errors
# =============================================================================

class InvalidInputError(ValueError):
    """Raised when problem input is malformed or has dangling references."""

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__(
            "Invalid problem input:\n" + "\n".join(f"  - {e}" for e in self.errors)
        )


# =============================================================================
# Constants and Enums
# =============================================================================

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class OptimizationObjective(str, Enum):
    """Optional soft objective applied after a feasible timetable is found."""
    NONE = "none"
    COMPACT = "compact"      # Minimise idle gaps for faculty and student groups
    BALANCED = "balanced"    # Spread courses across days, even out faculty load


def day_name(day: int) -> str:
    """Get day name from index."""
    return DAY_NAMES[day] if 0 <= day < len(DAY_NAMES) else f"Day {day}"


# =============================================================================
# Core Entity Models
# =============================================================================

class Timeslot(BaseModel):
    """One cell of the scheduling grid."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1, description="Unique identifier")
    day: int = Field(ge=0, description="Day index (0=Monday)")
    period: int = Field(ge=0, description="Period index within the day")
    label: Optional[str] = Field(default=None, description="Display label (e.g. 'Mon 09:00')")

    def __str__(self) -> str:
        return self.label or f"{day_name(self.day)} P{self.period}"


class Course(BaseModel):
    """Course whose weekly sessions must be placed on the grid."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1, description="Unique identifier")
    name: Optional[str] = Field(default=None, description="Display name")
    sessions_per_week: int = Field(ge=1, le=40, description="Sessions required per week")
    duration_slots: int = Field(default=1, ge=1, le=12, description="Consecutive periods per session")
    eligible_faculty_ids: list[str] = Field(default_factory=list, description="Faculty who may teach it")
    student_group_ids: list[str] = Field(default_factory=list, description="Enrolled student groups")
    room_type: Optional[str] = Field(default=None, description="Required room type")

    @field_validator("room_type")
    @classmethod
    def normalise_room_type(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().lower() if value else None

    def __str__(self) -> str:
        return self.name or self.id


class Faculty(BaseModel):
    """Faculty member."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1, description="Unique identifier")
    name: Optional[str] = Field(default=None, description="Full name")
    available_timeslot_ids: Optional[list[str]] = Field(
        default=None,
        description="Timeslots the faculty can teach in (None = always available, empty = never)",
    )
    max_weekly_sessions: Optional[int] = Field(default=None, ge=0, description="Weekly load limit")
    max_daily_sessions: Optional[int] = Field(default=None, ge=0, description="Daily load limit")
    course_ids: list[str] = Field(
        default_factory=list,
        description="Courses this faculty may teach (empty = any course naming them)",
    )

    def __str__(self) -> str:
        return self.name or self.id


class StudentGroup(BaseModel):
    """Cohort of students attending the same courses."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1, description="Unique identifier")
    name: Optional[str] = Field(default=None, description="Display name")
    course_ids: list[str] = Field(default_factory=list, description="Enrolled courses")
    size: int = Field(default=0, ge=0, description="Number of students")

    def __str__(self) -> str:
        return self.name or self.id


class Room(BaseModel):
    """Room/facility."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1, description="Unique identifier")
    name: Optional[str] = Field(default=None, description="Room name/number")
    capacity: int = Field(ge=1, description="Max capacity")
    type: str = Field(default="classroom", min_length=1, description="Type of room")

    @field_validator("type")
    @classmethod
    def normalise_type(cls, value: str) -> str:
        return value.strip().lower()

    def __str__(self) -> str:
        return f"{self.name or self.id} ({self.type})"


# =============================================================================
# Solve Configuration
# =============================================================================

class SolveConfig(BaseModel):
    """
    Per-invocation solver settings.

    Passed explicitly into every solve so concurrent runs with different
    budgets never share state.
    """
    model_config = ConfigDict(extra="forbid")

    time_budget_seconds: Optional[float] = Field(
        default=None, gt=0, le=3600,
        description="Wall-clock budget; derived from problem size when unset",
    )
    worker_count: int = Field(default=8, ge=1, le=64, description="Parallel search workers")
    optimization_objective: OptimizationObjective = Field(
        default=OptimizationObjective.NONE, description="Optional soft objective"
    )
    allow_partial: bool = Field(
        default=False, description="Report the deepest partial assignment on timeout"
    )
    seed: int = Field(default=0, description="Base seed for worker strategy permutations")

    @field_validator("optimization_objective", mode="before")
    @classmethod
    def none_means_no_objective(cls, value: Any) -> Any:
        return OptimizationObjective.NONE if value is None else value


# =============================================================================
# Main Input Model
# =============================================================================

class ProblemInput(BaseModel):
    """
    Complete institutional input for one scheduling run.

    Structural validation (types, ranges) happens here; cross-reference
    checks are reported by ``reference_errors()`` and enforced by the
    model builder so that they surface as ``InvalidInputError``.
    """
    model_config = ConfigDict(extra="forbid")

    courses: list[Course] = Field(default_factory=list, description="Courses to schedule")
    faculty: list[Faculty] = Field(default_factory=list, description="Faculty members")
    student_groups: list[StudentGroup] = Field(default_factory=list, description="Student groups")
    rooms: list[Room] = Field(default_factory=list, description="Rooms (optional)")
    timeslots: list[Timeslot] = Field(default_factory=list, description="Scheduling grid")

    # Lookup caches (populated after validation)
    _course_map: dict[str, Course] = {}
    _faculty_map: dict[str, Faculty] = {}
    _group_map: dict[str, StudentGroup] = {}
    _room_map: dict[str, Room] = {}
    _timeslot_map: dict[str, Timeslot] = {}

    def model_post_init(self, __context: Any) -> None:
        """Build lookup maps after model initialization."""
        self._course_map = {c.id: c for c in self.courses}
        self._faculty_map = {f.id: f for f in self.faculty}
        self._group_map = {g.id: g for g in self.student_groups}
        self._room_map = {r.id: r for r in self.rooms}
        self._timeslot_map = {t.id: t for t in self.timeslots}

    # -------------------------------------------------------------------------
    # Reference checks
    # -------------------------------------------------------------------------

    def reference_errors(self) -> list[str]:
        """Return every duplicate id, duplicate grid cell and dangling cross-reference."""
        errors: list[str] = []

        def check_duplicates(items: list, entity_name: str) -> None:
            seen: set[str] = set()
            for item in items:
                if item.id in seen:
                    errors.append(f"Duplicate {entity_name} ID: '{item.id}'")
                seen.add(item.id)

        check_duplicates(self.courses, "course")
        check_duplicates(self.faculty, "faculty")
        check_duplicates(self.student_groups, "student group")
        check_duplicates(self.rooms, "room")
        check_duplicates(self.timeslots, "timeslot")

        cells: dict[tuple[int, int], str] = {}
        for slot in self.timeslots:
            key = (slot.day, slot.period)
            if key in cells:
                errors.append(
                    f"Timeslots '{cells[key]}' and '{slot.id}' both cover "
                    f"day {slot.day} period {slot.period}"
                )
            else:
                cells[key] = slot.id

        for course in self.courses:
            for faculty_id in course.eligible_faculty_ids:
                if faculty_id not in self._faculty_map:
                    errors.append(f"Course {course.id}: unknown faculty '{faculty_id}'")
            for group_id in course.student_group_ids:
                if group_id not in self._group_map:
                    errors.append(f"Course {course.id}: unknown student group '{group_id}'")

        for member in self.faculty:
            for timeslot_id in member.available_timeslot_ids or ():
                if timeslot_id not in self._timeslot_map:
                    errors.append(f"Faculty {member.id}: unknown timeslot '{timeslot_id}'")
            for course_id in member.course_ids:
                if course_id not in self._course_map:
                    errors.append(f"Faculty {member.id}: unknown course '{course_id}'")

        for group in self.student_groups:
            for course_id in group.course_ids:
                if course_id not in self._course_map:
                    errors.append(f"Student group {group.id}: unknown course '{course_id}'")

        return errors

    # -------------------------------------------------------------------------
    # Lookup Methods
    # -------------------------------------------------------------------------

    def get_course(self, course_id: str) -> Optional[Course]:
        """Get course by ID."""
        return self._course_map.get(course_id)

    def get_faculty(self, faculty_id: str) -> Optional[Faculty]:
        """Get faculty member by ID."""
        return self._faculty_map.get(faculty_id)

    def get_group(self, group_id: str) -> Optional[StudentGroup]:
        """Get student group by ID."""
        return self._group_map.get(group_id)

    def get_room(self, room_id: str) -> Optional[Room]:
        """Get room by ID."""
        return self._room_map.get(room_id)

    def get_timeslot(self, timeslot_id: str) -> Optional[Timeslot]:
        """Get timeslot by ID."""
        return self._timeslot_map.get(timeslot_id)

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    def get_course_groups(self, course_id: str) -> list[str]:
        """
        Student groups enrolled in a course.

        Enrolment may be declared on either side (course -> group or
        group -> course); the union is returned in a stable order.
        """
        group_ids: list[str] = []
        course = self._course_map.get(course_id)
        if course:
            for group_id in course.student_group_ids:
                if group_id in self._group_map and group_id not in group_ids:
                    group_ids.append(group_id)
        for group in self.student_groups:
            if course_id in group.course_ids and group.id not in group_ids:
                group_ids.append(group.id)
        return group_ids

    def get_course_headcount(self, course_id: str) -> int:
        """Total size of the groups enrolled in a course."""
        return sum(self._group_map[g].size for g in self.get_course_groups(course_id))

    def get_sorted_timeslots(self) -> list[Timeslot]:
        """Timeslots ordered by day, then period."""
        return sorted(self.timeslots, key=lambda t: (t.day, t.period))

    @property
    def rooms_modelled(self) -> bool:
        """Rooms are only modelled when at least one is supplied."""
        return bool(self.rooms)

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    @property
    def total_sessions_per_week(self) -> int:
        """Total number of sessions to place."""
        return sum(c.sessions_per_week for c in self.courses)

    @property
    def total_students(self) -> int:
        """Summed size of all student groups."""
        return sum(g.size for g in self.student_groups)

    def summary(self) -> dict[str, Any]:
        """Get a summary of the problem data."""
        return {
            "courses": len(self.courses),
            "faculty": len(self.faculty),
            "student_groups": len(self.student_groups),
            "rooms": len(self.rooms),
            "timeslots": len(self.timeslots),
            "total_sessions_per_week": self.total_sessions_per_week,
            "total_students": self.total_students,
        }
