"""
Model builder for timetabling.

Turns a ``ProblemInput`` into a ``SchedulingModel``: one decision
variable per session, each with an explicit finite domain of placements
(start timeslot, faculty, room), plus the hard constraints over them.

Grid representation:
- Timeslots are sorted by (day, period) and addressed by position
- A session lasting d slots occupies d consecutive periods of one day
- Claim keys encode "resource r busy in timeslot t" as
  ``constraint_index * num_timeslots + t``

The model is immutable once built and is shared read-only by every
search worker.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from .constraints import (
    AvailabilitySubset,
    Constraint,
    ConstraintKind,
    LoadBound,
    ResourceExclusive,
    build_availability_constraints,
    build_faculty_no_overlap,
    build_group_no_overlap,
    build_load_bounds,
    build_room_fit,
    build_room_no_overlap,
    check_room_suitability,
    summarize_constraints,
)
from .data.models import (
    Course,
    InvalidInputError,
    ProblemInput,
    Timeslot,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MIN_TIME_BUDGET_SECONDS = 5.0
MAX_TIME_BUDGET_SECONDS = 300.0
COMPLEXITY_PER_SECOND = 100_000


# =============================================================================
# Errors
# =============================================================================

class ModelError(Exception):
    """
    Raised when the model cannot be built from otherwise valid input.

    Typical causes are a course nobody may teach or a session with no
    compatible (timeslot, faculty, room) combination at all.
    """

    def __init__(
        self,
        message: str,
        course_id: Optional[str] = None,
        kind: Optional[ConstraintKind] = None,
    ):
        super().__init__(message)
        self.course_id = course_id
        self.kind = kind


class BuildTimeout(Exception):
    """Raised when the deadline passes before the model is finished."""


# =============================================================================
# Data Classes for Variables
# =============================================================================

@dataclass(frozen=True)
class Session:
    """One occurrence of a course; the unit the search assigns."""
    index: int
    id: str
    course_id: str
    course_index: int
    occurrence: int  # 1-based within the course
    duration: int
    group_ids: tuple[str, ...]
    headcount: int


@dataclass(frozen=True)
class Placement:
    """A domain value: where, by whom and in which room a session runs."""
    timeslot_index: int  # Start position in the sorted grid
    faculty_id: str
    room_id: Optional[str]
    occupied: tuple[int, ...]  # Every grid position the session covers


@dataclass
class CourseEncoding:
    """
    Search-ready encoding shared by all sessions of one course.

    ``support`` and ``load_support`` are inverted indexes: given a claim
    key or a load bound, the placements that would be knocked out when
    that key is taken or that bound fills up.
    """
    domain: tuple[Placement, ...]
    claims: tuple[tuple[int, ...], ...]
    load_hits: tuple[tuple[int, ...], ...]
    support: dict[int, tuple[int, ...]] = field(default_factory=dict)
    load_support: dict[int, tuple[int, ...]] = field(default_factory=dict)


@dataclass
class SchedulingModel:
    """Decision variables, domains and constraints for one scheduling run."""
    problem: ProblemInput
    timeslots: list[Timeslot]
    sessions: list[Session]
    encodings: list[CourseEncoding]
    constraints: list[Constraint]
    domains: list[tuple[Placement, ...]] = field(init=False)

    def __post_init__(self) -> None:
        self.domains = [self.encodings[s.course_index].domain for s in self.sessions]
        self._session_map = {s.id: s for s in self.sessions}

    @property
    def num_timeslots(self) -> int:
        return len(self.timeslots)

    @property
    def is_empty(self) -> bool:
        return not self.sessions

    def get_session(self, session_id: str) -> Optional[Session]:
        """Get session by ID."""
        return self._session_map.get(session_id)

    def encoding_for(self, session_index: int) -> CourseEncoding:
        """Claims and indexes for a session's domain."""
        return self.encodings[self.sessions[session_index].course_index]

    def timeslot_of(self, placement: Placement) -> Timeslot:
        """Start timeslot of a placement."""
        return self.timeslots[placement.timeslot_index]

    def decode_key(self, key: int) -> tuple[Constraint, Timeslot]:
        """Turn a claim key back into (constraint, timeslot)."""
        constraint_index, slot = divmod(key, self.num_timeslots)
        return self.constraints[constraint_index], self.timeslots[slot]

    def statistics(self) -> dict[str, Any]:
        """Get model statistics."""
        domain_sizes = [len(d) for d in self.domains]
        stats = summarize_constraints(self.constraints, self.num_timeslots)
        return {
            "num_courses": len(self.problem.courses),
            "num_sessions": len(self.sessions),
            "num_timeslots": self.num_timeslots,
            "num_constraints": len(self.constraints),
            "min_domain_size": min(domain_sizes, default=0),
            "max_domain_size": max(domain_sizes, default=0),
            "total_placements": sum(len(e.domain) for e in self.encodings),
            "rooms_modelled": self.problem.rooms_modelled,
            "constraints": stats.to_dict(),
        }


# =============================================================================
# Time budget
# =============================================================================

def estimate_time_budget(model: SchedulingModel) -> float:
    """Default wall-clock budget in seconds for a built model."""
    return estimate_problem_budget(model.problem)


def estimate_problem_budget(problem: ProblemInput) -> float:
    """
    Default wall-clock budget in seconds.

    Grows with courses x timeslots x students and is clamped to
    [MIN_TIME_BUDGET_SECONDS, MAX_TIME_BUDGET_SECONDS].
    """
    complexity = len(problem.courses) * len(problem.timeslots) * max(1, problem.total_students)
    budget = MIN_TIME_BUDGET_SECONDS + complexity / COMPLEXITY_PER_SECOND
    return min(MAX_TIME_BUDGET_SECONDS, budget)


# =============================================================================
# Main Model Builder
# =============================================================================

class ModelBuilder:
    """
    Builds a ``SchedulingModel`` from validated problem input.

    Usage:
        builder = ModelBuilder(problem)
        model = builder.build()

    or step by step:
        builder.create_sessions()
        builder.create_domains()
        builder.add_constraints()
        model = builder.build()

    Building is pure and deterministic: the same input always produces the
    same session order, domain order and constraint order.
    """

    def __init__(self, problem: ProblemInput, deadline: Optional[float] = None):
        """
        Initialize the model builder.

        Args:
            problem: Structurally valid problem input
            deadline: Optional ``time.monotonic()`` instant after which
                building stops with ``BuildTimeout``

        Raises:
            InvalidInputError: If any cross-reference is dangling or an ID
                is duplicated
        """
        errors = problem.reference_errors()
        if errors:
            raise InvalidInputError(errors)

        self.problem = problem
        self.deadline = deadline

        # Grid, ordered by day then period
        self.timeslots = problem.get_sorted_timeslots()
        self._positions: dict[str, int] = {t.id: i for i, t in enumerate(self.timeslots)}
        self._day_slots: dict[int, frozenset[int]] = {}
        for i, slot in enumerate(self.timeslots):
            self._day_slots[slot.day] = self._day_slots.get(slot.day, frozenset()) | {i}
        self._span_cache: dict[int, list[tuple[int, ...]]] = {}

        # Variable storage
        self.sessions: list[Session] = []
        self.domains_by_course: list[tuple[Placement, ...]] = []
        self.constraints: list[Constraint] = []

        # Candidate resources per session, used to scope constraints
        self._candidate_faculty: dict[int, list[str]] = {}
        self._candidate_rooms: dict[int, list[str]] = {}

        # State tracking
        self._sessions_created = False
        self._domains_created = False
        self._constraints_added = False

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    def create_sessions(self) -> None:
        """Create one session per weekly occurrence of every course."""
        if self._sessions_created:
            return

        for course_index, course in enumerate(self.problem.courses):
            group_ids = tuple(self.problem.get_course_groups(course.id))
            headcount = self.problem.get_course_headcount(course.id)
            for occurrence in range(1, course.sessions_per_week + 1):
                self.sessions.append(Session(
                    index=len(self.sessions),
                    id=f"{course.id}#{occurrence}",
                    course_id=course.id,
                    course_index=course_index,
                    occurrence=occurrence,
                    duration=course.duration_slots,
                    group_ids=group_ids,
                    headcount=headcount,
                ))

        self._sessions_created = True

    # -------------------------------------------------------------------------
    # Domains
    # -------------------------------------------------------------------------

    def create_domains(self) -> None:
        """
        Enumerate the compatible placements of every course.

        Raises:
            ModelError: If a course has no eligible faculty or no placement
                survives availability and room filtering
        """
        if not self._sessions_created:
            self.create_sessions()
        if self._domains_created:
            return

        warned_room_types = False
        for course in self.problem.courses:
            if course.room_type and not self.problem.rooms_modelled and not warned_room_types:
                logger.warning(
                    "Course %s requires room type '%s' but no rooms are modelled; "
                    "room requirements are ignored",
                    course.id, course.room_type,
                )
                warned_room_types = True
            self._check_deadline("enumerating placements")
            self.domains_by_course.append(self._create_course_domain(course))

        for session in self.sessions:
            domain = self.domains_by_course[session.course_index]
            self._candidate_faculty[session.index] = _unique(p.faculty_id for p in domain)
            self._candidate_rooms[session.index] = _unique(
                p.room_id for p in domain if p.room_id is not None
            )

        self._domains_created = True

    def _create_course_domain(self, course: Course) -> tuple[Placement, ...]:
        """Domain shared by all sessions of a course."""
        if not course.eligible_faculty_ids:
            raise ModelError(
                f"Course {course.id} has no eligible faculty",
                course_id=course.id,
                kind=ConstraintKind.FACULTY_AVAILABILITY,
            )

        faculty = []
        for faculty_id in _unique(course.eligible_faculty_ids):
            member = self.problem.get_faculty(faculty_id)
            if member.course_ids and course.id not in member.course_ids:
                continue
            faculty.append(member)
        if not faculty:
            raise ModelError(
                f"Course {course.id}: none of its eligible faculty "
                f"({', '.join(course.eligible_faculty_ids)}) lists it among their courses",
                course_id=course.id,
                kind=ConstraintKind.FACULTY_AVAILABILITY,
            )

        spans = self._spans(course.duration_slots)
        if not spans:
            raise ModelError(
                f"Course {course.id}: no day has {course.duration_slots} consecutive periods",
                course_id=course.id,
                kind=ConstraintKind.SESSION_COVERAGE,
            )

        masks = {
            member.id: frozenset(self._positions[t] for t in member.available_timeslot_ids)
            for member in faculty
            if member.available_timeslot_ids is not None
        }
        pairs: list[tuple[tuple[int, ...], str]] = []
        for occupied in spans:
            for member in faculty:
                mask = masks.get(member.id)
                if mask is not None and not mask.issuperset(occupied):
                    continue
                pairs.append((occupied, member.id))
        if not pairs:
            raise ModelError(
                f"Course {course.id}: no eligible faculty "
                f"({', '.join(m.id for m in faculty)}) is available in any timeslot "
                f"that fits a {course.duration_slots}-slot session",
                course_id=course.id,
                kind=ConstraintKind.FACULTY_AVAILABILITY,
            )

        room_ids: list[Optional[str]] = [None]
        if self.problem.rooms_modelled:
            headcount = self.problem.get_course_headcount(course.id)
            suitability = check_room_suitability(course, headcount, self.problem.rooms)
            if not suitability.suitable:
                needs = f"type '{course.room_type}' and " if course.room_type else ""
                raise ModelError(
                    f"Course {course.id}: no room with {needs}capacity for {headcount} students",
                    course_id=course.id,
                    kind=ConstraintKind.ROOM_FIT,
                )
            room_ids = list(suitability.suitable)

        return tuple(
            Placement(
                timeslot_index=occupied[0],
                faculty_id=faculty_id,
                room_id=room_id,
                occupied=occupied,
            )
            for occupied, faculty_id in pairs
            for room_id in room_ids
        )

    def _check_deadline(self, stage: str) -> None:
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise BuildTimeout(f"Time budget exhausted while {stage}")

    def _spans(self, duration: int) -> list[tuple[int, ...]]:
        """All runs of ``duration`` consecutive periods within one day."""
        if duration in self._span_cache:
            return self._span_cache[duration]

        spans = []
        for start in range(len(self.timeslots)):
            occupied = tuple(range(start, start + duration))
            if occupied[-1] >= len(self.timeslots):
                break
            first = self.timeslots[start]
            if all(
                self.timeslots[pos].day == first.day
                and self.timeslots[pos].period == first.period + offset
                for offset, pos in enumerate(occupied)
            ):
                spans.append(occupied)

        self._span_cache[duration] = spans
        return spans

    # -------------------------------------------------------------------------
    # Constraint Addition
    # -------------------------------------------------------------------------

    def add_constraints(self) -> None:
        """Add all hard constraints to the model."""
        if not self._domains_created:
            raise RuntimeError("Must call create_domains() before add_constraints()")
        if self._constraints_added:
            return

        problem = self.problem

        # Resource exclusivity
        self.constraints.extend(build_faculty_no_overlap(
            self.sessions, self._candidate_faculty, [f.id for f in problem.faculty]
        ))
        self.constraints.extend(build_group_no_overlap(
            self.sessions, [g.id for g in problem.student_groups]
        ))
        if problem.rooms_modelled:
            self.constraints.extend(build_room_no_overlap(
                self.sessions, self._candidate_rooms, [r.id for r in problem.rooms]
            ))

        # Availability and load
        self.constraints.extend(build_availability_constraints(
            problem.faculty, self._positions, self._candidate_faculty
        ))
        self.constraints.extend(build_load_bounds(
            problem.faculty, self._candidate_faculty, self._day_slots
        ))

        # Room type and capacity
        if problem.rooms_modelled:
            for course_index, course in enumerate(problem.courses):
                scope = tuple(s.index for s in self.sessions if s.course_index == course_index)
                headcount = problem.get_course_headcount(course.id)
                suitability = check_room_suitability(course, headcount, problem.rooms)
                self.constraints.append(build_room_fit(course, headcount, suitability, scope))

        self._constraints_added = True

    # -------------------------------------------------------------------------
    # Encoding
    # -------------------------------------------------------------------------

    def _encode_courses(self) -> list[CourseEncoding]:
        """Precompute claim keys, load hits and inverted indexes per course."""
        num_slots = len(self.timeslots)
        exclusive_index: dict[tuple[ConstraintKind, str], int] = {}
        weekly_bound: dict[str, int] = {}
        daily_bound: dict[tuple[str, int], int] = {}

        for ci, constraint in enumerate(self.constraints):
            if isinstance(constraint, ResourceExclusive):
                exclusive_index[(constraint.kind, constraint.resource_id)] = ci
            elif isinstance(constraint, LoadBound):
                if constraint.is_daily:
                    daily_bound[(constraint.faculty_id, constraint.day)] = ci
                else:
                    weekly_bound[constraint.faculty_id] = ci

        encodings = []
        for course_index, course in enumerate(self.problem.courses):
            self._check_deadline("encoding placements")
            domain = self.domains_by_course[course_index]
            group_ids = self.problem.get_course_groups(course.id)
            group_cis = [exclusive_index[(ConstraintKind.STUDENT_GROUP_OVERLAP, g)] for g in group_ids]

            claims = []
            load_hits = []
            support: dict[int, list[int]] = {}
            load_support: dict[int, list[int]] = {}

            for pi, placement in enumerate(domain):
                cis = list(group_cis)
                cis.append(exclusive_index[(ConstraintKind.FACULTY_OVERLAP, placement.faculty_id)])
                if placement.room_id is not None:
                    cis.append(exclusive_index[(ConstraintKind.ROOM_OVERLAP, placement.room_id)])
                keys = tuple(
                    ci * num_slots + slot
                    for ci in cis
                    for slot in self.constraints[ci].claims(placement)
                )
                claims.append(keys)
                for key in keys:
                    support.setdefault(key, []).append(pi)

                hits = []
                if placement.faculty_id in weekly_bound:
                    hits.append(weekly_bound[placement.faculty_id])
                day = self.timeslots[placement.timeslot_index].day
                if (placement.faculty_id, day) in daily_bound:
                    hits.append(daily_bound[(placement.faculty_id, day)])
                load_hits.append(tuple(hits))
                for ci in hits:
                    load_support.setdefault(ci, []).append(pi)

            encodings.append(CourseEncoding(
                domain=domain,
                claims=tuple(claims),
                load_hits=tuple(load_hits),
                support={k: tuple(v) for k, v in support.items()},
                load_support={k: tuple(v) for k, v in load_support.items()},
            ))

        return encodings

    # -------------------------------------------------------------------------
    # Build
    # -------------------------------------------------------------------------

    def build(self) -> SchedulingModel:
        """
        Run every build step and return the finished model.

        Raises:
            ModelError: If the input cannot be turned into a model
            BuildTimeout: If the deadline passes first
        """
        self.create_sessions()
        self.create_domains()
        self.add_constraints()

        model = SchedulingModel(
            problem=self.problem,
            timeslots=self.timeslots,
            sessions=self.sessions,
            encodings=self._encode_courses(),
            constraints=self.constraints,
        )

        logger.info(
            "Built model: %d sessions, %d placements, %d constraints",
            len(model.sessions),
            sum(len(e.domain) for e in model.encodings),
            len(model.constraints),
        )
        return model

    def get_statistics(self) -> dict[str, Any]:
        """Get builder state statistics."""
        return {
            "num_courses": len(self.problem.courses),
            "num_sessions": len(self.sessions),
            "num_timeslots": len(self.timeslots),
            "num_constraints": len(self.constraints),
            "sessions_created": self._sessions_created,
            "domains_created": self._domains_created,
            "constraints_added": self._constraints_added,
        }


def build_model(problem: ProblemInput, deadline: Optional[float] = None) -> SchedulingModel:
    """Build a scheduling model in one call."""
    return ModelBuilder(problem, deadline).build()


def _unique(items) -> list:
    """De-duplicate while keeping first-seen order."""
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result
