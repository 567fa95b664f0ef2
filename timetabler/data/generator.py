"""
Synthetic problem generator for testing the scheduler.

Generates institutional input of configurable size: faculty with partial
availability, student groups each taking a set of courses, lecture rooms
and labs, on a days x periods grid.

Usage:
    from timetabler.data.generator import generate_problem, generate_small_problem

    # Generate with custom config
    problem = generate_problem(GeneratorConfig(num_groups=12))

    # Quick test data
    small = generate_small_problem(seed=1)

    # Stress test data
    large = generate_large_problem(seed=1)
"""

from __future__ import annotations

import json
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .models import (
    Course,
    Faculty,
    ProblemInput,
    Room,
    StudentGroup,
    Timeslot,
)


# =============================================================================
# Name Data
# =============================================================================

SUBJECT_STEMS = [
    "Algorithms", "Databases", "Networks", "Calculus", "Statistics", "Physics",
    "Chemistry", "Economics", "Linguistics", "Ethics", "Robotics", "Graphics",
    "Compilers", "Security", "Optimisation", "Signals", "Genetics", "Accounting",
]

LAB_TYPE = "lab"
LECTURE_TYPE = "lecture_hall"
DAY_ABBREV = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


# =============================================================================
# Generator Configuration
# =============================================================================

@dataclass
class GeneratorConfig:
    """Configuration for problem generation.

    The defaults produce comfortably feasible problems: every group uses
    well under half of the grid, and each course has at least two
    eligible faculty.
    """
    # Entity counts
    num_faculty: int = 12
    num_groups: int = 6
    num_lecture_rooms: int = 6
    num_labs: int = 2
    courses_per_group: int = 4

    # Course settings
    min_sessions_per_course: int = 1
    max_sessions_per_course: int = 3
    lab_course_ratio: float = 0.2
    double_session_ratio: float = 0.1
    faculty_per_course: int = 2

    # Faculty settings
    max_unavailable_slots: int = 3
    max_weekly_sessions: Optional[int] = 16

    # Group settings
    min_group_size: int = 15
    max_group_size: int = 35

    # Grid
    num_days: int = 5
    periods_per_day: int = 6

    # Randomization
    seed: Optional[int] = None


# =============================================================================
# Generator Functions
# =============================================================================

def generate_problem(config: GeneratorConfig | None = None) -> ProblemInput:
    """
    Generate a synthetic scheduling problem.

    Args:
        config: Generator configuration (uses defaults if None)

    Returns:
        ProblemInput with generated data
    """
    if config is None:
        config = GeneratorConfig()

    rng = random.Random(config.seed)

    timeslots = _generate_timeslots(config)
    faculty_ids = [f"F{i + 1:03d}" for i in range(config.num_faculty)]
    courses, groups = _generate_courses_and_groups(config, faculty_ids, rng)
    faculty = _generate_faculty(config, faculty_ids, timeslots, rng)
    rooms = _generate_rooms(config, groups, rng)

    return ProblemInput(
        courses=courses,
        faculty=faculty,
        student_groups=groups,
        rooms=rooms,
        timeslots=timeslots,
    )


def generate_small_problem(seed: int | None = None) -> ProblemInput:
    """
    Generate a small problem for quick testing.

    - 6 faculty, 3 groups, 3 rooms
    - ~18 sessions on a 5 x 4 grid
    """
    config = GeneratorConfig(
        num_faculty=6,
        num_groups=3,
        num_lecture_rooms=2,
        num_labs=1,
        courses_per_group=3,
        max_sessions_per_course=2,
        periods_per_day=4,
        seed=seed,
    )
    return generate_problem(config)


def generate_medium_problem(seed: int | None = None) -> ProblemInput:
    """Generate a problem with the default configuration (~60 sessions)."""
    return generate_problem(GeneratorConfig(seed=seed))


def generate_large_problem(seed: int | None = None) -> ProblemInput:
    """
    Generate a large problem for stress testing.

    - 60 faculty, 30 groups, 24 rooms
    - ~360 sessions on a 5 x 8 grid
    """
    config = GeneratorConfig(
        num_faculty=60,
        num_groups=30,
        num_lecture_rooms=18,
        num_labs=6,
        courses_per_group=6,
        max_sessions_per_course=3,
        periods_per_day=8,
        max_weekly_sessions=20,
        seed=seed,
    )
    return generate_problem(config)


def save_generated_problem(problem: ProblemInput, path: str | Path) -> None:
    """Write a problem as camelCase JSON, the format the loader reads."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(problem_to_json_dict(problem), f, indent=2)


def problem_to_json_dict(problem: ProblemInput) -> dict[str, Any]:
    """Convert a problem into the camelCase dictionary used on the wire."""
    data = problem.model_dump(exclude_none=True)
    return _convert_keys_to_camel_case(data)


def get_generation_stats(problem: ProblemInput) -> dict[str, Any]:
    """Summary statistics for a generated problem."""
    grid_size = len(problem.timeslots)
    demand = sum(c.sessions_per_week * c.duration_slots for c in problem.courses)
    busiest_group = max(
        (
            sum(
                problem.get_course(cid).sessions_per_week * problem.get_course(cid).duration_slots
                for cid in g.course_ids
            )
            for g in problem.student_groups
        ),
        default=0,
    )
    return {
        **problem.summary(),
        "slot_demand": demand,
        "busiest_group_load": busiest_group,
        "busiest_group_utilization": round(busiest_group / grid_size, 2) if grid_size else 0.0,
    }


# =============================================================================
# Private Generator Helpers
# =============================================================================

def _generate_timeslots(config: GeneratorConfig) -> list[Timeslot]:
    """Generate the days x periods grid."""
    timeslots = []
    for day in range(config.num_days):
        for period in range(config.periods_per_day):
            timeslots.append(Timeslot(
                id=f"d{day}p{period + 1}",
                day=day,
                period=period,
                label=f"{DAY_ABBREV[day % 7]} P{period + 1}",
            ))
    return timeslots


def _generate_courses_and_groups(
    config: GeneratorConfig,
    faculty_ids: list[str],
    rng: random.Random,
) -> tuple[list[Course], list[StudentGroup]]:
    """Generate one set of courses per group; courses list their group."""
    courses: list[Course] = []
    groups: list[StudentGroup] = []

    for g in range(config.num_groups):
        group_id = f"G{g + 1:02d}"
        course_ids = []

        for c in range(config.courses_per_group):
            stem = SUBJECT_STEMS[(g * config.courses_per_group + c) % len(SUBJECT_STEMS)]
            course_id = f"{group_id}-C{c + 1}"
            is_lab = rng.random() < config.lab_course_ratio and config.num_labs > 0
            is_double = rng.random() < config.double_session_ratio and config.periods_per_day > 1
            num_eligible = min(config.faculty_per_course, len(faculty_ids))

            courses.append(Course(
                id=course_id,
                name=f"{stem} {'Lab' if is_lab else 'Lecture'} ({group_id})",
                sessions_per_week=rng.randint(
                    config.min_sessions_per_course, config.max_sessions_per_course
                ),
                duration_slots=2 if is_double else 1,
                eligible_faculty_ids=sorted(rng.sample(faculty_ids, num_eligible)),
                student_group_ids=[group_id],
                room_type=LAB_TYPE if is_lab else None,
            ))
            course_ids.append(course_id)

        groups.append(StudentGroup(
            id=group_id,
            name=f"Cohort {g + 1}",
            course_ids=course_ids,
            size=rng.randint(config.min_group_size, config.max_group_size),
        ))

    return courses, groups


def _generate_faculty(
    config: GeneratorConfig,
    faculty_ids: list[str],
    timeslots: list[Timeslot],
    rng: random.Random,
) -> list[Faculty]:
    """Generate faculty with a few unavailable slots each."""
    faculty = []
    all_slot_ids = [t.id for t in timeslots]

    for i, faculty_id in enumerate(faculty_ids):
        num_blocked = rng.randint(0, min(config.max_unavailable_slots, len(all_slot_ids)))
        blocked = set(rng.sample(all_slot_ids, num_blocked))
        available = [sid for sid in all_slot_ids if sid not in blocked]

        faculty.append(Faculty(
            id=faculty_id,
            name=f"Lecturer {i + 1}",
            # Full availability is left unset
            available_timeslot_ids=available if blocked else None,
            max_weekly_sessions=config.max_weekly_sessions,
        ))

    return faculty


def _generate_rooms(
    config: GeneratorConfig,
    groups: list[StudentGroup],
    rng: random.Random,
) -> list[Room]:
    """Generate lecture rooms and labs big enough for the largest group."""
    largest = max((g.size for g in groups), default=config.max_group_size)
    rooms = []

    for i in range(config.num_lecture_rooms):
        rooms.append(Room(
            id=f"R{101 + i}",
            name=f"Room {101 + i}",
            capacity=rng.randint(largest, largest + 20),
            type=LECTURE_TYPE,
        ))

    for i in range(config.num_labs):
        rooms.append(Room(
            id=f"LAB{i + 1}",
            name=f"Lab {i + 1}",
            capacity=rng.randint(largest, largest + 10),
            type=LAB_TYPE,
        ))

    return rooms


def _convert_keys_to_camel_case(obj: Any) -> Any:
    """Recursively convert dictionary keys from snake_case to camelCase."""

    def to_camel_case(name: str) -> str:
        head, *tail = name.split("_")
        return head + "".join(part.title() for part in tail)

    if isinstance(obj, dict):
        return {to_camel_case(k): _convert_keys_to_camel_case(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_convert_keys_to_camel_case(item) for item in obj]
    else:
        return obj
