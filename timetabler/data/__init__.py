"""Data models, loading and generation utilities."""

from .models import (
    Course,
    Faculty,
    InvalidInputError,
    OptimizationObjective,
    ProblemInput,
    Room,
    SolveConfig,
    StudentGroup,
    Timeslot,
)
from .loader import (
    load_problem,
    load_problem_with_config,
    parse_problem,
    parse_problem_with_config,
)
from .generator import (
    GeneratorConfig,
    generate_problem,
    generate_small_problem,
    generate_medium_problem,
    generate_large_problem,
    save_generated_problem,
    get_generation_stats,
)

__all__ = [
    # Models
    "Course",
    "Faculty",
    "InvalidInputError",
    "OptimizationObjective",
    "ProblemInput",
    "Room",
    "SolveConfig",
    "StudentGroup",
    "Timeslot",
    # Loader
    "load_problem",
    "load_problem_with_config",
    "parse_problem",
    "parse_problem_with_config",
    # Generator
    "GeneratorConfig",
    "generate_problem",
    "generate_small_problem",
    "generate_medium_problem",
    "generate_large_problem",
    "save_generated_problem",
    "get_generation_stats",
]
