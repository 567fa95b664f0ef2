"""Timetabler - class timetable scheduling with parallel backtracking search."""

from .data.models import InvalidInputError, OptimizationObjective, ProblemInput, SolveConfig
from .main import Scheduler, solve_timetable
from .model_builder import ModelBuilder, ModelError, SchedulingModel, build_model
from .output.schema import TimetableOutput
from .search.orchestrator import SearchOrchestrator, SolveResult, SolveStatus

__version__ = "0.1.0"

__all__ = [
    # Input
    "InvalidInputError",
    "OptimizationObjective",
    "ProblemInput",
    "SolveConfig",
    # Model
    "ModelBuilder",
    "ModelError",
    "SchedulingModel",
    "build_model",
    # Solve
    "Scheduler",
    "SearchOrchestrator",
    "SolveResult",
    "SolveStatus",
    "solve_timetable",
    # Output
    "TimetableOutput",
]
