"""Parallel backtracking search for timetables."""

from .objectives import (
    BalancedObjective,
    CompactObjective,
    ImprovementResult,
    Objective,
    ObjectiveWeights,
    improve_assignment,
    make_objective,
)
from .orchestrator import (
    GRACE_PERIOD_SECONDS,
    ResultCell,
    SearchOrchestrator,
    SolveResult,
    SolveStatus,
)
from .worker import (
    SearchState,
    SearchWorker,
    WorkerOutcome,
    WorkerStatus,
    WorkerStrategy,
)

__all__ = [
    "BalancedObjective",
    "CompactObjective",
    "ImprovementResult",
    "Objective",
    "ObjectiveWeights",
    "improve_assignment",
    "make_objective",
    "GRACE_PERIOD_SECONDS",
    "ResultCell",
    "SearchOrchestrator",
    "SolveResult",
    "SolveStatus",
    "SearchState",
    "SearchWorker",
    "WorkerOutcome",
    "WorkerStatus",
    "WorkerStrategy",
]
