"""Entry point for the timetable scheduler."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional, Union

from .data.loader import load_problem_with_config
from .data.models import ProblemInput, SolveConfig
from .diagnostics import Diagnostic, model_error_diagnostics
from .model_builder import (
    BuildTimeout,
    ModelBuilder,
    ModelError,
    SchedulingModel,
    estimate_problem_budget,
)
from .output.extractor import ResultExtractor, failure_output
from .output.schema import TimetableOutput
from .search.objectives import ObjectiveWeights
from .search.orchestrator import SearchOrchestrator, SolveResult, SolveStatus

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Builds, searches and extracts for one problem.

    Usage:
        scheduler = Scheduler(problem, config)
        output = scheduler.solve()

    Raises ``InvalidInputError`` for broken input. Model construction
    failures are reported as a MODEL_ERROR output, not raised.
    """

    def __init__(
        self,
        problem: ProblemInput,
        config: Optional[SolveConfig] = None,
        weights: Optional[ObjectiveWeights] = None,
    ):
        self.problem = problem
        self.config = config or SolveConfig()
        self.weights = weights
        self.model: Optional[SchedulingModel] = None
        self.result: Optional[SolveResult] = None

    def solve(self) -> TimetableOutput:
        """Build and search under one time budget counted from the start of the build."""
        started = time.monotonic()
        budget = self.config.time_budget_seconds or estimate_problem_budget(self.problem)
        try:
            self.model = ModelBuilder(self.problem, deadline=started + budget).build()
        except ModelError as e:
            logger.warning("Model construction failed: %s", e)
            return failure_output(
                SolveStatus.MODEL_ERROR,
                model_error_diagnostics(e),
                solve_time_seconds=round(time.monotonic() - started, 3),
                time_budget_seconds=budget,
                worker_count=self.config.worker_count,
            )
        except BuildTimeout as e:
            logger.warning("%s", e)
            return failure_output(
                SolveStatus.TIMEOUT_NO_SOLUTION,
                [Diagnostic(kind=None, message=f"Time budget of {budget:.1f}s exhausted; {e}")],
                solve_time_seconds=round(time.monotonic() - started, 3),
                time_budget_seconds=budget,
                worker_count=self.config.worker_count,
            )

        orchestrator = SearchOrchestrator(self.model, self.config, self.weights)
        self.result = orchestrator.run(started=started)
        return ResultExtractor(self.model).extract(self.result)


def solve_timetable(
    problem: ProblemInput,
    config: Optional[SolveConfig] = None,
    weights: Optional[ObjectiveWeights] = None,
) -> TimetableOutput:
    """
    Solve a timetabling problem.

    Args:
        problem: Validated problem input
        config: Per-run settings (budget, workers, objective)
        weights: Optional soft objective weights

    Returns:
        TimetableOutput with status, diagnostics and (when FEASIBLE) the
        ordered session assignments

    Raises:
        InvalidInputError: If the input has dangling references or
            duplicate IDs
    """
    return Scheduler(problem, config, weights).solve()


def solve_file(
    data_path: Union[str, Path],
    config: Optional[SolveConfig] = None,
) -> TimetableOutput:
    """
    Load a problem JSON file and solve it.

    A ``config`` argument takes precedence over the file's ``config`` block.
    """
    problem, file_config = load_problem_with_config(data_path)
    return solve_timetable(problem, config or file_config)
