"""
Search orchestrator: races a pool of workers against a shared deadline.

All workers search the same read-only model with their own state. The
first terminal result (a complete assignment, or a proof that none
exists) is committed once to a ``ResultCell``; committing sets the shared
stop event and every other worker exits at its next node.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..constraints import ConstraintKind
from ..data.models import OptimizationObjective, SolveConfig
from ..diagnostics import Diagnostic, conflict_diagnostics, find_saturation
from ..model_builder import Placement, SchedulingModel, estimate_time_budget
from .objectives import ObjectiveWeights, improve_assignment, make_objective
from .worker import SearchWorker, WorkerOutcome, WorkerStatus, WorkerStrategy

logger = logging.getLogger(__name__)

# Extra wait for workers to notice the deadline
GRACE_PERIOD_SECONDS = 1.0


class SolveStatus(str, Enum):
    """Terminal status of a solve."""
    FEASIBLE = "FEASIBLE"
    INFEASIBLE = "INFEASIBLE"
    TIMEOUT_NO_SOLUTION = "TIMEOUT_NO_SOLUTION"
    TIMEOUT_PARTIAL = "TIMEOUT_PARTIAL"
    MODEL_ERROR = "MODEL_ERROR"


@dataclass
class SolveResult:
    """
    Outcome of one scheduling run.

    ``assignment`` maps session index to placement. It is complete only
    for FEASIBLE; for TIMEOUT_PARTIAL it holds the deepest partial
    assignment any worker reached.
    """
    status: SolveStatus
    assignment: dict[int, Placement] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    time_budget_seconds: float = 0.0
    worker_count: int = 0
    winning_worker: Optional[int] = None
    nodes_explored: int = 0
    conflicts: dict[ConstraintKind, int] = field(default_factory=dict)
    objective: OptimizationObjective = OptimizationObjective.NONE
    objective_value: Optional[int] = None

    @property
    def is_feasible(self) -> bool:
        return self.status == SolveStatus.FEASIBLE


class ResultCell:
    """
    Single-writer, one-time-commit slot for the winning outcome.

    The first ``offer`` wins and sets the stop event; later offers are
    rejected.
    """

    def __init__(self, stop_event: threading.Event):
        self._lock = threading.Lock()
        self._stop_event = stop_event
        self._value: Optional[WorkerOutcome] = None

    def offer(self, outcome: WorkerOutcome) -> bool:
        with self._lock:
            if self._value is not None:
                return False
            self._value = outcome
        self._stop_event.set()
        return True

    @property
    def value(self) -> Optional[WorkerOutcome]:
        with self._lock:
            return self._value

    @property
    def committed(self) -> bool:
        return self.value is not None


class SearchOrchestrator:
    """
    Runs saturation analysis, then the worker pool, for one model.

    Usage:
        result = SearchOrchestrator(model, config).run()
    """

    def __init__(
        self,
        model: SchedulingModel,
        config: Optional[SolveConfig] = None,
        weights: Optional[ObjectiveWeights] = None,
    ):
        self.model = model
        self.config = config or SolveConfig()
        self.weights = weights
        self.time_budget = self.config.time_budget_seconds or estimate_time_budget(model)

    def run(self, started: Optional[float] = None) -> SolveResult:
        """
        Solve within the time budget.

        Args:
            started: ``time.monotonic()`` instant the budget is counted
                from; defaults to now. Callers that build the model under
                the same budget pass the instant they started building.

        Returns:
            SolveResult with status FEASIBLE, INFEASIBLE,
            TIMEOUT_NO_SOLUTION, TIMEOUT_PARTIAL or MODEL_ERROR (a worker
            failed and none committed)
        """
        if started is None:
            started = time.monotonic()
        deadline = started + self.time_budget
        worker_count = self.config.worker_count

        result = SolveResult(
            status=SolveStatus.FEASIBLE,
            time_budget_seconds=self.time_budget,
            worker_count=worker_count,
            objective=self.config.optimization_objective,
        )

        if self.model.is_empty:
            result.elapsed_seconds = time.monotonic() - started
            return result

        saturated = find_saturation(self.model, deadline)
        if saturated:
            result.status = SolveStatus.INFEASIBLE
            result.diagnostics = saturated
            result.elapsed_seconds = time.monotonic() - started
            return result

        if time.monotonic() >= deadline:
            result.status = SolveStatus.TIMEOUT_NO_SOLUTION
            result.diagnostics = [self._budget_diagnostic("before search started")]
            result.elapsed_seconds = time.monotonic() - started
            logger.info("Time budget exhausted before search")
            return result

        logger.info(
            "Searching %d sessions with %d worker(s), budget %.1fs",
            len(self.model.sessions), worker_count, self.time_budget,
        )

        stop_event = threading.Event()
        cell = ResultCell(stop_event)
        workers = [
            SearchWorker(
                self.model,
                WorkerStrategy.for_worker(i, self.config.seed),
                stop_event,
                deadline,
            )
            for i in range(worker_count)
        ]

        pool = ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="search")
        futures = [pool.submit(self._run_worker, w, cell, deadline) for w in workers]
        remaining = max(0.0, deadline - time.monotonic())
        done, pending = wait(futures, timeout=remaining + GRACE_PERIOD_SECONDS)
        stop_event.set()
        # Stragglers exit at their next poll; do not block on them
        pool.shutdown(wait=False, cancel_futures=True)
        if pending:
            logger.warning("%d worker(s) still running after the grace period", len(pending))

        outcomes: list[WorkerOutcome] = []
        failures: list[str] = []
        for worker, future in zip(workers, futures):
            if future not in done:
                continue
            try:
                outcomes.append(future.result())
            except Exception as e:
                logger.exception("Search worker %d failed", worker.worker_id)
                failures.append(f"Search worker {worker.worker_id} failed: {e!r}")

        result.nodes_explored = sum(o.nodes for o in outcomes)
        conflicts: Counter = Counter()
        for outcome in outcomes:
            conflicts.update(outcome.conflicts)
        result.conflicts = dict(conflicts)
        result.elapsed_seconds = time.monotonic() - started

        winner = cell.value
        if winner is not None and winner.status == WorkerStatus.SOLVED:
            result.status = SolveStatus.FEASIBLE
            result.assignment = winner.assignment
            result.winning_worker = winner.worker_id
            result.objective_value = winner.objective_value
        elif winner is not None:
            result.status = SolveStatus.INFEASIBLE
            result.winning_worker = winner.worker_id
            result.diagnostics = conflict_diagnostics(winner.conflicts)
        elif failures:
            result.status = SolveStatus.MODEL_ERROR
            result.diagnostics = [Diagnostic(kind=None, message=message) for message in failures]
        else:
            deepest = max((o.partial for o in outcomes), key=len, default={})
            if self.config.allow_partial and deepest:
                result.status = SolveStatus.TIMEOUT_PARTIAL
                result.assignment = deepest
            else:
                result.status = SolveStatus.TIMEOUT_NO_SOLUTION
            result.diagnostics = [
                self._budget_diagnostic(
                    f"deepest search placed {len(deepest)} of {len(self.model.sessions)} sessions"
                ),
                *conflict_diagnostics(conflicts),
            ]

        logger.info(
            "Search finished: %s in %.3fs (%d nodes)",
            result.status.value, result.elapsed_seconds, result.nodes_explored,
        )
        return result

    def _budget_diagnostic(self, detail: str) -> Diagnostic:
        return Diagnostic(
            kind=None,
            message=f"Time budget of {self.time_budget:.1f}s exhausted; {detail}",
        )

    def _run_worker(self, worker: SearchWorker, cell: ResultCell, deadline: float) -> WorkerOutcome:
        outcome = worker.run()
        if outcome.status not in (WorkerStatus.SOLVED, WorkerStatus.EXHAUSTED):
            return outcome
        if not cell.offer(outcome):
            return outcome

        if outcome.status == WorkerStatus.SOLVED:
            objective = make_objective(
                self.model, self.config.optimization_objective, self.weights
            )
            if objective is not None:
                improved = improve_assignment(self.model, outcome.assignment, objective, deadline)
                outcome.assignment = improved.assignment
                outcome.objective_value = improved.final_cost
                outcome.improving_moves = improved.moves
        return outcome
