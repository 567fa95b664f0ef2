"""
Search worker: iterative depth-first backtracking with forward checking.

Each worker owns a private ``SearchState`` over the shared, read-only
``SchedulingModel``. Variable selection is MRV (smallest live domain
first); after every assignment the claimed (resource, timeslot) keys and
any load bound that filled up are pruned from the live domains of
neighbouring sessions. A wiped-out domain triggers backtracking.

The undo trail lives on the decision frames, so backtracking restores
exactly what the assignment removed.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..constraints import ConstraintKind, LoadBound
from ..model_builder import Placement, SchedulingModel

logger = logging.getLogger(__name__)


class WorkerStatus(str, Enum):
    """How a worker's search ended."""
    SOLVED = "solved"          # Complete consistent assignment found
    EXHAUSTED = "exhausted"    # Whole tree explored: no assignment exists
    TIMEOUT = "timeout"        # Deadline passed
    CANCELLED = "cancelled"    # Another worker committed first


@dataclass(frozen=True)
class WorkerStrategy:
    """
    Ordering policy of one worker.

    Worker 0 uses the natural ordering (ties by session order, values in
    domain order). Other workers break MRV ties and order values with a
    seeded permutation so the pool explores different parts of the tree.
    """
    worker_id: int
    seed: Optional[int] = None

    @classmethod
    def for_worker(cls, worker_id: int, base_seed: int = 0) -> "WorkerStrategy":
        if worker_id == 0:
            return cls(worker_id=0)
        return cls(worker_id=worker_id, seed=base_seed + worker_id)

    @property
    def randomized(self) -> bool:
        return self.seed is not None


@dataclass
class WorkerOutcome:
    """What a worker reports back to the orchestrator."""
    worker_id: int
    status: WorkerStatus
    assignment: dict[int, Placement] = field(default_factory=dict)
    partial: dict[int, Placement] = field(default_factory=dict)
    nodes: int = 0
    conflicts: Counter = field(default_factory=Counter)
    elapsed_seconds: float = 0.0
    objective_value: Optional[int] = None
    improving_moves: int = 0


@dataclass
class _Frame:
    """One decision level: the session, its ordered values and the undo trail."""
    session: int
    values: list[int]
    next: int = 0
    chosen: Optional[int] = None
    removed: list[tuple[int, int]] = field(default_factory=list)
    bumped: list[int] = field(default_factory=list)


# =============================================================================
# Search State
# =============================================================================

class SearchState:
    """
    Mutable per-worker state: live domains, chosen values and load counts.

    Live domains hold placement indices. Every live value is consistent
    with the current partial assignment.
    """

    def __init__(self, model: SchedulingModel):
        self.model = model
        self.num_slots = model.num_timeslots
        prototypes = [frozenset(range(len(e.domain))) for e in model.encodings]
        self.alive: list[set[int]] = [set(prototypes[s.course_index]) for s in model.sessions]
        self.chosen: list[Optional[int]] = [None] * len(model.sessions)
        self.depth = 0
        self.load: dict[int, int] = {}
        self.limits: dict[int, int] = {
            ci: c.limit for ci, c in enumerate(model.constraints) if isinstance(c, LoadBound)
        }

    def prune_full_bounds(self) -> Optional[ConstraintKind]:
        """Remove placements that would break a bound with no capacity at all."""
        for ci, limit in self.limits.items():
            if limit <= 0:
                wiped = self._prune_bound(ci, [])
                if wiped:
                    return ConstraintKind.FACULTY_LOAD
        return None

    def assign(self, frame: _Frame, value: int) -> Optional[ConstraintKind]:
        """
        Assign ``value`` to the frame's session and forward-check.

        Returns:
            The kind of constraint that wiped out a neighbour's domain, or
            None when every neighbour still has a live value
        """
        session = frame.session
        encoding = self.model.encoding_for(session)
        frame.chosen = value
        frame.removed = []
        frame.bumped = []
        self.chosen[session] = value
        self.depth += 1

        constraints = self.model.constraints
        for key in encoding.claims[value]:
            constraint = constraints[key // self.num_slots]
            for other in constraint.scope:
                if self.chosen[other] is not None:
                    continue
                targets = self.model.encoding_for(other).support.get(key)
                if not targets:
                    continue
                live = self.alive[other]
                for q in targets:
                    if q in live:
                        live.discard(q)
                        frame.removed.append((other, q))
                if not live:
                    return constraint.kind

        for ci in encoding.load_hits[value]:
            self.load[ci] = self.load.get(ci, 0) + 1
            frame.bumped.append(ci)
            if self.load[ci] >= self.limits[ci] and self._prune_bound(ci, frame.removed):
                return ConstraintKind.FACULTY_LOAD

        return None

    def _prune_bound(self, ci: int, removed: list[tuple[int, int]]) -> bool:
        """Remove placements counting towards a full bound; True on wipe-out."""
        for other in self.model.constraints[ci].scope:
            if self.chosen[other] is not None:
                continue
            targets = self.model.encoding_for(other).load_support.get(ci)
            if not targets:
                continue
            live = self.alive[other]
            for q in targets:
                if q in live:
                    live.discard(q)
                    removed.append((other, q))
            if not live:
                return True
        return False

    def undo(self, frame: _Frame) -> None:
        """Revert the frame's assignment and everything it pruned."""
        for other, q in frame.removed:
            self.alive[other].add(q)
        for ci in frame.bumped:
            self.load[ci] -= 1
        frame.removed = []
        frame.bumped = []
        frame.chosen = None
        self.chosen[frame.session] = None
        self.depth -= 1

    def snapshot(self) -> dict[int, Placement]:
        """Current (possibly partial) assignment as placements."""
        return {
            s: self.model.domains[s][value]
            for s, value in enumerate(self.chosen)
            if value is not None
        }


# =============================================================================
# Worker
# =============================================================================

class SearchWorker:
    """
    One independent backtracking search over a shared model.

    Polls the shared stop event and the deadline at every node and exits
    promptly once either fires.
    """

    def __init__(
        self,
        model: SchedulingModel,
        strategy: WorkerStrategy,
        stop_event: threading.Event,
        deadline: float,
    ):
        self.model = model
        self.strategy = strategy
        self.stop_event = stop_event
        self.deadline = deadline
        self.nodes = 0
        self.conflicts: Counter = Counter()

        self._rng = random.Random(strategy.seed) if strategy.randomized else None
        order = list(range(len(model.sessions)))
        if self._rng is not None:
            self._rng.shuffle(order)
        self._tie_rank = [0] * len(order)
        for rank, session in enumerate(order):
            self._tie_rank[session] = rank

    @property
    def worker_id(self) -> int:
        return self.strategy.worker_id

    def _interrupted(self) -> Optional[WorkerStatus]:
        if self.stop_event.is_set():
            return WorkerStatus.CANCELLED
        if time.monotonic() >= self.deadline:
            return WorkerStatus.TIMEOUT
        return None

    def _select(self, state: SearchState) -> int:
        """MRV: unassigned session with the fewest live values."""
        best = -1
        best_key = None
        for session, value in enumerate(state.chosen):
            if value is not None:
                continue
            key = (len(state.alive[session]), self._tie_rank[session])
            if best_key is None or key < best_key:
                best, best_key = session, key
        return best

    def _open_frame(self, state: SearchState) -> _Frame:
        session = self._select(state)
        values = sorted(state.alive[session])
        if self._rng is not None:
            self._rng.shuffle(values)
        return _Frame(session=session, values=values)

    def run(self) -> WorkerOutcome:
        """Search until a solution, exhaustion, cancellation or the deadline."""
        started = time.monotonic()
        total = len(self.model.sessions)
        best_partial: dict[int, Placement] = {}

        def finish(status: WorkerStatus, assignment: Optional[dict[int, Placement]] = None) -> WorkerOutcome:
            elapsed = time.monotonic() - started
            logger.debug(
                "Worker %d finished: %s after %d nodes in %.3fs",
                self.worker_id, status.value, self.nodes, elapsed,
            )
            return WorkerOutcome(
                worker_id=self.worker_id,
                status=status,
                assignment=assignment or {},
                partial=best_partial,
                nodes=self.nodes,
                conflicts=self.conflicts,
                elapsed_seconds=elapsed,
            )

        if total == 0:
            return finish(WorkerStatus.SOLVED, {})

        # Setting up the state is the slowest step on large models
        interrupted = self._interrupted()
        if interrupted is not None:
            return finish(interrupted)
        state = SearchState(self.model)

        kind = state.prune_full_bounds()
        if kind is not None:
            self.conflicts[kind] += 1
            return finish(WorkerStatus.EXHAUSTED)

        stack: list[_Frame] = []
        frame = self._open_frame(state)

        while True:
            interrupted = self._interrupted()
            if interrupted is not None:
                return finish(interrupted)
            self.nodes += 1

            if frame.next >= len(frame.values):
                if not stack:
                    return finish(WorkerStatus.EXHAUSTED)
                frame = stack.pop()
                state.undo(frame)
                continue

            value = frame.values[frame.next]
            frame.next += 1

            kind = state.assign(frame, value)
            if kind is not None:
                self.conflicts[kind] += 1
                state.undo(frame)
                continue

            if state.depth > len(best_partial):
                best_partial = state.snapshot()
            if state.depth == total:
                return finish(WorkerStatus.SOLVED, best_partial)

            stack.append(frame)
            frame = self._open_frame(state)
