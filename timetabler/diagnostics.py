"""
Infeasibility diagnostics.

Two sources of human-readable reasons:

1. Saturation analysis (before search). A session is *forced* onto a
   resource when every placement in its domain uses it. If the forced
   sessions of one resource need more slot-units than the union of
   timeslots their domains can reach, no timetable exists. Forced
   sessions above a faculty member's weekly limit are reported the same
   way.
2. Conflict statistics (after search). Each dead end the workers hit is
   attributed to the constraint kind that wiped out a domain; the counts
   are reported most frequent first.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Mapping, Optional

from .constraints import ConstraintKind, LoadBound, ResourceExclusive
from .model_builder import ModelError, SchedulingModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Diagnostic:
    """One reason a timetable could not be produced."""
    kind: Optional[ConstraintKind]
    message: str
    resource_id: Optional[str] = None
    count: Optional[int] = None

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}" if self.kind else self.message


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


# =============================================================================
# Saturation analysis
# =============================================================================

def _forced_sessions(
    model: SchedulingModel,
    constraint: ResourceExclusive,
    cache: dict[tuple[int, int], bool],
    ci: int,
) -> list[int]:
    """Sessions in scope whose every placement uses the resource."""
    forced = []
    for s in constraint.scope:
        key = (ci, model.sessions[s].course_index)
        if key not in cache:
            cache[key] = all(constraint.uses(p) for p in model.domains[s])
        if cache[key]:
            forced.append(s)
    return forced


def find_saturation(model: SchedulingModel, deadline: Optional[float] = None) -> list[Diagnostic]:
    """
    Prove infeasibility by counting, before any search.

    Args:
        model: The built model
        deadline: Optional ``time.monotonic()`` instant; the analysis stops
            early once it passes and returns what it found so far

    Returns:
        Diagnostics for every saturated resource (empty when counting
        alone cannot rule the problem out)
    """
    diagnostics: list[Diagnostic] = []
    forced_by_faculty: dict[str, list[int]] = {}
    forced_cache: dict[tuple[int, int], bool] = {}
    reach_cache: dict[int, frozenset[int]] = {}

    for ci, constraint in enumerate(model.constraints):
        if deadline is not None and time.monotonic() >= deadline:
            logger.info("Saturation analysis stopped at the deadline")
            return diagnostics
        if not isinstance(constraint, ResourceExclusive):
            continue
        forced = _forced_sessions(model, constraint, forced_cache, ci)
        if constraint.kind is ConstraintKind.FACULTY_OVERLAP:
            forced_by_faculty[constraint.resource_id] = forced
        if len(forced) < 2:
            continue

        reachable: set[int] = set()
        for s in forced:
            course_index = model.sessions[s].course_index
            if course_index not in reach_cache:
                reach_cache[course_index] = frozenset(
                    slot for placement in model.domains[s] for slot in placement.occupied
                )
            reachable |= reach_cache[course_index]
        needed = sum(model.sessions[s].duration for s in forced)

        if needed > len(reachable):
            diagnostics.append(Diagnostic(
                kind=constraint.kind,
                message=(
                    f"{constraint.resource_name} has {_plural(len(forced), 'required session')} "
                    f"but only {_plural(len(reachable), 'available slot')}"
                    + (f" ({needed} slot-units needed)" if needed != len(forced) else "")
                ),
                resource_id=constraint.resource_id,
                count=needed,
            ))

    for constraint in model.constraints:
        if not isinstance(constraint, LoadBound) or constraint.is_daily:
            continue
        forced = forced_by_faculty.get(constraint.faculty_id, [])
        if len(forced) > constraint.limit:
            diagnostics.append(Diagnostic(
                kind=ConstraintKind.FACULTY_LOAD,
                message=(
                    f"Faculty {constraint.faculty_id} must teach "
                    f"{_plural(len(forced), 'session')} but is limited to "
                    f"{constraint.limit} per week"
                ),
                resource_id=constraint.faculty_id,
                count=len(forced),
            ))

    if diagnostics:
        logger.info("Saturation analysis found %d saturated resource(s)", len(diagnostics))
    return diagnostics


# =============================================================================
# Search statistics and errors
# =============================================================================

def conflict_diagnostics(conflicts: Mapping[ConstraintKind, int]) -> list[Diagnostic]:
    """Dead ends per constraint kind, most frequent first."""
    ranked = sorted(
        ((kind, n) for kind, n in conflicts.items() if n > 0),
        key=lambda item: (-item[1], item[0].value),
    )
    return [
        Diagnostic(
            kind=kind,
            message=f"{kind.label} caused {_plural(n, 'dead end')} during search",
            count=n,
        )
        for kind, n in ranked
    ]


def model_error_diagnostics(error: ModelError) -> list[Diagnostic]:
    """Wrap a model construction failure."""
    return [Diagnostic(kind=error.kind, message=str(error), resource_id=error.course_id)]
