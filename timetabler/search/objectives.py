"""
Soft objectives and local improvement.

Hard constraints are never traded away: improvement only moves a session
to another placement that stays consistent with every other session.

Objectives:
- compact: idle periods between the first and last session of a day,
  summed over faculty and student groups
- balanced: same-day repeats of a course plus the spread between a
  faculty member's busiest and quietest day
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Optional

from ..constraints import ConstraintKind, LoadBound, ResourceExclusive
from ..data.models import OptimizationObjective
from ..model_builder import Placement, SchedulingModel

logger = logging.getLogger(__name__)

Entity = tuple[str, str]


@dataclass(frozen=True)
class ObjectiveWeights:
    """Relative weights of the soft objective terms."""
    gap: int = 1
    repeat: int = 1
    spread: int = 1


# =============================================================================
# Objectives
# =============================================================================

class Objective:
    """
    Cost over a complete assignment, decomposed per entity.

    An entity is a faculty member, student group or course. Moving one
    session only changes the cost of the entities it touches, so local
    search evaluates deltas on those alone.
    """

    name: OptimizationObjective = OptimizationObjective.NONE
    entity_kinds: tuple[str, ...] = ()

    def __init__(self, model: SchedulingModel, weights: Optional[ObjectiveWeights] = None):
        self.model = model
        self.weights = weights or ObjectiveWeights()
        self.scopes: dict[Entity, tuple[int, ...]] = {}
        for constraint in model.constraints:
            if isinstance(constraint, ResourceExclusive):
                if constraint.kind is ConstraintKind.FACULTY_OVERLAP:
                    self.scopes[("faculty", constraint.resource_id)] = constraint.scope
                elif constraint.kind is ConstraintKind.STUDENT_GROUP_OVERLAP:
                    self.scopes[("group", constraint.resource_id)] = constraint.scope
        courses: dict[str, list[int]] = defaultdict(list)
        for session in model.sessions:
            courses[session.course_id].append(session.index)
        for course_id, scope in courses.items():
            self.scopes[("course", course_id)] = tuple(scope)
        self.days = sorted({t.day for t in model.timeslots})

    def entities(self) -> list[Entity]:
        return [e for e in self.scopes if e[0] in self.entity_kinds]

    def touched(self, session: int, placement: Placement) -> set[Entity]:
        """Entities whose cost depends on where ``session`` sits."""
        found: set[Entity] = set()
        if "faculty" in self.entity_kinds:
            found.add(("faculty", placement.faculty_id))
        if "group" in self.entity_kinds:
            found.update(("group", g) for g in self.model.sessions[session].group_ids)
        if "course" in self.entity_kinds:
            found.add(("course", self.model.sessions[session].course_id))
        return found

    def entity_cost(self, entity: Entity, assignment: dict[int, Placement]) -> int:
        raise NotImplementedError

    def cost_of(self, entities: set[Entity], assignment: dict[int, Placement]) -> int:
        return sum(self.entity_cost(e, assignment) for e in entities if e in self.scopes)

    def total(self, assignment: dict[int, Placement]) -> int:
        return sum(self.entity_cost(e, assignment) for e in self.entities())

    def _placements(self, entity: Entity, assignment: dict[int, Placement]) -> list[Placement]:
        kind, entity_id = entity
        placements = []
        for session in self.scopes[entity]:
            placement = assignment.get(session)
            if placement is None:
                continue
            if kind == "faculty" and placement.faculty_id != entity_id:
                continue
            placements.append(placement)
        return placements


class CompactObjective(Objective):
    """Minimise idle gaps in faculty and student group days."""

    name = OptimizationObjective.COMPACT
    entity_kinds = ("faculty", "group")

    def entity_cost(self, entity: Entity, assignment: dict[int, Placement]) -> int:
        by_day: dict[int, set[int]] = defaultdict(set)
        for placement in self._placements(entity, assignment):
            for slot in placement.occupied:
                by_day[self.model.timeslots[slot].day].add(slot)
        gaps = 0
        for slots in by_day.values():
            gaps += max(slots) - min(slots) + 1 - len(slots)
        return gaps * self.weights.gap


class BalancedObjective(Objective):
    """Minimise same-day course repeats and uneven faculty days."""

    name = OptimizationObjective.BALANCED
    entity_kinds = ("faculty", "course")

    def entity_cost(self, entity: Entity, assignment: dict[int, Placement]) -> int:
        per_day = Counter(
            self.model.timeslot_of(p).day for p in self._placements(entity, assignment)
        )
        if entity[0] == "course":
            return sum(n - 1 for n in per_day.values() if n > 1) * self.weights.repeat
        if not per_day:
            return 0
        daily = [per_day.get(day, 0) for day in self.days]
        return (max(daily) - min(daily)) * self.weights.spread


OBJECTIVES = {
    OptimizationObjective.COMPACT: CompactObjective,
    OptimizationObjective.BALANCED: BalancedObjective,
}


def make_objective(
    model: SchedulingModel,
    objective: OptimizationObjective,
    weights: Optional[ObjectiveWeights] = None,
) -> Optional[Objective]:
    """Objective instance for a config value, or None for no objective."""
    factory = OBJECTIVES.get(objective)
    return factory(model, weights) if factory else None


# =============================================================================
# Local improvement
# =============================================================================

@dataclass
class ImprovementResult:
    assignment: dict[int, Placement]
    initial_cost: int
    final_cost: int
    moves: int
    completed: bool  # False when the deadline cut it short


def improve_assignment(
    model: SchedulingModel,
    assignment: dict[int, Placement],
    objective: Objective,
    deadline: float,
    stop_event: Optional[threading.Event] = None,
) -> ImprovementResult:
    """
    First-improvement local search over single-session moves.

    Repeatedly moves one session to another placement of its domain when
    the move keeps every hard constraint and lowers the objective. Stops
    when a full pass finds no improving move or the deadline passes.
    Deterministic for a given starting assignment.
    """
    limits = {
        ci: c.limit for ci, c in enumerate(model.constraints) if isinstance(c, LoadBound)
    }
    current = dict(assignment)
    chosen: dict[int, int] = {}
    occupancy: dict[int, int] = {}
    load: Counter = Counter()

    for session, placement in current.items():
        encoding = model.encoding_for(session)
        value = model.domains[session].index(placement)
        chosen[session] = value
        for key in encoding.claims[value]:
            occupancy[key] = session
        load.update(encoding.load_hits[value])

    def fits(session: int, value: int) -> bool:
        encoding = model.encoding_for(session)
        for key in encoding.claims[value]:
            owner = occupancy.get(key)
            if owner is not None and owner != session:
                return False
        own_hits = set(encoding.load_hits[chosen[session]])
        for ci in encoding.load_hits[value]:
            if ci not in own_hits and load[ci] + 1 > limits[ci]:
                return False
        return True

    def expired() -> bool:
        if stop_event is not None and stop_event.is_set():
            return True
        return time.monotonic() >= deadline

    initial_cost = objective.total(current)
    moves = 0
    completed = True
    improved = True

    while improved:
        improved = False
        for session in range(len(model.sessions)):
            encoding = model.encoding_for(session)
            old_value = chosen[session]
            old_placement = current[session]
            for value, placement in enumerate(model.domains[session]):
                if expired():
                    completed = False
                    break
                if value == old_value or not fits(session, value):
                    continue
                touched = objective.touched(session, old_placement) | objective.touched(session, placement)
                before = objective.cost_of(touched, current)
                current[session] = placement
                after = objective.cost_of(touched, current)
                if after >= before:
                    current[session] = old_placement
                    continue

                for key in encoding.claims[old_value]:
                    del occupancy[key]
                for key in encoding.claims[value]:
                    occupancy[key] = session
                load.subtract(encoding.load_hits[old_value])
                load.update(encoding.load_hits[value])
                chosen[session] = value
                moves += 1
                improved = True
                break
            if not completed:
                break
        if not completed:
            break

    final_cost = objective.total(current)
    logger.info(
        "Local search (%s): cost %d -> %d in %d move(s)%s",
        objective.name.value, initial_cost, final_cost, moves,
        "" if completed else " (deadline reached)",
    )
    return ImprovementResult(
        assignment=current,
        initial_cost=initial_cost,
        final_cost=final_cost,
        moves=moves,
        completed=completed,
    )
