# ABOUTME: Dependency validator for one goal's milestone graph: blocking checks, strict edits, cycle search.
# ABOUTME: Pure functions over GoalModel; networkx does the graph work. Dangling ids always count as unmet.

from dataclasses import dataclass, field

import networkx as nx

from core.exceptions import (
    CycleDetectedError,
    NotFoundError,
    SelfReferenceError,
    UnknownDependencyError,
    UnmetDependency,
)
from core.schemas import GoalModel, MilestoneModel


@dataclass
class GraphReport:
    """Result of checking a whole goal's dependency graph."""

    missing_ids: list[str] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)

    @property
    def has_missing(self) -> bool:
        return bool(self.missing_ids)

    @property
    def has_cycles(self) -> bool:
        return bool(self.cycles)

    @property
    def is_valid(self) -> bool:
        return not (self.has_missing or self.has_cycles)


def require_milestone(goal: GoalModel, milestone_id: str) -> MilestoneModel:
    """Return the milestone with this id or raise NotFoundError."""
    milestone = goal.get_milestone(milestone_id)
    if milestone is None:
        raise NotFoundError("milestone", milestone_id)
    return milestone


def unmet_dependencies(goal: GoalModel, milestone: MilestoneModel) -> list[UnmetDependency]:
    """Direct prerequisites of milestone that are not completed, in declared order."""
    unmet = []
    for dep_id in milestone.dependencies:
        dep = goal.get_milestone(dep_id)
        if dep is None:
            unmet.append(UnmetDependency(id=dep_id))
        elif not dep.is_completed:
            unmet.append(UnmetDependency(id=dep.id, title=dep.title))
    return unmet


def is_blocked(goal: GoalModel, milestone_id: str) -> bool:
    """True if the milestone is incomplete and any dependency is incomplete or missing."""
    milestone = require_milestone(goal, milestone_id)
    if milestone.is_completed:
        return False
    return bool(unmet_dependencies(goal, milestone))


def dependency_graph(
    goal: GoalModel, overrides: dict[str, list[str]] | None = None
) -> nx.DiGraph:
    """Directed graph with an edge from each milestone to each of its prerequisites.

    overrides replaces the dependency list of the given milestone ids, so a
    proposed edit can be checked before it is applied. Dangling ids are skipped.
    """
    overrides = overrides or {}
    known = [m.id for m in goal.milestones]
    known_set = set(known)
    graph = nx.DiGraph()
    graph.add_nodes_from(known)
    for milestone in goal.milestones:
        deps = overrides.get(milestone.id, milestone.dependencies)
        graph.add_edges_from((milestone.id, dep) for dep in deps if dep in known_set)
    return graph


def find_cycle(goal: GoalModel, overrides: dict[str, list[str]] | None = None) -> list[str]:
    """Milestone ids along the first dependency cycle found, or [] if acyclic."""
    try:
        edges = nx.find_cycle(dependency_graph(goal, overrides))
    except nx.NetworkXNoCycle:
        return []
    return [source for source, _target in edges]


def _cycle_through(graph: nx.DiGraph, milestone_id: str) -> list[str]:
    for dep_id in graph.successors(milestone_id):
        if nx.has_path(graph, dep_id, milestone_id):
            return [milestone_id] + nx.shortest_path(graph, dep_id, milestone_id)[:-1]
    return []


def set_dependencies(
    goal: GoalModel, milestone_id: str, candidate_ids: list[str]
) -> MilestoneModel:
    """Replace a milestone's dependencies, all-or-nothing.

    Raises NotFoundError, SelfReferenceError, UnknownDependencyError (listing
    every invalid id) or CycleDetectedError; the milestone is untouched on error.
    """
    milestone = require_milestone(goal, milestone_id)
    requested: list[str] = []
    for dep in candidate_ids:
        dep_id = str(dep)
        if dep_id not in requested:
            requested.append(dep_id)

    if milestone_id in requested:
        raise SelfReferenceError(milestone_id)

    known = {m.id for m in goal.milestones}
    unknown = [dep_id for dep_id in requested if dep_id not in known]
    if unknown:
        raise UnknownDependencyError(unknown)

    # Only cycles through the edited milestone can be introduced by this edit.
    cycle = _cycle_through(dependency_graph(goal, {milestone_id: requested}), milestone_id)
    if cycle:
        raise CycleDetectedError(cycle)

    milestone.dependencies = requested
    return milestone


def validate_graph(goal: GoalModel) -> GraphReport:
    """Report dangling dependency ids and every cycle in the goal's graph."""
    known = {m.id for m in goal.milestones}
    missing: list[str] = []
    for milestone in goal.ordered_milestones():
        for dep_id in milestone.dependencies:
            if dep_id not in known and dep_id not in missing:
                missing.append(dep_id)
    cycles = [list(cycle) for cycle in nx.simple_cycles(dependency_graph(goal))]
    return GraphReport(missing_ids=missing, cycles=cycles)


def topological_order(goal: GoalModel) -> list[str]:
    """Milestone ids in an unlock sequence: prerequisites first, ties broken by order."""
    order_of = {m.id: (m.order, m.id) for m in goal.milestones}
    prerequisites_first = dependency_graph(goal).reverse(copy=True)
    try:
        return list(
            nx.lexicographical_topological_sort(prerequisites_first, key=order_of.__getitem__)
        )
    except nx.NetworkXUnfeasible:
        raise CycleDetectedError(find_cycle(goal)) from None
