"""
Dependency resolution using NetworkX.

This module handles:
- Per-edge satisfaction rules for the four dependency types
- Eligibility of a task to leave the blocked state
- Cycle detection for dependency validation
- Finding the direct dependents to re-evaluate after a change
"""

import uuid
from typing import Callable, Iterable, Optional

import networkx as nx

from weekflow.models import DependencyType, TaskDependency, TaskStatus

# Resolves a prerequisite id to its current (effective) status, None if gone.
StatusLookup = Callable[[uuid.UUID], Optional[TaskStatus]]


def is_edge_satisfied(
    dependency_type: DependencyType,
    prerequisite_status: Optional[TaskStatus],
) -> bool:
    """
    Decide whether one edge allows its dependent to start.

    - finish_to_start: prerequisite must be done
    - start_to_start / start_to_finish: prerequisite must have begun
    - finish_to_finish: constrains finishing only, never starting

    A missing prerequisite (already deleted) counts as satisfied.
    """
    if prerequisite_status is None:
        return True

    if dependency_type == DependencyType.FINISH_TO_START:
        return prerequisite_status == TaskStatus.DONE
    if dependency_type in (DependencyType.START_TO_START, DependencyType.START_TO_FINISH):
        return prerequisite_status != TaskStatus.TODO
    return True


def is_eligible_to_start(
    task_id: uuid.UUID,
    dependency_edges: Iterable[TaskDependency],
    task_lookup: StatusLookup,
) -> bool:
    """
    A task is eligible iff every edge where it is the dependent is satisfied.

    Edges belonging to other dependents are ignored, so callers may pass the
    full edge list.
    """
    return all(
        is_edge_satisfied(edge.dependency_type, task_lookup(edge.depends_on_task_id))
        for edge in dependency_edges
        if edge.task_id == task_id
    )


def build_dependency_graph(dependencies: Iterable[TaskDependency]) -> nx.DiGraph:
    """
    Build a DiGraph where edges go prerequisite -> dependent.
    """
    graph = nx.DiGraph()
    for dep in dependencies:
        graph.add_edge(dep.depends_on_task_id, dep.task_id, dependency_type=dep.dependency_type)
    return graph


def would_create_cycle(
    dependencies: Iterable[TaskDependency],
    task_id: uuid.UUID,
    depends_on_task_id: uuid.UUID,
) -> bool:
    """
    Check if adding "task_id depends on depends_on_task_id" would close a cycle.

    The new edge closes a cycle exactly when task_id already reaches
    depends_on_task_id through existing edges.
    """
    if task_id == depends_on_task_id:
        return True

    graph = build_dependency_graph(dependencies)
    graph.add_edge(depends_on_task_id, task_id)

    try:
        nx.find_cycle(graph, source=task_id)
        return True
    except nx.NetworkXNoCycle:
        return False


def direct_dependents(
    dependencies: Iterable[TaskDependency],
    prerequisite_ids: Iterable[uuid.UUID],
) -> list[uuid.UUID]:
    """Ids of tasks that depend directly on any of the given prerequisites."""
    wanted = set(prerequisite_ids)
    seen: list[uuid.UUID] = []
    for dep in dependencies:
        if dep.depends_on_task_id in wanted and dep.task_id not in seen:
            seen.append(dep.task_id)
    return seen
