"""
Impact analysis over a task dependency graph.

Answers "what else moves if this task moves (or disappears)?":
    - get_dependent_tasks:     everything reachable forward (scheduled after it)
    - get_prerequisite_tasks:  everything reachable backward (must happen before it)
    - get_affected_tasks:      both directions at once, for the template editor
    - exclusion_warnings:      dependents of every excluded task, for the apply
                               wizard's advisory warning

Results are deduplicated, never contain the queried task, and keep BFS
discovery order so responses are stable.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Hashable, Iterable

from renovation_planner.services.dependency_graph import as_edges


def _reachable(adjacency: dict[Hashable, list[Hashable]], start: Hashable) -> list[Hashable]:
    seen = {start}
    found = []
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for neighbour in adjacency.get(current, ()):
            if neighbour not in seen:
                seen.add(neighbour)
                found.append(neighbour)
                queue.append(neighbour)
    return found


def _forward(edges: Iterable[Any]) -> dict[Hashable, list[Hashable]]:
    adjacency: dict[Hashable, list[Hashable]] = {}
    for edge in as_edges(edges):
        adjacency.setdefault(edge.predecessor, []).append(edge.successor)
    return adjacency


def _backward(edges: Iterable[Any]) -> dict[Hashable, list[Hashable]]:
    adjacency: dict[Hashable, list[Hashable]] = {}
    for edge in as_edges(edges):
        adjacency.setdefault(edge.successor, []).append(edge.predecessor)
    return adjacency


def get_dependent_tasks(edges: Iterable[Any], task_id: Hashable) -> list[Hashable]:
    """All tasks transitively reachable by following edges forward from task_id."""
    return _reachable(_forward(edges), task_id)


def get_prerequisite_tasks(edges: Iterable[Any], task_id: Hashable) -> list[Hashable]:
    """All tasks transitively reachable by following edges backward from task_id."""
    return _reachable(_backward(edges), task_id)


def get_direct_successors(edges: Iterable[Any], task_id: Hashable) -> list[Hashable]:
    return list(dict.fromkeys(e.successor for e in as_edges(edges) if e.predecessor == task_id))


def get_direct_predecessors(edges: Iterable[Any], task_id: Hashable) -> list[Hashable]:
    return list(dict.fromkeys(e.predecessor for e in as_edges(edges) if e.successor == task_id))


def get_affected_tasks(edges: Iterable[Any], task_id: Hashable) -> dict:
    """Both closures for one task; used to highlight what an edge deletion touches."""
    snapshot = as_edges(edges)
    return {
        "task_id": task_id,
        "dependents": get_dependent_tasks(snapshot, task_id),
        "prerequisites": get_prerequisite_tasks(snapshot, task_id),
    }


def exclusion_warnings(edges: Iterable[Any], excluded_task_ids: Iterable[Hashable]) -> list[Hashable]:
    """Tasks downstream of any excluded task that are themselves still included.

    Computed against the full, unfiltered edge set: a dependent two hops
    behind an excluded task is reported even when the hop in between is
    excluded as well. Advisory only; never blocks an apply.
    """
    excluded = list(dict.fromkeys(excluded_task_ids))
    excluded_set = set(excluded)
    adjacency = _forward(edges)
    warnings: dict[Hashable, None] = {}
    for task_id in excluded:
        for dependent in _reachable(adjacency, task_id):
            if dependent not in excluded_set:
                warnings[dependent] = None
    return list(warnings)
