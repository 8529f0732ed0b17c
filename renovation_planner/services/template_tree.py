"""
Read-only walks over a template's Phase → Package → Task tree.

Works on Template model instances or on any object graph exposing the same
attribute names (``phases``, ``packages``, ``tasks``, ``dependencies``), so
the metrics and schedule modules stay usable without a database session.
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator

from renovation_planner.services.dependency_graph import Edge, as_edges


def iter_tasks(template: Any) -> Iterator[Any]:
    """Yield every task in WBS order."""
    for phase in template.phases or ():
        for package in phase.packages or ():
            yield from package.tasks or ()


def iter_included_tasks(template: Any, excluded_task_ids: Iterable[int] = ()) -> Iterator[Any]:
    excluded = set(excluded_task_ids)
    for task in iter_tasks(template):
        if task.id not in excluded:
            yield task


def get_optional_tasks(template: Any) -> list:
    """Tasks the apply wizard offers as checkboxes."""
    return [task for task in iter_tasks(template) if task.is_optional]


def count_packages(template: Any) -> int:
    return sum(len(phase.packages or ()) for phase in template.phases or ())


def effective_edges(dependencies: Iterable[Any], included_task_ids: Iterable[int]) -> list[Edge]:
    """Edges whose predecessor and successor both survive the exclusion.

    Edges touching an excluded task are dropped silently; no replacement edge
    is synthesised across the gap.
    """
    included = set(included_task_ids)
    return [
        edge for edge in as_edges(dependencies)
        if edge.predecessor in included and edge.successor in included
    ]
