"""
Task dependency graph: pure data, no I/O.

Tasks are nodes; TemplateDependency rows are typed, lagged directed edges
(predecessor → successor). Every function takes the full edge list as one
immutable snapshot per call and keeps no state between calls, so editor
validation stays a plain function of ``existing_edges + [proposed_edge]``.

Usage:
    from renovation_planner.services.dependency_graph import (
        Edge, detect_circular_dependency, validate_new_dependency,
    )

    check = detect_circular_dependency(template.dependencies)
    if check.has_circle:
        ...
    result = validate_new_dependency(existing, Edge(predecessor=4, successor=7))
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable, Iterable

from renovation_planner.core.exceptions import GraphIntegrityError

logger = logging.getLogger(__name__)

_EXHAUSTED = object()


# ═════════════════════════════════════════════════════════════════════════════
# Dependency types
# ═════════════════════════════════════════════════════════════════════════════


class DependencyType(str, Enum):
    """The four precedence relations, each with its own date rule."""

    FS = "FS"   # finish-to-start
    SS = "SS"   # start-to-start
    FF = "FF"   # finish-to-finish
    SF = "SF"   # start-to-finish

    @classmethod
    def parse(cls, value: Any) -> "DependencyType":
        """Accept a member, its code ("FS") or its long name ("finish_to_start").

        None maps to FS. Raises ValueError for anything else.
        """
        if value is None or value == "":
            return cls.FS
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        if text.upper() in cls.__members__:
            return cls[text.upper()]
        alias = _LONG_NAMES.get(text.lower())
        if alias is None:
            raise ValueError(
                f"Invalid dependency_type: '{value}'. Allowed: {[m.value for m in cls]}"
            )
        return alias

    def successor_start(self, pred_start: int, pred_end: int, lag_days: int, duration: int) -> int:
        """Earliest start this edge permits for a successor of ``duration`` days.

        FS: successor.start = predecessor.end + lag
        SS: successor.start = predecessor.start + lag
        FF: successor.end   = predecessor.end + lag    → start = end - duration
        SF: successor.end   = predecessor.start + lag  → start = end - duration
        """
        if self is DependencyType.FS:
            return pred_end + lag_days
        if self is DependencyType.SS:
            return pred_start + lag_days
        if self is DependencyType.FF:
            return pred_end + lag_days - duration
        if self is DependencyType.SF:
            return pred_start + lag_days - duration
        raise ValueError(f"Unhandled dependency type {self!r}")


_LONG_NAMES = {
    "finish_to_start": DependencyType.FS,
    "start_to_start": DependencyType.SS,
    "finish_to_finish": DependencyType.FF,
    "start_to_finish": DependencyType.SF,
}


# ═════════════════════════════════════════════════════════════════════════════
# Edge & result types
# ═════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Edge:
    """One directed dependency edge."""

    predecessor: Hashable
    successor: Hashable
    dependency_type: DependencyType = DependencyType.FS
    lag_days: int = 0

    @property
    def is_self_reference(self) -> bool:
        return self.predecessor == self.successor

    def to_dict(self) -> dict:
        return {
            "predecessor_task_id": self.predecessor,
            "successor_task_id": self.successor,
            "dependency_type": self.dependency_type.value,
            "lag_days": self.lag_days,
        }


@dataclass
class CycleCheck:
    """Outcome of detect_circular_dependency()."""

    has_circle: bool
    cycle: list = field(default_factory=list)

    def to_dict(self) -> dict:
        result = {"has_circle": self.has_circle}
        if self.has_circle:
            result["cycle"] = self.cycle
        return result


@dataclass
class DependencyValidation:
    """Outcome of validate_new_dependency(). error is 'cycle' or 'self_reference'."""

    ok: bool
    error: str | None = None
    cycle: list = field(default_factory=list)

    @property
    def message(self) -> str | None:
        if self.error == "self_reference":
            return "Task cannot depend on itself"
        if self.error == "cycle":
            return "Adding this dependency would create a circular dependency"
        return None

    def to_dict(self) -> dict:
        if self.ok:
            return {"ok": True}
        result = {"ok": False, "error": self.error, "message": self.message}
        if self.cycle:
            result["cycle"] = self.cycle
        return result


# ═════════════════════════════════════════════════════════════════════════════
# Normalisation
# ═════════════════════════════════════════════════════════════════════════════


def _field(item: Any, *names: str) -> Any:
    for name in names:
        value = item.get(name) if isinstance(item, dict) else getattr(item, name, None)
        if value is not None:
            return value
    return None


def to_edge(item: Any) -> Edge:
    """Coerce an Edge, a TemplateDependency/ProjectDependency row or a dict into an Edge.

    Dicts and objects may use ``predecessor_task_id``/``successor_task_id`` or
    the short ``predecessor``/``successor`` keys.
    """
    if isinstance(item, Edge):
        return item
    predecessor = _field(item, "predecessor_task_id", "predecessor")
    successor = _field(item, "successor_task_id", "successor")
    if predecessor is None or successor is None:
        raise ValueError(f"Dependency is missing predecessor or successor: {item!r}")
    return Edge(
        predecessor=predecessor,
        successor=successor,
        dependency_type=DependencyType.parse(_field(item, "dependency_type")),
        lag_days=int(_field(item, "lag_days") or 0),
    )


def as_edges(items: Iterable[Any]) -> list[Edge]:
    """Snapshot an iterable of dependency-like objects as a list of Edges."""
    return [to_edge(item) for item in items]


def build_adjacency(edges: Iterable[Any]) -> dict[Hashable, list[Hashable]]:
    """predecessor → [successors]; every node touched by an edge is a key."""
    graph: dict[Hashable, list[Hashable]] = {}
    for edge in as_edges(edges):
        graph.setdefault(edge.predecessor, []).append(edge.successor)
        graph.setdefault(edge.successor, [])
    return graph


# ═════════════════════════════════════════════════════════════════════════════
# Cycle detection
# ═════════════════════════════════════════════════════════════════════════════


def detect_circular_dependency(edges: Iterable[Any]) -> CycleCheck:
    """
    Depth-first search from every node, tracking the nodes on the current
    stack. A back-edge onto the stack is a cycle; the returned path starts
    and ends on the node the back-edge points at.

    Iterative so that long chains do not hit the recursion limit.
    """
    graph = build_adjacency(edges)
    visited: set = set()

    for root in graph:
        if root in visited:
            continue
        visited.add(root)
        path = [root]
        on_stack = {root}
        children = [iter(graph[root])]

        while children:
            child = next(children[-1], _EXHAUSTED)
            if child is _EXHAUSTED:
                children.pop()
                on_stack.discard(path.pop())
                continue
            if child in on_stack:
                start = path.index(child)
                return CycleCheck(has_circle=True, cycle=path[start:] + [child])
            if child in visited:
                continue
            visited.add(child)
            on_stack.add(child)
            path.append(child)
            children.append(iter(graph[child]))

    return CycleCheck(has_circle=False)


def validate_new_dependency(existing_edges: Iterable[Any], proposed_edge: Any) -> DependencyValidation:
    """Check a proposed edge against the existing edge set without mutating it.

    Self references are rejected before the graph is built; otherwise the
    detector runs on ``existing + [proposed]``.
    """
    proposed = to_edge(proposed_edge)
    if proposed.is_self_reference:
        return DependencyValidation(ok=False, error="self_reference")

    check = detect_circular_dependency(as_edges(existing_edges) + [proposed])
    if check.has_circle:
        logger.warning(
            "Rejected dependency %s -> %s: cycle %s",
            proposed.predecessor, proposed.successor, check.cycle,
        )
        return DependencyValidation(ok=False, error="cycle", cycle=check.cycle)
    return DependencyValidation(ok=True)


# ═════════════════════════════════════════════════════════════════════════════
# Ordering
# ═════════════════════════════════════════════════════════════════════════════


def topological_order(nodes: Iterable[Hashable], edges: Iterable[Any]) -> list[Hashable]:
    """Kahn's algorithm over ``nodes``; ties keep the order ``nodes`` were given in.

    Edges touching a node outside ``nodes`` are ignored. Raises
    GraphIntegrityError when the remaining graph is cyclic.
    """
    ordered_nodes = list(dict.fromkeys(nodes))
    members = set(ordered_nodes)
    position = {node: i for i, node in enumerate(ordered_nodes)}
    inner = [
        edge for edge in as_edges(edges)
        if edge.predecessor in members and edge.successor in members
    ]

    successors: dict[Hashable, list[Hashable]] = {node: [] for node in ordered_nodes}
    in_degree = {node: 0 for node in ordered_nodes}
    for edge in inner:
        successors[edge.predecessor].append(edge.successor)
        in_degree[edge.successor] += 1

    ready = deque(node for node in ordered_nodes if in_degree[node] == 0)
    result = []
    while ready:
        node = ready.popleft()
        result.append(node)
        released = []
        for succ in successors[node]:
            in_degree[succ] -= 1
            if in_degree[succ] == 0:
                released.append(succ)
        ready.extend(sorted(released, key=position.__getitem__))

    if len(result) != len(ordered_nodes):
        check = detect_circular_dependency(inner)
        raise GraphIntegrityError("Dependency graph contains a cycle", cycle=check.cycle)
    return result
