"""
Schedule derivation: forward pass over the effective dependency graph.

Dates are computed as integer day offsets from the project start and only
turned into calendar dates at the edges, so the same pass serves the
longest-path duration metric (no start date) and the apply step (with one).
Calendar days only; there is no holiday or working-week handling.

Rules (see DependencyType.successor_start):
    - a task with no predecessors starts at offset 0 (the start date)
    - a task with several predecessors takes the latest constraint
    - no task starts before the start date, whatever its lead time
    - end = start + estimated_duration_days
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Hashable, Iterable

from renovation_planner.services.dependency_graph import as_edges, topological_order
from renovation_planner.services.template_tree import effective_edges, iter_included_tasks


@dataclass
class ScheduledTask:
    task_id: int
    wbs_code: str
    name: str
    duration: int
    start_offset: int
    end_offset: int
    package_id: int | None = None
    phase_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None

    def to_dict(self) -> dict:
        return {
            "task_id": self.task_id,
            "wbs_code": self.wbs_code,
            "name": self.name,
            "duration": self.duration,
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
            "package_id": self.package_id,
            "phase_id": self.phase_id,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


@dataclass
class ScheduledGroup:
    """A phase or package window: min start / max end of the tasks inside it."""

    group_id: int
    wbs_code: str
    name: str
    start_date: date
    end_date: date
    children: list = field(default_factory=list)

    @property
    def duration(self) -> int:
        return (self.end_date - self.start_date).days

    def to_dict(self) -> dict:
        return {
            "id": self.group_id,
            "wbs_code": self.wbs_code,
            "name": self.name,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "duration": self.duration,
            "children": [c.to_dict() for c in self.children],
        }


@dataclass
class ScheduleResult:
    start_date: date
    end_date: date
    total_days: int
    tasks: dict = field(default_factory=dict)
    phases: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "total_days": self.total_days,
            "phases": [p.to_dict() for p in self.phases],
        }


# ── Forward pass ─────────────────────────────────────────────────────────────


def forward_pass(durations: dict[Hashable, int], edges: Iterable[Any]) -> dict[Hashable, tuple[int, int]]:
    """Return ``{task_id: (start_offset, end_offset)}`` for every key of durations.

    ``durations`` order is the tie-break order for the topological sort.
    Edges touching an unknown task are ignored. Raises GraphIntegrityError
    on a cycle.
    """
    snapshot = [e for e in as_edges(edges) if e.predecessor in durations and e.successor in durations]
    incoming: dict[Hashable, list] = {}
    for edge in snapshot:
        incoming.setdefault(edge.successor, []).append(edge)

    offsets: dict[Hashable, tuple[int, int]] = {}
    for task_id in topological_order(durations.keys(), snapshot):
        duration = durations[task_id]
        start = 0
        for edge in incoming.get(task_id, ()):
            pred_start, pred_end = offsets[edge.predecessor]
            start = max(start, edge.dependency_type.successor_start(
                pred_start, pred_end, edge.lag_days, duration,
            ))
        offsets[task_id] = (start, start + duration)
    return offsets


def longest_path_days(durations: dict[Hashable, int], edges: Iterable[Any]) -> int:
    """Length of the longest path through the graph, i.e. the latest end offset."""
    offsets = forward_pass(durations, edges)
    if not offsets:
        return 0
    return max(end for _start, end in offsets.values())


# ── Template schedule ────────────────────────────────────────────────────────


def calculate_schedule(template: Any, start_date: date, excluded_task_ids: Iterable[int] = ()) -> ScheduleResult:
    """
    Schedule a template tree from ``start_date`` with the given exclusions.

    Packages and phases span their included tasks; a package or phase with
    no included task collapses to the start date.
    """
    included = list(iter_included_tasks(template, excluded_task_ids))
    durations = {task.id: task.estimated_duration_days or 0 for task in included}
    edges = effective_edges(template.dependencies or (), durations.keys())
    offsets = forward_pass(durations, edges)

    scheduled: dict[int, ScheduledTask] = {}
    phases = []
    for phase in template.phases or ():
        packages = []
        for package in phase.packages or ():
            tasks = []
            for task in package.tasks or ():
                if task.id not in offsets:
                    continue
                start, end = offsets[task.id]
                item = ScheduledTask(
                    task_id=task.id,
                    wbs_code=task.wbs_code,
                    name=task.name,
                    duration=durations[task.id],
                    start_offset=start,
                    end_offset=end,
                    package_id=package.id,
                    phase_id=phase.id,
                    start_date=start_date + timedelta(days=start),
                    end_date=start_date + timedelta(days=end),
                )
                scheduled[task.id] = item
                tasks.append(item)
            packages.append(_group(package, tasks, start_date))
        phases.append(_group(phase, packages, start_date))

    total_days = max((t.end_offset for t in scheduled.values()), default=0)
    return ScheduleResult(
        start_date=start_date,
        end_date=start_date + timedelta(days=total_days),
        total_days=total_days,
        tasks=scheduled,
        phases=phases,
    )


def _group(node: Any, children: list, fallback: date) -> ScheduledGroup:
    if children:
        start = min(c.start_date for c in children)
        end = max(c.end_date for c in children)
    else:
        start = end = fallback
    return ScheduledGroup(
        group_id=node.id,
        wbs_code=node.wbs_code,
        name=node.name,
        start_date=start,
        end_date=end,
        children=children,
    )
