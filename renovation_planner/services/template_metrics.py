"""
Template metrics: counts, duration and cost of a template under an exclusion set.

A pure function of ``(template, excluded_task_ids)``: the apply wizard calls it
again on every checkbox toggle, the caller owns the exclusion set, nothing
is cached here.

    task_count     included tasks
    phase_count    all phases (exclusion never removes a phase)
    package_count  all packages (exclusion never removes a package)
    total_days     longest path through the effective dependency graph
    total_cost     sum of included tasks' estimated_cost, null counted as 0

The template's own total_duration_days / total_estimated_cost columns are a
cache written by refresh_cached_totals(); they are never read back as input.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from renovation_planner.services.schedule import longest_path_days
from renovation_planner.services.template_tree import (
    count_packages,
    effective_edges,
    iter_included_tasks,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateMetrics:
    task_count: int
    phase_count: int
    package_count: int
    total_days: int
    total_cost: float

    def to_dict(self) -> dict:
        return {
            "task_count": self.task_count,
            "phase_count": self.phase_count,
            "package_count": self.package_count,
            "total_days": self.total_days,
            "total_cost": self.total_cost,
        }


def calculate_template_metrics(template: Any, excluded_task_ids: Iterable[int] = ()) -> TemplateMetrics:
    """Roll up a template tree, skipping tasks in ``excluded_task_ids``."""
    included = list(iter_included_tasks(template, excluded_task_ids))
    durations = {task.id: task.estimated_duration_days or 0 for task in included}
    edges = effective_edges(template.dependencies or (), durations.keys())

    return TemplateMetrics(
        task_count=len(included),
        phase_count=len(template.phases or ()),
        package_count=count_packages(template),
        total_days=longest_path_days(durations, edges),
        total_cost=float(sum(task.estimated_cost or 0 for task in included)),
    )


def refresh_cached_totals(template: Any) -> TemplateMetrics:
    """Recompute the denormalised totals on a template from its live tree.

    Called by the authoring service after every structural change. Does not
    commit; the caller owns the transaction.
    """
    metrics = calculate_template_metrics(template)
    template.total_duration_days = metrics.total_days
    template.total_estimated_cost = metrics.total_cost
    logger.debug(
        "Template totals refreshed id=%s days=%s cost=%s",
        getattr(template, "id", None), metrics.total_days, metrics.total_cost,
    )
    return metrics
