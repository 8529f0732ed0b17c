"""
Template apply: Service Layer.

Instantiates a template into a renovation project:

    preview_apply()               metrics + downstream warnings (+ schedule) for
                                  an exclusion set; read-only
    apply_template_to_project()   copy phases, packages, included tasks, effective
                                  dependencies and quality gates into the project,
                                  with planned dates from the forward pass

Apply is one transaction. Every validation (unknown / non-optional exclusions,
inactive template, cyclic effective graph) runs before the first write; a
storage failure afterwards rolls the session back and surfaces as
TemplateApplyError, so a project never holds a partial copy.

Applying the same template twice is allowed: the second call creates a second,
independent set of records and RenovationProject.template_id is overwritten.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from flask import current_app

from renovation_planner.core.exceptions import (
    GraphIntegrityError,
    NotFoundError,
    TemplateApplyError,
    ValidationError,
)
from renovation_planner.models import db
from renovation_planner.models.project import (
    ProjectDependency,
    ProjectPackage,
    ProjectPhase,
    ProjectQualityGate,
    ProjectTask,
    RenovationProject,
)
from renovation_planner.services import impact_analysis
from renovation_planner.services.dependency_graph import detect_circular_dependency
from renovation_planner.services.schedule import calculate_schedule
from renovation_planner.services.template_metrics import calculate_template_metrics
from renovation_planner.services.template_service import get_template
from renovation_planner.services.template_tree import effective_edges, iter_tasks

logger = logging.getLogger(__name__)


@dataclass
class ApplyPreview:
    template_id: int
    excluded_task_ids: list
    metrics: dict
    warnings: list
    schedule: dict | None = None

    def to_dict(self) -> dict:
        result = {
            "template_id": self.template_id,
            "excluded_task_ids": self.excluded_task_ids,
            "metrics": self.metrics,
            "warnings": self.warnings,
        }
        if self.schedule is not None:
            result["schedule"] = self.schedule
        return result


@dataclass
class ApplyResult:
    template_id: int
    template_name: str
    project_id: int
    start_date: date
    end_date: date
    counts: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "template_id": self.template_id,
            "template_name": self.template_name,
            "project_id": self.project_id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            **self.counts,
        }


# ── Shared checks ────────────────────────────────────────────────────────────


def resolve_exclusions(template, excluded_task_ids):
    """Validate an exclusion set against the template; returns it as a set.

    Raises:
        ValidationError: an id is not a task of this template (code
            ``unknown_task``) or names a non-optional task (code ``not_optional``).
    """
    excluded = set(excluded_task_ids or ())
    tasks = {task.id: task for task in iter_tasks(template)}

    unknown = sorted(excluded - tasks.keys())
    if unknown:
        raise ValidationError(
            "Excluded task ids are not part of this template",
            details={"code": "unknown_task", "task_ids": unknown},
        )
    required = sorted(tid for tid in excluded if not tasks[tid].is_optional)
    if required:
        raise ValidationError(
            "Only optional tasks can be excluded",
            details={"code": "not_optional", "task_ids": required},
        )
    return excluded


def _effective_graph(template, excluded):
    included_ids = [task.id for task in iter_tasks(template) if task.id not in excluded]
    edges = effective_edges(template.dependencies, included_ids)
    check = detect_circular_dependency(edges)
    if check.has_circle:
        logger.error(
            "Template %s has a cyclic dependency graph: %s",
            template.id, check.cycle, extra={"template_id": template.id},
        )
        raise GraphIntegrityError(
            f"Template {template.id} dependency graph contains a cycle",
            cycle=check.cycle,
        )
    return edges


# ── Preview ──────────────────────────────────────────────────────────────────


def preview_apply(template_id, excluded_task_ids=(), start_date=None):
    """What applying with this exclusion set would produce, without writing.

    The schedule is only computed when ``start_date`` is given.
    """
    template = get_template(template_id)
    excluded = resolve_exclusions(template, excluded_task_ids)
    _effective_graph(template, excluded)

    metrics = calculate_template_metrics(template, excluded)
    warnings = impact_analysis.exclusion_warnings(template.dependencies, sorted(excluded))
    schedule = None
    if start_date is not None:
        schedule = calculate_schedule(template, start_date, excluded).to_dict()

    return ApplyPreview(
        template_id=template.id,
        excluded_task_ids=sorted(excluded),
        metrics=metrics.to_dict(),
        warnings=warnings,
        schedule=schedule,
    )


# ── Apply ────────────────────────────────────────────────────────────────────


def _stage(collection, record):
    """Attach one record to its parent collection in the pending transaction."""
    collection.append(record)
    return record


def apply_template_to_project(template_id, project_id, start_date, excluded_task_ids=()):
    """
    Copy a template into a project in a single transaction.

    Args:
        template_id: Source template.
        project_id: Target RenovationProject.
        start_date: Offset 0 of the forward pass; past dates are accepted.
        excluded_task_ids: Optional task ids to skip.

    Returns:
        ApplyResult with per-kind creation counts.

    Raises:
        NotFoundError: unknown template or project.
        ValidationError: bad exclusion set or inactive template.
        GraphIntegrityError: the effective graph is cyclic; nothing written.
        TemplateApplyError: storage failure; session rolled back.
    """
    template = get_template(template_id)
    project = db.session.get(RenovationProject, project_id)
    if project is None:
        raise NotFoundError(resource="RenovationProject", resource_id=project_id)
    if not template.is_active and current_app.config.get("TEMPLATE_APPLY_REQUIRE_ACTIVE", True):
        raise ValidationError(
            "Template is inactive and cannot be applied",
            details={"code": "inactive_template"},
        )

    excluded = resolve_exclusions(template, excluded_task_ids)
    edges = _effective_graph(template, excluded)
    schedule = calculate_schedule(template, start_date, excluded)
    log_extra = {"template_id": template.id, "project_id": project.id}
    logger.info(
        "Applying template_id=%s to project_id=%s excluded=%s start=%s",
        template.id, project.id, len(excluded), start_date, extra=log_extra,
    )

    counts = {
        "phases_created": 0,
        "packages_created": 0,
        "tasks_created": 0,
        "dependencies_created": 0,
        "gates_created": 0,
    }
    try:
        phase_map, package_map, task_map = {}, {}, {}
        for phase, phase_window in zip(template.phases, schedule.phases):
            new_phase = _stage(project.phases, ProjectPhase(
                project_id=project.id,
                source_phase_id=phase.id,
                name=phase.name,
                description=phase.description,
                sort_order=phase.sort_order,
                wbs_code=phase.wbs_code,
                planned_start_date=phase_window.start_date,
                planned_end_date=phase_window.end_date,
            ))
            db.session.flush()
            phase_map[phase.id] = new_phase
            counts["phases_created"] += 1

            for package, package_window in zip(phase.packages, phase_window.children):
                new_package = _stage(new_phase.packages, ProjectPackage(
                    phase_id=new_phase.id,
                    source_package_id=package.id,
                    name=package.name,
                    description=package.description,
                    sort_order=package.sort_order,
                    wbs_code=package.wbs_code,
                    trade_category=package.trade_category,
                    estimated_cost=package.estimated_cost,
                    planned_start_date=package_window.start_date,
                    planned_end_date=package_window.end_date,
                ))
                db.session.flush()
                package_map[package.id] = new_package
                counts["packages_created"] += 1

                for task in package.tasks:
                    if task.id in excluded:
                        continue
                    slot = schedule.tasks[task.id]
                    new_task = _stage(new_package.tasks, ProjectTask(
                        package_id=new_package.id,
                        source_task_id=task.id,
                        name=task.name,
                        description=task.description,
                        sort_order=task.sort_order,
                        wbs_code=task.wbs_code,
                        estimated_duration_days=task.estimated_duration_days or 0,
                        estimated_cost=task.estimated_cost,
                        trade_category=task.trade_category,
                        is_optional=task.is_optional,
                        materials_list=list(task.materials_list or []),
                        notes=task.notes,
                        checklist=[dict(item, done=False) for item in task.checklist_template or []],
                        planned_start_date=slot.start_date,
                        planned_end_date=slot.end_date,
                    ))
                    db.session.flush()
                    task_map[task.id] = new_task
                    counts["tasks_created"] += 1

        for edge in edges:
            _stage(project.dependencies, ProjectDependency(
                project_id=project.id,
                predecessor_task_id=task_map[edge.predecessor].id,
                successor_task_id=task_map[edge.successor].id,
                dependency_type=edge.dependency_type.value,
                lag_days=edge.lag_days,
            ))
            counts["dependencies_created"] += 1

        for gate in template.quality_gates:
            _stage(project.quality_gates, ProjectQualityGate(
                project_id=project.id,
                source_gate_id=gate.id,
                gate_level=gate.gate_level,
                phase_id=phase_map[gate.phase_id].id if gate.phase_id else None,
                package_id=package_map[gate.package_id].id if gate.package_id else None,
                name=gate.name,
                description=gate.description,
                checklist_items=list(gate.checklist_items or []),
                min_photos_required=gate.min_photos_required,
                photo_types=list(gate.photo_types or []),
                is_blocking=gate.is_blocking,
                auto_approve_when_complete=gate.auto_approve_when_complete,
            ))
            counts["gates_created"] += 1

        project.template_id = template.id
        project.planned_start_date = schedule.start_date
        project.planned_end_date = schedule.end_date
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        logger.error(
            "Template apply failed template_id=%s project_id=%s: %s",
            template_id, project_id, exc, extra=log_extra, exc_info=True,
        )
        raise TemplateApplyError(template_id, project_id) from exc

    logger.info(
        "Template applied template_id=%s project_id=%s tasks=%s deps=%s excluded=%s",
        template_id, project_id, counts["tasks_created"], counts["dependencies_created"],
        len(excluded), extra=log_extra,
    )
    return ApplyResult(
        template_id=template_id,
        template_name=template.name,
        project_id=project_id,
        start_date=schedule.start_date,
        end_date=schedule.end_date,
        counts=counts,
    )
