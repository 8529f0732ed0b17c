"""
Template storage: Service Layer.

Business logic for:
    - Template listing / lookup:  active, category and scope filters
    - Template authoring:         template, phase, package, task, quality gate
    - Dependency editing:         self-reference + cycle + same-template checks
    - Impact queries:             dependents / prerequisites of one task
    - Duplication:                deep copy with id remapping
    - Cached totals:              total_duration_days / total_estimated_cost are
                                  recomputed before every structural commit

Transaction policy: public write functions call db.session.commit() on
success. Internal helpers use flush() for ID generation.
"""

import logging

from sqlalchemy import select

from renovation_planner.core.exceptions import NotFoundError, ValidationError
from renovation_planner.models import db
from renovation_planner.models.template import (
    GATE_LEVELS,
    ROOM_TYPES,
    TEMPLATE_CATEGORIES,
    TEMPLATE_SCOPES,
    TRADE_CATEGORIES,
    Template,
    TemplateDependency,
    TemplatePackage,
    TemplatePhase,
    TemplateQualityGate,
    TemplateTask,
)
from renovation_planner.services import impact_analysis
from renovation_planner.services.dependency_graph import (
    DependencyType,
    Edge,
    validate_new_dependency,
)
from renovation_planner.services.template_metrics import refresh_cached_totals

logger = logging.getLogger(__name__)


# ── Validation helpers ───────────────────────────────────────────────────────


def _validate_enum(value, allowed, field_name):
    if value is not None and value not in allowed:
        raise ValidationError(
            f"Invalid {field_name}: '{value}'. Allowed: {sorted(allowed)}",
            details={"code": "invalid_enum", "field": field_name},
        )


def _required(data, *fields):
    missing = [f for f in fields if not data.get(f)]
    if missing:
        raise ValidationError(
            f"{', '.join(missing)} {'is' if len(missing) == 1 else 'are'} required",
            details={"code": "required", "fields": missing},
        )


def _non_negative_int(value, field_name, default=0):
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(
            f"{field_name} must be a non-negative integer",
            details={"code": "invalid_number", "field": field_name},
        )
    return value


def _non_negative_number(value, field_name):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValidationError(
            f"{field_name} must be a non-negative number",
            details={"code": "invalid_number", "field": field_name},
        )
    return float(value)


def _bool_field(data, field_name, default=False):
    """JSON booleans only; "false" / 0 are rejected instead of coerced."""
    value = data.get(field_name, default)
    if not isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be true or false",
            details={"code": "invalid_type", "field": field_name},
        )
    return value


def _validate_checklist(items, field_name):
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError(f"{field_name} must be a list", details={"code": "invalid_list", "field": field_name})
    cleaned = []
    for i, item in enumerate(items):
        if not isinstance(item, dict) or not item.get("text"):
            raise ValidationError(
                f"{field_name}[{i}] needs a text",
                details={"code": "invalid_list", "field": field_name},
            )
        cleaned.append({
            "id": str(item.get("id") or f"item-{i + 1}"),
            "text": item["text"],
            "required": bool(item.get("required", False)),
        })
    return cleaned


# ── Lookups ──────────────────────────────────────────────────────────────────


def list_templates(active=None, category=None, scope=None):
    """Return templates ordered by category, then name.

    Args:
        active: True / False filters on is_active; None returns both.
        category: Optional category filter.
        scope: Optional scope filter ("unit" | "room").
    """
    stmt = select(Template)
    if active is not None:
        stmt = stmt.where(Template.is_active.is_(bool(active)))
    if category:
        stmt = stmt.where(Template.category == category)
    if scope:
        stmt = stmt.where(Template.scope == scope)
    stmt = stmt.order_by(Template.category, Template.name)
    return list(db.session.execute(stmt).scalars())


def get_template(template_id):
    """Load a template; the tree is reached through its relationships.

    Raises:
        NotFoundError: unknown template id.
    """
    template = db.session.get(Template, template_id)
    if template is None:
        raise NotFoundError(resource="Template", resource_id=template_id)
    return template


def _get_phase(phase_id):
    phase = db.session.get(TemplatePhase, phase_id)
    if phase is None:
        raise NotFoundError(resource="TemplatePhase", resource_id=phase_id)
    return phase


def _get_package(package_id):
    package = db.session.get(TemplatePackage, package_id)
    if package is None:
        raise NotFoundError(resource="TemplatePackage", resource_id=package_id)
    return package


def get_template_task(template_id, task_id):
    """Fetch a task scoped to its template so ids from other templates are never matched."""
    stmt = (
        select(TemplateTask)
        .join(TemplatePackage, TemplateTask.package_id == TemplatePackage.id)
        .join(TemplatePhase, TemplatePackage.phase_id == TemplatePhase.id)
        .where(TemplateTask.id == task_id, TemplatePhase.template_id == template_id)
    )
    task = db.session.execute(stmt).scalar_one_or_none()
    if task is None:
        raise NotFoundError(resource="TemplateTask", resource_id=task_id)
    return task


# ── Template CRUD ────────────────────────────────────────────────────────────


def create_template(data, created_by=None):
    """Create an empty template. Room-scoped templates need a target_room_type."""
    _required(data, "name", "category", "scope")
    _validate_enum(data["category"], TEMPLATE_CATEGORIES, "category")
    _validate_enum(data["scope"], TEMPLATE_SCOPES, "scope")
    _validate_enum(data.get("target_room_type"), ROOM_TYPES, "target_room_type")
    if data["scope"] == "room" and not data.get("target_room_type"):
        raise ValidationError(
            "target_room_type required for room-scoped templates",
            details={"code": "required", "fields": ["target_room_type"]},
        )

    template = Template(
        name=data["name"],
        description=data.get("description"),
        category=data["category"],
        scope=data["scope"],
        target_room_type=data.get("target_room_type"),
        is_active=_bool_field(data, "is_active", default=True),
        created_by=created_by,
        total_duration_days=0,
        total_estimated_cost=0.0,
    )
    db.session.add(template)
    db.session.commit()
    logger.info("Template created id=%s name=%s", template.id, template.name)
    return template


def update_template(template, data):
    """Update whitelisted template fields."""
    _validate_enum(data.get("category"), TEMPLATE_CATEGORIES, "category")
    _validate_enum(data.get("scope"), TEMPLATE_SCOPES, "scope")
    _validate_enum(data.get("target_room_type"), ROOM_TYPES, "target_room_type")
    if "is_active" in data:
        _bool_field(data, "is_active")

    scope = data.get("scope", template.scope)
    room_type = data["target_room_type"] if "target_room_type" in data else template.target_room_type
    if scope == "room" and not room_type:
        raise ValidationError(
            "target_room_type required for room-scoped templates",
            details={"code": "required", "fields": ["target_room_type"]},
        )

    for f in ("name", "description", "category", "scope", "target_room_type", "is_active"):
        if f in data:
            setattr(template, f, data[f])
    db.session.commit()
    logger.info("Template updated id=%s", template.id)
    return template


def delete_template(template_id):
    """Delete a template and, through the cascades, its whole tree, edges and gates.

    Projects built from it keep their copies; template_id on a project is
    provenance only.
    """
    template = get_template(template_id)
    db.session.delete(template)
    db.session.commit()
    logger.info("Template deleted id=%s", template_id)


_REORDER_LEVELS = ("phase", "package", "task")


def _reorder_targets(template, item_type):
    if item_type == "phase":
        return {p.id: p for p in template.phases}
    if item_type == "package":
        return {pkg.id: pkg for p in template.phases for pkg in p.packages}
    return {t.id: t for p in template.phases for pkg in p.packages for t in pkg.tasks}


def reorder_items(template_id, item_type, items):
    """
    Bulk-update sort_order of phases, packages or tasks of one template.

    Args:
        template_id: Owning template; ids outside it are rejected.
        item_type: "phase" | "package" | "task".
        items: [{"id": int, "sort_order": int >= 0}, ...], non-empty.

    Returns:
        Number of records updated.

    Raises:
        ValidationError: bad type, empty / malformed items, or foreign ids
            (code ``unknown_item`` with ``ids``).
    """
    if not item_type:
        raise ValidationError("type is required", details={"code": "required", "fields": ["type"]})
    if not isinstance(item_type, str) or item_type not in _REORDER_LEVELS:
        raise ValidationError(
            f"Invalid type: '{item_type}'. Allowed: {list(_REORDER_LEVELS)}",
            details={"code": "invalid_enum", "field": "type"},
        )
    if not isinstance(items, list) or not items:
        raise ValidationError(
            "items must be a non-empty list",
            details={"code": "invalid_list", "field": "items"},
        )
    for item in items:
        item_id = item.get("id") if isinstance(item, dict) else None
        if isinstance(item_id, bool) or not isinstance(item_id, int) or item.get("sort_order") is None:
            raise ValidationError(
                "Each item needs an integer id and a sort_order",
                details={"code": "invalid_list", "field": "items"},
            )
        _non_negative_int(item["sort_order"], "sort_order")

    template = get_template(template_id)
    targets = _reorder_targets(template, item_type)
    unknown = sorted({item["id"] for item in items} - targets.keys())
    if unknown:
        raise ValidationError(
            f"{item_type} ids are not part of this template",
            details={"code": "unknown_item", "ids": unknown},
        )

    for item in items:
        targets[item["id"]].sort_order = item["sort_order"]
    db.session.flush()
    refresh_cached_totals(template)
    db.session.commit()
    logger.info("Template reordered id=%s type=%s count=%s", template_id, item_type, len(items))
    return len(items)


# ── Tree authoring ───────────────────────────────────────────────────────────


def create_phase(template_id, data):
    _required(data, "name", "wbs_code")
    template = get_template(template_id)
    phase = TemplatePhase(
        name=data["name"],
        description=data.get("description"),
        wbs_code=data["wbs_code"],
        sort_order=_non_negative_int(data.get("sort_order"), "sort_order", default=len(template.phases)),
        estimated_duration_days=data.get("estimated_duration_days"),
    )
    template.phases.append(phase)
    db.session.flush()
    refresh_cached_totals(template)
    db.session.commit()
    logger.info("TemplatePhase created id=%s template_id=%s", phase.id, template_id)
    return phase


def create_package(phase_id, data):
    _required(data, "name", "wbs_code")
    _validate_enum(data.get("trade_category"), TRADE_CATEGORIES, "trade_category")
    phase = _get_phase(phase_id)
    package = TemplatePackage(
        name=data["name"],
        description=data.get("description"),
        wbs_code=data["wbs_code"],
        sort_order=_non_negative_int(data.get("sort_order"), "sort_order", default=len(phase.packages)),
        trade_category=data.get("trade_category"),
        estimated_duration_days=data.get("estimated_duration_days"),
        estimated_cost=_non_negative_number(data.get("estimated_cost"), "estimated_cost"),
    )
    phase.packages.append(package)
    db.session.flush()
    refresh_cached_totals(phase.template)
    db.session.commit()
    logger.info("TemplatePackage created id=%s phase_id=%s", package.id, phase_id)
    return package


def create_task(package_id, data):
    """Create a task; duration must be a non-negative integer, cost non-negative or null."""
    _required(data, "name", "wbs_code")
    _validate_enum(data.get("trade_category"), TRADE_CATEGORIES, "trade_category")
    package = _get_package(package_id)
    task = TemplateTask(
        name=data["name"],
        description=data.get("description"),
        wbs_code=data["wbs_code"],
        sort_order=_non_negative_int(data.get("sort_order"), "sort_order", default=len(package.tasks)),
        estimated_duration_days=_non_negative_int(
            data.get("estimated_duration_days"), "estimated_duration_days",
        ),
        estimated_cost=_non_negative_number(data.get("estimated_cost"), "estimated_cost"),
        trade_category=data.get("trade_category"),
        is_optional=_bool_field(data, "is_optional"),
        materials_list=data.get("materials_list") or [],
        notes=data.get("notes"),
        checklist_template=_validate_checklist(data.get("checklist_template"), "checklist_template"),
    )
    package.tasks.append(task)
    db.session.flush()
    refresh_cached_totals(package.phase.template)
    db.session.commit()
    logger.info("TemplateTask created id=%s package_id=%s", task.id, package_id)
    return task


def create_quality_gate(template_id, data):
    """Attach a gate to exactly one phase or one package of the template."""
    _required(data, "name", "gate_level")
    _validate_enum(data["gate_level"], GATE_LEVELS, "gate_level")
    template = get_template(template_id)

    phase_id = data.get("phase_id")
    package_id = data.get("package_id")
    if data["gate_level"] == "phase":
        if not phase_id or package_id:
            raise ValidationError(
                "A phase gate needs phase_id and no package_id",
                details={"code": "gate_owner"},
            )
        owner = _get_phase(phase_id)
        owner_template_id = owner.template_id
    else:
        if not package_id or phase_id:
            raise ValidationError(
                "A package gate needs package_id and no phase_id",
                details={"code": "gate_owner"},
            )
        owner = _get_package(package_id)
        owner_template_id = owner.phase.template_id
    if owner_template_id != template.id:
        raise ValidationError(
            "Gate owner belongs to a different template",
            details={"code": "cross_template"},
        )

    gate = TemplateQualityGate(
        gate_level=data["gate_level"],
        phase_id=phase_id if data["gate_level"] == "phase" else None,
        package_id=package_id if data["gate_level"] == "package" else None,
        name=data["name"],
        description=data.get("description"),
        checklist_items=_validate_checklist(data.get("checklist_items"), "checklist_items"),
        min_photos_required=_non_negative_int(data.get("min_photos_required"), "min_photos_required"),
        photo_types=data.get("photo_types") or [],
        is_blocking=_bool_field(data, "is_blocking"),
        auto_approve_when_complete=_bool_field(data, "auto_approve_when_complete"),
    )
    template.quality_gates.append(gate)
    db.session.commit()
    logger.info("TemplateQualityGate created id=%s template_id=%s level=%s",
                gate.id, template_id, gate.gate_level)
    return gate


# ── Dependencies ─────────────────────────────────────────────────────────────


def list_dependencies(template_id):
    return list(get_template(template_id).dependencies)


def check_dependency(template_id, predecessor_task_id, successor_task_id):
    """Dry-run a proposed edge; returns a DependencyValidation, writes nothing.

    Raises:
        NotFoundError: either task is not part of this template.
    """
    template = get_template(template_id)
    proposed = Edge(predecessor=predecessor_task_id, successor=successor_task_id)
    if proposed.is_self_reference:
        return validate_new_dependency(template.dependencies, proposed)
    get_template_task(template_id, predecessor_task_id)
    get_template_task(template_id, successor_task_id)
    return validate_new_dependency(template.dependencies, proposed)


def add_dependency(template_id, data):
    """
    Add a dependency edge after validating it.

    Body keys: predecessor_task_id, successor_task_id, dependency_type (FS),
    lag_days (0, may be negative).

    Raises:
        ValidationError: self reference, cycle, duplicate edge, bad type / lag.
        NotFoundError: a task is not part of this template.
    """
    _required(data, "predecessor_task_id", "successor_task_id")
    try:
        dep_type = DependencyType.parse(data.get("dependency_type"))
    except ValueError as exc:
        raise ValidationError(str(exc), details={"code": "invalid_enum", "field": "dependency_type"}) from exc
    lag_days = data.get("lag_days") or 0
    if isinstance(lag_days, bool) or not isinstance(lag_days, int):
        raise ValidationError("lag_days must be an integer", details={"code": "invalid_number", "field": "lag_days"})

    pred_id = data["predecessor_task_id"]
    succ_id = data["successor_task_id"]
    result = check_dependency(template_id, pred_id, succ_id)
    if not result.ok:
        raise ValidationError(result.message, details={"code": result.error, "cycle": result.cycle})

    template = get_template(template_id)
    for existing in template.dependencies:
        if existing.predecessor_task_id == pred_id and existing.successor_task_id == succ_id:
            raise ValidationError(
                f"Dependency {pred_id} -> {succ_id} already exists",
                details={"code": "duplicate"},
            )

    # Pending rows must be attached to every delete-orphan parent before flush
    dep = TemplateDependency(
        predecessor_task=get_template_task(template_id, pred_id),
        successor_task=get_template_task(template_id, succ_id),
        predecessor_task_id=pred_id,
        successor_task_id=succ_id,
        dependency_type=dep_type.value,
        lag_days=lag_days,
    )
    template.dependencies.append(dep)
    refresh_cached_totals(template)
    db.session.commit()
    logger.info("TemplateDependency created id=%s %s-%s->%s",
                dep.id, pred_id, dep_type.value, succ_id)
    return dep


def delete_dependency(template_id, dependency_id):
    """Remove one edge of the template. Returns the affected-task analysis taken before removal."""
    template = get_template(template_id)
    dep = next((d for d in template.dependencies if d.id == dependency_id), None)
    if dep is None:
        raise NotFoundError(resource="TemplateDependency", resource_id=dependency_id)

    affected = impact_analysis.get_affected_tasks(template.dependencies, dep.successor_task_id)
    template.dependencies.remove(dep)
    db.session.flush()
    refresh_cached_totals(template)
    db.session.commit()
    logger.info("TemplateDependency deleted id=%s template_id=%s", dependency_id, template_id)
    return affected


def affected_tasks(template_id, task_id):
    """Dependents and prerequisites of one task of the template."""
    template = get_template(template_id)
    get_template_task(template_id, task_id)
    return impact_analysis.get_affected_tasks(template.dependencies, task_id)


# ── Duplication ──────────────────────────────────────────────────────────────


def duplicate_template(template_id, name=None, created_by=None):
    """
    Deep-copy a template: phases, packages, tasks, dependencies and gates.

    Every copied record gets a new id; dependency endpoints and gate owners
    are remapped to the copies. The copy is active and named
    "<source name> (copy)" unless ``name`` is given.
    """
    if name is not None and not name.strip():
        raise ValidationError("Name cannot be empty", details={"code": "required", "fields": ["name"]})
    source = get_template(template_id)

    copy = Template(
        name=(name or "").strip() or f"{source.name} (copy)",
        description=source.description,
        category=source.category,
        scope=source.scope,
        target_room_type=source.target_room_type,
        total_duration_days=source.total_duration_days,
        total_estimated_cost=source.total_estimated_cost,
        is_active=True,
        created_by=created_by,
    )
    db.session.add(copy)

    phase_map, package_map, task_map = {}, {}, {}
    for phase in source.phases:
        new_phase = TemplatePhase(
            name=phase.name, description=phase.description, sort_order=phase.sort_order,
            wbs_code=phase.wbs_code, estimated_duration_days=phase.estimated_duration_days,
        )
        copy.phases.append(new_phase)
        phase_map[phase.id] = new_phase
        for package in phase.packages:
            new_package = TemplatePackage(
                name=package.name, description=package.description, sort_order=package.sort_order,
                wbs_code=package.wbs_code, trade_category=package.trade_category,
                estimated_duration_days=package.estimated_duration_days,
                estimated_cost=package.estimated_cost,
            )
            new_phase.packages.append(new_package)
            package_map[package.id] = new_package
            for task in package.tasks:
                new_task = TemplateTask(
                    name=task.name, description=task.description, sort_order=task.sort_order,
                    wbs_code=task.wbs_code, estimated_duration_days=task.estimated_duration_days,
                    estimated_cost=task.estimated_cost, trade_category=task.trade_category,
                    is_optional=task.is_optional, materials_list=list(task.materials_list or []),
                    notes=task.notes, checklist_template=list(task.checklist_template or []),
                )
                new_package.tasks.append(new_task)
                task_map[task.id] = new_task
    db.session.flush()  # task ids for dependency remapping

    for dep in source.dependencies:
        copy.dependencies.append(TemplateDependency(
            predecessor_task=task_map[dep.predecessor_task_id],
            successor_task=task_map[dep.successor_task_id],
            predecessor_task_id=task_map[dep.predecessor_task_id].id,
            successor_task_id=task_map[dep.successor_task_id].id,
            dependency_type=dep.dependency_type,
            lag_days=dep.lag_days,
        ))
    for gate in source.quality_gates:
        copy.quality_gates.append(TemplateQualityGate(
            gate_level=gate.gate_level,
            phase_id=phase_map[gate.phase_id].id if gate.phase_id else None,
            package_id=package_map[gate.package_id].id if gate.package_id else None,
            name=gate.name, description=gate.description,
            checklist_items=list(gate.checklist_items or []),
            min_photos_required=gate.min_photos_required,
            photo_types=list(gate.photo_types or []),
            is_blocking=gate.is_blocking,
            auto_approve_when_complete=gate.auto_approve_when_complete,
        ))
    db.session.commit()
    logger.info("Template duplicated source_id=%s copy_id=%s", template_id, copy.id)
    return copy
