"""Renovation template blueprint.

REST API for authoring templates and applying them to projects.

Endpoint groups:
  Templates        GET/POST /api/v1/templates
                   GET/PUT/DELETE /api/v1/templates/<id>
                   PATCH    /api/v1/templates/<id>/reorder
                   POST     /api/v1/templates/<id>/duplicate
                   GET      /api/v1/templates/<id>/optional-tasks
  Tree authoring   POST /api/v1/templates/<id>/phases
                   POST /api/v1/phases/<id>/packages
                   POST /api/v1/packages/<id>/tasks
                   POST /api/v1/templates/<id>/quality-gates
  Dependencies     GET/POST /api/v1/templates/<id>/dependencies
                   DELETE   /api/v1/templates/<id>/dependencies/<dep_id>
                   POST     /api/v1/templates/<id>/dependencies/validate
                   GET      /api/v1/templates/<id>/tasks/<task_id>/affected
  Apply wizard     POST /api/v1/templates/<id>/preview
                   POST /api/v1/templates/<id>/apply

Malformed bodies are answered with 400 here; business-rule failures come back
from the service layer as exceptions and are mapped by the handlers below.
Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging
from datetime import date

from flask import Blueprint, current_app, jsonify, request

import renovation_planner.services.template_apply_service as apply_svc
import renovation_planner.services.template_service as svc
from renovation_planner.core.exceptions import (
    GraphIntegrityError,
    NotFoundError,
    TemplateApplyError,
    ValidationError,
)
from renovation_planner.services.template_tree import get_optional_tasks
from renovation_planner.utils.errors import E, api_error
from renovation_planner.utils.helpers import parse_date_input, parse_id_list

logger = logging.getLogger(__name__)

template_bp = Blueprint("templates", __name__, url_prefix="/api/v1")


# ── Error handlers ────────────────────────────────────────────────────────────


@template_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return api_error(E.NOT_FOUND, str(error))


@template_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_CONSTRAINT, str(error), details=error.details)


@template_bp.errorhandler(GraphIntegrityError)
def _handle_graph(error: GraphIntegrityError):
    return api_error(E.GRAPH_CYCLE, str(error), details={"cycle": error.cycle})


@template_bp.errorhandler(TemplateApplyError)
def _handle_apply_failure(error: TemplateApplyError):
    return api_error(E.DATABASE, str(error))


# ── Request helpers ───────────────────────────────────────────────────────────


@template_bp.before_request
def _require_object_body():
    """Write bodies must be JSON objects; arrays and scalars are 400."""
    if request.method in ("POST", "PUT", "PATCH"):
        data = request.get_json(silent=True)
        if data is not None and not isinstance(data, dict):
            return api_error(E.VALIDATION_INVALID, "JSON object body required")
    return None


def _json_body():
    return request.get_json(silent=True) or {}


def _int_field(data, name):
    """Return (value, error_response) for a required integer body field."""
    value = data.get(name)
    if value is None:
        return None, api_error(E.VALIDATION_REQUIRED, f"{name} is required")
    if isinstance(value, bool) or not isinstance(value, int):
        return None, api_error(E.VALIDATION_INVALID, f"{name} must be an integer")
    return value, None


def _exclusions(data):
    try:
        return parse_id_list(data.get("excluded_task_ids"), "excluded_task_ids"), None
    except ValueError as e:
        return None, api_error(E.VALIDATION_INVALID, str(e))


def _start_date(data, default=None):
    try:
        return parse_date_input(data.get("start_date")) or default, None
    except ValueError as e:
        return None, api_error(E.VALIDATION_INVALID, str(e))


def _parse_active(raw):
    """?active=true|false|all; missing falls back to TEMPLATE_LIST_ACTIVE_DEFAULT."""
    if raw is None:
        return True if current_app.config.get("TEMPLATE_LIST_ACTIVE_DEFAULT", True) else None
    raw = raw.strip().lower()
    if raw == "all":
        return None
    return raw in ("1", "true", "yes")


# ═════════════════════════════════════════════════════════════════════════
# Templates
# ═════════════════════════════════════════════════════════════════════════


@template_bp.route("/templates", methods=["GET"])
def list_templates():
    """List template summaries ordered by category, then name.

    Query params: active (true|false|all), category, scope
    """
    templates = svc.list_templates(
        active=_parse_active(request.args.get("active")),
        category=request.args.get("category"),
        scope=request.args.get("scope"),
    )
    return jsonify({"items": [t.to_dict() for t in templates], "total": len(templates)}), 200


@template_bp.route("/templates", methods=["POST"])
def create_template():
    """Body: { name, category, scope, target_room_type?, description?, is_active? }"""
    data = _json_body()
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    data["name"] = name.strip()
    template = svc.create_template(data, created_by=data.get("created_by"))
    return jsonify(template.to_dict()), 201


@template_bp.route("/templates/<int:template_id>", methods=["GET"])
def get_template(template_id):
    """Full hierarchy: phases → packages → tasks, dependencies, quality gates."""
    template = svc.get_template(template_id)
    return jsonify(template.to_dict(include_children=True)), 200


@template_bp.route("/templates/<int:template_id>", methods=["PUT"])
def update_template(template_id):
    data = _json_body()
    if "name" in data and (not isinstance(data["name"], str) or not data["name"].strip()):
        return api_error(E.VALIDATION_INVALID, "name cannot be empty")
    template = svc.update_template(svc.get_template(template_id), data)
    return jsonify(template.to_dict()), 200


@template_bp.route("/templates/<int:template_id>", methods=["DELETE"])
def delete_template(template_id):
    """Cascades to phases, packages, tasks, dependencies and gates."""
    svc.delete_template(template_id)
    return jsonify({"deleted": template_id}), 200


@template_bp.route("/templates/<int:template_id>/reorder", methods=["PATCH"])
def reorder_items(template_id):
    """Body: { type: phase|package|task, items: [{ id, sort_order }] }"""
    data = _json_body()
    updated = svc.reorder_items(template_id, data.get("type"), data.get("items"))
    return jsonify({"updated": updated}), 200


@template_bp.route("/templates/<int:template_id>/duplicate", methods=["POST"])
def duplicate_template(template_id):
    """Body: { name? }; name defaults to "<name> (copy)"."""
    data = _json_body()
    if data.get("name") is not None and not isinstance(data["name"], str):
        return api_error(E.VALIDATION_INVALID, "name must be a string")
    copy = svc.duplicate_template(template_id, name=data.get("name"), created_by=data.get("created_by"))
    return jsonify(copy.to_dict(include_children=True)), 201


@template_bp.route("/templates/<int:template_id>/optional-tasks", methods=["GET"])
def list_optional_tasks(template_id):
    """Tasks the apply wizard may exclude."""
    template = svc.get_template(template_id)
    tasks = get_optional_tasks(template)
    return jsonify({"items": [t.to_dict() for t in tasks], "total": len(tasks)}), 200


# ═════════════════════════════════════════════════════════════════════════
# Tree authoring
# ═════════════════════════════════════════════════════════════════════════


@template_bp.route("/templates/<int:template_id>/phases", methods=["POST"])
def create_phase(template_id):
    phase = svc.create_phase(template_id, _json_body())
    return jsonify(phase.to_dict()), 201


@template_bp.route("/phases/<int:phase_id>/packages", methods=["POST"])
def create_package(phase_id):
    package = svc.create_package(phase_id, _json_body())
    return jsonify(package.to_dict()), 201


@template_bp.route("/packages/<int:package_id>/tasks", methods=["POST"])
def create_task(package_id):
    task = svc.create_task(package_id, _json_body())
    return jsonify(task.to_dict()), 201


@template_bp.route("/templates/<int:template_id>/quality-gates", methods=["POST"])
def create_quality_gate(template_id):
    gate = svc.create_quality_gate(template_id, _json_body())
    return jsonify(gate.to_dict()), 201


# ═════════════════════════════════════════════════════════════════════════
# Dependencies
# ═════════════════════════════════════════════════════════════════════════


@template_bp.route("/templates/<int:template_id>/dependencies", methods=["GET"])
def list_dependencies(template_id):
    deps = svc.list_dependencies(template_id)
    return jsonify({"items": [d.to_dict() for d in deps], "total": len(deps)}), 200


@template_bp.route("/templates/<int:template_id>/dependencies", methods=["POST"])
def add_dependency(template_id):
    """Body: { predecessor_task_id, successor_task_id, dependency_type?, lag_days? }

    Returns 422 with details.code = self_reference | cycle | duplicate when the
    edge is rejected; a cycle rejection carries details.cycle.
    """
    data = _json_body()
    for name in ("predecessor_task_id", "successor_task_id"):
        _value, err = _int_field(data, name)
        if err:
            return err
    dep = svc.add_dependency(template_id, data)
    return jsonify(dep.to_dict()), 201


@template_bp.route("/templates/<int:template_id>/dependencies/<int:dep_id>", methods=["DELETE"])
def delete_dependency(template_id, dep_id):
    """Returns the tasks downstream / upstream of the removed edge's successor."""
    affected = svc.delete_dependency(template_id, dep_id)
    return jsonify({"deleted": dep_id, "affected": affected}), 200


@template_bp.route("/templates/<int:template_id>/dependencies/validate", methods=["POST"])
def validate_dependency(template_id):
    """Dry run: would this edge be accepted? Never writes.

    Body: { predecessor_task_id, successor_task_id }
    Returns: { ok, error?, message?, cycle? } (200 either way)
    """
    data = _json_body()
    pred_id, err = _int_field(data, "predecessor_task_id")
    if err:
        return err
    succ_id, err = _int_field(data, "successor_task_id")
    if err:
        return err
    result = svc.check_dependency(template_id, pred_id, succ_id)
    return jsonify(result.to_dict()), 200


@template_bp.route("/templates/<int:template_id>/tasks/<int:task_id>/affected", methods=["GET"])
def get_affected_tasks(template_id, task_id):
    return jsonify(svc.affected_tasks(template_id, task_id)), 200


# ═════════════════════════════════════════════════════════════════════════
# Apply wizard
# ═════════════════════════════════════════════════════════════════════════


@template_bp.route("/templates/<int:template_id>/preview", methods=["POST"])
def preview_apply(template_id):
    """Metrics and downstream warnings for an exclusion set.

    Body: { excluded_task_ids?: [int], start_date?: "YYYY-MM-DD" }
    A schedule is included when start_date is given.
    """
    data = _json_body()
    excluded, err = _exclusions(data)
    if err:
        return err
    start_date, err = _start_date(data)
    if err:
        return err
    preview = apply_svc.preview_apply(template_id, excluded, start_date=start_date)
    return jsonify(preview.to_dict()), 200


@template_bp.route("/templates/<int:template_id>/apply", methods=["POST"])
def apply_template(template_id):
    """Instantiate the template into a project.

    Body: { project_id, start_date?: "YYYY-MM-DD" (today), excluded_task_ids?: [int] }
    Returns: counts of created records (201).
    """
    data = _json_body()
    project_id, err = _int_field(data, "project_id")
    if err:
        return err
    excluded, err = _exclusions(data)
    if err:
        return err
    start_date, err = _start_date(data, default=date.today())
    if err:
        return err

    result = apply_svc.apply_template_to_project(template_id, project_id, start_date, excluded)
    return jsonify(result.to_dict()), 201
