"""Renovation project blueprint.

Minimal target-project API: create an empty project, then read back the tree a
template apply produced.

  POST /api/v1/projects
  GET  /api/v1/projects/<id>          ?include=tree for phases → packages → tasks
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

import renovation_planner.services.project_service as svc
from renovation_planner.core.exceptions import NotFoundError, ValidationError
from renovation_planner.utils.errors import E, api_error

project_bp = Blueprint("projects", __name__, url_prefix="/api/v1")


@project_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return api_error(E.NOT_FOUND, str(error))


@project_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_CONSTRAINT, str(error), details=error.details)


@project_bp.route("/projects", methods=["POST"])
def create_project():
    """Body: { name, description?, status?, planned_start_date? }"""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_INVALID, "JSON object body required")
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    project = svc.create_project(data)
    return jsonify(project.to_dict()), 201


@project_bp.route("/projects/<int:project_id>", methods=["GET"])
def get_project(project_id):
    project = svc.get_project(project_id)
    include_tree = request.args.get("include") == "tree"
    return jsonify(project.to_dict(include_children=include_tree)), 200
