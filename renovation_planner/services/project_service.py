"""Renovation project CRUD: the target side of a template apply."""

import logging

from renovation_planner.core.exceptions import NotFoundError, ValidationError
from renovation_planner.models import db
from renovation_planner.models.project import PROJECT_STATUSES, RenovationProject
from renovation_planner.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)


def create_project(data):
    """Create an empty project. Body keys: name (required), description, status, planned_start_date."""
    if not data.get("name"):
        raise ValidationError("name is required", details={"code": "required", "fields": ["name"]})
    status = data.get("status", "planned")
    if status not in PROJECT_STATUSES:
        raise ValidationError(
            f"Invalid status: '{status}'. Allowed: {sorted(PROJECT_STATUSES)}",
            details={"code": "invalid_enum", "field": "status"},
        )
    try:
        start = parse_date_input(data.get("planned_start_date"))
    except ValueError as exc:
        raise ValidationError(str(exc), details={"code": "invalid_date", "field": "planned_start_date"}) from exc

    project = RenovationProject(
        name=data["name"],
        description=data.get("description"),
        status=status,
        planned_start_date=start,
    )
    db.session.add(project)
    db.session.commit()
    logger.info("RenovationProject created id=%s name=%s", project.id, project.name)
    return project


def get_project(project_id):
    project = db.session.get(RenovationProject, project_id)
    if project is None:
        raise NotFoundError(resource="RenovationProject", resource_id=project_id)
    return project
