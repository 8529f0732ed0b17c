"""
Engine-wide exception hierarchy.

Services raise these types; blueprints register one handler per type and
map them to consistent HTTP status codes.

Usage:
    from renovation_planner.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Template", resource_id=42)
    raise ValidationError("Task cannot depend on itself", details={"code": "self_reference"})
"""


class NotFoundError(Exception):
    """Raised when a requested template, task, project or edge does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "Template", "TemplateTask").
        resource_id: The PK that was looked up. Included in logs and message.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Examples: a dependency that would close a cycle, a non-optional task in the
    exclusion set, an edge between tasks of two different templates.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional structured payload. ``details["code"]`` carries the
                 machine-readable reason (``cycle``, ``self_reference``, ...).
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)

    @property
    def code(self) -> str | None:
        return self.details.get("code")


class GraphIntegrityError(Exception):
    """Raised when a stored dependency graph turns out to be cyclic.

    Only reachable through corrupted template data: every edge is validated
    on insert. The apply operation checks the effective graph again and
    aborts before any write when this fires.

    Maps to HTTP 409.

    Args:
        message: Human-readable explanation.
        cycle: One concrete cycle path, first node repeated at the end.
    """

    def __init__(self, message: str, cycle: list | None = None) -> None:
        self.cycle = cycle or []
        super().__init__(message)


class TemplateApplyError(Exception):
    """Raised when the storage layer fails while instantiating a template.

    The session has already been rolled back when this is raised; no record
    of the failed apply is persisted. The original exception is chained.

    Maps to HTTP 500.
    """

    def __init__(self, template_id: int, project_id: int, message: str = "Template apply failed") -> None:
        self.template_id = template_id
        self.project_id = project_id
        super().__init__(f"{message} (template={template_id}, project={project_id})")
