"""
Renovation Planner
Project-side models: the concrete plan a template is instantiated into.

Models:
    - RenovationProject:      target project (owned by the wider application;
                              only the columns this engine reads or writes)
    - ProjectPhase:           instantiated WBS level 1
    - ProjectPackage:         instantiated WBS level 2
    - ProjectTask:            instantiated WBS level 3 with scheduled dates
    - ProjectDependency:      instantiated task edge
    - ProjectQualityGate:     instantiated checkpoint on a phase or package

Every instantiated record carries a fresh id and a ``source_*_id`` provenance
column pointing back at the template record it was copied from. There is no
foreign key to the template side: the project tree stays valid when the
template is later edited or deleted.
"""

from datetime import datetime, timezone

from renovation_planner.models import db


PROJECT_STATUSES = {"planned", "active", "blocked", "finished", "approved"}

PROJECT_TASK_STATUSES = {"open", "in_progress", "blocked", "completed"}

GATE_STATUSES = {"pending", "in_review", "approved", "rejected"}


def _utcnow():
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════════════
# 1. RenovationProject
# ═════════════════════════════════════════════════════════════════════════════


class RenovationProject(db.Model):
    """Target of a template apply. template_id records the last template applied."""

    __tablename__ = "renovation_projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="planned")
    template_id = db.Column(
        db.Integer, nullable=True,
        comment="Provenance: template most recently applied (last writer wins)",
    )
    planned_start_date = db.Column(db.Date, nullable=True)
    planned_end_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('planned','active','blocked','finished','approved')",
            name="ck_project_status",
        ),
    )

    phases = db.relationship(
        "ProjectPhase", backref="project",
        cascade="all, delete-orphan", order_by="ProjectPhase.sort_order",
    )
    dependencies = db.relationship(
        "ProjectDependency", backref="project",
        cascade="all, delete-orphan", order_by="ProjectDependency.id",
    )
    quality_gates = db.relationship(
        "ProjectQualityGate", backref="project",
        cascade="all, delete-orphan", order_by="ProjectQualityGate.id",
    )

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "template_id": self.template_id,
            "planned_start_date": self.planned_start_date.isoformat() if self.planned_start_date else None,
            "planned_end_date": self.planned_end_date.isoformat() if self.planned_end_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_children:
            result["phases"] = [p.to_dict(include_children=True) for p in self.phases]
            result["dependencies"] = [d.to_dict() for d in self.dependencies]
            result["quality_gates"] = [g.to_dict() for g in self.quality_gates]
        return result

    def __repr__(self):
        return f"<RenovationProject {self.id}: {self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. ProjectPhase / ProjectPackage / ProjectTask
# ═════════════════════════════════════════════════════════════════════════════


class ProjectPhase(db.Model):
    __tablename__ = "project_phases"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("renovation_projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    source_phase_id = db.Column(db.Integer, nullable=True, comment="Provenance → template_phases.id")
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    wbs_code = db.Column(db.String(20), nullable=False)
    planned_start_date = db.Column(db.Date, nullable=True)
    planned_end_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    packages = db.relationship(
        "ProjectPackage", backref="phase",
        cascade="all, delete-orphan", order_by="ProjectPackage.sort_order",
    )

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "source_phase_id": self.source_phase_id,
            "name": self.name,
            "description": self.description,
            "sort_order": self.sort_order,
            "wbs_code": self.wbs_code,
            "planned_start_date": self.planned_start_date.isoformat() if self.planned_start_date else None,
            "planned_end_date": self.planned_end_date.isoformat() if self.planned_end_date else None,
        }
        if include_children:
            result["packages"] = [p.to_dict(include_children=True) for p in self.packages]
        return result

    def __repr__(self):
        return f"<ProjectPhase {self.id}: {self.wbs_code} {self.name[:40]}>"


class ProjectPackage(db.Model):
    __tablename__ = "project_packages"

    id = db.Column(db.Integer, primary_key=True)
    phase_id = db.Column(
        db.Integer, db.ForeignKey("project_phases.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    source_package_id = db.Column(db.Integer, nullable=True, comment="Provenance → template_packages.id")
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    wbs_code = db.Column(db.String(20), nullable=False)
    trade_category = db.Column(db.String(30), nullable=True)
    estimated_cost = db.Column(db.Float, nullable=True)
    planned_start_date = db.Column(db.Date, nullable=True)
    planned_end_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    tasks = db.relationship(
        "ProjectTask", backref="package",
        cascade="all, delete-orphan", order_by="ProjectTask.sort_order",
    )

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "phase_id": self.phase_id,
            "source_package_id": self.source_package_id,
            "name": self.name,
            "description": self.description,
            "sort_order": self.sort_order,
            "wbs_code": self.wbs_code,
            "trade_category": self.trade_category,
            "estimated_cost": self.estimated_cost,
            "planned_start_date": self.planned_start_date.isoformat() if self.planned_start_date else None,
            "planned_end_date": self.planned_end_date.isoformat() if self.planned_end_date else None,
        }
        if include_children:
            result["tasks"] = [t.to_dict() for t in self.tasks]
        return result

    def __repr__(self):
        return f"<ProjectPackage {self.id}: {self.wbs_code} {self.name[:40]}>"


class ProjectTask(db.Model):
    """Instantiated task. planned dates come from the dependency forward pass."""

    __tablename__ = "project_tasks"

    id = db.Column(db.Integer, primary_key=True)
    package_id = db.Column(
        db.Integer, db.ForeignKey("project_packages.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    source_task_id = db.Column(db.Integer, nullable=True, comment="Provenance → template_tasks.id")
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    wbs_code = db.Column(db.String(20), nullable=False)
    estimated_duration_days = db.Column(db.Integer, nullable=False, default=0)
    estimated_cost = db.Column(db.Float, nullable=True)
    trade_category = db.Column(db.String(30), nullable=True)
    is_optional = db.Column(db.Boolean, nullable=False, default=False)
    materials_list = db.Column(db.JSON, default=list)
    notes = db.Column(db.Text, nullable=True)
    checklist = db.Column(db.JSON, default=list)
    status = db.Column(db.String(20), nullable=False, default="open")
    planned_start_date = db.Column(db.Date, nullable=True)
    planned_end_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('open','in_progress','blocked','completed')",
            name="ck_project_task_status",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "package_id": self.package_id,
            "source_task_id": self.source_task_id,
            "name": self.name,
            "description": self.description,
            "sort_order": self.sort_order,
            "wbs_code": self.wbs_code,
            "estimated_duration_days": self.estimated_duration_days,
            "estimated_cost": self.estimated_cost,
            "trade_category": self.trade_category,
            "is_optional": self.is_optional,
            "materials_list": self.materials_list or [],
            "notes": self.notes,
            "checklist": self.checklist or [],
            "status": self.status,
            "planned_start_date": self.planned_start_date.isoformat() if self.planned_start_date else None,
            "planned_end_date": self.planned_end_date.isoformat() if self.planned_end_date else None,
        }

    def __repr__(self):
        return f"<ProjectTask {self.id}: {self.wbs_code} {self.name[:40]}>"


# ═════════════════════════════════════════════════════════════════════════════
# 3. ProjectDependency
# ═════════════════════════════════════════════════════════════════════════════


class ProjectDependency(db.Model):
    __tablename__ = "project_dependencies"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("renovation_projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    predecessor_task_id = db.Column(
        db.Integer, db.ForeignKey("project_tasks.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    successor_task_id = db.Column(
        db.Integer, db.ForeignKey("project_tasks.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    dependency_type = db.Column(db.String(2), nullable=False, default="FS")
    lag_days = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint(
            "predecessor_task_id", "successor_task_id",
            name="uq_project_dep",
        ),
        db.CheckConstraint(
            "dependency_type IN ('FS','SS','FF','SF')",
            name="ck_project_dep_type",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "predecessor_task_id": self.predecessor_task_id,
            "successor_task_id": self.successor_task_id,
            "dependency_type": self.dependency_type,
            "lag_days": self.lag_days,
        }


# ═════════════════════════════════════════════════════════════════════════════
# 4. ProjectQualityGate
# ═════════════════════════════════════════════════════════════════════════════


class ProjectQualityGate(db.Model):
    __tablename__ = "project_quality_gates"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("renovation_projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    source_gate_id = db.Column(db.Integer, nullable=True, comment="Provenance → template_quality_gates.id")
    gate_level = db.Column(db.String(10), nullable=False)
    phase_id = db.Column(
        db.Integer, db.ForeignKey("project_phases.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    package_id = db.Column(
        db.Integer, db.ForeignKey("project_packages.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    checklist_items = db.Column(db.JSON, default=list)
    min_photos_required = db.Column(db.Integer, nullable=False, default=0)
    photo_types = db.Column(db.JSON, default=list)
    is_blocking = db.Column(db.Boolean, nullable=False, default=False)
    auto_approve_when_complete = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(db.String(20), nullable=False, default="pending")

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "(gate_level = 'phase' AND phase_id IS NOT NULL AND package_id IS NULL) OR "
            "(gate_level = 'package' AND package_id IS NOT NULL AND phase_id IS NULL)",
            name="ck_project_gate_owner",
        ),
        db.CheckConstraint(
            "status IN ('pending','in_review','approved','rejected')",
            name="ck_project_gate_status",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "source_gate_id": self.source_gate_id,
            "gate_level": self.gate_level,
            "phase_id": self.phase_id,
            "package_id": self.package_id,
            "name": self.name,
            "description": self.description,
            "checklist_items": self.checklist_items or [],
            "min_photos_required": self.min_photos_required,
            "photo_types": self.photo_types or [],
            "is_blocking": self.is_blocking,
            "auto_approve_when_complete": self.auto_approve_when_complete,
            "status": self.status,
        }
