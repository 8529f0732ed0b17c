"""
Renovation Planner
Template domain models: reusable Work Breakdown Structure blueprints.

Models:
    - Template:             root blueprint (category, scope, cached rollups)
    - TemplatePhase:        WBS level 1, e.g. "1"
    - TemplatePackage:      WBS level 2, e.g. "1.2"
    - TemplateTask:         WBS level 3 leaf unit of work, e.g. "1.2.3"
    - TemplateDependency:   typed, lagged predecessor → successor edge between tasks
    - TemplateQualityGate:  checklist / photo checkpoint on a phase or package

Architecture:
    Template ──1:N──▶ TemplatePhase ──1:N──▶ TemplatePackage ──1:N──▶ TemplateTask
    Template ──1:N──▶ TemplateDependency  (TemplateTask ──N:M──▶ TemplateTask)
    Template ──1:N──▶ TemplateQualityGate (attached to one phase XOR one package)

The ownership tree and the dependency graph are kept apart: tasks carry no
predecessor pointers, edges live in their own table keyed by task id.
"""

from datetime import datetime, timezone

from renovation_planner.models import db


# ── Constants ────────────────────────────────────────────────────────────────

TEMPLATE_CATEGORIES = {"complete_renovation", "room_specific", "trade_specific"}

TEMPLATE_SCOPES = {"unit", "room"}

ROOM_TYPES = {
    "bathroom", "kitchen", "bedroom", "living_room", "hallway",
    "balcony", "storage", "laundry", "garage", "office", "other",
}

TRADE_CATEGORIES = {
    "general", "plumbing", "electrical", "hvac", "painting", "flooring",
    "carpentry", "roofing", "masonry", "glazing", "landscaping",
    "cleaning", "demolition", "other",
}

DEPENDENCY_TYPES = {"FS", "SS", "FF", "SF"}

GATE_LEVELS = {"phase", "package"}


def _utcnow():
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════════════
# 1. Template
# ═════════════════════════════════════════════════════════════════════════════


class Template(db.Model):
    """
    Reusable renovation blueprint.
    total_duration_days / total_estimated_cost are cached rollups of the
    unexcluded tree, recomputed by the service layer on every structural save.
    """

    __tablename__ = "templates"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(
        db.String(30), nullable=False,
        comment="complete_renovation | room_specific | trade_specific",
    )
    scope = db.Column(db.String(10), nullable=False, default="unit", comment="unit | room")
    target_room_type = db.Column(db.String(30), nullable=True)

    total_duration_days = db.Column(db.Integer, nullable=True)
    total_estimated_cost = db.Column(db.Float, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.String(100), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "category IN ('complete_renovation','room_specific','trade_specific')",
            name="ck_template_category",
        ),
        db.CheckConstraint("scope IN ('unit','room')", name="ck_template_scope"),
    )

    # ── Relationships ────────────────────────────────────────────────────
    phases = db.relationship(
        "TemplatePhase", backref="template",
        cascade="all, delete-orphan", order_by="TemplatePhase.sort_order",
    )
    dependencies = db.relationship(
        "TemplateDependency", backref="template",
        cascade="all, delete-orphan", order_by="TemplateDependency.id",
    )
    quality_gates = db.relationship(
        "TemplateQualityGate", backref="template",
        cascade="all, delete-orphan", order_by="TemplateQualityGate.id",
    )

    def iter_tasks(self):
        """Yield every task in WBS order (phase → package → task)."""
        for phase in self.phases:
            for package in phase.packages:
                yield from package.tasks

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "scope": self.scope,
            "target_room_type": self.target_room_type,
            "total_duration_days": self.total_duration_days,
            "total_estimated_cost": self.total_estimated_cost,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "phase_count": len(self.phases),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_children:
            result["phases"] = [p.to_dict(include_children=True) for p in self.phases]
            result["dependencies"] = [d.to_dict() for d in self.dependencies]
            result["quality_gates"] = [g.to_dict() for g in self.quality_gates]
        return result

    def __repr__(self):
        return f"<Template {self.id}: {self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. TemplatePhase
# ═════════════════════════════════════════════════════════════════════════════


class TemplatePhase(db.Model):
    """WBS level 1 grouping. Ordered by sort_order within its template."""

    __tablename__ = "template_phases"

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(
        db.Integer, db.ForeignKey("templates.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    wbs_code = db.Column(db.String(20), nullable=False, comment="e.g. 1")
    estimated_duration_days = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    packages = db.relationship(
        "TemplatePackage", backref="phase",
        cascade="all, delete-orphan", order_by="TemplatePackage.sort_order",
    )

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "template_id": self.template_id,
            "name": self.name,
            "description": self.description,
            "sort_order": self.sort_order,
            "wbs_code": self.wbs_code,
            "estimated_duration_days": self.estimated_duration_days,
        }
        if include_children:
            result["packages"] = [p.to_dict(include_children=True) for p in self.packages]
        return result

    def __repr__(self):
        return f"<TemplatePhase {self.id}: {self.wbs_code} {self.name[:40]}>"


# ═════════════════════════════════════════════════════════════════════════════
# 3. TemplatePackage
# ═════════════════════════════════════════════════════════════════════════════


class TemplatePackage(db.Model):
    """WBS level 2 grouping within a phase."""

    __tablename__ = "template_packages"

    id = db.Column(db.Integer, primary_key=True)
    phase_id = db.Column(
        db.Integer, db.ForeignKey("template_phases.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    wbs_code = db.Column(db.String(20), nullable=False, comment="e.g. 1.2")
    trade_category = db.Column(db.String(30), nullable=True)
    estimated_duration_days = db.Column(db.Integer, nullable=True)
    estimated_cost = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    tasks = db.relationship(
        "TemplateTask", backref="package",
        cascade="all, delete-orphan", order_by="TemplateTask.sort_order",
    )

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "phase_id": self.phase_id,
            "name": self.name,
            "description": self.description,
            "sort_order": self.sort_order,
            "wbs_code": self.wbs_code,
            "trade_category": self.trade_category,
            "estimated_duration_days": self.estimated_duration_days,
            "estimated_cost": self.estimated_cost,
        }
        if include_children:
            result["tasks"] = [t.to_dict() for t in self.tasks]
        return result

    def __repr__(self):
        return f"<TemplatePackage {self.id}: {self.wbs_code} {self.name[:40]}>"


# ═════════════════════════════════════════════════════════════════════════════
# 4. TemplateTask
# ═════════════════════════════════════════════════════════════════════════════


class TemplateTask(db.Model):
    """
    Leaf unit of work. The only node type in the dependency graph.
    Optional tasks may be excluded when the template is applied.
    """

    __tablename__ = "template_tasks"

    id = db.Column(db.Integer, primary_key=True)
    package_id = db.Column(
        db.Integer, db.ForeignKey("template_packages.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    wbs_code = db.Column(db.String(20), nullable=False, comment="e.g. 1.2.3")
    estimated_duration_days = db.Column(db.Integer, nullable=False, default=0)
    estimated_cost = db.Column(db.Float, nullable=True)
    trade_category = db.Column(db.String(30), nullable=True)
    is_optional = db.Column(db.Boolean, nullable=False, default=False)
    materials_list = db.Column(db.JSON, default=list, comment="[{id, name, quantity, unit, estimated_cost}]")
    notes = db.Column(db.Text, nullable=True)
    checklist_template = db.Column(db.JSON, default=list, comment="[{id, text, required}]")

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.CheckConstraint("estimated_duration_days >= 0", name="ck_template_task_duration"),
        db.CheckConstraint(
            "estimated_cost IS NULL OR estimated_cost >= 0",
            name="ck_template_task_cost",
        ),
    )

    @property
    def template_id(self):
        return self.package.phase.template_id if self.package and self.package.phase else None

    def to_dict(self):
        return {
            "id": self.id,
            "package_id": self.package_id,
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
            "checklist_template": self.checklist_template or [],
        }

    def __repr__(self):
        return f"<TemplateTask {self.id}: {self.wbs_code} {self.name[:40]}>"


# ═════════════════════════════════════════════════════════════════════════════
# 5. TemplateDependency
# ═════════════════════════════════════════════════════════════════════════════


class TemplateDependency(db.Model):
    """
    Predecessor → successor edge between two tasks of the same template.
    dependency_type: FS (default) | SS | FF | SF. lag_days is signed;
    a negative lag is lead time.
    """

    __tablename__ = "template_dependencies"

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(
        db.Integer, db.ForeignKey("templates.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    predecessor_task_id = db.Column(
        db.Integer, db.ForeignKey("template_tasks.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    successor_task_id = db.Column(
        db.Integer, db.ForeignKey("template_tasks.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    dependency_type = db.Column(db.String(2), nullable=False, default="FS")
    lag_days = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint(
            "predecessor_task_id", "successor_task_id",
            name="uq_template_dep",
        ),
        db.CheckConstraint(
            "predecessor_task_id <> successor_task_id",
            name="ck_template_dep_no_self",
        ),
        db.CheckConstraint(
            "dependency_type IN ('FS','SS','FF','SF')",
            name="ck_template_dep_type",
        ),
    )

    predecessor_task = db.relationship(
        "TemplateTask", foreign_keys=[predecessor_task_id],
        backref=db.backref("successor_links", cascade="all, delete-orphan"),
    )
    successor_task = db.relationship(
        "TemplateTask", foreign_keys=[successor_task_id],
        backref=db.backref("predecessor_links", cascade="all, delete-orphan"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "template_id": self.template_id,
            "predecessor_task_id": self.predecessor_task_id,
            "successor_task_id": self.successor_task_id,
            "dependency_type": self.dependency_type,
            "lag_days": self.lag_days,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return (
            f"<TemplateDependency {self.id}: {self.predecessor_task_id} "
            f"-{self.dependency_type}{self.lag_days:+d}-> {self.successor_task_id}>"
        )


# ═════════════════════════════════════════════════════════════════════════════
# 6. TemplateQualityGate
# ═════════════════════════════════════════════════════════════════════════════


class TemplateQualityGate(db.Model):
    """
    Checkpoint on exactly one phase or one package; gate_level says which.
    Blocking gates halt downstream progress until satisfied.
    """

    __tablename__ = "template_quality_gates"

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(
        db.Integer, db.ForeignKey("templates.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    gate_level = db.Column(db.String(10), nullable=False, comment="phase | package")
    phase_id = db.Column(
        db.Integer, db.ForeignKey("template_phases.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    package_id = db.Column(
        db.Integer, db.ForeignKey("template_packages.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    checklist_items = db.Column(db.JSON, default=list, comment="[{id, text, required}]")
    min_photos_required = db.Column(db.Integer, nullable=False, default=0)
    photo_types = db.Column(db.JSON, default=list)
    is_blocking = db.Column(db.Boolean, nullable=False, default=False)
    auto_approve_when_complete = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "(gate_level = 'phase' AND phase_id IS NOT NULL AND package_id IS NULL) OR "
            "(gate_level = 'package' AND package_id IS NOT NULL AND phase_id IS NULL)",
            name="ck_template_gate_owner",
        ),
        db.CheckConstraint("min_photos_required >= 0", name="ck_template_gate_photos"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "template_id": self.template_id,
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
        }

    def __repr__(self):
        return f"<TemplateQualityGate {self.id}: {self.gate_level} {self.name[:40]}>"
