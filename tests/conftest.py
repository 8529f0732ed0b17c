"""
Shared pytest fixtures for the Renovation Planner test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - bathroom: Pre-built template with six tasks, two of them optional
    - project: Pre-created empty RenovationProject
"""

import pytest

from renovation_planner import create_app
from renovation_planner.models import db as _db
from renovation_planner.services import project_service, template_service


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def bathroom():
    """
    Bathroom template used across service and API tests.

        1 Demolition
          1.1 Strip-out      A remove fixtures (2d, 400)
                             B remove tiles    (3d, 600)
        2 Installation
          2.1 Plumbing       C rough-in        (2d, 800)
                             D heated floor    (1d, 500, optional)
          2.2 Finishes       E tiling          (4d, 1200)
                             F paint ceiling   (1d, 150, optional)

    Edges: A→B, B→C, C→D, D→E, C→E (FS) and E→F (SS, lag 1).
    Gates: phase gate on 1, package gate on 2.2.

    Full schedule from offset 0: A 0-2, B 2-5, C 5-7, D 7-8, E 8-12, F 9-10.

    Returns a dict: template, phases, packages, tasks (letter → id), gates.
    """
    template = template_service.create_template({
        "name": "Bathroom complete",
        "category": "room_specific",
        "scope": "room",
        "target_room_type": "bathroom",
    })
    demo = template_service.create_phase(template.id, {"name": "Demolition", "wbs_code": "1"})
    install = template_service.create_phase(template.id, {"name": "Installation", "wbs_code": "2"})
    strip = template_service.create_package(demo.id, {
        "name": "Strip-out", "wbs_code": "1.1", "trade_category": "demolition",
    })
    plumbing = template_service.create_package(install.id, {
        "name": "Plumbing", "wbs_code": "2.1", "trade_category": "plumbing",
    })
    finishes = template_service.create_package(install.id, {
        "name": "Finishes", "wbs_code": "2.2", "trade_category": "flooring",
    })

    rows = [
        ("A", strip, "Remove fixtures", 2, 400, False),
        ("B", strip, "Remove tiles", 3, 600, False),
        ("C", plumbing, "Rough-in plumbing", 2, 800, False),
        ("D", plumbing, "Heated floor", 1, 500, True),
        ("E", finishes, "Tiling", 4, 1200, False),
        ("F", finishes, "Paint ceiling", 1, 150, True),
    ]
    tasks = {}
    for i, (key, package, name, days, cost, optional) in enumerate(rows):
        task = template_service.create_task(package.id, {
            "name": name,
            "wbs_code": f"{package.wbs_code}.{i + 1}",
            "estimated_duration_days": days,
            "estimated_cost": cost,
            "is_optional": optional,
            "checklist_template": [{"id": f"{key}-1", "text": f"{name} done", "required": True}],
        })
        tasks[key] = task.id

    for pred, succ, dep_type, lag in [
        ("A", "B", "FS", 0), ("B", "C", "FS", 0), ("C", "D", "FS", 0),
        ("D", "E", "FS", 0), ("C", "E", "FS", 0), ("E", "F", "SS", 1),
    ]:
        template_service.add_dependency(template.id, {
            "predecessor_task_id": tasks[pred],
            "successor_task_id": tasks[succ],
            "dependency_type": dep_type,
            "lag_days": lag,
        })

    phase_gate = template_service.create_quality_gate(template.id, {
        "name": "Demolition sign-off", "gate_level": "phase", "phase_id": demo.id,
        "min_photos_required": 2, "is_blocking": True,
    })
    package_gate = template_service.create_quality_gate(template.id, {
        "name": "Tiling inspection", "gate_level": "package", "package_id": finishes.id,
    })

    return {
        "template": template,
        "phases": {"demo": demo.id, "install": install.id},
        "packages": {"strip": strip.id, "plumbing": plumbing.id, "finishes": finishes.id},
        "tasks": tasks,
        "gates": {"phase": phase_gate.id, "package": package_gate.id},
    }


@pytest.fixture()
def project():
    """An empty target project."""
    return project_service.create_project({"name": "Flat 4B"})
