"""
Renovation Planner
Blueprint registry.
"""

from renovation_planner.blueprints.health_bp import health_bp
from renovation_planner.blueprints.project_bp import project_bp
from renovation_planner.blueprints.template_bp import template_bp

ALL_BLUEPRINTS = (health_bp, template_bp, project_bp)
