"""
Renovation Planner
Model package: owns the shared SQLAlchemy handle.

Usage:
    from renovation_planner.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
