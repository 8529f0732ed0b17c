"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter instance
is created in renovation_planner/__init__.py with no default limits; this
module applies granular limits per route category.

Usage:
    from renovation_planner.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"

READ_METHODS = ["GET"]
WRITE_METHODS = ["POST", "PUT", "PATCH", "DELETE"]


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Template reads (GET):                   200/minute
        - Template writes (POST/PUT/PATCH/DELETE): 60/minute
        - Projects:                              200/minute
        - Health check:                          exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    # GET routes get the read budget; every mutating method the tighter one
    bp = app.blueprints.get("templates")
    if bp:
        limiter.limit(READ_LIMIT, methods=READ_METHODS)(bp)
        limiter.limit(WRITE_LIMIT, methods=WRITE_METHODS)(bp)

    bp = app.blueprints.get("projects")
    if bp:
        limiter.limit(READ_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    logger.info("Rate limiter configured: template writes %s, reads %s",
                WRITE_LIMIT, READ_LIMIT)
