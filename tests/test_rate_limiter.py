"""
tests/test_rate_limiter.py: Per-blueprint limit wiring.

The limiter is switched off under TESTING, so these tests drive
init_rate_limits directly with a recording limiter.
"""

from types import SimpleNamespace

from renovation_planner.middleware.rate_limiter import (
    READ_LIMIT,
    WRITE_LIMIT,
    init_rate_limits,
)


class _RecordingLimiter:
    def __init__(self):
        self.limits = []
        self.exempted = []

    def limit(self, value, methods=None):
        def apply(bp):
            self.limits.append((bp, value, tuple(methods) if methods else None))
            return bp
        return apply

    def exempt(self, bp):
        self.exempted.append(bp)
        return bp


def _app(testing=False):
    return SimpleNamespace(
        config={"TESTING": testing},
        blueprints={"templates": "templates", "projects": "projects", "health": "health"},
        logger=SimpleNamespace(info=lambda *a, **k: None),
    )


def test_template_writes_tighter_than_reads():
    limiter = _RecordingLimiter()
    init_rate_limits(_app(), limiter)

    template_limits = {methods: value for bp, value, methods in limiter.limits if bp == "templates"}
    assert template_limits[("GET",)] == READ_LIMIT
    assert template_limits[("POST", "PUT", "PATCH", "DELETE")] == WRITE_LIMIT
    assert int(WRITE_LIMIT.split("/")[0]) < int(READ_LIMIT.split("/")[0])


def test_projects_limited_health_exempt():
    limiter = _RecordingLimiter()
    init_rate_limits(_app(), limiter)

    assert ("projects", READ_LIMIT, None) in limiter.limits
    assert limiter.exempted == ["health"]


def test_disabled_when_testing():
    limiter = _RecordingLimiter()
    init_rate_limits(_app(testing=True), limiter)
    assert limiter.limits == [] and limiter.exempted == []
