"""
tests/test_schedule.py: Forward pass and template schedule, no database.

Covers:
    1. FS chain: start date flows through end + lag
    2. Task with several predecessors takes the latest constraint
    3. SS / FF / SF rules and negative lag clamped at the start date
    4. Phase / package windows and empty groupings
    5. Excluded task: its edges are dropped, nothing is rewired across the gap
    6. Cyclic input raises GraphIntegrityError
"""

from datetime import date
from types import SimpleNamespace

import pytest

from renovation_planner.core.exceptions import GraphIntegrityError
from renovation_planner.services.dependency_graph import DependencyType, Edge
from renovation_planner.services.schedule import (
    calculate_schedule,
    forward_pass,
    longest_path_days,
)

START = date(2026, 1, 5)


def _task(task_id, days, cost=None, optional=False):
    return SimpleNamespace(
        id=task_id, wbs_code=f"T{task_id}", name=f"Task {task_id}",
        estimated_duration_days=days, estimated_cost=cost, is_optional=optional,
    )


def _template(packages_by_phase, dependencies=()):
    """packages_by_phase: [[ [task, ...], ... ], ...] → phases → packages → tasks."""
    phases = []
    for p, packages in enumerate(packages_by_phase, start=1):
        phases.append(SimpleNamespace(
            id=p, wbs_code=str(p), name=f"Phase {p}",
            packages=[
                SimpleNamespace(id=p * 10 + k, wbs_code=f"{p}.{k}", name=f"Package {p}.{k}", tasks=tasks)
                for k, tasks in enumerate(packages, start=1)
            ],
        ))
    return SimpleNamespace(phases=phases, dependencies=list(dependencies))


class TestForwardPass:
    def test_fs_chain(self):
        offsets = forward_pass({1: 4, 2: 2}, [Edge(1, 2)])
        assert offsets == {1: (0, 4), 2: (4, 6)}

    def test_fs_with_lag(self):
        assert forward_pass({1: 2, 2: 1}, [Edge(1, 2, lag_days=3)])[2] == (5, 6)

    def test_latest_predecessor_wins(self):
        offsets = forward_pass({1: 2, 2: 5, 3: 1}, [Edge(1, 3), Edge(2, 3)])
        assert offsets[3] == (5, 6)

    def test_latest_predecessor_wins_day_14_over_day_10(self):
        offsets = forward_pass({1: 10, 2: 14, 3: 2}, [Edge(1, 3), Edge(2, 3)])
        assert offsets[3][0] == 14

    def test_start_to_start(self):
        offsets = forward_pass({1: 4, 2: 2}, [Edge(1, 2, DependencyType.SS, 1)])
        assert offsets[2] == (1, 3)

    def test_finish_to_finish(self):
        offsets = forward_pass({1: 4, 2: 2}, [Edge(1, 2, DependencyType.FF, 0)])
        assert offsets[2] == (2, 4)

    def test_start_to_finish(self):
        offsets = forward_pass({1: 2, 2: 3, 3: 1}, [Edge(1, 2), Edge(2, 3, DependencyType.SF, 0)])
        # 3 must finish when 2 starts (offset 2)
        assert offsets[3] == (1, 2)

    def test_negative_lag_never_before_start(self):
        offsets = forward_pass({1: 2, 2: 3}, [Edge(1, 2, lag_days=-10)])
        assert offsets[2] == (0, 3)

    def test_unconnected_tasks_start_at_zero(self):
        assert forward_pass({1: 3, 2: 0}, []) == {1: (0, 3), 2: (0, 0)}

    def test_cycle_raises(self):
        with pytest.raises(GraphIntegrityError):
            forward_pass({1: 1, 2: 1}, [Edge(1, 2), Edge(2, 1)])

    def test_longest_path(self):
        # 1 (3d) → 3 (1d); 2 (5d) stands alone
        assert longest_path_days({1: 3, 2: 5, 3: 1}, [Edge(1, 3)]) == 5
        assert longest_path_days({}, []) == 0


class TestCalculateSchedule:
    def test_two_task_fs_dates(self):
        template = _template([[[_task(1, 3), _task(2, 2)]]], [Edge(1, 2, lag_days=1)])
        schedule = calculate_schedule(template, START)

        assert schedule.tasks[1].start_date == date(2026, 1, 5)
        assert schedule.tasks[1].end_date == date(2026, 1, 8)
        assert schedule.tasks[2].start_date == date(2026, 1, 9)
        assert schedule.tasks[2].end_date == date(2026, 1, 11)
        assert schedule.end_date == date(2026, 1, 11)
        assert schedule.total_days == 6

    def test_group_windows(self):
        template = _template(
            [[[_task(1, 2)], [_task(2, 3)]], [[_task(3, 1)]]],
            [Edge(1, 2), Edge(2, 3)],
        )
        schedule = calculate_schedule(template, START)
        phase1, phase2 = schedule.phases
        assert (phase1.start_date, phase1.end_date) == (date(2026, 1, 5), date(2026, 1, 10))
        assert phase1.children[1].start_date == date(2026, 1, 7)
        assert (phase2.start_date, phase2.end_date) == (date(2026, 1, 10), date(2026, 1, 11))
        assert phase1.duration == 5

    def test_fully_excluded_package_collapses_to_start(self):
        template = _template([[[_task(1, 2)], [_task(2, 3, optional=True)]]])
        schedule = calculate_schedule(template, START, excluded_task_ids={2})
        empty = schedule.phases[0].children[1]
        assert empty.start_date == empty.end_date == START
        assert empty.children == []
        assert 2 not in schedule.tasks

    def test_exclusion_prunes_without_rewiring(self):
        # 1 → 2 → 3; excluding 2 leaves 3 unconstrained
        template = _template(
            [[[_task(1, 4), _task(2, 2, optional=True), _task(3, 1)]]],
            [Edge(1, 2), Edge(2, 3)],
        )
        schedule = calculate_schedule(template, START, excluded_task_ids=[2])
        assert schedule.tasks[3].start_offset == 0
        assert schedule.total_days == 4

    def test_past_start_date_accepted(self):
        template = _template([[[_task(1, 3)]]])
        schedule = calculate_schedule(template, date(2020, 2, 27))
        assert schedule.tasks[1].end_date == date(2020, 3, 1)

    def test_to_dict_shape(self):
        template = _template([[[_task(1, 1)]]])
        payload = calculate_schedule(template, START).to_dict()
        assert payload["start_date"] == "2026-01-05"
        assert payload["end_date"] == "2026-01-06"
        task = payload["phases"][0]["children"][0]["children"][0]
        assert task["start_date"] == "2026-01-05"
