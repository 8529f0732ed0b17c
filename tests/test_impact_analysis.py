"""
tests/test_impact_analysis.py: Forward / backward closures and exclusion warnings.

Covers:
    1. Dependents and prerequisites on a diamond, BFS order, no duplicates
    2. Queried task never in its own result; unknown task gives empty lists
    3. Direct predecessors / successors
    4. get_affected_tasks combines both closures
    5. exclusion_warnings: included dependents only, computed on the full graph
"""

from renovation_planner.services.dependency_graph import Edge
from renovation_planner.services.impact_analysis import (
    exclusion_warnings,
    get_affected_tasks,
    get_dependent_tasks,
    get_direct_predecessors,
    get_direct_successors,
    get_prerequisite_tasks,
)

# 1 → 2 → 4 → 5
# 1 → 3 → 4
DIAMOND = [Edge(1, 2), Edge(1, 3), Edge(2, 4), Edge(3, 4), Edge(4, 5)]


class TestClosures:
    def test_dependents_bfs_order(self):
        assert get_dependent_tasks(DIAMOND, 1) == [2, 3, 4, 5]

    def test_prerequisites(self):
        assert get_prerequisite_tasks(DIAMOND, 5) == [4, 2, 3, 1]

    def test_no_duplicates_through_diamond(self):
        result = get_dependent_tasks(DIAMOND, 1)
        assert len(result) == len(set(result))

    def test_queried_task_excluded(self):
        assert 4 not in get_dependent_tasks(DIAMOND, 4)
        assert 4 not in get_prerequisite_tasks(DIAMOND, 4)

    def test_leaf_and_unknown(self):
        assert get_dependent_tasks(DIAMOND, 5) == []
        assert get_prerequisite_tasks(DIAMOND, 99) == []

    def test_accepts_dict_rows(self):
        rows = [{"predecessor_task_id": 10, "successor_task_id": 11}]
        assert get_dependent_tasks(rows, 10) == [11]


class TestDirectNeighbours:
    def test_successors(self):
        assert get_direct_successors(DIAMOND, 1) == [2, 3]

    def test_predecessors(self):
        assert get_direct_predecessors(DIAMOND, 4) == [2, 3]


def test_affected_tasks():
    assert get_affected_tasks(DIAMOND, 2) == {
        "task_id": 2,
        "dependents": [4, 5],
        "prerequisites": [1],
    }


class TestExclusionWarnings:
    def test_reports_included_dependents(self):
        assert exclusion_warnings(DIAMOND, [3]) == [4, 5]

    def test_excluded_tasks_not_reported(self):
        assert exclusion_warnings(DIAMOND, [3, 4]) == [5]

    def test_two_hops_behind_excluded_chain(self):
        # 1 → 2 → 3: excluding 1 and 2 still warns about 3
        assert exclusion_warnings([Edge(1, 2), Edge(2, 3)], [1, 2]) == [3]

    def test_no_exclusions_no_warnings(self):
        assert exclusion_warnings(DIAMOND, []) == []
