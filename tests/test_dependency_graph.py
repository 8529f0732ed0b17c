"""
tests/test_dependency_graph.py: Pure dependency-graph functions, no database.

Covers:
    1.  DependencyType parsing (codes, long names, None → FS, junk rejected)
    2.  Edge normalisation from dicts and short keys
    3.  Empty graph, chains and diamonds report no cycle
    4.  Two-node and long transitive cycles are found, with the cycle path
    5.  validate_new_dependency: self reference before graph build, cycle,
        acceptance, never mutates its input
    6.  Topological order: stable tie-break, edges outside node set ignored,
        GraphIntegrityError on a cycle
    7.  Seeded random DAGs: no false positives; closing any path always detected
"""

import random

import pytest

from renovation_planner.core.exceptions import GraphIntegrityError
from renovation_planner.services.dependency_graph import (
    DependencyType,
    Edge,
    detect_circular_dependency,
    to_edge,
    topological_order,
    validate_new_dependency,
)


def _chain(*nodes):
    return [Edge(a, b) for a, b in zip(nodes, nodes[1:])]


def _random_dag(rng, n, density=0.3):
    """Edges only go from a lower to a higher index, so the graph is acyclic."""
    return [
        Edge(i, j)
        for i in range(n)
        for j in range(i + 1, n)
        if rng.random() < density
    ]


# ═════════════════════════════════════════════════════════════════════════════
# Dependency types
# ═════════════════════════════════════════════════════════════════════════════


class TestDependencyType:
    @pytest.mark.parametrize("raw,expected", [
        (None, DependencyType.FS),
        ("", DependencyType.FS),
        ("FS", DependencyType.FS),
        ("ss", DependencyType.SS),
        ("finish_to_finish", DependencyType.FF),
        ("start_to_finish", DependencyType.SF),
        (DependencyType.SS, DependencyType.SS),
    ])
    def test_parse(self, raw, expected):
        assert DependencyType.parse(raw) is expected

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError):
            DependencyType.parse("XX")

    def test_successor_start_rules(self):
        # predecessor occupies 5-7, successor lasts 3 days, lag 1
        assert DependencyType.FS.successor_start(5, 7, 1, 3) == 8
        assert DependencyType.SS.successor_start(5, 7, 1, 3) == 6
        assert DependencyType.FF.successor_start(5, 7, 1, 3) == 5
        assert DependencyType.SF.successor_start(5, 7, 1, 3) == 3


class TestEdgeNormalisation:
    def test_dict_with_long_keys(self):
        edge = to_edge({"predecessor_task_id": 1, "successor_task_id": 2,
                        "dependency_type": "SS", "lag_days": -2})
        assert edge == Edge(1, 2, DependencyType.SS, -2)

    def test_dict_with_short_keys_defaults(self):
        assert to_edge({"predecessor": "a", "successor": "b"}) == Edge("a", "b")

    def test_missing_endpoint_rejected(self):
        with pytest.raises(ValueError):
            to_edge({"predecessor": 1})


# ═════════════════════════════════════════════════════════════════════════════
# Cycle detection
# ═════════════════════════════════════════════════════════════════════════════


class TestDetectCircularDependency:
    def test_empty_graph(self):
        assert detect_circular_dependency([]).has_circle is False

    def test_chain_is_acyclic(self):
        assert detect_circular_dependency(_chain(1, 2, 3, 4)).has_circle is False

    def test_diamond_is_acyclic(self):
        edges = [Edge(1, 2), Edge(1, 3), Edge(2, 4), Edge(3, 4)]
        assert detect_circular_dependency(edges).has_circle is False

    def test_two_node_cycle(self):
        check = detect_circular_dependency([Edge(1, 2), Edge(2, 1)])
        assert check.has_circle is True
        assert check.cycle[0] == check.cycle[-1]
        assert set(check.cycle) == {1, 2}

    def test_long_transitive_cycle_path(self):
        edges = _chain(*range(1, 51)) + [Edge(50, 10)]
        check = detect_circular_dependency(edges)
        assert check.has_circle is True
        assert check.cycle == list(range(10, 51)) + [10]

    def test_long_chain_does_not_hit_recursion_limit(self):
        assert detect_circular_dependency(_chain(*range(5000))).has_circle is False

    def test_cycle_in_disconnected_component(self):
        edges = _chain(1, 2, 3) + [Edge(7, 8), Edge(8, 9), Edge(9, 7)]
        check = detect_circular_dependency(edges)
        assert check.has_circle is True
        assert set(check.cycle) == {7, 8, 9}

    def test_to_dict(self):
        assert detect_circular_dependency([]).to_dict() == {"has_circle": False}
        payload = detect_circular_dependency([Edge(1, 2), Edge(2, 1)]).to_dict()
        assert payload["has_circle"] is True and "cycle" in payload


class TestValidateNewDependency:
    def test_self_reference_rejected(self):
        result = validate_new_dependency([], Edge(3, 3))
        assert result.ok is False
        assert result.error == "self_reference"
        assert result.message == "Task cannot depend on itself"

    def test_self_reference_wins_over_cycle(self):
        # 3→3 would also be a cycle; the self-reference reason is reported
        result = validate_new_dependency([Edge(1, 3), Edge(3, 1)], Edge(3, 3))
        assert result.error == "self_reference"

    def test_closing_edge_rejected(self):
        result = validate_new_dependency(_chain(1, 2, 3), Edge(3, 1))
        assert result.ok is False
        assert result.error == "cycle"
        assert result.cycle[0] == result.cycle[-1]

    def test_valid_edge_accepted(self):
        result = validate_new_dependency(_chain(1, 2, 3), Edge(1, 3))
        assert result.ok is True
        assert result.to_dict() == {"ok": True}

    def test_existing_edges_not_mutated(self):
        existing = _chain(1, 2, 3)
        snapshot = list(existing)
        validate_new_dependency(existing, Edge(3, 1))
        validate_new_dependency(existing, Edge(1, 3))
        assert existing == snapshot

    def test_accepts_dict_edges(self):
        existing = [{"predecessor_task_id": 1, "successor_task_id": 2}]
        result = validate_new_dependency(existing, {"predecessor_task_id": 2, "successor_task_id": 1})
        assert result.error == "cycle"


# ═════════════════════════════════════════════════════════════════════════════
# Topological order
# ═════════════════════════════════════════════════════════════════════════════


class TestTopologicalOrder:
    def test_respects_edges(self):
        order = topological_order([3, 2, 1], [Edge(1, 2), Edge(2, 3)])
        assert order == [1, 2, 3]

    def test_ties_keep_input_order(self):
        assert topological_order(["b", "a", "c"], []) == ["b", "a", "c"]

    def test_edges_outside_nodes_ignored(self):
        assert topological_order([1, 2], [Edge(1, 2), Edge(2, 99)]) == [1, 2]

    def test_cycle_raises_with_path(self):
        with pytest.raises(GraphIntegrityError) as exc_info:
            topological_order([1, 2, 3], [Edge(1, 2), Edge(2, 3), Edge(3, 2)])
        assert set(exc_info.value.cycle) == {2, 3}


# ═════════════════════════════════════════════════════════════════════════════
# Randomised DAG properties
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize("seed", range(20))
def test_random_dag_has_no_false_positive(seed):
    rng = random.Random(seed)
    edges = _random_dag(rng, rng.randint(2, 40))
    assert detect_circular_dependency(edges).has_circle is False


@pytest.mark.parametrize("seed", range(20))
def test_random_dag_back_edge_detected(seed):
    """Any edge from a descendant back to an ancestor closes a cycle."""
    rng = random.Random(seed)
    n = rng.randint(3, 30)
    edges = _random_dag(rng, n, density=0.2) + _chain(*range(n))
    tail = rng.randrange(1, n)
    head = rng.randrange(0, tail)
    result = validate_new_dependency(edges, Edge(tail, head))
    assert result.ok is False
    assert result.error == "cycle"


@pytest.mark.parametrize("seed", range(10))
def test_random_dag_topological_order_is_valid(seed):
    rng = random.Random(seed)
    n = rng.randint(2, 40)
    nodes = list(range(n))
    rng.shuffle(nodes)
    edges = _random_dag(rng, n)
    position = {node: i for i, node in enumerate(topological_order(nodes, edges))}
    assert len(position) == n
    assert all(position[e.predecessor] < position[e.successor] for e in edges)
