"""Unit tests for the task dependency graph."""

from unittest.mock import patch

import pytest

from depgraph.analysis.graph import (
    CycleDetectedError,
    DependencyEdge,
    GraphAnalysisResult,
    TaskGraph,
)
from depgraph.tasks.models import DependencyType, Task, TaskDependency


def make_task(task_id, title=None, complexity=1, depends_on=(), description=""):
    """Build a task whose explicit prerequisites are depends_on."""
    return Task(
        id=task_id,
        title=title or task_id,
        description=description,
        complexity=complexity,
        dependencies=[TaskDependency(target_task_id=dep) for dep in depends_on],
    )


@pytest.fixture
def chain_graph():
    """t1 -> t2 -> t3."""
    graph = TaskGraph()
    graph.add_tasks([
        make_task("t1"),
        make_task("t2", depends_on=["t1"]),
        make_task("t3", depends_on=["t2"]),
    ])
    return graph


@pytest.fixture
def reference_graph():
    """Setup -> schema -> API -> UI, with only the first edge explicit."""
    graph = TaskGraph()
    graph.add_tasks([
        make_task("T1", "Setup infrastructure", complexity=2),
        make_task("T2", "Create database schema", complexity=3, depends_on=["T1"]),
        make_task("T3", "Build API endpoints", complexity=5),
        make_task("T4", "Build UI components", complexity=3),
    ])
    return graph


@pytest.fixture
def two_cycle_graph():
    graph = TaskGraph()
    graph.add_tasks([
        make_task("T1", depends_on=["T2"]),
        make_task("T2", depends_on=["T1"]),
    ])
    return graph


def assert_topological(graph, order):
    assert sorted(order) == sorted(node.id for node in graph.nodes)
    position = {task_id: i for i, task_id in enumerate(order)}
    for edge in graph.edges:
        assert position[edge.from_task_id] < position[edge.to_task_id]


class TestMutation:
    """Tests for adding tasks and edges."""

    def test_explicit_dependency_edge(self):
        graph = TaskGraph()
        graph.add_task(make_task("a"))
        graph.add_task(
            Task(
                id="b",
                title="B",
                dependencies=[
                    TaskDependency(target_task_id="a", type=DependencyType.BLOCKS, description="needs a")
                ],
            )
        )

        edge = graph.get_edge("a", "b")
        assert edge == DependencyEdge(
            from_task_id="a",
            to_task_id="b",
            type="blocks",
            confidence=1.0,
            reasoning="needs a",
            is_implicit=False,
        )
        assert graph.successors("a") == ["b"]
        assert graph.predecessors("b") == ["a"]

    def test_default_reasoning(self, chain_graph):
        assert chain_graph.get_edge("t1", "t2").reasoning == "Explicitly defined"

    def test_unknown_endpoint_creates_placeholder(self):
        graph = TaskGraph()
        graph.add_task(make_task("b", depends_on=["ghost"]))

        ghost = graph.get_node("ghost")
        assert "ghost" in graph
        assert ghost.placeholder is True
        assert ghost.title == "ghost"
        assert ghost.weight == 1
        assert [task.id for task in graph.tasks] == ["b"]

    def test_placeholder_filled_in_later(self):
        graph = TaskGraph()
        graph.add_task(make_task("b", depends_on=["a"]))
        graph.add_task(make_task("a", "Real A", complexity=7))

        node = graph.get_node("a")
        assert node.placeholder is False
        assert node.title == "Real A"
        assert node.weight == 7
        # keeps the position it got as a placeholder
        assert [n.id for n in graph.nodes] == ["b", "a"]

    def test_add_dependency_overwrites_metadata(self, chain_graph):
        chain_graph.add_dependency("t1", "t2", type="related_to", confidence=0.4, reasoning="x")

        assert len(chain_graph.edges) == 2
        assert chain_graph.get_edge("t1", "t2").type == "related_to"
        assert chain_graph.get_edge("t1", "t2").confidence == 0.4

    def test_implicit_log_is_append_only(self):
        graph = TaskGraph()
        for _ in range(2):
            graph.add_dependency("a", "b", confidence=0.6, reasoning="guess", is_implicit=True)
        graph.add_dependency("b", "c")

        log = graph.get_implicit_dependencies()
        assert len(log) == 2
        assert all(dep.is_implicit for dep in log)
        assert len(graph.edges) == 2

        log.clear()
        assert len(graph.get_implicit_dependencies()) == 2


class TestCycles:
    """Tests for detect_cycles."""

    def test_acyclic(self, chain_graph):
        assert chain_graph.detect_cycles() == []

    def test_two_node_cycle(self, two_cycle_graph):
        assert two_cycle_graph.detect_cycles() == [["T1", "T2"]]

    def test_three_node_cycle_and_separate_cycles(self, chain_graph):
        chain_graph.add_dependency("t3", "t1")
        chain_graph.add_dependency("x", "y")
        chain_graph.add_dependency("y", "x")

        assert chain_graph.detect_cycles() == [["t1", "t2", "t3"], ["x", "y"]]

    def test_self_dependency_is_a_cycle(self):
        graph = TaskGraph()
        graph.add_task(make_task("a", depends_on=["a"]))

        assert graph.detect_cycles() == [["a"]]

    def test_internal_failure_degrades_to_empty(self, two_cycle_graph):
        with patch.object(TaskGraph, "_find_cycles", side_effect=RuntimeError("boom")):
            assert two_cycle_graph.detect_cycles() == []

    def test_deep_chain_does_not_recurse(self):
        graph = TaskGraph()
        for i in range(1, 3000):
            graph.add_dependency(f"n{i - 1}", f"n{i}")
        graph.add_dependency("n2999", "n0")

        cycles = graph.detect_cycles()
        assert len(cycles) == 1
        assert len(cycles[0]) == 3000


class TestExecutionOrder:
    """Tests for get_execution_order."""

    def test_chain(self, chain_graph):
        assert chain_graph.get_execution_order() == ["t1", "t2", "t3"]

    def test_ties_follow_insertion_order(self):
        graph = TaskGraph()
        graph.add_tasks([
            make_task("c"),
            make_task("a"),
            make_task("b", depends_on=["a"]),
        ])
        assert graph.get_execution_order() == ["c", "a", "b"]

    def test_diamond(self):
        graph = TaskGraph()
        graph.add_tasks([
            make_task("d", depends_on=["b", "c"]),
            make_task("b", depends_on=["a"]),
            make_task("c", depends_on=["a"]),
            make_task("a"),
        ])
        order = graph.get_execution_order()

        assert_topological(graph, order)
        assert order == ["a", "b", "c", "d"]

    def test_empty(self):
        assert TaskGraph().get_execution_order() == []

    def test_cycle_raises_with_count(self, two_cycle_graph):
        with pytest.raises(CycleDetectedError, match=r"in 1 cycle\(s\)") as exc_info:
            two_cycle_graph.get_execution_order()

        assert exc_info.value.cycle_count == 1
        assert exc_info.value.cycles == [["T1", "T2"]]

    def test_sort_failure_falls_back_to_insertion_order(self, chain_graph):
        with patch.object(TaskGraph, "_topological_order", side_effect=RuntimeError("boom")):
            assert chain_graph.get_execution_order() == ["t1", "t2", "t3"]


class TestCriticalPath:
    """Tests for get_critical_path."""

    def test_weighted_branch_wins(self):
        graph = TaskGraph()
        graph.add_tasks([
            make_task("start", complexity=1),
            make_task("light", complexity=1, depends_on=["start"]),
            make_task("heavy", complexity=8, depends_on=["start"]),
            make_task("end", complexity=2, depends_on=["light", "heavy"]),
        ])

        assert graph.get_critical_path() == ["start", "heavy", "end"]
        assert graph.get_critical_path_weight() == 11

    def test_weight_sum_matches_longest_distance(self):
        graph = TaskGraph()
        graph.add_tasks([
            make_task("a", complexity=4),
            make_task("b", complexity=2),
            make_task("c", complexity=6, depends_on=["a"]),
            make_task("d", complexity=1, depends_on=["b", "c"]),
        ])
        path = graph.get_critical_path()
        # distance(d) = 4 + 6, plus d's own weight
        assert path == ["a", "c", "d"]
        assert graph.get_critical_path_weight() == 11

    def test_tie_first_in_insertion_order(self):
        graph = TaskGraph()
        graph.add_tasks([
            make_task("a", complexity=3),
            make_task("b", complexity=3),
            make_task("a2", depends_on=["a"]),
            make_task("b2", depends_on=["b"]),
        ])
        assert graph.get_critical_path() == ["a", "a2"]

    def test_empty_graph(self):
        assert TaskGraph().get_critical_path() == []
        assert TaskGraph().get_critical_path_weight() == 0

    def test_isolated_tasks_pick_heaviest(self):
        graph = TaskGraph()
        graph.add_tasks([
            make_task("a", complexity=2),
            make_task("b", complexity=9),
            make_task("c", complexity=9),
        ])
        assert graph.get_critical_path() == ["b"]

    def test_isolated_equal_weights_pick_first(self):
        graph = TaskGraph()
        graph.add_tasks([make_task("x"), make_task("y")])
        assert graph.get_critical_path() == ["x"]

    def test_placeholder_weighs_one(self):
        graph = TaskGraph()
        graph.add_task(make_task("b", complexity=5, depends_on=["ghost"]))

        assert graph.get_critical_path() == ["ghost", "b"]
        assert graph.get_critical_path_weight() == 6

    def test_cycle_returns_empty(self, two_cycle_graph):
        assert two_cycle_graph.get_critical_path() == []


class TestParallelGroups:
    """Tests for get_parallel_groups."""

    def test_independent_then_join(self):
        graph = TaskGraph()
        graph.add_tasks([
            make_task("t1"),
            make_task("t2"),
            make_task("t3", depends_on=["t1", "t2"]),
        ])
        assert graph.get_parallel_groups() == [["t1", "t2"], ["t3"]]

    def test_chain(self, chain_graph):
        assert chain_graph.get_parallel_groups() == [["t1"], ["t2"], ["t3"]]

    def test_layering_respects_edges(self):
        graph = TaskGraph()
        graph.add_tasks([
            make_task("a"),
            make_task("b", depends_on=["a"]),
            make_task("c"),
            make_task("d", depends_on=["b", "c"]),
            make_task("e", depends_on=["a"]),
        ])
        groups = graph.get_parallel_groups()
        group_of = {task_id: i for i, group in enumerate(groups) for task_id in group}

        assert groups == [["a", "c"], ["b", "e"], ["d"]]
        assert groups[0] == graph.get_orphan_tasks()
        for edge in graph.edges:
            assert group_of[edge.from_task_id] < group_of[edge.to_task_id]

    def test_cycle_truncates(self):
        graph = TaskGraph()
        graph.add_tasks([
            make_task("root"),
            make_task("x", depends_on=["root", "y"]),
            make_task("y", depends_on=["x"]),
        ])
        groups = graph.get_parallel_groups()

        assert groups == [["root"]]
        assert sum(len(group) for group in groups) < len(graph)

    def test_empty(self):
        assert TaskGraph().get_parallel_groups() == []


class TestOrphansAndLeaves:
    """Tests for entry and exit points."""

    def test_chain(self, chain_graph):
        assert chain_graph.get_orphan_tasks() == ["t1"]
        assert chain_graph.get_leaf_tasks() == ["t3"]

    def test_isolated_task_is_both(self):
        graph = TaskGraph()
        graph.add_task(make_task("solo"))
        assert graph.get_orphan_tasks() == ["solo"]
        assert graph.get_leaf_tasks() == ["solo"]

    def test_two_cycle_has_neither(self, two_cycle_graph):
        assert two_cycle_graph.get_orphan_tasks() == []
        assert two_cycle_graph.get_leaf_tasks() == []


class TestAnalyze:
    """Tests for analyze."""

    def test_reference_scenario(self, reference_graph):
        detected = reference_graph.detect_implicit_dependencies(0.5)

        assert [(d.from_task_id, d.to_task_id) for d in detected] == [("T2", "T3"), ("T3", "T4")]

        result = reference_graph.analyze()

        assert result.execution_order == ["T1", "T2", "T3", "T4"]
        assert result.critical_path == ["T1", "T2", "T3", "T4"]
        assert reference_graph.get_critical_path_weight() == 13
        assert result.parallel_groups == [["T1"], ["T2"], ["T3"], ["T4"]]
        assert result.cycles == []
        assert result.orphan_tasks == ["T1"]
        assert result.leaf_tasks == ["T4"]

    def test_cycle_scenario(self, two_cycle_graph):
        result = two_cycle_graph.analyze()

        assert result.has_cycles
        assert result.cycles == [["T1", "T2"]]
        assert result.execution_order == []
        assert result.critical_path == []
        assert result.parallel_groups == []
        assert result.orphan_tasks == []
        assert result.leaf_tasks == []

    def test_cycle_keeps_local_degree_results(self):
        graph = TaskGraph()
        graph.add_tasks([
            make_task("root"),
            make_task("x", depends_on=["root", "y"]),
            make_task("y", depends_on=["x"]),
            make_task("tail", depends_on=["y"]),
        ])
        result = graph.analyze()

        assert result.cycles == [["x", "y"]]
        assert result.orphan_tasks == ["root"]
        assert result.leaf_tasks == ["tail"]

    def test_mutation_after_analysis_is_seen(self, chain_graph):
        first = chain_graph.analyze()
        chain_graph.add_task(make_task("t4", depends_on=["t3"]))
        second = chain_graph.analyze()

        assert first.execution_order == ["t1", "t2", "t3"]
        assert second.execution_order == ["t1", "t2", "t3", "t4"]

    def test_to_dict_keys(self, chain_graph):
        data = chain_graph.analyze().to_dict()

        assert data == {
            "executionOrder": ["t1", "t2", "t3"],
            "criticalPath": ["t1", "t2", "t3"],
            "parallelGroups": [["t1"], ["t2"], ["t3"]],
            "cycles": [],
            "orphanTasks": ["t1"],
            "leafTasks": ["t3"],
        }

    def test_empty_result_defaults(self):
        assert GraphAnalysisResult().to_dict()["cycles"] == []
        assert TaskGraph().analyze() == GraphAnalysisResult()


def test_export_for_visualization():
    graph = TaskGraph()
    graph.add_task(make_task("t1", "Task 1", complexity=8))
    graph.add_task(make_task("t2", "Task 2", depends_on=["t1"]))
    graph.add_dependency("t2", "t3", confidence=0.55, is_implicit=True)

    exported = graph.export_for_visualization()

    assert exported["nodes"] == [
        {"id": "t1", "label": "Task 1", "complexity": 8},
        {"id": "t2", "label": "Task 2", "complexity": 1},
        {"id": "t3", "label": "t3", "complexity": 1},
    ]
    assert exported["edges"] == [
        {"from": "t1", "to": "t2", "type": "depends_on", "confidence": 1.0},
        {"from": "t2", "to": "t3", "type": "depends_on", "confidence": 0.55},
    ]
