"""Task dependency graph and its analysis algorithms.

Edges point from prerequisite to dependent, so a topological order lists
prerequisites first. The graph is an explicit adjacency structure (node
attributes plus forward and backward id -> set[id] maps); neighbour
iteration follows node insertion order so every result is deterministic.

Calling convention: only ``get_execution_order()`` raises on cyclic input.
``get_critical_path()`` returns ``[]`` and ``get_parallel_groups()`` returns
a truncated layering when the graph has a cycle. Check ``detect_cycles()``
first or call ``analyze()``; never call the individual algorithms blind on
untrusted input.

A graph is built per analysis and is not thread-safe. Nothing is cached:
mutating the graph after an analysis simply means the next call sees the
new state.
"""

import heapq
import logging
from dataclasses import asdict, dataclass, field
from typing import Iterable, Optional, Union

from ..tasks.models import DependencyType, Task

logger = logging.getLogger(__name__)

DEFAULT_WEIGHT = 1


class CycleDetectedError(Exception):
    """Execution order requested for a graph with circular dependencies."""

    def __init__(self, cycles: list[list[str]]):
        self.cycles = cycles
        self.cycle_count = len(cycles)
        super().__init__(
            "Cannot determine execution order: circular dependencies found in "
            f"{self.cycle_count} cycle(s)"
        )


@dataclass
class TaskNode:
    """Node attributes."""

    id: str
    title: str
    complexity: Optional[int] = None
    placeholder: bool = False

    @property
    def weight(self) -> int:
        """Complexity used as node weight (1 when unknown)."""
        return self.complexity or DEFAULT_WEIGHT


@dataclass
class DependencyEdge:
    """Edge metadata, prerequisite -> dependent."""

    from_task_id: str
    to_task_id: str
    type: str = DependencyType.DEPENDS_ON.value
    confidence: float = 1.0
    reasoning: str = ""
    is_implicit: bool = False


@dataclass
class DetectedDependency:
    """Dependency recorded by the implicit detection log."""

    from_task_id: str
    to_task_id: str
    type: str
    confidence: float
    reasoning: str
    is_implicit: bool = True

    @classmethod
    def from_edge(cls, edge: DependencyEdge) -> "DetectedDependency":
        return cls(
            from_task_id=edge.from_task_id,
            to_task_id=edge.to_task_id,
            type=edge.type,
            confidence=edge.confidence,
            reasoning=edge.reasoning,
            is_implicit=edge.is_implicit,
        )

    def to_dict(self) -> dict:
        return {
            "fromTaskId": self.from_task_id,
            "toTaskId": self.to_task_id,
            "type": self.type,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "isImplicit": self.is_implicit,
        }


@dataclass
class GraphAnalysisResult:
    """Full analysis of a graph."""

    execution_order: list[str] = field(default_factory=list)
    critical_path: list[str] = field(default_factory=list)
    parallel_groups: list[list[str]] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)
    orphan_tasks: list[str] = field(default_factory=list)
    leaf_tasks: list[str] = field(default_factory=list)

    @property
    def has_cycles(self) -> bool:
        return bool(self.cycles)

    def to_dict(self) -> dict:
        data = asdict(self)
        return {
            "executionOrder": data["execution_order"],
            "criticalPath": data["critical_path"],
            "parallelGroups": data["parallel_groups"],
            "cycles": data["cycles"],
            "orphanTasks": data["orphan_tasks"],
            "leafTasks": data["leaf_tasks"],
        }


class TaskGraph:
    """Directed graph of tasks and their dependencies."""

    def __init__(self):
        """Initialize an empty graph."""
        self._nodes: dict[str, TaskNode] = {}
        self._tasks: dict[str, Task] = {}
        self._successors: dict[str, set[str]] = {}
        self._predecessors: dict[str, set[str]] = {}
        self._edges: dict[tuple[str, str], DependencyEdge] = {}
        self._implicit_log: list[DetectedDependency] = []

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._nodes

    @property
    def nodes(self) -> list[TaskNode]:
        """Nodes in insertion order."""
        return list(self._nodes.values())

    @property
    def edges(self) -> list[DependencyEdge]:
        """Edges in insertion order."""
        return list(self._edges.values())

    @property
    def tasks(self) -> list[Task]:
        """Registered tasks (placeholders excluded) in insertion order."""
        return list(self._tasks.values())

    def get_node(self, task_id: str) -> Optional[TaskNode]:
        return self._nodes.get(task_id)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _ensure_node(self, task_id: str) -> TaskNode:
        node = self._nodes.get(task_id)
        if node is None:
            node = TaskNode(id=task_id, title=task_id, placeholder=True)
            self._nodes[task_id] = node
            self._successors[task_id] = set()
            self._predecessors[task_id] = set()
            logger.debug("Created placeholder node", extra={"task_id": task_id})
        return node

    def add_task(self, task: Task) -> None:
        """Register a task and its explicit dependencies.

        Re-adding a known id (or a placeholder created by an earlier edge)
        replaces the node attributes and keeps its position.

        Args:
            task: Task to add
        """
        node = self._ensure_node(task.id)
        node.title = task.title
        node.complexity = task.complexity
        node.placeholder = False
        self._tasks[task.id] = task

        for dep in task.dependencies:
            self.add_dependency(
                dep.target_task_id,
                task.id,
                type=dep.type,
                confidence=1.0,
                reasoning=dep.description or "Explicitly defined",
                is_implicit=False,
            )

        logger.debug(
            f"Added task with {len(task.dependencies)} explicit dependencies",
            extra={"task_id": task.id},
        )

    def add_tasks(self, tasks: Iterable[Task]) -> None:
        """Register several tasks in order."""
        for task in tasks:
            self.add_task(task)

    def add_dependency(
        self,
        from_id: str,
        to_id: str,
        type: Union[str, DependencyType] = DependencyType.DEPENDS_ON,
        confidence: float = 1.0,
        reasoning: str = "",
        is_implicit: bool = False,
    ) -> DependencyEdge:
        """Insert or overwrite the edge from_id -> to_id.

        Unknown endpoints become placeholder nodes. Implicit edges are also
        appended to the detection log, which is never deduplicated.

        Args:
            from_id: Prerequisite task id
            to_id: Dependent task id
            type: Relationship type
            confidence: Confidence in the relationship (0-1)
            reasoning: Why the edge exists
            is_implicit: Whether the edge was inferred

        Returns:
            The stored edge
        """
        self._ensure_node(from_id)
        self._ensure_node(to_id)

        edge = DependencyEdge(
            from_task_id=from_id,
            to_task_id=to_id,
            type=type.value if isinstance(type, DependencyType) else str(type),
            confidence=confidence,
            reasoning=reasoning,
            is_implicit=is_implicit,
        )
        self._edges[(from_id, to_id)] = edge
        self._successors[from_id].add(to_id)
        self._predecessors[to_id].add(from_id)

        if is_implicit:
            self._implicit_log.append(DetectedDependency.from_edge(edge))

        return edge

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_edge(self, from_id: str, to_id: str) -> bool:
        return (from_id, to_id) in self._edges

    def get_edge(self, from_id: str, to_id: str) -> Optional[DependencyEdge]:
        return self._edges.get((from_id, to_id))

    def _positions(self) -> dict[str, int]:
        return {task_id: i for i, task_id in enumerate(self._nodes)}

    def _in_order(self, ids: Iterable[str], positions: Optional[dict[str, int]] = None) -> list[str]:
        positions = positions or self._positions()
        return sorted(ids, key=positions.__getitem__)

    def successors(self, task_id: str) -> list[str]:
        """Direct dependents of a task."""
        return self._in_order(self._successors.get(task_id, ()))

    def predecessors(self, task_id: str) -> list[str]:
        """Direct prerequisites of a task."""
        return self._in_order(self._predecessors.get(task_id, ()))

    def get_orphan_tasks(self) -> list[str]:
        """Tasks with no prerequisites (entry points)."""
        return [task_id for task_id in self._nodes if not self._predecessors[task_id]]

    def get_leaf_tasks(self) -> list[str]:
        """Tasks nothing depends on (exit points)."""
        return [task_id for task_id in self._nodes if not self._successors[task_id]]

    def get_implicit_dependencies(self) -> list[DetectedDependency]:
        """Copy of the implicit detection log."""
        return list(self._implicit_log)

    def detect_implicit_dependencies(
        self, confidence_threshold: float = 0.5
    ) -> list[DetectedDependency]:
        """Infer dependencies between registered tasks and add them as edges.

        Args:
            confidence_threshold: Minimum confidence for an inferred edge

        Returns:
            Dependencies detected by this call
        """
        from .detector import ImplicitDependencyDetector

        return ImplicitDependencyDetector(self).detect(confidence_threshold)

    # ------------------------------------------------------------------
    # Algorithms
    # ------------------------------------------------------------------

    def detect_cycles(self) -> list[list[str]]:
        """Find circular dependencies.

        Returns:
            One list per strongly connected component that forms a cycle
            (size > 1, or a task depending on itself). Members and cycles
            are in insertion order. Never raises.
        """
        try:
            return self._find_cycles()
        except Exception as e:
            logger.warning(f"Cycle detection failed, reporting no cycles: {e}", exc_info=True)
            return []

    def _find_cycles(self) -> list[list[str]]:
        # Iterative Tarjan SCC
        positions = self._positions()
        index_of: dict[str, int] = {}
        lowlink: dict[str, int] = {}
        stack: list[str] = []
        on_stack: set[str] = set()
        components: list[list[str]] = []
        counter = 0

        for root in self._nodes:
            if root in index_of:
                continue

            index_of[root] = lowlink[root] = counter
            counter += 1
            stack.append(root)
            on_stack.add(root)
            work = [(root, iter(self._in_order(self._successors[root], positions)))]

            while work:
                node, neighbors = work[-1]
                descended = False

                for neighbor in neighbors:
                    if neighbor not in index_of:
                        index_of[neighbor] = lowlink[neighbor] = counter
                        counter += 1
                        stack.append(neighbor)
                        on_stack.add(neighbor)
                        work.append(
                            (neighbor, iter(self._in_order(self._successors[neighbor], positions)))
                        )
                        descended = True
                        break
                    if neighbor in on_stack:
                        lowlink[node] = min(lowlink[node], index_of[neighbor])

                if descended:
                    continue

                work.pop()
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node])

                if lowlink[node] == index_of[node]:
                    component: list[str] = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    components.append(component)

        cycles = [
            self._in_order(component, positions)
            for component in components
            if len(component) > 1 or component[0] in self._successors[component[0]]
        ]
        cycles.sort(key=lambda cycle: positions[cycle[0]])
        return cycles

    def _topological_order(self) -> list[str]:
        """Kahn's algorithm, ties broken by insertion order.

        Raises:
            ValueError: If a cycle prevents a complete order
        """
        ids = list(self._nodes)
        positions = self._positions()
        in_degree = {task_id: len(self._predecessors[task_id]) for task_id in ids}

        ready = [positions[task_id] for task_id in ids if in_degree[task_id] == 0]
        heapq.heapify(ready)

        order: list[str] = []
        while ready:
            node = ids[heapq.heappop(ready)]
            order.append(node)
            for successor in self._successors[node]:
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    heapq.heappush(ready, positions[successor])

        if len(order) != len(ids):
            raise ValueError(f"Graph contains a cycle ({len(ids) - len(order)} tasks unordered)")
        return order

    def get_execution_order(self) -> list[str]:
        """Topological execution order.

        Returns:
            Task ids with every prerequisite before its dependents

        Raises:
            CycleDetectedError: If the graph has circular dependencies
        """
        cycles = self.detect_cycles()
        if cycles:
            raise CycleDetectedError(cycles)

        try:
            return self._topological_order()
        except Exception as e:
            logger.warning(f"Topological sort failed, using insertion order: {e}")
            return list(self._nodes)

    def get_critical_path(self) -> list[str]:
        """Longest complexity-weighted dependency chain.

        distance[v] is the heaviest chain of prerequisites ending just
        before v; the endpoint is the node with the largest distance, the
        first one in insertion order on ties. Without edges every distance
        is 0 and the path is the single heaviest task (first on ties).

        Returns:
            Task ids from chain start to end; [] for an empty or cyclic graph
        """
        if not self._nodes:
            return []

        try:
            order = self._topological_order()
        except ValueError:
            return []

        positions = self._positions()
        distances = {task_id: 0 for task_id in self._nodes}
        previous: dict[str, str] = {}

        for node in order:
            weight = self._nodes[node].weight
            for successor in self._in_order(self._successors[node], positions):
                candidate = distances[node] + weight
                if candidate > distances[successor]:
                    distances[successor] = candidate
                    previous[successor] = node

        end_node: Optional[str] = None
        max_distance = 0
        for task_id, distance in distances.items():
            if distance > max_distance:
                max_distance = distance
                end_node = task_id

        if end_node is None:
            heaviest = max(self._nodes.values(), key=lambda node: node.weight)
            return [heaviest.id]

        path = [end_node]
        while path[-1] in previous:
            path.append(previous[path[-1]])
        path.reverse()
        return path

    def get_critical_path_weight(self) -> int:
        """Sum of node weights along the critical path."""
        return sum(self._nodes[task_id].weight for task_id in self.get_critical_path())

    def get_parallel_groups(self) -> list[list[str]]:
        """Layer tasks into batches that can run concurrently.

        Each group holds every remaining task whose prerequisites are all in
        earlier groups. On a cycle the layering stops early, so the groups
        cover fewer tasks than the graph holds.

        Returns:
            Groups in execution order, each in insertion order
        """
        in_degree = {task_id: len(self._predecessors[task_id]) for task_id in self._nodes}
        remaining = list(self._nodes)
        groups: list[list[str]] = []

        while remaining:
            group = [task_id for task_id in remaining if in_degree[task_id] == 0]
            if not group:
                logger.debug(f"Parallel grouping stopped with {len(remaining)} tasks in cycles")
                break

            groups.append(group)
            grouped = set(group)
            remaining = [task_id for task_id in remaining if task_id not in grouped]

            for node in group:
                for successor in self._successors[node]:
                    in_degree[successor] -= 1

        return groups

    def analyze(self) -> GraphAnalysisResult:
        """Run every analysis.

        Ordering results stay empty when cycles exist; cycles, orphans and
        leaves are always filled in.
        """
        result = GraphAnalysisResult(cycles=self.detect_cycles())

        if not result.cycles:
            result.execution_order = self.get_execution_order()
            result.critical_path = self.get_critical_path()
            result.parallel_groups = self.get_parallel_groups()
        else:
            logger.warning(f"Dependency graph has {len(result.cycles)} cycle(s)")

        result.orphan_tasks = self.get_orphan_tasks()
        result.leaf_tasks = self.get_leaf_tasks()

        logger.info(
            f"Analyzed {len(self._nodes)} tasks, {len(self._edges)} dependencies: "
            f"{len(result.parallel_groups)} groups, critical path {len(result.critical_path)} tasks"
        )
        return result

    def export_for_visualization(self) -> dict:
        """Flatten nodes and edges for rendering."""
        nodes = [
            {"id": node.id, "label": node.title, "complexity": node.weight}
            for node in self._nodes.values()
        ]
        edges = [
            {
                "from": edge.from_task_id,
                "to": edge.to_task_id,
                "type": edge.type,
                "confidence": edge.confidence,
            }
            for edge in self._edges.values()
        ]
        return {"nodes": nodes, "edges": edges}
