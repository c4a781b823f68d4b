"""Per-request analysis of a task snapshot."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..config.models import DetectionConfig
from ..tasks.loader import TaskLoadError, find_duplicate_ids
from ..tasks.models import Task
from .graph import DetectedDependency, GraphAnalysisResult, TaskGraph

logger = logging.getLogger(__name__)


@dataclass
class AnalysisReport:
    """Analysis of one task snapshot."""

    result: GraphAnalysisResult
    implicit_dependencies: list[DetectedDependency]
    visualization: dict
    task_count: int
    critical_path_weight: int = 0
    detection_ran: bool = False
    warnings: list[str] = field(default_factory=list)

    def to_dict(self, include_visualization: bool = False, include_implicit: bool = True) -> dict:
        data = {
            "taskCount": self.task_count,
            "analysis": self.result.to_dict(),
            "criticalPathWeight": self.critical_path_weight,
            "detectionRan": self.detection_ran,
            "warnings": list(self.warnings),
        }
        if include_implicit:
            data["implicitDependencies"] = [dep.to_dict() for dep in self.implicit_dependencies]
        if include_visualization:
            data["visualization"] = self.visualization
        return data


def build_graph(tasks: list[Task]) -> TaskGraph:
    """Build a fresh graph from a task snapshot.

    Args:
        tasks: Tasks in caller order

    Returns:
        Populated TaskGraph

    Raises:
        TaskLoadError: If a task id appears more than once
    """
    duplicates = find_duplicate_ids(tasks)
    if duplicates:
        raise TaskLoadError(f"Duplicate task ids: {', '.join(duplicates)}")

    graph = TaskGraph()
    graph.add_tasks(tasks)

    placeholders = [node.id for node in graph.nodes if node.placeholder]
    if placeholders:
        logger.warning(f"Dependencies reference unknown tasks: {', '.join(placeholders)}")

    return graph


def analyze_tasks(
    tasks: list[Task],
    detection: Optional[DetectionConfig] = None,
) -> AnalysisReport:
    """Build a graph, infer dependencies and analyze it.

    Args:
        tasks: Task snapshot
        detection: Detection settings (defaults when omitted)

    Returns:
        AnalysisReport

    Raises:
        TaskLoadError: If a task id appears more than once
    """
    detection = detection or DetectionConfig()
    graph = build_graph(tasks)
    warnings: list[str] = []

    detected: list[DetectedDependency] = []
    detection_ran = False
    if not detection.enabled:
        logger.debug("Implicit dependency detection disabled")
    elif detection.max_tasks and len(tasks) > detection.max_tasks:
        message = (
            f"Skipped implicit dependency detection: {len(tasks)} tasks exceeds "
            f"max_tasks={detection.max_tasks}"
        )
        logger.warning(message)
        warnings.append(message)
    else:
        detected = graph.detect_implicit_dependencies(detection.confidence_threshold)
        detection_ran = True

    placeholders = [node.id for node in graph.nodes if node.placeholder]
    if placeholders:
        warnings.append(f"Dependencies reference unknown tasks: {', '.join(placeholders)}")

    result = graph.analyze()
    if result.cycles:
        warnings.append(
            f"Circular dependencies found in {len(result.cycles)} cycle(s); "
            "execution order, critical path and parallel groups are unavailable"
        )
    else:
        warnings.extend(validate_analysis(result, graph))

    return AnalysisReport(
        result=result,
        implicit_dependencies=detected,
        visualization=graph.export_for_visualization(),
        task_count=len(graph),
        critical_path_weight=graph.get_critical_path_weight() if not result.cycles else 0,
        detection_ran=detection_ran,
        warnings=warnings,
    )


def validate_analysis(result: GraphAnalysisResult, graph: TaskGraph) -> list[str]:
    """Check an acyclic analysis against the graph it came from.

    Args:
        result: Result of graph.analyze()
        graph: Analyzed graph

    Returns:
        List of error messages (empty if valid)
    """
    errors = []

    task_ids = [node.id for node in graph.nodes]
    task_set = set(task_ids)

    order = result.execution_order or []
    order_set: set[str] = set()
    duplicates: set[str] = set()
    for task_id in order:
        if task_id in order_set:
            duplicates.add(task_id)
        order_set.add(task_id)

    for task_id in sorted(duplicates):
        errors.append(f"Task {task_id} appears multiple times in execution order")

    for task_id in task_ids:
        if task_id not in order_set:
            errors.append(f"Task {task_id} not in execution order")

    for task_id in order_set:
        if task_id not in task_set:
            errors.append(f"Execution order references non-existent task: {task_id}")

    # Check that execution order respects edges.
    index = {task_id: i for i, task_id in enumerate(order)}
    for edge in graph.edges:
        a, b = edge.from_task_id, edge.to_task_id
        if a in index and b in index and index[a] >= index[b]:
            errors.append(f"Execution order violates dependency: {a} -> {b}")

    # Check that parallel groups are layered and complete
    group_of: dict[str, int] = {}
    for group_index, group in enumerate(result.parallel_groups):
        for task_id in group:
            if task_id not in task_set:
                errors.append(f"Parallel group references non-existent task: {task_id}")
            if task_id in group_of:
                errors.append(f"Task {task_id} appears in multiple parallel groups")
            group_of[task_id] = group_index

    if len(group_of) < len(task_set):
        errors.append(
            f"Parallel groups cover {len(group_of)} of {len(task_set)} tasks"
        )

    for edge in graph.edges:
        a, b = edge.from_task_id, edge.to_task_id
        if a in group_of and b in group_of and group_of[a] >= group_of[b]:
            errors.append(f"Parallel groups violate dependency: {a} -> {b}")

    return errors
