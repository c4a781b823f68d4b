"""Keyword-based implicit dependency detection."""

import logging
from typing import Iterable

from ..tasks.models import DependencyType, Task
from .graph import DetectedDependency, TaskGraph
from .keywords import check_keyword_dependency, extract_keywords

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.5


class ImplicitDependencyDetector:
    """Infer likely prerequisites between the tasks of a graph.

    Every ordered pair of tasks is checked, so the sweep is O(n^2) in the
    number of tasks. Callers with large task sets should cap n first.
    """

    def __init__(self, graph: TaskGraph):
        """Initialize detector.

        Args:
            graph: Graph whose registered tasks are compared and which
                receives the inferred edges
        """
        self.graph = graph

    def _has_explicit_edge(self, a: str, b: str) -> bool:
        for edge in (self.graph.get_edge(a, b), self.graph.get_edge(b, a)):
            if edge is not None and not edge.is_implicit:
                return True
        return False

    def detect(
        self, confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    ) -> list[DetectedDependency]:
        """Run detection and add inferred edges to the graph.

        Pairs already joined by an explicit edge are skipped. The check looks
        at both directions, not only A -> B, so an explicit B -> A never gets
        an inferred A -> B added against it. Both (A, B) and (B, A) are
        evaluated, so a pair without explicit edges can end up with inferred
        edges in both directions.

        Args:
            confidence_threshold: Minimum confidence for an inferred edge

        Returns:
            Dependencies detected by this run, prerequisite first
        """
        tasks = self.graph.tasks
        keywords = {task.id: extract_keywords(task.text) for task in tasks}
        detected: list[DetectedDependency] = []

        for task_a in tasks:
            for task_b in tasks:
                if task_a.id == task_b.id:
                    continue
                if self._has_explicit_edge(task_a.id, task_b.id):
                    continue

                result = check_keyword_dependency(keywords[task_a.id], keywords[task_b.id])
                if not result.likely or result.confidence < confidence_threshold:
                    continue

                edge = self.graph.add_dependency(
                    task_a.id,
                    task_b.id,
                    type=DependencyType.DEPENDS_ON,
                    confidence=result.confidence,
                    reasoning=result.reason,
                    is_implicit=True,
                )
                detected.append(DetectedDependency.from_edge(edge))
                logger.debug(
                    f"Inferred {task_a.id} -> {task_b.id} "
                    f"(confidence {result.confidence:.2f}): {result.reason}"
                )

        logger.info(
            f"Detected {len(detected)} implicit dependencies across {len(tasks)} tasks "
            f"(threshold {confidence_threshold})"
        )
        return detected


def detect_implicit_dependencies(
    tasks: Iterable[Task],
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> list[DetectedDependency]:
    """Detect dependencies without keeping the graph around.

    Args:
        tasks: Tasks to compare
        confidence_threshold: Minimum confidence for an inferred edge

    Returns:
        Detected dependencies
    """
    graph = TaskGraph()
    graph.add_tasks(tasks)
    return ImplicitDependencyDetector(graph).detect(confidence_threshold)
