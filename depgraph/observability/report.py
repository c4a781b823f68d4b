"""Human-readable analysis reports."""

from enum import Enum

from ..analysis.keywords import DependencyPattern
from ..analysis.service import AnalysisReport


class StatusSymbol(str, Enum):
    """Symbols for report display."""

    OK = "✅"
    CYCLE = "🔁"
    WARNING = "⚠️"
    INFERRED = "🔎"


class AnalysisReportRenderer:
    """Render an AnalysisReport as markdown."""

    def __init__(self, report: AnalysisReport, include_implicit: bool = True):
        """Initialize renderer.

        Args:
            report: Report to render
            include_implicit: Whether to list inferred dependencies
        """
        self.report = report
        self.include_implicit = include_implicit

    def render(self) -> str:
        """Generate report markdown.

        Returns:
            Markdown content
        """
        result = self.report.result
        status = (
            f"{StatusSymbol.CYCLE.value} {len(result.cycles)} cycle(s)"
            if result.cycles
            else f"{StatusSymbol.OK.value} acyclic"
        )

        lines = [
            "# Dependency Analysis",
            "",
            f"**Tasks:** {self.report.task_count}",
            f"**Status:** {status}",
            f"**Implicit Detection:** {'ran' if self.report.detection_ran else 'skipped'}",
            "",
            self._format_order(),
            "",
            self._format_critical_path(),
            "",
            self._format_parallel_groups(),
            "",
            self._format_endpoints(),
        ]

        if result.cycles:
            lines.extend(["", self._format_cycles()])

        if self.include_implicit:
            lines.extend(["", self._format_implicit()])

        if self.report.warnings:
            lines.extend(["", f"## {StatusSymbol.WARNING.value} Warnings", ""])
            lines.extend(f"- {warning}" for warning in self.report.warnings)

        return "\n".join(lines) + "\n"

    def _format_order(self) -> str:
        order = self.report.result.execution_order
        if not order:
            return "## Execution Order\n\nUnavailable"

        lines = ["## Execution Order", ""]
        lines.extend(f"{i}. {task_id}" for i, task_id in enumerate(order, start=1))
        return "\n".join(lines)

    def _format_critical_path(self) -> str:
        path = self.report.result.critical_path
        if not path:
            return "## Critical Path\n\nUnavailable"

        return "\n".join([
            "## Critical Path",
            "",
            " → ".join(path),
            "",
            f"**Total Weight:** {self.report.critical_path_weight}",
        ])

    def _format_parallel_groups(self) -> str:
        groups = self.report.result.parallel_groups
        if not groups:
            return "## Parallel Groups\n\nUnavailable"

        lines = ["## Parallel Groups", ""]
        for i, group in enumerate(groups, start=1):
            lines.append(f"- Batch {i}: {', '.join(group)}")
        return "\n".join(lines)

    def _format_endpoints(self) -> str:
        result = self.report.result
        return "\n".join([
            "## Entry and Exit Tasks",
            "",
            f"**Entry:** {', '.join(result.orphan_tasks) or 'none'}",
            f"**Exit:** {', '.join(result.leaf_tasks) or 'none'}",
        ])

    def _format_cycles(self) -> str:
        lines = ["## Cycles", ""]
        for cycle in self.report.result.cycles:
            lines.append(f"- {StatusSymbol.CYCLE.value} {' ↔ '.join(cycle)}")
        return "\n".join(lines)

    def _format_implicit(self) -> str:
        deps = self.report.implicit_dependencies
        if not deps:
            return "## Inferred Dependencies\n\nNone"

        lines = ["## Inferred Dependencies", ""]
        for dep in deps:
            lines.append(
                f"- {StatusSymbol.INFERRED.value} `{dep.from_task_id}` → `{dep.to_task_id}` "
                f"({dep.confidence:.2f}) {dep.reasoning}"
            )
        return "\n".join(lines)


def render_report(report: AnalysisReport, include_implicit: bool = True) -> str:
    """Render a report as markdown."""
    return AnalysisReportRenderer(report, include_implicit=include_implicit).render()


def render_patterns(patterns: list[DependencyPattern]) -> str:
    """Render the dependency pattern table in priority order."""
    lines = ["# Dependency Patterns", ""]
    for i, pattern in enumerate(patterns, start=1):
        prerequisites = ", ".join(pattern.depends_on) or "none"
        lines.append(
            f"{i}. **{pattern.name}** ({pattern.confidence:.2f}): "
            f"{', '.join(pattern.keywords)} ← {prerequisites}"
        )
    return "\n".join(lines) + "\n"
