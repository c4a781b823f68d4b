"""depgraph CLI entrypoint."""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from .analysis.graph import CycleDetectedError
from .analysis.keywords import get_dependency_patterns
from .analysis.service import AnalysisReport, analyze_tasks, build_graph
from .config.loader import DEFAULT_CONFIG_PATH, ConfigError, create_default_config, resolve_config
from .config.models import DepgraphConfig
from .observability.report import render_patterns, render_report
from .tasks.loader import TaskLoadError, load_tasks
from .tasks.models import Task
from .utils.logging import configure_logging, setup_logging

CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
}


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option(
    "--config",
    "-c",
    default=str(DEFAULT_CONFIG_PATH),
    help="Path to configuration file",
    type=click.Path(exists=False, path_type=Path),
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.pass_context
def cli(ctx: click.Context, config: Path, verbose: bool) -> None:
    """depgraph - Task dependency graph analysis."""
    log_level = "DEBUG" if verbose else "INFO"
    setup_logging(level=log_level, console=verbose)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose


def _load_config(ctx: click.Context) -> DepgraphConfig:
    """Load config and reconfigure logging, exiting on error."""
    config_path: Path = ctx.obj["config_path"]
    verbose: bool = ctx.obj["verbose"]

    try:
        config = resolve_config(config_path)
    except ConfigError as e:
        click.echo(f"✗ Configuration error: {e}", err=True)
        sys.exit(1)

    # File logging only once a config file has been initialized
    configure_logging(config.logging, verbose=verbose, to_file=config_path.exists())
    return config


def _load_tasks(tasks_file: Path) -> list[Task]:
    try:
        return load_tasks(tasks_file)
    except TaskLoadError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)


def _run_analysis(config: DepgraphConfig, tasks: list[Task]) -> AnalysisReport:
    try:
        return analyze_tasks(tasks, config.detection)
    except TaskLoadError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)


def _apply_detection_flags(
    config: DepgraphConfig, threshold: Optional[float], no_detect: bool
) -> None:
    if threshold is not None:
        config.detection.confidence_threshold = threshold
    if no_detect:
        config.detection.enabled = False


@cli.command()
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration",
)
@click.pass_context
def init(ctx: click.Context, force: bool) -> None:
    """Initialize depgraph configuration."""
    config_path: Path = ctx.obj["config_path"]

    if config_path.exists() and not force:
        click.echo(f"Configuration already exists: {config_path}")
        click.echo("Use --force to overwrite")
        sys.exit(1)

    try:
        create_default_config(config_path)
        click.echo(f"✓ Created configuration: {config_path}")
        click.echo("\nNext steps:")
        click.echo(f"  1. Review and customize {config_path}")
        click.echo("  2. Describe your tasks in a YAML or JSON file")
        click.echo("  3. Run: depgraph analyze tasks.yml")
    except OSError as e:
        click.echo(f"✗ Failed to create configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("tasks_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--threshold",
    "-t",
    type=click.FloatRange(0.0, 1.0),
    help="Confidence threshold for inferred dependencies",
)
@click.option(
    "--no-detect",
    is_flag=True,
    help="Only use explicit dependencies",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    help="Report format (default from config)",
)
@click.option(
    "--strict",
    is_flag=True,
    help="Exit with status 1 when cycles are found",
)
@click.pass_context
def analyze(
    ctx: click.Context,
    tasks_file: Path,
    threshold: Optional[float],
    no_detect: bool,
    output_format: Optional[str],
    strict: bool,
) -> None:
    """Analyze the dependency graph of a tasks file."""
    config = _load_config(ctx)
    _apply_detection_flags(config, threshold, no_detect)

    report = _run_analysis(config, _load_tasks(tasks_file))

    if (output_format or config.output.format) == "json":
        data = report.to_dict(
            include_visualization=config.output.include_visualization,
            include_implicit=config.output.include_implicit,
        )
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        click.echo(render_report(report, include_implicit=config.output.include_implicit), nl=False)

    if strict and report.result.cycles:
        sys.exit(1)


@cli.command()
@click.argument("tasks_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--threshold",
    "-t",
    type=click.FloatRange(0.0, 1.0),
    help="Confidence threshold for inferred dependencies",
)
@click.option(
    "--no-detect",
    is_flag=True,
    help="Only use explicit dependencies",
)
@click.pass_context
def order(ctx: click.Context, tasks_file: Path, threshold: Optional[float], no_detect: bool) -> None:
    """Print the execution order of a tasks file."""
    config = _load_config(ctx)
    _apply_detection_flags(config, threshold, no_detect)

    try:
        graph = build_graph(_load_tasks(tasks_file))
    except TaskLoadError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    if config.detection.enabled:
        graph.detect_implicit_dependencies(config.detection.confidence_threshold)

    try:
        execution_order = graph.get_execution_order()
    except CycleDetectedError as e:
        click.echo(f"✗ {e}", err=True)
        for cycle in e.cycles:
            click.echo(f"  {' -> '.join(cycle)}", err=True)
        sys.exit(1)

    for task_id in execution_order:
        click.echo(task_id)


@cli.command()
@click.argument("tasks_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--no-detect",
    is_flag=True,
    help="Only use explicit dependencies",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write JSON to file instead of stdout",
)
@click.pass_context
def export(ctx: click.Context, tasks_file: Path, no_detect: bool, output: Optional[Path]) -> None:
    """Export nodes and edges for visualization."""
    config = _load_config(ctx)
    _apply_detection_flags(config, None, no_detect)

    report = _run_analysis(config, _load_tasks(tasks_file))
    payload = json.dumps(report.visualization, indent=2, ensure_ascii=False)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(payload + "\n")
        click.echo(f"✓ Wrote {output}")
    else:
        click.echo(payload)


@cli.command()
def patterns() -> None:
    """List dependency patterns in priority order."""
    click.echo(render_patterns(get_dependency_patterns()), nl=False)


if __name__ == "__main__":
    cli()
