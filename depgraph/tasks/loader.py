"""Task file loader."""

import json
import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import Task

logger = logging.getLogger(__name__)


class TaskLoadError(Exception):
    """Task loading error."""

    pass


def load_tasks(tasks_path: Path) -> list[Task]:
    """Load tasks from a YAML or JSON file.

    The file holds either a list of task mappings or a mapping with a
    ``tasks`` key. Files ending in ``.json`` are read as JSON, anything
    else as YAML.

    Args:
        tasks_path: Path to tasks file

    Returns:
        List of validated tasks in file order

    Raises:
        TaskLoadError: If file is missing, unparsable or invalid
    """
    if not tasks_path.exists():
        raise TaskLoadError(f"Tasks file not found: {tasks_path}")

    with open(tasks_path, "r") as f:
        content = f.read()

    try:
        if tasks_path.suffix.lower() == ".json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise TaskLoadError(f"Invalid tasks file {tasks_path}: {e}")

    tasks = parse_tasks(data, source=str(tasks_path))
    logger.info(f"Loaded {len(tasks)} tasks from {tasks_path}")
    return tasks


def parse_tasks(data: object, source: str = "<data>") -> list[Task]:
    """Validate raw task data.

    Args:
        data: Decoded file content
        source: Label used in error messages

    Returns:
        List of validated tasks

    Raises:
        TaskLoadError: If data has the wrong shape, fails validation or
            repeats a task id
    """
    if data is None:
        return []

    if isinstance(data, dict):
        if "tasks" not in data:
            raise TaskLoadError(f"Missing 'tasks' key in {source}")
        data = data["tasks"] or []

    if not isinstance(data, list):
        raise TaskLoadError(f"Expected a list of tasks in {source}")

    tasks: list[Task] = []
    for index, raw in enumerate(data):
        if not isinstance(raw, dict):
            raise TaskLoadError(f"Task #{index + 1} in {source} is not a mapping")
        try:
            tasks.append(Task.model_validate(raw))
        except ValidationError as e:
            raise TaskLoadError(f"Invalid task #{index + 1} in {source}: {e}")

    duplicates = find_duplicate_ids(tasks)
    if duplicates:
        raise TaskLoadError(f"Duplicate task ids in {source}: {', '.join(duplicates)}")

    return tasks


def find_duplicate_ids(tasks: list[Task]) -> list[str]:
    """Return task ids that appear more than once, in first-seen order."""
    seen: set[str] = set()
    duplicates: list[str] = []
    for task in tasks:
        if task.id in seen and task.id not in duplicates:
            duplicates.append(task.id)
        seen.add(task.id)
    return duplicates
