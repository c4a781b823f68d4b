"""Task records consumed by the dependency graph."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DependencyType(str, Enum):
    """Kind of relationship between two tasks."""

    BLOCKS = "blocks"
    DEPENDS_ON = "depends_on"
    RELATED_TO = "related_to"


def _clean_task_id(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Task id must not be blank")
    return value


class TaskDependency(BaseModel):
    """Explicit prerequisite declared on a task."""

    model_config = ConfigDict(populate_by_name=True)

    target_task_id: str = Field(
        alias="id",
        min_length=1,
        description="Task that must come first",
    )
    type: DependencyType = Field(default=DependencyType.DEPENDS_ON, description="Relationship")
    description: Optional[str] = Field(default=None, description="Why the dependency exists")

    @field_validator("target_task_id")
    @classmethod
    def _strip_target(cls, value: str) -> str:
        return _clean_task_id(value)


class Task(BaseModel):
    """Unit of work with a complexity weight."""

    id: str = Field(min_length=1, description="Unique task identifier")
    title: str = Field(description="Short task title")
    description: str = Field(default="", description="Free-text task description")
    complexity: int = Field(default=1, ge=1, le=10, description="Relative effort (1-10)")
    dependencies: list[TaskDependency] = Field(
        default_factory=list,
        description="Explicit prerequisites",
    )

    @field_validator("id")
    @classmethod
    def _strip_id(cls, value: str) -> str:
        return _clean_task_id(value)

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, value: object) -> object:
        return "" if value is None else value

    @property
    def text(self) -> str:
        """Title and description joined for keyword analysis."""
        return f"{self.title} {self.description}"
