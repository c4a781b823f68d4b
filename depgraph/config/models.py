"""Configuration models for depgraph."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class DetectionConfig(BaseModel):
    """Implicit dependency detection settings."""

    enabled: bool = Field(default=True, description="Run keyword-based detection")
    confidence_threshold: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Minimum confidence for an inferred dependency",
    )
    max_tasks: int = Field(
        default=200,
        ge=0,
        description="Skip detection above this many tasks (0 = no cap)",
    )


class OutputConfig(BaseModel):
    """Report output settings."""

    format: Literal["text", "json"] = Field(default="text", description="Report format")
    include_visualization: bool = Field(
        default=False,
        description="Attach nodes/edges payload to JSON reports",
    )
    include_implicit: bool = Field(
        default=True,
        description="List inferred dependencies in reports",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    level: str = Field(default="INFO", description="Log level")
    log_dir: Path = Field(default=Path(".depgraph/logs"), description="Log directory")
    rotation_mb: int = Field(default=10, description="Log rotation size (MB)")
    retention_days: int = Field(default=7, description="Log retention days")

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(
                f"Unknown log level {value!r}, expected one of {', '.join(LOG_LEVELS)}"
            )
        return level


class DepgraphConfig(BaseModel):
    """Main configuration model."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
