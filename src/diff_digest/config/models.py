"""Configuration schema definitions for Diff Digest.

This module defines Pydantic models for validating and parsing
the YAML configuration file. Every section has defaults, so an empty
or missing file yields a usable configuration.
"""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, ConfigDict


class GenerationBackend(str, Enum):
    """Where release notes are generated."""

    HTTP = "http"  # POST to the /api/generate-notes endpoint
    LLM = "llm"  # Stream straight from the chat model

    @classmethod
    def _missing_(cls, value: object) -> Optional["GenerationBackend"]:
        """Handle case-insensitive backend names."""
        if isinstance(value, str):
            value_lower = value.lower()
            for member in cls:
                if member.value == value_lower:
                    return member
        return None


class ItemSourceConfig(BaseModel):
    """Configuration for the paginated diff source."""

    model_config = ConfigDict(str_strip_whitespace=True)

    base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the service exposing /api/sample-diffs",
        min_length=1,
    )
    per_page: int = Field(default=10, ge=1, le=100, description="Items per page")
    timeout_seconds: float = Field(
        default=30.0, gt=0, description="Time budget for a whole page fetch"
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")


class GenerationConfig(BaseModel):
    """Configuration for release-notes generation."""

    model_config = ConfigDict(str_strip_whitespace=True)

    backend: GenerationBackend = Field(
        default=GenerationBackend.HTTP,
        description="Generation backend (http or llm)",
    )
    base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the HTTP backend; defaults to the item source URL",
    )
    model: str = Field(
        default="o4-mini",
        description="Chat model used by the llm backend",
        min_length=1,
    )
    temperature: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for the llm backend",
    )
    timeout_seconds: float = Field(
        default=60.0, gt=0, description="Time budget for a whole generation stream"
    )
    max_prompt_chars: int = Field(
        default=12000, gt=0, description="Maximum characters of diff sent upstream"
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        """Normalize the base URL so paths can be appended."""
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")


class StorageConfig(BaseModel):
    """Configuration for the durable state mirror."""

    directory: Path = Field(
        default=Path(".diff-digest"),
        description="Directory holding one JSON file per storage key",
    )
    quota_bytes: Optional[int] = Field(
        default=None,
        gt=0,
        description="Optional cap on the total size of stored state",
    )


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="WARNING", description="Console log level")
    directory: Path = Field(default=Path("logs"), description="Log file directory")
    log_to_file: bool = Field(default=True, description="Write a session log file")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Config(BaseModel):
    """Root configuration model."""

    item_source: ItemSourceConfig = Field(default_factory=ItemSourceConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def generation_base_url(self) -> str:
        """Get the base URL used by the HTTP generation backend.

        Returns:
            Explicit generation URL, or the item source URL.
        """
        return self.generation.base_url or self.item_source.base_url
