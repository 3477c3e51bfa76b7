"""Configuration management for Diff Digest.

This module handles loading, parsing, and validating configuration
from YAML files and environment variables.
"""

from diff_digest.config.models import (
    Config,
    GenerationBackend,
    GenerationConfig,
    ItemSourceConfig,
    LoggingConfig,
    StorageConfig,
)
from diff_digest.config.loader import ConfigLoader
from diff_digest.config.env_schema import EnvironmentConfig

__all__ = [
    "Config",
    "ConfigLoader",
    "EnvironmentConfig",
    "GenerationBackend",
    "GenerationConfig",
    "ItemSourceConfig",
    "LoggingConfig",
    "StorageConfig",
]
