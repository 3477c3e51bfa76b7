"""Configuration loader for Diff Digest.

This module handles loading and parsing YAML configuration files
with proper error handling and validation.
"""

from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import ValidationError

from diff_digest.config.models import Config
from diff_digest.utils.exceptions import ConfigurationError
from diff_digest.utils.logging import get_logger


logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path("diff-digest.yml")


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """Loads and validates configuration from YAML files."""

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        overrides: Optional[dict[str, Any]] = None,
    ):
        """Initialize the configuration loader.

        Args:
            config_path: Path to the configuration file.
                        Defaults to 'diff-digest.yml' in current directory.
            overrides: Nested values applied on top of the file (from the environment).
        """
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        self.config_path = Path(config_path)
        self.overrides = overrides or {}
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Load and validate the configuration file.

        A missing file is not an error: every section has defaults.

        Returns:
            Validated configuration object.

        Raises:
            ConfigurationError: If the configuration is invalid or cannot be read.
        """
        if self._config is not None:
            return self._config

        raw_config: dict[str, Any] = {}
        try:
            if self.config_path.exists():
                logger.info(f"Loading configuration from: {self.config_path}")
                with open(self.config_path, "r", encoding="utf-8") as f:
                    loaded = yaml.safe_load(f)
                if loaded is not None:
                    if not isinstance(loaded, dict):
                        raise ConfigurationError(
                            "Configuration file must contain a mapping",
                            details={"path": str(self.config_path)},
                        )
                    raw_config = loaded
            else:
                logger.debug(
                    f"No configuration file at {self.config_path}, using defaults"
                )

            self._config = Config(**_deep_merge(raw_config, self.overrides))
            return self._config

        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML syntax in configuration file: {e}",
                details={
                    "path": str(self.config_path),
                    "error": str(e),
                },
            )
        except ValidationError as e:
            # Format Pydantic validation errors nicely
            error_messages = []
            for error in e.errors():
                loc = " -> ".join(str(x) for x in error["loc"])
                msg = error["msg"]
                error_messages.append(f"{loc}: {msg}")

            raise ConfigurationError(
                "Configuration validation failed:\n" + "\n".join(error_messages),
                details={"path": str(self.config_path)},
            )
        except OSError as e:
            raise ConfigurationError(
                f"Failed to read configuration: {e}",
                details={
                    "path": str(self.config_path),
                    "error_type": type(e).__name__,
                },
            )

