"""Environment variable schema definitions for Diff Digest.

This module defines the Pydantic settings model for environment
variables. Values found here override the YAML configuration file.
"""

from typing import Optional, Dict, Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from diff_digest.utils.exceptions import ConfigurationError


class EnvironmentConfig(BaseSettings):
    """Environment configuration using Pydantic settings.

    This provides validated access to environment variables with
    type conversion and default values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra environment variables
    )

    openai_api_key: Optional[str] = Field(
        None,
        alias="OPENAI_API_KEY",
        description="OpenAI API key used by the llm generation backend",
    )
    base_url: Optional[str] = Field(
        None,
        alias="DIFF_DIGEST_BASE_URL",
        description="Base URL of the diff and notes service",
    )
    storage_dir: Optional[str] = Field(
        None,
        alias="DIFF_DIGEST_STORAGE_DIR",
        description="Directory for persisted client state",
    )
    log_level: Optional[str] = Field(
        None,
        alias="DIFF_DIGEST_LOG_LEVEL",
        description="Console logging level",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )

    def config_overrides(self) -> Dict[str, Any]:
        """Build a nested override mapping for the YAML configuration.

        Returns:
            Mapping shaped like the configuration file, with only the
            values that are set in the environment.
        """
        overrides: Dict[str, Any] = {}
        if self.base_url:
            overrides.setdefault("item_source", {})["base_url"] = self.base_url
        if self.storage_dir:
            overrides.setdefault("storage", {})["directory"] = self.storage_dir
        if self.log_level:
            overrides.setdefault("logging", {})["level"] = self.log_level
        return overrides

    def require_openai_key(self) -> str:
        """Return the OpenAI key or fail with a helpful message.

        Raises:
            ConfigurationError: If OPENAI_API_KEY is not set.
        """
        if not self.openai_api_key:
            raise ConfigurationError(
                "Missing API key for the llm generation backend",
                details={
                    "missing_variables": ["OPENAI_API_KEY"],
                    "help": "Set OPENAI_API_KEY in your .env file or system environment",
                },
            )
        return self.openai_api_key

    def mask_sensitive_values(self) -> Dict[str, Any]:
        """Get configuration with masked sensitive values.

        Returns:
            Dictionary with configuration values, API keys masked.
        """
        config = self.model_dump()
        value = config.get("openai_api_key")
        if value:
            if len(value) > 8:
                config["openai_api_key"] = f"{'*' * (len(value) - 4)}{value[-4:]}"
            else:
                config["openai_api_key"] = "****"
        return config
