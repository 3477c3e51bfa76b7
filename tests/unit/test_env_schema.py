"""Tests for environment variable schema."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from diff_digest.config.env_schema import EnvironmentConfig
from diff_digest.utils.exceptions import ConfigurationError


class TestEnvironmentConfig:
    """Test the EnvironmentConfig settings model."""

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch):
        """Test values are read from the process environment."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test-1234567890")
        monkeypatch.setenv("DIFF_DIGEST_BASE_URL", "http://notes.test")
        config = EnvironmentConfig(_env_file=None)
        assert config.openai_api_key == "sk-test-1234567890"
        assert config.base_url == "http://notes.test"

    def test_reads_env_file(self, tmp_path: Path):
        """Test values are read from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("DIFF_DIGEST_STORAGE_DIR=/var/lib/diff-digest\n")
        config = EnvironmentConfig(_env_file=env_file)
        assert config.storage_dir == "/var/lib/diff-digest"

    def test_invalid_log_level(self, monkeypatch: pytest.MonkeyPatch):
        """Test the log level pattern."""
        monkeypatch.setenv("DIFF_DIGEST_LOG_LEVEL", "LOUD")
        with pytest.raises(ValidationError):
            EnvironmentConfig(_env_file=None)

    def test_config_overrides(self, monkeypatch: pytest.MonkeyPatch):
        """Test only set values become overrides."""
        assert EnvironmentConfig(_env_file=None).config_overrides() == {}

        monkeypatch.setenv("DIFF_DIGEST_BASE_URL", "http://notes.test")
        monkeypatch.setenv("DIFF_DIGEST_LOG_LEVEL", "INFO")
        overrides = EnvironmentConfig(_env_file=None).config_overrides()
        assert overrides == {
            "item_source": {"base_url": "http://notes.test"},
            "logging": {"level": "INFO"},
        }

    def test_require_openai_key(self, mock_env_vars):
        """Test the key is returned when present."""
        assert EnvironmentConfig(_env_file=None).require_openai_key() == "test_openai_key"

    def test_require_openai_key_missing(self):
        """Test a helpful error when the key is missing."""
        with pytest.raises(ConfigurationError) as exc_info:
            EnvironmentConfig(_env_file=None).require_openai_key()
        assert "OPENAI_API_KEY" in str(exc_info.value)

    def test_mask_sensitive_values(self, monkeypatch: pytest.MonkeyPatch):
        """Test API keys are masked."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test-1234567890")
        masked = EnvironmentConfig(_env_file=None).mask_sensitive_values()
        assert masked["openai_api_key"].endswith("7890")
        assert "sk-test" not in masked["openai_api_key"]
