"""Pytest configuration and shared fixtures for Diff Digest tests.

This module provides common test fixtures and configuration
that can be used across all test modules.
"""

from pathlib import Path
from typing import Generator

import pytest
from _pytest.config import Config

from diff_digest.generation.session_manager import GenerationSessionManager
from diff_digest.generation.accumulator import StreamAccumulator
from diff_digest.persistence.storage import MemoryStorage
from diff_digest.state.store import StateStore
from tests.helpers.fakes import ScriptedGenerationService, make_item


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary config file for testing."""
    config_file = tmp_path / "diff-digest.yml"
    config_content = """
item_source:
  base_url: http://diffs.example.com/
  per_page: 5

generation:
  backend: http
  timeout_seconds: 15

storage:
  directory: state
"""
    config_file.write_text(config_content)
    yield config_file


@pytest.fixture
def mock_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Mock environment variables for testing."""
    monkeypatch.setenv("OPENAI_API_KEY", "test_openai_key")


@pytest.fixture(autouse=True)
def isolate_tests(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate tests by changing to a temporary directory."""
    monkeypatch.chdir(tmp_path)
    for name in ("OPENAI_API_KEY", "DIFF_DIGEST_BASE_URL", "DIFF_DIGEST_STORAGE_DIR", "DIFF_DIGEST_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store() -> StateStore:
    """State store holding items 1, 2 and 3."""
    store = StateStore()
    store.replace_items([make_item("1"), make_item("2"), make_item("3")])
    return store


@pytest.fixture
def service() -> ScriptedGenerationService:
    return ScriptedGenerationService()


@pytest.fixture
def sessions(store: StateStore, service: ScriptedGenerationService) -> GenerationSessionManager:
    return GenerationSessionManager(store, service, accumulator=StreamAccumulator(5.0))


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


def pytest_configure(config: Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
