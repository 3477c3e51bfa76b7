"""Tests for key/value storage backends."""

from pathlib import Path

import pytest

from diff_digest.persistence.storage import JsonFileStorage, MemoryStorage
from diff_digest.utils.exceptions import StorageError, StorageQuotaExceededError


class TestMemoryStorage:
    """Test the in-memory backend."""

    def test_get_set_delete(self):
        storage = MemoryStorage()
        assert storage.get("k") is None
        storage.set("k", "v")
        assert storage.get("k") == "v"
        assert storage.keys() == ["k"]
        storage.delete("k")
        storage.delete("k")
        assert storage.get("k") is None

    def test_quota(self):
        """Test writes beyond the quota are refused."""
        storage = MemoryStorage(quota_bytes=10)
        storage.set("a", "12345")
        storage.set("a", "1234567890")
        with pytest.raises(StorageQuotaExceededError) as exc_info:
            storage.set("b", "x")
        assert exc_info.value.key == "b"
        assert exc_info.value.details["used_bytes"] == 10
        assert storage.get("b") is None

    def test_quota_counts_encoded_bytes(self):
        storage = MemoryStorage(quota_bytes=4)
        with pytest.raises(StorageQuotaExceededError):
            storage.set("emoji", "🌐🌐")


class TestJsonFileStorage:
    """Test the file backend."""

    def test_persists_across_instances(self, tmp_path: Path):
        JsonFileStorage(tmp_path / "state").set("diff-digest-notes", '{"1": "notes"}')
        storage = JsonFileStorage(tmp_path / "state")
        assert storage.get("diff-digest-notes") == '{"1": "notes"}'
        assert (tmp_path / "state" / "diff-digest-notes.json").exists()

    def test_missing_directory_reads_nothing(self, tmp_path: Path):
        storage = JsonFileStorage(tmp_path / "absent")
        assert storage.get("diff-digest-diffs") is None
        assert storage.keys() == []

    def test_no_temp_files_left(self, tmp_path: Path):
        """Test writes replace the file without leftovers."""
        storage = JsonFileStorage(tmp_path)
        storage.set("k", "one")
        storage.set("k", "two")
        assert storage.get("k") == "two"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["k.json"]

    def test_keys_sorted(self, tmp_path: Path):
        storage = JsonFileStorage(tmp_path)
        storage.set("b", "1")
        storage.set("a", "1")
        (tmp_path / ".hidden.json").write_text("x")
        assert storage.keys() == ["a", "b"]

    @pytest.mark.parametrize("key", ["", "../escape", "a/b", ".hidden"])
    def test_invalid_keys(self, tmp_path: Path, key):
        with pytest.raises(StorageError):
            JsonFileStorage(tmp_path).set(key, "x")

    def test_unreadable_file(self, tmp_path: Path):
        (tmp_path / "k.json").write_bytes(b"\xff\xfe\xfa")
        with pytest.raises(StorageError):
            JsonFileStorage(tmp_path).get("k")

    def test_write_failure(self, tmp_path: Path):
        """Test a directory that cannot be created is a storage error."""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(StorageError):
            JsonFileStorage(blocker / "state").set("k", "v")

    def test_quota(self, tmp_path: Path):
        storage = JsonFileStorage(tmp_path, quota_bytes=8)
        storage.set("a", "1234")
        with pytest.raises(StorageQuotaExceededError):
            storage.set("b", "12345")
        assert storage.get("b") is None
