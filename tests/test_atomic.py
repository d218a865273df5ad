"""Tests for tav.atomic module."""

import os
import stat
import threading
from pathlib import Path

import pytest
import yaml

from tav.atomic import (
    atomic_copy,
    atomic_write_bytes,
    atomic_write_text,
    atomic_write_yaml,
)


class TestAtomicWriteText:
    """Tests for atomic_write_text()."""

    def test_creates_file(self, tmp_path: Path):
        """atomic_write_text creates a new file."""
        file_path = tmp_path / "session.jsonl"

        result = atomic_write_text(file_path, '{"uuid": "a"}\n')

        assert result.is_ok()
        assert result.unwrap() == file_path
        assert file_path.read_text() == '{"uuid": "a"}\n'

    def test_overwrites_existing_file(self, tmp_path: Path):
        """atomic_write_text overwrites existing file content."""
        file_path = tmp_path / "session.jsonl"
        file_path.write_text("old content")

        result = atomic_write_text(file_path, "new content")

        assert result.is_ok()
        assert file_path.read_text() == "new content"

    def test_creates_parent_directories(self, tmp_path: Path):
        """atomic_write_text creates parent directories if needed."""
        file_path = tmp_path / "nested" / "deep" / "config.yaml"

        result = atomic_write_text(file_path, "content")

        assert result.is_ok()
        assert file_path.read_text() == "content"

    def test_new_file_gets_default_permissions(self, tmp_path: Path):
        """New files are created 0o600."""
        file_path = tmp_path / "new.jsonl"

        atomic_write_text(file_path, "content")

        mode = file_path.stat().st_mode
        assert mode & stat.S_IRWXU == stat.S_IRUSR | stat.S_IWUSR
        assert mode & stat.S_IRWXG == 0
        assert mode & stat.S_IRWXO == 0

    def test_existing_file_keeps_permissions(self, tmp_path: Path):
        """Rewriting a session file does not change its mode."""
        file_path = tmp_path / "session.jsonl"
        file_path.write_text("old")
        file_path.chmod(0o644)

        atomic_write_text(file_path, "new")

        assert stat.S_IMODE(file_path.stat().st_mode) == 0o644

    def test_explicit_mode_wins(self, tmp_path: Path):
        file_path = tmp_path / "session.jsonl"
        file_path.write_text("old")
        file_path.chmod(0o644)

        atomic_write_text(file_path, "new", mode=0o600)

        assert stat.S_IMODE(file_path.stat().st_mode) == 0o600

    def test_no_temp_files_left(self, tmp_path: Path):
        file_path = tmp_path / "session.jsonl"

        atomic_write_text(file_path, "content")

        assert list(tmp_path.glob(".*tmp")) == []

    def test_handles_unicode_content(self, tmp_path: Path):
        """Checkpoint markers and non-ASCII text are written as UTF-8."""
        file_path = tmp_path / "session.jsonl"
        content = '{"content": "· Hello 世界"}\n'

        result = atomic_write_text(file_path, content)

        assert result.is_ok()
        assert file_path.read_text(encoding="utf-8") == content

    def test_returns_error_on_permission_denied(self, tmp_path: Path):
        """atomic_write_text returns Err on permission denied."""
        if os.name == "nt":
            pytest.skip("Permission test not applicable on Windows")
        if os.geteuid() == 0:
            pytest.skip("root ignores directory permissions")

        read_only_dir = tmp_path / "readonly"
        read_only_dir.mkdir(mode=0o555)
        file_path = read_only_dir / "session.jsonl"

        try:
            result = atomic_write_text(file_path, "content")

            assert result.is_err()
            error = result.unwrap_err()
            assert "PERMISSION" in error.code or "WRITE_FAILED" in error.code
        finally:
            read_only_dir.chmod(0o755)


class TestAtomicWriteBytes:
    """Tests for atomic_write_bytes()."""

    def test_writes_exact_bytes(self, tmp_path: Path):
        file_path = tmp_path / "raw.bin"
        data = b'{"a":1}\r\n\xc2\xb7'

        atomic_write_bytes(file_path, data)

        assert file_path.read_bytes() == data

    def test_parent_is_a_file(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")

        result = atomic_write_bytes(blocker / "child.jsonl", b"x")

        assert result.is_err()
        assert result.unwrap_err().code == "ATOMIC_WRITE_FAILED"


class TestAtomicCopy:
    """Tests for atomic_copy()."""

    def test_byte_identical_copy(self, tmp_path: Path):
        source = tmp_path / "session.jsonl"
        source.write_bytes(b'{"uuid":"a"}\n{broken\n')
        destination = tmp_path / "session.jsonl.tav-backup"

        result = atomic_copy(source, destination)

        assert result.is_ok()
        assert destination.read_bytes() == source.read_bytes()

    def test_new_destination_inherits_source_mode(self, tmp_path: Path):
        source = tmp_path / "a.jsonl"
        source.write_text("x")
        source.chmod(0o640)

        atomic_copy(source, tmp_path / "b.jsonl")

        assert stat.S_IMODE((tmp_path / "b.jsonl").stat().st_mode) == 0o640

    def test_existing_destination_keeps_mode(self, tmp_path: Path):
        source = tmp_path / "a.jsonl"
        source.write_text("new")
        source.chmod(0o600)
        destination = tmp_path / "b.jsonl"
        destination.write_text("old")
        destination.chmod(0o644)

        atomic_copy(source, destination)

        assert destination.read_text() == "new"
        assert stat.S_IMODE(destination.stat().st_mode) == 0o644

    def test_missing_source(self, tmp_path: Path):
        result = atomic_copy(tmp_path / "missing.jsonl", tmp_path / "copy.jsonl")

        assert result.is_err()
        assert result.unwrap_err().code == "COPY_READ_FAILED"
        assert not (tmp_path / "copy.jsonl").exists()


class TestAtomicWriteYaml:
    """Tests for atomic_write_yaml()."""

    def test_creates_yaml_file(self, tmp_path: Path):
        """atomic_write_yaml creates valid YAML file."""
        file_path = tmp_path / "config.yaml"
        data = {"marker": "#", "interval": 5}

        result = atomic_write_yaml(file_path, data)

        assert result.is_ok()
        assert yaml.safe_load(file_path.read_text()) == data

    def test_handles_non_serializable_data(self, tmp_path: Path):
        """atomic_write_yaml returns error for non-serializable data."""
        file_path = tmp_path / "config.yaml"

        class CustomObject:
            pass

        result = atomic_write_yaml(file_path, {"obj": CustomObject()})

        assert result.is_err()
        assert result.unwrap_err().code == "YAML_SERIALIZATION_FAILED"
        assert not file_path.exists()

    def test_preserves_unicode(self, tmp_path: Path):
        """atomic_write_yaml keeps the marker character readable."""
        file_path = tmp_path / "config.yaml"

        atomic_write_yaml(file_path, {"marker": "·"})

        assert "·" in file_path.read_text(encoding="utf-8")

    def test_keeps_key_order(self, tmp_path: Path):
        file_path = tmp_path / "config.yaml"

        atomic_write_yaml(file_path, {"verify": False, "interval": 2})

        assert file_path.read_text().splitlines()[0].startswith("verify:")


class TestAtomicWriteConcurrency:
    """Tests for concurrent atomic write operations."""

    def test_survives_concurrent_writes(self, tmp_path: Path):
        """Concurrent writes don't corrupt the file."""
        file_path = tmp_path / "concurrent.jsonl"
        results: list[bool] = []

        def write_content(index: int):
            results.append(atomic_write_text(file_path, f"content-{index}").is_ok())

        threads = [threading.Thread(target=write_content, args=(i,)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(results)
        content = file_path.read_text()
        assert content.startswith("content-")
        assert int(content.split("-")[1]) in range(10)
        assert list(tmp_path.glob(".*tmp")) == []
