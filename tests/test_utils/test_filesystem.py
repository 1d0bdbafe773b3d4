from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from modkeeper.exceptions import FileOperationError
from modkeeper.utils.filesystem import (
    BACKUP_SUFFIX,
    _atomic_write,
    create_timestamped_backup,
    find_puppetfile,
    list_backups,
    restore_backup,
    safe_read_file,
    safe_write_file,
)


PUPPETFILE = "forge 'https://forge.puppet.com'\nmod 'puppetlabs/stdlib', '8.0.0'\n"


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def puppetfile(tmp_path: Path) -> Path:
    """A Puppetfile with two lines."""
    path = tmp_path / "Puppetfile"
    path.write_text(PUPPETFILE, encoding="utf-8")
    return path


# ==============================================================================
# safe_read_file Tests
# ==============================================================================


@pytest.mark.unit
class TestSafeReadFile:
    """Tests for safe_read_file."""

    def test_reads_content(self, puppetfile: Path) -> None:
        """Test the file is read as text.

        Happy path.
        """
        assert safe_read_file(puppetfile) == PUPPETFILE

    def test_preserves_crlf(self, tmp_path: Path) -> None:
        """Test Windows line endings are not translated."""
        path = tmp_path / "Puppetfile"
        path.write_bytes(b"mod 'a/b', '1.0.0'\r\nmod 'c/d'\r\n")
        assert safe_read_file(path) == "mod 'a/b', '1.0.0'\r\nmod 'c/d'\r\n"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test a missing file raises FileOperationError."""
        with pytest.raises(FileOperationError) as exc_info:
            safe_read_file(tmp_path / "missing")
        assert exc_info.value.operation == "read"
        assert "not found" in str(exc_info.value)

    def test_directory_rejected(self, tmp_path: Path) -> None:
        """Test a directory is not a file."""
        with pytest.raises(FileOperationError, match="Not a file"):
            safe_read_file(tmp_path)

    def test_size_limit(self, puppetfile: Path) -> None:
        """Test files larger than max_size are refused.

        Edge case.
        """
        with pytest.raises(FileOperationError, match="too large"):
            safe_read_file(puppetfile, max_size=10)
        assert safe_read_file(puppetfile, max_size=None) == PUPPETFILE

    def test_invalid_encoding(self, tmp_path: Path) -> None:
        """Test undecodable bytes surface as FileOperationError."""
        path = tmp_path / "Puppetfile"
        path.write_bytes(b"\xff\xfe\xfa")
        with pytest.raises(FileOperationError) as exc_info:
            safe_read_file(path)
        assert isinstance(exc_info.value.original_error, UnicodeDecodeError)


# ==============================================================================
# Atomic write Tests
# ==============================================================================


@pytest.mark.unit
class TestAtomicWrite:
    """Tests for _atomic_write."""

    def test_writes_and_leaves_no_temp_files(self, tmp_path: Path) -> None:
        """Test content lands in place with no leftovers.

        Happy path.
        """
        target = tmp_path / "Puppetfile"
        _atomic_write(target, "mod 'a/b'\r\n")

        assert target.read_bytes() == b"mod 'a/b'\r\n"
        assert [p.name for p in tmp_path.iterdir()] == ["Puppetfile"]

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        """Test missing parent directories are created."""
        target = tmp_path / "env" / "production" / "Puppetfile"
        _atomic_write(target, "x")
        assert target.read_text() == "x"

    def test_failure_cleans_up(self, tmp_path: Path) -> None:
        """Test a failed replace removes the temporary file.

        Edge case.
        """
        target = tmp_path / "Puppetfile"
        with patch.object(Path, "replace", side_effect=OSError("denied")):
            with pytest.raises(FileOperationError) as exc_info:
                _atomic_write(target, "x")

        assert exc_info.value.operation == "write"
        assert list(tmp_path.iterdir()) == []

    def test_fsync_called(self, tmp_path: Path) -> None:
        """Test data is flushed to disk before the replace."""
        with patch("modkeeper.utils.filesystem.os.fsync", wraps=os.fsync) as mock_fsync:
            _atomic_write(tmp_path / "Puppetfile", "x")
        assert mock_fsync.call_count == 1


# ==============================================================================
# safe_write_file Tests
# ==============================================================================


@pytest.mark.unit
class TestSafeWriteFile:
    """Tests for safe_write_file."""

    def test_write_with_backup(self, puppetfile: Path) -> None:
        """Test the old content is kept in a backup.

        Happy path.
        """
        backup = safe_write_file(puppetfile, "new")

        assert puppetfile.read_text() == "new"
        assert backup is not None
        assert backup.read_text() == PUPPETFILE
        assert backup.name.startswith("Puppetfile.")
        assert backup.name.endswith(BACKUP_SUFFIX)

    def test_write_without_backup(self, puppetfile: Path) -> None:
        """Test create_backup=False makes no copy."""
        assert safe_write_file(puppetfile, "new", create_backup=False) is None
        assert list_backups(puppetfile) == []

    def test_new_file_has_no_backup(self, tmp_path: Path) -> None:
        """Test writing a file that does not exist yet.

        Edge case.
        """
        target = tmp_path / "Puppetfile"
        assert safe_write_file(target, "mod 'a/b'\n") is None
        assert target.read_text() == "mod 'a/b'\n"

    def test_failed_write_restores_backup(self, puppetfile: Path) -> None:
        """Test the original content survives a failed write."""
        with patch(
            "modkeeper.utils.filesystem._atomic_write",
            side_effect=FileOperationError("boom", operation="write"),
        ):
            with pytest.raises(FileOperationError):
                safe_write_file(puppetfile, "new")

        assert puppetfile.read_text() == PUPPETFILE


# ==============================================================================
# Backup Tests
# ==============================================================================


@pytest.mark.unit
class TestBackups:
    """Tests for backup creation, listing and restoring."""

    def test_backup_name_format(self, puppetfile: Path) -> None:
        """Test backups are named <name>.<timestamp>.backup."""
        backup = create_timestamped_backup(puppetfile)
        stamp = backup.name[len("Puppetfile.") : -len(BACKUP_SUFFIX)]

        assert backup.parent == puppetfile.resolve().parent
        assert len(stamp.split("_")) == 3
        assert stamp.replace("_", "").isdigit()

    def test_backup_of_missing_file(self, tmp_path: Path) -> None:
        """Test backing up a missing file fails."""
        with pytest.raises(FileOperationError) as exc_info:
            create_timestamped_backup(tmp_path / "Puppetfile")
        assert exc_info.value.operation == "backup"

    def test_list_backups_newest_first(self, puppetfile: Path) -> None:
        """Test list_backups orders by timestamp descending."""
        older = puppetfile.parent / f"Puppetfile.20240101_000000_000000{BACKUP_SUFFIX}"
        newer = puppetfile.parent / f"Puppetfile.20250101_000000_000000{BACKUP_SUFFIX}"
        older.write_text("old")
        newer.write_text("new")
        (puppetfile.parent / "Other.20260101_000000_000000.backup").write_text("x")

        assert list_backups(puppetfile) == [newer, older]

    def test_restore_backup(self, puppetfile: Path) -> None:
        """Test restoring copies the backup over the target."""
        backup = create_timestamped_backup(puppetfile)
        puppetfile.write_text("broken")

        restore_backup(backup, puppetfile)

        assert puppetfile.read_text() == PUPPETFILE

    def test_restore_missing_backup(self, puppetfile: Path) -> None:
        """Test restoring from a missing backup fails.

        Edge case.
        """
        with pytest.raises(FileOperationError) as exc_info:
            restore_backup(puppetfile.parent / "nope.backup", puppetfile)
        assert exc_info.value.operation == "restore"


# ==============================================================================
# find_puppetfile Tests
# ==============================================================================


@pytest.mark.unit
class TestFindPuppetfile:
    """Tests for find_puppetfile."""

    def test_found(self, puppetfile: Path) -> None:
        """Test the Puppetfile in a directory is returned."""
        assert find_puppetfile(puppetfile.parent) == puppetfile.parent / "Puppetfile"

    def test_not_found(self, tmp_path: Path) -> None:
        """Test None when the directory has no Puppetfile."""
        assert find_puppetfile(tmp_path) is None

    def test_directory_named_puppetfile(self, tmp_path: Path) -> None:
        """Test a directory called Puppetfile is ignored.

        Edge case.
        """
        (tmp_path / "Puppetfile").mkdir()
        assert find_puppetfile(tmp_path) is None
