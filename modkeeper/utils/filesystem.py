"""
Filesystem utilities for modkeeper.

Helpers for reading Puppetfiles, writing them back atomically and keeping
timestamped backups next to them. Every filesystem failure surfaces as
:class:`~modkeeper.exceptions.FileOperationError`.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from datetime import datetime
from typing import List, Optional, Union

from modkeeper.utils.logger import get_logger
from modkeeper.exceptions import FileOperationError
from modkeeper.constants import DEFAULT_MANIFEST, MAX_FILE_SIZE

logger = get_logger("filesystem")

PathLike = Union[str, Path]

BACKUP_SUFFIX = ".backup"


def _existing_file(path: Path, operation: str) -> Path:
    if not path.exists():
        raise FileOperationError(
            f"File not found: {path}",
            file_path=str(path),
            operation=operation,
        )
    if not path.is_file():
        raise FileOperationError(
            f"Not a file: {path}",
            file_path=str(path),
            operation=operation,
        )
    return path.resolve()


def _atomic_write(target: Path, content: str) -> None:
    """Write through a temporary file in the same directory, then replace."""
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Optional[Path] = None

    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            newline="",
            dir=str(target.parent),
            delete=False,
            prefix=f".{target.name}.",
            suffix=".tmp",
        ) as tmp:
            temp_path = Path(tmp.name)
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())

        temp_path.replace(target)

    except OSError as exc:
        if temp_path is not None and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError as cleanup_exc:
                logger.warning(
                    "Failed to clean up temporary file %s: %s",
                    temp_path,
                    cleanup_exc,
                )

        raise FileOperationError(
            f"Atomic write failed: {exc}",
            file_path=str(target),
            operation="write",
            original_error=exc,
        ) from exc


def safe_read_file(
    file_path: PathLike,
    *,
    max_size: Optional[int] = MAX_FILE_SIZE,
    encoding: str = "utf-8",
) -> str:
    """Read a text file, refusing anything larger than *max_size* bytes.

    Line endings are preserved so a rewrite does not churn the file.
    """
    path = _existing_file(Path(file_path), "read")
    size = path.stat().st_size

    if max_size is not None and size > max_size:
        raise FileOperationError(
            f"File too large: {size} bytes (max {max_size})",
            file_path=str(path),
            operation="read",
        )

    try:
        with path.open("r", encoding=encoding, newline="") as handle:
            return handle.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise FileOperationError(
            f"Failed to read file: {exc}",
            file_path=str(path),
            operation="read",
            original_error=exc,
        ) from exc


def safe_write_file(
    file_path: PathLike,
    content: str,
    *,
    create_backup: bool = True,
) -> Optional[Path]:
    """Atomically replace *file_path* with *content*.

    Args:
        file_path: Destination path.
        content: New file content.
        create_backup: Copy the existing file aside first. The copy is
            restored if the write fails.

    Returns:
        Path of the backup, if one was made.
    """
    path = Path(file_path)
    backup: Optional[Path] = None

    if create_backup and path.is_file():
        backup = create_timestamped_backup(path)

    try:
        _atomic_write(path, content)
    except FileOperationError:
        if backup is not None:
            logger.warning("Write failed, restoring %s from %s", path, backup)
            restore_backup(backup, path)
        raise

    return backup


def create_timestamped_backup(file_path: PathLike) -> Path:
    """Copy *file_path* to ``<name>.<YYYYmmdd_HHMMSS_ffffff>.backup``."""
    path = _existing_file(Path(file_path), "backup")
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    backup_path = path.parent / f"{path.name}.{timestamp}{BACKUP_SUFFIX}"

    try:
        shutil.copy2(path, backup_path)
    except OSError as exc:
        raise FileOperationError(
            f"Failed to create backup: {exc}",
            file_path=str(path),
            operation="backup",
            original_error=exc,
        ) from exc

    logger.debug("Created backup: %s", backup_path)
    return backup_path


def restore_backup(backup_path: PathLike, target_path: PathLike) -> None:
    """Copy a backup over *target_path*."""
    backup = Path(backup_path)

    if not backup.is_file():
        raise FileOperationError(
            f"Backup file not found: {backup}",
            file_path=str(backup),
            operation="restore",
        )

    try:
        shutil.copy2(backup, target_path)
    except OSError as exc:
        raise FileOperationError(
            f"Failed to restore backup: {exc}",
            file_path=str(target_path),
            operation="restore",
            original_error=exc,
        ) from exc


def list_backups(file_path: PathLike) -> List[Path]:
    """Backups of *file_path*, newest first."""
    path = Path(file_path)
    return sorted(
        path.parent.glob(f"{path.name}.*{BACKUP_SUFFIX}"),
        key=lambda p: p.name,
        reverse=True,
    )


def find_puppetfile(directory: PathLike = ".") -> Optional[Path]:
    """Return the Puppetfile in *directory*, if there is one."""
    candidate = Path(directory) / DEFAULT_MANIFEST
    return candidate if candidate.is_file() else None
