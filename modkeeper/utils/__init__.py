"""
Utility helpers for modkeeper.

This package provides reusable utilities used across modkeeper, including:

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Filesystem safety helpers
- Async HTTP client utilities
- Version comparison and module name helpers

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Filesystem utilities
# ---------------------------------------------------------------------------

from modkeeper.utils.filesystem import (
    create_timestamped_backup,
    find_puppetfile,
    list_backups,
    restore_backup,
    safe_read_file,
    safe_write_file,
)

# ---------------------------------------------------------------------------
# Logging utilities
# ---------------------------------------------------------------------------

from modkeeper.utils.logger import (
    disable_logging,
    get_logger,
    is_logging_configured,
    setup_logging,
)

# ---------------------------------------------------------------------------
# Console utilities
# ---------------------------------------------------------------------------

from modkeeper.utils.console import (
    colorize_update_type,
    confirm,
    get_raw_console,
    print_error,
    print_plain,
    print_success,
    print_table,
    print_warning,
    reconfigure_console,
)

# ---------------------------------------------------------------------------
# HTTP utilities
# ---------------------------------------------------------------------------

from modkeeper.utils.http import HTTPClient

# ---------------------------------------------------------------------------
# Version and name utilities
# ---------------------------------------------------------------------------

from modkeeper.utils.names import normalize_name
from modkeeper.utils.version_utils import (
    compare_versions,
    get_update_type,
    is_safe_version,
    sort_versions_descending,
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    # Console
    "confirm",
    "print_error",
    "print_plain",
    "print_table",
    "print_success",
    "print_warning",
    "get_raw_console",
    "reconfigure_console",
    "colorize_update_type",
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    "is_logging_configured",
    # Filesystem
    "safe_read_file",
    "safe_write_file",
    "restore_backup",
    "list_backups",
    "find_puppetfile",
    "create_timestamped_backup",
    # HTTP
    "HTTPClient",
    # Versions and names
    "compare_versions",
    "get_update_type",
    "is_safe_version",
    "normalize_name",
    "sort_versions_descending",
]
