"""
Centralized constants for modkeeper.

This module defines immutable configuration values used across modkeeper,
including Forge endpoints, network settings, version sentinels, and logging
formats. All values are intended to be treated as read-only.
"""

from typing import Final, Sequence

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = "modkeeper/{version}"

# ---------------------------------------------------------------------------
# Puppet Forge endpoints
# ---------------------------------------------------------------------------

#: Base URL of the public Puppet Forge API.
DEFAULT_FORGE_URL: Final[str] = "https://forgeapi.puppet.com"

#: Releases endpoint, relative to the Forge base URL.
FORGE_RELEASES_PATH: Final[str] = "/v3/releases"

#: Page size requested from the releases endpoint.
FORGE_PAGE_LIMIT: Final[int] = 100

#: Upper bound on followed ``pagination.next`` links per module.
FORGE_MAX_PAGES: Final[int] = 5

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default network timeout in seconds.
DEFAULT_TIMEOUT: Final[int] = 30

#: Maximum number of retries for failed HTTP requests.
DEFAULT_MAX_RETRIES: Final[int] = 3

#: Maximum number of concurrent Forge fetches.
DEFAULT_CONCURRENT_LIMIT: Final[int] = 10

# ---------------------------------------------------------------------------
# Version handling
# ---------------------------------------------------------------------------

#: Sentinel shown for modules declared without a version.
UNVERSIONED: Final[str] = "unversioned"

#: Pre-release markers that make a version "unsafe" when they follow a ``-``.
PRERELEASE_MARKERS: Final[Sequence[str]] = (
    "alpha",
    "beta",
    "rc",
    "pre",
    "dev",
    "snapshot",
)

# ---------------------------------------------------------------------------
# Manifest handling
# ---------------------------------------------------------------------------

#: Default manifest file name.
DEFAULT_MANIFEST: Final[str] = "Puppetfile"

#: Maximum allowed file size (in bytes) when reading manifests.
MAX_FILE_SIZE: Final[int] = 10 * 1024 * 1024  # 10 MB

# ---------------------------------------------------------------------------
# Configuration defaults
# ---------------------------------------------------------------------------

#: Skip pre-release versions when searching for upgrades.
DEFAULT_EXCLUDE_PRERELEASES: Final[bool] = False

#: Report circular dependency chains alongside the plan.
DEFAULT_DETECT_CYCLES: Final[bool] = True

# ---------------------------------------------------------------------------
# Dependency tree
# ---------------------------------------------------------------------------

#: Deepest level expanded by the dependency tree; deeper nodes are leaves.
MAX_TREE_DEPTH: Final[int] = 5

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
