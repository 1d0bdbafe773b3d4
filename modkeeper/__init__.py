"""
modkeeper — safe upgrade planning for Puppetfile module manifests

modkeeper reads a Puppetfile, looks up every Forge module's published
releases, and works out the highest version each module can move to
without breaking the version requirements the other declared modules
place on it.

Features include:
    • Semantic version ordering with pre-release awareness
    • Forge-style requirement matching (>=, <, ~>, 1.x)
    • Per-module compatibility checks against the whole manifest
    • Conflict and circular dependency detection
    • Upgrade plans rendered as tables, Markdown summaries or JSON
    • In-place Puppetfile rewriting with backups
"""

from __future__ import annotations

from modkeeper.__version__ import __version__
from modkeeper.core.compatibility import check_compatibility
from modkeeper.core.planner import create_upgrade_plan, generate_summary
from modkeeper.models.requirement import satisfies
from modkeeper.utils.version_utils import compare_versions, is_safe_version

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "modkeeper Contributors"
__license__ = "Apache-2.0"
__description__ = "Safe upgrade planning for Puppetfile module manifests."

# ---------------------------------------------------------------------------
# Public API
#
# The engine entry points callers are expected to use directly.
# ---------------------------------------------------------------------------

__all__ = [
    "__version__",
    "compare_versions",
    "is_safe_version",
    "satisfies",
    "check_compatibility",
    "create_upgrade_plan",
    "generate_summary",
]
