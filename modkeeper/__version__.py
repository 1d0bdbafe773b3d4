"""
modkeeper version information.

This module provides a single source of truth for the package version.
It follows Semantic Versioning: https://semver.org/

Version format:
    MAJOR.MINOR.PATCH[-PRERELEASE]

Examples:
    0.1.0
    0.1.0.dev0
    1.0.0-rc1
"""

from __future__ import annotations

__version__ = "0.2.0"
