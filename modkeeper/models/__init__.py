"""
Unified data model exports for modkeeper.

Example:
    >>> from modkeeper.models import Module, Release, UpgradePlan
"""

from __future__ import annotations

from modkeeper.models.module import Dependency, Module, ModuleSource, Release
from modkeeper.models.requirement import (
    Requirement,
    VersionClause,
    VersionRange,
    parse_requirement,
    satisfies,
)
from modkeeper.models.conflict import (
    CompatibilityResult,
    Conflict,
    ConflictResult,
    ConflictType,
    DependencyConflict,
    Fix,
    ImposedRequirement,
)
from modkeeper.models.plan import UpgradeCandidate, UpgradePlan

__all__ = [
    "Module",
    "ModuleSource",
    "Dependency",
    "Release",
    "Requirement",
    "VersionClause",
    "VersionRange",
    "parse_requirement",
    "satisfies",
    "Conflict",
    "CompatibilityResult",
    "ConflictType",
    "ConflictResult",
    "DependencyConflict",
    "Fix",
    "ImposedRequirement",
    "UpgradeCandidate",
    "UpgradePlan",
]
