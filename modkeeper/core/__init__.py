"""
Core functionality exports for modkeeper.

The planning engine (registry, compatibility, conflict analysis, planner,
dependency tree) plus its two I/O collaborators, the Puppetfile parser and
the Forge data store:

    from modkeeper.core import PuppetfileParser, UpgradePlanner
"""

from __future__ import annotations

from modkeeper.core.registry import ReleaseProvider, ReleaseSnapshot, StaticReleaseProvider
from modkeeper.core.compatibility import CompatibilityChecker, check_compatibility
from modkeeper.core.conflict_analyzer import AnalysisReport, ConflictAnalyzer
from modkeeper.core.planner import UpgradePlanner, create_upgrade_plan, generate_summary
from modkeeper.core.dependency_tree import (
    DependencyNode,
    DependencyTree,
    DependencyTreeBuilder,
    build_dependency_tree,
    generate_list_text,
    generate_tree_text,
)
from modkeeper.core.parser import ParseResult, PuppetfileParser
from modkeeper.core.data_store import ForgeDataStore

__all__ = [
    "ReleaseProvider",
    "StaticReleaseProvider",
    "ReleaseSnapshot",
    "CompatibilityChecker",
    "check_compatibility",
    "ConflictAnalyzer",
    "AnalysisReport",
    "UpgradePlanner",
    "create_upgrade_plan",
    "generate_summary",
    "DependencyNode",
    "DependencyTree",
    "DependencyTreeBuilder",
    "build_dependency_tree",
    "generate_list_text",
    "generate_tree_text",
    "PuppetfileParser",
    "ParseResult",
    "ForgeDataStore",
]
