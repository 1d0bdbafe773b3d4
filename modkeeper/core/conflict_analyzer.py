"""Whole-manifest conflict analysis for modkeeper.

Where :mod:`modkeeper.core.compatibility` looks at one candidate version at
a time, this module inspects the manifest *as it stands*:

1. **Violations** - for each Forge module pinned to a version, which other
   declared modules already reject that version through the requirements
   in their own current release metadata.
2. **Cycles** - dependency chains that lead back to where they started
   (``a -> b -> a``), found with a depth-first walk over the edges of each
   module's current release.
3. **Requirement merging** - :meth:`ConflictAnalyzer.analyze_module`
   intersects every requirement imposed on one module and reports when no
   version, or no *published* version, satisfies them all, together with
   suggested fixes.

Typical usage::

    analyzer = ConflictAnalyzer(provider)
    report = analyzer.analyze(modules)
    for key, conflicts in report.violations.items():
        ...
    for cycle in report.cycles:
        print(" -> ".join(cycle))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from modkeeper.core.compatibility import CompatibilityChecker
from modkeeper.core.registry import ReleaseProvider, find_release
from modkeeper.models.conflict import (
    Conflict,
    ConflictResult,
    ConflictType,
    DependencyConflict,
    Fix,
    ImposedRequirement,
)
from modkeeper.models.module import Module
from modkeeper.models.requirement import (
    LOWER_BOUND_OPERATORS,
    VersionClause,
    VersionRange,
    intersect,
    parse_requirement,
)
from modkeeper.utils.logger import get_logger
from modkeeper.utils.names import normalize_name
from modkeeper.utils.version_utils import compare_versions, sort_versions_descending

logger = get_logger("conflict_analyzer")

__all__ = [
    "AnalysisReport",
    "ConflictAnalyzer",
    "DependencyEdge",
    "DependencyGraph",
    "cycle_signature",
]

# How many versions to quote in "only versions ... are available" messages.
_VERSIONS_IN_DETAILS = 3


# ---------------------------------------------------------------------------
# Graph & report models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DependencyEdge:
    """``source`` (at its current release) requires ``target``."""

    source: str
    target: str
    requirement: str


@dataclass
class DependencyGraph:
    """Dependency edges of a manifest, keyed by canonical module key.

    Attributes:
        names: Declared name for each module key in the manifest.
        edges: Outgoing edges per source key, in metadata order.
    """

    names: Dict[str, str] = field(default_factory=dict)
    edges: Dict[str, List[DependencyEdge]] = field(default_factory=dict)

    def display_name(self, key: str) -> str:
        return self.names.get(key, key)

    def dependencies_of(self, name: str) -> List[DependencyEdge]:
        return self.edges.get(normalize_name(name), [])

    def dependents_of(self, name: str) -> List[DependencyEdge]:
        key = normalize_name(name)
        return [
            edge
            for source_edges in self.edges.values()
            for edge in source_edges
            if edge.target == key
        ]


@dataclass
class AnalysisReport:
    """Result of :meth:`ConflictAnalyzer.analyze`.

    Attributes:
        graph: The dependency graph that was analysed.
        violations: Conflicts already present, keyed by the constrained
            module's canonical key.
        cycles: Circular chains, each ending with its starting module.
    """

    graph: DependencyGraph
    violations: Dict[str, List[Conflict]] = field(default_factory=dict)
    cycles: List[List[str]] = field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        return bool(self.violations or self.cycles)


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class ConflictAnalyzer:
    """Finds conflicts and cycles in a manifest's current version set.

    Args:
        provider: Source of release metadata.
    """

    def __init__(self, provider: ReleaseProvider) -> None:
        self.provider = provider
        self._checker = CompatibilityChecker(provider)

    # -- graph ----------------------------------------------------------

    def build_graph(self, modules: Sequence[Module]) -> DependencyGraph:
        """Collect the dependency edges of every pinned Forge module."""
        graph = DependencyGraph()

        for module in modules:
            graph.names.setdefault(module.key, module.name)

        for module in modules:
            if not module.is_forge or not module.version:
                continue

            release = find_release(self.provider, module.name, module.version)
            if release is None:
                logger.debug("No release metadata for %s %s", module.name, module.version)
                continue

            graph.edges[module.key] = [
                DependencyEdge(module.key, dependency.key, dependency.requirement)
                for dependency in release.dependencies
            ]

        return graph

    # -- violations -----------------------------------------------------

    def find_violations(self, modules: Sequence[Module]) -> Dict[str, List[Conflict]]:
        """Return conflicts present at the current, not-yet-upgraded versions.

        Returns:
            Mapping of module key to the modules whose requirement on it is
            violated. Modules without violations are absent.
        """
        violations: Dict[str, List[Conflict]] = {}

        for module in modules:
            if not module.is_forge or not module.version:
                continue

            result = self._checker.check_compatibility(module, module.version, modules)
            if not result.is_compatible:
                violations[module.key] = list(result.conflicts)

        return violations

    # -- cycles ---------------------------------------------------------

    def find_cycles(
        self,
        modules: Sequence[Module],
        graph: Optional[DependencyGraph] = None,
    ) -> List[List[str]]:
        """Return every distinct dependency cycle.

        Each cycle is a list of display names that ends with the module it
        started from, e.g. ``["a/x", "b/y", "a/x"]``. A cycle is reported
        once no matter which of its members the walk entered it through.
        """
        graph = graph or self.build_graph(modules)

        visited: Set[str] = set()
        in_progress: Set[str] = set()
        path: List[str] = []
        seen_cycles: Set[Tuple[str, ...]] = set()
        cycles: List[List[str]] = []

        def visit(key: str) -> None:
            visited.add(key)
            in_progress.add(key)
            path.append(key)

            for edge in graph.dependencies_of(key):
                if edge.target in in_progress:
                    cycle = path[path.index(edge.target):]
                    signature = cycle_signature(cycle)
                    if signature not in seen_cycles:
                        seen_cycles.add(signature)
                        cycles.append(
                            [graph.display_name(k) for k in cycle]
                            + [graph.display_name(edge.target)]
                        )
                elif edge.target not in visited:
                    visit(edge.target)

            path.pop()
            in_progress.discard(key)

        for key in graph.edges:
            if key not in visited:
                visit(key)

        return cycles

    def analyze(self, modules: Sequence[Module]) -> AnalysisReport:
        """Run the violation and cycle passes over one manifest snapshot."""
        graph = self.build_graph(modules)
        report = AnalysisReport(
            graph=graph,
            violations=self.find_violations(modules),
            cycles=self.find_cycles(modules, graph),
        )

        logger.info(
            "Analysis complete: %d module(s) with violations, %d cycle(s)",
            len(report.violations),
            len(report.cycles),
        )
        return report

    # -- requirement merging -------------------------------------------

    def requirements_on(
        self,
        target: str,
        modules: Sequence[Module],
    ) -> List[ImposedRequirement]:
        """Collect the requirements declared modules place on *target*."""
        key = normalize_name(target)
        graph = self.build_graph(modules)

        return [
            ImposedRequirement(
                constraint=edge.requirement,
                imposed_by=graph.display_name(edge.source),
                path=(graph.display_name(edge.source), graph.display_name(key)),
                is_direct=True,
            )
            for edge in graph.dependents_of(key)
        ]

    @staticmethod
    def analyze_module(
        module_name: str,
        requirements: Sequence[ImposedRequirement],
        available_versions: Sequence[str],
    ) -> ConflictResult:
        """Merge every requirement on *module_name* and check availability.

        Returns:
            A result with ``no-intersection`` when the requirements contradict
            each other, ``no-available-version`` when they agree but nothing
            published satisfies them, or the satisfying versions (newest
            first) otherwise.
        """
        clauses: List[VersionClause] = []
        for requirement in requirements:
            clauses.extend(parse_requirement(requirement.constraint).clauses)

        merged = intersect(clauses)
        if merged is None:
            return ConflictResult(
                has_conflict=True,
                conflict=DependencyConflict(
                    type=ConflictType.NO_INTERSECTION,
                    details=_no_intersection_details(module_name, requirements),
                    suggested_fixes=tuple(_no_intersection_fixes(module_name, requirements)),
                ),
            )

        ordered = sort_versions_descending(available_versions)
        satisfying = tuple(
            version
            for version in ordered
            if all(clause.matches(version) for clause in clauses)
        )

        if not satisfying:
            return ConflictResult(
                has_conflict=True,
                conflict=DependencyConflict(
                    type=ConflictType.NO_AVAILABLE_VERSION,
                    details=_no_available_details(module_name, merged, ordered),
                    suggested_fixes=tuple(
                        _no_available_fixes(module_name, requirements, merged, ordered)
                    ),
                ),
                merged_range=merged,
            )

        return ConflictResult(
            has_conflict=False,
            satisfying_versions=satisfying,
            merged_range=merged,
        )

    @staticmethod
    def check_for_circular_dependency(
        module_name: str,
        path: Sequence[str],
    ) -> Optional[DependencyConflict]:
        """Report a cycle if *module_name* already appears earlier on *path*.

        The last element of *path* is the module currently being expanded,
        so a match there is not a cycle.
        """
        key = normalize_name(module_name)
        keys = [normalize_name(step) for step in path]

        if key not in keys[:-1]:
            return None

        cycle = list(path[keys.index(key):])
        return DependencyConflict(
            type=ConflictType.CIRCULAR,
            details=(
                "Circular dependency detected: "
                f"{' -> '.join(cycle)} -> {module_name}"
            ),
            suggested_fixes=(
                Fix(
                    module=cycle[-1],
                    current_version="current",
                    suggested_version="none",
                    reason="Remove this dependency to break the circular reference",
                ),
            ),
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def cycle_signature(cycle: Sequence[str]) -> Tuple[str, ...]:
    """Rotate a cycle so it starts at its smallest key."""
    start = cycle.index(min(cycle))
    return tuple(cycle[start:]) + tuple(cycle[:start])


def _no_intersection_details(
    module_name: str,
    requirements: Sequence[ImposedRequirement],
) -> str:
    lines = [f"No version of {module_name} satisfies all requirements:"]
    lines.extend(f"  - {req.imposed_by} requires {req.constraint}" for req in requirements)
    return "\n".join(lines)


def _no_intersection_fixes(
    module_name: str,
    requirements: Sequence[ImposedRequirement],
) -> List[Fix]:
    groups: Dict[str, List[ImposedRequirement]] = {}
    for requirement in requirements:
        groups.setdefault(requirement.constraint, []).append(requirement)

    # Only a clean two-sided split has an obvious side to move
    if len(groups) != 2:
        return []

    first, second = groups.values()
    target_constraint = second[0].constraint
    return [
        Fix(
            module=requirement.imposed_by,
            current_version="current",
            suggested_version="latest",
            reason=f"Update to a version that accepts {module_name} {target_constraint}",
        )
        for requirement in first
    ]


def _no_available_details(
    module_name: str,
    merged: VersionRange,
    available: Sequence[str],
) -> str:
    if not available:
        return f"{module_name} requires {merged}, but no versions are available"

    shown = ", ".join(available[:_VERSIONS_IN_DETAILS])
    if len(available) > _VERSIONS_IN_DETAILS:
        shown += "..."
    return (
        f"{module_name} requires {merged}, but only versions {shown} "
        f"are available (latest: {available[0]})"
    )


def _no_available_fixes(
    module_name: str,
    requirements: Sequence[ImposedRequirement],
    merged: VersionRange,
    available: Sequence[str],
) -> List[Fix]:
    if not available or merged.min_version is None:
        return []

    latest = available[0]
    if compare_versions(latest, merged.min_version) >= 0:
        return []

    fixes: List[Fix] = []
    for requirement in requirements:
        clauses = parse_requirement(requirement.constraint).clauses
        if any(clause.operator in LOWER_BOUND_OPERATORS for clause in clauses):
            fixes.append(
                Fix(
                    module=requirement.imposed_by,
                    current_version="current",
                    suggested_version="previous",
                    reason=f"Downgrade to a version that accepts {module_name} <= {latest}",
                )
            )
    return fixes
