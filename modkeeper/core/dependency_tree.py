"""Transitive dependency tree of a Puppetfile.

The planner and :class:`~modkeeper.core.conflict_analyzer.ConflictAnalyzer`
only look at the modules a manifest declares. This module follows release
metadata further down, into modules nobody declared, and builds a tree:

1. **Expansion** - every declared module is a root. A Forge node is
   expanded through the dependencies of one release: the declared version
   for roots, the newest release satisfying the parent's requirement for
   transitive nodes, the newest release otherwise. Expansion stops at
   ``max_depth`` and at modules already on the current path (a cycle).
2. **Requirement collection** - every requirement met on the way, plus an
   ``= <version>`` requirement per pinned root, is recorded against the
   required module.
3. **Conflict analysis** - the requirements on each module are merged with
   :meth:`ConflictAnalyzer.analyze_module` and every node of a conflicting
   module is annotated with the result.

Git modules appear as leaves; their metadata lives outside the Forge.

Typical usage::

    tree = DependencyTreeBuilder(store).build(modules)
    print(generate_tree_text(tree.roots))
    for line in tree.find_conflicts():
        print(line)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from modkeeper.constants import MAX_TREE_DEPTH
from modkeeper.core.conflict_analyzer import ConflictAnalyzer, cycle_signature
from modkeeper.core.registry import ReleaseProvider, find_release
from modkeeper.models.conflict import DependencyConflict, ImposedRequirement
from modkeeper.models.module import Module, ModuleSource, Release
from modkeeper.models.requirement import parse_requirement, satisfies
from modkeeper.utils.logger import get_logger
from modkeeper.utils.names import normalize_name
from modkeeper.utils.version_utils import compare_versions

logger = get_logger("dependency_tree")

__all__ = [
    "DependencyNode",
    "DependencyTree",
    "DependencyTreeBuilder",
    "build_dependency_tree",
    "generate_list_text",
    "generate_tree_text",
]

#: ``progress_callback(done, total, module_name)``, once per root
ProgressCallback = Callable[[int, int, str], None]

# Who imposes the pin of a declared version
_MANIFEST = "Puppetfile"


# ---------------------------------------------------------------------------
# Tree model
# ---------------------------------------------------------------------------


@dataclass
class DependencyNode:
    """One module in the dependency tree.

    Attributes:
        name: Declared name for roots, metadata name for transitive nodes.
        version: Declared version; for transitive nodes the version the
            manifest pins the same module to, if it does.
        source: Forge or git.
        depth: 0 for roots.
        is_direct: True for modules declared in the manifest.
        requirement: Requirement the parent places on this module.
        display_version: Version text shown by the tree renderer.
        is_constraint_violated: The manifest pins this module to a version
            that fails ``requirement``.
        conflict: Merged-requirement or circular conflict, if any.
        git_reference: Tag or ref of git modules.
        children: Dependencies of the release that was expanded.
    """

    name: str
    version: Optional[str] = None
    source: ModuleSource = ModuleSource.FORGE
    depth: int = 0
    is_direct: bool = False
    requirement: Optional[str] = None
    display_version: Optional[str] = None
    is_constraint_violated: bool = False
    conflict: Optional[DependencyConflict] = None
    git_reference: Optional[str] = None
    children: List["DependencyNode"] = field(default_factory=list)

    @property
    def key(self) -> str:
        return normalize_name(self.name)

    def walk(self) -> Iterator["DependencyNode"]:
        """Yield this node and its descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "source": self.source.value,
            "depth": self.depth,
            "is_direct": self.is_direct,
            "requirement": self.requirement,
            "is_constraint_violated": self.is_constraint_violated,
            "conflict": self.conflict.to_json() if self.conflict else None,
            "children": [child.to_json() for child in self.children],
        }
        if self.git_reference:
            data["git_reference"] = self.git_reference
        return data


@dataclass
class DependencyTree:
    """Result of :meth:`DependencyTreeBuilder.build`.

    Attributes:
        roots: One node per declared module, manifest order.
        requirements: Every requirement collected, keyed by the canonical
            key of the constrained module.
        conflicts: Merged-requirement conflicts, keyed like
            ``requirements``.
        cycles: Circular chains, each ending with its starting module.
        cancelled: The build stopped early; the tree is partial.
    """

    roots: List[DependencyNode] = field(default_factory=list)
    requirements: Dict[str, List[ImposedRequirement]] = field(default_factory=dict)
    conflicts: Dict[str, DependencyConflict] = field(default_factory=dict)
    cycles: List[List[str]] = field(default_factory=list)
    cancelled: bool = False

    def walk(self) -> Iterator[DependencyNode]:
        for root in self.roots:
            yield from root.walk()

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts or self.cycles) or any(
            node.is_constraint_violated for node in self.walk()
        )

    def find_conflicts(self) -> List[str]:
        """Return conflict details, each followed by its suggestions."""
        lines: List[str] = []
        for conflict in self.conflicts.values():
            lines.append(conflict.details)
            lines.extend(f"  Suggestion: {fix.reason}" for fix in conflict.suggested_fixes)
        return lines

    def to_dict(self) -> Dict[str, Any]:
        return {
            "modules": [root.to_json() for root in self.roots],
            "conflicts": {key: conflict.to_json() for key, conflict in self.conflicts.items()},
            "cycles": self.cycles,
            "cancelled": self.cancelled,
        }


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class DependencyTreeBuilder:
    """Builds :class:`DependencyTree` objects from release metadata.

    Like the planner, the builder only reads ``provider.get_releases``, so
    every module the tree may reach must already be cached. A lookup that
    raises is logged and that node is left without children.

    Args:
        provider: Source of release metadata.
        max_depth: Nodes at this depth are not expanded.
    """

    def __init__(self, provider: ReleaseProvider, *, max_depth: int = MAX_TREE_DEPTH) -> None:
        self.provider = provider
        self.max_depth = max_depth

    def build(
        self,
        modules: Sequence[Module],
        *,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> DependencyTree:
        """Build the tree of every module in *modules*.

        Args:
            modules: Full manifest snapshot, git modules included.
            cancel_event: When set, no further root is expanded and the
                partial tree is returned with ``cancelled=True``.
            progress_callback: Called after each root is expanded.
        """
        walk = _TreeWalk(self.provider, self.max_depth, modules)
        tree = DependencyTree()

        for index, module in enumerate(modules):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Tree build cancelled after %d of %d module(s)", index, len(modules))
                tree.cancelled = True
                break

            tree.roots.append(walk.expand_root(module))

            if progress_callback is not None:
                progress_callback(index + 1, len(modules), module.name)

        tree.requirements = walk.requirements
        tree.cycles = walk.cycles
        tree.conflicts = walk.analyze_conflicts()

        for node in tree.walk():
            conflict = tree.conflicts.get(node.key)
            if conflict is not None:
                node.conflict = conflict

        logger.info(
            "Dependency tree: %d node(s), %d conflict(s), %d cycle(s)",
            sum(1 for _ in tree.walk()),
            len(tree.conflicts),
            len(tree.cycles),
        )
        return tree


def build_dependency_tree(
    modules: Sequence[Module],
    provider: ReleaseProvider,
    *,
    max_depth: int = MAX_TREE_DEPTH,
) -> DependencyTree:
    """Functional shortcut for :meth:`DependencyTreeBuilder.build`."""
    return DependencyTreeBuilder(provider, max_depth=max_depth).build(modules)


class _TreeWalk:
    """State of one tree build: the current path and what it collected."""

    def __init__(
        self,
        provider: ReleaseProvider,
        max_depth: int,
        modules: Sequence[Module],
    ) -> None:
        self.provider = provider
        self.max_depth = max_depth

        self.names: Dict[str, str] = {}
        self.pinned: Dict[str, str] = {}
        self.requirements: Dict[str, List[ImposedRequirement]] = {}
        self.cycles: List[List[str]] = []

        self._path: List[str] = []
        self._on_path: Set[str] = set()
        self._seen_cycles: Set[Tuple[str, ...]] = set()

        for module in modules:
            self.names.setdefault(module.key, module.name)
            if module.is_forge and module.version:
                self.pinned[module.key] = module.version
                self._add_requirement(
                    module.key,
                    ImposedRequirement(
                        constraint=f"= {module.version}",
                        imposed_by=_MANIFEST,
                        path=(module.name,),
                        is_direct=True,
                    ),
                )

    # -- expansion ------------------------------------------------------

    def expand_root(self, module: Module) -> DependencyNode:
        if module.is_git:
            return DependencyNode(
                name=module.name,
                source=ModuleSource.GIT,
                is_direct=True,
                display_version=_git_display(module.git_tag, module.git_ref),
                git_reference=module.git_reference,
            )
        return self._expand(module.name, module.version, 0, True, None, None)

    def _expand(
        self,
        name: str,
        version: Optional[str],
        depth: int,
        is_direct: bool,
        parent: Optional[str],
        requirement: Optional[str],
    ) -> DependencyNode:
        key = normalize_name(name)
        self.names.setdefault(key, name)
        circular = ConflictAnalyzer.check_for_circular_dependency(name, self._path)
        if circular is not None:
            self._record_cycle(name)

        resolved = self.pinned.get(key)
        node = DependencyNode(
            name=name,
            version=version or resolved,
            depth=depth,
            is_direct=is_direct,
            requirement=requirement,
            conflict=circular,
        )

        if depth >= self.max_depth or key in self._on_path:
            return node

        if parent is not None and requirement is not None:
            self._add_requirement(
                key,
                ImposedRequirement(
                    constraint=requirement,
                    imposed_by=parent,
                    path=tuple(self._path) + (name,),
                    is_direct=is_direct,
                ),
            )

        node.display_version = _display_version(version, requirement, resolved, is_direct)
        node.is_constraint_violated = bool(
            resolved and requirement and not satisfies(resolved, requirement)
        )

        release = self._select_release(name, version, requirement)
        if release is None:
            return node

        self._path.append(name)
        self._on_path.add(key)
        try:
            for dependency in release.dependencies:
                node.children.append(
                    self._expand(
                        self.names.get(dependency.key, dependency.name),
                        None,
                        depth + 1,
                        False,
                        name,
                        dependency.requirement,
                    )
                )
        finally:
            self._path.pop()
            self._on_path.discard(key)

        return node

    def _select_release(
        self,
        name: str,
        version: Optional[str],
        requirement: Optional[str],
    ) -> Optional[Release]:
        """Pick the release whose dependencies become *name*'s children."""
        try:
            releases = self.provider.get_releases(name)
            pinned = find_release(self.provider, name, version) if version else None
        except Exception as exc:
            logger.warning("Could not read dependencies of %s: %s", name, exc)
            logger.debug("Release lookup failure details", exc_info=True)
            return None

        if pinned is not None:
            return pinned
        if not releases:
            return None

        if requirement:
            parsed = parse_requirement(requirement)
            matching = [r for r in releases if parsed.matches(r.version)]
            if matching:
                return _newest(matching)

        return _newest(releases)

    # -- bookkeeping ----------------------------------------------------

    def _add_requirement(self, key: str, requirement: ImposedRequirement) -> None:
        self.requirements.setdefault(key, []).append(requirement)

    def _record_cycle(self, name: str) -> None:
        keys = [normalize_name(step) for step in self._path]
        start = keys.index(normalize_name(name))
        cycle_keys = keys[start:]

        signature = cycle_signature(cycle_keys)
        if signature in self._seen_cycles:
            return
        self._seen_cycles.add(signature)
        self.cycles.append(list(self._path[start:]) + [self._path[start]])

    # -- conflicts ------------------------------------------------------

    def analyze_conflicts(self) -> Dict[str, DependencyConflict]:
        conflicts: Dict[str, DependencyConflict] = {}

        for key, requirements in self.requirements.items():
            try:
                available = [r.version for r in self.provider.get_releases(key)]
            except Exception as exc:
                logger.warning("Could not analyze conflicts for %s: %s", key, exc)
                continue

            result = ConflictAnalyzer.analyze_module(
                self.names.get(key, key),
                requirements,
                available,
            )
            if result.has_conflict and result.conflict is not None:
                logger.debug("Conflict on %s: %s", key, result.conflict.details)
                conflicts[key] = result.conflict

        return conflicts


def _newest(releases: Sequence[Release]) -> Release:
    best = releases[0]
    for release in releases[1:]:
        if compare_versions(release.version, best.version) > 0:
            best = release
    return best


def _git_display(tag: Optional[str], ref: Optional[str]) -> str:
    if tag:
        return f"tag: {tag}"
    if ref:
        return f"ref: {ref}"
    return "git"


def _display_version(
    version: Optional[str],
    requirement: Optional[str],
    resolved: Optional[str],
    is_direct: bool,
) -> Optional[str]:
    """Declared version for roots, the requirement for transitive nodes."""
    if is_direct and version:
        return version
    if requirement and not is_direct:
        if resolved:
            return f"requires {requirement}, resolved: {resolved}"
        return f"requires {requirement}"
    return resolved


# ---------------------------------------------------------------------------
# Text renderers
# ---------------------------------------------------------------------------


def generate_tree_text(nodes: Sequence[DependencyNode]) -> str:
    """Render *nodes* as an indented tree.

    Example::

        ├── puppetlabs/apache (5.0.0) [forge]
        │   └── puppetlabs-stdlib (requires >= 4.13.1 < 9.0.0, resolved: 9.0.0) [forge] ⚠
        │       Constraint violation: requires >= 4.13.1 < 9.0.0, but Puppetfile has 9.0.0
        └── puppetlabs/stdlib (9.0.0) [forge] ✗
    """
    lines: List[str] = []
    for index, node in enumerate(nodes):
        _render_node(node, "", index == len(nodes) - 1, lines)
    return "".join(lines)


def _render_node(node: DependencyNode, prefix: str, is_last: bool, lines: List[str]) -> None:
    connector = "└── " if is_last else "├── "
    version_text = f" ({node.display_version})" if node.display_version else ""
    source_text = " [git]" if node.source is ModuleSource.GIT else " [forge]"

    marker = ""
    if node.conflict is not None:
        marker = " ✗"
    elif node.is_constraint_violated:
        marker = " ⚠"

    lines.append(f"{prefix}{connector}{node.name}{version_text}{source_text}{marker}\n")

    child_prefix = prefix + ("    " if is_last else "│   ")
    if node.conflict is not None:
        for detail in node.conflict.details.split("\n"):
            lines.append(f"{child_prefix}{detail}\n")
        for fix in node.conflict.suggested_fixes:
            lines.append(f"{child_prefix}  Suggestion: {fix.reason}\n")
    elif node.is_constraint_violated and node.requirement and node.version:
        lines.append(
            f"{child_prefix}Constraint violation: requires {node.requirement}, "
            f"but Puppetfile has {node.version}\n"
        )

    for index, child in enumerate(node.children):
        _render_node(child, child_prefix, index == len(node.children) - 1, lines)


def generate_list_text(nodes: Sequence[DependencyNode]) -> str:
    """Render every module in *nodes* once, direct dependencies first.

    Modules are de-duplicated by canonical key and sorted by it. A declared
    module is always listed as direct, even when another module's
    dependency reaches it first.
    """
    unique: Dict[str, DependencyNode] = {root.key: root for root in reversed(nodes)}
    for root in nodes:
        for node in root.walk():
            unique.setdefault(node.key, node)

    ordered = sorted(unique.values(), key=lambda node: node.key)
    direct = [node for node in ordered if node.is_direct]
    transitive = [node for node in ordered if not node.is_direct]

    lines = [f"Total Dependencies: {len(ordered)}", ""]

    if direct:
        lines.append(f"Direct Dependencies ({len(direct)}):")
        for node in direct:
            reference = node.version or node.git_reference
            version_text = f" ({reference})" if reference else ""
            source_text = " [git]" if node.source is ModuleSource.GIT else " [forge]"
            lines.append(f"  • {node.name}{version_text}{source_text}")
        lines.append("")

    if transitive:
        lines.append(f"Transitive Dependencies ({len(transitive)}):")
        for node in transitive:
            version_text = f" ({node.version})" if node.version else ""
            lines.append(f"  • {node.name}{version_text} [forge]")
        lines.append("")

    return "\n".join(lines)
