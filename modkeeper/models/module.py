"""
Manifest and registry data models for modkeeper.

This module defines what the engine knows about a manifest entry
(:class:`Module`) and about one published version of a Forge module
(:class:`Release`). All records are frozen: a planning run works on an
immutable snapshot and a new run re-parses the manifest.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from modkeeper.utils.names import normalize_name


class ModuleSource(str, Enum):
    """Where a module's code comes from."""

    FORGE = "forge"
    GIT = "git"


@dataclass(frozen=True)
class Module:
    """A module declared in a Puppetfile.

    Args:
        name: Module name as written in the manifest.
        version: Pinned version, or None for an unversioned declaration.
        source: Forge or git. Git modules are never resolved.
        line: 1-based declaration line, used when rewriting the manifest.
        git_url: Repository URL for git modules.
        git_ref: Branch or commit for git modules.
        git_tag: Tag for git modules.
    """

    name: str
    version: Optional[str] = None
    source: ModuleSource = ModuleSource.FORGE
    line: Optional[int] = None
    git_url: Optional[str] = None
    git_ref: Optional[str] = None
    git_tag: Optional[str] = None

    @property
    def key(self) -> str:
        """Canonical identity shared by every spelling of the name."""
        return normalize_name(self.name)

    @property
    def is_forge(self) -> bool:
        return self.source is ModuleSource.FORGE

    @property
    def is_git(self) -> bool:
        return self.source is ModuleSource.GIT

    @property
    def is_versioned(self) -> bool:
        return bool(self.version)

    @property
    def git_reference(self) -> Optional[str]:
        """The tag if pinned by tag, otherwise the ref."""
        return self.git_tag or self.git_ref

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "source": self.source.value,
            "line": self.line,
        }
        if self.is_git:
            data["git_url"] = self.git_url
            data["git_ref"] = self.git_ref
            data["git_tag"] = self.git_tag
        return data

    def __str__(self) -> str:
        if self.is_git:
            reference = self.git_reference
            return f"{self.name} (git{'@' + reference if reference else ''})"
        return f"{self.name} {self.version}" if self.version else self.name


@dataclass(frozen=True)
class Dependency:
    """One ``(target, requirement)`` entry of a release's metadata."""

    name: str
    requirement: str = ""

    @property
    def key(self) -> str:
        return normalize_name(self.name)


@dataclass(frozen=True)
class Release:
    """One published version of a Forge module.

    Args:
        version: Release version string.
        dependencies: Requirements this release places on other modules,
            in the order the metadata lists them.
    """

    version: str
    dependencies: Tuple[Dependency, ...] = field(default_factory=tuple)

    @classmethod
    def from_pairs(
        cls,
        version: str,
        dependencies: Iterable[Tuple[str, str]] = (),
    ) -> "Release":
        """Build a release from ``(name, requirement)`` pairs."""
        return cls(
            version=version,
            dependencies=tuple(
                Dependency(name, requirement or "") for name, requirement in dependencies
            ),
        )

    def requirement_for(self, key: str) -> Optional[str]:
        """Return the requirement this release places on *key*.

        Returns None when the release has no opinion on that module, which
        is different from an empty requirement (an explicit "any version").
        """
        canonical = normalize_name(key)
        for dependency in self.dependencies:
            if dependency.key == canonical:
                return dependency.requirement
        return None

    def depends_on(self, key: str) -> bool:
        return self.requirement_for(key) is not None
