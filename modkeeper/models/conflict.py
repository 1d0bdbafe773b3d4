"""
Conflict data models for modkeeper.

Two families live here:

* :class:`Conflict` and :class:`CompatibilityResult` come out of the
  per-candidate compatibility check: which declared module, at its current
  version, rejects a candidate version.
* :class:`ImposedRequirement`, :class:`Fix`, :class:`DependencyConflict`
  and :class:`ConflictResult` come out of the conflict analyzer when it
  merges every requirement placed on a single module.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from modkeeper.models.requirement import VersionRange


@dataclass(frozen=True)
class Conflict:
    """A declared module whose requirement a candidate version fails.

    Args:
        module_name: Name of the blocking module, as declared.
        current_version: Blocking module's current declared version.
        requirement: Requirement text it places on the candidate's module.
    """

    module_name: str
    current_version: str
    requirement: str

    def to_display_string(self) -> str:
        return f"{self.module_name} {self.current_version} requires {self.requirement}"

    def to_json(self) -> Dict[str, str]:
        return {
            "module_name": self.module_name,
            "current_version": self.current_version,
            "requirement": self.requirement,
        }

    def __str__(self) -> str:
        return self.to_display_string()


@dataclass(frozen=True)
class CompatibilityResult:
    """Outcome of checking one candidate version against a manifest."""

    version: str
    is_compatible: bool
    conflicts: Tuple[Conflict, ...] = field(default_factory=tuple)

    @property
    def blocking_modules(self) -> Tuple[str, ...]:
        """Names of the conflicting modules, first occurrence order."""
        return tuple(dict.fromkeys(c.module_name for c in self.conflicts))


class ConflictType(str, Enum):
    NO_INTERSECTION = "no-intersection"
    NO_AVAILABLE_VERSION = "no-available-version"
    CIRCULAR = "circular"


@dataclass(frozen=True)
class ImposedRequirement:
    """A requirement placed on a module, and who placed it.

    Args:
        constraint: Requirement text, e.g. ``">= 4.0.0 < 9.0.0"``.
        imposed_by: Module declaring the requirement.
        path: Dependency path leading to the constrained module.
        is_direct: True when ``imposed_by`` is declared in the manifest.
    """

    constraint: str
    imposed_by: str
    path: Tuple[str, ...] = ()
    is_direct: bool = True


@dataclass(frozen=True)
class Fix:
    """A suggested change that may resolve a conflict."""

    module: str
    current_version: str
    suggested_version: str
    reason: str

    def to_json(self) -> Dict[str, str]:
        return {
            "module": self.module,
            "current_version": self.current_version,
            "suggested_version": self.suggested_version,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class DependencyConflict:
    type: ConflictType
    details: str
    suggested_fixes: Tuple[Fix, ...] = ()

    def to_json(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "details": self.details,
            "suggested_fixes": [fix.to_json() for fix in self.suggested_fixes],
        }


@dataclass(frozen=True)
class ConflictResult:
    """Result of merging every requirement imposed on one module.

    Attributes:
        has_conflict: True when no available version satisfies everything.
        conflict: What went wrong, when ``has_conflict`` is set.
        satisfying_versions: Available versions meeting all requirements.
        merged_range: Intersection of all requirements, None if empty.
    """

    has_conflict: bool
    conflict: Optional[DependencyConflict] = None
    satisfying_versions: Tuple[str, ...] = ()
    merged_range: Optional[VersionRange] = None
