"""
Upgrade plan data models for modkeeper.

An :class:`UpgradePlan` is the output of one planning run: a frozen
:class:`UpgradeCandidate` per Forge module, plus the counts reports need.
Nothing in here is mutated after the planner builds it, so a plan can be
rendered, serialised and compared freely.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from modkeeper.constants import UNVERSIONED
from modkeeper.models.conflict import Conflict
from modkeeper.models.module import Module
from modkeeper.utils.version_utils import get_update_type


@dataclass(frozen=True)
class UpgradeCandidate:
    """Per-module result of the safe upgrade search.

    Attributes:
        module: The declared module.
        current_version: Declared version, or ``"unversioned"``.
        max_safe_version: Highest version compatible with the manifest,
            equal to ``current_version`` when nothing better qualifies.
        available_versions: Every known version, newest first.
        is_upgradeable: Whether moving to ``max_safe_version`` is an upgrade.
        blocked_by: Modules rejecting the newest version. Only set when a
            newer version exists but cannot be used.
        conflicts: Details behind ``blocked_by``.
        error: Diagnostic text when the module could not be analysed.
    """

    module: Module
    current_version: str
    max_safe_version: str
    available_versions: Tuple[str, ...] = ()
    is_upgradeable: bool = False
    blocked_by: Optional[Tuple[str, ...]] = None
    conflicts: Tuple[Conflict, ...] = field(default_factory=tuple)
    error: Optional[str] = None

    @property
    def name(self) -> str:
        return self.module.name

    @property
    def is_unversioned(self) -> bool:
        return self.current_version == UNVERSIONED

    @property
    def is_blocked(self) -> bool:
        return not self.is_upgradeable and self.blocked_by is not None

    @property
    def latest_version(self) -> Optional[str]:
        return self.available_versions[0] if self.available_versions else None

    @property
    def update_type(self) -> str:
        if not self.is_upgradeable:
            return "same"
        return get_update_type(
            None if self.is_unversioned else self.current_version,
            self.max_safe_version,
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "module": self.module.name,
            "current_version": self.current_version,
            "max_safe_version": self.max_safe_version,
            "latest_version": self.latest_version,
            "available_versions": list(self.available_versions),
            "is_upgradeable": self.is_upgradeable,
            "update_type": self.update_type,
            "blocked_by": list(self.blocked_by) if self.blocked_by is not None else None,
            "conflicts": [conflict.to_json() for conflict in self.conflicts],
            "error": self.error,
        }


@dataclass(frozen=True)
class UpgradePlan:
    """Aggregate result of a planning run.

    Attributes:
        candidates: One entry per Forge module, in manifest order.
        total_modules: Number of Forge modules analysed.
        total_upgradeable: Candidates with a safe upgrade.
        total_git_modules: Number of git modules (never analysed).
        git_modules: The git modules themselves, for reporting.
        has_conflicts: True if any candidate carries conflict detail.
        cancelled: True if the run stopped before covering every module.
    """

    candidates: Tuple[UpgradeCandidate, ...] = ()
    total_modules: int = 0
    total_upgradeable: int = 0
    total_git_modules: int = 0
    git_modules: Tuple[Module, ...] = ()
    has_conflicts: bool = False
    cancelled: bool = False

    @property
    def upgradeable(self) -> Tuple[UpgradeCandidate, ...]:
        return tuple(c for c in self.candidates if c.is_upgradeable)

    @property
    def blocked(self) -> Tuple[UpgradeCandidate, ...]:
        return tuple(c for c in self.candidates if c.is_blocked)

    @property
    def up_to_date(self) -> Tuple[UpgradeCandidate, ...]:
        return tuple(
            c for c in self.candidates if not c.is_upgradeable and c.blocked_by is None
        )

    def get_candidate(self, name: str) -> Optional[UpgradeCandidate]:
        """Look a candidate up by any spelling of its module name."""
        key = Module(name).key
        for candidate in self.candidates:
            if candidate.module.key == key:
                return candidate
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_modules": self.total_modules,
            "total_upgradeable": self.total_upgradeable,
            "total_git_modules": self.total_git_modules,
            "has_conflicts": self.has_conflicts,
            "cancelled": self.cancelled,
            "candidates": [candidate.to_json() for candidate in self.candidates],
            "git_modules": [module.to_json() for module in self.git_modules],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
