"""Compatibility checking of a candidate version against a manifest.

The check answers one question: if module *T* moved to version *V*, would
any other declared module object? Only inbound constraints are examined.
For every other Forge module pinned to a version the provider knows, the
metadata of *that exact release* is searched for a dependency on *T*; a
requirement that *V* fails becomes a :class:`~modkeeper.models.conflict.Conflict`.

Modules whose current release says nothing about *T* impose no constraint.
Unpinned modules and git modules impose none either, since there is no
single release whose metadata could be consulted.
"""

from __future__ import annotations

from typing import List, Sequence

from modkeeper.core.registry import ReleaseProvider, find_release
from modkeeper.models.conflict import CompatibilityResult, Conflict
from modkeeper.models.module import Module
from modkeeper.models.requirement import satisfies
from modkeeper.utils.logger import get_logger

logger = get_logger("compatibility")

__all__ = ["CompatibilityChecker", "check_compatibility"]


class CompatibilityChecker:
    """Checks candidate versions against the inbound requirements of a manifest.

    Args:
        provider: Source of release metadata.
    """

    def __init__(self, provider: ReleaseProvider) -> None:
        self.provider = provider

    def check_compatibility(
        self,
        target: Module,
        candidate_version: str,
        all_modules: Sequence[Module],
    ) -> CompatibilityResult:
        """Check whether *target* can move to *candidate_version*.

        Args:
            target: Module being upgraded.
            candidate_version: Version under consideration.
            all_modules: Every module declared in the manifest, including
                *target* itself (skipped by canonical key).

        Returns:
            Result listing every declared module whose current release
            rejects *candidate_version*.
        """
        target_key = target.key
        conflicts: List[Conflict] = []

        for other in all_modules:
            if other.key == target_key or not other.is_forge or not other.version:
                continue

            release = find_release(self.provider, other.name, other.version)
            if release is None:
                continue

            requirement = release.requirement_for(target_key)
            if requirement is None:
                continue

            if not satisfies(candidate_version, requirement):
                logger.debug(
                    "%s %s rejected by %s %s (%s)",
                    target.name,
                    candidate_version,
                    other.name,
                    other.version,
                    requirement,
                )
                conflicts.append(
                    Conflict(
                        module_name=other.name,
                        current_version=other.version,
                        requirement=requirement,
                    )
                )

        return CompatibilityResult(
            version=candidate_version,
            is_compatible=not conflicts,
            conflicts=tuple(conflicts),
        )


def check_compatibility(
    module: Module,
    candidate_version: str,
    all_modules: Sequence[Module],
    provider: ReleaseProvider,
) -> CompatibilityResult:
    """Functional shortcut for :meth:`CompatibilityChecker.check_compatibility`."""
    return CompatibilityChecker(provider).check_compatibility(
        module, candidate_version, all_modules
    )
