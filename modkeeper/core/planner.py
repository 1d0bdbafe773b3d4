"""Upgrade planning for Puppetfile modules.

For each Forge module the planner walks the module's published versions
from newest to oldest and keeps the first one that every other declared
module accepts (see :mod:`modkeeper.core.compatibility`). That is the
module's *max safe version*.

The search is greedy and per-module: it never backtracks into the choices
made for other modules, and it checks candidates against the *current*
versions of everything else. With three or more mutually entangled
modules the plan can therefore be locally rather than globally optimal.

Errors are contained per module. Each module's releases are read once per
run into a :class:`~modkeeper.core.registry.ReleaseSnapshot`; a module whose
lookup or analysis fails is logged and reported as "not upgradeable, no
data", and the other modules see it as a module without release data.

Typical usage::

    async with HTTPClient() as http:
        store = ForgeDataStore(http)
        await store.prefetch_modules(m.name for m in modules)

    plan = UpgradePlanner(store).create_plan(modules)
    print(generate_summary(plan))
"""

from __future__ import annotations

import threading
from typing import Callable, List, Optional, Sequence

from modkeeper.constants import UNVERSIONED
from modkeeper.core.compatibility import CompatibilityChecker
from modkeeper.core.registry import ReleaseProvider, ReleaseSnapshot
from modkeeper.models.module import Module
from modkeeper.models.plan import UpgradeCandidate, UpgradePlan
from modkeeper.utils.logger import get_logger
from modkeeper.utils.version_utils import (
    format_version_transition,
    is_safe_version,
    is_version_newer,
    sort_versions_descending,
)

logger = get_logger("planner")

__all__ = ["UpgradePlanner", "create_upgrade_plan", "generate_summary"]

#: ``progress_callback(done, total, module_name)``
ProgressCallback = Callable[[int, int, str], None]


class UpgradePlanner:
    """Builds :class:`~modkeeper.models.plan.UpgradePlan` objects.

    The planner holds no per-run state, so one instance may plan any
    number of manifests, including concurrently from different threads.

    Args:
        provider: Source of release metadata. Must already hold everything
            the run needs; the planner never triggers fetches.
        exclude_prereleases: Skip alpha/beta/rc/pre/dev/snapshot versions
            when searching for upgrades.
    """

    def __init__(
        self,
        provider: ReleaseProvider,
        *,
        exclude_prereleases: bool = False,
    ) -> None:
        self.provider = provider
        self.exclude_prereleases = exclude_prereleases

    def create_plan(
        self,
        modules: Sequence[Module],
        *,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> UpgradePlan:
        """Plan upgrades for every Forge module in *modules*.

        Args:
            modules: Full manifest snapshot, git modules included.
            cancel_event: When set, planning stops before the next module
                and a partial plan is returned with ``cancelled=True``.
            progress_callback: Called after each module is analysed.

        Returns:
            The upgrade plan.
        """
        snapshot = tuple(modules)
        forge_modules = [m for m in snapshot if m.is_forge]
        git_modules = tuple(m for m in snapshot if m.is_git)

        logger.info(
            "Planning upgrades for %d Forge module(s) (%d git module(s) skipped)",
            len(forge_modules),
            len(git_modules),
        )

        releases = ReleaseSnapshot.capture(self.provider, (m.name for m in forge_modules))

        candidates: List[UpgradeCandidate] = []
        cancelled = False

        for index, module in enumerate(forge_modules):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(
                    "Planning cancelled after %d of %d module(s)",
                    index,
                    len(forge_modules),
                )
                cancelled = True
                break

            candidates.append(self._analyze_module_safely(module, snapshot, releases))

            if progress_callback is not None:
                progress_callback(index + 1, len(forge_modules), module.name)

        return UpgradePlan(
            candidates=tuple(candidates),
            total_modules=len(forge_modules),
            total_upgradeable=sum(1 for c in candidates if c.is_upgradeable),
            total_git_modules=len(git_modules),
            git_modules=git_modules,
            has_conflicts=any(c.conflicts for c in candidates),
            cancelled=cancelled,
        )

    # ------------------------------------------------------------------
    # Per-module analysis
    # ------------------------------------------------------------------

    def _analyze_module_safely(
        self,
        module: Module,
        all_modules: Sequence[Module],
        releases: ReleaseSnapshot,
    ) -> UpgradeCandidate:
        current = module.version or UNVERSIONED

        failure = releases.failure_for(module.name)
        if failure is not None:
            return UpgradeCandidate(
                module=module,
                current_version=current,
                max_safe_version=current,
                error=failure,
            )

        try:
            return self.analyze_module(module, all_modules, releases)
        except Exception as exc:
            logger.warning("Failed to analyze upgrade for %s: %s", module.name, exc)
            logger.debug("Analysis failure details", exc_info=True)
            return UpgradeCandidate(
                module=module,
                current_version=current,
                max_safe_version=current,
                error=str(exc) or exc.__class__.__name__,
            )

    def analyze_module(
        self,
        module: Module,
        all_modules: Sequence[Module],
        releases: Optional[ReleaseProvider] = None,
    ) -> UpgradeCandidate:
        """Find the max safe version of a single module.

        Args:
            module: Module to plan.
            all_modules: Full manifest snapshot.
            releases: Release data to plan from; defaults to the planner's
                provider. :meth:`create_plan` passes its per-run snapshot.

        Exceptions propagate; :meth:`create_plan` is the boundary that
        contains them.
        """
        if releases is None:
            releases = self.provider
        checker = CompatibilityChecker(releases)

        current = module.version or UNVERSIONED
        available = tuple(
            sort_versions_descending(r.version for r in releases.get_releases(module.name))
        )

        if not available:
            logger.debug("No releases known for %s", module.name)
            return UpgradeCandidate(
                module=module,
                current_version=current,
                max_safe_version=current,
            )

        candidates = [v for v in available if self._is_candidate(v, module.version)]

        max_safe_version = current
        found = False
        for version in candidates:
            if checker.check_compatibility(module, version, all_modules).is_compatible:
                max_safe_version = version
                found = True
                break

        if module.version:
            is_upgradeable = found and is_version_newer(max_safe_version, module.version)
        else:
            is_upgradeable = found

        blocked_by = None
        conflicts = ()
        if not is_upgradeable and candidates:
            newest = candidates[0]
            result = checker.check_compatibility(module, newest, all_modules)
            if not result.is_compatible:
                blocked_by = result.blocking_modules
                conflicts = result.conflicts

        if is_upgradeable:
            logger.debug(
                "%s: %s",
                module.name,
                format_version_transition(module.version, max_safe_version),
            )
        elif blocked_by:
            logger.debug("%s blocked by %s", module.name, ", ".join(blocked_by))

        return UpgradeCandidate(
            module=module,
            current_version=current,
            max_safe_version=max_safe_version,
            available_versions=available,
            is_upgradeable=is_upgradeable,
            blocked_by=blocked_by,
            conflicts=conflicts,
        )

    def _is_candidate(self, version: str, current: Optional[str]) -> bool:
        if self.exclude_prereleases and not is_safe_version(version):
            return False
        if current:
            return is_version_newer(version, current)
        return True


def create_upgrade_plan(
    modules: Sequence[Module],
    provider: ReleaseProvider,
    *,
    exclude_prereleases: bool = False,
    cancel_event: Optional[threading.Event] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> UpgradePlan:
    """Plan upgrades for *modules* using release data from *provider*."""
    planner = UpgradePlanner(provider, exclude_prereleases=exclude_prereleases)
    return planner.create_plan(
        modules,
        cancel_event=cancel_event,
        progress_callback=progress_callback,
    )


# ---------------------------------------------------------------------------
# Text summary
# ---------------------------------------------------------------------------


def generate_summary(plan: UpgradePlan) -> str:
    """Render *plan* as a Markdown report.

    Sections, each present only when non-empty: Git modules (with a note
    that they need manual updates), upgradeable, blocked and up-to-date.
    """
    lines: List[str] = [
        "# Upgrade Plan Summary",
        "",
        f"**Total Forge Modules:** {plan.total_modules}",
        f"**Upgradeable:** {plan.total_upgradeable}",
        f"**Blocked:** {len(plan.blocked)}",
        f"**Git Modules:** {plan.total_git_modules}",
        f"**Has Conflicts:** {'Yes' if plan.has_conflicts else 'No'}",
        "",
    ]

    if plan.cancelled:
        lines.extend(["**Note:** Planning was cancelled; this plan is partial.", ""])

    if plan.git_modules:
        lines.extend([f"## Git Modules ({plan.total_git_modules})", ""])
        lines.extend(
            [
                "The following modules are sourced from Git repositories "
                "and cannot be automatically upgraded:",
                "",
            ]
        )
        for module in plan.git_modules:
            reference = f" @ {module.git_reference}" if module.git_reference else ""
            lines.append(f"- **{module.name}**{reference} ({module.git_url or 'git'})")
        lines.extend(
            [
                "",
                "**Note:** Git modules must be manually updated by modifying "
                "their ref/tag/branch in the Puppetfile.",
                "",
            ]
        )

    upgradeable = plan.upgradeable
    if upgradeable:
        lines.extend([f"## Upgradeable Modules ({len(upgradeable)})", ""])
        for candidate in upgradeable:
            lines.append(
                f"- **{candidate.name}**: "
                f"{candidate.current_version} → {candidate.max_safe_version}"
            )
        lines.append("")

    blocked = plan.blocked
    if blocked:
        lines.extend([f"## Blocked Modules ({len(blocked)})", ""])
        for candidate in blocked:
            lines.append(
                f"- **{candidate.name}**: {candidate.current_version} "
                f"(blocked by: {', '.join(candidate.blocked_by or ())})"
            )
            for conflict in candidate.conflicts:
                lines.append(
                    f"  - {conflict.module_name} {conflict.current_version} "
                    f"requires {conflict.requirement} "
                    f"(latest is {candidate.latest_version})"
                )
        lines.append("")

    up_to_date = plan.up_to_date
    if up_to_date:
        lines.extend([f"## Up-to-Date Modules ({len(up_to_date)})", ""])
        for candidate in up_to_date:
            suffix = f" (analysis failed: {candidate.error})" if candidate.error else ""
            lines.append(f"- **{candidate.name}**: {candidate.current_version}{suffix}")
        lines.append("")

    return "\n".join(lines)
