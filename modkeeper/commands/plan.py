"""Plan command implementation for modkeeper.

Reads a ``Puppetfile``, fetches release metadata from the Puppet Forge and
reports, for every Forge module, the highest version that every other
declared module still accepts.

The command wires together the I/O edges and the planning engine:

1. **PuppetfileParser** — reads the manifest into :class:`Module` records
2. **ForgeDataStore** — fetches each module's releases once per run
3. **UpgradePlanner** — picks the max safe version of every module
4. **ConflictAnalyzer** — optionally reports circular dependencies and
   requirements the manifest already violates

Typical usage::

    # Rich table of every module
    $ modkeeper plan Puppetfile

    # Markdown summary, e.g. for a merge request description
    $ modkeeper plan --format summary > plan.md

    # Machine-readable output
    $ modkeeper plan --format json | jq '.candidates[] | select(.is_upgradeable)'
"""

from __future__ import annotations

import sys
import json
import click
import asyncio
from pathlib import Path
from dataclasses import dataclass
from rich.markup import escape
from typing import Any, Dict, List, Optional

from modkeeper.models import Module, UpgradeCandidate, UpgradePlan
from modkeeper.config import ModKeeperConfig
from modkeeper.exceptions import ModKeeperError
from modkeeper.context import pass_context, ModKeeperContext
from modkeeper.core import (
    AnalysisReport,
    ConflictAnalyzer,
    ForgeDataStore,
    PuppetfileParser,
    UpgradePlanner,
    generate_summary,
)
from modkeeper.utils import (
    HTTPClient,
    get_logger,
    get_raw_console,
    print_plain,
    print_success,
    print_error,
    print_warning,
    print_table,
    colorize_update_type,
)

logger = get_logger("commands.plan")


@dataclass
class PlanRun:
    """Everything one planning run produced, for the commands to render."""

    modules: List[Module]
    plan: UpgradePlan
    report: Optional[AnalysisReport] = None


@click.command()
@click.argument(
    "file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default="Puppetfile",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "summary", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.option(
    "--exclude-prereleases",
    is_flag=True,
    help="Never propose alpha/beta/rc/pre/dev/snapshot versions.",
)
@click.option(
    "--show-cycles/--no-show-cycles",
    default=None,
    help="Report circular dependencies and existing violations.",
)
@pass_context
def plan(
    ctx: ModKeeperContext,
    file: Path,
    format: str,
    exclude_prereleases: bool,
    show_cycles: Optional[bool],
) -> None:
    """Plan safe upgrades for the modules in a Puppetfile.

    For every Forge module the newest release that all other declared
    modules accept is reported as its max safe version. Modules whose
    newest release is rejected are listed as blocked, together with the
    requirement that blocks them. Git modules are listed but never
    upgraded.

    Options left unset fall back to the configuration file.

    Args:
        ctx: Modkeeper context with configuration and verbosity settings.
        file: Path to the Puppetfile (default: ``Puppetfile``).
        format: Output format (``table``, ``summary`` or ``json``).
        exclude_prereleases: Skip pre-release versions.
        show_cycles: Run the conflict analysis pass.

    Exits:
        0 if every module is at its max safe version, 1 if upgrades are
        available or an error occurred.
    """
    config = ctx.config
    exclude_prereleases = exclude_prereleases or config.exclude_prereleases
    if show_cycles is None:
        show_cycles = config.detect_cycles

    try:
        has_upgrades = asyncio.run(
            _plan_async(
                ctx,
                file,
                format.lower(),
                exclude_prereleases=exclude_prereleases,
                show_cycles=show_cycles,
            )
        )
        sys.exit(1 if has_upgrades else 0)

    except ModKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in plan command")
        sys.exit(1)


# ---------------------------------------------------------------------------
# Shared orchestration
# ---------------------------------------------------------------------------


async def build_plan(
    file: Path,
    config: ModKeeperConfig,
    *,
    exclude_prereleases: bool = False,
    analyze: bool = False,
    report_parse_errors: bool = True,
) -> PlanRun:
    """Parse *file*, fetch its modules' releases and plan upgrades.

    Shared by ``plan`` and ``update`` so both see the same plan for the
    same manifest.

    Args:
        file: Puppetfile path.
        config: Loaded configuration (Forge URL).
        exclude_prereleases: Skip pre-release versions.
        analyze: Also run :class:`ConflictAnalyzer` over the manifest.
        report_parse_errors: Print a warning per unparsable declaration.

    Raises:
        ModKeeperError: The manifest cannot be read.
    """
    logger.info("Planning upgrades for %s...", file)

    # ── Step 1: Parse the manifest ────────────────────────────────────
    result = PuppetfileParser().parse_file(file)
    if report_parse_errors:
        for message in result.error_messages:
            print_warning(message)

    modules = result.modules
    forge_names = [m.name for m in modules if m.is_forge]
    logger.info(
        "Found %d module(s), %d from the Forge",
        len(modules),
        len(forge_names),
    )

    # ── Step 2: Fetch releases (one request per module) ───────────────
    async with HTTPClient() as http:
        store = ForgeDataStore(http, base_url=config.forge_url)
        await store.prefetch_modules(forge_names, include_dependencies=analyze)

    # ── Step 3: Plan from the warmed cache ────────────────────────────
    planner = UpgradePlanner(store, exclude_prereleases=exclude_prereleases)
    upgrade_plan = planner.create_plan(modules)

    report = ConflictAnalyzer(store).analyze(modules) if analyze else None
    return PlanRun(modules=modules, plan=upgrade_plan, report=report)


async def _plan_async(
    ctx: ModKeeperContext,
    file: Path,
    format: str,
    *,
    exclude_prereleases: bool,
    show_cycles: bool,
) -> bool:
    """Async implementation of the plan command.

    Returns:
        ``True`` if any module can be upgraded.
    """
    human = format != "json"

    run = await build_plan(
        file,
        ctx.config,
        exclude_prereleases=exclude_prereleases,
        analyze=show_cycles,
        report_parse_errors=human,
    )
    upgrade_plan = run.plan

    if format == "json":
        _display_json(run)
        return upgrade_plan.total_upgradeable > 0

    if not upgrade_plan.candidates and not upgrade_plan.git_modules:
        print_warning("No modules found in Puppetfile")
        return False

    if format == "summary":
        print_plain(generate_summary(upgrade_plan))
    else:
        _display_table(upgrade_plan)

    if run.report is not None:
        _display_report(run.report)

    if upgrade_plan.cancelled:
        print_warning("Planning was cancelled; results are partial")

    if upgrade_plan.total_upgradeable:
        print_warning(f"\n{upgrade_plan.total_upgradeable} module(s) can be upgraded")
    else:
        print_success("\nAll modules are at their max safe version")

    return upgrade_plan.total_upgradeable > 0


# ---------------------------------------------------------------------------
# Display renderers
# ---------------------------------------------------------------------------


def _display_table(upgrade_plan: UpgradePlan) -> None:
    """Render the plan as a Rich table, git modules last.

    Example::

        ┏━━━━━━━━━━━━┳━━━━━━━━━━━━━━━━━━━━┳━━━━━━━━━┳━━━━━━━━━━┳━━━━━━━━┓
        ┃ Status     ┃ Module             ┃ Current ┃ Safe     ┃ Latest ┃
        ┡━━━━━━━━━━━━╇━━━━━━━━━━━━━━━━━━━━╇━━━━━━━━━╇━━━━━━━━━━╇━━━━━━━━┩
        │ ⬆ UPGRADE  │ puppetlabs/stdlib  │ 8.0.0   │ 9.0.0    │ 9.1.0  │
        │ ⚠ BLOCKED  │ puppetlabs/concat  │ 7.0.0   │ 7.0.0    │ 8.0.0  │
        └────────────┴────────────────────┴─────────┴──────────┴────────┘
    """
    data = [_create_table_row(candidate) for candidate in upgrade_plan.candidates]
    data.extend(_create_git_row(module) for module in upgrade_plan.git_modules)

    column_styles: Dict[str, Dict[str, Any]] = {
        "Status": {"justify": "center", "no_wrap": True, "width": 11},
        "Module": {"style": "bold cyan", "no_wrap": True},
        "Current": {"justify": "center", "style": "dim"},
        "Max Safe": {"justify": "center", "style": "bold green"},
        "Latest": {"justify": "center"},
        "Update Type": {"justify": "center"},
        "Blocked By": {"justify": "left", "no_wrap": False},
    }

    print_table(
        data,
        title="Upgrade Plan",
        column_styles=column_styles,
        show_row_lines=True,
    )


def _create_table_row(candidate: UpgradeCandidate) -> Dict[str, str]:
    if candidate.error:
        status = "[red]✗ ERROR[/red]"
    elif candidate.is_upgradeable:
        status = "[yellow]⬆ UPGRADE[/yellow]"
    elif candidate.is_blocked:
        status = "[blocked]⚠ BLOCKED[/blocked]"
    else:
        status = "[green]✓ OK[/green]"

    blocked_by = "[dim]-[/dim]"
    if candidate.conflicts:
        blocked_by = "\n".join(escape(c.to_display_string()) for c in candidate.conflicts)

    return {
        "Status": status,
        "Module": candidate.name,
        "Current": candidate.current_version,
        "Max Safe": candidate.max_safe_version,
        "Latest": candidate.latest_version or "[dim]-[/dim]",
        "Update Type": colorize_update_type(candidate.update_type)
        if candidate.is_upgradeable
        else "[dim]-[/dim]",
        "Blocked By": blocked_by,
    }


def _create_git_row(module: Module) -> Dict[str, str]:
    return {
        "Status": "[git]⎇ GIT[/git]",
        "Module": module.name,
        "Current": module.git_reference or "[dim]-[/dim]",
        "Max Safe": "[dim]manual[/dim]",
        "Latest": "[dim]-[/dim]",
        "Update Type": "[dim]-[/dim]",
        "Blocked By": "[dim]-[/dim]",
    }


def _display_report(report: AnalysisReport) -> None:
    """Print circular chains and requirements the manifest already breaks."""
    console = get_raw_console()

    for cycle in report.cycles:
        print_warning(f"Circular dependency: {' → '.join(cycle)}")

    for key, conflicts in report.violations.items():
        console.print(
            f"[warning]Current version of {escape(report.graph.display_name(key))} "
            "violates:[/warning]"
        )
        for conflict in conflicts:
            console.print(f"       [red]⚠[/red] {escape(conflict.to_display_string())}")


def _display_json(run: PlanRun) -> None:
    """Print the plan (and analysis, when run) as one JSON document."""
    data = run.plan.to_dict()
    if run.report is not None:
        data["cycles"] = run.report.cycles
        data["violations"] = {
            run.report.graph.display_name(key): [c.to_json() for c in conflicts]
            for key, conflicts in run.report.violations.items()
        }
    print(json.dumps(data, indent=2))
