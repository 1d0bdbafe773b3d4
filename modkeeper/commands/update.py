"""Update command implementation for modkeeper.

Rewrites a ``Puppetfile`` so every upgradeable Forge module is pinned to
its max safe version. The plan is the same one ``modkeeper plan`` shows;
only the version strings change, everything else in the file (comments,
spacing, quoting, line endings) is left as it was.

Typical usage::

    # Pin every module to its max safe version
    $ modkeeper update Puppetfile

    # Preview changes without applying
    $ modkeeper update --dry-run

    # Only touch specific modules
    $ modkeeper update -m puppetlabs/stdlib -m puppetlabs/concat

    # Keep a backup and skip confirmation
    $ modkeeper update --backup -y
"""

from __future__ import annotations

import re
import sys
import asyncio
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import click

from modkeeper.models import UpgradeCandidate, UpgradePlan
from modkeeper.exceptions import ModKeeperError
from modkeeper.context import pass_context, ModKeeperContext
from modkeeper.commands.plan import build_plan
from modkeeper.utils import (
    confirm,
    get_logger,
    normalize_name,
    print_success,
    print_error,
    print_warning,
    print_table,
    colorize_update_type,
    safe_read_file,
    safe_write_file,
)

logger = get_logger("commands.update")

_MOD_LINE = re.compile(r"^\s*mod(?=[\s('\"])")


@click.command()
@click.argument(
    "file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default="Puppetfile",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Preview changes without applying them.",
)
@click.option(
    "--yes",
    "-y",
    is_flag=True,
    help="Skip confirmation prompt.",
)
@click.option(
    "--backup",
    is_flag=True,
    help="Create backup file before updating.",
)
@click.option(
    "--module",
    "-m",
    "modules",
    multiple=True,
    help="Update only specific modules (can be repeated).",
)
@click.option(
    "--exclude-prereleases",
    is_flag=True,
    help="Never pin alpha/beta/rc/pre/dev/snapshot versions.",
)
@pass_context
def update(
    ctx: ModKeeperContext,
    file: Path,
    dry_run: bool,
    yes: bool,
    backup: bool,
    modules: Tuple[str, ...],
    exclude_prereleases: bool,
) -> None:
    """Pin Puppetfile modules to their max safe versions.

    Unversioned modules gain an explicit version; versioned ones have
    their version replaced. Blocked and git modules are never touched.

    Args:
        ctx: Modkeeper context with configuration and verbosity settings.
        file: Path to the Puppetfile (default: ``Puppetfile``).
        dry_run: Preview changes without modifying the file.
        yes: Skip confirmation prompt before applying updates.
        backup: Create a timestamped backup before modifying the file.
        modules: Only update these modules (empty = update all).
        exclude_prereleases: Skip pre-release versions.

    Exits:
        0 if updates were applied or none were needed, 1 if an error
        occurred.
    """
    try:
        asyncio.run(
            _update_async(
                ctx,
                file,
                dry_run,
                yes,
                backup,
                list(modules),
                exclude_prereleases=exclude_prereleases
                or ctx.config.exclude_prereleases,
            )
        )
        sys.exit(0)

    except ModKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in update command")
        sys.exit(1)


# ---------------------------------------------------------------------------
# Async orchestration
# ---------------------------------------------------------------------------


async def _update_async(
    ctx: ModKeeperContext,
    file: Path,
    dry_run: bool,
    skip_confirm: bool,
    backup: bool,
    module_filter: List[str],
    *,
    exclude_prereleases: bool,
) -> None:
    """Async implementation of the update command.

    Raises:
        ModKeeperError: The Puppetfile cannot be read or written.
    """
    run = await build_plan(file, ctx.config, exclude_prereleases=exclude_prereleases)
    upgrade_plan = run.plan

    if not upgrade_plan.candidates:
        print_warning("No Forge modules found in Puppetfile")
        return

    if module_filter:
        wanted = {normalize_name(name) for name in module_filter}
        known = {c.module.key for c in upgrade_plan.candidates}
        missing = [name for name in module_filter if normalize_name(name) not in known]
        if missing:
            print_warning(f"No matching modules found: {', '.join(missing)}")
        if not wanted & known:
            return
    else:
        wanted = None

    content = safe_read_file(file)
    new_content, applied = apply_upgrades_to_content(content, upgrade_plan, wanted)

    if not applied:
        print_success("All modules are at their max safe version!")
        return

    _display_update_plan(applied, dry_run)

    if dry_run:
        print_warning("\nDry run mode - no changes applied")
        return

    if not skip_confirm:
        plural = "module" if len(applied) == 1 else "modules"
        if not confirm(f"\nUpdate {len(applied)} {plural}?", default=True):
            logger.info("Update cancelled by user")
            return

    backup_path = safe_write_file(file, new_content, create_backup=backup)
    if backup_path is not None:
        logger.info("Created backup: %s", backup_path)

    print_success(f"\n✓ Successfully updated {len(applied)} module(s)")
    for candidate in applied:
        logger.debug(
            "  %s: %s → %s",
            candidate.name,
            candidate.current_version,
            candidate.max_safe_version,
        )


# ---------------------------------------------------------------------------
# Puppetfile rewriting
# ---------------------------------------------------------------------------


def apply_upgrades_to_content(
    content: str,
    upgrade_plan: UpgradePlan,
    modules: Optional[Iterable[str]] = None,
) -> Tuple[str, List[UpgradeCandidate]]:
    """Pin upgradeable modules in Puppetfile *content* to their safe versions.

    Lines are edited bottom-up so earlier line numbers stay valid, and
    each line keeps its own line ending.

    Args:
        content: Puppetfile text the plan was made from.
        upgrade_plan: Plan whose upgradeable candidates are applied.
        modules: Canonical module keys to restrict the update to.

    Returns:
        The new content and the candidates that were actually applied,
        in manifest order.
    """
    wanted = set(modules) if modules is not None else None
    lines = content.splitlines(keepends=True)
    applied: List[UpgradeCandidate] = []

    targets = [
        c
        for c in upgrade_plan.upgradeable
        if c.module.line is not None and (wanted is None or c.module.key in wanted)
    ]

    for candidate in sorted(targets, key=lambda c: c.module.line or 0, reverse=True):
        if candidate.is_unversioned:
            changed = _pin_unversioned(lines, candidate)
        else:
            changed = _replace_version(lines, candidate)

        if changed:
            applied.append(candidate)
        else:
            logger.warning(
                "Could not locate the declaration of %s on line %s; left unchanged",
                candidate.name,
                candidate.module.line,
            )

    applied.reverse()
    return "".join(lines), applied


def _split_ending(line: str) -> Tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body):]


def _replace_version(lines: List[str], candidate: UpgradeCandidate) -> bool:
    """Swap the quoted current version for the new one.

    The version may sit on a continuation line, so the search runs from the
    declaration's first line until the next ``mod``.
    """
    start = (candidate.module.line or 0) - 1
    pattern = re.compile(
        r"""(?P<q>['"])""" + re.escape(candidate.current_version) + r"""(?P=q)"""
    )

    for index in range(start, len(lines)):
        if index > start and _MOD_LINE.match(lines[index]):
            break

        body, ending = _split_ending(lines[index])
        text = body if index > start else _after_name(body, candidate)
        if text is None:
            return False

        match = pattern.search(text)
        if match:
            offset = len(body) - len(text)
            quote = match.group("q")
            replacement = f"{quote}{candidate.max_safe_version}{quote}"
            lines[index] = (
                body[: offset + match.start()]
                + replacement
                + body[offset + match.end():]
                + ending
            )
            return True

    return False


def _pin_unversioned(lines: List[str], candidate: UpgradeCandidate) -> bool:
    """Add a version to ``mod 'name'`` or replace its ``:latest`` symbol."""
    index = (candidate.module.line or 0) - 1
    if not 0 <= index < len(lines):
        return False

    body, ending = _split_ending(lines[index])
    head = _declaration_head(body, candidate)
    if head is None:
        return False

    quote = head.group("q")
    version = f"{quote}{candidate.max_safe_version}{quote}"
    rest = body[head.end():]

    latest = re.match(r"\s*,\s*(:latest)\b", rest)
    if latest:
        rest = rest[: latest.start(1)] + version + rest[latest.end(1):]
    elif re.match(r"""\s*,\s*['"]""", rest):
        # Unusable version string (a URL, say); leave it for a human
        return False
    else:
        rest = f", {version}{rest}"

    lines[index] = body[: head.end()] + rest + ending
    return True


def _declaration_head(body: str, candidate: UpgradeCandidate) -> Optional["re.Match[str]"]:
    return re.match(
        r"""^\s*mod\s*\(?\s*(?P<q>['"])""" + re.escape(candidate.name) + r"""(?P=q)""",
        body,
    )


def _after_name(body: str, candidate: UpgradeCandidate) -> Optional[str]:
    head = _declaration_head(body, candidate)
    return body[head.end():] if head else None


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def _display_update_plan(applied: List[UpgradeCandidate], dry_run: bool) -> None:
    """Display planned updates as a Rich-formatted table."""
    title = "Update Plan (Dry Run)" if dry_run else "Update Plan"

    data: List[Dict[str, str]] = []
    for candidate in applied:
        data.append(
            {
                "Module": candidate.name,
                "Current": "not specified"
                if candidate.is_unversioned
                else candidate.current_version,
                "New Version": f"[bold green]{candidate.max_safe_version}[/bold green]",
                "Change": colorize_update_type(candidate.update_type),
                "Latest": candidate.latest_version or "-",
            }
        )

    column_styles = {
        "Module": {"style": "bold cyan", "no_wrap": True},
        "Current": {"justify": "center", "style": "dim"},
        "New Version": {"justify": "center"},
        "Change": {"justify": "center"},
        "Latest": {"justify": "center"},
    }

    print_table(data, title=title, column_styles=column_styles)
