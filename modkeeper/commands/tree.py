"""Tree command implementation for modkeeper.

Shows the transitive dependency tree of a ``Puppetfile``: every declared
module, the modules its release depends on, their dependencies in turn,
down to a fixed depth. Requirements gathered along the way are merged per
module, and modules no published version can satisfy are flagged.

Typical usage::

    # Indented tree
    $ modkeeper tree Puppetfile

    # Every module once, direct and transitive
    $ modkeeper tree --format list

    # Machine-readable output
    $ modkeeper tree --format json | jq '.conflicts'
"""

from __future__ import annotations

import sys
import json
import click
import asyncio
from pathlib import Path

from modkeeper.constants import MAX_TREE_DEPTH
from modkeeper.exceptions import ModKeeperError
from modkeeper.context import pass_context, ModKeeperContext
from modkeeper.core import (
    DependencyTree,
    DependencyTreeBuilder,
    ForgeDataStore,
    PuppetfileParser,
    generate_list_text,
    generate_tree_text,
)
from modkeeper.utils import (
    HTTPClient,
    get_logger,
    print_error,
    print_plain,
    print_success,
    print_warning,
)

logger = get_logger("commands.tree")


@click.command()
@click.argument(
    "file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default="Puppetfile",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["tree", "list", "json"], case_sensitive=False),
    default="tree",
    help="Output format.",
)
@click.option(
    "--max-depth",
    type=click.IntRange(min=1),
    default=MAX_TREE_DEPTH,
    show_default=True,
    help="Deepest dependency level to expand.",
)
@pass_context
def tree(
    ctx: ModKeeperContext,
    file: Path,
    format: str,
    max_depth: int,
) -> None:
    """Show the transitive dependency tree of a Puppetfile.

    Declared Forge modules are expanded through the dependencies of their
    pinned release; undeclared modules through the newest release that
    satisfies the requirement placed on them. Git modules are shown
    without children.

    Args:
        ctx: Modkeeper context with configuration and verbosity settings.
        file: Path to the Puppetfile (default: ``Puppetfile``).
        format: Output format (``tree``, ``list`` or ``json``).
        max_depth: Deepest level expanded.

    Exits:
        0 if no conflict was found, 1 if the tree has conflicts, cycles or
        constraint violations, or an error occurred.
    """
    try:
        has_conflicts = asyncio.run(_tree_async(ctx, file, format.lower(), max_depth))
        sys.exit(1 if has_conflicts else 0)

    except ModKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in tree command")
        sys.exit(1)


async def _tree_async(
    ctx: ModKeeperContext,
    file: Path,
    format: str,
    max_depth: int,
) -> bool:
    """Async implementation of the tree command.

    Returns:
        ``True`` if the tree has any conflict.
    """
    human = format != "json"

    result = PuppetfileParser().parse_file(file)
    if human:
        for message in result.error_messages:
            print_warning(message)

    modules = result.modules
    if not modules:
        if human:
            print_warning("No modules found in Puppetfile")
        else:
            print(json.dumps(DependencyTree().to_dict(), indent=2))
        return False

    # Nodes at max_depth are leaves, so their releases are never read
    forge_names = [m.name for m in modules if m.is_forge]
    async with HTTPClient() as http:
        store = ForgeDataStore(http, base_url=ctx.config.forge_url)
        await store.prefetch_modules(
            forge_names,
            include_dependencies=max_depth > 1,
            max_depth=max_depth - 1,
        )

    dependency_tree = DependencyTreeBuilder(store, max_depth=max_depth).build(modules)

    if format == "json":
        print(json.dumps(dependency_tree.to_dict(), indent=2))
        return dependency_tree.has_conflicts

    if format == "list":
        print_plain(generate_list_text(dependency_tree.roots))
    else:
        print_plain(generate_tree_text(dependency_tree.roots))

    _display_issues(dependency_tree)
    return dependency_tree.has_conflicts


def _display_issues(dependency_tree: DependencyTree) -> None:
    for cycle in dependency_tree.cycles:
        print_warning(f"Circular dependency: {' → '.join(cycle)}")

    lines = dependency_tree.find_conflicts()
    if lines:
        print_warning(f"{len(dependency_tree.conflicts)} dependency conflict(s) found:")
        print_plain("\n".join(lines))

    if not dependency_tree.has_conflicts:
        print_success("No dependency conflicts found")
