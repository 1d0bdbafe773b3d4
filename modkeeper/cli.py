"""
Command-line interface for modkeeper.

This module provides the main CLI entry point and handles global options,
configuration loading, and command registration.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from modkeeper.config import load_config
from modkeeper.__version__ import __version__
from modkeeper.context import ModKeeperContext
from modkeeper.exceptions import ConfigError, ModKeeperError
from modkeeper.utils.logger import get_logger, setup_logging
from modkeeper.utils.console import print_error, print_warning, reconfigure_console

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar="MODKEEPER_CONFIG",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="MODKEEPER_COLOR",
)
@click.version_option(
    version=__version__,
    prog_name="modkeeper",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """modkeeper — safe upgrade planning for Puppetfile modules.

    \b
    Available commands:
      modkeeper plan               Show the max safe version of every module
      modkeeper tree               Show the transitive dependency tree
      modkeeper update             Pin modules to their max safe versions

    \b
    Examples:
      modkeeper plan
      modkeeper plan --format summary
      modkeeper tree --format list
      modkeeper update --dry-run
      modkeeper -v plan

    Use ``modkeeper COMMAND --help`` for command-specific options.
    """
    _configure_logging(verbose)

    try:
        loaded_config = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    modkeeper_ctx = ModKeeperContext()
    modkeeper_ctx.config_path = config or loaded_config.source_path
    modkeeper_ctx.color = color
    modkeeper_ctx.verbose = verbose
    modkeeper_ctx.config = loaded_config
    ctx.obj = modkeeper_ctx

    # Respect NO_COLOR for downstream libraries
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()

    logger.debug("modkeeper v%s", __version__)
    logger.debug("Config path: %s", modkeeper_ctx.config_path)
    if loaded_config.source_path:
        logger.debug("Loaded configuration: %s", loaded_config.to_log_dict())
    logger.debug("Verbosity: %s | Color: %s", verbose, color)


def _configure_logging(verbose: int) -> None:
    """Configure logging level based on verbosity flags."""
    if verbose <= 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    setup_logging(level=level)
    logger.debug("Logging initialized at %s level", logging.getLevelName(level))


# Register CLI subcommands
try:
    from modkeeper.commands.plan import plan
    from modkeeper.commands.tree import tree
    from modkeeper.commands.update import update

    cli.add_command(plan)
    cli.add_command(tree)
    cli.add_command(update)

except ImportError as exc:
    sys.stderr.write(f"FATAL: Failed to import CLI commands: {exc}\n")
    sys.exit(1)


def main() -> int:
    """Main entry point for the modkeeper CLI.

    Returns:
        Exit code:
            0   Success
            1   Unhandled or application error
            2   Usage error (Click)
            130 Interrupted by user (Ctrl+C)
    """
    try:
        cli(standalone_mode=False)
        return 0

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except ModKeeperError as exc:
        print_error(str(exc))
        logger.debug(
            "ModKeeperError details: %s",
            exc.details or "<none>",
            exc_info=True,
        )
        return 1

    except KeyboardInterrupt:
        print_warning("\nOperation cancelled by user")
        return 130

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1


if __name__ == "__main__":
    sys.exit(main())
