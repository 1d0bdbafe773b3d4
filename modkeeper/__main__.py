"""
Executable module for modkeeper.

Running:
    python -m modkeeper

is equivalent to:
    modkeeper

This module simply forwards execution to the CLI entrypoint defined in
`modkeeper.cli`.
"""

from __future__ import annotations

import sys


def main() -> int:
    """
    Main entrypoint when executing `python -m modkeeper`.

    Returns:
        Exit code returned by the CLI, or 1 if the CLI cannot be imported.
    """
    try:
        # Import lazily so dependencies are only loaded during CLI use
        from modkeeper.cli import main as cli_main
    except ImportError as exc:
        sys.stderr.write("modkeeper CLI could not be loaded.\n")
        sys.stderr.write(f"Python version : {sys.version}\n")
        try:
            from modkeeper.__version__ import __version__

            sys.stderr.write(f"modkeeper version: {__version__}\n")
        except ImportError:
            sys.stderr.write("modkeeper version: <unknown>\n")
        sys.stderr.write(f"ImportError: {exc}\n")
        return 1

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
