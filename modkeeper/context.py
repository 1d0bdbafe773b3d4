"""
Shared context object for modkeeper CLI commands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from modkeeper.config import ModKeeperConfig


class ModKeeperContext:
    """Per-invocation state shared by the CLI group and its commands.

    Attributes:
        config_path: Path to the configuration file in use, if any.
        verbose: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG).
        color: Whether colored terminal output is enabled.
        config: Loaded configuration (defaults when no file was found).
    """

    __slots__ = ("config_path", "verbose", "color", "config")

    def __init__(self) -> None:
        self.config_path: Optional[Path] = None
        self.verbose: int = 0
        self.color: bool = True
        self.config: ModKeeperConfig = ModKeeperConfig()


#: Click decorator for injecting :class:`ModKeeperContext` into commands.
pass_context = click.make_pass_decorator(ModKeeperContext, ensure=True)
