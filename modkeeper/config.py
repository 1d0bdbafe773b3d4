"""Configuration file loader for modkeeper.

Handles discovery, loading, parsing, and validation of configuration files.
Supports two formats:

- ``modkeeper.toml`` — settings under ``[modkeeper]`` table
- ``pyproject.toml`` — settings under ``[tool.modkeeper]`` table

Discovery order:

1. Explicit path from ``--config`` or ``MODKEEPER_CONFIG``
2. ``modkeeper.toml`` in current directory
3. ``pyproject.toml`` with ``[tool.modkeeper]`` section

Configuration precedence: defaults < config file < CLI args.

Example (``modkeeper.toml``)::

    [modkeeper]
    forge_url = "https://forge.example.internal"
    exclude_prereleases = true
    detect_cycles = false
"""

from __future__ import annotations

import tomli as tomllib
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass, field

from modkeeper.exceptions import ConfigError
from modkeeper.utils.logger import get_logger
from modkeeper.constants import (
    DEFAULT_DETECT_CYCLES,
    DEFAULT_EXCLUDE_PRERELEASES,
    DEFAULT_FORGE_URL,
)

logger = get_logger("config")

CONFIG_FILE_NAME = "modkeeper.toml"
SECTION_NAME = "modkeeper"


@dataclass
class ModKeeperConfig:
    """Parsed and validated modkeeper configuration.

    All fields have defaults, so empty config files are valid.

    Attributes:
        forge_url: Base URL of the Forge API (a mirror or proxy works).
        exclude_prereleases: Never propose alpha/beta/rc/pre/dev/snapshot
            versions as upgrades.
        detect_cycles: Report circular dependencies with the plan.
        source_path: Path to loaded config file, or ``None`` if using defaults.
    """

    forge_url: str = DEFAULT_FORGE_URL
    exclude_prereleases: bool = DEFAULT_EXCLUDE_PRERELEASES
    detect_cycles: bool = DEFAULT_DETECT_CYCLES

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False)

    def to_log_dict(self) -> Dict[str, Any]:
        return {
            "forge_url": self.forge_url,
            "exclude_prereleases": self.exclude_prereleases,
            "detect_cycles": self.detect_cycles,
        }


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file to load.

    Args:
        explicit_path: Explicit config path. If provided, must exist.

    Returns:
        Resolved path to config file, or ``None`` if not found.

    Raises:
        ConfigError: Explicit path provided but does not exist.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    cwd = Path.cwd()

    modkeeper_toml = cwd / CONFIG_FILE_NAME
    if modkeeper_toml.is_file():
        logger.debug("Found %s: %s", CONFIG_FILE_NAME, modkeeper_toml)
        return modkeeper_toml

    pyproject_toml = cwd / "pyproject.toml"
    if pyproject_toml.is_file() and _pyproject_has_section(pyproject_toml):
        logger.debug("Found [tool.%s] in pyproject.toml: %s", SECTION_NAME, pyproject_toml)
        return pyproject_toml

    logger.debug("No configuration file found")
    return None


def _pyproject_has_section(path: Path) -> bool:
    """Check for ``[tool.modkeeper]``; an unreadable pyproject counts as no."""
    try:
        raw = _read_toml(path)
    except ConfigError as exc:
        logger.debug("Ignoring unreadable pyproject.toml: %s", exc)
        return False
    return SECTION_NAME in raw.get("tool", {})


def load_config(config_path: Optional[Path] = None) -> ModKeeperConfig:
    """Load and validate modkeeper configuration.

    Args:
        config_path: Explicit path to config file. If ``None``, uses
            auto-discovery (see :func:`discover_config_file`).

    Returns:
        Validated :class:`ModKeeperConfig` with values from file or defaults.

    Raises:
        ConfigError: File cannot be parsed, has unknown keys, or invalid values.
    """
    resolved = discover_config_file(config_path)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        return ModKeeperConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)

    if resolved.name == "pyproject.toml":
        section = raw.get("tool", {}).get(SECTION_NAME, {})
    else:
        section = raw.get(SECTION_NAME, {})

    if not section:
        logger.debug("Config file found but no %s section, using defaults", SECTION_NAME)
        return ModKeeperConfig(source_path=resolved)

    config = _parse_section(section, config_path=str(resolved))
    config.source_path = resolved

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


_BOOLEAN_OPTIONS = ("exclude_prereleases", "detect_cycles")


def _parse_section(
    section: Dict[str, Any],
    *,
    config_path: str,
) -> ModKeeperConfig:
    """Validate a ``[modkeeper]`` table.

    Raises:
        ConfigError: Unknown keys or values of the wrong type.
    """
    config = ModKeeperConfig()

    known = {"forge_url", *_BOOLEAN_OPTIONS}
    unknown = set(section.keys()) - known
    if unknown:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}",
            config_path=config_path,
        )

    for option in _BOOLEAN_OPTIONS:
        if option not in section:
            continue
        value = section[option]
        if not isinstance(value, bool):
            raise ConfigError(
                f"{option} must be a boolean, got {type(value).__name__}",
                config_path=config_path,
                option=option,
            )
        setattr(config, option, value)

    if "forge_url" in section:
        value = section["forge_url"]
        if not isinstance(value, str):
            raise ConfigError(
                f"forge_url must be a string, got {type(value).__name__}",
                config_path=config_path,
                option="forge_url",
            )
        if not value.startswith(("http://", "https://")):
            raise ConfigError(
                f"forge_url must be an http(s) URL, got {value!r}",
                config_path=config_path,
                option="forge_url",
            )
        config.forge_url = value.rstrip("/")

    return config
