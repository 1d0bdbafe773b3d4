"""Puppetfile parser.

Reads the subset of Puppetfile syntax that matters for upgrade planning:

- Forge modules: ``mod 'puppetlabs/stdlib'`` and
  ``mod 'puppetlabs/stdlib', '9.4.1'`` (``:latest`` counts as unversioned)
- Git modules: ``mod 'site', :git => 'https://...'`` with optional
  ``:tag``, ``:ref``, ``:branch`` or ``:commit`` (Ruby 1.9 ``git: '...'``
  hash syntax works too)
- Declarations continued over several lines after a trailing comma, or
  with the ``:git`` option on the following line
- Comment lines, blank lines and inline ``#`` comments outside quotes

Everything else (``forge``, ``moduledir``, arbitrary Ruby) is ignored.
Problems are collected per declaration instead of raised, so one bad line
never hides the rest of the manifest.

Typical usage::

    parser = PuppetfileParser()
    result = parser.parse_file("Puppetfile")
    for module in result.modules:
        print(module.name, module.version)
    for error in result.errors:
        print(error)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from modkeeper.exceptions import ParseError
from modkeeper.models.module import Module, ModuleSource
from modkeeper.utils.filesystem import safe_read_file
from modkeeper.utils.logger import get_logger

__all__ = ["PuppetfileParser", "ParseResult"]

_MOD_START = re.compile(r"^mod(?=[\s('\"])")
_MOD_HEAD = re.compile(
    r"""^mod\s*\(?\s*(['"])(?P<name>[^'"]+)\1"""
    r"""(?:\s*,\s*(?:(['"])(?P<version>[^'"]*)\3|:(?P<symbol>\w+)(?=\s*(?:,|\)|$))))?"""
)
_HASH_ROCKET_OPTION = re.compile(r""":(?P<key>\w+)\s*=>\s*(['"])(?P<value>[^'"]*)\2""")
_KEYWORD_OPTION = re.compile(r"""(?<![:\w])(?P<key>\w+):\s+(['"])(?P<value>[^'"]*)\2""")
_GIT_CONTINUATION = re.compile(r"^(?::git\s*=>|git:\s)")

_REF_OPTIONS = ("ref", "branch", "commit")


@dataclass
class ParseResult:
    """Modules found in a Puppetfile plus the problems met on the way."""

    modules: List[Module] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def error_messages(self) -> List[str]:
        return [
            f"Line {error.line_number}: {error.message}" if error.line_number else error.message
            for error in self.errors
        ]


class PuppetfileParser:
    """Stateless Puppetfile parser.

    Example::

        >>> result = PuppetfileParser().parse_string("mod 'puppetlabs/stdlib', '9.4.1'")
        >>> result.modules[0].version
        '9.4.1'
    """

    def __init__(self) -> None:
        self.logger = get_logger("parser")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse_file(self, file_path: Union[str, Path]) -> ParseResult:
        """Read and parse the Puppetfile at *file_path*.

        Raises:
            FileOperationError: The file cannot be read.
        """
        path = Path(file_path)
        content = safe_read_file(path)
        result = self.parse_string(content, source_file_path=str(path))
        self.logger.debug("Parsed %d module(s) from %s", len(result.modules), path.name)
        return result

    def parse_string(
        self,
        content: str,
        source_file_path: Optional[str] = None,
    ) -> ParseResult:
        """Parse Puppetfile text.

        Args:
            content: Full Puppetfile content.
            source_file_path: Used in error details only.

        Returns:
            The modules in declaration order and any per-line errors.
        """
        result = ParseResult()
        lines = content.splitlines()
        index = 0

        while index < len(lines):
            line_number = index + 1
            text = strip_inline_comment(lines[index])

            if not text or not _MOD_START.match(text):
                index += 1
                continue

            declaration, last_index = self._collect_declaration(lines, index, text)

            try:
                result.modules.append(self.parse_declaration(declaration, line_number))
            except ParseError as exc:
                exc.file_path = source_file_path
                if source_file_path:
                    exc.details["file"] = source_file_path
                self.logger.warning("Line %d: %s", line_number, exc.message)
                result.errors.append(exc)

            index = last_index + 1

        return result

    def parse_declaration(self, declaration: str, line_number: int) -> Module:
        """Build a :class:`Module` from one complete ``mod`` declaration.

        Raises:
            ParseError: The declaration has no quoted module name.
        """
        head = _MOD_HEAD.match(declaration)
        if not head:
            raise ParseError(
                "Invalid module declaration syntax",
                line_number=line_number,
                line_content=declaration,
            )

        name = head.group("name").strip()
        if not name:
            raise ParseError(
                "Empty module name",
                line_number=line_number,
                line_content=declaration,
            )

        options = _extract_options(declaration[head.end():])

        if "git" in options:
            tag = options.get("tag")
            ref = next((options[key] for key in _REF_OPTIONS if key in options), None)
            return Module(
                name=name,
                source=ModuleSource.GIT,
                line=line_number,
                git_url=options["git"],
                git_ref=ref,
                git_tag=tag,
            )

        version = head.group("version")
        if version is not None and (not version or "git" in version or "http" in version):
            version = None

        # `mod 'x', :latest` tracks the newest release, i.e. no pin
        return Module(name=name, version=version or None, line=line_number)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _collect_declaration(
        lines: List[str],
        start: int,
        first_line: str,
    ) -> Tuple[str, int]:
        """Join a declaration continued over several lines.

        Returns the joined text and the index of its last line.
        """
        parts = [first_line]
        last = start
        index = start + 1

        while index < len(lines):
            current = parts[-1]
            following = strip_inline_comment(lines[index])

            if not following:
                # Blank and comment lines may sit inside a continuation
                if current.endswith(","):
                    index += 1
                    continue
                break

            continues = current.endswith(",") or (
                len(parts) == 1 and _GIT_CONTINUATION.match(following) is not None
            )
            if not continues or _MOD_START.match(following):
                break

            parts.append(following)
            last = index
            index += 1

        return " ".join(parts), last


def strip_inline_comment(line: str) -> str:
    """Drop a trailing ``# comment`` that sits outside quotes, then trim.

    Examples:
        >>> strip_inline_comment("mod 'a/b', '1.0.0' # pinned")
        "mod 'a/b', '1.0.0'"
        >>> strip_inline_comment("mod 'a/b', :git => 'https://x/#frag'")
        "mod 'a/b', :git => 'https://x/#frag'"
    """
    quote: Optional[str] = None
    for position, char in enumerate(line):
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char == "#":
            return line[:position].strip()
    return line.strip()


def _extract_options(text: str) -> Dict[str, str]:
    options: Dict[str, str] = {}
    for pattern in (_HASH_ROCKET_OPTION, _KEYWORD_OPTION):
        for match in pattern.finditer(text):
            options.setdefault(match.group("key"), match.group("value"))
    return options
