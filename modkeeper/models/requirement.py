"""
Version requirement model for modkeeper.

Forge metadata expresses dependency constraints as free-form text such as
``">= 4.13.0 < 10.0.0"``, ``"~> 1.2.0"`` or ``"4.x"``. This module parses
that text into AND-combined :class:`VersionClause` objects and evaluates
versions against them with the modkeeper version comparator.

Parsing is fail-open: tokens that cannot form a clause are skipped, and a
requirement with no clauses at all is satisfied by every version. A typo in
some third party's metadata must never block an upgrade.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from modkeeper.utils.version_utils import compare_versions, split_version

_OPERATORS: Dict[str, Callable[[int], bool]] = {
    ">=": lambda order: order >= 0,
    ">": lambda order: order > 0,
    "<=": lambda order: order <= 0,
    "<": lambda order: order < 0,
    "=": lambda order: order == 0,
}

_TOKEN = re.compile(r"~>|>=|<=|>|<|=|[^\s<>=~,]+")
_MAJOR_WILDCARD = re.compile(r"^(\d+)\.x(?:\.x)?$", re.IGNORECASE)
_MINOR_WILDCARD = re.compile(r"^(\d+)\.(\d+)\.x$", re.IGNORECASE)
_VERSION_LIKE = re.compile(r"^\d")

LOWER_BOUND_OPERATORS = (">=", ">")
UPPER_BOUND_OPERATORS = ("<=", "<")


@dataclass(frozen=True)
class VersionClause:
    """A single ``operator version`` comparison."""

    operator: str
    version: str

    def matches(self, version: str) -> bool:
        check = _OPERATORS.get(self.operator)
        if check is None:
            return True
        return check(compare_versions(version, self.version))

    def __str__(self) -> str:
        return f"{self.operator} {self.version}"


@dataclass(frozen=True)
class VersionRange:
    """Merged bounds of a set of clauses. Either side may be open."""

    min_version: Optional[str] = None
    max_version: Optional[str] = None

    def __str__(self) -> str:
        lower = self.min_version or "*"
        upper = self.max_version or "*"
        return f"[{lower}, {upper}]"


@dataclass(frozen=True)
class Requirement:
    """A parsed version requirement.

    Attributes:
        raw: The requirement text as published.
        clauses: Clauses that must all hold. Empty means "any version".
    """

    raw: str
    clauses: Tuple[VersionClause, ...] = field(default_factory=tuple)

    @property
    def is_unconstrained(self) -> bool:
        return not self.clauses

    def matches(self, version: str) -> bool:
        """Return True if *version* satisfies every clause."""
        return all(clause.matches(version) for clause in self.clauses)

    def range(self) -> Optional[VersionRange]:
        return intersect(self.clauses)

    def __str__(self) -> str:
        return self.raw


def _bump_minor(version: str) -> str:
    parts, _ = split_version(version)
    major = parts[0] if parts else 0
    minor = parts[1] if len(parts) > 1 else 0
    return f"{major}.{minor + 1}.0"


def _wildcard_clauses(token: str) -> Optional[List[VersionClause]]:
    match = _MAJOR_WILDCARD.match(token)
    if match:
        major = int(match.group(1))
        return [
            VersionClause(">=", f"{major}.0.0"),
            VersionClause("<", f"{major + 1}.0.0"),
        ]

    match = _MINOR_WILDCARD.match(token)
    if match:
        major, minor = int(match.group(1)), int(match.group(2))
        return [
            VersionClause(">=", f"{major}.{minor}.0"),
            VersionClause("<", f"{major}.{minor + 1}.0"),
        ]

    return None


def _pessimistic_clauses(version: str) -> List[VersionClause]:
    return [
        VersionClause(">=", version),
        VersionClause("<", _bump_minor(version)),
    ]


def _tokenize(text: str) -> List[str]:
    """Split into operators and operands; ``>=1.0.0<2.0.0`` gives four tokens."""
    return _TOKEN.findall(text)


@lru_cache(maxsize=1024)
def parse_requirement(text: Optional[str]) -> Requirement:
    """Parse requirement text into clauses.

    Supported forms, combinable with whitespace::

        >= 1.0.0 < 2.0.0      explicit bounds (also >, <=, =)
        ~> 1.2.0              >= 1.2.0 and < 1.3.0
        4.x / 4.x.x           >= 4.0.0 and < 5.0.0
        4.2.x                 >= 4.2.0 and < 4.3.0
        1.2.3                 exactly 1.2.3

    Anything else is ignored.

    Examples:
        >>> [str(c) for c in parse_requirement(">= 4.13.0 < 10.0.0").clauses]
        ['>= 4.13.0', '< 10.0.0']
        >>> parse_requirement("whatever").is_unconstrained
        True
    """
    raw = (text or "").strip()
    tokens = _tokenize(raw)
    clauses: List[VersionClause] = []

    index = 0
    while index < len(tokens):
        token = tokens[index]
        operand = tokens[index + 1] if index + 1 < len(tokens) else None

        if token == "~>":
            if operand and _VERSION_LIKE.match(operand):
                clauses.extend(_pessimistic_clauses(operand))
                index += 2
            else:
                index += 1
            continue

        if token in _OPERATORS:
            if operand and _VERSION_LIKE.match(operand):
                wildcard = _wildcard_clauses(operand)
                if wildcard and token == "=":
                    clauses.extend(wildcard)
                else:
                    clauses.append(VersionClause(token, operand))
                index += 2
            else:
                index += 1
            continue

        wildcard = _wildcard_clauses(token)
        if wildcard:
            clauses.extend(wildcard)
        elif _VERSION_LIKE.match(token):
            clauses.append(VersionClause("=", token))
        index += 1

    return Requirement(raw=raw, clauses=tuple(clauses))


def satisfies(version: str, requirement: Union[Requirement, str, None]) -> bool:
    """Return True if *version* meets *requirement*.

    Args:
        version: Candidate version string.
        requirement: A parsed :class:`Requirement` or raw requirement text.
            Empty or unparseable text is satisfied by everything.

    Examples:
        >>> satisfies("9.9.9", ">= 4.13.0 < 10.0.0")
        True
        >>> satisfies("10.0.0", ">= 4.13.0 < 10.0.0")
        False
    """
    if not isinstance(requirement, Requirement):
        requirement = parse_requirement(requirement)
    return requirement.matches(version)


def intersect(clauses: Iterable[VersionClause]) -> Optional[VersionRange]:
    """Merge clauses into the tightest ``[min, max]`` range.

    Exact (``=``) clauses pin both ends. Returns None when the lower bound
    ends up above the upper bound, i.e. nothing can satisfy every clause.
    """
    lower: Optional[str] = None
    upper: Optional[str] = None

    for clause in clauses:
        if clause.operator in LOWER_BOUND_OPERATORS or clause.operator == "=":
            if lower is None or compare_versions(clause.version, lower) > 0:
                lower = clause.version
        if clause.operator in UPPER_BOUND_OPERATORS or clause.operator == "=":
            if upper is None or compare_versions(clause.version, upper) < 0:
                upper = clause.version

    if lower is not None and upper is not None and compare_versions(lower, upper) > 0:
        return None

    return VersionRange(min_version=lower, max_version=upper)
