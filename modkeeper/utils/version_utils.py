"""
Version comparison utilities for modkeeper.

Forge module versions are semantic-version-like strings, but release
metadata in the wild is messy (``1.0``, ``2.3.0-rc1``, ``v1``, ``1.x``).
The comparator here therefore never raises: malformed components compare
as ``0``.

Ordering rules:

1. Split on the first ``-`` into a dotted *core* and a *pre-release* tag.
2. Compare core components numerically, padding the shorter side with
   zeros (``1.0 == 1.0.0``).
3. With equal cores, a release sorts above any pre-release
   (``1.0.0 > 1.0.0-beta``); two pre-release tags compare as plain
   strings, so ``beta.2`` sorts *above* ``beta.11``. That lexicographic
   behaviour is intentional and relied upon by existing plans.
"""

from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Iterable, List, Optional, Tuple

from modkeeper.constants import PRERELEASE_MARKERS, UNVERSIONED

_LEADING_INT = re.compile(r"^\s*[+-]?\d+")

_UNSAFE_PATTERN = re.compile(
    r"-(?:" + "|".join(PRERELEASE_MARKERS) + r")",
    re.IGNORECASE,
)


def _to_int(component: str) -> int:
    """Parse a dotted component like JavaScript's ``parseInt`` would.

    Leading digits are honoured (``"3rc"`` → ``3``); anything without a
    leading number is ``0``.
    """
    match = _LEADING_INT.match(component)
    if not match:
        return 0
    return int(match.group(0))


def split_version(version: str) -> Tuple[List[int], str]:
    """Split *version* into numeric core parts and the pre-release tag.

    Examples:
        >>> split_version("1.2.3-beta.1")
        ([1, 2, 3], 'beta.1')
        >>> split_version("1.x")
        ([1, 0], '')
    """
    core, _, pre_release = (version or "").partition("-")
    parts = [_to_int(component) for component in core.split(".")]
    return parts, pre_release


def compare_versions(version1: str, version2: str) -> int:
    """Compare two version strings.

    Returns:
        ``-1`` if *version1* sorts before *version2*, ``0`` if they are
        equal, ``1`` otherwise.

    Examples:
        >>> compare_versions("1.0", "1.0.0")
        0
        >>> compare_versions("1.0.0", "1.0.0-beta")
        1
        >>> compare_versions("1.0.0-beta.2", "1.0.0-beta.11")
        1
    """
    parts1, pre1 = split_version(version1)
    parts2, pre2 = split_version(version2)

    for index in range(max(len(parts1), len(parts2))):
        left = parts1[index] if index < len(parts1) else 0
        right = parts2[index] if index < len(parts2) else 0
        if left < right:
            return -1
        if left > right:
            return 1

    if not pre1 and pre2:
        return 1
    if pre1 and not pre2:
        return -1

    if pre1 < pre2:
        return -1
    if pre1 > pre2:
        return 1
    return 0


def is_version_newer(version: str, baseline: str) -> bool:
    """Return True when *version* sorts strictly after *baseline*."""
    return compare_versions(version, baseline) > 0


def is_safe_version(version: str) -> bool:
    """Return False for versions tagged as alpha/beta/rc/pre/dev/snapshot.

    The marker must follow a ``-`` separator; matching is case-insensitive.

    Examples:
        >>> is_safe_version("10.2.3")
        True
        >>> is_safe_version("1.0.0-RC1")
        False
    """
    return not _UNSAFE_PATTERN.search(version or "")


def sort_versions_descending(versions: Iterable[str]) -> List[str]:
    """Return *versions* newest first.

    The sort is stable: versions that compare equal (``1.0`` and ``1.0.0``)
    keep the order they were given in, which for registry data is the
    registry's own order.
    """
    return sorted(versions, key=cmp_to_key(compare_versions), reverse=True)


def get_version_display(version: Optional[str]) -> str:
    """Return *version* or the ``"unversioned"`` sentinel."""
    return version if version else UNVERSIONED


def format_version_transition(current: Optional[str], new: str) -> str:
    """Format ``current → new`` for reports, e.g. ``unversioned → 2.0.0``."""
    return f"{get_version_display(current)} → {new}"


def get_update_type(
    current_version: Optional[str],
    target_version: Optional[str],
) -> str:
    """Classify the change between two versions.

    Returns:
        One of ``"new"``, ``"same"``, ``"downgrade"``, ``"major"``,
        ``"minor"``, ``"patch"``, ``"update"`` (pre-release only change) or
        ``"unknown"`` (no target).

    Examples:
        >>> get_update_type("1.0.0", "2.0.0")
        'major'
        >>> get_update_type(None, "1.0.0")
        'new'
    """
    if not target_version or target_version == UNVERSIONED:
        return "unknown"

    if not current_version or current_version == UNVERSIONED:
        return "new"

    order = compare_versions(target_version, current_version)
    if order == 0:
        return "same"
    if order < 0:
        return "downgrade"

    current_release = _normalize_release(current_version)
    target_release = _normalize_release(target_version)

    if current_release[0] != target_release[0]:
        return "major"
    if current_release[1] != target_release[1]:
        return "minor"
    if current_release[2] != target_release[2]:
        return "patch"

    # Covers pre-release → release moves
    return "update"


def _normalize_release(version: str) -> Tuple[int, int, int]:
    """Normalize a version's core to ``(major, minor, patch)``."""
    parts, _ = split_version(version)
    padded = parts + [0, 0, 0]
    return padded[0], padded[1], padded[2]
