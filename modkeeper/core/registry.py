"""
Release provider interface for the planning engine.

The engine never talks to the Forge itself. Everything it needs to know
about published releases comes through a :class:`ReleaseProvider`, which
the caller injects into :class:`~modkeeper.core.planner.UpgradePlanner`,
:class:`~modkeeper.core.compatibility.CompatibilityChecker` and
:class:`~modkeeper.core.conflict_analyzer.ConflictAnalyzer`.

Two implementations ship with modkeeper:

* :class:`StaticReleaseProvider` - an in-memory snapshot, used by tests and
  by callers that already hold release data.
* :class:`ReleaseSnapshot` - releases of a fixed set of modules copied out
  of another provider once per planning run.
* :class:`~modkeeper.core.data_store.ForgeDataStore` - fetches from the
  Forge asynchronously and then serves its cache synchronously.

Contract: ``get_releases`` returns an empty list for unknown modules and
never raises.
"""

from __future__ import annotations

from typing import (
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    Union,
    runtime_checkable,
)

from modkeeper.models.module import Release
from modkeeper.utils.logger import get_logger
from modkeeper.utils.names import normalize_name
from modkeeper.utils.version_utils import compare_versions

logger = get_logger("registry")

# (version, [(dependency, requirement), ...])
ReleaseSpec = Union[Release, Tuple[str, Iterable[Tuple[str, str]]]]


@runtime_checkable
class ReleaseProvider(Protocol):
    """What the engine needs from a release source."""

    def get_releases(self, name: str) -> List[Release]:
        """Return every known release of *name*, registry order."""
        ...

    def normalize_name(self, name: str) -> str:
        """Return the canonical key for *name*."""
        ...


def find_release(
    provider: ReleaseProvider,
    name: str,
    version: Optional[str],
) -> Optional[Release]:
    """Return the release of *name* matching *version*.

    An exact string match wins; otherwise the first release comparing
    equal (``1.0`` matches ``1.0.0``) is returned.
    """
    if not version:
        return None

    releases = provider.get_releases(name)
    for release in releases:
        if release.version == version:
            return release
    for release in releases:
        if compare_versions(release.version, version) == 0:
            return release
    return None


class StaticReleaseProvider:
    """In-memory release provider.

    Args:
        releases: Mapping of module name (any spelling) to releases. Each
            release may be a :class:`Release` or a
            ``(version, [(dependency, requirement), ...])`` tuple.

    Example:
        >>> provider = StaticReleaseProvider({
        ...     "puppetlabs/stdlib": [("9.0.0", []), ("8.5.0", [])],
        ...     "puppetlabs/apache": [
        ...         ("11.0.0", [("puppetlabs/stdlib", ">= 8.0.0 < 10.0.0")]),
        ...     ],
        ... })
        >>> [r.version for r in provider.get_releases("puppetlabs-stdlib")]
        ['9.0.0', '8.5.0']
    """

    def __init__(
        self,
        releases: Optional[Mapping[str, Iterable[ReleaseSpec]]] = None,
    ) -> None:
        self._releases: Dict[str, Tuple[Release, ...]] = {}
        for name, entries in (releases or {}).items():
            self.add(name, entries)

    def add(self, name: str, releases: Iterable[ReleaseSpec]) -> None:
        """Add (or replace) the releases of *name*."""
        self._releases[normalize_name(name)] = tuple(
            entry if isinstance(entry, Release) else Release.from_pairs(*entry)
            for entry in releases
        )

    def get_releases(self, name: str) -> List[Release]:
        return list(self._releases.get(normalize_name(name), ()))

    def normalize_name(self, name: str) -> str:
        return normalize_name(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_name(name) in self._releases

    def __len__(self) -> int:
        return len(self._releases)


class ReleaseSnapshot(StaticReleaseProvider):
    """Releases of a fixed set of modules, read once from another provider.

    A module whose lookup raised is recorded in :attr:`failures` and looks
    unknown to every reader of the snapshot, so its failure never leaks
    into the analysis of other modules.

    Attributes:
        failures: Error message per canonical key of a failed lookup.
    """

    def __init__(self) -> None:
        super().__init__()
        self.failures: Dict[str, str] = {}

    @classmethod
    def capture(cls, provider: ReleaseProvider, names: Iterable[str]) -> "ReleaseSnapshot":
        """Call ``provider.get_releases`` once per distinct module in *names*."""
        snapshot = cls()
        for name in names:
            key = normalize_name(name)
            if key in snapshot.failures or key in snapshot:
                continue

            try:
                releases = provider.get_releases(name)
            except Exception as exc:
                logger.warning("Failed to read releases for %s: %s", name, exc)
                logger.debug("Release lookup failure details", exc_info=True)
                snapshot.failures[key] = str(exc) or exc.__class__.__name__
                continue

            snapshot.add(name, releases)
        return snapshot

    def failure_for(self, name: str) -> Optional[str]:
        return self.failures.get(normalize_name(name))
