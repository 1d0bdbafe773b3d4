"""Puppet Forge release store for modkeeper.

:class:`ForgeDataStore` is the network-facing release provider. It fetches
``/v3/releases`` for each module once per process, converts the payload
into :class:`~modkeeper.models.module.Release` records and caches them by
canonical module key.

It has two faces:

* ``async`` fetchers (:meth:`ForgeDataStore.fetch_releases`,
  :meth:`ForgeDataStore.prefetch_modules`) that may hit the network;
* synchronous, cache-only accessors (:meth:`ForgeDataStore.get_releases`,
  :meth:`ForgeDataStore.normalize_name`) that satisfy the engine's
  :class:`~modkeeper.core.registry.ReleaseProvider` protocol.

Callers fetch first, then plan::

    async with HTTPClient() as http:
        store = ForgeDataStore(http)
        await store.prefetch_modules(["puppetlabs/stdlib", "puppetlabs/apache"])

    plan = create_upgrade_plan(modules, store)
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urljoin

from modkeeper.constants import (
    DEFAULT_CONCURRENT_LIMIT,
    DEFAULT_FORGE_URL,
    FORGE_MAX_PAGES,
    FORGE_PAGE_LIMIT,
    FORGE_RELEASES_PATH,
)
from modkeeper.exceptions import ForgeError, NetworkError
from modkeeper.models.module import Dependency, Release
from modkeeper.utils.http import HTTPClient
from modkeeper.utils.logger import get_logger
from modkeeper.utils.names import module_name_variants, normalize_name

logger = get_logger("data_store")

__all__ = ["ForgeDataStore"]

# Statuses the Forge uses for "no such module" (400 for malformed slugs)
_NOT_FOUND_STATUSES = (400, 404)


class ForgeDataStore:
    """Async-safe, per-process cache of Forge release metadata.

    A semaphore bounds concurrent fetches. The cache is checked again
    inside it, so a module fetched while a caller waited is served from
    the cache. There is no per-key lock: two callers that enter the
    semaphore together for the same uncached module both fetch it.

    Args:
        http_client: Configured :class:`HTTPClient`.
        base_url: Forge API root.
        concurrent_limit: Maximum module fetches in flight.
        max_pages: Maximum result pages followed per module.
    """

    def __init__(
        self,
        http_client: HTTPClient,
        *,
        base_url: str = DEFAULT_FORGE_URL,
        concurrent_limit: int = DEFAULT_CONCURRENT_LIMIT,
        max_pages: int = FORGE_MAX_PAGES,
    ) -> None:
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.max_pages = max_pages
        self._semaphore = asyncio.Semaphore(concurrent_limit)

        # canonical key → releases, newest first as the Forge returns them
        self._releases: Dict[str, List[Release]] = {}

    # ------------------------------------------------------------------
    # Async fetchers
    # ------------------------------------------------------------------

    async def fetch_releases(self, name: str) -> List[Release]:
        """Return the releases of *name*, fetching them on first use.

        Unknown modules are cached as an empty list.

        Raises:
            NetworkError: The Forge could not be reached or answered with
                an unexpected error.
        """
        key = normalize_name(name)

        if key in self._releases:
            return list(self._releases[key])

        async with self._semaphore:
            if key in self._releases:
                return list(self._releases[key])

            releases = await self._fetch_with_variants(name)
            self._releases[key] = releases
            logger.debug("Cached %d release(s) for %s", len(releases), key)
            return list(releases)

    async def prefetch_modules(
        self,
        names: Iterable[str],
        *,
        include_dependencies: bool = False,
        max_depth: int = 1,
    ) -> None:
        """Concurrently warm the cache for a batch of modules.

        Failures are logged and skipped so one unreachable module does not
        stop the rest; the engine then sees that module as having no data.

        Args:
            names: Module names, any spelling.
            include_dependencies: Also fetch every module that a fetched
                release depends on.
            max_depth: How many levels of dependencies to follow when
                ``include_dependencies`` is set. Each level is one batch.
        """
        level = list(dict.fromkeys(names))
        attempted = {normalize_name(name) for name in level}
        await self._gather(level)

        if not include_dependencies:
            return

        for depth in range(1, max_depth + 1):
            targets: Dict[str, str] = {}
            for name in level:
                for release in self.get_releases(name):
                    for dependency in release.dependencies:
                        if dependency.key not in attempted:
                            targets.setdefault(dependency.key, dependency.name)
            if not targets:
                break

            level = sorted(targets.values())
            attempted.update(targets)
            logger.debug("Prefetching %d dependency module(s) at depth %d", len(level), depth)
            await self._gather(level)

    async def _gather(self, names: List[str]) -> None:
        results = await asyncio.gather(
            *(self.fetch_releases(name) for name in names),
            return_exceptions=True,
        )
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.warning("Failed to fetch releases for %s: %s", name, result)

    # ------------------------------------------------------------------
    # Synchronous accessors (cache-only)
    # ------------------------------------------------------------------

    def get_releases(self, name: str) -> List[Release]:
        """Return cached releases of *name*; empty when never fetched."""
        return list(self._releases.get(normalize_name(name), ()))

    def normalize_name(self, name: str) -> str:
        return normalize_name(name)

    def is_cached(self, name: str) -> bool:
        return normalize_name(name) in self._releases

    def get_versions(self, name: str) -> List[str]:
        return [release.version for release in self.get_releases(name)]

    # ------------------------------------------------------------------
    # Network helpers
    # ------------------------------------------------------------------

    async def _fetch_with_variants(self, name: str) -> List[Release]:
        """Try the module's slug, then its known aliases."""
        for slug in module_name_variants(name):
            try:
                releases = await self._fetch_all_pages(slug)
            except NetworkError as exc:
                if exc.status_code in _NOT_FOUND_STATUSES:
                    logger.debug("Forge has no module %s (HTTP %s)", slug, exc.status_code)
                    continue
                raise ForgeError(
                    f"Failed to fetch releases for {name}: {exc.message}",
                    module_name=name,
                    url=exc.url,
                    status_code=exc.status_code,
                ) from exc

            if releases:
                return releases

        logger.info("No Forge releases found for %s", name)
        return []

    async def _fetch_all_pages(self, slug: str) -> List[Release]:
        url: Optional[str] = f"{self.base_url}{FORGE_RELEASES_PATH}"
        params: Optional[Dict[str, Any]] = {
            "module": slug,
            "limit": FORGE_PAGE_LIMIT,
            "sort_by": "version",
            "order": "desc",
        }

        releases: List[Release] = []
        pages = 0
        while url and pages < self.max_pages:
            if params is None:
                payload = await self.http_client.get_json(url)
            else:
                payload = await self.http_client.get_json(url, params=params)
            pages += 1

            releases.extend(self._parse_releases(payload))

            next_link = (payload.get("pagination") or {}).get("next")
            url = urljoin(self.base_url + "/", next_link) if next_link else None
            # The next link already carries the query string
            params = None

        if url:
            logger.warning(
                "Stopped after %d page(s) of releases for %s",
                pages,
                slug,
            )

        return releases

    @staticmethod
    def _parse_releases(payload: Mapping[str, Any]) -> List[Release]:
        """Convert a ``/v3/releases`` page into :class:`Release` records.

        Deleted releases and entries without a version are skipped.
        """
        releases: List[Release] = []

        for entry in payload.get("results") or []:
            version = entry.get("version")
            if not version or entry.get("deleted_at"):
                continue

            metadata = entry.get("metadata") or {}
            dependencies = tuple(
                Dependency(
                    name=dependency["name"],
                    requirement=dependency.get("version_requirement") or "",
                )
                for dependency in metadata.get("dependencies") or []
                if dependency.get("name")
            )
            releases.append(Release(version=version, dependencies=dependencies))

        return releases
