"""Installer — turns declared dependencies into installed, locked cookbooks.

A run goes:

1. Reduce the lock file (drop what the manifest no longer justifies).
2. Trusted lock file: install exactly what the graph records, building the
   universe only if something still has to be downloaded.
   Otherwise: merge locked and declared dependencies, fetch SCM locations,
   build the universe, pin everything already on disk, and resolve.
3. Install the resulting dependencies one at a time, sorted by name.
4. Update the full graph and the top-level locks, then save, once, and only
   after every install succeeded.

Universe building fans out one worker per source. A source that fails is
reported and skipped; every other failure aborts the run before the lock
file is touched.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

from larder.core.cookbook_store import CookbookStore
from larder.core.downloader import Downloader
from larder.core.locations import GitFetcher
from larder.core.lockfile import Lockfile
from larder.core.manifest import Manifest
from larder.core.reporter import InstallReporter, LoggingReporter
from larder.core.resolver import Resolver
from larder.core.source import Source
from larder.errors import APIClientError, NoSourceForVersionError
from larder.models.cookbook import CachedCookbook
from larder.models.dependency import Dependency

logger = logging.getLogger(__name__)


class Installer:
    """Installs the cookbooks a manifest declares.

    Parameters
    ----------
    manifest:
        Declared dependencies, sources, store and lock file.
    downloader:
        Defaults to a ``Downloader`` configured from the manifest's settings.
    reporter:
        Receives progress events. Defaults to ``LoggingReporter``.
    git_fetcher:
        Checks out SCM locations. Defaults to a ``GitFetcher`` on the store.
    resolver_factory:
        Builds the resolver; called as ``resolver_factory(manifest, deps)``.
    """

    def __init__(
        self,
        manifest: Manifest,
        *,
        downloader: Downloader | None = None,
        reporter: InstallReporter | None = None,
        git_fetcher: GitFetcher | None = None,
        resolver_factory: Callable[[Manifest, list[Dependency]], Resolver] = Resolver,
    ) -> None:
        settings = manifest.settings
        self.manifest = manifest
        self.lockfile: Lockfile = manifest.lockfile
        self.store: CookbookStore = manifest.store
        self.downloader = downloader or Downloader(
            manifest,
            settings.stash_path,
            timeout=settings.http_timeout,
            retries=settings.download_retries,
            user_agent=settings.user_agent,
        )
        self.reporter: InstallReporter = reporter or LoggingReporter()
        self.git_fetcher = git_fetcher or GitFetcher(self.store)
        self._resolver_factory = resolver_factory

    # ------------------------------------------------------------------
    # Universe
    # ------------------------------------------------------------------

    def build_universe(self) -> None:
        """Fetch every source's universe concurrently and wait for all.

        A failing source is reported and contributes nothing; it never
        aborts the others.
        """
        sources = self.manifest.sources
        if not sources:
            return
        with ThreadPoolExecutor(
            max_workers=len(sources), thread_name_prefix="larder-universe"
        ) as executor:
            futures = [executor.submit(self._build_source_universe, s) for s in sources]
            for future in futures:
                future.result()

    def _build_source_universe(self, source: Source) -> None:
        self.reporter.msg(f"Fetching cookbook index from {source.uri}...")
        try:
            source.build_universe()
        except APIClientError as exc:
            logger.warning("Universe fetch from %s failed: %s", source, exc)
            self.reporter.warn(f"Error retrieving universe from source: {source}")
            self.reporter.warn(f"  * [{type(exc).__name__}] {exc}")

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> list[CachedCookbook]:
        """Install everything and persist the lock file.

        Returns the installed cookbooks, sorted by name.
        """
        self.lockfile.reduce()

        self.reporter.msg("Resolving cookbook dependencies...")

        try:
            if self.lockfile.trusted():
                dependencies, cookbooks = self.install_from_lockfile()
            else:
                dependencies, cookbooks = self.install_from_universe()
        finally:
            self.downloader.cleanup()

        logger.debug("  Finished resolving, calculating locks")

        to_lock = [d for d in dependencies if self.manifest.has_dependency(d)]

        logger.debug("  New locks")
        for lock in to_lock:
            logger.debug("    %s", lock)

        self.lockfile.graph.update(cookbooks)
        self.lockfile.update(to_lock)
        self.lockfile.save()

        return cookbooks

    # ------------------------------------------------------------------
    # Single dependency
    # ------------------------------------------------------------------

    def install(self, dependency: Dependency) -> CachedCookbook:
        """Install one dependency whose ``locked_version`` is already set.

        Raises
        ------
        NoSourceForVersionError
            If no source serves the locked version.
        DownloadError, StoreImportError
            If the transfer or the import fails.
        """
        logger.info("Installing %s", dependency)

        if dependency.downloaded:
            logger.debug("  Already downloaded - skipping download")
            self.reporter.use(dependency)
            return dependency.cached_cookbook

        name, version = dependency.name, dependency.locked_version
        if version is None:
            raise ValueError(f"Cannot install {name} without a locked version")

        source = self.manifest.source_for(name, version)
        if source is None:
            raise NoSourceForVersionError(name, version)

        logger.debug("  Downloading %s (%s) from %s", name, version, source)

        cookbook = source.cookbook(name, version)
        logger.debug("    => %r", cookbook)
        self.reporter.install(source, cookbook)

        stash = self.downloader.download(name, version)
        cached = self.store.import_cookbook(name, version, stash)
        dependency.cache(cached)
        return cached

    # ------------------------------------------------------------------
    # Trusted path
    # ------------------------------------------------------------------

    def install_from_lockfile(self) -> tuple[list[Dependency], list[CachedCookbook]]:
        """Install exactly what the lock file graph records."""
        logger.info("Installing from lockfile")

        dependencies = list(self.lockfile.graph.locks().values())

        logger.debug("  Dependencies")
        for dependency in dependencies:
            logger.debug("    %s", dependency)

        # Only construct the universe if we are going to download things
        if not all(d.downloaded for d in dependencies):
            logger.debug("  Not all dependencies are downloaded")
            self.build_universe()

        cookbooks = [self.install(d) for d in sorted(dependencies)]
        return dependencies, cookbooks

    # ------------------------------------------------------------------
    # Full resolution path
    # ------------------------------------------------------------------

    def install_from_universe(self) -> tuple[list[Dependency], list[CachedCookbook]]:
        """Resolve against the universe, then install the result."""
        logger.info("Installing from universe")

        merged: dict[str, Dependency] = {}
        for dependency in [*self.lockfile.graph.locks().values(), *self.manifest.dependencies()]:
            # First occurrence wins, so locked versions shadow fresh declarations.
            merged.setdefault(dependency.name, dependency)
        dependencies = list(merged.values())

        logger.debug("  Dependencies")
        for dependency in dependencies:
            logger.debug("    %s", dependency)

        logger.debug("  Creating a resolver")
        resolver = self._resolver_factory(self.manifest, dependencies)

        # SCM locations may declare constraints the universe cannot know about.
        for dependency in dependencies:
            if dependency.scm_location:
                logger.debug("  Downloading SCM dependency %s", dependency)
                self.reporter.fetch(dependency)
                self.git_fetcher.download(dependency)

        # Unlike the trusted path, resolution always needs the full universe.
        self.build_universe()

        for dependency in dependencies:
            cookbook = dependency.cached_cookbook
            if cookbook is not None:
                logger.debug("  Adding explicit dependency on %s", cookbook)
                resolver.add_explicit_dependencies(cookbook)

        logger.debug("  Starting resolution...")

        cookbooks = [self.install(d) for d in sorted(resolver.resolve())]
        return dependencies, cookbooks
