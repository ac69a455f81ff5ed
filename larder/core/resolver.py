"""Dependency resolution over the sources' universe.

The resolver works to a fixpoint rather than searching: on every round the
constraints on each cookbook are recomputed from the root demands plus the
dependencies of the versions chosen so far, and each cookbook keeps its
current choice while it still satisfies them. Otherwise the locked version
wins if it fits, else the highest satisfying version. Cookbooks nothing
demands any more drop out of the solution.

Cookbooks that are already materialized locally (path locations, SCM
checkouts, anything in the store) are *explicit*: they are pinned to the
version on disk and only that version is a candidate.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from larder.core.constraints import Constraint, Version
from larder.errors import APIClientError, UnresolvableConstraintError
from larder.models.cookbook import CachedCookbook
from larder.models.dependency import Dependency

if TYPE_CHECKING:
    from larder.core.manifest import Manifest

logger = logging.getLogger(__name__)

MAX_ROUNDS = 50


class Resolver:
    """Computes one concrete version per demanded cookbook.

    Parameters
    ----------
    manifest:
        Supplies the sources whose universes are searched and hydrates the
        resulting dependencies from the store.
    dependencies:
        The root demands.
    """

    def __init__(self, manifest: Manifest, dependencies: list[Dependency] | None = None) -> None:
        self.manifest = manifest
        self._demands: dict[str, Dependency] = {}
        self._explicit: dict[str, CachedCookbook] = {}
        for dependency in dependencies or []:
            self.add_demand(dependency)

    def add_demand(self, dependency: Dependency) -> None:
        """Add a root demand; the first demand for a name wins."""
        if dependency.name in self._demands:
            logger.debug("  Ignoring duplicate demand %s", dependency)
            return
        self._demands[dependency.name] = dependency

    def add_explicit_dependencies(self, cookbook: CachedCookbook) -> None:
        """Pin *cookbook* to the version on disk."""
        self._explicit[cookbook.name] = cookbook

    @property
    def demands(self) -> list[Dependency]:
        return list(self._demands.values())

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self) -> list[Dependency]:
        """Return the resolved dependencies, each with ``locked_version`` set.

        Raises
        ------
        UnresolvableConstraintError
            If some cookbook has no version satisfying all constraints on it,
            or the choices never settle.
        """
        solution: dict[str, str] = {}
        for round_number in range(1, MAX_ROUNDS + 1):
            demands = self._collect(solution)
            chosen: dict[str, str] = {}
            for name in sorted(demands):
                chosen[name] = self._choose(name, demands[name], solution.get(name))
            if chosen == solution:
                logger.debug("  Resolution settled after %d rounds", round_number)
                break
            solution = chosen
        else:
            raise UnresolvableConstraintError(
                f"Resolution did not settle after {MAX_ROUNDS} rounds"
            )

        return [self._to_dependency(name, version) for name, version in sorted(solution.items())]

    def _collect(self, solution: dict[str, str]) -> dict[str, list[tuple[str, str]]]:
        """Gather ``(constraint, origin)`` pairs for every demanded cookbook."""
        demands: dict[str, list[tuple[str, str]]] = {}
        for dependency in self._demands.values():
            demands.setdefault(dependency.name, []).append(
                (dependency.version_constraint, "root")
            )
        for name, cookbook in self._explicit.items():
            demands.setdefault(name, []).append((f"= {cookbook.version}", "local copy"))
        for name, version in solution.items():
            for child, constraint in self._metadata(name, version).items():
                demands.setdefault(child, []).append((constraint, f"{name} ({version})"))
        return demands

    def _choose(self, name: str, demands: list[tuple[str, str]], current: str | None) -> str:
        constraints = [Constraint.parse(raw) for raw, _ in demands]
        satisfying = [
            version for version in self._candidates(name)
            if all(c.satisfies(version) for c in constraints)
        ]
        if not satisfying:
            described = [f"{raw} (from {origin})" for raw, origin in demands]
            raise UnresolvableConstraintError(
                f"No version of '{name}' satisfies: {', '.join(described)}",
                demands={name: described},
            )
        if current in satisfying:
            return current
        root = self._demands.get(name)
        if root is not None and root.locked_version in satisfying:
            return root.locked_version
        return max(satisfying, key=Version.parse)

    def _candidates(self, name: str) -> list[str]:
        explicit = self._explicit.get(name)
        if explicit is not None:
            return [explicit.version]
        versions: set[str] = set()
        for source in self.manifest.sources:
            try:
                versions.update(source.versions(name))
            except APIClientError as exc:
                logger.warning("Skipping source %s: %s", source, exc)
        return sorted(versions, key=Version.parse)

    def _metadata(self, name: str, version: str) -> dict[str, str]:
        explicit = self._explicit.get(name)
        if explicit is not None and explicit.version == version:
            return explicit.dependencies
        source = self.manifest.source_for(name, version)
        if source is None:
            return {}
        remote = source.cookbook(name, version)
        return dict(remote.dependencies) if remote is not None else {}

    def _to_dependency(self, name: str, version: str) -> Dependency:
        dependency = self._demands.get(name)
        if dependency is None:
            dependency = Dependency(name=name)
        dependency.lock(version)
        if not dependency.downloaded:
            self.manifest.hydrate(dependency)
        logger.debug("    %s", dependency)
        return dependency
