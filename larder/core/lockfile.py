"""Lock file — the persisted result of the last successful install.

The lock file keeps two views on purpose:

``dependencies``
    The top-level, declared dependencies with the constraint and location
    they were locked under. This is the stable record of intent.
``graph``
    Every cookbook of the resolution, transitive ones included, with its
    exact version and its own dependencies.

Every name in ``dependencies`` also appears in ``graph`` after a successful
run. The lock file is *trusted* when the manifest has not changed in a way
that could invalidate the graph, which lets the installer skip resolution.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from larder.core.constraints import Constraint
from larder.errors import LockfileError, ManifestError
from larder.models.cookbook import CachedCookbook
from larder.models.dependency import Dependency, LocationKind
from larder.models.lockfile import (
    LOCKFILE_VERSION,
    GraphItem,
    LockedDependencyRecord,
    LockfileDocument,
)

if TYPE_CHECKING:
    from larder.core.manifest import Manifest

logger = logging.getLogger(__name__)


class LockGraph:
    """The full transitive resolution held by a ``Lockfile``."""

    def __init__(self, lockfile: Lockfile, items: dict[str, GraphItem] | None = None) -> None:
        self._lockfile = lockfile
        self._items: dict[str, GraphItem] = dict(items or {})

    def locks(self) -> dict[str, Dependency]:
        """Map each graph item to a locked ``Dependency``, sorted by name.

        The top-level lock entry of the same name is reused when there is
        one, so declared locations survive; otherwise the manifest entry is
        copied; otherwise a plain registry dependency is created.
        """
        manifest = self._lockfile.manifest
        locks: dict[str, Dependency] = {}
        for name in sorted(self._items):
            item = self._items[name]
            dependency = self._lockfile.find(name)
            if dependency is None:
                declared = manifest.find(name)
                dependency = (
                    declared.model_copy(deep=True) if declared is not None else Dependency(name=name)
                )
            if dependency.locked_version != item.version:
                dependency.lock(item.version)
            if not dependency.downloaded:
                manifest.hydrate(dependency)
            locks[name] = dependency
        return locks

    def find(self, name: str) -> GraphItem | None:
        return self._items.get(name)

    def has(self, name: str) -> bool:
        return name in self._items

    def items(self) -> dict[str, GraphItem]:
        return dict(self._items)

    def update(self, cookbooks: list[CachedCookbook]) -> None:
        """Replace the whole graph with the given installed cookbooks."""
        self._items = {
            cookbook.name: GraphItem(
                name=cookbook.name,
                version=cookbook.version,
                dependencies=dict(cookbook.dependencies),
            )
            for cookbook in cookbooks
        }

    def remove(self, name: str, ignore: set[str] | None = None) -> None:
        """Drop *name* and any of its dependencies nothing else needs.

        Names in *ignore* are never removed.
        """
        ignore = ignore or set()
        item = self._items.pop(name, None)
        if item is None:
            return
        logger.debug("  Ungraphing %s (%s)", item.name, item.version)
        for child in item.dependencies:
            if child in ignore or self._lockfile.has_dependency(child):
                continue
            if not any(child in other.dependencies for other in self._items.values()):
                self.remove(child, ignore)

    def __len__(self) -> int:
        return len(self._items)


class Lockfile:
    """Top-level locks plus the ``LockGraph``, bound to one manifest.

    Parameters
    ----------
    manifest:
        The manifest this lock file describes.
    path:
        Where the lock file is read from and saved to.
    """

    def __init__(self, manifest: Manifest, path: Path) -> None:
        self.manifest = manifest
        self.path = Path(path)
        self._dependencies: dict[str, Dependency] = {}
        self.graph = LockGraph(self)
        self._present = False

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, manifest: Manifest, path: Path) -> Lockfile:
        """Read *path*; a missing file gives an empty, untrusted lock file.

        Raises
        ------
        LockfileError
            If the file exists but is not a valid lock file.
        """
        lockfile = cls(manifest, path)
        if not lockfile.path.exists():
            logger.debug("No lock file at %s", lockfile.path)
            return lockfile

        try:
            raw = json.loads(lockfile.path.read_text(encoding="utf-8"))
            document = LockfileDocument.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise LockfileError(f"Invalid lock file {lockfile.path}: {exc}") from exc
        if document.lockfile_version != LOCKFILE_VERSION:
            raise LockfileError(
                f"Unsupported lock file version {document.lockfile_version} in {lockfile.path}"
            )

        for name, record in document.dependencies.items():
            dependency = _from_record(name, record)
            try:
                manifest.hydrate(dependency)
            except ManifestError as exc:
                # A vanished path location; reduce() or resolution sorts it out.
                logger.debug("  Cannot hydrate locked %s: %s", name, exc)
            lockfile._dependencies[name] = dependency
        lockfile.graph = LockGraph(lockfile, document.graph)
        lockfile._present = True
        return lockfile

    @classmethod
    def from_manifest(cls, manifest: Manifest) -> Lockfile:
        """Load the lock file that sits next to *manifest*."""
        return cls.load(manifest, manifest.lockfile_path)

    def present(self) -> bool:
        return self._present or len(self.graph) > 0

    # ------------------------------------------------------------------
    # Top-level locks
    # ------------------------------------------------------------------

    def dependencies(self) -> list[Dependency]:
        return list(self._dependencies.values())

    def find(self, name: str) -> Dependency | None:
        return self._dependencies.get(name)

    def has_dependency(self, dependency: Dependency | str) -> bool:
        name = dependency if isinstance(dependency, str) else dependency.name
        return name in self._dependencies

    def update(self, dependencies: list[Dependency]) -> None:
        """Replace the top-level locks."""
        self._dependencies = {dependency.name: dependency for dependency in dependencies}

    def unlock(self, name: str) -> None:
        self._dependencies.pop(name, None)

    # ------------------------------------------------------------------
    # Trust and reduction
    # ------------------------------------------------------------------

    def trusted(self) -> bool:
        """True if the manifest still matches what was locked.

        Every manifest dependency needs a top-level lock with the same
        constraint and location, a graph item satisfying that constraint,
        and a fully satisfied transitive closure in the graph.
        """
        logger.debug("Checking if lock file is trusted")
        if not self.present():
            return False

        checked: set[str] = set()
        for dependency in self.manifest.dependencies():
            lock = self.find(dependency.name)
            if lock is None:
                logger.debug("  %s is not locked", dependency.name)
                return False
            if lock.constraint != dependency.constraint:
                logger.debug("  %s constraint changed", dependency.name)
                return False
            if lock.location_key() != dependency.location_key():
                logger.debug("  %s location changed", dependency.name)
                return False
            item = self.graph.find(dependency.name)
            if item is None or not dependency.constraint.satisfies(item.version):
                logger.debug("  %s is not satisfied by the graph", dependency.name)
                return False
            if not self._satisfies_transitive(item, checked):
                logger.debug("  transitive dependencies of %s are not satisfied", dependency.name)
                return False
        return True

    def _satisfies_transitive(self, item: GraphItem, checked: set[str]) -> bool:
        if item.name in checked:
            return True
        checked.add(item.name)
        for name, constraint in item.dependencies.items():
            child = self.graph.find(name)
            if child is None or not Constraint.parse(constraint).satisfies(child.version):
                return False
            if not self._satisfies_transitive(child, checked):
                return False
        return True

    def reduce(self) -> None:
        """Drop locks the manifest no longer justifies.

        - Top-level locks the manifest stopped declaring are unlocked and
          ungraphed together with their orphaned dependencies.
        - Top-level locks whose constraint or location changed are unlocked.
        - Graph items that no longer satisfy the declared constraint are
          ungraphed.
        """
        for dependency in self.dependencies():
            if not self.manifest.has_dependency(dependency):
                logger.debug("  %s removed from manifest", dependency.name)
                self.unlock(dependency.name)
                self.graph.remove(dependency.name)

        for dependency in self.manifest.dependencies():
            lock = self.find(dependency.name)
            if lock is not None and (
                lock.constraint != dependency.constraint
                or lock.location_key() != dependency.location_key()
            ):
                logger.debug("  %s changed in manifest, unlocking", dependency.name)
                self.unlock(dependency.name)
                if dependency.has_location or lock.has_location:
                    self.graph.remove(dependency.name, ignore={dependency.name})

            item = self.graph.find(dependency.name)
            if item is not None and not dependency.constraint.satisfies(item.version):
                logger.debug(
                    "  %s (%s) no longer satisfies %s",
                    item.name, item.version, dependency.version_constraint,
                )
                self.graph.remove(dependency.name)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_document(self) -> LockfileDocument:
        return LockfileDocument(
            dependencies={
                name: _to_record(dependency)
                for name, dependency in sorted(self._dependencies.items())
            },
            graph=dict(sorted(self.graph.items().items())),
        )

    def save(self) -> Path:
        """Write the lock file atomically (temp file, then replace).

        Raises
        ------
        LockfileError
            If the file cannot be written.
        """
        data = json.loads(self.to_document().model_dump_json(exclude_none=True))
        text = json.dumps(data, indent=2, sort_keys=True) + "\n"
        tmp = self.path.with_name(f".{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(text, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            raise LockfileError(f"Cannot write lock file {self.path}: {exc}") from exc
        self._present = True
        logger.debug("Saved lock file to %s", self.path)
        return self.path


def _to_record(dependency: Dependency) -> LockedDependencyRecord:
    return LockedDependencyRecord(
        constraint=dependency.version_constraint,
        locked_version=dependency.locked_version,
        path=str(dependency.path) if dependency.location_kind is LocationKind.PATH else None,
        git=dependency.git if dependency.location_kind is LocationKind.GIT else None,
        ref=dependency.ref if dependency.location_kind is LocationKind.GIT else None,
        revision=dependency.revision,
    )


def _from_record(name: str, record: LockedDependencyRecord) -> Dependency:
    kind = LocationKind.REGISTRY
    if record.path is not None:
        kind = LocationKind.PATH
    elif record.git is not None:
        kind = LocationKind.GIT
    try:
        return Dependency(
            name=name,
            version_constraint=record.constraint,
            locked_version=record.locked_version,
            location_kind=kind,
            path=record.path,
            git=record.git,
            ref=record.ref,
            revision=record.revision,
        )
    except ValueError as exc:
        raise LockfileError(f"Invalid lock entry '{name}': {exc}") from exc
