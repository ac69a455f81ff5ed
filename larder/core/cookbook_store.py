"""Content-addressed local cookbook store.

Storage layout: {base_path}/{name}-{version}/  (the cookbook tree as-is)

Importing the same ``(name, version)`` twice is a no-op: the existing
cookbook is returned. Imports land in a private temp directory first and are
renamed into place, so two runs importing the same cookbook concurrently both
end up with one complete copy.
"""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from pathlib import Path

from larder.core.constraints import Version
from larder.core.hasher import tree_address
from larder.errors import StoreImportError
from larder.models.cookbook import CachedCookbook, read_metadata

logger = logging.getLogger(__name__)

_TMP_PREFIX = ".import-"


class CookbookStore:
    """Local cache of materialized cookbooks keyed by ``(name, version)``.

    Parameters
    ----------
    base_path:
        Root directory for the store.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._base

    def _cookbook_path(self, name: str, version: str) -> Path:
        return self._base / f"{name}-{Version.parse(version)}"

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_cookbook(self, name: str, version: str, stash: Path) -> CachedCookbook:
        """Copy the cookbook tree at *stash* into the store.

        If the cookbook is already present, returns it without copying.

        Raises
        ------
        StoreImportError
            If *stash* is not a cookbook tree, its metadata does not match
            ``(name, version)``, or the copy fails.
        """
        version = str(Version.parse(version))
        dest = self._cookbook_path(name, version)

        if dest.is_dir():
            logger.debug("  %s (%s) already in store at %s", name, version, dest)
            return self._load(dest)

        stash = Path(stash)
        try:
            meta = read_metadata(stash)
        except (FileNotFoundError, ValueError) as exc:
            raise StoreImportError(f"Cannot import {name} ({version}): {exc}") from exc

        if meta["name"] != name or str(Version.parse(str(meta["version"]))) != version:
            raise StoreImportError(
                f"Stash at {stash} holds {meta['name']} ({meta['version']}), "
                f"expected {name} ({version})"
            )

        tmp = self._base / f"{_TMP_PREFIX}{uuid.uuid4().hex}"
        try:
            shutil.copytree(stash, tmp, ignore=shutil.ignore_patterns(".git"))
            try:
                os.rename(tmp, dest)
            except OSError:
                # Another run won the race; its copy is equivalent.
                if not dest.is_dir():
                    raise
                logger.debug("  %s (%s) imported concurrently, keeping existing copy", name, version)
        except OSError as exc:
            raise StoreImportError(f"Failed to import {name} ({version}): {exc}") from exc
        finally:
            if tmp.exists():
                shutil.rmtree(tmp, ignore_errors=True)

        logger.info("Imported %s (%s) into %s", name, version, dest)
        return self._load(dest)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def cookbook(self, name: str, version: str) -> CachedCookbook | None:
        """Return the stored cookbook, or ``None`` if it is not in the store."""
        dest = self._cookbook_path(name, version)
        if not dest.is_dir():
            return None
        return self._load(dest)

    def cookbooks(self, name: str | None = None) -> list[CachedCookbook]:
        """Every stored cookbook, optionally filtered by name, sorted."""
        found: list[CachedCookbook] = []
        for entry in self._base.iterdir():
            if not entry.is_dir() or entry.name.startswith("."):
                continue
            try:
                cookbook = self._load(entry)
            except StoreImportError:
                logger.warning("Skipping unreadable store entry %s", entry)
                continue
            if name is None or cookbook.name == name:
                found.append(cookbook)
        return sorted(found, key=lambda c: (c.name, Version.parse(c.version)))

    def exists(self, name: str, version: str) -> bool:
        return self._cookbook_path(name, version).is_dir()

    def verify(self, name: str, version: str, expected: str) -> bool:
        """Re-hash a stored cookbook and compare against *expected*."""
        dest = self._cookbook_path(name, version)
        if not dest.is_dir():
            return False
        return tree_address(dest) == expected

    def _load(self, path: Path) -> CachedCookbook:
        try:
            return CachedCookbook.from_path(path)
        except (FileNotFoundError, ValueError) as exc:
            raise StoreImportError(f"Corrupt store entry {path}: {exc}") from exc
