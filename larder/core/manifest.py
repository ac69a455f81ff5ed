"""The project manifest (``larder.toml``) — declared sources and dependencies.

Example::

    sources = ["https://supermarket.example.com", "file:///srv/cookbooks"]

    [dependencies]
    nginx = ">= 1.0.0"
    apt = { version = "~> 2.1" }
    mycook = { path = "../mycook" }
    other = { git = "https://example.com/other.git", ref = "v1.0.0" }
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any

from larder.config import LarderSettings
from larder.core.cookbook_store import CookbookStore
from larder.core.source import Source
from larder.errors import APIClientError, ManifestError
from larder.models.cookbook import CachedCookbook
from larder.models.dependency import Dependency, LocationKind

if TYPE_CHECKING:
    from larder.core.lockfile import Lockfile

logger = logging.getLogger(__name__)


class Manifest:
    """Declared dependencies plus the sources that can satisfy them.

    Parameters
    ----------
    path:
        Location of the manifest file; relative ``path`` dependencies and the
        lock file are resolved next to it.
    sources:
        Sources in priority order.
    dependencies:
        Declared dependencies; names must be unique.
    store:
        Local cookbook store used to hydrate dependencies.
    settings:
        Runtime settings; defaults to a fresh ``LarderSettings``.
    """

    def __init__(
        self,
        path: Path,
        sources: list[Source],
        dependencies: list[Dependency],
        store: CookbookStore,
        settings: LarderSettings | None = None,
    ) -> None:
        self.path = Path(path)
        self.sources = list(sources)
        self.store = store
        self.settings = settings or LarderSettings()
        self._dependencies: dict[str, Dependency] = {}
        for dependency in dependencies:
            if dependency.name in self._dependencies:
                raise ManifestError(f"Dependency '{dependency.name}' is declared twice")
            self._dependencies[dependency.name] = dependency
        self._lockfile: Lockfile | None = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path, settings: LarderSettings | None = None) -> Manifest:
        """Parse a TOML manifest.

        Raises
        ------
        ManifestError
            If the file is missing, is not valid TOML, or declares invalid
            dependencies.
        """
        settings = settings or LarderSettings()
        path = Path(path)
        try:
            raw = tomllib.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ManifestError(f"Manifest not found: {path}") from exc
        except tomllib.TOMLDecodeError as exc:
            raise ManifestError(f"Invalid manifest {path}: {exc}") from exc

        source_uris = raw.get("sources", [])
        if isinstance(source_uris, str):
            source_uris = [source_uris]
        if not isinstance(source_uris, list):
            raise ManifestError("'sources' must be a list of URIs")
        sources = [
            Source.for_uri(
                _resolve_source_uri(uri, path.parent),
                timeout=settings.http_timeout,
                user_agent=settings.user_agent,
            )
            for uri in source_uris
        ]

        declared = raw.get("dependencies", {})
        if not isinstance(declared, dict):
            raise ManifestError("'dependencies' must be a table")
        dependencies = [parse_dependency(name, spec) for name, spec in declared.items()]

        manifest = cls(
            path,
            sources,
            dependencies,
            CookbookStore(settings.store_path),
            settings,
        )
        for dependency in manifest.dependencies():
            manifest.hydrate(dependency)
        logger.info(
            "Loaded manifest %s: %d sources, %d dependencies",
            path, len(sources), len(dependencies),
        )
        return manifest

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def root(self) -> Path:
        return self.path.parent

    @property
    def lockfile_path(self) -> Path:
        return self.root / self.settings.lockfile_name

    @property
    def lockfile(self) -> Lockfile:
        """The lock file next to this manifest, loaded on first access."""
        if self._lockfile is None:
            from larder.core.lockfile import Lockfile

            self._lockfile = Lockfile.from_manifest(self)
        return self._lockfile

    def dependencies(self) -> list[Dependency]:
        return list(self._dependencies.values())

    def find(self, name: str) -> Dependency | None:
        return self._dependencies.get(name)

    def has_dependency(self, dependency: Dependency | str) -> bool:
        """True if the manifest declares *dependency* directly."""
        name = dependency if isinstance(dependency, str) else dependency.name
        return name in self._dependencies

    def source_for(self, name: str, version: str) -> Source | None:
        """Return the first source whose universe holds ``(name, version)``."""
        for source in self.sources:
            try:
                if source.cookbook(name, version) is not None:
                    return source
            except APIClientError as exc:
                logger.warning("Skipping source %s: %s", source, exc)
        return None

    # ------------------------------------------------------------------
    # Hydration
    # ------------------------------------------------------------------

    def hydrate(self, dependency: Dependency) -> Dependency:
        """Attach the local cookbook backing *dependency*, if any.

        Path dependencies are read straight from disk. Registry and git
        dependencies are looked up in the store by their locked version.

        Raises
        ------
        ManifestError
            If a path dependency does not point at a cookbook.
        """
        if dependency.location_kind is LocationKind.PATH:
            target = self.resolve_path(dependency)
            try:
                cookbook = CachedCookbook.from_path(target)
            except (FileNotFoundError, ValueError) as exc:
                raise ManifestError(f"Path dependency {dependency.name}: {exc}") from exc
            if cookbook.name != dependency.name:
                raise ManifestError(
                    f"Path dependency {dependency.name} points at cookbook '{cookbook.name}'"
                )
            dependency.cache(cookbook)
        elif dependency.locked_version is not None:
            dependency.cache(self.store.cookbook(dependency.name, dependency.locked_version))
        return dependency

    def resolve_path(self, dependency: Dependency) -> Path:
        path = Path(dependency.path or ".")
        return path if path.is_absolute() else (self.root / path).resolve()


def parse_dependency(name: str, spec: Any) -> Dependency:
    """Build a ``Dependency`` from one ``[dependencies]`` entry.

    Raises
    ------
    ManifestError
        If the entry is neither a constraint string nor a valid table.
    """
    try:
        if isinstance(spec, str):
            return Dependency(name=name, version_constraint=spec)
        if not isinstance(spec, dict):
            raise ManifestError(f"Dependency '{name}' must be a string or a table")

        unknown = set(spec) - {"version", "path", "git", "ref", "branch", "tag"}
        if unknown:
            raise ManifestError(f"Dependency '{name}' has unknown keys: {sorted(unknown)}")
        if "path" in spec and "git" in spec:
            raise ManifestError(f"Dependency '{name}' cannot have both 'path' and 'git'")

        kind = LocationKind.REGISTRY
        if "path" in spec:
            kind = LocationKind.PATH
        elif "git" in spec:
            kind = LocationKind.GIT
        return Dependency(
            name=name,
            version_constraint=spec.get("version"),
            location_kind=kind,
            path=spec.get("path"),
            git=spec.get("git"),
            ref=spec.get("ref") or spec.get("tag") or spec.get("branch"),
        )
    except ValueError as exc:
        raise ManifestError(f"Invalid dependency '{name}': {exc}") from exc


def _resolve_source_uri(uri: str, base: Path) -> str:
    if "://" in uri:
        return uri
    path = Path(uri)
    return str(path if path.is_absolute() else (base / path).resolve())
