"""Shared test fixtures for larder."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from larder.config import LarderSettings
from larder.core.cookbook_store import CookbookStore
from larder.core.manifest import Manifest, parse_dependency
from larder.core.source import Source
from larder.errors import APIClientError
from larder.models.cookbook import RemoteCookbook


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def settings(tmp_dir: Path) -> LarderSettings:
    """Settings whose home, store and stash live under the temp directory."""
    return LarderSettings(home=tmp_dir / "home")


@pytest.fixture
def store(settings: LarderSettings) -> CookbookStore:
    """Provide a fresh CookbookStore in a temp directory."""
    return CookbookStore(settings.store_path)


@pytest.fixture
def project_dir(tmp_dir: Path) -> Path:
    """Directory holding the manifest and lock file under test."""
    path = tmp_dir / "project"
    path.mkdir()
    return path


# ---------------------------------------------------------------------------
# Cookbook trees
# ---------------------------------------------------------------------------


def write_cookbook(
    path: Path,
    name: str,
    version: str,
    dependencies: dict[str, str] | None = None,
    files: dict[str, str] | None = None,
) -> Path:
    """Write a minimal cookbook tree (metadata.json plus optional files)."""
    path.mkdir(parents=True, exist_ok=True)
    metadata = {"name": name, "version": version, "dependencies": dependencies or {}}
    (path / "metadata.json").write_text(json.dumps(metadata), encoding="utf-8")
    for rel, content in (files or {"recipes/default.rb": f"# {name} {version}\n"}).items():
        target = path / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def make_cookbook(tmp_dir: Path) -> Callable[..., Path]:
    """Factory fixture: write a cookbook tree under ``tmp_dir/trees``.

    ``root`` replaces ``tmp_dir/trees``; ``path`` names the tree directory
    outright.
    """

    def _factory(
        name: str,
        version: str,
        dependencies: dict[str, str] | None = None,
        root: Path | None = None,
        path: Path | None = None,
        **kwargs: Any,
    ) -> Path:
        target = path or (root or tmp_dir / "trees") / f"{name}-{version}"
        return write_cookbook(target, name, version, dependencies, **kwargs)

    return _factory


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


class StubClient:
    """In-memory ``SourceClient`` that counts universe fetches.

    Parameters
    ----------
    cookbooks:
        The universe to serve.
    error:
        If set, every fetch raises this instead.
    """

    def __init__(
        self,
        cookbooks: list[RemoteCookbook] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.cookbooks = list(cookbooks or [])
        self.error = error
        self.calls = 0
        self.threads: list[str] = []
        self._lock = threading.Lock()

    def universe(self) -> list[RemoteCookbook]:
        with self._lock:
            self.calls += 1
            self.threads.append(threading.current_thread().name)
        if self.error is not None:
            raise self.error
        return list(self.cookbooks)


@pytest.fixture
def make_client() -> Callable[..., StubClient]:
    """Factory fixture: a bare ``StubClient``."""
    return StubClient


@pytest.fixture
def make_remote(make_cookbook: Callable[..., Path]) -> Callable[..., RemoteCookbook]:
    """Factory fixture: a path-located universe entry backed by a real tree."""

    def _factory(
        name: str,
        version: str,
        dependencies: dict[str, str] | None = None,
        source_uri: str = "stub://source",
    ) -> RemoteCookbook:
        tree = make_cookbook(name, version, dependencies)
        return RemoteCookbook(
            name=name,
            version=version,
            location_type="path",
            location_path=str(tree),
            dependencies=dependencies or {},
            source_uri=source_uri,
        )

    return _factory


@pytest.fixture
def make_source(make_remote: Callable[..., RemoteCookbook]) -> Callable[..., Source]:
    """Factory fixture: a ``Source`` over a ``StubClient``.

    ``cookbooks`` is a list of ``(name, version)`` or
    ``(name, version, dependencies)`` tuples. The stub client is reachable as
    ``source.client``.
    """

    def _factory(
        uri: str = "stub://source",
        cookbooks: list[tuple] | None = None,
        error: Exception | None = None,
    ) -> Source:
        remotes = [make_remote(*entry, source_uri=uri) for entry in cookbooks or []]
        client = StubClient(remotes, error)
        source = Source(uri, client)
        source.client = client
        return source

    return _factory


@pytest.fixture
def failing_source(make_source: Callable[..., Source]) -> Source:
    """A source whose universe fetch always fails."""
    return make_source(
        "stub://broken",
        error=APIClientError("connection refused", uri="stub://broken"),
    )


# ---------------------------------------------------------------------------
# Manifests
# ---------------------------------------------------------------------------


@pytest.fixture
def make_manifest(
    project_dir: Path,
    store: CookbookStore,
    settings: LarderSettings,
) -> Callable[..., Manifest]:
    """Factory fixture: a hydrated ``Manifest`` as ``Manifest.load`` builds it.

    ``dependencies`` uses the ``[dependencies]`` table syntax of
    ``larder.toml``.
    """

    def _factory(
        dependencies: dict[str, Any] | None = None,
        sources: list[Source] | None = None,
    ) -> Manifest:
        manifest = Manifest(
            project_dir / "larder.toml",
            sources or [],
            [parse_dependency(name, spec) for name, spec in (dependencies or {}).items()],
            store,
            settings,
        )
        for dependency in manifest.dependencies():
            manifest.hydrate(dependency)
        return manifest

    return _factory


@pytest.fixture
def write_lockfile(project_dir: Path) -> Callable[..., Path]:
    """Factory fixture: write ``larder.lock`` from plain dicts.

    ``dependencies`` maps name to a lock record; ``graph`` maps name to
    ``(version, dependencies)``.
    """

    def _factory(
        dependencies: dict[str, dict[str, Any]],
        graph: dict[str, tuple[str, dict[str, str]]],
    ) -> Path:
        path = project_dir / "larder.lock"
        document = {
            "lockfile_version": 1,
            "dependencies": dependencies,
            "graph": {
                name: {"name": name, "version": version, "dependencies": deps}
                for name, (version, deps) in graph.items()
            },
        }
        path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        return path

    return _factory
