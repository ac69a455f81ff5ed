"""Cookbook sources and the clients that fetch their universe.

A ``Source`` wraps one origin (an HTTP API or a local directory) and owns
the universe it serves. The universe is an index of every ``(name, version)``
the source can deliver, along with each version's own dependencies.

Clients are pluggable: anything with a ``universe() -> list[RemoteCookbook]``
method satisfies the ``SourceClient`` protocol.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlparse

import httpx

from larder.core.constraints import Version, sort_versions
from larder.errors import APIClientError
from larder.models.cookbook import METADATA_FILE, RemoteCookbook, read_metadata

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: float = 30.0
USER_AGENT: str = "larder/0.1"


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class SourceClient(Protocol):
    """Protocol for universe backends."""

    def universe(self) -> list[RemoteCookbook]:
        """Return every cookbook version the backend serves.

        Raises
        ------
        APIClientError
            If the backend cannot be reached or answers garbage.
        """
        ...


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


class ApiClient:
    """Fetches ``{uri}/universe`` over HTTP.

    Parameters
    ----------
    uri:
        Base URI of the source API.
    timeout:
        Request timeout in seconds.
    transport:
        Optional httpx transport; tests pass ``httpx.MockTransport``.
    """

    def __init__(
        self,
        uri: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = USER_AGENT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.uri = uri.rstrip("/")
        self._timeout = timeout
        self._user_agent = user_agent
        self._transport = transport

    def universe(self) -> list[RemoteCookbook]:
        url = f"{self.uri}/universe"
        try:
            with httpx.Client(
                timeout=self._timeout,
                headers={"User-Agent": self._user_agent, "Accept": "application/json"},
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                resp = client.get(url)
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPStatusError as exc:
            raise APIClientError(
                f"HTTP {exc.response.status_code} from {url}", uri=self.uri
            ) from exc
        except httpx.HTTPError as exc:
            raise APIClientError(f"Request to {url} failed: {exc}", uri=self.uri) from exc
        except ValueError as exc:
            raise APIClientError(f"Invalid JSON from {url}: {exc}", uri=self.uri) from exc
        return parse_universe(payload, source_uri=self.uri)


class DirectoryClient:
    """Serves cookbook trees from a local directory.

    Recognized layouts: ``{root}/{name}/{version}/metadata.json`` and
    ``{root}/{name}-{version}/metadata.json``.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.uri = self.root.as_uri() if self.root.is_absolute() else str(self.root)

    def universe(self) -> list[RemoteCookbook]:
        if not self.root.is_dir():
            raise APIClientError(f"Source directory not found: {self.root}", uri=self.uri)

        found: list[RemoteCookbook] = []
        for tree in self._cookbook_trees():
            try:
                meta = read_metadata(tree)
                found.append(
                    RemoteCookbook(
                        name=meta["name"],
                        version=str(meta["version"]),
                        location_type="path",
                        location_path=str(tree),
                        dependencies={
                            k: str(v) for k, v in (meta.get("dependencies") or {}).items()
                        },
                        source_uri=self.uri,
                    )
                )
            except (FileNotFoundError, ValueError) as exc:
                logger.warning("Skipping unreadable cookbook at %s: %s", tree, exc)
        return found

    def _cookbook_trees(self) -> list[Path]:
        trees: list[Path] = []
        for entry in sorted(self.root.iterdir()):
            if not entry.is_dir() or entry.name.startswith("."):
                continue
            if (entry / METADATA_FILE).is_file():
                trees.append(entry)
                continue
            trees.extend(
                sub for sub in sorted(entry.iterdir())
                if sub.is_dir() and (sub / METADATA_FILE).is_file()
            )
        return trees


def parse_universe(payload: Any, source_uri: str = "") -> list[RemoteCookbook]:
    """Parse a universe document ``{name: {version: {...}}}``.

    Raises
    ------
    APIClientError
        If the document does not have the expected shape.
    """
    if not isinstance(payload, dict):
        raise APIClientError("Universe document must be a JSON object", uri=source_uri)

    cookbooks: list[RemoteCookbook] = []
    for name, versions in payload.items():
        if not isinstance(versions, dict):
            raise APIClientError(f"Universe entry for '{name}' is not an object", uri=source_uri)
        for version, info in versions.items():
            if info is None:
                info = {}
            if not isinstance(info, dict):
                raise APIClientError(
                    f"Universe entry {name} ({version}) is not an object", uri=source_uri
                )
            try:
                cookbooks.append(
                    RemoteCookbook(
                        name=name,
                        version=version,
                        location_type=info.get("location_type", "uri"),
                        location_path=info.get("location_path", ""),
                        dependencies=info.get("dependencies") or {},
                        source_uri=source_uri,
                    )
                )
            except ValueError as exc:
                raise APIClientError(
                    f"Invalid universe entry {name} ({version}): {exc}", uri=source_uri
                ) from exc
    return cookbooks


# ---------------------------------------------------------------------------
# Source
# ---------------------------------------------------------------------------


class Source:
    """One cookbook origin and its universe.

    The universe is fetched by ``build_universe()``. A failed build leaves
    an empty universe behind so later lookups do not hit the network again.
    Each ``Source`` writes only its own state, which makes concurrent builds
    of different sources safe.
    """

    def __init__(self, uri: str, client: SourceClient | None = None) -> None:
        self.uri = uri
        self._client = client or _client_for(uri)
        self._universe: list[RemoteCookbook] | None = None
        self._index: dict[str, dict[str, RemoteCookbook]] = {}

    @classmethod
    def for_uri(cls, uri: str, **client_options: Any) -> Source:
        return cls(uri, _client_for(uri, **client_options))

    def build_universe(self) -> list[RemoteCookbook]:
        """Fetch this source's universe, replacing any previous one.

        Raises
        ------
        APIClientError
            If the client fails. The universe is left empty.
        """
        try:
            cookbooks = self._client.universe()
        except APIClientError:
            self._set_universe([])
            raise
        self._set_universe(cookbooks)
        logger.debug("Source %s serves %d cookbook versions", self.uri, len(cookbooks))
        return cookbooks

    @property
    def universe(self) -> list[RemoteCookbook]:
        self._ensure_universe()
        return self._universe or []

    @property
    def universe_built(self) -> bool:
        return self._universe is not None

    def cookbook(self, name: str, version: str) -> RemoteCookbook | None:
        """Return the universe entry for ``(name, version)``, if served here."""
        self._ensure_universe()
        return self._index.get(name, {}).get(str(Version.parse(version)))

    def versions(self, name: str) -> list[str]:
        """All versions of *name* this source serves, lowest first."""
        self._ensure_universe()
        return sort_versions(list(self._index.get(name, {})))

    def _ensure_universe(self) -> None:
        if self._universe is None:
            self.build_universe()

    def _set_universe(self, cookbooks: list[RemoteCookbook]) -> None:
        index: dict[str, dict[str, RemoteCookbook]] = {}
        for cookbook in cookbooks:
            index.setdefault(cookbook.name, {})[cookbook.version] = cookbook
        self._index = index
        self._universe = cookbooks

    def __str__(self) -> str:
        return self.uri

    def __repr__(self) -> str:
        return f"Source({self.uri!r})"


def _client_for(uri: str, **options: Any) -> SourceClient:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return DirectoryClient(Path(parsed.path))
    if parsed.scheme in ("http", "https"):
        return ApiClient(uri, **options)
    if Path(uri).is_dir():
        return DirectoryClient(Path(uri))
    return ApiClient(uri, **options)
