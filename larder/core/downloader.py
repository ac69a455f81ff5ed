"""Cookbook downloader — moves a cookbook from its source into a local stash.

The downloader asks the manifest which source serves ``(name, version)``
and then follows the location the source advertises:

  - ``path``: the cookbook already lives on local disk; the stash is that
    directory itself.
  - ``uri``:  a ``.tar.gz`` archive fetched over HTTP and unpacked into
    a fresh stash directory.

Stashes are scratch space. The store copies what it needs during import
and ``cleanup()`` removes everything the downloader created.
"""

from __future__ import annotations

import logging
import shutil
import tarfile
import uuid
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urljoin

import httpx

from larder.errors import DownloadError, NoSourceForVersionError
from larder.models.cookbook import METADATA_FILE, RemoteCookbook

if TYPE_CHECKING:
    from larder.core.manifest import Manifest

logger = logging.getLogger(__name__)


class Downloader:
    """Fetches cookbook artifacts into stash directories.

    Parameters
    ----------
    manifest:
        Used to locate the source serving a cookbook.
    stash_path:
        Scratch directory for archives and unpacked trees.
    timeout:
        HTTP timeout in seconds.
    retries:
        Extra attempts after a failed HTTP transfer.
    transport:
        Optional httpx transport; tests pass ``httpx.MockTransport``.
    """

    def __init__(
        self,
        manifest: Manifest,
        stash_path: Path,
        *,
        timeout: float = 30.0,
        retries: int = 2,
        user_agent: str = "larder/0.1",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.manifest = manifest
        self._stash_root = Path(stash_path)
        self._timeout = timeout
        self._retries = max(0, retries)
        self._user_agent = user_agent
        self._transport = transport
        self._created: list[Path] = []

    def download(self, name: str, version: str) -> Path:
        """Return a local directory holding the cookbook tree.

        Raises
        ------
        NoSourceForVersionError
            If no configured source serves ``(name, version)``.
        DownloadError
            If the transfer or unpacking fails.
        """
        source = self.manifest.source_for(name, version)
        if source is None:
            raise NoSourceForVersionError(name, version)
        remote = source.cookbook(name, version)
        if remote is None:
            raise NoSourceForVersionError(name, version)

        if remote.location_type == "path":
            stash = Path(remote.location_path)
            if not (stash / METADATA_FILE).is_file():
                raise DownloadError(f"{remote} is missing from {stash}")
            logger.debug("  Using local tree %s for %s", stash, remote)
            return stash

        if remote.location_type == "uri":
            return self._fetch_archive(remote)

        raise DownloadError(
            f"Unsupported location type '{remote.location_type}' for {remote}"
        )

    def cleanup(self) -> None:
        """Remove every stash this downloader created."""
        for path in self._created:
            shutil.rmtree(path, ignore_errors=True)
        self._created.clear()

    # ------------------------------------------------------------------
    # HTTP archives
    # ------------------------------------------------------------------

    def _fetch_archive(self, remote: RemoteCookbook) -> Path:
        url = remote.location_path
        if remote.source_uri and not _is_absolute_url(url):
            url = urljoin(remote.source_uri.rstrip("/") + "/", url)

        work = self._stash_root / f"{remote.name}-{remote.version}-{uuid.uuid4().hex[:8]}"
        work.mkdir(parents=True, exist_ok=True)
        self._created.append(work)
        archive = work / "cookbook.tar.gz"

        last_error: Exception | None = None
        for attempt in range(1, self._retries + 2):
            try:
                self._transfer(url, archive)
                break
            except httpx.HTTPError as exc:
                last_error = exc
                logger.warning(
                    "Download of %s failed (attempt %d/%d): %s",
                    remote, attempt, self._retries + 1, exc,
                )
        else:
            raise DownloadError(f"Failed to download {remote} from {url}: {last_error}")

        return self._unpack(remote, archive, work / "tree")

    def _transfer(self, url: str, dest: Path) -> None:
        logger.debug("  GET %s", url)
        with httpx.Client(
            timeout=self._timeout,
            headers={"User-Agent": self._user_agent},
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            with client.stream("GET", url) as resp:
                resp.raise_for_status()
                with dest.open("wb") as fh:
                    for chunk in resp.iter_bytes():
                        fh.write(chunk)

    @staticmethod
    def _unpack(remote: RemoteCookbook, archive: Path, dest: Path) -> Path:
        try:
            with tarfile.open(archive, "r:*") as tar:
                tar.extractall(dest, filter="data")
        except (tarfile.TarError, OSError) as exc:
            raise DownloadError(f"Cannot unpack archive for {remote}: {exc}") from exc

        if (dest / METADATA_FILE).is_file():
            return dest
        children = [p for p in dest.iterdir() if p.is_dir()]
        if len(children) == 1 and (children[0] / METADATA_FILE).is_file():
            return children[0]
        raise DownloadError(f"Archive for {remote} does not contain {METADATA_FILE}")


def _is_absolute_url(url: str) -> bool:
    return "://" in url
