"""SCM locations — cookbooks checked out from git.

A git dependency is materialized before resolution because its own
metadata may add constraints the resolver has to see. The checkout is
imported into the store like any downloaded cookbook, keyed by the
``(name, version)`` its metadata declares.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

from larder.core.cookbook_store import CookbookStore
from larder.errors import ScmError
from larder.models.cookbook import CachedCookbook, read_metadata
from larder.models.dependency import Dependency

logger = logging.getLogger(__name__)


class GitFetcher:
    """Clones git locations and imports them into the store.

    Parameters
    ----------
    store:
        Destination for checked-out cookbooks.
    git:
        The git executable.
    """

    def __init__(self, store: CookbookStore, git: str = "git") -> None:
        self.store = store
        self._git = git

    def download(self, dependency: Dependency) -> CachedCookbook:
        """Check out *dependency* and attach the resulting cookbook to it.

        Raises
        ------
        ScmError
            If the dependency is not a git location, git fails, or the
            checkout is not a cookbook of the expected name.
        """
        if not dependency.scm_location or not dependency.git:
            raise ScmError(f"{dependency} is not a git location")

        workdir = Path(tempfile.mkdtemp(prefix="larder-git-"))
        try:
            checkout = workdir / dependency.name
            self._run(["clone", "--quiet", dependency.git, str(checkout)])
            ref = dependency.revision or dependency.ref
            if ref:
                self._run(["checkout", "--quiet", ref], cwd=checkout)
            revision = self._run(["rev-parse", "HEAD"], cwd=checkout).strip()

            try:
                meta = read_metadata(checkout)
            except (FileNotFoundError, ValueError) as exc:
                raise ScmError(f"{dependency.git} is not a cookbook: {exc}") from exc
            if meta["name"] != dependency.name:
                raise ScmError(
                    f"{dependency.git} holds cookbook '{meta['name']}', expected '{dependency.name}'"
                )

            cookbook = self.store.import_cookbook(
                dependency.name, str(meta["version"]), checkout
            )
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

        dependency.revision = revision
        dependency.cache(cookbook)
        logger.info("Checked out %s at %s", dependency, revision[:12])
        return cookbook

    def _run(self, args: list[str], cwd: Path | None = None) -> str:
        cmd = [self._git, *args]
        logger.debug("  $ %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd, cwd=cwd, check=True, capture_output=True, text=True,
            )
        except FileNotFoundError as exc:
            raise ScmError(f"git executable not found: {self._git}") from exc
        except subprocess.CalledProcessError as exc:
            raise ScmError(
                f"git {args[0]} failed ({exc.returncode}): {exc.stderr.strip()}"
            ) from exc
        return result.stdout
