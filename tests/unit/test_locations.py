"""Tests for GitFetcher — clone, checkout, import."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from larder.core.locations import GitFetcher
from larder.errors import ScmError
from larder.models.dependency import Dependency, LocationKind

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-c", "user.name=larder", "-c", "user.email=larder@example.com", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


@pytest.fixture
def cookbook_repo(tmp_dir: Path, make_cookbook) -> Path:
    """A git repository with v1 (0.1.0) tagged and 0.2.0 on the default branch."""
    repo = make_cookbook("other", "0.1.0", path=tmp_dir / "repos" / "other")
    _git(repo, "init", "--quiet")
    _git(repo, "add", ".")
    _git(repo, "commit", "--quiet", "-m", "0.1.0")
    _git(repo, "tag", "v1")
    make_cookbook("other", "0.2.0", path=repo)
    _git(repo, "commit", "--quiet", "-am", "0.2.0")
    return repo


def _git_dependency(url: str, ref: str | None = None, name: str = "other") -> Dependency:
    return Dependency(name=name, location_kind=LocationKind.GIT, git=url, ref=ref)


@requires_git
class TestCheckout:
    def test_default_branch(self, store, cookbook_repo):
        dependency = _git_dependency(str(cookbook_repo))

        cookbook = GitFetcher(store).download(dependency)

        assert cookbook.version == "0.2.0"
        assert dependency.downloaded
        assert dependency.locked_version == "0.2.0"
        assert dependency.revision == _git(cookbook_repo, "rev-parse", "HEAD")
        assert not (cookbook.path / ".git").exists()

    def test_ref(self, store, cookbook_repo):
        dependency = _git_dependency(str(cookbook_repo), ref="v1")

        cookbook = GitFetcher(store).download(dependency)

        assert cookbook.version == "0.1.0"
        assert dependency.revision == _git(cookbook_repo, "rev-parse", "v1")

    def test_locked_revision_beats_ref(self, store, cookbook_repo):
        dependency = _git_dependency(str(cookbook_repo), ref="v1")
        dependency.revision = _git(cookbook_repo, "rev-parse", "HEAD")

        assert GitFetcher(store).download(dependency).version == "0.2.0"

    def test_unknown_ref(self, store, cookbook_repo):
        with pytest.raises(ScmError, match="checkout failed"):
            GitFetcher(store).download(_git_dependency(str(cookbook_repo), ref="nope"))

    def test_name_mismatch(self, store, cookbook_repo):
        with pytest.raises(ScmError, match="expected 'mycook'"):
            GitFetcher(store).download(_git_dependency(str(cookbook_repo), name="mycook"))

    def test_bad_url(self, store, tmp_dir):
        with pytest.raises(ScmError, match="clone failed"):
            GitFetcher(store).download(_git_dependency(str(tmp_dir / "missing")))


class TestErrors:
    def test_not_a_git_location(self, store):
        with pytest.raises(ScmError, match="not a git location"):
            GitFetcher(store).download(Dependency(name="nginx"))

    def test_missing_git_executable(self, store):
        fetcher = GitFetcher(store, git="larder-no-such-git")
        with pytest.raises(ScmError, match="not found"):
            fetcher.download(_git_dependency("https://example.com/other.git"))
