"""Adversarial tests — the lock file is never written by a failed run.

A run that fails at any stage (resolution, download, import) must leave the
lock file byte-for-byte as it was. Corrupt lock files are rejected up front
rather than silently replaced.
"""

from __future__ import annotations

import json
import shutil
from pathlib import Path

import pytest

from larder.core.installer import Installer
from larder.core.manifest import Manifest
from larder.core.reporter import RecordingReporter
from larder.errors import (
    DownloadError,
    LockfileError,
    NoSourceForVersionError,
    UnresolvableConstraintError,
)


def _installed(manifest: Manifest) -> list:
    return Installer(manifest, reporter=RecordingReporter()).run()


# ---------------------------------------------------------------------------
# Test: failed runs leave the lock file alone
# ---------------------------------------------------------------------------


class TestFailedRunsDoNotWrite:
    """Every failure mode aborts before the lock file is saved."""

    def test_unresolvable_keeps_previous_lock(self, make_manifest, make_source, project_dir):
        """An unsatisfiable manifest change must not touch the existing lock."""
        source = make_source(cookbooks=[("nginx", "1.0.0")])
        _installed(make_manifest({"nginx": ">= 1.0"}, [source]))
        lock_path = project_dir / "larder.lock"
        before = lock_path.read_text(encoding="utf-8")

        manifest = make_manifest({"nginx": ">= 5.0"}, [source])
        with pytest.raises(UnresolvableConstraintError):
            _installed(manifest)

        assert lock_path.read_text(encoding="utf-8") == before

    def test_download_failure_writes_nothing(self, make_manifest, make_source, project_dir, store):
        """A download failing after earlier installs succeeded must not save a lock."""
        source = make_source(cookbooks=[("nginx", "1.0.0", {"apt": ">= 2.0"}), ("apt", "2.0.0")])
        shutil.rmtree(source.cookbook("nginx", "1.0.0").location_path)

        with pytest.raises(DownloadError):
            _installed(make_manifest({"nginx": ">= 1.0"}, [source]))

        # apt sorts first and is already imported; the lock still says nothing.
        assert store.exists("apt", "2.0.0")
        assert not (project_dir / "larder.lock").exists()

    def test_no_temp_lock_left_behind(self, make_manifest, make_source, project_dir):
        """Atomic save leaves only the final lock file in the project."""
        source = make_source(cookbooks=[("nginx", "1.0.0")])
        _installed(make_manifest({"nginx": ">= 1.0"}, [source]))

        assert sorted(p.name for p in project_dir.iterdir()) == ["larder.lock"]


# ---------------------------------------------------------------------------
# Test: corrupt lock files
# ---------------------------------------------------------------------------


class TestCorruptLockfile:
    """A damaged lock file is an error, never a silent re-resolve."""

    @pytest.mark.parametrize(
        "text",
        [
            "{not json",
            json.dumps([1, 2, 3]),
            json.dumps({"graph": {"nginx": {"dependencies": {}}}}),
            json.dumps({"dependencies": {"nginx": {"constraint": "whatever"}}}),
        ],
        ids=["syntax", "not-an-object", "graph-item-without-version", "bad-constraint"],
    )
    def test_rejected_and_left_in_place(self, make_manifest, make_source, project_dir, text):
        lock_path = project_dir / "larder.lock"
        lock_path.write_text(text, encoding="utf-8")
        manifest = make_manifest({"nginx": ">= 1.0"}, [make_source(cookbooks=[("nginx", "1.0.0")])])

        with pytest.raises(LockfileError):
            Installer(manifest)

        assert lock_path.read_text(encoding="utf-8") == text

    def test_unsupported_version(self, make_manifest, project_dir):
        (project_dir / "larder.lock").write_text(json.dumps({"lockfile_version": 99}))
        with pytest.raises(LockfileError, match="Unsupported lock file version 99"):
            make_manifest().lockfile

    def test_lock_tampered_to_unserved_version(
        self, make_manifest, make_source, write_lockfile, project_dir
    ):
        """A trusted lock naming a version no source serves fails cleanly."""
        lock_path: Path = write_lockfile(
            {"nginx": {"constraint": ">= 1.0", "locked_version": "1.9.9"}},
            {"nginx": ("1.9.9", {})},
        )
        before = lock_path.read_text(encoding="utf-8")
        manifest = make_manifest({"nginx": ">= 1.0"}, [make_source(cookbooks=[("nginx", "1.0.0")])])

        with pytest.raises(NoSourceForVersionError):
            _installed(manifest)

        assert lock_path.read_text(encoding="utf-8") == before
