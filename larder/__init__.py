"""Larder: cookbook dependency installer with a trusted lock file.

Reads a ``larder.toml`` manifest, resolves its cookbooks against one or
more sources, installs them into a shared content-checked store and
records the outcome in ``larder.lock``:
  - Concurrent per-source universe fetch, tolerant of failed sources
  - Lock file fast path when the lock still satisfies the manifest
  - Greedy constraint resolution pinned to what is already on disk
  - Path and git locations alongside registry cookbooks
"""

__version__ = "0.1.0"
__author__ = "Larder contributors"
__description__ = "Cookbook dependency installer with a trusted lock file"

from larder.core.installer import Installer
from larder.core.manifest import Manifest
from larder.cli.app import app as cli

__all__ = ["Installer", "Manifest", "cli", "__version__"]
