"""Canonical hashing helpers for content addressing cookbook trees."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

# Files that never contribute to a cookbook's identity.
IGNORED_NAMES = frozenset({".git", ".larder-stash", "__pycache__"})


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def content_address(obj: Any) -> str:
    """Content-address a JSON-serializable object as ``sha256:<hex>``."""
    return f"sha256:{sha256_hex(canonical_json_bytes(obj))}"


def tree_digests(root: Path) -> dict[str, str]:
    """Map every file under *root* (relative POSIX path) to its SHA-256."""
    digests: dict[str, str] = {}
    for file_path in sorted(root.rglob("*")):
        rel = file_path.relative_to(root)
        if any(part in IGNORED_NAMES for part in rel.parts):
            continue
        if file_path.is_file():
            digests[rel.as_posix()] = sha256_hex(file_path.read_bytes())
    return digests


def tree_address(root: Path) -> str:
    """Content address of a directory tree.

    Two trees with the same relative paths and file bytes share an address,
    regardless of where they live on disk.
    """
    return content_address(tree_digests(root))
