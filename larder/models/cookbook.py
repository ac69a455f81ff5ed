"""Cookbook models — materialized cookbooks and universe entries."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from larder.core.constraints import Constraint, Version
from larder.core.hasher import tree_address

METADATA_FILE = "metadata.json"


def read_metadata(path: Path) -> dict:
    """Load and sanity-check ``metadata.json`` from a cookbook tree.

    Raises
    ------
    FileNotFoundError
        If the tree has no metadata file.
    ValueError
        If the metadata is not a JSON object with ``name`` and ``version``,
        or its ``dependencies`` is not an object.
    """
    meta_path = path / METADATA_FILE
    if not meta_path.is_file():
        raise FileNotFoundError(f"No {METADATA_FILE} in cookbook tree: {path}")
    try:
        data = json.loads(meta_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid {METADATA_FILE} in {path}: {exc}") from exc
    if not isinstance(data, dict) or "name" not in data or "version" not in data:
        raise ValueError(f"{meta_path} must define 'name' and 'version'")
    if not isinstance(data.get("dependencies") or {}, dict):
        raise ValueError(f"{meta_path}: 'dependencies' must be an object")
    return data


class CachedCookbook(BaseModel):
    """A cookbook that exists on local disk.

    Identity is ``(name, version)``. The ``content_address`` is the
    ``sha256:<hex>`` digest of the cookbook tree, computed at load time.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    path: Path
    dependencies: dict[str, str] = Field(default_factory=dict)
    content_address: str = ""

    @field_validator("version")
    @classmethod
    def _normalize_version(cls, value: str) -> str:
        return str(Version.parse(value))

    @classmethod
    def from_path(cls, path: Path) -> CachedCookbook:
        """Build a ``CachedCookbook`` from a tree containing ``metadata.json``."""
        path = Path(path)
        meta = read_metadata(path)
        return cls(
            name=meta["name"],
            version=str(meta["version"]),
            path=path,
            dependencies={
                k: str(Constraint.parse(v)) for k, v in (meta.get("dependencies") or {}).items()
            },
            content_address=tree_address(path),
        )

    def __str__(self) -> str:
        return f"{self.name} ({self.version})"


class RemoteCookbook(BaseModel):
    """One ``(name, version)`` entry of a source's universe."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    location_type: str = "uri"  # "uri" or "path"
    location_path: str = ""
    dependencies: dict[str, str] = Field(default_factory=dict)
    source_uri: str = ""

    @field_validator("version")
    @classmethod
    def _normalize_version(cls, value: str) -> str:
        return str(Version.parse(value))

    def __str__(self) -> str:
        return f"{self.name} ({self.version})"
