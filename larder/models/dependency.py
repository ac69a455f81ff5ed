"""Declared cookbook dependencies."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, field_validator

from larder.core.constraints import Constraint, Version
from larder.models.cookbook import CachedCookbook

DEFAULT_CONSTRAINT = ">= 0.0.0"


class LocationKind(str, Enum):
    """Where a dependency's cookbook comes from."""

    REGISTRY = "registry"
    PATH = "path"
    GIT = "git"


class Dependency(BaseModel):
    """A requirement on a cookbook, possibly already materialized locally.

    Mutable tracking record: ``locked_version`` is set once trust or
    resolution picks a concrete version, and ``cached_cookbook`` once a local
    copy exists. ``downloaded`` is derived from ``cached_cookbook`` so the two
    can never disagree.

    Dependencies order by name, which makes install order deterministic.
    """

    name: str
    version_constraint: str = DEFAULT_CONSTRAINT
    locked_version: str | None = None
    location_kind: LocationKind = LocationKind.REGISTRY
    path: Path | None = None
    git: str | None = None
    ref: str | None = None
    revision: str | None = None
    cached_cookbook: CachedCookbook | None = None

    @field_validator("version_constraint", mode="before")
    @classmethod
    def _normalize_constraint(cls, value: str | None) -> str:
        return str(Constraint.parse(value))

    @field_validator("locked_version", mode="before")
    @classmethod
    def _normalize_locked(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return str(Version.parse(value))

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def constraint(self) -> Constraint:
        return Constraint.parse(self.version_constraint)

    @property
    def downloaded(self) -> bool:
        """True once a local cookbook backs this dependency."""
        return self.cached_cookbook is not None

    @property
    def scm_location(self) -> bool:
        return self.location_kind is LocationKind.GIT

    @property
    def has_location(self) -> bool:
        return self.location_kind is not LocationKind.REGISTRY

    def location_key(self) -> tuple[str, str, str, str]:
        """Comparable identity of the location (kind, path, git, ref)."""
        return (
            self.location_kind.value,
            str(self.path or ""),
            self.git or "",
            self.ref or "",
        )

    def cache(self, cookbook: CachedCookbook | None) -> None:
        """Attach (or detach) the local cookbook backing this dependency."""
        self.cached_cookbook = cookbook
        if cookbook is not None:
            self.locked_version = cookbook.version

    def lock(self, version: str) -> None:
        """Pin a concrete version, dropping a cached cookbook of another version."""
        self.locked_version = str(Version.parse(version))
        if self.cached_cookbook is not None and self.cached_cookbook.version != self.locked_version:
            self.cached_cookbook = None

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Dependency):
            return NotImplemented
        return self.name < other.name

    def __str__(self) -> str:
        text = f"{self.name} ({self.locked_version or self.version_constraint})"
        if self.location_kind is LocationKind.PATH:
            text += f" from path '{self.path}'"
        elif self.location_kind is LocationKind.GIT:
            text += f" from git '{self.git}'"
            if self.ref:
                text += f" at '{self.ref}'"
        return text
