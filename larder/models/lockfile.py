"""On-disk lock file shapes."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

LOCKFILE_VERSION = 1


class GraphItem(BaseModel):
    """One resolved cookbook in the full transitive graph."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    dependencies: dict[str, str] = Field(default_factory=dict)


class LockedDependencyRecord(BaseModel):
    """A top-level declared dependency as written to the lock file."""

    model_config = ConfigDict(frozen=True)

    constraint: str
    locked_version: str | None = None
    path: str | None = None
    git: str | None = None
    ref: str | None = None
    revision: str | None = None


class LockfileDocument(BaseModel):
    """The whole lock file: top-level locks plus the full graph.

    The two views are deliberately separate: ``dependencies`` records
    declared intent, ``graph`` the full resolution. Every name in
    ``dependencies`` is also a key of ``graph``.
    """

    model_config = ConfigDict(frozen=True)

    lockfile_version: int = LOCKFILE_VERSION
    dependencies: dict[str, LockedDependencyRecord] = Field(default_factory=dict)
    graph: dict[str, GraphItem] = Field(default_factory=dict)

    @field_validator("graph", mode="before")
    @classmethod
    def _name_graph_items(cls, value: Any) -> Any:
        # Items may omit their name; the key is authoritative.
        if isinstance(value, dict):
            return {
                key: {**item, "name": key} if isinstance(item, dict) else item
                for key, item in value.items()
            }
        return value
