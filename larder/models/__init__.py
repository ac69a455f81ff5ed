"""larder data models — Pydantic v2."""

from larder.models.cookbook import CachedCookbook, RemoteCookbook, read_metadata
from larder.models.dependency import DEFAULT_CONSTRAINT, Dependency, LocationKind
from larder.models.lockfile import (
    LOCKFILE_VERSION,
    GraphItem,
    LockedDependencyRecord,
    LockfileDocument,
)

__all__ = [
    # cookbooks
    "CachedCookbook",
    "RemoteCookbook",
    "read_metadata",
    # dependencies
    "DEFAULT_CONSTRAINT",
    "Dependency",
    "LocationKind",
    # lock file
    "LOCKFILE_VERSION",
    "GraphItem",
    "LockedDependencyRecord",
    "LockfileDocument",
]
