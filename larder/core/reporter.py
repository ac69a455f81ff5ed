"""Progress reporting for installs.

Defines the ``InstallReporter`` Protocol that user-facing front ends
implement, along with the default ``LoggingReporter`` used when no front end
is attached. The CLI provides a Rich implementation.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from larder.core.source import Source
    from larder.models.cookbook import RemoteCookbook
    from larder.models.dependency import Dependency

logger = logging.getLogger("larder.install")


@runtime_checkable
class InstallReporter(Protocol):
    """Receives installer progress events."""

    def msg(self, message: str) -> None:
        """A general progress message."""
        ...

    def warn(self, message: str) -> None:
        """A recoverable problem, such as one source failing."""
        ...

    def use(self, dependency: Dependency) -> None:
        """*dependency* is already on disk and is used as-is."""
        ...

    def install(self, source: Source, cookbook: RemoteCookbook) -> None:
        """*cookbook* is about to be downloaded from *source*."""
        ...

    def fetch(self, dependency: Dependency) -> None:
        """An SCM *dependency* is being checked out."""
        ...


class LoggingReporter:
    """Reports through the ``larder.install`` logger."""

    def msg(self, message: str) -> None:
        logger.info(message)

    def warn(self, message: str) -> None:
        logger.warning(message)

    def use(self, dependency: Dependency) -> None:
        logger.info("Using %s", dependency)

    def install(self, source: Source, cookbook: RemoteCookbook) -> None:
        logger.info("Installing %s from %s", cookbook, source)

    def fetch(self, dependency: Dependency) -> None:
        logger.info("Fetching %s", dependency)


class RecordingReporter:
    """Keeps every event in memory; handy for tests and scripting."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def msg(self, message: str) -> None:
        self.events.append(("msg", message))

    def warn(self, message: str) -> None:
        self.events.append(("warn", message))

    def use(self, dependency: Dependency) -> None:
        self.events.append(("use", dependency.name))

    def install(self, source: Source, cookbook: RemoteCookbook) -> None:
        self.events.append(("install", f"{cookbook.name}@{cookbook.version} <- {source}"))

    def fetch(self, dependency: Dependency) -> None:
        self.events.append(("fetch", dependency.name))

    def of_kind(self, kind: str) -> list[str]:
        return [text for event, text in self.events if event == kind]
