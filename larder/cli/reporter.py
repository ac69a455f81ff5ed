"""Rich front end for installer progress events."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from larder.core.source import Source
    from larder.models.cookbook import RemoteCookbook
    from larder.models.dependency import Dependency


class RichReporter:
    """Prints installer progress to a Rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def msg(self, message: str) -> None:
        self.console.print(message, highlight=False)

    def warn(self, message: str) -> None:
        self.console.print(f"[yellow]{message}[/yellow]", highlight=False)

    def use(self, dependency: Dependency) -> None:
        version = dependency.locked_version or dependency.version_constraint
        line = f"Using [cyan]{dependency.name}[/cyan] ({version})"
        if dependency.path is not None:
            line += f" from [dim]{dependency.path}[/dim]"
        elif dependency.git:
            line += f" from [dim]{dependency.git}[/dim]"
        self.console.print(line, highlight=False)

    def install(self, source: Source, cookbook: RemoteCookbook) -> None:
        self.console.print(
            f"[green]Installing[/green] [cyan]{cookbook.name}[/cyan] ({cookbook.version}) "
            f"from [dim]{source.uri}[/dim]",
            highlight=False,
        )

    def fetch(self, dependency: Dependency) -> None:
        self.console.print(f"Fetching [cyan]{dependency.name}[/cyan] from {dependency.git}", highlight=False)


def configure_logging(verbose: bool = False, level: str = "INFO") -> None:
    """Route the root logger through Rich; ``verbose`` forces DEBUG."""
    logging.basicConfig(
        level="DEBUG" if verbose else level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
        force=True,
    )
