"""``larder universe`` — pre-warm every source's cookbook index."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from larder.cli.reporter import RichReporter
from larder.config import LarderSettings
from larder.core.installer import Installer
from larder.core.manifest import Manifest
from larder.errors import LarderError

console = Console()


def universe_cmd(
    manifest_path: Path = typer.Option(
        Path("larder.toml"),
        "--manifest",
        "-m",
        help="Path to the manifest file.",
    ),
) -> None:
    """Fetch the cookbook index of every configured source."""
    try:
        manifest = Manifest.load(manifest_path, LarderSettings())
        Installer(manifest, reporter=RichReporter(console)).build_universe()
    except LarderError as exc:
        console.print(f"[bold red]{type(exc).__name__}:[/bold red] {exc}")
        raise typer.Exit(code=1)

    table = Table(title="Sources")
    table.add_column("Source", style="cyan")
    table.add_column("Cookbooks", justify="right")
    table.add_column("Versions", justify="right")
    for source in manifest.sources:
        universe = source.universe
        table.add_row(
            source.uri,
            str(len({c.name for c in universe})),
            str(len(universe)),
        )
    console.print(table)
