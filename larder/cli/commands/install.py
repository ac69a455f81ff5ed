"""``larder install`` — resolve, download and lock the manifest's cookbooks.

Reads ``larder.toml``, runs the installer, writes ``larder.lock`` and
prints the installed cookbooks.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from larder.cli.reporter import RichReporter, configure_logging
from larder.config import LarderSettings
from larder.core.installer import Installer
from larder.core.manifest import Manifest
from larder.errors import LarderError

console = Console()


def install_cmd(
    manifest_path: Path = typer.Option(
        Path("larder.toml"),
        "--manifest",
        "-m",
        help="Path to the manifest file.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """Install the cookbooks declared in the manifest.

    Uses the lock file when it still matches the manifest; otherwise
    resolves against every configured source and rewrites the lock file.
    """
    settings = LarderSettings()
    configure_logging(verbose, settings.log_level)
    try:
        manifest = Manifest.load(manifest_path, settings)
        installer = Installer(manifest, reporter=RichReporter(console))
        cookbooks = installer.run()
    except LarderError as exc:
        console.print(f"[bold red]{type(exc).__name__}:[/bold red] {exc}")
        raise typer.Exit(code=1)

    table = Table(title="Installed Cookbooks")
    table.add_column("Name", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Path", style="dim")
    for cookbook in cookbooks:
        table.add_row(cookbook.name, cookbook.version, str(cookbook.path))

    console.print()
    console.print(table)
    console.print(f"[dim]Lock file written to {manifest.lockfile_path}[/dim]")
