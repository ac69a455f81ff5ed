"""``larder show`` — print the lock file's top-level locks and graph."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from larder.config import LarderSettings
from larder.core.manifest import Manifest
from larder.errors import LarderError

console = Console()


def show_cmd(
    manifest_path: Path = typer.Option(
        Path("larder.toml"),
        "--manifest",
        "-m",
        help="Path to the manifest file.",
    ),
) -> None:
    """Show what the lock file records."""
    try:
        manifest = Manifest.load(manifest_path, LarderSettings())
        lockfile = manifest.lockfile
    except LarderError as exc:
        console.print(f"[bold red]{type(exc).__name__}:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if not lockfile.present():
        console.print(f"[dim]No lock file at {manifest.lockfile_path}. Run: larder install[/dim]")
        return

    table = Table(title="Locked Dependencies")
    table.add_column("Name", style="cyan")
    table.add_column("Constraint")
    table.add_column("Locked", style="green")
    table.add_column("Location", style="dim")
    for dependency in sorted(lockfile.dependencies()):
        location = str(dependency.path or dependency.git or "")
        table.add_row(
            dependency.name,
            dependency.version_constraint,
            dependency.locked_version or "-",
            location,
        )
    console.print(table)

    tree = Tree("[bold]Graph[/bold]")
    for name, item in sorted(lockfile.graph.items().items()):
        branch = tree.add(f"[cyan]{name}[/cyan] ({item.version})")
        for child, constraint in sorted(item.dependencies.items()):
            branch.add(f"{child} {constraint}")
    console.print(tree)

    trust = "[green]trusted[/green]" if lockfile.trusted() else "[yellow]stale[/yellow]"
    console.print(f"Lock file is {trust}")
