"""``larder store`` — list cookbooks in the local store."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from larder.config import LarderSettings
from larder.core.cookbook_store import CookbookStore

console = Console()


def store_cmd(
    name: str = typer.Option(None, "--name", "-n", help="Only show this cookbook."),
) -> None:
    """List cookbooks in the local store."""
    settings = LarderSettings()
    store = CookbookStore(settings.store_path)
    cookbooks = store.cookbooks(name)

    if not cookbooks:
        console.print(f"[dim]No cookbooks in {store.path}.[/dim]")
        return

    table = Table(title=f"Store: {store.path}")
    table.add_column("Name", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Content Address", style="dim")
    for cookbook in cookbooks:
        table.add_row(cookbook.name, cookbook.version, cookbook.content_address[:23] + "...")
    console.print(table)
