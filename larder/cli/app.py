"""Main Typer application — imports and registers all CLI commands.

Entry point: ``larder`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from larder.cli.commands.install import install_cmd
from larder.cli.commands.show import show_cmd
from larder.cli.commands.store_cmd import store_cmd
from larder.cli.commands.universe import universe_cmd

app = typer.Typer(
    name="larder",
    help="Larder: cookbook dependency installer with a trusted lock file.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="install", help="Install and lock the manifest's cookbooks.")(install_cmd)
app.command(name="universe", help="Fetch the cookbook index of every source.")(universe_cmd)
app.command(name="show", help="Show the lock file's dependencies and graph.")(show_cmd)
app.command(name="store", help="List cookbooks in the local store.")(store_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
