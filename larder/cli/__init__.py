"""Larder CLI — Typer-based command-line interface.

Provides the ``larder`` command with subcommands for installing the
manifest's cookbooks, pre-warming source indexes, inspecting the lock
file and listing the local store.

All output uses Rich for formatted terminal display.
"""
