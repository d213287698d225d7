"""Command line interface."""

from newshub.cli.main import cli, main


__all__ = ["cli", "main"]
