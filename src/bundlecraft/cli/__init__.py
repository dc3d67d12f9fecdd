"""Bundlecraft CLI."""

from bundlecraft.cli.main import cli, main

__all__ = ["cli", "main"]
