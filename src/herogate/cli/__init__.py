"""Command line interface for herogate."""

from .__main__ import cli, main

__all__ = ["cli", "main"]
