"""Flexible Scaffold CLI.

Command-line interface and interactive shell for the template registry.
"""

from scaffolding import __version__

from cli.flexible_scaffold.cli import app, main

__all__ = ["__version__", "app", "main"]
