"""CLI package for grubpower.

This package contains the Typer application and all subcommands.
"""

from grubpower.cli.main import app

__all__ = ["app"]
