"""Setup command implementation.

Interactive wizard followed by the full installation.
"""

import typer

from grubpower.cli.commands.install import run_install
from grubpower.core.paths import get_config_path

app = typer.Typer(
    help="Interactive setup wizard, then install.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def setup(ctx: typer.Context) -> None:
    """Ask for threshold, ports and logging, then install."""
    if ctx.invoked_subcommand is not None:
        return

    run_install(get_config_path(), interactive=True)
