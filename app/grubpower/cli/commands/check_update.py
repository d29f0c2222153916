"""Check-update command implementation."""

import typer

from grubpower import __version__
from grubpower.utils.formatting import print_info

app = typer.Typer(
    help="Show the installed version.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def check_update(ctx: typer.Context) -> None:
    """Print the installed version.

    There is no remote release feed to compare against.
    """
    if ctx.invoked_subcommand is not None:
        return

    print_info(f"GrubPower version {__version__}")
    print_info("No updates available (remote version check not available).")
