"""Main CLI application entry point.

Defines the Typer application and global options.
"""

from typing import Annotated

import typer

from grubpower import __version__
from grubpower.cli.commands import (
    add_entry,
    build,
    check,
    check_update,
    configure,
    direct,
    fix_kernel,
    install,
    monitor,
    rebuild,
    setup,
    test_usb,
    uninstall,
)
from grubpower.core.logging_config import setup_logging

# Create main Typer app
app = typer.Typer(
    name="grubpower",
    help="Keep USB ports powered from a minimal GRUB boot entry.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"GrubPower Advanced version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug logging.",
        ),
    ] = False,
) -> None:
    """grubpower - turn a laptop into a USB power bank.

    Builds a minimal boot image that keeps USB ports powered, and adds it
    to the GRUB menu.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose=verbose)


# Register commands
app.add_typer(install.app, name="install")
app.add_typer(build.app, name="build")
app.add_typer(add_entry.app, name="add-entry")
app.add_typer(uninstall.app, name="uninstall")
app.add_typer(configure.app, name="configure")
app.add_typer(setup.app, name="setup")
app.add_typer(check.app, name="check")
app.add_typer(test_usb.app, name="test-usb")
app.add_typer(check_update.app, name="check-update")
app.add_typer(rebuild.app, name="rebuild")
app.add_typer(direct.app, name="direct")
app.add_typer(fix_kernel.app, name="fix-kernel")
app.add_typer(monitor.app, name="monitor")


if __name__ == "__main__":
    app()
