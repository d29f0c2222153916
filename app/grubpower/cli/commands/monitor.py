"""Monitor command implementation.

Runs the boot-time monitor on the current system, for testing the power
policy without rebooting.
"""

from pathlib import Path
from typing import Annotated

import typer

from grubpower.config.io import ConfigError, load_config, load_config_or_default
from grubpower.core.logging_config import setup_logging
from grubpower.core.paths import get_config_path
from grubpower.monitor.session import run_session
from grubpower.utils.formatting import console, print_error, print_info

app = typer.Typer(
    help="Run the USB power monitor loop.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def monitor(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Configuration file (default: /etc/grubpower.conf).",
        ),
    ] = None,
    root: Annotated[
        Path,
        typer.Option(
            "--root",
            help="Filesystem root holding sys/ and proc/.",
        ),
    ] = Path("/"),
    skip_boot: Annotated[
        bool,
        typer.Option(
            "--skip-boot",
            help="Skip mounting pseudo filesystems and loading modules.",
        ),
    ] = False,
    cycles: Annotated[
        int | None,
        typer.Option(
            "--cycles",
            "-n",
            min=1,
            help="Stop after this many cycles.",
        ),
    ] = None,
) -> None:
    """Keep USB ports powered while watching battery and lid.

    Examples:
        sudo grubpower monitor --skip-boot --cycles 12
        grubpower monitor --root /tmp/fake-sysfs --skip-boot -n 3
    """
    if ctx.invoked_subcommand is not None:
        return

    if config_path is None:
        config = load_config_or_default(get_config_path())
    else:
        try:
            config = load_config(config_path)
        except ConfigError as e:
            print_error(str(e))
            raise typer.Exit(code=1) from e

    if config.enable_logging:
        verbose = bool(ctx.obj and ctx.obj.get("verbose"))
        setup_logging(verbose=verbose, log_file=config.log_file)

    state = run_session(config, console, root, skip_boot=skip_boot, max_cycles=cycles)
    if state.shutdown:
        print_info("Low-battery shutdown issued.")
