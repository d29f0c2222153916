"""Check command implementation.

Reports whether this machine exposes the interfaces the monitor needs.
"""

import time
from typing import Annotated

import typer

from grubpower.cli.display import create_compat_table
from grubpower.installer.compat import check_compatibility, load_usb_modules
from grubpower.monitor.sysfs import SysfsTree
from grubpower.utils.formatting import console, print_info, print_success, print_warning

app = typer.Typer(
    help="Check hardware compatibility.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def check(
    ctx: typer.Context,
    load_modules: Annotated[
        bool,
        typer.Option(
            "--load-modules",
            help="Load USB modules without asking when none are loaded.",
        ),
    ] = False,
) -> None:
    """Check USB power management support and battery presence."""
    if ctx.invoked_subcommand is not None:
        return

    sysfs = SysfsTree()
    report = check_compatibility(sysfs)

    no_usb = report.power_controls == 0 and report.usb_modules_loaded == 0
    if no_usb and (load_modules or typer.confirm("No USB modules loaded. Load them now?")):
        loaded = load_usb_modules()
        print_info(f"Loaded: {', '.join(loaded) or 'none'}")
        time.sleep(2)
        report = check_compatibility(sysfs)

    console.print(create_compat_table(report))
    for warning in report.warnings:
        print_warning(warning)

    if report.compatible:
        print_success("Compatibility check completed: no problems found.")
    else:
        print_info("Compatibility check completed with warnings.")
