"""Install command implementation.

Runs the full installation: checks, configuration, kernel detection, boot
image build and GRUB entries. Completed steps are rolled back if a later
one fails.
"""

from pathlib import Path
from typing import Annotated

import typer

from grubpower import __version__
from grubpower.cli.commands.fix_kernel import print_diagnostics
from grubpower.cli.display import create_compat_table, print_install_summary
from grubpower.cli.wizard import run_wizard
from grubpower.cli.workflow import (
    build_image,
    cleanup,
    detect,
    install_entries,
    load_or_create_config,
    require_root,
    save_changes,
)
from grubpower.config.models import GrubPowerConfig
from grubpower.core.paths import get_config_path
from grubpower.installer.compat import check_compatibility, probe_usb_power_control
from grubpower.installer.detect import (
    KernelNotFoundError,
    detect_kernel,
    kernel_version,
    list_kernels,
)
from grubpower.installer.rollback import RollbackStack
from grubpower.monitor.sysfs import SysfsTree
from grubpower.utils.formatting import (
    console,
    print_error,
    print_info,
    print_success,
    print_warning,
)

app = typer.Typer(
    help="Build the boot image and add the GRUB entries.",
    invoke_without_command=True,
)


def _ask_continue(yes: bool) -> None:
    """Abort unless the user (or --yes) agrees to continue."""
    if yes:
        return
    if not typer.confirm("Continue anyway?"):
        print_info("Installation aborted.")
        raise typer.Exit(code=1)


def run_checks(yes: bool) -> None:
    """Hardware compatibility check and USB power test."""
    print_info(f"GrubPower version {__version__}")

    sysfs = SysfsTree()
    report = check_compatibility(sysfs)
    console.print(create_compat_table(report))
    for warning in report.warnings:
        print_warning(warning)
    if not report.compatible:
        _ask_continue(yes)

    print_info("Testing USB power management capabilities...")
    probe = probe_usb_power_control(sysfs)
    if probe.success:
        print_success(f"Successfully controlled power on {len(probe.controlled)} USB device(s).")
    else:
        print_warning("USB power management test failed. GrubPower may not work correctly.")
        _ask_continue(yes)


def select_kernel(boot_dir: Path | None = None) -> Path:
    """Let the user pick one of the installed kernels (default: newest)."""
    kernels = list_kernels(boot_dir) if boot_dir else list_kernels()
    if not kernels:
        print_error("No kernels found. Please set KERNEL_PATH manually.")
        raise typer.Exit(code=1)

    console.print(f"Found {len(kernels)} kernels:")
    for number, kernel in enumerate(kernels, start=1):
        console.print(f"  {number}. {kernel_version(kernel)} [muted]({kernel})[/muted]")

    choice = typer.prompt(f"Select a kernel [1-{len(kernels)}]", default=len(kernels), type=int)
    if not 1 <= choice <= len(kernels):
        print_warning("Invalid selection. Using the latest kernel.")
        choice = len(kernels)
    return kernels[choice - 1]


def _choose_kernel(config: GrubPowerConfig) -> GrubPowerConfig:
    try:
        kernel = detect_kernel()
        print_success(f"Successfully auto-detected kernel: {kernel}")
    except KernelNotFoundError:
        print_warning("Auto-detection failed. Showing available kernels for selection...")
        kernel = select_kernel()
    return config.model_copy(update={"kernel_path": kernel})


def run_install(
    config_path: Path,
    *,
    interactive: bool = False,
    debug: bool = False,
    yes: bool = False,
    skip_checks: bool = False,
) -> GrubPowerConfig:
    """Perform the full installation.

    Args:
        config_path: Configuration file to use (created when missing).
        interactive: Run the configuration wizard first.
        debug: Print kernel and GRUB diagnostics before building.
        yes: Continue past compatibility warnings without asking.
        skip_checks: Skip the compatibility check and USB test.

    Returns:
        The configuration that was installed.
    """
    require_root()
    print_info("Starting GrubPower Advanced installation...")

    if not skip_checks:
        run_checks(yes)

    config = load_or_create_config(config_path)
    if interactive:
        updated = run_wizard(config)
        save_changes(config, updated, config_path)
        config = updated

    chosen = _choose_kernel(config)
    save_changes(config, chosen, config_path)
    config = detect(chosen, config_path)

    if debug:
        print_diagnostics(config)

    with RollbackStack() as rollback:
        build_image(config, rollback)
        install_entries(config, rollback)
    cleanup(config)

    print_install_summary(config, config_path)
    return config


@app.callback(invoke_without_command=True)
def install(
    ctx: typer.Context,
    interactive: Annotated[
        bool,
        typer.Option(
            "--interactive",
            "-i",
            help="Run the configuration wizard first.",
        ),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option(
            "--debug",
            help="Print kernel path and GRUB root diagnostics.",
        ),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Continue past compatibility warnings without asking.",
        ),
    ] = False,
) -> None:
    """Install GrubPower.

    Checks the hardware, detects the kernel and boot partition, builds the
    boot image and adds the 'GrubPower Advanced: USB Power Mode' and
    recovery entries to the GRUB menu.

    Examples:
        sudo grubpower install                # Complete installation
        sudo grubpower install --debug        # With kernel path diagnostics
        sudo grubpower install --interactive  # Run the setup wizard first
    """
    if ctx.invoked_subcommand is not None:
        return

    run_install(get_config_path(), interactive=interactive, debug=debug, yes=yes)
