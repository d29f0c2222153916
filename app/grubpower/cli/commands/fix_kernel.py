"""Fix-kernel command implementation.

Diagnoses and repairs the settings that most often break the boot entry:
a wrong kernel path and a GRUB root that does not match the boot partition.
"""

import platform
from typing import Annotated

import typer

from grubpower.cli.commands.rebuild import run_rebuild
from grubpower.cli.display import print_settings
from grubpower.cli.workflow import save_changes
from grubpower.config.io import ConfigError, load_config, save_config
from grubpower.config.models import GrubPowerConfig
from grubpower.core.paths import BOOT_DIR, get_config_path
from grubpower.installer.detect import (
    boot_partition,
    fix_kernel_typo,
    grub_root_from_device,
    list_kernels,
    probe_grub_root,
)
from grubpower.installer.grub import power_entry
from grubpower.utils.formatting import (
    console,
    print_error,
    print_info,
    print_success,
    print_warning,
)

app = typer.Typer(
    help="Fix kernel path and GRUB root problems.",
    invoke_without_command=True,
)


def print_diagnostics(config: GrubPowerConfig) -> None:
    """Print kernel and GRUB root diagnostics without changing anything."""
    console.print("[bold]Kernel path diagnostics[/bold]")
    if config.kernel_path.is_file():
        print_success(f"Kernel file exists at {config.kernel_path}")
    else:
        print_error(f"Kernel file does not exist at {config.kernel_path}")
        console.print(f"  Running kernel version: {platform.release()}")
        kernels = list_kernels(BOOT_DIR, "vmlinuz*")
        console.print("  Available kernels in /boot:")
        for kernel in kernels:
            console.print(f"    {kernel}")
        if not kernels:
            console.print("    [muted]No vmlinuz files found[/muted]")

    device = boot_partition()
    detected = grub_root_from_device(device) if device else None
    if device:
        console.print(f"  Boot partition: {device}")
    if detected and detected != config.grub_root:
        print_warning(f"GRUB root ({config.grub_root}) may not match detected value ({detected})")

    probed = probe_grub_root()
    if probed and probed != config.grub_root:
        print_warning(f"GRUB root ({config.grub_root}) does not match grub-probe value ({probed})")

    if config.grub_custom.is_file():
        print_success(f"GRUB custom configuration file exists: {config.grub_custom}")
    else:
        print_error(f"GRUB custom configuration file does not exist: {config.grub_custom}")
    console.print()


def _confirm(question: str, yes: bool) -> bool:
    return yes or typer.confirm(question)


def repair_settings(config: GrubPowerConfig, yes: bool = False) -> GrubPowerConfig:
    """Offer the kernel and GRUB root corrections one by one.

    Args:
        config: Current settings.
        yes: Accept every correction without asking.

    Returns:
        Settings with the accepted corrections applied.
    """
    fixed = fix_kernel_typo(config.kernel_path)
    if fixed is not None:
        print_info(f"Fixed typo in kernel path: {config.kernel_path} -> {fixed}")
        config = config.model_copy(update={"kernel_path": fixed})

    running = BOOT_DIR / f"vmlinuz-{platform.release()}"
    console.print(f"Current running kernel: {platform.release()}")
    if running.is_file() and running != config.kernel_path:
        print_info(f"Found kernel file for running kernel: {running}")
        if _confirm("Use running kernel path instead?", yes):
            config = config.model_copy(update={"kernel_path": running})

    probed = probe_grub_root()
    if probed is None:
        print_warning("Could not detect GRUB root with grub-probe.")
    elif probed != config.grub_root:
        console.print("GRUB root doesn't match probe value:")
        console.print(f"  Current: {config.grub_root}")
        console.print(f"  Detected: {probed}")
        if _confirm("Update GRUB root to detected value?", yes):
            config = config.model_copy(update={"grub_root": probed})
    else:
        print_success("GRUB root appears to be correct.")

    return config


@app.callback(invoke_without_command=True)
def fix_kernel(
    ctx: typer.Context,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Accept every suggested correction.",
        ),
    ] = False,
) -> None:
    """Repair the kernel path and GRUB root, then optionally rebuild.

    Examples:
        sudo grubpower fix-kernel
        sudo grubpower fix-kernel --yes
    """
    if ctx.invoked_subcommand is not None:
        return

    config_path = get_config_path()
    exists = config_path.exists()
    try:
        config = load_config(config_path) if exists else GrubPowerConfig()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    if not exists:
        print_warning(f"Configuration file not found at {config_path}, using defaults.")

    console.print("[bold]Current settings[/bold]")
    print_settings(config)
    console.print()

    repaired = repair_settings(config, yes)
    if exists:
        save_changes(config, repaired, config_path)

    console.print()
    console.print("[bold]Final settings[/bold]")
    print_settings(repaired)

    console.print()
    console.print("Here's what your GRUB entry would look like:")
    console.print(power_entry(repaired).render(), markup=False, highlight=False)

    if _confirm("Do you want to rebuild the GRUB entries with these settings?", yes):
        if not exists:
            try:
                save_config(repaired, config_path)
            except ConfigError as e:
                print_error(str(e))
                raise typer.Exit(code=1) from e
        run_rebuild(config_path)
    else:
        print_info(f"If you still have issues, edit KERNEL_PATH in {config_path} manually.")
