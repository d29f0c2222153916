"""Shared Rich display functions for installer commands."""

from pathlib import Path

from rich.table import Table

from grubpower.config.models import GrubPowerConfig
from grubpower.installer.compat import CompatReport
from grubpower.installer.grub import EntryLocation
from grubpower.utils.formatting import console


def _yes_no(value: bool) -> str:
    return "[success]yes[/success]" if value else "[error]no[/error]"


def create_compat_table(report: CompatReport) -> Table:
    """Create a table summarizing the hardware compatibility check.

    Args:
        report: Result of check_compatibility().

    Returns:
        Rich Table with one row per check.
    """
    table = Table(
        title="Hardware Compatibility",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Check")
    table.add_column("Result", justify="right")

    table.add_row("USB subsystem", _yes_no(report.usb_subsystem))
    table.add_row("USB power controls", str(report.power_controls))
    table.add_row("Alternative power attributes", str(report.alternative_controls))
    table.add_row("USB modules loaded", str(report.usb_modules_loaded))
    table.add_row("Battery present", _yes_no(report.battery_present))
    return table


def create_entries_table(entries: list[EntryLocation]) -> Table:
    """Create a numbered table of GrubPower GRUB entries."""
    table = Table(
        title="GrubPower GRUB Entries",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("#", justify="right", width=3)
    table.add_column("Title")
    table.add_column("Lines", style="muted")

    for number, entry in enumerate(entries, start=1):
        table.add_row(str(number), entry.title, f"{entry.start + 1}-{entry.end + 1}")
    return table


def print_settings(config: GrubPowerConfig) -> None:
    """Print the settings that determine the boot entry."""
    kernel_ok = config.kernel_path.is_file()
    console.print(
        f"  Kernel path: [info]{config.kernel_path}[/info] (exists: {_yes_no(kernel_ok)})"
    )
    console.print(f"  GRUB root: [info]{config.grub_root}[/info]")
    console.print(f"  Output directory: [muted]{config.output_dir}[/muted]")
    console.print(f"  Initramfs name: [muted]{config.initramfs_name}[/muted]")


def print_install_summary(config: GrubPowerConfig, config_path: Path) -> None:
    """Print the post-install instructions."""
    shutdown = f"{config.min_battery}%" if config.min_battery > 0 else "disabled"
    console.print()
    console.print("[bold]GrubPower Advanced installation complete![/bold]")
    console.print()
    console.print("To use:")
    console.print("  1. Reboot your computer")
    console.print("  2. At the GRUB menu, select 'GrubPower Advanced: USB Power Mode'")
    console.print("  3. Your USB ports should remain powered")
    console.print()
    console.print(f"  Configuration file: [muted]{config_path}[/muted]")
    console.print(f"  Kernel path: [muted]{config.kernel_path}[/muted]")
    console.print(f"  Initramfs location: [muted]{config.initramfs_path}[/muted]")
    console.print()
    console.print(
        f"[warning]Battery will drain while in this mode. Auto-shutdown: {shutdown}.[/warning]"
    )
    console.print(
        "[muted]For safe recovery, use 'GrubPower: Recovery Mode', which boots "
        "your main OS after 30 seconds.[/muted]"
    )
