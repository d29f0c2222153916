"""Rich console formatting utilities.

Provides consistent formatting for CLI and monitor output using Rich.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from grubpower.core.theme import get_theme

if TYPE_CHECKING:
    from grubpower.monitor.usb import UsbDeviceInfo


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())


def create_usb_table(devices: list[UsbDeviceInfo], title: str = "USB Devices") -> Table:
    """Create a table listing USB devices and their power state.

    Args:
        devices: Devices to display.
        title: Table title.

    Returns:
        Rich Table ready for printing.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Device", no_wrap=True)
    table.add_column("Manufacturer", style="muted")
    table.add_column("Product", style="text")
    table.add_column("Power", justify="center")

    for dev in devices:
        if dev.control == "on":
            power = "[powered]on[/]"
        elif dev.control is None:
            power = "[muted]-[/]"
        else:
            power = f"[unpowered]{dev.control}[/]"
        table.add_row(dev.name, dev.manufacturer or "-", dev.product or "-", power)

    return table


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")
