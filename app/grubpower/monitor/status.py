"""Console status output for the boot-time monitor.

Purely observational: nothing here feeds back into the monitor loop.
"""

from pathlib import Path

from rich.console import Console
from rich.panel import Panel

from grubpower.config.models import PortSelection
from grubpower.monitor.usb import UsbDeviceInfo
from grubpower.utils.formatting import create_usb_table

# Battery level is printed when wall-clock seconds modulo this period fall
# inside the reporting window.
BATTERY_REPORT_PERIOD = 300
BATTERY_REPORT_WINDOW = 10


class StatusReporter:
    """Prints the startup banner and periodic battery readings."""

    def __init__(
        self,
        console: Console,
        selection: PortSelection,
        threshold: int,
        log_file: Path | None = None,
    ) -> None:
        """Initialize the reporter.

        Args:
            console: Console to print to.
            selection: Active USB port selection.
            threshold: Configured shutdown threshold (0 = disabled).
            log_file: Log file path when file logging is enabled.
        """
        self._console = console
        self._selection = selection
        self._threshold = threshold
        self._log_file = log_file

    def banner(self) -> None:
        """Clear the screen and print the activation banner."""
        shutdown = f"{self._threshold}% battery" if self._threshold > 0 else "disabled"
        lines = [
            f"USB ports powered: [bold]{self._selection.describe()}[/]",
            f"Auto-shutdown at: [bold]{shutdown}[/]",
        ]
        if self._log_file is not None:
            lines.append(f"Logging to: {self._log_file}")
        lines += [
            "",
            "[warning]IMPORTANT: Battery will drain in this mode![/]",
            "Press CTRL+ALT+DEL to reboot",
        ]

        self._console.clear()
        self._console.print(
            Panel(
                "\n".join(lines),
                title="GrubPower Advanced USB Mode Activated",
                border_style="border",
            )
        )

    def report_battery(self, level: int, now: float) -> bool:
        """Print the battery level when the reporting cadence is reached.

        Args:
            level: Current battery percentage.
            now: Current wall-clock time in seconds.

        Returns:
            True if a line was printed.
        """
        if int(now) % BATTERY_REPORT_PERIOD >= BATTERY_REPORT_WINDOW:
            return False
        self._console.print(f"[info]Battery level: {level}%[/]")
        return True

    def report_devices(self, devices: list[UsbDeviceInfo]) -> None:
        """Print the connected USB devices and their power state."""
        if not devices:
            self._console.print("[muted]No USB devices detected.[/]")
            return
        self._console.print(create_usb_table(devices, title="Connected USB Devices"))
