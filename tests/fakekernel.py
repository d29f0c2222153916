"""Fake kernel attribute tree used across the test suite."""

from pathlib import Path


class FakeKernelTree:
    """Builder for a fake /sys and /proc layout below a root directory."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.usb_dir = root / "sys/bus/usb/devices"
        self.supply_dir = root / "sys/class/power_supply"
        self.usb_dir.mkdir(parents=True)
        self.supply_dir.mkdir(parents=True)
        autosuspend = root / "sys/module/usbcore/parameters/autosuspend"
        autosuspend.parent.mkdir(parents=True)
        autosuspend.write_text("2\n")
        sysrq = root / "proc/sysrq-trigger"
        sysrq.parent.mkdir(parents=True)
        sysrq.write_text("")

    def add_usb_device(
        self,
        name: str,
        control: str | None = "auto",
        *,
        product: str | None = None,
        lpm_u1: str | None = None,
    ) -> Path:
        """Create a USB device directory with power attributes."""
        device = self.usb_dir / name
        power = device / "power"
        power.mkdir(parents=True)
        if control is not None:
            (power / "control").write_text(f"{control}\n")
            (power / "autosuspend").write_text("2\n")
            (power / "autosuspend_delay_ms").write_text("2000\n")
            (power / "level").write_text("auto\n")
        if lpm_u1 is not None:
            (power / "usb2_hardware_lpm_u1").write_text(f"{lpm_u1}\n")
        if product is not None:
            (device / "product").write_text(f"{product}\n")
        return device

    def control(self, name: str) -> str:
        """Current power/control value of a device."""
        return (self.usb_dir / name / "power" / "control").read_text().strip()

    def set_control(self, name: str, value: str) -> None:
        (self.usb_dir / name / "power" / "control").write_text(f"{value}\n")

    def add_battery(self, capacity: int | str, name: str = "BAT0") -> Path:
        supply = self.supply_dir / name
        supply.mkdir(parents=True, exist_ok=True)
        (supply / "type").write_text("Battery\n")
        (supply / "capacity").write_text(f"{capacity}\n")
        return supply

    def set_battery(self, capacity: int, name: str = "BAT0") -> None:
        (self.supply_dir / name / "capacity").write_text(f"{capacity}\n")

    def set_lid(self, state: str, name: str = "LID0") -> Path:
        """Write an ACPI lid state file ("open" or "closed")."""
        state_file = self.root / "proc/acpi/button/lid" / name / "state"
        state_file.parent.mkdir(parents=True, exist_ok=True)
        state_file.write_text(f"state:      {state}\n")
        return state_file

    def add_backlight(self, name: str = "intel_backlight", brightness: int = 800) -> Path:
        backlight = self.root / "sys/class/backlight" / name
        backlight.mkdir(parents=True)
        (backlight / "brightness").write_text(f"{brightness}\n")
        (backlight / "actual_brightness").write_text(f"{brightness}\n")
        (backlight / "max_brightness").write_text("1000\n")
        return backlight

    def sysrq(self) -> str:
        return (self.root / "proc/sysrq-trigger").read_text()

    def usbcore_autosuspend(self) -> str:
        return (self.root / "sys/module/usbcore/parameters/autosuspend").read_text().strip()
