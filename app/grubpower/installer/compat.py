"""Hardware compatibility checks run before installing."""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from grubpower.core.paths import POWER_SUPPLY_DIR, PROC_MODULES, USB_DEVICES_DIR
from grubpower.monitor.sysfs import SysfsTree
from grubpower.monitor.usb import POWER_ON
from grubpower.utils.shell import run_best_effort

logger = logging.getLogger(__name__)

_USB_MODULE = re.compile(r"usb|ehci|ohci|uhci|xhci")

# Loaded on request when no power control interface shows up
HOST_USB_MODULES = ("usbcore", "usb_common", "ehci_hcd", "ohci_hcd", "uhci_hcd", "xhci_hcd")


@dataclass(frozen=True, slots=True)
class CompatReport:
    """Result of the hardware compatibility check.

    Attributes:
        usb_subsystem: The USB devices directory exists.
        power_controls: Number of devices exposing ``power/control``.
        alternative_controls: Number of other ``power/*`` attributes.
        usb_modules_loaded: Number of loaded USB-related kernel modules.
        battery_present: A ``BAT*`` power supply exists.
    """

    usb_subsystem: bool
    power_controls: int
    alternative_controls: int
    usb_modules_loaded: int
    battery_present: bool

    @property
    def warnings(self) -> list[str]:
        """Human-readable problems, empty when everything looks fine."""
        problems: list[str] = []
        if not self.usb_subsystem:
            problems.append("USB subsystem not detected in expected location.")
        if self.power_controls == 0:
            if self.alternative_controls > 0:
                problems.append(
                    "Only alternative USB power management interfaces found; "
                    "GrubPower may work with limited functionality."
                )
            else:
                problems.append("No USB power control interfaces found.")
                if self.usb_modules_loaded == 0:
                    problems.append("No USB modules appear to be loaded.")
        if not self.battery_present:
            problems.append("No battery detected. This tool is primarily designed for laptops.")
        return problems

    @property
    def compatible(self) -> bool:
        """True when no problem was found."""
        return not self.warnings


def count_usb_modules(sysfs: SysfsTree) -> int:
    """Count loaded USB-related modules listed in /proc/modules."""
    content = sysfs.read(sysfs.path(PROC_MODULES))
    if not content:
        return 0
    return sum(1 for line in content.splitlines() if _USB_MODULE.search(line.split(" ", 1)[0]))


def check_compatibility(sysfs: SysfsTree) -> CompatReport:
    """Inspect the running system for the interfaces the monitor needs."""
    devices_dir = sysfs.path(USB_DEVICES_DIR)
    devices = [d for d in sysfs.list_dir(devices_dir) if d.is_dir()]

    controls = sum(1 for d in devices if (d / "power" / "control").is_file())
    alternatives = sum(
        1
        for d in devices
        for attr in sysfs.list_dir(d / "power")
        if attr.name != "control"
    )
    battery = bool(sysfs.list_dir(sysfs.path(POWER_SUPPLY_DIR), "BAT*"))

    report = CompatReport(
        usb_subsystem=devices_dir.is_dir(),
        power_controls=controls,
        alternative_controls=alternatives,
        usb_modules_loaded=count_usb_modules(sysfs),
        battery_present=battery,
    )
    logger.debug("Compatibility report: %s", report)
    return report


@dataclass(slots=True)
class UsbControlProbe:
    """Outcome of toggling ``power/control`` on every device.

    Attributes:
        tested: Number of devices with a power control attribute.
        controlled: Devices that accepted "on".
    """

    tested: int = 0
    controlled: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.controlled)


def probe_usb_power_control(sysfs: SysfsTree) -> UsbControlProbe:
    """Write "on" to each device's power control, verify it, then restore.

    The original value is restored only on devices that accepted "on".
    """
    probe = UsbControlProbe()
    for device in sysfs.list_dir(sysfs.path(USB_DEVICES_DIR)):
        control = device / "power" / "control"
        if not control.is_file():
            continue
        probe.tested += 1
        original = sysfs.read(control)
        sysfs.write(control, POWER_ON)
        if sysfs.read(control) != POWER_ON:
            continue
        probe.controlled.append(device.name)
        if original is not None and original != POWER_ON:
            sysfs.write(control, original)
    return probe


def load_usb_modules(run: Callable[[list[str]], bool] = run_best_effort) -> list[str]:
    """Try to load the host USB modules.

    Returns:
        Modules that loaded.
    """
    loaded = [module for module in HOST_USB_MODULES if run(["modprobe", module])]
    logger.info("Loaded USB modules: %s", ", ".join(loaded) or "none")
    return loaded
