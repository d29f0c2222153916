"""USB power enabler.

Forces USB devices to stay powered by writing the kernel's runtime power
management attributes under /sys/bus/usb/devices. Devices are enumerated
again on every call; nothing is cached between cycles, so hot-plugged
devices are picked up automatically.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from grubpower.config.models import PortMode, PortSelection
from grubpower.core.paths import USB_DEVICES_DIR, USBCORE_AUTOSUSPEND
from grubpower.monitor.sysfs import SysfsTree

logger = logging.getLogger(__name__)

POWER_ON = "on"
AUTOSUSPEND_NEVER = "-1"

# Charging-port heuristic: devices with USB2 hardware LPM U1 enabled.
# This is an approximation, it does not reliably identify dedicated
# charging ports.
CHARGING_HINT_ATTR = "power/usb2_hardware_lpm_u1"


@dataclass(frozen=True, slots=True)
class UsbDeviceInfo:
    """Description of a connected USB device.

    Attributes:
        name: Kernel device name (e.g. "1-2", "usb1").
        manufacturer: Manufacturer string, if exposed.
        product: Product string, if exposed.
        control: Current power/control value, if exposed.
    """

    name: str
    manufacturer: str | None = None
    product: str | None = None
    control: str | None = None


class UsbPowerEnabler:
    """Keeps selected USB devices powered on.

    Example:
        >>> enabler = UsbPowerEnabler(SysfsTree(), PortSelection.parse("all"))
        >>> enabler.apply()
        >>> # every cycle afterwards
        >>> enabler.reassert()
    """

    def __init__(
        self,
        sysfs: SysfsTree,
        selection: PortSelection,
        disable_autosuspend: bool = True,
    ) -> None:
        """Initialize the enabler.

        Args:
            sysfs: Attribute accessor.
            selection: Which devices to keep powered.
            disable_autosuspend: Also disable autosuspend on every device.
        """
        self._sysfs = sysfs
        self._selection = selection
        self._disable_autosuspend = disable_autosuspend

    @property
    def selection(self) -> PortSelection:
        """Configured port selection."""
        return self._selection

    @property
    def devices_dir(self) -> Path:
        """Location of the USB device directory."""
        return self._sysfs.path(USB_DEVICES_DIR)

    def _all_devices(self) -> list[Path]:
        """Enumerate every USB device directory currently present."""
        return [p for p in self._sysfs.list_dir(self.devices_dir) if p.is_dir()]

    def matched_devices(self) -> list[Path]:
        """Enumerate devices selected by the port policy.

        Only devices exposing ``power/control`` are returned.

        Returns:
            Device directories, freshly enumerated.
        """
        mode = self._selection.mode

        if mode == PortMode.PORTS:
            candidates = [self.devices_dir / f"usb{port}" for port in self._selection.ports]
        else:
            candidates = self._all_devices()

        matched: list[Path] = []
        for device in candidates:
            if not (device / "power" / "control").is_file():
                continue
            if mode == PortMode.CHARGING and not self._looks_like_charging_port(device):
                continue
            matched.append(device)
        return matched

    def _looks_like_charging_port(self, device: Path) -> bool:
        """Best-effort charging-port check."""
        hint = self._sysfs.read(device / CHARGING_HINT_ATTR)
        return hint is not None and "1" in hint

    def apply(self) -> int:
        """Apply the full power policy.

        Writes "on" to ``power/control`` of every matched device (and the
        legacy ``power/level`` in "all" mode), then disables autosuspend on
        all devices if configured.

        Returns:
            Number of devices whose power control was set.
        """
        powered = 0
        for device in self.matched_devices():
            if self._sysfs.write(device / "power" / "control", POWER_ON):
                powered += 1
                logger.debug("Set power control for %s", device.name)
            if self._selection.mode == PortMode.ALL:
                self._sysfs.write(device / "power" / "level", POWER_ON)

        if self._disable_autosuspend:
            self._apply_autosuspend_policy()

        logger.info(
            "USB power enabled for %d device(s) (%s)", powered, self._selection.describe()
        )
        return powered

    def _apply_autosuspend_policy(self) -> None:
        """Disable autosuspend and keep runtime power management active."""
        for device in self._all_devices():
            power = device / "power"
            self._sysfs.write(power / "autosuspend", AUTOSUSPEND_NEVER)
            self._sysfs.write(power / "autosuspend_delay_ms", AUTOSUSPEND_NEVER)
            self._sysfs.write(power / "wakeup", "enabled")
            self._sysfs.write(power / "runtime_enabled", POWER_ON)

        self._sysfs.write(self._sysfs.path(USBCORE_AUTOSUSPEND), AUTOSUSPEND_NEVER)
        logger.debug("Disabled USB autosuspend")

    def reassert(self) -> int:
        """Re-assert "on" for matched devices that drifted away from it.

        Attributes already reading "on" are left untouched.

        Returns:
            Number of devices that had to be switched back on.
        """
        refreshed = 0
        for device in self.matched_devices():
            control = device / "power" / "control"
            if self._sysfs.read(control) == POWER_ON:
                continue
            if self._sysfs.write(control, POWER_ON):
                refreshed += 1
                logger.info("Refreshed power control for %s", device.name)
        return refreshed

    def list_devices(self) -> list[UsbDeviceInfo]:
        """Describe connected USB devices (interfaces excluded).

        Returns:
            Device descriptions sorted by name.
        """
        devices: list[UsbDeviceInfo] = []
        for device in self._all_devices():
            if ":" in device.name:
                continue
            devices.append(
                UsbDeviceInfo(
                    name=device.name,
                    manufacturer=self._sysfs.read(device / "manufacturer"),
                    product=self._sysfs.read(device / "product"),
                    control=self._sysfs.read(device / "power" / "control"),
                )
            )
        return devices
