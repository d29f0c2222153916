"""Boot-time environment preparation.

Runs once, before the monitor loop, when the monitor is the init process of
the boot image: mounts the pseudo filesystems, loads kernel modules in
dependency order and sets up ACPI lid events. Every step is best-effort; a
missing module or helper is logged and skipped.
"""

import logging
import os
import time
from collections.abc import Callable
from pathlib import Path

from grubpower.config.models import GrubPowerConfig
from grubpower.core.paths import ACPI_EVENTS_DIR, USB_DEVICES_DIR
from grubpower.utils.shell import command_exists, run_best_effort, spawn_background

logger = logging.getLogger(__name__)

# (filesystem type, mount point relative to the root)
PSEUDO_FILESYSTEMS = (
    ("proc", "proc"),
    ("sysfs", "sys"),
    ("devtmpfs", "dev"),
)

CORE_MODULES = (
    "unix",
    "dm-mod",
    "ext4",
    "acpi",
    "thermal",
    "processor",
    "fan",
    "battery",
    "ac",
    "button",
)
USB_CORE_MODULES = ("usbcore", "usb_common", "hid", "hid_generic")
# Oldest controller generation first
HOST_CONTROLLER_MODULES = ("uhci_hcd", "ohci_hcd", "ehci_hcd", "xhci_hcd")
STORAGE_MODULES = ("usb_storage", "scsi_mod", "sd_mod")
ACPI_BUTTON_MODULES = ("acpi_button", "button")

ACPI_LID_EVENT_RULE = "event=button/lid.*\naction=/bin/sh -c 'echo lid > /proc/acpi/event'\n"

KERNEL_SETTLE_DELAY = 2.0
USB_SETTLE_DELAY = 3.0


class BootPreparer:
    """Brings the boot image from bare kernel to a state the monitor can use.

    Attributes:
        root: Filesystem root ("/" inside the boot image).
    """

    def __init__(
        self,
        config: GrubPowerConfig,
        root: Path = Path("/"),
        *,
        run: Callable[[list[str]], bool] = run_best_effort,
        spawn: Callable[[list[str]], bool] = spawn_background,
        which: Callable[[str], bool] = command_exists,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self.root = root
        self._run = run
        self._spawn = spawn
        self._which = which
        self._sleep = sleep

    def prepare(self) -> None:
        """Run every preparation step in order."""
        logger.info("GrubPower Advanced initializing...")
        self.mount_pseudo_filesystems()
        self._sleep(KERNEL_SETTLE_DELAY)

        logger.info("Loading essential kernel modules...")
        self.load_modules(CORE_MODULES)

        logger.info("Loading USB core and host controller modules...")
        self.load_modules(USB_CORE_MODULES)
        self.load_modules(HOST_CONTROLLER_MODULES)
        self._sleep(USB_SETTLE_DELAY)

        logger.info("Loading storage modules...")
        self.load_modules(STORAGE_MODULES)

        if self._config.module_list:
            logger.info("Loading extra modules: %s", " ".join(self._config.module_list))
            self.load_modules(self._config.module_list)

        self.verify_usb_subsystem()

        if self._config.handle_acpi:
            self.setup_acpi()

    def mount_pseudo_filesystems(self) -> None:
        """Mount proc, sysfs and devtmpfs unless already mounted."""
        for fstype, target in PSEUDO_FILESYSTEMS:
            mount_point = self.root / target
            if os.path.ismount(mount_point):
                logger.debug("%s already mounted", mount_point)
                continue
            if not self._run(["mount", "-t", fstype, "none", str(mount_point)]):
                logger.warning("Failed to mount %s on %s", fstype, mount_point)

    def load_modules(self, modules: tuple[str, ...] | list[str]) -> int:
        """Load kernel modules with modprobe.

        Returns:
            Number of modules that loaded.
        """
        loaded = 0
        for module in modules:
            if self._run(["modprobe", module]):
                loaded += 1
                logger.debug("Loaded module %s", module)
            else:
                logger.debug("Failed to load module %s", module)
        return loaded

    def verify_usb_subsystem(self) -> bool:
        """Reload the host controllers if no USB devices directory appeared.

        Returns:
            True if the USB devices directory exists afterwards.
        """
        devices_dir = self.root / USB_DEVICES_DIR
        if devices_dir.is_dir():
            return True

        logger.warning("USB subsystem not detected, reloading host controllers...")
        self._run(["rmmod", *HOST_CONTROLLER_MODULES])
        self._sleep(1.0)
        self.load_modules(HOST_CONTROLLER_MODULES)
        self._sleep(KERNEL_SETTLE_DELAY)
        return devices_dir.is_dir()

    def setup_acpi(self) -> None:
        """Load the ACPI button driver, install the lid event rule, start acpid."""
        self.load_modules(ACPI_BUTTON_MODULES)

        events_dir = self.root / ACPI_EVENTS_DIR
        try:
            events_dir.mkdir(parents=True, exist_ok=True)
            (events_dir / "lid").write_text(ACPI_LID_EVENT_RULE, encoding="utf-8")
        except OSError as e:
            logger.debug("Cannot write ACPI lid rule: %s", e)

        if self._which("acpid") and self._spawn(["acpid", "-d"]):
            logger.info("ACPI daemon started")
