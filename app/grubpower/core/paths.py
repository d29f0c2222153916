"""System path management for grubpower.

This module centralises every filesystem location grubpower touches, both on
the host (configuration file, GRUB files) and inside the booted image (sysfs
and procfs attributes).

Kernel-exposed locations are kept relative so they can be resolved against an
arbitrary root. The monitor uses "/" in production and a temporary directory
in tests.
"""

import os
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "grubpower"

# Environment variable overriding the configuration file location
CONFIG_ENV_VAR = "GRUBPOWER_CONFIG"

DEFAULT_CONFIG_PATH = Path("/etc/grubpower.conf")

# =============================================================================
# Kernel attribute surface (relative to the filesystem root)
# =============================================================================

USB_DEVICES_DIR = Path("sys/bus/usb/devices")
USBCORE_AUTOSUSPEND = Path("sys/module/usbcore/parameters/autosuspend")
POWER_SUPPLY_DIR = Path("sys/class/power_supply")
BACKLIGHT_DIR = Path("sys/class/backlight")
INPUT_DIR = Path("sys/class/input")
ACPI_LID_STATE_FILES = (
    Path("proc/acpi/button/lid/LID0/state"),
    Path("proc/acpi/button/lid/LID/state"),
)
SYSRQ_TRIGGER = Path("proc/sysrq-trigger")
PROC_MODULES = Path("proc/modules")
ACPI_EVENTS_DIR = Path("etc/acpi/events")

# =============================================================================
# GRUB locations on the host
# =============================================================================

GRUB_CUSTOM_CANDIDATES = (
    Path("/etc/grub.d/40_custom"),
    Path("/etc/grub.d/50_custom"),
)
GRUB_CFG = Path("/boot/grub/grub.cfg")
GRUB2_CFG = Path("/boot/grub2/grub.cfg")

BOOT_DIR = Path("/boot")
MODULES_DIR = Path("/lib/modules")


def get_config_path() -> Path:
    """Get the configuration file path.

    Returns:
        Path from $GRUBPOWER_CONFIG if set, otherwise /etc/grubpower.conf.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return DEFAULT_CONFIG_PATH


def get_user_config_dir() -> Path:
    """Get the per-user configuration directory (used for theme overrides).

    Returns:
        Path to ~/.config/grubpower/ (or XDG_CONFIG_HOME/grubpower/).
    """
    base = os.environ.get("XDG_CONFIG_HOME")
    if base:
        return Path(base) / APP_NAME
    return Path.home() / ".config" / APP_NAME

