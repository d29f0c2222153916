"""Install steps shared by several commands.

Each helper converts the installer's typed errors into a printed error and
``typer.Exit(code=1)``, so commands can chain them without their own
error handling.
"""

import logging
import shutil
from pathlib import Path

import typer

from grubpower.config.io import (
    ConfigError,
    create_default_config,
    load_config,
    persist_changes,
)
from grubpower.config.models import GrubPowerConfig
from grubpower.installer.detect import (
    GrubError,
    KernelNotFoundError,
    detect_system,
    update_grub,
)
from grubpower.installer.grub import GrubCustomFile, default_entries
from grubpower.installer.initramfs import BuildError, InitramfsBuilder
from grubpower.installer.rollback import RollbackStack
from grubpower.utils.formatting import print_error, print_info, print_success, print_warning
from grubpower.utils.shell import is_root

logger = logging.getLogger(__name__)


def require_root() -> None:
    """Exit unless running as root."""
    if not is_root():
        print_error("This command must be run as root. Please use sudo.")
        raise typer.Exit(code=1)


def load_or_create_config(config_path: Path) -> GrubPowerConfig:
    """Load the configuration, creating the default file first if missing."""
    try:
        _, created = create_default_config(config_path)
        if created:
            print_info(f"Created default configuration at {config_path}")
        return load_config(config_path)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


def save_changes(old: GrubPowerConfig, new: GrubPowerConfig, config_path: Path) -> None:
    """Write changed settings back to the configuration file."""
    try:
        changed = persist_changes(old, new, config_path)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    for key in changed:
        print_info(f"Updated {key} in {config_path}")


def detect(config: GrubPowerConfig, config_path: Path) -> GrubPowerConfig:
    """Run system detection and persist what changed."""
    print_info("Detecting system configuration...")
    try:
        detected = detect_system(config)
    except KernelNotFoundError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    save_changes(config, detected, config_path)
    return detected


def build_image(config: GrubPowerConfig, rollback: RollbackStack | None = None) -> Path:
    """Build the boot image into the output directory."""
    builder = InitramfsBuilder(config)
    try:
        image = builder.build()
    except BuildError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    if rollback is not None:
        rollback.push("remove boot image", lambda: image.unlink(missing_ok=True))
    print_success(f"Initramfs created at {image}")
    return image


def cleanup(config: GrubPowerConfig) -> None:
    """Remove the build directory."""
    print_info("Cleaning up...")
    InitramfsBuilder(config).cleanup()


def regenerate_grub() -> None:
    """Run the GRUB config generator, or tell the user to."""
    try:
        updated = update_grub()
    except GrubError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    if not updated:
        print_warning("Could not find GRUB update command.")
        print_info(
            "Please update your GRUB configuration with: grub-mkconfig -o /boot/grub/grub.cfg"
        )


def install_entries(config: GrubPowerConfig, rollback: RollbackStack | None = None) -> None:
    """Write the power and recovery entries and regenerate GRUB's config.

    The kernel and the boot image must exist.
    """
    if not config.kernel_path.is_file():
        print_error(f"Kernel not found at {config.kernel_path}")
        raise typer.Exit(code=1)
    if not config.initramfs_path.is_file():
        print_error(f"Initramfs not found at {config.initramfs_path}")
        raise typer.Exit(code=1)

    custom = GrubCustomFile(config.grub_custom)
    try:
        if custom.exists():
            backup = custom.backup()
            if rollback is not None:
                rollback.push(
                    "restore GRUB custom file", lambda: shutil.copy2(backup, custom.path)
                )
        print_info("Adding GRUB menu entries...")
        print_info(f"Using kernel: {config.kernel_path}")
        print_info(f"Using initramfs: {config.initramfs_path}")
        custom.add_entries(default_entries(config))
    except OSError as e:
        print_error(f"Failed to write {custom.path}: {e}")
        raise typer.Exit(code=1) from e

    regenerate_grub()


def remove_all_entries(config: GrubPowerConfig) -> list[str]:
    """Back up the custom file and drop every GrubPower entry."""
    custom = GrubCustomFile(config.grub_custom)
    if not custom.exists():
        print_warning(f"GRUB custom configuration file not found at {config.grub_custom}")
        return []
    try:
        custom.backup("bak.uninstall")
        return custom.remove_entries()
    except OSError as e:
        print_error(f"Failed to update {custom.path}: {e}")
        raise typer.Exit(code=1) from e
