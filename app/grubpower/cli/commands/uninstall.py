"""Uninstall command implementation.

Removes the boot image, leftovers of earlier versions and the selected
GrubPower GRUB entries, and optionally the configuration file.
"""

import shutil
from pathlib import Path
from typing import Annotated

import typer

from grubpower.cli.display import create_entries_table
from grubpower.cli.workflow import regenerate_grub, require_root
from grubpower.config.io import load_config_or_default
from grubpower.config.models import GrubPowerConfig
from grubpower.core.paths import get_config_path
from grubpower.installer.grub import ENTRY_MARKER, GrubCustomFile, parse_selection
from grubpower.utils.formatting import (
    console,
    print_error,
    print_info,
    print_success,
    print_warning,
)

app = typer.Typer(
    help="Remove GrubPower from the system.",
    invoke_without_command=True,
)

# Older versions wrote their init script to the host root
STALE_INIT = Path("/init")


def remove_artifacts(config: GrubPowerConfig, stale_init: Path = STALE_INIT) -> list[Path]:
    """Delete the boot image, a stale GrubPower ``/init`` and the build directory.

    A ``/init`` file is only deleted when it is a GrubPower script.

    Returns:
        Paths that were removed.
    """
    removed: list[Path] = []

    if config.initramfs_path.is_file():
        config.initramfs_path.unlink()
        removed.append(config.initramfs_path)

    if stale_init.is_file():
        try:
            content = stale_init.read_text(encoding="utf-8", errors="replace")
        except OSError:
            content = ""
        if ENTRY_MARKER in content:
            stale_init.unlink()
            removed.append(stale_init)

    if config.build_dir.is_dir():
        shutil.rmtree(config.build_dir)
        removed.append(config.build_dir)

    return removed


def remove_grub_entries(config: GrubPowerConfig, *, all_entries: bool, yes: bool) -> list[str]:
    """Back up the GRUB custom file and remove the chosen entries.

    Returns:
        Titles of removed entries.
    """
    custom = GrubCustomFile(config.grub_custom)
    if not custom.exists():
        print_warning(f"GRUB custom configuration file not found at {config.grub_custom}")
        return []

    backup = custom.backup("bak.uninstall")
    print_info(f"Created backup of GRUB configuration at {backup}")

    entries = custom.find_entries()
    if not entries:
        print_info("No GrubPower GRUB entries found.")
        return []

    console.print(create_entries_table(entries))
    if all_entries or yes:
        choice = "all"
    else:
        choice = typer.prompt(
            "Entry numbers to remove (e.g. 1 2), 'all' or 'none'",
            default="all",
        )

    indices = parse_selection(choice, len(entries))
    if not indices:
        print_info("No entries removed.")
        return []

    return custom.remove_entries(indices)


@app.callback(invoke_without_command=True)
def uninstall(
    ctx: typer.Context,
    all_entries: Annotated[
        bool,
        typer.Option(
            "--all",
            "-a",
            help="Remove every GrubPower GRUB entry without asking.",
        ),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Answer yes to every question.",
        ),
    ] = False,
    keep_config: Annotated[
        bool,
        typer.Option(
            "--keep-config",
            help="Keep the configuration file.",
        ),
    ] = False,
) -> None:
    """Uninstall GrubPower.

    Examples:
        sudo grubpower uninstall              # Choose entries interactively
        sudo grubpower uninstall --all        # Remove all entries
        sudo grubpower uninstall -y --keep-config
    """
    if ctx.invoked_subcommand is not None:
        return

    require_root()
    print_info("Uninstalling GrubPower...")

    config_path = get_config_path()
    config = load_config_or_default(config_path)

    try:
        for path in remove_artifacts(config):
            print_info(f"Removed {path}")
        removed = remove_grub_entries(config, all_entries=all_entries, yes=yes)
    except OSError as e:
        print_error(f"Uninstall failed: {e}")
        raise typer.Exit(code=1) from e

    for title in removed:
        print_info(f"Removed entry: {title}")
    if removed:
        regenerate_grub()

    if keep_config or not config_path.exists():
        print_info(f"Configuration file kept at {config_path}")
    elif yes or typer.confirm("Do you want to remove the GrubPower configuration file?"):
        config_path.unlink()
        print_info(f"Removed configuration file {config_path}")
    else:
        print_info(f"Configuration file kept at {config_path}")

    print_success("GrubPower uninstallation completed.")
