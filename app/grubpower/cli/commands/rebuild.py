"""Rebuild command implementation.

Removes every GrubPower GRUB entry, then builds the boot image and writes
the entries again from the current configuration.
"""

from pathlib import Path

import typer

from grubpower.cli.workflow import (
    build_image,
    cleanup,
    detect,
    install_entries,
    load_or_create_config,
    remove_all_entries,
    require_root,
)
from grubpower.core.paths import get_config_path
from grubpower.installer.rollback import RollbackStack
from grubpower.utils.formatting import print_info, print_success

app = typer.Typer(
    help="Remove and recreate the GRUB entries and boot image.",
    invoke_without_command=True,
)


def run_rebuild(config_path: Path) -> None:
    """Remove all GrubPower entries and install them again."""
    require_root()
    print_info("Rebuilding GRUB entries with the current kernel path...")

    config = load_or_create_config(config_path)
    removed = remove_all_entries(config)
    for title in removed:
        print_info(f"Removed entry: {title}")

    config = detect(config, config_path)
    with RollbackStack() as rollback:
        build_image(config, rollback)
        install_entries(config, rollback)
    cleanup(config)
    print_success("GRUB entries rebuilt. Please reboot to test the fix.")


@app.callback(invoke_without_command=True)
def rebuild(ctx: typer.Context) -> None:
    """Rebuild the boot image and GRUB entries.

    Use after changing KERNEL_PATH or GRUB_ROOT, or after a kernel update.
    """
    if ctx.invoked_subcommand is not None:
        return

    run_rebuild(get_config_path())
