"""Add-entry command implementation.

Writes the GRUB entries for an already built boot image.
"""

import typer

from grubpower.cli.workflow import detect, install_entries, load_or_create_config, require_root
from grubpower.core.paths import get_config_path
from grubpower.utils.formatting import print_success

app = typer.Typer(
    help="Add the GRUB entries only.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def add_entry(ctx: typer.Context) -> None:
    """Add the power and recovery entries to the GRUB menu.

    The boot image must already exist (see 'grubpower build').
    """
    if ctx.invoked_subcommand is not None:
        return

    require_root()
    config_path = get_config_path()
    config = detect(load_or_create_config(config_path), config_path)
    install_entries(config)
    print_success("GRUB entries added.")
