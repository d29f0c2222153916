"""Build command implementation.

Builds the boot image only, without touching the GRUB configuration.
"""

import typer

from grubpower.cli.workflow import build_image, cleanup, detect, load_or_create_config, require_root
from grubpower.core.paths import get_config_path

app = typer.Typer(
    help="Build the boot image only.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def build(ctx: typer.Context) -> None:
    """Build the boot image into OUTPUT_DIR."""
    if ctx.invoked_subcommand is not None:
        return

    require_root()
    config_path = get_config_path()
    config = detect(load_or_create_config(config_path), config_path)
    build_image(config)
    cleanup(config)
