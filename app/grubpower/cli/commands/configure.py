"""Configure command implementation.

Creates the configuration file if needed and opens it in an editor.
"""

import os

import typer

from grubpower.config.io import ConfigError, create_default_config
from grubpower.core.paths import get_config_path
from grubpower.utils.formatting import print_error, print_info, print_warning
from grubpower.utils.shell import command_exists, run_interactive

app = typer.Typer(
    help="Create or edit the configuration file.",
    invoke_without_command=True,
)

FALLBACK_EDITORS = ("nano", "vi")


def find_editor() -> str | None:
    """Pick $EDITOR, then nano, then vi."""
    editor = os.environ.get("EDITOR")
    if editor:
        return editor
    for candidate in FALLBACK_EDITORS:
        if command_exists(candidate):
            return candidate
    return None


@app.callback(invoke_without_command=True)
def configure(ctx: typer.Context) -> None:
    """Open the configuration file in $EDITOR (or nano/vi)."""
    if ctx.invoked_subcommand is not None:
        return

    try:
        config_path, created = create_default_config(get_config_path())
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    if created:
        print_info(f"Created default configuration at {config_path}")

    editor = find_editor()
    if editor is None:
        print_warning(f"No text editor found. Please edit {config_path} manually.")
        return

    try:
        returncode = run_interactive([*editor.split(), str(config_path)])
    except (FileNotFoundError, OSError) as e:
        print_error(f"Failed to start editor '{editor}': {e}")
        raise typer.Exit(code=1) from e
    if returncode != 0:
        print_warning(f"Editor exited with code {returncode}")
