"""Direct command implementation.

Non-interactive fallback install: no compatibility checks, no prompts,
kernel fallback to the running or newest kernel.
"""

import typer

from grubpower.cli.display import print_install_summary, print_settings
from grubpower.cli.workflow import (
    build_image,
    cleanup,
    detect,
    install_entries,
    load_or_create_config,
    require_root,
)
from grubpower.core.paths import get_config_path
from grubpower.installer.rollback import RollbackStack
from grubpower.utils.formatting import console, print_info

app = typer.Typer(
    help="Install without checks or prompts.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def direct(ctx: typer.Context) -> None:
    """Install straight from the configuration file.

    Use when the regular install stops in a check or prompt.
    """
    if ctx.invoked_subcommand is not None:
        return

    require_root()
    print_info("GrubPower Direct Installation")

    config_path = get_config_path()
    config = load_or_create_config(config_path)
    console.print("Using the following settings:")
    print_settings(config)

    config = detect(config, config_path)
    with RollbackStack() as rollback:
        build_image(config, rollback)
        install_entries(config, rollback)
    cleanup(config)

    print_install_summary(config, config_path)
