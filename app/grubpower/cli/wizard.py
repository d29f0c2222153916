"""Interactive configuration wizard used by ``setup`` and ``install --interactive``."""

import typer

from grubpower.config.models import GrubPowerConfig, PortSelection
from grubpower.utils.formatting import console, print_warning


def run_wizard(config: GrubPowerConfig) -> GrubPowerConfig:
    """Ask for the battery threshold, port selection and logging.

    Args:
        config: Current settings, used as prompt defaults.

    Returns:
        Configuration with the answers applied.
    """
    console.print("[bold]GrubPower Interactive Setup[/bold]")
    console.print()

    threshold = typer.prompt(
        "Set battery threshold for auto-shutdown (0 disables)",
        default=config.min_battery,
        type=int,
    )
    if not 0 <= threshold <= 100:
        print_warning(f"Invalid threshold {threshold}, keeping {config.min_battery}%")
        threshold = config.min_battery

    console.print("USB port selection options:")
    console.print("  1) All USB ports")
    console.print("  2) Charging ports only (if detectable)")
    console.print("  3) Specific port numbers")
    option = typer.prompt("Select option", default="1")

    selection = PortSelection.parse("all")
    if option.strip() == "2":
        selection = PortSelection.parse("charging")
    elif option.strip() == "3":
        ports = typer.prompt("Enter comma-separated port numbers (e.g., 1,2,4)")
        try:
            selection = PortSelection.parse(ports)
        except ValueError as e:
            print_warning(f"{e}; using all ports")

    enable_logging = typer.confirm("Enable logging?", default=config.enable_logging)

    console.print("Configuration complete.")
    return config.model_copy(
        update={
            "min_battery": threshold,
            "select_ports": selection.to_setting(),
            "enable_logging": enable_logging,
        }
    )
