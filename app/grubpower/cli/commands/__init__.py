"""CLI commands for grubpower.

This package contains all subcommand implementations.
"""

from grubpower.cli.commands import (
    add_entry,
    build,
    check,
    check_update,
    configure,
    direct,
    fix_kernel,
    install,
    monitor,
    rebuild,
    setup,
    test_usb,
    uninstall,
)

__all__ = [
    "add_entry",
    "build",
    "check",
    "check_update",
    "configure",
    "direct",
    "fix_kernel",
    "install",
    "monitor",
    "rebuild",
    "setup",
    "test_usb",
    "uninstall",
]
