"""One monitor session: boot preparation, startup report, polling loop."""

import logging
from pathlib import Path

from rich.console import Console

from grubpower.config.models import GrubPowerConfig
from grubpower.monitor.boot import BootPreparer
from grubpower.monitor.loop import MonitorLoop, MonitorState
from grubpower.monitor.sysfs import SysfsTree

logger = logging.getLogger(__name__)


def run_session(
    config: GrubPowerConfig,
    console: Console,
    root: Path = Path("/"),
    *,
    skip_boot: bool = False,
    max_cycles: int | None = None,
) -> MonitorState:
    """Prepare the environment and monitor until shutdown.

    Args:
        config: Monitor settings, read once.
        console: Console for the banner and status lines.
        root: Filesystem root the kernel attributes live under.
        skip_boot: Skip mounts and module loading (already running system).
        max_cycles: Stop after this many cycles. None runs until shutdown.

    Returns:
        The final monitor state.
    """
    if not skip_boot:
        BootPreparer(config, root).prepare()

    loop = MonitorLoop.from_config(config, SysfsTree(root), console)
    state = loop.start()

    if loop.reporter is not None:
        loop.reporter.banner()
        loop.reporter.report_devices(loop.usb.list_devices())

    return loop.run(state, max_cycles=max_cycles)
