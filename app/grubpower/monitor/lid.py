"""Lid switch state detection."""

import logging
from enum import Enum

from grubpower.core.paths import ACPI_LID_STATE_FILES, INPUT_DIR
from grubpower.monitor.sysfs import SysfsTree

logger = logging.getLogger(__name__)


class LidState(str, Enum):
    """Observed lid switch position."""

    OPEN = "open"
    CLOSED = "closed"


def read_lid_state(sysfs: SysfsTree) -> LidState:
    """Determine the current lid state.

    Sources are tried in order: the ACPI button state file (``LID0`` then
    ``LID``), then any input device whose name mentions "lid", using its
    switch bitmap. Without positive evidence of a closed lid the result is
    OPEN, so the display is never blanked by mistake.

    Args:
        sysfs: Attribute accessor.

    Returns:
        The observed lid state.
    """
    for relative in ACPI_LID_STATE_FILES:
        state_file = sysfs.path(relative)
        if not state_file.is_file():
            continue
        content = sysfs.read(state_file)
        if content is None:
            continue
        return LidState.CLOSED if "closed" in content.lower() else LidState.OPEN

    for event in sysfs.list_dir(sysfs.path(INPUT_DIR), "event*"):
        name = sysfs.read(event / "device" / "name")
        if name is None or "lid" not in name.lower():
            continue
        switch = sysfs.read(event / "device" / "sw")
        logger.debug("Lid switch %s (%s) reports sw=%r", event.name, name, switch)
        return LidState.CLOSED if switch == "1" else LidState.OPEN

    return LidState.OPEN
