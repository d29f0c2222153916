"""Display power control.

Several mechanisms can blank the panel, depending on what the boot image
carries and what the hardware exposes. The mechanism is probed once at
startup with :func:`probe_display_controller` and the resulting controller is
used for the whole session.
"""

import logging
import shutil
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from grubpower.core.paths import BACKLIGHT_DIR
from grubpower.monitor.sysfs import SysfsTree
from grubpower.utils.shell import run_best_effort

logger = logging.getLogger(__name__)


class DisplayState(str, Enum):
    """Display power state as recorded by the monitor."""

    ON = "on"
    OFF = "off"


class DisplayController(ABC):
    """Abstract base class for display power mechanisms."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short mechanism name for logs and status output."""

    @abstractmethod
    def power_off(self) -> None:
        """Blank the display. Failures are logged, never raised."""

    @abstractmethod
    def power_on(self) -> None:
        """Wake the display. Failures are logged, never raised."""


class DpmsDisplay(DisplayController):
    """DPMS signalling through ``vbetool``."""

    @property
    def name(self) -> str:
        return "vbetool"

    def power_off(self) -> None:
        if not run_best_effort(["vbetool", "dpms", "off"]):
            logger.debug("vbetool dpms off failed")

    def power_on(self) -> None:
        if not run_best_effort(["vbetool", "dpms", "on"]):
            logger.debug("vbetool dpms on failed")


class TerminalBlankDisplay(DisplayController):
    """Console blanking through ``setterm``."""

    @property
    def name(self) -> str:
        return "setterm"

    def power_off(self) -> None:
        if not run_best_effort(["setterm", "--blank", "force"]):
            logger.debug("setterm --blank force failed")

    def power_on(self) -> None:
        if not run_best_effort(["setterm", "--blank", "poke"]):
            logger.debug("setterm --blank poke failed")


class BacklightDisplay(DisplayController):
    """Direct backlight brightness manipulation.

    The brightness of each backlight is saved before it is zeroed and
    restored on power-on. Without a saved value, half of the maximum
    brightness is used.
    """

    def __init__(self, sysfs: SysfsTree) -> None:
        self._sysfs = sysfs
        self._saved: dict[str, int] = {}

    @property
    def name(self) -> str:
        return "backlight"

    def _backlights(self) -> list[Path]:
        return [
            bl
            for bl in self._sysfs.list_dir(self._sysfs.path(BACKLIGHT_DIR))
            if (bl / "brightness").is_file()
        ]

    def power_off(self) -> None:
        for bl in self._backlights():
            current = self._sysfs.read_int(bl / "actual_brightness")
            if current is None:
                current = self._sysfs.read_int(bl / "brightness")
            # Never overwrite a saved level with an already-dark reading
            if current:
                self._saved[bl.name] = current
            self._sysfs.write(bl / "brightness", "0")

    def power_on(self) -> None:
        for bl in self._backlights():
            saved = self._saved.get(bl.name)
            if saved is not None:
                self._sysfs.write(bl / "brightness", str(saved))
                continue
            maximum = self._sysfs.read_int(bl / "max_brightness")
            if maximum is not None:
                self._sysfs.write(bl / "brightness", str(maximum // 2))


class NullDisplay(DisplayController):
    """Used when no display mechanism is available."""

    @property
    def name(self) -> str:
        return "none"

    def power_off(self) -> None:
        logger.debug("No display control mechanism available")

    def power_on(self) -> None:
        logger.debug("No display control mechanism available")


def probe_display_controller(
    sysfs: SysfsTree,
    which: Callable[[str], str | None] = shutil.which,
) -> DisplayController:
    """Pick the display mechanism for this session.

    Preference order: vbetool, setterm, sysfs backlight, none.

    Args:
        sysfs: Attribute accessor.
        which: Executable lookup, shutil.which by default.

    Returns:
        The controller to use until the monitor stops.
    """
    controller: DisplayController
    if which("vbetool"):
        controller = DpmsDisplay()
    elif which("setterm"):
        controller = TerminalBlankDisplay()
    elif any((bl / "brightness").is_file() for bl in sysfs.list_dir(sysfs.path(BACKLIGHT_DIR))):
        controller = BacklightDisplay(sysfs)
    else:
        controller = NullDisplay()

    logger.info("Display control mechanism: %s", controller.name)
    return controller
