"""Battery monitoring and low-battery shutdown."""

import logging
import os
import time
from collections.abc import Callable

from grubpower.core.paths import POWER_SUPPLY_DIR, SYSRQ_TRIGGER
from grubpower.monitor.sysfs import SysfsTree

logger = logging.getLogger(__name__)

# Seconds to wait between announcing the shutdown and issuing it
SHUTDOWN_GRACE_PERIOD = 5.0

# Magic SysRq command issued once the grace period has passed ("b": reboot)
SYSRQ_COMMAND = "b"


class BatteryMonitor:
    """Reads the battery charge percentage from the power-supply class."""

    def __init__(self, sysfs: SysfsTree) -> None:
        self._sysfs = sysfs

    def read_level(self) -> int | None:
        """Read the current battery capacity.

        The first ``BAT*`` supply exposing ``capacity`` wins; otherwise any
        supply whose ``type`` is "Battery" is used.

        Returns:
            Capacity percentage, or None when no battery reading is available.
        """
        supply_dir = self._sysfs.path(POWER_SUPPLY_DIR)

        for supply in self._sysfs.list_dir(supply_dir, "BAT*"):
            level = self._sysfs.read_int(supply / "capacity")
            if level is not None:
                return level

        for supply in self._sysfs.list_dir(supply_dir):
            if self._sysfs.read(supply / "type") != "Battery":
                continue
            level = self._sysfs.read_int(supply / "capacity")
            if level is not None:
                return level

        return None


def should_shutdown(level: int | None, threshold: int) -> bool:
    """Decide whether the battery level calls for a shutdown.

    An unknown level never triggers a shutdown.

    Args:
        level: Battery percentage, or None if unknown.
        threshold: Configured minimum (0 disables the check).

    Returns:
        True if the machine should be shut down.
    """
    return threshold > 0 and level is not None and level <= threshold


class SysrqPowerControl:
    """Issues the final low-level shutdown through the magic SysRq trigger.

    Attributes:
        grace_period: Seconds to wait before flushing and triggering.
    """

    def __init__(
        self,
        sysfs: SysfsTree,
        *,
        grace_period: float = SHUTDOWN_GRACE_PERIOD,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._sysfs = sysfs
        self.grace_period = grace_period
        self._sleep = sleep

    def shutdown(self, level: int, threshold: int) -> None:
        """Shut the machine down to preserve the battery.

        Irreversible: there is no retry and no confirmation.

        Args:
            level: Battery level that crossed the threshold.
            threshold: Configured threshold.
        """
        logger.warning("Battery level (%d%%) reached threshold (%d%%)", level, threshold)
        logger.warning("Shutting down system to preserve battery...")
        self._sleep(self.grace_period)
        os.sync()
        if not self._sysfs.write(self._sysfs.path(SYSRQ_TRIGGER), SYSRQ_COMMAND):
            logger.error("SysRq trigger unavailable, cannot shut down")
