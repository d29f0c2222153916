"""Unit tests for battery monitoring and the SysRq shutdown."""

from unittest.mock import patch

import pytest
from fakekernel import FakeKernelTree
from grubpower.monitor.battery import (
    SHUTDOWN_GRACE_PERIOD,
    BatteryMonitor,
    SysrqPowerControl,
    should_shutdown,
)
from grubpower.monitor.sysfs import SysfsTree


class TestBatteryMonitor:
    """Tests for BatteryMonitor.read_level()."""

    def test_reads_bat_capacity(self, kernel_tree: FakeKernelTree, sysfs: SysfsTree) -> None:
        """The BAT* supply capacity is returned."""
        kernel_tree.add_battery(57)

        assert BatteryMonitor(sysfs).read_level() == 57

    def test_first_battery_wins(self, kernel_tree: FakeKernelTree, sysfs: SysfsTree) -> None:
        """With two batteries, BAT0 is read."""
        kernel_tree.add_battery(80, "BAT0")
        kernel_tree.add_battery(20, "BAT1")

        assert BatteryMonitor(sysfs).read_level() == 80

    def test_battery_type_fallback(self, kernel_tree: FakeKernelTree, sysfs: SysfsTree) -> None:
        """Supplies not named BAT* are used when their type is Battery."""
        kernel_tree.add_battery(33, "CMB1")

        assert BatteryMonitor(sysfs).read_level() == 33

    def test_ignores_mains_supply(self, kernel_tree: FakeKernelTree, sysfs: SysfsTree) -> None:
        """An AC adapter is not a battery."""
        ac = kernel_tree.supply_dir / "AC"
        ac.mkdir()
        (ac / "type").write_text("Mains\n")
        (ac / "online").write_text("1\n")

        assert BatteryMonitor(sysfs).read_level() is None

    def test_no_battery(self, sysfs: SysfsTree) -> None:
        """No power supplies means no reading."""
        assert BatteryMonitor(sysfs).read_level() is None

    def test_garbage_capacity(self, kernel_tree: FakeKernelTree, sysfs: SysfsTree) -> None:
        """A non-numeric capacity is treated as unknown."""
        kernel_tree.add_battery("Unknown")

        assert BatteryMonitor(sysfs).read_level() is None


class TestShouldShutdown:
    """Tests for the shutdown decision."""

    @pytest.mark.parametrize(
        ("level", "threshold", "expected"),
        [
            (9, 10, True),
            (10, 10, True),
            (11, 10, False),
            (0, 0, False),
            (None, 10, False),
            (1, 0, False),
        ],
    )
    def test_decision(self, level: int | None, threshold: int, expected: bool) -> None:
        assert should_shutdown(level, threshold) is expected


class TestSysrqPowerControl:
    """Tests for the final shutdown."""

    def test_waits_syncs_and_triggers(self, kernel_tree: FakeKernelTree, sysfs: SysfsTree) -> None:
        """The grace period is slept, disks are synced, then 'b' is written."""
        sleeps: list[float] = []
        control = SysrqPowerControl(sysfs, sleep=sleeps.append)

        with patch("grubpower.monitor.battery.os.sync") as mock_sync:
            control.shutdown(8, 10)

        assert sleeps == [SHUTDOWN_GRACE_PERIOD]
        mock_sync.assert_called_once()
        assert kernel_tree.sysrq() == "b"

    def test_missing_trigger_does_not_raise(self, tmp_path) -> None:
        """Without /proc/sysrq-trigger the failure is only logged."""
        control = SysrqPowerControl(SysfsTree(tmp_path), sleep=lambda _s: None)

        with patch("grubpower.monitor.battery.os.sync"):
            control.shutdown(5, 10)

        assert not (tmp_path / "proc/sysrq-trigger").exists()
