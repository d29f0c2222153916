"""Unit tests for a complete monitor session on a fake kernel tree."""

from functools import partial
from io import StringIO
from pathlib import Path
from unittest.mock import patch

from fakekernel import FakeKernelTree
from grubpower.config.io import save_config
from grubpower.config.models import GrubPowerConfig
from grubpower.core.theme import get_theme
from grubpower.monitor.__main__ import main
from grubpower.monitor.battery import SysrqPowerControl
from grubpower.monitor.session import run_session
from rich.console import Console


class TestRunSession:
    """Tests for run_session()."""

    def test_session_powers_usb_and_reports(self, kernel_tree: FakeKernelTree) -> None:
        """One cycle powers the devices and prints the banner and device table."""
        kernel_tree.add_usb_device("1-1", "auto", product="Phone")
        kernel_tree.add_battery(80)
        buffer = StringIO()
        console = Console(file=buffer, theme=get_theme(), width=100)
        config = GrubPowerConfig(min_battery=10)

        state = run_session(config, console, kernel_tree.root, skip_boot=True, max_cycles=1)

        assert not state.shutdown
        assert kernel_tree.control("1-1") == "on"
        assert kernel_tree.usbcore_autosuspend() == "-1"
        output = buffer.getvalue()
        assert "USB Mode Activated" in output
        assert "Phone" in output

    def test_session_shuts_down_on_low_battery(self, kernel_tree: FakeKernelTree) -> None:
        """A battery below the threshold ends the session through SysRq."""
        kernel_tree.add_battery(4)
        console = Console(file=StringIO(), theme=get_theme())
        quick_power = partial(SysrqPowerControl, sleep=lambda _seconds: None)

        with (
            patch("grubpower.monitor.loop.SysrqPowerControl", quick_power),
            patch("grubpower.monitor.battery.os.sync"),
        ):
            state = run_session(
                GrubPowerConfig(min_battery=10), console, kernel_tree.root, skip_boot=True
            )

        assert state.shutdown
        assert kernel_tree.sysrq() == "b"


class TestEntryPoint:
    """Tests for ``python -m grubpower.monitor``."""

    def test_main_uses_baked_in_config(
        self, host_config: GrubPowerConfig, tmp_path: Path
    ) -> None:
        config_path = tmp_path / "grubpower.conf"
        save_config(host_config.model_copy(update={"enable_logging": True}), config_path)

        with (
            patch("grubpower.monitor.__main__.DEFAULT_CONFIG_PATH", config_path),
            patch("grubpower.monitor.__main__.run_session") as mock_session,
        ):
            assert main() == 0

        config = mock_session.call_args.args[0]
        assert config.grub_root == "hd0,2"
        assert "GrubPower logging started" in host_config.log_file.read_text()
