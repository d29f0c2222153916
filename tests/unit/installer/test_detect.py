"""Unit tests for host system detection."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from grubpower.config.models import GrubPowerConfig
from grubpower.installer.detect import (
    GRUB_CUSTOM_HEADER,
    GrubError,
    KernelNotFoundError,
    detect_kernel,
    detect_system,
    find_grub_update_command,
    fix_kernel_typo,
    grub_root_from_device,
    kernel_release,
    kernel_version,
    list_kernels,
    locate_grub_custom,
    parse_grub_probe,
    probe_grub_root,
    resolve_kernel,
    update_grub,
)
from grubpower.utils.shell import CommandResult

DF_OUTPUT = """Filesystem     1K-blocks    Used Available Use% Mounted on
/dev/sda2         999320  312456    617968  34% /boot
"""


def make_kernels(boot: Path, *names: str) -> list[Path]:
    boot.mkdir(parents=True, exist_ok=True)
    paths = []
    for name in names:
        path = boot / name
        path.write_bytes(b"kernel")
        paths.append(path)
    return paths


class TestListKernels:
    """Tests for kernel enumeration."""

    def test_natural_version_order(self, tmp_path: Path) -> None:
        make_kernels(tmp_path, "vmlinuz-6.10.2", "vmlinuz-6.9.1", "vmlinuz-5.15.0")

        names = [k.name for k in list_kernels(tmp_path)]

        assert names == ["vmlinuz-5.15.0", "vmlinuz-6.9.1", "vmlinuz-6.10.2"]

    def test_missing_dir(self, tmp_path: Path) -> None:
        assert list_kernels(tmp_path / "missing") == []

    def test_version_helpers(self, tmp_path: Path) -> None:
        (tmp_path / "6.8.0").mkdir()

        assert kernel_version(Path("/boot/vmlinuz-6.8.0-45-generic")) == "6.8.0-45-generic"
        assert kernel_release(Path("/boot/vmlinuz-6.8.0"), tmp_path) == "6.8.0"

    def test_release_falls_back_to_running(self, tmp_path: Path) -> None:
        with patch("grubpower.installer.detect.platform.release", return_value="6.1.0"):
            assert kernel_release(Path("/boot/vmlinuz"), tmp_path) == "6.1.0"

    def test_release_without_module_tree(self, tmp_path: Path) -> None:
        """Arch-style names like vmlinuz-linux carry no release."""
        (tmp_path / "6.9.7-arch1-1").mkdir()

        with patch("grubpower.installer.detect.platform.release", return_value="6.9.7-arch1-1"):
            assert kernel_release(Path("/boot/vmlinuz-linux"), tmp_path) == "6.9.7-arch1-1"


class TestDetectKernel:
    """Tests for kernel auto-detection."""

    def test_running_kernel_first(self, tmp_path: Path) -> None:
        make_kernels(tmp_path, "vmlinuz-6.8.0", "vmlinuz-6.9.0", "vmlinuz")

        assert detect_kernel(tmp_path, release="6.8.0") == tmp_path / "vmlinuz-6.8.0"

    def test_default_symlink_second(self, tmp_path: Path) -> None:
        make_kernels(tmp_path, "vmlinuz-6.9.0", "vmlinuz")

        assert detect_kernel(tmp_path, release="6.8.0") == tmp_path / "vmlinuz"

    def test_newest_third(self, tmp_path: Path) -> None:
        make_kernels(tmp_path, "vmlinuz-6.9.0", "vmlinuz-6.10.0")

        assert detect_kernel(tmp_path, release="6.8.0") == tmp_path / "vmlinuz-6.10.0"

    def test_nothing_found(self, tmp_path: Path) -> None:
        with pytest.raises(KernelNotFoundError):
            detect_kernel(tmp_path, release="6.8.0")


class TestResolveKernel:
    """Tests for configured-kernel resolution."""

    def test_existing_kept(self, tmp_path: Path) -> None:
        (kernel,) = make_kernels(tmp_path, "vmlinuz-6.8.0")
        assert resolve_kernel(kernel, tmp_path) == kernel

    def test_typo_fixed(self, tmp_path: Path) -> None:
        make_kernels(tmp_path, "vmlinuz-6.8.0-45-generic", "vmlinuz-6.9.0-1-generic")

        resolved = resolve_kernel(tmp_path / "vmlinuz-6.8.0-45-genenic", tmp_path)

        assert resolved == tmp_path / "vmlinuz-6.8.0-45-generic"

    def test_newest_when_missing(self, tmp_path: Path) -> None:
        make_kernels(tmp_path, "vmlinuz-6.8.0", "vmlinuz-6.9.0")

        assert resolve_kernel(tmp_path / "vmlinuz-linux", tmp_path) == tmp_path / "vmlinuz-6.9.0"

    def test_nothing_found(self, tmp_path: Path) -> None:
        with pytest.raises(KernelNotFoundError, match="KERNEL_PATH"):
            resolve_kernel(tmp_path / "vmlinuz-linux", tmp_path, release="6.8.0")

    def test_fix_typo_requires_existing_file(self, tmp_path: Path) -> None:
        assert fix_kernel_typo(tmp_path / "vmlinuz-genenic") is None
        assert fix_kernel_typo(tmp_path / "vmlinuz-generic") is None


class TestGrubRoot:
    """Tests for GRUB root detection."""

    @pytest.mark.parametrize(
        ("device", "expected"),
        [
            ("/dev/sda1", "hd0,0"),
            ("/dev/sdb3", "hd0,2"),
            ("/dev/nvme0n1p2", None),
        ],
    )
    def test_from_device(self, device: str, expected: str | None) -> None:
        assert grub_root_from_device(device) == expected

    def test_parse_grub_probe(self) -> None:
        assert parse_grub_probe("(hd0,gpt2)\n") == "hd0,gpt2"
        assert parse_grub_probe("garbage") is None

    @patch("grubpower.installer.detect.run_command")
    @patch("grubpower.installer.detect.command_exists", return_value=True)
    def test_probe(self, _exists: MagicMock, mock_run: MagicMock) -> None:
        mock_run.return_value = CommandResult(stdout="(hd0,gpt2)\n", stderr="", returncode=0)

        assert probe_grub_root() == "hd0,gpt2"

    @patch("grubpower.installer.detect.command_exists", return_value=False)
    def test_probe_unavailable(self, _exists: MagicMock) -> None:
        assert probe_grub_root() is None


class TestLocateGrubCustom:
    """Tests for finding or creating the custom file."""

    def test_configured_exists(self, tmp_path: Path) -> None:
        configured = tmp_path / "my_custom"
        configured.write_text("")
        assert locate_grub_custom(configured, (tmp_path / "40_custom",)) == configured

    def test_second_candidate(self, tmp_path: Path) -> None:
        second = tmp_path / "50_custom"
        second.write_text("")

        found = locate_grub_custom(tmp_path / "missing", (tmp_path / "40_custom", second))

        assert found == second

    def test_creates_first_candidate(self, tmp_path: Path) -> None:
        first = tmp_path / "grub.d" / "40_custom"

        found = locate_grub_custom(tmp_path / "missing", (first,))

        assert found == first
        assert first.read_text() == GRUB_CUSTOM_HEADER
        assert first.stat().st_mode & 0o777 == 0o755


class TestDetectSystem:
    """Tests for detect_system()."""

    @patch("grubpower.installer.detect.run_command")
    def test_fills_in_defaults(self, mock_run: MagicMock, tmp_path: Path) -> None:
        boot = tmp_path / "boot"
        make_kernels(boot, "vmlinuz-6.8.0-45-generic")
        custom = tmp_path / "40_custom"
        custom.write_text(GRUB_CUSTOM_HEADER)
        mock_run.return_value = CommandResult(
            stdout=DF_OUTPUT.replace("sda2", "sda3"), stderr="", returncode=0
        )
        config = GrubPowerConfig(
            kernel_path=boot / "vmlinuz-linux", grub_custom=tmp_path / "missing_custom"
        )

        detected = detect_system(config, boot, "6.8.0-45-generic", (custom,))

        assert detected.kernel_path == boot / "vmlinuz-6.8.0-45-generic"
        assert detected.grub_root == "hd0,2"
        assert detected.grub_custom == custom

    @patch("grubpower.installer.detect.run_command")
    def test_keeps_custom_grub_root(
        self, mock_run: MagicMock, host_config: GrubPowerConfig
    ) -> None:
        """A GRUB root the user changed is never overwritten."""
        mock_run.return_value = CommandResult(
            stdout=DF_OUTPUT.replace("sda2", "sda5"), stderr="", returncode=0
        )

        detected = detect_system(host_config, host_config.kernel_path.parent, "6.8.0")

        assert detected.grub_root == "hd0,2"
        assert detected == host_config

    @patch("grubpower.installer.detect.run_command")
    def test_detects_root_when_default(
        self, mock_run: MagicMock, host_config: GrubPowerConfig
    ) -> None:
        config = host_config.model_copy(update={"grub_root": "hd0,1"})
        mock_run.return_value = CommandResult(
            stdout=DF_OUTPUT.replace("sda2", "sda5"), stderr="", returncode=0
        )

        detected = detect_system(config, config.kernel_path.parent, "6.8.0")

        assert detected.grub_root == "hd0,4"


class TestUpdateGrub:
    """Tests for GRUB config regeneration."""

    @patch("grubpower.installer.detect.command_exists")
    def test_first_available_command(self, mock_exists: MagicMock) -> None:
        mock_exists.side_effect = lambda name: name == "grub2-mkconfig"

        assert find_grub_update_command() == ["grub2-mkconfig", "-o", "/boot/grub2/grub.cfg"]

    @patch("grubpower.installer.detect.command_exists", return_value=False)
    def test_no_command(self, _exists: MagicMock) -> None:
        assert update_grub() is False

    @patch("grubpower.installer.detect.run_command")
    @patch("grubpower.installer.detect.command_exists", return_value=True)
    def test_success(self, _exists: MagicMock, mock_run: MagicMock) -> None:
        mock_run.return_value = CommandResult(stdout="", stderr="", returncode=0)

        assert update_grub() is True
        assert mock_run.call_args.args[0] == ["update-grub"]

    @patch("grubpower.installer.detect.run_command")
    @patch("grubpower.installer.detect.command_exists", return_value=True)
    def test_failure_raises(self, _exists: MagicMock, mock_run: MagicMock) -> None:
        mock_run.return_value = CommandResult(stdout="", stderr="boom", returncode=1)

        with pytest.raises(GrubError, match="boom"):
            update_grub()

    @patch("grubpower.installer.detect.run_command")
    @patch("grubpower.installer.detect.command_exists", return_value=True)
    def test_timeout_raises(self, _exists: MagicMock, mock_run: MagicMock) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired("update-grub", 300)

        with pytest.raises(GrubError):
            update_grub()
