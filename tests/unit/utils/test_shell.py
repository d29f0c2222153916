"""Unit tests for shell execution utilities."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest
from grubpower.utils.shell import (
    CommandResult,
    command_exists,
    is_root,
    run_best_effort,
    run_binary,
    run_command,
    run_interactive,
    spawn_background,
)


class TestRunCommand:
    """Tests for run_command function."""

    @patch("grubpower.utils.shell.subprocess.run")
    def test_wraps_completed_process(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(stdout="out", stderr="err", returncode=2)

        result = run_command(["df", "/boot"])

        assert result == CommandResult(stdout="out", stderr="err", returncode=2)
        assert not result.success
        assert mock_run.call_args.kwargs["capture_output"] is True
        assert mock_run.call_args.kwargs["text"] is True


class TestRunBestEffort:
    """Tests for run_best_effort function."""

    @patch("grubpower.utils.shell.run_command")
    def test_success(self, mock_run: MagicMock) -> None:
        mock_run.return_value = CommandResult(stdout="", stderr="", returncode=0)
        assert run_best_effort(["modprobe", "xhci_hcd"]) is True

    @patch("grubpower.utils.shell.run_command")
    def test_nonzero_exit(self, mock_run: MagicMock) -> None:
        mock_run.return_value = CommandResult(stdout="", stderr="not found", returncode=1)
        assert run_best_effort(["modprobe", "ohci_hcd"]) is False

    @pytest.mark.parametrize(
        "error",
        [
            FileNotFoundError("vbetool"),
            OSError("exec format error"),
            subprocess.TimeoutExpired("setterm", 30),
        ],
    )
    @patch("grubpower.utils.shell.run_command")
    def test_errors_are_soft(self, mock_run: MagicMock, error: Exception) -> None:
        """Missing or hanging helpers never raise."""
        mock_run.side_effect = error
        assert run_best_effort(["vbetool", "dpms", "off"]) is False


class TestRunBinary:
    """Tests for run_binary function."""

    @patch("grubpower.utils.shell.subprocess.run")
    def test_feeds_stdin_and_returns_bytes(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(stdout=b"archive", returncode=0)

        output = run_binary(["cpio", "-o"], input_data=b"./init\0", cwd="/tmp/build")

        assert output == b"archive"
        kwargs = mock_run.call_args.kwargs
        assert kwargs["input"] == b"./init\0"
        assert kwargs["check"] is True
        assert kwargs["cwd"] == "/tmp/build"
        assert "text" not in kwargs

    @patch(
        "grubpower.utils.shell.subprocess.run",
        side_effect=subprocess.CalledProcessError(2, "cpio"),
    )
    def test_failure_raises(self, _run: MagicMock) -> None:
        with pytest.raises(subprocess.CalledProcessError):
            run_binary(["cpio", "-o"], input_data=b"")


class TestCommandExists:
    """Tests for command_exists function."""

    @patch("grubpower.utils.shell.shutil.which", return_value="/usr/bin/busybox")
    def test_found(self, _which: MagicMock) -> None:
        assert command_exists("busybox") is True

    @patch("grubpower.utils.shell.shutil.which", return_value=None)
    def test_missing(self, _which: MagicMock) -> None:
        assert command_exists("vbetool") is False


class TestRunInteractive:
    """Tests for run_interactive function."""

    @patch("grubpower.utils.shell.subprocess.run")
    def test_returns_exit_code(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(returncode=1)

        assert run_interactive(["nano", "/etc/grubpower.conf"]) == 1

    @patch("grubpower.utils.shell.subprocess.run")
    def test_does_not_capture_output(self, mock_run: MagicMock) -> None:
        """run_interactive inherits the terminal."""
        mock_run.return_value = MagicMock(returncode=0)

        run_interactive(["nano", "/etc/grubpower.conf"])

        kwargs = mock_run.call_args.kwargs
        assert "capture_output" not in kwargs
        assert "stdout" not in kwargs
        assert "stderr" not in kwargs

    @patch("grubpower.utils.shell.subprocess.run")
    def test_merges_env(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(returncode=0)

        run_interactive(["vi"], env={"MY_VAR": "value"})

        call_env = mock_run.call_args.kwargs["env"]
        assert call_env["MY_VAR"] == "value"
        assert "PATH" in call_env

    def test_raises_file_not_found(self) -> None:
        with pytest.raises(FileNotFoundError):
            run_interactive(["nonexistent_command_xyz_12345"])


class TestIsRoot:
    """Tests for is_root function."""

    @pytest.mark.parametrize(("euid", "expected"), [(0, True), (1000, False)])
    def test_euid(self, euid: int, expected: bool) -> None:
        with patch("grubpower.utils.shell.os.geteuid", return_value=euid):
            assert is_root() is expected


class TestSpawnBackground:
    """Tests for spawn_background function."""

    @patch("grubpower.utils.shell.subprocess.Popen")
    def test_detaches(self, mock_popen: MagicMock) -> None:
        assert spawn_background(["acpid", "-f"]) is True

        kwargs = mock_popen.call_args.kwargs
        assert kwargs["start_new_session"] is True
        assert kwargs["stdout"] is subprocess.DEVNULL

    @patch("grubpower.utils.shell.subprocess.Popen", side_effect=FileNotFoundError("acpid"))
    def test_missing_binary(self, _popen: MagicMock) -> None:
        assert spawn_background(["acpid"]) is False
