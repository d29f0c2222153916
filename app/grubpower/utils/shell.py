"""Shell execution utilities.

Provides safe subprocess execution with proper error handling.
"""

import os
import shutil
import subprocess
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Result of a shell command execution.

    Attributes:
        stdout: Standard output from the command.
        stderr: Standard error from the command.
        returncode: Exit code of the command.
    """

    stdout: str
    stderr: str
    returncode: int

    @property
    def success(self) -> bool:
        """Check if command executed successfully."""
        return self.returncode == 0


def run_command(
    args: list[str],
    *,
    check: bool = False,
    timeout: float | None = 60.0,
    cwd: str | None = None,
) -> CommandResult:
    """Execute a shell command and return the result.

    Args:
        args: Command and arguments to execute.
        check: If True, raise CalledProcessError on non-zero exit.
        timeout: Maximum time in seconds to wait for command.
        cwd: Working directory for the command. If None, uses current directory.

    Returns:
        CommandResult with stdout, stderr, and returncode.

    Raises:
        subprocess.CalledProcessError: If check=True and command fails.
        subprocess.TimeoutExpired: If command exceeds timeout.
        FileNotFoundError: If command executable is not found.
    """
    result = subprocess.run(
        args,
        capture_output=True,
        text=True,
        check=check,
        timeout=timeout,
        cwd=cwd,
    )
    return CommandResult(
        stdout=result.stdout,
        stderr=result.stderr,
        returncode=result.returncode,
    )


def run_best_effort(args: list[str], *, timeout: float | None = 30.0) -> bool:
    """Execute a command, treating any failure as a soft failure.

    Used for optional helpers (modprobe, vbetool, setterm, mount) whose
    absence or failure must never stop the caller.

    Args:
        args: Command and arguments to execute.
        timeout: Maximum time in seconds to wait for command.

    Returns:
        True if the command ran and exited with status 0, False otherwise.
    """
    try:
        return run_command(args, timeout=timeout).success
    except (FileNotFoundError, OSError, subprocess.TimeoutExpired):
        return False


def run_binary(
    args: list[str],
    *,
    input_data: bytes,
    cwd: str | None = None,
    timeout: float | None = 600.0,
) -> bytes:
    """Execute a command that consumes and produces binary data.

    Args:
        args: Command and arguments to execute.
        input_data: Bytes written to the command's stdin.
        cwd: Working directory for the command.
        timeout: Maximum time in seconds to wait for command.

    Returns:
        The command's standard output.

    Raises:
        subprocess.CalledProcessError: If the command exits non-zero.
        subprocess.TimeoutExpired: If command exceeds timeout.
        FileNotFoundError: If command executable is not found.
    """
    result = subprocess.run(
        args,
        input=input_data,
        capture_output=True,
        check=True,
        timeout=timeout,
        cwd=cwd,
    )
    return result.stdout


def command_exists(name: str) -> bool:
    """Check if a command exists in the system PATH.

    Args:
        name: Command name to check.

    Returns:
        True if command exists, False otherwise.
    """
    return shutil.which(name) is not None


def run_interactive(
    args: list[str],
    *,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
) -> int:
    """Execute a command interactively, inheriting the terminal.

    Unlike run_command(), this does NOT capture stdout/stderr,
    allowing the subprocess to interact with the user's terminal
    directly. Suitable for launching editors.

    Args:
        args: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Additional environment variables (merged with current env).

    Returns:
        Exit code of the command.

    Raises:
        FileNotFoundError: If command executable is not found.
        OSError: If command cannot be executed.
    """
    full_env = {**os.environ, **(env or {})}
    result = subprocess.run(
        args,
        check=False,
        cwd=cwd,
        env=full_env,
    )
    return result.returncode


def is_root() -> bool:
    """Check whether the current process runs with root privileges.

    Returns:
        True if the effective user id is 0.
    """
    return os.geteuid() == 0


def spawn_background(args: list[str]) -> bool:
    """Start a long-running helper without waiting for it.

    Args:
        args: Command and arguments to execute.

    Returns:
        True if the process was started.
    """
    try:
        subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError:
        return False
    return True
