"""Host system detection: kernel image, GRUB root, GRUB custom file.

Detection never changes the configuration file itself. Functions return the
detected values (or an updated :class:`GrubPowerConfig`) and the caller
decides what to persist.
"""

import logging
import platform
import re
import subprocess
from pathlib import Path

from grubpower.config.models import GrubPowerConfig
from grubpower.core.paths import (
    BOOT_DIR,
    GRUB2_CFG,
    GRUB_CFG,
    GRUB_CUSTOM_CANDIDATES,
    MODULES_DIR,
)
from grubpower.utils.shell import command_exists, run_command

logger = logging.getLogger(__name__)

KERNEL_PREFIX = "vmlinuz-"

# Header written when no GRUB custom file exists; grub-mkconfig prints the
# file from line 3 onwards.
GRUB_CUSTOM_HEADER = (
    "#!/bin/sh\n"
    "exec tail -n +3 $0\n"
    "# This file provides an easy way to add custom menu entries.\n"
)

# Config generators, first available wins.
GRUB_UPDATE_COMMANDS: tuple[tuple[str, ...], ...] = (
    ("update-grub",),
    ("grub-mkconfig", "-o", str(GRUB_CFG)),
    ("grub2-mkconfig", "-o", str(GRUB2_CFG)),
)

_SCSI_PARTITION = re.compile(r"/dev/sd([a-z])(\d+)")
_PARENTHESIZED = re.compile(r"\(([^)]*)\)")
_TYPO = "genenic"


class KernelNotFoundError(Exception):
    """Raised when no usable kernel image can be found."""


class GrubError(Exception):
    """Raised when the GRUB configuration cannot be generated."""


def _version_key(path: Path) -> list[tuple[int, int | str]]:
    """Natural sort key, so that 6.10 sorts after 6.9."""
    return [
        (0, int(part)) if part.isdigit() else (1, part)
        for part in re.split(r"(\d+)", path.name)
        if part
    ]


def list_kernels(boot_dir: Path = BOOT_DIR, pattern: str = f"{KERNEL_PREFIX}*") -> list[Path]:
    """List kernel images in version order (oldest first).

    Args:
        boot_dir: Directory holding kernel images.
        pattern: Glob pattern for kernel image names.

    Returns:
        Kernel image paths, sorted by version.
    """
    if not boot_dir.is_dir():
        return []
    return sorted((p for p in boot_dir.glob(pattern) if p.is_file()), key=_version_key)


def kernel_version(kernel: Path) -> str:
    """Extract the version suffix of a ``vmlinuz-<version>`` image name."""
    return kernel.name.removeprefix(KERNEL_PREFIX)


def kernel_release(kernel: Path, modules_root: Path = MODULES_DIR) -> str:
    """Kernel release whose modules belong with a kernel image.

    The ``vmlinuz-<version>`` suffix is used when a module tree of that name
    exists. Otherwise (``/boot/vmlinuz``, ``/boot/vmlinuz-linux``) the
    running kernel's release is used.

    Args:
        kernel: Kernel image path.
        modules_root: Host directory holding per-release module trees.
    """
    if kernel.name.startswith(KERNEL_PREFIX):
        version = kernel_version(kernel)
        if (modules_root / version).is_dir():
            return version
        logger.debug("No modules for %s, using the running kernel", version)
    return platform.release()


def detect_kernel(boot_dir: Path = BOOT_DIR, release: str | None = None) -> Path:
    """Auto-detect the kernel to boot.

    Order: the running kernel's image, the ``vmlinuz`` symlink, then the
    newest ``vmlinuz*`` file.

    Args:
        boot_dir: Directory holding kernel images.
        release: Running kernel release. Defaults to ``uname -r``.

    Returns:
        Path to the kernel image.

    Raises:
        KernelNotFoundError: If no kernel image exists.
    """
    release = release or platform.release()
    logger.debug("Running kernel: %s", release)

    running = boot_dir / f"{KERNEL_PREFIX}{release}"
    if running.is_file():
        return running

    default = boot_dir / "vmlinuz"
    if default.is_file():
        return default

    kernels = list_kernels(boot_dir, "vmlinuz*")
    if kernels:
        return kernels[-1]

    raise KernelNotFoundError(f"No kernels found in {boot_dir}")


def fix_kernel_typo(kernel: Path) -> Path | None:
    """Correct the "genenic" misspelling of "generic" in a kernel path.

    Returns:
        The corrected path if the path had the typo and the corrected file
        exists, otherwise None.
    """
    if _TYPO not in str(kernel):
        return None
    fixed = Path(str(kernel).replace(_TYPO, "generic"))
    return fixed if fixed.is_file() else None


def resolve_kernel(
    configured: Path,
    boot_dir: Path = BOOT_DIR,
    release: str | None = None,
) -> Path:
    """Return the configured kernel if it exists, otherwise a replacement.

    Replacement order: typo fix, newest ``vmlinuz-*``, running kernel.

    Raises:
        KernelNotFoundError: If no kernel image can be found.
    """
    if configured.is_file():
        return configured

    logger.warning("Kernel not found at %s, searching for alternatives...", configured)

    fixed = fix_kernel_typo(configured)
    if fixed is not None:
        return fixed

    kernels = list_kernels(boot_dir)
    if kernels:
        return kernels[-1]

    running = boot_dir / f"{KERNEL_PREFIX}{release or platform.release()}"
    if running.is_file():
        return running

    raise KernelNotFoundError(
        f"No valid kernel found in {boot_dir}; set KERNEL_PATH manually"
    )


def grub_root_from_device(device: str) -> str | None:
    """Map a ``/dev/sdXN`` partition to GRUB's ``hd0,<N-1>`` notation.

    Only the partition number is used, the disk is assumed to be hd0.
    """
    match = _SCSI_PARTITION.search(device)
    if match is None:
        return None
    return f"hd0,{int(match.group(2)) - 1}"


def boot_partition(boot_dir: Path = BOOT_DIR) -> str | None:
    """Device holding the boot directory, from ``df``."""
    try:
        result = run_command(["df", str(boot_dir)])
    except (FileNotFoundError, OSError) as e:
        logger.debug("df unavailable: %s", e)
        return None
    if not result.success:
        return None
    lines = result.stdout.strip().splitlines()
    if len(lines) < 2:
        return None
    fields = lines[-1].split()
    return fields[0] if fields else None


def detect_grub_root(boot_dir: Path = BOOT_DIR) -> str | None:
    """Detect the GRUB root from the boot partition device name."""
    device = boot_partition(boot_dir)
    if device is None:
        return None
    return grub_root_from_device(device)


def parse_grub_probe(output: str) -> str | None:
    """Extract the drive inside parentheses from ``grub-probe`` output."""
    match = _PARENTHESIZED.search(output)
    return match.group(1) if match else None


def probe_grub_root(boot_dir: Path = BOOT_DIR) -> str | None:
    """Ask ``grub-probe`` which drive holds the boot directory.

    Returns:
        Drive in GRUB notation (e.g. "hd0,gpt2"), or None if grub-probe is
        unavailable or its output cannot be parsed.
    """
    if not command_exists("grub-probe"):
        return None
    try:
        result = run_command(["grub-probe", "-t", "drive", str(boot_dir)])
    except (FileNotFoundError, OSError) as e:
        logger.debug("grub-probe failed: %s", e)
        return None
    if not result.success:
        return None
    return parse_grub_probe(result.stdout)


def locate_grub_custom(
    configured: Path,
    candidates: tuple[Path, ...] = GRUB_CUSTOM_CANDIDATES,
) -> Path:
    """Find the GRUB custom entries file, creating one if none exists.

    Args:
        configured: GRUB_CUSTOM from the configuration.
        candidates: Well-known locations, tried in order.

    Returns:
        Path to an existing custom file.
    """
    if configured.is_file():
        return configured

    for candidate in candidates:
        if candidate.is_file():
            return candidate

    target = candidates[0]
    logger.warning("Could not locate GRUB custom file, creating %s", target)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(GRUB_CUSTOM_HEADER, encoding="utf-8")
    target.chmod(0o755)
    return target


def detect_system(
    config: GrubPowerConfig,
    boot_dir: Path = BOOT_DIR,
    release: str | None = None,
    custom_candidates: tuple[Path, ...] = GRUB_CUSTOM_CANDIDATES,
) -> GrubPowerConfig:
    """Fill in host-specific settings the configuration may get wrong.

    The kernel path is resolved, the GRUB root is detected when it still
    holds its default, and the GRUB custom file is located.

    Raises:
        KernelNotFoundError: If no kernel image can be found.
    """
    update: dict[str, object] = {}

    kernel = resolve_kernel(config.kernel_path, boot_dir, release)
    if kernel != config.kernel_path:
        logger.info("Detected kernel: %s", kernel)
        update["kernel_path"] = kernel

    if config.grub_root == GrubPowerConfig.model_fields["grub_root"].default:
        detected = detect_grub_root(boot_dir)
        if detected is not None and detected != config.grub_root:
            logger.info("Detected GRUB root: %s", detected)
            update["grub_root"] = detected

    custom = locate_grub_custom(config.grub_custom, custom_candidates)
    if custom != config.grub_custom:
        update["grub_custom"] = custom

    return config.model_copy(update=update) if update else config


def find_grub_update_command() -> list[str] | None:
    """First available GRUB configuration generator command."""
    for command in GRUB_UPDATE_COMMANDS:
        if command_exists(command[0]):
            return list(command)
    return None


def update_grub() -> bool:
    """Regenerate the GRUB configuration.

    Returns:
        False if no generator is installed (the user must run one manually).

    Raises:
        GrubError: If the generator fails.
    """
    command = find_grub_update_command()
    if command is None:
        logger.warning("Could not find a GRUB update command")
        return False

    logger.info("Updating GRUB configuration: %s", " ".join(command))
    try:
        result = run_command(command, timeout=300.0)
    except (FileNotFoundError, OSError, subprocess.TimeoutExpired) as e:
        raise GrubError(f"Failed to run {command[0]}: {e}") from e
    if not result.success:
        raise GrubError(f"{command[0]} failed: {result.stderr.strip()}")
    return True
