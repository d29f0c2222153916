"""Boot image (initramfs) assembly.

The image is a gzip-compressed ``newc`` cpio archive of a small root
filesystem: busybox and its applets, optional display and ACPI helpers with
their shared libraries, the USB kernel modules of the target kernel, the
host's Python runtime with the monitor's packages, the configuration file
and an ``/init`` stub that starts the monitor.
"""

import gzip
import importlib.util
import logging
import os
import re
import shutil
import subprocess
import sys
import sysconfig
from collections.abc import Iterable
from pathlib import Path
from tempfile import NamedTemporaryFile

from grubpower.config.io import render_config
from grubpower.config.models import GrubPowerConfig
from grubpower.core.paths import DEFAULT_CONFIG_PATH, MODULES_DIR
from grubpower.installer.detect import kernel_release
from grubpower.utils.shell import command_exists, run_binary, run_command

logger = logging.getLogger(__name__)

IMAGE_DIRS = (
    "bin",
    "dev",
    "proc",
    "sys",
    "etc/acpi/events",
    "usr/lib/modules",
    "lib/modules",
    "var/log",
)

BUSYBOX_APPLETS = (
    "sh", "sleep", "echo", "cat", "clear", "date", "grep", "mkdir", "touch",
    "ls", "mount", "modprobe", "insmod", "lsmod", "rmmod", "find",
)

OPTIONAL_TOOLS = ("vbetool", "setterm", "acpid", "lsusb")

USB_MODULES = (
    "usbcore", "usb_common", "hid", "hid_generic",
    "uhci_hcd", "ohci_hcd", "ehci_hcd", "xhci_hcd", "usb_storage",
)

# modprobe needs the dependency index next to the modules
MODULE_INDEX_FILES = (
    "modules.dep",
    "modules.dep.bin",
    "modules.alias",
    "modules.alias.bin",
    "modules.builtin",
    "modules.builtin.bin",
    "modules.order",
    "modules.symbols.bin",
)

# Import packages the monitor needs at boot (grubpower plus its runtime
# dependencies: pydantic and rich, and what they import).
RUNTIME_PACKAGES = (
    "grubpower",
    "pydantic",
    "pydantic_core",
    "annotated_types",
    "typing_extensions",
    "rich",
)

# Dependencies that only some supported releases of pydantic and rich pull
# in; bundled when installed.
OPTIONAL_RUNTIME_PACKAGES = (
    "typing_inspection",
    "pygments",
    "markdown_it",
    "mdurl",
)

SITE_PACKAGES = Path("opt/grubpower/site-packages")

# Parts of the standard library the monitor never imports
STDLIB_EXCLUDES = (
    "__pycache__",
    "site-packages",
    "dist-packages",
    "test",
    "tests",
    "idlelib",
    "tkinter",
    "turtledemo",
    "ensurepip",
    "lib2to3",
    "pydoc_data",
)

BUSYBOX_INSTALL_COMMANDS = (
    (("apt-get", "update"), ("apt-get", "install", "-y", "busybox-static")),
    (("yum", "install", "-y", "busybox"),),
)

_LDD_PATH = re.compile(r"(/\S+)")


class BuildError(Exception):
    """Raised when the boot image cannot be built."""


def render_init_script(python: Path, python_home: Path) -> str:
    """Render the ``/init`` stub that hands over to the Python monitor."""
    return (
        "#!/bin/sh\n"
        "# GrubPower boot image init\n"
        "export PATH=/bin:/sbin:/usr/bin:/usr/sbin\n"
        f"export PYTHONHOME={python_home}\n"
        f"export PYTHONPATH=/{SITE_PACKAGES}\n"
        "export PYTHONDONTWRITEBYTECODE=1\n"
        "export PYTHONUNBUFFERED=1\n"
        f"exec {python} -m grubpower.monitor\n"
    )


def shared_libraries(binary: Path) -> list[Path]:
    """Shared libraries a binary links against, according to ``ldd``.

    Returns:
        Existing library paths, sorted. Empty for static binaries or when
        ldd is unavailable.
    """
    try:
        result = run_command(["ldd", str(binary)])
    except (FileNotFoundError, OSError) as e:
        logger.debug("ldd unavailable: %s", e)
        return []
    if not result.success:
        return []

    libraries: set[Path] = set()
    for line in result.stdout.splitlines():
        match = _LDD_PATH.search(line.split("=>")[-1])
        if match is not None:
            candidate = Path(match.group(1))
            if candidate.is_file():
                libraries.add(candidate)
    return sorted(libraries)


def _find_module(module_dir: Path, module: str) -> Path | None:
    """Locate ``<module>.ko*``, accepting "-" and "_" spellings."""
    names = {module, module.replace("_", "-"), module.replace("-", "_")}
    for name in sorted(names):
        for match in sorted(module_dir.rglob(f"{name}.ko*")):
            return match
    return None


def _package_source(package: str) -> Path | None:
    """Directory of an import package, or the file of a single-module one."""
    spec = importlib.util.find_spec(package)
    if spec is None:
        return None
    if spec.submodule_search_locations:
        return Path(next(iter(spec.submodule_search_locations)))
    if spec.origin is None:
        return None
    return Path(spec.origin)


class InitramfsBuilder:
    """Assembles and packages the boot image.

    Attributes:
        build_dir: Staging root of the image.
        release: Kernel release whose modules are bundled.
    """

    def __init__(
        self,
        config: GrubPowerConfig,
        *,
        modules_root: Path = MODULES_DIR,
        python: Path | None = None,
    ) -> None:
        """Initialize the builder.

        Args:
            config: Build settings (paths, extra modules).
            modules_root: Host directory holding per-release module trees.
            python: Interpreter to bundle. Defaults to the running one.
        """
        self._config = config
        self._modules_root = modules_root
        self._python = (python or Path(sys.executable)).resolve()
        self.build_dir = config.build_dir
        self.release = kernel_release(config.kernel_path, modules_root)

    def _stage(self, host_path: Path) -> Path:
        """Location of a host path inside the staging root."""
        return self.build_dir / host_path.relative_to(host_path.anchor)

    def _copy_file(self, source: Path, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target, follow_symlinks=True)

    def _copy_libraries(self, binaries: Iterable[Path]) -> int:
        """Copy the shared libraries of binaries to the same paths in the image."""
        copied = 0
        seen: set[Path] = set()
        for binary in binaries:
            for library in shared_libraries(binary):
                if library in seen:
                    continue
                seen.add(library)
                target = self._stage(library)
                if not target.exists():
                    self._copy_file(library, target)
                    copied += 1
        return copied

    def build(self) -> Path:
        """Build the image and place it in the output directory.

        Returns:
            Path of the installed image.

        Raises:
            BuildError: If a required step fails.
        """
        logger.info("Building GrubPower boot image in %s...", self.build_dir)
        self.prepare_tree()
        self.install_busybox()
        self.install_tools()
        self.install_modules()
        self.install_python_runtime()
        self.install_config()
        self.write_init()
        return self.package()

    def prepare_tree(self) -> None:
        """Create a fresh staging directory layout."""
        if self.build_dir.exists():
            shutil.rmtree(self.build_dir)
        for directory in IMAGE_DIRS:
            (self.build_dir / directory).mkdir(parents=True, exist_ok=True)

    def _ensure_busybox(self) -> Path:
        """Find busybox, installing it with the package manager if needed."""
        found = shutil.which("busybox")
        if found:
            return Path(found)

        logger.warning("Busybox not found. Installing...")
        for commands in BUSYBOX_INSTALL_COMMANDS:
            if not command_exists(commands[-1][0]):
                continue
            try:
                if all(run_command(list(c), timeout=600.0).success for c in commands):
                    found = shutil.which("busybox")
                    if found:
                        return Path(found)
            except (OSError, subprocess.TimeoutExpired) as e:
                logger.debug("%s failed: %s", commands[-1][0], e)

        raise BuildError("Could not install busybox. Please install it manually.")

    def install_busybox(self) -> None:
        """Copy busybox and create its applet symlinks.

        Raises:
            BuildError: If busybox is unavailable and cannot be installed.
        """
        busybox = self._ensure_busybox()
        bin_dir = self.build_dir / "bin"
        self._copy_file(busybox, bin_dir / "busybox")
        for applet in BUSYBOX_APPLETS:
            link = bin_dir / applet
            if link.is_symlink() or link.exists():
                link.unlink()
            link.symlink_to("busybox")
        self._copy_libraries([busybox])
        logger.debug("Installed busybox with %d applets", len(BUSYBOX_APPLETS))

    def install_tools(self) -> list[str]:
        """Copy the optional helpers that exist on the host.

        Returns:
            Names of the helpers that were added.
        """
        added: list[str] = []
        for tool in OPTIONAL_TOOLS:
            found = shutil.which(tool)
            if not found:
                continue
            path = Path(found)
            self._copy_file(path, self.build_dir / "bin" / tool)
            self._copy_libraries([path])
            added.append(tool)
            logger.info("Added %s to initramfs", tool)
        return added

    def install_modules(self) -> list[str]:
        """Copy the USB (and extra) kernel modules of the target kernel.

        Returns:
            Names of the modules that were copied.
        """
        module_dir = self._modules_root / self.release
        if not module_dir.is_dir():
            logger.warning("Could not find kernel modules directory for kernel %s", self.release)
            return []

        target_root = self.build_dir / "lib" / "modules" / self.release
        target_root.mkdir(parents=True, exist_ok=True)
        for index_file in MODULE_INDEX_FILES:
            source = module_dir / index_file
            if source.is_file():
                shutil.copy2(source, target_root / index_file)

        copied: list[str] = []
        for module in (*USB_MODULES, *self._config.module_list):
            source = _find_module(module_dir, module)
            if source is None:
                logger.debug("Module %s not found for %s", module, self.release)
                continue
            self._copy_file(source, target_root / source.relative_to(module_dir))
            copied.append(module)
            logger.debug("Copied module: %s", module)
        return copied

    def install_python_runtime(self) -> None:
        """Copy the interpreter, the standard library and the runtime packages.

        The interpreter and standard library keep their host paths so the
        interpreter finds its prefix unchanged.

        Raises:
            BuildError: If a runtime package cannot be located.
        """
        self._copy_file(self._python, self._stage(self._python))

        paths = sysconfig.get_paths()
        stdlib = Path(paths["stdlib"])
        shutil.copytree(
            stdlib,
            self._stage(stdlib),
            ignore=shutil.ignore_patterns(*STDLIB_EXCLUDES),
            dirs_exist_ok=True,
        )
        platstdlib = Path(paths["platstdlib"])
        if platstdlib != stdlib and platstdlib.is_dir():
            shutil.copytree(
                platstdlib,
                self._stage(platstdlib),
                ignore=shutil.ignore_patterns(*STDLIB_EXCLUDES),
                dirs_exist_ok=True,
            )

        site_dir = self.build_dir / SITE_PACKAGES
        site_dir.mkdir(parents=True, exist_ok=True)
        for package in (*RUNTIME_PACKAGES, *OPTIONAL_RUNTIME_PACKAGES):
            source = _package_source(package)
            if source is None:
                if package in OPTIONAL_RUNTIME_PACKAGES:
                    logger.debug("Optional runtime package %s not installed", package)
                    continue
                raise BuildError(f"Runtime package not found: {package}")
            if source.is_dir():
                shutil.copytree(
                    source,
                    site_dir / source.name,
                    ignore=shutil.ignore_patterns("__pycache__"),
                    dirs_exist_ok=True,
                )
            else:
                shutil.copy2(source, site_dir / source.name)

        extensions = [p for p in self.build_dir.rglob("*.so*") if p.is_file()]
        copied = self._copy_libraries([self._python, *extensions])
        logger.info("Bundled Python runtime (%d shared libraries)", copied)

    def install_config(self) -> None:
        """Write the configuration the monitor reads at boot."""
        target = self.build_dir / DEFAULT_CONFIG_PATH.relative_to("/")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(render_config(self._config), encoding="utf-8")

    def write_init(self) -> Path:
        """Write the executable ``/init`` stub."""
        init = self.build_dir / "init"
        init.write_text(
            render_init_script(self._python, Path(sys.base_prefix)), encoding="utf-8"
        )
        init.chmod(0o755)
        return init

    def _archive_members(self) -> bytes:
        """NUL-separated member list in ``find .`` order."""
        members = ["."]
        for dirpath, dirnames, filenames in os.walk(self.build_dir):
            dirnames.sort()
            relative = Path(dirpath).relative_to(self.build_dir)
            for name in [*dirnames, *sorted(filenames)]:
                members.append(f"./{relative / name}" if relative != Path(".") else f"./{name}")
        return b"\0".join(m.encode() for m in members) + b"\0"

    def package(self) -> Path:
        """Archive the staging root and install the image.

        Returns:
            Path of the installed image.

        Raises:
            BuildError: If cpio fails or the image cannot be written.
        """
        logger.info("Packaging initramfs image...")
        try:
            archive = run_binary(
                ["cpio", "--null", "-o", "-H", "newc", "--quiet"],
                input_data=self._archive_members(),
                cwd=str(self.build_dir),
            )
        except (FileNotFoundError, OSError, subprocess.SubprocessError) as e:
            raise BuildError(f"cpio failed: {e}") from e

        image = self._config.initramfs_path
        tmp_path: Path | None = None
        try:
            image.parent.mkdir(parents=True, exist_ok=True)
            with NamedTemporaryFile(dir=image.parent, delete=False, suffix=".tmp") as f:
                tmp_path = Path(f.name)
                with gzip.GzipFile(fileobj=f, mode="wb") as gz:
                    gz.write(archive)
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, image)
        except OSError as e:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            raise BuildError(f"Failed to write {image}: {e}") from e

        logger.info("Initramfs created at %s", image)
        return image

    def cleanup(self) -> None:
        """Remove the staging directory."""
        if self.build_dir.exists():
            shutil.rmtree(self.build_dir, ignore_errors=True)
            logger.debug("Removed build directory %s", self.build_dir)
