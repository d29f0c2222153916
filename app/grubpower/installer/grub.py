"""GRUB menu entries for the boot image.

Entries live in the GRUB custom file (``/etc/grub.d/40_custom``). Each
GrubPower entry is preceded by a ``# GrubPower ...`` comment line and spans
from its ``menuentry`` line to the first closing brace.
"""

import logging
import re
import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from grubpower.config.models import GrubPowerConfig

logger = logging.getLogger(__name__)

ENTRY_MARKER = "GrubPower"
POWER_ENTRY_TITLE = "GrubPower Advanced: USB Power Mode"
RECOVERY_ENTRY_TITLE = "GrubPower: Recovery Mode (Auto-boot in 30s)"
BASE_KERNEL_PARAMS = "quiet init=/init acpi=force acpi_osi=Linux acpi_backlight=vendor"
RECOVERY_DELAY = 30

_ENTRY_LINE = re.compile(rf"menuentry.*{ENTRY_MARKER}")
_ENTRY_TITLE = re.compile(r"menuentry\s*'([^']*)'")
_MARKER_COMMENT = re.compile(rf"^\s*#\s*{ENTRY_MARKER}")


@dataclass(frozen=True, slots=True)
class MenuEntry:
    """A GRUB menu entry.

    Attributes:
        title: Title shown in the GRUB menu.
        comment: Comment line written above the entry (without "# ").
        commands: Commands inside the entry body, one per line.
    """

    title: str
    comment: str
    commands: tuple[str, ...]

    def render(self) -> str:
        """Render the entry, comment line included."""
        body = "\n".join(f"    {command}" for command in self.commands)
        return f"# {self.comment}\nmenuentry '{self.title}' {{\n{body}\n}}\n"


def kernel_command_line(config: GrubPowerConfig) -> str:
    """Kernel parameters for the power entry."""
    if config.extra_kernel_params:
        return f"{BASE_KERNEL_PARAMS} {config.extra_kernel_params}"
    return BASE_KERNEL_PARAMS


def power_entry(config: GrubPowerConfig) -> MenuEntry:
    """Entry booting the kernel with the GrubPower image as init."""
    return MenuEntry(
        title=POWER_ENTRY_TITLE,
        comment="GrubPower Advanced USB Power Mode entry",
        commands=(
            f"set root=({config.grub_root})",
            f"linux {config.kernel_path} {kernel_command_line(config)}",
            f"initrd {config.initramfs_path}",
        ),
    )


def recovery_entry() -> MenuEntry:
    """Entry that waits, then hands over to the regular GRUB menu."""
    return MenuEntry(
        title=RECOVERY_ENTRY_TITLE,
        comment=(
            "GrubPower Recovery Boot Entry "
            f"(automatically boots main OS after {RECOVERY_DELAY} seconds)"
        ),
        commands=(
            f"set timeout={RECOVERY_DELAY}",
            "set default=0",
            "terminal_output console",
            f'echo "GrubPower Recovery Mode: Will boot main OS in {RECOVERY_DELAY} seconds..."',
            'echo "Press any key to enter GRUB menu immediately."',
            f"sleep {RECOVERY_DELAY}",
            "configfile /boot/grub/grub.cfg",
        ),
    )


def default_entries(config: GrubPowerConfig) -> list[MenuEntry]:
    """The power entry followed by the recovery entry."""
    return [power_entry(config), recovery_entry()]


@dataclass(frozen=True, slots=True)
class EntryLocation:
    """Position of a GrubPower entry inside the custom file.

    Attributes:
        title: Entry title.
        start: Index of the first line (the comment line when present).
        end: Index of the closing-brace line.
    """

    title: str
    start: int
    end: int


def parse_selection(choice: str, count: int) -> list[int]:
    """Parse an uninstall selection into zero-based entry indices.

    Args:
        choice: "all", "none", or space-separated 1-based entry numbers.
        count: Number of entries available.

    Returns:
        Sorted, de-duplicated indices. Invalid numbers are skipped.
    """
    choice = choice.strip().lower()
    if choice == "all":
        return list(range(count))
    if choice in ("", "none"):
        return []

    selected: set[int] = set()
    for token in choice.replace(",", " ").split():
        if token.isdigit() and 1 <= int(token) <= count:
            selected.add(int(token) - 1)
        else:
            logger.warning("Invalid entry number: %s - skipping", token)
    return sorted(selected)


class GrubCustomFile:
    """The GRUB custom entries file.

    Attributes:
        path: Location of the file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        """Check whether the file exists."""
        return self.path.is_file()

    def _read_lines(self) -> list[str]:
        return self.path.read_text(encoding="utf-8").splitlines()

    def _write_lines(self, lines: list[str]) -> None:
        # Written in place so the executable bit is kept
        self.path.write_text("\n".join(lines) + "\n" if lines else "", encoding="utf-8")

    def backup(self, label: str = "bak") -> Path:
        """Copy the file next to itself with a timestamp suffix.

        Args:
            label: Middle part of the suffix, e.g. "bak" or "bak.uninstall".

        Returns:
            Path of the backup copy.
        """
        stamp = datetime.now().strftime("%Y%m%d%H%M%S")
        target = self.path.with_name(f"{self.path.name}.{label}.{stamp}")
        shutil.copy2(self.path, target)
        logger.info("Backed up GRUB configuration to %s", target)
        return target

    def find_entries(self) -> list[EntryLocation]:
        """Locate every GrubPower menu entry in file order."""
        if not self.exists():
            return []

        lines = self._read_lines()
        entries: list[EntryLocation] = []
        index = 0
        while index < len(lines):
            line = lines[index]
            if not _ENTRY_LINE.search(line):
                index += 1
                continue

            match = _ENTRY_TITLE.search(line)
            title = match.group(1) if match else line.strip()

            end = index
            while end < len(lines) and "}" not in lines[end]:
                end += 1
            end = min(end, len(lines) - 1)

            start = index
            if index > 0 and _MARKER_COMMENT.match(lines[index - 1]):
                start = index - 1

            entries.append(EntryLocation(title=title, start=start, end=end))
            index = end + 1
        return entries

    def remove_entries(self, indices: Iterable[int] | None = None) -> list[str]:
        """Remove GrubPower entries together with their comment lines.

        Args:
            indices: Zero-based positions in :meth:`find_entries` order.
                None removes every GrubPower entry.

        Returns:
            Titles of the removed entries.
        """
        entries = self.find_entries()
        if not entries:
            return []

        if indices is None:
            selected = entries
        else:
            selected = [entries[i] for i in sorted(set(indices)) if 0 <= i < len(entries)]
        if not selected:
            return []

        lines = self._read_lines()
        for entry in reversed(selected):
            start = entry.start
            # Drop the blank separator written above the entry
            if start > 0 and not lines[start - 1].strip():
                start -= 1
            del lines[start : entry.end + 1]

        while lines and not lines[-1].strip():
            lines.pop()

        self._write_lines(lines)
        titles = [entry.title for entry in selected]
        for title in titles:
            logger.info("Removed entry: %s", title)
        return titles

    def add_entries(self, entries: list[MenuEntry]) -> None:
        """Append entries, replacing existing GrubPower entries of the same title.

        Raises:
            OSError: If the file cannot be written.
        """
        titles = {entry.title for entry in entries}
        stale = [i for i, location in enumerate(self.find_entries()) if location.title in titles]
        if stale:
            self.remove_entries(stale)

        lines = self._read_lines() if self.exists() else []
        while lines and not lines[-1].strip():
            lines.pop()

        for entry in entries:
            lines.append("")
            lines.extend(entry.render().splitlines())
            logger.info("Added GRUB entry: %s", entry.title)

        self._write_lines(lines)
