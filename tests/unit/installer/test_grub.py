"""Unit tests for GRUB menu entry management."""

from pathlib import Path

from grubpower.config.models import GrubPowerConfig
from grubpower.installer.grub import (
    BASE_KERNEL_PARAMS,
    POWER_ENTRY_TITLE,
    RECOVERY_ENTRY_TITLE,
    GrubCustomFile,
    MenuEntry,
    default_entries,
    kernel_command_line,
    parse_selection,
    power_entry,
    recovery_entry,
)

HEADER = (
    "#!/bin/sh\nexec tail -n +3 $0\n"
    "# This file provides an easy way to add custom menu entries.\n"
)

FOREIGN_ENTRY = "menuentry 'Windows' {\n    chainloader +1\n}\n"


def custom_file(tmp_path: Path, content: str = HEADER) -> GrubCustomFile:
    path = tmp_path / "40_custom"
    path.write_text(content)
    return GrubCustomFile(path)


class TestEntries:
    """Tests for entry rendering."""

    def test_power_entry(self) -> None:
        config = GrubPowerConfig(
            kernel_path=Path("/boot/vmlinuz-6.8.0-45-generic"),
            grub_root="hd0,gpt2",
        )

        rendered = power_entry(config).render()

        assert rendered.splitlines() == [
            "# GrubPower Advanced USB Power Mode entry",
            f"menuentry '{POWER_ENTRY_TITLE}' {{",
            "    set root=(hd0,gpt2)",
            f"    linux /boot/vmlinuz-6.8.0-45-generic {BASE_KERNEL_PARAMS}",
            "    initrd /boot/grubpower-initramfs.img",
            "}",
        ]

    def test_extra_kernel_params_appended(self) -> None:
        config = GrubPowerConfig(extra_kernel_params="nomodeset")
        assert kernel_command_line(config) == f"{BASE_KERNEL_PARAMS} nomodeset"

    def test_base_params(self) -> None:
        assert "init=/init" in BASE_KERNEL_PARAMS
        assert "acpi=force" in BASE_KERNEL_PARAMS

    def test_recovery_entry(self) -> None:
        rendered = recovery_entry().render()

        assert f"menuentry '{RECOVERY_ENTRY_TITLE}'" in rendered
        assert "sleep 30" in rendered
        assert "configfile /boot/grub/grub.cfg" in rendered

    def test_default_entries_order(self) -> None:
        titles = [e.title for e in default_entries(GrubPowerConfig())]
        assert titles == [POWER_ENTRY_TITLE, RECOVERY_ENTRY_TITLE]


class TestParseSelection:
    """Tests for uninstall selection parsing."""

    def test_all(self) -> None:
        assert parse_selection("all", 3) == [0, 1, 2]

    def test_none_and_empty(self) -> None:
        assert parse_selection("none", 3) == []
        assert parse_selection("  ", 3) == []

    def test_numbers(self) -> None:
        assert parse_selection("3 1", 3) == [0, 2]

    def test_invalid_numbers_skipped(self) -> None:
        assert parse_selection("1 7 x 2 2", 3) == [0, 1]


class TestGrubCustomFile:
    """Tests for reading and rewriting the custom file."""

    def test_add_to_fresh_file(self, tmp_path: Path) -> None:
        custom = custom_file(tmp_path)

        custom.add_entries(default_entries(GrubPowerConfig()))

        content = custom.path.read_text()
        assert content.startswith(HEADER)
        assert content.count("menuentry") == 2
        assert [e.title for e in custom.find_entries()] == [
            POWER_ENTRY_TITLE,
            RECOVERY_ENTRY_TITLE,
        ]

    def test_add_replaces_existing(self, tmp_path: Path) -> None:
        """Installing twice leaves one copy of each entry."""
        custom = custom_file(tmp_path)
        custom.add_entries(default_entries(GrubPowerConfig(grub_root="hd0,1")))

        custom.add_entries(default_entries(GrubPowerConfig(grub_root="hd0,5")))

        content = custom.path.read_text()
        assert len(custom.find_entries()) == 2
        assert "set root=(hd0,5)" in content
        assert "set root=(hd0,1)" not in content

    def test_foreign_entries_untouched(self, tmp_path: Path) -> None:
        custom = custom_file(tmp_path, HEADER + "\n" + FOREIGN_ENTRY)
        custom.add_entries(default_entries(GrubPowerConfig()))

        removed = custom.remove_entries()

        assert removed == [POWER_ENTRY_TITLE, RECOVERY_ENTRY_TITLE]
        assert custom.path.read_text() == HEADER + "\n" + FOREIGN_ENTRY

    def test_install_then_remove_restores_file(self, tmp_path: Path) -> None:
        custom = custom_file(tmp_path)
        custom.add_entries(default_entries(GrubPowerConfig()))

        custom.remove_entries()

        assert custom.path.read_text() == HEADER

    def test_remove_selected(self, tmp_path: Path) -> None:
        custom = custom_file(tmp_path)
        custom.add_entries(default_entries(GrubPowerConfig()))

        removed = custom.remove_entries([1])

        assert removed == [RECOVERY_ENTRY_TITLE]
        assert [e.title for e in custom.find_entries()] == [POWER_ENTRY_TITLE]

    def test_remove_nothing(self, tmp_path: Path) -> None:
        custom = custom_file(tmp_path)
        assert custom.remove_entries() == []
        assert custom.remove_entries([5]) == []

    def test_entry_without_comment(self, tmp_path: Path) -> None:
        """Hand-written entries mentioning GrubPower are found too."""
        custom = custom_file(
            tmp_path, HEADER + "menuentry 'GrubPower old' {\n    linux /boot/x\n}\n"
        )

        entries = custom.find_entries()

        assert len(entries) == 1
        assert entries[0].title == "GrubPower old"
        assert entries[0].start == entries[0].end - 2

    def test_missing_file(self, tmp_path: Path) -> None:
        custom = GrubCustomFile(tmp_path / "missing")
        assert not custom.exists()
        assert custom.find_entries() == []

    def test_add_creates_missing_file(self, tmp_path: Path) -> None:
        custom = GrubCustomFile(tmp_path / "40_custom")
        custom.add_entries([MenuEntry("GrubPower test", "GrubPower test entry", ("true",))])

        assert custom.find_entries()[0].title == "GrubPower test"

    def test_backup(self, tmp_path: Path) -> None:
        custom = custom_file(tmp_path)

        backup = custom.backup("bak.uninstall")

        assert backup.name.startswith("40_custom.bak.uninstall.")
        assert backup.read_text() == HEADER

    def test_keeps_executable_bit(self, tmp_path: Path) -> None:
        custom = custom_file(tmp_path)
        custom.path.chmod(0o755)

        custom.add_entries(default_entries(GrubPowerConfig()))

        assert custom.path.stat().st_mode & 0o111
