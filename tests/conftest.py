"""Pytest configuration and shared fixtures.

Most tests run against a fake filesystem root under ``tmp_path`` that mimics
the parts of /sys and /proc grubpower reads and writes.
"""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from fakekernel import FakeKernelTree
from grubpower.config.models import GrubPowerConfig
from grubpower.monitor.sysfs import SysfsTree


@pytest.fixture(autouse=True)
def restore_root_logger() -> Iterator[None]:
    """Undo handler changes made by setup_logging() during a test."""
    logger = logging.getLogger()
    handlers = list(logger.handlers)
    level = logger.level
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)


@pytest.fixture
def kernel_tree(tmp_path: Path) -> FakeKernelTree:
    """Empty fake kernel attribute tree."""
    return FakeKernelTree(tmp_path / "root")


@pytest.fixture
def sysfs(kernel_tree: FakeKernelTree) -> SysfsTree:
    """SysfsTree bound to the fake kernel tree."""
    return SysfsTree(kernel_tree.root)


@pytest.fixture
def host_config(tmp_path: Path) -> GrubPowerConfig:
    """Configuration whose host paths all point into tmp_path."""
    boot = tmp_path / "boot"
    boot.mkdir()
    kernel = boot / "vmlinuz-6.8.0-45-generic"
    kernel.write_bytes(b"kernel")
    grub_d = tmp_path / "grub.d"
    grub_d.mkdir()
    custom = grub_d / "40_custom"
    custom.write_text(
        "#!/bin/sh\nexec tail -n +3 $0\n"
        "# This file provides an easy way to add custom menu entries.\n"
    )
    return GrubPowerConfig(
        kernel_path=kernel,
        grub_root="hd0,2",
        output_dir=boot,
        build_dir=tmp_path / "build",
        grub_custom=custom,
        log_file=tmp_path / "grubpower.log",
    )


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point GRUBPOWER_CONFIG at a (not yet existing) file in tmp_path."""
    path = tmp_path / "etc" / "grubpower.conf"
    monkeypatch.setenv("GRUBPOWER_CONFIG", str(path))
    return path
