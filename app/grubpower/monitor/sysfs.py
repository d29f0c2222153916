"""Best-effort access to kernel-exposed attribute files.

Every read and write under /sys and /proc goes through :class:`SysfsTree`.
Failures (missing attribute, permission denied, unsupported device) are
logged at debug level and reported as ``None``/``False``; they never raise.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class SysfsTree:
    """Reader/writer for attribute files below a filesystem root.

    Attributes:
        root: Filesystem root the relative kernel locations resolve against.
    """

    def __init__(self, root: Path = Path("/")) -> None:
        """Initialize the tree.

        Args:
            root: Filesystem root. "/" on a live system.
        """
        self._root = root

    @property
    def root(self) -> Path:
        """Filesystem root."""
        return self._root

    def path(self, relative: Path | str) -> Path:
        """Resolve a location relative to the root."""
        return self._root / relative

    def read(self, path: Path) -> str | None:
        """Read an attribute, stripped of surrounding whitespace.

        Args:
            path: Absolute attribute path.

        Returns:
            Attribute content, or None if it cannot be read.
        """
        try:
            return path.read_text(encoding="utf-8", errors="replace").strip()
        except OSError as e:
            logger.debug("Cannot read %s: %s", path, e)
            return None

    def read_int(self, path: Path) -> int | None:
        """Read an integer attribute.

        Returns:
            Parsed integer, or None if unreadable or not an integer.
        """
        content = self.read(path)
        if content is None:
            return None
        try:
            return int(content)
        except ValueError:
            logger.debug("Non-integer content in %s: %r", path, content[:40])
            return None

    def write(self, path: Path, value: str) -> bool:
        """Write an attribute if it exists.

        Attributes are never created: a missing file means the kernel does
        not expose that control for the device.

        Args:
            path: Absolute attribute path.
            value: Value to write.

        Returns:
            True if the write succeeded.
        """
        if not path.is_file():
            return False
        try:
            with path.open("w", encoding="utf-8") as f:
                f.write(value)
        except OSError as e:
            logger.debug("Cannot write %r to %s: %s", value, path, e)
            return False
        return True

    def list_dir(self, path: Path, pattern: str = "*") -> list[Path]:
        """List entries of a directory matching a glob pattern, sorted.

        Returns:
            Matching entries, or an empty list if the directory is unreadable.
        """
        try:
            return sorted(path.glob(pattern))
        except OSError as e:
            logger.debug("Cannot list %s: %s", path, e)
            return []
