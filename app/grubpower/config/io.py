"""Configuration file I/O operations.

The configuration file is a shell-style key=value file (``/etc/grubpower.conf``)
with ``#`` comments and optional quoting, so that it stays editable by hand
and readable by the shell tools users already know. Values are validated with
the :class:`GrubPowerConfig` Pydantic model.
"""

import logging
import os
import re
import shlex
from pathlib import Path
from tempfile import NamedTemporaryFile

from pydantic import ValidationError

from grubpower.config.models import CONFIG_KEYS, GrubPowerConfig
from grubpower.core.paths import get_config_path

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Z_][A-Z0-9_]*$")

# Keys written without quotes
_NUMERIC_KEYS = frozenset(
    {"MIN_BATTERY", "DISABLE_AUTOSUSPEND", "ENABLE_LOGGING", "LID_CONTROL", "HANDLE_ACPI"}
)


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigNotFoundError(ConfigError):
    """Raised when the configuration file does not exist."""


class ConfigParseError(ConfigError):
    """Raised when the configuration file cannot be parsed."""


class ConfigValidationError(ConfigError):
    """Raised when configuration values are invalid."""


def parse_config_text(text: str) -> dict[str, str]:
    """Parse key=value configuration text.

    Blank lines and ``#`` comments are ignored, values may be single- or
    double-quoted and may carry a trailing comment. Later assignments win.

    Args:
        text: Configuration file content.

    Returns:
        Mapping of KEY to unquoted value.

    Raises:
        ConfigParseError: If a line is not a valid assignment.
    """
    values: dict[str, str] = {}

    for line_num, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        if line.startswith("export "):
            line = line[len("export ") :].lstrip()

        key, sep, raw_value = line.partition("=")
        key = key.strip()
        if not sep or not _KEY_PATTERN.match(key):
            msg = f"Line {line_num}: expected KEY=value, got {raw_line.strip()!r}"
            raise ConfigParseError(msg)

        try:
            tokens = shlex.split(raw_value, comments=True, posix=True)
        except ValueError as e:
            msg = f"Line {line_num}: {e}"
            raise ConfigParseError(msg) from e

        values[key] = " ".join(tokens)

    return values


def config_from_mapping(values: dict[str, str]) -> GrubPowerConfig:
    """Build a validated configuration from raw key=value pairs.

    Unknown keys are ignored with a debug log entry.

    Args:
        values: Mapping of configuration keys to raw string values.

    Returns:
        Validated GrubPowerConfig.

    Raises:
        ConfigValidationError: If a value fails validation.
    """
    unknown = sorted(set(values) - set(CONFIG_KEYS))
    if unknown:
        logger.debug("Ignoring unknown configuration keys: %s", ", ".join(unknown))

    try:
        return GrubPowerConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid configuration: {e}") from e


def keep_valid_settings(values: dict[str, str]) -> GrubPowerConfig:
    """Build a configuration, replacing invalid settings with their defaults.

    Each setting that fails validation is logged and dropped, the others
    still apply.

    Args:
        values: Mapping of configuration keys to raw string values.

    Returns:
        Validated GrubPowerConfig.

    Raises:
        ConfigValidationError: If the remaining settings still fail validation.
    """
    try:
        return GrubPowerConfig.model_validate(values)
    except ValidationError as e:
        invalid = {str(error["loc"][0]) for error in e.errors() if error["loc"]}

    for key in sorted(invalid):
        logger.error("Invalid setting %s=%r, using the default", key, values.get(key))
    return config_from_mapping({k: v for k, v in values.items() if k not in invalid})


def read_config_values(path: Path | None = None) -> dict[str, str]:
    """Read and parse the configuration file without validating it.

    Raises:
        ConfigNotFoundError: If the file doesn't exist.
        ConfigParseError: If the file syntax is invalid.
        ConfigError: If the file cannot be read.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        raise ConfigNotFoundError(f"Configuration not found: {config_path}")

    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read configuration: {e}") from e

    return parse_config_text(text)


def load_config(path: Path | None = None) -> GrubPowerConfig:
    """Load and validate the configuration file.

    Args:
        path: Path to the configuration file. If None, uses the default path.

    Returns:
        Validated GrubPowerConfig.

    Raises:
        ConfigNotFoundError: If the file doesn't exist.
        ConfigParseError: If the file syntax is invalid.
        ConfigValidationError: If a value is invalid.
        ConfigError: If the file cannot be read.
    """
    return config_from_mapping(read_config_values(path))


def load_config_or_default(path: Path | None = None) -> GrubPowerConfig:
    """Load the configuration, falling back to defaults where it is unusable.

    Used by the boot-time monitor, which must never stop for lack of a file.
    A missing or unparsable file gives the defaults; an invalid setting
    falls back to its own default and the other settings are kept.

    Args:
        path: Path to the configuration file. If None, uses the default path.

    Returns:
        Loaded or default GrubPowerConfig.
    """
    try:
        return keep_valid_settings(read_config_values(path))
    except ConfigNotFoundError:
        logger.warning("No configuration at %s, using defaults", path or get_config_path())
    except ConfigError as e:
        logger.error("Unusable configuration, using defaults: %s", e)
    return GrubPowerConfig()


def _quote(key: str, value: str) -> str:
    """Quote a value for the configuration file."""
    if key in _NUMERIC_KEYS and value.isdigit():
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def render_config(config: GrubPowerConfig) -> str:
    """Render a configuration as a commented key=value file.

    Args:
        config: Configuration to render.

    Returns:
        File content.
    """
    v = config.to_mapping()

    def line(key: str) -> str:
        return f"{key}={_quote(key, v[key])}"

    return "\n".join(
        [
            "# GrubPower Configuration File",
            "",
            "# System paths",
            line("KERNEL_PATH"),
            line("GRUB_ROOT"),
            line("OUTPUT_DIR"),
            line("INITRAMFS_NAME"),
            line("BUILD_DIR"),
            line("GRUB_CUSTOM"),
            "",
            "# Power management settings",
            line("MIN_BATTERY") + "        # Shutdown at this battery percentage (0 disables)",
            line("DISABLE_AUTOSUSPEND"),
            line("ENABLE_LOGGING"),
            line("LOG_FILE"),
            "",
            "# USB port selection (all, charging, 1,2,...)",
            line("SELECT_PORTS"),
            "",
            "# Lid control settings",
            line("LID_CONTROL") + "        # Enable lid detection and display control",
            line("HANDLE_ACPI") + "        # Handle ACPI events (lid, power button)",
            "",
            "# Additional kernel modules to load (space-separated)",
            line("EXTRA_MODULES"),
            "",
            "# Additional kernel parameters",
            line("EXTRA_KERNEL_PARAMS"),
            "",
        ]
    )


def _write_atomic(path: Path, content: str) -> None:
    """Write a text file atomically via a temporary file and os.replace().

    Raises:
        ConfigError: If the file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            f.write(content)
        os.replace(str(tmp_path), str(path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigError(f"Failed to write configuration: {e}") from e


def save_config(config: GrubPowerConfig, path: Path | None = None) -> Path:
    """Save a configuration, replacing the whole file.

    Args:
        config: Configuration to save.
        path: Destination. If None, uses the default path.

    Returns:
        Path where the configuration was saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()
    _write_atomic(config_path, render_config(config))
    return config_path


def create_default_config(path: Path | None = None) -> tuple[Path, bool]:
    """Create the configuration file with default values if it is missing.

    Args:
        path: Destination. If None, uses the default path.

    Returns:
        Tuple of (config path, True if the file was created).

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()
    if config_path.exists():
        return config_path, False

    save_config(GrubPowerConfig(), config_path)
    logger.info("Created default configuration at %s", config_path)
    return config_path, True


def set_config_value(key: str, value: str, path: Path | None = None) -> None:
    """Update a single setting in place, keeping comments and layout.

    The first ``KEY=`` line is rewritten; when the key is absent the
    assignment is appended.

    Args:
        key: Configuration key (e.g. "KERNEL_PATH").
        value: New raw value.
        path: Configuration file. If None, uses the default path.

    Raises:
        ConfigNotFoundError: If the file doesn't exist.
        ConfigError: If the key is unknown or the file cannot be written.
    """
    if key not in CONFIG_KEYS:
        raise ConfigError(f"Unknown configuration key: {key}")

    config_path = path or get_config_path()
    if not config_path.exists():
        raise ConfigNotFoundError(f"Configuration not found: {config_path}")

    try:
        lines = config_path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        raise ConfigError(f"Failed to read configuration: {e}") from e

    pattern = re.compile(rf"^\s*(export\s+)?{re.escape(key)}=")
    new_line = f"{key}={_quote(key, value)}"

    for index, existing in enumerate(lines):
        if pattern.match(existing):
            lines[index] = new_line
            break
    else:
        lines.append(new_line)

    _write_atomic(config_path, "\n".join(lines) + "\n")
    logger.debug("Set %s=%s in %s", key, value, config_path)


def persist_changes(
    old: GrubPowerConfig,
    new: GrubPowerConfig,
    path: Path | None = None,
) -> list[str]:
    """Write the settings that differ between two configurations.

    Each changed key is updated in place with :func:`set_config_value`, so
    hand-written comments survive detection passes.

    Args:
        old: Configuration as loaded from the file.
        new: Configuration after detection or user edits.
        path: Configuration file. If None, uses the default path.

    Returns:
        Keys that were written.
    """
    before = old.to_mapping()
    after = new.to_mapping()
    changed = [key for key, value in after.items() if before.get(key) != value]
    for key in changed:
        set_config_value(key, after[key], path)
    return changed
