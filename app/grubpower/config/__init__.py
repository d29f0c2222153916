"""Configuration model and key=value file I/O."""

from grubpower.config.io import (
    ConfigError,
    ConfigNotFoundError,
    ConfigParseError,
    ConfigValidationError,
    create_default_config,
    load_config,
    load_config_or_default,
    persist_changes,
    save_config,
    set_config_value,
)
from grubpower.config.models import GrubPowerConfig, PortMode, PortSelection

__all__ = [
    "ConfigError",
    "ConfigNotFoundError",
    "ConfigParseError",
    "ConfigValidationError",
    "GrubPowerConfig",
    "PortMode",
    "PortSelection",
    "create_default_config",
    "load_config",
    "load_config_or_default",
    "persist_changes",
    "save_config",
    "set_config_value",
]
