"""Configuration model for grubpower.

The configuration is a flat set of named settings. On disk it lives in a
shell-style key=value file whose keys are the upper-case aliases below.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PortMode(str, Enum):
    """USB port selection policy.

    Attributes:
        ALL: Power every USB device that exposes a power-control attribute.
        CHARGING: Power only devices that look like charging ports (heuristic).
        PORTS: Power only the listed root-hub port numbers.
    """

    ALL = "all"
    CHARGING = "charging"
    PORTS = "ports"


@dataclass(frozen=True, slots=True)
class PortSelection:
    """Parsed form of the SELECT_PORTS setting.

    Attributes:
        mode: Selection policy.
        ports: Port numbers for PortMode.PORTS, empty otherwise.
    """

    mode: PortMode
    ports: tuple[int, ...] = ()

    @classmethod
    def parse(cls, value: str) -> PortSelection:
        """Parse a SELECT_PORTS value.

        Args:
            value: "all", "charging" or comma-separated port numbers ("1,2,4").

        Returns:
            PortSelection for the value.

        Raises:
            ValueError: If the value is empty or contains a non-numeric port.
        """
        text = value.strip().lower()
        if text == PortMode.ALL.value:
            return cls(mode=PortMode.ALL)
        if text == PortMode.CHARGING.value:
            return cls(mode=PortMode.CHARGING)

        parts = [p.strip() for p in text.split(",") if p.strip()]
        if not parts:
            msg = "SELECT_PORTS must be 'all', 'charging' or comma-separated port numbers"
            raise ValueError(msg)

        ports: list[int] = []
        for part in parts:
            if not part.isdigit():
                msg = f"Invalid USB port number: '{part}'"
                raise ValueError(msg)
            port = int(part)
            if port not in ports:
                ports.append(port)
        return cls(mode=PortMode.PORTS, ports=tuple(ports))

    def to_setting(self) -> str:
        """Render back to the SELECT_PORTS string form."""
        if self.mode == PortMode.PORTS:
            return ",".join(str(p) for p in self.ports)
        return self.mode.value

    def describe(self) -> str:
        """Human-readable description for status output."""
        if self.mode == PortMode.ALL:
            return "all"
        if self.mode == PortMode.CHARGING:
            return "charging ports only"
        return "ports " + ", ".join(str(p) for p in self.ports)


class GrubPowerConfig(BaseModel):
    """Validated grubpower settings.

    Field names are snake_case; the upper-case aliases are the keys used in
    the configuration file. Instances are immutable, use ``model_copy`` with
    ``update`` to derive a changed configuration.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    # System paths
    kernel_path: Annotated[Path, Field(alias="KERNEL_PATH")] = Path("/boot/vmlinuz-linux")
    grub_root: Annotated[str, Field(alias="GRUB_ROOT")] = "hd0,1"
    output_dir: Annotated[Path, Field(alias="OUTPUT_DIR")] = Path("/boot")
    initramfs_name: Annotated[str, Field(alias="INITRAMFS_NAME", min_length=1)] = (
        "grubpower-initramfs.img"
    )
    build_dir: Annotated[Path, Field(alias="BUILD_DIR")] = Path("/tmp/grubpower_build")
    grub_custom: Annotated[Path, Field(alias="GRUB_CUSTOM")] = Path("/etc/grub.d/40_custom")

    # Power management
    min_battery: Annotated[
        int,
        Field(alias="MIN_BATTERY", ge=0, le=100, description="Shutdown threshold, 0 disables"),
    ] = 10
    disable_autosuspend: Annotated[bool, Field(alias="DISABLE_AUTOSUSPEND")] = True
    enable_logging: Annotated[bool, Field(alias="ENABLE_LOGGING")] = False
    log_file: Annotated[Path, Field(alias="LOG_FILE")] = Path("/var/log/grubpower.log")

    # USB port selection
    select_ports: Annotated[str, Field(alias="SELECT_PORTS")] = "all"

    # Lid control
    lid_control: Annotated[bool, Field(alias="LID_CONTROL")] = True
    handle_acpi: Annotated[bool, Field(alias="HANDLE_ACPI")] = True

    # Extras
    extra_modules: Annotated[str, Field(alias="EXTRA_MODULES")] = ""
    extra_kernel_params: Annotated[str, Field(alias="EXTRA_KERNEL_PARAMS")] = ""

    @field_validator("select_ports", mode="before")
    @classmethod
    def normalize_select_ports(cls, v: object) -> str:
        """Validate SELECT_PORTS and store it in canonical form."""
        if not isinstance(v, str):
            v = str(v)
        return PortSelection.parse(v).to_setting()

    @field_validator("extra_modules", "extra_kernel_params", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> str:
        """Collapse surrounding whitespace in free-form values."""
        if v is None:
            return ""
        return str(v).strip()

    @property
    def port_selection(self) -> PortSelection:
        """Parsed SELECT_PORTS setting."""
        return PortSelection.parse(self.select_ports)

    @property
    def module_list(self) -> list[str]:
        """EXTRA_MODULES split into module names."""
        return self.extra_modules.split()

    @property
    def initramfs_path(self) -> Path:
        """Final location of the boot image."""
        return self.output_dir / self.initramfs_name

    def to_mapping(self) -> dict[str, str]:
        """Serialize to configuration-file keys and string values.

        Booleans are written as 0/1, matching the file format.

        Returns:
            Ordered mapping of KEY to value string.
        """
        result: dict[str, str] = {}
        for name, field in type(self).model_fields.items():
            key = field.alias or name.upper()
            value = getattr(self, name)
            if isinstance(value, bool):
                result[key] = "1" if value else "0"
            else:
                result[key] = str(value)
        return result


# Keys in file order, used when rendering and validating configuration files.
CONFIG_KEYS: tuple[str, ...] = tuple(
    field.alias or name.upper() for name, field in GrubPowerConfig.model_fields.items()
)
