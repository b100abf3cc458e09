"""Value types shared by the selector, the orchestrator and the bridge."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .errors import BadInputError

EMULATOR_SERIAL_PREFIX = "emulator-"


class DeviceType(str, Enum):
    HARDWARE = "hardware"
    VIRTUAL = "virtual"


class BootState(str, Enum):
    UNKNOWN = "unknown"
    BOOTING = "booting"
    BOOTED = "booted"


@dataclass(frozen=True)
class Device:
    """A live device known to adb. Identity is the serial."""

    serial: str
    type: DeviceType = DeviceType.HARDWARE
    boot_state: BootState = field(default=BootState.UNKNOWN, compare=False)
    model: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_serial(cls, serial: str, **kwargs) -> Device:
        """Build a device, deriving its type from the serial."""
        device_type = DeviceType.VIRTUAL if is_emulator_serial(serial) else DeviceType.HARDWARE
        return cls(serial=serial, type=device_type, **kwargs)

    @property
    def is_virtual(self) -> bool:
        return self.type is DeviceType.VIRTUAL

    @property
    def emulator_port(self) -> Optional[int]:
        if not self.is_virtual:
            return None
        try:
            return int(self.serial[len(EMULATOR_SERIAL_PREFIX):])
        except ValueError:
            return None

    def describe(self) -> str:
        kind = "emulator" if self.is_virtual else "hardware device"
        return f"{kind} {self.serial}"


def is_emulator_serial(serial: str) -> bool:
    return serial.startswith(EMULATOR_SERIAL_PREFIX)


@dataclass(frozen=True)
class AVD:
    """An installed virtual-device definition (not yet a running device)."""

    id: str
    path: str
    name: str = ""
    api_level: Optional[int] = None

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass(frozen=True)
class PortMapping:
    """A single ``adb reverse`` rule: device port reaches the host port."""

    device_port: str
    host_port: str

    @classmethod
    def parse(cls, value: str) -> PortMapping:
        """Parse ``<device port>:<host port>``.

        Raises:
            BadInputError: If either side is missing or not a TCP port.

        """
        device, _, host = (value or "").partition(":")
        device, host = device.strip(), host.strip()

        if not device or not host:
            raise BadInputError(
                "Invalid --forward value: expecting <device port:host port>, e.g. 8080:8080"
            )

        for port in (device, host):
            if not port.isdigit() or not 0 < int(port) < 65536:
                raise BadInputError(f"Invalid --forward value: {port!r} is not a valid port")

        return cls(device_port=device, host_port=host)

    def __str__(self) -> str:
        return f"{self.device_port}:{self.host_port}"


@dataclass(frozen=True)
class ApplicationInfo:
    app_id: str
    activity_name: str

    @property
    def component(self) -> str:
        return f"{self.app_id}/{self.activity_name}"


@dataclass(frozen=True)
class Inventory:
    """Snapshot of connected devices and installed AVDs."""

    devices: tuple[Device, ...] = ()
    avds: tuple[AVD, ...] = ()

    @property
    def hardware_devices(self) -> list[Device]:
        return sorted((d for d in self.devices if not d.is_virtual), key=lambda d: d.serial)

    @property
    def virtual_devices(self) -> list[Device]:
        return sorted((d for d in self.devices if d.is_virtual), key=lambda d: d.serial)

    def find_device(self, serial: str) -> Optional[Device]:
        return next((d for d in self.devices if d.serial == serial), None)

    def find_avd(self, avd_id: str) -> Optional[AVD]:
        return next((a for a in self.avds if a.id == avd_id), None)
