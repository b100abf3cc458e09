"""Abstract device bridge consumed by the selector and the orchestrator."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ..core.models import AVD, Device, PortMapping


class DeviceBridge(ABC):
    """Command-level capability over the device communication protocol.

    Waiting operations own their polling and their ceiling; callers treat each
    as a single suspension point and let failures pass through.
    """

    @abstractmethod
    async def list_devices(self) -> list[Device]:
        """Return devices that are online."""

    @abstractmethod
    async def list_virtual_device_definitions(self) -> list[AVD]:
        """Return installed AVDs."""

    @abstractmethod
    async def get_virtual_device_name(self, device: Device) -> Optional[str]:
        """Return the AVD id a running emulator was started from, if known."""

    @abstractmethod
    async def boot_virtual_device(self, avd: AVD, running: Sequence[Device] = ()) -> Device:
        """Start an emulator for ``avd`` and return it once adb lists it."""

    @abstractmethod
    async def wait_for_boot(self, device: Device) -> Device:
        """Block until the device reports a completed boot."""

    @abstractmethod
    async def forward_port(self, device: Device, mapping: PortMapping) -> None: ...

    @abstractmethod
    async def unforward_port(self, device: Device, mapping: PortMapping) -> None:
        """Remove a mapping. Unknown or already removed mappings are a no-op."""

    @abstractmethod
    async def install_package(self, device: Device, apk_path: str, app_id: str) -> None: ...

    @abstractmethod
    async def uninstall_package(self, device: Device, app_id: str) -> None: ...

    @abstractmethod
    async def start_activity(self, device: Device, app_id: str, activity_name: str) -> None: ...

    @abstractmethod
    async def wait_for_process_exit(self, device: Device, app_id: str) -> None:
        """Block until no process for ``app_id`` runs on the device."""

    @abstractmethod
    async def force_stop(self, device: Device, app_id: str) -> None: ...
