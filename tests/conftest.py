from __future__ import annotations

from typing import Optional, Sequence

import pytest

from apklaunch.bridge.base import DeviceBridge
from apklaunch.core.config import Config
from apklaunch.core.errors import DeviceCommunicationError
from apklaunch.core.models import AVD, ApplicationInfo, BootState, Device, Inventory, PortMapping


class FakeBridge(DeviceBridge):
    """In-memory bridge that records every call in order."""

    def __init__(
        self,
        devices: Sequence[Device] = (),
        avds: Sequence[AVD] = (),
        avd_names: Optional[dict[str, str]] = None,
        fail: Optional[dict[str, Exception]] = None,
    ) -> None:
        self.devices = list(devices)
        self.avds = list(avds)
        self.avd_names = avd_names or {}
        self.fail = fail or {}
        self.calls: list[tuple] = []
        self.forwards: set[tuple[str, PortMapping]] = set()
        self.booted: list[str] = []
        self.close_waiter = None

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail:
            raise self.fail[name]

    @property
    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    async def list_devices(self) -> list[Device]:
        self._record("list_devices")
        return list(self.devices)

    async def list_virtual_device_definitions(self) -> list[AVD]:
        self._record("list_avds")
        return list(self.avds)

    async def get_virtual_device_name(self, device: Device) -> Optional[str]:
        self._record("get_virtual_device_name", device.serial)
        return self.avd_names.get(device.serial)

    async def boot_virtual_device(self, avd: AVD, running: Sequence[Device] = ()) -> Device:
        self._record("boot_virtual_device", avd.id)
        port = 5554 + 2 * len(running)
        device = Device.from_serial(f"emulator-{port}", boot_state=BootState.BOOTING)
        self.booted.append(avd.id)
        self.devices.append(device)
        self.avd_names[device.serial] = avd.id
        return device

    async def wait_for_boot(self, device: Device) -> Device:
        self._record("wait_for_boot", device.serial)
        return Device(serial=device.serial, type=device.type, boot_state=BootState.BOOTED)

    async def forward_port(self, device: Device, mapping: PortMapping) -> None:
        self._record("forward_port", device.serial, mapping)
        self.forwards.add((device.serial, mapping))

    async def unforward_port(self, device: Device, mapping: PortMapping) -> None:
        self._record("unforward_port", device.serial, mapping)
        self.forwards.discard((device.serial, mapping))

    async def install_package(self, device: Device, apk_path: str, app_id: str) -> None:
        self._record("install_package", device.serial, apk_path, app_id)

    async def uninstall_package(self, device: Device, app_id: str) -> None:
        self._record("uninstall_package", device.serial, app_id)

    async def start_activity(self, device: Device, app_id: str, activity_name: str) -> None:
        self._record("start_activity", device.serial, app_id, activity_name)

    async def wait_for_process_exit(self, device: Device, app_id: str) -> None:
        self._record("wait_for_process_exit", device.serial, app_id)
        if self.close_waiter is not None:
            await self.close_waiter

    async def force_stop(self, device: Device, app_id: str) -> None:
        self._record("force_stop", device.serial, app_id)


class FakeInspector:
    def __init__(self, info: ApplicationInfo = ApplicationInfo("com.example.app", "com.example.app.MainActivity")):
        self.info = info
        self.inspected: list[str] = []

    async def inspect(self, apk_path: str) -> ApplicationInfo:
        self.inspected.append(apk_path)
        return self.info


def hardware(serial: str) -> Device:
    return Device.from_serial(serial)


def emulator(port: int) -> Device:
    return Device.from_serial(f"emulator-{port}")


def avd(avd_id: str) -> AVD:
    return AVD(id=avd_id, path=f"/avd/{avd_id}.avd", name=avd_id.replace("_", " "))


def inventory(devices: Sequence[Device] = (), avds: Sequence[AVD] = ()) -> Inventory:
    return Inventory(devices=tuple(devices), avds=tuple(avds))


@pytest.fixture
def fast_settings() -> Config:
    return Config(
        boot_poll_interval=0.001,
        boot_timeout=0.2,
        close_poll_interval=0.001,
        close_timeout=None,
        emulator_poll_interval=0.001,
        emulator_start_timeout=0.2,
        teardown_action_timeout=0.2,
        adb_command_timeout=5.0,
    )


@pytest.fixture
def comm_error() -> DeviceCommunicationError:
    return DeviceCommunicationError("device unplugged", "R58M123")
