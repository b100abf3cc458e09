"""Device inventory snapshots."""

from __future__ import annotations

from ..bridge.base import DeviceBridge
from .logger import log
from .models import Inventory


class DeviceInventory:
    """Queries connected devices and installed AVDs through a bridge."""

    def __init__(self, bridge: DeviceBridge) -> None:
        self.bridge = bridge

    async def snapshot(self) -> Inventory:
        devices = await self.bridge.list_devices()
        avds = await self.bridge.list_virtual_device_definitions()
        log.debug(
            f"Inventory: devices={[d.serial for d in devices]} avds={[a.id for a in avds]}"
        )
        return Inventory(devices=tuple(devices), avds=tuple(avds))
