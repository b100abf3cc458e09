"""Device selection.

Turns a target string, the ``--virtual`` preference and an inventory snapshot
into exactly one device, in strict priority order:

1. an explicit target, matched by serial and then by AVD id
2. the first hardware device by serial, unless a virtual device is preferred
3. the first running emulator by serial, else the first AVD by id, booted

Booting an AVD is the only side effect besides querying.
"""

from __future__ import annotations

from typing import Optional

from ..bridge.base import DeviceBridge
from .errors import NoDeviceAvailableError, TargetNotFoundError
from .logger import log
from .models import AVD, Device, Inventory


class DeviceSelector:

    def __init__(self, bridge: DeviceBridge) -> None:
        self.bridge = bridge

    async def select(
        self,
        inventory: Inventory,
        target: Optional[str] = None,
        prefer_virtual: bool = False,
    ) -> Device:
        if target:
            return await self.select_by_target(inventory, target)

        if not prefer_virtual:
            device = self.select_hardware_device(inventory)
            if device:
                return device

        return await self.select_virtual_device(inventory)

    async def select_by_target(self, inventory: Inventory, target: str) -> Device:
        device = inventory.find_device(target)
        if device:
            log.debug(f"Target {target} matched a connected device")
            return device

        avd = inventory.find_avd(target)
        if avd:
            log.debug(f"Target {target} matched an installed AVD")
            return await self._ensure_running(inventory, avd)

        raise TargetNotFoundError(target)

    def select_hardware_device(self, inventory: Inventory) -> Optional[Device]:
        hardware = inventory.hardware_devices
        return hardware[0] if hardware else None

    async def select_virtual_device(self, inventory: Inventory) -> Device:
        running = inventory.virtual_devices
        if running:
            return running[0]

        if not inventory.avds:
            raise NoDeviceAvailableError(
                "No hardware devices connected and no Android virtual devices installed"
            )

        avd = sorted(inventory.avds, key=lambda a: a.id)[0]
        return await self._boot(inventory, avd)

    async def _ensure_running(self, inventory: Inventory, avd: AVD) -> Device:
        for device in inventory.virtual_devices:
            if await self.bridge.get_virtual_device_name(device) == avd.id:
                log.debug(f"AVD {avd.id} is already running as {device.serial}")
                return device

        return await self._boot(inventory, avd)

    async def _boot(self, inventory: Inventory, avd: AVD) -> Device:
        log.info(f"Starting emulator for AVD {avd.display_name}...")
        return await self.bridge.boot_virtual_device(avd, inventory.virtual_devices)
