"""``adb``-backed device bridge.

Every operation shells out to ``adb -s <serial> ...`` through
:func:`apklaunch.utils.process.run_command`. Boot and close waits poll the
device at the configured interval until the configured ceiling.
"""

from __future__ import annotations

import asyncio
import re
import time
from collections import defaultdict
from typing import Mapping, Optional, Sequence

from ..core.config import Config, config
from ..core.errors import ADBError, DeviceCommunicationError, InstallError
from ..core.logger import log
from ..core.models import AVD, BootState, Device, PortMapping
from ..sdk.avd import list_avds
from ..sdk.sdk import SDK
from ..utils import process
from ..utils.helpers import format_duration, wait_for_condition
from .base import DeviceBridge
from .emulator import EmulatorLauncher

# Install failures that an uninstall of the existing app id resolves.
REINSTALLABLE_FAILURES = {
    "INSTALL_FAILED_UPDATE_INCOMPATIBLE",
    "INSTALL_FAILED_VERSION_DOWNGRADE",
}

_FAILURE_RE = re.compile(r"Failure \[([A-Z_]+)")


def parse_devices(output: str) -> list[Device]:
    """Parse ``adb devices -l``, keeping only devices in state ``device``."""
    devices: list[Device] = []
    for line in output.splitlines():
        line = line.strip()
        if not line or line.startswith("List of devices") or line.startswith("*"):
            continue
        parts = line.split()
        if len(parts) < 2 or parts[1] != "device":
            continue
        properties = dict(p.split(":", 1) for p in parts[2:] if ":" in p)
        devices.append(Device.from_serial(parts[0], model=properties.get("model")))
    return devices


class AdbBridge(DeviceBridge):
    """Lightweight wrapper around ``adb`` for the run lifecycle."""

    def __init__(
        self,
        adb_path: str = "adb",
        sdk: Optional[SDK] = None,
        emulator: Optional[EmulatorLauncher] = None,
        settings: Config = config,
    ) -> None:
        self.adb_path = adb_path
        self.sdk = sdk
        self.settings = settings
        self.env: Optional[Mapping[str, str]] = sdk.environ() if sdk else None
        self.emulator = emulator or EmulatorLauncher(env=self.env, settings=settings)
        self._reverse: dict[str, set[PortMapping]] = defaultdict(set)

    # ---------------------------------------------------------------------
    # Command execution
    # ---------------------------------------------------------------------
    async def adb(
        self,
        *args: str,
        serial: Optional[str] = None,
        check: bool = True,
        timeout: Optional[float] = None,
    ) -> process.CommandResult:
        cmd = [self.adb_path]
        if serial:
            cmd += ["-s", serial]
        cmd += list(args)

        try:
            result = await process.run_command(
                cmd,
                timeout=timeout or self.settings.adb_command_timeout,
                env=self.env,
            )
        except asyncio.TimeoutError:
            raise ADBError(f"adb {' '.join(args)} timed out", serial) from None
        except OSError as e:
            raise ADBError(f"Could not run {self.adb_path}: {e}", serial) from e

        if check and not result.ok():
            raise ADBError(
                f"adb {' '.join(args)} failed: {result.output or f'exit code {result.returncode}'}",
                serial,
                returncode=result.returncode,
                output=result.output,
            )
        return result

    async def shell(self, device: Device, *command: str, check: bool = True) -> process.CommandResult:
        return await self.adb("shell", *command, serial=device.serial, check=check)

    async def getprop(self, device: Device, name: str) -> str:
        return (await self.shell(device, "getprop", name)).stdout.strip()

    # ---------------------------------------------------------------------
    # Inventory
    # ---------------------------------------------------------------------
    async def list_devices(self) -> list[Device]:
        result = await self.adb("devices", "-l")
        return parse_devices(result.stdout)

    async def list_serials(self) -> list[str]:
        return [d.serial for d in await self.list_devices()]

    async def list_virtual_device_definitions(self) -> list[AVD]:
        if self.sdk is None:
            return []
        return await asyncio.to_thread(list_avds, self.sdk)

    async def get_virtual_device_name(self, device: Device) -> Optional[str]:
        if not device.is_virtual:
            return None

        result = await self.adb("emu", "avd", "name", serial=device.serial, check=False)
        lines = [ln.strip() for ln in result.stdout.splitlines() if ln.strip()]
        if result.ok() and lines and lines[0] != "OK":
            return lines[0]

        for prop in ("ro.boot.qemu.avd_name", "ro.kernel.qemu.avd_name"):
            try:
                name = await self.getprop(device, prop)
            except ADBError as e:
                log.debug(f"Could not read {prop} from {device.serial}: {e}")
                continue
            if name:
                return name
        return None

    async def boot_virtual_device(self, avd: AVD, running: Sequence[Device] = ()) -> Device:
        serial = await self.emulator.start(avd, self.list_serials, [d.serial for d in running])
        return Device.from_serial(serial, boot_state=BootState.BOOTING)

    # ---------------------------------------------------------------------
    # Lifecycle operations
    # ---------------------------------------------------------------------
    async def wait_for_boot(self, device: Device) -> Device:
        started = time.monotonic()

        async def booted() -> bool:
            try:
                return await self.getprop(device, "sys.boot_completed") == "1"
            except ADBError as e:
                # Emulators report "device offline" for a while after showing up.
                log.debug(f"Boot check on {device.serial} failed: {e}")
                return False

        if not await wait_for_condition(
            booted,
            timeout=self.settings.boot_timeout,
            check_interval=self.settings.boot_poll_interval,
        ):
            raise DeviceCommunicationError(
                f"{device.serial} did not finish booting within {format_duration(self.settings.boot_timeout)}",
                device.serial,
            )

        log.debug(f"{device.serial} booted after {format_duration(time.monotonic() - started)}")
        return Device(serial=device.serial, type=device.type, boot_state=BootState.BOOTED, model=device.model)

    async def forward_port(self, device: Device, mapping: PortMapping) -> None:
        await self.adb(
            "reverse", f"tcp:{mapping.device_port}", f"tcp:{mapping.host_port}",
            serial=device.serial,
        )
        self._reverse[device.serial].add(mapping)

    async def unforward_port(self, device: Device, mapping: PortMapping) -> None:
        active = self._reverse.get(device.serial, set())
        if mapping not in active:
            log.debug(f"No forward {mapping} on {device.serial}, nothing to remove")
            return

        result = await self.adb(
            "reverse", "--remove", f"tcp:{mapping.device_port}",
            serial=device.serial, check=False,
        )
        if not result.ok() and "not found" not in result.output:
            raise ADBError(
                f"Failed to remove forward {mapping} on {device.serial}: {result.output}",
                device.serial,
                returncode=result.returncode,
                output=result.output,
            )
        active.discard(mapping)

    async def install_package(self, device: Device, apk_path: str, app_id: str) -> None:
        try:
            await self._install(device, apk_path)
        except InstallError as e:
            if e.code not in REINSTALLABLE_FAILURES:
                raise
            log.warning(f"Found {app_id} installed with an incompatible signature or version, uninstalling...")
            await self.uninstall_package(device, app_id)
            await self._install(device, apk_path)

    async def _install(self, device: Device, apk_path: str) -> None:
        result = await self.adb("install", "-r", "-t", apk_path, serial=device.serial, check=False)
        output = result.output
        failure = _FAILURE_RE.search(output)

        if result.ok() and not failure:
            log.debug(f"Installed {apk_path} on {device.serial}")
            return

        raise InstallError(
            f"Failed to install {apk_path} on {device.serial}: {output or f'exit code {result.returncode}'}",
            serial=device.serial,
            apk_path=apk_path,
            code=failure.group(1) if failure else None,
        )

    async def uninstall_package(self, device: Device, app_id: str) -> None:
        await self.adb("uninstall", app_id, serial=device.serial)

    async def start_activity(self, device: Device, app_id: str, activity_name: str) -> None:
        result = await self.shell(device, "am", "start", "-W", "-n", f"{app_id}/{activity_name}")
        if "Error:" in result.output:
            raise ADBError(
                f"Failed to start {app_id}/{activity_name} on {device.serial}: {result.output}",
                device.serial,
                returncode=result.returncode,
                output=result.output,
            )

    async def is_process_running(self, device: Device, app_id: str) -> bool:
        result = await self.shell(device, "pidof", app_id, check=False)
        if result.ok():
            return bool(result.stdout.strip())
        # pidof exits 1 silently when nothing matches; anything else is adb failing.
        if result.returncode == 1 and not result.output:
            return False
        raise ADBError(
            f"Could not check whether {app_id} is running on {device.serial}: "
            f"{result.output or f'exit code {result.returncode}'}",
            device.serial,
            returncode=result.returncode,
            output=result.output,
        )

    async def wait_for_process_exit(self, device: Device, app_id: str) -> None:
        async def exited() -> bool:
            return not await self.is_process_running(device, app_id)

        if not await wait_for_condition(
            exited,
            timeout=self.settings.close_timeout,
            check_interval=self.settings.close_poll_interval,
        ):
            raise DeviceCommunicationError(
                f"{app_id} still running on {device.serial} after {format_duration(self.settings.close_timeout)}",
                device.serial,
            )

    async def force_stop(self, device: Device, app_id: str) -> None:
        await self.shell(device, "am", "force-stop", app_id)
