from __future__ import annotations

import asyncio

import pytest

from apklaunch.bridge.adb import AdbBridge, parse_devices
from apklaunch.core.errors import ADBError, DeviceCommunicationError, InstallError
from apklaunch.core.models import BootState, Device, DeviceType, PortMapping
from apklaunch.utils import process
from apklaunch.utils.process import CommandResult

DEVICES_OUTPUT = """List of devices attached
R58M123                device usb:1-1 product:beyond1 model:SM_G973F device:beyond1 transport_id:3
emulator-5554          device product:sdk_gphone64 model:sdk_gphone64_x86_64 device:emu64x transport_id:1
emulator-5556          offline transport_id:2
0123456789ABCDEF       unauthorized usb:1-2 transport_id:4
"""


class FakeAdb:
    """Scripted stand-in for ``run_command``; keyed by the argv after ``adb``."""

    def __init__(self, responses=None):
        self.responses = {k: list(v) for k, v in (responses or {}).items()}
        self.calls: list[list[str]] = []

    async def __call__(self, args, *, timeout=None, env=None):
        args = list(args)
        self.calls.append(args)
        queue = self.responses.get(tuple(args[1:]))
        stdout, stderr, rc = ("", "", 0)
        if queue:
            stdout, stderr, rc = queue.pop(0) if len(queue) > 1 else queue[0]
        return CommandResult(args=args, stdout=stdout, stderr=stderr, returncode=rc)


@pytest.fixture
def fake_adb(monkeypatch):
    def install(responses=None) -> FakeAdb:
        fake = FakeAdb(responses)
        monkeypatch.setattr(process, "run_command", fake)
        return fake
    return install


DEVICE = Device.from_serial("R58M123")


def test_parse_devices_keeps_online_only() -> None:
    devices = parse_devices(DEVICES_OUTPUT)

    assert [d.serial for d in devices] == ["R58M123", "emulator-5554"]
    assert devices[0].type is DeviceType.HARDWARE
    assert devices[0].model == "SM_G973F"
    assert devices[1].type is DeviceType.VIRTUAL


def test_list_devices(fake_adb, fast_settings) -> None:
    fake = fake_adb({("devices", "-l"): [(DEVICES_OUTPUT, "", 0)]})

    devices = asyncio.run(AdbBridge(settings=fast_settings).list_devices())

    assert len(devices) == 2
    assert fake.calls == [["adb", "devices", "-l"]]


def test_wait_for_boot_polls_until_completed(fake_adb, fast_settings) -> None:
    key = ("-s", "emulator-5554", "shell", "getprop", "sys.boot_completed")
    fake = fake_adb({key: [("", "error: device offline", 1), ("\n", "", 0), ("1\n", "", 0)]})

    device = asyncio.run(AdbBridge(settings=fast_settings).wait_for_boot(Device.from_serial("emulator-5554")))

    assert device.boot_state is BootState.BOOTED
    assert len(fake.calls) == 3


def test_wait_for_boot_times_out(fake_adb, fast_settings) -> None:
    fake_adb({("-s", "R58M123", "shell", "getprop", "sys.boot_completed"): [("0", "", 0)]})

    with pytest.raises(DeviceCommunicationError):
        asyncio.run(AdbBridge(settings=fast_settings).wait_for_boot(DEVICE))


def test_forward_and_unforward(fake_adb, fast_settings) -> None:
    fake = fake_adb()
    bridge = AdbBridge(settings=fast_settings)
    mapping = PortMapping("8080", "9090")

    async def scenario():
        await bridge.forward_port(DEVICE, mapping)
        await bridge.unforward_port(DEVICE, mapping)
        await bridge.unforward_port(DEVICE, mapping)

    asyncio.run(scenario())

    assert fake.calls == [
        ["adb", "-s", "R58M123", "reverse", "tcp:8080", "tcp:9090"],
        ["adb", "-s", "R58M123", "reverse", "--remove", "tcp:8080"],
    ]


def test_unforward_without_forward_is_noop(fake_adb, fast_settings) -> None:
    fake = fake_adb()

    asyncio.run(AdbBridge(settings=fast_settings).unforward_port(DEVICE, PortMapping("1", "2")))

    assert fake.calls == []


def test_unforward_tolerates_missing_listener(fake_adb, fast_settings) -> None:
    fake_adb({
        ("-s", "R58M123", "reverse", "--remove", "tcp:80"): [("", "error: listener 'tcp:80' not found", 1)],
    })
    bridge = AdbBridge(settings=fast_settings)

    async def scenario():
        await bridge.forward_port(DEVICE, PortMapping("80", "80"))
        await bridge.unforward_port(DEVICE, PortMapping("80", "80"))

    asyncio.run(scenario())


def test_install_retries_after_incompatible_update(fake_adb, fast_settings) -> None:
    install = ("-s", "R58M123", "install", "-r", "-t", "app.apk")
    fake = fake_adb({
        install: [
            ("Performing Streamed Install", "adb: failed to install app.apk: Failure [INSTALL_FAILED_UPDATE_INCOMPATIBLE: signatures do not match]", 1),
            ("Performing Streamed Install\nSuccess\n", "", 0),
        ],
    })

    asyncio.run(AdbBridge(settings=fast_settings).install_package(DEVICE, "app.apk", "com.example.app"))

    assert [c[3:] for c in fake.calls] == [
        ["install", "-r", "-t", "app.apk"],
        ["uninstall", "com.example.app"],
        ["install", "-r", "-t", "app.apk"],
    ]


def test_install_failure_reports_code(fake_adb, fast_settings) -> None:
    fake_adb({
        ("-s", "R58M123", "install", "-r", "-t", "app.apk"): [
            ("", "adb: failed to install app.apk: Failure [INSTALL_FAILED_INSUFFICIENT_STORAGE]", 1),
        ],
    })

    with pytest.raises(InstallError) as exc_info:
        asyncio.run(AdbBridge(settings=fast_settings).install_package(DEVICE, "app.apk", "com.example.app"))

    assert exc_info.value.code == "INSTALL_FAILED_INSUFFICIENT_STORAGE"
    assert exc_info.value.serial == "R58M123"
    assert exc_info.value.apk_path == "app.apk"


def test_start_activity_error_output(fake_adb, fast_settings) -> None:
    key = ("-s", "R58M123", "shell", "am", "start", "-W", "-n", "com.example.app/.Main")
    fake_adb({key: [("Starting: Intent { cmp=com.example.app/.Main }\nError: Activity class does not exist.", "", 0)]})

    with pytest.raises(ADBError):
        asyncio.run(AdbBridge(settings=fast_settings).start_activity(DEVICE, "com.example.app", ".Main"))


def test_wait_for_process_exit(fake_adb, fast_settings) -> None:
    key = ("-s", "R58M123", "shell", "pidof", "com.example.app")
    fake = fake_adb({key: [("4242\n", "", 0), ("4242\n", "", 0), ("", "", 1)]})

    asyncio.run(AdbBridge(settings=fast_settings).wait_for_process_exit(DEVICE, "com.example.app"))

    assert len(fake.calls) == 3


def test_virtual_device_name_from_console(fake_adb, fast_settings) -> None:
    fake_adb({("-s", "emulator-5554", "emu", "avd", "name"): [("Pixel_7_API_34\r\nOK\r\n", "", 0)]})

    name = asyncio.run(AdbBridge(settings=fast_settings).get_virtual_device_name(Device.from_serial("emulator-5554")))

    assert name == "Pixel_7_API_34"


def test_virtual_device_name_falls_back_to_getprop(fake_adb, fast_settings) -> None:
    fake_adb({
        ("-s", "emulator-5554", "emu", "avd", "name"): [("", "error: could not connect", 1)],
        ("-s", "emulator-5554", "shell", "getprop", "ro.boot.qemu.avd_name"): [("Tablet\n", "", 0)],
    })

    name = asyncio.run(AdbBridge(settings=fast_settings).get_virtual_device_name(Device.from_serial("emulator-5554")))

    assert name == "Tablet"


def test_command_timeout_becomes_adb_error(monkeypatch, fast_settings) -> None:
    async def hanging(args, *, timeout=None, env=None):
        raise asyncio.TimeoutError

    monkeypatch.setattr(process, "run_command", hanging)

    with pytest.raises(ADBError):
        asyncio.run(AdbBridge(settings=fast_settings).force_stop(DEVICE, "com.example.app"))


def test_wait_for_process_exit_fails_when_device_disappears(fake_adb, fast_settings) -> None:
    key = ("-s", "R58M123", "shell", "pidof", "com.example.app")
    fake_adb({key: [("4242\n", "", 0), ("", "error: device 'R58M123' not found", 1)]})

    with pytest.raises(DeviceCommunicationError, match="not found"):
        asyncio.run(AdbBridge(settings=fast_settings).wait_for_process_exit(DEVICE, "com.example.app"))


def test_failed_unforward_can_be_retried(fake_adb, fast_settings) -> None:
    remove = ("-s", "R58M123", "reverse", "--remove", "tcp:8080")
    fake = fake_adb({remove: [("", "error: closed", 1), ("", "", 0)]})
    bridge = AdbBridge(settings=fast_settings)
    mapping = PortMapping("8080", "8080")

    async def scenario():
        await bridge.forward_port(DEVICE, mapping)
        with pytest.raises(ADBError):
            await bridge.unforward_port(DEVICE, mapping)
        await bridge.unforward_port(DEVICE, mapping)
        await bridge.unforward_port(DEVICE, mapping)

    asyncio.run(scenario())

    assert [c[3:] for c in fake.calls].count(["reverse", "--remove", "tcp:8080"]) == 2
