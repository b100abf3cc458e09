"""Command-line entry point.

    apklaunch run --app app.apk [--target ID] [--virtual] [--forward 8080:8080] [--connect]
    apklaunch list
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from typing import Optional, Sequence

from . import __version__
from .bridge.adb import AdbBridge
from .bridge.emulator import EmulatorLauncher
from .core.config import config
from .core.errors import ApkLaunchError
from .core.inventory import DeviceInventory
from .core.logger import log
from .core.orchestrator import LifecycleOrchestrator, RunOptions
from .sdk.apk import ApkInspector
from .sdk.packages import SDKPackageResolver
from .sdk.sdk import get_sdk
from .utils.validation import validate_apk_path, validate_port_mapping

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apklaunch",
        description="Install and launch an APK on an Android device or emulator",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--json", action="store_true", help="Print results and errors as JSON")
    parser.add_argument("--verbose", action="store_true", help="Show debug output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Install and launch an APK")
    run.add_argument("--app", help="Path to the APK to install (required)")
    run.add_argument("--target", help="Device serial or AVD id to run on")
    run.add_argument("--virtual", action="store_true", help="Prefer an emulator when no target is given")
    run.add_argument("--forward", metavar="DEVICE:HOST", help="Forward a device port to a host port")
    run.add_argument("--connect", action="store_true", help="Wait for the app to close, then clean up")

    subparsers.add_parser("list", help="List connected devices and installed AVDs")

    return parser


async def _build_bridge(resolver: SDKPackageResolver) -> tuple[AdbBridge, ApkInspector]:
    sdk = get_sdk()
    adb_path = await resolver.find_adb(sdk)
    emulator_path = await resolver.find_emulator(sdk)
    aapt_path = await resolver.find_aapt(sdk)
    log.debug(f"Tools: adb={adb_path} emulator={emulator_path} aapt={aapt_path}")

    env = sdk.environ()
    emulator = EmulatorLauncher(emulator_path, env=env)
    return AdbBridge(adb_path, sdk=sdk, emulator=emulator), ApkInspector(aapt_path, env=env)


async def run_command(args: argparse.Namespace) -> int:
    # Input is rejected before any device is queried.
    forward = validate_port_mapping(args.forward)
    apk_path = validate_apk_path(args.app)

    bridge, inspector = await _build_bridge(SDKPackageResolver())
    orchestrator = LifecycleOrchestrator(bridge, inspector)
    await orchestrator.run(
        RunOptions(
            apk_path=apk_path,
            target=args.target,
            prefer_virtual=args.virtual,
            forward=forward,
            connect=args.connect,
        )
    )
    return EXIT_OK


async def list_command(args: argparse.Namespace) -> int:
    bridge, _ = await _build_bridge(SDKPackageResolver())
    inventory = await DeviceInventory(bridge).snapshot()

    if args.json:
        print(json.dumps({
            "hardware": [{"serial": d.serial, "model": d.model} for d in inventory.hardware_devices],
            "virtual": [{"serial": d.serial, "model": d.model} for d in inventory.virtual_devices],
            "avds": [{"id": a.id, "name": a.display_name, "apiLevel": a.api_level} for a in inventory.avds],
        }, indent=2))
        return EXIT_OK

    print("Connected devices:")
    for device in inventory.hardware_devices + inventory.virtual_devices:
        print(f"  {device.serial:<24} {device.type.value:<9} {device.model or ''}")
    if not inventory.devices:
        print("  (none)")

    print("Installed AVDs:")
    for avd in inventory.avds:
        api = f"API {avd.api_level}" if avd.api_level else ""
        print(f"  {avd.id:<24} {avd.display_name:<24} {api}")
    if not inventory.avds:
        print("  (none)")
    return EXIT_OK


COMMANDS = {
    "run": run_command,
    "list": list_command,
}


async def _main(args: argparse.Namespace) -> int:
    task = asyncio.current_task()
    loop = asyncio.get_running_loop()

    def interrupt(signum: int) -> None:
        log.warning(f"Signal {signal.Signals(signum).name} received, cleaning up...")
        task.cancel()

    installed = []
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, interrupt, signum)
            installed.append(signum)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support.
            pass

    try:
        return await COMMANDS[args.command](args)
    finally:
        for signum in installed:
            loop.remove_signal_handler(signum)


def report_error(error: ApkLaunchError, as_json: bool) -> None:
    if as_json:
        print(json.dumps(error.serialize()))
    else:
        log.error(str(error))


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        log.set_level("DEBUG")

    try:
        config.validate_config()
    except ValueError as e:
        log.error(f"Invalid configuration: {e}")
        return EXIT_ERROR

    try:
        return asyncio.run(_main(args))
    except ApkLaunchError as e:
        report_error(e, args.json)
        return EXIT_ERROR
    except (asyncio.CancelledError, KeyboardInterrupt):
        log.warning("Interrupted")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
