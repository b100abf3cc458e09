"""Starting emulators for installed AVDs."""

from __future__ import annotations

import subprocess
import time
from typing import Awaitable, Callable, Iterable, Mapping, Optional

import psutil

from ..core.config import Config, config
from ..core.errors import EmulatorError
from ..core.logger import log
from ..core.models import AVD, EMULATOR_SERIAL_PREFIX
from ..utils.helpers import format_duration, wait_for_condition

ListSerials = Callable[[], Awaitable[list[str]]]


def process_alive(pid: int) -> bool:
    try:
        proc = psutil.Process(pid)
        return proc.is_running() and proc.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False


class EmulatorLauncher:
    """Spawns ``emulator -avd <id>`` detached and waits for adb to list it.

    The emulator runs in its own session so it outlives this process and is not
    hit by a Ctrl+C aimed at the CLI.
    """

    def __init__(
        self,
        emulator_path: str = "emulator",
        env: Optional[Mapping[str, str]] = None,
        settings: Config = config,
    ) -> None:
        self.emulator_path = emulator_path
        self.env = env
        self.settings = settings

    def next_port(self, used_serials: Iterable[str]) -> int:
        used = set()
        for serial in used_serials:
            if serial.startswith(EMULATOR_SERIAL_PREFIX):
                try:
                    used.add(int(serial[len(EMULATOR_SERIAL_PREFIX):]))
                except ValueError:
                    continue

        for port in range(self.settings.emulator_port_min, self.settings.emulator_port_max + 1, 2):
            if port not in used:
                return port

        raise EmulatorError(
            f"No free emulator port between {self.settings.emulator_port_min} "
            f"and {self.settings.emulator_port_max}"
        )

    def spawn(self, avd: AVD, port: int) -> subprocess.Popen:
        cmd = [self.emulator_path, "-avd", avd.id, "-port", str(port)]
        log.debug(f"Spawning {' '.join(cmd)}")
        try:
            return subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                env=dict(self.env) if self.env is not None else None,
                start_new_session=True,
            )
        except OSError as e:
            raise EmulatorError(f"Could not start emulator for {avd.id}: {e}") from e

    async def start(self, avd: AVD, list_serials: ListSerials, running: Iterable[str] = ()) -> str:
        """Boot ``avd`` and return its serial once it is online."""
        listed = await list_serials()
        port = self.next_port([*running, *listed])
        serial = f"{EMULATOR_SERIAL_PREFIX}{port}"

        proc = self.spawn(avd, port)
        started = time.monotonic()

        async def online() -> bool:
            if serial in await list_serials():
                return True
            if not process_alive(proc.pid):
                raise EmulatorError(
                    f"Emulator for {avd.id} exited before coming online (code {proc.poll()})",
                    serial,
                )
            return False

        if not await wait_for_condition(
            online,
            timeout=self.settings.emulator_start_timeout,
            check_interval=self.settings.emulator_poll_interval,
        ):
            proc.kill()
            raise EmulatorError(
                f"Emulator for {avd.id} did not come online within "
                f"{format_duration(self.settings.emulator_start_timeout)}",
                serial,
            )

        log.info(f"Emulator {avd.display_name} online as {serial} after {format_duration(time.monotonic() - started)}")
        return serial
