"""Lifecycle orchestration of a single run.

``Idle -> Selecting -> BootWaiting -> [PortForwarding] -> Installing ->
Launching -> Running -> [WaitingForClose] -> TearingDown -> Done``

Each acquisition registers its release with the run's teardown registry as
soon as it succeeds; the registry runs from a ``finally`` block, so it is
reached on success, on any phase failure and on cancellation alike.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from ..bridge.base import DeviceBridge
from .errors import ApkLaunchError, InstallError
from .inventory import DeviceInventory
from .logger import log
from .models import ApplicationInfo, Device, PortMapping
from .selector import DeviceSelector
from .teardown import TeardownAction, TeardownRegistry


class RunState(str, Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    BOOT_WAITING = "boot_waiting"
    PORT_FORWARDING = "port_forwarding"
    INSTALLING = "installing"
    LAUNCHING = "launching"
    RUNNING = "running"
    WAITING_FOR_CLOSE = "waiting_for_close"
    TEARING_DOWN = "tearing_down"
    DONE = "done"


class ApkInspector(Protocol):
    async def inspect(self, apk_path: str) -> ApplicationInfo: ...


@dataclass(frozen=True)
class RunOptions:
    apk_path: str
    target: Optional[str] = None
    prefer_virtual: bool = False
    forward: Optional[PortMapping] = None
    connect: bool = False


@dataclass
class RunContext:
    """State owned by exactly one run."""

    options: RunOptions
    teardown: TeardownRegistry = field(default_factory=TeardownRegistry)
    device: Optional[Device] = None
    app: Optional[ApplicationInfo] = None
    state: RunState = RunState.IDLE
    history: list[RunState] = field(default_factory=list)
    forward_action: Optional[TeardownAction] = None

    def enter(self, state: RunState) -> None:
        self.state = state
        self.history.append(state)
        log.log_phase(state.value, {"serial": self.device.serial if self.device else None})


Phase = Callable[[RunContext], Awaitable[None]]


class LifecycleOrchestrator:
    """Drives one selected device through boot, install and launch."""

    def __init__(
        self,
        bridge: DeviceBridge,
        apk_inspector: ApkInspector,
        inventory: Optional[DeviceInventory] = None,
        selector: Optional[DeviceSelector] = None,
    ) -> None:
        self.bridge = bridge
        self.apk_inspector = apk_inspector
        self.inventory = inventory or DeviceInventory(bridge)
        self.selector = selector or DeviceSelector(bridge)

    async def run(self, options: RunOptions, context: Optional[RunContext] = None) -> RunContext:
        ctx = context or RunContext(options=options)

        try:
            for phase in self._plan(options):
                await phase(ctx)
        except ApkLaunchError as e:
            log.debug(f"Run aborted in state {ctx.state.value}: {e}")
            raise
        finally:
            ctx.enter(RunState.TEARING_DOWN)
            await ctx.teardown.run_all()
            ctx.enter(RunState.DONE)

        return ctx

    def _plan(self, options: RunOptions) -> list[Phase]:
        phases: list[Phase] = [self._select, self._wait_for_boot]
        if options.forward is not None:
            phases.append(self._forward_ports)
        phases += [self._install, self._launch, self._running]
        return phases

    async def _select(self, ctx: RunContext) -> None:
        ctx.enter(RunState.SELECTING)
        snapshot = await self.inventory.snapshot()
        ctx.device = await self.selector.select(
            snapshot,
            target=ctx.options.target,
            prefer_virtual=ctx.options.prefer_virtual,
        )
        log.success(f"Selected {ctx.device.describe()}")

        ctx.app = await self.apk_inspector.inspect(ctx.options.apk_path)
        log.debug(f"Resolved application {ctx.app.component}")

    async def _wait_for_boot(self, ctx: RunContext) -> None:
        ctx.enter(RunState.BOOT_WAITING)
        ctx.device = await self.bridge.wait_for_boot(ctx.device)

    async def _forward_ports(self, ctx: RunContext) -> None:
        ctx.enter(RunState.PORT_FORWARDING)
        device, mapping = ctx.device, ctx.options.forward

        await self.bridge.forward_port(device, mapping)

        async def unforward() -> None:
            await self.bridge.unforward_port(device, mapping)

        ctx.forward_action = ctx.teardown.register(f"unforward {mapping}", unforward)
        log.success(f"Forwarded device port {mapping.device_port} to host port {mapping.host_port}")

    async def _install(self, ctx: RunContext) -> None:
        ctx.enter(RunState.INSTALLING)
        log.info(f"Installing {ctx.options.apk_path} on {ctx.device.serial}...")
        try:
            await self.bridge.install_package(ctx.device, ctx.options.apk_path, ctx.app.app_id)
        except InstallError:
            raise
        except ApkLaunchError as e:
            raise InstallError(
                f"Failed to install {ctx.options.apk_path} on {ctx.device.serial}: {e.message}",
                serial=ctx.device.serial,
                apk_path=ctx.options.apk_path,
            ) from e

    async def _launch(self, ctx: RunContext) -> None:
        ctx.enter(RunState.LAUNCHING)
        log.info(f"Starting application activity {ctx.app.component}...")
        await self.bridge.start_activity(ctx.device, ctx.app.app_id, ctx.app.activity_name)
        log.success("Run Successful")

    async def _running(self, ctx: RunContext) -> None:
        ctx.enter(RunState.RUNNING)
        device, app_id = ctx.device, ctx.app.app_id

        if not ctx.options.connect:
            # Detached: the app keeps running and still needs its forward.
            if ctx.forward_action is not None:
                ctx.teardown.discard(ctx.forward_action)
            return

        async def close_app() -> None:
            await self.bridge.force_stop(device, app_id)

        ctx.teardown.register(f"force-stop {app_id}", close_app)

        ctx.enter(RunState.WAITING_FOR_CLOSE)
        log.info("Waiting for app to close...")
        await self.bridge.wait_for_process_exit(device, app_id)
        log.info(f"Application {app_id} exited")
