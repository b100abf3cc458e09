"""Ordered cleanup of resources acquired during a run."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .config import config
from .logger import log

Action = Callable[[], Awaitable[None]]


@dataclass(eq=False)
class TeardownAction:
    """Handle returned by :meth:`TeardownRegistry.register`."""

    name: str
    action: Action


class TeardownRegistry:
    """Compensating actions, released newest first, exactly once.

    Actions are registered at the moment their resource is acquired. A failing
    or slow action is logged and skipped so the remaining ones still run.
    """

    def __init__(self, action_timeout: Optional[float] = None) -> None:
        self._actions: list[TeardownAction] = []
        self._executed = False
        self.action_timeout = action_timeout if action_timeout is not None else config.teardown_action_timeout
        self.failures: list[tuple[str, BaseException]] = []

    def register(self, name: str, action: Action) -> TeardownAction:
        if self._executed:
            raise RuntimeError(f"Teardown already ran, cannot register {name!r}")
        handle = TeardownAction(name, action)
        self._actions.append(handle)
        log.debug(f"Registered teardown action: {name}")
        return handle

    def discard(self, handle: TeardownAction) -> None:
        """Drop an action whose resource is handed over to the device."""
        if handle in self._actions:
            self._actions.remove(handle)
            log.debug(f"Discarded teardown action: {handle.name}")

    @property
    def pending(self) -> list[str]:
        return [a.name for a in self._actions]

    @property
    def executed(self) -> bool:
        return self._executed

    async def run_all(self) -> None:
        if self._executed:
            return
        self._executed = True

        while self._actions:
            handle = self._actions.pop()
            log.debug(f"Running teardown action: {handle.name}")
            try:
                await asyncio.wait_for(handle.action(), timeout=self.action_timeout)
            except asyncio.TimeoutError as e:
                log.warning(f"Teardown action {handle.name} timed out after {self.action_timeout}s")
                self.failures.append((handle.name, e))
            except Exception as e:
                log.warning(f"Teardown action {handle.name} failed: {e}")
                self.failures.append((handle.name, e))
